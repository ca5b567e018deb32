"""
Label scanning for finding the anchors a reference can point at.

This module handles the core search: starting from a position and moving in
one direction, find the nearest ``\\label{...}`` declaration that

1. is not escaped (``\\\\label`` is a line break followed by text),
2. does not sit inside a ``%`` comment,
3. has a non-blank bracketed argument.

Matches that fail any of these are skipped by searching again from the
rejected match, so comment skipping never changes the search direction.
The scanner never mutates the document it reads; sessions run it against a
read-only clone.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from .constants import CONTEXT_SEPARATOR, LABEL_PATTERN
from .document import Direction, TextDocument
from .errors import DocumentClosedError, ScanFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Anchor:
    """A labeled point in the document.

    Attributes:
        identifier: Label text without its braces
        start: Offset of the opening brace of the argument
        end: Offset just past the closing brace of the argument
        match_start: Offset of the backslash starting the declaration
        match_end: Offset just past the whole declaration
        context: Surrounding lines for display, or "" when not requested
    """

    identifier: str
    start: int
    end: int
    match_start: int
    match_end: int
    context: str = ""


def _argument_end(text: str, open_brace: int) -> int | None:
    """Return the offset past the brace closing the one at open_brace."""
    depth = 0
    index = open_brace
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index + 1
        index += 1
    return None


class AnchorScanner:
    """Finds the nearest qualifying label in a given direction.

    Each call searches again from the given origin; no index is kept
    between calls, so edits to the document can never leave stale results.

    Args:
        document: Document to read (usually a read-only clone)
        show_context: Whether found anchors carry surrounding lines
    """

    def __init__(self, document: TextDocument, show_context: bool = False) -> None:
        self.document = document
        self.show_context = show_context

    def find_next(self, origin: int, direction: Direction) -> Anchor | None:
        """Find the nearest qualifying anchor from origin in direction.

        Args:
            origin: Offset to search from
            direction: Direction.FORWARD or Direction.BACKWARD

        Returns:
            The nearest Anchor, or None when the document boundary is reached

        Raises:
            ScanFailure: If a label argument is never closed, or the
                document was closed
        """
        try:
            return self._find_next(origin, direction)
        except DocumentClosedError as e:
            raise ScanFailure(origin, str(e)) from e

    def _find_next(self, origin: int, direction: Direction) -> Anchor | None:
        doc = self.document
        text = doc.text
        position = origin

        while True:
            match = doc.search(LABEL_PATTERN, position, direction)
            if match is None:
                logger.debug("No %s label from offset %d", direction.word, origin)
                return None

            # Next search starts past (forward) or before (backward) this match
            position = match.end() if direction is Direction.FORWARD else match.start()

            if doc.is_in_comment(match.start()):
                logger.debug("Skipping commented label at offset %d", match.start())
                continue

            open_brace = match.end() - 1
            end = _argument_end(text, open_brace)
            if end is None:
                raise ScanFailure(match.start(), "unterminated label argument")

            if direction is Direction.BACKWARD and end > origin:
                # The argument reaches past the origin, so the label is not before it
                continue

            identifier = text[open_brace + 1 : end - 1]
            if not identifier.strip():
                logger.debug("Skipping blank label at offset %d", match.start())
                continue

            return Anchor(
                identifier=identifier,
                start=open_brace,
                end=end,
                match_start=match.start(),
                match_end=end,
                context=self.context_for(match.start()) if self.show_context else "",
            )

    def context_for(self, position: int) -> str:
        """Text of the visual lines around position, ready for status display.

        Covers the visual line above through the visual line below, stripped,
        with literal percent signs doubled, prefixed by a blank line.
        """
        doc = self.document
        start = doc.visual_line_start(position, -1)
        end = doc.visual_line_end(position, 1)
        context = doc.substring(start, end).strip().replace("%", "%%")
        return CONTEXT_SEPARATOR + context

    def iter_anchors(
        self, direction: Direction = Direction.FORWARD, origin: int | None = None
    ) -> Iterator[Anchor]:
        """Walk every qualifying anchor from origin in direction.

        The walk starts at the document start (forward) or end (backward)
        when origin is None.
        """
        if origin is None:
            origin = 0 if direction is Direction.FORWARD else len(self.document)
        position = origin
        while True:
            anchor = self.find_next(position, direction)
            if anchor is None:
                return
            yield anchor
            position = anchor.match_end if direction is Direction.FORWARD else anchor.match_start
