"""
In-memory text document used as the host editing model.

This module provides the primitives the reference session relies on:
markers that stay valid while text around them changes length, atomic
insert/replace operations, an unescaped-aware pattern search, LaTeX comment
detection, visual line boundaries, folded (hidden) regions and a position
history. A real editor integration can supply its own object with the same
methods; TextDocument is the reference host used by the command line and
the tests.

Example:
    >>> doc = TextDocument("See \\\\label{intro} here.")
    >>> region = doc.insert(4, "\\\\ref{} ")
    >>> doc.replace(region, "\\\\ref{intro} ")
"""

from __future__ import annotations

import bisect
import logging
import re
import weakref
from enum import Enum
from pathlib import Path

from .constants import COMMENT_CHAR, ESCAPE_CHAR
from .errors import DocumentClosedError, ReadOnlyDocumentError

logger = logging.getLogger(__name__)


class Direction(Enum):
    """Search direction relative to a position."""

    BACKWARD = "backward"
    FORWARD = "forward"

    @property
    def word(self) -> str:
        """Human-readable adjective used in status messages."""
        return "previous" if self is Direction.BACKWARD else "next"


class Marker:
    """A position that follows the text around it as the document changes.

    Attributes:
        position: Current character offset
        insertion_type: Whether text inserted exactly at the marker goes
            before it (True, the marker advances) or after it (False)
    """

    def __init__(self, position: int, insertion_type: bool = False) -> None:
        self.position = position
        self.insertion_type = insertion_type

    def __repr__(self) -> str:
        return f"Marker({self.position}, insertion_type={self.insertion_type})"

    def _adjust(self, start: int, end: int, new_length: int) -> None:
        """Follow a replacement of [start, end) by new_length characters."""
        pos = self.position
        if pos > end or (pos == end and end > start):
            self.position = pos + new_length - (end - start)
        elif pos > start:
            # Inside the replaced text
            self.position = start + new_length if self.insertion_type else start
        elif pos == start and end == start and self.insertion_type:
            self.position = start + new_length


class Region:
    """A span of a document delimited by two markers.

    The start marker stays before text inserted at its position and the end
    marker advances past it, so an empty region grows when text is inserted
    into it.
    """

    def __init__(self, document: TextDocument, start: Marker, end: Marker) -> None:
        self.document = document
        self._start = start
        self._end = end

    @property
    def start(self) -> int:
        return self._start.position

    @property
    def end(self) -> int:
        return self._end.position

    @property
    def text(self) -> str:
        """Current text covered by the region."""
        return self.document.substring(self.start, self.end)

    def __len__(self) -> int:
        return self.end - self.start

    def __contains__(self, position: object) -> bool:
        return isinstance(position, int) and self.start <= position <= self.end

    def __repr__(self) -> str:
        return f"Region({self.start}, {self.end})"

    def _set(self, start: int, end: int) -> None:
        self._start.position = start
        self._end.position = end

    def detach(self) -> None:
        """Stop tracking edits for this region."""
        self.document._forget(self._start)
        self.document._forget(self._end)


class TextDocument:
    """A mutable text buffer with a cursor and edit-stable markers.

    Args:
        text: Initial text
        cursor: Initial cursor offset
        wrap_width: Soft wrap width for visual lines; None means visual lines
            are the logical lines
        read_only: Reject all mutations when True
    """

    def __init__(
        self,
        text: str = "",
        cursor: int = 0,
        wrap_width: int | None = None,
        read_only: bool = False,
    ) -> None:
        if wrap_width is not None and wrap_width < 1:
            raise ValueError(f"wrap_width must be positive, got {wrap_width}")
        self._text = text
        self._markers: weakref.WeakSet[Marker] = weakref.WeakSet()
        self._cursor = self._track(Marker(0))
        self.wrap_width = wrap_width
        self.read_only = read_only
        self._closed = False
        self._history: list[Marker] = []
        self._folds: list[Region] = []
        self.cursor = cursor

    @classmethod
    def from_file(cls, path: str | Path, **kwargs) -> TextDocument:
        """Load a document from a UTF-8 text file."""
        return cls(Path(path).read_text(encoding="utf-8"), **kwargs)

    def save(self, path: str | Path) -> None:
        """Write the document text to a UTF-8 file."""
        self._check_open("save")
        Path(path).write_text(self._text, encoding="utf-8")
        logger.debug("Saved document to %s", path)

    # ------------------------------------------------------------------
    # Text access
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        self._check_open("read text")
        return self._text

    def __len__(self) -> int:
        return len(self._text)

    def substring(self, start: int, end: int) -> str:
        self._check_open("read text")
        self._check_position(start)
        self._check_position(end)
        return self._text[start:end]

    @property
    def cursor(self) -> int:
        return self._cursor.position

    @cursor.setter
    def cursor(self, position: int) -> None:
        self._check_position(position)
        self._cursor.position = position

    def position_of(self, line: int, column: int) -> int:
        """Convert a 1-based line and 0-based column to an offset.

        Raises:
            ValueError: If the line does not exist or the column is past its end
        """
        lines = self._text.split("\n")
        if not 1 <= line <= len(lines):
            raise ValueError(f"Line {line} out of range (document has {len(lines)} lines)")
        if not 0 <= column <= len(lines[line - 1]):
            raise ValueError(f"Column {column} out of range for line {line}")
        return sum(len(text) + 1 for text in lines[: line - 1]) + column

    def line_column(self, position: int) -> tuple[int, int]:
        """Convert an offset to a 1-based line and 0-based column."""
        self._check_position(position)
        line_start = self._text.rfind("\n", 0, position) + 1
        return self._text.count("\n", 0, position) + 1, position - line_start

    # ------------------------------------------------------------------
    # Editing primitives
    # ------------------------------------------------------------------

    def insert(self, position: int, text: str) -> Region:
        """Insert text and return a region covering it."""
        self._check_writable("insert text")
        self._check_position(position)
        self._splice(position, position, text)
        return self._make_region(position, position + len(text))

    def replace(self, region: Region, text: str) -> None:
        """Replace the text of a region, leaving the region around the new text.

        Overlays attached to the region are not preserved; callers
        re-highlight after replacing.
        """
        self._check_writable("replace text")
        start, end = region.start, region.end
        self._splice(start, end, text)
        region._set(start, start + len(text))

    def delete(self, region: Region) -> str:
        """Delete the text of a region and return what was removed."""
        removed = region.text
        self.replace(region, "")
        return removed

    def self_insert(self, char: str) -> None:
        """Insert a typed character at the cursor, as default key handling would."""
        position = self.cursor
        self.insert(position, char).detach()
        self.cursor = position + len(char)

    def _splice(self, start: int, end: int, text: str) -> None:
        self._text = self._text[:start] + text + self._text[end:]
        for marker in list(self._markers):
            marker._adjust(start, end, len(text))

    def _make_region(self, start: int, end: int) -> Region:
        return Region(
            self, self._track(Marker(start)), self._track(Marker(end, insertion_type=True))
        )

    def region(self, start: int, end: int) -> Region:
        """Create a marker-backed region over existing text."""
        self._check_position(start)
        self._check_position(end)
        if start > end:
            raise ValueError(f"Region start {start} is after end {end}")
        return self._make_region(start, end)

    def _track(self, marker: Marker) -> Marker:
        self._markers.add(marker)
        return marker

    def _forget(self, marker: Marker) -> None:
        self._markers.discard(marker)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def is_escaped(self, position: int) -> bool:
        """Whether the character at position is preceded by an odd run of backslashes."""
        count = 0
        index = position - 1
        while index >= 0 and self._text[index] == ESCAPE_CHAR:
            count += 1
            index -= 1
        return count % 2 == 1

    def is_in_comment(self, position: int) -> bool:
        """Whether position lies after an unescaped comment character on its line."""
        self._check_open("inspect comments")
        line_start = self._text.rfind("\n", 0, position) + 1
        index = self._text.find(COMMENT_CHAR, line_start, position)
        while index != -1:
            if not self.is_escaped(index):
                return True
            index = self._text.find(COMMENT_CHAR, index + 1, position)
        return False

    def search(
        self, pattern: re.Pattern[str], origin: int, direction: Direction
    ) -> re.Match[str] | None:
        """Find the nearest unescaped match of pattern from origin.

        A forward search returns the first match starting at or after origin.
        A backward search returns the last match that ends at or before
        origin. Matches whose first character is escaped by a backslash are
        ignored.
        """
        self._check_open("search")
        self._check_position(origin)
        if direction is Direction.FORWARD:
            start = origin
            while start <= len(self._text):
                match = pattern.search(self._text, start)
                if match is None:
                    return None
                if not self.is_escaped(match.start()):
                    return match
                start = match.start() + 1
            return None

        for match in reversed(list(pattern.finditer(self._text, 0, origin))):
            if not self.is_escaped(match.start()):
                return match
        return None

    # ------------------------------------------------------------------
    # Visual lines
    # ------------------------------------------------------------------

    def _visual_lines(self) -> list[tuple[int, int]]:
        lines = []
        start = 0
        for logical in self._text.split("\n"):
            end = start + len(logical)
            if self.wrap_width is None or len(logical) <= self.wrap_width:
                lines.append((start, end))
            else:
                for chunk in range(start, end, self.wrap_width):
                    lines.append((chunk, min(chunk + self.wrap_width, end)))
            start = end + 1
        return lines

    def _visual_line_index(self, lines: list[tuple[int, int]], position: int) -> int:
        return bisect.bisect_right([start for start, _ in lines], position) - 1

    def visual_line_start(self, position: int, offset: int = 0) -> int:
        """Start of the visual line offset lines away from the one containing position."""
        self._check_open("measure lines")
        self._check_position(position)
        lines = self._visual_lines()
        index = self._visual_line_index(lines, position) + offset
        return lines[max(0, min(index, len(lines) - 1))][0]

    def visual_line_end(self, position: int, offset: int = 0) -> int:
        """End of the visual line offset lines away from the one containing position."""
        self._check_open("measure lines")
        self._check_position(position)
        lines = self._visual_lines()
        index = self._visual_line_index(lines, position) + offset
        return lines[max(0, min(index, len(lines) - 1))][1]

    # ------------------------------------------------------------------
    # Folding and history
    # ------------------------------------------------------------------

    def fold(self, start: int, end: int) -> Region:
        """Hide a region, as a collapsed section would be."""
        region = self.region(start, end)
        self._folds.append(region)
        return region

    @property
    def hidden_regions(self) -> list[Region]:
        return list(self._folds)

    def is_hidden(self, position: int) -> bool:
        return any(fold.start < position < fold.end for fold in self._folds)

    def reveal_if_hidden(self, position: int) -> None:
        """Unfold every folded region that hides position."""
        for fold in [f for f in self._folds if f.start < position < f.end]:
            logger.debug("Revealing folded region %d-%d", fold.start, fold.end)
            self._folds.remove(fold)
            fold.detach()

    def push_position_history(self, position: int) -> None:
        """Remember a position so the author can return to it later."""
        self._check_position(position)
        self._history.append(self._track(Marker(position)))

    @property
    def position_history(self) -> list[int]:
        """Remembered positions, oldest first, adjusted for later edits."""
        return [marker.position for marker in self._history]

    # ------------------------------------------------------------------
    # Clones and lifetime
    # ------------------------------------------------------------------

    def clone_read_only(self) -> TextDocument:
        """Return an independent read-only copy for scanning."""
        self._check_open("clone")
        return TextDocument(
            self._text, cursor=self.cursor, wrap_width=self.wrap_width, read_only=True
        )

    def close(self) -> None:
        """Release the document; later access raises DocumentClosedError."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise DocumentClosedError(operation)

    def _check_writable(self, operation: str) -> None:
        self._check_open(operation)
        if self.read_only:
            raise ReadOnlyDocumentError(operation)

    def _check_position(self, position: int) -> None:
        if not 0 <= position <= len(self._text):
            raise ValueError(
                f"Position {position} out of range (document length {len(self._text)})"
            )
