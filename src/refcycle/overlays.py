"""Status and highlight sinks for the reference session.

Sinks are write-only from the session's point of view: it shows status
text and places or clears highlights, and never reads them back. Status
text is a %-style template rendered without arguments, so a literal percent
sign must be written as ``%%``.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass

import typer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Highlight:
    """A highlight placed by a sink.

    Attributes:
        handle: Identifier returned to the caller
        start: Start offset in the real document
        end: End offset in the real document
        style: Style tag, e.g. 'refcycle-target'
    """

    handle: int
    start: int
    end: int
    style: str


class StatusSink:
    """Base sink that renders status text and tracks highlights.

    Subclasses override ``_emit`` to send rendered status text somewhere.
    """

    def __init__(self) -> None:
        self._handles = itertools.count(1)
        self.highlights: dict[int, Highlight] = {}

    def show_status(self, template: str) -> None:
        self._emit(template % ())

    def _emit(self, text: str) -> None:
        logger.debug("Status: %s", text)

    def highlight(self, start: int, end: int, style: str) -> int:
        handle = next(self._handles)
        self.highlights[handle] = Highlight(handle=handle, start=start, end=end, style=style)
        return handle

    def clear_highlight(self, handle: int) -> None:
        self.highlights.pop(handle, None)


class RecordingSink(StatusSink):
    """Sink that remembers every rendered status message."""

    def __init__(self) -> None:
        super().__init__()
        self.messages: list[str] = []

    @property
    def last_message(self) -> str | None:
        return self.messages[-1] if self.messages else None

    def _emit(self, text: str) -> None:
        super()._emit(text)
        self.messages.append(text)

    def styles(self) -> list[str]:
        """Style tags of the highlights currently shown."""
        return [h.style for h in self.highlights.values()]


class EchoSink(StatusSink):
    """Sink that prints status text to the terminal."""

    def __init__(self, err: bool = True) -> None:
        super().__init__()
        self.err = err

    def _emit(self, text: str) -> None:
        super()._emit(text)
        typer.echo(text, err=self.err)


class OverlaySlot:
    """A named highlight that is moved around rather than recreated by callers.

    The slot owns at most one highlight in its sink at a time. Releasing a
    slot clears its highlight and makes further ``show`` calls fail.

    Args:
        sink: Sink that draws the highlight
        style: Style tag used for every highlight of this slot
    """

    def __init__(self, sink: StatusSink, style: str) -> None:
        self.sink = sink
        self.style = style
        self._handle: int | None = None
        self.released = False

    @property
    def visible(self) -> bool:
        return self._handle is not None

    def show(self, start: int, end: int) -> None:
        if self.released:
            raise RuntimeError(f"Overlay '{self.style}' already released")
        self.hide()
        self._handle = self.sink.highlight(start, end, self.style)

    def hide(self) -> None:
        if self._handle is not None:
            self.sink.clear_highlight(self._handle)
            self._handle = None

    def release(self) -> None:
        self.hide()
        self.released = True

    def __enter__(self) -> OverlaySlot:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
