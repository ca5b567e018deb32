"""Edit transactions for speculative, reversible document edits.

A transaction records the previous contents of every region it touches so
that the whole group of edits can be undone at once. The reference session
opens one transaction per invocation: accepting a candidate commits it, and
navigating to a label rolls it back.

Example:
    >>> with EditTransaction(doc) as txn:
    ...     region = txn.insert(doc.cursor, "\\\\ref{} ")
    ...     txn.set_content(region, "\\\\ref{intro} ")
    ...     txn.commit()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import TracebackType

from .document import Region, TextDocument
from .errors import TransactionClosedError

logger = logging.getLogger(__name__)


@dataclass
class JournalEntry:
    """One reversible edit.

    Attributes:
        region: Region currently holding the edited text
        previous_text: Text the region held before the edit
    """

    region: Region
    previous_text: str


class EditTransaction:
    """Group of edits that is either committed or rolled back as a whole.

    Attributes:
        document: The document being edited
        status: 'open', 'committed' or 'rolled back'
    """

    def __init__(self, document: TextDocument) -> None:
        self.document = document
        self.status = "open"
        self._journal: list[JournalEntry] = []
        self._cursor = document.cursor

    @property
    def is_open(self) -> bool:
        return self.status == "open"

    def insert(self, position: int, text: str) -> Region:
        """Insert text and return a region that tracks it."""
        self._check_open()
        region = self.document.insert(position, text)
        self._journal.append(JournalEntry(region=region, previous_text=""))
        return region

    def set_content(self, region: Region, text: str) -> None:
        """Replace the text of a region, remembering what it held before."""
        self._check_open()
        if region.text == text:
            return
        tracked = self.document.region(region.start, region.end)
        previous = region.text
        self.document.replace(region, text)
        tracked._set(region.start, region.end)
        self._journal.append(JournalEntry(region=tracked, previous_text=previous))

    def commit(self) -> None:
        """Keep every edit made in this transaction."""
        self._check_open()
        self.status = "committed"
        logger.debug("Committed %d edits", len(self._journal))
        self._release()

    def rollback(self) -> None:
        """Undo every edit in reverse order and restore the cursor."""
        self._check_open()
        for entry in reversed(self._journal):
            self.document.replace(entry.region, entry.previous_text)
        self.document.cursor = self._cursor
        self.status = "rolled back"
        logger.debug("Rolled back %d edits", len(self._journal))
        self._release()

    def _release(self) -> None:
        for entry in self._journal:
            entry.region.detach()
        self._journal.clear()

    def _check_open(self) -> None:
        if not self.is_open:
            raise TransactionClosedError(self.status)

    def __enter__(self) -> EditTransaction:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None and self.is_open:
            self.rollback()
