"""
Result classes for reference sessions.

This module provides the result type returned once a session reaches a
terminal action.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .scanner import Anchor


class Outcome(Enum):
    """How a session ended."""

    ACCEPTED = "accepted-as-is"
    NAVIGATED = "navigated"


@dataclass
class SessionResult:
    """Result of a finished reference session.

    Attributes:
        outcome: Whether the insertion was kept or the cursor jumped to a label
        inserted_text: Text left in the document (empty when navigated)
        anchor: The anchor that was current when the session ended
        step_index: Signed number of successful steps taken
        cursor: Cursor offset in the real document after the session
        forwarded_key: Printable key passed on to default input handling
    """

    outcome: Outcome
    inserted_text: str
    anchor: "Anchor | None"
    step_index: int
    cursor: int
    forwarded_key: str | None = None

    @property
    def identifier(self) -> str | None:
        return self.anchor.identifier if self.anchor else None

    def __str__(self) -> str:
        """Get string representation of the result."""
        if self.outcome is Outcome.NAVIGATED:
            return f"↪ navigated to label '{self.identifier}'"
        if self.anchor is None:
            return f"✗ no label found, left {self.inserted_text!r}"
        return f"✓ inserted {self.inserted_text!r} (step {self.step_index})"
