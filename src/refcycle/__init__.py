"""
refcycle - Insert LaTeX cross-references by cycling through nearby labels.

This package inserts a reference at the cursor and lets the author step
through the ``\\label{...}`` anchors around it, nearest first, rewriting the
inserted identifier at every step. The edit is kept or rolled back as a
whole when the loop ends.

Example:
    >>> from refcycle import Direction, ReferenceSession, TextDocument
    >>> doc = TextDocument.from_file("paper.tex", cursor=120)
    >>> result = ReferenceSession(doc).run(direction=Direction.BACKWARD, keys=["C-r", "RET"])
    >>> doc.save("paper.tex")
"""

__version__ = "0.1.0"
__all__ = [
    "TextDocument",
    "Direction",
    "Marker",
    "Region",
    "EditTransaction",
    "Anchor",
    "AnchorScanner",
    "ReferenceSession",
    "SessionState",
    "Phase",
    "Action",
    "RefCycleConfig",
    "load_config",
    "SessionResult",
    "Outcome",
    "StatusSink",
    "RecordingSink",
    "EchoSink",
    "OverlaySlot",
    "RefCycleError",
    "InvalidChoiceError",
    "ScanFailure",
    "ConfigurationError",
    "ReadOnlyDocumentError",
    "DocumentClosedError",
    "TransactionClosedError",
    "SessionStateError",
]

# Import configuration
from .config import RefCycleConfig, load_config

# Import host document model
from .document import Direction, Marker, Region, TextDocument
from .errors import (
    ConfigurationError,
    DocumentClosedError,
    InvalidChoiceError,
    ReadOnlyDocumentError,
    RefCycleError,
    ScanFailure,
    SessionStateError,
    TransactionClosedError,
)

# Import status and highlight sinks
from .overlays import EchoSink, OverlaySlot, RecordingSink, StatusSink

# Import result types
from .results import Outcome, SessionResult

# Import label scanning
from .scanner import Anchor, AnchorScanner

# Import the interactive session
from .session import Action, Phase, ReferenceSession, SessionState

# Import edit transactions
from .transaction import EditTransaction
