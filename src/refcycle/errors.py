"""
Custom exception classes for the refcycle package.

These exceptions provide helpful error messages with suggestions for
resolving common issues when cycling through label candidates and editing
the document in place.
"""

from typing import Any


class RefCycleError(Exception):
    """Base exception for all refcycle errors."""

    pass


class InvalidChoiceError(RefCycleError):
    """Raised when the direction prompt receives an unexpected key.

    The session is aborted before any text is inserted.

    Attributes:
        key: The key that was received
        expected: Keys that would have been accepted
    """

    def __init__(self, key: str | None, expected: list[str] | None = None) -> None:
        self.key = key
        self.expected = expected or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format a helpful error message listing the accepted keys."""
        if self.key is None:
            msg = "No key received for the search direction"
        else:
            msg = f"Invalid choice '{self.key}' for the search direction"

        if self.expected:
            msg += "\n\nSuggestions:\n"
            for key in self.expected:
                msg += f"  • Press '{key}'\n"

        return msg


class ScanFailure(RefCycleError):
    """Raised when a label match cannot be turned into an anchor.

    This can occur when:
    - The bracketed argument is never closed
    - The document handle was closed while scanning

    Attributes:
        position: Offset of the construct that could not be read
        reason: Explanation of the failure
    """

    def __init__(self, position: int, reason: str | None = None) -> None:
        self.position = position
        self.reason = reason
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"Could not read label at offset {self.position}"
        if self.reason:
            msg += f": {self.reason}"
        return msg


class ConfigurationError(RefCycleError):
    """Raised when a configuration file or mapping is invalid.

    Attributes:
        errors: List of specific problems found (optional)
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or []
        if self.errors:
            message += "\n" + "\n".join(f"  • {error}" for error in self.errors)
        super().__init__(message)


class ReadOnlyDocumentError(RefCycleError):
    """Raised when a read-only clone is asked to change its text."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Cannot {operation}: document is read-only")


class DocumentClosedError(RefCycleError):
    """Raised when a document handle is used after close()."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Cannot {operation}: document has been closed")


class TransactionClosedError(RefCycleError):
    """Raised when an edit transaction is used after commit or rollback.

    Attributes:
        status: Final status of the transaction ('committed' or 'rolled back')
    """

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"Transaction already {status}")


class SessionStateError(RefCycleError):
    """Raised when a session operation does not fit its current phase.

    Attributes:
        phase: The phase the session was in
        operation: The operation that was attempted
    """

    def __init__(self, phase: Any, operation: str) -> None:
        self.phase = phase
        self.operation = operation
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        phase = getattr(self.phase, "value", self.phase)
        msg = f"Cannot {self.operation} while session is {phase}"
        if phase == "terminated":
            msg += "\n\nStart a new ReferenceSession to insert another reference."
        return msg
