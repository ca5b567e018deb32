"""
Interactive reference insertion by cycling through nearby labels.

A ReferenceSession inserts a placeholder reference at the cursor, then
steps through the labels around it, rewriting the inserted identifier each
time a new label becomes current. One key ends the loop:

- the goto key removes the insertion and moves the cursor to the label,
- the previous/next keys keep cycling,
- any other key keeps the insertion as it is (a printable key is then typed
  as usual).

The loop is exposed as a step function so it can be driven by a real key
reader or by a scripted sequence of keys:

    >>> session = ReferenceSession(doc)
    >>> session.start(direction=Direction.FORWARD)
    >>> session.dispatch("C-s")
    >>> session.dispatch("RET")
    >>> session.result()
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from enum import Enum

from .config import RefCycleConfig
from .constants import (
    AT_POINT_STYLE,
    DIRECTION_PROMPT,
    NAMED_PRINTABLE_KEYS,
    NO_NEXT_MESSAGE,
    NO_PREVIOUS_MESSAGE,
    OPEN_REFERENCE_PATTERN,
    PLACEHOLDER,
    STEP_MESSAGE,
    TARGET_STYLE,
)
from .document import Direction, Region, TextDocument
from .errors import InvalidChoiceError, ScanFailure, SessionStateError
from .overlays import OverlaySlot, StatusSink
from .results import Outcome, SessionResult
from .scanner import Anchor, AnchorScanner
from .transaction import EditTransaction

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Lifecycle of a session."""

    IDLE = "idle"
    AWAITING_DIRECTION = "awaiting direction"
    STEPPING = "stepping"
    TERMINATED = "terminated"


class Action(Enum):
    """What a key means while stepping."""

    STEP_BACKWARD = "step-backward"
    STEP_FORWARD = "step-forward"
    GOTO = "goto"
    OTHER = "other"


@dataclass(frozen=True)
class SessionState:
    """Snapshot of a session after its latest transition.

    Attributes:
        origin: Offset where the reference is being inserted
        direction: Direction of the next scan
        step_index: Signed count of successful steps, never 0 after the first
        live_region: Text inserted at the origin
        identifier_region: Part of live_region holding the identifier, when a
            full reference construct was inserted
        insert_only_identifier: Whether only a bare identifier is inserted
        active: Whether the session still accepts keys
        phase: Current lifecycle phase
        current: The anchor the insertion currently names
        scratch_point: Offset the next scan starts from, in the scratch copy
        status: Last status text shown
        context: Context of the last anchor found
        outcome: How the session ended, once terminated
        inserted_text: Text left in the document at termination
        forwarded_key: Printable key passed on after accepting
    """

    origin: int
    direction: Direction
    step_index: int = 0
    live_region: Region | None = None
    identifier_region: Region | None = None
    insert_only_identifier: bool = False
    active: bool = False
    phase: Phase = Phase.IDLE
    current: Anchor | None = None
    scratch_point: int = 0
    status: str = ""
    context: str = ""
    outcome: Outcome | None = None
    inserted_text: str = ""
    forwarded_key: str | None = None


def next_step_index(step_index: int, direction: Direction) -> int:
    """Advance a step count, skipping 0 which means no step taken yet."""
    step = step_index + (1 if direction is Direction.FORWARD else -1)
    if step == 0:
        step = 1 if direction is Direction.FORWARD else -1
    return step


def printable_key(key: str | None) -> str | None:
    """Return the character a key types, or None for control keys."""
    if key is None:
        return None
    if key in NAMED_PRINTABLE_KEYS:
        return NAMED_PRINTABLE_KEYS[key]
    if len(key) == 1 and key.isprintable():
        return key
    return None


class ReferenceSession:
    """Drives one interactive reference insertion.

    Args:
        document: The document being edited
        sink: Where status text and highlights go (defaults to a silent sink)
        config: Keys and options (defaults to RefCycleConfig())
        read_key: Callable returning the next key, or None when input ends
    """

    def __init__(
        self,
        document: TextDocument,
        sink: StatusSink | None = None,
        config: RefCycleConfig | None = None,
        read_key: Callable[[], str | None] | None = None,
    ) -> None:
        self.document = document
        self.sink = sink or StatusSink()
        self.config = config or RefCycleConfig()
        self.read_key = read_key
        self.state = SessionState(origin=document.cursor, direction=Direction.FORWARD)

        self._scratch: TextDocument | None = None
        self._scanner: AnchorScanner | None = None
        self._transaction: EditTransaction | None = None
        self._at_point: OverlaySlot | None = None
        self._target: OverlaySlot | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def classify(self, key: str | None) -> Action:
        """Map a key to the action it triggers while stepping."""
        if key == self.config.goto_key:
            return Action.GOTO
        if key == self.config.previous_key:
            return Action.STEP_BACKWARD
        if key == self.config.next_key:
            return Action.STEP_FORWARD
        return Action.OTHER

    def start(
        self,
        origin: int | None = None,
        direction: Direction | None = None,
        only_identifier: bool = False,
    ) -> SessionState:
        """Insert the placeholder and find the first candidate.

        Args:
            origin: Offset to insert at (defaults to the document cursor)
            direction: Initial direction; when None, one key is read to choose
            only_identifier: Insert a bare identifier instead of a reference

        Returns:
            The state after the first scan

        Raises:
            InvalidChoiceError: If the direction key is not a step key; the
                document is left untouched
            SessionStateError: If the session was already started
        """
        if self.state.phase is not Phase.IDLE:
            raise SessionStateError(self.state.phase, "start")

        origin = self.document.cursor if origin is None else origin
        self.state = replace(self.state, origin=origin, scratch_point=origin)

        if direction is None:
            self.state = replace(self.state, phase=Phase.AWAITING_DIRECTION)
            try:
                direction = self._prompt_direction()
            except InvalidChoiceError:
                self.state = replace(self.state, phase=Phase.TERMINATED)
                raise

        identifier_only = only_identifier or (
            self.config.only_identifier_if_in_argument and self.in_reference_argument(origin)
        )
        logger.debug(
            "Starting session at offset %d, direction %s, identifier only: %s",
            origin,
            direction.value,
            identifier_only,
        )

        try:
            self._open(origin, direction, identifier_only)
            self._scan()
        except Exception:
            self._abort()
            raise
        return self.state

    def dispatch(self, key: str | None) -> SessionState:
        """Apply one key to the session and return the new state.

        A key of None means input ended and is treated like any other
        non-control key, except that nothing is typed afterwards.
        """
        if self.state.phase is not Phase.STEPPING:
            raise SessionStateError(self.state.phase, "dispatch a key")

        action = self.classify(key)
        logger.debug("Key %r -> %s", key, action.value)
        self._target.hide()

        try:
            if action is Action.GOTO:
                self._navigate()
            elif action is Action.STEP_BACKWARD:
                self.state = replace(self.state, direction=Direction.BACKWARD)
                self._scan()
            elif action is Action.STEP_FORWARD:
                self.state = replace(self.state, direction=Direction.FORWARD)
                self._scan()
            else:
                self._accept(key)
        except Exception:
            self._abort()
            raise
        return self.state

    def run(
        self,
        origin: int | None = None,
        direction: Direction | None = None,
        only_identifier: bool = False,
        keys: Iterable[str] | None = None,
    ) -> SessionResult:
        """Run the whole loop, reading keys until a terminal action.

        Args:
            origin: Offset to insert at (defaults to the document cursor)
            direction: Initial direction; when None, the first key chooses it
            only_identifier: Insert a bare identifier instead of a reference
            keys: Scripted keys to use instead of read_key

        Returns:
            SessionResult describing how the session ended
        """
        if keys is not None:
            self.read_key = functools.partial(next, iter(keys), None)

        state = self.start(origin, direction, only_identifier)
        while state.active:
            state = self.dispatch(self._read())
        return self.result()

    def result(self) -> SessionResult:
        """Summarize a terminated session."""
        state = self.state
        if state.outcome is None:
            raise SessionStateError(state.phase, "report a result")
        return SessionResult(
            outcome=state.outcome,
            inserted_text=state.inserted_text,
            anchor=state.current,
            step_index=state.step_index,
            cursor=self.document.cursor,
            forwarded_key=state.forwarded_key,
        )

    def in_reference_argument(self, position: int) -> bool:
        """Whether position is inside the open argument of a reference command."""
        text = self.document.text
        line_start = text.rfind("\n", 0, position) + 1
        match = OPEN_REFERENCE_PATTERN.search(text, line_start, position)
        return match is not None and not self.document.is_escaped(match.start())

    def close(self) -> None:
        """Release the scratch copy and highlights. Safe to call repeatedly."""
        if self._scratch is not None:
            self._scratch.close()
            self._scratch = None
            self._scanner = None
        for slot in (self._target, self._at_point):
            if slot is not None:
                slot.release()
        if self.state.identifier_region is not None:
            self.state.identifier_region.detach()

    def __enter__(self) -> ReferenceSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self.state.active:
            self._abort()
        self.close()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _read(self) -> str | None:
        return self.read_key() if self.read_key is not None else None

    def _prompt_direction(self) -> Direction:
        config = self.config
        self._show(DIRECTION_PROMPT % (config.previous_key, config.next_key))
        key = self._read()
        if key == config.previous_key:
            return Direction.BACKWARD
        if key == config.next_key:
            return Direction.FORWARD
        raise InvalidChoiceError(key, [config.previous_key, config.next_key])

    def _open(self, origin: int, direction: Direction, identifier_only: bool) -> None:
        doc = self.document
        doc.push_position_history(origin)

        self._scratch = doc.clone_read_only()
        self._scanner = AnchorScanner(self._scratch, show_context=self.config.show_context)
        self._at_point = OverlaySlot(self.sink, AT_POINT_STYLE)
        self._target = OverlaySlot(self.sink, TARGET_STYLE)
        self._transaction = EditTransaction(doc)

        identifier_region = None
        if identifier_only:
            live_region = self._transaction.insert(origin, PLACEHOLDER)
        else:
            macro = self.config.reference_macro
            live_region = self._transaction.insert(origin, macro + "{} ")
            brace = origin + len(macro) + 1
            identifier_region = doc.region(brace, brace)

        doc.cursor = live_region.end
        self._at_point.show(live_region.start, live_region.end)
        self.state = replace(
            self.state,
            direction=direction,
            live_region=live_region,
            identifier_region=identifier_region,
            insert_only_identifier=identifier_only,
            active=True,
            phase=Phase.STEPPING,
        )

    def _scan(self) -> None:
        state = self.state
        anchor = None
        try:
            anchor = self._scanner.find_next(state.scratch_point, state.direction)
        except ScanFailure as e:
            logger.warning("Treating unreadable label as no candidate: %s", e)

        if anchor is None:
            lead = NO_PREVIOUS_MESSAGE if state.direction is Direction.BACKWARD else NO_NEXT_MESSAGE
            status = self._show(lead + self._step_message(state.step_index), state.context)
            self.state = replace(state, status=status)
            return

        step_index = next_step_index(state.step_index, state.direction)
        if state.direction is Direction.FORWARD:
            scratch_point = anchor.match_end
        else:
            scratch_point = anchor.match_start
        self._write_identifier(anchor.identifier)
        self._target.show(self._to_real(anchor.start), self._to_real(anchor.end, is_end=True))
        status = self._show(self._step_message(step_index), anchor.context)

        logger.debug("Step %d: label '%s' at offset %d", step_index, anchor.identifier, anchor.start)
        self.state = replace(
            state,
            current=anchor,
            step_index=step_index,
            scratch_point=scratch_point,
            context=anchor.context,
            status=status,
        )

    def _write_identifier(self, identifier: str) -> None:
        state = self.state
        target = state.live_region if state.insert_only_identifier else state.identifier_region
        self._transaction.set_content(target, identifier)
        self.document.cursor = state.live_region.end
        self._at_point.show(state.live_region.start, state.live_region.end)

    def _navigate(self) -> None:
        anchor = self.state.current
        self._transaction.rollback()
        if anchor is not None:
            # Scratch offsets are real offsets again once the insertion is gone
            self.document.reveal_if_hidden(anchor.end)
            self.document.cursor = anchor.end
        self._finish(Outcome.NAVIGATED, inserted_text="")

    def _accept(self, key: str | None) -> None:
        inserted_text = self.state.live_region.text
        self._transaction.commit()
        self._finish(Outcome.ACCEPTED, inserted_text=inserted_text)

        char = printable_key(key)
        if char is not None:
            self.document.self_insert(char)
            self.state = replace(self.state, forwarded_key=char)

    def _finish(self, outcome: Outcome, inserted_text: str) -> None:
        self.close()
        self.state = replace(
            self.state,
            active=False,
            phase=Phase.TERMINATED,
            outcome=outcome,
            inserted_text=inserted_text,
        )
        logger.debug("Session ended: %s", outcome.value)

    def _abort(self) -> None:
        if self._transaction is not None and self._transaction.is_open:
            self._transaction.rollback()
        self.close()
        self.state = replace(self.state, active=False, phase=Phase.TERMINATED)
        logger.debug("Session aborted")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _to_real(self, position: int, is_end: bool = False) -> int:
        """Map a scratch offset to the real document, which holds the insertion.

        An end offset equal to the origin stays before the insertion.
        """
        live_region = self.state.live_region
        origin = self.state.origin
        if position > origin or (position == origin and not is_end):
            return position + len(live_region)
        return position

    def _step_message(self, step_index: int) -> str:
        config = self.config
        return STEP_MESSAGE % (step_index, config.previous_key, config.next_key, config.goto_key)

    def _show(self, message: str, context: str = "") -> str:
        template = message.replace("%", "%%") + context
        self.sink.show_status(template)
        return template % ()
