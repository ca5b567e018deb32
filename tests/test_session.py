"""
Tests for ReferenceSession.

These tests drive the session state machine with scripted keys and verify
the live insertion, step counting, rollback on navigation, and cleanup on
every exit path.
"""

import pytest

from refcycle import (
    AnchorScanner,
    Direction,
    InvalidChoiceError,
    Outcome,
    Phase,
    RecordingSink,
    RefCycleConfig,
    ReferenceSession,
    SessionStateError,
    TextDocument,
)
from refcycle.session import next_step_index, printable_key

DOC = "\\label{a}\nX\n\\label{b}\n\\label{c}\n"
ORIGIN = DOC.index("X")


def make_session(
    text: str = DOC, cursor: int = ORIGIN, config: RefCycleConfig | None = None, **kwargs
) -> tuple[TextDocument, RecordingSink, ReferenceSession]:
    doc = TextDocument(text, cursor=cursor)
    sink = RecordingSink()
    return doc, sink, ReferenceSession(doc, sink=sink, config=config, **kwargs)


class ClonedDocument(TextDocument):
    """TextDocument that remembers the clones it hands out."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.clones = []

    def clone_read_only(self):
        clone = super().clone_read_only()
        self.clones.append(clone)
        return clone


class TestStepIndex:
    """Tests for the skip-zero step counter."""

    def test_first_steps(self):
        """Test the first forward step is 1 and the first backward step is -1."""
        assert next_step_index(0, Direction.FORWARD) == 1
        assert next_step_index(0, Direction.BACKWARD) == -1

    def test_zero_is_skipped(self):
        """Test crossing zero jumps over it."""
        assert next_step_index(1, Direction.BACKWARD) == -1
        assert next_step_index(-1, Direction.FORWARD) == 1
        assert next_step_index(2, Direction.BACKWARD) == 1


class TestForwardScenario:
    """Tests for the label a / point / label b / label c scenario."""

    def test_steps_through_following_labels(self):
        """Test forward steps yield b, then c, then no candidate."""
        doc, sink, session = make_session()

        state = session.start(direction=Direction.FORWARD)
        assert state.current.identifier == "b"
        assert state.step_index == 1
        assert state.live_region.text == "\\ref{b} "

        state = session.dispatch("C-s")
        assert state.current.identifier == "c"
        assert state.step_index == 2

        state = session.dispatch("C-s")
        assert state.step_index == 2
        assert state.live_region.text == "\\ref{c} "
        assert sink.last_message.startswith("No next label. Step 2")

    def test_accept_keeps_insertion(self):
        """Test a non-control key keeps the last written reference."""
        doc, sink, session = make_session()
        result = session.run(direction=Direction.FORWARD, keys=["C-s", "RET"])

        assert result.outcome is Outcome.ACCEPTED
        assert result.inserted_text == "\\ref{c} "
        assert result.identifier == "c"
        assert doc.text == DOC.replace("X", "\\ref{c} X")
        assert result.forwarded_key is None

    def test_forward_then_backward_retargets(self):
        """Test stepping back after a forward step re-targets the same label."""
        doc_once, _, session_once = make_session()
        session_once.run(direction=Direction.FORWARD, keys=["RET"])

        doc, _, session = make_session()
        result = session.run(direction=Direction.FORWARD, keys=["C-r", "RET"])

        assert result.identifier == "b"
        assert result.step_index == -1
        assert doc.text == doc_once.text

    def test_backward_walk_continues_from_scratch_point(self):
        """Test switching direction scans from the last match, not the origin."""
        doc, _, session = make_session()
        session.start(direction=Direction.FORWARD)
        session.dispatch("C-s")
        state = session.dispatch("C-r")

        assert state.current.identifier == "c"
        state = session.dispatch("C-r")
        assert state.current.identifier == "b"
        state = session.dispatch("C-r")
        assert state.current.identifier == "a"


class TestBackward:
    """Tests for starting backward."""

    def test_first_backward_step(self):
        """Test the first backward step reports -1."""
        doc, sink, session = make_session()
        state = session.start(direction=Direction.BACKWARD)

        assert state.current.identifier == "a"
        assert state.step_index == -1
        assert sink.messages[-1].startswith("Step -1")

    def test_no_previous_label(self):
        """Test no candidate before the first label leaves the skeleton empty."""
        doc, sink, session = make_session(cursor=0)
        state = session.start(direction=Direction.BACKWARD)

        assert state.current is None
        assert state.step_index == 0
        assert state.live_region.text == "\\ref{} "
        assert sink.last_message.startswith("No previous label. Step 0")


class TestNavigate:
    """Tests for the goto action."""

    def test_goto_rolls_back_and_moves_cursor(self):
        """Test goto removes the insertion and jumps to the label."""
        doc, sink, session = make_session()
        result = session.run(direction=Direction.FORWARD, keys=["C-s", "C-r", "C-r", "C-o"])

        assert result.outcome is Outcome.NAVIGATED
        assert result.identifier == "b"
        assert doc.text == DOC
        assert doc.cursor == DOC.index("\\label{b}") + len("\\label{b}")
        assert result.inserted_text == ""

    def test_goto_reveals_hidden_label(self):
        """Test goto unfolds a collapsed region holding the label."""
        doc, sink, session = make_session()
        doc.fold(DOC.index("\\label{b}") - 1, len(DOC))
        session.run(direction=Direction.FORWARD, keys=["C-o"])

        assert doc.hidden_regions == []

    def test_goto_without_candidate_restores_cursor(self):
        """Test goto with no current label just removes the insertion."""
        doc, sink, session = make_session(text="no labels here", cursor=3)
        result = session.run(direction=Direction.FORWARD, keys=["C-o"])

        assert result.outcome is Outcome.NAVIGATED
        assert doc.text == "no labels here"
        assert doc.cursor == 3


class TestDirectionPrompt:
    """Tests for choosing the direction interactively."""

    def test_prompt_reads_direction(self):
        """Test the first key chooses the direction."""
        keys = iter(["C-r", "RET"])
        doc, sink, session = make_session(read_key=lambda: next(keys))
        result = session.run()

        assert result.identifier == "a"
        assert sink.messages[0].startswith("Search direction")

    def test_invalid_choice_leaves_document(self):
        """Test an unexpected key aborts before any insertion."""
        doc, sink, session = make_session()

        with pytest.raises(InvalidChoiceError, match="Invalid choice 'x'"):
            session.run(keys=["x"])

        assert doc.text == DOC
        assert doc.position_history == []
        assert session.state.phase is Phase.TERMINATED

    def test_missing_key_is_invalid(self):
        """Test running out of input at the prompt is an invalid choice."""
        doc, sink, session = make_session()

        with pytest.raises(InvalidChoiceError, match="No key"):
            session.run(keys=[])


class TestIdentifierOnly:
    """Tests for inserting a bare identifier."""

    def test_only_identifier_flag(self):
        """Test the flag inserts just the label text."""
        doc, sink, session = make_session()
        result = session.run(direction=Direction.FORWARD, only_identifier=True, keys=["RET"])

        assert result.inserted_text == "b"
        assert doc.text == DOC.replace("X", "bX")

    def test_placeholder_without_candidate(self):
        """Test the placeholder stays when no label is found."""
        doc, sink, session = make_session(text="none", cursor=4)
        result = session.run(direction=Direction.FORWARD, only_identifier=True, keys=["RET"])

        assert result.inserted_text == " "
        assert result.anchor is None

    def test_inside_reference_argument(self):
        """Test the cursor inside \\ref{...} inserts only the identifier."""
        text = "See \\ref{} and \\label{tab:x}."
        doc, sink, session = make_session(text=text, cursor=text.index("}"))
        state = session.start(direction=Direction.FORWARD)

        assert state.insert_only_identifier
        assert state.identifier_region is None
        session.dispatch("RET")
        assert doc.text == "See \\ref{tab:x} and \\label{tab:x}."

    def test_inside_argument_disabled(self):
        """Test the in-argument check can be turned off."""
        text = "See \\ref{} and \\label{tab:x}."
        config = RefCycleConfig(only_identifier_if_in_argument=False)
        doc, sink, session = make_session(text=text, cursor=text.index("}"), config=config)
        state = session.start(direction=Direction.FORWARD)

        assert not state.insert_only_identifier
        assert state.live_region.text == "\\ref{tab:x} "

    def test_href_is_not_a_reference(self):
        """Test a cursor inside an \\href URL keeps the full reference skeleton."""
        text = "See \\href{http://x} and \\label{tab:x}."
        cursor = text.index("}")
        doc, sink, session = make_session(text=text, cursor=cursor)

        assert not session.in_reference_argument(cursor)
        state = session.start(direction=Direction.FORWARD)
        assert not state.insert_only_identifier

    def test_other_reference_commands_count(self):
        """Test \\eqref and \\cref arguments switch to identifier-only insertion."""
        for text in ("(\\eqref{eq:", "see \\cref{"):
            doc, sink, session = make_session(text=text, cursor=len(text))
            assert session.in_reference_argument(len(text))

    def test_escaped_reference_is_not_an_argument(self):
        """Test a literal backslash before ref does not count."""
        doc, sink, session = make_session(text="a \\\\ref{ b", cursor=10)

        assert not session.in_reference_argument(10)


class TestAcceptForwarding:
    """Tests for keys that end the loop."""

    def test_printable_key_is_typed(self):
        """Test a printable key is inserted after accepting."""
        doc, sink, session = make_session()
        result = session.run(direction=Direction.FORWARD, keys=["s"])

        assert result.forwarded_key == "s"
        assert doc.text == DOC.replace("X", "\\ref{b} sX")
        assert doc.cursor == ORIGIN + len("\\ref{b} s")

    def test_named_space_is_typed(self):
        """Test SPC types a space."""
        assert printable_key("SPC") == " "
        assert printable_key("RET") is None
        assert printable_key(None) is None

    def test_exhausted_input_accepts(self):
        """Test running out of scripted keys accepts the current text."""
        doc, sink, session = make_session()
        result = session.run(direction=Direction.FORWARD, keys=[])

        assert result.outcome is Outcome.ACCEPTED
        assert result.inserted_text == "\\ref{b} "


class TestStatusAndHighlights:
    """Tests for status text and overlays."""

    def test_target_highlight_covers_label_argument(self):
        """Test the target highlight points at the label in the real document."""
        doc, sink, session = make_session()
        session.start(direction=Direction.FORWARD)

        targets = [h for h in sink.highlights.values() if h.style == "refcycle-target"]
        assert len(targets) == 1
        assert doc.text[targets[0].start : targets[0].end] == "{b}"
        assert "refcycle-at-point" in sink.styles()

    def test_highlights_cleared_on_exit(self):
        """Test every highlight is removed once the session ends."""
        doc, sink, session = make_session()
        session.run(direction=Direction.FORWARD, keys=["C-s", "RET"])

        assert sink.highlights == {}

    def test_context_carried_into_no_candidate_status(self):
        """Test the last context is shown again when no label is found."""
        doc, sink, session = make_session()
        session.start(direction=Direction.FORWARD)
        session.dispatch("C-s")
        state = session.dispatch("C-s")

        assert state.context.endswith("\\label{c}")
        assert sink.last_message.endswith("\\label{c}")

    def test_context_disabled(self):
        """Test no context is shown when show_context is off."""
        config = RefCycleConfig(show_context=False)
        doc, sink, session = make_session(config=config)
        session.start(direction=Direction.FORWARD)

        assert "\n" not in sink.last_message

    def test_percent_in_context_displays_once(self):
        """Test a percent sign in context is rendered as a single percent."""
        text = "50\\% done\n\\label{p}\n"
        doc, sink, session = make_session(text=text, cursor=0)
        session.start(direction=Direction.FORWARD)

        assert "50\\% done" in sink.last_message
        assert "%%" not in sink.last_message


    def test_target_highlight_for_label_ending_at_cursor(self):
        """Test a label right before the cursor is highlighted as its argument only."""
        text = "\\section{A}\\label{sec:a}"
        doc, sink, session = make_session(text=text, cursor=len(text))
        session.start(direction=Direction.BACKWARD)

        targets = [h for h in sink.highlights.values() if h.style == "refcycle-target"]
        assert len(targets) == 1
        assert doc.text[targets[0].start : targets[0].end] == "{sec:a}"

    def test_target_highlight_for_label_starting_at_cursor(self):
        """Test a label right after the cursor is highlighted past the insertion."""
        text = "X\\label{b}"
        doc, sink, session = make_session(text=text, cursor=1)
        session.start(direction=Direction.FORWARD)

        targets = [h for h in sink.highlights.values() if h.style == "refcycle-target"]
        assert doc.text[targets[0].start : targets[0].end] == "{b}"


class TestLifecycle:
    """Tests for resource cleanup and phase checks."""

    def test_identifier_region_released_on_end(self):
        """Test the identifier region stops following edits once the session ends."""
        doc, sink, session = make_session()
        session.run(direction=Direction.FORWARD, keys=["RET"])
        region = session.state.identifier_region
        before = (region.start, region.end)
        doc.insert(0, "prefix ")

        assert (region.start, region.end) == before

    def test_identifier_region_released_on_navigate(self):
        """Test the identifier region is released when jumping to a label."""
        doc, sink, session = make_session()
        session.run(direction=Direction.FORWARD, keys=["C-o"])
        region = session.state.identifier_region
        before = (region.start, region.end)
        doc.insert(0, "prefix ")

        assert (region.start, region.end) == before

    def test_scratch_clone_closed_on_accept(self):
        """Test the scratch copy is closed when the session ends."""
        doc = ClonedDocument(DOC, cursor=ORIGIN)
        ReferenceSession(doc).run(direction=Direction.FORWARD, keys=["RET"])

        assert len(doc.clones) == 1
        assert doc.clones[0].closed

    def test_error_during_scan_rolls_back(self, monkeypatch):
        """Test an unexpected scan error restores the document and propagates."""
        doc = ClonedDocument(DOC, cursor=ORIGIN)
        session = ReferenceSession(doc)
        session.start(direction=Direction.FORWARD)

        def explode(self, origin, direction):
            raise RuntimeError("scanner broke")

        monkeypatch.setattr(AnchorScanner, "find_next", explode)
        with pytest.raises(RuntimeError, match="scanner broke"):
            session.dispatch("C-s")

        assert doc.text == DOC
        assert doc.clones[0].closed
        assert session.state.phase is Phase.TERMINATED

    def test_scan_failure_is_no_candidate(self):
        """Test an unreadable label is reported as no candidate."""
        text = "X \\label{broken"
        doc, sink, session = make_session(text=text, cursor=0)
        state = session.start(direction=Direction.FORWARD)

        assert state.active
        assert state.current is None
        assert sink.last_message.startswith("No next label.")

    def test_position_history_records_origin(self):
        """Test the origin is remembered for later return."""
        doc, sink, session = make_session()
        session.run(direction=Direction.FORWARD, keys=["RET"])

        assert doc.position_history == [ORIGIN]

    def test_dispatch_after_end_raises(self):
        """Test a terminated session rejects further keys."""
        doc, sink, session = make_session()
        session.run(direction=Direction.FORWARD, keys=["RET"])

        with pytest.raises(SessionStateError, match="terminated"):
            session.dispatch("C-s")

    def test_second_start_raises(self):
        """Test a session cannot be started twice."""
        doc, sink, session = make_session()
        session.start(direction=Direction.FORWARD)

        with pytest.raises(SessionStateError, match="start"):
            session.start(direction=Direction.FORWARD)

    def test_result_before_end_raises(self):
        """Test result() needs a terminated session."""
        doc, sink, session = make_session()
        session.start(direction=Direction.FORWARD)

        with pytest.raises(SessionStateError):
            session.result()

    def test_context_manager_aborts_active_session(self):
        """Test leaving a with-block mid-loop removes the insertion."""
        doc, sink, session = make_session()
        with session:
            session.start(direction=Direction.FORWARD)

        assert doc.text == DOC
        assert sink.highlights == {}
