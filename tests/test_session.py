"""Tests for session state and the session log."""

from __future__ import annotations

import io

from compilation import Compilation
from parser import SyntaxTree
from session import SessionLogger, SessionState


def _accept(state: SessionState, text: str) -> Compilation:
    compilation = Compilation.create_script(state.current, SyntaxTree.parse(text))
    result = compilation.evaluate(state.variables)
    assert result.diagnostics == []
    state.commit(compilation)
    return compilation


class TestSessionState:
    def test_starts_empty(self) -> None:
        state = SessionState()
        assert state.current is None
        assert state.variables == {}
        assert state.compilation().get_symbols() == []

    def test_commit_chains_handles(self) -> None:
        state = SessionState()
        first = _accept(state, "var x = 1")
        second = _accept(state, "var y = x + 1")
        assert state.current is second
        assert second.previous is first
        assert first.previous is None
        assert sorted(s.name for s in state.variables) == ["x", "y"]

    def test_commit_does_not_touch_variables(self) -> None:
        state = SessionState()
        variables = state.variables
        state.commit(Compilation.create_empty())
        assert state.variables is variables
        assert variables == {}

    def test_reset_keeps_mapping_identity(self) -> None:
        state = SessionState()
        variables = state.variables
        _accept(state, "var x = 1")
        state.reset()
        assert state.current is None
        assert state.variables is variables
        assert variables == {}

    def test_reset_is_idempotent(self) -> None:
        state = SessionState()
        _accept(state, "var x = 1")
        state.reset()
        state.reset()
        assert state.current is None
        assert state.variables == {}


class TestSessionLogger:
    def test_state_ids_chain(self) -> None:
        logger = SessionLogger(False)
        first = logger.record("SUBMIT", "1 + 1")
        second = logger.record("COMMIT")
        assert first.state_id == "s_000000"
        assert first.previous_state_id == "seed"
        assert second.previous_state_id == "s_000000"
        assert second.state_id == "s_000001"
        assert [entry.event for entry in logger.entries] == ["SUBMIT", "COMMIT"]

    def test_verbose_echo(self) -> None:
        stream = io.StringIO()
        logger = SessionLogger(True, stream)
        logger.record("RESET")
        assert stream.getvalue() == "[seed -> s_000000] RESET\n"

    def test_quiet_by_default(self) -> None:
        stream = io.StringIO()
        SessionLogger(False, stream).record("RESET")
        assert stream.getvalue() == ""
