"""End-to-end tests for the interactive session."""

from __future__ import annotations

import io
import os

import pytest

from repl import CONTINUATION_PROMPT, PROMPT, MsiRepl

NL = os.linesep


def _names(repl: MsiRepl) -> dict:
    return {symbol.name: value for symbol, value in repl.state.variables.items()}


class TestScenarios:
    def test_value_then_listing(self, make_repl) -> None:
        repl = make_repl(["var x = 1", "x + 1", ":ls", ":reset", ":ls"])
        assert repl.run() == 0
        assert repl.out.getvalue().splitlines() == ["1", "2", "var x: int", ""]

    def test_dump_missing_function_keeps_going(self, make_repl) -> None:
        repl = make_repl([":dump missingFn", "40 + 2"])
        assert repl.run() == 0
        lines = repl.out.getvalue().splitlines()
        assert lines[0] == "error: function 'missingFn' does not exist"
        assert "42" in lines

    def test_dump_function(self, make_repl) -> None:
        repl = make_repl(["function inc(a: int): int { return a + 1 }", ":dump inc"])
        repl.run()
        assert "function inc(a: int): int\n{\n    return a + 1\n}\n" in repl.out.getvalue()

    def test_dump_builtin_is_not_visible(self, make_repl) -> None:
        repl = make_repl([":dump print"])
        repl.run()
        assert "error: function 'print' does not exist" in repl.out.getvalue()

    def test_exit_stops_reading(self, make_repl) -> None:
        repl = make_repl([":exit", "1 + 1"])
        assert repl.run() == 0
        assert repl.input_provider.lines == ["1 + 1"]
        assert repl.out.getvalue() == ""

    def test_listing_is_sorted_by_kind_then_name(self, make_repl) -> None:
        repl = make_repl(["var b = 1", "var a = true", "function z() { }", ":ls"])
        repl.run()
        assert repl.out.getvalue().splitlines()[-4:-1] == [
            "function z()",
            "var a: bool",
            "var b: int",
        ]


class TestReadLoop:
    def test_multi_line_submission(self, make_repl) -> None:
        repl = make_repl(["{", "var z = 3", "z * 2", "}"])
        repl.run()
        assert repl.out.getvalue().splitlines() == ["6", ""]
        assert repl.input_provider.prompts == [PROMPT] + [CONTINUATION_PROMPT] * 3 + [PROMPT]

    def test_two_blank_lines_force_submission(self, make_repl) -> None:
        repl = make_repl(["1 +", "", ""])
        repl.run()
        output = repl.out.getvalue()
        assert "Unexpected token <EOF>, expected <IDENT>." in output
        assert repl.store.list_ordered() == []

    def test_command_is_one_line(self, make_repl) -> None:
        repl = make_repl([":showTree"])
        repl.run()
        assert repl.input_provider.prompts == [PROMPT, PROMPT]
        assert repl.show_tree is True

    def test_colon_inside_pending_buffer_is_source(self, make_repl) -> None:
        repl = make_repl(["function f()", ": int { return 1 }", "f()"])
        repl.run()
        assert repl.out.getvalue().splitlines() == ["1", ""]

    def test_blank_line_is_noop(self, make_repl) -> None:
        repl = make_repl(["", "   "])
        repl.run()
        assert repl.store.list_ordered() == []
        assert repl.state.current is None

    def test_interrupt_discards_pending_buffer(self, make_repl) -> None:
        repl = make_repl()
        lines = iter(["{", None, "7"])

        def provider(prompt: str = "") -> str:
            line = next(lines, "")
            if line is None:
                raise KeyboardInterrupt
            if line == "":
                raise EOFError
            return line

        repl.input_provider = provider
        assert repl.run() == 0
        assert repl.out.getvalue().splitlines() == ["", "7", ""]

    def test_unknown_command_and_usage(self, make_repl) -> None:
        repl = make_repl([":frobnicate", ":load", ":ls now"])
        repl.run()
        lines = repl.out.getvalue().splitlines()
        assert lines[:3] == [
            "error: Unknown command 'frobnicate'.",
            "error: Usage: :load <path>",
            "error: Usage: :ls",
        ]

    def test_program_output_and_input(self, make_repl) -> None:
        repl = make_repl(['print("Name?")', "var name = input()", "Ada", 'print("Hi " + name)'])
        repl.run()
        assert repl.out.getvalue().splitlines() == ["Name?", "Ada", "Hi Ada", ""]

    def test_cls_without_color_writes_nothing(self, make_repl) -> None:
        repl = make_repl([":cls"])
        repl.run()
        assert repl.out.getvalue() == "\n"

    def test_prompts_color_only_the_marker(self, store) -> None:
        prompts = []

        def provider(prompt: str = "") -> str:
            prompts.append(prompt)
            return ":exit"

        repl = MsiRepl(store=store, out=io.StringIO(), err=io.StringIO(), input_provider=provider, color=True)
        assert repl.run() == 0
        assert prompts == ["\x1b[38;2;153;221;255m>>>\033[0m "]
        assert PROMPT == ">>> "
        assert CONTINUATION_PROMPT == "..> "


class TestToggles:
    def test_show_tree(self, make_repl) -> None:
        repl = make_repl([":showTree", "1", ":showTree", "2"])
        repl.run()
        output = repl.out.getvalue()
        assert "Showing parse trees." in output
        assert "Not showing parse trees." in output
        assert output.count("CompilationUnit") == 1

    def test_show_program(self, make_repl) -> None:
        repl = make_repl([":showProgram", "var a = 1 + 2", ":showProgram"])
        repl.run()
        assert repl.out.getvalue().splitlines() == [
            "Showing bound tree.",
            "{",
            "    var a = 1 + 2",
            "}",
            "3",
            "Not showing bound tree.",
            "",
        ]


class TestOrchestration:
    def test_success_commits_and_persists(self, make_repl) -> None:
        repl = make_repl()
        assert repl.evaluate_submission("var a = 1") is True
        first = repl.state.current
        assert repl.evaluate_submission("a = a + 1") is True
        assert repl.state.current.previous is first
        assert repl.store.list_ordered() == ["var a = 1", "a = a + 1"]
        assert _names(repl) == {"a": 2}

    def test_failure_is_all_or_nothing(self, make_repl) -> None:
        repl = make_repl()
        repl.evaluate_submission("var a = 1")
        handle = repl.state.current
        before = dict(repl.state.variables)

        assert repl.evaluate_submission("a = 2" + NL + "1 / 0") is False
        assert repl.evaluate_submission("var b = 1 + true") is False

        assert repl.state.current is handle
        assert repl.state.variables == before
        assert repl.store.list_ordered() == ["var a = 1"]
        assert "Division by zero." in repl.out.getvalue()

    def test_reset_is_idempotent(self, make_repl) -> None:
        repl = make_repl([":reset", ":reset"])
        repl.evaluate_submission("var a = 1")
        variables = repl.state.variables
        repl.run()
        assert repl.state.current is None
        assert repl.state.variables is variables
        assert variables == {}
        assert repl.store.list_ordered() == []
        assert not os.path.exists(repl.store.directory)

    def test_reset_restarts_numbering(self, make_repl) -> None:
        repl = make_repl()
        repl.evaluate_submission("1")
        repl.evaluate_submission("2")
        repl.evaluate_meta_command(":reset")
        repl.evaluate_submission("3")
        assert os.listdir(repl.store.directory) == ["submission0000"]

    def test_session_log(self, make_repl) -> None:
        repl = make_repl(["1", "x", ":reset"])
        repl.run()
        assert [entry.event for entry in repl.logger.entries] == [
            "SUBMIT", "COMMIT", "SUBMIT", "DIAGNOSED", "COMMAND", "RESET",
        ]


class TestDeepNesting:
    @pytest.mark.parametrize("text", [
        "+".join(["1"] * 5000),
        "(" * 3000 + "1" + ")" * 3000,
    ])
    def test_reported_without_touching_state(self, make_repl, text: str) -> None:
        repl = make_repl()
        repl.evaluate_submission("var a = 1")
        handle = repl.state.current
        before = dict(repl.state.variables)

        assert repl.evaluate_submission(text) is False

        assert "Submission is nested too deeply." in repl.out.getvalue()
        assert repl.state.current is handle
        assert repl.state.variables == before
        assert repl.store.list_ordered() == ["var a = 1"]

    def test_read_loop_keeps_going(self, make_repl) -> None:
        repl = make_repl(["(" * 3000 + "1" + ")" * 3000, "40 + 2"])
        assert repl.run() == 0
        assert repl.out.getvalue().splitlines()[-2] == "42"


class TestLoad:
    def test_load_evaluates_and_persists(self, make_repl, tmp_path) -> None:
        script = tmp_path / "script.ms"
        script.write_text("var y = 41" + NL + "y + 1", encoding="utf-8")
        repl = make_repl([f':load "{script}"'])
        repl.run()
        assert "42" in repl.out.getvalue().splitlines()
        assert len(repl.store.list_ordered()) == 1

    def test_load_relative_path(self, make_repl, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "rel.ms").write_text("var r = 5", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        repl = make_repl([":load rel.ms"])
        repl.run()
        assert _names(repl) == {"r": 5}

    def test_load_undecodable_file(self, make_repl, tmp_path) -> None:
        script = tmp_path / "bad.ms"
        script.write_bytes(b"var x = \xff\xfe 1")
        repl = make_repl([f":load {script}", "1"])
        assert repl.run() == 0
        lines = repl.out.getvalue().splitlines()
        assert lines[0].startswith(f"error: cannot read '{os.path.abspath(str(script))}': ")
        assert "1" in lines[1:]
        assert repl.state.variables == {}
        assert repl.store.list_ordered() == ["1"]

    def test_load_missing_file(self, make_repl, tmp_path) -> None:
        missing = tmp_path / "missing.ms"
        repl = make_repl([f":load {missing}"])
        repl.run()
        assert f"error: file does not exist '{os.path.abspath(str(missing))}'" in repl.out.getvalue()
        assert repl.state.current is None
        assert repl.store.list_ordered() == []


class TestReplay:
    def test_round_trip(self, make_repl) -> None:
        first = make_repl(["var a = 2", "var b = a * 21", "function sq(n: int): int { return n * n }", "a = sq(b)"])
        first.run()
        expected = _names(first)

        second = make_repl(replay=True)
        assert second.out.getvalue().splitlines()[0] == "Loaded 4 submission(s)"
        assert _names(second) == expected == {"a": 1764, "b": 42}
        assert len(second.store.list_ordered()) == 4
        assert second.store.replaying is False

    def test_failed_record_is_consumed(self, make_repl, store) -> None:
        store.append("var a = 1")
        store.append("undefined_name")
        store.append("var c = a + 1")
        repl = make_repl(replay=True)
        output = repl.out.getvalue()
        assert "Loaded 3 submission(s)" in output
        assert "Variable 'undefined_name' doesn't exist." in output
        assert _names(repl) == {"a": 1, "c": 2}
        assert len(store.list_ordered()) == 3

    def test_nothing_to_replay(self, make_repl) -> None:
        repl = make_repl(replay=True)
        assert repl.out.getvalue() == ""
        assert repl.load_submissions() == 0
