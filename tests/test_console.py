"""Tests for line rendering and diagnostic output."""

from __future__ import annotations

import io

import pytest

from compilation import Compilation
from console import (
    RESET,
    STYLES,
    classify_tokens,
    render_line,
    styled,
    supports_color,
    write_diagnostics,
    write_error,
)
from parser import SyntaxTree


class TestRenderLine:
    @pytest.mark.parametrize(
        "line",
        [
            "var x = 1",
            'let greeting = "hello" + name',
            '"abc',
            "1 +",
            "$ @ 12abc ))",
            "",
            'while i <= 10 { print(string(i)) }',
        ],
    )
    def test_texts_join_back_to_line(self, line: str) -> None:
        out = io.StringIO()
        pairs = list(render_line(line, out, color=False))
        assert "".join(text for _, text in pairs) == line
        assert out.getvalue() == line

    def test_styles(self) -> None:
        pairs = [pair for pair in classify_tokens('var x = 12 + "s"') if pair[1].strip()]
        assert pairs == [
            ("keyword", "var"),
            ("identifier", "x"),
            ("default", "="),
            ("number", "12"),
            ("default", "+"),
            ("string", '"s"'),
        ]

    def test_malformed_tokens_use_default_style(self) -> None:
        assert list(classify_tokens("$")) == [("default", "$")]

    def test_color_is_reset_after_every_token(self) -> None:
        out = io.StringIO()
        list(render_line("if x", out, color=True))
        assert out.getvalue() == (
            STYLES["keyword"] + "if" + RESET
            + STYLES["default"] + " " + RESET
            + STYLES["identifier"] + "x" + RESET
        )

    def test_rendering_is_lazy(self) -> None:
        out = io.StringIO()
        pairs = render_line("var x", out, color=False)
        assert out.getvalue() == ""
        next(pairs)
        assert out.getvalue() == "var"


class TestStyled:
    def test_restores_default_on_error(self) -> None:
        out = io.StringIO()
        with pytest.raises(RuntimeError):
            with styled(out, "error"):
                out.write("boom")
                raise RuntimeError("fail")
        assert out.getvalue() == STYLES["error"] + "boom" + RESET

    def test_disabled_writes_plain_text(self) -> None:
        out = io.StringIO()
        with styled(out, "result", enabled=False):
            out.write("42")
        assert out.getvalue() == "42"

    def test_supports_color(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NO_COLOR", raising=False)
        assert supports_color(io.StringIO()) is False

        class FakeTty(io.StringIO):
            def isatty(self) -> bool:
                return True

        assert supports_color(FakeTty()) is True
        monkeypatch.setenv("NO_COLOR", "1")
        assert supports_color(FakeTty()) is False


class TestDiagnosticsOutput:
    def test_location_and_source_line(self) -> None:
        compilation = Compilation.create_script(None, SyntaxTree.parse("var x = y"))
        out = io.StringIO()
        write_diagnostics(out, compilation.diagnostics, color=False)
        text = out.getvalue()
        assert "<submission>(1,9,1,10): Variable 'y' doesn't exist." in text
        assert "    var x = y\n" in text

    def test_every_diagnostic_is_written(self) -> None:
        compilation = Compilation.create_script(None, SyntaxTree.parse("a\nb\nc"))
        out = io.StringIO()
        write_diagnostics(out, compilation.diagnostics, color=False)
        text = out.getvalue()
        for name in "abc":
            assert f"Variable '{name}' doesn't exist." in text

    def test_error_line(self) -> None:
        out = io.StringIO()
        write_error(out, "function 'f' does not exist", color=False)
        assert out.getvalue() == "error: function 'f' does not exist\n"
