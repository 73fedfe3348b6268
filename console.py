"""Terminal styling for the msi shell."""

from __future__ import annotations
import os
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, TextIO, Tuple

from diagnostics import Diagnostic
from interpreter import format_value
from lexer import KEYWORD_TYPES, Token
from parser import SyntaxTree

RESET = "\033[0m"
CLEAR_SCREEN = "\x1b[2J\x1b[H"

STYLES = {
    "keyword": "\x1b[34m",  # blue
    "identifier": "\x1b[33m",  # dark yellow
    "number": "\x1b[96m",  # cyan
    "string": "\x1b[95m",  # magenta
    "default": "\x1b[90m",  # dark gray
    "error": "\x1b[91m",  # red
    "result": "\x1b[97m",  # white
    "info": "\x1b[90m",
    "prompt": "\x1b[38;2;153;221;255m",  # light blue
}


def supports_color(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


@contextmanager
def styled(out: TextIO, style: str, enabled: bool = True) -> Iterator[None]:
    """Write inside ``style``; the default style is restored on every exit path."""
    if not enabled:
        yield
        return
    out.write(STYLES[style])
    try:
        yield
    finally:
        out.write(RESET)


def classify_token(token: Token) -> str:
    if token.type in KEYWORD_TYPES:
        return "keyword"
    if token.type == "IDENT":
        return "identifier"
    if token.type == "NUMBER":
        return "number"
    if token.type == "STRING":
        return "string"
    return "default"


def classify_tokens(line: str) -> Iterator[Tuple[str, str]]:
    for token in SyntaxTree.parse_tokens(line):
        yield classify_token(token), token.text


def render_line(line: str, out: TextIO, *, color: bool = True) -> Iterator[Tuple[str, str]]:
    """Write ``line`` token by token and yield each (style, text) pair written.

    The texts always join back to ``line``, malformed input included.
    """
    for style, text in classify_tokens(line):
        with styled(out, style, color):
            out.write(text)
        yield style, text


def write_message(out: TextIO, text: str, style: str, *, color: bool = True) -> None:
    with styled(out, style, color):
        out.write(text)
    out.write("\n")


def write_error(out: TextIO, message: str, *, color: bool = True) -> None:
    write_message(out, f"error: {message}", "error", color=color)


def write_value(out: TextIO, value: Any, *, color: bool = True) -> None:
    write_message(out, format_value(value), "result", color=color)


def _diagnostic_order(diagnostic: Diagnostic) -> Tuple[int, str, int, int]:
    location = diagnostic.location
    if location is None:
        return (1, "", 0, 0)
    return (0, location.filename, location.span.start, location.span.length)


def write_diagnostics(out: TextIO, diagnostics: Iterable[Diagnostic], *, color: bool = True) -> None:
    """Write every diagnostic followed by its source line, the span highlighted."""
    for diagnostic in sorted(diagnostics, key=_diagnostic_order):
        location = diagnostic.location
        if location is None:
            write_message(out, diagnostic.message, "error", color=color)
            continue

        out.write("\n")
        header = (
            f"{location.filename}({location.start_line + 1},{location.start_character + 1},"
            f"{location.end_line + 1},{location.end_character + 1}): {diagnostic.message}"
        )
        write_message(out, header, "error", color=color)

        line = location.text.line_text(location.start_line)
        start = location.start_character
        end = min(start + location.span.length, len(line))

        out.write("    ")
        out.write(line[:start])
        with styled(out, "error", color):
            out.write(line[start:end])
        out.write(line[end:])
        out.write("\n")
