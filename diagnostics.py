from __future__ import annotations
import bisect
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class TextSpan:
    start: int
    length: int

    @property
    def end(self) -> int:
        return self.start + self.length

    @classmethod
    def from_bounds(cls, start: int, end: int) -> "TextSpan":
        return cls(start, end - start)


class SourceText:
    def __init__(self, text: str, filename: str = "<submission>") -> None:
        self.text = text
        self.filename = filename
        # (start, length) per line, line breaks excluded
        self.lines: List[Tuple[int, int]] = _split_lines(text)
        self._starts = [start for start, _ in self.lines]

    def line_index(self, position: int) -> int:
        return max(bisect.bisect_right(self._starts, position) - 1, 0)

    def line_text(self, index: int) -> str:
        start, length = self.lines[index]
        return self.text[start:start + length]

    def __str__(self) -> str:
        return self.text


def _split_lines(text: str) -> List[Tuple[int, int]]:
    lines: List[Tuple[int, int]] = []
    start = 0
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\r" or ch == "\n":
            width = 2 if ch == "\r" and i + 1 < n and text[i + 1] == "\n" else 1
            lines.append((start, i - start))
            i += width
            start = i
            continue
        i += 1
    lines.append((start, n - start))
    return lines


@dataclass(frozen=True)
class TextLocation:
    text: SourceText
    span: TextSpan

    @property
    def filename(self) -> str:
        return self.text.filename

    @property
    def start_line(self) -> int:
        return self.text.line_index(self.span.start)

    @property
    def end_line(self) -> int:
        return self.text.line_index(self.span.end)

    @property
    def start_character(self) -> int:
        return self.span.start - self.text.lines[self.start_line][0]

    @property
    def end_character(self) -> int:
        return self.span.end - self.text.lines[self.end_line][0]


@dataclass(frozen=True)
class Diagnostic:
    location: Optional[TextLocation]
    message: str

    def __str__(self) -> str:
        return self.message


class DiagnosticBag:
    """Collects diagnostics reported against one source text."""

    def __init__(self, text: Optional[SourceText] = None) -> None:
        self.text = text
        self.items: List[Diagnostic] = []

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        self.items.extend(diagnostics)

    def report(self, span: Optional[TextSpan], message: str) -> None:
        location = TextLocation(self.text, span) if (self.text is not None and span is not None) else None
        self.items.append(Diagnostic(location, message))

    # Lexer
    def report_bad_character(self, position: int, character: str) -> None:
        self.report(TextSpan(position, 1), f"Bad character input: '{character}'.")

    def report_unterminated_string(self, span: TextSpan) -> None:
        self.report(span, "Unterminated string literal.")

    def report_invalid_number(self, span: TextSpan, text: str, type_name: str) -> None:
        self.report(span, f"The number {text} isn't a valid {type_name}.")

    # Parser
    def report_unexpected_token(self, span: TextSpan, actual: str, expected: str) -> None:
        self.report(span, f"Unexpected token <{actual}>, expected <{expected}>.")

    def report_nesting_too_deep(self, span: TextSpan) -> None:
        self.report(span, "Submission is nested too deeply.")

    # Binder
    def report_undefined_variable(self, span: TextSpan, name: str) -> None:
        self.report(span, f"Variable '{name}' doesn't exist.")

    def report_not_a_variable(self, span: TextSpan, name: str) -> None:
        self.report(span, f"'{name}' is not a variable.")

    def report_undefined_function(self, span: TextSpan, name: str) -> None:
        self.report(span, f"Function '{name}' doesn't exist.")

    def report_not_a_function(self, span: TextSpan, name: str) -> None:
        self.report(span, f"'{name}' is not a function.")

    def report_undefined_type(self, span: TextSpan, name: str) -> None:
        self.report(span, f"Type '{name}' doesn't exist.")

    def report_symbol_already_declared(self, span: TextSpan, name: str) -> None:
        self.report(span, f"'{name}' is already declared.")

    def report_parameter_already_declared(self, span: TextSpan, name: str) -> None:
        self.report(span, f"A parameter with the name '{name}' already exists.")

    def report_cannot_assign(self, span: TextSpan, name: str) -> None:
        self.report(span, f"Variable '{name}' is read-only and cannot be assigned to.")

    def report_cannot_convert(self, span: TextSpan, from_type: str, to_type: str, *, explicit_exists: bool = False) -> None:
        message = f"Cannot convert type '{from_type}' to '{to_type}'."
        if explicit_exists:
            message += " An explicit conversion exists (are you missing a cast?)"
        self.report(span, message)

    def report_undefined_unary_operator(self, span: TextSpan, operator: str, operand_type: str) -> None:
        self.report(span, f"Unary operator '{operator}' is not defined for type '{operand_type}'.")

    def report_undefined_binary_operator(self, span: TextSpan, operator: str, left_type: str, right_type: str) -> None:
        self.report(span, f"Binary operator '{operator}' is not defined for types '{left_type}' and '{right_type}'.")

    def report_wrong_argument_count(self, span: TextSpan, name: str, expected: int, actual: int) -> None:
        self.report(span, f"Function '{name}' requires {expected} arguments but was given {actual}.")

    def report_expression_must_have_value(self, span: TextSpan) -> None:
        self.report(span, "Expression must have a value.")

    def report_invalid_break_or_continue(self, span: TextSpan, text: str) -> None:
        self.report(span, f"The keyword '{text}' can only be used inside of loops.")

    def report_invalid_return(self, span: TextSpan) -> None:
        self.report(span, "The 'return' keyword can only be used inside of functions.")

    def report_invalid_return_expression(self, span: TextSpan, function_name: str) -> None:
        self.report(span, f"Since the function '{function_name}' does not return a value the 'return' keyword cannot be followed by an expression.")

    def report_missing_return_expression(self, span: TextSpan, return_type: str) -> None:
        self.report(span, f"An expression of type '{return_type}' expected.")

    def report_all_paths_must_return(self, span: TextSpan) -> None:
        self.report(span, "Not all code paths return a value.")
