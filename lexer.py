from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Optional

import numpy as np

from diagnostics import DiagnosticBag, SourceText, TextSpan


class MsiError(Exception):
    """Base class for msi errors."""


@dataclass
class Token:
    type: str
    text: str
    position: int
    value: Any = None
    is_missing: bool = False

    @property
    def span(self) -> TextSpan:
        return TextSpan(self.position, len(self.text))


KEYWORDS = {
    "break": "BREAK",
    "continue": "CONTINUE",
    "do": "DO",
    "else": "ELSE",
    "false": "FALSE",
    "for": "FOR",
    "function": "FUNCTION",
    "if": "IF",
    "let": "LET",
    "return": "RETURN",
    "to": "TO",
    "true": "TRUE",
    "var": "VAR",
    "while": "WHILE",
}

KEYWORD_TYPES = frozenset(KEYWORDS.values())

SYMBOLS = {
    "+": "PLUS",
    "-": "MINUS",
    "*": "STAR",
    "/": "SLASH",
    "!": "BANG",
    "~": "TILDE",
    "^": "HAT",
    "&": "AMPERSAND",
    "|": "PIPE",
    "=": "EQUALS",
    "<": "LESS",
    ">": "GREATER",
    "(": "LPAREN",
    ")": "RPAREN",
    "{": "LBRACE",
    "}": "RBRACE",
    ":": "COLON",
    ",": "COMMA",
}

DOUBLE_SYMBOLS = {
    "&&": "AMPERSAND_AMPERSAND",
    "||": "PIPE_PIPE",
    "==": "EQUALS_EQUALS",
    "!=": "BANG_EQUALS",
    "<=": "LESS_EQUALS",
    ">=": "GREATER_EQUALS",
}

_FIXED_TEXT = {token_type: text for text, token_type in {**SYMBOLS, **DOUBLE_SYMBOLS, **KEYWORDS}.items()}

INT32 = np.iinfo(np.int32)


def token_text(token_type: str) -> Optional[str]:
    """Return the fixed spelling of an operator or keyword token type."""
    return _FIXED_TEXT.get(token_type)


class Lexer:
    def __init__(self, source: SourceText, diagnostics: Optional[DiagnosticBag] = None) -> None:
        self.source = source
        self.text = source.text
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticBag(source)
        self.index = 0

    def tokenize(self) -> List[Token]:
        """Split the whole text into tokens, trivia included.

        Every character ends up in exactly one token, so joining the token
        texts reproduces the input. Malformed input is reported to the
        diagnostic bag and still tokenized.
        """
        tokens: List[Token] = []
        tokens_append = tokens.append
        text = self.text
        n = len(text)

        while self.index < n:
            start = self.index
            ch = text[start]
            if ch.isspace():
                tokens_append(self._consume_whitespace())
                continue
            if ch == '"':
                tokens_append(self._consume_string())
                continue
            if ch in "0123456789":
                tokens_append(self._consume_number())
                continue
            if ch.isalpha() or ch == "_":
                tokens_append(self._consume_identifier())
                continue
            pair = text[start:start + 2]
            if pair in DOUBLE_SYMBOLS:
                self.index += 2
                tokens_append(Token(DOUBLE_SYMBOLS[pair], pair, start))
                continue
            if ch in SYMBOLS:
                self.index += 1
                tokens_append(Token(SYMBOLS[ch], ch, start))
                continue
            self.diagnostics.report_bad_character(start, ch)
            self.index += 1
            tokens_append(Token("BAD", ch, start))
        tokens_append(Token("EOF", "", n))
        return tokens

    def _consume_whitespace(self) -> Token:
        start = self.index
        text = self.text
        n = len(text)
        while self.index < n and text[self.index].isspace():
            self.index += 1
        return Token("WHITESPACE", text[start:self.index], start)

    def _consume_number(self) -> Token:
        start = self.index
        text = self.text
        n = len(text)
        while self.index < n and text[self.index] in "0123456789":
            self.index += 1
        literal = text[start:self.index]
        number = int(literal)
        if number > INT32.max:
            self.diagnostics.report_invalid_number(TextSpan.from_bounds(start, self.index), literal, "int")
            number = 0
        return Token("NUMBER", literal, start, np.int32(number))

    def _consume_string(self) -> Token:
        start = self.index
        text = self.text
        n = len(text)
        self.index += 1  # opening quote
        chars: List[str] = []
        while True:
            if self.index >= n or text[self.index] in "\r\n":
                self.diagnostics.report_unterminated_string(TextSpan(start, 1))
                break
            ch = text[self.index]
            if ch == '"':
                # "" inside a literal is an escaped quote
                if self.index + 1 < n and text[self.index + 1] == '"':
                    chars.append('"')
                    self.index += 2
                    continue
                self.index += 1
                break
            chars.append(ch)
            self.index += 1
        return Token("STRING", text[start:self.index], start, "".join(chars))

    def _consume_identifier(self) -> Token:
        start = self.index
        text = self.text
        n = len(text)
        while self.index < n and (text[self.index].isalnum() or text[self.index] == "_"):
            self.index += 1
        value = text[start:self.index]
        token_type = KEYWORDS.get(value, "IDENT")
        return Token(token_type, value, start)
