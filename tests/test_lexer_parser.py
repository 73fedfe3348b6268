"""Tests for tokenizing and parsing."""

from __future__ import annotations

import io

import numpy as np

from diagnostics import DiagnosticBag, SourceText
from lexer import Lexer
from parser import (
    BinaryExpression,
    ExpressionStatement,
    FunctionDeclaration,
    GlobalStatement,
    NameExpression,
    SyntaxTree,
)


def _tokenize(text: str):
    source = SourceText(text)
    bag = DiagnosticBag(source)
    return Lexer(source, bag).tokenize(), list(bag)


class TestLexer:
    def test_declaration_tokens(self) -> None:
        tokens, diagnostics = _tokenize("var x = 1")
        assert [t.type for t in tokens] == [
            "VAR", "WHITESPACE", "IDENT", "WHITESPACE", "EQUALS", "WHITESPACE", "NUMBER", "EOF",
        ]
        assert tokens[-2].value == np.int32(1)
        assert diagnostics == []

    def test_double_symbols_win_over_single(self) -> None:
        tokens, _ = _tokenize("a<=b&&c!=d")
        assert [t.type for t in tokens if t.type != "EOF"] == [
            "IDENT", "LESS_EQUALS", "IDENT", "AMPERSAND_AMPERSAND", "IDENT", "BANG_EQUALS", "IDENT",
        ]

    def test_string_escape(self) -> None:
        tokens, diagnostics = _tokenize('"a""b"')
        assert tokens[0].type == "STRING"
        assert tokens[0].text == '"a""b"'
        assert tokens[0].value == 'a"b'
        assert diagnostics == []

    def test_unterminated_string_is_reported_and_kept(self) -> None:
        tokens, diagnostics = _tokenize('"abc')
        assert tokens[0].text == '"abc'
        assert [d.message for d in diagnostics] == ["Unterminated string literal."]

    def test_number_out_of_range(self) -> None:
        tokens, diagnostics = _tokenize("99999999999")
        assert tokens[0].value == 0
        assert diagnostics[0].message == "The number 99999999999 isn't a valid int."

    def test_bad_character(self) -> None:
        tokens, diagnostics = _tokenize("$")
        assert tokens[0].type == "BAD"
        assert diagnostics[0].message == "Bad character input: '$'."
        assert diagnostics[0].location.start_character == 0

    def test_parse_tokens_covers_text(self) -> None:
        text = 'let s = "x" + $ 12'
        tokens = SyntaxTree.parse_tokens(text)
        assert "".join(t.text for t in tokens) == text
        assert tokens[-1].type != "EOF"


class TestParser:
    def test_precedence(self) -> None:
        tree = SyntaxTree.parse("1 + 2 * 3")
        statement = tree.root.members[0].statement
        assert isinstance(statement, ExpressionStatement)
        expression = statement.expression
        assert isinstance(expression, BinaryExpression)
        assert expression.operator.type == "PLUS"
        assert isinstance(expression.right, BinaryExpression)
        assert expression.right.operator.type == "STAR"

    def test_missing_operand_is_synthesized(self) -> None:
        tree = SyntaxTree.parse("1 +")
        member = tree.root.members[-1]
        assert member.get_last_token().is_missing
        assert isinstance(member.statement.expression.right, NameExpression)
        assert [d.message for d in tree.diagnostics] == ["Unexpected token <EOF>, expected <IDENT>."]

    def test_function_declaration(self) -> None:
        tree = SyntaxTree.parse("function add(a: int, b: int): int { return a + b }")
        member = tree.root.members[0]
        assert isinstance(member, FunctionDeclaration)
        assert [p.identifier.text for p in member.parameters] == ["a", "b"]
        assert len(member.parameters.separators()) == 1
        assert member.type_clause.identifier.text == "int"
        assert list(tree.diagnostics) == []

    def test_return_value_must_be_on_same_line(self) -> None:
        tree = SyntaxTree.parse("function f() {\nreturn\n}")
        body = tree.root.members[0].body
        assert body.statements[0].expression is None

    def test_unexpected_token_does_not_hang(self) -> None:
        tree = SyntaxTree.parse(")")
        assert all(isinstance(m, GlobalStatement) for m in tree.root.members)
        assert len(tree.diagnostics) >= 1

    def test_write_to(self) -> None:
        out = io.StringIO()
        SyntaxTree.parse("1").root.write_to(out)
        text = out.getvalue()
        assert text.startswith("└──CompilationUnit")
        assert "NUMBER 1" in text
        assert "EOF" in text

    def test_locations_are_line_based(self) -> None:
        tree = SyntaxTree.parse("var a = 1\nvar b = ")
        location = tree.diagnostics.items[0].location
        assert location.start_line == 1
        assert location.start_character == 8
