from __future__ import annotations
from dataclasses import dataclass, fields
from typing import Any, Iterator, List, Optional, TextIO, Union

from diagnostics import DiagnosticBag, SourceText, TextSpan
from lexer import Lexer, Token


class SeparatedList:
    """Items of a comma separated list, with the separators kept."""

    def __init__(self, nodes_and_separators: List[Union["Node", Token]]) -> None:
        self.nodes_and_separators = nodes_and_separators

    def __len__(self) -> int:
        return (len(self.nodes_and_separators) + 1) // 2

    def __getitem__(self, index: int) -> "Node":
        return self.nodes_and_separators[index * 2]  # type: ignore[return-value]

    def __iter__(self) -> Iterator["Node"]:
        for index in range(len(self)):
            yield self[index]

    def separators(self) -> List[Token]:
        return self.nodes_and_separators[1::2]  # type: ignore[return-value]


@dataclass
class Node:
    @property
    def kind(self) -> str:
        return type(self).__name__

    def children(self) -> Iterator[Union["Node", Token]]:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (Node, Token)):
                yield value
            elif isinstance(value, SeparatedList):
                yield from value.nodes_and_separators
            elif isinstance(value, list):
                yield from value

    def get_first_token(self) -> Token:
        for child in self.children():
            return child if isinstance(child, Token) else child.get_first_token()
        raise ValueError(f"{self.kind} has no tokens")

    def get_last_token(self) -> Token:
        last: Optional[Union[Node, Token]] = None
        for child in self.children():
            last = child
        if last is None:
            raise ValueError(f"{self.kind} has no tokens")
        return last if isinstance(last, Token) else last.get_last_token()

    @property
    def span(self) -> TextSpan:
        first = self.get_first_token()
        last = self.get_last_token()
        return TextSpan.from_bounds(first.position, last.span.end)

    def write_to(self, out: TextIO) -> None:
        _pretty_print(out, self, "", True)


def _pretty_print(out: TextIO, node: Union[Node, Token], indent: str, is_last: bool) -> None:
    marker = "└──" if is_last else "├──"
    out.write(indent + marker)
    if isinstance(node, Token):
        out.write(node.type)
        if node.is_missing:
            out.write(" (missing)")
        elif node.value is not None:
            out.write(f" {node.value}")
        out.write("\n")
        return
    out.write(node.kind + "\n")
    indent += "   " if is_last else "│  "
    children = list(node.children())
    for index, child in enumerate(children):
        _pretty_print(out, child, indent, index == len(children) - 1)


@dataclass
class CompilationUnit(Node):
    members: List["Member"]
    end_of_file: Token


class Member(Node):
    pass


@dataclass
class GlobalStatement(Member):
    statement: "Statement"


@dataclass
class TypeClause(Node):
    colon: Token
    identifier: Token


@dataclass
class Parameter(Node):
    identifier: Token
    type_clause: TypeClause


@dataclass
class FunctionDeclaration(Member):
    function_keyword: Token
    identifier: Token
    open_paren: Token
    parameters: SeparatedList
    close_paren: Token
    type_clause: Optional[TypeClause]
    body: "BlockStatement"


class Statement(Node):
    pass


@dataclass
class BlockStatement(Statement):
    open_brace: Token
    statements: List[Statement]
    close_brace: Token


@dataclass
class VariableDeclaration(Statement):
    keyword: Token
    identifier: Token
    type_clause: Optional[TypeClause]
    equals: Token
    initializer: "Expression"


@dataclass
class ElseClause(Node):
    else_keyword: Token
    else_statement: Statement


@dataclass
class IfStatement(Statement):
    if_keyword: Token
    condition: "Expression"
    then_statement: Statement
    else_clause: Optional[ElseClause]


@dataclass
class WhileStatement(Statement):
    while_keyword: Token
    condition: "Expression"
    body: Statement


@dataclass
class DoWhileStatement(Statement):
    do_keyword: Token
    body: Statement
    while_keyword: Token
    condition: "Expression"


@dataclass
class ForStatement(Statement):
    for_keyword: Token
    identifier: Token
    equals: Token
    lower_bound: "Expression"
    to_keyword: Token
    upper_bound: "Expression"
    body: Statement


@dataclass
class BreakStatement(Statement):
    keyword: Token


@dataclass
class ContinueStatement(Statement):
    keyword: Token


@dataclass
class ReturnStatement(Statement):
    return_keyword: Token
    expression: Optional["Expression"]


@dataclass
class ExpressionStatement(Statement):
    expression: "Expression"


class Expression(Node):
    pass


@dataclass
class AssignmentExpression(Expression):
    identifier: Token
    equals: Token
    expression: Expression


@dataclass
class UnaryExpression(Expression):
    operator: Token
    operand: Expression


@dataclass
class BinaryExpression(Expression):
    left: Expression
    operator: Token
    right: Expression


@dataclass
class ParenthesizedExpression(Expression):
    open_paren: Token
    expression: Expression
    close_paren: Token


@dataclass
class LiteralExpression(Expression):
    literal: Token
    value: Any


@dataclass
class NameExpression(Expression):
    identifier: Token


@dataclass
class CallExpression(Expression):
    identifier: Token
    open_paren: Token
    arguments: SeparatedList
    close_paren: Token


UNARY_PRECEDENCE = {
    "PLUS": 6,
    "MINUS": 6,
    "BANG": 6,
    "TILDE": 6,
}

BINARY_PRECEDENCE = {
    "STAR": 5,
    "SLASH": 5,
    "PLUS": 4,
    "MINUS": 4,
    "EQUALS_EQUALS": 3,
    "BANG_EQUALS": 3,
    "LESS": 3,
    "LESS_EQUALS": 3,
    "GREATER": 3,
    "GREATER_EQUALS": 3,
    "AMPERSAND": 2,
    "AMPERSAND_AMPERSAND": 2,
    "PIPE": 1,
    "PIPE_PIPE": 1,
    "HAT": 1,
}

TRIVIA_TYPES = frozenset({"WHITESPACE", "BAD"})


class Parser:
    def __init__(self, source: SourceText, diagnostics: DiagnosticBag) -> None:
        self.source = source
        self.diagnostics = diagnostics
        lexer = Lexer(source, diagnostics)
        self.tokens = [token for token in lexer.tokenize() if token.type not in TRIVIA_TYPES]
        self.index = 0

    def parse_compilation_unit(self) -> CompilationUnit:
        members = self._parse_members()
        end_of_file = self._consume("EOF")
        return CompilationUnit(members=members, end_of_file=end_of_file)

    def _parse_members(self) -> List[Member]:
        members: List[Member] = []
        while self._peek().type != "EOF":
            start = self._peek()
            members.append(self._parse_member())
            # No progress means the current token can't start anything; skip it.
            if self._peek() is start:
                self.index += 1
        return members

    def _parse_member(self) -> Member:
        if self._peek().type == "FUNCTION":
            return self._parse_function_declaration()
        return GlobalStatement(statement=self._parse_statement())

    def _parse_function_declaration(self) -> FunctionDeclaration:
        keyword = self._consume("FUNCTION")
        identifier = self._consume("IDENT")
        open_paren = self._consume("LPAREN")
        parameters = self._parse_separated(self._parse_parameter)
        close_paren = self._consume("RPAREN")
        type_clause = self._parse_optional_type_clause()
        body = self._parse_block_statement()
        return FunctionDeclaration(
            function_keyword=keyword,
            identifier=identifier,
            open_paren=open_paren,
            parameters=parameters,
            close_paren=close_paren,
            type_clause=type_clause,
            body=body,
        )

    def _parse_separated(self, parse_item: Any) -> SeparatedList:
        nodes_and_separators: List[Union[Node, Token]] = []
        while self._peek().type not in ("RPAREN", "EOF"):
            nodes_and_separators.append(parse_item())
            if self._peek().type != "COMMA":
                break
            nodes_and_separators.append(self._consume("COMMA"))
        return SeparatedList(nodes_and_separators)

    def _parse_parameter(self) -> Parameter:
        identifier = self._consume("IDENT")
        type_clause = self._parse_type_clause()
        return Parameter(identifier=identifier, type_clause=type_clause)

    def _parse_optional_type_clause(self) -> Optional[TypeClause]:
        if self._peek().type != "COLON":
            return None
        return self._parse_type_clause()

    def _parse_type_clause(self) -> TypeClause:
        colon = self._consume("COLON")
        identifier = self._consume("IDENT")
        return TypeClause(colon=colon, identifier=identifier)

    def _parse_statement(self) -> Statement:
        token_type = self._peek().type
        if token_type == "LBRACE":
            return self._parse_block_statement()
        if token_type in ("LET", "VAR"):
            return self._parse_variable_declaration()
        if token_type == "IF":
            return self._parse_if_statement()
        if token_type == "WHILE":
            return self._parse_while_statement()
        if token_type == "DO":
            return self._parse_do_while_statement()
        if token_type == "FOR":
            return self._parse_for_statement()
        if token_type == "BREAK":
            return BreakStatement(keyword=self._consume("BREAK"))
        if token_type == "CONTINUE":
            return ContinueStatement(keyword=self._consume("CONTINUE"))
        if token_type == "RETURN":
            return self._parse_return_statement()
        return ExpressionStatement(expression=self._parse_expression())

    def _parse_block_statement(self) -> BlockStatement:
        open_brace = self._consume("LBRACE")
        statements: List[Statement] = []
        while self._peek().type not in ("EOF", "RBRACE"):
            start = self._peek()
            statements.append(self._parse_statement())
            if self._peek() is start:
                self.index += 1
        close_brace = self._consume("RBRACE")
        return BlockStatement(open_brace=open_brace, statements=statements, close_brace=close_brace)

    def _parse_variable_declaration(self) -> VariableDeclaration:
        keyword = self._consume(self._peek().type)
        identifier = self._consume("IDENT")
        type_clause = self._parse_optional_type_clause()
        equals = self._consume("EQUALS")
        initializer = self._parse_expression()
        return VariableDeclaration(
            keyword=keyword,
            identifier=identifier,
            type_clause=type_clause,
            equals=equals,
            initializer=initializer,
        )

    def _parse_if_statement(self) -> IfStatement:
        keyword = self._consume("IF")
        condition = self._parse_expression()
        then_statement = self._parse_statement()
        else_clause: Optional[ElseClause] = None
        if self._peek().type == "ELSE":
            else_keyword = self._consume("ELSE")
            else_clause = ElseClause(else_keyword=else_keyword, else_statement=self._parse_statement())
        return IfStatement(if_keyword=keyword, condition=condition, then_statement=then_statement, else_clause=else_clause)

    def _parse_while_statement(self) -> WhileStatement:
        keyword = self._consume("WHILE")
        condition = self._parse_expression()
        body = self._parse_statement()
        return WhileStatement(while_keyword=keyword, condition=condition, body=body)

    def _parse_do_while_statement(self) -> DoWhileStatement:
        do_keyword = self._consume("DO")
        body = self._parse_statement()
        while_keyword = self._consume("WHILE")
        condition = self._parse_expression()
        return DoWhileStatement(do_keyword=do_keyword, body=body, while_keyword=while_keyword, condition=condition)

    def _parse_for_statement(self) -> ForStatement:
        keyword = self._consume("FOR")
        identifier = self._consume("IDENT")
        equals = self._consume("EQUALS")
        lower_bound = self._parse_expression()
        to_keyword = self._consume("TO")
        upper_bound = self._parse_expression()
        body = self._parse_statement()
        return ForStatement(
            for_keyword=keyword,
            identifier=identifier,
            equals=equals,
            lower_bound=lower_bound,
            to_keyword=to_keyword,
            upper_bound=upper_bound,
            body=body,
        )

    def _parse_return_statement(self) -> ReturnStatement:
        keyword = self._consume("RETURN")
        current = self._peek()
        # A return value has to start on the same line as the keyword.
        same_line = (
            current.type not in ("EOF", "RBRACE")
            and self.source.line_index(current.position) == self.source.line_index(keyword.position)
        )
        expression = self._parse_expression() if same_line else None
        return ReturnStatement(return_keyword=keyword, expression=expression)

    def _parse_expression(self) -> Expression:
        return self._parse_assignment_expression()

    def _parse_assignment_expression(self) -> Expression:
        if self._peek().type == "IDENT" and self._peek(1).type == "EQUALS":
            identifier = self._consume("IDENT")
            equals = self._consume("EQUALS")
            right = self._parse_assignment_expression()
            return AssignmentExpression(identifier=identifier, equals=equals, expression=right)
        return self._parse_binary_expression()

    def _parse_binary_expression(self, parent_precedence: int = 0) -> Expression:
        left: Expression
        unary_precedence = UNARY_PRECEDENCE.get(self._peek().type, 0)
        if unary_precedence != 0 and unary_precedence >= parent_precedence:
            operator = self._consume(self._peek().type)
            operand = self._parse_binary_expression(unary_precedence)
            left = UnaryExpression(operator=operator, operand=operand)
        else:
            left = self._parse_primary_expression()

        while True:
            precedence = BINARY_PRECEDENCE.get(self._peek().type, 0)
            if precedence == 0 or precedence <= parent_precedence:
                break
            operator = self._consume(self._peek().type)
            right = self._parse_binary_expression(precedence)
            left = BinaryExpression(left=left, operator=operator, right=right)
        return left

    def _parse_primary_expression(self) -> Expression:
        token = self._peek()
        if token.type == "LPAREN":
            open_paren = self._consume("LPAREN")
            expression = self._parse_expression()
            close_paren = self._consume("RPAREN")
            return ParenthesizedExpression(open_paren=open_paren, expression=expression, close_paren=close_paren)
        if token.type in ("TRUE", "FALSE"):
            keyword = self._consume(token.type)
            return LiteralExpression(literal=keyword, value=token.type == "TRUE")
        if token.type in ("NUMBER", "STRING"):
            literal = self._consume(token.type)
            return LiteralExpression(literal=literal, value=literal.value)
        if token.type == "IDENT" and self._peek(1).type == "LPAREN":
            return self._parse_call_expression()
        return NameExpression(identifier=self._consume("IDENT"))

    def _parse_call_expression(self) -> CallExpression:
        identifier = self._consume("IDENT")
        open_paren = self._consume("LPAREN")
        arguments = self._parse_separated(self._parse_expression)
        close_paren = self._consume("RPAREN")
        return CallExpression(identifier=identifier, open_paren=open_paren, arguments=arguments, close_paren=close_paren)

    def _consume(self, token_type: str) -> Token:
        token = self._peek()
        if token.type == token_type:
            self.index += 1
            return token
        self.diagnostics.report_unexpected_token(token.span, token.type, token_type)
        return Token(token_type, "", token.position, is_missing=True)

    def _peek(self, offset: int = 0) -> Token:
        index = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[index]


class SyntaxTree:
    def __init__(self, text: SourceText) -> None:
        self.text = text
        self.diagnostics = DiagnosticBag(text)
        self.root = Parser(text, self.diagnostics).parse_compilation_unit()

    @classmethod
    def parse(cls, text: str, filename: str = "<submission>") -> "SyntaxTree":
        return cls(SourceText(text, filename))

    @staticmethod
    def parse_tokens(text: str) -> List[Token]:
        """Tokenize text without parsing; trivia is kept and EOF dropped."""
        source = SourceText(text)
        tokens = Lexer(source, DiagnosticBag(source)).tokenize()
        return [token for token in tokens if token.type != "EOF"]
