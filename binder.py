from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TextIO

import numpy as np

from diagnostics import Diagnostic, DiagnosticBag, SourceText, TextLocation, TextSpan
from lexer import Token, token_text
from parser import (
    AssignmentExpression,
    BinaryExpression,
    BlockStatement,
    BreakStatement,
    CallExpression,
    ContinueStatement,
    DoWhileStatement,
    Expression,
    ExpressionStatement,
    ForStatement,
    FunctionDeclaration,
    GlobalStatement,
    IfStatement,
    LiteralExpression,
    NameExpression,
    ParenthesizedExpression,
    ReturnStatement,
    Statement,
    SyntaxTree,
    TypeClause,
    UnaryExpression,
    VariableDeclaration,
    WhileStatement,
    BINARY_PRECEDENCE,
)
from symbols import (
    BUILTIN_FUNCTIONS,
    NAMED_TYPES,
    TYPE_BOOL,
    TYPE_ERROR,
    TYPE_INT,
    TYPE_STRING,
    TYPE_VOID,
    FunctionSymbol,
    GlobalVariableSymbol,
    LocalVariableSymbol,
    ParameterSymbol,
    Symbol,
    TypeSymbol,
    VariableSymbol,
)


# ---- Operators ----

@dataclass(frozen=True)
class BoundUnaryOperator:
    token_type: str
    kind: str
    operand_type: TypeSymbol
    result_type: TypeSymbol


@dataclass(frozen=True)
class BoundBinaryOperator:
    token_type: str
    kind: str
    left_type: TypeSymbol
    right_type: TypeSymbol
    result_type: TypeSymbol


UNARY_OPERATORS = [
    BoundUnaryOperator("BANG", "LOGICAL_NEGATION", TYPE_BOOL, TYPE_BOOL),
    BoundUnaryOperator("PLUS", "IDENTITY", TYPE_INT, TYPE_INT),
    BoundUnaryOperator("MINUS", "NEGATION", TYPE_INT, TYPE_INT),
    BoundUnaryOperator("TILDE", "ONES_COMPLEMENT", TYPE_INT, TYPE_INT),
]


def _binary(token_type: str, kind: str, operand_type: TypeSymbol, result_type: Optional[TypeSymbol] = None) -> BoundBinaryOperator:
    return BoundBinaryOperator(token_type, kind, operand_type, operand_type, result_type or operand_type)


BINARY_OPERATORS = [
    _binary("PLUS", "ADDITION", TYPE_INT),
    _binary("MINUS", "SUBTRACTION", TYPE_INT),
    _binary("STAR", "MULTIPLICATION", TYPE_INT),
    _binary("SLASH", "DIVISION", TYPE_INT),
    _binary("AMPERSAND", "BITWISE_AND", TYPE_INT),
    _binary("PIPE", "BITWISE_OR", TYPE_INT),
    _binary("HAT", "BITWISE_XOR", TYPE_INT),
    _binary("EQUALS_EQUALS", "EQUALS", TYPE_INT, TYPE_BOOL),
    _binary("BANG_EQUALS", "NOT_EQUALS", TYPE_INT, TYPE_BOOL),
    _binary("LESS", "LESS", TYPE_INT, TYPE_BOOL),
    _binary("LESS_EQUALS", "LESS_OR_EQUALS", TYPE_INT, TYPE_BOOL),
    _binary("GREATER", "GREATER", TYPE_INT, TYPE_BOOL),
    _binary("GREATER_EQUALS", "GREATER_OR_EQUALS", TYPE_INT, TYPE_BOOL),
    _binary("AMPERSAND", "BITWISE_AND", TYPE_BOOL),
    _binary("AMPERSAND_AMPERSAND", "LOGICAL_AND", TYPE_BOOL),
    _binary("PIPE", "BITWISE_OR", TYPE_BOOL),
    _binary("PIPE_PIPE", "LOGICAL_OR", TYPE_BOOL),
    _binary("HAT", "BITWISE_XOR", TYPE_BOOL),
    _binary("EQUALS_EQUALS", "EQUALS", TYPE_BOOL),
    _binary("BANG_EQUALS", "NOT_EQUALS", TYPE_BOOL),
    _binary("PLUS", "ADDITION", TYPE_STRING),
    _binary("EQUALS_EQUALS", "EQUALS", TYPE_STRING, TYPE_BOOL),
    _binary("BANG_EQUALS", "NOT_EQUALS", TYPE_STRING, TYPE_BOOL),
]


def bind_unary_operator(token_type: str, operand_type: TypeSymbol) -> Optional[BoundUnaryOperator]:
    for operator in UNARY_OPERATORS:
        if operator.token_type == token_type and operator.operand_type is operand_type:
            return operator
    return None


def bind_binary_operator(token_type: str, left_type: TypeSymbol, right_type: TypeSymbol) -> Optional[BoundBinaryOperator]:
    for operator in BINARY_OPERATORS:
        if operator.token_type == token_type and operator.left_type is left_type and operator.right_type is right_type:
            return operator
    return None


# ---- Conversions ----

def classify_conversion(source: TypeSymbol, target: TypeSymbol) -> str:
    if source is target:
        return "IDENTITY"
    if source in (TYPE_BOOL, TYPE_INT) and target is TYPE_STRING:
        return "EXPLICIT"
    if source is TYPE_STRING and target in (TYPE_BOOL, TYPE_INT):
        return "EXPLICIT"
    return "NONE"


# ---- Bound tree ----

class BoundNode:
    @property
    def kind(self) -> str:
        return type(self).__name__


class BoundStatement(BoundNode):
    pass


class BoundExpression(BoundNode):
    pass


@dataclass
class BoundBlockStatement(BoundStatement):
    statements: List[BoundStatement]


@dataclass
class BoundVariableDeclaration(BoundStatement):
    variable: VariableSymbol
    initializer: BoundExpression


@dataclass
class BoundIfStatement(BoundStatement):
    condition: BoundExpression
    then_statement: BoundStatement
    else_statement: Optional[BoundStatement]


@dataclass
class BoundWhileStatement(BoundStatement):
    condition: BoundExpression
    body: BoundStatement


@dataclass
class BoundDoWhileStatement(BoundStatement):
    body: BoundStatement
    condition: BoundExpression


@dataclass
class BoundForStatement(BoundStatement):
    variable: VariableSymbol
    lower_bound: BoundExpression
    upper_bound: BoundExpression
    body: BoundStatement


@dataclass
class BoundBreakStatement(BoundStatement):
    pass


@dataclass
class BoundContinueStatement(BoundStatement):
    pass


@dataclass
class BoundReturnStatement(BoundStatement):
    expression: Optional[BoundExpression]


@dataclass
class BoundExpressionStatement(BoundStatement):
    expression: BoundExpression


@dataclass
class BoundErrorExpression(BoundExpression):
    @property
    def type(self) -> TypeSymbol:
        return TYPE_ERROR


@dataclass
class BoundLiteralExpression(BoundExpression):
    value: Any
    type: TypeSymbol


@dataclass
class BoundVariableExpression(BoundExpression):
    variable: VariableSymbol

    @property
    def type(self) -> TypeSymbol:
        return self.variable.type


@dataclass
class BoundAssignmentExpression(BoundExpression):
    variable: VariableSymbol
    expression: BoundExpression

    @property
    def type(self) -> TypeSymbol:
        return self.variable.type


@dataclass
class BoundUnaryExpression(BoundExpression):
    operator: BoundUnaryOperator
    operand: BoundExpression

    @property
    def type(self) -> TypeSymbol:
        return self.operator.result_type


@dataclass
class BoundBinaryExpression(BoundExpression):
    left: BoundExpression
    operator: BoundBinaryOperator
    right: BoundExpression
    location: Optional[TextLocation] = None

    @property
    def type(self) -> TypeSymbol:
        return self.operator.result_type


@dataclass
class BoundCallExpression(BoundExpression):
    function: FunctionSymbol
    arguments: List[BoundExpression]

    @property
    def type(self) -> TypeSymbol:
        return self.function.type


@dataclass
class BoundConversionExpression(BoundExpression):
    type: TypeSymbol
    expression: BoundExpression
    location: Optional[TextLocation] = None


# ---- Scopes ----

class BoundScope:
    def __init__(self, parent: Optional["BoundScope"] = None) -> None:
        self.parent = parent
        self._symbols: Dict[str, Symbol] = {}

    def try_declare(self, symbol: Symbol) -> bool:
        name = symbol.name  # type: ignore[attr-defined]
        if name in self._symbols:
            return False
        self._symbols[name] = symbol
        return True

    def lookup(self, name: str) -> Optional[Symbol]:
        scope: Optional[BoundScope] = self
        while scope is not None:
            symbol = scope._symbols.get(name)
            if symbol is not None:
                return symbol
            scope = scope.parent
        return None

    def declared_variables(self) -> List[VariableSymbol]:
        return [s for s in self._symbols.values() if isinstance(s, VariableSymbol)]

    def declared_functions(self) -> List[FunctionSymbol]:
        return [s for s in self._symbols.values() if isinstance(s, FunctionSymbol)]


@dataclass
class BoundGlobalScope:
    previous: Optional["BoundGlobalScope"]
    diagnostics: List[Diagnostic]
    functions: List[FunctionSymbol]
    variables: List[VariableSymbol]
    statements: List[BoundStatement]


@dataclass
class BoundProgram:
    previous: Optional["BoundProgram"]
    diagnostics: List[Diagnostic]
    functions: Dict[FunctionSymbol, BoundBlockStatement] = field(default_factory=dict)
    statement: BoundBlockStatement = field(default_factory=lambda: BoundBlockStatement([]))

    def lookup_body(self, function: FunctionSymbol) -> Optional[BoundBlockStatement]:
        program: Optional[BoundProgram] = self
        while program is not None:
            body = program.functions.get(function)
            if body is not None:
                return body
            program = program.previous
        return None


# ---- Binder ----

class Binder:
    def __init__(self, parent: Optional[BoundScope], function: Optional[FunctionSymbol], diagnostics: DiagnosticBag) -> None:
        self.scope = BoundScope(parent)
        self.function = function
        self.diagnostics = diagnostics
        self._loop_depth = 0
        if function is not None:
            for parameter in function.parameters:
                self.scope.try_declare(parameter)

    def _location(self, span: TextSpan) -> Optional[TextLocation]:
        if self.diagnostics.text is None:
            return None
        return TextLocation(self.diagnostics.text, span)

    # Members

    def bind_function_declaration(self, syntax: FunctionDeclaration) -> None:
        parameters: List[ParameterSymbol] = []
        seen = set()
        for parameter_syntax in syntax.parameters:
            name = parameter_syntax.identifier.text
            parameter_type = self._bind_type_clause(parameter_syntax.type_clause) or TYPE_ERROR
            if name in seen:
                self.diagnostics.report_parameter_already_declared(parameter_syntax.identifier.span, name)
                continue
            seen.add(name)
            parameters.append(ParameterSymbol(name=name, is_read_only=True, type=parameter_type, ordinal=len(parameters)))

        return_type = self._bind_type_clause(syntax.type_clause) or TYPE_VOID
        function = FunctionSymbol(syntax.identifier.text, parameters, return_type, syntax)
        if not syntax.identifier.is_missing and not self.scope.try_declare(function):
            self.diagnostics.report_symbol_already_declared(syntax.identifier.span, function.name)

    def _bind_type_clause(self, syntax: Optional[TypeClause]) -> Optional[TypeSymbol]:
        if syntax is None:
            return None
        identifier = syntax.identifier
        if identifier.is_missing:
            return TYPE_ERROR
        type_symbol = NAMED_TYPES.get(identifier.text)
        if type_symbol is None:
            self.diagnostics.report_undefined_type(identifier.span, identifier.text)
            return TYPE_ERROR
        return type_symbol

    # Statements

    def bind_statement(self, syntax: Statement) -> BoundStatement:
        if isinstance(syntax, BlockStatement):
            return self.bind_block_statement(syntax)
        if isinstance(syntax, VariableDeclaration):
            return self._bind_variable_declaration(syntax)
        if isinstance(syntax, IfStatement):
            condition = self.bind_expression(syntax.condition, TYPE_BOOL)
            then_statement = self.bind_statement(syntax.then_statement)
            else_statement = self.bind_statement(syntax.else_clause.else_statement) if syntax.else_clause else None
            return BoundIfStatement(condition, then_statement, else_statement)
        if isinstance(syntax, WhileStatement):
            condition = self.bind_expression(syntax.condition, TYPE_BOOL)
            return BoundWhileStatement(condition, self._bind_loop_body(syntax.body))
        if isinstance(syntax, DoWhileStatement):
            body = self._bind_loop_body(syntax.body)
            return BoundDoWhileStatement(body, self.bind_expression(syntax.condition, TYPE_BOOL))
        if isinstance(syntax, ForStatement):
            return self._bind_for_statement(syntax)
        if isinstance(syntax, (BreakStatement, ContinueStatement)):
            if self._loop_depth == 0:
                self.diagnostics.report_invalid_break_or_continue(syntax.keyword.span, syntax.keyword.text)
                return BoundExpressionStatement(BoundErrorExpression())
            return BoundBreakStatement() if isinstance(syntax, BreakStatement) else BoundContinueStatement()
        if isinstance(syntax, ReturnStatement):
            return self._bind_return_statement(syntax)
        if isinstance(syntax, ExpressionStatement):
            return BoundExpressionStatement(self.bind_expression(syntax.expression, can_be_void=True))
        raise ValueError(f"Unexpected syntax {syntax.kind}")

    def bind_block_statement(self, syntax: BlockStatement) -> BoundBlockStatement:
        self.scope = BoundScope(self.scope)
        try:
            statements = [self.bind_statement(statement) for statement in syntax.statements]
        finally:
            self.scope = self.scope.parent  # type: ignore[assignment]
        return BoundBlockStatement(statements)

    def _bind_variable_declaration(self, syntax: VariableDeclaration) -> BoundVariableDeclaration:
        is_read_only = syntax.keyword.type == "LET"
        declared_type = self._bind_type_clause(syntax.type_clause)
        initializer = self.bind_expression(syntax.initializer)
        variable_type = declared_type or initializer.type
        variable = self._declare_variable(syntax.identifier, is_read_only, variable_type)
        converted = self._bind_conversion(syntax.initializer.span, initializer, variable_type)
        return BoundVariableDeclaration(variable, converted)

    def _bind_for_statement(self, syntax: ForStatement) -> BoundForStatement:
        lower_bound = self.bind_expression(syntax.lower_bound, TYPE_INT)
        upper_bound = self.bind_expression(syntax.upper_bound, TYPE_INT)
        self.scope = BoundScope(self.scope)
        try:
            variable = self._declare_variable(syntax.identifier, True, TYPE_INT)
            body = self._bind_loop_body(syntax.body)
        finally:
            self.scope = self.scope.parent  # type: ignore[assignment]
        return BoundForStatement(variable, lower_bound, upper_bound, body)

    def _bind_loop_body(self, syntax: Statement) -> BoundStatement:
        self._loop_depth += 1
        try:
            return self.bind_statement(syntax)
        finally:
            self._loop_depth -= 1

    def _bind_return_statement(self, syntax: ReturnStatement) -> BoundReturnStatement:
        expression = self.bind_expression(syntax.expression) if syntax.expression is not None else None
        span = syntax.return_keyword.span
        if self.function is None:
            self.diagnostics.report_invalid_return(span)
        elif self.function.type is TYPE_VOID:
            if expression is not None:
                self.diagnostics.report_invalid_return_expression(syntax.expression.span, self.function.name)  # type: ignore[union-attr]
        elif expression is None:
            self.diagnostics.report_missing_return_expression(span, self.function.type.name)
        else:
            expression = self._bind_conversion(syntax.expression.span, expression, self.function.type)  # type: ignore[union-attr]
        return BoundReturnStatement(expression)

    def _declare_variable(self, identifier: Token, is_read_only: bool, variable_type: TypeSymbol) -> VariableSymbol:
        name = identifier.text or "?"
        if self.function is None:
            variable: VariableSymbol = GlobalVariableSymbol(name=name, is_read_only=is_read_only, type=variable_type)
        else:
            variable = LocalVariableSymbol(name=name, is_read_only=is_read_only, type=variable_type)
        if not identifier.is_missing and not self.scope.try_declare(variable):
            self.diagnostics.report_symbol_already_declared(identifier.span, name)
        return variable

    # Expressions

    def bind_expression(self, syntax: Expression, target_type: Optional[TypeSymbol] = None, *, can_be_void: bool = False) -> BoundExpression:
        result = self._bind_expression_internal(syntax)
        if not can_be_void and result.type is TYPE_VOID:  # type: ignore[attr-defined]
            self.diagnostics.report_expression_must_have_value(syntax.span)
            return BoundErrorExpression()
        if target_type is not None:
            return self._bind_conversion(syntax.span, result, target_type)
        return result

    def _bind_expression_internal(self, syntax: Expression) -> BoundExpression:
        if isinstance(syntax, ParenthesizedExpression):
            return self._bind_expression_internal(syntax.expression)
        if isinstance(syntax, LiteralExpression):
            return self._bind_literal(syntax)
        if isinstance(syntax, NameExpression):
            variable = self._lookup_variable(syntax.identifier)
            if variable is None:
                return BoundErrorExpression()
            return BoundVariableExpression(variable)
        if isinstance(syntax, AssignmentExpression):
            return self._bind_assignment(syntax)
        if isinstance(syntax, UnaryExpression):
            return self._bind_unary(syntax)
        if isinstance(syntax, BinaryExpression):
            return self._bind_binary(syntax)
        if isinstance(syntax, CallExpression):
            return self._bind_call(syntax)
        raise ValueError(f"Unexpected syntax {syntax.kind}")

    def _bind_literal(self, syntax: LiteralExpression) -> BoundExpression:
        value = syntax.value
        if isinstance(value, bool):
            return BoundLiteralExpression(value, TYPE_BOOL)
        if isinstance(value, str):
            return BoundLiteralExpression(value, TYPE_STRING)
        return BoundLiteralExpression(np.int32(0) if value is None else value, TYPE_INT)

    def _lookup_variable(self, identifier: Token) -> Optional[VariableSymbol]:
        # A missing identifier was already reported by the parser.
        if identifier.is_missing:
            return None
        symbol = self.scope.lookup(identifier.text)
        if symbol is None:
            self.diagnostics.report_undefined_variable(identifier.span, identifier.text)
            return None
        if not isinstance(symbol, VariableSymbol):
            self.diagnostics.report_not_a_variable(identifier.span, identifier.text)
            return None
        return symbol

    def _bind_assignment(self, syntax: AssignmentExpression) -> BoundExpression:
        expression = self.bind_expression(syntax.expression)
        variable = self._lookup_variable(syntax.identifier)
        if variable is None:
            return expression
        if variable.is_read_only:
            self.diagnostics.report_cannot_assign(syntax.equals.span, variable.name)
        converted = self._bind_conversion(syntax.expression.span, expression, variable.type)
        return BoundAssignmentExpression(variable, converted)

    def _bind_unary(self, syntax: UnaryExpression) -> BoundExpression:
        operand = self.bind_expression(syntax.operand)
        if operand.type is TYPE_ERROR:  # type: ignore[attr-defined]
            return BoundErrorExpression()
        operator = bind_unary_operator(syntax.operator.type, operand.type)  # type: ignore[attr-defined]
        if operator is None:
            self.diagnostics.report_undefined_unary_operator(syntax.operator.span, syntax.operator.text, operand.type.name)  # type: ignore[attr-defined]
            return BoundErrorExpression()
        return BoundUnaryExpression(operator, operand)

    def _bind_binary(self, syntax: BinaryExpression) -> BoundExpression:
        left = self.bind_expression(syntax.left)
        right = self.bind_expression(syntax.right)
        if left.type is TYPE_ERROR or right.type is TYPE_ERROR:  # type: ignore[attr-defined]
            return BoundErrorExpression()
        operator = bind_binary_operator(syntax.operator.type, left.type, right.type)  # type: ignore[attr-defined]
        if operator is None:
            self.diagnostics.report_undefined_binary_operator(
                syntax.operator.span, syntax.operator.text, left.type.name, right.type.name  # type: ignore[attr-defined]
            )
            return BoundErrorExpression()
        return BoundBinaryExpression(left, operator, right, self._location(syntax.span))

    def _bind_call(self, syntax: CallExpression) -> BoundExpression:
        name = syntax.identifier.text
        conversion_type = NAMED_TYPES.get(name)
        if conversion_type is not None and len(syntax.arguments) == 1:
            argument = syntax.arguments[0]
            expression = self.bind_expression(argument)  # type: ignore[arg-type]
            return self._bind_conversion(argument.span, expression, conversion_type, allow_explicit=True)

        arguments = [self.bind_expression(argument) for argument in syntax.arguments]  # type: ignore[arg-type]
        symbol = self.scope.lookup(name)
        if symbol is None:
            self.diagnostics.report_undefined_function(syntax.identifier.span, name)
            return BoundErrorExpression()
        if not isinstance(symbol, FunctionSymbol):
            self.diagnostics.report_not_a_function(syntax.identifier.span, name)
            return BoundErrorExpression()
        if len(arguments) != len(symbol.parameters):
            if len(arguments) > len(symbol.parameters):
                first_extra = syntax.arguments[len(symbol.parameters)]
                span = TextSpan.from_bounds(first_extra.span.start, syntax.arguments[len(arguments) - 1].span.end)
            else:
                span = syntax.close_paren.span
            self.diagnostics.report_wrong_argument_count(span, name, len(symbol.parameters), len(arguments))
            return BoundErrorExpression()

        converted = [
            self._bind_conversion(argument_syntax.span, argument, parameter.type)
            for argument_syntax, argument, parameter in zip(syntax.arguments, arguments, symbol.parameters)
        ]
        return BoundCallExpression(symbol, converted)

    def _bind_conversion(self, span: TextSpan, expression: BoundExpression, target: TypeSymbol, *, allow_explicit: bool = False) -> BoundExpression:
        source = expression.type  # type: ignore[attr-defined]
        conversion = classify_conversion(source, target)
        if conversion == "IDENTITY":
            return expression
        if conversion == "NONE" or (conversion == "EXPLICIT" and not allow_explicit):
            if source is not TYPE_ERROR and target is not TYPE_ERROR:
                self.diagnostics.report_cannot_convert(span, source.name, target.name, explicit_exists=conversion == "EXPLICIT")
            return BoundErrorExpression()
        return BoundConversionExpression(target, expression, self._location(span))


def _always_returns(statement: BoundStatement) -> bool:
    if isinstance(statement, BoundReturnStatement):
        return True
    if isinstance(statement, BoundBlockStatement):
        return any(_always_returns(s) for s in statement.statements)
    if isinstance(statement, BoundIfStatement):
        return statement.else_statement is not None and _always_returns(statement.then_statement) and _always_returns(statement.else_statement)
    if isinstance(statement, BoundDoWhileStatement):
        return _always_returns(statement.body)
    return False


def _create_root_scope() -> BoundScope:
    scope = BoundScope()
    for function in BUILTIN_FUNCTIONS:
        scope.try_declare(function)
    return scope


def _create_parent_scope(previous: Optional[BoundGlobalScope]) -> BoundScope:
    stack: List[BoundGlobalScope] = []
    while previous is not None:
        stack.append(previous)
        previous = previous.previous

    parent = _create_root_scope()
    while stack:
        global_scope = stack.pop()
        scope = BoundScope(parent)
        for function in global_scope.functions:
            scope.try_declare(function)
        for variable in global_scope.variables:
            scope.try_declare(variable)
        parent = scope
    return parent


def bind_global_scope(previous: Optional[BoundGlobalScope], syntax_tree: SyntaxTree) -> BoundGlobalScope:
    """Bind one submission on top of the scopes of all earlier ones."""
    parent = _create_parent_scope(previous)
    diagnostics = DiagnosticBag(syntax_tree.text)
    binder = Binder(parent, None, diagnostics)

    members = syntax_tree.root.members
    # Signatures first so statements can call functions declared later in the same submission.
    for member in members:
        if isinstance(member, FunctionDeclaration):
            binder.bind_function_declaration(member)
    statements = [binder.bind_statement(member.statement) for member in members if isinstance(member, GlobalStatement)]

    return BoundGlobalScope(
        previous=previous,
        diagnostics=list(diagnostics),
        functions=binder.scope.declared_functions(),
        variables=binder.scope.declared_variables(),
        statements=statements,
    )


def bind_program(global_scope: BoundGlobalScope, previous: Optional[BoundProgram], text: SourceText) -> BoundProgram:
    parent = _create_parent_scope(global_scope)
    diagnostics = DiagnosticBag(text)
    functions: Dict[FunctionSymbol, BoundBlockStatement] = {}

    for function in global_scope.functions:
        declaration = function.declaration
        if declaration is None:
            continue
        binder = Binder(parent, function, diagnostics)
        body = binder.bind_block_statement(declaration.body)
        if function.type is not TYPE_VOID and function.type is not TYPE_ERROR and not _always_returns(body):
            diagnostics.report_all_paths_must_return(declaration.identifier.span)
        functions[function] = body

    return BoundProgram(
        previous=previous,
        diagnostics=list(global_scope.diagnostics) + list(diagnostics),
        functions=functions,
        statement=BoundBlockStatement(list(global_scope.statements)),
    )


# ---- Printing ----

def _literal_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return '"' + value.replace('"', '""') + '"'
    return str(value)


class BoundTreeWriter:
    """Writes a bound tree back out as indented source."""

    def __init__(self, out: TextIO) -> None:
        self.out = out
        self.indent = 0
        self._line_start = True

    def _write(self, text: str) -> None:
        if self._line_start:
            self.out.write("    " * self.indent)
            self._line_start = False
        self.out.write(text)

    def _newline(self) -> None:
        self.out.write("\n")
        self._line_start = True

    def write(self, node: BoundNode) -> None:
        if isinstance(node, BoundStatement):
            self._write_statement(node)
        else:
            self._write_expression(node)  # type: ignore[arg-type]
            self._newline()

    def _write_nested(self, statement: BoundStatement) -> None:
        if isinstance(statement, BoundBlockStatement):
            self._write_statement(statement)
            return
        self.indent += 1
        self._write_statement(statement)
        self.indent -= 1

    def _write_statement(self, node: BoundStatement) -> None:
        if isinstance(node, BoundBlockStatement):
            self._write("{")
            self._newline()
            self.indent += 1
            for statement in node.statements:
                self._write_statement(statement)
            self.indent -= 1
            self._write("}")
            self._newline()
        elif isinstance(node, BoundVariableDeclaration):
            self._write("let " if node.variable.is_read_only else "var ")
            self._write(node.variable.name + " = ")
            self._write_expression(node.initializer)
            self._newline()
        elif isinstance(node, BoundIfStatement):
            self._write("if ")
            self._write_expression(node.condition)
            self._newline()
            self._write_nested(node.then_statement)
            if node.else_statement is not None:
                self._write("else")
                self._newline()
                self._write_nested(node.else_statement)
        elif isinstance(node, BoundWhileStatement):
            self._write("while ")
            self._write_expression(node.condition)
            self._newline()
            self._write_nested(node.body)
        elif isinstance(node, BoundDoWhileStatement):
            self._write("do")
            self._newline()
            self._write_nested(node.body)
            self._write("while ")
            self._write_expression(node.condition)
            self._newline()
        elif isinstance(node, BoundForStatement):
            self._write(f"for {node.variable.name} = ")
            self._write_expression(node.lower_bound)
            self._write(" to ")
            self._write_expression(node.upper_bound)
            self._newline()
            self._write_nested(node.body)
        elif isinstance(node, BoundBreakStatement):
            self._write("break")
            self._newline()
        elif isinstance(node, BoundContinueStatement):
            self._write("continue")
            self._newline()
        elif isinstance(node, BoundReturnStatement):
            self._write("return")
            if node.expression is not None:
                self._write(" ")
                self._write_expression(node.expression)
            self._newline()
        elif isinstance(node, BoundExpressionStatement):
            self._write_expression(node.expression)
            self._newline()
        else:
            raise ValueError(f"Unexpected node {node.kind}")

    def _write_expression(self, node: BoundExpression, parent_precedence: int = 0) -> None:
        if isinstance(node, BoundLiteralExpression):
            self._write(_literal_text(node.value))
        elif isinstance(node, BoundVariableExpression):
            self._write(node.variable.name)
        elif isinstance(node, BoundAssignmentExpression):
            self._write(node.variable.name + " = ")
            self._write_expression(node.expression)
        elif isinstance(node, BoundUnaryExpression):
            self._write(token_text(node.operator.token_type) or "?")
            self._write_expression(node.operand, 6)
        elif isinstance(node, BoundBinaryExpression):
            precedence = BINARY_PRECEDENCE[node.operator.token_type]
            needs_parens = precedence < parent_precedence
            if needs_parens:
                self._write("(")
            self._write_expression(node.left, precedence)
            self._write(f" {token_text(node.operator.token_type)} ")
            self._write_expression(node.right, precedence + 1)
            if needs_parens:
                self._write(")")
        elif isinstance(node, BoundCallExpression):
            self._write(node.function.name + "(")
            for index, argument in enumerate(node.arguments):
                if index > 0:
                    self._write(", ")
                self._write_expression(argument)
            self._write(")")
        elif isinstance(node, BoundConversionExpression):
            self._write(node.type.name + "(")
            self._write_expression(node.expression)
            self._write(")")
        elif isinstance(node, BoundErrorExpression):
            self._write("?")
        else:
            raise ValueError(f"Unexpected node {node.kind}")


def write_bound_tree(node: BoundNode, out: TextIO) -> None:
    BoundTreeWriter(out).write(node)
