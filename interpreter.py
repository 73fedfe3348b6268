from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from binder import (
    BoundAssignmentExpression,
    BoundBinaryExpression,
    BoundBlockStatement,
    BoundBreakStatement,
    BoundCallExpression,
    BoundContinueStatement,
    BoundConversionExpression,
    BoundDoWhileStatement,
    BoundErrorExpression,
    BoundExpression,
    BoundExpressionStatement,
    BoundForStatement,
    BoundIfStatement,
    BoundLiteralExpression,
    BoundProgram,
    BoundReturnStatement,
    BoundStatement,
    BoundUnaryExpression,
    BoundVariableDeclaration,
    BoundVariableExpression,
    BoundWhileStatement,
)
from diagnostics import TextLocation
from lexer import INT32, MsiError
from symbols import (
    BUILTIN_INPUT,
    BUILTIN_PRINT,
    BUILTIN_RND,
    TYPE_BOOL,
    TYPE_INT,
    TYPE_STRING,
    FunctionSymbol,
    GlobalVariableSymbol,
    VariableSymbol,
)


class MsiRuntimeError(MsiError):
    """Raised for faults while evaluating a bound program."""

    def __init__(self, message: str, *, location: Optional[TextLocation] = None) -> None:
        super().__init__(message)
        self.message = message
        self.location = location


class ReturnSignal(Exception):
    def __init__(self, value: Any) -> None:
        super().__init__(value)
        self.value = value


class BreakSignal(Exception):
    pass


class ContinueSignal(Exception):
    pass


_INT32_SPAN = 1 << 32


def wrap_int32(value: int) -> np.int32:
    """Reduce an arbitrary Python int to a two's complement int32."""
    return np.int32(((int(value) - int(INT32.min)) % _INT32_SPAN) + int(INT32.min))


def _truncating_divide(left: int, right: int) -> int:
    quotient = abs(left) // abs(right)
    return quotient if (left < 0) == (right < 0) else -quotient


def format_value(value: Any) -> str:
    """Render a runtime value the way string() converts it."""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, np.integer):
        return str(int(value))
    return str(value)


BuiltinImpl = Callable[["Evaluator", List[Any]], Any]


@dataclass
class BuiltinFunction:
    symbol: FunctionSymbol
    impl: BuiltinImpl

    def validate(self, supplied: int) -> None:
        expected = len(self.symbol.parameters)
        if supplied != expected:
            raise MsiRuntimeError(f"{self.symbol.name} expects {expected} arguments")


class Builtins:
    def __init__(self) -> None:
        self.table: Dict[FunctionSymbol, BuiltinFunction] = {}
        self._register_custom(BUILTIN_PRINT, self._print)
        self._register_custom(BUILTIN_INPUT, self._input)
        self._register_custom(BUILTIN_RND, self._rnd)

    def _register_custom(self, symbol: FunctionSymbol, impl: BuiltinImpl) -> None:
        self.table[symbol] = BuiltinFunction(symbol, impl)

    def get(self, symbol: FunctionSymbol) -> Optional[BuiltinFunction]:
        return self.table.get(symbol)

    def invoke(self, evaluator: "Evaluator", symbol: FunctionSymbol, args: List[Any]) -> Any:
        builtin = self.table[symbol]
        builtin.validate(len(args))
        return builtin.impl(evaluator, args)

    def _print(self, evaluator: "Evaluator", args: List[Any]) -> None:
        evaluator.output_sink(args[0])
        return None

    def _input(self, evaluator: "Evaluator", args: List[Any]) -> str:
        return evaluator.input_provider()

    def _rnd(self, evaluator: "Evaluator", args: List[Any]) -> np.int32:
        upper = int(args[0])
        if upper < 0:
            raise MsiRuntimeError("rnd expects a non-negative maximum")
        if upper == 0:
            return np.int32(0)
        return np.int32(evaluator.rng.integers(0, upper))


_DEFAULT_BUILTINS = Builtins()


class Evaluator:
    """Executes a bound program against a table of global values.

    Globals are read from and written to ``variables`` in place; callers that
    need all-or-nothing semantics pass a copy.
    """

    def __init__(
        self,
        program: BoundProgram,
        variables: Dict[VariableSymbol, Any],
        *,
        input_provider: Optional[Callable[[], str]] = None,
        output_sink: Optional[Callable[[str], None]] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.program = program
        self.globals = variables
        self.locals: List[Dict[VariableSymbol, Any]] = []
        self.input_provider = input_provider or (lambda: input())
        self.output_sink = output_sink or (lambda text: print(text))
        self.rng = rng if rng is not None else np.random.default_rng()
        self.builtins = _DEFAULT_BUILTINS
        self.last_value: Any = None

    def evaluate(self) -> Any:
        try:
            self._execute_statement(self.program.statement)
        except RecursionError:
            raise MsiRuntimeError("Stack overflow.")
        return self.last_value

    # Statements

    def _execute_block(self, statements: List[BoundStatement]) -> None:
        execute = self._execute_statement
        for statement in statements:
            execute(statement)

    def _execute_statement(self, statement: BoundStatement) -> None:
        if isinstance(statement, BoundBlockStatement):
            self._execute_block(statement.statements)
            return
        if isinstance(statement, BoundVariableDeclaration):
            value = self._evaluate_expression(statement.initializer)
            self._assign(statement.variable, value)
            self.last_value = value
            return
        if isinstance(statement, BoundExpressionStatement):
            self.last_value = self._evaluate_expression(statement.expression)
            return
        if isinstance(statement, BoundIfStatement):
            if self._evaluate_expression(statement.condition):
                self._execute_statement(statement.then_statement)
            elif statement.else_statement is not None:
                self._execute_statement(statement.else_statement)
            return
        if isinstance(statement, BoundWhileStatement):
            self._execute_while(statement)
            return
        if isinstance(statement, BoundDoWhileStatement):
            self._execute_do_while(statement)
            return
        if isinstance(statement, BoundForStatement):
            self._execute_for(statement)
            return
        if isinstance(statement, BoundBreakStatement):
            raise BreakSignal()
        if isinstance(statement, BoundContinueStatement):
            raise ContinueSignal()
        if isinstance(statement, BoundReturnStatement):
            value = None if statement.expression is None else self._evaluate_expression(statement.expression)
            raise ReturnSignal(value)
        raise MsiRuntimeError(f"Unsupported statement {statement.kind}")

    def _execute_while(self, statement: BoundWhileStatement) -> None:
        eval_expr = self._evaluate_expression
        while eval_expr(statement.condition):
            try:
                self._execute_statement(statement.body)
            except BreakSignal:
                return
            except ContinueSignal:
                continue

    def _execute_do_while(self, statement: BoundDoWhileStatement) -> None:
        eval_expr = self._evaluate_expression
        while True:
            try:
                self._execute_statement(statement.body)
            except BreakSignal:
                return
            except ContinueSignal:
                pass
            if not eval_expr(statement.condition):
                return

    def _execute_for(self, statement: BoundForStatement) -> None:
        # Both bounds are evaluated once, before the first iteration; the upper bound is inclusive.
        counter = self._evaluate_expression(statement.lower_bound)
        upper = self._evaluate_expression(statement.upper_bound)
        self._assign(statement.variable, counter)
        while self._lookup(statement.variable) <= upper:
            try:
                self._execute_statement(statement.body)
            except BreakSignal:
                return
            except ContinueSignal:
                pass
            self._assign(statement.variable, wrap_int32(int(self._lookup(statement.variable)) + 1))

    # Expressions

    def _evaluate_expression(self, expression: BoundExpression) -> Any:
        if isinstance(expression, BoundLiteralExpression):
            return expression.value
        if isinstance(expression, BoundVariableExpression):
            return self._lookup(expression.variable)
        if isinstance(expression, BoundAssignmentExpression):
            value = self._evaluate_expression(expression.expression)
            self._assign(expression.variable, value)
            return value
        if isinstance(expression, BoundUnaryExpression):
            return self._evaluate_unary(expression)
        if isinstance(expression, BoundBinaryExpression):
            return self._evaluate_binary(expression)
        if isinstance(expression, BoundCallExpression):
            return self._evaluate_call(expression)
        if isinstance(expression, BoundConversionExpression):
            return self._evaluate_conversion(expression)
        if isinstance(expression, BoundErrorExpression):
            raise MsiRuntimeError("Cannot evaluate an expression with errors")
        raise MsiRuntimeError(f"Unsupported expression {expression.kind}")

    def _evaluate_unary(self, expression: BoundUnaryExpression) -> Any:
        operand = self._evaluate_expression(expression.operand)
        kind = expression.operator.kind
        if kind == "LOGICAL_NEGATION":
            return not operand
        if kind == "IDENTITY":
            return operand
        if kind == "NEGATION":
            return wrap_int32(-int(operand))
        if kind == "ONES_COMPLEMENT":
            return wrap_int32(~int(operand))
        raise MsiRuntimeError(f"Unexpected unary operator {kind}")

    def _evaluate_binary(self, expression: BoundBinaryExpression) -> Any:
        kind = expression.operator.kind
        left = self._evaluate_expression(expression.left)
        if kind == "LOGICAL_AND":
            return bool(left) and bool(self._evaluate_expression(expression.right))
        if kind == "LOGICAL_OR":
            return bool(left) or bool(self._evaluate_expression(expression.right))
        right = self._evaluate_expression(expression.right)

        if kind == "EQUALS":
            return bool(left == right)
        if kind == "NOT_EQUALS":
            return bool(left != right)

        operand_type = expression.operator.left_type
        if operand_type is TYPE_STRING:
            return left + right
        if operand_type is TYPE_BOOL:
            if kind == "BITWISE_AND":
                return bool(left) & bool(right)
            if kind == "BITWISE_OR":
                return bool(left) | bool(right)
            if kind == "BITWISE_XOR":
                return bool(left) ^ bool(right)
            raise MsiRuntimeError(f"Unexpected binary operator {kind}")

        a = int(left)
        b = int(right)
        if kind == "ADDITION":
            return wrap_int32(a + b)
        if kind == "SUBTRACTION":
            return wrap_int32(a - b)
        if kind == "MULTIPLICATION":
            return wrap_int32(a * b)
        if kind == "DIVISION":
            if b == 0:
                raise MsiRuntimeError("Division by zero.", location=expression.location)
            return wrap_int32(_truncating_divide(a, b))
        if kind == "BITWISE_AND":
            return wrap_int32(a & b)
        if kind == "BITWISE_OR":
            return wrap_int32(a | b)
        if kind == "BITWISE_XOR":
            return wrap_int32(a ^ b)
        if kind == "LESS":
            return a < b
        if kind == "LESS_OR_EQUALS":
            return a <= b
        if kind == "GREATER":
            return a > b
        if kind == "GREATER_OR_EQUALS":
            return a >= b
        raise MsiRuntimeError(f"Unexpected binary operator {kind}")

    def _evaluate_call(self, expression: BoundCallExpression) -> Any:
        args = [self._evaluate_expression(argument) for argument in expression.arguments]
        function = expression.function
        if self.builtins.get(function) is not None:
            return self.builtins.invoke(self, function, args)

        body = self.program.lookup_body(function)
        if body is None:
            raise MsiRuntimeError(f"Function '{function.name}' has no body")
        frame: Dict[VariableSymbol, Any] = {}
        for parameter, value in zip(function.parameters, args):
            frame[parameter] = value
        self.locals.append(frame)
        try:
            self._execute_statement(body)
        except ReturnSignal as signal:
            return signal.value
        finally:
            self.locals.pop()
        return None

    def _evaluate_conversion(self, expression: BoundConversionExpression) -> Any:
        value = self._evaluate_expression(expression.expression)
        target = expression.type
        if target is TYPE_STRING:
            return format_value(value)
        if target is TYPE_BOOL:
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered == "true":
                    return True
                if lowered == "false":
                    return False
                raise MsiRuntimeError(f"Cannot convert '{value}' to bool.", location=expression.location)
            return bool(value)
        if target is TYPE_INT:
            if isinstance(value, str):
                try:
                    number = int(value.strip())
                except ValueError:
                    raise MsiRuntimeError(f"Cannot convert '{value}' to int.", location=expression.location)
                if number < INT32.min or number > INT32.max:
                    raise MsiRuntimeError(f"Cannot convert '{value}' to int.", location=expression.location)
                return np.int32(number)
            return wrap_int32(int(value))
        raise MsiRuntimeError(f"Unexpected conversion to {target.name}")

    # Storage

    def _lookup(self, variable: VariableSymbol) -> Any:
        if isinstance(variable, GlobalVariableSymbol) or not self.locals:
            try:
                return self.globals[variable]
            except KeyError:
                raise MsiRuntimeError(f"Variable '{variable.name}' is not initialized")
        return self.locals[-1][variable]

    def _assign(self, variable: VariableSymbol, value: Any) -> None:
        if isinstance(variable, GlobalVariableSymbol) or not self.locals:
            self.globals[variable] = value
        else:
            self.locals[-1][variable] = value
