from __future__ import annotations
import io
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, TextIO, Tuple

if TYPE_CHECKING:
    from parser import FunctionDeclaration


# Listing order used by :ls
SYMBOL_KINDS = ("FUNCTION", "GLOBAL_VARIABLE", "LOCAL_VARIABLE", "PARAMETER", "TYPE")


class Symbol:
    kind = ""

    def sort_key(self) -> Tuple[int, str]:
        return SYMBOL_KINDS.index(self.kind), self.name  # type: ignore[attr-defined]

    def write_to(self, out: TextIO) -> None:
        raise NotImplementedError

    def __str__(self) -> str:
        buffer = io.StringIO()
        self.write_to(buffer)
        return buffer.getvalue()


@dataclass(eq=False)
class TypeSymbol(Symbol):
    name: str

    kind = "TYPE"

    def write_to(self, out: TextIO) -> None:
        out.write(self.name)


TYPE_ERROR = TypeSymbol("?")
TYPE_BOOL = TypeSymbol("bool")
TYPE_INT = TypeSymbol("int")
TYPE_STRING = TypeSymbol("string")
TYPE_VOID = TypeSymbol("void")

# Types that can be spelled in a type clause or used as a conversion.
NAMED_TYPES = {symbol.name: symbol for symbol in (TYPE_BOOL, TYPE_INT, TYPE_STRING)}


@dataclass(eq=False)
class VariableSymbol(Symbol):
    name: str
    is_read_only: bool
    type: TypeSymbol

    def write_to(self, out: TextIO) -> None:
        out.write("let " if self.is_read_only else "var ")
        out.write(self.name)
        out.write(": ")
        self.type.write_to(out)


class GlobalVariableSymbol(VariableSymbol):
    kind = "GLOBAL_VARIABLE"


class LocalVariableSymbol(VariableSymbol):
    kind = "LOCAL_VARIABLE"


@dataclass(eq=False)
class ParameterSymbol(LocalVariableSymbol):
    ordinal: int = 0

    kind = "PARAMETER"

    def write_to(self, out: TextIO) -> None:
        out.write(self.name)
        out.write(": ")
        self.type.write_to(out)


@dataclass(eq=False)
class FunctionSymbol(Symbol):
    name: str
    parameters: List[ParameterSymbol]
    type: TypeSymbol
    declaration: Optional["FunctionDeclaration"] = None

    kind = "FUNCTION"

    def write_to(self, out: TextIO) -> None:
        out.write("function ")
        out.write(self.name)
        out.write("(")
        for index, parameter in enumerate(self.parameters):
            if index > 0:
                out.write(", ")
            parameter.write_to(out)
        out.write(")")
        if self.type is not TYPE_VOID:
            out.write(": ")
            self.type.write_to(out)


def _parameter(name: str, type_symbol: TypeSymbol, ordinal: int = 0) -> ParameterSymbol:
    return ParameterSymbol(name=name, is_read_only=True, type=type_symbol, ordinal=ordinal)


BUILTIN_PRINT = FunctionSymbol("print", [_parameter("text", TYPE_STRING)], TYPE_VOID)
BUILTIN_INPUT = FunctionSymbol("input", [], TYPE_STRING)
BUILTIN_RND = FunctionSymbol("rnd", [_parameter("max", TYPE_INT)], TYPE_INT)

BUILTIN_FUNCTIONS = (BUILTIN_PRINT, BUILTIN_INPUT, BUILTIN_RND)
