from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TextIO

import numpy as np

from binder import (
    BoundGlobalScope,
    BoundProgram,
    bind_global_scope,
    bind_program,
    write_bound_tree,
)
from diagnostics import Diagnostic, DiagnosticBag, SourceText, TextSpan
from interpreter import Evaluator, MsiRuntimeError
from parser import SyntaxTree
from symbols import FunctionSymbol, Symbol, VariableSymbol


@dataclass
class EvaluationResult:
    diagnostics: List[Diagnostic] = field(default_factory=list)
    value: Any = None


def nesting_too_deep(text: SourceText) -> EvaluationResult:
    """Result for text whose nesting exceeds the interpreter's recursion limit."""
    diagnostics = DiagnosticBag(text)
    diagnostics.report_nesting_too_deep(TextSpan(0, len(text.text)))
    return EvaluationResult(list(diagnostics))


class Compilation:
    """One link in a chain of submissions.

    A compilation never changes after it is created; each new submission
    produces a new compilation whose ``previous`` is the one before it.
    """

    def __init__(self, previous: Optional["Compilation"], syntax_tree: Optional[SyntaxTree]) -> None:
        self.previous = previous
        self.syntax_tree = syntax_tree
        self._global_scope: Optional[BoundGlobalScope] = None
        self._program: Optional[BoundProgram] = None

    @classmethod
    def create_script(cls, previous: Optional["Compilation"], syntax_tree: SyntaxTree) -> "Compilation":
        return cls(previous, syntax_tree)

    @classmethod
    def create_empty(cls) -> "Compilation":
        return cls(None, None)

    @property
    def global_scope(self) -> BoundGlobalScope:
        if self._global_scope is None:
            previous = self.previous.global_scope if self.previous is not None else None
            if self.syntax_tree is None:
                self._global_scope = BoundGlobalScope(previous, [], [], [], [])
            else:
                self._global_scope = bind_global_scope(previous, self.syntax_tree)
        return self._global_scope

    @property
    def program(self) -> BoundProgram:
        if self._program is None:
            previous = self.previous.program if self.previous is not None else None
            text = self.syntax_tree.text if self.syntax_tree is not None else SourceText("")
            self._program = bind_program(self.global_scope, previous, text)
        return self._program

    @property
    def diagnostics(self) -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        if self.syntax_tree is not None:
            diagnostics.extend(self.syntax_tree.diagnostics)
        diagnostics.extend(self.program.diagnostics)
        return diagnostics

    def evaluate(
        self,
        variables: Dict[VariableSymbol, Any],
        *,
        input_provider: Optional[Callable[[], str]] = None,
        output_sink: Optional[Callable[[str], None]] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> EvaluationResult:
        """Run this submission against ``variables``.

        The mapping is only updated when evaluation finishes without
        diagnostics; on failure it is left exactly as it was.
        """
        try:
            diagnostics = self.diagnostics
        except RecursionError:
            return nesting_too_deep(self.syntax_tree.text)
        if diagnostics:
            return EvaluationResult(diagnostics)

        working = dict(variables)
        evaluator = Evaluator(
            self.program,
            working,
            input_provider=input_provider,
            output_sink=output_sink,
            rng=rng,
        )
        try:
            value = evaluator.evaluate()
        except MsiRuntimeError as error:
            return EvaluationResult([Diagnostic(error.location, error.message)])

        variables.clear()
        variables.update(working)
        return EvaluationResult([], value)

    def get_symbols(self) -> List[Symbol]:
        """Every function and global variable visible to the next submission.

        Walks the chain newest first, so a name redeclared by a later
        submission hides the earlier symbol. Builtins are not included.
        """
        seen = set()
        symbols: List[Symbol] = []
        scope: Optional[BoundGlobalScope] = self.global_scope
        while scope is not None:
            for symbol in list(scope.functions) + list(scope.variables):
                if symbol.name in seen:
                    continue
                seen.add(symbol.name)
                symbols.append(symbol)
            scope = scope.previous
        return symbols

    def emit_tree(self, out: TextIO, function: Optional[FunctionSymbol] = None) -> None:
        program = self.program
        if function is not None:
            body = program.lookup_body(function)
            if body is None:
                return
            function.write_to(out)
            out.write("\n")
            write_bound_tree(body, out)
            return

        for declared, body in program.functions.items():
            declared.write_to(out)
            out.write("\n")
            write_bound_tree(body, out)
        write_bound_tree(program.statement, out)
