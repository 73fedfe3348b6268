"""Interactive msi session: line reading, meta-commands and submission evaluation."""

from __future__ import annotations
import os
import sys
from typing import Callable, List, Optional, TextIO

import numpy as np

from compilation import Compilation, nesting_too_deep
from console import (
    CLEAR_SCREEN,
    render_line,
    supports_color,
    write_diagnostics,
    write_error,
    write_message,
    write_value,
)
from metacommands import CommandRegistry, ExitSignal, MetaCommandError, is_meta_command
from diagnostics import SourceText
from parser import SyntaxTree
from session import SessionLogger, SessionState
from submissions import SubmissionStore
from symbols import FunctionSymbol

PROMPT = ">>> "
CONTINUATION_PROMPT = "..> "


def is_complete_submission(text: str) -> bool:
    """Decide whether the pending text should be submitted now."""
    if not text or text.isspace():
        return True

    # Two empty lines at the end force a submission.
    lines = text.split(os.linesep)
    if len(lines) >= 2 and lines[-1] == "" and lines[-2] == "":
        return True

    try:
        members = SyntaxTree.parse(text).root.members
        if not members:
            return True
        return not members[-1].get_last_token().is_missing
    except (ValueError, RecursionError):
        return True


class MsiRepl:
    def __init__(
        self,
        *,
        store: Optional[SubmissionStore] = None,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        input_provider: Optional[Callable[[str], str]] = None,
        color: Optional[bool] = None,
        echo: bool = False,
        logger: Optional[SessionLogger] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.color = supports_color(self.out) if color is None else color
        self.echo = echo
        self.input_provider = input_provider or input
        self.store = store or SubmissionStore()
        self.state = SessionState()
        self.logger = logger or SessionLogger(False)
        self.rng = rng
        self.show_tree = False
        self.show_program = False

        self.commands = CommandRegistry()
        self.commands.register("exit", self._exit, "Exits the REPL")
        self.commands.register("cls", self._cls, "Clears the screen")
        self.commands.register("reset", self._reset, "Clears all previous submissions")
        self.commands.register("showTree", self._show_tree, "Shows the parse tree")
        self.commands.register("showProgram", self._show_program, "Shows the bound tree")
        self.commands.register("load", self._load, "Loads a script file", ("path",))
        self.commands.register("ls", self._ls, "Lists all symbols")
        self.commands.register("dump", self._dump, "Shows bound tree of a given function", ("function",))
        self.commands.seal()

    # Startup

    def load_submissions(self) -> int:
        """Replay every stored submission in order without persisting them again."""
        with self.store.replay() as texts:
            if not texts:
                return 0
            write_message(self.out, f"Loaded {len(texts)} submission(s)", "info", color=self.color)
            self.logger.record("REPLAY", str(len(texts)))
            for text in texts:
                self.evaluate_submission(text)
        return len(texts)

    # Read loop

    def run(self) -> int:
        while True:
            try:
                text = self._read_submission()
            except EOFError:
                self.out.write("\n")
                return 0
            except KeyboardInterrupt:
                self.out.write("\n")
                continue

            try:
                if is_meta_command(text):
                    self.evaluate_meta_command(text)
                elif text.strip():
                    self.evaluate_submission(text)
            except ExitSignal as sig:
                return sig.code

    def _read_submission(self) -> str:
        lines: List[str] = []
        while True:
            prompt = PROMPT if not lines else CONTINUATION_PROMPT
            line = self.input_provider(self._prompt_text(prompt))
            if self.echo:
                self._echo_line(prompt, line)
            # A command is always a one-line submission.
            if not lines and is_meta_command(line):
                return line
            lines.append(line)
            text = os.linesep.join(lines)
            if is_complete_submission(text):
                return text

    def _prompt_text(self, prompt: str) -> str:
        if not self.color:
            return prompt
        marker = prompt.rstrip()
        return f"\x1b[38;2;153;221;255m{marker}\033[0m{prompt[len(marker):]}"  # light blue

    def _echo_line(self, prompt: str, line: str) -> None:
        # Redraw the line just typed with syntax colors.
        self.out.write("\x1b[1A\r")
        self.out.write(self._prompt_text(prompt))
        for _ in render_line(line, self.out, color=self.color):
            pass
        self.out.write("\x1b[K\n")
        self.out.flush()

    # Evaluation

    def evaluate_meta_command(self, line: str) -> None:
        self.logger.record("COMMAND", line)
        try:
            self.commands.dispatch(line)
        except MetaCommandError as error:
            write_error(self.err, str(error), color=self.color)

    def evaluate_submission(self, text: str) -> bool:
        """Evaluate one submission; commit and persist it only if it has no diagnostics."""
        self.logger.record("SUBMIT", text)
        try:
            syntax_tree = SyntaxTree.parse(text)
            if self.show_tree:
                syntax_tree.root.write_to(self.out)

            compilation = Compilation.create_script(self.state.current, syntax_tree)
            if self.show_program:
                compilation.emit_tree(self.out)

            result = compilation.evaluate(
                self.state.variables,
                input_provider=lambda: self.input_provider(""),
                output_sink=self._write_program_output,
                rng=self.rng,
            )
        except RecursionError:
            result = nesting_too_deep(SourceText(text))
        if result.diagnostics:
            write_diagnostics(self.err, result.diagnostics, color=self.color)
            self.logger.record("DIAGNOSED", f"{len(result.diagnostics)} diagnostic(s)")
            return False

        if result.value is not None:
            write_value(self.out, result.value, color=self.color)
        self.state.commit(compilation)
        self.store.append(text)
        self.logger.record("COMMIT")
        return True

    def _write_program_output(self, text: str) -> None:
        self.out.write(text + "\n")

    # Meta-commands

    def _exit(self) -> None:
        raise ExitSignal(0)

    def _cls(self) -> None:
        if self.color:
            self.out.write(CLEAR_SCREEN)
            self.out.flush()

    def _reset(self) -> None:
        self.state.reset()
        self.store.clear_all()
        self.logger.record("RESET")

    def _show_tree(self) -> None:
        self.show_tree = not self.show_tree
        self.out.write("Showing parse trees.\n" if self.show_tree else "Not showing parse trees.\n")

    def _show_program(self) -> None:
        self.show_program = not self.show_program
        self.out.write("Showing bound tree.\n" if self.show_program else "Not showing bound tree.\n")

    def _load(self, path: str) -> None:
        path = os.path.abspath(path)
        if not os.path.isfile(path):
            raise MetaCommandError(f"file does not exist '{path}'")
        try:
            with open(path, "r", encoding="utf-8", newline="") as handle:
                text = handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise MetaCommandError(f"cannot read '{path}': {exc}")
        self.evaluate_submission(text)

    def _ls(self) -> None:
        compilation = self.state.compilation()
        for symbol in sorted(compilation.get_symbols(), key=lambda s: s.sort_key()):
            symbol.write_to(self.out)
            self.out.write("\n")

    def _dump(self, function_name: str) -> None:
        compilation = self.state.compilation()
        matches = [
            symbol for symbol in compilation.get_symbols()
            if isinstance(symbol, FunctionSymbol) and symbol.name == function_name
        ]
        if len(matches) != 1:
            raise MetaCommandError(f"function '{function_name}' does not exist")
        compilation.emit_tree(self.out, matches[0])
