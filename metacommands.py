from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Tuple

from lexer import MsiError

COMMAND_PREFIX = ":"


class MetaCommandError(MsiError):
    """Unknown command, wrong arguments, or a command that could not run."""


class ExitSignal(Exception):
    def __init__(self, code: int = 0) -> None:
        super().__init__(code)
        self.code = code


@dataclass(frozen=True)
class MetaCommand:
    name: str
    description: str
    params: Tuple[str, ...]
    handler: Callable[..., None]

    @property
    def usage(self) -> str:
        return " ".join([COMMAND_PREFIX + self.name] + [f"<{param}>" for param in self.params])

    def validate(self, supplied: int) -> None:
        if supplied != len(self.params):
            raise MetaCommandError(f"Usage: {self.usage}")


def is_meta_command(line: str) -> bool:
    return line.startswith(COMMAND_PREFIX)


def split_arguments(text: str) -> List[str]:
    """Split on whitespace; double quotes group a word and ``""`` is a literal quote.

    Backslashes are kept as typed so Windows paths survive.
    """
    words: List[str] = []
    current: List[str] = []
    in_word = False
    quoted = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"':
            if quoted and i + 1 < n and text[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            quoted = not quoted
            in_word = True
        elif ch.isspace() and not quoted:
            if in_word:
                words.append("".join(current))
                current = []
                in_word = False
        else:
            current.append(ch)
            in_word = True
        i += 1
    if in_word:
        words.append("".join(current))
    return words


class CommandRegistry:
    def __init__(self) -> None:
        self._commands: Dict[str, MetaCommand] = {}
        self._sealed = False

    def register(self, name: str, handler: Callable[..., None], description: str = "", params: Tuple[str, ...] = ()) -> MetaCommand:
        if self._sealed:
            raise MetaCommandError(f"Cannot register '{name}': the command table is sealed")
        if name in self._commands:
            raise MetaCommandError(f"Command '{name}' is already defined")
        command = MetaCommand(name, description, tuple(params), handler)
        self._commands[name] = command
        return command

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, name: str) -> MetaCommand:
        try:
            return self._commands[name]
        except KeyError:
            raise MetaCommandError(f"Unknown command '{name}'.")

    def __contains__(self, name: str) -> bool:
        return name in self._commands

    def __iter__(self) -> Iterator[MetaCommand]:
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)

    def dispatch(self, line: str) -> MetaCommand:
        """Run the command named on ``line``; raises MetaCommandError on bad input."""
        words = split_arguments(line[len(COMMAND_PREFIX):] if is_meta_command(line) else line)
        if not words:
            raise MetaCommandError("Unknown command ''.")
        command = self.get(words[0])
        args = words[1:]
        command.validate(len(args))
        command.handler(*args)
        return command
