from __future__ import annotations
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TextIO

from compilation import Compilation
from symbols import VariableSymbol


class SessionState:
    """The chain of accepted submissions plus the values of their globals.

    ``variables`` stays the same dict object for the lifetime of the session;
    the engine mutates it during evaluation and ``reset`` clears it in place.
    """

    def __init__(self) -> None:
        self.current: Optional[Compilation] = None
        self.variables: Dict[VariableSymbol, Any] = {}

    def commit(self, compilation: Compilation) -> None:
        self.current = compilation

    def reset(self) -> None:
        self.current = None
        self.variables.clear()

    def compilation(self) -> Compilation:
        """The current handle, or an empty compilation when nothing was accepted yet."""
        if self.current is None:
            return Compilation.create_empty()
        return self.current


@dataclass
class SessionEntry:
    index: int
    state_id: str
    previous_state_id: str
    event: str
    detail: Optional[str]


class SessionLogger:
    def __init__(self, verbose: bool, stream: Optional[TextIO] = None) -> None:
        self.verbose = verbose
        self.stream = stream
        self.entries: List[SessionEntry] = []
        self.next_state_index = 0
        self.last_state_id = "seed"

    def record(self, event: str, detail: Optional[str] = None) -> SessionEntry:
        index = self.next_state_index
        state_id = f"s_{index:06d}"
        entry = SessionEntry(
            index=index,
            state_id=state_id,
            previous_state_id=self.last_state_id,
            event=event,
            detail=detail,
        )
        self.entries.append(entry)
        self.last_state_id = state_id
        self.next_state_index += 1
        if self.verbose:
            text = f"[{entry.previous_state_id} -> {state_id}] {event}"
            if detail:
                text += f" {detail!r}"
            print(text, file=self.stream or sys.stderr)
        return entry
