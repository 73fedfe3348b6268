"""Shared fixtures for the msi test suite."""

from __future__ import annotations

import io
from typing import Callable, Iterable, List, Optional

import numpy as np
import pytest

from repl import MsiRepl
from submissions import SubmissionStore


class ScriptedInput:
    """Feeds prepared lines to the REPL and raises EOFError when they run out."""

    def __init__(self, lines: Iterable[str]) -> None:
        self.lines: List[str] = list(lines)
        self.prompts: List[str] = []

    def __call__(self, prompt: str = "") -> str:
        self.prompts.append(prompt)
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)


@pytest.fixture
def submissions_dir(tmp_path):
    return str(tmp_path / "Minsk" / "Submissions")


@pytest.fixture
def store(submissions_dir) -> SubmissionStore:
    return SubmissionStore(submissions_dir)


@pytest.fixture
def make_repl(submissions_dir) -> Callable[..., MsiRepl]:
    """Build a REPL over a temp store; output and errors share one StringIO."""

    def _make(lines: Optional[Iterable[str]] = None, *, replay: bool = False) -> MsiRepl:
        out = io.StringIO()
        repl = MsiRepl(
            store=SubmissionStore(submissions_dir),
            out=out,
            err=out,
            input_provider=ScriptedInput(lines or []),
            color=False,
            rng=np.random.default_rng(0),
        )
        if replay:
            repl.load_submissions()
        return repl

    return _make
