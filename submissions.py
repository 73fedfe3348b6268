from __future__ import annotations
import os
import shutil
import sys
from contextlib import contextmanager
from typing import Iterator, List, Optional

SUBMISSION_PREFIX = "submission"
SUBMISSIONS_ENV = "MSI_SUBMISSIONS_DIR"


def local_app_data() -> str:
    """Per-user application data root for the current platform."""
    if sys.platform == "win32":
        local = os.environ.get("LOCALAPPDATA")
        if local:
            return local
        return os.path.join(os.path.expanduser("~"), "AppData", "Local")
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return xdg
    return os.path.join(os.path.expanduser("~"), ".local", "share")


def default_submissions_directory() -> str:
    override = os.environ.get(SUBMISSIONS_ENV)
    if override:
        return os.path.abspath(override)
    return os.path.join(local_app_data(), "Minsk", "Submissions")


class SubmissionStore:
    """Accepted submissions, one file each, named in acceptance order."""

    def __init__(self, directory: Optional[str] = None) -> None:
        self.directory = directory or default_submissions_directory()
        self.replaying = False

    def _record_names(self) -> List[str]:
        if not os.path.isdir(self.directory):
            return []
        return sorted(name for name in os.listdir(self.directory) if name.startswith(SUBMISSION_PREFIX))

    def list_ordered(self) -> List[str]:
        texts: List[str] = []
        for name in self._record_names():
            path = os.path.join(self.directory, name)
            with open(path, "r", encoding="utf-8", newline="") as handle:
                texts.append(handle.read())
        return texts

    def append(self, text: str) -> Optional[str]:
        """Persist ``text`` as the next record; returns its path, or None while replaying."""
        if self.replaying:
            return None
        os.makedirs(self.directory, exist_ok=True)
        count = len(self._record_names())
        path = os.path.join(self.directory, f"{SUBMISSION_PREFIX}{count:04d}")
        with open(path, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        return path

    def clear_all(self) -> None:
        if not os.path.isdir(self.directory):
            return
        shutil.rmtree(self.directory)

    @contextmanager
    def replay(self) -> Iterator[List[str]]:
        """Yield the stored texts with ``append`` suppressed until the block exits."""
        texts = self.list_ordered()
        previous = self.replaying
        self.replaying = True
        try:
            yield texts
        finally:
            self.replaying = previous
