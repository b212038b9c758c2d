"""Command history — remembered lines, optionally persisted to a file.

The driver records each non-blank line *after* it has run.  History is
bounded: once ``max_len`` lines are stored the oldest is dropped.  An
immediate repeat of the previous line is not stored twice, which keeps
``history`` output readable after pressing Up-Enter a few times.

The file format is one line per entry, oldest first — the same format
``bash`` uses, so the file can be inspected with any pager.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_MAX_LEN = 500


class HistoryManager:
    """A bounded list of previously executed lines."""

    def __init__(self, *, max_len: int = DEFAULT_MAX_LEN, path: str | None = None) -> None:
        """Create an empty history.

        Args:
            max_len: Maximum number of lines kept.
            path: File used by ``save()``; None disables persistence.

        """
        self._entries: list[str] = []
        self._max_len = max_len
        self._path = path

    @classmethod
    def load(cls, path: str, *, max_len: int = DEFAULT_MAX_LEN) -> HistoryManager:
        """Load history from *path*; a missing file gives an empty history.

        Raises:
            OSError: If the file exists but cannot be read.

        """
        history = cls(max_len=max_len, path=path)
        expanded = Path(os.path.expanduser(path))
        if expanded.exists():
            lines = expanded.read_text(encoding="utf-8").splitlines()
            kept = [line for line in lines if line.strip()]
            history._entries = kept[max(0, len(kept) - max_len) :]
        return history

    @property
    def path(self) -> str | None:
        """Return the persistence file path, if any."""
        return self._path

    @property
    def entries(self) -> list[str]:
        """Return all stored lines, oldest first."""
        return list(self._entries)

    def add(self, line: str) -> None:
        """Record *line* unless it is blank or repeats the previous entry."""
        trimmed = line.strip()
        if not trimmed:
            return
        if self._entries and self._entries[-1] == trimmed:
            return
        self._entries.append(trimmed)
        if len(self._entries) > self._max_len:
            del self._entries[: len(self._entries) - self._max_len]

    def get(self, index: int) -> str | None:
        """Return the entry at zero-based *index*, or None."""
        if 0 <= index < len(self._entries):
            return self._entries[index]
        return None

    def last(self) -> str | None:
        """Return the most recent entry, or None if empty."""
        return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        """Forget every entry."""
        self._entries.clear()

    def save(self) -> None:
        """Write all entries to the persistence file (no-op without one).

        Raises:
            OSError: If the file cannot be written.

        """
        if self._path is None:
            return
        expanded = Path(os.path.expanduser(self._path))
        text = "".join(f"{line}\n" for line in self._entries)
        expanded.write_text(text, encoding="utf-8")

    def __len__(self) -> int:
        """Return the number of stored entries."""
        return len(self._entries)
