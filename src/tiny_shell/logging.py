"""Shell event log — a structured, in-memory record of what ran.

The logger records what the interpreter did: every program spawned,
every line finished and its status, every failure.  It is the shell's
equivalent of a kernel's ``dmesg`` ring buffer, readable with the
``log`` builtin.

Entries are grouped by input line.  The driver calls ``start_line()``
before each line it runs, and everything logged until the next call is
stamped with that line's number, so ``log`` output reads as a
transcript::

    [DEBUG] #3 flattened: spawned /usr/bin/ls (pid 4242)
    [INFO] #3 flattened: finished 'ls | wc -l' with status 0
    [WARNING] #4 parser: expected a command, found end of input

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogSource** — the component that wrote an entry.
- **LogEntry** — one record: level, message, source, line number.
- **Logger** — a bounded buffer with filtering.
"""

from collections import deque
from dataclasses import dataclass
from enum import IntEnum, StrEnum


class LogLevel(IntEnum):
    """Severity levels for log entries."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


class LogSource(StrEnum):
    """The interpreter component an entry came from."""

    PARSER = "parser"
    SHELL = "shell"
    EXECUTOR = "executor"
    RECURSIVE = "recursive"
    FLATTENED = "flattened"


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The component that generated the event.
        line: Number of the input line being run (0 outside any line).

    """

    level: LogLevel
    message: str
    source: LogSource
    line: int = 0

    def __str__(self) -> str:
        """Format as ``[LEVEL] #line source: message``."""
        where = f"#{self.line} {self.source}" if self.line else str(self.source)
        return f"[{self.level.name}] {where}: {self.message}"


DEFAULT_CAPACITY = 1000


class Logger:
    """Bounded log buffer, oldest entries dropped first."""

    def __init__(self, *, capacity: int | None = DEFAULT_CAPACITY) -> None:
        """Create an empty logger.

        Args:
            capacity: Maximum entries kept, or None for unbounded.

        """
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._line = 0

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        return list(self._entries)

    @property
    def line(self) -> int:
        """Return the number of the line now being run."""
        return self._line

    def start_line(self) -> int:
        """Begin a new input line and return its number (from 1)."""
        self._line += 1
        return self._line

    def log(self, level: LogLevel, message: str, *, source: LogSource) -> None:
        """Append an entry stamped with the current line number."""
        self._entries.append(LogEntry(level, message, source, self._line))

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: LogSource | None = None,
        line: int | None = None,
    ) -> list[LogEntry]:
        """Return entries matching every given criterion.

        Args:
            min_level: Keep entries at or above this level.
            source: Keep entries from this component.
            line: Keep entries written while this line ran.

        """
        return [
            entry
            for entry in self._entries
            if (min_level is None or entry.level >= min_level)
            and (source is None or entry.source == source)
            and (line is None or entry.line == line)
        ]

    def clear(self) -> None:
        """Remove all log entries; line numbering carries on."""
        self._entries.clear()
