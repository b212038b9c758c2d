"""Cancellation — a pollable interrupt flag.

A real shell receives ``SIGINT`` asynchronously, at any instruction.
Reacting to it wherever it lands would leave descriptors half-swapped
and children half-started, so the interpreter never does that.  The
signal handler (or a web request, or a test) only *sets a flag*; the
executors *check* it at a few well-defined points:

    - immediately before spawning a program or forking a stage,
    - immediately before invoking a builtin.

A set flag raises ``Cancelled``, which abandons the whole line and is
reported with status 130 (``128 + SIGINT``).
"""

from __future__ import annotations

import signal
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType
from typing import Any

from tiny_shell.errors import Cancelled


class CancellationToken:
    """A flag that can be set from anywhere and checked at safe points."""

    def __init__(self) -> None:
        """Create an un-cancelled token."""
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        """Return True once ``cancel()`` has been called."""
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation at the next check point."""
        self._cancelled = True

    def reset(self) -> None:
        """Clear the flag (done at the start of every line)."""
        self._cancelled = False

    def check(self) -> None:
        """Raise ``Cancelled`` if cancellation was requested.

        Raises:
            Cancelled: If the token is set.

        """
        if self._cancelled:
            raise Cancelled


def install_interrupt_handler(token: CancellationToken) -> Any:
    """Route ``SIGINT`` to *token* and nothing else.

    The handler only sets the flag; it never raises, so no descriptor
    swap or child wait is cut short.  Blocking waits resume after the
    handler runs.  Foreground children share the terminal's process
    group, so Ctrl-C reaches them directly and the wait ends when they
    do.

    Returns:
        The previous handler, so the caller can restore it.

    """

    def _handler(_signum: int, _frame: FrameType | None) -> None:
        token.cancel()

    return signal.signal(signal.SIGINT, _handler)


@contextmanager
def interrupts_cancel(token: CancellationToken) -> Iterator[None]:
    """Route ``SIGINT`` to *token* for the duration of the block."""
    previous = install_interrupt_handler(token)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)
