"""Plumbing — real file descriptors, pipes, and child processes.

Everything in this module touches OS state that outlives a Python
object: descriptor numbers in the process-wide fd table, and child
processes that must be waited for.  The rule is simple: **whatever is
opened is closed (or restored) on every exit path** — success, error,
or ``exit``.

Key pieces:

- **Streams** — the three descriptors a command should use for
  stdin/stdout/stderr, plus whether it is running as a pipeline stage.
- **FdTable** — a ledger of every descriptor the shell itself opened
  (redirect targets, pipe ends, saved copies).  Closing through the
  ledger makes double-closes harmless and lets a forked child drop
  every descriptor it inherited but does not need.
- **Child handles** — ``ExternalChild`` (a spawned program),
  ``ForkedChild`` (a forked copy of the interpreter running a compound
  pipeline stage), and ``Finished`` (a stage that already ran
  in-process).  All expose ``wait() -> status``.

Exit statuses follow the shell convention: the child's own code, or
``128 + N`` if it was killed by signal ``N``.
"""

from __future__ import annotations

import os
import subprocess
import traceback
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from tiny_shell.errors import (
    Cancelled,
    DescriptorExhausted,
    PermissionDenied,
    PipeCreationFailed,
    RedirectIoError,
    SpawnFailed,
    Terminate,
)
from tiny_shell.syntax import RedirectKind

if TYPE_CHECKING:
    from tiny_shell.env import Environment

STDIN = 0
STDOUT = 1
STDERR = 2

_SIGNAL_BASE = 128
_FILE_MODE = 0o666

_OPEN_FLAGS: dict[RedirectKind, int] = {
    RedirectKind.IN: os.O_RDONLY,
    RedirectKind.OUT: os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
    RedirectKind.APPEND: os.O_WRONLY | os.O_CREAT | os.O_APPEND,
}


def exit_status(returncode: int) -> int:
    """Map a raw return code onto the 0–255 shell status range.

    Negative codes (``subprocess`` convention for "killed by signal N")
    become ``128 + N``.
    """
    if returncode < 0:
        return _SIGNAL_BASE - returncode
    return returncode & 0xFF


def write_all(fd: int, data: bytes) -> None:
    """Write every byte of *data* to *fd*, looping over short writes."""
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


@dataclass(frozen=True)
class Streams:
    """The descriptors a command reads from and writes to.

    Attributes:
        stdin: Descriptor for standard input.
        stdout: Descriptor for standard output.
        stderr: Descriptor for standard error.
        in_pipeline: True while running as one stage of a pipeline.

    """

    stdin: int = STDIN
    stdout: int = STDOUT
    stderr: int = STDERR
    in_pipeline: bool = False

    def write(self, text: str) -> None:
        """Write *text* to standard output."""
        write_all(self.stdout, text.encode())

    def error(self, text: str) -> None:
        """Write *text* to standard error."""
        write_all(self.stderr, text.encode())


class FdTable:
    """Ledger of the descriptors the shell has opened and not yet closed."""

    def __init__(self) -> None:
        """Create an empty ledger."""
        self._open: set[int] = set()
        self._pipes_created = 0

    @property
    def open_fds(self) -> frozenset[int]:
        """Return the descriptors currently held open by the shell."""
        return frozenset(self._open)

    @property
    def pipes_created(self) -> int:
        """Return how many OS pipes this ledger has ever created."""
        return self._pipes_created

    def pipe(self) -> tuple[int, int]:
        """Create an OS pipe and return ``(read_end, write_end)``.

        Raises:
            PipeCreationFailed: If the OS refuses (usually EMFILE).

        """
        try:
            read_end, write_end = os.pipe()
        except OSError as exc:
            raise PipeCreationFailed(exc) from exc
        self._open.update((read_end, write_end))
        self._pipes_created += 1
        return read_end, write_end

    def open_redirect(self, kind: RedirectKind, target: str, cwd: str) -> int:
        """Open *target* with the mode *kind* calls for.

        ``<`` must exist; ``>`` creates or truncates; ``>>`` creates or
        appends.  Relative targets are resolved against *cwd*.

        Raises:
            RedirectIoError: If the file cannot be opened.

        """
        path = os.path.join(cwd, target)
        try:
            fd = os.open(path, _OPEN_FLAGS[kind], _FILE_MODE)
        except OSError as exc:
            raise RedirectIoError(target, exc) from exc
        self._open.add(fd)
        return fd

    def dup(self, fd: int) -> int:
        """Duplicate *fd* onto a fresh (non-inheritable) descriptor.

        Raises:
            DescriptorExhausted: If the fd table is full.

        """
        try:
            copy = os.dup(fd)
        except OSError as exc:
            raise DescriptorExhausted(fd, exc) from exc
        self._open.add(copy)
        return copy

    def close(self, fd: int) -> None:
        """Close *fd* if this ledger opened it; otherwise do nothing."""
        if fd in self._open:
            self._open.discard(fd)
            os.close(fd)

    def close_all(self) -> None:
        """Close every descriptor still in the ledger."""
        for fd in sorted(self._open):
            self.close(fd)

    def forget_all(self) -> None:
        """Drop every entry without closing (for a freshly forked child)."""
        self._open.clear()

    @contextmanager
    def redirected(self, fd: int, target: int) -> Iterator[None]:
        """Temporarily make descriptor *target* refer to *fd*.

        The previous *target* is saved with ``dup()`` and put back with
        ``dup2()`` when the block exits, however it exits.

        Raises:
            DescriptorExhausted: If the saved copy cannot be made.

        """
        if fd == target:
            yield
            return
        saved = self.dup(target)
        try:
            os.dup2(fd, target)
            yield
        finally:
            os.dup2(saved, target)
            self.close(saved)


class Child(Protocol):
    """A started pipeline stage that can be waited for."""

    def wait(self) -> int:
        """Block until the stage finishes and return its exit status."""
        ...  # pragma: no cover


class ExternalChild:
    """A program started with ``subprocess.Popen``."""

    def __init__(self, process: subprocess.Popen[bytes]) -> None:
        """Wrap a running process."""
        self._process = process

    @property
    def pid(self) -> int:
        """Return the child's process id."""
        return self._process.pid

    def wait(self) -> int:
        """Wait for the program and return its shell exit status."""
        return exit_status(self._process.wait())


class ForkedChild:
    """A forked copy of the interpreter evaluating one pipeline stage."""

    def __init__(self, pid: int) -> None:
        """Wrap a forked child's pid."""
        self.pid = pid
        self._status: int | None = None

    def wait(self) -> int:
        """Reap the child (once) and return its shell exit status."""
        if self._status is None:
            _pid, raw = os.waitpid(self.pid, 0)
            self._status = exit_status(os.waitstatus_to_exitcode(raw))
        return self._status


@dataclass(frozen=True)
class Finished:
    """A stage that already ran to completion in-process."""

    status: int

    def wait(self) -> int:
        """Return the recorded status immediately."""
        return self.status


def spawn_external(
    path: str,
    name: str,
    args: list[str],
    env: Environment,
    streams: Streams,
) -> ExternalChild:
    """Start *path* without waiting for it.

    The child's ``argv[0]`` is *name* as typed; its working directory
    and exported variables come from *env*; its standard descriptors
    are *streams*.

    Raises:
        PermissionDenied: If the OS says the file may not be executed.
        SpawnFailed: For any other OS failure to start the program.

    """
    try:
        process = subprocess.Popen(  # noqa: S603
            [name, *args],
            executable=path,
            stdin=streams.stdin,
            stdout=streams.stdout,
            stderr=streams.stderr,
            cwd=env.cwd,
            env=dict(env.exported()),
            close_fds=True,
        )
    except PermissionError as exc:
        raise PermissionDenied(name) from exc
    except OSError as exc:
        raise SpawnFailed(name, exc) from exc
    return ExternalChild(process)


def fork_child(
    body: Callable[[], int],
    streams: Streams,
    fds: FdTable,
    *,
    label: str = "subshell",
) -> ForkedChild:
    """Run *body* in a forked copy of the interpreter.

    In the child: *streams* are installed as fds 0/1/2, every descriptor
    in the ledger is closed (so pipe readers see EOF when they should),
    *body* runs, and the process ends with its status.  ``exit`` inside
    the child ends only the child.  The child never returns.

    Raises:
        SpawnFailed: If ``fork()`` fails.

    """
    try:
        pid = os.fork()
    except OSError as exc:
        raise SpawnFailed(label, exc) from exc
    if pid:
        return ForkedChild(pid)

    status = 1
    try:
        for source, target in ((streams.stdin, STDIN), (streams.stdout, STDOUT), (streams.stderr, STDERR)):
            if source != target:
                os.dup2(source, target)
        for fd in fds.open_fds - {STDIN, STDOUT, STDERR}:
            with suppress(OSError):
                os.close(fd)
        fds.forget_all()
        status = body()
    except Terminate as exc:
        status = exc.code
    except Cancelled as exc:
        status = exc.status
    except BaseException:  # noqa: BLE001
        # The child must never unwind into the parent's stack.
        with suppress(OSError):
            write_all(STDERR, traceback.format_exc().encode())
    finally:
        os._exit(status & 0xFF)
