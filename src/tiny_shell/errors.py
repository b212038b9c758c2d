"""Error hierarchy — every way a command line can fail.

A shell has to keep running no matter what the user types, so failures
are sorted by *how far* they are allowed to travel:

- **Lex and parse errors** abort the current line only.  They live in
  ``tiny_shell.lexer`` and ``tiny_shell.parser`` and derive from
  ``ShellError``.
- **Command failures** (``CommandFailure``) are converted into an exit
  status right where they happen — a missing program becomes 127, an
  unreadable redirect target becomes 1 — and a message is written to
  standard error.
- **Resource exhaustion** (``ResourceExhausted``) means the pipeline
  cannot be built at all (no more pipes or descriptors).  It escapes
  the pipeline and is reported by the nearest ``Sequence`` or by the
  driver, and the next command still runs.
- **Terminate** is not an error.  It is the non-local exit raised by the
  ``exit`` builtin and must reach the driver untouched, so it does not
  derive from ``ShellError`` and no error handler can absorb it.
- **Cancelled** likewise sits outside the hierarchy: an interrupt
  abandons the whole line.

Every ``ExecError`` carries the ``status`` it turns into.
"""

# Conventional exit statuses (POSIX shells agree on these).
STATUS_FAILURE = 1
STATUS_USAGE = 2
STATUS_NOT_EXECUTABLE = 126
STATUS_NOT_FOUND = 127
STATUS_INTERRUPTED = 130


class ShellError(Exception):
    """Base class for every recoverable interpreter error."""


class ExecError(ShellError):
    """Raise when evaluating a syntax tree fails.

    Attributes:
        status: The exit status this failure is reported as.

    """

    status: int = STATUS_FAILURE


class CommandFailure(ExecError):
    """A failure local to one command; converted to a status on the spot."""


class CommandNotFound(CommandFailure):
    """Raise when a command name resolves to nothing."""

    status = STATUS_NOT_FOUND

    def __init__(self, name: str) -> None:
        """Record the unresolved command name."""
        self.name = name
        super().__init__(f"{name}: command not found")


class PermissionDenied(CommandFailure):
    """Raise when a command exists but cannot be executed."""

    status = STATUS_NOT_EXECUTABLE

    def __init__(self, name: str) -> None:
        """Record the command that could not be executed."""
        self.name = name
        super().__init__(f"{name}: Permission denied")


class SpawnFailed(CommandFailure):
    """Raise when the OS refuses to start a child process."""

    status = STATUS_NOT_EXECUTABLE

    def __init__(self, name: str, cause: OSError) -> None:
        """Record the command and the underlying OS error."""
        self.name = name
        self.cause = cause
        super().__init__(f"{name}: {cause.strerror or cause}")


class RedirectIoError(CommandFailure):
    """Raise when a redirection target cannot be opened."""

    def __init__(self, path: str, cause: OSError) -> None:
        """Record the target path and the underlying OS error."""
        self.path = path
        self.cause = cause
        super().__init__(f"{path}: {cause.strerror or cause}")


class BuiltinError(CommandFailure):
    """Raise from a builtin handler to fail with a message and a status."""

    def __init__(self, message: str, code: int = STATUS_FAILURE) -> None:
        """Record the message and the exit status to report."""
        self.message = message
        self.status = code
        super().__init__(message)


class ResourceExhausted(ExecError):
    """A failure that makes the current pipeline impossible to build."""


class PipeCreationFailed(ResourceExhausted):
    """Raise when ``pipe()`` fails (usually descriptor-table exhaustion)."""

    def __init__(self, cause: OSError) -> None:
        """Record the underlying OS error."""
        self.cause = cause
        super().__init__(f"cannot create pipe: {cause.strerror or cause}")


class DescriptorExhausted(ResourceExhausted):
    """Raise when a descriptor cannot be duplicated for save/restore."""

    def __init__(self, fd: int, cause: OSError) -> None:
        """Record the descriptor and the underlying OS error."""
        self.fd = fd
        self.cause = cause
        super().__init__(f"cannot duplicate fd {fd}: {cause.strerror or cause}")


class DuplicateBuiltin(ExecError):
    """Raise when registering a builtin under a name already taken."""

    status = STATUS_USAGE

    def __init__(self, name: str) -> None:
        """Record the clashing builtin name."""
        self.name = name
        super().__init__(f"builtin already registered: {name}")


class Terminate(Exception):  # noqa: N818
    """Unwind every pending evaluation and end the interpreter.

    Raised by the ``exit`` builtin.  Deliberately *not* a ``ShellError``.
    """

    def __init__(self, code: int = 0) -> None:
        """Record the process exit code (masked to 0–255)."""
        self.code = code & 0xFF
        super().__init__(f"exit {self.code}")


class Cancelled(Exception):  # noqa: N818
    """Raise when the cancellation token is checked after an interrupt."""

    status = STATUS_INTERRUPTED

    def __init__(self) -> None:
        """Build the standard interrupt message."""
        super().__init__("interrupted")
