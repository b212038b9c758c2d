"""Builtin commands — handlers that run inside the interpreter itself.

Some commands *cannot* be separate programs: ``cd`` must change the
shell's own working directory and ``exit`` must end the shell's own
process.  Those run in-process as builtins.

A builtin is a plain callable::

    handler(args, env, streams) -> exit status

It writes through ``streams`` (never ``print()``), so the same handler
works at the prompt, inside a pipeline, and under a redirect.  Failure
is signalled by raising ``BuiltinError(message, code)``; the executor
turns that into a message on stderr and the given status.

Design choices:
    - **Registry, not a hard-coded switch.**  ``BuiltinRegistry`` maps
      names to callables; embedding code may register more.
    - **Duplicate names are an error**, not a silent override.
    - **Kind resolution lives here** because only the registry knows
      which names are builtins: ``resolve_kinds()`` rewrites every
      ``SIMPLE`` command in a tree to ``BUILTIN`` or ``EXTERNAL``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import TYPE_CHECKING, TypeAlias

from tiny_shell.errors import STATUS_USAGE, BuiltinError, DuplicateBuiltin, Terminate
from tiny_shell.logging import LogLevel
from tiny_shell.syntax import Command, CommandKind, Node, map_commands

if TYPE_CHECKING:
    from tiny_shell.env import Environment
    from tiny_shell.history import HistoryManager
    from tiny_shell.logging import Logger
    from tiny_shell.plumbing import Streams

# Type alias for a builtin handler: args, environment, streams -> status.
Handler: TypeAlias = "Callable[[list[str], Environment, Streams], int]"


class BuiltinRegistry:
    """Name-keyed table of builtin handlers."""

    def __init__(self) -> None:
        """Create an empty registry."""
        self._handlers: dict[str, Handler] = {}

    def register(self, name: str, handler: Handler) -> None:
        """Add *handler* under *name*.

        Raises:
            DuplicateBuiltin: If *name* is already registered.

        """
        if name in self._handlers:
            raise DuplicateBuiltin(name)
        self._handlers[name] = handler

    def lookup(self, name: str) -> Handler | None:
        """Return the handler for *name*, or None."""
        return self._handlers.get(name)

    def names(self) -> list[str]:
        """Return every registered name, sorted."""
        return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        """Return True if *name* is a registered builtin."""
        return name in self._handlers

    def resolve_kinds(self, node: Node) -> Node:
        """Return a copy of *node* with every command's kind decided."""

        def _resolve(command: Command) -> Command:
            kind = CommandKind.BUILTIN if command.name in self._handlers else CommandKind.EXTERNAL
            return replace(command, kind=kind)

        return map_commands(node, _resolve)


# -- Default builtins ----------------------------------------------------


def _is_identifier(name: str) -> bool:
    """Return True for a valid variable name (letters, digits, ``_``)."""
    return name.isidentifier() and name.isascii()


def builtin_cd(args: list[str], env: Environment, streams: Streams) -> int:
    """Change the working directory (``cd``, ``cd DIR``, ``cd -``)."""
    if len(args) > 1:
        msg = "cd: too many arguments"
        raise BuiltinError(msg)
    if not args:
        target = env.get("HOME") or "/"
    elif args[0] == "-":
        previous = env.get("OLDPWD")
        if previous is None:
            msg = "cd: OLDPWD not set"
            raise BuiltinError(msg)
        target = previous
    else:
        target = args[0]
    try:
        new_dir = env.change_dir(target)
    except FileNotFoundError:
        msg = f"cd: {target}: No such file or directory"
        raise BuiltinError(msg) from None
    except NotADirectoryError:
        msg = f"cd: {target}: Not a directory"
        raise BuiltinError(msg) from None
    if args and args[0] == "-":
        streams.write(f"{new_dir}\n")
    return 0


def builtin_exit(args: list[str], _env: Environment, _streams: Streams) -> int:
    """End the interpreter (``exit [N]``)."""
    if len(args) > 1:
        msg = "exit: too many arguments"
        raise BuiltinError(msg)
    if not args:
        raise Terminate(0)
    try:
        code = int(args[0])
    except ValueError:
        msg = f"exit: {args[0]}: numeric argument required"
        raise BuiltinError(msg, STATUS_USAGE) from None
    raise Terminate(code)


def builtin_export(args: list[str], env: Environment, streams: Streams) -> int:
    """Mark variables for export (``export``, ``export K``, ``export K=V``)."""
    if not args:
        for key, value in env.exported():
            streams.write(f"export {key}={value}\n")
        return 0
    status = 0
    for arg in args:
        key, sep, value = arg.partition("=")
        if not _is_identifier(key):
            streams.error(f"tiny-shell: export: `{arg}': not a valid identifier\n")
            status = 1
            continue
        env.export(key, value if sep else None)
    return status


def builtin_unset(args: list[str], env: Environment, _streams: Streams) -> int:
    """Remove variables (``unset K...``)."""
    for key in args:
        env.unset(key)
    return 0


def builtin_pwd(_args: list[str], env: Environment, streams: Streams) -> int:
    """Print the working directory."""
    streams.write(f"{env.cwd}\n")
    return 0


def make_help(registry: BuiltinRegistry) -> Handler:
    """Build a ``help`` builtin that lists *registry*'s names."""

    def builtin_help(_args: list[str], _env: Environment, streams: Streams) -> int:
        streams.write("Builtin commands: " + ", ".join(registry.names()) + "\n")
        return 0

    return builtin_help


def make_history(history: HistoryManager) -> Handler:
    """Build a ``history [-c] [N]`` builtin backed by *history*."""

    def builtin_history(args: list[str], _env: Environment, streams: Streams) -> int:
        if args and args[0] in ("-c", "--clear"):
            history.clear()
            streams.write("history cleared.\n")
            return 0
        if args and args[0].startswith("-"):
            msg = f"history: {args[0]}: invalid option"
            raise BuiltinError(msg, STATUS_USAGE)
        entries = history.entries
        start = 0
        if args:
            try:
                count = int(args[0])
            except ValueError:
                msg = f"history: {args[0]}: numeric argument required"
                raise BuiltinError(msg, STATUS_USAGE) from None
            start = max(len(entries) - count, 0)
        streams.write("".join(f"{i + 1:4d}  {entries[i]}\n" for i in range(start, len(entries))))
        return 0

    return builtin_history


def make_log(logger: Logger) -> Handler:
    """Build a ``log [LEVEL]`` builtin that prints *logger*'s entries."""

    def builtin_log(args: list[str], _env: Environment, streams: Streams) -> int:
        min_level = None
        if args:
            try:
                min_level = LogLevel[args[0].upper()]
            except KeyError:
                names = ", ".join(level.name for level in LogLevel)
                msg = f"log: {args[0]}: unknown level (choose from {names})"
                raise BuiltinError(msg, STATUS_USAGE) from None
        entries = logger.filter(min_level=min_level)
        streams.write("".join(f"{entry}\n" for entry in entries))
        return 0

    return builtin_log


def default_registry(
    *,
    history: HistoryManager | None = None,
    logger: Logger | None = None,
) -> BuiltinRegistry:
    """Return a registry holding the standard builtins.

    Args:
        history: If given, registers ``history`` backed by it.
        logger: If given, registers ``log`` backed by it.

    """
    registry = BuiltinRegistry()
    registry.register("cd", builtin_cd)
    registry.register("exit", builtin_exit)
    registry.register("export", builtin_export)
    registry.register("unset", builtin_unset)
    registry.register("pwd", builtin_pwd)
    registry.register("help", make_help(registry))
    if history is not None:
        registry.register("history", make_history(history))
    if logger is not None:
        registry.register("log", make_log(logger))
    return registry
