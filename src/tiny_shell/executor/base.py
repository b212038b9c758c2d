"""Shared evaluation — everything both execution strategies agree on.

The two strategies differ in exactly two places: how they build a
``Pipeline`` and how they apply a ``Redirect``.  Everything else
(commands, sequences, ``&&``/``||``, subshells, error reporting,
pipeline-stage bookkeeping) lives here so the two cannot drift apart.

Error conversion follows one rule: a ``CommandFailure`` becomes a status
and a ``tiny-shell: ...`` line on stderr right where it happens; a
``ResourceExhausted`` travels up to the nearest ``Sequence``;
``Terminate`` and ``Cancelled`` are never caught here.

Pipeline stages are started in a fixed order so no stage can block on a
reader that does not exist yet:

1. Every stage that is *not* an in-process builtin is started first —
   external programs are spawned, compound stages are forked.
2. Then the builtin stages run in-process, one after another.  A
   builtin never reads standard input, so the read end of its input
   pipe is closed before anything starts.

Only after every stage has started does the shell wait for any of them.
"""

from __future__ import annotations

import signal
from typing import TYPE_CHECKING, Protocol, TypeAlias

from tiny_shell.errors import (
    CommandFailure,
    CommandNotFound,
    ExecError,
    PermissionDenied,
    ResourceExhausted,
    SpawnFailed,
)
from tiny_shell.logging import Logger, LogLevel, LogSource
from tiny_shell.path_resolver import exists_but_not_executable, resolve
from tiny_shell.plumbing import (
    Child,
    ExternalChild,
    FdTable,
    Finished,
    Streams,
    fork_child,
    spawn_external,
)
from tiny_shell.signals import CancellationToken
from tiny_shell.syntax import (
    And,
    Command,
    CommandKind,
    Node,
    Or,
    Pipeline,
    Redirect,
    Sequence,
    Subshell,
    unwrap_redirects,
)

if TYPE_CHECKING:
    from tiny_shell.builtins import BuiltinRegistry
    from tiny_shell.env import Environment

STATUS_BROKEN_PIPE = 128 + signal.SIGPIPE

PipeEnds: TypeAlias = list[tuple[int, int]]


class Executor(Protocol):
    """The interface the driver uses to run a parsed line."""

    def exec(self, node: Node, env: Environment, streams: Streams | None = None) -> int:
        """Evaluate *node* and return its exit status."""
        ...  # pragma: no cover


def is_in_process(stage: Node) -> bool:
    """Return True if a pipeline *stage* is a (possibly redirected) builtin."""
    leaf, _redirects = unwrap_redirects(stage)
    return isinstance(leaf, Command) and leaf.kind is CommandKind.BUILTIN


def start_order(in_process: tuple[bool, ...]) -> list[int]:
    """Return stage indices: external/forked stages first, then builtins."""
    started = [i for i, inline in enumerate(in_process) if not inline]
    return started + [i for i, inline in enumerate(in_process) if inline]


def stage_streams(index: int, pipes: PipeEnds, outer: Streams, *, in_process: bool) -> Streams:
    """Return the descriptors pipeline stage *index* should use.

    The first stage reads the pipeline's own input and the last writes
    its own output; every other end is a pipe.  An in-process stage
    keeps the outer input because its pipe's read end is already closed.
    """
    stdin = outer.stdin if index == 0 or in_process else pipes[index - 1][0]
    stdout = outer.stdout if index == len(pipes) else pipes[index][1]
    return Streams(stdin=stdin, stdout=stdout, stderr=outer.stderr, in_pipeline=True)


class BaseExecutor:
    """Evaluation shared by the recursive and flattened strategies.

    Subclasses implement ``_pipeline()`` and ``_redirect()``.
    """

    source = LogSource.EXECUTOR

    def __init__(
        self,
        registry: BuiltinRegistry,
        *,
        logger: Logger | None = None,
        token: CancellationToken | None = None,
        descriptors: FdTable | None = None,
    ) -> None:
        """Create an executor.

        Args:
            registry: Builtins, also used to resolve command kinds.
            logger: Event log (a private one is created if omitted).
            token: Cancellation token checked before every spawn.
            descriptors: Descriptor ledger (a private one if omitted).

        """
        self.registry = registry
        self.logger = logger if logger is not None else Logger()
        self.token = token if token is not None else CancellationToken()
        self.descriptors = descriptors if descriptors is not None else FdTable()

    def exec(self, node: Node, env: Environment, streams: Streams | None = None) -> int:
        """Evaluate *node* against *env* and return its exit status.

        Args:
            node: A parsed command line.
            env: The environment to read and mutate.
            streams: Standard descriptors for the whole line; defaults
                to the process's own 0/1/2.

        Raises:
            ExecError: For failures that escape every ``Sequence``.
            Terminate: When ``exit`` runs.
            Cancelled: When the cancellation token fires.

        """
        resolved = self.registry.resolve_kinds(node)
        status = self._exec_root(resolved, env, streams or Streams())
        self.logger.log(LogLevel.INFO, f"finished '{node}' with status {status}", source=self.source)
        return status

    def _exec_root(self, node: Node, env: Environment, streams: Streams) -> int:
        return self.evaluate(node, env, streams)

    # -- Dispatch ---------------------------------------------------------

    def evaluate(self, node: Node, env: Environment, streams: Streams) -> int:
        """Evaluate any node; the one place every strategy dispatches from."""
        match node:
            case Command():
                return self.run_command(node, env, streams)
            case Sequence(items=items):
                return self._sequence(items, env, streams)
            case And(left=left, right=right):
                status = self.evaluate(left, env, streams)
                return self.evaluate(right, env, streams) if status == 0 else status
            case Or(left=left, right=right):
                status = self.evaluate(left, env, streams)
                return status if status == 0 else self.evaluate(right, env, streams)
            case Subshell(child=child):
                return self.evaluate(child, env.copy(), streams)
            case Pipeline():
                return self._pipeline(node, env, streams)
            case Redirect():
                return self._redirect(node, env, streams)

    def _sequence(self, items: tuple[Node, ...], env: Environment, streams: Streams) -> int:
        status = 0
        for item in items:
            try:
                status = self.evaluate(item, env, streams)
            except ExecError as exc:
                self.report(exc, streams)
                status = exc.status
        return status

    def _pipeline(self, node: Pipeline, env: Environment, streams: Streams) -> int:
        raise NotImplementedError

    def _redirect(self, node: Redirect, env: Environment, streams: Streams) -> int:
        raise NotImplementedError

    # -- Commands ---------------------------------------------------------

    def run_command(self, command: Command, env: Environment, streams: Streams) -> int:
        """Run a command to completion, converting local failures to a status."""
        try:
            if command.kind is CommandKind.BUILTIN:
                return self.run_builtin(command, env, streams)
            return self.spawn(command, env, streams).wait()
        except CommandFailure as exc:
            self.report(exc, streams)
            return exc.status

    def run_builtin(self, command: Command, env: Environment, streams: Streams) -> int:
        """Invoke a builtin handler with *streams*.

        Raises:
            CommandNotFound: If the builtin was unregistered after parsing.
            BuiltinError: As raised by the handler.

        """
        handler = self.registry.lookup(command.name)
        if handler is None:
            raise CommandNotFound(command.name)
        self.token.check()
        try:
            return handler(list(command.args), env, streams) & 0xFF
        except BrokenPipeError:
            return STATUS_BROKEN_PIPE

    def spawn(self, command: Command, env: Environment, streams: Streams) -> ExternalChild:
        """Resolve and start an external program without waiting for it.

        Raises:
            CommandNotFound: If nothing on PATH matches.
            PermissionDenied: If a path-like name exists but is not executable.
            SpawnFailed: If the OS refuses to start it.

        """
        path = resolve(command.name, env.search_path(), env.cwd)
        if path is None:
            if exists_but_not_executable(command.name, env.cwd):
                raise PermissionDenied(command.name)
            raise CommandNotFound(command.name)
        self.token.check()
        child = spawn_external(path, command.name, list(command.args), env, streams)
        self.logger.log(LogLevel.DEBUG, f"spawned {path} (pid {child.pid})", source=self.source)
        return child

    def report(self, exc: ExecError, streams: Streams) -> None:
        """Write *exc* to stderr and record it in the log."""
        level = LogLevel.ERROR if isinstance(exc, ResourceExhausted | SpawnFailed) else LogLevel.WARNING
        self.logger.log(level, str(exc), source=self.source)
        streams.error(f"tiny-shell: {exc}\n")

    # -- Pipeline stages --------------------------------------------------

    def open_pipes(self, count: int) -> PipeEnds:
        """Create *count* pipes, closing any already made if one fails.

        Raises:
            PipeCreationFailed: If the OS runs out of descriptors.

        """
        pipes: PipeEnds = []
        try:
            for _ in range(count):
                pipes.append(self.descriptors.pipe())
        except ResourceExhausted:
            self.close_pipes(pipes)
            raise
        return pipes

    def close_pipes(self, pipes: PipeEnds) -> None:
        """Close every end in *pipes* the shell still holds."""
        for read_end, write_end in pipes:
            self.descriptors.close(read_end)
            self.descriptors.close(write_end)

    def release_stage_ends(self, index: int, pipes: PipeEnds) -> None:
        """Close the shell's copies of the pipe ends stage *index* was given."""
        if index > 0:
            self.descriptors.close(pipes[index - 1][0])
        if index < len(pipes):
            self.descriptors.close(pipes[index][1])

    def close_builtin_inputs(self, in_process: tuple[bool, ...], pipes: PipeEnds) -> None:
        """Close the read end feeding each in-process stage."""
        for index, inline in enumerate(in_process):
            if inline and index > 0:
                self.descriptors.close(pipes[index - 1][0])

    def fork_stage(self, stage: Node, env: Environment, streams: Streams) -> Child:
        """Evaluate a compound *stage* in a forked copy of the interpreter.

        The fork is a process boundary: ``exit`` inside the stage ends
        only the child, so ``(exit 4) | true`` has status 0.  A builtin
        stage runs in-process instead, and ``exit 6 | cat`` ends the
        interpreter just as ``exit 6`` does.
        """
        self.token.check()
        child = fork_child(
            lambda: self.evaluate(stage, env, Streams(in_pipeline=True)),
            streams,
            self.descriptors,
            label=str(stage),
        )
        self.logger.log(LogLevel.DEBUG, f"forked '{stage}' (pid {child.pid})", source=self.source)
        return child

    def spawn_stage(self, command: Command, env: Environment, streams: Streams) -> Child:
        """Start an external stage, or record its failure as a finished stage."""
        try:
            return self.spawn(command, env, streams)
        except CommandFailure as exc:
            self.report(exc, streams)
            return Finished(exc.status)

    def wait_all(self, children: dict[int, Child]) -> dict[int, int]:
        """Wait for every started stage, in index order.

        Every child is reaped even if waiting for an earlier one raises;
        the first such exception is re-raised once all are done.
        """
        statuses: dict[int, int] = {}
        failure: BaseException | None = None
        for index in sorted(children):
            try:
                statuses[index] = children[index].wait()
            except BaseException as exc:  # noqa: BLE001
                failure = failure or exc
        if failure is not None:
            raise failure
        return statuses
