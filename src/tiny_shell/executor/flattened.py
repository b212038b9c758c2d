"""Flattened strategy — pipelines and redirects as a linear program.

Instead of recursing through ``Pipeline`` and ``Redirect`` nodes, this
strategy *compiles* such a subtree into a flat list of instructions and
runs it on a tiny machine with two descriptor stacks: the pending
standard input and the pending standard output.

    ls > out.txt          OpenRedirect(>, out.txt)
                          Run(ls)
                          CloseRedirect(>)

    a | b                 BeginPipeline(2)
                          BeginStage(0)  Run(a)  EndStage(0)
                          BeginStage(1)  Run(b)  EndStage(1)
                          EndPipeline

A command always runs with the descriptors on top of the stacks, so
nesting works without touching the process's own fd 0/1 at all.  That
makes this strategy safe to embed (the web front end captures output by
handing it two temporary files) and it is the default.

Design choices:
    - **Relative jumps** — a failed ``OpenRedirect`` skips forward past
      its matching ``CloseRedirect``, so compiled sub-programs can be
      concatenated without patching addresses.
    - **Stages in start order** — stage bodies are emitted in the order
      they must start (external and forked stages, then builtins), so
      running the program front to back can never deadlock.
    - **One cleanup path** — whatever the machine opened or started is
      closed and waited for in a single ``finally`` block.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeAlias

from tiny_shell.errors import RedirectIoError
from tiny_shell.executor.base import (
    BaseExecutor,
    PipeEnds,
    is_in_process,
    stage_streams,
    start_order,
)
from tiny_shell.logging import LogLevel, LogSource
from tiny_shell.plumbing import Child, Finished, Streams
from tiny_shell.syntax import (
    Command,
    CommandKind,
    Node,
    Pipeline,
    Redirect,
    RedirectKind,
    unwrap_redirects,
)

if TYPE_CHECKING:
    from tiny_shell.env import Environment


# -- Instructions ----------------------------------------------------------


@dataclass(frozen=True)
class OpenRedirect:
    """Open a target and push it; on failure jump ``skip`` forward."""

    kind: RedirectKind
    target: str
    skip: int


@dataclass(frozen=True)
class CloseRedirect:
    """Pop and close the innermost open redirect of this direction."""

    kind: RedirectKind


@dataclass(frozen=True)
class BeginPipeline:
    """Create ``size - 1`` pipes; ``in_process`` marks builtin stages."""

    size: int
    in_process: tuple[bool, ...]


@dataclass(frozen=True)
class BeginStage:
    """Push stage ``index``'s descriptors."""

    index: int


@dataclass(frozen=True)
class EndStage:
    """Pop stage ``index``'s descriptors and release its pipe ends."""

    index: int


@dataclass(frozen=True)
class EndPipeline:
    """Wait for every stage; the last stage's status is the result."""


@dataclass(frozen=True)
class Run:
    """Evaluate a node with the descriptors on top of the stacks."""

    node: Node


Instruction: TypeAlias = OpenRedirect | CloseRedirect | BeginPipeline | BeginStage | EndStage | EndPipeline | Run


def compile_node(node: Node) -> list[Instruction]:
    """Compile *node* into a flat instruction list."""
    match node:
        case Redirect():
            return _compile_redirects(node)
        case Pipeline():
            return _compile_pipeline(node)
        case _:
            return [Run(node)]


def _compile_redirects(node: Redirect) -> list[Instruction]:
    leaf, chain = unwrap_redirects(node)
    body = compile_node(leaf)
    count = len(chain)
    # Opens in written order (the root ends up on top), closes in reverse.
    opens: list[Instruction] = [
        OpenRedirect(r.kind, r.target, skip=2 * count + len(body) - 2 * i) for i, r in enumerate(chain)
    ]
    closes: list[Instruction] = [CloseRedirect(r.kind) for r in reversed(chain)]
    return [*opens, *body, *closes]


def _compile_pipeline(node: Pipeline) -> list[Instruction]:
    in_process = tuple(is_in_process(stage) for stage in node.stages)
    program: list[Instruction] = [BeginPipeline(len(node.stages), in_process)]
    for index in start_order(in_process):
        stage = node.stages[index]
        leaf, _chain = unwrap_redirects(stage)
        body = compile_node(stage) if isinstance(leaf, Command) else [Run(stage)]
        program.extend([BeginStage(index), *body, EndStage(index)])
    program.append(EndPipeline())
    return program


# -- Machine ---------------------------------------------------------------


@dataclass
class _Frame:
    """State of the pipeline currently being built."""

    pipes: PipeEnds
    in_process: tuple[bool, ...]
    outer: Streams
    children: dict[int, Child] = field(default_factory=dict)
    stage: int | None = None


class _Machine:
    """Runs one compiled program; one instance per ``Pipeline``/``Redirect`` subtree."""

    def __init__(self, executor: FlattenedExecutor, env: Environment, streams: Streams) -> None:
        self._executor = executor
        self._fds = executor.descriptors
        self._env = env
        self._stdin = [streams.stdin]
        self._stdout = [streams.stdout]
        self._stderr = streams.stderr
        self._in_pipeline = streams.in_pipeline
        self._redirects: list[int] = []
        self._frame: _Frame | None = None
        self._status = 0

    def run(self, program: list[Instruction]) -> int:
        pc = 0
        try:
            while pc < len(program):
                pc = self._step(program[pc], pc)
        finally:
            self._cleanup()
        return self._status

    def _streams(self) -> Streams:
        in_pipeline = self._in_pipeline or (self._frame is not None and self._frame.stage is not None)
        return Streams(self._stdin[-1], self._stdout[-1], self._stderr, in_pipeline=in_pipeline)

    def _stack(self, kind: RedirectKind) -> list[int]:
        return self._stdin if kind is RedirectKind.IN else self._stdout

    @property
    def frame(self) -> _Frame:
        if self._frame is None:
            msg = "stage instruction outside a pipeline"
            raise RuntimeError(msg)
        return self._frame

    def _step(self, instruction: Instruction, pc: int) -> int:  # noqa: C901
        """Execute one instruction and return the next program counter."""
        match instruction:
            case OpenRedirect(kind=kind, target=target, skip=skip):
                try:
                    fd = self._fds.open_redirect(kind, target, self._env.cwd)
                except RedirectIoError as exc:
                    self._executor.report(exc, self._streams())
                    self._status = exc.status
                    return pc + skip
                self._redirects.append(fd)
                self._stack(kind).append(fd)
            case CloseRedirect(kind=kind):
                fd = self._stack(kind).pop()
                self._redirects.remove(fd)
                self._fds.close(fd)
            case BeginPipeline(size=size, in_process=in_process):
                pipes = self._executor.open_pipes(size - 1)
                self._frame = _Frame(pipes, in_process, self._streams())
                self._executor.close_builtin_inputs(in_process, pipes)
            case BeginStage(index=index):
                frame = self.frame
                own = stage_streams(index, frame.pipes, frame.outer, in_process=frame.in_process[index])
                frame.stage = index
                self._stdin.append(own.stdin)
                self._stdout.append(own.stdout)
                self._executor.logger.log(LogLevel.DEBUG, f"stage {index} begins", source=self._executor.source)
            case EndStage(index=index):
                frame = self.frame
                frame.children.setdefault(index, Finished(self._status))
                frame.stage = None
                self._stdin.pop()
                self._stdout.pop()
                self._executor.release_stage_ends(index, frame.pipes)
            case EndPipeline():
                frame = self.frame
                self._frame = None
                self._executor.close_pipes(frame.pipes)
                statuses = self._executor.wait_all(frame.children)
                self._status = statuses[len(frame.in_process) - 1]
            case Run(node=node):
                self._run(node)
        return pc + 1

    def _run(self, node: Node) -> None:
        streams = self._streams()
        frame = self._frame
        if frame is None or frame.stage is None:
            self._status = self._executor.evaluate(node, self._env, streams)
            return
        if not isinstance(node, Command):
            frame.children[frame.stage] = self._executor.fork_stage(node, self._env, streams)
        elif node.kind is CommandKind.BUILTIN:
            self._status = self._executor.run_command(node, self._env, streams)
            frame.children[frame.stage] = Finished(self._status)
        else:
            frame.children[frame.stage] = self._executor.spawn_stage(node, self._env, streams)

    def _cleanup(self) -> None:
        """Close whatever is still open and reap whatever was started."""
        for fd in self._redirects:
            self._fds.close(fd)
        self._redirects.clear()
        if self._frame is not None:
            frame, self._frame = self._frame, None
            self._executor.close_pipes(frame.pipes)
            self._executor.wait_all(frame.children)


class FlattenedExecutor(BaseExecutor):
    """Evaluate pipelines and redirects through compiled instruction lists."""

    source = LogSource.FLATTENED

    def _pipeline(self, node: Pipeline, env: Environment, streams: Streams) -> int:
        return _Machine(self, env, streams).run(compile_node(node))

    def _redirect(self, node: Redirect, env: Environment, streams: Streams) -> int:
        return _Machine(self, env, streams).run(compile_node(node))
