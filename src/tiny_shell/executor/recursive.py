"""Recursive strategy — evaluate the tree by structural recursion.

This is the textbook interpreter: one method per node type, each
calling back into ``evaluate()`` for its children.  Redirections are done
the way a C shell would do them *in the parent*: the process's own fd 0
or 1 is saved with ``dup()``, replaced with ``dup2()``, and put back in
a ``finally`` block.  Children simply inherit whatever fd 0/1 is at the
moment they are spawned.

Because it is so direct, this strategy is the reference the flattened
one is tested against.  Its cost is that the interpreter's own standard
descriptors are swapped underneath it while a redirect is active.
"""

from __future__ import annotations

from contextlib import ExitStack
from typing import TYPE_CHECKING

from tiny_shell.errors import RedirectIoError
from tiny_shell.executor.base import BaseExecutor, is_in_process, stage_streams, start_order
from tiny_shell.logging import LogLevel, LogSource
from tiny_shell.plumbing import STDERR, STDIN, STDOUT, Child, Finished, Streams
from tiny_shell.syntax import Command, Node, Pipeline, Redirect, unwrap_redirects

if TYPE_CHECKING:
    from tiny_shell.env import Environment


class RecursiveExecutor(BaseExecutor):
    """Evaluate by recursion, redirecting the process's own descriptors."""

    source = LogSource.RECURSIVE

    def _exec_root(self, node: Node, env: Environment, streams: Streams) -> int:
        """Install explicit root streams as fd 0/1/2 for the whole line."""
        with ExitStack() as stack:
            stack.enter_context(self.descriptors.redirected(streams.stdin, STDIN))
            stack.enter_context(self.descriptors.redirected(streams.stdout, STDOUT))
            stack.enter_context(self.descriptors.redirected(streams.stderr, STDERR))
            return self.evaluate(node, env, Streams())

    def _redirect(self, node: Redirect, env: Environment, streams: Streams) -> int:
        leaf, chain = unwrap_redirects(node)
        with ExitStack() as stack:
            try:
                self._apply(chain, env, stack)
            except RedirectIoError as exc:
                self.report(exc, streams)
                return exc.status
            return self.evaluate(leaf, env, streams)

    def _apply(self, chain: list[Redirect], env: Environment, stack: ExitStack) -> None:
        """Open each target and ``dup2`` it over fd 0 or 1, in written order."""
        for redirect in chain:
            fd = self.descriptors.open_redirect(redirect.kind, redirect.target, env.cwd)
            stack.callback(self.descriptors.close, fd)
            stack.enter_context(self.descriptors.redirected(fd, redirect.kind.fd))

    def _pipeline(self, node: Pipeline, env: Environment, streams: Streams) -> int:
        stages = node.stages
        in_process = tuple(is_in_process(stage) for stage in stages)
        pipes = self.open_pipes(len(stages) - 1)
        children: dict[int, Child] = {}
        try:
            self.close_builtin_inputs(in_process, pipes)
            for index in start_order(in_process):
                own = stage_streams(index, pipes, streams, in_process=in_process[index])
                self.logger.log(LogLevel.DEBUG, f"stage {index}: {stages[index]}", source=self.source)
                children[index] = self._start(stages[index], env, own, inline=in_process[index])
                self.release_stage_ends(index, pipes)
        finally:
            self.close_pipes(pipes)
            statuses = self.wait_all(children)
        return statuses[len(stages) - 1]

    def _start(self, stage: Node, env: Environment, own: Streams, *, inline: bool) -> Child:
        """Start one stage with its descriptors installed as fd 0/1."""
        leaf, chain = unwrap_redirects(stage)
        if not isinstance(leaf, Command):
            return self.fork_stage(stage, env, own)
        with ExitStack() as stack:
            stack.enter_context(self.descriptors.redirected(own.stdin, STDIN))
            stack.enter_context(self.descriptors.redirected(own.stdout, STDOUT))
            try:
                self._apply(chain, env, stack)
            except RedirectIoError as exc:
                self.report(exc, own)
                return Finished(exc.status)
            if inline:
                return Finished(self.run_command(leaf, env, Streams(in_pipeline=True)))
            return self.spawn_stage(leaf, env, Streams(in_pipeline=True))
