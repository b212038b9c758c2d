"""Executors — the two interchangeable ways of running a syntax tree.

Re-exports public symbols so callers can write::

    from tiny_shell.executor import FlattenedExecutor, make_executor
"""

from tiny_shell.builtins import BuiltinRegistry
from tiny_shell.config import ExecutorType
from tiny_shell.executor.base import BaseExecutor, Executor
from tiny_shell.executor.flattened import FlattenedExecutor, compile_node
from tiny_shell.executor.recursive import RecursiveExecutor
from tiny_shell.logging import Logger
from tiny_shell.plumbing import FdTable
from tiny_shell.signals import CancellationToken

_STRATEGIES: dict[ExecutorType, type[BaseExecutor]] = {
    ExecutorType.FLATTEN: FlattenedExecutor,
    ExecutorType.RECURSIVE: RecursiveExecutor,
}


def make_executor(
    kind: ExecutorType,
    registry: BuiltinRegistry,
    *,
    logger: Logger | None = None,
    token: CancellationToken | None = None,
    descriptors: FdTable | None = None,
) -> BaseExecutor:
    """Build the executor for *kind* sharing the given collaborators."""
    return _STRATEGIES[kind](registry, logger=logger, token=token, descriptors=descriptors)


__all__ = [
    "BaseExecutor",
    "Executor",
    "FlattenedExecutor",
    "RecursiveExecutor",
    "compile_node",
    "make_executor",
]
