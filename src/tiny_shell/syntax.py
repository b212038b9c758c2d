"""Syntax tree — the parsed form of one command line.

Each node type is a frozen dataclass, so a tree cannot change once the
parser has built it.  Every node owns its children outright: no sharing,
no cycles, no parent pointers.

Binding strength, loosest (near the root) to tightest (near the leaves)::

    Sequence  <  And / Or  <  Pipeline  <  Redirect  <  Subshell  <  Command

``Sequence`` and ``Pipeline`` hold a flat tuple of two or more children
rather than a chain of binary nodes, so ``a | b | c | ... | z`` stays
shallow no matter how long it gets.

``Command.kind`` starts out as ``SIMPLE``; ``resolve_kinds()`` rewrites
it to ``BUILTIN`` or ``EXTERNAL`` before anything is executed.
"""

from __future__ import annotations

import shlex
from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TypeAlias

_MIN_CHILDREN = 2


class CommandKind(StrEnum):
    """How a command will be run."""

    SIMPLE = "simple"
    BUILTIN = "builtin"
    EXTERNAL = "external"


class RedirectKind(StrEnum):
    """The three supported redirection operators."""

    IN = "<"
    OUT = ">"
    APPEND = ">>"

    @property
    def fd(self) -> int:
        """Return the standard descriptor this redirection replaces."""
        return 0 if self is RedirectKind.IN else 1


@dataclass(frozen=True)
class Command:
    """A leaf: program or builtin name plus its arguments."""

    name: str
    args: tuple[str, ...] = ()
    kind: CommandKind = CommandKind.SIMPLE

    def __str__(self) -> str:
        """Render as shell text with quoting where needed."""
        return shlex.join([self.name, *self.args])


@dataclass(frozen=True)
class Pipeline:
    """Two or more stages, each stage's stdout feeding the next's stdin."""

    stages: tuple[Node, ...]

    def __post_init__(self) -> None:
        """Reject pipelines with fewer than two stages."""
        if len(self.stages) < _MIN_CHILDREN:
            msg = f"Pipeline needs at least {_MIN_CHILDREN} stages, got {len(self.stages)}"
            raise ValueError(msg)

    def __str__(self) -> str:
        """Render as ``a | b | c``."""
        return " | ".join(str(stage) for stage in self.stages)


@dataclass(frozen=True)
class Redirect:
    """Rebind the child's stdin or stdout to a file."""

    child: Node
    kind: RedirectKind
    target: str

    def __str__(self) -> str:
        """Render as ``child > target``."""
        return f"{self.child} {self.kind} {shlex.quote(self.target)}"


@dataclass(frozen=True)
class Sequence:
    """Two or more nodes run one after another (``;``)."""

    items: tuple[Node, ...]

    def __post_init__(self) -> None:
        """Reject sequences with fewer than two items."""
        if len(self.items) < _MIN_CHILDREN:
            msg = f"Sequence needs at least {_MIN_CHILDREN} items, got {len(self.items)}"
            raise ValueError(msg)

    def __str__(self) -> str:
        """Render as ``a; b; c``."""
        return "; ".join(str(item) for item in self.items)


@dataclass(frozen=True)
class And:
    """Run ``right`` only if ``left`` succeeds."""

    left: Node
    right: Node

    def __str__(self) -> str:
        """Render as ``left && right``."""
        return f"{self.left} && {self.right}"


@dataclass(frozen=True)
class Or:
    """Run ``right`` only if ``left`` fails."""

    left: Node
    right: Node

    def __str__(self) -> str:
        """Render as ``left || right``."""
        return f"{self.left} || {self.right}"


@dataclass(frozen=True)
class Subshell:
    """Evaluate ``child`` in an isolated copy of the environment."""

    child: Node

    def __str__(self) -> str:
        """Render as ``(child)``."""
        return f"({self.child})"


Node: TypeAlias = Command | Pipeline | Redirect | Sequence | And | Or | Subshell


def children(node: Node) -> tuple[Node, ...]:
    """Return the direct children of *node* in evaluation order."""
    match node:
        case Command():
            return ()
        case Pipeline(stages=stages):
            return stages
        case Sequence(items=items):
            return items
        case And(left=left, right=right) | Or(left=left, right=right):
            return (left, right)
        case Redirect(child=child) | Subshell(child=child):
            return (child,)


def walk(node: Node) -> Iterator[Node]:
    """Yield *node* and every descendant, depth first, pre-order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(children(current)))


def depth(node: Node) -> int:
    """Return the number of levels in the tree (a lone command is 1)."""
    kids = children(node)
    return 1 + max((depth(kid) for kid in kids), default=0)


def map_commands(node: Node, transform: Callable[[Command], Command]) -> Node:
    """Return a copy of *node* with every ``Command`` leaf transformed."""
    match node:
        case Command():
            return transform(node)
        case Pipeline(stages=stages):
            return Pipeline(tuple(map_commands(s, transform) for s in stages))
        case Sequence(items=items):
            return Sequence(tuple(map_commands(i, transform) for i in items))
        case And(left=left, right=right):
            return And(map_commands(left, transform), map_commands(right, transform))
        case Or(left=left, right=right):
            return Or(map_commands(left, transform), map_commands(right, transform))
        case Redirect(child=child):
            return replace(node, child=map_commands(child, transform))
        case Subshell(child=child):
            return Subshell(map_commands(child, transform))


def unwrap_redirects(node: Node) -> tuple[Node, list[Redirect]]:
    """Peel a chain of ``Redirect`` nodes off *node*.

    Returns:
        The innermost non-redirect node, and the redirects in the order
        they were written (innermost first, root last).  Applying them
        in that order lets the last-written one win.

    """
    chain: list[Redirect] = []
    while isinstance(node, Redirect):
        chain.append(node)
        node = node.child
    chain.reverse()
    return node, chain
