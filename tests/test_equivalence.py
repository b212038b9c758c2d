"""Cross-checks: the flattened executor against the recursive reference.

Both strategies run the same tree in the same directory, with stdin
from ``/dev/null`` and stdout into a file; the statuses and the stdout
bytes must match exactly.  Trees come from two sources: hand-written
lines covering each construct, and seeded random trees up to depth 6.

Random trees only ever *read* ``input.txt`` and only ever *write*
``r1``/``r2``, so concurrent pipeline stages cannot race on a file that
feeds standard output.
"""

import os
import random
from pathlib import Path

import pytest

from tiny_shell.builtins import default_registry
from tiny_shell.env import Environment
from tiny_shell.executor import FlattenedExecutor, RecursiveExecutor
from tiny_shell.executor.base import BaseExecutor
from tiny_shell.parser import parse_line
from tiny_shell.plumbing import Streams
from tiny_shell.syntax import (
    And,
    Command,
    Node,
    Or,
    Pipeline,
    Redirect,
    RedirectKind,
    Sequence,
    Subshell,
    depth,
)

MAX_DEPTH = 6

_LEAVES = (
    Command("echo", ("alpha",)),
    Command("echo", ("beta", "gamma")),
    Command("true"),
    Command("false"),
    Command("pwd"),
    Command("cat"),
    Command("tr", ("a-z", "A-Z")),
    Command("wc", ("-l",)),
    Command("sort"),
)

_LINES = [
    "echo a; echo b",
    "true && echo yes || echo no",
    "false && echo yes || echo no",
    "(echo a; false) || echo recovered",
    "echo abc | tr a-z A-Z",
    "(echo x; echo y) | sort -r | head -n 1",
    "pwd | cat",
    "(cd / && pwd); pwd",
    "echo out > f; cat f",
    "echo one > f; echo two >> f; cat < f",
    "(echo a | tr a b > f) && cat f | tr b c",
    "no_such_command_xyz; echo after",
    "cat < missing || echo fallback",
    "((echo deep | cat) | (cat | cat)) > f; cat f",
    "false | true && echo last-stage-wins",
    "echo data > a > b; cat a b",
    "cat < input.txt | sort | tr a-z A-Z",
    "export V=1 | cat; sh -c 'echo ${V:-unset}'",
]


def _random_tree(rng: random.Random, levels: int) -> Node:
    """Build a random tree no deeper than *levels* levels."""
    if levels <= 1 or rng.random() < 0.25:
        return rng.choice(_LEAVES)
    below = levels - 1
    match rng.choice(["sequence", "and", "or", "pipeline", "redirect", "subshell"]):
        case "sequence":
            return Sequence(tuple(_random_tree(rng, below) for _ in range(rng.randint(2, 3))))
        case "and":
            return And(_random_tree(rng, below), _random_tree(rng, below))
        case "or":
            return Or(_random_tree(rng, below), _random_tree(rng, below))
        case "pipeline":
            return Pipeline(tuple(_random_tree(rng, below) for _ in range(rng.randint(2, 3))))
        case "redirect":
            if rng.random() < 0.3:
                return Redirect(_random_tree(rng, below), RedirectKind.IN, "input.txt")
            kind = rng.choice([RedirectKind.OUT, RedirectKind.APPEND])
            return Redirect(_random_tree(rng, below), kind, rng.choice(["r1", "r2"]))
        case _:
            return Subshell(_random_tree(rng, below))


def _capture(executor: BaseExecutor, node: Node, workdir: Path) -> tuple[int, bytes]:
    """Run *node* in *workdir*; return its status and stdout bytes."""
    out_path = workdir.parent / f"{workdir.name}.{type(executor).__name__}.out"
    stdin = os.open(os.devnull, os.O_RDONLY)
    stdout = os.open(out_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
    stderr = os.open(os.devnull, os.O_WRONLY)
    try:
        env = Environment({"PATH": "/usr/bin:/bin", "HOME": "/"}, cwd=str(workdir))
        status = executor.exec(node, env, Streams(stdin, stdout, stderr))
    finally:
        for fd in (stdin, stdout, stderr):
            os.close(fd)
    assert executor.descriptors.open_fds == frozenset()
    return status, out_path.read_bytes()


def _workdir(tmp_path: Path) -> Path:
    """Create a fresh working directory holding ``input.txt``."""
    workdir = tmp_path / "work"
    workdir.mkdir(exist_ok=True)
    for stale in workdir.iterdir():
        stale.unlink()
    (workdir / "input.txt").write_text("delta\nalpha\ncharlie\n")
    return workdir


def _compare(node: Node, tmp_path: Path) -> None:
    """Assert both strategies agree on *node*."""
    registry = default_registry()
    expected = _capture(RecursiveExecutor(registry), node, _workdir(tmp_path))
    actual = _capture(FlattenedExecutor(registry), node, _workdir(tmp_path))
    assert actual == expected, str(node)


class TestHandWrittenLines:
    """Each construct, written the way a user would type it."""

    @pytest.mark.parametrize("line", _LINES)
    def test_same_result(self, line: str, tmp_path: Path) -> None:
        """Both strategies give the same status and output."""
        node = parse_line(line)
        assert node is not None
        _compare(node, tmp_path)


class TestRandomTrees:
    """Seeded random trees exercising arbitrary nesting."""

    def test_generator_respects_depth(self) -> None:
        """Generated trees never exceed the depth limit."""
        rng = random.Random(0)
        assert max(depth(_random_tree(rng, MAX_DEPTH)) for _ in range(200)) <= MAX_DEPTH

    @pytest.mark.parametrize("seed", range(40))
    def test_same_result(self, seed: int, tmp_path: Path) -> None:
        """Both strategies give the same status and output."""
        _compare(_random_tree(random.Random(seed), MAX_DEPTH), tmp_path)
