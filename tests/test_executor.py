"""Tests for the two execution strategies.

Every behavioural test runs once per strategy through the ``kind``
fixture: the flattened executor must be observably identical to the
recursive one.  Output is captured at the descriptor level (``capfd``)
because external programs write straight to fd 1.
"""

import os
import signal
import threading
from pathlib import Path

import pytest

from tiny_shell.builtins import default_registry
from tiny_shell.config import ExecutorType
from tiny_shell.env import Environment
from tiny_shell.errors import Cancelled, PipeCreationFailed, Terminate
from tiny_shell.executor import BaseExecutor, FlattenedExecutor, make_executor
from tiny_shell.logging import Logger, LogLevel, LogSource
from tiny_shell.parser import parse_line
from tiny_shell.plumbing import FdTable, Streams
from tiny_shell.signals import CancellationToken, interrupts_cancel
from tiny_shell.syntax import Command, Pipeline, Sequence


@pytest.fixture(params=list(ExecutorType), ids=str)
def kind(request: pytest.FixtureRequest) -> ExecutorType:
    """Run the test once per execution strategy."""
    return request.param


def _env(cwd: Path) -> Environment:
    """Return an environment rooted at *cwd* with a standard PATH."""
    return Environment({"PATH": "/usr/bin:/bin", "HOME": "/"}, cwd=str(cwd))


def _executor(kind: ExecutorType, **kwargs: object) -> BaseExecutor:
    """Build a *kind* executor with the default builtins."""
    return make_executor(kind, default_registry(), **kwargs)  # type: ignore[arg-type]


def _run(kind: ExecutorType, text: str, cwd: Path) -> int:
    """Parse *text* and run it in *cwd*."""
    node = parse_line(text)
    assert node is not None
    return _executor(kind).exec(node, _env(cwd))


_SOURCES = {ExecutorType.FLATTEN: LogSource.FLATTENED, ExecutorType.RECURSIVE: LogSource.RECURSIVE}


def _open_fds() -> set[str]:
    """Return the process's open descriptor numbers."""
    return set(os.listdir("/proc/self/fd"))


# -- Cycle 1: Sequencing and conditionals --------------------------------------


class TestControlFlow:
    """Verify ;, &&, and ||."""

    def test_sequence_continues_after_failure(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """A failing item does not stop the sequence; the last status wins."""
        assert _run(kind, "false; echo ok", tmp_path) == 0
        assert capfd.readouterr().out == "ok\n"

    def test_and_short_circuits(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """&& skips the right side after a failure and keeps the failure."""
        assert _run(kind, "false && echo no", tmp_path) == 1
        assert capfd.readouterr().out == ""

    def test_or_short_circuits(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """|| skips the right side after a success."""
        assert _run(kind, "true || echo no", tmp_path) == 0
        assert capfd.readouterr().out == ""

    def test_or_runs_fallback(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """|| runs the right side after a failure."""
        assert _run(kind, "false || echo fallback", tmp_path) == 0
        assert capfd.readouterr().out == "fallback\n"

    def test_chained_conditionals(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """a && b || c groups left to right."""
        _run(kind, "false && echo yes || echo no", tmp_path)
        assert capfd.readouterr().out == "no\n"


# -- Cycle 2: Commands ---------------------------------------------------------


class TestCommands:
    """Verify command resolution and statuses."""

    def test_external_arguments(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """Arguments reach the program unchanged."""
        _run(kind, "echo 'a  b' c", tmp_path)
        assert capfd.readouterr().out == "a  b c\n"

    def test_external_status(self, kind: ExecutorType, tmp_path: Path) -> None:
        """A program's exit code becomes the status."""
        assert _run(kind, "sh -c 'exit 7'", tmp_path) == 7

    def test_signal_status(self, kind: ExecutorType, tmp_path: Path) -> None:
        """A program killed by SIGTERM reports 143."""
        assert _run(kind, "sh -c 'kill -TERM $$'", tmp_path) == 143

    def test_not_found(self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]) -> None:
        """An unknown command is 127 with a message, and the next one runs."""
        assert _run(kind, "no_such_command_xyz; echo after", tmp_path) == 0
        captured = capfd.readouterr()
        assert captured.out == "after\n"
        assert "no_such_command_xyz: command not found" in captured.err

    def test_not_found_status(self, kind: ExecutorType, tmp_path: Path) -> None:
        """The status of an unknown command alone is 127."""
        assert _run(kind, "no_such_command_xyz", tmp_path) == 127

    def test_not_executable(self, kind: ExecutorType, tmp_path: Path) -> None:
        """A path to a non-executable file is 126."""
        script = tmp_path / "script"
        script.write_text("#!/bin/sh\n")
        script.chmod(0o644)
        assert _run(kind, "./script", tmp_path) == 126

    def test_runs_in_environment_directory(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """Children start in the environment's cwd, not the process's."""
        _run(kind, "sh -c pwd", tmp_path)
        assert capfd.readouterr().out == f"{tmp_path}\n"

    def test_export_reaches_children(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """A variable exported by a builtin is visible to later programs."""
        _run(kind, "export GREETING=hello; sh -c 'echo $GREETING'", tmp_path)
        assert capfd.readouterr().out == "hello\n"

    def test_builtin_error_status(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """A failing builtin reports its message and status."""
        assert _run(kind, "cd missing", tmp_path) == 1
        assert "cd: missing: No such file or directory" in capfd.readouterr().err


# -- Cycle 3: Redirects --------------------------------------------------------


class TestRedirects:
    """Verify <, >, and >>."""

    def test_output_to_file(self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]) -> None:
        """> sends the output to the file and not to the terminal."""
        _run(kind, "echo hi > out.txt", tmp_path)
        assert (tmp_path / "out.txt").read_text() == "hi\n"
        assert capfd.readouterr().out == ""

    def test_append(self, kind: ExecutorType, tmp_path: Path) -> None:
        """>> adds to the end of the file."""
        _run(kind, "echo one > log; echo two >> log", tmp_path)
        assert (tmp_path / "log").read_text() == "one\ntwo\n"

    def test_input_from_file(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """< feeds the file to the program's stdin."""
        (tmp_path / "in.txt").write_text("b\na\n")
        _run(kind, "sort < in.txt", tmp_path)
        assert capfd.readouterr().out == "a\nb\n"

    def test_last_output_redirect_wins(self, kind: ExecutorType, tmp_path: Path) -> None:
        """cmd > a > b writes only to b; a is created but stays empty."""
        _run(kind, "echo data > a > b", tmp_path)
        assert (tmp_path / "a").read_text() == ""
        assert (tmp_path / "b").read_text() == "data\n"

    def test_missing_input(self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]) -> None:
        """< on a missing file is status 1 and the command does not run."""
        assert _run(kind, "echo never < missing", tmp_path) == 1
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "missing" in captured.err

    def test_failed_redirect_then_next(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """A redirect error only fails its own command."""
        assert _run(kind, "cat < missing || echo recovered", tmp_path) == 0
        assert capfd.readouterr().out == "recovered\n"

    def test_builtin_output_redirect(self, kind: ExecutorType, tmp_path: Path) -> None:
        """A builtin's output follows the redirect too."""
        _run(kind, "pwd > where", tmp_path)
        assert (tmp_path / "where").read_text() == f"{tmp_path}\n"

    def test_subshell_redirect(self, kind: ExecutorType, tmp_path: Path) -> None:
        """A redirect around a subshell captures everything inside it."""
        _run(kind, "(echo a; echo b) > both", tmp_path)
        assert (tmp_path / "both").read_text() == "a\nb\n"

    def test_redirect_does_not_leak(self, kind: ExecutorType, tmp_path: Path) -> None:
        """After a redirect, the ledger and the process hold nothing extra."""
        before = _open_fds()
        executor = _executor(kind)
        node = parse_line("echo x > f; cat < f > g; echo y >> f")
        assert node is not None
        executor.exec(node, _env(tmp_path))
        assert executor.descriptors.open_fds == frozenset()
        assert _open_fds() == before


# -- Cycle 4: Pipelines --------------------------------------------------------


class TestPipelines:
    """Verify pipe wiring, statuses, and cleanup."""

    def test_two_stages(self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]) -> None:
        """echo hi | wc -c counts three bytes."""
        assert _run(kind, "echo hi | wc -c", tmp_path) == 0
        assert capfd.readouterr().out.strip() == "3"

    def test_three_stages(self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]) -> None:
        """Data flows through every stage in order."""
        _run(kind, "printf 'b\\na\\nc\\n' | sort | head -n 2", tmp_path)
        assert capfd.readouterr().out == "a\nb\n"

    def test_status_is_last_stage(self, kind: ExecutorType, tmp_path: Path) -> None:
        """Only the last stage decides the pipeline's status."""
        assert _run(kind, "false | true", tmp_path) == 0
        assert _run(kind, "true | false", tmp_path) == 1

    def test_pipe_count(self, kind: ExecutorType, tmp_path: Path) -> None:
        """Three stages need exactly two pipes, all closed afterwards."""
        executor = _executor(kind)
        node = parse_line("true | true | true")
        assert node is not None
        executor.exec(node, _env(tmp_path))
        assert executor.descriptors.pipes_created == 2
        assert executor.descriptors.open_fds == frozenset()

    def test_no_leak_over_many_runs(self, kind: ExecutorType, tmp_path: Path) -> None:
        """A thousand pipelines leave the descriptor table as it was."""
        executor = _executor(kind)
        node = parse_line("true | true | true")
        assert node is not None
        env = _env(tmp_path)
        before = _open_fds()
        for _ in range(1000):
            assert executor.exec(node, env) == 0
        assert _open_fds() == before
        assert executor.descriptors.open_fds == frozenset()
        assert executor.descriptors.pipes_created == 2000

    def test_builtin_stage(self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]) -> None:
        """A builtin stage writes into the pipe like a program would."""
        _run(kind, "pwd | cat", tmp_path)
        assert capfd.readouterr().out == f"{tmp_path}\n"

    def test_builtin_last_stage(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """A builtin as the last stage still lets the others finish."""
        assert _run(kind, "echo ignored | pwd", tmp_path) == 0
        assert capfd.readouterr().out == f"{tmp_path}\n"

    def test_subshell_stage(self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]) -> None:
        """A compound stage is forked and feeds the next stage."""
        _run(kind, "(echo a; echo b) | wc -l", tmp_path)
        assert capfd.readouterr().out.strip() == "2"

    def test_subshell_last_stage(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """A forked last stage reads the pipe and decides the status."""
        assert _run(kind, "echo x | (cat; exit 4)", tmp_path) == 4
        assert capfd.readouterr().out == "x\n"

    def test_stage_redirect(self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]) -> None:
        """A redirect on a stage overrides that stage's pipe end."""
        _run(kind, "echo hi > f | cat", tmp_path)
        assert (tmp_path / "f").read_text() == "hi\n"
        assert capfd.readouterr().out == ""

    def test_stage_input_redirect(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """< on the first stage feeds the pipeline."""
        (tmp_path / "words").write_text("b\na\n")
        _run(kind, "cat < words | sort", tmp_path)
        assert capfd.readouterr().out == "a\nb\n"

    def test_failed_stage_redirect(self, kind: ExecutorType, tmp_path: Path) -> None:
        """A stage whose redirect fails reports 1 and the others still run."""
        assert _run(kind, "echo x | cat < missing", tmp_path) == 1

    def test_missing_stage(self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]) -> None:
        """An unknown program in the middle does not hang the pipeline."""
        assert _run(kind, "echo x | no_such_command_xyz | cat", tmp_path) == 0
        assert "command not found" in capfd.readouterr().err

    def test_pipe_failure_is_reported(
        self,
        kind: ExecutorType,
        tmp_path: Path,
        capfd: pytest.CaptureFixture[str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Running out of pipes fails that pipeline only."""
        executor = _executor(kind)

        def _fail() -> tuple[int, int]:
            raise PipeCreationFailed(OSError(24, "Too many open files"))

        monkeypatch.setattr(executor.descriptors, "pipe", _fail)
        node = parse_line("true | true; echo after")
        assert node is not None
        assert executor.exec(node, _env(tmp_path)) == 0
        captured = capfd.readouterr()
        assert captured.out == "after\n"
        assert "cannot create pipe" in captured.err

    def test_pipe_failure_alone_raises(self, kind: ExecutorType, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Outside a sequence the failure reaches the caller."""
        executor = _executor(kind)

        def _fail() -> tuple[int, int]:
            raise PipeCreationFailed(OSError(24, "Too many open files"))

        monkeypatch.setattr(executor.descriptors, "pipe", _fail)
        node = parse_line("true | true")
        assert node is not None
        with pytest.raises(PipeCreationFailed):
            executor.exec(node, _env(tmp_path))


# -- Cycle 5: Subshells and terminate ------------------------------------------


class TestIsolationAndExit:
    """Verify subshell isolation and the exit builtin's reach."""

    def test_subshell_cd_is_isolated(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """cd inside ( ) does not move the parent."""
        env = _env(tmp_path)
        node = parse_line("(cd /tmp && pwd); pwd")
        assert node is not None
        _executor(kind).exec(node, env)
        assert capfd.readouterr().out == f"/tmp\n{tmp_path}\n"
        assert env.cwd == str(tmp_path)

    def test_subshell_variables_are_isolated(self, kind: ExecutorType, tmp_path: Path) -> None:
        """export inside ( ) does not leak out."""
        env = _env(tmp_path)
        node = parse_line("(export LEAK=1)")
        assert node is not None
        _executor(kind).exec(node, env)
        assert "LEAK" not in env

    def test_exit_unwinds_sequence(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """exit 3 after a pipeline stops everything that follows."""
        tree = Sequence(
            (
                Pipeline((Command("echo", ("first",)), Command("cat"))),
                Command("exit", ("3",)),
                Command("echo", ("never",)),
            )
        )
        with pytest.raises(Terminate) as info:
            _executor(kind).exec(tree, _env(tmp_path))
        assert info.value.code == 3
        assert capfd.readouterr().out == "first\n"

    def test_exit_unwinds_nesting(self, kind: ExecutorType, tmp_path: Path) -> None:
        """exit escapes &&, || and redirects, closing what they opened."""
        executor = _executor(kind)
        node = parse_line("true && (false || exit 5) > out; echo never")
        assert node is not None
        before = _open_fds()
        with pytest.raises(Terminate) as info:
            executor.exec(node, _env(tmp_path))
        assert info.value.code == 5
        assert _open_fds() == before

    def test_exit_in_builtin_stage(self, kind: ExecutorType, tmp_path: Path) -> None:
        """exit as an in-process stage still ends the interpreter."""
        executor = _executor(kind)
        node = parse_line("exit 6 | cat")
        assert node is not None
        before = _open_fds()
        with pytest.raises(Terminate) as info:
            executor.exec(node, _env(tmp_path))
        assert info.value.code == 6
        assert executor.descriptors.open_fds == frozenset()
        assert _open_fds() == before

    def test_exit_in_forked_stage(self, kind: ExecutorType, tmp_path: Path) -> None:
        """exit inside a forked stage ends only that stage."""
        assert _run(kind, "(exit 4) | true", tmp_path) == 0
        assert _run(kind, "true | (exit 4)", tmp_path) == 4

    def test_cancelled_before_spawn(self, kind: ExecutorType, tmp_path: Path) -> None:
        """A set token stops the line at the next check point."""
        token = CancellationToken()
        token.cancel()
        executor = _executor(kind, token=token)
        node = parse_line("true | true")
        assert node is not None
        with pytest.raises(Cancelled):
            executor.exec(node, _env(tmp_path))
        assert executor.descriptors.open_fds == frozenset()

    def test_cancelled_before_builtin(self, kind: ExecutorType, tmp_path: Path) -> None:
        """Builtins are a check point too."""
        token = CancellationToken()
        token.cancel()
        node = parse_line("pwd")
        assert node is not None
        with pytest.raises(Cancelled):
            _executor(kind, token=token).exec(node, _env(tmp_path))

    def test_interrupt_during_wait_reaps_every_stage(
        self, kind: ExecutorType, tmp_path: Path, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """SIGINT mid-pipeline only sets the token; every stage is still reaped."""
        token = CancellationToken()
        executor = _executor(kind, token=token)
        node = parse_line("sleep 0.5 | (sleep 0.3); echo after")
        assert node is not None
        timer = threading.Timer(0.2, os.kill, (os.getpid(), signal.SIGINT))
        with interrupts_cancel(token):
            timer.start()
            try:
                with pytest.raises(Cancelled):
                    executor.exec(node, _env(tmp_path))
            finally:
                timer.join()
        assert token.cancelled
        assert "after" not in capfd.readouterr().out
        assert not _has_unreaped_child()
        assert executor.descriptors.open_fds == frozenset()

    def test_wait_all_reaps_after_failure(self, kind: ExecutorType) -> None:
        """A failing wait does not stop the later stages being waited for."""
        last = _RecordingChild()
        with pytest.raises(KeyboardInterrupt):
            _executor(kind).wait_all({0: _FailingChild(), 1: last})
        assert last.waited


class _FailingChild:
    """A stage whose wait is interrupted."""

    def wait(self) -> int:
        """Fail the way an interrupted wait would."""
        raise KeyboardInterrupt


class _RecordingChild:
    """A stage that remembers being waited for."""

    def __init__(self) -> None:
        """Start un-waited."""
        self.waited = False

    def wait(self) -> int:
        """Record the wait and report success."""
        self.waited = True
        return 0


def _has_unreaped_child() -> bool:
    """Return True if this process has a child that has not been reaped."""
    try:
        return os.waitpid(-1, os.WNOHANG) != (0, 0)
    except ChildProcessError:
        return False


class TestPipelineFlag:
    """Verify builtins can tell whether they run as a pipeline stage."""

    @staticmethod
    def _recorder(kind: ExecutorType, seen: list[bool]) -> BaseExecutor:
        """Build an executor with a ``where`` builtin that records the flag."""
        registry = default_registry()

        def builtin_where(_args: list[str], _env: Environment, streams: Streams) -> int:
            seen.append(streams.in_pipeline)
            streams.write("here\n")
            return 0

        registry.register("where", builtin_where)
        return make_executor(kind, registry)

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("where", [False]),
            ("where > out", [False]),
            ("where; where && where", [False, False, False]),
            ("where | cat", [True]),
            ("echo x | where", [True]),
            ("where | where > out | cat", [True, True]),
        ],
    )
    def test_in_pipeline(self, kind: ExecutorType, tmp_path: Path, line: str, expected: list[bool]) -> None:
        """in_pipeline is True only for a pipeline stage."""
        seen: list[bool] = []
        node = parse_line(line)
        assert node is not None
        self._recorder(kind, seen).exec(node, _env(tmp_path))
        assert seen == expected


# -- Cycle 6: Streams and logging ----------------------------------------------


class TestStreamsAndLogging:
    """Verify explicit streams and the event log."""

    def test_explicit_streams(self, kind: ExecutorType, tmp_path: Path) -> None:
        """Output goes to the given stdout, and fd 1 is left alone."""
        out = tmp_path / "captured"
        fd = os.open(out, os.O_WRONLY | os.O_CREAT, 0o644)
        before = os.fstat(1).st_ino
        try:
            node = parse_line("echo a; pwd | cat")
            assert node is not None
            _executor(kind).exec(node, _env(tmp_path), Streams(stdout=fd))
        finally:
            os.close(fd)
        assert out.read_text() == f"a\n{tmp_path}\n"
        assert os.fstat(1).st_ino == before

    def test_logs_spawn_and_finish(self, kind: ExecutorType, tmp_path: Path) -> None:
        """The log records spawns at DEBUG and the result at INFO."""
        logger = Logger()
        node = parse_line("true")
        assert node is not None
        _executor(kind, logger=logger).exec(node, _env(tmp_path))
        messages = [(entry.level, entry.message) for entry in logger.entries]
        assert any(level is LogLevel.DEBUG and "spawned" in message for level, message in messages)
        assert (LogLevel.INFO, "finished 'true' with status 0") in messages

    def test_logs_failures(self, kind: ExecutorType, tmp_path: Path) -> None:
        """A missing command is logged as a warning."""
        logger = Logger()
        node = parse_line("no_such_command_xyz")
        assert node is not None
        _executor(kind, logger=logger).exec(node, _env(tmp_path))
        warnings = logger.filter(min_level=LogLevel.WARNING)
        assert [entry.message for entry in warnings] == ["no_such_command_xyz: command not found"]

    def test_log_source_names_strategy(self, kind: ExecutorType, tmp_path: Path) -> None:
        """Entries are tagged with the strategy that wrote them."""
        logger = Logger()
        node = parse_line("true")
        assert node is not None
        _executor(kind, logger=logger).exec(node, _env(tmp_path))
        assert {entry.source for entry in logger.entries} == {_SOURCES[kind]}


class _NoSwapTable(FdTable):
    """A ledger that fails if anyone tries to swap fd 0/1/2."""

    def redirected(self, fd: int, target: int):  # type: ignore[no-untyped-def,override]  # noqa: ANN201
        """Refuse to swap a process descriptor."""
        msg = f"tried to swap fd {target}"
        raise AssertionError(msg)


class TestFlattenedIsolation:
    """The flattened strategy never touches the process's own descriptors."""

    def test_redirect_without_swapping(self, tmp_path: Path) -> None:
        """Redirects are stack pushes, not dup2 calls."""
        executor = FlattenedExecutor(default_registry(), descriptors=_NoSwapTable())
        node = parse_line("echo hi > f; pwd >> f")
        assert node is not None
        executor.exec(node, _env(tmp_path))
        assert (tmp_path / "f").read_text() == f"hi\n{tmp_path}\n"

    def test_pipeline_without_swapping(self, tmp_path: Path) -> None:
        """Pipelines with builtin stages never swap either."""
        executor = FlattenedExecutor(default_registry(), descriptors=_NoSwapTable())
        node = parse_line("pwd | tr a-z A-Z > f")
        assert node is not None
        executor.exec(node, _env(tmp_path))
        assert (tmp_path / "f").read_text() == f"{str(tmp_path).upper()}\n"

