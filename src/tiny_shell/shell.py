"""The shell — ties lexer, parser, and executor into one line runner.

``Shell.run_line()`` is the whole interpreter from the caller's point of
view: give it one line of text, get back an exit status.  Output goes to
the descriptors, not the return value, so the same driver serves the
interactive REPL, the web front end, and the tests.

The driver owns every long-lived piece of state:

- the **environment** (variables and working directory),
- the **builtin registry**, including ``history`` and ``log``,
- the **history** and the **event log**,
- the **executor** chosen by configuration,
- the **cancellation token** the REPL's Ctrl-C handler sets.

Design choices:
    - **One status register.**  ``last_status`` is what ``$?`` would
      hold; a blank line leaves it unchanged.
    - **Every failure becomes a status** except ``exit``, which raises
      ``Terminate`` out of ``run_line()`` for the caller to act on.
"""

from __future__ import annotations

from tiny_shell.builtins import BuiltinRegistry, default_registry
from tiny_shell.config import Config, alias_words
from tiny_shell.env import Environment
from tiny_shell.errors import STATUS_USAGE, Cancelled, ExecError
from tiny_shell.executor import Executor, make_executor
from tiny_shell.history import HistoryManager
from tiny_shell.lexer import LexError
from tiny_shell.logging import Logger, LogLevel, LogSource
from tiny_shell.parser import ParseError, parse_line
from tiny_shell.plumbing import Streams
from tiny_shell.signals import CancellationToken
from tiny_shell.syntax import Command, Node, map_commands


class Shell:
    """Command-line interpreter state plus the line runner."""

    def __init__(
        self,
        *,
        config: Config | None = None,
        env: Environment | None = None,
        registry: BuiltinRegistry | None = None,
        executor: Executor | None = None,
        history: HistoryManager | None = None,
        logger: Logger | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        """Create a shell, filling in anything not supplied.

        Args:
            config: Driver settings (defaults if omitted).
            env: Starting environment (a snapshot of the process's if
                omitted).  Variables from ``config.env`` are exported
                into it.
            registry: Builtins (the defaults plus ``history``/``log``).
            executor: Evaluation strategy (from ``config.executor``).
            history: Line history (in-memory, ``config.history_max``).
            logger: Event log.
            token: Cancellation token shared with the executor.

        """
        self.config = config if config is not None else Config()
        self.env = env if env is not None else Environment.from_process()
        for key, value in self.config.env.items():
            self.env.export(key, value)
        self.logger = logger if logger is not None else Logger()
        self.history = history if history is not None else HistoryManager(max_len=self.config.history_max)
        self.token = token if token is not None else CancellationToken()
        if registry is None:
            registry = default_registry(history=self.history, logger=self.logger)
        self.registry = registry
        if executor is None:
            executor = make_executor(self.config.executor, registry, logger=self.logger, token=self.token)
        self.executor = executor
        self.last_status = 0

    def expand_aliases(self, node: Node) -> Node:
        """Replace every aliased command name in *node* with its words.

        Expansion is a single pass: the first word of an alias is never
        itself looked up again, so ``alias.ls=ls -F`` does not loop.
        """
        if not self.config.aliases:
            return node

        def _expand(command: Command) -> Command:
            value = self.config.aliases.get(command.name)
            if value is None:
                return command
            name, *extra = alias_words(value)
            return Command(name, (*extra, *command.args))

        return map_commands(node, _expand)

    @property
    def command_names(self) -> list[str]:
        """Return the sorted builtin names (used by tab completion)."""
        return self.registry.names()

    def run_line(self, text: str, streams: Streams | None = None) -> int:
        """Lex, parse, and execute one line; return its exit status.

        Args:
            text: The line as typed.
            streams: Descriptors for the line's standard streams;
                defaults to the process's own 0/1/2.

        Returns:
            The line's status, also stored in ``last_status``.

        Raises:
            Terminate: If ``exit`` ran.  ``last_status`` is unchanged.

        """
        out = streams if streams is not None else Streams()
        self.token.reset()
        self.logger.start_line()
        try:
            try:
                node = parse_line(text)
            except (LexError, ParseError) as exc:
                self.logger.log(LogLevel.WARNING, str(exc), source=LogSource.PARSER)
                out.error(f"tiny-shell: syntax error: {exc}\n")
                self.last_status = STATUS_USAGE
                return self.last_status
            if node is None:
                return self.last_status
            try:
                self.last_status = self.executor.exec(self.expand_aliases(node), self.env, streams)
            except ExecError as exc:
                self.logger.log(LogLevel.ERROR, str(exc), source=LogSource.SHELL)
                out.error(f"tiny-shell: {exc}\n")
                self.last_status = exc.status
            except Cancelled as exc:
                self.logger.log(LogLevel.WARNING, f"interrupted: {text.strip()}", source=LogSource.SHELL)
                out.error(f"tiny-shell: {exc}\n")
                self.last_status = exc.status
            return self.last_status
        finally:
            self.history.add(text)
