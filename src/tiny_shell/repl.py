"""Interactive REPL (Read-Eval-Print Loop) for tiny-shell.

The REPL is the terminal interface.  It loads the configuration and the
saved history, creates a shell, and enters the classic loop:

    1. **Read** — display a prompt and read a line with ``readline``.
    2. **Eval** — pass the line to ``shell.run_line()``.
    3. **Print** — nothing to do: commands write to the terminal
       themselves.
    4. **Loop** — repeat until Ctrl-D or ``exit``.

Keys behave the way they do in ``bash``:

- **Ctrl-D** on an empty prompt ends the session with the last status.
- **Ctrl-C** at the prompt discards the line and starts a fresh one.
- **Ctrl-C** while a line runs reaches the foreground programs directly
  (they share the terminal's process group).  The shell itself only
  sets its cancellation token, so the rest of the line is abandoned at
  the next spawn with status 130, and the loop continues.

The helper functions (``build_prompt``, ``format_banner``) are pure and
testable.  The ``run()`` function is the I/O entrypoint.
"""

from __future__ import annotations

import readline
import sys

from tiny_shell.completer import Completer
from tiny_shell.config import Config, ConfigError, load_config
from tiny_shell.env import Environment
from tiny_shell.errors import Terminate
from tiny_shell.history import HistoryManager
from tiny_shell.shell import Shell
from tiny_shell.signals import interrupts_cancel

# Characters that end a word for completion purposes.
_COMPLETER_DELIMS = " \t|;&()<>"


def format_banner(config: Config) -> str:
    """Return the greeting printed when the REPL starts."""
    return f"tiny-shell ({config.executor} executor). Type 'help' for builtins, 'exit' to quit."


def build_prompt(config: Config, env: Environment) -> str:
    """Build the prompt string from the configured template.

    Args:
        config: Supplies the template; ``{cwd}`` is replaced.
        env: Supplies the working directory.

    Returns:
        The prompt, e.g. ``/home/me $ `` for ``{cwd} $ ``.

    """
    return config.prompt.replace("{cwd}", env.cwd)


def _load_config() -> Config:
    """Load the user's configuration, falling back to defaults on error."""
    try:
        return load_config()
    except ConfigError as exc:
        print(f"tiny-shell: {exc}", file=sys.stderr)  # noqa: T201
        return Config()


def _load_history(config: Config) -> HistoryManager:
    """Load saved history, starting empty if the file cannot be read."""
    try:
        return HistoryManager.load(config.history_file, max_len=config.history_max)
    except OSError as exc:
        print(f"tiny-shell: cannot read history: {exc}", file=sys.stderr)  # noqa: T201
        return HistoryManager(max_len=config.history_max, path=config.history_file)


def run(config: Config | None = None) -> int:
    """Run the interactive REPL and return the process exit status.

    This is the main entrypoint.  It handles:
    - Configuration and history loading.
    - Tab completion and readline history.
    - The read-eval-print loop.
    - Ctrl-C and Ctrl-D.
    - Saving history on the way out.
    """
    if config is None:
        config = _load_config()
    history = _load_history(config)
    shell = Shell(config=config, history=history)

    # Wire up tab completion via readline.
    completer = Completer(shell.registry, shell.env)
    readline.set_completer(completer.complete)
    readline.set_completer_delims(_COMPLETER_DELIMS)
    readline.parse_and_bind("tab: complete")
    for line in history.entries:
        readline.add_history(line)

    print(format_banner(config))  # noqa: T201

    status = 0
    try:
        while True:
            try:
                line = input(build_prompt(config, shell.env))
            except EOFError:
                # Ctrl+D ends the session
                print()  # noqa: T201
                status = shell.last_status
                break
            except KeyboardInterrupt:
                # Ctrl+C at the prompt starts a fresh line
                print()  # noqa: T201
                continue

            # While a line runs, Ctrl-C only sets the token; at the prompt
            # it raises KeyboardInterrupt as usual.
            try:
                with interrupts_cancel(shell.token):
                    shell.run_line(line)
            except Terminate as exc:
                status = exc.code
                break
    finally:
        try:
            history.save()
        except OSError as exc:
            print(f"tiny-shell: cannot save history: {exc}", file=sys.stderr)  # noqa: T201
    return status


def main() -> None:
    """Console entry point for ``tiny-shell``."""
    sys.exit(run())
