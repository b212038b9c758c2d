"""Context-aware tab completer for tiny-shell.

The completer separates **what to complete** (pure logic, fully
testable) from **how to wire it** (readline integration in the REPL).

The ``complete(text, state)`` method is the readline callback.  It
delegates to ``completions(text, line)`` which looks at what precedes
the word under the cursor:

- In **command position** (start of line, or after ``|``, ``;``,
  ``&&``, ``||`` or ``(``) it offers builtin names plus every
  executable found on ``PATH``.
- Anywhere else it offers file names relative to the shell's working
  directory; directories get a trailing ``/``.
"""

from __future__ import annotations

import os
import readline
from typing import TYPE_CHECKING

from tiny_shell.path_resolver import is_executable

if TYPE_CHECKING:
    from tiny_shell.builtins import BuiltinRegistry
    from tiny_shell.env import Environment

# A word following any of these starts a new command.
_COMMAND_STARTERS = ("|", ";", "&", "(")


class Completer:
    """Tab completer backed by the builtin registry and the environment."""

    def __init__(self, registry: BuiltinRegistry, env: Environment) -> None:
        """Create a completer.

        Args:
            registry: Supplies builtin names.
            env: Supplies ``PATH`` and the working directory.

        """
        self._registry = registry
        self._env = env

    def complete(self, text: str, state: int) -> str | None:
        """Readline callback — return the *state*-th candidate for *text*.

        Args:
            text: The partial word being completed.
            state: Index into the candidate list (0, 1, 2, …).

        Returns:
            The candidate at *state*, or ``None`` when exhausted.

        """
        line = readline.get_line_buffer()[: readline.get_endidx()]
        candidates = self.completions(text, line)
        if state < len(candidates):
            return candidates[state]
        return None

    def completions(self, text: str, line: str) -> list[str]:
        """Return completion candidates based on context.

        Args:
            text: The partial word under the cursor.
            line: The input line up to the cursor (ending with *text*).

        Returns:
            Sorted list of matching candidates.

        """
        before = line.removesuffix(text).rstrip()
        if "/" not in text and (not before or before.endswith(_COMMAND_STARTERS)):
            return self._complete_commands(text)
        return self._complete_paths(text)

    # -- private completers ------------------------------------------------

    def _complete_commands(self, text: str) -> list[str]:
        """Complete builtin names and executables on ``PATH``."""
        names = {name for name in self._registry.names() if name.startswith(text)}
        for directory in self._env.search_path():
            try:
                entries = os.listdir(directory)
            except OSError:
                continue
            names.update(
                entry
                for entry in entries
                if entry.startswith(text) and is_executable(os.path.join(directory, entry))
            )
        return sorted(names)

    def _complete_paths(self, text: str) -> list[str]:
        """Complete file names relative to the working directory."""
        head, sep, prefix = text.rpartition("/")
        directory = head + sep
        search = os.path.join(self._env.cwd, os.path.expanduser(directory) or ".")
        try:
            entries = os.listdir(search)
        except OSError:
            return []

        candidates: list[str] = []
        for entry in entries:
            if not entry.startswith(prefix):
                continue
            if entry.startswith(".") and not prefix.startswith("."):
                continue
            candidate = directory + entry
            if os.path.isdir(os.path.join(search, entry)):
                candidate += "/"
            candidates.append(candidate)
        return sorted(candidates)
