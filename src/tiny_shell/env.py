"""Environment — shell variables plus the working directory.

Every command the shell runs sees an environment: ``KEY=VALUE`` string
pairs and a current directory.  Only *exported* variables are handed
to child processes; the rest stay private to the shell.

Key design properties:
    - **Explicit, not global** — the environment is an object passed to
      every evaluation call.  Nothing here touches ``os.environ`` or
      ``os.chdir()`` after construction.
    - **Copy for isolation** — a subshell gets ``env.copy()``; whatever
      it changes (variables, ``cd``) is thrown away when it returns.
    - **Insertion order** — ``all()`` and ``exported()`` list variables
      in the order they were first set, so output is deterministic.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping


class Environment:
    """Variables, export flags, and a logical working directory.

    Each instance is an independent copy — modifying one does not
    affect any other.
    """

    def __init__(
        self,
        initial: Mapping[str, str] | None = None,
        *,
        exported: Iterable[str] | None = None,
        cwd: str | None = None,
    ) -> None:
        """Create an environment, optionally pre-populated.

        Args:
            initial: Starting variables (copied, not referenced).
            exported: Names to mark as exported.  Defaults to every
                name in *initial*.
            cwd: The working directory.  Defaults to the process's.

        """
        self._vars: dict[str, str] = dict(initial) if initial else {}
        names = self._vars if exported is None else exported
        self._exported: set[str] = set(names)
        self._cwd = os.path.abspath(cwd) if cwd is not None else os.getcwd()

    @classmethod
    def from_process(cls) -> Environment:
        """Snapshot ``os.environ`` and the current directory, all exported."""
        return cls(os.environ, cwd=os.getcwd())

    # -- Variables --------------------------------------------------------

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the value for *key*, or *default* if not set."""
        return self._vars.get(key, default)

    def set(self, key: str, value: str) -> None:
        """Set *key* to *value* (creates or overwrites, keeps export flag)."""
        self._vars[key] = value

    def unset(self, key: str) -> None:
        """Remove *key* and its export flag.  Missing keys are ignored."""
        self._vars.pop(key, None)
        self._exported.discard(key)

    def export(self, key: str, value: str | None = None) -> None:
        """Mark *key* for export, optionally setting its value first."""
        if value is not None:
            self._vars[key] = value
        self._exported.add(key)

    def is_exported(self, key: str) -> bool:
        """Return True if *key* is marked for export."""
        return key in self._exported

    def all(self) -> list[tuple[str, str]]:
        """Return every (key, value) pair in insertion order."""
        return list(self._vars.items())

    def exported(self) -> list[tuple[str, str]]:
        """Return the (key, value) pairs passed to child processes."""
        return [(k, v) for k, v in self._vars.items() if k in self._exported]

    def search_path(self) -> list[str]:
        """Return the directories listed in ``PATH``, in order."""
        raw = self._vars.get("PATH", "")
        return [entry for entry in raw.split(os.pathsep) if entry]

    # -- Working directory ------------------------------------------------

    @property
    def cwd(self) -> str:
        """Return the absolute working directory."""
        return self._cwd

    def change_dir(self, path: str) -> str:
        """Change the working directory, resolving *path* against it.

        Updates ``PWD`` and ``OLDPWD`` the way ``cd`` does.

        Args:
            path: Absolute, or relative to the current directory.

        Returns:
            The new absolute working directory.

        Raises:
            FileNotFoundError: If *path* does not exist.
            NotADirectoryError: If *path* is not a directory.

        """
        target = os.path.normpath(os.path.join(self._cwd, os.path.expanduser(path)))
        if not os.path.exists(target):
            raise FileNotFoundError(path)
        if not os.path.isdir(target):
            raise NotADirectoryError(path)
        self._vars["OLDPWD"] = self._cwd
        self._vars["PWD"] = target
        self._cwd = target
        return target

    # -- Copying ----------------------------------------------------------

    def copy(self) -> Environment:
        """Return an independent copy of this environment."""
        return Environment(self._vars, exported=self._exported, cwd=self._cwd)

    def __contains__(self, key: object) -> bool:
        """Return True if *key* is set."""
        return key in self._vars

    def __len__(self) -> int:
        """Return the number of variables."""
        return len(self._vars)
