"""Path resolution — map a command name to an executable file.

Two rules, the same ones every Unix shell uses:

1. A name containing ``/`` is a path.  It is resolved against the
   working directory and ``PATH`` is never consulted: ``./build.sh``
   means *this* directory's ``build.sh``.
2. Any other name is looked up in each ``PATH`` directory in order.
   The first existing, executable, regular file wins.

Resolution never raises; it answers ``None`` and the executor decides
whether that means "not found" (127) or "not executable" (126).
"""

from __future__ import annotations

import os
from collections.abc import Sequence


def is_executable(path: str) -> bool:
    """Return True if *path* is a regular file the user may execute."""
    return os.path.isfile(path) and os.access(path, os.X_OK)


def resolve(name: str, search_path: Sequence[str], cwd: str) -> str | None:
    """Resolve *name* to an absolute executable path.

    Args:
        name: The command name as typed.
        search_path: Directories to try, in order (the split ``PATH``).
        cwd: The working directory for relative lookups.

    Returns:
        The absolute path, or None if nothing executable matches.

    """
    if not name:
        return None
    if os.sep in name:
        candidate = os.path.normpath(os.path.join(cwd, name))
        return candidate if is_executable(candidate) else None
    for directory in search_path:
        if not directory:
            continue
        candidate = os.path.normpath(os.path.join(cwd, directory, name))
        if is_executable(candidate):
            return candidate
    return None


def exists_but_not_executable(name: str, cwd: str) -> bool:
    """Return True for a path-like *name* that exists but cannot run.

    Used to tell "Permission denied" (126) apart from "not found" (127).
    """
    if os.sep not in name:
        return False
    candidate = os.path.normpath(os.path.join(cwd, name))
    return os.path.exists(candidate) and not is_executable(candidate)
