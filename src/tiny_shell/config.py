"""Configuration — the settings a user can put in ``~/.tiny_shellrc``.

The file is deliberately simple, one ``key=value`` per line::

    # ~/.tiny_shellrc
    prompt={cwd} $
    history_max=1000
    executor_type=recursive
    env.EDITOR=vim
    alias.ll=ls -l

Blank lines and lines starting with ``#`` are ignored.  A value is
everything after the first ``=``, untouched (so a prompt may end with a
space).  ``env.NAME=value`` sets and exports ``NAME`` at startup.
``alias.NAME=words`` makes ``NAME`` stand for *words* when it is the
command name; the words are lexed like a command line but may not
contain operators.  ``executor`` is accepted as a short form of
``executor_type``.

Parsing is strict: an unknown key, a missing ``=``, or a bad value is a
``ConfigError`` naming the line, rather than a silently ignored typo.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from tiny_shell.errors import ShellError
from tiny_shell.lexer import LexError, TokenKind, tokenize

DEFAULT_CONFIG_PATH = "~/.tiny_shellrc"
CONFIG_ENV_VAR = "TINY_SHELL_CONFIG"

_ENV_PREFIX = "env."
_ALIAS_PREFIX = "alias."
_EXECUTOR_KEYS = frozenset({"executor_type", "executor"})


class ExecutorType(StrEnum):
    """Which evaluation strategy the shell uses."""

    FLATTEN = "flatten"
    RECURSIVE = "recursive"


class ConfigError(ShellError):
    """Raise when a configuration file cannot be understood."""

    def __init__(self, line_number: int, message: str) -> None:
        """Record where and why parsing failed."""
        self.line_number = line_number
        super().__init__(f"config line {line_number}: {message}")


@dataclass
class Config:
    """Driver settings.

    Attributes:
        prompt: Prompt template; ``{cwd}`` is replaced by the directory.
        history_file: Where history is persisted between sessions.
        history_max: Maximum number of remembered lines.
        executor: The evaluation strategy.
        env: Extra variables exported at startup.
        aliases: Command-name substitutions, name -> replacement words.

    """

    prompt: str = "$ "
    history_file: str = "~/.tiny_shell_history"
    history_max: int = 500
    executor: ExecutorType = ExecutorType.FLATTEN
    env: dict[str, str] = field(default_factory=dict)
    aliases: dict[str, str] = field(default_factory=dict)


def alias_words(value: str) -> list[str]:
    """Split an alias replacement into words.

    Raises:
        ValueError: If *value* is empty, does not lex, or holds an operator.

    """
    try:
        tokens = tokenize(value)
    except LexError as exc:
        raise ValueError(str(exc)) from exc
    words = [token.lexeme for token in tokens if token.kind is TokenKind.WORD]
    if len(words) != len(tokens) - 1:
        msg = "alias may not contain operators"
        raise ValueError(msg)
    if not words:
        msg = "alias is empty"
        raise ValueError(msg)
    return words


def load_config_text(text: str) -> Config:
    """Parse configuration *text* into a ``Config``.

    Raises:
        ConfigError: On a malformed line, bad value, or unknown key.

    """
    config = Config()
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = raw.lstrip().partition("=")
        key = key.strip()
        if not sep:
            msg = f"expected key=value, got {line!r}"
            raise ConfigError(number, msg)
        _apply(config, number, key, value)
    return config


def _apply(config: Config, number: int, key: str, value: str) -> None:
    """Set one ``key=value`` pair on *config*."""
    if key.startswith(_ENV_PREFIX):
        name = key.removeprefix(_ENV_PREFIX)
        if not name.isidentifier():
            msg = f"invalid variable name {name!r}"
            raise ConfigError(number, msg)
        config.env[name] = value
    elif key.startswith(_ALIAS_PREFIX):
        name = key.removeprefix(_ALIAS_PREFIX)
        if not name or any(ch.isspace() for ch in name):
            msg = f"invalid alias name {name!r}"
            raise ConfigError(number, msg)
        try:
            alias_words(value)
        except ValueError as exc:
            msg = f"alias {name}: {exc}"
            raise ConfigError(number, msg) from None
        config.aliases[name] = value
    elif key == "prompt":
        config.prompt = value
    elif key == "history_file":
        config.history_file = value.strip()
    elif key == "history_max":
        try:
            config.history_max = int(value)
        except ValueError:
            msg = f"history_max must be an integer, got {value!r}"
            raise ConfigError(number, msg) from None
        if config.history_max < 0:
            msg = "history_max must not be negative"
            raise ConfigError(number, msg)
    elif key in _EXECUTOR_KEYS:
        try:
            config.executor = ExecutorType(value.strip())
        except ValueError:
            choices = ", ".join(kind.value for kind in ExecutorType)
            msg = f"unknown executor {value!r} (choose from {choices})"
            raise ConfigError(number, msg) from None
    else:
        msg = f"unknown key {key!r}"
        raise ConfigError(number, msg)


def default_config_path() -> str:
    """Return ``$TINY_SHELL_CONFIG`` if set, else ``~/.tiny_shellrc``."""
    return os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)


def load_config(path: str | None = None) -> Config:
    """Load configuration from *path*; a missing file yields defaults.

    Raises:
        ConfigError: If the file exists but is malformed.

    """
    expanded = Path(os.path.expanduser(path or default_config_path()))
    if not expanded.exists():
        return Config()
    return load_config_text(expanded.read_text(encoding="utf-8"))
