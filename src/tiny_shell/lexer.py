"""Lexer — turn a raw command line into a flat list of tokens.

The lexer is the first stage of the pipeline::

    text  →  tokenize()  →  [Token, Token, ..., EOF]  →  parser

It knows about exactly two things the parser must never see:

- **Quoting.**  ``'...'`` is fully literal; ``"..."`` allows a few
  backslash escapes.  Quoted spans glue onto the surrounding word, so
  ``ab"c d"e`` is the single word ``abc de``.  Delimiters are stripped.
- **Escapes.**  A backslash outside single quotes is resolved here using
  a fixed table.  Anything not in the table is an ``InvalidEscape`` —
  characters are never dropped silently.

Operators (``|  ||  &&  ;  <  >  >>  (  )``) are only recognised outside
quotes.  Unquoted whitespace separates words and produces no token.
The token list always ends with exactly one ``EOF`` token.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from tiny_shell.errors import ShellError


class TokenKind(StrEnum):
    """Every kind of token the parser can receive."""

    WORD = "word"
    PIPE = "|"
    REDIRECT_IN = "<"
    REDIRECT_OUT = ">"
    REDIRECT_APPEND = ">>"
    AND = "&&"
    OR = "||"
    SEMICOLON = ";"
    LPAREN = "("
    RPAREN = ")"
    EOF = "end of input"


@dataclass(frozen=True)
class Span:
    """Half-open character range ``[start, end)`` into the source line."""

    start: int
    end: int

    def __str__(self) -> str:
        """Format as ``start..end``."""
        return f"{self.start}..{self.end}"


@dataclass(frozen=True)
class Token:
    """A single lexeme with its kind and source position."""

    kind: TokenKind
    lexeme: str
    span: Span


class LexError(ShellError):
    """Raise when the input cannot be split into tokens."""

    def __init__(self, message: str, span: Span) -> None:
        """Record the message and the offending source range."""
        self.span = span
        super().__init__(f"{message} at {span}")


class UnterminatedQuote(LexError):
    """Raise when a quote is opened but never closed."""

    def __init__(self, quote: str, span: Span) -> None:
        """Record which quote character was left open."""
        self.quote = quote
        super().__init__(f"unterminated quote {quote}", span)


class InvalidEscape(LexError):
    """Raise when a backslash is followed by something not in the table."""

    def __init__(self, sequence: str, span: Span) -> None:
        """Record the offending escape sequence."""
        self.sequence = sequence
        super().__init__(f"invalid escape {sequence!r}", span)


class UnexpectedCharacter(LexError):
    """Raise for characters that start no valid token (a lone ``&``)."""

    def __init__(self, char: str, span: Span) -> None:
        """Record the offending character."""
        self.char = char
        super().__init__(f"unexpected character {char!r}", span)


# Longest operators first so ">>" wins over ">" and "||" over "|".
_OPERATORS: tuple[tuple[str, TokenKind], ...] = (
    (">>", TokenKind.REDIRECT_APPEND),
    ("&&", TokenKind.AND),
    ("||", TokenKind.OR),
    ("|", TokenKind.PIPE),
    ("<", TokenKind.REDIRECT_IN),
    (">", TokenKind.REDIRECT_OUT),
    (";", TokenKind.SEMICOLON),
    ("(", TokenKind.LPAREN),
    (")", TokenKind.RPAREN),
)

_WHITESPACE = frozenset(" \t\n")

# Escapes valid outside quotes.  Metacharacters escape to themselves.
_UNQUOTED_ESCAPES: dict[str, str] = {
    **{c: c for c in "\\'\"|&;<>()$ \t"},
    "n": "\n",
    "t": "\t",
}

# Escapes valid inside double quotes.
_DOUBLE_QUOTED_ESCAPES: dict[str, str] = {
    "\\": "\\",
    '"': '"',
    "$": "$",
    "n": "\n",
    "t": "\t",
}


class _Lexer:
    """Single-pass scanner over one command line."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0
        self._tokens: list[Token] = []
        self._word: list[str] = []
        # None when no word is in progress; "" quotes still start a word.
        self._word_start: int | None = None

    def run(self) -> list[Token]:
        text = self._text
        while self._pos < len(text):
            ch = text[self._pos]
            if ch in _WHITESPACE:
                self._flush_word()
                self._pos += 1
            elif operator := self._match_operator():
                self._flush_word()
                lexeme, kind = operator
                start = self._pos
                self._pos += len(lexeme)
                self._tokens.append(Token(kind, lexeme, Span(start, self._pos)))
            elif ch == "&":
                raise UnexpectedCharacter(ch, Span(self._pos, self._pos + 1))
            elif ch == "'":
                self._single_quoted()
            elif ch == '"':
                self._double_quoted()
            elif ch == "\\":
                self._start_word()
                self._word.append(self._escape(_UNQUOTED_ESCAPES))
            else:
                self._start_word()
                self._word.append(ch)
                self._pos += 1
        self._flush_word()
        self._tokens.append(Token(TokenKind.EOF, "", Span(self._pos, self._pos)))
        return self._tokens

    def _match_operator(self) -> tuple[str, TokenKind] | None:
        for lexeme, kind in _OPERATORS:
            if self._text.startswith(lexeme, self._pos):
                return lexeme, kind
        return None

    def _start_word(self) -> None:
        if self._word_start is None:
            self._word_start = self._pos

    def _flush_word(self) -> None:
        if self._word_start is None:
            return
        span = Span(self._word_start, self._pos)
        self._tokens.append(Token(TokenKind.WORD, "".join(self._word), span))
        self._word.clear()
        self._word_start = None

    def _single_quoted(self) -> None:
        self._start_word()
        start = self._pos
        end = self._text.find("'", start + 1)
        if end == -1:
            raise UnterminatedQuote("'", Span(start, len(self._text)))
        self._word.append(self._text[start + 1 : end])
        self._pos = end + 1

    def _double_quoted(self) -> None:
        self._start_word()
        start = self._pos
        self._pos += 1
        while self._pos < len(self._text):
            ch = self._text[self._pos]
            if ch == '"':
                self._pos += 1
                return
            if ch == "\\":
                self._word.append(self._escape(_DOUBLE_QUOTED_ESCAPES))
            else:
                self._word.append(ch)
                self._pos += 1
        raise UnterminatedQuote('"', Span(start, len(self._text)))

    def _escape(self, table: dict[str, str]) -> str:
        """Consume ``\\x`` at the cursor and return its replacement."""
        start = self._pos
        if start + 1 >= len(self._text):
            raise InvalidEscape("\\", Span(start, start + 1))
        nxt = self._text[start + 1]
        if nxt not in table:
            raise InvalidEscape("\\" + nxt, Span(start, start + 2))
        self._pos += 2
        return table[nxt]


def tokenize(text: str) -> list[Token]:
    """Split *text* into tokens, ending with a single ``EOF`` token.

    Args:
        text: One command line.

    Returns:
        The tokens in source order.

    Raises:
        UnterminatedQuote: If a quote is never closed.
        InvalidEscape: If a backslash escape is not in the escape table.
        UnexpectedCharacter: If a lone ``&`` appears outside quotes.

    """
    return _Lexer(text).run()
