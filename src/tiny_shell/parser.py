"""Parser — tokens to syntax tree by recursive descent.

One method per precedence level, loosest first::

    sequence   := and_or (';' and_or)* [';']
    and_or     := pipeline (('&&' | '||') pipeline)*
    pipeline   := redirected ('|' redirected)*
    redirected := atom (redir_op WORD)*
    atom       := '(' sequence ')' | command
    command    := WORD WORD*

Each level calls the next-tighter one for its operands, so precedence
falls out of the call structure: ``a; b && c`` becomes
``Sequence(a, And(b, c))`` because ``;`` is only consumed by the
outermost level.  Every level is left-associative.

``Sequence`` and ``Pipeline`` are collected into flat tuples.  Each
trailing redirection wraps the node built so far, so in
``cmd > a > b`` the ``> b`` redirect ends up at the root.
"""

from __future__ import annotations

from tiny_shell.errors import ShellError
from tiny_shell.lexer import Span, Token, TokenKind, tokenize
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
)

_REDIRECTS: dict[TokenKind, RedirectKind] = {
    TokenKind.REDIRECT_IN: RedirectKind.IN,
    TokenKind.REDIRECT_OUT: RedirectKind.OUT,
    TokenKind.REDIRECT_APPEND: RedirectKind.APPEND,
}

# What may legally follow a complete command, by context.
_AFTER_COMMAND: frozenset[str] = frozenset(
    {";", "&&", "||", "|", "<", ">", ">>", TokenKind.EOF.value},
)
_ATOM_START: frozenset[str] = frozenset({TokenKind.WORD.value, "("})


class ParseError(ShellError):
    """Raise when a token sequence is not a valid command line."""


class UnexpectedToken(ParseError):
    """Raise when a token appears where the grammar forbids it."""

    def __init__(self, expected: frozenset[str], found: Token) -> None:
        """Record what was expected and what was found."""
        self.expected = expected
        self.found = found
        self.span = found.span
        wanted = ", ".join(sorted(expected))
        super().__init__(f"unexpected {found.kind.value!r} at {found.span}, expected one of: {wanted}")


class UnexpectedEndOfInput(ParseError):
    """Raise when the line ends in the middle of a construct."""

    def __init__(self, expected: frozenset[str]) -> None:
        """Record what was expected instead of the end."""
        self.expected = expected
        wanted = ", ".join(sorted(expected))
        super().__init__(f"unexpected end of input, expected one of: {wanted}")


class UnmatchedParen(ParseError):
    """Raise for a ``(`` that is never closed or a ``)`` never opened."""

    def __init__(self, span: Span) -> None:
        """Record the position of the unmatched parenthesis."""
        self.span = span
        super().__init__(f"unmatched parenthesis at {span}")


class Parser:
    """Recursive-descent parser over a token list from ``tokenize()``."""

    def __init__(self, tokens: list[Token]) -> None:
        """Create a parser for *tokens* (must end with an EOF token).

        Raises:
            ValueError: If the token list does not end with EOF.

        """
        if not tokens or tokens[-1].kind is not TokenKind.EOF:
            msg = "Token list must end with an EOF token"
            raise ValueError(msg)
        self._tokens = tokens
        self._pos = 0
        self._depth = 0

    def parse(self) -> Node | None:
        """Parse the whole token list.

        Returns:
            The syntax tree, or None for a blank line.

        Raises:
            UnexpectedToken: If a token is out of place.
            UnexpectedEndOfInput: If the line stops mid-construct.
            UnmatchedParen: If parentheses do not balance.

        """
        if self._peek().kind is TokenKind.EOF:
            return None
        node = self._sequence()
        token = self._peek()
        if token.kind is TokenKind.RPAREN:
            raise UnmatchedParen(token.span)
        if token.kind is not TokenKind.EOF:
            raise UnexpectedToken(_AFTER_COMMAND, token)
        return node

    # -- Grammar levels ---------------------------------------------------

    def _sequence(self) -> Node:
        items = [self._and_or()]
        while self._peek().kind is TokenKind.SEMICOLON:
            self._advance()
            if self._peek().kind in (TokenKind.EOF, TokenKind.RPAREN):
                break
            items.append(self._and_or())
        return items[0] if len(items) == 1 else Sequence(tuple(items))

    def _and_or(self) -> Node:
        node = self._pipeline()
        while (kind := self._peek().kind) in (TokenKind.AND, TokenKind.OR):
            self._advance()
            right = self._pipeline()
            node = And(node, right) if kind is TokenKind.AND else Or(node, right)
        return node

    def _pipeline(self) -> Node:
        stages = [self._redirected()]
        while self._peek().kind is TokenKind.PIPE:
            self._advance()
            stages.append(self._redirected())
        return stages[0] if len(stages) == 1 else Pipeline(tuple(stages))

    def _redirected(self) -> Node:
        node = self._atom()
        while (kind := self._peek().kind) in _REDIRECTS:
            self._advance()
            target = self._expect_word()
            node = Redirect(node, _REDIRECTS[kind], target.lexeme)
        return node

    def _atom(self) -> Node:
        token = self._peek()
        if token.kind is TokenKind.LPAREN:
            return self._subshell()
        if token.kind is TokenKind.WORD:
            return self._command()
        raise self._unexpected(_ATOM_START)

    def _subshell(self) -> Node:
        opening = self._advance()
        self._depth += 1
        inner = self._sequence()
        closing = self._peek()
        if closing.kind is TokenKind.EOF:
            raise UnmatchedParen(opening.span)
        if closing.kind is not TokenKind.RPAREN:
            raise UnexpectedToken(_AFTER_COMMAND - {TokenKind.EOF.value} | {")"}, closing)
        self._advance()
        self._depth -= 1
        return Subshell(inner)

    def _command(self) -> Command:
        name = self._advance().lexeme
        args: list[str] = []
        while self._peek().kind is TokenKind.WORD:
            args.append(self._advance().lexeme)
        return Command(name, tuple(args))

    # -- Token helpers ----------------------------------------------------

    def _peek(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        if token.kind is not TokenKind.EOF:
            self._pos += 1
        return token

    def _expect_word(self) -> Token:
        if self._peek().kind is not TokenKind.WORD:
            raise self._unexpected(frozenset({TokenKind.WORD.value}))
        return self._advance()

    def _unexpected(self, expected: frozenset[str]) -> ParseError:
        token = self._peek()
        if token.kind is TokenKind.EOF:
            return UnexpectedEndOfInput(expected)
        if token.kind is TokenKind.RPAREN and self._depth == 0:
            return UnmatchedParen(token.span)
        return UnexpectedToken(expected, token)


def parse(tokens: list[Token]) -> Node | None:
    """Parse a token list into a syntax tree (None for a blank line)."""
    return Parser(tokens).parse()


def parse_line(text: str) -> Node | None:
    """Tokenize and parse one command line.

    Raises:
        LexError: If the text cannot be tokenized.
        ParseError: If the tokens do not form a valid command line.

    """
    return parse(tokenize(text))
