"""Token classification: raw lexer tokens -> grammar terminals and keywords."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .token_types import TT, TT_TERMINAL, ParseKeyword, ParseTokenType, Tok

KEYWORDS: Dict[str, ParseKeyword] = {
    'if': ParseKeyword.IF,
    'else': ParseKeyword.ELSE,
    'for': ParseKeyword.FOR,
    'in': ParseKeyword.IN,
    'while': ParseKeyword.WHILE,
    'begin': ParseKeyword.BEGIN,
    'function': ParseKeyword.FUNCTION,
    'switch': ParseKeyword.SWITCH,
    'case': ParseKeyword.CASE,
    'end': ParseKeyword.END,
    'and': ParseKeyword.AND,
    'or': ParseKeyword.OR,
    'not': ParseKeyword.NOT,
    'command': ParseKeyword.COMMAND,
    'builtin': ParseKeyword.BUILTIN,
}

HELP_ARGUMENTS = frozenset(('-h', '--help'))


@dataclass(frozen=True)
class ParseToken:
    """A classified token: terminal kind, keyword and source span."""

    type: ParseTokenType
    keyword: ParseKeyword
    text: str
    source_start: int
    source_length: int
    error: Optional[str] = None

    @property
    def source_end(self) -> int:
        return self.source_start + self.source_length

    @property
    def has_dash_prefix(self) -> bool:
        return self.type == ParseTokenType.STRING and self.text.startswith('-')

    @property
    def is_help_argument(self) -> bool:
        return self.type == ParseTokenType.STRING and self.text in HELP_ARGUMENTS

    def is_keyword(self, *keywords: ParseKeyword) -> bool:
        return self.type == ParseTokenType.STRING and self.keyword in keywords

    def __repr__(self) -> str:
        kw = f", {self.keyword.name}" if self.keyword else ""
        return f"ParseToken({self.type.name}{kw}, {self.text!r}, {self.source_start}+{self.source_length})"


def keyword_for_text(text: str) -> ParseKeyword:
    """Exact match only: quoted or escaped text never names a keyword."""
    return KEYWORDS.get(text, ParseKeyword.NONE)


def classify(tok: Tok) -> ParseToken:
    """Map one raw token to its terminal kind and keyword."""
    if tok.type == TT.ERROR:
        return ParseToken(ParseTokenType.INVALID, ParseKeyword.NONE, tok.value,
                          tok.start, tok.length, tok.error)

    terminal = TT_TERMINAL[tok.type]
    keyword = ParseKeyword.NONE
    if terminal == ParseTokenType.STRING:
        keyword = keyword_for_text(tok.value)

    return ParseToken(terminal, keyword, tok.value, tok.start, tok.length)


class TokenStream:
    """
    Classified view over a raw token list with bounded lookahead.

    Comments are dropped. Reading past the end keeps returning the
    TERMINATE token, so callers never need a bounds check.
    """

    def __init__(self, tokens: Iterable[Tok], source_length: Optional[int] = None):
        self.tokens: List[ParseToken] = [
            classify(tok) for tok in tokens if tok.type != TT.COMMENT
        ]

        if not self.tokens or self.tokens[-1].type != ParseTokenType.TERMINATE:
            end = source_length
            if end is None:
                end = self.tokens[-1].source_end if self.tokens else 0
            self.tokens.append(
                ParseToken(ParseTokenType.TERMINATE, ParseKeyword.NONE, '', end, 0)
            )

        self.pos = 0

    def peek(self, offset: int = 0) -> ParseToken:
        """Look ahead without consuming"""
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def advance(self) -> ParseToken:
        """Consume current token and return it. TERMINATE is never consumed."""
        tok = self.peek()
        if tok.type != ParseTokenType.TERMINATE:
            self.pos += 1
        return tok

    def check(self, *types: ParseTokenType) -> bool:
        """Check if current token is one of the given terminal kinds"""
        return self.peek().type in types

    @property
    def at_end(self) -> bool:
        return self.peek().type == ParseTokenType.TERMINATE
