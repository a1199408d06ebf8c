"""
Token Types for the fish parser

Shared between lexer, classifier and parser to avoid circular dependencies.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum, auto
from typing import Optional


class TT(Enum):
    """Raw token types produced by the tokenizer"""

    STRING = auto()
    PIPE = auto()  # |
    REDIRECT = auto()  # > >> < ^ 2>&
    BACKGROUND = auto()  # &
    END = auto()  # ; or newline

    # Special
    COMMENT = auto()
    ERROR = auto()
    EOF = auto()


@dataclass
class Tok:
    """Token with position info"""

    type: TT
    value: str
    start: int = 0
    length: int = 0
    line: int = 1
    column: int = 1
    error: Optional[str] = None

    @property
    def end(self) -> int:
        return self.start + self.length

    def __repr__(self):
        return f"Tok({self.type.name}, {self.value!r}, {self.start}+{self.length})"


class ParseTokenType(IntEnum):
    """Grammar symbols. Nonterminals first, terminals from STRING on."""

    INVALID = 0

    # Nonterminals
    JOB_LIST = auto()
    JOB = auto()
    JOB_CONTINUATION = auto()
    STATEMENT = auto()
    BLOCK_STATEMENT = auto()
    BLOCK_HEADER = auto()
    FOR_HEADER = auto()
    WHILE_HEADER = auto()
    BEGIN_HEADER = auto()
    FUNCTION_HEADER = auto()

    IF_STATEMENT = auto()
    IF_CLAUSE = auto()
    ELSE_CLAUSE = auto()
    ELSE_CONTINUATION = auto()

    SWITCH_STATEMENT = auto()
    CASE_ITEM_LIST = auto()
    CASE_ITEM = auto()

    BOOLEAN_STATEMENT = auto()
    DECORATED_STATEMENT = auto()
    PLAIN_STATEMENT = auto()
    ARGUMENTS_OR_REDIRECTIONS_LIST = auto()

    ARGUMENT_LIST_NONEMPTY = auto()
    ARGUMENT_LIST = auto()

    OPTIONAL_BACKGROUND = auto()

    # Terminals
    STRING = auto()
    PIPE = auto()
    REDIRECTION = auto()
    BACKGROUND = auto()
    END = auto()
    TERMINATE = auto()

    @property
    def is_terminal(self) -> bool:
        return self >= ParseTokenType.STRING


class ParseKeyword(IntEnum):
    """Reserved words recognized from string tokens"""

    NONE = 0
    IF = auto()
    ELSE = auto()
    FOR = auto()
    IN = auto()
    WHILE = auto()
    BEGIN = auto()
    FUNCTION = auto()
    SWITCH = auto()
    CASE = auto()
    END = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    COMMAND = auto()
    BUILTIN = auto()


# Raw token type -> terminal symbol. ERROR and COMMENT have no terminal.
TT_TERMINAL = {
    TT.STRING: ParseTokenType.STRING,
    TT.PIPE: ParseTokenType.PIPE,
    TT.REDIRECT: ParseTokenType.REDIRECTION,
    TT.BACKGROUND: ParseTokenType.BACKGROUND,
    TT.END: ParseTokenType.END,
    TT.EOF: ParseTokenType.TERMINATE,
}

_TERMINAL_DESCRIPTIONS = {
    ParseTokenType.STRING: "a string",
    ParseTokenType.PIPE: "a pipe",
    ParseTokenType.REDIRECTION: "a redirection",
    ParseTokenType.BACKGROUND: "a '&'",
    ParseTokenType.END: "end of the statement",
    ParseTokenType.TERMINATE: "end of the input",
    ParseTokenType.INVALID: "an invalid token",
}


def token_type_description(type_: ParseTokenType) -> str:
    """Short human description of a symbol, for diagnostics and dumps."""
    if type_ in _TERMINAL_DESCRIPTIONS:
        return _TERMINAL_DESCRIPTIONS[type_]
    return type_.name.lower()


def keyword_description(keyword: ParseKeyword) -> str:
    if keyword is ParseKeyword.NONE:
        return "no keyword"
    return keyword.name.lower()
