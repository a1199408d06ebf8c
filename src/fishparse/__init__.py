"""Parser front end for fish shell scripts: tokens in, flat parse tree out."""

from .errors import Diagnostic, ErrorCollector, InternalParseError, ParseErrorCode
from .parser_rd import ParseResult, Parser, parse, parse_tokens
from .token_types import ParseKeyword, ParseTokenType
from .tree import (
    BlockKind,
    BooleanKind,
    Decoration,
    Node,
    NodeTree,
    StatementFlags,
    to_lark,
)

__all__ = [
    "BlockKind",
    "BooleanKind",
    "Decoration",
    "Diagnostic",
    "ErrorCollector",
    "InternalParseError",
    "Node",
    "NodeTree",
    "ParseErrorCode",
    "ParseKeyword",
    "ParseResult",
    "ParseTokenType",
    "Parser",
    "StatementFlags",
    "parse",
    "parse_tokens",
    "to_lark",
]
