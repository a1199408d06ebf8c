"""prompt_toolkit lexer for live fish syntax highlighting, driven by the parse tree."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.lexers import Lexer

from .lexer_rd import tokenize
from .parser_rd import ParseResult, parse
from .token_types import TT, ParseTokenType
from .tree import NodeOffset, NodeTree

PT = ParseTokenType

# Map highlight groups → prompt_toolkit style strings.
GROUP_STYLE = {
    "command": "bold ansiblue",
    "keyword": "bold ansicyan",
    "param": "",
    "name": "ansiyellow",
    "redirection": "ansimagenta",
    "operator": "ansigreen",
    "comment": "italic ansigray",
    "error": "bold ansired underline",
}

_OPERATORS = {PT.PIPE, PT.BACKGROUND, PT.END}

# (parent symbol, child index) of strings that name something
_NAME_SLOTS = {
    (PT.FOR_HEADER, 1),
    (PT.FUNCTION_HEADER, 1),
    (PT.SWITCH_STATEMENT, 1),
}


def _parents(tree: NodeTree) -> List[Optional[NodeOffset]]:
    parents: List[Optional[NodeOffset]] = [None] * len(tree)
    for offset in range(len(tree)):
        for child in tree.child_offsets(offset):
            parents[child] = offset
    return parents


def _string_group(tree: NodeTree, offset: NodeOffset, parent: Optional[NodeOffset]) -> str:
    if tree[offset].tag:
        return "keyword"
    if parent is None:
        return "param"

    parent_node = tree[parent]
    index = offset - parent_node.child_start
    if parent_node.kind == PT.PLAIN_STATEMENT and index == 0:
        return "command"
    if (parent_node.kind, index) in _NAME_SLOTS:
        return "name"
    # Redirection target: the string right after a redirection in the same cell
    if (parent_node.kind == PT.ARGUMENTS_OR_REDIRECTIONS_LIST and index == 1
            and tree.child(parent, 0).kind == PT.REDIRECTION):
        return "redirection"
    return "param"


def highlight_groups(text: str, result: Optional[ParseResult] = None) -> List[str]:
    """Return one highlight group name per character of ``text``."""
    if result is None:
        result = parse(text)

    tree = result.tree
    groups = ["param"] * len(text)
    parents = _parents(tree)

    for offset in range(1, len(tree)):
        node = tree[offset]
        if not node.has_source() or not node.kind.is_terminal:
            continue

        if node.kind == PT.STRING:
            group = _string_group(tree, offset, parents[offset])
        elif node.kind == PT.REDIRECTION:
            group = "redirection"
        elif node.kind in _OPERATORS:
            group = "operator"
        else:
            continue

        for pos in range(node.source_start, min(node.source_end, len(text))):
            groups[pos] = group

    for tok in tokenize(text, emit_comments=True):
        if tok.type == TT.COMMENT:
            for pos in range(tok.start, tok.end):
                groups[pos] = "comment"

    for err in result.errors:
        # Zero-length errors sit at the end of input and have nothing to paint
        for pos in range(err.source_start, min(err.source_end, len(text))):
            groups[pos] = "error"

    return groups


def _split_lines(text: str, groups: List[str]) -> List[StyleAndTextTuples]:
    lines: List[StyleAndTextTuples] = [[]]
    for ch, group in zip(text, groups):
        if ch == "\n":
            lines.append([])
            continue
        style = GROUP_STYLE.get(group, "")
        line = lines[-1]
        if line and line[-1][0] == style:
            line[-1] = (style, line[-1][1] + ch)
        else:
            line.append((style, ch))
    return lines


class FishLexer(Lexer):
    """prompt_toolkit Lexer that highlights fish source using the parse tree."""

    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        text = document.text
        lines = _split_lines(text, highlight_groups(text))
        cache: Dict[int, StyleAndTextTuples] = {}

        def get_line(lineno: int) -> StyleAndTextTuples:
            if lineno not in cache:
                if lineno < len(lines) and lines[lineno]:
                    cache[lineno] = lines[lineno]
                else:
                    cache[lineno] = [("", "")]

            return cache[lineno]

        return get_line
