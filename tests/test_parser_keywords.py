from __future__ import annotations

from dataclasses import dataclass
from typing import List

import pytest

from fishparse.errors import ParseErrorCode
from fishparse.parser_rd import parse
from fishparse.token_types import ParseKeyword, ParseTokenType
from fishparse.tree import Decoration
from tests.support.harness import first_of, parse_err, parse_ok, texts_of

PT = ParseTokenType
KW = ParseKeyword


@dataclass(frozen=True)
class Case:
    """A statement whose first word looks like a keyword."""

    name: str
    source: str
    command: str


# Keywords followed by a help flag, or used where they can't start a block,
# run as ordinary commands.
AS_COMMAND_CASES: List[Case] = [
    Case("if-help", "if --help", "if"),
    Case("if-short-help", "if -h", "if"),
    Case("for-help", "for --help", "for"),
    Case("while-help", "while -h", "while"),
    Case("function-help", "function --help", "function"),
    Case("begin-help", "begin --help", "begin"),
    Case("switch-help", "switch -h", "switch"),
    Case("not-help", "not --help", "not"),
    Case("and-help", "and -h", "and"),
    Case("command-option", "command -v ls", "command"),
    Case("command-bare", "command", "command"),
    Case("builtin-option", "builtin -n", "builtin"),
    Case("builtin-bare", "builtin", "builtin"),
    Case("command-before-pipe", "command | cat", "command"),
    Case("quoted-if", "'if' true", "'if'"),
    Case("escaped-if", "\\if true", "\\if"),
    Case("double-quoted-end", '"end"', '"end"'),
    Case("in-statement", "in x", "in"),
]


@pytest.mark.parametrize("case", AS_COMMAND_CASES, ids=lambda case: case.name)
def test_keyword_runs_as_command(case: Case) -> None:
    result = parse_ok(case.source)
    tree = result.tree
    decorated = first_of(tree, PT.DECORATED_STATEMENT)
    assert tree[decorated].tag == Decoration.NONE
    plain = first_of(tree, PT.PLAIN_STATEMENT)
    command = tree[plain].child_offset(0)
    assert tree.source_text(command, case.source) == case.command
    assert tree[command].keyword is KW.NONE
    for kind in (PT.IF_STATEMENT, PT.BLOCK_STATEMENT, PT.SWITCH_STATEMENT, PT.BOOLEAN_STATEMENT):
        assert tree.find(kind) == []


@pytest.mark.parametrize(
    "source",
    [
        "echo end",
        "echo if else case",
        "echo and or not",
        "echo for in while begin function switch",
        "echo command builtin",
    ],
    ids=["end", "if-else-case", "booleans", "blocks", "decorations"],
)
def test_keywords_as_arguments(source: str) -> None:
    tree = parse_ok(source).tree
    plain = first_of(tree, PT.PLAIN_STATEMENT)
    args = tree[plain].child_offset(1)
    strings = texts_of(tree, source, PT.STRING, args)
    assert strings == source.split()[1:]
    assert all(tree[offset].keyword is KW.NONE for offset in tree.find(PT.STRING, args))


def test_decoration_keeps_keyword_command_name() -> None:
    source = "builtin command ls"
    tree = parse_ok(source).tree
    decorated = first_of(tree, PT.DECORATED_STATEMENT)
    assert tree[decorated].tag == Decoration.BUILTIN
    plain = first_of(tree, PT.PLAIN_STATEMENT)
    assert tree.source_text(tree[plain].child_offset(0), source) == "command"


def test_for_loop_variable_named_in() -> None:
    source = "for in in a b; echo $in; end"
    tree = parse_ok(source).tree
    header = first_of(tree, PT.FOR_HEADER)
    _, var, in_kw, _ = tree.child_offsets(header)
    assert tree.source_text(var, source) == "in"
    assert tree[var].keyword is KW.NONE
    assert tree[in_kw].keyword is KW.IN


def test_else_followed_by_if_help_is_not_else_if() -> None:
    source = "if a\nelse if --help\nend"
    result = parse(source)
    tree = result.tree
    assert len(tree.find(PT.IF_CLAUSE)) == 1
    # `if --help` is a command, so `else` still needs its terminator
    assert any(err.code is ParseErrorCode.MISSING_TERMINATOR for err in result.errors)


def test_help_after_keyword_inside_block() -> None:
    source = "begin\n  if --help\nend"
    tree = parse_ok(source).tree
    assert tree.find(PT.IF_STATEMENT) == []
    assert len(tree.find(PT.BLOCK_STATEMENT)) == 1


def test_help_keyword_leaves_end_unbalanced() -> None:
    _, err = parse_err("if -h; end", ParseErrorCode.UNEXPECTED_TOKEN)
    assert err.text == "'end' outside of a block"
    assert (err.source_start, err.source_length) == (7, 3)


def test_keyword_tags_follow_consumption() -> None:
    source = "while true; if x; not y; end; end"
    tree = parse_ok(source).tree
    tagged = [
        (tree.source_text(offset, source), tree[offset].keyword)
        for offset in tree.walk()
        if tree[offset].kind == PT.STRING and tree[offset].tag
    ]
    assert tagged == [
        ("while", KW.WHILE),
        ("if", KW.IF),
        ("not", KW.NOT),
        ("end", KW.END),
        ("end", KW.END),
    ]
