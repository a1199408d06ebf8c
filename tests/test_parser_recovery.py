from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import pytest

from fishparse.errors import ParseErrorCode
from fishparse.lexer_rd import tokenize
from fishparse.parser_rd import parse, parse_tokens
from fishparse.token_types import TT, ParseKeyword, ParseTokenType, Tok
from tests.support.harness import assert_tree_properties, parse_err, top_level_jobs

PT = ParseTokenType
EC = ParseErrorCode
KW = ParseKeyword


@dataclass(frozen=True)
class Case:
    """One malformed input and its first diagnostic."""

    name: str
    source: str
    code: ParseErrorCode
    start: int
    length: Optional[int] = None
    text: Optional[str] = None
    count: Optional[int] = None


CASES: List[Case] = [
    Case(
        "if-without-end", "if true", EC.MISSING_TERMINATOR, 7, 0,
        text="Expected end of the statement after the 'if' condition, but found end of the input",
        count=1,
    ),
    Case(
        "if-body-without-end", "if true; echo", EC.MISSING_TERMINATOR, 13, 0,
        text="Missing 'end' to balance this if statement, found end of the input",
        count=1,
    ),
    Case("begin-without-end", "begin; echo", EC.MISSING_TERMINATOR, 11, 0, count=1),
    Case(
        "for-block-without-end", "for i in a; echo $i", EC.MISSING_TERMINATOR, 19, 0,
        text="Missing 'end' to balance this 'for' block, found end of the input",
        count=1,
    ),
    Case(
        "stray-end", "end", EC.UNEXPECTED_TOKEN, 0, 3,
        text="'end' outside of a block", count=1,
    ),
    Case("stray-else", "else", EC.UNEXPECTED_TOKEN, 0, 4, text="'else' outside of a block"),
    Case("stray-case", "case x", EC.UNEXPECTED_TOKEN, 0, 4, text="'case' outside of a block"),
    Case(
        "pipe-without-command", "a |", EC.EMPTY_REQUIRED_ELEMENT, 3, 0,
        text="Expected a command, but found end of the input", count=1,
    ),
    Case(
        "leading-pipe", "| a", EC.EMPTY_REQUIRED_ELEMENT, 0, 1,
        text="Expected a command, but found a pipe", count=1,
    ),
    Case(
        "leading-background", "& a", EC.EMPTY_REQUIRED_ELEMENT, 0, 1,
        text="Expected a command, but found a '&'",
    ),
    Case(
        "pipe-into-terminator", "a | ; b", EC.EMPTY_REQUIRED_ELEMENT, 4, 1,
        text="Expected a command, but found end of the statement",
    ),
    Case(
        "redirection-without-target", "echo >", EC.UNEXPECTED_TOKEN, 6, 0,
        text="Expected a redirection target, but found end of the input", count=1,
    ),
    Case(
        "redirection-into-pipe", "echo > | cat", EC.UNEXPECTED_TOKEN, 7, 1,
        text="Expected a redirection target, but found a pipe",
    ),
    Case(
        "for-without-in", "for i; end", EC.UNEXPECTED_TOKEN, 5, 1,
        text="Expected 'in' after the loop variable, but found end of the statement", count=1,
    ),
    Case(
        "for-keyword-as-variable", "for in x; end", EC.UNEXPECTED_TOKEN, 4, 2,
        text="Expected a variable name after 'for', but found 'in'", count=1,
    ),
    Case(
        "for-with-wrong-in", "for i x; end", EC.UNEXPECTED_TOKEN, 6, 1,
        text="Expected 'in' after the loop variable, but found 'x'", count=1,
    ),
    Case(
        "function-without-name", "function; end", EC.UNEXPECTED_TOKEN, 8, 1,
        text="Expected a function name after 'function', but found end of the statement", count=1,
    ),
    Case(
        "switch-without-value", "switch; end", EC.UNEXPECTED_TOKEN, 6, 1,
        text="Expected a value after 'switch', but found end of the statement", count=1,
    ),
    Case(
        "switch-body-not-case", "switch x; echo; end", EC.UNEXPECTED_TOKEN, 10, 4,
        text="Expected 'case' in a switch statement, but found 'echo'", count=1,
    ),
    Case(
        "case-in-for-body", "for i in a b; case x; end", EC.MISSING_TERMINATOR, 14, 4,
        text="Missing 'end' to balance this 'for' block, found 'case'", count=1,
    ),
    Case(
        "case-in-if-body", "if a; case b; end; echo ok", EC.MISSING_TERMINATOR, 6, 4,
        text="Missing 'end' to balance this if statement, found 'case'", count=1,
    ),
    Case(
        "if-condition-missing", "if; end", EC.EMPTY_REQUIRED_ELEMENT, 2, 1,
        text="Expected a command, but found end of the statement", count=1,
    ),
    Case(
        "unbalanced-quote", "echo 'abc", EC.TOKENIZER_ERROR, 5, 4,
        text="Unexpected end of string, quotes are not balanced", count=1,
    ),
    Case(
        "unbalanced-paren", "echo (ls", EC.TOKENIZER_ERROR, 5, 3,
        text="Unexpected end of string, parenthesis do not match",
    ),
    Case(
        "stray-close-paren-first", ") echo", EC.TOKENIZER_ERROR, 0, 1,
        text="Unexpected ')' found, no matching '('", count=1,
    ),
    Case(
        "invalid-command-position", "a | )", EC.TOKENIZER_ERROR, 4, 1,
    ),
]


@pytest.mark.parametrize("case", CASES, ids=lambda case: case.name)
def test_recovery_diagnostics(case: Case) -> None:
    result, err = parse_err(case.source)
    assert err.code is case.code
    assert err.source_start == case.start
    if case.length is not None:
        assert err.source_length == case.length
    if case.text is not None:
        assert err.text == case.text
    if case.count is not None:
        assert len(result.errors) == case.count, [e.text for e in result.errors]

    assert not result.fatal
    result.tree.check_invariants()
    assert_tree_properties(result.tree)
    root = result.tree.root
    assert (root.source_start, root.source_length) == (0, len(case.source))


def test_missing_end_reported_once() -> None:
    result, _ = parse_err("if true")
    assert [err.code for err in result.errors] == [EC.MISSING_TERMINATOR]
    assert result.tree.find(PT.IF_STATEMENT)
    # Placeholder terminal for the missing 'end'
    if_stmt = result.tree.find(PT.IF_STATEMENT)[0]
    end = result.tree.child(if_stmt, 2)
    assert end.kind == PT.STRING
    assert end.source_length == 0


def test_parsing_continues_after_stray_end() -> None:
    source = "echo hi; end; echo bye"
    result, err = parse_err(source)
    assert len(result.errors) == 1
    assert err.source_start == 9
    assert len(top_level_jobs(result.tree)) == 2


def test_resync_skips_rest_of_statement() -> None:
    source = "| a b c\necho ok"
    result, _ = parse_err(source)
    assert len(result.errors) == 1
    jobs = top_level_jobs(result.tree)
    assert len(jobs) == 1
    assert result.tree.source_text(jobs[0], source) == "echo ok"


def test_switch_resumes_after_bad_line() -> None:
    source = "switch x; foo; case a; echo; end; echo ok"
    result, err = parse_err(source)
    assert [e.code for e in result.errors] == [EC.UNEXPECTED_TOKEN]
    assert err.source_start == 10
    tree = result.tree
    (item,) = tree.find(PT.CASE_ITEM)
    assert tree.source_text(item, source) == "case a; echo;"
    (switch,) = tree.find(PT.SWITCH_STATEMENT)
    end = tree.child(switch, 4)
    assert (end.source_start, end.keyword) == (29, KW.END)
    jobs = top_level_jobs(tree)
    assert [tree.source_text(job, source) for job in jobs][-1] == "echo ok"


def test_switch_skips_each_bad_line() -> None:
    source = "switch x\n  foo | bar\n  & baz\n  case a\n    echo a\nend"
    result, _ = parse_err(source)
    assert [e.source_start for e in result.errors] == [11, 23]
    assert len(result.tree.find(PT.CASE_ITEM)) == 1
    assert_tree_properties(result.tree)


def test_missing_end_skips_nested_blocks() -> None:
    source = "begin; case x; if a; b; end; c; end; echo ok"
    result, err = parse_err(source)
    assert len(result.errors) == 1
    assert err.source_start == 7
    tree = result.tree
    (block,) = tree.find(PT.BLOCK_STATEMENT)
    end = tree.child(block, 3)
    assert end.source_start == 32
    jobs = top_level_jobs(tree)
    assert tree.source_text(jobs[-1], source) == "echo ok"


def test_fatal_flag_matches_diagnostics() -> None:
    ok = parse("if a; case b; end")
    assert not ok.success and not ok.fatal
    deep = parse("not not not true", max_depth=2)
    assert deep.fatal
    assert deep.fatal == any(err.fatal for err in deep.errors)


def test_errors_in_arrival_order() -> None:
    result, _ = parse_err("end\nfor i; end\nswitch; end")
    starts = [err.source_start for err in result.errors]
    assert starts == sorted(starts)
    assert len(result.errors) == 3


def test_invalid_argument_is_skipped() -> None:
    source = "echo a ) b"
    result, err = parse_err(source, EC.TOKENIZER_ERROR)
    assert err.source_start == 7
    assert len(result.errors) == 1


# ============================================================================
# Nesting guard
# ============================================================================


def test_nesting_limit_is_fatal() -> None:
    source = "begin; " * 5 + "end; " * 5
    result = parse(source, max_depth=3)
    assert not result.success
    assert result.fatal
    err = result.errors[-1]
    assert err.code is EC.NESTING_TOO_DEEP
    assert err.text == "Statements are nested too deeply (limit 3)"
    assert err.source_start == 21
    assert result.tree.frozen
    assert result.tree.root.kind == PT.JOB_LIST


def test_nesting_within_limit() -> None:
    source = "begin; " * 5 + "end; " * 5
    assert parse(source, max_depth=5).success


def test_default_nesting_limit() -> None:
    source = "not " * 200 + "true"
    result = parse(source)
    assert result.fatal
    (err,) = result.errors
    assert err.code is EC.NESTING_TOO_DEEP
    assert err.source_start == 4 * 128


def test_reasonable_nesting_parses() -> None:
    source = "begin; " * 100 + "end; " * 100
    result = parse(source)
    assert result.success
    assert len(result.tree.find(PT.BLOCK_STATEMENT)) == 100


def test_python_recursion_limit_is_reported() -> None:
    source = "not " * 5000 + "true"
    result = parse(source, max_depth=1_000_000)
    assert result.fatal
    assert result.errors[-1].code is EC.NESTING_TOO_DEEP


def test_env_max_depth(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FISHPARSE_MAX_DEPTH", "2")
    assert parse("not true").success
    result = parse("not not true")
    assert result.fatal
    assert result.errors[-1].text == "Statements are nested too deeply (limit 2)"
    # An explicit bound wins over the environment
    assert parse("not not true", max_depth=10).success


@pytest.mark.parametrize("value", ["deep", "0", "-3"], ids=["word", "zero", "negative"])
def test_env_max_depth_rejects_bad_values(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("FISHPARSE_MAX_DEPTH", value)
    with pytest.raises(ValueError, match="FISHPARSE_MAX_DEPTH"):
        parse("echo hi")


# ============================================================================
# Internal errors
# ============================================================================


def test_internal_error_becomes_fatal_diagnostic(caplog: pytest.LogCaptureFixture) -> None:
    # Spans out of order can only come from a broken tokenizer
    tokens = [
        Tok(TT.STRING, "a", 5, 1),
        Tok(TT.STRING, "b", 0, 1),
        Tok(TT.EOF, "", 6, 0),
    ]
    with caplog.at_level(logging.ERROR, logger="fishparse"):
        result = parse_tokens(tokens, "b    a")
    assert not result.success
    assert result.fatal
    assert result.errors[-1].code is EC.INTERNAL_INVARIANT_VIOLATION
    assert any("internal parser error" in record.getMessage() for record in caplog.records)


def test_parse_tokens_matches_parse() -> None:
    source = "for x in a b\n  echo $x | wc\nend"
    direct = parse(source)
    via_tokens = parse_tokens(tokenize(source), source)
    assert via_tokens.success
    assert via_tokens.tree.pretty(source) == direct.tree.pretty(source)


def test_parse_tokens_without_eof() -> None:
    source = "echo hi"
    tokens = [tok for tok in tokenize(source) if tok.type != TT.EOF]
    result = parse_tokens(tokens, source)
    assert result.success
    assert len(result.tree.find(PT.STRING)) == 2
