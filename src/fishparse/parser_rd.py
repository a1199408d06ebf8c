"""
Recursive Descent Parser for fish scripts

Structure:
- Lexer: raw tokens from source (lexer_rd)
- Classifier: terminal kinds and keywords with 2-token lookahead (classifier)
- Parser: one method per grammar symbol, building a flat NodeTree

Every production decides its alternative from lookahead, then reserves all
of its child nodes in one block before parsing any of them. Children are
therefore contiguous and sit before their own descendants, and a node's
span is fixed up only after all of its children are done.

The right-recursive list symbols (job_list, job_continuation, else_clause,
case_item_list, arguments_or_redirections_list, argument_list) keep their
right-recursive tree shape but are built by loops, so a long script does not
grow the Python stack. Real nesting (blocks, if bodies, boolean and while
headers) goes through parse_statement, which carries the depth guard.

Syntax errors are recorded and parsing resynchronizes at the next statement
terminator, 'end' keyword or end of input. Missing required nodes are left
as empty placeholders.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, NamedTuple, NoReturn, Optional, Sequence, Tuple, Union

from .classifier import ParseToken, TokenStream
from .errors import (
    Diagnostic,
    ErrorCollector,
    InternalParseError,
    ParseAbort,
    ParseErrorCode,
)
from .lexer_rd import tokenize
from .token_types import ParseKeyword, ParseTokenType, Tok, token_type_description
from .tree import (
    BlockKind,
    BooleanKind,
    Decoration,
    Node,
    NodeOffset,
    NodeTree,
    StatementFlags,
)
from .utils import debug_py_trace_enabled, max_depth_from_env

logger = logging.getLogger(__name__)

PT = ParseTokenType
KW = ParseKeyword
EC = ParseErrorCode

_BOOLEAN_KEYWORDS = {
    KW.AND: BooleanKind.AND,
    KW.OR: BooleanKind.OR,
    KW.NOT: BooleanKind.NOT,
}

_BLOCK_KEYWORDS = {
    KW.FOR: BlockKind.FOR,
    KW.WHILE: BlockKind.WHILE,
    KW.FUNCTION: BlockKind.FUNCTION,
    KW.BEGIN: BlockKind.BEGIN,
}

_DECORATIONS = {
    KW.COMMAND: Decoration.COMMAND,
    KW.BUILTIN: Decoration.BUILTIN,
}

# Keywords that close a job_list; the enclosing production consumes them
_JOB_LIST_STOPS = (KW.END, KW.ELSE, KW.CASE)

# Keywords opening a block that its own 'end' closes
_BLOCK_OPENERS = (KW.IF, KW.SWITCH, KW.FOR, KW.WHILE, KW.FUNCTION, KW.BEGIN)


class ParseResult(NamedTuple):
    """Outcome of one parse: the tree, every diagnostic, and overall success.

    ``success`` is False as soon as any diagnostic was recorded. The tree is
    still the best-effort result; ``fatal`` tells whether parsing stopped
    early, in which case the tree is only fit for display.
    """

    tree: NodeTree
    errors: Tuple[Diagnostic, ...]
    success: bool
    fatal: bool = False


def describe_token(tok: ParseToken) -> str:
    if tok.type == PT.STRING:
        return f"'{tok.text}'"
    return token_type_description(tok.type)


class Parser:
    """
    Recursive descent parser for fish.

    Grammar (symbol -> alternatives):

        job_list            = <empty> | END job_list | job job_list
        job                 = statement job_continuation
        job_continuation    = <empty> | PIPE statement job_continuation
        statement           = boolean_statement | block_statement | if_statement
                            | switch_statement | decorated_statement
        if_statement        = if_clause else_clause END_KW arguments_or_redirections_list
        if_clause           = IF job END job_list
        else_clause         = <empty> | ELSE else_continuation
        else_continuation   = if_clause else_clause | END job_list
        switch_statement    = SWITCH STRING END case_item_list END_KW
        case_item_list      = <empty> | case_item case_item_list | END case_item_list
        case_item           = CASE argument_list END job_list
        boolean_statement   = (AND | OR | NOT) statement
        decorated_statement = (COMMAND | BUILTIN)? plain_statement
        plain_statement     = STRING arguments_or_redirections_list optional_background
        block_statement     = block_header END job_list END_KW arguments_or_redirections_list
        block_header        = for_header | while_header | function_header | begin_header
        for_header          = FOR STRING IN arguments_or_redirections_list
        while_header        = WHILE statement
        begin_header        = BEGIN
        function_header     = FUNCTION STRING argument_list
        arguments_or_redirections_list
                            = <empty> | STRING arguments_or_redirections_list
                            | REDIRECTION STRING arguments_or_redirections_list
        argument_list       = <empty> | argument_list_nonempty
        argument_list_nonempty = STRING argument_list
        optional_background = <empty> | BACKGROUND
    """

    def __init__(self, tokens: Union[TokenStream, Sequence[Tok]], source: str,
                 max_depth: Optional[int] = None):
        self.source = source
        if isinstance(tokens, TokenStream):
            self.stream = tokens
        else:
            self.stream = TokenStream(tokens, len(source))
        self.tree = NodeTree()
        self.errors = ErrorCollector()
        self.max_depth = max_depth if max_depth is not None else max_depth_from_env()
        self.depth = 0

    # ========================================================================
    # Entry Point
    # ========================================================================

    def parse(self) -> ParseResult:
        """Parse the whole token stream. Never raises for bad input."""
        root = self.tree.allocate(PT.JOB_LIST, 0, len(self.source))

        try:
            self.parse_job_list(root, top_level=True)
            if not self.stream.at_end:
                tok = self.peek()
                raise InternalParseError(
                    f"top-level job list stopped at {describe_token(tok)}",
                    tok.source_start, tok.source_length,
                )
            self.tree.set_source(root, 0, len(self.source))
            self.tree.check_invariants()
        except ParseAbort as exc:
            logger.debug("parse aborted: %s", exc)
        except RecursionError:
            tok = self.peek()
            self.errors.record(
                EC.NESTING_TOO_DEEP, "Statements are nested too deeply",
                tok.source_start, tok.source_length,
            )
            logger.debug("parse aborted: Python recursion limit at offset %d", tok.source_start)
        except InternalParseError as exc:
            self.errors.record(
                EC.INTERNAL_INVARIANT_VIOLATION, exc.message,
                exc.source_start, exc.source_length,
            )
            logger.error("%s", exc.format(), exc_info=debug_py_trace_enabled())

        self.tree.freeze()
        errors = self.errors.freeze()
        logger.debug("parsed %d nodes with %d diagnostics", len(self.tree), len(errors))
        return ParseResult(self.tree, errors, not errors, self.errors.has_fatal())

    # ========================================================================
    # Token Navigation
    # ========================================================================

    def peek(self, offset: int = 0) -> ParseToken:
        return self.stream.peek(offset)

    def check(self, *types: ParseTokenType) -> bool:
        return self.stream.check(*types)

    def check_keyword(self, *keywords: ParseKeyword) -> bool:
        return self.peek().is_keyword(*keywords)

    def take(self, offset: NodeOffset, keyword: ParseKeyword = KW.NONE) -> ParseToken:
        """Consume the lookahead into the terminal node at ``offset``"""
        tok = self.stream.advance()
        node = self.tree[offset]
        if node.kind != tok.type:
            raise InternalParseError(
                f"cannot store {tok.type.name.lower()} in a {node.kind.name.lower()} node",
                tok.source_start, tok.source_length,
            )
        self.tree.set_source(offset, tok.source_start, tok.source_length)
        if keyword:
            self.tree.set_tag(offset, keyword)
        return tok

    def statement_keyword(self) -> ParseKeyword:
        """
        Keyword the lookahead acts as at the start of a statement.

        `if --help` and friends are plain commands. `command` and `builtin`
        only decorate when followed by a non-option string, so `command -v x`
        and a bare `builtin` run the command itself.
        """
        tok = self.peek()
        keyword = tok.keyword
        if keyword is KW.NONE:
            return keyword

        following = self.peek(1)
        if following.is_help_argument:
            return KW.NONE
        if keyword in _DECORATIONS:
            if following.type != PT.STRING or following.has_dash_prefix:
                return KW.NONE
        return keyword

    # ========================================================================
    # Tree Building
    # ========================================================================

    def block(self, parent: NodeOffset, *kinds: ParseTokenType) -> range:
        """Reserve the children of the production chosen for ``parent``"""
        return self.tree.reserve_children(parent, kinds, self.peek().source_start)

    def finish(self, offset: NodeOffset) -> None:
        self.tree.finish_span(offset, self.peek().source_start)

    def finish_chain(self, chain: List[NodeOffset]) -> None:
        """Finish list cells innermost first; each cell appears after its parent"""
        for offset in reversed(chain):
            self.finish(offset)

    # ========================================================================
    # Errors and Recovery
    # ========================================================================

    def error_at(self, code: ParseErrorCode, tok: ParseToken, text: str) -> None:
        if tok.type == PT.INVALID:
            code = EC.TOKENIZER_ERROR
            text = tok.error or f"Invalid token {tok.text!r}"

        if self.errors.record(code, text, tok.source_start, tok.source_length):
            logger.debug("%s at %d: %s", code.name, tok.source_start, text)

    def fatal(self, code: ParseErrorCode, text: str, tok: ParseToken) -> NoReturn:
        self.errors.record(code, text, tok.source_start, tok.source_length)
        logger.debug("fatal %s at %d: %s", code.name, tok.source_start, text)
        raise ParseAbort(self.errors.freeze()[-1])

    def resync(self) -> int:
        """Skip to the next terminator, 'end' keyword or end of input"""
        skipped = 0
        while True:
            tok = self.peek()
            if tok.type in (PT.END, PT.TERMINATE) or tok.is_keyword(KW.END):
                return skipped
            self.stream.advance()
            skipped += 1

    def expect_terminator(self, offset: NodeOffset, context: str) -> bool:
        if self.check(PT.END):
            self.take(offset)
            return True

        tok = self.peek()
        self.error_at(
            EC.MISSING_TERMINATOR, tok,
            f"Expected end of the statement {context}, but found {describe_token(tok)}",
        )
        self.resync()
        if self.check(PT.END):
            self.take(offset)
        return False

    def expect_end_keyword(self, offset: NodeOffset, what: str) -> bool:
        if self.check_keyword(KW.END):
            self.take(offset, KW.END)
            return True

        tok = self.peek()
        self.error_at(
            EC.MISSING_TERMINATOR, tok,
            f"Missing 'end' to balance this {what}, found {describe_token(tok)}",
        )
        self.skip_to_end_keyword()
        if self.check_keyword(KW.END):
            self.take(offset, KW.END)
        return False

    def skip_to_end_keyword(self) -> int:
        """Skip whole lines up to the 'end' that closes the current block.

        Blocks opened while skipping are balanced by their own 'end'.
        """
        skipped = 0
        depth = 0
        command_position = True
        while True:
            tok = self.peek()
            if tok.type == PT.TERMINATE:
                return skipped
            if command_position:
                if tok.is_keyword(KW.END):
                    if depth == 0:
                        return skipped
                    depth -= 1
                elif tok.is_keyword(*_BLOCK_OPENERS) and not self.peek(1).is_help_argument:
                    depth += 1
            command_position = tok.type in (PT.END, PT.PIPE) or tok.is_keyword(*_BOOLEAN_KEYWORDS)
            self.stream.advance()
            skipped += 1

    @contextmanager
    def nested(self) -> Iterator[None]:
        """Depth guard around every statement"""
        self.depth += 1
        try:
            if self.depth > self.max_depth:
                self.fatal(
                    EC.NESTING_TOO_DEEP,
                    f"Statements are nested too deeply (limit {self.max_depth})",
                    self.peek(),
                )
            yield
        finally:
            self.depth -= 1

    # ========================================================================
    # Job Lists and Jobs
    # ========================================================================

    def parse_job_list(self, offset: NodeOffset, top_level: bool = False) -> None:
        chain = [offset]
        node = offset

        while True:
            tok = self.peek()

            if tok.type == PT.TERMINATE:
                break

            if tok.is_keyword(*_JOB_LIST_STOPS):
                if not top_level:
                    break
                self.error_at(EC.UNEXPECTED_TOKEN, tok, f"'{tok.text}' outside of a block")
                self.stream.advance()
                self.resync()
                continue

            if tok.type == PT.END:
                term, rest = self.block(node, PT.END, PT.JOB_LIST)
                self.take(term)
            elif tok.type == PT.STRING:
                job, rest = self.block(node, PT.JOB, PT.JOB_LIST)
                self.parse_job(job)
            else:
                self.error_at(
                    EC.EMPTY_REQUIRED_ELEMENT, tok,
                    f"Expected a command, but found {describe_token(tok)}",
                )
                self.stream.advance()
                self.resync()
                continue

            chain.append(rest)
            node = rest

        self.finish_chain(chain)

    def parse_job(self, offset: NodeOffset) -> None:
        statement, continuation = self.block(offset, PT.STATEMENT, PT.JOB_CONTINUATION)
        self.parse_statement(statement)
        self.parse_job_continuation(continuation)
        self.finish(offset)

    def parse_job_continuation(self, offset: NodeOffset) -> None:
        chain = [offset]
        node = offset

        while self.check(PT.PIPE):
            pipe, statement, rest = self.block(node, PT.PIPE, PT.STATEMENT, PT.JOB_CONTINUATION)
            self.take(pipe)
            self.parse_statement(statement)
            chain.append(rest)
            node = rest

        self.finish_chain(chain)

    # ========================================================================
    # Statements
    # ========================================================================

    def parse_statement(self, offset: NodeOffset) -> None:
        with self.nested():
            tok = self.peek()
            if tok.type != PT.STRING:
                self.error_at(
                    EC.EMPTY_REQUIRED_ELEMENT, tok,
                    f"Expected a command, but found {describe_token(tok)}",
                )
                self.finish(offset)
                return

            keyword = self.statement_keyword()
            if keyword in _JOB_LIST_STOPS:
                self.error_at(EC.UNEXPECTED_TOKEN, tok, f"Expected a command, but found '{tok.text}'")
                self.finish(offset)
                return

            if keyword in _BOOLEAN_KEYWORDS:
                (child,) = self.block(offset, PT.BOOLEAN_STATEMENT)
                self.parse_boolean_statement(child, keyword)
            elif keyword in _BLOCK_KEYWORDS:
                (child,) = self.block(offset, PT.BLOCK_STATEMENT)
                self.parse_block_statement(child, keyword)
            elif keyword is KW.IF:
                (child,) = self.block(offset, PT.IF_STATEMENT)
                self.parse_if_statement(child)
            elif keyword is KW.SWITCH:
                (child,) = self.block(offset, PT.SWITCH_STATEMENT)
                self.parse_switch_statement(child)
            else:
                (child,) = self.block(offset, PT.DECORATED_STATEMENT)
                self.parse_decorated_statement(child, keyword)

            self.finish(offset)

    def parse_boolean_statement(self, offset: NodeOffset, keyword: ParseKeyword) -> None:
        self.tree.set_tag(offset, _BOOLEAN_KEYWORDS[keyword])
        kw, statement = self.block(offset, PT.STRING, PT.STATEMENT)
        self.take(kw, keyword)
        self.parse_statement(statement)
        self.finish(offset)

    def parse_decorated_statement(self, offset: NodeOffset, keyword: ParseKeyword) -> None:
        decoration = _DECORATIONS.get(keyword, Decoration.NONE)
        self.tree.set_tag(offset, decoration)

        if decoration:
            kw, plain = self.block(offset, PT.STRING, PT.PLAIN_STATEMENT)
            self.take(kw, keyword)
        else:
            (plain,) = self.block(offset, PT.PLAIN_STATEMENT)

        self.parse_plain_statement(plain)
        self.finish(offset)

    def parse_plain_statement(self, offset: NodeOffset) -> None:
        command, args, background = self.block(
            offset, PT.STRING, PT.ARGUMENTS_OR_REDIRECTIONS_LIST, PT.OPTIONAL_BACKGROUND
        )
        if not self.check(PT.STRING):
            tok = self.peek()
            raise InternalParseError("plain statement without a command", tok.source_start, tok.source_length)

        self.take(command)
        self.parse_arguments_or_redirections_list(args)
        if self.parse_optional_background(background):
            self.tree.set_tag(offset, StatementFlags.BACKGROUND)
        self.finish(offset)

    def parse_optional_background(self, offset: NodeOffset) -> bool:
        if not self.check(PT.BACKGROUND):
            self.finish(offset)
            return False

        tok = self.stream.advance()
        self.tree.append_child_block(offset, [Node(PT.BACKGROUND, tok.source_start, tok.source_length)])
        self.finish(offset)
        return True

    # ========================================================================
    # If / Switch
    # ========================================================================

    def parse_if_statement(self, offset: NodeOffset) -> None:
        clause, else_clause, end, args = self.block(
            offset, PT.IF_CLAUSE, PT.ELSE_CLAUSE, PT.STRING, PT.ARGUMENTS_OR_REDIRECTIONS_LIST
        )
        self.parse_if_clause(clause)
        self.parse_else_clause(else_clause)
        self.expect_end_keyword(end, "if statement")
        self.parse_arguments_or_redirections_list(args)
        self.finish(offset)

    def parse_if_clause(self, offset: NodeOffset) -> None:
        kw, job, term, body = self.block(offset, PT.STRING, PT.JOB, PT.END, PT.JOB_LIST)
        self.take(kw, KW.IF)
        self.parse_job(job)
        self.expect_terminator(term, "after the 'if' condition")
        self.parse_job_list(body)
        self.finish(offset)

    def parse_else_clause(self, offset: NodeOffset) -> None:
        chain = [offset]
        node = offset

        while self.check_keyword(KW.ELSE):
            kw, continuation = self.block(node, PT.STRING, PT.ELSE_CONTINUATION)
            self.take(kw, KW.ELSE)
            chain.append(continuation)

            if self.check_keyword(KW.IF) and not self.peek(1).is_help_argument:
                clause, rest = self.block(continuation, PT.IF_CLAUSE, PT.ELSE_CLAUSE)
                self.parse_if_clause(clause)
                chain.append(rest)
                node = rest
                continue

            term, body = self.block(continuation, PT.END, PT.JOB_LIST)
            self.expect_terminator(term, "after 'else'")
            self.parse_job_list(body)
            break

        self.finish_chain(chain)

    def parse_switch_statement(self, offset: NodeOffset) -> None:
        kw, value, term, items, end = self.block(
            offset, PT.STRING, PT.STRING, PT.END, PT.CASE_ITEM_LIST, PT.STRING
        )
        self.take(kw, KW.SWITCH)

        if self.check(PT.STRING):
            self.take(value)
        else:
            tok = self.peek()
            self.error_at(
                EC.UNEXPECTED_TOKEN, tok,
                f"Expected a value after 'switch', but found {describe_token(tok)}",
            )

        self.expect_terminator(term, "after the switch value")
        self.parse_case_item_list(items)
        self.expect_end_keyword(end, "switch statement")
        self.finish(offset)

    def parse_case_item_list(self, offset: NodeOffset) -> None:
        chain = [offset]
        node = offset

        while True:
            if self.check_keyword(KW.CASE):
                item, rest = self.block(node, PT.CASE_ITEM, PT.CASE_ITEM_LIST)
                self.parse_case_item(item)
            elif self.check(PT.END):
                term, rest = self.block(node, PT.END, PT.CASE_ITEM_LIST)
                self.take(term)
            else:
                tok = self.peek()
                if tok.type == PT.TERMINATE or tok.is_keyword(KW.END):
                    break
                self.error_at(
                    EC.UNEXPECTED_TOKEN, tok,
                    f"Expected 'case' in a switch statement, but found {describe_token(tok)}",
                )
                self.stream.advance()
                self.resync()
                continue
            chain.append(rest)
            node = rest

        self.finish_chain(chain)

    def parse_case_item(self, offset: NodeOffset) -> None:
        kw, patterns, term, body = self.block(offset, PT.STRING, PT.ARGUMENT_LIST, PT.END, PT.JOB_LIST)
        self.take(kw, KW.CASE)
        self.parse_argument_list(patterns)
        self.expect_terminator(term, "after the case patterns")
        self.parse_job_list(body)
        self.finish(offset)

    # ========================================================================
    # Blocks
    # ========================================================================

    def parse_block_statement(self, offset: NodeOffset, keyword: ParseKeyword) -> None:
        header, term, body, end, args = self.block(
            offset, PT.BLOCK_HEADER, PT.END, PT.JOB_LIST, PT.STRING, PT.ARGUMENTS_OR_REDIRECTIONS_LIST
        )
        name = keyword.name.lower()
        self.parse_block_header(header, keyword)
        self.expect_terminator(term, f"after the '{name}' header")
        self.parse_job_list(body)
        self.expect_end_keyword(end, f"'{name}' block")
        self.parse_arguments_or_redirections_list(args)
        self.finish(offset)

    def parse_block_header(self, offset: NodeOffset, keyword: ParseKeyword) -> None:
        kind = _BLOCK_KEYWORDS[keyword]
        self.tree.set_tag(offset, kind)

        match kind:
            case BlockKind.FOR:
                (header,) = self.block(offset, PT.FOR_HEADER)
                self.parse_for_header(header)
            case BlockKind.WHILE:
                (header,) = self.block(offset, PT.WHILE_HEADER)
                self.parse_while_header(header)
            case BlockKind.FUNCTION:
                (header,) = self.block(offset, PT.FUNCTION_HEADER)
                self.parse_function_header(header)
            case BlockKind.BEGIN:
                (header,) = self.block(offset, PT.BEGIN_HEADER)
                self.parse_begin_header(header)

        self.finish(offset)

    def parse_for_header(self, offset: NodeOffset) -> None:
        kw, var, in_kw, args = self.block(
            offset, PT.STRING, PT.STRING, PT.STRING, PT.ARGUMENTS_OR_REDIRECTIONS_LIST
        )
        self.take(kw, KW.FOR)

        # `for in in ...` loops over a variable named "in"
        tok = self.peek()
        misplaced_in = tok.is_keyword(KW.IN) and not self.peek(1).is_keyword(KW.IN)
        if tok.type == PT.STRING and not misplaced_in:
            self.take(var)
        else:
            self.error_at(
                EC.UNEXPECTED_TOKEN, tok,
                f"Expected a variable name after 'for', but found {describe_token(tok)}",
            )

        tok = self.peek()
        if tok.is_keyword(KW.IN):
            self.take(in_kw, KW.IN)
        else:
            self.error_at(
                EC.UNEXPECTED_TOKEN, tok,
                f"Expected 'in' after the loop variable, but found {describe_token(tok)}",
            )

        self.parse_arguments_or_redirections_list(args)
        self.finish(offset)

    def parse_while_header(self, offset: NodeOffset) -> None:
        kw, condition = self.block(offset, PT.STRING, PT.STATEMENT)
        self.take(kw, KW.WHILE)
        self.parse_statement(condition)
        self.finish(offset)

    def parse_begin_header(self, offset: NodeOffset) -> None:
        tok = self.stream.advance()
        self.tree.append_child_block(
            offset, [Node(PT.STRING, tok.source_start, tok.source_length, tag=KW.BEGIN)]
        )
        self.finish(offset)

    def parse_function_header(self, offset: NodeOffset) -> None:
        kw, name, args = self.block(offset, PT.STRING, PT.STRING, PT.ARGUMENT_LIST)
        self.take(kw, KW.FUNCTION)

        tok = self.peek()
        if tok.type == PT.STRING:
            self.take(name)
        else:
            self.error_at(
                EC.UNEXPECTED_TOKEN, tok,
                f"Expected a function name after 'function', but found {describe_token(tok)}",
            )

        self.parse_argument_list(args)
        self.finish(offset)

    # ========================================================================
    # Arguments
    # ========================================================================

    def parse_arguments_or_redirections_list(self, offset: NodeOffset) -> None:
        chain = [offset]
        node = offset

        while True:
            tok = self.peek()

            if tok.type == PT.STRING:
                arg, rest = self.block(node, PT.STRING, PT.ARGUMENTS_OR_REDIRECTIONS_LIST)
                self.take(arg)
            elif tok.type == PT.REDIRECTION:
                redirection, target, rest = self.block(
                    node, PT.REDIRECTION, PT.STRING, PT.ARGUMENTS_OR_REDIRECTIONS_LIST
                )
                self.take(redirection)
                if self.check(PT.STRING):
                    self.take(target)
                else:
                    following = self.peek()
                    self.error_at(
                        EC.UNEXPECTED_TOKEN, following,
                        f"Expected a redirection target, but found {describe_token(following)}",
                    )
            elif tok.type == PT.INVALID:
                self.error_at(EC.TOKENIZER_ERROR, tok, tok.error or "Invalid token")
                self.stream.advance()
                continue
            else:
                break

            chain.append(rest)
            node = rest

        self.finish_chain(chain)

    def parse_argument_list(self, offset: NodeOffset) -> None:
        chain = [offset]
        node = offset

        while self.check(PT.STRING):
            (cell,) = self.block(node, PT.ARGUMENT_LIST_NONEMPTY)
            arg, rest = self.block(cell, PT.STRING, PT.ARGUMENT_LIST)
            self.take(arg)
            chain.extend((cell, rest))
            node = rest

        self.finish_chain(chain)


# ============================================================================
# Public API
# ============================================================================

def parse(source: str, max_depth: Optional[int] = None) -> ParseResult:
    """
    Parse fish source into a flat parse tree.

    Returns ``(tree, errors, success)``. Syntax errors never raise; they are
    reported in ``errors`` alongside a best-effort tree.

    Args:
        source: Script text
        max_depth: Statement nesting bound (default from FISHPARSE_MAX_DEPTH, else 128)
    """
    tokens = tokenize(source)
    parser = Parser(tokens, source, max_depth=max_depth)
    return parser.parse()


def parse_tokens(tokens: Sequence[Tok], source: str, max_depth: Optional[int] = None) -> ParseResult:
    """Parse tokens from another tokenizer; ``source`` supplies the root span."""
    return Parser(tokens, source, max_depth=max_depth).parse()
