from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

from .parser_rd import ParseResult, parse
from .tree import to_lark
from .utils import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SYNTAX_ERROR = 1
EXIT_FATAL = 2

USAGE = "usage: fishparse [--lark] [--max-depth N] [--verbose] [--repl] [PATH | - | SOURCE]"


def run(src: str, max_depth: Optional[int] = None) -> ParseResult:
    result = parse(src, max_depth=max_depth)
    logger.info(
        "parsed %d chars into %d nodes, %d diagnostics",
        len(src), len(result.tree), len(result.errors),
    )
    return result


def exit_status(result: ParseResult) -> int:
    if result.fatal:
        return EXIT_FATAL
    if not result.success:
        return EXIT_SYNTAX_ERROR
    return EXIT_OK


def _load_source(arg: Optional[str]) -> str:
    """
    Resolve CLI input into source text.
    - None or "-" => read stdin.
    - Existing path => read file contents.
    - Otherwise treat the argument as literal source.
    """

    if arg is None or arg == "-":
        return sys.stdin.read()

    candidate = Path(arg)
    if candidate.is_file():
        return candidate.read_text(encoding="utf-8")

    return arg


def main(argv: Optional[List[str]] = None) -> int:
    use_lark = False
    max_depth: Optional[int] = None
    verbose = False
    start_repl = False
    arg = None
    it = iter(sys.argv[1:] if argv is None else argv)

    for token in it:
        if token == "--lark":
            use_lark = True
            continue

        if token in ("-v", "--verbose"):
            verbose = True
            continue

        if token == "--repl":
            start_repl = True
            continue

        if token.startswith("--max-depth"):
            if token.startswith("--max-depth="):
                value = token.split("=", 1)[1]
            else:
                try:
                    value = next(it)
                except StopIteration:
                    raise SystemExit("--max-depth flag requires a number") from None
            try:
                max_depth = int(value)
            except ValueError:
                raise SystemExit(f"--max-depth expects a number, got {value!r}") from None
            continue

        if token in ("-h", "--help"):
            print(USAGE)
            return EXIT_OK

        if arg is None:
            arg = token
        else:
            raise SystemExit(f"Unexpected argument: {token}\n{USAGE}")

    try:
        configure_logging(logging.DEBUG if verbose else None)
    except ValueError as exc:
        raise SystemExit(f"fishparse: {exc}") from None

    if start_repl:
        from .repl import repl

        repl()
        return EXIT_OK

    source = _load_source(arg)
    try:
        result = run(source, max_depth=max_depth)
    except ValueError as exc:
        raise SystemExit(f"fishparse: {exc}") from None

    if use_lark:
        print(to_lark(result.tree, source).pretty(), end="")
    else:
        print(result.tree.pretty(source), end="")

    for err in result.errors:
        prefix = "fatal: " if err.fatal else ""
        print(prefix + err.describe(source), file=sys.stderr)

    return exit_status(result)


if __name__ == "__main__":
    sys.exit(main())
