"""Interactive parse explorer for fish scripts, powered by prompt_toolkit."""

from __future__ import annotations

import os
import re
import sys
from typing import Dict

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.shortcuts import clear

from .errors import ParseErrorCode
from .parser_rd import ParseResult, parse
from .repl_highlight import FishLexer
from .tree import to_lark
from .utils import DEBUG_PY_TRACE_ENV, debug_py_trace_enabled

# Zero-width and invisible characters to strip from input.
_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\ufeff\u00a0\r]")

# Slash commands: name => (description, argument_hint).
_SLASH_CMDS = {
    "/clear": ("Clear the terminal screen", ""),
    "/tree": ("Show the parse tree after each input", "[on|off|lark]"),
    "/py-traceback": ("Toggle Python traceback on internal errors", "[on|off]"),
}


class _SlashCompleter(Completer):
    """Autocomplete slash commands on the primary prompt."""

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        if not text.startswith("/"):
            return

        for cmd, (desc, hint) in _SLASH_CMDS.items():
            if cmd.startswith(text):
                yield Completion(
                    cmd,
                    start_position=-len(text),
                    display_meta=desc,
                )


def _handle_slash(line: str, settings: Dict[str, str]) -> bool:
    """Handle slash commands. Returns True if the line was a command."""
    stripped = line.strip()
    if not stripped.startswith("/"):
        return False

    parts = stripped.split(None, 1)
    cmd = parts[0]
    arg = parts[1].strip().lower() if len(parts) > 1 else ""

    if cmd == "/clear":
        clear()
        return True

    if cmd == "/tree":
        if arg in ("on", "off", "lark"):
            settings["tree"] = arg
        elif arg == "":
            settings["tree"] = "off" if settings["tree"] != "off" else "on"
        else:
            print("Usage: /tree [on|off|lark]", file=sys.stderr)
            return True

        print(f"Tree display: {settings['tree']}")
        return True

    if cmd == "/py-traceback":
        if arg in ("on", "1", "true", "yes"):
            os.environ[DEBUG_PY_TRACE_ENV] = "1"
        elif arg in ("off", "0", "false", "no"):
            os.environ.pop(DEBUG_PY_TRACE_ENV, None)
        elif arg == "":
            # Toggle.
            if debug_py_trace_enabled():
                os.environ.pop(DEBUG_PY_TRACE_ENV, None)
            else:
                os.environ[DEBUG_PY_TRACE_ENV] = "1"
        else:
            print("Usage: /py-traceback [on|off]", file=sys.stderr)
            return True

        state = "on" if debug_py_trace_enabled() else "off"
        print(f"Python traceback: {state}")
        return True

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return True


def _normalize(text: str) -> str:
    """Strip invisible characters from input."""
    return _INVISIBLE_RE.sub("", text)


def needs_continuation(text: str) -> bool:
    """Return True if *text* is only incomplete, not wrong.

    That is the case when it ends in a line continuation, or when every
    diagnostic is a missing terminator reported at the end of the input
    (an open block or quote waiting for more lines).
    """
    if text.endswith("\\"):
        return True

    result = parse(text)
    if result.success:
        return False

    for err in result.errors:
        if err.code == ParseErrorCode.MISSING_TERMINATOR and err.source_start >= len(text):
            continue
        if err.code == ParseErrorCode.TOKENIZER_ERROR and "not balanced" in err.text:
            continue
        return False

    return True


def render_result(result: ParseResult, source: str, tree_mode: str) -> str:
    """Format a parse result for display: optional tree, then diagnostics."""
    out = []
    if tree_mode == "lark":
        out.append(to_lark(result.tree, source).pretty())
    elif tree_mode == "on":
        out.append(result.tree.pretty(source))

    for err in result.errors:
        prefix = "fatal: " if err.fatal else ""
        out.append(prefix + err.describe(source) + "\n")

    if not result.errors and tree_mode == "off":
        out.append("ok\n")
    return "".join(out)


def repl() -> None:
    """Interactive read-parse-print loop with prompt_toolkit."""
    settings = {"tree": "on"}
    history = InMemoryHistory()
    lexer = FishLexer()

    bindings = KeyBindings()

    @bindings.add("backspace")
    def _backspace(event):
        buf = event.app.current_buffer
        buf.delete_before_cursor(1)
        if buf.text.startswith("/"):
            buf.start_completion()

    @bindings.add("enter")
    def _enter(event):
        buf = event.app.current_buffer
        text = buf.text

        if text.startswith("/") or not needs_continuation(text):
            buf.validate_and_handle()
            return

        buf.insert_text("\n")

    session: PromptSession[str] = PromptSession(
        history=history,
        lexer=lexer,
        completer=_SlashCompleter(),
        complete_while_typing=True,
        key_bindings=bindings,
        multiline=True,
        prompt_continuation="... ",
    )

    print("fishparse repl (Ctrl-D to exit, / for commands)")

    while True:
        try:
            text = session.prompt("> ")
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("KeyboardInterrupt")
            continue

        text = _normalize(text)
        if not text.strip():
            continue

        if _handle_slash(text, settings):
            continue

        try:
            result = parse(text)
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            continue

        print(render_result(result, text, settings["tree"]), end="")
