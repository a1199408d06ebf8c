"""
Lexer for fish scripts

Splits source text into raw tokens for the classifier.

Features:
- Single-pass tokenization
- Position tracking (offset, line, column)
- Quotes, escapes and bracketed words kept inside one STRING token
- Malformed input becomes an ERROR token instead of an exception
"""

from typing import List

from .token_types import TT, Tok

# ============================================================================
# Lexer Implementation
# ============================================================================

# Characters that end an unquoted word outside brackets
WORD_TERMINATORS = frozenset(" \t\r\n;|&<>")


class Lexer:
    """
    fish tokenizer.

    Follows the classic fish tokenizer rules:
    - `;` and newline both end a statement
    - `#` starts a comment only at the start of a token
    - A redirection is an optional fd followed by a redirection operator;
      its target is the next token
    """

    # Longest matches first so `>>` wins over `>`
    REDIRECT_OPERATORS = [
        '>>',
        '>?',
        '>&',
        '<&',
        '^^',
        '^&',
        '>',
        '<',
        '^',
    ]

    def __init__(self, source: str, emit_comments: bool = False):
        self.source = source
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Tok] = []
        self.emit_comments = emit_comments

        # Start of the token being scanned
        self.tok_start = 0
        self.tok_line = 1
        self.tok_column = 1

    # ========================================================================
    # Main Tokenization
    # ========================================================================

    def tokenize(self) -> List[Tok]:
        """Tokenize entire source, return token list ending in EOF"""
        while self.pos < len(self.source):
            self.scan_token()

        self.mark()
        self.emit(TT.EOF, '')
        return self.tokens

    def scan_token(self):
        """Scan next token"""
        if self.skip_whitespace():
            return

        self.mark()
        ch = self.peek()

        if ch == '#':
            self.scan_comment()
            return

        if ch in ('\n', ';'):
            self.advance()
            self.emit(TT.END, ch)
            return

        if ch == '|':
            self.advance()
            self.emit(TT.PIPE, ch)
            return

        if ch == '&':
            self.advance()
            self.emit(TT.BACKGROUND, ch)
            return

        if self.scan_redirection():
            return

        self.scan_string()

    # ========================================================================
    # Token Scanners
    # ========================================================================

    def scan_comment(self):
        """Scan comment until end of line. The newline stays for scan_token."""
        while self.pos < len(self.source) and self.peek() != '\n':
            self.advance()

        if self.emit_comments:
            self.emit(TT.COMMENT, self.source[self.tok_start:self.pos])

    def scan_redirection(self) -> bool:
        """Scan `[fd]op`. Returns False, consuming nothing, if there is none."""
        digits = 0
        while self.peek(digits).isdigit():
            digits += 1

        for op in self.REDIRECT_OPERATORS:
            # The stderr caret forms never take an fd
            if digits and op.startswith('^'):
                continue
            if self.source.startswith(op, self.pos + digits):
                self.advance(digits + len(op))
                self.emit(TT.REDIRECT, self.source[self.tok_start:self.pos])
                return True

        return False

    def scan_string(self):
        """Scan a word, including quotes, escapes and bracketed parts"""
        brackets: List[str] = []

        while self.pos < len(self.source):
            ch = self.peek()

            if not brackets and ch in WORD_TERMINATORS:
                break

            if ch == '\\':
                if self.pos + 1 >= len(self.source):
                    self.advance()
                    self.emit_error("Unexpected end of string, incomplete escape sequence")
                    return
                self.advance(2)
                continue

            if ch in ('"', "'"):
                if not self.scan_quoted(ch):
                    return
                continue

            if ch == '(':
                brackets.append(ch)
            elif ch == '[' and self.pos > self.tok_start:
                # A leading '[' is the test command, not a slice
                brackets.append(ch)
            elif ch == ')':
                if not brackets or brackets[-1] != '(':
                    self.advance()
                    self.emit_error("Unexpected ')' found, no matching '('")
                    return
                brackets.pop()
            elif ch == ']' and brackets and brackets[-1] == '[':
                brackets.pop()

            self.advance()

        if brackets:
            self.emit_error("Unexpected end of string, parenthesis do not match")
            return

        self.emit(TT.STRING, self.source[self.tok_start:self.pos])

    def scan_quoted(self, quote: str) -> bool:
        """Scan a quoted section inside a word. False if it never closes."""
        self.advance()  # Opening quote

        while self.pos < len(self.source):
            ch = self.peek()
            if ch == '\\':
                # Single quotes only escape the quote and the backslash
                if quote == '"' or self.peek(1) in ("'", '\\'):
                    self.advance(2)
                    continue
            if ch == quote:
                self.advance()
                return True
            self.advance()

        self.emit_error("Unexpected end of string, quotes are not balanced")
        return False

    # ========================================================================
    # Utilities
    # ========================================================================

    def peek(self, offset: int = 0) -> str:
        """Look ahead at character"""
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def advance(self, n: int = 1) -> str:
        """Consume up to n characters and return them as a string"""
        if n < 0:
            raise ValueError(f"advance() requires n >= 0, got {n}")
        end = min(self.pos + n, len(self.source))
        result = self.source[self.pos:end]
        for ch in result:
            if ch == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        self.pos = end
        return result

    def skip_whitespace(self) -> bool:
        """Skip blanks and line continuations, return True if any skipped"""
        skipped = False
        while True:
            ch = self.peek()
            if ch in (' ', '\t', '\r'):
                self.advance()
            elif ch == '\\' and self.peek(1) == '\n':
                self.advance(2)
            else:
                return skipped
            skipped = True

    def mark(self):
        """Remember where the current token starts"""
        self.tok_start = self.pos
        self.tok_line = self.line
        self.tok_column = self.column

    def emit(self, token_type: TT, value: str):
        """Emit a token covering tok_start..pos"""
        tok = Tok(
            type=token_type,
            value=value,
            start=self.tok_start,
            length=self.pos - self.tok_start,
            line=self.tok_line,
            column=self.tok_column,
        )
        self.tokens.append(tok)

    def emit_error(self, message: str):
        """Emit an ERROR token covering tok_start..pos"""
        self.emit(TT.ERROR, self.source[self.tok_start:self.pos])
        self.tokens[-1].error = message


def tokenize(source: str, emit_comments: bool = False) -> List[Tok]:
    """Convenience function to tokenize source"""
    lexer = Lexer(source, emit_comments=emit_comments)
    return lexer.tokenize()
