"""
Lexer for .aid spec files.

The scanner is a set of pure functions over an immutable ``Cursor``; each
scan function takes the cursor at the start of a token and returns the token
kind, the cursor just past it and an optional error message. The lexer never
aborts: unterminated constructs are emitted as partial tokens plus an error.
"""

import logging
from typing import List, NamedTuple, Optional, Tuple

from aidef.models import LexerError, LexerResult, SourceLocation, Token, TokenKind

logger = logging.getLogger(__name__)

INLINE_WHITESPACE = " \t\r"
IMPORTANT_MARKER = "!important"

# Single-character tokens recognised at a token boundary
PUNCTUATION = {
    "{": TokenKind.BRACE_OPEN,
    "}": TokenKind.BRACE_CLOSE,
    "(": TokenKind.PAREN_OPEN,
    ")": TokenKind.PAREN_CLOSE,
    ";": TokenKind.SEMICOLON,
    "=": TokenKind.EQUALS,
    ".": TokenKind.DOT,
    ":": TokenKind.COLON,
    ">": TokenKind.GT,
    "+": TokenKind.PLUS,
    "~": TokenKind.TILDE,
}

# Characters that end a text run
TEXT_STOP = set('{};="`\n') | set(INLINE_WHITESPACE)

ScanResult = Tuple[TokenKind, "Cursor", Optional[str]]


class Cursor(NamedTuple):
    """Immutable position in the source text."""

    source: str
    offset: int = 0
    line: int = 1
    column: int = 1

    @property
    def at_end(self) -> bool:
        return self.offset >= len(self.source)

    def peek(self, ahead: int = 0) -> str:
        """Character ``ahead`` positions from the cursor, or '' past the end."""
        index = self.offset + ahead
        if 0 <= index < len(self.source):
            return self.source[index]
        return ""

    def previous(self) -> str:
        return self.source[self.offset - 1] if self.offset > 0 else ""

    def startswith(self, text: str) -> bool:
        return self.source.startswith(text, self.offset)

    def advance(self, count: int = 1) -> "Cursor":
        """Return a cursor ``count`` characters further, tracking lines."""
        end = min(self.offset + count, len(self.source))
        chunk = self.source[self.offset:end]
        newlines = chunk.count("\n")
        if newlines:
            return self._replace(
                offset=end,
                line=self.line + newlines,
                column=len(chunk) - chunk.rfind("\n"),
            )
        return self._replace(offset=end, column=self.column + len(chunk))

    def advance_while(self, predicate) -> "Cursor":
        cursor = self
        while not cursor.at_end and predicate(cursor):
            cursor = cursor.advance()
        return cursor

    def text_to(self, other: "Cursor") -> str:
        return self.source[self.offset:other.offset]

    def location(self, filename: str) -> SourceLocation:
        return SourceLocation(
            file=filename, line=self.line, column=self.column, offset=self.offset
        )


def is_digit(char: str) -> bool:
    return "0" <= char <= "9" if char else False


def is_identifier_start(char: str) -> bool:
    return bool(char) and (char == "_" or ("a" <= char <= "z") or ("A" <= char <= "Z"))


def is_identifier_char(char: str) -> bool:
    # hyphens allow names like 'email-service'
    return is_identifier_start(char) or is_digit(char) or char == "-"


def starts_block_comment(cursor: Cursor) -> bool:
    return cursor.peek() == "/" and cursor.peek(1) == "*"


def starts_line_comment(cursor: Cursor) -> bool:
    """``//`` (not directly after ':') or ``#`` at line start / after whitespace."""
    char = cursor.peek()
    if char == "/" and cursor.peek(1) == "/":
        return cursor.previous() != ":"
    if char == "#":
        prev = cursor.previous()
        return prev == "" or prev == "\n" or prev in INLINE_WHITESPACE
    return False


def starts_fence(cursor: Cursor) -> bool:
    return cursor.startswith("```")


def starts_important(cursor: Cursor) -> bool:
    """``!important`` as a whole word; ``!importantly`` stays prose."""
    return cursor.startswith(IMPORTANT_MARKER) and not is_identifier_char(cursor.peek(len(IMPORTANT_MARKER)))


def scan_whitespace(cursor: Cursor) -> ScanResult:
    end = cursor.advance_while(lambda c: c.peek() in INLINE_WHITESPACE)
    return TokenKind.WHITESPACE, end, None


def scan_block_comment(cursor: Cursor) -> ScanResult:
    end = cursor.advance(2)
    while not end.at_end:
        if end.startswith("*/"):
            return TokenKind.COMMENT, end.advance(2), None
        end = end.advance()
    return TokenKind.COMMENT, end, "Unclosed block comment"


def scan_line_comment(cursor: Cursor) -> ScanResult:
    end = cursor.advance_while(lambda c: c.peek() != "\n")
    return TokenKind.COMMENT, end, None


def scan_fenced_code(cursor: Cursor) -> ScanResult:
    """Triple-backtick block including its language tag line, verbatim."""
    # Opening fence plus optional language tag on the same line
    end = cursor.advance(3).advance_while(lambda c: c.peek() != "\n")
    while not end.at_end:
        if starts_fence(end):
            return TokenKind.CODE_BLOCK, end.advance(3), None
        end = end.advance()
    return TokenKind.CODE_BLOCK, end, "Unclosed fenced code block"


def scan_inline_code(cursor: Cursor) -> ScanResult:
    end = cursor.advance().advance_while(lambda c: c.peek() not in ("`", "\n"))
    if end.peek() == "`":
        return TokenKind.INLINE_CODE, end.advance(), None
    return TokenKind.INLINE_CODE, end, "Unclosed inline code"


def scan_string(cursor: Cursor) -> ScanResult:
    """Double-quoted string; backslash escapes, may span lines."""
    end = cursor.advance()
    while not end.at_end and end.peek() != '"':
        end = end.advance(2 if end.peek() == "\\" else 1)
    if end.peek() == '"':
        return TokenKind.STRING, end.advance(), None
    return TokenKind.STRING, end, "Unclosed string"


def scan_number(cursor: Cursor) -> ScanResult:
    end = cursor.advance_while(lambda c: is_digit(c.peek()))
    if end.peek() == "." and is_digit(end.peek(1)):
        end = end.advance().advance_while(lambda c: is_digit(c.peek()))
    return TokenKind.NUMBER, end, None


def scan_identifier(cursor: Cursor) -> ScanResult:
    end = cursor.advance_while(lambda c: is_identifier_char(c.peek()))
    kind = TokenKind.INCLUDE if cursor.text_to(end) == "include" else TokenKind.IDENTIFIER
    return kind, end, None


def scan_text(cursor: Cursor) -> ScanResult:
    """
    Prose fallback: a word-sized run stopping at structural characters,
    whitespace, quotes, backticks and comment starts.
    """
    end = cursor
    while not end.at_end:
        if end.peek() in TEXT_STOP:
            break
        if end.offset != cursor.offset and (starts_block_comment(end) or starts_line_comment(end)):
            break
        end = end.advance()
    if end.offset == cursor.offset:
        end = cursor.advance()
    return TokenKind.TEXT, end, None


def scan_token(cursor: Cursor) -> ScanResult:
    """Dispatch on the character under the cursor, in priority order."""
    char = cursor.peek()

    if char in INLINE_WHITESPACE:
        return scan_whitespace(cursor)
    if char == "\n":
        return TokenKind.NEWLINE, cursor.advance(), None
    if starts_block_comment(cursor):
        return scan_block_comment(cursor)
    if starts_line_comment(cursor):
        return scan_line_comment(cursor)
    if starts_fence(cursor):
        return scan_fenced_code(cursor)
    if char == "`":
        return scan_inline_code(cursor)
    if char == '"':
        return scan_string(cursor)
    if char in PUNCTUATION:
        return PUNCTUATION[char], cursor.advance(), None
    if starts_important(cursor):
        return TokenKind.IMPORTANT, cursor.advance(len(IMPORTANT_MARKER)), None
    if is_digit(char):
        return scan_number(cursor)
    if is_identifier_start(char):
        return scan_identifier(cursor)
    return scan_text(cursor)


def tokenize(source: str, filename: str = "<input>") -> LexerResult:
    """
    Tokenize .aid source text.

    Args:
        source: Spec file contents
        filename: Name used in token locations and errors

    Returns:
        LexerResult with every token (always ending in EOF) and any errors
    """
    tokens: List[Token] = []
    errors: List[LexerError] = []
    cursor = Cursor(source)

    while not cursor.at_end:
        kind, end, error = scan_token(cursor)
        tokens.append(Token(kind=kind, text=cursor.text_to(end), location=cursor.location(filename)))
        if error:
            # Reported where scanning stopped, with the token's start offset
            errors.append(LexerError(
                message=error,
                location=SourceLocation(
                    file=filename, line=end.line, column=end.column, offset=cursor.offset
                ),
            ))
        cursor = end

    tokens.append(Token(kind=TokenKind.EOF, text="", location=cursor.location(filename)))

    if errors:
        logger.debug(f"Lexed {filename} with {len(errors)} error(s)")

    return LexerResult(tokens=tokens, errors=errors)
