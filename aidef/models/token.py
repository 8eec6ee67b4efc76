"""Lexer token data models."""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict

from .source import SourceLocation


class TokenKind(str, Enum):
    """Kinds of tokens produced by the lexer."""

    IDENTIFIER = "identifier"
    INCLUDE = "include"
    STRING = "string"
    NUMBER = "number"
    BRACE_OPEN = "brace_open"
    BRACE_CLOSE = "brace_close"
    PAREN_OPEN = "paren_open"
    PAREN_CLOSE = "paren_close"
    SEMICOLON = "semicolon"
    EQUALS = "equals"
    DOT = "dot"
    COLON = "colon"
    GT = "gt"
    PLUS = "plus"
    TILDE = "tilde"
    IMPORTANT = "important"
    COMMENT = "comment"
    CODE_BLOCK = "code_block"
    INLINE_CODE = "inline_code"
    TEXT = "text"
    NEWLINE = "newline"
    WHITESPACE = "whitespace"
    EOF = "eof"


class Token(BaseModel):
    """A single lexical token with its source location."""

    model_config = ConfigDict(frozen=True)

    kind: TokenKind
    text: str
    location: SourceLocation

    @property
    def end(self) -> SourceLocation:
        """Location just past the last character of the token (single-line)."""
        return SourceLocation(
            file=self.location.file,
            line=self.location.line,
            column=self.location.column + len(self.text),
            offset=self.location.offset + len(self.text),
        )


class LexerError(BaseModel):
    """Recoverable error recorded while scanning."""

    model_config = ConfigDict(frozen=True)

    message: str
    location: SourceLocation


class LexerResult(BaseModel):
    """Output of tokenize(): the token stream plus any scanning errors."""

    tokens: List[Token]
    errors: List[LexerError] = []
