"""Source location and diagnostic data models."""

from typing import Literal

from pydantic import BaseModel, ConfigDict


class SourceLocation(BaseModel):
    """A point in a spec file (1-based line/column, 0-based offset)."""

    model_config = ConfigDict(frozen=True)

    file: str
    line: int = 1
    column: int = 1
    offset: int = 0


class SourceRange(BaseModel):
    """Span of source text a node or diagnostic refers to."""

    model_config = ConfigDict(frozen=True)

    start: SourceLocation
    end: SourceLocation

    @classmethod
    def at(cls, location: SourceLocation) -> "SourceRange":
        return cls(start=location, end=location)

    @classmethod
    def empty(cls, file: str) -> "SourceRange":
        return cls.at(SourceLocation(file=file))


class ParseError(BaseModel):
    """Diagnostic produced by the lexer, parser or import resolver."""

    message: str
    location: SourceRange
    severity: Literal["error", "warning"] = "error"

    def format(self) -> str:
        start = self.location.start
        return f"{start.file}:{start.line}:{start.column}: {self.severity}: {self.message}"
