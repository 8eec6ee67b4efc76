"""Spec language front end: lexer, parser, serializer and import resolver."""

from aidef.parser.lexer import Cursor, tokenize
from aidef.parser.parser import ParseResult, parse
from aidef.parser.resolver import (
    ResolutionSession,
    parse_and_resolve,
    parse_source,
    resolve,
    resolve_import_path,
)
from aidef.parser.serializer import serialize, serialize_body

__all__ = [
    "Cursor",
    "tokenize",
    "ParseResult",
    "parse",
    "serialize",
    "serialize_body",
    "ResolutionSession",
    "resolve",
    "resolve_import_path",
    "parse_source",
    "parse_and_resolve",
]
