"""
Recursive-descent parser for .aid spec files.

Parsing is a set of functions over the token list and an integer position;
each returns the node it built (or None) together with the next position.
Diagnostics are appended to an explicit errors list. The parser never
raises on malformed input: it records an error and returns the partial tree.
"""

import logging
from typing import List, NamedTuple, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from aidef.models import (
    ASTNode,
    CommentNode,
    ConstraintNode,
    IncludeNode,
    ModuleNode,
    ParamNode,
    ParseError,
    ProseNode,
    PseudoSelector,
    RootNode,
    SourceLocation,
    SourceRange,
    Token,
    TokenKind,
)

logger = logging.getLogger(__name__)

COMBINATORS = {
    TokenKind.GT: "child",
    TokenKind.PLUS: "adjacent",
    TokenKind.TILDE: "general",
}

# Tokens that end a statement without being part of it
STATEMENT_END = {
    TokenKind.SEMICOLON,
    TokenKind.NEWLINE,
    TokenKind.BRACE_OPEN,
    TokenKind.BRACE_CLOSE,
    TokenKind.EOF,
}

PATH_TOKENS = {
    TokenKind.IDENTIFIER,
    TokenKind.TEXT,
    TokenKind.DOT,
    TokenKind.NUMBER,
    TokenKind.STRING,
    TokenKind.COLON,
    TokenKind.INCLUDE,
}


class ParseResult(BaseModel):
    """Output of parse(): the root node plus collected diagnostics."""

    ast: RootNode
    errors: List[ParseError] = Field(default_factory=list)


class Selector(NamedTuple):
    """A module selector matched ahead of its opening brace."""

    name: str
    tags: List[str]
    pseudos: List[PseudoSelector]
    combinator: Optional[str]
    brace: int


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------

def _peek(tokens: Sequence[Token], pos: int) -> Token:
    return tokens[pos] if pos < len(tokens) else tokens[-1]


def _kind(tokens: Sequence[Token], pos: int) -> TokenKind:
    return _peek(tokens, pos).kind


def _skip(tokens: Sequence[Token], pos: int, *kinds: TokenKind) -> int:
    while _kind(tokens, pos) in kinds:
        pos += 1
    return pos


def _skip_whitespace(tokens: Sequence[Token], pos: int) -> int:
    return _skip(tokens, pos, TokenKind.WHITESPACE)


def _skip_insignificant(tokens: Sequence[Token], pos: int) -> int:
    return _skip(tokens, pos, TokenKind.WHITESPACE, TokenKind.NEWLINE, TokenKind.COMMENT)


def _end_of(tokens: Sequence[Token], pos: int) -> SourceLocation:
    """End location of the token before ``pos``."""
    if pos > 0:
        return _peek(tokens, pos - 1).end
    return _peek(tokens, pos).location


def _range(tokens: Sequence[Token], start: int, end: int) -> SourceRange:
    return SourceRange(start=_peek(tokens, start).location, end=_end_of(tokens, end))


def _error(
    errors: List[ParseError],
    message: str,
    token: Token,
    severity: str = "error",
) -> None:
    errors.append(ParseError(
        message=message,
        location=SourceRange(start=token.location, end=token.end),
        severity=severity,
    ))


def unquote(text: str) -> str:
    """Strip surrounding quotes from a string token and resolve escapes."""
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        text = text[1:-1]
    elif text.startswith('"'):
        text = text[1:]
    return text.replace('\\"', '"').replace("\\\\", "\\")


# ---------------------------------------------------------------------------
# Lookahead
# ---------------------------------------------------------------------------

def match_selector(tokens: Sequence[Token], pos: int) -> Optional[Selector]:
    """
    Match ``[comb] name(.tag)*(:pseudo(args))*`` followed by ``{``.

    Returns None when the tokens at ``pos`` are not a module header.
    """
    combinator = COMBINATORS.get(_kind(tokens, pos))
    if combinator:
        pos = _skip_whitespace(tokens, pos + 1)

    if _kind(tokens, pos) != TokenKind.IDENTIFIER:
        return None
    name = _peek(tokens, pos).text
    pos += 1

    tags: List[str] = []
    pseudos: List[PseudoSelector] = []
    while True:
        kind = _kind(tokens, pos)
        if kind == TokenKind.DOT and _kind(tokens, pos + 1) == TokenKind.IDENTIFIER:
            tags.append(_peek(tokens, pos + 1).text)
            pos += 2
        elif kind == TokenKind.COLON and _kind(tokens, pos + 1) == TokenKind.IDENTIFIER:
            pseudo_name = _peek(tokens, pos + 1).text
            pos += 2
            args: List[str] = []
            if _kind(tokens, pos) == TokenKind.PAREN_OPEN:
                close = pos + 1
                while _kind(tokens, close) not in (TokenKind.PAREN_CLOSE, TokenKind.EOF, TokenKind.BRACE_OPEN):
                    close += 1
                if _kind(tokens, close) != TokenKind.PAREN_CLOSE:
                    return None
                raw = "".join(_peek(tokens, i).text for i in range(pos + 1, close))
                args = [arg.strip() for arg in raw.split(",") if arg.strip()]
                pos = close + 1
            pseudos.append(PseudoSelector(name=pseudo_name, args=args))
        else:
            break

    brace = _skip_insignificant(tokens, pos)
    if _kind(tokens, brace) != TokenKind.BRACE_OPEN:
        return None
    return Selector(name, tags, pseudos, combinator, brace)


def is_param_start(tokens: Sequence[Token], pos: int) -> bool:
    """``identifier [ws] =``"""
    if _kind(tokens, pos) != TokenKind.IDENTIFIER:
        return False
    return _kind(tokens, _skip_whitespace(tokens, pos + 1)) == TokenKind.EQUALS


def _path_run(tokens: Sequence[Token], pos: int) -> int:
    """Position just past a contiguous run of path-like tokens."""
    while _kind(tokens, pos) in PATH_TOKENS:
        pos += 1
    return pos


def looks_like_include(tokens: Sequence[Token], pos: int) -> bool:
    """
    Whether ``include`` at ``pos`` starts an include statement.

    ``include ./shared;`` and ``include utils`` are includes;
    ``include unit tests``, ``include: foo`` and ``include in the bundle``
    are prose. A path is a single run of tokens with no whitespace inside.
    """
    start = _skip_whitespace(tokens, pos + 1)
    first = _kind(tokens, start)
    if first not in PATH_TOKENS or first == TokenKind.COLON:
        return False

    after = _skip(tokens, _path_run(tokens, start), TokenKind.WHITESPACE, TokenKind.COMMENT)
    return _kind(tokens, after) in STATEMENT_END


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

def parse_include(
    tokens: Sequence[Token], pos: int, errors: List[ParseError]
) -> Tuple[Optional[IncludeNode], int]:
    start = pos
    path_start = _skip_whitespace(tokens, pos + 1)
    path_end = _path_run(tokens, path_start)

    parts = []
    for i in range(path_start, path_end):
        token = _peek(tokens, i)
        parts.append(unquote(token.text) if token.kind == TokenKind.STRING else token.text)
    path = "".join(parts).strip()

    pos = _skip(tokens, path_end, TokenKind.WHITESPACE, TokenKind.COMMENT)
    if _kind(tokens, pos) == TokenKind.SEMICOLON:
        pos += 1

    if not path:
        _error(errors, "Expected path after 'include'", _peek(tokens, start))
        return None, pos

    return IncludeNode(path=path, source=_range(tokens, start, pos)), pos


def parse_param(
    tokens: Sequence[Token], pos: int, errors: List[ParseError]
) -> Tuple[ParamNode, int]:
    """``name = value [;]`` where value is a string, number, identifier or text run."""
    start = pos
    name = _peek(tokens, pos).text
    pos = _skip_whitespace(tokens, _skip_whitespace(tokens, pos + 1) + 1)

    value_start = pos
    value = ""
    if _kind(tokens, pos) == TokenKind.STRING:
        after = _skip_whitespace(tokens, pos + 1)
        if _kind(tokens, after) in STATEMENT_END or _kind(tokens, after) == TokenKind.COMMENT:
            value = unquote(_peek(tokens, pos).text)
            pos = after
            value_start = None

    if value_start is not None:
        while _kind(tokens, pos) not in STATEMENT_END and _kind(tokens, pos) != TokenKind.COMMENT:
            pos += 1
        value = "".join(_peek(tokens, i).text for i in range(value_start, pos)).strip()
        if not value:
            _error(errors, f"Expected value for parameter '{name}'", _peek(tokens, pos))

    if _kind(tokens, pos) == TokenKind.SEMICOLON:
        pos += 1

    return ParamNode(name=name, value=value, source=_range(tokens, start, pos)), pos


def parse_module(
    tokens: Sequence[Token],
    pos: int,
    selector: Selector,
    errors: List[ParseError],
) -> Tuple[ModuleNode, int]:
    start = pos
    children, pos = parse_block(tokens, selector.brace + 1, errors, nested=True)

    if _kind(tokens, pos) == TokenKind.BRACE_CLOSE:
        pos += 1
    else:
        _error(errors, "Expected '}'", _peek(tokens, pos))

    node = ModuleNode(
        name=selector.name,
        tags=selector.tags,
        pseudos=selector.pseudos,
        combinator=selector.combinator,
        children=children,
        source=_range(tokens, start, pos),
    )
    return node, pos


def parse_prose(
    tokens: Sequence[Token], pos: int
) -> Tuple[Optional[ASTNode], int]:
    """
    Free text up to the next statement boundary.

    A run terminated by ``;`` is a constraint; one ended by a brace, a
    comment or the start of another statement is prose.
    """
    start = pos
    parts: List[str] = []
    important = False
    terminated = False
    line_start = True

    while True:
        token = _peek(tokens, pos)
        kind = token.kind

        if kind in (TokenKind.EOF, TokenKind.BRACE_OPEN, TokenKind.BRACE_CLOSE, TokenKind.COMMENT):
            break
        if parts and kind == TokenKind.IDENTIFIER and match_selector(tokens, pos):
            break
        if parts and line_start:
            if kind in COMBINATORS and match_selector(tokens, pos):
                break
            if is_param_start(tokens, pos):
                break
            if kind == TokenKind.INCLUDE and looks_like_include(tokens, pos):
                break
        if kind == TokenKind.SEMICOLON:
            pos += 1
            terminated = True
            break

        if kind == TokenKind.IMPORTANT:
            important = True
            if parts and parts[-1].isspace():
                parts.pop()
        else:
            parts.append(token.text)

        if kind == TokenKind.NEWLINE:
            line_start = True
        elif kind != TokenKind.WHITESPACE:
            line_start = False
        pos += 1

    text = "".join(parts).strip()
    if not text:
        return None, pos

    source = _range(tokens, start, pos)
    if terminated:
        return ConstraintNode(text=text, important=important, source=source), pos
    return ProseNode(text=text, important=important, source=source), pos


def parse_statement(
    tokens: Sequence[Token], pos: int, errors: List[ParseError]
) -> Tuple[Optional[ASTNode], int]:
    """Classify and parse one statement starting at a significant token."""
    token = _peek(tokens, pos)

    if token.kind == TokenKind.COMMENT:
        return CommentNode(text=token.text, source=_range(tokens, pos, pos + 1)), pos + 1

    if token.kind == TokenKind.INCLUDE:
        after = _skip_whitespace(tokens, pos + 1)
        if _kind(tokens, after) == TokenKind.SEMICOLON:
            return parse_include(tokens, pos, errors)
        if looks_like_include(tokens, pos):
            return parse_include(tokens, pos, errors)

    selector = match_selector(tokens, pos)
    if selector:
        return parse_module(tokens, pos, selector, errors)

    if is_param_start(tokens, pos):
        return parse_param(tokens, pos, errors)

    return parse_prose(tokens, pos)


def parse_block(
    tokens: Sequence[Token],
    pos: int,
    errors: List[ParseError],
    nested: bool = False,
) -> Tuple[List[ASTNode], int]:
    """
    Parse statements until end of input or, for a nested block, the
    closing brace (left unconsumed for the caller).
    """
    children: List[ASTNode] = []

    while True:
        pos = _skip(tokens, pos, TokenKind.WHITESPACE, TokenKind.NEWLINE)
        kind = _kind(tokens, pos)

        if kind == TokenKind.EOF:
            break

        if kind == TokenKind.BRACE_CLOSE:
            if nested:
                break
            _error(errors, "Unexpected '}'", _peek(tokens, pos), severity="warning")
            pos += 1
            continue

        if kind == TokenKind.BRACE_OPEN:
            # Anonymous block: keep its statements in the enclosing scope
            _error(errors, "Unexpected '{' without a module name", _peek(tokens, pos), severity="warning")
            inner, pos = parse_block(tokens, pos + 1, errors, nested=True)
            children.extend(inner)
            if _kind(tokens, pos) == TokenKind.BRACE_CLOSE:
                pos += 1
            else:
                _error(errors, "Expected '}'", _peek(tokens, pos))
            continue

        start = pos
        node, pos = parse_statement(tokens, pos, errors)
        if node is not None:
            children.append(node)
        if pos == start:
            pos += 1

    return children, pos


def parse(tokens: Sequence[Token], filename: str = "<input>") -> ParseResult:
    """
    Parse a token stream into a RootNode.

    Args:
        tokens: Output of tokenize(); must end with an EOF token
        filename: Used for the root's source range when tokens is empty

    Returns:
        ParseResult with the (possibly partial) AST and parse errors
    """
    if not tokens:
        return ParseResult(ast=RootNode(children=[], source=SourceRange.empty(filename)))

    errors: List[ParseError] = []
    children, pos = parse_block(tokens, 0, errors)
    ast = RootNode(
        children=children,
        source=SourceRange(start=tokens[0].location, end=_peek(tokens, pos).location),
    )

    if errors:
        logger.debug(f"Parsed {filename} with {len(errors)} diagnostic(s)")

    return ParseResult(ast=ast, errors=errors)
