"""
Import resolver for ``include`` statements.

Spec files (``.aid``) are parsed and their children spliced in place of the
include; any other file is inlined as a single prose node. All shared state
for one resolution pass lives on an explicit ResolutionSession.
"""

import logging
import os
import re
import threading
from typing import Dict, List, Optional, Set

from aidef.models import (
    ASTNode,
    IncludeNode,
    ModuleNode,
    ParseError,
    ProseNode,
    ResolvedImport,
    ResolvedSpec,
    RootNode,
    SourceRange,
)
from aidef.parser.lexer import tokenize
from aidef.parser.parser import ParseResult, parse

logger = logging.getLogger(__name__)

DEFAULT_SPEC_EXTENSION = ".aid"

_HAS_EXTENSION = re.compile(r"\.[a-zA-Z0-9]+$")


class ResolutionSession:
    """
    State for one resolution pass: the import cache, the set of files
    currently being resolved (cycle detection), diagnostics and a read
    counter. Create one per top-level resolution; do not share across runs.
    """

    def __init__(self, spec_extension: str = DEFAULT_SPEC_EXTENSION):
        self.spec_extension = spec_extension
        self.imports: Dict[str, ResolvedImport] = {}
        self.resolving: Set[str] = set()
        self.errors: List[ParseError] = []
        self.read_count = 0
        self._lock = threading.Lock()

    def read_file(self, path: str) -> str:
        with self._lock:
            self.read_count += 1
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def cached(self, path: str) -> Optional[ResolvedImport]:
        with self._lock:
            return self.imports.get(path)

    def store(self, resolved: ResolvedImport) -> None:
        with self._lock:
            self.imports[resolved.resolved_path] = resolved

    def enter(self, path: str) -> bool:
        """Mark ``path`` as being resolved; False if it already is (a cycle)."""
        with self._lock:
            if path in self.resolving:
                return False
            self.resolving.add(path)
            return True

    def leave(self, path: str) -> None:
        with self._lock:
            self.resolving.discard(path)

    def error(self, message: str, location: SourceRange) -> None:
        self.add_errors([ParseError(message=message, location=location)])

    def add_errors(self, errors: List[ParseError]) -> None:
        with self._lock:
            self.errors.extend(errors)


def resolve_import_path(
    import_path: str,
    base_path: str,
    spec_extension: str = DEFAULT_SPEC_EXTENSION,
) -> str:
    """
    Resolve an include path to an absolute path.

    ``name`` -> ``./name.aid``; ``./path`` -> ``./path.aid``;
    ``./notes.md`` is kept as is.
    """
    normalized = import_path
    if not (import_path.startswith("./") or import_path.startswith("../") or os.path.isabs(import_path)):
        normalized = "./" + import_path
    if not _HAS_EXTENSION.search(normalized):
        normalized += spec_extension
    return os.path.abspath(os.path.join(base_path, normalized))


def parse_source(text: str, filename: str = "<input>") -> ParseResult:
    """Tokenize and parse text, folding lexer errors into the parse errors."""
    lexed = tokenize(text, filename)
    result = parse(lexed.tokens, filename)
    lexer_errors = [
        ParseError(message=error.message, location=SourceRange.at(error.location))
        for error in lexed.errors
    ]
    return ParseResult(ast=result.ast, errors=lexer_errors + result.errors)


def _prose_from_content(content: str, source: SourceRange) -> ProseNode:
    return ProseNode(text=content.strip(), source=source)


def _resolve_include(
    node: IncludeNode, base_path: str, session: ResolutionSession
) -> List[ASTNode]:
    if "://" in node.path:
        session.error("URL imports not yet supported", node.source)
        return []

    path = resolve_import_path(node.path, base_path, session.spec_extension)

    if not session.enter(path):
        logger.warning(f"Circular import detected: {path}")
        session.error(f"Circular import detected: {path}", node.source)
        return []

    try:
        existing = session.cached(path)
        if existing is not None:
            logger.debug(f"Reusing cached import {path}")
            if existing.is_spec_file and existing.ast is not None:
                return [child.model_copy(deep=True) for child in existing.ast.children]
            return [_prose_from_content(existing.content or "", node.source)]

        try:
            content = session.read_file(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read import {path}: {e}")
            session.error(f"Failed to read import: {path}", node.source)
            return []

        if not path.endswith(session.spec_extension):
            session.store(ResolvedImport(
                original_path=node.path,
                resolved_path=path,
                is_spec_file=False,
                content=content,
            ))
            return [_prose_from_content(content, node.source)]

        parsed = parse_source(content, path)
        session.add_errors(parsed.errors)

        children = resolve_children(parsed.ast.children, os.path.dirname(path), session)
        resolved_ast = RootNode(children=children, source=parsed.ast.source)
        session.store(ResolvedImport(
            original_path=node.path,
            resolved_path=path,
            is_spec_file=True,
            ast=resolved_ast,
        ))
        return [child.model_copy(deep=True) for child in children]
    finally:
        session.leave(path)


def resolve_children(
    children: List[ASTNode], base_path: str, session: ResolutionSession
) -> List[ASTNode]:
    """Splice includes and recurse into modules, in document order."""
    result: List[ASTNode] = []
    for child in children:
        if isinstance(child, IncludeNode):
            result.extend(_resolve_include(child, base_path, session))
        elif isinstance(child, ModuleNode):
            result.append(child.model_copy(
                update={"children": resolve_children(child.children, base_path, session)}
            ))
        else:
            result.append(child)
    return result


def resolve(
    ast: RootNode,
    base_path: str,
    session: Optional[ResolutionSession] = None,
) -> ResolvedSpec:
    """
    Resolve every include in an AST.

    Args:
        ast: Parsed root node
        base_path: Directory of the file the AST came from
        session: Resolution state; a fresh session is created when omitted

    Returns:
        ResolvedSpec with includes spliced in, the import map and errors
    """
    session = session or ResolutionSession()
    children = resolve_children(ast.children, base_path, session)
    return ResolvedSpec(
        ast=RootNode(children=children, source=ast.source),
        imports=dict(session.imports),
        errors=list(session.errors),
    )


def parse_and_resolve(
    file_path: str,
    session: Optional[ResolutionSession] = None,
    spec_extension: str = DEFAULT_SPEC_EXTENSION,
) -> ResolvedSpec:
    """
    Read, parse and resolve a spec file.

    A file that cannot be read yields an empty root and one error.
    """
    session = session or ResolutionSession(spec_extension)
    path = os.path.abspath(file_path)

    try:
        content = session.read_file(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Failed to read spec file {path}: {e}")
        empty = SourceRange.empty(path)
        return ResolvedSpec(
            ast=RootNode(children=[], source=empty),
            errors=[ParseError(message=f"Failed to read file: {path}", location=empty)],
        )

    parsed = parse_source(content, path)
    # The root file counts as being resolved so that a file including itself is a cycle
    session.enter(path)
    try:
        resolved = resolve(parsed.ast, os.path.dirname(path), session)
    finally:
        session.leave(path)

    resolved.errors = parsed.errors + resolved.errors
    logger.info(
        f"Resolved {path}: {len(resolved.imports)} import(s), {len(resolved.errors)} diagnostic(s)"
    )
    return resolved
