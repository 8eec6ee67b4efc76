"""
Leaf execution: one Provider.generate() call per leaf, files written under
the build output root.
"""

import posixpath
import re
from pathlib import Path, PureWindowsPath
from typing import Dict, List, Optional, Tuple, Union

from aidef.compiler import writer
from aidef.errors import InvalidOutputPathError
from aidef.generator.overlap import FileOverlapRegistry
from aidef.models import (
    GeneratedFile,
    GenerateRequest,
    GenerateResult,
    LeafNode,
    LeafResult,
    NodeContext,
    NodeQuestions,
)
from aidef.utils.logging import get_logger, log_error_with_context
from aidef.utils.metrics import MetricsCollector, track_provider_call
from providers.base import Provider

logger = get_logger(__name__, phase="build")

HEADER_TEXT = "Generated by AIDef from: {node_path}"
HEADER_WARNING = "DO NOT EDIT - changes will be overwritten"

_BLOCK = ("/**", " * ", " */")
_HASH = (None, "# ", None)
_DASH = (None, "-- ", None)
_MARKUP = ("<!--", "  ", "-->")

# extension -> (open line, line prefix, close line)
COMMENT_STYLES: Dict[str, Tuple[Optional[str], str, Optional[str]]] = {
    **{ext: _BLOCK for ext in (
        "ts", "tsx", "js", "jsx", "mjs", "cjs", "css", "scss", "less",
        "java", "c", "cpp", "h", "hpp", "go", "rs", "swift", "kt",
    )},
    **{ext: _HASH for ext in ("py", "rb", "sh", "bash", "zsh", "yaml", "yml", "toml")},
    **{ext: _MARKUP for ext in ("html", "xml", "svg")},
    "sql": _DASH,
}

_DRIVE = re.compile(r"^[A-Za-z]:")


def normalize_output_path(path: str) -> str:
    """
    Normalise a generated path to a POSIX path relative to the output root.

    Raises:
        InvalidOutputPathError: If the path is empty, absolute or escapes the root
    """
    if not path or not path.strip():
        raise InvalidOutputPathError(path, "path is empty")

    posix = path.strip().replace("\\", "/")
    if posix.startswith("/") or _DRIVE.match(posix) or PureWindowsPath(path).is_absolute():
        raise InvalidOutputPathError(path, "absolute paths are not allowed")

    normalized = posixpath.normpath(posix)
    if normalized in (".", "") or normalized == ".." or normalized.startswith("../"):
        raise InvalidOutputPathError(path, "path escapes the output directory")
    return normalized


def add_source_header(content: str, file_path: str, node_path: str) -> str:
    """Prefix a provenance comment; unknown extensions are returned unchanged."""
    ext = posixpath.splitext(file_path)[1].lstrip(".").lower()
    style = COMMENT_STYLES.get(ext)
    if style is None:
        return content

    opener, prefix, closer = style
    lines = [prefix + HEADER_TEXT.format(node_path=node_path), prefix + HEADER_WARNING]
    if opener:
        lines.insert(0, opener)
    if closer:
        lines.append(closer)
    header = "\n".join(lines) + "\n\n"

    # Keep an interpreter line first
    if content.startswith("#!"):
        first, _, rest = content.partition("\n")
        return f"{first}\n{header}{rest}"
    return header + content


def _failed(leaf: LeafNode, message: str) -> LeafResult:
    logger.error(message, extra={"node_path": leaf.node_path})
    return LeafResult(node_path=leaf.node_path, errors=[message], success=False)


async def execute_leaf(
    leaf: LeafNode,
    provider: Provider,
    plan_dir: Union[str, Path],
    output_dir: Union[str, Path],
    registry: FileOverlapRegistry,
    add_source_headers: bool = True,
    metrics: Optional[MetricsCollector] = None,
) -> LeafResult:
    """
    Generate and write the files of one leaf.

    Provider and write failures are returned in the result. Output paths are
    claimed in ``registry`` before anything is written.

    Raises:
        FileOverlapError: If another leaf already claimed one of the paths
    """
    plan_dir = Path(plan_dir)
    output_dir = Path(output_dir)
    node_path = leaf.node_path

    spec = writer.read_plan_file(plan_dir, node_path)
    if spec is None:
        return _failed(leaf, f"No spec artifact found for {node_path}")
    context = writer.read_context_file(plan_dir, node_path) or NodeContext()

    logger.info(f"Generating {node_path}", extra={"node_path": node_path})
    try:
        async with track_provider_call(metrics, provider.name, "generate", node_path, logger):
            generated: GenerateResult = await provider.generate(
                GenerateRequest(spec=spec, context=context, node_path=node_path)
            )
    except Exception as e:
        return _failed(leaf, f"Provider generation failed for {node_path}: {e}")

    errors: List[str] = []
    accepted: List[GeneratedFile] = []
    for file in generated.files:
        try:
            accepted.append(GeneratedFile(path=normalize_output_path(file.path), content=file.content))
        except InvalidOutputPathError as e:
            logger.warning(f"{node_path}: {e}", extra={"node_path": node_path})
            errors.append(f"Failed to write {file.path}: {e}")

    for file in accepted:
        registry.register(file.path, node_path)

    written: List[GeneratedFile] = []
    for file in accepted:
        content = file.content
        if add_source_headers:
            content = add_source_header(content, file.path, node_path)
        target = output_dir / file.path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        except OSError as e:
            log_error_with_context(logger, f"Failed to write {file.path}", e, node_path=node_path)
            errors.append(f"Failed to write {file.path}: {e}")
            continue
        written.append(GeneratedFile(path=file.path, content=content))
        logger.debug(f"{node_path} -> {file.path}", extra={"node_path": node_path})

    if generated.questions or generated.considerations:
        try:
            writer.write_questions_file(
                plan_dir,
                node_path,
                NodeQuestions(
                    module=node_path,
                    questions=generated.questions,
                    considerations=generated.considerations,
                ),
            )
        except OSError as e:
            errors.append(f"Failed to write questions for {node_path}: {e}")

    if metrics:
        metrics.record_files_written(len(written))

    return LeafResult(
        node_path=node_path,
        files=written,
        questions=list(generated.questions),
        considerations=list(generated.considerations),
        errors=errors,
        success=not errors,
    )
