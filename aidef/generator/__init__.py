"""Build phase: leaf discovery, generation and output path bookkeeping."""

from aidef.generator.build import run_build
from aidef.generator.discover import discover_leaves
from aidef.generator.execute import add_source_header, execute_leaf, normalize_output_path
from aidef.generator.overlap import FileOverlapRegistry

__all__ = [
    "run_build",
    "discover_leaves",
    "add_source_header",
    "execute_leaf",
    "normalize_output_path",
    "FileOverlapRegistry",
]
