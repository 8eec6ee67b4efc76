"""Tree compilation: node classification, context hand-off, persistence, diffing."""

from aidef.compiler.context import (
    build_node_path,
    create_root_context,
    format_context,
)
from aidef.compiler.differ import DiffResult, diff_node, hash_content, hash_context, summarize_changes
from aidef.compiler.node_compiler import compile_node, is_small_spec
from aidef.compiler.tree_compiler import TreeCompiler, build_child_node

__all__ = [
    "build_node_path",
    "create_root_context",
    "format_context",
    "DiffResult",
    "diff_node",
    "hash_content",
    "hash_context",
    "summarize_changes",
    "compile_node",
    "is_small_spec",
    "TreeCompiler",
    "build_child_node",
]
