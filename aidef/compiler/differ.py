"""
Tree diffing for incremental compilation.

A node is reused when its canonical spec text and the context it received
both hash to the values stored in its meta artifact.
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel

from aidef.compiler import writer
from aidef.models import NodeContext, NodeMeta

logger = logging.getLogger(__name__)


class DiffResult(BaseModel):
    """Whether a node must be recompiled, and why."""

    needs_recompile: bool
    reason: str
    spec_hash: str
    context_hash: str
    previous: Optional[NodeMeta] = None


def hash_content(content: str) -> str:
    """SHA-256 of the text, truncated to 16 hex characters."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]


def hash_context(context: NodeContext) -> str:
    """Deterministic hash of every context field that affects compilation."""
    relevant = {
        "interfaces": {
            name: [interface.source, interface.definition]
            for name, interface in sorted(context.interfaces.items())
        },
        "constraints": sorted(
            f"{'!' if constraint.important else ''}{constraint.rule}"
            for constraint in context.constraints
        ),
        "suggestions": sorted(suggestion.rule for suggestion in context.suggestions),
        "utilities": sorted(f"{utility.name}:{utility.signature}" for utility in context.utilities),
        "forwarding": context.forwarding,
    }
    return hash_content(json.dumps(relevant, sort_keys=True))


def diff_node(
    plan_dir: Union[str, Path],
    node_path: str,
    spec: str,
    context: NodeContext,
) -> DiffResult:
    """
    Compare a node against its persisted revision.

    Args:
        plan_dir: Plan directory
        node_path: Node path (e.g. "server/api")
        spec: Newly serialized spec text
        context: Context the node receives now

    Returns:
        DiffResult; ``previous`` carries the stored meta when one exists
    """
    spec_hash = hash_content(spec)
    context_hash = hash_context(context)

    def result(needs_recompile: bool, reason: str, previous: Optional[NodeMeta] = None) -> DiffResult:
        return DiffResult(
            needs_recompile=needs_recompile,
            reason=reason,
            spec_hash=spec_hash,
            context_hash=context_hash,
            previous=previous,
        )

    previous = writer.read_meta_file(plan_dir, node_path)
    if previous is None:
        return result(True, "No cached compilation found")

    if previous.spec_hash != spec_hash:
        return result(True, "Spec content has changed", previous)

    if previous.context_hash != context_hash:
        return result(True, "Parent context has changed", previous)

    if not writer.plan_path(plan_dir, node_path).is_file():
        return result(True, "Spec artifact is missing", previous)

    if previous.is_leaf and not writer.context_path(plan_dir, node_path).is_file():
        return result(True, "Leaf context artifact is missing", previous)

    return result(False, "Cached compilation is valid", previous)


def summarize_changes(old_context: Optional[NodeContext], new_context: NodeContext) -> List[str]:
    """Human-readable list of what changed between two contexts."""
    if old_context is None:
        return ["New node (no previous compilation)"]

    changes = []

    def compare(label: str, old: set, new: set) -> None:
        for item in sorted(new - old):
            changes.append(f"Added {label}: {item[:50]}")
        for item in sorted(old - new):
            changes.append(f"Removed {label}: {item[:50]}")

    compare("interface", set(old_context.interfaces), set(new_context.interfaces))
    compare(
        "constraint",
        {c.rule for c in old_context.constraints},
        {c.rule for c in new_context.constraints},
    )
    compare(
        "utility",
        {u.name for u in old_context.utilities},
        {u.name for u in new_context.utilities},
    )

    if not changes:
        changes.append("Minor changes (no interface/constraint/utility changes)")
    return changes
