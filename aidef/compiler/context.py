"""
Context helpers for the node compiler.

Context is authored by the parent for each child (``ChildSpec.context``);
nothing here accumulates ancestor declarations.
"""

import re
from typing import Iterable, List, Set

from aidef.models import NodeContext

ROOT_NAME = "root"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def create_root_context() -> NodeContext:
    """The root has no parent, so it receives an empty context."""
    return NodeContext()


def build_node_path(ancestry: List[str]) -> str:
    """
    Build the node path from an ancestry chain.

    ``["root"]`` -> ``"root"``; ``["root", "server", "api"]`` -> ``"server/api"``.
    """
    if len(ancestry) <= 1:
        return ancestry[0] if ancestry else ROOT_NAME
    return "/".join(ancestry[1:]) or ROOT_NAME


def child_ancestry(ancestry: List[str], name: str) -> List[str]:
    """Parent ancestry plus ``name``; the root name is never repeated."""
    if not ancestry:
        return [ROOT_NAME] if name == ROOT_NAME else [ROOT_NAME, name]
    return [*ancestry, name]


def sanitize_node_name(name: str) -> str:
    """Make a provider-supplied child name safe to use as a directory.

    Dots are replaced so a child directory never shares a name with the
    parent's artifact files (``node.plan.aid`` and its ``.context.json`` siblings).
    """
    cleaned = _UNSAFE_NAME_CHARS.sub("-", name.strip()).strip("-")
    return cleaned or "node"


def unique_child_names(names: Iterable[str]) -> List[str]:
    """Sanitize sibling names and suffix duplicates (``api``, ``api-2``)."""
    seen: Set[str] = {ROOT_NAME}
    result = []
    for name in names:
        base = sanitize_node_name(name)
        candidate = base
        counter = 2
        while candidate in seen:
            candidate = f"{base}-{counter}"
            counter += 1
        seen.add(candidate)
        result.append(candidate)
    return result


def format_context(context: NodeContext) -> str:
    """One-line human-readable summary, for logs."""
    parts = []

    if context.interfaces:
        parts.append(f"{len(context.interfaces)} interface(s): {', '.join(context.interfaces)}")
    if context.constraints:
        parts.append(f"{len(context.constraints)} constraint(s)")
    if context.suggestions:
        parts.append(f"{len(context.suggestions)} suggestion(s)")
    if context.utilities:
        names = ", ".join(utility.name for utility in context.utilities)
        parts.append(f"{len(context.utilities)} utility(s): {names}")
    if context.forwarding:
        parts.append(f"forwarding: {', '.join(context.forwarding)}")

    return "; ".join(parts) if parts else "(empty context)"
