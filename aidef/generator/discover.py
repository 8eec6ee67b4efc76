"""
Leaf discovery.

A node in the plan directory is a leaf iff its context artifact exists.
"""

import logging
import os
from pathlib import Path
from typing import List, Union

from aidef.compiler.context import ROOT_NAME
from aidef.compiler.writer import CONTEXT_SUFFIX, PLAN_FILENAME, ROOT_PLAN_FILENAME
from aidef.models import LeafNode

logger = logging.getLogger(__name__)


def discover_leaves(plan_dir: Union[str, Path]) -> List[LeafNode]:
    """
    Find every leaf in a persisted plan tree.

    Args:
        plan_dir: The plan directory written by the compiler

    Returns:
        Leaves sorted by node path; a missing directory yields an empty list
    """
    plan_dir = Path(plan_dir)
    leaves: List[LeafNode] = []

    root_spec = plan_dir / ROOT_PLAN_FILENAME
    root_context = plan_dir / (ROOT_PLAN_FILENAME + CONTEXT_SUFFIX)
    if root_context.is_file():
        leaves.append(LeafNode(
            node_path=ROOT_NAME,
            spec_path=str(root_spec),
            context_path=str(root_context),
        ))

    _scan_directory(plan_dir, "", leaves)

    leaves.sort(key=lambda leaf: (leaf.node_path != ROOT_NAME, leaf.node_path))
    logger.debug(f"Discovered {len(leaves)} leaf node(s) in {plan_dir}")
    return leaves


def _scan_directory(base_dir: Path, relative: str, leaves: List[LeafNode]) -> None:
    directory = base_dir / relative if relative else base_dir
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError:
        return

    for entry in entries:
        if not entry.is_dir():
            continue
        node_path = f"{relative}/{entry.name}" if relative else entry.name
        node_dir = Path(entry.path)
        context = node_dir / (PLAN_FILENAME + CONTEXT_SUFFIX)
        if context.is_file():
            leaves.append(LeafNode(
                node_path=node_path,
                spec_path=str(node_dir / PLAN_FILENAME),
                context_path=str(context),
            ))
        _scan_directory(base_dir, node_path, leaves)
