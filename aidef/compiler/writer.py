"""
Plan artifact writer.

Layout under the plan directory:
- root node: ``root.plan.aid`` (+ ``.context.json``, ``.questions.json``, ``.meta.json``)
- other nodes: ``<node path>/node.plan.aid`` and siblings

The context artifact is only written for leaves; its presence is the leaf
marker used by leaf discovery.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from aidef.compiler.context import ROOT_NAME
from aidef.models import NodeContext, NodeMeta, NodeQuestions

logger = logging.getLogger(__name__)

PLAN_FILENAME = "node.plan.aid"
ROOT_PLAN_FILENAME = "root.plan.aid"
CONTEXT_SUFFIX = ".context.json"
QUESTIONS_SUFFIX = ".questions.json"
META_SUFFIX = ".meta.json"

PathLike = Union[str, Path]


def plan_path(plan_dir: PathLike, node_path: str) -> Path:
    if node_path == ROOT_NAME:
        return Path(plan_dir) / ROOT_PLAN_FILENAME
    return Path(plan_dir) / node_path / PLAN_FILENAME


def _sibling(plan_dir: PathLike, node_path: str, suffix: str) -> Path:
    path = plan_path(plan_dir, node_path)
    return path.with_name(path.name + suffix)


def context_path(plan_dir: PathLike, node_path: str) -> Path:
    return _sibling(plan_dir, node_path, CONTEXT_SUFFIX)


def questions_path(plan_dir: PathLike, node_path: str) -> Path:
    return _sibling(plan_dir, node_path, QUESTIONS_SUFFIX)


def meta_path(plan_dir: PathLike, node_path: str) -> Path:
    return _sibling(plan_dir, node_path, META_SUFFIX)


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def write_plan_file(plan_dir: PathLike, node_path: str, spec: str) -> Path:
    path = plan_path(plan_dir, node_path)
    _write(path, spec)
    return path


def read_plan_file(plan_dir: PathLike, node_path: str) -> Optional[str]:
    path = plan_path(plan_dir, node_path)
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def write_context_file(plan_dir: PathLike, node_path: str, context: NodeContext) -> Path:
    """Write the leaf marker: the context the build phase hands to generate()."""
    path = context_path(plan_dir, node_path)
    _write(path, context.model_dump_json(indent=2, exclude_none=True))
    return path


def read_context_file(plan_dir: PathLike, node_path: str) -> Optional[NodeContext]:
    return _read_model(context_path(plan_dir, node_path), NodeContext)


def write_questions_file(plan_dir: PathLike, node_path: str, questions: NodeQuestions) -> Path:
    path = questions_path(plan_dir, node_path)
    _write(path, questions.model_dump_json(indent=2, exclude_none=True))
    return path


def read_questions_file(plan_dir: PathLike, node_path: str) -> Optional[NodeQuestions]:
    return _read_model(questions_path(plan_dir, node_path), NodeQuestions)


def write_meta_file(plan_dir: PathLike, node_path: str, meta: NodeMeta) -> Path:
    path = meta_path(plan_dir, node_path)
    _write(path, meta.model_dump_json(indent=2))
    return path


def read_meta_file(plan_dir: PathLike, node_path: str) -> Optional[NodeMeta]:
    return _read_model(meta_path(plan_dir, node_path), NodeMeta)


def _read_model(path: Path, model):
    """Load a JSON artifact; a missing or corrupt file reads as None."""
    if not path.is_file():
        return None
    try:
        return model.model_validate_json(path.read_text(encoding="utf-8"))
    except (ValidationError, ValueError) as e:
        logger.warning(f"Ignoring unreadable artifact {path}: {e}")
        return None


def invalidate_subtree(plan_dir: PathLike, node_path: str) -> None:
    """
    Delete the persisted artifacts of a node and all of its descendants.

    For the root this clears the whole plan directory.
    """
    plan_dir = Path(plan_dir)

    if node_path == ROOT_NAME:
        if plan_dir.is_dir():
            for entry in plan_dir.iterdir():
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
        return

    node_dir = plan_dir / node_path
    if node_dir.is_dir():
        shutil.rmtree(node_dir)
