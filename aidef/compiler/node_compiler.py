"""
Node compiler: classifies one node as leaf or branch and persists it.

State machine per node:
Pending -> SpecSerialized -> {Leaf | ProviderInvoked -> Branch}
-> ContextWritten -> Terminal
"""

import asyncio
from contextlib import nullcontext
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Union

from aidef.compiler import writer
from aidef.compiler.context import build_node_path, format_context
from aidef.compiler.differ import diff_node, summarize_changes
from aidef.models import (
    CompileRequest,
    CompileResult,
    ContainerNode,
    NodeContext,
    NodeMeta,
    NodeQuestions,
    NodeResult,
    NodeState,
    has_nested_modules,
    module_params,
)
from aidef.parser.serializer import serialize_body
from aidef.utils.logging import get_logger, log_error_with_context, log_node_transition
from aidef.utils.metrics import MetricsCollector, track_provider_call
from providers.base import Provider

logger = get_logger(__name__, phase="compile")

DEFAULT_SMALL_SPEC_THRESHOLD = 100

_FALSE_VALUES = {"false", "0", "no", "off"}


def is_small_spec(spec: str, threshold: int = DEFAULT_SMALL_SPEC_THRESHOLD) -> bool:
    """Trivially a single statement: short and without any block."""
    return len(spec) < threshold and "{" not in spec


def is_explicit_leaf(node: ContainerNode) -> bool:
    """A ``leaf`` param marks a module as a leaf unless set to a false value."""
    value = module_params(node).get("leaf")
    return value is not None and value.strip().lower() not in _FALSE_VALUES


class _NodeRun:
    """Bookkeeping for one node visit: transitions, errors, artifacts."""

    def __init__(self, node_path: str, ancestry: List[str], plan_dir: Path):
        self.plan_dir = plan_dir
        self.result = NodeResult(node_path=node_path, ancestry=list(ancestry))
        self.to(NodeState.PENDING)

    def to(self, state: NodeState, **details) -> None:
        self.result.transitions.append(state)
        log_node_transition(logger, self.result.node_path, state.value, **details)

    def write(self, description: str, func, *args) -> None:
        try:
            func(self.plan_dir, self.result.node_path, *args)
        except OSError as e:
            message = f"Failed to write {description} for {self.result.node_path}: {e}"
            log_error_with_context(logger, message, e, node_path=self.result.node_path)
            self.result.errors.append(message)


async def compile_node(
    node: ContainerNode,
    ancestry: List[str],
    context: NodeContext,
    provider: Provider,
    plan_dir: Union[str, Path],
    *,
    explicit_leaf: bool = False,
    small_spec_threshold: int = DEFAULT_SMALL_SPEC_THRESHOLD,
    use_cache: bool = True,
    call_limiter: Optional[asyncio.Semaphore] = None,
    acquire_call: Optional[Callable[[], bool]] = None,
    metrics: Optional[MetricsCollector] = None,
) -> NodeResult:
    """
    Compile a single node.

    Args:
        node: Root or module node whose body is this node's spec
        ancestry: Names from the root to this node (``["root", ...]``)
        context: Context authored for this node by its parent
        provider: Provider used for branch expansion
        plan_dir: Plan directory receiving the artifacts
        explicit_leaf: Parent marked this node as a leaf
        small_spec_threshold: Spec length below which a block-free node is a leaf
        use_cache: Reuse the persisted revision when spec and context are unchanged
        call_limiter: Bounds concurrent provider calls
        acquire_call: Called before a provider call; returning False skips the node
        metrics: Optional metrics collector

    Returns:
        NodeResult; ``children`` lists the ChildSpecs to compile next
    """
    plan_dir = Path(plan_dir)
    node_path = build_node_path(ancestry)
    run = _NodeRun(node_path, ancestry, plan_dir)
    result = run.result

    spec = serialize_body(node)
    run.to(NodeState.SPEC_SERIALIZED, spec_length=len(spec))

    diff = diff_node(plan_dir, node_path, spec, context)
    if use_cache and not diff.needs_recompile and diff.previous is not None:
        previous = diff.previous
        result.is_leaf = previous.is_leaf
        result.children = list(previous.children)
        result.cache_hit = True
        result.cache_status = diff.reason
        run.to(NodeState.LEAF if previous.is_leaf else NodeState.BRANCH, cache="hit")
        run.to(NodeState.TERMINAL)
        if metrics:
            metrics.record_node(previous.is_leaf, cache_hit=True)
        return result

    explicit = explicit_leaf or is_explicit_leaf(node)
    leaf_without_provider = explicit or (
        not has_nested_modules(node) and is_small_spec(spec, small_spec_threshold)
    )

    if not leaf_without_provider and acquire_call is not None and not acquire_call():
        result.skipped = True
        result.cache_status = "Skipped: provider call budget exhausted"
        logger.warning(f"Skipping {node_path}: provider call budget exhausted")
        return result

    if diff.previous is not None:
        for change in summarize_changes(diff.previous.context, context):
            logger.info(f"{node_path}: {change}", extra={"node_path": node_path})
    # Stale descendants must not survive as leaf markers
    try:
        writer.invalidate_subtree(plan_dir, node_path)
    except OSError as e:
        result.errors.append(f"Failed to invalidate previous artifacts for {node_path}: {e}")
    result.cache_status = diff.reason

    run.write("spec artifact", writer.write_plan_file, spec)

    compiled = CompileResult()
    provider_failed = False

    if leaf_without_provider:
        run.to(NodeState.LEAF, reason="explicit" if explicit else "small spec")
    else:
        logger.debug(f"Compiling {node_path} with context {format_context(context)}")
        run.to(NodeState.PROVIDER_INVOKED)
        result.provider_called = True
        try:
            async with call_limiter or nullcontext():
                async with track_provider_call(metrics, provider.name, "compile", node_path, logger):
                    compiled = await provider.compile(
                        CompileRequest(spec=spec, context=context, node_path=node_path)
                    )
        except Exception as e:
            provider_failed = True
            result.errors.append(f"Provider compilation failed for {node_path}: {e}")
            run.to(NodeState.LEAF, reason="provider failure")
        else:
            if compiled.children:
                result.children = list(compiled.children)
                run.to(NodeState.BRANCH, children=len(compiled.children))
            else:
                run.to(NodeState.LEAF, reason="no children")

    result.is_leaf = not result.children
    result.questions = list(compiled.questions)
    result.considerations = list(compiled.considerations)

    if result.is_leaf:
        run.write("context artifact", writer.write_context_file, context)

    if result.questions or result.considerations:
        run.write(
            "questions artifact",
            writer.write_questions_file,
            NodeQuestions(
                module=ancestry[-1] if ancestry else node_path,
                questions=result.questions,
                considerations=result.considerations,
            ),
        )

    # A failed node keeps no meta so the next run retries it
    if not provider_failed:
        run.write(
            "meta artifact",
            writer.write_meta_file,
            NodeMeta(
                node_path=node_path,
                spec_hash=diff.spec_hash,
                context_hash=diff.context_hash,
                is_leaf=result.is_leaf,
                context=context,
                children=result.children,
                interfaces=compiled.interfaces,
                constraints=compiled.constraints,
                suggestions=compiled.suggestions,
                utilities=compiled.utilities,
                compiled_at=datetime.now(timezone.utc),
            ),
        )

    run.to(NodeState.CONTEXT_WRITTEN)
    run.to(NodeState.TERMINAL)

    if metrics:
        metrics.record_node(result.is_leaf)

    return result
