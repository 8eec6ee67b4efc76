"""
Tree compiler: expands a resolved AST into the persisted plan tree.

Compilation is sequential along a branch (a child's context is only known
once its parent is compiled) while siblings compile concurrently. In-flight
provider calls are bounded by a semaphore, and the node / call ceilings stop
scheduling new nodes while letting in-flight work drain.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Union

from aidef.compiler.context import (
    ROOT_NAME,
    build_node_path,
    child_ancestry,
    create_root_context,
    unique_child_names,
)
from aidef.compiler.node_compiler import DEFAULT_SMALL_SPEC_THRESHOLD, compile_node
from aidef.config import Settings
from aidef.models import (
    ChildSpec,
    CommentNode,
    ContainerNode,
    ModuleNode,
    NodeContext,
    NodeResult,
    ProseNode,
    RootNode,
    SourceRange,
    TreeCompileResult,
)
from aidef.parser.resolver import parse_source
from aidef.utils.metrics import MetricsCollector
from aidef.utils.resilience import ErrorRecoveryManager
from providers.base import Provider

logger = logging.getLogger(__name__)


def build_child_node(child: ChildSpec, name: str, node_path: str) -> ModuleNode:
    """
    Turn a provider-returned ChildSpec into a module node.

    The spec text is parsed with the normal front end; if it does not parse
    cleanly it is kept whole as a single prose node. A spec that is just
    ``name { ... }`` for the child itself is unwrapped.
    """
    filename = f"<{node_path}>"
    source = SourceRange.empty(filename)
    parsed = parse_source(child.spec, filename)

    if any(error.severity == "error" for error in parsed.errors):
        text = child.spec.strip()
        children = [ProseNode(text=text, source=source)] if text else []
    else:
        children = list(parsed.ast.children)
        significant = [c for c in children if not isinstance(c, CommentNode)]
        if (
            len(significant) == 1
            and isinstance(significant[0], ModuleNode)
            and significant[0].name == child.name
            and significant[0].combinator is None
        ):
            children = list(significant[0].children)

    return ModuleNode(name=name, tags=list(child.tags), children=children, source=source)


class TreeCompiler:
    """
    Compiles a whole tree under node and provider-call ceilings.

    One instance may be reused; all per-run state is reset by compile().
    """

    def __init__(
        self,
        provider: Provider,
        plan_dir: Union[str, Path],
        max_nodes: int = 100,
        max_calls: int = 100,
        concurrency: int = 5,
        small_spec_threshold: int = DEFAULT_SMALL_SPEC_THRESHOLD,
        use_cache: bool = True,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.provider = provider
        self.plan_dir = Path(plan_dir)
        self.max_nodes = max_nodes
        self.max_calls = max_calls
        self.concurrency = max(1, concurrency)
        self.small_spec_threshold = small_spec_threshold
        self.use_cache = use_cache
        self.metrics = metrics
        self._reset()

    @classmethod
    def from_settings(
        cls,
        provider: Provider,
        plan_dir: Union[str, Path],
        settings: Settings,
        metrics: Optional[MetricsCollector] = None,
    ) -> "TreeCompiler":
        return cls(
            provider,
            plan_dir,
            max_nodes=settings.max_nodes,
            max_calls=settings.max_calls,
            concurrency=settings.compile_concurrency,
            small_spec_threshold=settings.small_spec_threshold,
            use_cache=settings.use_cache,
            metrics=metrics,
        )

    def _reset(self) -> None:
        self._results: List[NodeResult] = []
        self._errors: List[str] = []
        self._skipped: List[str] = []
        self._nodes_visited = 0
        self._provider_calls = 0
        self._budget_exceeded: Optional[str] = None
        self._semaphore = asyncio.Semaphore(self.concurrency)

    def _acquire_call(self) -> bool:
        if self._budget_exceeded is not None:
            return False
        if self._provider_calls >= self.max_calls:
            self._budget_exceeded = "calls"
            logger.warning(f"Provider call limit reached ({self.max_calls}); no new nodes will be scheduled")
            return False
        self._provider_calls += 1
        return True

    def _admit_node(self, node_path: str) -> bool:
        if self._budget_exceeded is None and self._nodes_visited >= self.max_nodes:
            self._budget_exceeded = "nodes"
            logger.warning(f"Node limit reached ({self.max_nodes}); no new nodes will be scheduled")
        if self._budget_exceeded is not None:
            self._skipped.append(node_path)
            return False
        self._nodes_visited += 1
        return True

    async def compile(self, root: RootNode) -> TreeCompileResult:
        """
        Compile the tree rooted at ``root`` into the plan directory.

        Returns:
            TreeCompileResult aggregating every node result, error and question
        """
        self._reset()
        self.plan_dir.mkdir(parents=True, exist_ok=True)

        logger.info(
            f"Compiling tree into {self.plan_dir} "
            f"(max_nodes={self.max_nodes}, max_calls={self.max_calls}, concurrency={self.concurrency})"
        )
        await self._visit(root, [ROOT_NAME], create_root_context(), explicit_leaf=False)

        result = TreeCompileResult(
            nodes=self._results,
            errors=self._errors + [error for node in self._results for error in node.errors],
            questions=[q for node in self._results for q in node.questions],
            considerations=[c for node in self._results for c in node.considerations],
            nodes_visited=len(self._results),
            provider_calls=self._provider_calls,
            cache_hits=sum(1 for node in self._results if node.cache_hit),
            budget_exceeded=self._budget_exceeded,
            skipped_nodes=self._skipped,
        )

        if result.budget_exceeded:
            logger.warning(
                f"Compilation stopped: {result.budget_exceeded} limit reached, "
                f"{len(result.skipped_nodes)} node(s) not compiled"
            )
        ErrorRecoveryManager.handle_partial_failure(
            operation_name="tree compilation",
            total_items=result.nodes_visited,
            successful_items=sum(1 for node in result.nodes if not node.errors),
            errors=result.errors,
            context={"plan_dir": str(self.plan_dir)},
        )
        return result

    async def _visit(
        self,
        node: ContainerNode,
        ancestry: List[str],
        context: NodeContext,
        explicit_leaf: bool,
    ) -> None:
        node_path = build_node_path(ancestry)
        if not self._admit_node(node_path):
            return

        result = await compile_node(
            node,
            ancestry,
            context,
            self.provider,
            self.plan_dir,
            explicit_leaf=explicit_leaf,
            small_spec_threshold=self.small_spec_threshold,
            use_cache=self.use_cache,
            call_limiter=self._semaphore,
            acquire_call=self._acquire_call,
            metrics=self.metrics,
        )

        if result.skipped:
            self._nodes_visited -= 1
            self._skipped.append(node_path)
            return

        self._results.append(result)
        if result.is_leaf:
            return

        names = unique_child_names(child.name for child in result.children)
        visits = []
        for child, name in zip(result.children, names):
            ancestry_for_child = child_ancestry(ancestry, name)
            child_node = build_child_node(child, name, build_node_path(ancestry_for_child))
            visits.append(self._visit(child_node, ancestry_for_child, child.context, child.is_leaf))

        outcomes = await asyncio.gather(*visits, return_exceptions=True)
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, Exception):
                path = build_node_path(child_ancestry(ancestry, name))
                logger.error(f"Unexpected error compiling {path}: {outcome}", exc_info=outcome)
                self._errors.append(f"Unexpected error compiling {path}: {outcome}")
