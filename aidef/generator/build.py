"""
Build orchestrator.

Leaves run in fixed-size batches: every leaf of a batch runs concurrently,
and the next batch starts only after the whole batch has settled.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import List, Optional, Union

from aidef.errors import FileOverlapError
from aidef.generator.discover import discover_leaves
from aidef.generator.execute import execute_leaf
from aidef.generator.overlap import FileOverlapRegistry
from aidef.models import BuildResult, LeafNode, LeafResult
from aidef.utils.metrics import MetricsCollector
from aidef.utils.resilience import ErrorRecoveryManager
from providers.base import Provider

logger = logging.getLogger(__name__)


def partition(leaves: List[LeafNode], size: int) -> List[List[LeafNode]]:
    size = max(1, size)
    return [leaves[i:i + size] for i in range(0, len(leaves), size)]


async def run_build(
    provider: Provider,
    plan_dir: Union[str, Path],
    output_dir: Union[str, Path],
    parallelism: int = 5,
    clean: bool = False,
    add_source_headers: bool = True,
    metrics: Optional[MetricsCollector] = None,
) -> BuildResult:
    """
    Generate code for every leaf in the plan directory.

    Args:
        provider: Provider used for generate() calls
        plan_dir: Plan directory written by the compiler
        output_dir: Build output root
        parallelism: Leaves per batch
        clean: Remove the output directory before building
        add_source_headers: Prefix generated files with a provenance comment
        metrics: Optional metrics collector

    Returns:
        BuildResult; an output path overlap sets ``aborted`` and stops further batches
    """
    plan_dir = Path(plan_dir)
    output_dir = Path(output_dir)

    if clean and output_dir.exists():
        logger.info(f"Cleaning output directory {output_dir}")
        shutil.rmtree(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    leaves = discover_leaves(plan_dir)
    if not leaves:
        message = f"No leaf nodes found in {plan_dir}. Run compilation first."
        logger.warning(message)
        return BuildResult(errors=[message])

    registry = FileOverlapRegistry()
    registry.reset()

    batches = partition(leaves, parallelism)
    result = BuildResult(total_leaves=len(leaves))
    logger.info(f"Building {len(leaves)} leaf node(s) in {len(batches)} batch(es) of up to {max(1, parallelism)}")

    abort_message = None
    for index, batch in enumerate(batches, start=1):
        outcomes = await asyncio.gather(
            *(
                execute_leaf(
                    leaf,
                    provider,
                    plan_dir,
                    output_dir,
                    registry,
                    add_source_headers=add_source_headers,
                    metrics=metrics,
                )
                for leaf in batch
            ),
            return_exceptions=True,
        )
        result.batches += 1

        for leaf, outcome in zip(batch, outcomes):
            if isinstance(outcome, FileOverlapError):
                result.aborted = True
                outcome = LeafResult(node_path=leaf.node_path, errors=[str(outcome)])
            elif isinstance(outcome, Exception):
                logger.error(f"Unexpected error generating {leaf.node_path}: {outcome}", exc_info=outcome)
                outcome = LeafResult(
                    node_path=leaf.node_path,
                    errors=[f"Unexpected error generating {leaf.node_path}: {outcome}"],
                )
            result.results.append(outcome)

        if result.aborted:
            not_executed = [leaf for b in batches[index:] for leaf in b]
            result.results.extend(
                LeafResult(node_path=leaf.node_path, skipped=True) for leaf in not_executed
            )
            remaining = len(not_executed)
            abort_message = f"Build aborted after batch {index}: {remaining} leaf node(s) not executed"
            logger.error(abort_message)
            break

    for leaf_result in result.results:
        result.files.extend(leaf_result.files)
        result.questions.extend(leaf_result.questions)
        result.considerations.extend(leaf_result.considerations)
        result.errors.extend(leaf_result.errors)
    if abort_message:
        result.errors.append(abort_message)
    result.success_count = sum(1 for r in result.results if r.success)
    result.failure_count = len(result.results) - result.success_count

    ErrorRecoveryManager.handle_partial_failure(
        operation_name="build",
        total_items=result.total_leaves,
        successful_items=result.success_count,
        errors=result.errors,
        context={"plan_dir": str(plan_dir), "output_dir": str(output_dir), "aborted": result.aborted},
    )
    return result
