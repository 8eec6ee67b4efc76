"""
Top-level phases: parse + resolve + compile, and build.

Both entry points return aggregate results carrying every error; the caller
decides how to report them.
"""

import uuid
from pathlib import Path
from typing import Optional, Union

from aidef.compiler.tree_compiler import TreeCompiler
from aidef.config import Settings, load_project_settings
from aidef.generator.build import run_build
from aidef.models import BuildResult, TreeCompileResult
from aidef.parser.resolver import parse_and_resolve
from aidef.utils.logging import get_logger, setup_logging
from aidef.utils.metrics import MetricsCollector, emit_metric
from providers.base import Provider

logger = get_logger(__name__)


def project_dirs(root_spec_path: Union[str, Path], settings: Settings):
    """Return ``(plan_dir, build_dir)`` next to the root spec."""
    root_dir = Path(root_spec_path).resolve().parent
    return root_dir / settings.plan_dir_name, root_dir / settings.build_dir_name


def _settings_for(root_spec_path: Union[str, Path], settings: Optional[Settings]) -> Settings:
    """Return the caller's settings, or load the project's and configure logging from them."""
    if settings is not None:
        return settings
    settings = load_project_settings(Path(root_spec_path).resolve().parent)
    setup_logging(settings.log_level)
    return settings


async def compile_project(
    root_spec_path: Union[str, Path],
    provider: Provider,
    settings: Optional[Settings] = None,
    metrics: Optional[MetricsCollector] = None,
) -> TreeCompileResult:
    """
    Parse, resolve and compile a root spec into its plan directory.

    Parse or import errors stop the run before any provider call.
    """
    settings = _settings_for(root_spec_path, settings)
    metrics = metrics or MetricsCollector(run_id=str(uuid.uuid4()), phase="compile")
    run_logger = logger.with_context(run_id=metrics.run_id, phase="compile")
    metrics.start()

    resolved = parse_and_resolve(str(root_spec_path), spec_extension=settings.spec_extension)
    for diagnostic in resolved.errors:
        if diagnostic.severity == "warning":
            run_logger.warning(diagnostic.format())

    fatal = [d for d in resolved.errors if d.severity == "error"]
    if fatal:
        for diagnostic in fatal:
            run_logger.error(diagnostic.format())
        metrics.complete(status="failed", error_message=f"{len(fatal)} parse error(s)")
        return TreeCompileResult(errors=[d.format() for d in fatal])

    plan_dir, _ = project_dirs(root_spec_path, settings)
    compiler = TreeCompiler.from_settings(provider, plan_dir, settings, metrics=metrics)
    result = await compiler.compile(resolved.ast)

    if result.budget_exceeded:
        metrics.complete(status="budget_exceeded", error_message=f"{result.budget_exceeded} limit reached")
    elif result.errors:
        metrics.complete(status="failed", error_message=result.errors[0])
    else:
        metrics.complete()

    emit_metric("compile.nodes", result.nodes_visited, run_id=metrics.run_id)
    emit_metric("compile.leaves", result.leaf_count, run_id=metrics.run_id)
    emit_metric("compile.provider_calls", result.provider_calls, run_id=metrics.run_id)
    run_logger.info(
        f"Compiled {result.nodes_visited} node(s), {result.leaf_count} leaf node(s), "
        f"{result.provider_calls} provider call(s), {result.cache_hits} cache hit(s)"
    )
    return result


async def build_project(
    root_spec_path: Union[str, Path],
    provider: Provider,
    settings: Optional[Settings] = None,
    clean: bool = False,
    metrics: Optional[MetricsCollector] = None,
) -> BuildResult:
    """Generate code for every compiled leaf of a project."""
    settings = _settings_for(root_spec_path, settings)
    metrics = metrics or MetricsCollector(run_id=str(uuid.uuid4()), phase="build")
    run_logger = logger.with_context(run_id=metrics.run_id, phase="build")
    metrics.start()

    plan_dir, build_dir = project_dirs(root_spec_path, settings)
    result = await run_build(
        provider,
        plan_dir,
        build_dir,
        parallelism=settings.build_parallelism,
        clean=clean,
        add_source_headers=settings.add_source_headers,
        metrics=metrics,
    )

    if result.aborted:
        metrics.complete(status="aborted", error_message=result.errors[0] if result.errors else None)
    elif result.errors:
        metrics.complete(status="failed", error_message=result.errors[0])
    else:
        metrics.complete()

    emit_metric("build.files", len(result.files), run_id=metrics.run_id)
    run_logger.info(
        f"Built {result.success_count}/{result.total_leaves} leaf node(s), {len(result.files)} file(s)"
    )
    return result
