"""
Unit tests for single-node compilation.
"""

import pytest

from aidef.compiler import writer
from aidef.compiler.node_compiler import compile_node, is_explicit_leaf, is_small_spec
from aidef.models import (
    ChildSpec,
    CompileResult,
    Constraint,
    NodeContext,
    NodeState,
    Question,
)
from aidef.parser import parse_source

LONG_BODY = (
    "Handles every HTTP request for the public API, including auth, routing and error pages. "
    "Responses are JSON and every failure is logged with the request id."
)


def module(source):
    return parse_source(source).ast.children[0]


class TestClassification:
    """Tests for the leaf heuristics."""

    def test_small_spec(self):
        """Test short block-free specs are small."""
        assert is_small_spec("timeout=30;")
        assert not is_small_spec("a {\n}")
        assert not is_small_spec("x" * 100)

    def test_explicit_leaf_param(self):
        """Test the leaf param."""
        assert is_explicit_leaf(module("svc {\n  leaf=true;\n}"))
        assert not is_explicit_leaf(module("svc {\n  leaf=false;\n}"))
        assert not is_explicit_leaf(module("svc {\n  timeout=30;\n}"))


class TestCompileNode:
    """Tests for compile_node()."""

    @pytest.mark.asyncio
    async def test_small_spec_is_leaf_without_provider(self, plan_dir, fake_provider_cls):
        """Test 'timeout=30;' becomes a leaf with no provider call."""
        provider = fake_provider_cls()
        context = NodeContext(constraints=[Constraint(rule="Use TLS", source="root")])

        result = await compile_node(module("cfg {\n  timeout=30;\n}"), ["root", "cfg"], context, provider, plan_dir)

        assert provider.compile_calls == []
        assert result.is_leaf
        assert not result.provider_called
        assert result.transitions == [
            NodeState.PENDING,
            NodeState.SPEC_SERIALIZED,
            NodeState.LEAF,
            NodeState.CONTEXT_WRITTEN,
            NodeState.TERMINAL,
        ]
        assert writer.read_plan_file(plan_dir, "cfg") == "timeout=30;"
        assert writer.read_context_file(plan_dir, "cfg") == context

    @pytest.mark.asyncio
    async def test_branch(self, plan_dir, fake_provider_cls):
        """Test a node the provider expands becomes a branch."""
        children = [ChildSpec(name="api", spec="GET /health;"), ChildSpec(name="db", spec="Postgres")]
        provider = fake_provider_cls(compile_results={"root": CompileResult(children=children)})
        root = parse_source(f"server {{\n  {LONG_BODY}\n}}").ast

        result = await compile_node(root, ["root"], NodeContext(), provider, plan_dir)

        assert len(provider.compile_calls) == 1
        assert provider.compile_calls[0].node_path == "root"
        assert provider.compile_calls[0].spec.startswith("server {")
        assert not result.is_leaf
        assert [child.name for child in result.children] == ["api", "db"]
        assert NodeState.PROVIDER_INVOKED in result.transitions
        assert NodeState.BRANCH in result.transitions
        assert not writer.context_path(plan_dir, "root").exists()
        meta = writer.read_meta_file(plan_dir, "root")
        assert meta.is_leaf is False
        assert [child.name for child in meta.children] == ["api", "db"]

    @pytest.mark.asyncio
    async def test_provider_returning_no_children_is_leaf(self, plan_dir, fake_provider_cls):
        """Test an empty children list means leaf."""
        provider = fake_provider_cls()

        result = await compile_node(module(f"svc {{\n  {LONG_BODY}\n}}"), ["root", "svc"], NodeContext(), provider, plan_dir)

        assert result.provider_called
        assert result.is_leaf
        assert writer.context_path(plan_dir, "svc").exists()

    @pytest.mark.asyncio
    async def test_provider_failure_forces_leaf(self, plan_dir, fake_provider_cls):
        """Test a failing provider call is recorded and the node becomes a leaf."""
        provider = fake_provider_cls(compile_results={"svc": RuntimeError("boom")})

        result = await compile_node(module(f"svc {{\n  {LONG_BODY}\n}}"), ["root", "svc"], NodeContext(), provider, plan_dir)

        assert result.is_leaf
        assert result.children == []
        assert result.errors == ["Provider compilation failed for svc: boom"]
        assert writer.context_path(plan_dir, "svc").exists()
        assert writer.read_meta_file(plan_dir, "svc") is None

    @pytest.mark.asyncio
    async def test_explicit_leaf_skips_provider(self, plan_dir, fake_provider_cls):
        """Test a parent-marked leaf is not sent to the provider."""
        provider = fake_provider_cls()

        result = await compile_node(
            module(f"svc {{\n  {LONG_BODY}\n  inner {{\n  }}\n}}"),
            ["root", "svc"],
            NodeContext(),
            provider,
            plan_dir,
            explicit_leaf=True,
        )

        assert provider.compile_calls == []
        assert result.is_leaf

    @pytest.mark.asyncio
    async def test_questions_artifact(self, plan_dir, fake_provider_cls):
        """Test provider questions are persisted."""
        question = Question(id="q1", question="Which database?", assumption="Postgres")
        provider = fake_provider_cls(compile_results={"svc": CompileResult(questions=[question])})

        result = await compile_node(module(f"svc {{\n  {LONG_BODY}\n}}"), ["root", "svc"], NodeContext(), provider, plan_dir)

        assert result.questions == [question]
        stored = writer.read_questions_file(plan_dir, "svc")
        assert stored.module == "svc"
        assert stored.questions == [question]

    @pytest.mark.asyncio
    async def test_cache_hit(self, plan_dir, fake_provider_cls):
        """Test an unchanged node is not recompiled."""
        children = [ChildSpec(name="api", spec="GET /health;")]
        provider = fake_provider_cls(compile_results={"svc": CompileResult(children=children)})
        node = module(f"svc {{\n  {LONG_BODY}\n}}")

        await compile_node(node, ["root", "svc"], NodeContext(), provider, plan_dir)
        second = await compile_node(node, ["root", "svc"], NodeContext(), provider, plan_dir)

        assert len(provider.compile_calls) == 1
        assert second.cache_hit
        assert not second.is_leaf
        assert [child.name for child in second.children] == ["api"]

    @pytest.mark.asyncio
    async def test_cache_disabled(self, plan_dir, fake_provider_cls):
        """Test use_cache=False always recompiles."""
        provider = fake_provider_cls()
        node = module(f"svc {{\n  {LONG_BODY}\n}}")

        await compile_node(node, ["root", "svc"], NodeContext(), provider, plan_dir, use_cache=False)
        await compile_node(node, ["root", "svc"], NodeContext(), provider, plan_dir, use_cache=False)

        assert len(provider.compile_calls) == 2

    @pytest.mark.asyncio
    async def test_refused_call_skips_node(self, plan_dir, fake_provider_cls):
        """Test a refused provider call leaves the node untouched."""
        provider = fake_provider_cls()

        result = await compile_node(
            module(f"svc {{\n  {LONG_BODY}\n}}"),
            ["root", "svc"],
            NodeContext(),
            provider,
            plan_dir,
            acquire_call=lambda: False,
        )

        assert result.skipped
        assert provider.compile_calls == []
        assert not (plan_dir / "svc").exists()
