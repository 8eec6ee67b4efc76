"""
Unit tests for leaf discovery.
"""

from aidef.compiler import writer
from aidef.generator.discover import discover_leaves
from aidef.models import NodeContext


def make_leaf(plan_dir, node_path):
    writer.write_plan_file(plan_dir, node_path, f"{node_path} spec")
    writer.write_context_file(plan_dir, node_path, NodeContext())


def make_branch(plan_dir, node_path):
    writer.write_plan_file(plan_dir, node_path, f"{node_path} spec")


class TestDiscoverLeaves:
    """Tests for discover_leaves()."""

    def test_missing_directory(self, tmp_path):
        """Test a plan directory that does not exist yields nothing."""
        assert discover_leaves(tmp_path / "missing") == []

    def test_root_leaf(self, plan_dir):
        """Test a root compiled as a leaf is discovered."""
        make_leaf(plan_dir, "root")

        leaves = discover_leaves(plan_dir)

        assert [leaf.node_path for leaf in leaves] == ["root"]
        assert leaves[0].spec_path == str(plan_dir / "root.plan.aid")
        assert leaves[0].context_path == str(plan_dir / "root.plan.aid.context.json")

    def test_nested_leaves(self, plan_dir):
        """Test leaves at several depths are found and branches are not."""
        make_branch(plan_dir, "root")
        make_branch(plan_dir, "server")
        make_leaf(plan_dir, "server/api")
        make_leaf(plan_dir, "server/db")
        make_leaf(plan_dir, "cli")

        leaves = discover_leaves(plan_dir)

        assert [leaf.node_path for leaf in leaves] == ["cli", "server/api", "server/db"]
        assert leaves[1].spec_path == str(plan_dir / "server" / "api" / "node.plan.aid")

    def test_root_sorted_first(self, plan_dir):
        """Test the root leaf precedes every other leaf."""
        make_leaf(plan_dir, "root")
        make_leaf(plan_dir, "aaa")

        assert [leaf.node_path for leaf in discover_leaves(plan_dir)] == ["root", "aaa"]

    def test_ignores_plain_files(self, plan_dir):
        """Test stray files in the plan directory are ignored."""
        make_leaf(plan_dir, "api")
        (plan_dir / "notes.txt").write_text("scratch")

        assert [leaf.node_path for leaf in discover_leaves(plan_dir)] == ["api"]
