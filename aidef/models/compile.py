"""Tree compilation state and result models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .context import (
    Consideration,
    Constraint,
    InterfaceDeclaration,
    NodeContext,
    Question,
    Suggestion,
    Utility,
)
from .provider import ChildSpec


class NodeState(str, Enum):
    """Per-node compilation states.

    Pending -> SpecSerialized -> {Leaf | ProviderInvoked -> Branch}
    -> ContextWritten -> Terminal
    """

    PENDING = "pending"
    SPEC_SERIALIZED = "spec_serialized"
    PROVIDER_INVOKED = "provider_invoked"
    LEAF = "leaf"
    BRANCH = "branch"
    CONTEXT_WRITTEN = "context_written"
    TERMINAL = "terminal"


class NodeResult(BaseModel):
    """Outcome of compiling one node."""

    node_path: str
    ancestry: List[str]
    is_leaf: bool = True
    children: List[ChildSpec] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    considerations: List[Consideration] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    transitions: List[NodeState] = Field(default_factory=list)
    provider_called: bool = False
    cache_hit: bool = False
    skipped: bool = False
    cache_status: Optional[str] = None

    @property
    def state(self) -> NodeState:
        return self.transitions[-1] if self.transitions else NodeState.PENDING


class NodeMeta(BaseModel):
    """Persisted per-node record used for tree diffing."""

    node_path: str
    spec_hash: str
    context_hash: str
    is_leaf: bool
    context: NodeContext = Field(default_factory=NodeContext)
    children: List[ChildSpec] = Field(default_factory=list)
    interfaces: List[InterfaceDeclaration] = Field(default_factory=list)
    constraints: List[Constraint] = Field(default_factory=list)
    suggestions: List[Suggestion] = Field(default_factory=list)
    utilities: List[Utility] = Field(default_factory=list)
    compiled_at: datetime


class TreeCompileResult(BaseModel):
    """Aggregate result of compiling a whole tree."""

    nodes: List[NodeResult] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    considerations: List[Consideration] = Field(default_factory=list)
    nodes_visited: int = 0
    provider_calls: int = 0
    cache_hits: int = 0
    budget_exceeded: Optional[str] = None
    skipped_nodes: List[str] = Field(default_factory=list)

    @property
    def leaf_count(self) -> int:
        return sum(1 for node in self.nodes if node.is_leaf)

    @property
    def success(self) -> bool:
        return not self.errors and self.budget_exceeded is None
