"""Build phase data models."""

from typing import List

from pydantic import BaseModel, Field

from .context import Consideration, Question
from .provider import GeneratedFile


class LeafNode(BaseModel):
    """A leaf discovered in the persisted plan tree."""

    node_path: str
    spec_path: str
    context_path: str


class LeafResult(BaseModel):
    """Result of executing one leaf through Provider.generate()."""

    node_path: str
    files: List[GeneratedFile] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    considerations: List[Consideration] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    success: bool = False
    skipped: bool = False


class BuildResult(BaseModel):
    """Aggregate result of a build run."""

    total_leaves: int = 0
    success_count: int = 0
    failure_count: int = 0
    batches: int = 0
    files: List[GeneratedFile] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    considerations: List[Consideration] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    results: List[LeafResult] = Field(default_factory=list)
    aborted: bool = False
