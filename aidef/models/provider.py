"""Request and response models exchanged with a Provider."""

from typing import List

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


class ChildSpec(BaseModel):
    """A child node returned by a parent's compilation."""

    name: str
    spec: str = ""
    context: NodeContext = Field(default_factory=NodeContext)
    is_leaf: bool = False
    tags: List[str] = Field(default_factory=list)


class CompileRequest(BaseModel):
    """Input to Provider.compile()."""

    spec: str
    context: NodeContext
    node_path: str


class CompileResult(BaseModel):
    """Output of Provider.compile(); an empty children list means leaf."""

    children: List[ChildSpec] = Field(default_factory=list)
    interfaces: List[InterfaceDeclaration] = Field(default_factory=list)
    constraints: List[Constraint] = Field(default_factory=list)
    suggestions: List[Suggestion] = Field(default_factory=list)
    utilities: List[Utility] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    considerations: List[Consideration] = Field(default_factory=list)


class GenerateRequest(BaseModel):
    """Input to Provider.generate()."""

    spec: str
    context: NodeContext
    node_path: str


class GeneratedFile(BaseModel):
    """A file produced by a leaf, relative to the build output root."""

    path: str
    content: str


class GenerateResult(BaseModel):
    """Output of Provider.generate()."""

    files: List[GeneratedFile] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    considerations: List[Consideration] = Field(default_factory=list)
