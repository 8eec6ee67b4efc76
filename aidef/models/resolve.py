"""Import resolution result models."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .ast_node import RootNode
from .source import ParseError


class ResolvedImport(BaseModel):
    """A file pulled in by an include, keyed by its absolute path."""

    original_path: str
    resolved_path: str
    is_spec_file: bool
    ast: Optional[RootNode] = None
    content: Optional[str] = None


class ResolvedSpec(BaseModel):
    """A fully resolved spec: includes spliced in, plus every diagnostic."""

    ast: RootNode
    imports: Dict[str, ResolvedImport] = Field(default_factory=dict)
    errors: List[ParseError] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(error.severity == "error" for error in self.errors)
