"""Context and question data models.

A NodeContext is authored by a node's parent for that child alone; it is
never the implicit union of every ancestor's declarations.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class InterfaceDefinition(BaseModel):
    """Interface entry inside a NodeContext, keyed by interface name."""

    source: str = Field(..., description="Node path that declared the interface")
    definition: str = Field(..., description="Interface code or description")


class InterfaceDeclaration(BaseModel):
    """Interface declared by a compiled node."""

    name: str
    definition: str
    source: str = ""


class Constraint(BaseModel):
    """A rule that generated code must (important) or should follow."""

    rule: str
    source: str = ""
    important: bool = False


class Suggestion(BaseModel):
    """Non-binding advice handed down to a child."""

    rule: str
    source: str = ""


class Utility(BaseModel):
    """A shared helper another node will generate."""

    name: str
    signature: str = ""
    location: str = ""
    source: str = ""


class NodeContext(BaseModel):
    """Bag of declarations a parent hands to one child."""

    interfaces: Dict[str, InterfaceDefinition] = Field(default_factory=dict)
    constraints: List[Constraint] = Field(default_factory=list)
    suggestions: List[Suggestion] = Field(default_factory=list)
    utilities: List[Utility] = Field(default_factory=list)
    forwarding: Optional[List[str]] = Field(
        None, description="Names the child should pass further down"
    )


class QuestionOption(BaseModel):
    """One suggested answer to a question."""

    label: str
    description: Optional[str] = None


class Question(BaseModel):
    """An ambiguity raised by the provider, with the assumption it made."""

    id: str = ""
    question: str
    context: str = ""
    assumption: str = ""
    impact: str = ""
    options: Optional[List[QuestionOption]] = None
    answer: Optional[str] = None


class Consideration(BaseModel):
    """A note raised by the provider; blocking ones need human attention."""

    id: str = ""
    note: str
    blocking: bool = False


class NodeQuestions(BaseModel):
    """Content of a questions artifact."""

    module: str
    questions: List[Question] = Field(default_factory=list)
    considerations: List[Consideration] = Field(default_factory=list)
