"""AST node data models.

Every variant is frozen: nodes are built once by the parser/resolver and
never mutated afterwards. Container variants (root, module) exclusively own
their ``children`` list.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .source import SourceRange

Combinator = Literal["child", "adjacent", "general"]

COMBINATOR_SYMBOLS = {
    "child": ">",
    "adjacent": "+",
    "general": "~",
}


class PseudoSelector(BaseModel):
    """A ``:name(args)`` suffix on a module selector."""

    model_config = ConfigDict(frozen=True)

    name: str
    args: List[str] = []


class RootNode(BaseModel):
    """Top of a parsed spec file."""

    model_config = ConfigDict(frozen=True)

    type: Literal["root"] = "root"
    children: List["ASTNode"] = []
    source: SourceRange


class ModuleNode(BaseModel):
    """``name.tag:pseudo(args) { ... }`` block."""

    model_config = ConfigDict(frozen=True)

    type: Literal["module"] = "module"
    name: str
    tags: List[str] = []
    pseudos: List[PseudoSelector] = []
    # None means ordinary descendant nesting
    combinator: Optional[Combinator] = None
    children: List["ASTNode"] = []
    source: SourceRange


class ProseNode(BaseModel):
    """Free text that is not otherwise structured."""

    model_config = ConfigDict(frozen=True)

    type: Literal["prose"] = "prose"
    text: str
    important: bool = False
    source: SourceRange


class ConstraintNode(BaseModel):
    """A single free-text rule terminated by ``;``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["constraint"] = "constraint"
    text: str
    important: bool = False
    source: SourceRange


class IncludeNode(BaseModel):
    """``include path;`` statement (replaced by the resolver)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["include"] = "include"
    path: str
    source: SourceRange


class ParamNode(BaseModel):
    """``name=value;`` statement."""

    model_config = ConfigDict(frozen=True)

    type: Literal["param"] = "param"
    name: str
    value: str
    source: SourceRange


class CommentNode(BaseModel):
    """``#``, ``//`` or ``/* */`` comment, kept verbatim."""

    model_config = ConfigDict(frozen=True)

    type: Literal["comment"] = "comment"
    text: str
    source: SourceRange


ASTNode = Annotated[
    Union[
        RootNode,
        ModuleNode,
        ProseNode,
        ConstraintNode,
        IncludeNode,
        ParamNode,
        CommentNode,
    ],
    Field(discriminator="type"),
]

ContainerNode = Union[RootNode, ModuleNode]


# Enable forward references for recursive models
RootNode.model_rebuild()
ModuleNode.model_rebuild()


def is_container(node: BaseModel) -> bool:
    """Return True for node kinds that own a children list."""
    return isinstance(node, (RootNode, ModuleNode))


def module_params(node: BaseModel) -> dict:
    """Collect the direct ``param`` children of a container as a dict."""
    if not is_container(node):
        return {}
    return {
        child.name: child.value
        for child in node.children
        if isinstance(child, ParamNode)
    }


def has_nested_modules(node: BaseModel) -> bool:
    """Whether a container has any module-like children."""
    if not is_container(node):
        return False
    return any(isinstance(child, ModuleNode) for child in node.children)
