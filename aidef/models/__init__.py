"""Data models for the AIDef spec compiler."""

from .ast_node import (
    COMBINATOR_SYMBOLS,
    ASTNode,
    CommentNode,
    ConstraintNode,
    ContainerNode,
    IncludeNode,
    ModuleNode,
    ParamNode,
    ProseNode,
    PseudoSelector,
    RootNode,
    has_nested_modules,
    is_container,
    module_params,
)
from .build import BuildResult, LeafNode, LeafResult
from .compile import NodeMeta, NodeResult, NodeState, TreeCompileResult
from .context import (
    Consideration,
    Constraint,
    InterfaceDeclaration,
    InterfaceDefinition,
    NodeContext,
    NodeQuestions,
    Question,
    QuestionOption,
    Suggestion,
    Utility,
)
from .provider import (
    ChildSpec,
    CompileRequest,
    CompileResult,
    GeneratedFile,
    GenerateRequest,
    GenerateResult,
)
from .resolve import ResolvedImport, ResolvedSpec
from .source import ParseError, SourceLocation, SourceRange
from .token import LexerError, LexerResult, Token, TokenKind

__all__ = [
    # Source models
    "SourceLocation",
    "SourceRange",
    "ParseError",
    # Token models
    "TokenKind",
    "Token",
    "LexerError",
    "LexerResult",
    # AST models
    "ASTNode",
    "ContainerNode",
    "RootNode",
    "ModuleNode",
    "ProseNode",
    "ConstraintNode",
    "IncludeNode",
    "ParamNode",
    "CommentNode",
    "PseudoSelector",
    "COMBINATOR_SYMBOLS",
    "is_container",
    "module_params",
    "has_nested_modules",
    # Context models
    "InterfaceDefinition",
    "InterfaceDeclaration",
    "Constraint",
    "Suggestion",
    "Utility",
    "NodeContext",
    "QuestionOption",
    "Question",
    "Consideration",
    "NodeQuestions",
    # Provider models
    "ChildSpec",
    "CompileRequest",
    "CompileResult",
    "GenerateRequest",
    "GenerateResult",
    "GeneratedFile",
    # Resolution models
    "ResolvedImport",
    "ResolvedSpec",
    # Compile models
    "NodeState",
    "NodeResult",
    "NodeMeta",
    "TreeCompileResult",
    # Build models
    "LeafNode",
    "LeafResult",
    "BuildResult",
]
