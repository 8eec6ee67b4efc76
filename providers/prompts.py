"""
Prompt construction and response parsing shared by LLM-backed providers.
"""

import json
import logging
import re
from typing import Any, Dict, List

from pydantic import ValidationError

from aidef.errors import ProviderResponseError
from aidef.models import (
    ChildSpec,
    CompileRequest,
    CompileResult,
    Consideration,
    Constraint,
    GeneratedFile,
    GenerateRequest,
    GenerateResult,
    InterfaceDeclaration,
    InterfaceDefinition,
    NodeContext,
    Question,
    Suggestion,
    Utility,
)

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

COMPILE_SYSTEM_PROMPT = """You are an AI assistant that breaks software specifications down into modular components.

Analyze the specification and decompose it into child modules. Each child should be:
- Cohesive: focused on a single responsibility
- Well-named: a short, descriptive identifier
- Appropriately sized: neither too broad nor too granular

You author the context each child receives. A child sees only what you give it, so
hand each child exactly the interfaces, constraints, suggestions and utilities it needs.

Respond with JSON only, using this structure:
{
  "children": [
    {
      "name": "module-name",
      "is_leaf": false,
      "spec": "Specification text for the child (the same spec language as the input)",
      "tags": ["tag"],
      "context": {
        "interfaces": {"InterfaceName": {"source": "node/path", "definition": "..."}},
        "constraints": [{"rule": "...", "source": "node/path", "important": true}],
        "suggestions": [{"rule": "...", "source": "node/path"}],
        "utilities": [{"name": "...", "signature": "...", "location": "...", "source": "node/path"}],
        "forwarding": ["InterfaceName"]
      }
    }
  ],
  "interfaces": [{"name": "InterfaceName", "definition": "...", "source": "node/path"}],
  "constraints": [{"rule": "...", "source": "node/path", "important": true}],
  "suggestions": [{"rule": "...", "source": "node/path"}],
  "utilities": [],
  "questions": [{"id": "q1", "question": "...", "context": "...", "assumption": "...", "impact": "...", "options": [{"label": "..."}]}],
  "considerations": [{"id": "c1", "note": "...", "blocking": false}]
}

Rules:
- Return an empty children list when the module is small enough to implement directly
- Mark a child is_leaf when it is small enough to implement without further breakdown
- Note ambiguities as questions together with the assumption you made
- Constraints marked important MUST be followed; the rest SHOULD be"""

GENERATE_SYSTEM_PROMPT = """You are an AI assistant that implements specifications as working code.

- Write clean, idiomatic code with appropriate error handling
- Respect every constraint in the context, especially those marked MUST
- Use the interfaces and utilities from the context instead of redefining them
- File paths are relative to the build output directory

Respond with JSON only, using this structure:
{
  "files": [{"path": "relative/path/to/file", "content": "..."}],
  "questions": [{"id": "q1", "question": "...", "context": "...", "assumption": "...", "impact": "..."}],
  "considerations": [{"id": "c1", "note": "...", "blocking": false}]
}"""


def format_context(context: NodeContext) -> str:
    """Render a NodeContext as markdown sections for a prompt."""
    sections: List[str] = []

    if context.interfaces:
        sections.append("### Available Interfaces")
        for name, interface in context.interfaces.items():
            sections.append(f"\n**{name}** (from {interface.source}):")
            sections.append("```")
            sections.append(interface.definition)
            sections.append("```")

    if context.constraints:
        sections.append("\n### Constraints")
        for constraint in context.constraints:
            prefix = "**[MUST]**" if constraint.important else "[SHOULD]"
            sections.append(f"- {prefix} {constraint.rule} (from {constraint.source})")

    if context.suggestions:
        sections.append("\n### Suggestions")
        for suggestion in context.suggestions:
            sections.append(f"- {suggestion.rule} (from {suggestion.source})")

    if context.utilities:
        sections.append("\n### Available Utilities")
        for utility in context.utilities:
            sections.append(f"- **{utility.name}**: `{utility.signature}` at {utility.location}")

    if context.forwarding:
        sections.append("\n### Forward To Children")
        sections.append(", ".join(context.forwarding))

    return "\n".join(sections).strip() or "(no context)"


def _user_prompt(node_path: str, context: NodeContext, spec: str, instruction: str) -> str:
    return (
        f"# Module: {node_path}\n\n"
        f"## Context\n{format_context(context)}\n\n"
        f"## Specification\n{spec}\n\n"
        f"---\n{instruction} Return JSON only, no markdown code blocks."
    )


def build_compile_prompt(request: CompileRequest) -> List[Dict[str, str]]:
    """Chat messages for Provider.compile()."""
    return [
        {"role": "system", "content": COMPILE_SYSTEM_PROMPT},
        {"role": "user", "content": _user_prompt(
            request.node_path,
            request.context,
            request.spec,
            "Break this specification down into child modules.",
        )},
    ]


def build_generate_prompt(request: GenerateRequest) -> List[Dict[str, str]]:
    """Chat messages for Provider.generate()."""
    return [
        {"role": "system", "content": GENERATE_SYSTEM_PROMPT},
        {"role": "user", "content": _user_prompt(
            request.node_path,
            request.context,
            request.spec,
            "Generate the implementation for this leaf module.",
        )},
    ]


def extract_json(output: str) -> Dict[str, Any]:
    """
    Pull a JSON object out of a model response.

    Tries the raw text, then a fenced code block, then the outermost braces.

    Raises:
        ProviderResponseError: If no JSON object can be recovered
    """
    candidates = [output]
    fenced = _FENCED_JSON.search(output)
    if fenced:
        candidates.append(fenced.group(1).strip())
    start, end = output.find("{"), output.rfind("}")
    if start != -1 and end > start:
        candidates.append(output[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ProviderResponseError(f"Failed to parse JSON from provider response: {output[:200]}...")


def _items(parsed: Dict[str, Any], key: str) -> List[Any]:
    value = parsed.get(key) or []
    return value if isinstance(value, list) else []


def _questions(parsed: Dict[str, Any]) -> List[Question]:
    return [
        Question(
            id=str(raw.get("id") or f"q{index}"),
            question=str(raw.get("question") or ""),
            context=str(raw.get("context") or ""),
            assumption=str(raw.get("assumption") or ""),
            impact=str(raw.get("impact") or ""),
            options=raw.get("options") or None,
            answer=raw.get("answer"),
        )
        for index, raw in enumerate(_items(parsed, "questions"), start=1)
        if isinstance(raw, dict)
    ]


def _considerations(parsed: Dict[str, Any]) -> List[Consideration]:
    return [
        Consideration(
            id=str(raw.get("id") or f"c{index}"),
            note=str(raw.get("note") or ""),
            blocking=bool(raw.get("blocking", False)),
        )
        for index, raw in enumerate(_items(parsed, "considerations"), start=1)
        if isinstance(raw, dict)
    ]


def _child_context(raw: Any) -> NodeContext:
    if not isinstance(raw, dict):
        return NodeContext()
    interfaces = raw.get("interfaces") or {}
    # Accept the declaration list form as well as the keyed form
    if isinstance(interfaces, list):
        interfaces = {
            str(item.get("name")): InterfaceDefinition(
                source=str(item.get("source") or ""),
                definition=str(item.get("definition") or ""),
            )
            for item in interfaces
            if isinstance(item, dict) and item.get("name")
        }
    return NodeContext.model_validate({**raw, "interfaces": interfaces})


def parse_compile_response(output: str) -> CompileResult:
    """
    Parse a compile response into a CompileResult.

    Raises:
        ProviderResponseError: If the response is not JSON or has the wrong shape
    """
    parsed = extract_json(output)
    try:
        children = [
            ChildSpec(
                name=str(raw.get("name") or "unnamed"),
                spec=str(raw.get("spec") or ""),
                context=_child_context(raw.get("context")),
                is_leaf=bool(raw.get("is_leaf", raw.get("isLeaf", False))),
                tags=[str(tag) for tag in raw.get("tags") or []],
            )
            for raw in _items(parsed, "children")
            if isinstance(raw, dict)
        ]
        return CompileResult(
            children=children,
            interfaces=[InterfaceDeclaration.model_validate(i) for i in _items(parsed, "interfaces")],
            constraints=[Constraint.model_validate(c) for c in _items(parsed, "constraints")],
            suggestions=[Suggestion.model_validate(s) for s in _items(parsed, "suggestions")],
            utilities=[Utility.model_validate(u) for u in _items(parsed, "utilities")],
            questions=_questions(parsed),
            considerations=_considerations(parsed),
        )
    except ValidationError as e:
        raise ProviderResponseError(f"Invalid compile response: {e}") from e


def parse_generate_response(output: str) -> GenerateResult:
    """
    Parse a generate response into a GenerateResult.

    Raises:
        ProviderResponseError: If the response is not JSON or has the wrong shape
    """
    parsed = extract_json(output)
    try:
        files = [
            GeneratedFile(path=str(raw.get("path") or ""), content=str(raw.get("content") or ""))
            for raw in _items(parsed, "files")
            if isinstance(raw, dict)
        ]
        return GenerateResult(
            files=files,
            questions=_questions(parsed),
            considerations=_considerations(parsed),
        )
    except ValidationError as e:
        raise ProviderResponseError(f"Invalid generate response: {e}") from e
