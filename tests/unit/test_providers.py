"""
Unit tests for providers: prompts, retries, the manager and the OpenAI provider.
"""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from aidef.config import Settings
from aidef.errors import ProviderError, ProviderResponseError
from aidef.models import (
    CompileRequest,
    CompileResult,
    Constraint,
    GenerateRequest,
    InterfaceDefinition,
    NodeContext,
    Suggestion,
)
from aidef.utils.resilience import CircuitBreaker, CircuitBreakerOpenError
from providers import ProviderManager, ResilientProvider, create_default_manager
from providers.prompts import (
    build_compile_prompt,
    extract_json,
    format_context,
    parse_compile_response,
    parse_generate_response,
)


class ScriptedProvider:
    """Minimal provider double whose compile() walks through a list of outcomes."""

    name = "scripted"

    def __init__(self, outcomes, delay=0):
        self.outcomes = list(outcomes)
        self.delay = delay
        self.calls = 0

    async def compile(self, request):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def generate(self, request):
        return await self.compile(request)

    async def test_connection(self):
        return True


def compile_request(node_path="server"):
    return CompileRequest(spec="Serve requests.", context=NodeContext(), node_path=node_path)


class TestPrompts:
    """Tests for prompt building and response parsing."""

    def test_format_context_empty(self):
        assert format_context(NodeContext()) == "(no context)"

    def test_format_context_sections(self):
        """Test important constraints render as MUST and the rest as SHOULD."""
        context = NodeContext(
            interfaces={"User": InterfaceDefinition(source="root", definition="type User = {id: string}")},
            constraints=[
                Constraint(rule="Use TLS", source="root", important=True),
                Constraint(rule="Prefer small files", source="root"),
            ],
            suggestions=[Suggestion(rule="Cache lookups", source="server")],
        )

        text = format_context(context)

        assert "**User** (from root)" in text
        assert "type User = {id: string}" in text
        assert "- **[MUST]** Use TLS (from root)" in text
        assert "- [SHOULD] Prefer small files (from root)" in text
        assert "- Cache lookups (from server)" in text

    def test_compile_prompt_messages(self):
        messages = build_compile_prompt(compile_request("server/api"))

        assert [m["role"] for m in messages] == ["system", "user"]
        assert "# Module: server/api" in messages[1]["content"]
        assert "Serve requests." in messages[1]["content"]

    def test_extract_json_raw(self):
        assert extract_json('{"children": []}') == {"children": []}

    def test_extract_json_fenced(self):
        output = 'Here you go:\n```json\n{"files": [{"path": "a.py"}]}\n```\nDone.'

        assert extract_json(output) == {"files": [{"path": "a.py"}]}

    def test_extract_json_embedded(self):
        assert extract_json('Result: {"a": 1} as requested') == {"a": 1}

    def test_extract_json_invalid(self):
        with pytest.raises(ProviderResponseError, match="Failed to parse JSON"):
            extract_json("no json here")

    def test_parse_compile_response(self):
        """Test children, leaf flags and child contexts are parsed."""
        output = json.dumps({
            "children": [
                {
                    "name": "api",
                    "isLeaf": True,
                    "spec": "Serve HTTP.",
                    "tags": ["http"],
                    "context": {
                        "interfaces": [{"name": "User", "source": "root", "definition": "User type"}],
                        "constraints": [{"rule": "Use TLS", "source": "root", "important": True}],
                    },
                },
                {"name": "db", "spec": "Store data."},
            ],
            "questions": [{"question": "Which database?", "assumption": "SQLite"}],
            "considerations": [{"note": "Needs migrations", "blocking": True}],
        })

        result = parse_compile_response(output)

        api, db = result.children
        assert api.is_leaf is True
        assert api.tags == ["http"]
        assert api.context.interfaces["User"].definition == "User type"
        assert api.context.constraints[0].important is True
        assert db.is_leaf is False
        assert db.context == NodeContext()
        assert result.questions[0].id == "q1"
        assert result.questions[0].assumption == "SQLite"
        assert result.considerations[0].blocking is True

    def test_parse_compile_response_no_children(self):
        assert parse_compile_response('{"children": []}').children == []

    def test_parse_compile_response_bad_shape(self):
        output = json.dumps({"constraints": [{"important": True}]})

        with pytest.raises(ProviderResponseError, match="Invalid compile response"):
            parse_compile_response(output)

    def test_parse_generate_response(self):
        result = parse_generate_response('{"files": [{"path": "src/a.py", "content": "x = 1"}]}')

        assert result.files[0].path == "src/a.py"
        assert result.files[0].content == "x = 1"


class TestResilientProvider:
    """Tests for ResilientProvider."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        inner = ScriptedProvider([ProviderError("flaky"), ProviderError("flaky"), CompileResult()])
        provider = ResilientProvider(inner, max_retries=3, base_delay=0)

        result = await provider.compile(compile_request())

        assert result == CompileResult()
        assert inner.calls == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        inner = ScriptedProvider([ProviderError("down")] * 3)
        provider = ResilientProvider(inner, max_retries=2, base_delay=0)

        with pytest.raises(ProviderError, match="down"):
            await provider.compile(compile_request())
        assert inner.calls == 2

    @pytest.mark.asyncio
    async def test_unexpected_errors_not_retried(self):
        inner = ScriptedProvider([ValueError("bug"), CompileResult()])
        provider = ResilientProvider(inner, max_retries=3, base_delay=0)

        with pytest.raises(ValueError):
            await provider.compile(compile_request())
        assert inner.calls == 1

    @pytest.mark.asyncio
    async def test_timeout_becomes_provider_error(self):
        inner = ScriptedProvider([CompileResult()], delay=1)
        provider = ResilientProvider(inner, timeout_seconds=0.01, max_retries=1, base_delay=0)

        with pytest.raises(ProviderError, match="scripted.compile timed out"):
            await provider.compile(compile_request())

    def test_from_settings(self):
        settings = Settings(provider_timeout_seconds=5, provider_max_retries=4, provider_retry_base_delay=0.5)

        provider = ResilientProvider.from_settings(ScriptedProvider([]), settings)

        assert provider.name == "scripted"
        assert provider.timeout_seconds == 5
        assert provider.max_retries == 4
        assert provider.base_delay == 0.5


class TestProviderManager:
    """Tests for ProviderManager."""

    def make_manager(self):
        manager = ProviderManager()
        manager.register_provider("scripted", lambda settings: ScriptedProvider([]), aliases=["fake"])
        return manager

    def test_alias_resolution(self):
        manager = self.make_manager()

        assert manager.resolve_name("FAKE") == "scripted"
        assert manager.is_supported("scripted")
        assert not manager.is_supported("missing")

    def test_get_provider_wraps_and_caches(self):
        manager = self.make_manager()

        provider = manager.get_provider("fake")

        assert isinstance(provider, ResilientProvider)
        assert provider.name == "scripted"
        assert manager.get_provider("scripted") is provider

    def test_unknown_provider(self):
        manager = self.make_manager()

        with pytest.raises(ProviderError, match="Unknown provider: 'claude'. Supported providers: scripted"):
            manager.get_provider("claude")

    def test_statistics(self):
        stats = self.make_manager().get_statistics()

        assert stats == {"total_providers": 1, "total_aliases": 1, "providers": ["scripted"]}

    def test_default_manager(self):
        manager = create_default_manager()

        assert manager.list_supported_providers() == ["openai"]
        assert manager.resolve_name("gpt") == "openai"

    def test_load_provider_config(self, tmp_path):
        """Test YAML provider configuration is loaded and cached."""
        config_path = tmp_path / "provider.yaml"
        config_path.write_text("provider: fake\nprovider-max-retries: 5\n")
        manager = self.make_manager()

        first = manager.load_provider_config(config_path)
        config_path.write_text("provider: other\n")
        second = manager.load_provider_config(config_path)

        assert first == {"provider": "fake", "provider-max-retries": 5}
        assert second is first

    def test_load_provider_config_missing_field(self, tmp_path):
        config_path = tmp_path / "provider.yaml"
        config_path.write_text("compile-model: gpt-4o\n")

        with pytest.raises(ValueError, match="Missing required field 'provider'"):
            self.make_manager().load_provider_config(config_path)

    def test_load_provider_config_not_a_mapping(self, tmp_path):
        config_path = tmp_path / "provider.yaml"
        config_path.write_text("- openai\n")

        with pytest.raises(ValueError, match="must be a mapping"):
            self.make_manager().load_provider_config(config_path)

    def test_load_provider_config_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            self.make_manager().load_provider_config(tmp_path / "absent.yaml")

    def test_provider_from_config(self, tmp_path):
        """Test settings from the file reach the wrapped provider."""
        config_path = tmp_path / "provider.yaml"
        config_path.write_text("provider: fake\nprovider-max-retries: 5\nprovider_timeout_seconds: 12\n")

        provider = self.make_manager().provider_from_config(config_path)

        assert provider.max_retries == 5
        assert provider.timeout_seconds == 12


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def openai_client():
    with patch("providers.openai.provider.AsyncOpenAI") as client_cls:
        client = MagicMock()
        client.chat.completions.create = AsyncMock()
        client_cls.return_value = client
        yield client


class TestOpenAIProvider:
    """Tests for OpenAIProvider with the client mocked."""

    def make_provider(self, **kwargs):
        from providers.openai import OpenAIProvider
        return OpenAIProvider(Settings(openai_api_key="sk-test", compile_model="gpt-test"), **kwargs)

    def test_requires_api_key(self, openai_client):
        from providers.openai import OpenAIProvider

        with pytest.raises(ProviderError, match="API key is required"):
            OpenAIProvider(Settings(openai_api_key=None))

    @pytest.mark.asyncio
    async def test_compile(self, openai_client):
        openai_client.chat.completions.create.return_value = completion(
            '```json\n{"children": [{"name": "api", "spec": "Serve."}]}\n```'
        )
        provider = self.make_provider()

        result = await provider.compile(compile_request())

        assert [child.name for child in result.children] == ["api"]
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["temperature"] == 0
        assert kwargs["messages"][0]["role"] == "system"

    @pytest.mark.asyncio
    async def test_generate(self, openai_client):
        openai_client.chat.completions.create.return_value = completion(
            '{"files": [{"path": "a.py", "content": "pass"}]}'
        )
        provider = self.make_provider()

        result = await provider.generate(
            GenerateRequest(spec="Write a.", context=NodeContext(), node_path="a")
        )

        assert result.files[0].path == "a.py"

    @pytest.mark.asyncio
    async def test_unparseable_response(self, openai_client):
        openai_client.chat.completions.create.return_value = completion("I cannot help with that.")
        provider = self.make_provider()

        with pytest.raises(ProviderResponseError):
            await provider.compile(compile_request())

    @pytest.mark.asyncio
    async def test_circuit_opens_after_failures(self, openai_client):
        """Test repeated failures open the circuit and later calls fail fast."""
        openai_client.chat.completions.create.side_effect = RuntimeError("connection reset")
        provider = self.make_provider(circuit_breaker=CircuitBreaker(failure_threshold=3, timeout=60))

        for _ in range(3):
            with pytest.raises(RuntimeError):
                await provider.compile(compile_request())

        with pytest.raises(CircuitBreakerOpenError):
            await provider.compile(compile_request())
        assert openai_client.chat.completions.create.await_count == 3

    @pytest.mark.asyncio
    async def test_connection(self, openai_client):
        openai_client.chat.completions.create.return_value = completion("ok")

        assert await self.make_provider().test_connection() is True

        openai_client.chat.completions.create.side_effect = RuntimeError("down")
        assert await self.make_provider().test_connection() is False
