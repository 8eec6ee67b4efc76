"""Shared fixtures for unit tests."""

import asyncio
from typing import Dict, List, Optional, Union

import pytest

from aidef.models import (
    CompileRequest,
    CompileResult,
    GenerateRequest,
    GenerateResult,
)
from providers.base import Provider


class FakeProvider(Provider):
    """
    Scripted provider keyed by node path.

    A scripted value that is an exception is raised instead of returned.
    """

    def __init__(
        self,
        compile_results: Optional[Dict[str, Union[CompileResult, Exception]]] = None,
        generate_results: Optional[Dict[str, Union[GenerateResult, Exception]]] = None,
        delay: float = 0,
    ):
        self.compile_results = compile_results or {}
        self.generate_results = generate_results or {}
        self.delay = delay
        self.compile_calls: List[CompileRequest] = []
        self.generate_calls: List[GenerateRequest] = []
        self.events: List[str] = []
        self.active = 0
        self.max_active = 0

    @property
    def name(self) -> str:
        return "fake"

    async def _run(self, node_path: str, scripted, default):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.events.append(f"start:{node_path}")
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            value = scripted.get(node_path, default)
            if isinstance(value, Exception):
                raise value
            return value
        finally:
            self.active -= 1
            self.events.append(f"end:{node_path}")

    async def compile(self, request: CompileRequest) -> CompileResult:
        self.compile_calls.append(request)
        return await self._run(request.node_path, self.compile_results, CompileResult())

    async def generate(self, request: GenerateRequest) -> GenerateResult:
        self.generate_calls.append(request)
        return await self._run(request.node_path, self.generate_results, GenerateResult())

    async def test_connection(self) -> bool:
        return True


@pytest.fixture
def fake_provider_cls():
    """The FakeProvider class, for tests that script their own responses."""
    return FakeProvider


@pytest.fixture
def plan_dir(tmp_path):
    return tmp_path / ".aid-plan"


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "build"
