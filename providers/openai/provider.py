"""
OpenAI-backed provider using chat completions.
"""

import logging
from typing import Dict, List, Optional

from openai import APIError, AsyncOpenAI

from aidef.config import Settings
from aidef.errors import ProviderError
from aidef.models import CompileRequest, CompileResult, GenerateRequest, GenerateResult
from aidef.utils.resilience import CircuitBreaker, create_provider_circuit_breaker
from providers.base import Provider
from providers.prompts import (
    build_compile_prompt,
    build_generate_prompt,
    parse_compile_response,
    parse_generate_response,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "openai"


class OpenAIProvider(Provider):
    """Provider that talks to the OpenAI API (or a compatible endpoint)."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        if settings is None:
            from aidef.config import settings as app_settings
            settings = app_settings

        if not settings.openai_api_key:
            raise ProviderError(
                "OpenAI API key is required. Set OPENAI_API_KEY or AID_OPENAI_API_KEY."
            )

        self.circuit_breaker = circuit_breaker or create_provider_circuit_breaker()
        self.compile_model = settings.compile_model
        self.generate_model = settings.generate_model
        self.client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )
        logger.info(
            f"Initialized OpenAI provider (compile={self.compile_model}, generate={self.generate_model})"
        )

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    async def _complete(self, model: str, messages: List[Dict[str, str]], **options) -> str:
        async def _call_llm() -> str:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=0,
                **options,
            )
            return (response.choices[0].message.content or "").strip()

        try:
            return await self.circuit_breaker.call(_call_llm)
        except APIError as e:
            raise ProviderError(f"OpenAI request failed: {e}") from e

    async def compile(self, request: CompileRequest) -> CompileResult:
        output = await self._complete(self.compile_model, build_compile_prompt(request))
        return parse_compile_response(output)

    async def generate(self, request: GenerateRequest) -> GenerateResult:
        output = await self._complete(self.generate_model, build_generate_prompt(request))
        return parse_generate_response(output)

    async def test_connection(self) -> bool:
        try:
            output = await self._complete(
                self.compile_model,
                [{"role": "user", "content": 'Say "ok" and nothing else.'}],
                max_tokens=10,
            )
        except Exception as e:
            logger.warning(f"OpenAI connection test failed: {e}")
            return False
        return bool(output)
