"""
Timeout and retry wrapper around any Provider.

Each call is awaited with ``asyncio.wait_for`` and retried with exponential
backoff; the caller only sees the final result or the last error.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from aidef.config import Settings
from aidef.errors import ProviderError
from aidef.models import CompileRequest, CompileResult, GenerateRequest, GenerateResult
from aidef.utils.resilience import retry_with_backoff
from providers.base import Provider

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResilientProvider(Provider):
    """Adds a per-attempt timeout and bounded retries to another provider."""

    def __init__(
        self,
        inner: Provider,
        timeout_seconds: float = 300,
        max_retries: int = 3,
        base_delay: float = 1.0,
    ):
        self.inner = inner
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.base_delay = base_delay

    @classmethod
    def from_settings(cls, inner: Provider, settings: Settings) -> "ResilientProvider":
        return cls(
            inner,
            timeout_seconds=settings.provider_timeout_seconds,
            max_retries=settings.provider_max_retries,
            base_delay=settings.provider_retry_base_delay,
        )

    @property
    def name(self) -> str:
        return self.inner.name

    async def _call(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        async def attempt() -> T:
            try:
                return await asyncio.wait_for(call(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"{self.name}.{operation} timed out after {self.timeout_seconds}s")
                raise

        attempt.__name__ = f"{self.name}.{operation}"
        retrying = retry_with_backoff(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            exceptions=(ProviderError, asyncio.TimeoutError, OSError),
        )(attempt)
        try:
            return await retrying()
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"{self.name}.{operation} timed out after {self.timeout_seconds}s"
            ) from e

    async def compile(self, request: CompileRequest) -> CompileResult:
        return await self._call("compile", lambda: self.inner.compile(request))

    async def generate(self, request: GenerateRequest) -> GenerateResult:
        return await self._call("generate", lambda: self.inner.generate(request))

    async def test_connection(self) -> bool:
        return await self.inner.test_connection()

