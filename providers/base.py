"""
Base interface for compilation/generation providers.

A provider is the AI collaborator behind the compiler: it expands a node's
spec into children (compile) and turns a leaf's spec into files (generate).
Both calls may fail; callers treat any exception as a per-node failure.
"""

from abc import ABC, abstractmethod

from aidef.models import CompileRequest, CompileResult, GenerateRequest, GenerateResult


class Provider(ABC):
    """Base interface for AI providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name (e.g., 'openai')."""
        pass

    @abstractmethod
    async def compile(self, request: CompileRequest) -> CompileResult:
        """
        Expand a node spec into child specs plus declarations.

        Args:
            request: Serialized spec, the context the node received, node path

        Returns:
            CompileResult; an empty ``children`` list means the node is a leaf

        Raises:
            ProviderError: If the call fails or the response is unusable
        """
        pass

    @abstractmethod
    async def generate(self, request: GenerateRequest) -> GenerateResult:
        """
        Generate source files for a leaf node.

        Args:
            request: Leaf spec, its context, node path

        Returns:
            GenerateResult with files relative to the build output root

        Raises:
            ProviderError: If the call fails or the response is unusable
        """
        pass

    @abstractmethod
    async def test_connection(self) -> bool:
        """Return True when the provider is reachable and authenticated."""
        pass
