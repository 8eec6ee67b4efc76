"""
AI provider boundary.

This package provides the Provider interface the compiler and build phase
call, the provider manager, and the built-in providers.
"""

from providers.base import Provider
from providers.manager import ProviderManager, create_default_manager
from providers.resilient import ResilientProvider

__all__ = ["Provider", "ProviderManager", "ResilientProvider", "create_default_manager"]
