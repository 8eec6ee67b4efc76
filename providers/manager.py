"""
Provider Manager for AI providers.

This module manages provider registration, alias resolution and selection,
and loading provider settings from YAML.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import yaml

from aidef.config import Settings
from aidef.errors import ProviderError
from providers.base import Provider
from providers.resilient import ResilientProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Settings], Provider]


class ProviderManager:
    """Manages provider registration and selection."""

    def __init__(self):
        """Initialize the provider manager."""
        self._factories: Dict[str, ProviderFactory] = {}
        self._aliases: Dict[str, str] = {}
        self._instances: Dict[str, Provider] = {}
        self._config_cache: Dict[str, Dict[str, Any]] = {}

    def register_provider(
        self,
        name: str,
        factory: ProviderFactory,
        aliases: Iterable[str] = (),
    ) -> None:
        """
        Register a provider factory.

        Args:
            name: Canonical provider name (e.g. 'openai')
            factory: Callable building the provider from Settings
            aliases: Alternative names resolving to ``name`` (e.g. 'gpt')
        """
        name = name.lower()
        if name in self._factories:
            logger.warning(f"Provider '{name}' already registered, overwriting")

        self._factories[name] = factory
        self._instances.pop(name, None)
        for alias in aliases:
            alias = alias.lower()
            if alias in self._aliases and self._aliases[alias] != name:
                logger.warning(
                    f"Alias '{alias}' already mapped to '{self._aliases[alias]}', "
                    f"overwriting with '{name}'"
                )
            self._aliases[alias] = name

        logger.info(f"Registered provider '{name}' with aliases: {list(aliases)}")

    def resolve_name(self, name: str) -> Optional[str]:
        """Return the canonical name for a provider name or alias."""
        normalized = name.lower()
        if normalized in self._factories:
            return normalized
        return self._aliases.get(normalized)

    def is_supported(self, name: str) -> bool:
        return self.resolve_name(name) is not None

    def get_provider(self, name: str, settings: Optional[Settings] = None) -> Provider:
        """
        Get a provider by name or alias, wrapped with timeout and retries.

        The instance is built on first use and reused afterwards.

        Raises:
            ProviderError: If the name is unknown or the provider cannot be built
        """
        canonical = self.resolve_name(name)
        if canonical is None:
            raise ProviderError(
                f"Unknown provider: '{name}'. "
                f"Supported providers: {', '.join(self.list_supported_providers())}"
            )

        if canonical not in self._instances:
            settings = settings or Settings()
            inner = self._factories[canonical](settings)
            self._instances[canonical] = ResilientProvider.from_settings(inner, settings)
        return self._instances[canonical]

    def list_supported_providers(self) -> List[str]:
        return sorted(self._factories)

    def load_provider_config(self, config_path: Union[str, Path]) -> Dict[str, Any]:
        """
        Load provider settings from a YAML file.

        Args:
            config_path: YAML file with a ``provider`` key and optional settings

        Returns:
            Dictionary containing the provider configuration

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not a mapping or names no provider
            yaml.YAMLError: If the file is malformed
        """
        config_path = Path(config_path)
        cache_key = str(config_path.resolve())
        if cache_key in self._config_cache:
            return self._config_cache[cache_key]

        if not config_path.exists():
            raise FileNotFoundError(f"Provider configuration not found: {config_path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse provider configuration {config_path}: {e}")
            raise

        if not isinstance(config, dict):
            raise ValueError(f"Provider configuration must be a mapping: {config_path}")
        if "provider" not in config:
            raise ValueError(f"Missing required field 'provider' in {config_path}")

        self._config_cache[cache_key] = config
        logger.info(f"Loaded provider configuration from {config_path}")
        return config

    def provider_from_config(
        self,
        config_path: Union[str, Path],
        base: Optional[Settings] = None,
    ) -> Provider:
        """Build the provider a YAML configuration file names, with its settings applied."""
        config = self.load_provider_config(config_path)
        base = base or Settings()
        overrides = {
            key.replace("-", "_"): value
            for key, value in config.items()
            if key.replace("-", "_") in Settings.model_fields
        }
        settings = Settings(**{**base.model_dump(), **overrides})
        return self.get_provider(str(config["provider"]), settings)

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "total_providers": len(self._factories),
            "total_aliases": len(self._aliases),
            "providers": self.list_supported_providers(),
        }


def _openai_factory(settings: Settings) -> Provider:
    from providers.openai.provider import OpenAIProvider
    return OpenAIProvider(settings)


def create_default_manager() -> ProviderManager:
    """Manager with every built-in provider registered."""
    manager = ProviderManager()
    manager.register_provider("openai", _openai_factory, aliases=["gpt"])
    return manager
