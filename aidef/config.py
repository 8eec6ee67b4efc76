"""
Application configuration management.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

PROJECT_CONFIG_FILENAME = "aid.config.yaml"


class Settings(BaseSettings):
    """Settings loaded from ``AID_*`` environment variables and ``.env``."""

    # Provider
    provider: str = "openai"
    openai_api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("aid_openai_api_key", "openai_api_key"),
    )
    openai_base_url: Optional[str] = None
    compile_model: str = "gpt-4o"
    generate_model: str = "gpt-4o"

    # Application
    log_level: str = "INFO"

    # Layout
    plan_dir_name: str = ".aid-plan"
    build_dir_name: str = "build"
    spec_extension: str = ".aid"

    # Compilation
    small_spec_threshold: int = 100
    max_nodes: int = 100
    max_calls: int = 100
    compile_concurrency: int = 5
    use_cache: bool = True

    # Build
    build_parallelism: int = 5
    add_source_headers: bool = True

    # Provider call policy
    provider_timeout_seconds: float = 300
    provider_max_retries: int = 3
    provider_retry_base_delay: float = 1.0

    class Config:
        env_file = ".env"
        env_prefix = "AID_"
        case_sensitive = False
        extra = "ignore"


def load_project_settings(
    project_dir: Union[str, Path],
    base: Optional[Settings] = None,
) -> Settings:
    """
    Overlay ``aid.config.yaml`` from a project directory onto settings.

    Args:
        project_dir: Directory holding the root spec file
        base: Settings to start from (defaults to a fresh Settings())

    Returns:
        Settings with the file's values applied; ``base`` itself is unchanged

    Raises:
        yaml.YAMLError: If the file is malformed
        pydantic.ValidationError: If a value has the wrong type
    """
    base = base or Settings()
    config_path = Path(project_dir) / PROJECT_CONFIG_FILENAME

    if not config_path.is_file():
        return base

    with open(config_path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        logger.warning(f"Ignoring {config_path}: expected a mapping, got {type(raw).__name__}")
        return base

    overrides: Dict[str, Any] = {}
    for key, value in raw.items():
        field_name = str(key).replace("-", "_")
        if field_name not in Settings.model_fields:
            logger.warning(f"Unknown setting '{key}' in {config_path}, ignoring")
            continue
        overrides[field_name] = value

    merged = base.model_dump()
    merged.update(overrides)
    logger.info(f"Loaded project settings from {config_path}: {sorted(overrides)}")
    return Settings(**merged)


# Global settings instance
settings = Settings()
