"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (BURROW__SECTION__KEY)
3. YAML config (<config_dir>/config.yaml)
4. Built-in defaults (lowest priority)

The loaded config is an explicit object passed to whoever needs it;
there is no module-level cache.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from burrow.config.models import (
    BurrowConfig,
    DaemonConfig,
    IndexerConfig,
    LoggingConfig,
    ModelsConfig,
    OllamaConfig,
    OpenRouterConfig,
    TimeoutsConfig,
    VectorSearchConfig,
)
from burrow.config.paths import config_path
from burrow.core.errors import ConfigError

# Checked in order when the YAML/env layers leave the key empty
_API_KEY_ENV_VARS = ("BURROW_OPENROUTER_API_KEY", "OPENROUTER_API_KEY")


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top level must be a mapping")
    return data


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with instance-based YAML source (thread-safe)."""

    class BurrowSettings(BaseSettings):
        """Root config. Env vars: BURROW__LOGGING__LEVEL, BURROW__OLLAMA__URL, etc."""

        model_config = SettingsConfigDict(
            env_prefix="BURROW__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        models: ModelsConfig = ModelsConfig()
        ollama: OllamaConfig = OllamaConfig()
        openrouter: OpenRouterConfig = OpenRouterConfig()
        vector_search: VectorSearchConfig = VectorSearchConfig()
        indexer: IndexerConfig = IndexerConfig()
        daemon: DaemonConfig = DaemonConfig()
        timeouts: TimeoutsConfig = TimeoutsConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml file
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return BurrowSettings


def load_config(path: Path | None = None, **kwargs: Any) -> BurrowConfig:
    """Load config: defaults < YAML file < env vars < kwargs.

    Args:
        path: YAML file to read. Defaults to <config_dir>/config.yaml.
        **kwargs: Override values (highest precedence), keyed by section.

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML syntax or validation errors.
    """
    yaml_config = _load_yaml(path or config_path())

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
        config = BurrowConfig.model_validate(settings.model_dump())
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e

    # api_key is excluded from dumps so it never round-trips to disk
    config.openrouter.api_key = settings.openrouter.api_key  # type: ignore[attr-defined]
    if not config.openrouter.api_key:
        for var in _API_KEY_ENV_VARS:
            if value := os.environ.get(var):
                config.openrouter.api_key = value
                break

    return config
