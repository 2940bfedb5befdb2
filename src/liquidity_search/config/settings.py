"""Configuration management for the liquidity search service."""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, cast

from pydantic import AnyHttpUrl, BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_FILE = Path("config/app.toml")
CONFIG_FILE_ENV_VAR = "APP_CONFIG_FILE"
PROFILE_ENV_VAR = "SEARCH_PROFILE"
GRAPH_API_KEY_ENV_VAR = "THE_GRAPH_API_KEY"


def _resolve_config_path() -> Path:
    env_value = os.getenv(CONFIG_FILE_ENV_VAR)
    if env_value:
        candidate = Path(env_value)
        if not candidate.is_absolute():
            candidate = Path.cwd() / candidate
        return candidate
    return Path.cwd() / DEFAULT_CONFIG_FILE


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {**base}
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(cast(Dict[str, Any], result[key]), value)
        else:
            result[key] = value
    return result


def _select_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    if not data:
        return {}
    base_section = cast(Dict[str, Any], data.get("default", {}))
    requested = (os.getenv(PROFILE_ENV_VAR) or "").strip().lower()
    if requested and requested != "default" and isinstance(data.get(requested), dict):
        return _deep_merge(base_section, cast(Dict[str, Any], data[requested]))
    if base_section:
        return base_section
    # A file without profile tables is taken as-is.
    return {key: value for key, value in data.items() if isinstance(value, dict)}


def _load_toml_config() -> Tuple[Dict[str, Any], Optional[Path]]:
    path = _resolve_config_path()
    if not path.exists():
        return {}, None
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        return {}, path
    return _select_profile(payload), path


class SubgraphConfig(BaseModel):
    """Access to the indexed on-chain data gateway."""

    api_key: Optional[str] = None
    gateway_url: AnyHttpUrl = Field(default="https://gateway.thegraph.com/api")
    request_timeout: float = Field(default=10.0, gt=0.0, le=60.0)
    query_preview_chars: int = Field(default=100, ge=10)

    @field_validator("api_key", mode="before")
    @classmethod
    def _blank_key_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class SearchConfig(BaseModel):
    """Tuning for the search surface and the aggregation endpoint."""

    debounce_seconds: float = Field(default=0.4, ge=0.0)
    local_match_limit: int = Field(default=5, ge=0)
    min_query_length_for_commands: int = Field(default=2, ge=0)
    remote_token_limit: int = Field(default=10, ge=1, le=100)
    pools_per_token: int = Field(default=10, ge=0, le=100)
    default_chain_id: int = 1
    mainnet_explorer_url: str = "https://etherscan.io"
    fallback_explorer_url: str = "https://explorer.arbitrum.io"
    holdings_url: str = "https://holdings.vaulto.ai"
    swap_anchor: str = "swap-widget"
    endpoint_url: Optional[AnyHttpUrl] = None
    endpoint_timeout: float = Field(default=15.0, gt=0.0, le=60.0)


class RegistryConfig(BaseModel):
    """Location of the static token registry."""

    tokens_file: Optional[Path] = None
    cache_ttl_seconds: int = Field(default=3600, ge=0)


class OrderbookConfig(BaseModel):
    """Orderbook liquidity polling."""

    base_url: AnyHttpUrl = Field(default="https://api.cow.fi/mainnet/api/v1")
    chain_id: int = 1
    refresh_interval_seconds: float = Field(default=10.0, gt=0.0)
    http_timeout: float = Field(default=10.0, gt=0.0, le=60.0)
    retry_attempts: int = Field(default=2, ge=1, le=5)


class ServerConfig(BaseModel):
    """HTTP endpoint binding."""

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class MonitoringConfig(BaseModel):
    """Logging configuration."""

    log_level: str = Field(default="INFO")
    log_format: Literal["json", "text"] = "json"


class AppConfig(BaseSettings):
    """Search service settings: file profile, then `.env`, then the process environment."""

    subgraph: SubgraphConfig = Field(default_factory=SubgraphConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    orderbook: OrderbookConfig = Field(default_factory=OrderbookConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    config_file: Optional[Path] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        def file_settings(_: Optional[BaseSettings] = None) -> Dict[str, Any]:
            payload, path = _load_toml_config()
            if path is not None:
                payload = {**payload, "config_file": path}
            return payload

        # Runtime environment variables win over the static config file.
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _graph_key_from_environment(self) -> "AppConfig":
        if not self.subgraph.api_key:
            key = os.getenv(GRAPH_API_KEY_ENV_VAR, "").strip()
            if key:
                self.subgraph.api_key = key
        return self


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """Process-wide settings; tests call ``get_app_config.cache_clear()`` after changing the environment."""

    return AppConfig()


__all__ = [
    "AppConfig",
    "MonitoringConfig",
    "OrderbookConfig",
    "RegistryConfig",
    "SearchConfig",
    "ServerConfig",
    "SubgraphConfig",
    "get_app_config",
]
