from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.rules import DEFAULT_RULES, Rule, find_rule


class GridConfig(BaseModel):
    """Bead grid geometry. Capacity of the window is ``cols * rows``."""

    cols: int = Field(44, ge=1, description="Number of grid columns")
    rows: int = Field(6, ge=1, description="Default rows per column")

    @property
    def capacity(self) -> int:
        return self.cols * self.rows


class FeedConfig(BaseModel):
    backend_url: str = Field("http://localhost:8080", description="Block backend base URL")
    poll_interval_sec: float = Field(3.0, description="Cadence for live polling")
    poll_limit: int = Field(50, ge=1, description="Newest blocks requested per poll")
    history_size: int = Field(30_000, ge=1, description="Raw blocks kept for rule switches")
    network_timeout_sec: int = 10
    max_retries: int = 5
    backoff_base_sec: float = 0.5
    backoff_cap_sec: float = 10.0


class RuntimeConfig(BaseModel):
    grid: GridConfig = Field(default_factory=GridConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    rules: List[Rule] = Field(default_factory=lambda: list(DEFAULT_RULES))
    active_rule_id: str = "1"

    @field_validator("rules")
    @classmethod
    def _non_empty(cls, v: List[Rule]) -> List[Rule]:
        if not v:
            raise ValueError("at least one rule must be configured")
        return v

    def active_rule(self, rule_id: Optional[str] = None) -> Rule:
        return find_rule(self.rules, rule_id or self.active_rule_id)


class EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    LOG_LEVEL: str = "INFO"
    BACKEND_URL: Optional[str] = None


class AppConfig(BaseModel):
    env: EnvSettings
    runtime: RuntimeConfig

    @field_validator("env", mode="before")
    @classmethod
    def _coerce_env(cls, v):  # type: ignore[no-untyped-def]
        if isinstance(v, EnvSettings):
            return v
        if isinstance(v, dict):
            return EnvSettings(**v)
        # Accept simple attribute bag used in tests
        data = {k: getattr(v, k) for k in ("LOG_LEVEL", "BACKEND_URL") if hasattr(v, k)}
        if data:
            return EnvSettings(**data)
        return v

    @property
    def backend_url(self) -> str:
        return (self.env.BACKEND_URL or self.runtime.feed.backend_url).rstrip("/")

    @staticmethod
    def load(config_path: Optional[Path] = None) -> "AppConfig":
        env = EnvSettings()  # loads from environment and .env

        runtime = RuntimeConfig()
        if config_path is None:
            default_path = Path("config.yaml")
            config_path = default_path if default_path.exists() else None

        if config_path and Path(config_path).exists():
            with open(config_path, "r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            try:
                runtime = RuntimeConfig(**raw)
            except ValidationError as ve:
                raise ValueError(f"Invalid config.yaml: {ve}")

        return AppConfig(env=env, runtime=runtime)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load merged configuration from environment and optional YAML."""

    return AppConfig.load(config_path)
