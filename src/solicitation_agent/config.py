"""Configuration models for the solicitation agent."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field


class AgentConfig(BaseModel):
    """Configures the orchestration protocol and tool pipeline constants."""

    version: str = "ai-orchestrator:v1.0"
    max_extract_chars: int = Field(default=30000, ge=1000)
    max_repair_rounds: int = Field(default=1, ge=0)
    escalation_threshold: float = Field(default=0.55, ge=0.0, le=1.0)
    signed_url_ttl_seconds: int = Field(default=3600, ge=60)
    upload_list_limit: int = Field(default=100, ge=1)
    fetch_timeout_seconds: float = Field(default=60.0, gt=0.0)


class ModelConfig(BaseModel):
    """Inference backend settings."""

    api_key: str | None = None
    model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)


class StorageConfig(BaseModel):
    """Record store and document store settings."""

    database_url: str = "sqlite:///solicitation_agent.db"
    bucket: str | None = None
    endpoint_url: str | None = None
    region: str | None = None
    private_bucket: bool = False


class CatalogConfig(BaseModel):
    """External opportunity catalog settings."""

    api_key: str | None = None
    base_url: str = "https://api.sam.gov/opportunities/v2/search"
    default_window_days: int = Field(default=30, ge=1)
    default_limit: int = Field(default=50, ge=1, le=1000)


class Settings(BaseModel):
    """Process-wide settings assembled from environment variables."""

    agent: AgentConfig = Field(default_factory=AgentConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            model=ModelConfig(
                api_key=os.getenv("OPENAI_API_KEY") or None,
                model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            ),
            storage=StorageConfig(
                database_url=os.getenv("DATABASE_URL", "sqlite:///solicitation_agent.db"),
                bucket=os.getenv("DOCUMENT_STORE_BUCKET") or None,
                endpoint_url=os.getenv("DOCUMENT_STORE_ENDPOINT") or None,
                region=os.getenv("DOCUMENT_STORE_REGION") or None,
                private_bucket=_env_flag("DOCUMENT_STORE_PRIVATE"),
            ),
            catalog=CatalogConfig(api_key=os.getenv("SAM_API_KEY") or None),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}
