from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Literal

from pydantic import AnyHttpUrl, BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from infrachat.core.exceptions import ConfigurationError


class SecurityConfig(BaseModel):
    allowed_cors_origins: list[AnyHttpUrl] = Field(default_factory=list)


class BackendConfig(BaseModel):
    base_url: str | None = None
    storage_create_url: str | None = None
    storage_list_url: str | None = None
    storage_delete_url: str | None = None
    timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator(
        "base_url",
        "storage_create_url",
        "storage_list_url",
        "storage_delete_url",
        mode="before",
    )
    @classmethod
    def _normalize_url(cls, v: Any) -> Any:
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    def require(self) -> None:
        required = {
            "backend.base_url": self.base_url,
            "backend.storage_create_url": self.storage_create_url,
            "backend.storage_list_url": self.storage_list_url,
            "backend.storage_delete_url": self.storage_delete_url,
        }
        for name, value in required.items():
            if not value:
                raise ConfigurationError(name, "must be configured before the service starts")


class LLMConfig(BaseModel):
    openai_api_key: SecretStr | None = None
    openai_api_base: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4-turbo-preview"
    temperature: float | None = Field(default=None, ge=0, le=2)
    timeout_seconds: float = Field(default=60.0, gt=0)


class ObservabilityConfig(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    otel_service_name: str = "infrachat-api"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "Infrastructure Chat Provisioner"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    api_host: str = "0.0.0.0"
    api_port: int = Field(default=8000, ge=1024, le=65535)
    api_docs_enabled: bool = True

    security: SecurityConfig = Field(default_factory=SecurityConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    api_base_url: str | None = None
    openai_api_key: SecretStr | None = None
    openai_model: str | None = None

    @model_validator(mode="after")
    def apply_legacy_env(self) -> Settings:
        if self.api_base_url and not self.backend.base_url:
            self.backend.base_url = self.api_base_url.strip() or None
        if self.openai_api_key:
            self.llm.openai_api_key = self.openai_api_key
        if self.openai_model:
            self.llm.openai_model = self.openai_model
        base_url = os.getenv("OPENAI_BASE_URL")
        if base_url:
            self.llm.openai_api_base = base_url
        return self

    @model_validator(mode="after")
    def validate_environment(self) -> Settings:
        if self.environment == "production" and self.debug:
            raise ValueError("Debug must be disabled in production")
        return self

    def export_safe_config(self) -> dict[str, Any]:
        cfg = self.model_dump(mode="json")
        for path in (["llm", "openai_api_key"], ["openai_api_key"]):
            current = cfg
            for key in path[:-1]:
                current = current.get(key, {})
            if current.get(path[-1]):
                current[path[-1]] = "***REDACTED***"
        return cfg


@lru_cache
def get_settings() -> Settings:
    return Settings()
