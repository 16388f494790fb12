"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "KHUB_"
DEFAULT_CONFIG_PATH = Path("~/.config/knowledge-hub/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("providers", "openrouter_api_key"): "openrouter_api_key",
    ("providers", "openrouter_base_url"): "openrouter_base_url",
    ("providers", "openai_api_key"): "openai_api_key",
    ("providers", "timeout"): "request_timeout",
    ("transcription", "url"): "transcription_url",
    ("transcription", "model"): "transcription_model",
    ("embeddings", "backend"): "embedding_backend",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "max_chars"): "embedding_max_chars",
    ("storage", "backend"): "store_backend",
    ("storage", "db_path"): "db_path",
    ("chunking", "size"): "chunk_size",
    ("chunking", "overlap"): "chunk_overlap",
    ("chunking", "min_size"): "min_chunk_size",
    ("retrieval", "top_k"): "top_k",
    ("research", "chat_model"): "chat_model",
    ("research", "search_model"): "search_model",
    ("research", "max_sub_questions"): "max_sub_questions",
    ("research", "isolate_search_failures"): "isolate_search_failures",
    ("upload", "max_bytes"): "max_upload_bytes",
    ("upload", "max_audio_bytes"): "max_audio_bytes",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    openrouter_api_key: str | None = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openai_api_key: str | None = None
    transcription_url: str = "https://api.openai.com/v1/audio/transcriptions"
    transcription_model: str = "whisper-1"
    request_timeout: float = 60.0
    app_url: str = "http://localhost:3000"
    app_title: str = "Knowledge Hub"

    embedding_backend: Literal["openrouter", "hashed"] = "openrouter"
    embedding_model: str = "openai/text-embedding-3-small"
    embedding_dim: int = Field(default=1536, ge=1)
    embedding_max_chars: int = Field(default=8000, ge=1)

    store_backend: Literal["memory", "sqlite"] = "memory"
    db_path: Path = Field(default=Path.home() / ".knowledge-hub" / "kb.db")

    chunk_size: int = Field(default=2000, ge=1)
    chunk_overlap: int = Field(default=200, ge=0)
    min_chunk_size: int = Field(default=100, ge=0)
    top_k: int = Field(default=5, ge=1)

    chat_model: str = "openai/gpt-4o-mini"
    search_model: str = "perplexity/sonar"
    max_sub_questions: int = Field(default=5, ge=1)
    isolate_search_failures: bool = True

    max_upload_bytes: int = 10 * 1024 * 1024
    max_audio_bytes: int = 25 * 1024 * 1024

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with KHUB_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    # Provider keys are commonly exported without the prefix.
    for field_name, env_name in (("openrouter_api_key", "OPENROUTER_API_KEY"), ("openai_api_key", "OPENAI_API_KEY")):
        if field_name not in overrides and os.environ.get(env_name):
            overrides[field_name] = os.environ[env_name]
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
