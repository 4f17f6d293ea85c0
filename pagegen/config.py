from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field

OPENROUTER_ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "openai/gpt-5"
DEFAULT_PROVIDERS = "Groq"
CACHE_BACKENDS = {"redis", "memory", "none"}
ENV_FILE = ".env"

Env = Mapping[str, Optional[str]]


def read_env(env_file: Optional[str] = None) -> Dict[str, Optional[str]]:
    """Process environment layered over the optional dotenv file.

    Variables already set in the process win over the file; the file is
    read, never exported into ``os.environ``.
    """
    merged: Dict[str, Optional[str]] = {}
    if env_file and Path(env_file).is_file():
        merged.update(dotenv_values(env_file))
    merged.update(os.environ)
    return merged


def _env_str(env: Env, name: str, default: Optional[str] = None) -> Optional[str]:
    raw = env.get(name)
    if raw is None:
        return default
    raw = raw.strip()
    return raw or default


def _env_int(env: Env, name: str, default: int) -> int:
    try:
        return int(env.get(name) or default)
    except ValueError:
        return default


def _env_float(env: Env, name: str, default: float) -> float:
    try:
        return float(env.get(name) or default)
    except ValueError:
        return default


class Settings(BaseModel):
    redis_host: Optional[str] = None
    redis_port: int = 6379
    redis_username: str = "default"
    redis_password: Optional[str] = None
    redis_timeout: float = 5.0

    cache_backend: str = "redis"
    cache_ttl_seconds: int = 3600

    openrouter_api_key: Optional[str] = Field(default=None, repr=False)
    openrouter_model: str = DEFAULT_MODEL
    openrouter_providers: List[str] = Field(default_factory=lambda: [DEFAULT_PROVIDERS])
    openrouter_endpoint: str = OPENROUTER_ENDPOINT
    llm_timeout_secs: float = 255.0

    page_dump_path: Optional[str] = None
    log_level: str = "INFO"

    @property
    def redis_configured(self) -> bool:
        return bool(self.redis_host and self.redis_password)


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build settings from the environment plus an optional dotenv file.

    Called at app startup rather than import time, so tests can
    monkeypatch the environment before the app is built.
    """
    env = read_env(env_file)
    backend = (_env_str(env, "CACHE_BACKEND", "redis") or "redis").lower()
    if backend not in CACHE_BACKENDS:
        backend = "redis"
    providers_raw = _env_str(env, "OPENROUTER_PROVIDERS", DEFAULT_PROVIDERS) or ""
    providers = [p.strip() for p in providers_raw.split(",") if p.strip()]
    return Settings(
        redis_host=_env_str(env, "REDIS_HOST"),
        redis_port=_env_int(env, "REDIS_PORT", 6379),
        redis_username=_env_str(env, "REDIS_USERNAME", "default") or "default",
        redis_password=_env_str(env, "REDIS_PASSWORD"),
        redis_timeout=_env_float(env, "REDIS_TIMEOUT", 5.0),
        cache_backend=backend,
        cache_ttl_seconds=_env_int(env, "CACHE_TTL_SECONDS", 3600),
        openrouter_api_key=_env_str(env, "OPENROUTER_API_KEY") or _env_str(env, "OR_API_KEY"),
        openrouter_model=_env_str(env, "OPENROUTER_MODEL", DEFAULT_MODEL) or DEFAULT_MODEL,
        openrouter_providers=providers,
        openrouter_endpoint=_env_str(env, "OPENROUTER_ENDPOINT", OPENROUTER_ENDPOINT) or OPENROUTER_ENDPOINT,
        llm_timeout_secs=_env_float(env, "LLM_TIMEOUT_SECS", 255.0),
        page_dump_path=_env_str(env, "PAGE_DUMP_PATH"),
        log_level=(_env_str(env, "LOG_LEVEL", "INFO") or "INFO").upper(),
    )
