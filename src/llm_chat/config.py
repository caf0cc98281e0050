# src/llm_chat/config.py
from __future__ import annotations

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_repo_root(start: Path) -> Path:
    """
    Best-effort repository root discovery.
    - Prefer the closest ancestor containing `pyproject.toml`.
    - Fallback to the start directory if not found.
    """
    cur = start.resolve()
    for _ in range(20):
        if (cur / "pyproject.toml").exists():
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent
    return start.resolve()


PACKAGE_ROOT = Path(__file__).resolve().parent
REPO_ROOT = _find_repo_root(PACKAGE_ROOT)

# Load .env into process environment early so downstream SDKs can read it.
load_dotenv(str(REPO_ROOT / ".env"), override=False)


class Settings(BaseSettings):
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    PROJECT_ROOT: str = str(REPO_ROOT)

    # None -> engine.resolve_db_url falls back to <repo>/.Local/llm_chat.db
    LLM_CHAT_DATABASE_URL: str | None = None
    AUTO_CREATE_TABLES: bool = True

    API_PREFIX: str = "/api/v1"
    CORS_ALLOW_ORIGINS: List[str] = ["*"]

    DEFAULT_CHAT_PROVIDER: str = "mock"
    DEFAULT_CHAT_MODEL: str = "mock"
    DEFAULT_TEMPERATURE: float = 0.2
    DEFAULT_MAX_TOKENS: int = 1024
    DEFAULT_SYSTEM_PROMPT: str = "You are a helpful assistant. Answer concisely and say so when you do not know."
    HISTORY_WINDOW: int = 20

    EMBED_PROVIDER: str = "hash"
    EMBED_MODEL: str = "hash"
    EMBED_DIM: int = 128
    CHUNK_SIZE: int = 256
    CHUNK_OVERLAP: int = 32
    SEARCH_TOP_K: int = 5
    SEARCH_MIN_SCORE: float = 0.0

    OPENAI_API_KEY: str | None = None
    OPENAI_API_BASE: str | None = "https://api.openai.com/v1"

    ANTHROPIC_API_KEY: str | None = None

    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_REQUEST_TIMEOUT_S: int = int(120)

    @property
    def project_root(self) -> Path:
        if not self.PROJECT_ROOT:
            raise RuntimeError("PROJECT_ROOT is not set. Please set PROJECT_ROOT in your .env file.")
        return Path(self.PROJECT_ROOT).resolve()

    model_config = SettingsConfigDict(
        env_file=str(REPO_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()


def _set_env_if_missing(key: str, value: str | None) -> None:
    """
    Keep provider SDKs working with .env-based Settings by exporting to os.environ.
    Do not override explicitly provided environment variables.
    """
    if value is None:
        return
    raw = str(value).strip()
    if not raw:
        return
    if os.getenv(key):
        return
    os.environ[key] = raw


def _bootstrap_provider_env(s: Settings) -> None:
    """
    Export provider-related settings into os.environ for downstream SDKs.
    """
    _set_env_if_missing("OPENAI_API_KEY", s.OPENAI_API_KEY)
    _set_env_if_missing("OPENAI_API_BASE", s.OPENAI_API_BASE)
    _set_env_if_missing("ANTHROPIC_API_KEY", s.ANTHROPIC_API_KEY)


_bootstrap_provider_env(settings)
