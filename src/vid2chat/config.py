"""
Configuration loaded from the environment (and a local .env file).

Every setting has a default except the provider API keys, which are only
checked when the matching provider is constructed.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_CORS_ORIGIN_REGEX = r"(https?://(localhost|127\.0\.0\.1)(:\d+)?|https://.*\.vercel\.app)"


class ConfigurationError(ValueError):
    """An environment variable holds a value vid2chat cannot use."""


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


@dataclass
class Settings:
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_max_retries: int = 2
    youtube_api_key: Optional[str] = None

    max_chunk_chars: int = 8000
    session_ttl_seconds: float = 2 * 60 * 60

    rate_limit: int = 10000
    rate_limit_window_seconds: float = 24 * 60 * 60
    # None means window / 24
    rate_limit_cleanup_seconds: Optional[float] = None

    collaborator_timeout_seconds: float = 30.0
    results_per_term: int = 2
    search_max_results: int = 10
    search_failure_policy: str = "abort"

    cors_origin_regex: str = DEFAULT_CORS_ORIGIN_REGEX
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def cleanup_interval_seconds(self) -> float:
        if self.rate_limit_cleanup_seconds:
            return self.rate_limit_cleanup_seconds
        return self.rate_limit_window_seconds / 24

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """Build settings from environment variables, reading .env first."""
        if load_env_file:
            load_dotenv()

        cleanup = _env_float("VID2CHAT_RATE_LIMIT_CLEANUP_SECONDS", 0.0)

        settings = cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", cls.openai_model),
            openai_max_retries=_env_int("OPENAI_MAX_RETRIES", cls.openai_max_retries),
            youtube_api_key=os.getenv("YOUTUBE_API_KEY") or None,
            max_chunk_chars=_env_int("VID2CHAT_MAX_CHUNK_CHARS", cls.max_chunk_chars),
            session_ttl_seconds=_env_float("VID2CHAT_SESSION_TTL_SECONDS", cls.session_ttl_seconds),
            rate_limit=_env_int("VID2CHAT_RATE_LIMIT", cls.rate_limit),
            rate_limit_window_seconds=_env_float(
                "VID2CHAT_RATE_LIMIT_WINDOW_SECONDS", cls.rate_limit_window_seconds
            ),
            rate_limit_cleanup_seconds=cleanup or None,
            collaborator_timeout_seconds=_env_float(
                "VID2CHAT_COLLABORATOR_TIMEOUT_SECONDS", cls.collaborator_timeout_seconds
            ),
            results_per_term=_env_int("VID2CHAT_RESULTS_PER_TERM", cls.results_per_term),
            search_max_results=_env_int("VID2CHAT_SEARCH_MAX_RESULTS", cls.search_max_results),
            search_failure_policy=os.getenv(
                "VID2CHAT_SEARCH_FAILURE_POLICY", cls.search_failure_policy
            ).strip().lower(),
            cors_origin_regex=os.getenv("VID2CHAT_CORS_ORIGIN_REGEX", DEFAULT_CORS_ORIGIN_REGEX),
            host=os.getenv("VID2CHAT_HOST", cls.host),
            port=_env_int("VID2CHAT_PORT", cls.port),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            log_format=os.getenv("LOG_FORMAT", cls.log_format).lower(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.max_chunk_chars <= 0:
            raise ConfigurationError("VID2CHAT_MAX_CHUNK_CHARS must be positive")
        if self.rate_limit <= 0:
            raise ConfigurationError("VID2CHAT_RATE_LIMIT must be positive")
        if self.rate_limit_window_seconds <= 0:
            raise ConfigurationError("VID2CHAT_RATE_LIMIT_WINDOW_SECONDS must be positive")
        if self.collaborator_timeout_seconds <= 0:
            raise ConfigurationError("VID2CHAT_COLLABORATOR_TIMEOUT_SECONDS must be positive")
        if self.search_failure_policy not in ("abort", "skip"):
            raise ConfigurationError(
                "VID2CHAT_SEARCH_FAILURE_POLICY must be 'abort' or 'skip', "
                f"got {self.search_failure_policy!r}"
            )
