"""Typed, environment-driven settings for the affect pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

DEFAULT_API_BASE_URL = "https://api.hume.ai/v0/batch"
DEFAULT_API_KEY_HEADER = "X-Hume-Api-Key"
DEFAULT_MODEL_DESCRIPTOR: MappingProxyType[str, Any] = MappingProxyType(
    {"models": {"face": {}}}
)


class ConfigurationError(ValueError):
    """Raised when an environment variable holds an unusable value."""


@dataclass(frozen=True)
class InferenceConfig:
    """Remote inference job settings.

    Attributes:
        api_key: Credential sent in ``api_key_header``; empty disables the client.
        base_url: Root of the batch-job API (``/jobs`` is appended).
        api_key_header: Header name carrying the credential.
        request_timeout_seconds: Per-request HTTP timeout.
        poll_interval_seconds: Pause between two status queries.
        max_poll_attempts: Status queries before the job counts as timed out.
        deadline_seconds: Wall-clock budget for polling one job.
        result_settle_seconds: Pause between completion and the first fetch.
        fetch_max_attempts: Prediction fetch attempts after completion.
        fetch_retry_pause_seconds: Pause between two prediction fetches.
    """

    api_key: str = ""
    base_url: str = DEFAULT_API_BASE_URL
    api_key_header: str = DEFAULT_API_KEY_HEADER
    request_timeout_seconds: float = 10.0
    poll_interval_seconds: float = 1.0
    max_poll_attempts: int = 30
    deadline_seconds: float = 30.0
    result_settle_seconds: float = 1.0
    fetch_max_attempts: int = 3
    fetch_retry_pause_seconds: float = 2.0
    model_descriptor: MappingProxyType[str, Any] = field(
        default_factory=lambda: DEFAULT_MODEL_DESCRIPTOR
    )

    @property
    def enabled(self) -> bool:
        """Whether real inference can be attempted at all."""
        return bool(self.api_key)


@dataclass(frozen=True)
class AppConfig:
    """Top-level application settings."""

    inference: InferenceConfig
    reports_folder: Path = Path("./reports")
    log_level: str = "INFO"


_SETTINGS: AppConfig | None = None


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1].strip()
    return value


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = _strip_quotes(raw)
    return value if value else default


def _env_float(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as err:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}.") from err
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}.")
    return value


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as err:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}.") from err
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}.")
    return value


def _build_inference_config() -> InferenceConfig:
    return InferenceConfig(
        api_key=_env_str("AFFECT_API_KEY", ""),
        base_url=_env_str("AFFECT_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
        api_key_header=_env_str("AFFECT_API_KEY_HEADER", DEFAULT_API_KEY_HEADER),
        request_timeout_seconds=_env_float(
            "AFFECT_REQUEST_TIMEOUT_SECONDS", 10.0, minimum=0.1
        ),
        poll_interval_seconds=_env_float("AFFECT_POLL_INTERVAL_SECONDS", 1.0),
        max_poll_attempts=_env_int("AFFECT_MAX_POLL_ATTEMPTS", 30),
        deadline_seconds=_env_float("AFFECT_DEADLINE_SECONDS", 30.0, minimum=0.1),
        result_settle_seconds=_env_float("AFFECT_RESULT_SETTLE_SECONDS", 1.0),
        fetch_max_attempts=_env_int("AFFECT_FETCH_MAX_ATTEMPTS", 3),
        fetch_retry_pause_seconds=_env_float("AFFECT_FETCH_RETRY_PAUSE_SECONDS", 2.0),
    )


def reload_settings() -> AppConfig:
    """Rebuilds settings from the current environment and caches them."""
    global _SETTINGS
    _SETTINGS = AppConfig(
        inference=_build_inference_config(),
        reports_folder=Path(_env_str("AFFECT_REPORTS_DIR", "./reports")),
        log_level=_env_str("LOG_LEVEL", "INFO").upper(),
    )
    return _SETTINGS


def get_settings() -> AppConfig:
    """Returns cached settings, loading them on first access."""
    if _SETTINGS is None:
        return reload_settings()
    return _SETTINGS
