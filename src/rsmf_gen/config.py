"""Application configuration loaded via python-decouple with typed helpers."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Final, Protocol, cast

from decouple import (
    Config as DecoupleConfig,
    RepositoryEmpty,
    RepositoryEnv,
)

_DOTENV_PATH: Final[Path] = Path(".env")

DEFAULT_GENERATOR: Final[str] = "RSMF Generator Python Library"


def _build_decouple_config() -> DecoupleConfig:
    # Gracefully handle missing .env (e.g., in CI/tests) by falling back to an empty repository.
    try:
        return DecoupleConfig(RepositoryEnv(str(_DOTENV_PATH)))
    except FileNotFoundError:
        return DecoupleConfig(RepositoryEmpty())


_decouple_config: Final[DecoupleConfig] = _build_decouple_config()


@dataclass(slots=True, frozen=True)
class BodySettings:
    """Optional extras rendered into the RSMF body text."""

    include_conversation: bool
    include_timestamp: bool


@dataclass(slots=True, frozen=True)
class Settings:
    """Top-level application settings."""

    environment: str
    generator: str
    custodian_display: str
    # Empty string disables the From header entirely
    custodian_email: str | None
    validate: bool
    body: BodySettings
    # Logging
    log_level: str
    log_json_enabled: bool


@dataclass(slots=True, frozen=True)
class GenerationOptions:
    """Immutable per-call configuration for one RSMF generation run."""

    generator: str = DEFAULT_GENERATOR
    custodian_display: str = ""
    custodian_email: str | None = None
    validate: bool = False
    include_conversation: bool = False
    include_timestamp: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> GenerationOptions:
        return cls(
            generator=settings.generator,
            custodian_display=settings.custodian_display,
            custodian_email=settings.custodian_email,
            validate=settings.validate,
            include_conversation=settings.body.include_conversation,
            include_timestamp=settings.body.include_timestamp,
        )


def _bool(value: str, *, default: bool) -> bool:
    normalized = value.strip().lower()
    if normalized in {"1", "true", "t", "yes", "y"}:
        return True
    if normalized in {"0", "false", "f", "no", "n"}:
        return False
    return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""
    environment = _decouple_config("APP_ENVIRONMENT", default="development")

    body_settings = BodySettings(
        include_conversation=_bool(_decouple_config("RSMF_BODY_INCLUDE_CONVERSATION", default="false"), default=False),
        include_timestamp=_bool(_decouple_config("RSMF_BODY_INCLUDE_TIMESTAMP", default="false"), default=False),
    )

    return Settings(
        environment=environment,
        generator=_decouple_config("RSMF_GENERATOR", default=DEFAULT_GENERATOR) or DEFAULT_GENERATOR,
        custodian_display=_decouple_config("RSMF_CUSTODIAN_DISPLAY", default="").strip(),
        custodian_email=_decouple_config("RSMF_CUSTODIAN_EMAIL", default="").strip() or None,
        validate=_bool(_decouple_config("RSMF_VALIDATE", default="false"), default=False),
        body=body_settings,
        log_level=_decouple_config("LOG_LEVEL", default="INFO"),
        log_json_enabled=_bool(_decouple_config("LOG_JSON_ENABLED", default="false"), default=False),
    )


class _CacheClearable(Protocol):
    def cache_clear(self) -> None: ...


def clear_settings_cache() -> None:
    """Clear the lru_cache for get_settings in a type-checker-friendly way."""
    cache_clear = getattr(cast(_CacheClearable, get_settings), "cache_clear", None)
    if callable(cache_clear):
        cache_clear()
