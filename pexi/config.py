"""Configuration loading for Pexi."""

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from .gemini_api import DEFAULT_BASE_URL, DEFAULT_MODEL

log = logging.getLogger("pexi")

DEFAULT_LOG_LEVEL = "WARNING"


def _get(environ: Mapping[str, str], *names: str) -> str | None:
    """Return the first non-blank value among *names*."""
    for name in names:
        value = environ.get(name, "").strip()
        if value:
            return value
    return None


def _log_level(value: str | None) -> str:
    """Normalise a level name; unknown names fall back to the default."""
    if value is None:
        return DEFAULT_LOG_LEVEL
    name = value.upper()
    # getLevelName maps known names to their numeric level.
    if isinstance(logging.getLevelName(name), int):
        return name
    log.warning("[APP] Unknown PEXI_LOG_LEVEL %r, using %s",
                value, DEFAULT_LOG_LEVEL)
    return DEFAULT_LOG_LEVEL


@dataclass(frozen=True)
class PexiConfig:
    """Runtime configuration, read from the environment."""

    api_key: str | None
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PexiConfig":
        """Load configuration from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            api_key=_get(env, "GEMINI_API_KEY", "API_KEY"),
            model=_get(env, "PEXI_MODEL") or DEFAULT_MODEL,
            base_url=_get(env, "PEXI_API_BASE_URL") or DEFAULT_BASE_URL,
            log_level=_log_level(_get(env, "PEXI_LOG_LEVEL")),
        )
