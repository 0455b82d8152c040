"""Process-wide settings read from the environment.

A ``.env`` file in the working directory (or the path given to
:func:`load_settings`) is loaded first; variables already present in the
environment win.

Recognised variables:
    LANGBASE_API_KEY          required, the pipe service API key
    LANGBASE_BASE_URL         default https://api.langbase.com
    LANGBASE_TIMEOUT          request timeout in seconds, default 120
    AGENTPIPES_DEFAULT_MODEL  model used by config-table agents without one
"""
from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from agentpipes.core.exceptions import ConfigurationError

__all__ = ["Settings", "load_settings", "DEFAULT_BASE_URL", "DEFAULT_MODEL"]

DEFAULT_BASE_URL = "https://api.langbase.com"
DEFAULT_MODEL = "openai:gpt-4o-mini"
DEFAULT_TIMEOUT = 120.0


@dataclass(frozen=True, slots=True)
class Settings:
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    default_model: str = DEFAULT_MODEL


def _read_timeout(raw: str | None) -> float:
    if raw is None or not raw.strip():
        return DEFAULT_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"LANGBASE_TIMEOUT must be a number, got '{raw}'.") from exc
    if not math.isfinite(timeout) or timeout <= 0:
        raise ConfigurationError(f"LANGBASE_TIMEOUT must be a positive number, got '{raw}'.")
    return timeout


def load_settings(env_file: str | Path | None = None) -> Settings:
    """Load settings from ``.env`` and the environment.

    Raises:
        ConfigurationError: If ``LANGBASE_API_KEY`` is missing or
            ``LANGBASE_TIMEOUT`` is not a positive number.
    """
    # Search from the working directory, not from this installed module
    load_dotenv(dotenv_path=env_file or find_dotenv(usecwd=True), override=False)

    api_key = os.environ.get("LANGBASE_API_KEY", "").strip()
    if not api_key:
        raise ConfigurationError(
            "LANGBASE_API_KEY is not set. Export it or add it to a .env file.")

    base_url = os.environ.get("LANGBASE_BASE_URL", "").strip() or DEFAULT_BASE_URL
    default_model = os.environ.get("AGENTPIPES_DEFAULT_MODEL", "").strip() or DEFAULT_MODEL

    return Settings(api_key=api_key,
                    base_url=base_url.rstrip("/"),
                    timeout=_read_timeout(os.environ.get("LANGBASE_TIMEOUT")),
                    default_model=default_model)
