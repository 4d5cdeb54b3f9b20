"""Environment-driven settings for the extraction service call.

Values are read from the process environment (the CLI loads a local ``.env``
with python-dotenv first). Invalid numbers fall back to defaults rather than
failing start-up.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_MODEL = "gpt-5"
DEFAULT_TIMEOUT_SEC = 120.0
DEFAULT_MAX_ATTEMPTS = 3


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        value = float(raw) if raw else default
    except ValueError:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        value = int(raw) if raw else default
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True, slots=True)
class ExtractionSettings:
    model: str = DEFAULT_MODEL
    timeout_sec: float = DEFAULT_TIMEOUT_SEC
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    @classmethod
    def from_env(cls) -> ExtractionSettings:
        """Build settings from ``INVOICE_INGEST_*`` environment variables."""

        model = (os.getenv("INVOICE_INGEST_MODEL") or "").strip() or DEFAULT_MODEL
        return cls(
            model=model,
            timeout_sec=_env_float("INVOICE_INGEST_TIMEOUT_SEC", DEFAULT_TIMEOUT_SEC),
            # Hard cap keeps a misconfigured env from hammering a rate-limited API.
            max_attempts=min(_env_int("INVOICE_INGEST_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS), 10),
        )


__all__ = ["ExtractionSettings"]
