"""
Configuration settings for the escrow service.

Values come from environment variables; a `.env` file in the project root is
loaded first via python-dotenv.

Environment variables:
- STORAGE_BACKEND: "memory" (default) or "supabase"
- SETTLEMENT_WINDOW_HOURS: hours after acceptance before auto-payout (default 24)
- SETTLEMENT_INTERVAL_SECONDS: sweep interval (default 600)
- SETTLEMENT_ENABLED: start the sweep with the API (default true)
- OPERATOR_IDS: comma-separated UUIDs allowed to resolve disputes
- LOG_LEVEL: root log level (default INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import FrozenSet, Mapping, Optional
from uuid import UUID

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

_BACKENDS = ("memory", "supabase")


@dataclass(frozen=True, slots=True)
class Settings:
    storage_backend: str = "memory"
    settlement_window: timedelta = timedelta(hours=24)
    settlement_interval_seconds: float = 600.0
    settlement_enabled: bool = True
    operator_ids: FrozenSet[UUID] = frozenset()
    log_level: str = "INFO"


def _parse_bool(name: str, value: str) -> bool:
    text = value.strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise RuntimeError(f"Invalid boolean for {name}: {value!r}")


def _parse_positive(name: str, value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise RuntimeError(f"Invalid number for {name}: {value!r}")
    if number <= 0:
        raise RuntimeError(f"{name} must be greater than 0")
    return number


def _parse_operator_ids(value: str) -> FrozenSet[UUID]:
    ids = set()
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.add(UUID(part))
        except ValueError:
            raise RuntimeError(f"Invalid UUID in OPERATOR_IDS: {part!r}")
    return frozenset(ids)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from a mapping (defaults to os.environ)."""

    env = os.environ if environ is None else environ

    backend = env.get("STORAGE_BACKEND", "memory").strip().lower()
    if backend not in _BACKENDS:
        raise RuntimeError(
            f"Invalid STORAGE_BACKEND: {backend!r}. Expected one of {', '.join(_BACKENDS)}."
        )

    return Settings(
        storage_backend=backend,
        settlement_window=timedelta(
            hours=_parse_positive("SETTLEMENT_WINDOW_HOURS", env.get("SETTLEMENT_WINDOW_HOURS", "24"))
        ),
        settlement_interval_seconds=_parse_positive(
            "SETTLEMENT_INTERVAL_SECONDS", env.get("SETTLEMENT_INTERVAL_SECONDS", "600")
        ),
        settlement_enabled=_parse_bool("SETTLEMENT_ENABLED", env.get("SETTLEMENT_ENABLED", "true")),
        operator_ids=_parse_operator_ids(env.get("OPERATOR_IDS", "")),
        log_level=env.get("LOG_LEVEL", "INFO").strip().upper(),
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    load_dotenv(dotenv_path=env_path)
    return load_settings()


__all__ = ["Settings", "load_settings", "get_settings"]
