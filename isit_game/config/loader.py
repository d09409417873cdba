from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_DEFAULT_ROUNDS = {
    "ttl_seconds": 1800,
    "max_rounds": 10000,
}
_DEFAULT_PROGRESSION = {
    "remote_timeout_seconds": 5.0,
    "listing_path": "/polls",
    "sign_in_path": "/auth",
}


def load_config() -> Dict[str, Any]:
    """Load the application config from YAML, returning an empty mapping on error."""
    try:
        with _CONFIG_PATH.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
            if isinstance(data, dict):
                return data
            logging.warning(
                "Config file %s is not a mapping; using defaults.", _CONFIG_PATH
            )
            return {}
    except FileNotFoundError:
        logging.warning(
            "Configuration file %s not found; using defaults.", _CONFIG_PATH
        )
        return {}
    except Exception as exc:  # noqa: BLE001
        logging.error("Failed to load configuration from %s: %s", _CONFIG_PATH, exc)
        return {}


def _coerce_positive_int(value: Any, fallback: int) -> int:
    try:
        candidate = int(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _coerce_positive_float(value: Any, fallback: float) -> float:
    try:
        candidate = float(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _coerce_path(value: Any, fallback: str) -> str:
    if not isinstance(value, str):
        return fallback
    cleaned = value.strip()
    if not cleaned.startswith("/"):
        return fallback
    return cleaned.rstrip("/") or "/"


def get_round_settings() -> Dict[str, int]:
    """Return live round registry limits sourced from config with safe defaults."""
    config = load_config()
    section = config.get("rounds") or {}
    defaults = dict(_DEFAULT_ROUNDS)
    return {
        "ttl_seconds": _coerce_positive_int(
            section.get("ttl_seconds"), defaults["ttl_seconds"]
        ),
        "max_rounds": _coerce_positive_int(
            section.get("max_rounds"), defaults["max_rounds"]
        ),
    }


def get_progression_settings() -> Dict[str, Any]:
    """Return vote/next-poll timeouts and navigation targets."""
    config = load_config()
    section = config.get("progression") or {}
    defaults = dict(_DEFAULT_PROGRESSION)
    return {
        "remote_timeout_seconds": _coerce_positive_float(
            section.get("remote_timeout_seconds"),
            defaults["remote_timeout_seconds"],
        ),
        "listing_path": _coerce_path(
            section.get("listing_path"), defaults["listing_path"]
        ),
        "sign_in_path": _coerce_path(
            section.get("sign_in_path"), defaults["sign_in_path"]
        ),
    }


def get_access_token_expire_minutes() -> int | None:
    """Return the configured token lifetime, or None when config.yaml is silent."""
    config = load_config()
    auth_section = config.get("auth") or {}
    value = auth_section.get("access_token_expire_minutes")
    if value is None:
        return None
    coerced = _coerce_positive_int(value, 0)
    return coerced or None