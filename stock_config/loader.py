"""
Settings loader (``stock_config.loader``).

Responsibility
--------------
Loads YAML settings files, overlays environment variables, and parses the
merged mapping into a frozen ``LedgerSettings``.  Runtime callers go
through ``stock_config.get_active_settings()``; this module is the
machinery underneath.

Failure modes
-------------
* Missing override file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import LedgerSettings, NumberPrefixes

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_PREFIX = "STOCK_LEDGER_"

_TOP_LEVEL_KEYS = frozenset(
    {
        "max_retries",
        "page_size_default",
        "page_size_max",
        "low_stock_alerts",
        "number_prefixes",
        "database_url",
    }
)

_INT_KEYS = ("max_retries", "page_size_default", "page_size_max")

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def merge_settings(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Shallow merge, except number_prefixes which merges per key."""
    merged = dict(base)
    for key, value in override.items():
        if key == "number_prefixes" and isinstance(value, Mapping):
            prefixes = dict(merged.get("number_prefixes") or {})
            prefixes.update(value)
            merged[key] = prefixes
        else:
            merged[key] = value
    return merged


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_STRINGS:
        return True
    if lowered in _FALSE_STRINGS:
        return False
    raise ValueError(f"{name} must be a boolean, got '{raw}'")


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Collect ``STOCK_LEDGER_*`` environment overrides.

    STOCK_LEDGER_MAX_RETRIES=5, STOCK_LEDGER_LOW_STOCK_ALERTS=false,
    STOCK_LEDGER_DATABASE_URL=..., STOCK_LEDGER_PREFIX_SALE=POS.
    """
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for key in _INT_KEYS:
        raw = environ.get(f"{ENV_PREFIX}{key.upper()}")
        if raw is not None:
            try:
                overrides[key] = int(raw)
            except ValueError as e:
                raise ValueError(f"{ENV_PREFIX}{key.upper()} must be an integer, got '{raw}'") from e
    raw_alerts = environ.get(f"{ENV_PREFIX}LOW_STOCK_ALERTS")
    if raw_alerts is not None:
        overrides["low_stock_alerts"] = _parse_bool(f"{ENV_PREFIX}LOW_STOCK_ALERTS", raw_alerts)
    raw_url = environ.get(f"{ENV_PREFIX}DATABASE_URL")
    if raw_url:
        overrides["database_url"] = raw_url
    prefixes = {}
    for kind in ("adjustment", "transfer", "sale"):
        raw_prefix = environ.get(f"{ENV_PREFIX}PREFIX_{kind.upper()}")
        if raw_prefix:
            prefixes[kind] = raw_prefix
    if prefixes:
        overrides["number_prefixes"] = prefixes
    return overrides


def parse_settings(data: Mapping[str, Any]) -> LedgerSettings:
    """Parse a merged settings mapping into LedgerSettings."""
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(f"Unknown settings keys: {sorted(unknown)}")

    prefixes = NumberPrefixes(**(data.get("number_prefixes") or {}))
    kwargs = {k: v for k, v in data.items() if k != "number_prefixes" and v is not None}
    for key in _INT_KEYS:
        if key in kwargs and not isinstance(kwargs[key], int):
            raise ValueError(f"{key} must be an integer, got {kwargs[key]!r}")
    return LedgerSettings(number_prefixes=prefixes, **kwargs)


def compute_checksum(data: Mapping[str, Any]) -> str:
    """Deterministic SHA-256 of a settings mapping."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
