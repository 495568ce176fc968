"""
stock_config -- runtime settings for the stock ledger.

Responsibility:
    Provides ``load_settings()`` (explicit, uncached) and
    ``get_active_settings()`` (process-wide, cached).  Settings come from
    the bundled ``defaults.yaml``, an optional override file, then
    ``STOCK_LEDGER_*`` environment variables, in that order.

Architecture position:
    Configuration layer.  ``stock_kernel`` services receive plain values
    (retry count, prefixes, page sizes) through constructors and never
    import this package; ``InventoryOperations.from_settings`` and
    the selectors' ``from_settings`` unpack a ``LedgerSettings`` instance.

Audit relevance:
    Every load emits a ``stock_config_loaded`` log entry with the checksum
    of the merged settings.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from pathlib import Path

from stock_config.loader import (
    DEFAULTS_PATH,
    compute_checksum,
    env_overrides,
    load_yaml_file,
    merge_settings,
    parse_settings,
)
from stock_config.schema import LedgerSettings, NumberPrefixes

_logger = logging.getLogger("stock_kernel.config")

_active: LedgerSettings | None = None
_active_lock = threading.Lock()


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """Load settings from defaults, an optional override file and the environment."""
    data = load_yaml_file(DEFAULTS_PATH)
    sources = [str(DEFAULTS_PATH)]
    if path is not None:
        data = merge_settings(data, load_yaml_file(Path(path)))
        sources.append(str(path))
    overrides = env_overrides(environ)
    if overrides:
        data = merge_settings(data, overrides)
        sources.append("environment")

    settings = parse_settings(data)
    _logger.info(
        "stock_config_loaded",
        extra={
            "sources": sources,
            "checksum": compute_checksum(data),
            "max_retries": settings.max_retries,
        },
    )
    return settings


def get_active_settings() -> LedgerSettings:
    """Process-wide settings, loaded on first use."""
    global _active
    with _active_lock:
        if _active is None:
            _active = load_settings()
        return _active


def reset_active_settings() -> None:
    """Drop cached settings. FOR TESTING ONLY."""
    global _active
    with _active_lock:
        _active = None


__all__ = [
    "LedgerSettings",
    "NumberPrefixes",
    "get_active_settings",
    "load_settings",
    "reset_active_settings",
]
