"""
accrual_config -- single public entrypoint for ledger settings.

Responsibility:
    ``get_settings()`` is the only way runtime code obtains configuration.
    It loads the bundled ``settings/default.yaml``, overlays the file named
    by ``ACCRUAL_LEDGER_CONFIG`` (or an explicit path), applies the
    ``DATABASE_URL`` override and returns a frozen ``LedgerSettings``.

Architecture position:
    Sits above ``accrual_kernel``; the kernel never imports from here.
    Services receive the parts they need (``balance_policy``, cooldown
    windows, withdrawal priority) through their constructors.

Failure modes:
    - ``ConfigurationError`` for a missing override file, malformed YAML, an
      unknown component or class name, or inconsistent cross-field rules.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from accrual_config.loader import deep_merge, load_yaml_file, parse_settings
from accrual_config.schema import LedgerSettings
from accrual_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_SETTINGS_FILE = Path(__file__).parent / "settings" / "default.yaml"

CONFIG_PATH_ENV = "ACCRUAL_LEDGER_CONFIG"
DATABASE_URL_ENV = "DATABASE_URL"


def get_settings(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override file; falls back to $ACCRUAL_LEDGER_CONFIG.
        environ: Environment mapping, ``os.environ`` by default.
    """
    environ = os.environ if environ is None else environ

    data = load_yaml_file(_DEFAULT_SETTINGS_FILE)
    source = str(_DEFAULT_SETTINGS_FILE)

    override = config_path or environ.get(CONFIG_PATH_ENV)
    if override:
        data = deep_merge(data, load_yaml_file(Path(override)))
        source = str(override)

    database_url = environ.get(DATABASE_URL_ENV)
    if database_url:
        data = deep_merge(data, {"database": {"url": database_url}})

    settings = parse_settings(data, source)
    _logger.info(
        "ledger_config_loaded",
        extra={
            "config_source": settings.source,
            "checksum": settings.checksum,
            "max_workers": settings.distribution.max_workers,
        },
    )
    return settings


__all__ = ["LedgerSettings", "get_settings"]
