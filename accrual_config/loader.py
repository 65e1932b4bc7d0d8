"""
Settings Loader (``accrual_config.loader``).

Responsibility
--------------
Reads YAML settings files, merges an override file over the bundled
defaults, and parses the result into ``accrual_config.schema`` instances.
Runtime callers use ``accrual_config.get_settings()``, not this module.

Invariants enforced
-------------------
* Every parse problem raises ``ConfigurationError`` naming the file and key.
* Component, class and direction names go through the kernel enums; an
  unknown name is a configuration error, never a silent default.
* Cross-field rules: withdrawal priority and refund component must feed
  ``total`` and be adjustable; deposit must be adjustable (contract
  funding debits it).
* ``compute_checksum`` gives a stable identity for the merged settings.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from accrual_config.schema import (
    BalanceSettings,
    DatabaseSettings,
    DistributionSettings,
    LedgerSettings,
    LoggingSettings,
    ReferralSettings,
    SchedulerSettings,
    WithdrawalSettings,
)
from accrual_kernel.domain.values import BalanceComponent, ContractClass
from accrual_kernel.exceptions import (
    ConfigurationError,
    InvalidContractClassError,
    UnknownComponentError,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping.  Missing files and non-mapping documents are errors."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(str(path), "file not found") from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(str(path), f"malformed YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``override`` on ``base``; lists are replaced whole."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


# ---------------------------------------------------------------------------
# Field parsing
# ---------------------------------------------------------------------------


def _section(data: dict[str, Any], key: str, source: str) -> dict[str, Any]:
    value = data.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(source, f"'{key}' must be a mapping")
    return value


def _bool(value: Any, key: str, source: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigurationError(source, f"'{key}' must be true or false, got {value!r}")


def _positive_number(value: Any, key: str, source: str, *, allow_zero: bool = False) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(source, f"'{key}' must be a number, got {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigurationError(source, f"'{key}' must be positive, got {value!r}")
    return value


def _components(value: Any, key: str, source: str) -> tuple[BalanceComponent, ...]:
    if not isinstance(value, list) or not value:
        raise ConfigurationError(source, f"'{key}' must be a non-empty list")
    try:
        parsed = tuple(BalanceComponent.parse(v) for v in value)
    except UnknownComponentError as exc:
        raise ConfigurationError(source, f"'{key}': {exc.message}") from None
    if len(set(parsed)) != len(parsed):
        raise ConfigurationError(source, f"'{key}' lists a component twice")
    if BalanceComponent.TOTAL in parsed:
        raise ConfigurationError(source, f"'{key}' may not include 'total'")
    return parsed


def _parse_database(section: dict[str, Any], source: str) -> DatabaseSettings:
    url = section.get("url")
    if not isinstance(url, str) or not url:
        raise ConfigurationError(source, "'database.url' must be a non-empty string")
    return DatabaseSettings(
        url=url,
        echo=_bool(section.get("echo", False), "database.echo", source),
        statement_timeout_seconds=_positive_number(
            section.get("statement_timeout_seconds", 30),
            "database.statement_timeout_seconds",
            source,
        ),
    )


def _parse_distribution(section: dict[str, Any], source: str) -> DistributionSettings:
    max_workers = section.get("max_workers", 4)
    if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
        raise ConfigurationError(
            source, f"'distribution.max_workers' must be an integer >= 1, got {max_workers!r}"
        )

    cooldowns: dict[ContractClass, timedelta] = {}
    raw_cooldowns = _section(section, "cooldowns", source)
    for name, hours in raw_cooldowns.items():
        try:
            contract_class = ContractClass.parse(name)
        except InvalidContractClassError:
            raise ConfigurationError(
                source, f"'distribution.cooldowns' has unknown class {name!r}"
            ) from None
        hours = _positive_number(hours, f"distribution.cooldowns.{name}", source, allow_zero=True)
        cooldowns[contract_class] = timedelta(hours=hours)
    for contract_class in ContractClass:
        cooldowns.setdefault(contract_class, timedelta(0))

    raw_scheduler = _section(section, "scheduler", source)
    try:
        classes = tuple(
            ContractClass.parse(c)
            for c in raw_scheduler.get("classes", [c.value for c in ContractClass])
        )
    except InvalidContractClassError as exc:
        raise ConfigurationError(source, f"'distribution.scheduler.classes': {exc.message}") from None
    scheduler = SchedulerSettings(
        poll_seconds=_positive_number(
            raw_scheduler.get("poll_seconds", 60), "distribution.scheduler.poll_seconds", source
        ),
        classes=classes,
    )

    return DistributionSettings(
        max_workers=max_workers,
        return_principal_on_completion=_bool(
            section.get("return_principal_on_completion", True),
            "distribution.return_principal_on_completion",
            source,
        ),
        cooldowns=cooldowns,
        scheduler=scheduler,
    )


def _parse_commission_rate(value: Any, source: str) -> Decimal:
    if isinstance(value, float):
        # YAML reads 0.05 as a float; go through its shortest repr.
        value = repr(value)
    try:
        rate = Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(
            source, f"'referrals.commission_rate' must be a decimal, got {value!r}"
        ) from None
    if not rate.is_finite() or rate < 0 or rate >= 1:
        raise ConfigurationError(source, "'referrals.commission_rate' must be in [0, 1)")
    return rate


def parse_settings(data: dict[str, Any], source: str) -> LedgerSettings:
    """Turn a merged settings mapping into ``LedgerSettings``."""
    balances_raw = _section(data, "balances", source)
    balances = BalanceSettings(
        total_components=_components(
            balances_raw.get("total_components"), "balances.total_components", source
        ),
        mutable_components=_components(
            balances_raw.get("mutable_components"), "balances.mutable_components", source
        ),
    )

    withdrawals_raw = _section(data, "withdrawals", source)
    priority = _components(withdrawals_raw.get("priority"), "withdrawals.priority", source)
    try:
        refund = BalanceComponent.parse(withdrawals_raw.get("refund_component", "deposit"))
    except UnknownComponentError as exc:
        raise ConfigurationError(source, f"'withdrawals.refund_component': {exc.message}") from None
    withdrawals = WithdrawalSettings(priority=priority, refund_component=refund)

    for component in priority + (refund,):
        if component not in balances.total_components:
            raise ConfigurationError(
                source, f"withdrawal component {component.value!r} does not feed total"
            )
        if component not in balances.mutable_components:
            raise ConfigurationError(
                source, f"withdrawal component {component.value!r} is not adjustable"
            )
    if BalanceComponent.DEPOSIT not in balances.mutable_components:
        raise ConfigurationError(source, "'deposit' must be in balances.mutable_components")

    referrals_raw = _section(data, "referrals", source)
    logging_raw = _section(data, "logging", source)
    level = str(logging_raw.get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(source, f"'logging.level' is not a log level: {level!r}")

    return LedgerSettings(
        database=_parse_database(_section(data, "database", source), source),
        distribution=_parse_distribution(_section(data, "distribution", source), source),
        balances=balances,
        withdrawals=withdrawals,
        referrals=ReferralSettings(
            commission_rate=_parse_commission_rate(
                referrals_raw.get("commission_rate", "0"), source
            )
        ),
        logging=LoggingSettings(level=level),
        source=source,
        checksum=compute_checksum(data),
    )
