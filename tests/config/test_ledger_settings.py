"""
Tests for settings loading.

Verifies:
- Bundled defaults parse into LedgerSettings
- Override files merge key by key over the defaults
- DATABASE_URL replaces database.url
- Invalid files raise ConfigurationError naming the problem
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from accrual_config import (
    _DEFAULT_SETTINGS_FILE,
    CONFIG_PATH_ENV,
    DATABASE_URL_ENV,
    get_settings,
)
from accrual_config.loader import deep_merge, load_yaml_file, parse_settings
from accrual_kernel.domain.values import BalanceComponent, ContractClass
from accrual_kernel.exceptions import ConfigurationError


def _write(tmp_path, text: str):
    path = tmp_path / "override.yaml"
    path.write_text(text)
    return path


class TestDefaults:
    def test_defaults_load(self, settings):
        assert settings.distribution.max_workers == 4
        assert settings.distribution.cooldown_for(ContractClass.INVESTMENT) == timedelta(hours=24)
        assert settings.distribution.cooldown_for(ContractClass.LIVE_TRADE) == timedelta(hours=1)
        assert settings.withdrawals.priority == (
            BalanceComponent.DEPOSIT,
            BalanceComponent.PROFIT,
            BalanceComponent.BONUS,
        )
        assert settings.withdrawals.refund_component is BalanceComponent.DEPOSIT
        assert settings.referrals.commission_rate == Decimal("0.05")
        assert settings.logging.level == "INFO"

    def test_balance_policy(self, settings):
        policy = settings.balance_policy
        assert policy.total_components == (
            BalanceComponent.DEPOSIT,
            BalanceComponent.PROFIT,
            BalanceComponent.BONUS,
        )
        assert policy.is_mutable(BalanceComponent.CARD)

    def test_checksum_is_stable(self):
        assert get_settings(environ={}).checksum == get_settings(environ={}).checksum


class TestOverrides:
    def test_override_file_from_argument(self, tmp_path):
        path = _write(tmp_path, "distribution:\n  max_workers: 1\n  cooldowns:\n    investment: 0\n")
        settings = get_settings(path, environ={})
        assert settings.distribution.max_workers == 1
        assert settings.distribution.cooldown_for(ContractClass.INVESTMENT) == timedelta(0)
        # untouched keys keep their defaults
        assert settings.distribution.cooldown_for(ContractClass.LIVE_TRADE) == timedelta(hours=1)
        assert settings.source == str(path)

    def test_override_file_from_environment(self, tmp_path):
        path = _write(tmp_path, "logging:\n  level: debug\n")
        settings = get_settings(environ={CONFIG_PATH_ENV: str(path)})
        assert settings.logging.level == "DEBUG"

    def test_database_url_environment(self):
        settings = get_settings(environ={DATABASE_URL_ENV: "sqlite://"})
        assert settings.database.url == "sqlite://"

    def test_float_commission_rate_is_exact(self, tmp_path):
        path = _write(tmp_path, "referrals:\n  commission_rate: 0.1\n")
        assert get_settings(path, environ={}).referrals.commission_rate == Decimal("0.1")

    def test_deep_merge_replaces_lists(self):
        merged = deep_merge({"a": {"b": [1, 2], "c": 1}}, {"a": {"b": [3]}})
        assert merged == {"a": {"b": [3], "c": 1}}


class TestInvalidSettings:
    def test_missing_override_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            get_settings(tmp_path / "absent.yaml", environ={})
        assert "not found" in exc_info.value.reason

    def test_malformed_yaml(self, tmp_path):
        path = _write(tmp_path, "distribution: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_yaml_file(path)

    def test_unknown_component(self, tmp_path):
        path = _write(tmp_path, "withdrawals:\n  priority: [deposit, savings]\n")
        with pytest.raises(ConfigurationError) as exc_info:
            get_settings(path, environ={})
        assert "withdrawals.priority" in exc_info.value.reason

    def test_priority_component_must_feed_total(self, tmp_path):
        path = _write(tmp_path, "withdrawals:\n  priority: [deposit, card]\n")
        with pytest.raises(ConfigurationError) as exc_info:
            get_settings(path, environ={})
        assert "does not feed total" in exc_info.value.reason

    def test_unknown_cooldown_class(self, tmp_path):
        path = _write(tmp_path, "distribution:\n  cooldowns:\n    savings: 3\n")
        with pytest.raises(ConfigurationError):
            get_settings(path, environ={})

    def test_bad_max_workers(self, tmp_path):
        path = _write(tmp_path, "distribution:\n  max_workers: 0\n")
        with pytest.raises(ConfigurationError):
            get_settings(path, environ={})

    def test_bad_log_level(self):
        data = load_yaml_file(_DEFAULT_SETTINGS_FILE)
        data["logging"] = {"level": "CHATTY"}
        with pytest.raises(ConfigurationError):
            parse_settings(data, "<test>")
