"""
Tests for the persisted per-class distribution cooldown.
"""

from datetime import timedelta

import pytest

from accrual_kernel.domain.values import ContractClass
from accrual_kernel.exceptions import OnCooldownError
from accrual_kernel.services.cooldown_service import CooldownService, format_remaining

DAY = timedelta(hours=24)


@pytest.fixture
def cooldowns(session, clock):
    return CooldownService(session, clock)


class TestCooldownService:
    def test_never_run_is_not_on_cooldown(self, cooldowns):
        status = cooldowns.status("investment", DAY)
        assert status.last_run_at is None
        assert not status.on_cooldown
        assert status.window_seconds == 86400

    def test_claim_starts_window(self, cooldowns, clock):
        claimed = cooldowns.claim(ContractClass.INVESTMENT, DAY)
        assert claimed.remaining_seconds == 86400
        assert claimed.last_run_at == clock.now()
        assert cooldowns.status("investment", DAY).on_cooldown

    def test_second_claim_inside_window_rejected(self, cooldowns, clock):
        cooldowns.claim("investment", DAY)
        clock.advance(hours=1)

        with pytest.raises(OnCooldownError) as exc_info:
            cooldowns.claim("investment", DAY)

        assert exc_info.value.remaining_seconds == 23 * 3600
        assert exc_info.value.contract_class == "investment"
        assert exc_info.value.next_allowed_at == (clock.now() + timedelta(hours=23)).isoformat()

    def test_claim_after_window(self, cooldowns, clock):
        cooldowns.claim("investment", DAY)
        clock.advance(hours=24)
        status = cooldowns.claim("investment", DAY)
        assert status.last_run_at == clock.now()

    def test_classes_are_independent(self, cooldowns):
        cooldowns.claim("investment", DAY)
        cooldowns.claim("live_trade", timedelta(hours=1))
        assert not cooldowns.status("live_trade", timedelta(0)).on_cooldown

    def test_rejection_is_logged(self, cooldowns, captured_logs):
        cooldowns.claim("investment", DAY)
        with pytest.raises(OnCooldownError):
            cooldowns.claim("investment", DAY)
        assert any(r["message"] == "distribution_on_cooldown" for r in captured_logs())


class TestFormatRemaining:
    @pytest.mark.parametrize(
        "seconds, expected",
        [(0, "0s"), (45, "45s"), (125, "2m 5s"), (86399, "23h 59m"), (-3, "0s")],
    )
    def test_format(self, seconds, expected):
        assert format_remaining(seconds) == expected
