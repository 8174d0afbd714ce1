"""Unit tests for session pricing and the platform/expert split."""

from decimal import Decimal

import pytest

from app.services import commission


@pytest.mark.unit
class TestSessionPrice:
    def test_half_hour_at_hundred_an_hour(self):
        assert commission.session_price(Decimal("100"), 30) == Decimal("50.00")

    def test_prorates_odd_rates_to_cents(self):
        assert commission.session_price(Decimal("75.50"), 90) == Decimal("113.25")
        assert commission.session_price("33.33", 30) == Decimal("16.67")


@pytest.mark.unit
class TestSplit:
    def test_default_split(self):
        result = commission.split(Decimal("50.00"), Decimal("0.20"))

        assert result.price == Decimal("50.00")
        assert result.platform_share == Decimal("10.00")
        assert result.expert_share == Decimal("40.00")

    def test_shares_always_sum_to_price(self):
        for price in ("0.01", "0.05", "19.99", "33.33", "101.57"):
            result = commission.split(Decimal(price), Decimal("0.175"))
            assert result.platform_share + result.expert_share == Decimal(price)

    def test_platform_share_rounds_half_up(self):
        result = commission.split(Decimal("0.05"), Decimal("0.5"))

        assert result.platform_share == Decimal("0.03")
        assert result.expert_share == Decimal("0.02")

    def test_uses_configured_rate_when_not_given(self, monkeypatch):
        monkeypatch.setattr(commission.settings, "platform_commission_rate", Decimal("0.30"))

        result = commission.split(Decimal("100.00"))

        assert result.rate == Decimal("0.30")
        assert result.platform_share == Decimal("30.00")

    def test_zero_rate_gives_everything_to_expert(self):
        result = commission.split(Decimal("80.00"), 0)

        assert result.platform_share == Decimal("0.00")
        assert result.expert_share == Decimal("80.00")

    @pytest.mark.parametrize("rate", ["-0.1", "1.5"])
    def test_rejects_rates_outside_unit_interval(self, rate):
        with pytest.raises(ValueError):
            commission.split(Decimal("10.00"), Decimal(rate))

    def test_rejects_negative_price(self):
        with pytest.raises(ValueError):
            commission.split(Decimal("-1.00"), Decimal("0.2"))
