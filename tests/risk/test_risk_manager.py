# tests/risk/test_risk_manager.py
"""Tests for RiskManager."""
import pytest

from copytrade.exceptions import InvalidInputError
from copytrade.models.positions import Side
from copytrade.risk.models import TradingPlan
from copytrade.risk.risk_manager import RiskManager


def make_plan(leverage: int = 10, side: Side = Side.BUY) -> TradingPlan:
    """Create a test TradingPlan with sensible defaults."""
    return TradingPlan(
        symbol="BTCUSDT",
        side=side,
        quantity=0.001,
        leverage=leverage,
        plan_id="test-plan-1",
    )


@pytest.fixture
def risk_manager():
    return RiskManager()


class TestAssessRisk:
    """Tests for leverage-based risk scoring."""

    def test_plan_within_limits(self, risk_manager):
        assessment = risk_manager.assess_risk(make_plan())

        assert assessment.is_valid is True
        assert assessment.risk_score == 100
        assert assessment.price_tolerance is None

    def test_score_scales_with_leverage(self, risk_manager):
        assert risk_manager.assess_risk(make_plan(leverage=3)).risk_score == 50

    def test_high_leverage_warnings(self, risk_manager):
        assessment = risk_manager.assess_risk(make_plan(leverage=25))

        assert assessment.is_valid is True
        assert "High leverage detected" in assessment.warnings
        assert "High risk score" in assessment.warnings

    def test_low_leverage_has_no_warnings(self, risk_manager):
        assert risk_manager.assess_risk(make_plan(leverage=5)).warnings == []


class TestPriceDifference:
    def test_absolute_difference(self, risk_manager):
        assert risk_manager.calculate_price_difference(100, 101) == pytest.approx(1.0, abs=0.01)
        assert risk_manager.calculate_price_difference(100, 99) == pytest.approx(1.0, abs=0.01)
        assert risk_manager.calculate_price_difference(100, 100) == 0

    def test_directional_difference(self, risk_manager):
        assert risk_manager.calculate_directional_price_difference(100, 101) == pytest.approx(1.0, abs=0.01)
        assert risk_manager.calculate_directional_price_difference(100, 99) == pytest.approx(-1.0, abs=0.01)
        assert risk_manager.calculate_directional_price_difference(100, 100) == 0

    @pytest.mark.parametrize("entry_price", [0, -100])
    def test_invalid_entry_price(self, risk_manager, entry_price):
        with pytest.raises(InvalidInputError, match="Entry price must be greater than 0"):
            risk_manager.calculate_directional_price_difference(entry_price, 100)


class TestPriceTolerance:
    """Tests for check_price_tolerance."""

    @pytest.mark.parametrize("current", [100.3, 100.5])
    def test_within_tolerance(self, risk_manager, current):
        result = risk_manager.check_price_tolerance(100, current, tolerance=0.5)

        assert result.within_tolerance is True
        assert result.should_execute is True

    @pytest.mark.parametrize("current", [101, 99.2])
    def test_outside_tolerance_without_side(self, risk_manager, current):
        result = risk_manager.check_price_tolerance(100, current, tolerance=0.5)

        assert result.within_tolerance is False
        assert result.should_execute is False

    def test_buy_favorable_when_price_drops(self, risk_manager):
        result = risk_manager.check_price_tolerance(100, 99, Side.BUY, tolerance=0.5)

        assert result.within_tolerance is False
        assert result.favorable_for_execution is True
        assert result.should_execute is True
        assert result.directional_price_difference == pytest.approx(-1.0, abs=0.01)
        assert "moved down" in result.reason
        assert "favorable for BUY position" in result.reason

    def test_sell_favorable_when_price_rises(self, risk_manager):
        result = risk_manager.check_price_tolerance(100, 101, Side.SELL, tolerance=0.5)

        assert result.favorable_for_execution is True
        assert result.should_execute is True
        assert "moved up" in result.reason
        assert "favorable for SELL position" in result.reason

    def test_buy_blocked_when_price_rises(self, risk_manager):
        result = risk_manager.check_price_tolerance(100, 101, Side.BUY, tolerance=0.5)

        assert result.favorable_for_execution is False
        assert result.should_execute is False
        assert "unfavorable for BUY position" in result.reason

    def test_sell_blocked_when_price_drops(self, risk_manager):
        result = risk_manager.check_price_tolerance(100, 99, Side.SELL, tolerance=0.5)

        assert result.should_execute is False
        assert result.directional_price_difference == pytest.approx(-1.0, abs=0.01)
        assert "unfavorable for SELL position" in result.reason

    def test_within_tolerance_reason(self, risk_manager):
        buy = risk_manager.check_price_tolerance(100, 100.3, Side.BUY, tolerance=0.5)
        sell = risk_manager.check_price_tolerance(100, 99.7, Side.SELL, tolerance=0.5)

        assert "within tolerance" in buy.reason
        assert "within tolerance" in sell.reason

    def test_unchanged_price_executes(self, risk_manager):
        for side in (Side.BUY, Side.SELL):
            result = risk_manager.check_price_tolerance(100, 100, side, tolerance=0.5)
            assert result.directional_price_difference == 0
            assert result.should_execute is True

    def test_symbol_tolerance_overrides_default(self):
        manager = RiskManager(default_tolerance_pct=0.5, symbol_tolerances={"DOGE": 3.0})

        assert manager.get_price_tolerance("DOGE") == 3.0
        assert manager.get_price_tolerance("BTC") == 0.5
        assert manager.check_price_tolerance(100, 102, Side.BUY, symbol="DOGE").should_execute is True


class TestAssessWithTolerance:
    """Tests for combined risk assessments."""

    def test_legacy_tolerance_in_assessment(self, risk_manager):
        assessment = risk_manager.assess_risk_with_price_tolerance(
            make_plan(), 100, 101, "BTCUSDT", 0.5
        )

        assert assessment.price_tolerance is not None
        assert assessment.price_tolerance.within_tolerance is False
        assert assessment.price_tolerance.should_execute is False
        assert assessment.price_tolerance.price_difference == pytest.approx(1.0, abs=0.01)
        assert assessment.is_valid is False

    def test_directional_favorable_is_valid(self, risk_manager):
        assessment = risk_manager.assess_risk_with_directional_price_tolerance(
            make_plan(), 100, 99, Side.BUY, "BTCUSDT", 0.5
        )

        assert assessment.price_tolerance.within_tolerance is False
        assert assessment.price_tolerance.should_execute is True
        assert assessment.price_tolerance.favorable_for_execution is True
        assert assessment.is_valid is True

    def test_directional_unfavorable_is_invalid(self, risk_manager):
        assessment = risk_manager.assess_risk_with_directional_price_tolerance(
            make_plan(), 100, 101, Side.BUY, "BTCUSDT", 0.5
        )

        assert assessment.price_tolerance.should_execute is False
        assert assessment.is_valid is False
        assert any("Price tolerance check failed" in w for w in assessment.warnings)

    def test_side_defaults_to_plan_side(self, risk_manager):
        assessment = risk_manager.assess_risk_with_directional_price_tolerance(
            make_plan(side=Side.SELL), 100, 101, tolerance=0.5
        )

        assert assessment.price_tolerance.side == Side.SELL
        assert assessment.is_valid is True
