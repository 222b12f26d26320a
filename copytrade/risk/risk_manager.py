"""Risk and price-tolerance evaluation for copied orders."""

from dataclasses import replace

from copytrade.exceptions import InvalidInputError
from copytrade.models.positions import Side
from copytrade.risk.models import PriceToleranceResult, RiskAssessment, TradingPlan

MAX_RISK_SCORE = 100
HIGH_LEVERAGE = 20
HIGH_RISK_SCORE = 80


class RiskManager:
    """Decides whether a signal is still safe to act on.

    Combines a leverage-based risk score with a price tolerance check. A
    price that drifted beyond tolerance is still executed when it moved in
    the trader's favour (lower for a BUY, higher for a SELL); it is blocked
    only when it exceeds tolerance and moved against the position.

    Attributes:
        default_tolerance_pct: Tolerance used when neither a custom value nor
            a per-symbol override applies.
        symbol_tolerances: Per-symbol tolerance overrides in percent.
    """

    def __init__(
        self,
        default_tolerance_pct: float = 1.0,
        symbol_tolerances: dict[str, float] | None = None,
    ):
        """Initialize RiskManager.

        Args:
            default_tolerance_pct: Default price tolerance in percent.
            symbol_tolerances: Optional per-symbol overrides.
        """
        self.default_tolerance_pct = default_tolerance_pct
        self.symbol_tolerances = dict(symbol_tolerances or {})

    def get_price_tolerance(self, symbol: str | None = None) -> float:
        """Return the tolerance for a symbol, falling back to the default."""
        if symbol is not None and symbol in self.symbol_tolerances:
            return self.symbol_tolerances[symbol]
        return self.default_tolerance_pct

    def assess_risk(self, plan: TradingPlan) -> RiskAssessment:
        """Score a plan by leverage.

        Args:
            plan: The order to assess.

        Returns:
            RiskAssessment without a price tolerance check.
        """
        risk_score = self._calculate_risk_score(plan)
        return RiskAssessment(
            is_valid=risk_score <= MAX_RISK_SCORE,
            risk_score=risk_score,
            warnings=self._generate_warnings(plan, risk_score),
            max_loss=plan.quantity * 1000,
            suggested_position_size=plan.quantity,
        )

    def calculate_directional_price_difference(
        self, entry_price: float, current_price: float
    ) -> float:
        """Signed percentage move from entry to current (positive: price up).

        Raises:
            InvalidInputError: If entry_price is not positive.
        """
        if entry_price <= 0:
            raise InvalidInputError("Entry price must be greater than 0")
        return (current_price - entry_price) / entry_price * 100

    def calculate_price_difference(self, entry_price: float, current_price: float) -> float:
        """Absolute percentage move from entry to current."""
        return abs(self.calculate_directional_price_difference(entry_price, current_price))

    def check_price_tolerance(
        self,
        entry_price: float,
        current_price: float,
        side: Side | None = None,
        symbol: str | None = None,
        tolerance: float | None = None,
    ) -> PriceToleranceResult:
        """Check price drift with the directional override.

        Args:
            entry_price: Price at which the agent entered.
            current_price: Market price now.
            side: Side of the order; without it no move counts as favorable.
            symbol: Symbol for per-symbol tolerance lookup.
            tolerance: Explicit tolerance in percent, overriding configuration.

        Returns:
            PriceToleranceResult with the execution decision and reason.

        Raises:
            InvalidInputError: If entry_price is not positive.
        """
        tolerance = tolerance if tolerance is not None else self.get_price_tolerance(symbol)
        directional = self.calculate_directional_price_difference(entry_price, current_price)
        difference = abs(directional)
        within_tolerance = difference <= tolerance

        favorable = False
        if side == Side.BUY:
            favorable = directional <= 0
        elif side == Side.SELL:
            favorable = directional >= 0

        should_execute = within_tolerance or favorable

        side_label = side.value if side else "unknown"
        if within_tolerance:
            reason = f"Price difference {difference:.2f}% is within tolerance {tolerance}%"
        elif favorable:
            direction = "down" if side == Side.BUY else "up"
            reason = (
                f"Price moved {direction} by {difference:.2f}% which is favorable for "
                f"{side_label} position (exceeds tolerance {tolerance}%)"
            )
        else:
            reason = (
                f"Price difference {difference:.2f}% exceeds tolerance {tolerance}% and price "
                f"movement is unfavorable for {side_label} position"
            )

        return PriceToleranceResult(
            entry_price=entry_price,
            current_price=current_price,
            price_difference=difference,
            directional_price_difference=directional,
            tolerance=tolerance,
            within_tolerance=within_tolerance,
            favorable_for_execution=favorable,
            should_execute=should_execute,
            reason=reason,
            side=side,
        )

    def check_price_tolerance_legacy(
        self,
        entry_price: float,
        current_price: float,
        symbol: str | None = None,
        tolerance: float | None = None,
    ) -> PriceToleranceResult:
        """Check price drift without the directional override."""
        result = self.check_price_tolerance(entry_price, current_price, None, symbol, tolerance)
        if not result.within_tolerance:
            result = replace(
                result,
                reason=(
                    f"Price difference {result.price_difference:.2f}% exceeds "
                    f"tolerance {result.tolerance}%"
                ),
            )
        return result

    def assess_risk_with_price_tolerance(
        self,
        plan: TradingPlan,
        entry_price: float,
        current_price: float,
        symbol: str | None = None,
        tolerance: float | None = None,
    ) -> RiskAssessment:
        """Risk assessment gated by the non-directional tolerance check."""
        assessment = self.assess_risk(plan)
        check = self.check_price_tolerance_legacy(entry_price, current_price, symbol, tolerance)
        return self._combine(assessment, check)

    def assess_risk_with_directional_price_tolerance(
        self,
        plan: TradingPlan,
        entry_price: float,
        current_price: float,
        side: Side | None = None,
        symbol: str | None = None,
        tolerance: float | None = None,
    ) -> RiskAssessment:
        """Risk assessment gated by the directional tolerance check.

        Args:
            plan: The order to assess.
            entry_price: Agent entry price.
            current_price: Market price now.
            side: Order side; defaults to the plan's side.
            symbol: Symbol for tolerance lookup; defaults to the plan's symbol.
            tolerance: Explicit tolerance in percent.

        Returns:
            RiskAssessment whose is_valid gates execution.
        """
        assessment = self.assess_risk(plan)
        check = self.check_price_tolerance(
            entry_price,
            current_price,
            side or plan.side,
            symbol or plan.symbol,
            tolerance,
        )
        return self._combine(assessment, check)

    def _combine(
        self, assessment: RiskAssessment, check: PriceToleranceResult
    ) -> RiskAssessment:
        warnings = list(assessment.warnings)
        if not check.should_execute:
            warnings.append(f"Price tolerance check failed: {check.reason}")

        return replace(
            assessment,
            warnings=warnings,
            price_tolerance=check,
            is_valid=assessment.is_valid and check.should_execute,
        )

    def _calculate_risk_score(self, plan: TradingPlan) -> float:
        return min(20 + plan.leverage * 10, MAX_RISK_SCORE)

    def _generate_warnings(self, plan: TradingPlan, risk_score: float) -> list[str]:
        warnings = []
        if plan.leverage > HIGH_LEVERAGE:
            warnings.append("High leverage detected")
        if risk_score > HIGH_RISK_SCORE:
            warnings.append("High risk score")
        return warnings
