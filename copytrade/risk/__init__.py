"""Risk management module for copied orders."""

from copytrade.risk.models import PriceToleranceResult, RiskAssessment, TradingPlan
from copytrade.risk.risk_manager import RiskManager
from copytrade.risk.settings import RiskSettings

__all__ = ["PriceToleranceResult", "RiskAssessment", "RiskManager", "RiskSettings", "TradingPlan"]
