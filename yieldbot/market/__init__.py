"""Market condition assessment."""

from yieldbot.market.models import MarketSample, MarketSnapshot, VenueClass, VenueMetrics
from yieldbot.market.monitor import (
    MarketConditionMonitor,
    composite_risk_score,
    compute_trend_bps,
    compute_volatility_bps,
)

__all__ = [
    "MarketConditionMonitor",
    "MarketSample",
    "MarketSnapshot",
    "VenueClass",
    "VenueMetrics",
    "composite_risk_score",
    "compute_trend_bps",
    "compute_volatility_bps",
]
