"""
Reward Engines Package

Pure functions behind the ledger's reward flows:
- Referral bonus cascade (standard, tiered, milestone)
- Spin outcome draw and settlement
- Daily login reward streaks
"""

from .referral_engine import ReferralBonus, compute_referral_bonus
from .spin_engine import (
    HOUSE_EDGE,
    SegmentConfigurationError,
    SpinDraw,
    SpinResult,
    draw_outcome,
    payout,
    settle_spin,
    spin_cost,
)
from .daily_engine import DailyClaim, resolve_daily_claim

__all__ = [
    "ReferralBonus",
    "compute_referral_bonus",
    "HOUSE_EDGE",
    "SegmentConfigurationError",
    "SpinDraw",
    "SpinResult",
    "draw_outcome",
    "payout",
    "settle_spin",
    "spin_cost",
    "DailyClaim",
    "resolve_daily_claim",
]
