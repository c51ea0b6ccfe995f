from decimal import Decimal

from .models import (
    AppSettings,
    CostSettings,
    CostType,
    DailyReward,
    ReferralMilestone,
    RewardConfig,
    RewardType,
    Segment,
    StreakBonus,
    TieredBonus,
    WheelTierConfig,
)


def _segments(rows: list[tuple]) -> list[Segment]:
    return [
        Segment(id=seg_id, text=text, emoji=emoji, multiplier=Decimal(mult), probability=prob)
        for seg_id, text, emoji, mult, prob in rows
    ]


DEFAULT_WHEEL_CONFIGS: dict[str, WheelTierConfig] = {
    "little": WheelTierConfig(
        id="little",
        name="Little Lux",
        description="Classic fun with frequent small wins! Starts from ₹2.",
        cost_settings=CostSettings(
            type=CostType.TIERED,
            base_cost=Decimal("2"),
            tier1_limit=30,
            tier1_cost=Decimal("2"),
            tier2_limit=60,
            tier2_cost=Decimal("3"),
            tier3_cost=Decimal("5"),
        ),
        segments=_segments([
            ("s100", "50x", "💎", "50", 0.005),
            ("s50", "25x", "💰", "25", 0.015),
            ("s20", "10x", "💸", "10", 0.08),
            ("s10", "5x", "💵", "5", 0.10),
            ("s5", "2.5x", "🎈", "2.5", 0.20),
            ("s2", "1x", "🤑", "1", 0.27),
            ("s1", "0.5x", "🪙", "0.5", 0.32),
            ("s0", "Try Again", "🔁", "0", 0.01),
        ]),
    ),
    "big": WheelTierConfig(
        id="big",
        name="Big Bonanza",
        description="Higher stakes, bigger prizes! Costs ₹10 per spin.",
        cost_settings=CostSettings(type=CostType.FLAT, base_cost=Decimal("10")),
        segments=_segments([
            ("b1000", "100x", "👑", "100", 0.005),
            ("b500", "50x", "🏆", "50", 0.015),
            ("b250", "25x", "🌟", "25", 0.05),
            ("b100", "10x", "💎", "10", 0.10),
            ("b50", "5x", "💰", "5", 0.20),
            ("b25", "2.5x", "💸", "2.5", 0.28),
            ("b10", "1x", "💵", "1", 0.34),
            ("b0", "Lose", "💀", "0", 0.01),
        ]),
    ),
    "more-big": WheelTierConfig(
        id="more-big",
        name="Mega Millions",
        description="The ultimate risk for the ultimate reward! Costs ₹20 per spin.",
        cost_settings=CostSettings(type=CostType.FLAT, base_cost=Decimal("20")),
        segments=_segments([
            ("m5000", "250x", "🚀", "250", 0.005),
            ("m2000", "100x", "🌌", "100", 0.015),
            ("m1000", "50x", "👑", "50", 0.05),
            ("m500", "25x", "🏆", "25", 0.10),
            ("m100", "5x", "💎", "5", 0.20),
            ("m50", "2.5x", "💰", "2.5", 0.28),
            ("m20", "1x", "💵", "1", 0.34),
            ("m0", "Lose", "💀", "0", 0.01),
        ]),
    ),
}


def default_app_settings() -> AppSettings:
    return AppSettings(
        referral_bonus_for_referrer=Decimal("10"),
        referral_bonus_for_new_user=Decimal("5"),
        tiered_bonuses=[
            TieredBonus(count=5, reward_cash=Decimal("50"), reward_spins=5),
            TieredBonus(count=10, reward_cash=Decimal("100"), reward_spins=10),
        ],
        referral_milestones=[
            ReferralMilestone(count=3, reward_spins=3, badge="Bronze"),
            ReferralMilestone(count=10, reward_spins=10, badge="Silver"),
            ReferralMilestone(count=25, reward_spins=25, badge="Gold"),
        ],
        wheel_configs=DEFAULT_WHEEL_CONFIGS,
        initial_balance_for_new_users=Decimal("50"),
        max_spins_in_bundle=10,
        min_withdrawal_amount=Decimal("500"),
        min_add_balance_amount=Decimal("100"),
        reward_config=RewardConfig(
            daily_rewards=[
                DailyReward(type=RewardType.CREDIT, value=Decimal("1")),
                DailyReward(type=RewardType.SPIN, value=Decimal("1")),
                DailyReward(type=RewardType.CREDIT, value=Decimal("2")),
                DailyReward(type=RewardType.SPIN, value=Decimal("2")),
                DailyReward(type=RewardType.CREDIT, value=Decimal("3")),
                DailyReward(type=RewardType.SPIN, value=Decimal("3")),
            ],
            streak_bonuses=[StreakBonus(type=RewardType.CREDIT, value=Decimal("10"), after_days=7)],
        ),
    )


def probability_report(settings: AppSettings, tolerance: float = 0.001) -> dict[str, dict]:
    """Per-tier probability totals, flagging tiers that drift from 1.0."""
    return {
        tier_id: {
            "total": round(config.probability_total(), 6),
            "balanced": config.probabilities_balanced(tolerance),
        }
        for tier_id, config in settings.wheel_configs.items()
    }
