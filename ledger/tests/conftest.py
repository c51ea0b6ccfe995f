from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from ledger.config import AppConfigSource
from ledger.models import (
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
from ledger.repository import account_path
from ledger.service import LedgerService
from ledger.store import InMemoryStore


# 06:00 UTC is 11:30 in Asia/Kolkata, so both sit on 2026-03-10.
START = datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class ScriptedRandom:
    """Stands in for random.Random with predetermined draws."""

    def __init__(self, values, pick: int = 0):
        self.values = list(values)
        self.pick = pick

    def random(self) -> float:
        return self.values.pop(0)

    def choice(self, seq):
        return seq[min(self.pick, len(seq) - 1)]


def make_settings(**overrides) -> AppSettings:
    base = dict(
        referral_bonus_for_referrer=Decimal("10"),
        referral_bonus_for_new_user=Decimal("0"),
        tiered_bonuses=[TieredBonus(count=1, reward_cash=Decimal("20"), reward_spins=2)],
        referral_milestones=[ReferralMilestone(count=2, reward_spins=5, badge="Bronze")],
        wheel_configs={
            "little": WheelTierConfig(
                id="little",
                name="Little Lux",
                cost_settings=CostSettings(
                    type=CostType.TIERED,
                    base_cost=Decimal("2"),
                    tier1_limit=2,
                    tier1_cost=Decimal("2"),
                    tier2_limit=4,
                    tier2_cost=Decimal("3"),
                    tier3_cost=Decimal("5"),
                ),
                segments=[
                    Segment(id="s0", text="Try Again", multiplier=Decimal("0"), probability=0.2),
                    Segment(id="s1", text="1x", multiplier=Decimal("1"), probability=0.3),
                    Segment(id="s5", text="5x", multiplier=Decimal("5"), probability=0.2),
                    Segment(id="s20", text="20x", multiplier=Decimal("20"), probability=0.1),
                    Segment(id="s1b", text="1x", multiplier=Decimal("1"), probability=0.2),
                ],
            ),
            "big": WheelTierConfig(
                id="big",
                name="Big Bonanza",
                cost_settings=CostSettings(type=CostType.FLAT, base_cost=Decimal("10")),
                segments=[
                    Segment(id="b0", text="Lose", multiplier=Decimal("0"), probability=0.5),
                    Segment(id="b2", text="2x", multiplier=Decimal("2"), probability=0.5),
                ],
            ),
        },
        initial_balance_for_new_users=Decimal("0"),
        max_spins_in_bundle=0,
        min_withdrawal_amount=Decimal("100"),
        min_add_balance_amount=Decimal("50"),
        reward_config=RewardConfig(
            daily_rewards=[
                DailyReward(type=RewardType.CREDIT, value=Decimal("1")),
                DailyReward(type=RewardType.SPIN, value=Decimal("2")),
            ],
            streak_bonuses=[StreakBonus(type=RewardType.CREDIT, value=Decimal("10"), after_days=3)],
        ),
    )
    base.update(overrides)
    return AppSettings(**base)


def set_fields(service: LedgerService, user_id: str, fields: dict) -> None:
    service.store.run_transaction(lambda tx: tx.update(account_path(user_id), fields))


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def service(clock, settings):
    return LedgerService(
        store=InMemoryStore(clock=clock),
        config=AppConfigSource(settings=settings),
        timezone_name="Asia/Kolkata",
    )


@pytest.fixture
def player(service):
    return service.create_account("player-1", email="player@example.com", display_name="Player One")
