"""
Unit Tests for spins and daily rewards

Spin outcomes are scripted: the first random() decides loss vs win against
the house edge, the second picks the small, medium or big win.
"""

import pytest
from decimal import Decimal

from ledger.config import AppConfigSource
from ledger.errors import (
    ConfigurationError,
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
)
from ledger.models import EntryType, RewardConfig, RewardType, Segment
from ledger.service import LedgerService
from ledger.store import InMemoryStore

from conftest import ScriptedRandom, make_settings, set_fields

LOSS = [0.1]
SMALL_WIN = [0.9, 0.1]
MEDIUM_WIN = [0.9, 0.8]
BIG_WIN = [0.9, 0.95]


def make_service(clock, rolls, settings=None):
    return LedgerService(
        store=InMemoryStore(clock=clock),
        config=AppConfigSource(settings=settings or make_settings()),
        rng=ScriptedRandom(rolls),
        timezone_name="Asia/Kolkata",
    )


@pytest.fixture
def funded(clock):
    """Returns a factory for a service with a funded player and scripted rolls."""
    def factory(rolls, little="100", big="0", spins=0, settings=None):
        service = make_service(clock, rolls, settings)
        service.create_account("player-1", email="player@example.com")
        set_fields(service, "player-1", {
            "balances.little": Decimal(little),
            "balances.big": Decimal(big),
            "spins_available": spins,
        })
        return service
    return factory


class TestSpinCharging:
    """Tests for free spins and paid spin pricing."""

    def test_free_spin_uses_bundle(self, funded):
        service = funded(BIG_WIN, little="0", spins=3)

        response = service.spin("player-1", "little")

        assert response.free_spin is True
        assert response.bet_amount == Decimal("0")
        assert response.settlement.win_amount == Decimal("0")
        assert response.spins_available == 2
        assert response.balance_after == Decimal("0")

        account = service.get_account("player-1")
        assert account.spins_available == 2
        assert account.total_spins_played == 1
        assert account.total_wins == 0
        assert account.daily_paid_spins_used == 0

    def test_bundle_only_applies_to_free_spin_tier(self, funded):
        service = funded(LOSS, little="0", big="10", spins=3)

        response = service.spin("player-1", "big")

        assert response.free_spin is False
        assert response.bet_amount == Decimal("10")
        assert service.get_account("player-1").spins_available == 3

    def test_tiered_cost_steps(self, funded):
        """Costs step from 2 to 3 to 5 as the day's paid spins pile up."""
        service = funded(LOSS * 5)

        bets = [service.spin("player-1", "little").bet_amount for _ in range(5)]

        assert bets == [Decimal("2"), Decimal("2"), Decimal("3"), Decimal("3"), Decimal("5")]
        account = service.get_account("player-1")
        assert account.balance("little") == Decimal("85")
        assert account.daily_paid_spins_used == 5
        assert "Tier 3" in service.get_ledger_history("player-1").entries[0].description

    def test_counter_resets_on_new_local_day(self, funded, clock):
        service = funded(LOSS * 2)
        set_fields(service, "player-1", {"daily_paid_spins_used": 4})

        assert service.spin("player-1", "little").bet_amount == Decimal("5")

        # 19:00 UTC is already the next day in Asia/Kolkata
        clock.advance(hours=13)
        assert service.spin("player-1", "little").bet_amount == Decimal("2")

        account = service.get_account("player-1")
        assert account.daily_paid_spins_used == 1
        assert account.last_paid_spin_date == service.today()

    def test_flat_pricing_leaves_counter(self, funded):
        service = funded(LOSS * 2, big="50")

        service.spin("player-1", "big")
        service.spin("player-1", "big")

        account = service.get_account("player-1")
        assert account.balance("big") == Decimal("30")
        assert account.daily_paid_spins_used == 0

    def test_insufficient_balance(self, funded):
        service = funded(LOSS, little="1")

        with pytest.raises(InsufficientFundsError):
            service.spin("player-1", "little")

        account = service.get_account("player-1")
        assert account.balance("little") == Decimal("1")
        assert account.total_spins_played == 0
        assert service.get_ledger_history("player-1").total_count == 0

    def test_blocked_account(self, funded):
        service = funded(LOSS)
        service.set_account_blocked("player-1", True, "admin-1")

        with pytest.raises(InvalidStateError):
            service.spin("player-1", "little")

    def test_unknown_tier(self, funded):
        service = funded(LOSS)

        with pytest.raises(NotFoundError):
            service.spin("player-1", "platinum")


class TestSpinSettlement:
    """Tests for payouts and their log entries."""

    def test_loss_writes_debit(self, funded):
        service = funded(LOSS, big="10")

        response = service.spin("player-1", "big")

        assert response.settlement.multiplier == Decimal("0")
        assert response.settlement.segment_id == "b0"
        assert response.balance_after == Decimal("0")
        entry = response.ledger_entry
        assert entry.type == EntryType.DEBIT
        assert entry.amount == Decimal("10")
        assert entry.balance_before == Decimal("10")
        assert entry.balance_after == Decimal("0")

    def test_win_writes_net_credit(self, funded):
        service = funded([0.9, 0.5], big="10")

        response = service.spin("player-1", "big")

        assert response.settlement.win_amount == Decimal("20")
        assert response.balance_after == Decimal("20")
        assert response.ledger_entry.type == EntryType.CREDIT
        assert response.ledger_entry.amount == Decimal("10")

        account = service.get_account("player-1")
        assert account.total_wins == 1
        assert account.total_winnings == Decimal("20")

    def test_break_even_is_zero_credit(self, funded):
        service = funded(SMALL_WIN)

        response = service.spin("player-1", "little")

        assert response.settlement.multiplier == Decimal("1")
        assert response.ledger_entry.type == EntryType.CREDIT
        assert response.ledger_entry.amount == Decimal("0")
        assert response.balance_after == Decimal("100")

    @pytest.mark.parametrize("rolls, multiplier, segment_id", [
        (SMALL_WIN, Decimal("1"), "s1"),
        (MEDIUM_WIN, Decimal("5"), "s5"),
        (BIG_WIN, Decimal("20"), "s20"),
    ])
    def test_win_split_picks_multiplier(self, clock, rolls, multiplier, segment_id):
        service = make_service(clock, rolls)
        segments = make_settings().wheel_configs["little"].segments

        settlement = service.settle_spin(Decimal("2"), segments)

        assert settlement.multiplier == multiplier
        assert settlement.segment_id == segment_id
        assert settlement.win_amount == Decimal("2") * multiplier

    def test_loss_without_zero_segment_settles_to_zero(self, clock):
        service = make_service(clock, LOSS * 3)
        segments = [
            Segment(id="x1", text="1x", multiplier=Decimal("1"), probability=0.7),
            Segment(id="x5", text="5x", multiplier=Decimal("5"), probability=0.2),
            Segment(id="x20", text="20x", multiplier=Decimal("20"), probability=0.1),
        ]

        for _ in range(3):
            settlement = service.settle_spin(Decimal("10"), segments)
            assert settlement.win_amount == Decimal("0")
            assert settlement.multiplier == Decimal("0")
            assert settlement.segment_id == segments[settlement.segment_index].id

    def test_paid_loss_without_zero_segment(self, funded):
        """A user spinning a wheel with no 0x segment loses the bet on a house-edge loss."""
        wheel = make_settings().wheel_configs["big"].model_copy(update={
            "segments": [Segment(id="b2", text="2x", multiplier=Decimal("2"), probability=1.0)],
        })
        settings = make_settings(wheel_configs={**make_settings().wheel_configs, "big": wheel})
        service = funded(LOSS, big="10", settings=settings)

        response = service.spin("player-1", "big")

        assert response.settlement.win_amount == Decimal("0")
        assert response.balance_after == Decimal("0")
        assert response.ledger_entry.type == EntryType.DEBIT

    def test_negative_bet_rejected(self, clock):
        service = make_service(clock, LOSS)
        segments = make_settings().wheel_configs["big"].segments

        with pytest.raises(InvalidStateError):
            service.settle_spin(Decimal("-1"), segments)


class TestDailyReward:
    """Tests for daily login rewards and streaks."""

    def test_streak_progression(self, clock):
        service = make_service(clock, [])
        service.create_account("player-1")

        first = service.claim_daily_reward("player-1")
        assert first.reward_type == RewardType.CREDIT
        assert first.streak == 1
        assert first.entries[0].description == "Daily Reward (Day 1)"

        clock.advance(days=1)
        second = service.claim_daily_reward("player-1")
        assert second.reward_type == RewardType.SPIN
        assert second.entries == []

        clock.advance(days=1)
        third = service.claim_daily_reward("player-1")
        assert third.value == Decimal("10")
        assert third.entries[0].description == "Streak Bonus (Day 3)"

        account = service.get_account("player-1")
        assert account.balance("little") == Decimal("11")
        assert account.spins_available == 2

        rewards = service.repo.get_user_rewards("player-1")
        assert rewards.current_streak == 3
        assert rewards.total_claims == 3
        assert len(rewards.history) == 3

    def test_second_claim_same_day(self, clock):
        service = make_service(clock, [])
        service.create_account("player-1")
        service.claim_daily_reward("player-1")

        clock.advance(hours=1)
        with pytest.raises(InvalidStateError):
            service.claim_daily_reward("player-1")

        assert service.get_account("player-1").balance("little") == Decimal("1")

    def test_missed_day_resets_streak(self, clock):
        service = make_service(clock, [])
        service.create_account("player-1")
        service.claim_daily_reward("player-1")

        clock.advance(days=2)
        response = service.claim_daily_reward("player-1")

        assert response.streak == 1

    def test_no_rewards_configured(self, clock):
        service = make_service(clock, [], settings=make_settings(reward_config=RewardConfig()))
        service.create_account("player-1")

        with pytest.raises(ConfigurationError):
            service.claim_daily_reward("player-1")
