from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional


class AlreadyClaimedError(ValueError):
    pass


class NoRewardConfiguredError(ValueError):
    pass


@dataclass(frozen=True)
class DailyClaim:
    streak: int
    reward_type: str
    value: Decimal
    is_streak_bonus: bool

    def describe(self) -> str:
        if self.is_streak_bonus:
            return f"Streak Bonus (Day {self.streak})"
        return f"Daily Reward (Day {self.streak})"


def next_streak(last_claim_date: Optional[date], current_streak: int, today: date, reset_if_missed: bool = True) -> int:
    if last_claim_date == today:
        raise AlreadyClaimedError("Reward already claimed today")
    if last_claim_date == today - timedelta(days=1):
        return current_streak + 1
    if not reset_if_missed and last_claim_date is not None:
        return current_streak + 1
    return 1


def resolve_daily_claim(last_claim_date: Optional[date], current_streak: int, today: date, reward_config) -> DailyClaim:
    """Work out today's reward for a claim.

    A streak bonus configured for exactly the new streak day wins over the
    rotating daily reward list.
    """
    streak = next_streak(last_claim_date, current_streak, today, reward_config.reset_if_missed)

    bonus = next((b for b in reward_config.streak_bonuses if b.after_days == streak), None)
    if bonus is not None:
        return DailyClaim(streak=streak, reward_type=_type_value(bonus.type), value=Decimal(bonus.value), is_streak_bonus=True)

    if not reward_config.daily_rewards:
        raise NoRewardConfiguredError("No reward configured for the current day or streak")
    reward = reward_config.daily_rewards[(streak - 1) % len(reward_config.daily_rewards)]
    return DailyClaim(streak=streak, reward_type=_type_value(reward.type), value=Decimal(reward.value), is_streak_bonus=False)


def _type_value(reward_type) -> str:
    return getattr(reward_type, "value", reward_type)
