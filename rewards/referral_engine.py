from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional, Sequence


@dataclass
class ReferralBonus:
    total_cash_bonus: Decimal = Decimal("0")
    total_spin_bonus: int = 0
    new_milestone_badge: Optional[str] = None
    new_referral_count: int = 0
    descriptions: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.total_cash_bonus == 0 and self.total_spin_bonus == 0 and self.new_milestone_badge is None

    def describe(self) -> str:
        return ", ".join(self.descriptions)

    def to_dict(self) -> dict:
        return {
            "total_cash_bonus": str(self.total_cash_bonus),
            "total_spin_bonus": self.total_spin_bonus,
            "new_milestone_badge": self.new_milestone_badge,
            "new_referral_count": self.new_referral_count,
            "descriptions": list(self.descriptions),
        }


def compute_referral_bonus(
    current_referral_count: int,
    current_milestones: Iterable[str],
    standard_bonus: Decimal,
    tiered_bonuses: Sequence,
    milestones: Sequence,
) -> ReferralBonus:
    """Combine every bonus a referrer earns for one newly converted referral.

    ``tiered_bonuses`` items expose ``count``, ``reward_cash`` and
    ``reward_spins``; ``milestones`` items expose ``count``, ``reward_spins``
    and ``badge``. Both are matched against the referral count *after* the
    new referral is added.
    """
    new_count = current_referral_count + 1
    bonus = ReferralBonus(new_referral_count=new_count)

    if standard_bonus and standard_bonus > 0:
        bonus.total_cash_bonus += Decimal(standard_bonus)
        bonus.descriptions.append(f"Std Bonus: ₹{standard_bonus}")

    tier = next((t for t in tiered_bonuses if t.count == new_count), None)
    if tier is not None:
        bonus.total_cash_bonus += Decimal(tier.reward_cash)
        bonus.total_spin_bonus += tier.reward_spins
        bonus.descriptions.append(f"Tier Bonus: ₹{tier.reward_cash} + {tier.reward_spins} spins")

    held = set(current_milestones)
    milestone = next((m for m in milestones if m.count == new_count), None)
    if milestone is not None and milestone.badge not in held:
        bonus.total_spin_bonus += milestone.reward_spins
        bonus.new_milestone_badge = milestone.badge
        bonus.descriptions.append(f"Milestone: {milestone.badge} ({milestone.reward_spins} spins)")

    return bonus
