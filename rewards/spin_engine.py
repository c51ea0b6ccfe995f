import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

HOUSE_EDGE = 0.6

# Share of winning draws resolved to the smallest, middle and largest multiplier.
SMALL_WIN_SHARE = 0.7
MEDIUM_WIN_SHARE = 0.2
BIG_WIN_SHARE = 0.1


class SegmentConfigurationError(ValueError):
    pass


@dataclass(frozen=True)
class SpinDraw:
    multiplier: Decimal
    segment_index: int
    segment_id: str


@dataclass(frozen=True)
class SpinResult:
    win_amount: Decimal
    multiplier: Decimal
    segment_index: int
    segment_id: str

    @property
    def is_win(self) -> bool:
        return self.win_amount > 0

    def to_dict(self) -> dict:
        return {
            "win_amount": str(self.win_amount),
            "multiplier": str(self.multiplier),
            "segment_index": self.segment_index,
            "segment_id": self.segment_id,
        }


def distinct_multipliers(segments: Sequence) -> list[Decimal]:
    return sorted({Decimal(s.multiplier) for s in segments if Decimal(s.multiplier) > 0})


def choose_multiplier(segments: Sequence, rng=None, house_edge: float = HOUSE_EDGE) -> Decimal:
    rng = rng or random
    if rng.random() < house_edge:
        return Decimal("0")

    tiers = distinct_multipliers(segments)
    if not tiers:
        return Decimal("0")

    roll = rng.random()
    if roll < SMALL_WIN_SHARE:
        return tiers[0]
    if roll < SMALL_WIN_SHARE + MEDIUM_WIN_SHARE:
        return tiers[len(tiers) // 2] if len(tiers) >= 3 else tiers[0]
    return tiers[-1]


def draw_outcome(segments: Sequence, rng=None, house_edge: float = HOUSE_EDGE) -> SpinDraw:
    """Pick the payout multiplier, then the wheel segment that displays it.

    The multiplier distribution only depends on the distinct positive
    multipliers, never on how many segments carry each of them. A loss on a
    wheel without a zero segment still pays nothing; the wheel stops on any
    segment, picked uniformly.
    """
    if not segments:
        raise SegmentConfigurationError("Wheel has no segments")
    rng = rng or random
    multiplier = choose_multiplier(segments, rng, house_edge)

    candidates = [i for i, s in enumerate(segments) if Decimal(s.multiplier) == multiplier]
    if not candidates:
        if multiplier > 0:
            raise SegmentConfigurationError(f"No segment carries multiplier {multiplier}")
        candidates = list(range(len(segments)))
    index = rng.choice(candidates)
    return SpinDraw(multiplier=multiplier, segment_index=index, segment_id=segments[index].id)


def payout(bet_amount: Decimal, draw: SpinDraw) -> SpinResult:
    bet_amount = Decimal(bet_amount)
    win_amount = bet_amount * draw.multiplier if bet_amount > 0 and draw.multiplier > 0 else Decimal("0")
    return SpinResult(
        win_amount=win_amount,
        multiplier=draw.multiplier,
        segment_index=draw.segment_index,
        segment_id=draw.segment_id,
    )


def settle_spin(bet_amount: Decimal, segments: Sequence, rng=None, house_edge: float = HOUSE_EDGE) -> SpinResult:
    return payout(bet_amount, draw_outcome(segments, rng, house_edge))


def spin_cost(cost_settings, spins_used_today: int) -> Decimal:
    if cost_settings.type != "tiered":
        return Decimal(cost_settings.base_cost)
    if spins_used_today < cost_settings.tier1_limit:
        return Decimal(cost_settings.tier1_cost)
    if spins_used_today < cost_settings.tier2_limit:
        return Decimal(cost_settings.tier2_cost)
    return Decimal(cost_settings.tier3_cost)


def cost_tier(cost_settings, spins_used_today: int) -> Optional[int]:
    """Return 1, 2 or 3 for stepped pricing, None for flat pricing."""
    if cost_settings.type != "tiered":
        return None
    if spins_used_today < cost_settings.tier1_limit:
        return 1
    if spins_used_today < cost_settings.tier2_limit:
        return 2
    return 3
