from decimal import Decimal, ROUND_DOWN
from typing import Tuple

CENT = Decimal('0.01')


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_DOWN)


def compute_prize_pool(participant_count: int, tier, payout_fraction) -> Decimal:
    """participants x stake x payout fraction, truncated to cents."""
    return to_money(Decimal(participant_count) * Decimal(str(tier)) * Decimal(str(payout_fraction)))


def split_prize(prize_pool, winner_count: int) -> Tuple[Decimal, Decimal]:
    """Equal split truncated to cents.

    Returns (per_winner, remainder). The remainder is what is left after
    paying every winner the truncated share and stays with the house.
    """
    pool = to_money(prize_pool)
    if winner_count <= 0:
        return Decimal('0.00'), pool
    per_winner = (pool / winner_count).quantize(CENT, rounding=ROUND_DOWN)
    remainder = pool - per_winner * winner_count
    return per_winner, remainder
