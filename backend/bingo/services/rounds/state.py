import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Set, Tuple

from bingo.errors import ValidationError


def normalize_tier(value) -> Decimal:
    """Parse a bet amount from a client payload into a positive Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValidationError('betAmount is required', details={'tier': value})
    try:
        tier = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError('betAmount must be a number', details={'tier': value})
    if not tier.is_finite() or tier <= 0:
        raise ValidationError('betAmount must be positive', details={'tier': value})
    return tier


def wire_tier(tier):
    """JSON-friendly tier: 10 rather than Decimal('10.00')."""
    tier = Decimal(tier)
    return int(tier) if tier == tier.to_integral_value() else float(tier)


@dataclass(frozen=True)
class Winner:
    participant: str
    card_ref: int

    def to_dict(self):
        return {'userId': self.participant, 'card': self.card_ref}


@dataclass(eq=False)
class RoundState:
    """Live round for one bet tier.

    `remaining_numbers` is consumed from the front; every popped label is
    appended to `called_numbers`, so the two always partition the pool.
    The timer handles belong to this record and must be cancelled before
    it is dropped from the registry.
    """
    tier: Decimal
    remaining_numbers: List[str]
    prize_pool: Decimal = Decimal('0')
    participant_count: int = 0
    called_numbers: List[str] = field(default_factory=list)
    drawing: bool = True
    ended: bool = False
    grace_period_active: bool = False
    pending_winners: List[Winner] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    draw_handle: Optional[object] = None
    grace_handle: Optional[object] = None
    _claim_keys: Set[Tuple[str, int]] = field(default_factory=set, repr=False)

    @property
    def exhausted(self) -> bool:
        return not self.remaining_numbers

    @property
    def current_number(self) -> str:
        return self.called_numbers[-1] if self.called_numbers else ""

    def draw_next(self) -> str:
        label = self.remaining_numbers.pop(0)
        self.called_numbers.append(label)
        return label

    def has_claim(self, participant: str, card_ref: int) -> bool:
        return (participant, card_ref) in self._claim_keys

    def add_winner(self, participant: str, card_ref: int) -> Winner:
        winner = Winner(participant, card_ref)
        self._claim_keys.add((participant, card_ref))
        self.pending_winners.append(winner)
        return winner

    def cancel_draw(self) -> None:
        if self.draw_handle is not None:
            self.draw_handle.cancel()
            self.draw_handle = None
        self.drawing = False

    def cancel_timers(self) -> None:
        self.cancel_draw()
        if self.grace_handle is not None:
            self.grace_handle.cancel()
            self.grace_handle = None

    def to_dict(self):
        return {
            'tier': wire_tier(self.tier),
            'calledNumbers': list(self.called_numbers),
            'currentNumber': self.current_number,
            'drawing': self.drawing,
            'ended': self.ended,
            'gracePeriodActive': self.grace_period_active,
            'winners': [w.to_dict() for w in self.pending_winners],
            'prizePool': float(self.prize_pool),
        }


class RoundRegistry:
    """Process-scoped map of bet tier -> RoundState. Not persisted."""

    def __init__(self):
        self._rounds: Dict[Decimal, RoundState] = {}

    def get(self, tier) -> Optional[RoundState]:
        return self._rounds.get(tier)

    def live(self, tier) -> Optional[RoundState]:
        state = self._rounds.get(tier)
        if state is None or state.ended:
            return None
        return state

    def put(self, state: RoundState) -> None:
        self._rounds[state.tier] = state

    def remove(self, tier, expected: Optional[RoundState] = None) -> Optional[RoundState]:
        """Drop the tier's round; with `expected`, only if it is still that record."""
        current = self._rounds.get(tier)
        if current is None or (expected is not None and current is not expected):
            return None
        return self._rounds.pop(tier)

    def tiers(self):
        return list(self._rounds)

    def __contains__(self, tier):
        return tier in self._rounds

    def __len__(self):
        return len(self._rounds)
