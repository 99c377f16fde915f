import threading
import time
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from bingo import db
from bingo.errors import BingoError, GameAlreadyEnded, NoActiveRound, PersistenceFailure
from .numbers import generate_pool, shuffle_pool
from .payouts import compute_prize_pool, split_prize, to_money
from .state import RoundRegistry, RoundState, normalize_tier, wire_tier


class ClaimResult(str, Enum):
    FIRST = 'first'
    ACCEPTED = 'accepted'
    DUPLICATE = 'duplicate'


def _now_ms() -> int:
    return int(time.time() * 1000)


class RoundEngine:
    """Per-tier round lifecycle: calling, claim reconciliation, finalize.

    A round moves Calling -> GracePeriod -> Finalized. The first accepted
    claim stops the caller and arms a one-shot grace timer; every claim
    that lands before it fires shares the pot. Finalize runs at most once
    per round, whether it comes from the grace timer or from the pool
    running dry.

    Each tier has its own lock. It covers every read-modify-write on a
    RoundState and is never held across database I/O or broadcasts.
    Timer callbacks carry the record that armed them and bail out when the
    registry now holds something else.
    """

    def __init__(self, app, scheduler, broadcast, sessions, accounts, history, supervisor=None, rng=None):
        self.app = app
        self.scheduler = scheduler
        self.broadcast = broadcast
        self.sessions = sessions
        self.accounts = accounts
        self.history = history
        self.supervisor = supervisor
        self.rng = rng
        self.registry = RoundRegistry()
        self._locks = {}
        self._locks_guard = threading.Lock()

    @property
    def call_interval(self) -> float:
        return float(self.app.config.get('CALL_INTERVAL_SEC', 4))

    @property
    def grace_period(self) -> float:
        return float(self.app.config.get('GRACE_PERIOD_SEC', 3))

    @property
    def payout_fraction(self):
        return self.app.config.get('PAYOUT_FRACTION', '0.8')

    def _lock(self, tier) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(tier)
            if lock is None:
                lock = self._locks[tier] = threading.Lock()
            return lock

    def _reset_timer(self, tier) -> None:
        if self.supervisor is not None:
            self.supervisor.reset(tier)

    # ---- Caller ----

    def start_round(self, tier, prize_pool=None) -> RoundState:
        """Start calling numbers for `tier`; returns the live round.

        A tier that already has a live round keeps it untouched.
        """
        tier = normalize_tier(tier)
        existing = self.registry.live(tier)
        if existing is not None:
            return existing
        participants = self.sessions.count(tier)
        if prize_pool is None:
            pool = compute_prize_pool(participants, tier, self.payout_fraction)
        else:
            pool = to_money(prize_pool)

        with self._lock(tier):
            existing = self.registry.get(tier)
            if existing is not None and not existing.ended:
                return existing
            if existing is not None:
                existing.cancel_timers()
                self.registry.remove(tier, existing)
            state = RoundState(
                tier=tier,
                remaining_numbers=shuffle_pool(generate_pool(), self.rng),
                prize_pool=pool,
                participant_count=participants,
            )
            self.registry.put(state)
            state.draw_handle = self.scheduler.call_every(
                self.call_interval, self._draw_tick, tier, state, name=f"draw:{tier}"
            )
            self.app.logger.info(
                f"[round-start] tier={tier} participants={participants} pool={pool} interval={self.call_interval}s"
            )
            started = {
                'tier': wire_tier(tier),
                'prizePool': float(pool),
                'participantCount': participants,
                'timestamp': _now_ms(),
            }
        self.broadcast('round-started', started)
        return state

    def _draw_tick(self, tier, armed: RoundState) -> None:
        with self._lock(tier):
            state = self.registry.get(tier)
            if state is not armed:
                # The round this timer belonged to was replaced or removed
                return
            if state.ended or not state.drawing or state.exhausted:
                state.cancel_draw()
                return
            label = state.draw_next()
            called = {
                'tier': wire_tier(tier),
                'label': label,
                'calledNumbers': list(state.called_numbers),
                'timestamp': _now_ms(),
            }
            no_winner = False
            if state.exhausted:
                state.cancel_draw()
                no_winner = not state.pending_winners
        self.broadcast('number-called', called)
        if no_winner:
            self.app.logger.info(f"[draw-exhausted] tier={tier} no winner after {len(armed.called_numbers)} calls")
            self.finalize(tier)

    def stop_drawing(self, tier):
        """Pause the caller; the round stays open for claims."""
        tier = normalize_tier(tier)
        with self._lock(tier):
            state = self.registry.get(tier)
            if state is not None:
                state.cancel_draw()
            return state

    def end_round_completely(self, tier):
        tier = normalize_tier(tier)
        with self._lock(tier):
            state = self.registry.live(tier)
            if state is None:
                return None
            state.cancel_timers()
            state.ended = True
        self._reset_timer(tier)
        return state

    def stop_round(self, tier) -> bool:
        """Manual stop: end the round, drop it, tell everyone. No payout."""
        tier = normalize_tier(tier)
        state = self.end_round_completely(tier)
        if state is None:
            return False
        with self._lock(tier):
            self.registry.remove(tier, state)
        self.app.logger.info(f"[round-stop] tier={tier} after {len(state.called_numbers)} calls")
        self.broadcast('round-stopped', {'tier': wire_tier(tier)})
        return True

    def reset_round(self, tier) -> None:
        """Force stop and purge the tier's sessions without broadcasting."""
        tier = normalize_tier(tier)
        with self._lock(tier):
            state = self.registry.get(tier)
            if state is not None:
                state.cancel_timers()
                state.ended = True
                self.registry.remove(tier, state)
        self._reset_timer(tier)
        try:
            purged = self.sessions.delete_for_tier(tier)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        self.app.logger.info(f"[round-reset] tier={tier} purged={purged}")

    def round_snapshot(self, tier) -> dict:
        tier = normalize_tier(tier)
        state = self.registry.get(tier)
        if state is None:
            raise NoActiveRound(wire_tier(tier))
        return state.to_dict()

    # ---- Winner reconciliation ----

    def submit_win_claim(self, tier, participant, card_ref) -> ClaimResult:
        tier = normalize_tier(tier)
        participant = str(participant)
        card_ref = int(card_ref)
        outbox = []
        with self._lock(tier):
            state = self.registry.get(tier)
            if state is None:
                raise NoActiveRound(wire_tier(tier))
            if state.ended:
                raise GameAlreadyEnded(wire_tier(tier))
            if state.has_claim(participant, card_ref):
                return ClaimResult.DUPLICATE

            first = not state.grace_period_active
            if first:
                state.cancel_draw()
                state.grace_period_active = True
                state.grace_handle = self.scheduler.call_later(
                    self.grace_period, self._grace_expired, tier, state, name=f"grace:{tier}"
                )
                self.app.logger.info(
                    f"[grace-set] tier={tier} first_winner={participant} card={card_ref} duration={self.grace_period}s"
                )
                outbox.append(('round-stopped', {
                    'tier': wire_tier(tier),
                    'firstWinner': {'userId': participant, 'card': card_ref},
                    'gracePeriod': self.grace_period,
                    'timestamp': _now_ms(),
                }))

            state.add_winner(participant, card_ref)
            count = len(state.pending_winners)
            self.app.logger.info(f"[claim] tier={tier} winner={participant} card={card_ref} count={count}")
            outbox.append(('winner-announced', {
                'tier': wire_tier(tier),
                'participant': participant,
                'cardRef': card_ref,
                'countSoFar': count,
                'timestamp': _now_ms(),
            }))
        for event, payload in outbox:
            self.broadcast(event, payload)
        return ClaimResult.FIRST if first else ClaimResult.ACCEPTED

    def _grace_expired(self, tier, armed: RoundState) -> None:
        if self.registry.get(tier) is not armed:
            self.app.logger.info(f"[grace-abort] tier={tier} round replaced before grace expiry")
            return
        self.finalize(tier)

    # ---- Finalizer ----

    def finalize(self, tier) -> bool:
        """Pay out and tear down the tier's round. Returns False if already done."""
        tier = normalize_tier(tier)
        with self._lock(tier):
            state = self.registry.get(tier)
            if state is None or state.ended:
                return False
            # Set before any I/O so a duplicate timer fire or late claim is rejected
            state.ended = True
            state.grace_period_active = False
            state.cancel_timers()
            winners = list(state.pending_winners)
            prize_pool = state.prize_pool
            participants = state.participant_count
        self._reset_timer(tier)

        try:
            purged = self.sessions.delete_for_tier(tier)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            purged = 0
            self.app.logger.error(f"[purge-failed] tier={tier} error={exc}; reset-round to recover")

        if not winners:
            self.app.logger.info(f"[finalize] tier={tier} no winners pool_retained={prize_pool} purged={purged}")
            result = {
                'tier': wire_tier(tier),
                'winners': [],
                'prizePool': 0,
                'splitPerWinner': 0,
                'totalWinners': 0,
                'poolRetained': float(prize_pool),
            }
        else:
            split, remainder = split_prize(prize_pool, len(winners))
            failed = []
            for winner in winners:
                try:
                    self._pay_winner(tier, winner, split, prize_pool, participants, len(winners))
                except (SQLAlchemyError, BingoError) as exc:
                    db.session.rollback()
                    failure = PersistenceFailure(
                        'Failed to credit winner',
                        details={'userId': winner.participant, 'card': winner.card_ref, 'error': str(exc) or exc.__class__.__name__},
                    )
                    self.app.logger.error(f"[finalize-credit-failed] tier={tier} {failure.details}")
                    failed.append(winner.to_dict())
            self.app.logger.info(
                f"[finalize] tier={tier} winners={len(winners)} pool={prize_pool} split={split} "
                f"remainder={remainder} failed={len(failed)} purged={purged}"
            )
            result = {
                'tier': wire_tier(tier),
                'winners': [w.to_dict() for w in winners],
                'prizePool': float(prize_pool),
                'splitPerWinner': float(split),
                'totalWinners': len(winners),
                'remainder': float(remainder),
            }
            if failed:
                result['failedCredits'] = failed

        self.broadcast('round-ended', result)
        self.broadcast('sessions-updated', [])

        with self._lock(tier):
            self.registry.remove(tier, state)
        return True

    def _pay_winner(self, tier, winner, split, prize_pool, participants, total_winners) -> None:
        """Credit, earnings and history for one winner, committed together."""
        self.accounts.credit(winner.participant, split)
        user = self.accounts.record_earnings(winner.participant, split)
        self.history.append(
            winner_id=user.id,
            winner_card=winner.card_ref,
            prize=split,
            prize_pool=prize_pool,
            number_of_players=participants,
            bet_amount=tier,
            total_winners=total_winners,
        )
        db.session.commit()

    def shutdown(self) -> None:
        """Cancel every round's timers and forget them."""
        for tier in self.registry.tiers():
            with self._lock(tier):
                state = self.registry.get(tier)
                if state is not None:
                    state.cancel_timers()
                    state.ended = True
                    self.registry.remove(tier, state)
