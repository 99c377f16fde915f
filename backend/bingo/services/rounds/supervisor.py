import threading
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from .payouts import compute_prize_pool
from .state import wire_tier


class TimerPhase(str, Enum):
    WAITING = 'waiting'
    COUNTING_DOWN = 'counting-down'
    IN_PROGRESS = 'in-progress'


@dataclass
class TimerState:
    phase: TimerPhase
    seconds_remaining: int
    participant_count: int = 0
    prize_pool: Decimal = Decimal('0')
    window_started_at: Optional[float] = None

    def derived(self):
        return (self.phase, self.participant_count, self.prize_pool, self.window_started_at)

    def to_dict(self):
        return {
            'phase': self.phase.value,
            'secondsRemaining': self.seconds_remaining,
            'participantCount': self.participant_count,
            'prizePool': float(self.prize_pool),
            'windowStartedAt': int(self.window_started_at * 1000) if self.window_started_at else None,
        }


class TierTimerSupervisor:
    """Per-tier countdown that tells clients when a round may start.

    It never starts a round itself; rounds start on an explicit
    start-round command. The phase is recomputed from the session store on
    every tick, so a stale cached phase is corrected within one second.
    """

    def __init__(self, app, sessions, scheduler, broadcast):
        self.app = app
        self.sessions = sessions
        self.scheduler = scheduler
        self.broadcast = broadcast
        self.timers: Dict[Decimal, TimerState] = {}
        self._handle = None
        self._lock = threading.Lock()

    @property
    def waiting_delay(self) -> int:
        return int(self.app.config.get('TIMER_WAITING_SEC', 5))

    @property
    def countdown_window(self) -> int:
        return int(self.app.config.get('TIMER_COUNTDOWN_SEC', 45))

    def start(self):
        if self._handle is None:
            interval = float(self.app.config.get('SUPERVISOR_TICK_SEC', 1))
            self._handle = self.scheduler.call_every(interval, self.tick, name='tier-timers')
            self.app.logger.info(f"[timer] supervisor started interval={interval}s")
        return self._handle

    def stop(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _new_state(self) -> TimerState:
        return TimerState(phase=TimerPhase.WAITING, seconds_remaining=self.waiting_delay)

    def _tiers(self):
        tiers = {Decimal(str(t)) for t in self.app.config.get('BET_TIERS', [])}
        tiers.update(self.sessions.known_tiers())
        tiers.update(self.timers)
        return sorted(tiers)

    def reset(self, tier) -> None:
        """Back to waiting with the short re-arm delay (called when a round ends)."""
        tier = Decimal(str(tier))
        with self._lock:
            state = self.timers.get(tier)
            if state is None:
                self.timers[tier] = self._new_state()
                return
            state.phase = TimerPhase.WAITING
            state.seconds_remaining = self.waiting_delay
            state.window_started_at = None

    def _advance(self, state: TimerState, participants: int, live: bool, now: float) -> None:
        if live:
            state.phase = TimerPhase.IN_PROGRESS
            state.seconds_remaining = 0
            state.window_started_at = None
            return
        if state.phase == TimerPhase.IN_PROGRESS:
            # Round is over but no reset came through
            state.phase = TimerPhase.WAITING
            state.seconds_remaining = self.waiting_delay
            return

        state.seconds_remaining = max(0, state.seconds_remaining - 1)
        if state.seconds_remaining > 0:
            return
        if participants > 0:
            # Restarts an expired window too; players are still waiting
            state.phase = TimerPhase.COUNTING_DOWN
            state.seconds_remaining = self.countdown_window
            state.window_started_at = now
        elif state.phase == TimerPhase.COUNTING_DOWN:
            state.phase = TimerPhase.WAITING
            state.seconds_remaining = self.waiting_delay
            state.window_started_at = None

    def tick(self, now: Optional[float] = None) -> bool:
        """Advance every tier by one second; returns True if a broadcast went out."""
        now = now if now is not None else time.time()
        changed = False
        for tier in self._tiers():
            participants = self.sessions.count(tier)
            live = self.sessions.has_live_round(tier)
            pool = compute_prize_pool(participants, tier, self.app.config.get('PAYOUT_FRACTION', '0.8'))
            with self._lock:
                state = self.timers.get(tier)
                if state is None:
                    state = self.timers[tier] = self._new_state()
                    changed = True
                before = state.derived()
                state.participant_count = participants
                state.prize_pool = pool
                self._advance(state, participants, live, now)
                if state.derived() != before:
                    changed = True
        if changed:
            self.broadcast('timer-states-update', self.snapshot())
        return changed

    def snapshot(self) -> dict:
        with self._lock:
            return {str(wire_tier(tier)): state.to_dict() for tier, state in sorted(self.timers.items())}
