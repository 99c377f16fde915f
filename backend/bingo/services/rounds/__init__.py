"""Bingo round lifecycle: number pool, caller, claim reconciliation,
payouts and per-tier timers.

Transport-free; socket handlers and the app factory wire it to
Flask-SocketIO and the database.
"""

from .engine import ClaimResult, RoundEngine
from .scheduler import SocketIOScheduler, TimerHandle
from .supervisor import TierTimerSupervisor, TimerPhase, TimerState

__all__ = [
    'ClaimResult',
    'RoundEngine',
    'SocketIOScheduler',
    'TimerHandle',
    'TierTimerSupervisor',
    'TimerPhase',
    'TimerState',
]
