import os

def _flag(name, default):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes', 'on')

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///bingo.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Round timers (seconds)
    CALL_INTERVAL_SEC = float(os.environ.get('CALL_INTERVAL_SEC', '4'))
    GRACE_PERIOD_SEC = float(os.environ.get('GRACE_PERIOD_SEC', '3'))
    # Share of the stakes paid out to winners; the rest is house margin
    PAYOUT_FRACTION = os.environ.get('PAYOUT_FRACTION', '0.8')
    # Tiers the timer supervisor always tracks, even with no sessions
    BET_TIERS = [int(t) for t in os.environ.get('BET_TIERS', '10,20,50,100').split(',') if t.strip()]
    # Tier timer supervisor
    ENABLE_SUPERVISOR = _flag('ENABLE_SUPERVISOR', 'true')
    SUPERVISOR_TICK_SEC = float(os.environ.get('SUPERVISOR_TICK_SEC', '1'))
    TIMER_WAITING_SEC = int(os.environ.get('TIMER_WAITING_SEC', '5'))
    TIMER_COUNTDOWN_SEC = int(os.environ.get('TIMER_COUNTDOWN_SEC', '45'))
