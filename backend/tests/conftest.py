import heapq
import itertools
import os
import sys
from decimal import Decimal

import pytest

# Ensure the backend root (containing the `bingo` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from bingo import create_app, db, socketio, socketio_broadcaster
from bingo.services.rounds.scheduler import TimerHandle


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = 'INFO'
    CALL_INTERVAL_SEC = 4
    GRACE_PERIOD_SEC = 3
    PAYOUT_FRACTION = '0.8'
    BET_TIERS = [10, 20]
    ENABLE_SUPERVISOR = False
    SUPERVISOR_TICK_SEC = 1
    TIMER_WAITING_SEC = 5
    TIMER_COUNTDOWN_SEC = 45


class ManualScheduler:
    """Fake clock: timers only fire when a test calls advance()."""

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = itertools.count()

    def _push(self, due, handle, interval, callback, args):
        heapq.heappush(self._queue, (due, next(self._seq), handle, interval, callback, args))

    def call_later(self, delay, callback, *args, name='timer'):
        handle = TimerHandle(name)
        self._push(self.now + delay, handle, None, callback, args)
        return handle

    def call_every(self, interval, callback, *args, name='interval'):
        handle = TimerHandle(name)
        self._push(self.now + interval, handle, interval, callback, args)
        return handle

    def advance(self, seconds):
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, interval, callback, args = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = due
            if interval is None:
                handle.cancelled = True
            callback(*args)
            if interval is not None and not handle.cancelled:
                self._push(self.now + interval, handle, interval, callback, args)
        self.now = target

    def armed(self, prefix=''):
        return [h for _, _, h, _, _, _ in self._queue if not h.cancelled and h.name.startswith(prefix)]


class BroadcastRecorder:
    """Records every broadcast and still forwards it to Socket.IO clients."""

    def __init__(self):
        self.events = []

    def __call__(self, event, payload):
        self.events.append((event, payload))
        socketio_broadcaster(event, payload)

    def named(self, event):
        return [payload for name, payload in self.events if name == event]

    def clear(self):
        self.events.clear()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def broadcasts():
    return BroadcastRecorder()


@pytest.fixture()
def flask_app(scheduler, broadcasts):
    application = create_app(TestConfig, scheduler=scheduler, broadcaster=broadcasts)
    with application.app_context():
        # Ensure models are imported so tables are created
        import bingo.models  # noqa: F401
        db.create_all()
        yield application
        application.extensions['bingo'].shutdown()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def engine(flask_app):
    return flask_app.extensions['bingo']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_user(flask_app):
    from bingo.models import User

    counter = itertools.count(1)

    def _make(wallet='0', phone=None, password='password', role='user'):
        user = User(phone=phone or f'09110000{next(counter):02d}', wallet=Decimal(wallet), role=role)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture()
def make_sessions(flask_app, make_user):
    from bingo.models import GameSession

    def _make(tier, count, status='active', user=None):
        owner = user or make_user()
        rows = []
        for card in range(1, count + 1):
            row = GameSession(user_id=owner.id, card_number=card, bet_amount=Decimal(str(tier)), status=status)
            db.session.add(row)
            rows.append(row)
        db.session.commit()
        return rows
    return _make


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
