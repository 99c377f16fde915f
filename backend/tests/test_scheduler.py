import logging
import time

from flask import current_app, has_app_context

from bingo import socketio
from bingo.services.rounds.scheduler import SocketIOScheduler


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        socketio.sleep(0.01)
    return predicate()


def test_call_later_fires_once_inside_app_context(flask_app):
    scheduler = SocketIOScheduler(socketio, flask_app)
    fired = []

    def _callback(value):
        fired.append((value, has_app_context() and current_app.name))

    handle = scheduler.call_later(0.01, _callback, 'go', name='one-shot')
    assert _wait_for(lambda: fired)
    socketio.sleep(0.05)
    assert fired == [('go', flask_app.name)]
    assert handle.cancelled


def test_cancelled_call_later_never_fires(flask_app):
    scheduler = SocketIOScheduler(socketio, flask_app)
    fired = []
    handle = scheduler.call_later(0.05, fired.append, 1)
    handle.cancel()
    socketio.sleep(0.15)
    assert fired == []


def test_call_every_repeats_until_cancelled(flask_app):
    scheduler = SocketIOScheduler(socketio, flask_app)
    ticks = []
    handle = scheduler.call_every(0.01, lambda: ticks.append(time.monotonic()), name='repeat')
    assert _wait_for(lambda: len(ticks) >= 3)
    handle.cancel()
    seen = len(ticks)
    socketio.sleep(0.1)
    # A tick already past its cancel check may still land
    assert len(ticks) <= seen + 1
    gaps = [b - a for a, b in zip(ticks, ticks[1:])]
    assert all(gap >= 0.009 for gap in gaps)


def test_failing_callback_is_logged_and_the_loop_keeps_going(flask_app, caplog):
    scheduler = SocketIOScheduler(socketio, flask_app)
    calls = []

    def _flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError('boom')

    with caplog.at_level(logging.ERROR):
        handle = scheduler.call_every(0.01, _flaky, name='flaky')
        assert _wait_for(lambda: len(calls) >= 3)
        handle.cancel()
    assert '[timer-error]' in caplog.text
    assert 'flaky' in caplog.text
