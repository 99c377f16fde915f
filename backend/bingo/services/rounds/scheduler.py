import itertools


class TimerHandle:
    """Cancellable reference to a scheduled callback.

    Cancelling is final; a worker that wakes up after `cancel()` returns
    without calling back.
    """
    _ids = itertools.count(1)

    def __init__(self, name: str):
        self.id = next(self._ids)
        self.name = name
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self):
        state = 'cancelled' if self.cancelled else 'armed'
        return f"<TimerHandle {self.name}#{self.id} {state}>"


class SocketIOScheduler:
    """Runs timers as Socket.IO background tasks.

    Works under every async mode Flask-SocketIO supports because it only
    uses `start_background_task` and `socketio.sleep`. Callbacks run inside
    an application context.
    """

    def __init__(self, socketio, app):
        self.socketio = socketio
        self.app = app

    def _fire(self, handle: TimerHandle, callback, args) -> None:
        with self.app.app_context():
            try:
                callback(*args)
            except Exception:
                self.app.logger.exception(f"[timer-error] {handle!r} callback failed")

    def call_later(self, delay: float, callback, *args, name: str = 'timer') -> TimerHandle:
        handle = TimerHandle(name)

        def _worker():
            self.socketio.sleep(delay)
            if handle.cancelled:
                return
            handle.cancelled = True
            self._fire(handle, callback, args)

        self.socketio.start_background_task(_worker)
        return handle

    def call_every(self, interval: float, callback, *args, name: str = 'interval') -> TimerHandle:
        """Call `callback` every `interval` seconds until cancelled.

        The next sleep starts after the callback returns, so consecutive
        calls are never closer than `interval`.
        """
        handle = TimerHandle(name)

        def _worker():
            while True:
                self.socketio.sleep(interval)
                if handle.cancelled:
                    return
                self._fire(handle, callback, args)

        self.socketio.start_background_task(_worker)
        return handle
