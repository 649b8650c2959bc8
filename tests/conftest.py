"""
Shared fixtures: an in-process stand-in for the ATC24 socket and reconnect timer.

FakeSocket mirrors websocket.WebSocketApp: run_forever() blocks until the
socket is closed, and the callbacks it was built with are driven by the test.
FakeTimer records the reconnect delay and fires only when the test says so.
"""

import threading

import pytest

from backend.feed import FeedClient
from backend.main import create_app
from backend.storage import MemStorage


class FakeSocket:
    def __init__(self, url, on_open=None, on_message=None, on_error=None, on_close=None):
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.closed = False
        self._released = threading.Event()

    def run_forever(self):
        self._released.wait(timeout=10)

    def close(self):
        self.closed = True
        self._released.set()

    def release(self):
        self._released.set()

    # Driven by tests
    def open(self):
        self.on_open(self)

    def receive(self, raw):
        self.on_message(self, raw)

    def drop(self, code=1006):
        self.on_close(self, code, None)

    def fail(self, exc):
        self.on_error(self, exc)


class FakeSocketFactory:
    def __init__(self):
        self.sockets = []

    def __call__(self, url, **callbacks):
        ws = FakeSocket(url, **callbacks)
        self.sockets.append(ws)
        return ws

    @property
    def latest(self) -> FakeSocket:
        return self.sockets[-1]


class FakeTimer:
    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function()


class FakeTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def latest(self) -> FakeTimer:
        return self.timers[-1]

    @property
    def intervals(self):
        return [t.interval for t in self.timers]


@pytest.fixture
def sockets():
    return FakeSocketFactory()


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def feed_client(sockets, timers):
    client = FeedClient(url="wss://feed.test/wss", ws_factory=sockets, timer_factory=timers)
    yield client
    client.stop()
    for ws in sockets.sockets:
        ws.release()


@pytest.fixture
def feed_events(feed_client):
    events = []
    feed_client.subscribe(events.append)
    return events


@pytest.fixture
def storage():
    return MemStorage(seed=False)


@pytest.fixture
def app(storage, feed_client):
    return create_app(storage=storage, feed_client=feed_client, start_feed=False)
