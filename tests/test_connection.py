import asyncio

import pytest
from telegram.error import InvalidToken, NetworkError, TimedOut

from pengeluaran_bot.connection import ConnectionState, ConnectionSupervisor
from pengeluaran_bot.errors import TransportFatal


class FakeUpdater:
    def __init__(self):
        self.running = False

    async def start_polling(self, **kwargs):
        self.running = True

    async def stop(self):
        self.running = False


class FakeBot:
    def __init__(self, failures=()):
        self.failures = list(failures)
        self.get_me_calls = 0

    async def get_me(self):
        self.get_me_calls += 1
        if self.failures:
            raise self.failures.pop(0)


class FakeApplication:
    def __init__(self, failures=()):
        self.failures = list(failures)
        self.updater = FakeUpdater()
        self.bot = FakeBot()
        self.running = False
        self.calls = []

    async def initialize(self):
        self.calls.append("initialize")
        if self.failures:
            raise self.failures.pop(0)

    async def start(self):
        self.calls.append("start")
        self.running = True

    async def stop(self):
        self.calls.append("stop")
        self.running = False

    async def shutdown(self):
        self.calls.append("shutdown")


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def test_backoff_is_bounded():
    supervisor = ConnectionSupervisor(FakeApplication(), base_backoff=1, max_backoff=10)
    assert [supervisor.backoff(n) for n in range(1, 7)] == [1, 2, 4, 8, 10, 10]


@pytest.mark.asyncio
async def test_reconnects_with_backoff_then_shuts_down_on_stop():
    app = FakeApplication(failures=[NetworkError("down"), TimedOut()])
    sleep = RecordingSleep()
    supervisor = ConnectionSupervisor(app, sleep=sleep)
    stop = asyncio.Event()

    task = asyncio.create_task(supervisor.run(stop))
    while supervisor.state is not ConnectionState.CONNECTED:
        await asyncio.sleep(0)

    assert sleep.delays == [1.0, 2.0]
    assert app.updater.running

    stop.set()
    await task
    assert supervisor.state is ConnectionState.DISCONNECTED
    assert app.calls[-2:] == ["stop", "shutdown"]
    assert not app.updater.running


@pytest.mark.asyncio
async def test_invalid_token_is_terminal():
    app = FakeApplication(failures=[InvalidToken()])
    supervisor = ConnectionSupervisor(app, sleep=RecordingSleep())

    with pytest.raises(TransportFatal):
        await supervisor.run(asyncio.Event())
    assert supervisor.state is ConnectionState.LOGGED_OUT
    assert app.calls == ["initialize", "shutdown"]


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    app = FakeApplication(failures=[NetworkError("down")] * 5)
    sleep = RecordingSleep()
    supervisor = ConnectionSupervisor(app, max_attempts=3, sleep=sleep)

    with pytest.raises(TransportFatal):
        await supervisor.run(asyncio.Event())
    assert len(sleep.delays) == 2
    assert supervisor.state is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_revoked_token_after_connect_is_terminal():
    app = FakeApplication()
    app.bot.failures = [NetworkError("flaky"), InvalidToken()]
    supervisor = ConnectionSupervisor(app, health_interval=0.01, sleep=RecordingSleep())

    with pytest.raises(TransportFatal):
        await supervisor.run(asyncio.Event())

    # gangguan jaringan sekali dilewati, token ditolak -> berhenti
    assert app.bot.get_me_calls == 2
    assert supervisor.state is ConnectionState.LOGGED_OUT
    assert app.calls[-2:] == ["stop", "shutdown"]
    assert not app.updater.running


@pytest.mark.asyncio
async def test_healthy_connection_keeps_running_until_stop():
    app = FakeApplication()
    supervisor = ConnectionSupervisor(app, health_interval=0.01, sleep=RecordingSleep())
    stop = asyncio.Event()

    task = asyncio.create_task(supervisor.run(stop))
    while app.bot.get_me_calls < 2:
        await asyncio.sleep(0.01)
    assert supervisor.state is ConnectionState.CONNECTED

    stop.set()
    await task
    assert supervisor.state is ConnectionState.DISCONNECTED
