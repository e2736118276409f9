import asyncio

from utils.async_timers import ConfirmationGate, Debouncer


def test_debouncer_coalesces_bursts():
    calls = []

    async def scenario():
        debouncer = Debouncer(0.05, lambda: calls.append("run"))
        for _ in range(5):
            debouncer.trigger()
            await asyncio.sleep(0.001)
        assert debouncer.pending
        assert calls == []
        await asyncio.sleep(0.15)
        await debouncer.wait()
        assert not debouncer.pending

    asyncio.run(scenario())
    assert calls == ["run"]


def test_debouncer_runs_async_callbacks():
    calls = []

    async def callback():
        await asyncio.sleep(0)
        calls.append("async")

    async def scenario():
        debouncer = Debouncer(0.01, callback)
        debouncer.trigger()
        await asyncio.sleep(0.03)
        await debouncer.wait()

    asyncio.run(scenario())
    assert calls == ["async"]


def test_debouncer_flush_and_cancel():
    calls = []

    async def scenario():
        debouncer = Debouncer(10, lambda: calls.append("flushed"))
        debouncer.trigger()
        await debouncer.flush()
        assert calls == ["flushed"]

        debouncer.trigger()
        debouncer.cancel()
        await debouncer.flush()

    asyncio.run(scenario())
    assert calls == ["flushed"]


def test_confirmation_gate_requires_second_request():
    async def scenario():
        gate = ConfirmationGate(5)
        assert gate.request() is False
        assert gate.armed
        assert gate.request() is True
        assert not gate.armed
        assert gate.request() is False

    asyncio.run(scenario())


def test_confirmation_gate_expires():
    expired = []

    async def scenario():
        gate = ConfirmationGate(0.01, on_expire=lambda: expired.append(True))
        gate.request()
        await asyncio.sleep(0.03)
        assert not gate.armed
        assert gate.request() is False
        gate.reset()

    asyncio.run(scenario())
    assert expired == [True]


def test_confirmation_gate_reset():
    gate = ConfirmationGate(5)
    gate.request()
    gate.reset()
    assert not gate.armed
