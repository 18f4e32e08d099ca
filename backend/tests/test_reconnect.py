import logging

from ferrytrack.processors.reconnect import ReconnectDebouncer


class Ticker:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


async def test_burst_of_signals_fires_once():
    calls = []

    async def refresh():
        calls.append(1)

    ticker = Ticker()
    debouncer = ReconnectDebouncer(refresh, debounce=0.3, clock=ticker)

    assert debouncer.signal("foreground") is True
    ticker.now += 0.1
    assert debouncer.signal("online") is False
    ticker.now += 0.1
    assert debouncer.signal("online") is False
    await debouncer.aclose()

    assert calls == [1]


async def test_signal_after_window_fires_again():
    calls = []

    async def refresh():
        calls.append(1)

    ticker = Ticker()
    debouncer = ReconnectDebouncer(refresh, debounce=0.3, clock=ticker)

    debouncer.signal()
    ticker.now += 0.31
    assert debouncer.signal() is True
    await debouncer.aclose()

    assert len(calls) == 2


async def test_callback_failure_is_logged(caplog):
    async def refresh():
        raise ConnectionError("ping API unreachable")

    debouncer = ReconnectDebouncer(refresh, debounce=0.3, clock=Ticker())

    with caplog.at_level(logging.ERROR, logger="ferrytrack.reconnect"):
        debouncer.signal("network")
        await debouncer.aclose()

    assert "ping API unreachable" in caplog.text


async def test_skipped_refresh_is_logged(caplog):
    async def refresh():
        return False

    debouncer = ReconnectDebouncer(refresh, debounce=0.3, clock=Ticker())

    with caplog.at_level(logging.INFO, logger="ferrytrack.reconnect"):
        assert debouncer.signal("foreground") is True
        await debouncer.aclose()

    assert "Reconnect refresh skipped" in caplog.text
