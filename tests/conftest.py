import json

import pytest

from zohobooks import TransportResponse


class FakeClock:
    """Monotonic clock whose sleep() advances time instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    async def asleep(self, seconds: float) -> None:
        self.sleep(seconds)


class ScriptedTransport:
    """Replays queued responses; the last entry repeats once the queue runs dry.

    Entries may be TransportResponse objects, exceptions (raised), or
    callables taking (method, url, headers, body).
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[dict] = []

    def _next(self, method, url, headers, body):
        self.calls.append({"method": method, "url": url, "headers": dict(headers), "body": body})
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(method, url, headers, body)
        return item

    def send(self, method, url, headers, body=None):
        return self._next(method, url, headers, body)

    def close(self):
        pass


class AsyncScriptedTransport(ScriptedTransport):
    async def send(self, method, url, headers, body=None):
        return self._next(method, url, headers, body)

    async def aclose(self):
        pass


def json_response(payload, status: int = 200) -> TransportResponse:
    return TransportResponse(status, json.dumps(payload).encode())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scripted():
    return ScriptedTransport


@pytest.fixture
def ascripted():
    return AsyncScriptedTransport


@pytest.fixture
def respond():
    return json_response
