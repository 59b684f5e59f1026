import asyncio

import aiohttp
import pytest

from zohobooks import AiohttpTransport, TransportError


class _FakeResponse:
    def __init__(self, status, body, headers=None):
        self.status = status
        self._body = body
        self.headers = headers or {}
        self.released = False

    async def read(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.released = True
        return False


class _FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_body_is_read_before_release():
    fake = _FakeResponse(200, b'{"code":0}', {"Content-Type": "application/json"})
    session = _FakeSession(fake)
    transport = AiohttpTransport(session=session)
    resp = await transport.send("PUT", "https://example.com/x", {"A": "1"}, b"payload")
    assert resp.status_code == 200  # noqa: PLR2004
    assert resp.content == b'{"code":0}'
    assert fake.released
    assert session.calls == [
        ("PUT", "https://example.com/x", {"headers": {"A": "1"}, "data": b"payload"})
    ]


@pytest.mark.asyncio
async def test_client_error_becomes_transport_error():
    session = _FakeSession(error=aiohttp.ClientConnectionError("reset by peer"))
    with pytest.raises(TransportError, match="reset by peer"):
        await AiohttpTransport(session=session).send("GET", "https://example.com", {})


@pytest.mark.asyncio
async def test_borrowed_session_stays_open():
    session = _FakeSession(_FakeResponse(204, b""))
    transport = AiohttpTransport(session=session)
    await transport.aclose()
    assert not session.closed


@pytest.mark.asyncio
async def test_timeout_becomes_transport_error():
    session = _FakeSession(error=asyncio.TimeoutError())
    with pytest.raises(TransportError, match="TimeoutError"):
        await AiohttpTransport(session=session).send("GET", "https://example.com", {})
