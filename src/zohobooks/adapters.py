import asyncio
import contextlib
import logging

from .errors import InvalidResponse, InvalidURL, TransportError
from .types import TransportResponse

DEFAULT_TIMEOUT = 30.0

_logger = logging.getLogger("zohobooks")


def _status_of(raw) -> int:
    status = getattr(raw, "status_code", None)
    if not isinstance(status, int):
        status = getattr(raw, "status", None)
    if not isinstance(status, int) or isinstance(status, bool):
        raise InvalidResponse(f"no HTTP status on {type(raw).__name__}")
    return status


# ---------- requests (sync) ----------
class RequestsTransport:
    """Blocking transport over a requests.Session (one is created if not supplied)."""

    def __init__(self, session=None, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout
        if session is None:
            import requests  # noqa: PLC0415

            self.session = requests.Session()
            self._own_session = True
        else:
            self.session = session
            self._own_session = False

    def send(
        self, method: str, url: str, headers: dict[str, str], body: bytes | None = None
    ) -> TransportResponse:
        import requests  # noqa: PLC0415

        try:
            resp = self.session.request(
                method, url, headers=headers, data=body, timeout=self.timeout
            )
        except (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema) as e:
            raise InvalidURL(url) from e
        except requests.RequestException as e:
            raise TransportError(str(e)) from e
        status = _status_of(resp)
        return TransportResponse(status, resp.content or b"", dict(resp.headers or {}))

    def close(self):
        if self._own_session:
            with contextlib.suppress(Exception):
                self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


# ---------- httpx (async) ----------
class HttpxTransport:
    """Async transport over an httpx.AsyncClient."""

    def __init__(self, client=None, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self.client = client
        self._own_client = client is None

    def _ensure_client(self):
        if self.client is None:
            import httpx  # noqa: PLC0415

            self.client = httpx.AsyncClient(timeout=self.timeout)
        return self.client

    async def send(
        self, method: str, url: str, headers: dict[str, str], body: bytes | None = None
    ) -> TransportResponse:
        import httpx  # noqa: PLC0415

        client = self._ensure_client()
        try:
            resp = await client.request(method, url, headers=headers, content=body)
        except httpx.InvalidURL as e:
            raise InvalidURL(url) from e
        except (httpx.UnsupportedProtocol, httpx.LocalProtocolError) as e:
            raise InvalidURL(url) from e
        except httpx.TransportError as e:
            raise TransportError(str(e) or type(e).__name__) from e
        status = _status_of(resp)
        return TransportResponse(status, resp.content or b"", dict(resp.headers))

    async def aclose(self):
        if self._own_client and self.client is not None:
            with contextlib.suppress(Exception):
                await self.client.aclose()
            self.client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False


# ---------- aiohttp (async) ----------
class AiohttpTransport:
    """Async transport over an aiohttp.ClientSession; the body is read before release."""

    def __init__(self, session=None, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self.session = session
        self._own_session = session is None

    def _ensure_session(self):
        if self.session is None:
            import aiohttp  # noqa: PLC0415

            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def send(
        self, method: str, url: str, headers: dict[str, str], body: bytes | None = None
    ) -> TransportResponse:
        import aiohttp  # noqa: PLC0415

        session = self._ensure_session()
        try:
            async with session.request(method, url, headers=headers, data=body) as resp:
                content = await resp.read()
                status = _status_of(resp)
                resp_headers = dict(resp.headers or {})
        except aiohttp.InvalidURL as e:
            raise InvalidURL(url) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(str(e) or type(e).__name__) from e
        return TransportResponse(status, content or b"", resp_headers)

    async def aclose(self):
        if self._own_session and self.session is not None:
            with contextlib.suppress(Exception):
                await self.session.close()
            self.session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False
