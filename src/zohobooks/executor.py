import asyncio
import contextlib
import inspect
import logging
import time
from dataclasses import replace
from typing import Awaitable, Callable, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .auth import AuthProvider, coerce_auth
from .errors import HTTPError, InvalidURL, RateLimitExhausted, TransportError, Unauthorized
from .multipart import FilePart, encode_multipart, multipart_content_type
from .ratelimit import AsyncRateLimiter, RateLimiter
from .types import AuthHeader, QueryParams, RequestSpec, RetryConfig, TransportResponse

# Outcomes of a single attempt
_DONE = "done"
_AUTH_RETRY = "auth_retry"
_THROTTLED = "throttled"

DEFAULT_CONTENT_TYPE = "application/json"


def _set_header(headers: dict[str, str], name: str, value: str) -> None:
    """Set a header, replacing any existing spelling of the same name."""
    for existing in [k for k in headers if k.lower() == name.lower()]:
        del headers[existing]
    headers[name] = value


# ---------- Shared request building and classification ----------


class _ExecutorBase:
    def __init__(
        self,
        base_url: str,
        auth: Union[object, None],
        retry_config: Union[RetryConfig, None],
        log_level: Union[int, None],
    ):
        self.base_url = base_url.rstrip("/")
        self.auth: AuthProvider = coerce_auth(auth)
        self.retry_config = retry_config or RetryConfig()
        self._logger = logging.getLogger("zohobooks")
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)

    def _build_url(self, spec: RequestSpec) -> str:
        endpoint = spec.endpoint
        if endpoint and not endpoint.startswith(("/", "?")):
            endpoint = "/" + endpoint
        raw = f"{self.base_url}{endpoint}"
        try:
            parts = urlsplit(raw)
        except ValueError as e:
            raise InvalidURL(raw) from e
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise InvalidURL(raw)
        # endpoint's own query items first, then the request's; repeats are kept
        items = parse_qsl(parts.query, keep_blank_values=True)
        items.extend((str(k), str(v)) for k, v in spec.params)
        return urlunsplit(
            (parts.scheme, parts.netloc, parts.path, urlencode(items), parts.fragment)
        )

    def _build_headers(self, spec: RequestSpec, auth_header: Union[AuthHeader, None]) -> dict:
        headers = {"Content-Type": DEFAULT_CONTENT_TYPE}
        for name, value in spec.headers.items():
            _set_header(headers, name, value)
        if auth_header is not None:
            _set_header(headers, auth_header[0], auth_header[1])
        return headers

    def _classify(self, spec: RequestSpec, resp: TransportResponse, throttled: int) -> str:
        """Map one response onto the retry table; raise for terminal failures."""
        status = resp.status_code
        if status == 401:  # noqa: PLR2004, http status code can be constant
            if spec.retry_on_auth_failure and self.auth.can_recover:
                self._logger.info(f"401 on {spec.method} {spec.endpoint}; refreshing credentials")
                return _AUTH_RETRY
            raise Unauthorized(resp.text)
        if status == 429:  # noqa: PLR2004, http status code can be constant
            limit = self.retry_config.max_throttle_retries
            if limit is not None and throttled >= limit:
                raise RateLimitExhausted(throttled)
            self._logger.info(
                f"429 on {spec.method} {spec.endpoint}; "
                f"cooling down {self.retry_config.throttle_cooldown:.0f}s"
            )
            return _THROTTLED
        if not 200 <= status <= 299:  # noqa: PLR2004
            raise HTTPError(status, resp.text)
        return _DONE

    @staticmethod
    def _spec(
        endpoint: str,
        method: str,
        params: QueryParams,
        body: Union[bytes, None],
        headers: Union[dict[str, str], None],
        retry_on_auth_failure: bool,
    ) -> RequestSpec:
        return RequestSpec(
            endpoint=endpoint,
            method=method.upper(),
            params=tuple(params),
            body=body,
            headers=dict(headers or {}),
            retry_on_auth_failure=retry_on_auth_failure,
        )

    @staticmethod
    def _upload_spec(
        endpoint: str,
        file_part: FilePart,
        params: QueryParams,
        fields,
        retry_on_auth_failure: bool,
    ) -> RequestSpec:
        boundary, body = encode_multipart(fields, file_part)
        return RequestSpec(
            endpoint=endpoint,
            method="POST",
            params=tuple(params),
            body=body,
            headers={"Content-Type": multipart_content_type(boundary)},
            retry_on_auth_failure=retry_on_auth_failure,
        )


# ---------- Sync executor (requests) ----------


class RequestExecutor(_ExecutorBase):
    """Runs requests through the rate limiter, auth provider and retry policy.

    Safe to share between threads; the limiter and the token store carry
    their own locks and no lock is held while a request is on the wire.
    """

    def __init__(
        self,
        base_url: str,
        transport=None,
        auth: Union[object, None] = None,
        rate_limiter: Union[RateLimiter, None] = None,
        retry_config: Union[RetryConfig, None] = None,
        sleep: Callable[[float], None] = time.sleep,
        log_level: Union[int, None] = None,
    ):
        super().__init__(base_url, auth, retry_config, log_level)
        if transport is None:
            from .adapters import RequestsTransport  # noqa: PLC0415

            transport = RequestsTransport()
        self.transport = transport
        self.rate_limiter = rate_limiter or RateLimiter()
        self._sleep = sleep

    def execute(self, spec: RequestSpec) -> bytes:
        throttled = 0
        while True:
            self.rate_limiter.admit()
            url = self._build_url(spec)
            auth_header = self.auth.header()
            headers = self._build_headers(spec, auth_header)
            self._logger.debug(f"req start method={spec.method} url={url}")
            try:
                resp = self.transport.send(spec.method, url, headers, spec.body)
            except TransportError as e:
                self._logger.warning(f"request error on {spec.method} {spec.endpoint}: {e}")
                raise
            self._logger.debug(f"req done method={spec.method} url={url} status={resp.status_code}")
            outcome = self._classify(spec, resp, throttled)
            if outcome == _AUTH_RETRY:
                self.auth.on_unauthorized(auth_header)
                spec = replace(spec, retry_on_auth_failure=False)
            elif outcome == _THROTTLED:
                throttled += 1
                self._sleep(self.retry_config.throttle_cooldown)
            else:
                return resp.content

    def request(
        self,
        endpoint: str,
        method: str = "GET",
        params: QueryParams = (),
        body: Union[bytes, None] = None,
        headers: Union[dict[str, str], None] = None,
        retry_on_auth_failure: bool = True,
    ) -> bytes:
        return self.execute(
            self._spec(endpoint, method, params, body, headers, retry_on_auth_failure)
        )

    def upload_multipart(
        self,
        endpoint: str,
        file_bytes: bytes,
        filename: str,
        field_name: str = "file",
        params: QueryParams = (),
        fields=None,
        retry_on_auth_failure: bool = True,
    ) -> bytes:
        self._logger.debug(f"uploading {filename} ({len(file_bytes)} bytes) to {endpoint}")
        part = FilePart(field_name=field_name, filename=filename, data=file_bytes)
        return self.execute(
            self._upload_spec(endpoint, part, params, fields, retry_on_auth_failure)
        )

    def close(self):
        if hasattr(self.transport, "close"):
            self.transport.close()


# ---------- Async executor (httpx/aiohttp) ----------


async def _resolve(value):
    if inspect.isawaitable(value):
        return await value
    return value


class AsyncRequestExecutor(_ExecutorBase):
    def __init__(
        self,
        base_url: str,
        transport=None,
        auth: Union[object, None] = None,
        rate_limiter: Union[AsyncRateLimiter, None] = None,
        retry_config: Union[RetryConfig, None] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        log_level: Union[int, None] = None,
    ):
        super().__init__(base_url, auth, retry_config, log_level)
        if transport is None:
            from .adapters import HttpxTransport  # noqa: PLC0415

            transport = HttpxTransport()
        self.transport = transport
        self.rate_limiter = rate_limiter or AsyncRateLimiter()
        self._sleep = sleep

    async def execute(self, spec: RequestSpec) -> bytes:
        throttled = 0
        while True:
            await self.rate_limiter.admit()
            url = self._build_url(spec)
            auth_header = await _resolve(self.auth.header())
            headers = self._build_headers(spec, auth_header)
            self._logger.debug(f"req start method={spec.method} url={url}")
            try:
                resp = await self.transport.send(spec.method, url, headers, spec.body)
            except TransportError as e:
                self._logger.warning(f"request error on {spec.method} {spec.endpoint}: {e}")
                raise
            self._logger.debug(f"req done method={spec.method} url={url} status={resp.status_code}")
            outcome = self._classify(spec, resp, throttled)
            if outcome == _AUTH_RETRY:
                await _resolve(self.auth.on_unauthorized(auth_header))
                spec = replace(spec, retry_on_auth_failure=False)
            elif outcome == _THROTTLED:
                throttled += 1
                await self._sleep(self.retry_config.throttle_cooldown)
            else:
                return resp.content

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        params: QueryParams = (),
        body: Union[bytes, None] = None,
        headers: Union[dict[str, str], None] = None,
        retry_on_auth_failure: bool = True,
    ) -> bytes:
        return await self.execute(
            self._spec(endpoint, method, params, body, headers, retry_on_auth_failure)
        )

    async def upload_multipart(
        self,
        endpoint: str,
        file_bytes: bytes,
        filename: str,
        field_name: str = "file",
        params: QueryParams = (),
        fields=None,
        retry_on_auth_failure: bool = True,
    ) -> bytes:
        self._logger.debug(f"uploading {filename} ({len(file_bytes)} bytes) to {endpoint}")
        part = FilePart(field_name=field_name, filename=filename, data=file_bytes)
        return await self.execute(
            self._upload_spec(endpoint, part, params, fields, retry_on_auth_failure)
        )

    async def aclose(self):
        if hasattr(self.transport, "aclose"):
            await self.transport.aclose()
