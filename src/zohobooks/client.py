import asyncio
import json
import time
from typing import Any, Union

from .auth import OAuthTokenAuth
from .env import load_config_from_env
from .errors import DecodingError, PaginationLimitExceeded
from .executor import AsyncRequestExecutor, RequestExecutor
from .ratelimit import DEFAULT_MAX_REQUESTS, AsyncRateLimiter, RateLimiter
from .resources import (
    EXPENSES,
    INVOICES,
    TAX_EXEMPTIONS,
    Resource,
    check_envelope,
    coerce_resource,
    has_more_pages,
    matches,
    mentions,
    unwrap_item,
)
from .tokens import AsyncTokenStore, TokenStore
from .types import QueryParams, RetryConfig, ZohoConfig

ATTACHMENT_FIELD = "attachment"

# tax exemption fields searched by find_service_tax_exemption()
SERVICE_EXEMPTION_FIELDS = ("tax_exemption_code", "description")


def _filters(filters: dict) -> tuple[tuple[str, str], ...]:
    return tuple((k, str(v)) for k, v in filters.items() if v is not None)


# ---------- Shared JSON boundary and pagination bookkeeping ----------


class _ClientBase:
    def __init__(self, config: ZohoConfig, retry_config: Union[RetryConfig, None]):
        self.config = config
        self.organization_id = config.organization_id
        self.retry_config = retry_config or RetryConfig()

    def _params(self, params: QueryParams) -> tuple[tuple[str, str], ...]:
        # every tenant-scoped call carries the organization
        return (("organization_id", self.organization_id), *tuple(params))

    @staticmethod
    def _encode(body: Any) -> Union[bytes, None]:
        if body is None:
            return None
        if isinstance(body, (bytes, bytearray)):
            return bytes(body)
        return json.dumps(body).encode("utf-8")

    @staticmethod
    def _decode(content: bytes) -> Any:
        if not content:
            return {}
        try:
            return json.loads(content)
        except ValueError as e:
            raise DecodingError(str(e), content) from e

    def _page_params(self, params: QueryParams, page: int, per_page: int):
        return (*tuple(params), ("page", str(page)), ("per_page", str(per_page)))

    def _pagination_limits(self, per_page, max_pages) -> tuple[int, int]:
        if per_page is None:
            per_page = self.retry_config.per_page
        if max_pages is None:
            max_pages = self.retry_config.max_pages
        if per_page <= 0 or max_pages <= 0:
            raise ValueError("per_page and max_pages must be positive")
        return per_page, max_pages

    @staticmethod
    def _collect(items: list, payload: Any, items_key: str) -> bool:
        """Append one page's records; return whether another page follows."""
        envelope = check_envelope(payload)
        items.extend(envelope.get(items_key) or [])
        return has_more_pages(envelope)


class BooksClient(_ClientBase):
    """Blocking Zoho Books client.

    Owns one TokenStore (OAuth refresh on 401) and one RequestExecutor
    (100 requests per trailing minute by default). Payloads are plain dicts.
    """

    def __init__(
        self,
        config: ZohoConfig,
        *,
        max_requests_per_minute: int = DEFAULT_MAX_REQUESTS,
        retry_config: Union[RetryConfig, None] = None,
        transport=None,
        auth: Union[object, None] = None,
        on_token_refresh=None,
        rate_limiter: Union[RateLimiter, None] = None,
        sleep=time.sleep,
        log_level: Union[int, None] = None,
    ):
        super().__init__(config, retry_config)
        self._own_transport = transport is None
        if transport is None:
            from .adapters import RequestsTransport  # noqa: PLC0415

            transport = RequestsTransport()
        self.transport = transport
        self._token_store = TokenStore.from_config(
            config, transport=transport, on_token_refresh=on_token_refresh
        )
        self.executor = RequestExecutor(
            config.api_base_url,
            transport=transport,
            auth=auth if auth is not None else OAuthTokenAuth(self._token_store),
            rate_limiter=rate_limiter or RateLimiter(max_requests_per_minute),
            retry_config=self.retry_config,
            sleep=sleep,
            log_level=log_level,
        )

    @classmethod
    def from_env(cls, prefix: str = "ZOHO_", env_path: Union[str, None] = None, **kwargs):
        """Build a client from ZOHO_* environment variables (see load_config_from_env)."""
        return cls(load_config_from_env(prefix=prefix, env_path=env_path), **kwargs)

    @property
    def token_store(self) -> TokenStore:
        return self._token_store

    def close(self):
        if self._own_transport:
            self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ---------- raw JSON verbs ----------
    def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        params: QueryParams = (),
        headers: Union[dict[str, str], None] = None,
    ) -> Any:
        content = self.executor.request(
            endpoint, method, self._params(params), self._encode(body), headers
        )
        return self._decode(content)

    def get(self, endpoint: str, params: QueryParams = (), headers=None) -> Any:
        return self.request(endpoint, "GET", params=params, headers=headers)

    def post(self, endpoint: str, body: Any = None, params: QueryParams = (), headers=None) -> Any:
        return self.request(endpoint, "POST", body=body, params=params, headers=headers)

    def put(self, endpoint: str, body: Any = None, params: QueryParams = (), headers=None) -> Any:
        return self.request(endpoint, "PUT", body=body, params=params, headers=headers)

    def delete(self, endpoint: str, params: QueryParams = (), headers=None) -> Any:
        return self.request(endpoint, "DELETE", params=params, headers=headers)

    def upload_multipart(
        self,
        endpoint: str,
        file_bytes: bytes,
        filename: str,
        field_name: str = "file",
        params: QueryParams = (),
        fields=None,
    ) -> Any:
        content = self.executor.upload_multipart(
            endpoint, file_bytes, filename, field_name, self._params(params), fields
        )
        return self._decode(content)

    def fetch_all_pages(
        self,
        endpoint: str,
        items_key: str,
        params: QueryParams = (),
        per_page: Union[int, None] = None,
        max_pages: Union[int, None] = None,
    ) -> list:
        """Follow page_context.has_more_page from page 1 and concatenate every page's items.

        Raises:
            PaginationLimitExceeded: more than max_pages pages were announced
        """
        per_page, max_pages = self._pagination_limits(per_page, max_pages)
        items: list = []
        page = 1
        while True:
            payload = self.get(endpoint, params=self._page_params(params, page, per_page))
            if not self._collect(items, payload, items_key):
                return items
            if page >= max_pages:
                raise PaginationLimitExceeded(endpoint, max_pages)
            page += 1

    # ---------- resources ----------
    def list(self, resource: Union[Resource, str], **filters) -> list:
        res = coerce_resource(resource)
        if res.paginated:
            return self.fetch_all_pages(res.path, res.list_key, params=_filters(filters))
        payload = check_envelope(self.get(res.path, params=_filters(filters)))
        return payload.get(res.list_key) or []

    def create(self, resource: Union[Resource, str], payload: dict) -> dict:
        res = coerce_resource(resource)
        return unwrap_item(res, self.post(res.path, body=payload))

    def update(self, resource: Union[Resource, str], record_id: str, payload: dict) -> dict:
        res = coerce_resource(resource)
        return unwrap_item(res, self.put(f"{res.path}/{record_id}", body=payload))

    def find_by(
        self,
        resource: Union[Resource, str],
        value: str,
        field: Union[str, None] = None,
        **filters,
    ) -> Union[dict, None]:
        """First record whose field equals value, ignoring case."""
        res = coerce_resource(resource)
        field = field or res.name_field
        return next((r for r in self.list(res, **filters) if matches(r, field, value)), None)

    def find_service_tax_exemption(self) -> Union[dict, None]:
        """First tax exemption whose code or description mentions "service"."""
        exemptions = self.list(TAX_EXEMPTIONS)
        return next((r for r in exemptions if mentions(r, SERVICE_EXEMPTION_FIELDS, "service")), None)

    def mark_invoice_as_sent(self, invoice_id: str) -> None:
        check_envelope(self.post(f"{INVOICES.path}/{invoice_id}/status/sent"))

    def upload_expense_attachment(self, expense_id: str, data: bytes, filename: str) -> Any:
        return self.upload_multipart(
            f"{EXPENSES.path}/{expense_id}/attachment", data, filename, ATTACHMENT_FIELD
        )


class AsyncBooksClient(_ClientBase):
    """asyncio twin of BooksClient; defaults to an httpx transport."""

    def __init__(
        self,
        config: ZohoConfig,
        *,
        max_requests_per_minute: int = DEFAULT_MAX_REQUESTS,
        retry_config: Union[RetryConfig, None] = None,
        transport=None,
        auth: Union[object, None] = None,
        on_token_refresh=None,
        rate_limiter: Union[AsyncRateLimiter, None] = None,
        sleep=asyncio.sleep,
        log_level: Union[int, None] = None,
    ):
        super().__init__(config, retry_config)
        self._own_transport = transport is None
        if transport is None:
            from .adapters import HttpxTransport  # noqa: PLC0415

            transport = HttpxTransport()
        self.transport = transport
        self._token_store = AsyncTokenStore.from_config(
            config, transport=transport, on_token_refresh=on_token_refresh
        )
        self.executor = AsyncRequestExecutor(
            config.api_base_url,
            transport=transport,
            auth=auth if auth is not None else OAuthTokenAuth(self._token_store),
            rate_limiter=rate_limiter or AsyncRateLimiter(max_requests_per_minute),
            retry_config=self.retry_config,
            sleep=sleep,
            log_level=log_level,
        )

    @classmethod
    def from_env(cls, prefix: str = "ZOHO_", env_path: Union[str, None] = None, **kwargs):
        return cls(load_config_from_env(prefix=prefix, env_path=env_path), **kwargs)

    @property
    def token_store(self) -> AsyncTokenStore:
        return self._token_store

    async def aclose(self):
        if self._own_transport:
            await self.transport.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        params: QueryParams = (),
        headers: Union[dict[str, str], None] = None,
    ) -> Any:
        content = await self.executor.request(
            endpoint, method, self._params(params), self._encode(body), headers
        )
        return self._decode(content)

    async def get(self, endpoint: str, params: QueryParams = (), headers=None) -> Any:
        return await self.request(endpoint, "GET", params=params, headers=headers)

    async def post(self, endpoint: str, body: Any = None, params: QueryParams = (), headers=None):
        return await self.request(endpoint, "POST", body=body, params=params, headers=headers)

    async def put(self, endpoint: str, body: Any = None, params: QueryParams = (), headers=None):
        return await self.request(endpoint, "PUT", body=body, params=params, headers=headers)

    async def delete(self, endpoint: str, params: QueryParams = (), headers=None) -> Any:
        return await self.request(endpoint, "DELETE", params=params, headers=headers)

    async def upload_multipart(
        self,
        endpoint: str,
        file_bytes: bytes,
        filename: str,
        field_name: str = "file",
        params: QueryParams = (),
        fields=None,
    ) -> Any:
        content = await self.executor.upload_multipart(
            endpoint, file_bytes, filename, field_name, self._params(params), fields
        )
        return self._decode(content)

    async def fetch_all_pages(
        self,
        endpoint: str,
        items_key: str,
        params: QueryParams = (),
        per_page: Union[int, None] = None,
        max_pages: Union[int, None] = None,
    ) -> list:
        per_page, max_pages = self._pagination_limits(per_page, max_pages)
        items: list = []
        page = 1
        while True:
            payload = await self.get(endpoint, params=self._page_params(params, page, per_page))
            if not self._collect(items, payload, items_key):
                return items
            if page >= max_pages:
                raise PaginationLimitExceeded(endpoint, max_pages)
            page += 1

    async def list(self, resource: Union[Resource, str], **filters) -> list:
        res = coerce_resource(resource)
        if res.paginated:
            return await self.fetch_all_pages(res.path, res.list_key, params=_filters(filters))
        payload = check_envelope(await self.get(res.path, params=_filters(filters)))
        return payload.get(res.list_key) or []

    async def create(self, resource: Union[Resource, str], payload: dict) -> dict:
        res = coerce_resource(resource)
        return unwrap_item(res, await self.post(res.path, body=payload))

    async def update(self, resource: Union[Resource, str], record_id: str, payload: dict) -> dict:
        res = coerce_resource(resource)
        return unwrap_item(res, await self.put(f"{res.path}/{record_id}", body=payload))

    async def find_by(
        self,
        resource: Union[Resource, str],
        value: str,
        field: Union[str, None] = None,
        **filters,
    ) -> Union[dict, None]:
        res = coerce_resource(resource)
        field = field or res.name_field
        records = await self.list(res, **filters)
        return next((r for r in records if matches(r, field, value)), None)

    async def find_service_tax_exemption(self) -> Union[dict, None]:
        exemptions = await self.list(TAX_EXEMPTIONS)
        return next((r for r in exemptions if mentions(r, SERVICE_EXEMPTION_FIELDS, "service")), None)

    async def mark_invoice_as_sent(self, invoice_id: str) -> None:
        check_envelope(await self.post(f"{INVOICES.path}/{invoice_id}/status/sent"))

    async def upload_expense_attachment(self, expense_id: str, data: bytes, filename: str):
        return await self.upload_multipart(
            f"{EXPENSES.path}/{expense_id}/attachment", data, filename, ATTACHMENT_FIELD
        )
