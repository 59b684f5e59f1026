import asyncio
import inspect
import json
import logging
import threading
from collections.abc import Iterable
from typing import Callable, Union
from urllib.parse import urlencode

from .errors import RefreshFailed
from .state import TokenPair
from .types import Region, ZohoConfig

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}

RefreshCallback = Callable[[str, str], object]

DEFAULT_SCOPES = ("ZohoBooks.fullaccess.all",)


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scopes: Iterable[str] = DEFAULT_SCOPES,
    region: Union[Region, str] = Region.COM,
    state: Union[str, None] = None,
) -> str:
    """Consent URL for the authorization-code flow.

    ``access_type=offline`` plus ``prompt=consent`` make the server issue a
    refresh token on every exchange.
    """
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": ",".join(scopes),
        "access_type": "offline",
        "prompt": "consent",
    }
    if state:
        params["state"] = state
    return f"{Region(region).authorization_url}?{urlencode(params)}"


# ---------- Shared token bookkeeping (synchronization handled by subclasses) ----------


class _TokenState:
    def __init__(
        self,
        tokens: TokenPair,
        client_id: str,
        client_secret: str,
        token_url: str,
        on_token_refresh: Union[RefreshCallback, None] = None,
    ):
        self._tokens = tokens
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        # Called with (access_token, refresh_token) after every successful exchange
        self.on_token_refresh = on_token_refresh
        self._logger = logging.getLogger("zohobooks")

    # Reads are lock-free: the pair is only ever replaced as a whole.
    @property
    def tokens(self) -> TokenPair:
        return self._tokens

    @property
    def access_token(self) -> str:
        return self._tokens.access_token

    @property
    def refresh_token(self) -> str:
        return self._tokens.refresh_token

    def update_tokens(self, access_token: str, refresh_token: str) -> None:
        """Replace both tokens, e.g. after an out-of-band authorization flow."""
        self._tokens = TokenPair(access_token, refresh_token)

    def _is_superseded(self, stale_token: Union[str, None]) -> bool:
        return stale_token is not None and stale_token != self._tokens.access_token

    def _refresh_body(self) -> bytes:
        return urlencode(
            {
                "refresh_token": self._tokens.refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "refresh_token",
            }
        ).encode()

    def _code_body(self, code: str, redirect_uri: str) -> bytes:
        return urlencode(
            {
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            }
        ).encode()

    def _apply(self, resp) -> TokenPair:
        """Validate a token endpoint response and swap in the new pair."""
        if not 200 <= resp.status_code <= 299:  # noqa: PLR2004
            raise RefreshFailed(resp.text)
        try:
            payload = json.loads(resp.content or b"null")
        except ValueError as e:
            raise RefreshFailed(f"token endpoint returned non-JSON body: {resp.text}") from e
        if not isinstance(payload, dict) or not payload.get("access_token"):
            reason = payload.get("error") if isinstance(payload, dict) else None
            raise RefreshFailed(reason or "response did not contain an access token")
        self._tokens = self._tokens.rotated(payload["access_token"], payload.get("refresh_token"))
        return self._tokens


class TokenStore(_TokenState):
    """Holds the OAuth token pair for the blocking client and refreshes it on demand.

    All exchanges are serialized by one lock; concurrent callers that saw the
    same expired token share a single refresh (pass the rejected token as
    ``stale_token``).
    """

    def __init__(
        self,
        tokens: TokenPair,
        client_id: str,
        client_secret: str,
        token_url: str,
        transport=None,
        on_token_refresh: Union[RefreshCallback, None] = None,
    ):
        super().__init__(tokens, client_id, client_secret, token_url, on_token_refresh)
        if transport is None:
            from .adapters import RequestsTransport  # noqa: PLC0415

            transport = RequestsTransport()
        self.transport = transport
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: ZohoConfig, transport=None, on_token_refresh=None):
        return cls(
            TokenPair(config.access_token, config.refresh_token),
            config.client_id,
            config.client_secret,
            config.oauth_token_url,
            transport=transport,
            on_token_refresh=on_token_refresh,
        )

    def refresh(self, stale_token: Union[str, None] = None) -> str:
        """Exchange the refresh token for a new access token and return it.

        Raises:
            RefreshFailed: endpoint answered non-2xx, without an access token,
                or the refresh callback failed
            TransportError: the token endpoint could not be reached
        """
        with self._lock:
            if self._is_superseded(stale_token):
                self._logger.debug("access token already refreshed by another caller")
                return self._tokens.access_token
            self._logger.info(f"refreshing access token via {self.token_url}")
            resp = self.transport.send("POST", self.token_url, dict(FORM_HEADERS), self._refresh_body())
            pair = self._apply(resp)
            self._notify(pair)
            return pair.access_token

    def exchange_code(self, code: str, redirect_uri: str) -> TokenPair:
        """Complete the authorization-code grant and store the resulting pair."""
        with self._lock:
            resp = self.transport.send(
                "POST", self.token_url, dict(FORM_HEADERS), self._code_body(code, redirect_uri)
            )
            pair = self._apply(resp)
            self._notify(pair)
            return pair

    def _notify(self, pair: TokenPair) -> None:
        if self.on_token_refresh is None:
            return
        try:
            self.on_token_refresh(pair.access_token, pair.refresh_token)
        except Exception as e:
            raise RefreshFailed(f"token refresh callback failed: {e}") from e


class AsyncTokenStore(_TokenState):
    """Async twin of TokenStore; the callback may be a coroutine function."""

    def __init__(
        self,
        tokens: TokenPair,
        client_id: str,
        client_secret: str,
        token_url: str,
        transport=None,
        on_token_refresh: Union[RefreshCallback, None] = None,
    ):
        super().__init__(tokens, client_id, client_secret, token_url, on_token_refresh)
        if transport is None:
            from .adapters import HttpxTransport  # noqa: PLC0415

            transport = HttpxTransport()
        self.transport = transport
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: ZohoConfig, transport=None, on_token_refresh=None):
        return cls(
            TokenPair(config.access_token, config.refresh_token),
            config.client_id,
            config.client_secret,
            config.oauth_token_url,
            transport=transport,
            on_token_refresh=on_token_refresh,
        )

    async def refresh(self, stale_token: Union[str, None] = None) -> str:
        async with self._lock:
            if self._is_superseded(stale_token):
                self._logger.debug("access token already refreshed by another caller")
                return self._tokens.access_token
            self._logger.info(f"refreshing access token via {self.token_url}")
            resp = await self.transport.send(
                "POST", self.token_url, dict(FORM_HEADERS), self._refresh_body()
            )
            pair = self._apply(resp)
            await self._notify(pair)
            return pair.access_token

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenPair:
        async with self._lock:
            resp = await self.transport.send(
                "POST", self.token_url, dict(FORM_HEADERS), self._code_body(code, redirect_uri)
            )
            pair = self._apply(resp)
            await self._notify(pair)
            return pair

    async def _notify(self, pair: TokenPair) -> None:
        if self.on_token_refresh is None:
            return
        try:
            result = self.on_token_refresh(pair.access_token, pair.refresh_token)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            raise RefreshFailed(f"token refresh callback failed: {e}") from e
