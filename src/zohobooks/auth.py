import inspect
from typing import Callable, Union

from .tokens import _TokenState
from .types import AuthHeader

# Defaults used when inspect.signature cannot determine argument counts
DEFAULT_HANDLER_ARGC = 0  # on_unauthorized()
HANDLER_WITH_HEADER_ARGC = 1  # on_unauthorized(rejected_header)

DEFAULT_HEADER = "Authorization"
DEFAULT_SCHEME = "Zoho-oauthtoken"


def _count_positional_args(fn, default: int) -> int:
    """Return count of positional params for fn; fall back to default on failure."""
    try:
        sig = inspect.signature(fn)
        return len(
            [
                p
                for p in sig.parameters.values()
                if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
            ]
        )
    except (TypeError, ValueError):
        return default


def _format(scheme: str, token: str) -> str:
    return f"{scheme} {token}".strip()


class AuthProvider:
    """Supplies the credential for each request and, optionally, recovers from a 401.

    ``header()`` is called once per attempt; the executor never keeps the result.
    Providers used with the async executor may return awaitables from both methods.
    """

    def header(self) -> Union[AuthHeader, None]:
        return None

    @property
    def can_recover(self) -> bool:
        return False

    def on_unauthorized(self, rejected: Union[AuthHeader, None]):
        raise NotImplementedError


class NoAuth(AuthProvider):
    pass


class StaticTokenAuth(AuthProvider):
    def __init__(self, token: str, header: str = DEFAULT_HEADER, scheme: str = DEFAULT_SCHEME):
        self.token = token
        self.header_name = header
        self.scheme = scheme

    def header(self) -> AuthHeader:
        return (self.header_name, _format(self.scheme, self.token))


class OAuthTokenAuth(AuthProvider):
    """Reads the current access token from a token store and refreshes it after a 401."""

    def __init__(
        self, store: _TokenState, header: str = DEFAULT_HEADER, scheme: str = DEFAULT_SCHEME
    ):
        self.store = store
        self.header_name = header
        self.scheme = scheme

    def header(self) -> AuthHeader:
        return (self.header_name, _format(self.scheme, self.store.access_token))

    @property
    def can_recover(self) -> bool:
        return True

    def on_unauthorized(self, rejected: Union[AuthHeader, None]):
        # Hand the rejected token to the store so parallel 401s share one refresh.
        stale = None
        if rejected is not None:
            value = rejected[1]
            stale = value[len(self.scheme) :].strip() if value.startswith(self.scheme) else value
        return self.store.refresh(stale_token=stale)


class CallableAuth(AuthProvider):
    """Wrap plain functions into an AuthProvider.

    Accepted handler signatures:
        - on_unauthorized()
        - on_unauthorized(rejected_header)
    """

    def __init__(self, header_fn: Callable, on_unauthorized: Union[Callable, None] = None):
        self.header_fn = header_fn
        self.handler = on_unauthorized

    def header(self):
        return self.header_fn()

    @property
    def can_recover(self) -> bool:
        return self.handler is not None

    def on_unauthorized(self, rejected):
        if self.handler is None:
            raise NotImplementedError
        argc = _count_positional_args(self.handler, DEFAULT_HANDLER_ARGC)
        if argc >= HANDLER_WITH_HEADER_ARGC:
            return self.handler(rejected)
        return self.handler()


def coerce_auth(auth: Union[object, None]) -> AuthProvider:
    """Turn None | str | token store | AuthProvider | callable into an AuthProvider.

    Accepted inputs:
      - None           -> NoAuth (no header attached)
      - str            -> StaticTokenAuth with the Zoho-oauthtoken scheme
      - token store    -> OAuthTokenAuth (refresh on 401)
      - AuthProvider   -> returned as-is
      - callable       -> CallableAuth(header_fn), no 401 recovery
    """
    if auth is None:
        return NoAuth()
    if isinstance(auth, AuthProvider):
        return auth
    if isinstance(auth, str):
        return StaticTokenAuth(auth)
    if isinstance(auth, _TokenState):
        return OAuthTokenAuth(auth)
    if callable(auth):
        return CallableAuth(auth)
    raise TypeError("auth must be None, a token string, a token store, AuthProvider, or a callable")
