from .adapters import AiohttpTransport, HttpxTransport, RequestsTransport
from .auth import (
    AuthProvider,
    CallableAuth,
    NoAuth,
    OAuthTokenAuth,
    StaticTokenAuth,
    coerce_auth,
)
from .client import AsyncBooksClient, BooksClient
from .env import load_config_from_env
from .errors import (
    APIError,
    DecodingError,
    HTTPError,
    InvalidResponse,
    InvalidURL,
    PaginationLimitExceeded,
    RateLimitExhausted,
    RefreshFailed,
    TransportError,
    Unauthorized,
    ZohoBooksError,
)
from .executor import AsyncRequestExecutor, RequestExecutor
from .mime import content_type
from .multipart import FilePart, encode_multipart
from .ratelimit import AsyncRateLimiter, RateLimiter
from .resources import RESOURCES, Resource
from .state import TokenPair
from .tokens import AsyncTokenStore, TokenStore, build_authorization_url
from .types import Region, RequestSpec, RetryConfig, TransportResponse, ZohoConfig

__all__ = [
    "ZohoConfig",
    "Region",
    "RetryConfig",
    "RequestSpec",
    "TransportResponse",
    "TokenPair",
    "BooksClient",
    "AsyncBooksClient",
    "RequestExecutor",
    "AsyncRequestExecutor",
    "RateLimiter",
    "AsyncRateLimiter",
    "TokenStore",
    "AsyncTokenStore",
    "build_authorization_url",
    "AuthProvider",
    "NoAuth",
    "StaticTokenAuth",
    "OAuthTokenAuth",
    "CallableAuth",
    "coerce_auth",
    "RequestsTransport",
    "HttpxTransport",
    "AiohttpTransport",
    "FilePart",
    "encode_multipart",
    "content_type",
    "Resource",
    "RESOURCES",
    "load_config_from_env",
    "ZohoBooksError",
    "InvalidURL",
    "InvalidResponse",
    "Unauthorized",
    "RateLimitExhausted",
    "HTTPError",
    "TransportError",
    "RefreshFailed",
    "DecodingError",
    "APIError",
    "PaginationLimitExceeded",
]
