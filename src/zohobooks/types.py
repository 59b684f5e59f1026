from dataclasses import dataclass, field
from enum import Enum
from typing import Union

# (name, value) pair attached to a single outgoing request
AuthHeader = tuple[str, str]

# Query items keep their order and may repeat a key
QueryParams = Union[list[tuple[str, str]], tuple[tuple[str, str], ...]]


class Region(str, Enum):
    COM = "com"
    EU = "eu"
    IN = "in"
    AU = "au"
    JP = "jp"

    @property
    def api_base_url(self) -> str:
        return f"https://www.zohoapis.{self.value}/books/v3"

    @property
    def token_url(self) -> str:
        return f"https://accounts.zoho.{self.value}/oauth/v2/token"

    @property
    def authorization_url(self) -> str:
        return f"https://accounts.zoho.{self.value}/oauth/v2/auth"


@dataclass(frozen=True)
class ZohoConfig:
    client_id: str
    client_secret: str
    access_token: str
    refresh_token: str
    organization_id: str
    region: Region = Region.COM
    # Overrides for self-hosted proxies and tests; default to the region's URLs.
    base_url: str | None = None
    token_url: str | None = None

    @property
    def api_base_url(self) -> str:
        return self.base_url or Region(self.region).api_base_url

    @property
    def oauth_token_url(self) -> str:
        return self.token_url or Region(self.region).token_url


@dataclass(frozen=True)
class RetryConfig:
    # 429 handling: fixed cooldown, unbounded unless max_throttle_retries is set
    throttle_cooldown: float = 60.0
    max_throttle_retries: int | None = None

    # list endpoints
    per_page: int = 200
    max_pages: int = 1000


@dataclass(frozen=True)
class RequestSpec:
    endpoint: str
    method: str = "GET"
    params: QueryParams = ()
    body: bytes | None = None
    headers: dict[str, str] = field(default_factory=dict)
    retry_on_auth_failure: bool = True


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        try:
            return self.content.decode("utf-8")
        except UnicodeDecodeError:
            return "Unknown error"
