class ZohoBooksError(Exception):
    """Base class for every failure raised by the client."""


class InvalidURL(ZohoBooksError):
    def __init__(self, url: str = ""):
        self.url = url
        super().__init__(f"Invalid Zoho Books API URL: {url}" if url else "Invalid Zoho Books API URL")


class InvalidResponse(ZohoBooksError):
    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(f"Invalid API response: {detail}" if detail else "Invalid API response")


class Unauthorized(ZohoBooksError):
    def __init__(self, body: str = ""):
        self.body = body
        super().__init__("Unauthorized - access token may be expired")


class RateLimitExhausted(ZohoBooksError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Rate limit exceeded - still throttled after {attempts} retries")


class HTTPError(ZohoBooksError):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP error ({status_code}): {body}")


class TransportError(ZohoBooksError):
    def __init__(self, message: str):
        super().__init__(f"Network error: {message}")


class RefreshFailed(ZohoBooksError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Token refresh failed: {reason}")


class DecodingError(ZohoBooksError):
    def __init__(self, message: str, content: bytes = b""):
        self.content = content
        super().__init__(f"Failed to decode response: {message}")


class APIError(ZohoBooksError):
    """The API answered 2xx but reported a non-zero result code in the envelope."""

    def __init__(self, code: int | str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"Zoho API error ({code}): {message}")


class PaginationLimitExceeded(ZohoBooksError):
    def __init__(self, endpoint: str, max_pages: int):
        self.endpoint = endpoint
        self.max_pages = max_pages
        super().__init__(f"{endpoint}: server still reports more pages after {max_pages} pages")
