"""Typed failures of the AtCoder page fetcher and parsers.

The crawler only looks at the class of an error:

- EmptyContents             end of listing, not an error for the crawl
- AuthorizationError        InvalidSession / Forbidden, never retried, aborts the run
- HtmlParseError            structural, never retried
- everything else           transient, retried with a fixed delay
"""
from typing import Optional


class AtCoderClientError(Exception):
    retryable: bool = True
    default_message: str = "AtCoder request failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    def is_empty_content(self) -> bool:
        return isinstance(self, EmptyContents)


class AuthorizationError(AtCoderClientError):
    retryable = False


class InvalidSession(AuthorizationError):
    default_message = "Session is invalid or expired (HTTP 401 or redirect)"


class Forbidden(AuthorizationError):
    default_message = "Access is forbidden (HTTP 403)"


class NotFound(AtCoderClientError):
    default_message = "Requested page does not exist (HTTP 404)"


class ServerError(AtCoderClientError):
    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Server error (HTTP {status_code})")


class UnexpectedHttpStatus(AtCoderClientError):
    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Unexpected HTTP status code: {status_code}")


class TransportError(AtCoderClientError):
    default_message = "Network error while talking to AtCoder"


class EmptyContents(AtCoderClientError):
    retryable = False
    default_message = "The page contains no meaningful contents"


class HtmlParseError(AtCoderClientError):
    retryable = False
    default_message = "Failed to parse HTML content"
