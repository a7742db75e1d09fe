from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from apiman.client.transport import HttpResponse


class ApiClientError(Exception):
    """
    Base exception for all client-side call failures.
    """

    pass


class TransportError(ApiClientError):
    """
    Raised when the request never produced a usable HTTP response
    (connection refused, DNS failure, reset, TLS failure).
    """

    def __init__(self, message: str, *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class HttpStatusError(TransportError):
    """
    Raised for non-2xx responses when status checking is enabled.
    """

    def __init__(self, response: "HttpResponse"):
        super().__init__(f"HTTP {response.status} from {response.url}")
        self.response = response


class DecodeError(ApiClientError, ValueError):
    """
    Raised when the response body is not JSON or does not match the
    requested result type.
    """

    def __init__(
        self,
        message: str,
        *,
        response: Optional["HttpResponse"] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.response = response
        self.cause = cause
