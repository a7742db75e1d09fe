"""Async HTTP client for multipart form APIs.

Security notes:
- Treat server responses as untrusted input.
- Avoid printing or logging raw file bytes.
"""

from .errors import ApiClientError, DecodeError, HttpStatusError, TransportError
from .executor import ApiClient, ApiResponse, HttpMethod, decode_json
from .multipart import ClosingDelimiter, FileAttachment, encode_multipart, new_boundary
from .progress import (
    ConsoleSpinner,
    LoggingProgress,
    NullProgress,
    ProgressIndicator,
    RecordingProgress,
)
from .transport import HttpRequest, HttpResponse, Transport, UrllibTransport

__all__ = [
    "ApiClient",
    "ApiClientError",
    "ApiResponse",
    "ClosingDelimiter",
    "ConsoleSpinner",
    "DecodeError",
    "FileAttachment",
    "HttpMethod",
    "HttpRequest",
    "HttpResponse",
    "HttpStatusError",
    "LoggingProgress",
    "NullProgress",
    "ProgressIndicator",
    "RecordingProgress",
    "Transport",
    "TransportError",
    "UrllibTransport",
    "decode_json",
    "encode_multipart",
    "new_boundary",
]
