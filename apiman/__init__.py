"""apiman: a small async HTTP helper for multipart form APIs."""

from apiman.client import ApiClient, ApiResponse, FileAttachment, HttpMethod  # noqa: F401
from apiman.config import ClientConfig  # noqa: F401

__version__ = "0.3.0"
