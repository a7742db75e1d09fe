from __future__ import annotations

import asyncio
import json
import ssl
from dataclasses import dataclass, field
from http.client import HTTPException
from typing import Any, Mapping, Optional, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from apiman.client.errors import TransportError


@dataclass(frozen=True, slots=True)
class HttpRequest:
    """An outgoing request, fully built and ready to send."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """HTTP response wrapper.

    Security notes:
    - Treat `body_bytes` as untrusted.

    """

    status: int
    headers: Mapping[str, str]
    body_bytes: bytes
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""

        lname = name.lower()
        for k, v in self.headers.items():
            if k.lower() == lname:
                return v
        return None

    def json(self) -> Any:
        """Decode body as JSON."""

        return json.loads(self.body_bytes.decode("utf-8", errors="strict"))


class Transport(Protocol):
    """Sends one request and returns the raw response.

    Implementations raise on network failure and return a response for any
    HTTP status, error statuses included.
    """

    async def send(self, request: HttpRequest) -> HttpResponse: ...


class UrllibTransport:
    """Default transport built on urllib.

    The blocking call runs in a worker thread so the event loop stays free.

    Security notes:
    - Uses default SSL context (verification ON).
    """

    async def send(self, request: HttpRequest) -> HttpResponse:
        return await asyncio.to_thread(self._send_blocking, request)

    def _send_blocking(self, request: HttpRequest) -> HttpResponse:
        req = Request(url=request.url, data=request.body, method=request.method)
        for name, value in request.headers.items():
            req.add_header(name, value)
        if request.body is not None:
            req.add_header("Content-Length", str(len(request.body)))
        return _do_request(req)


def _do_request(req: Request) -> HttpResponse:
    """Execute a request.

    Any failure to obtain a complete response (refused, reset, truncated
    body) raises TransportError.
    """

    try:
        ctx = ssl.create_default_context()
        with urlopen(req, context=ctx) as resp:
            body = resp.read()
            headers = {k: v for k, v in resp.headers.items()}
            return HttpResponse(
                status=int(resp.status), headers=headers, body_bytes=body, url=resp.geturl()
            )
    except HTTPError as e:
        try:
            body = e.read() if e.fp is not None else b""
        except (OSError, HTTPException) as read_err:
            raise TransportError(f"network error: {read_err}", cause=read_err) from read_err
        headers = dict(getattr(e, "headers", {}) or {})
        return HttpResponse(
            status=int(getattr(e, "code", 0) or 0),
            headers=headers,
            body_bytes=body,
            url=req.full_url,
        )
    except (URLError, OSError, HTTPException) as e:
        raise TransportError(f"network error: {e}", cause=e) from e
