from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
    overload,
)
from urllib.parse import urljoin

from pydantic import TypeAdapter, ValidationError

from apiman.client.errors import DecodeError, HttpStatusError
from apiman.client.multipart import (
    FileAttachment,
    content_type_for,
    encode_multipart,
    new_boundary,
)
from apiman.client.progress import NullProgress, ProgressIndicator
from apiman.client.transport import HttpRequest, HttpResponse, Transport, UrllibTransport
from apiman.config import ClientConfig

log = logging.getLogger("apiman.client")

T = TypeVar("T")


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ApiResponse(Generic[T]):
    """Decoded payload plus the raw response it came from.

    `data` is None only when decoding was skipped (result_type=None).
    """

    data: Optional[T]
    response: HttpResponse


def decode_json(body: bytes, result_type: Any, response: Optional[HttpResponse] = None) -> Any:
    """Parse `body` as JSON and validate it against `result_type`.

    Raises DecodeError for malformed JSON and for shape mismatches alike.
    """

    try:
        return TypeAdapter(result_type).validate_json(body)
    except ValidationError as e:
        raise DecodeError(
            f"response does not decode as {getattr(result_type, '__name__', result_type)}: "
            f"{e.error_count()} error(s)",
            response=response,
            cause=e,
        ) from e


class ApiClient:
    """Issue multipart form requests and decode JSON responses.

    One instance holds configuration and collaborators only. Every call
    builds its own request, boundary and body.

    Security notes:
    - Treat server responses as untrusted input.
    - Request bodies and file bytes are never logged.

    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        transport: Optional[Transport] = None,
        progress: Optional[ProgressIndicator] = None,
        boundary_factory: Callable[[], str] = new_boundary,
    ):
        self.config = config or ClientConfig()
        self.transport: Transport = transport or UrllibTransport()
        self.progress: ProgressIndicator = progress or NullProgress()
        self._boundary_factory = boundary_factory

    def resolve_url(self, url: str) -> str:
        base = self.config.base_url
        if not base:
            return url
        return urljoin(base.rstrip("/") + "/", url.lstrip("/"))

    def build_request(
        self,
        url: str,
        method: HttpMethod = HttpMethod.GET,
        headers: Optional[Mapping[str, str]] = None,
        parameters: Optional[Mapping[str, Any]] = None,
        files: Optional[Sequence[FileAttachment]] = None,
    ) -> HttpRequest:
        """Build the outgoing request with a fresh boundary.

        Content-Type is always the multipart one. A caller-supplied
        Content-Type (any casing) is dropped.
        """

        merged: Dict[str, str] = {}
        for source in (self.config.default_headers, headers or {}):
            for name, value in source.items():
                merged[name] = value
        merged = {k: v for k, v in merged.items() if k.lower() != "content-type"}

        boundary = self._boundary_factory()
        merged["Content-Type"] = content_type_for(boundary)
        body = encode_multipart(parameters, files, boundary, closing=self.config.closing)
        return HttpRequest(
            method=HttpMethod(method).value,
            url=self.resolve_url(url),
            headers=merged,
            body=body,
        )

    @overload
    async def execute(
        self,
        url: str,
        method: HttpMethod = ...,
        headers: Optional[Mapping[str, str]] = ...,
        parameters: Optional[Mapping[str, Any]] = ...,
        files: Optional[Sequence[FileAttachment]] = ...,
        show_progress: bool = ...,
        *,
        result_type: None,
    ) -> ApiResponse[None]: ...

    @overload
    async def execute(
        self,
        url: str,
        method: HttpMethod = ...,
        headers: Optional[Mapping[str, str]] = ...,
        parameters: Optional[Mapping[str, Any]] = ...,
        files: Optional[Sequence[FileAttachment]] = ...,
        show_progress: bool = ...,
        *,
        result_type: type[T],
    ) -> ApiResponse[T]: ...

    @overload
    async def execute(
        self,
        url: str,
        method: HttpMethod = ...,
        headers: Optional[Mapping[str, str]] = ...,
        parameters: Optional[Mapping[str, Any]] = ...,
        files: Optional[Sequence[FileAttachment]] = ...,
        show_progress: bool = ...,
        *,
        result_type: Any = ...,
    ) -> ApiResponse[Any]: ...

    async def execute(
        self,
        url: str,
        method: HttpMethod = HttpMethod.GET,
        headers: Optional[Mapping[str, str]] = None,
        parameters: Optional[Mapping[str, Any]] = None,
        files: Optional[Sequence[FileAttachment]] = None,
        show_progress: bool = True,
        *,
        result_type: Any = Any,
    ) -> ApiResponse[Any]:
        """Send one request and decode its JSON body into `result_type`.

        Transport failures propagate unchanged. Decode failures raise
        DecodeError. When `show_progress` is set, the progress indicator gets
        exactly one show and one hide, whatever the outcome.
        """

        if show_progress:
            self.progress.show()
        start = time.monotonic()
        outcome = "error"
        request: Optional[HttpRequest] = None
        response: Optional[HttpResponse] = None
        try:
            request = self.build_request(url, method, headers, parameters, files)
            response = await self.transport.send(request)

            if self.config.check_status and not response.ok:
                raise HttpStatusError(response)

            data = None
            if result_type is not None:
                data = decode_json(response.body_bytes, result_type, response)
            outcome = "ok"
            return ApiResponse(data=data, response=response)
        finally:
            if show_progress:
                self.progress.hide()
            log.info(
                "api_call",
                extra={
                    "method": request.method if request else getattr(method, "value", method),
                    "url": request.url if request else url,
                    "status": response.status if response else None,
                    "outcome": outcome,
                    "duration_ms": int((time.monotonic() - start) * 1000),
                },
            )

    @overload
    async def get(self, url: str, *, result_type: type[T], **kwargs: Any) -> ApiResponse[T]: ...

    @overload
    async def get(self, url: str, **kwargs: Any) -> ApiResponse[Any]: ...

    async def get(self, url: str, **kwargs: Any) -> ApiResponse[Any]:
        return await self.execute(url, HttpMethod.GET, **kwargs)

    @overload
    async def post(self, url: str, *, result_type: type[T], **kwargs: Any) -> ApiResponse[T]: ...

    @overload
    async def post(self, url: str, **kwargs: Any) -> ApiResponse[Any]: ...

    async def post(self, url: str, **kwargs: Any) -> ApiResponse[Any]:
        return await self.execute(url, HttpMethod.POST, **kwargs)

    @overload
    async def put(self, url: str, *, result_type: type[T], **kwargs: Any) -> ApiResponse[T]: ...

    @overload
    async def put(self, url: str, **kwargs: Any) -> ApiResponse[Any]: ...

    async def put(self, url: str, **kwargs: Any) -> ApiResponse[Any]:
        return await self.execute(url, HttpMethod.PUT, **kwargs)

    @overload
    async def delete(
        self, url: str, *, result_type: type[T], **kwargs: Any
    ) -> ApiResponse[T]: ...

    @overload
    async def delete(self, url: str, **kwargs: Any) -> ApiResponse[Any]: ...

    async def delete(self, url: str, **kwargs: Any) -> ApiResponse[Any]:
        return await self.execute(url, HttpMethod.DELETE, **kwargs)
