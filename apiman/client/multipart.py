from __future__ import annotations

import mimetypes
import os
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence

DEFAULT_MAX_UPLOAD_BYTES = 25 * 1024 * 1024

CRLF = "\r\n"


class ClosingDelimiter(Enum):
    """How the body is terminated after the last part.

    LEGACY emits ``--{boundary}\\r\\n``. Servers we talk to accept it, but it
    is not the RFC 7578 close delimiter. STANDARD emits ``--{boundary}--\\r\\n``.
    """

    LEGACY = "legacy"
    STANDARD = "standard"


@dataclass(frozen=True, slots=True)
class FileAttachment:
    """A single file part of a multipart body.

    Security notes:
    - `data` is embedded verbatim. It must not contain the boundary line.

    """

    name: str
    filename: str
    mime_type: str
    data: bytes

    @classmethod
    def from_path(
        cls,
        name: str,
        path: str,
        mime_type: Optional[str] = None,
        max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ) -> "FileAttachment":
        """Build an attachment from a local file, enforcing a size cap."""

        filename = os.path.basename(path)
        data = _read_file_bounded(path, max_bytes)
        ct = mime_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        return cls(name=name, filename=filename, mime_type=ct, data=data)


def _read_file_bounded(path: str, max_bytes: int) -> bytes:
    """Read file bytes up to a maximum."""

    st = os.stat(path)
    if st.st_size > max_bytes:
        raise ValueError(f"file too large for client upload cap: {st.st_size} > {max_bytes}")
    with open(path, "rb") as f:
        data = f.read()
    if len(data) > max_bytes:
        raise ValueError("file too large for client upload cap")
    return data


def new_boundary() -> str:
    """Return a fresh boundary token. Never reuse one across requests."""

    return "----apiman-" + uuid.uuid4().hex


def closing_line(boundary: str, closing: ClosingDelimiter = ClosingDelimiter.LEGACY) -> bytes:
    if closing is ClosingDelimiter.STANDARD:
        return f"--{boundary}--{CRLF}".encode("utf-8")
    return f"--{boundary}{CRLF}".encode("utf-8")


def encode_multipart(
    parameters: Optional[Mapping[str, Any]],
    files: Optional[Sequence[FileAttachment]],
    boundary: str,
    *,
    closing: ClosingDelimiter = ClosingDelimiter.LEGACY,
) -> bytes:
    """Encode multipart/form-data.

    Parameter parts come first in mapping order, then file parts in the
    order given. Values are rendered with ``str()``. Nothing is escaped.

    Security notes:
    - Caller should enforce size limits.
    """

    parts: List[bytes] = []

    for name, value in (parameters or {}).items():
        parts.append(f"--{boundary}{CRLF}".encode("utf-8"))
        parts.append(f'Content-Disposition: form-data; name="{name}"{CRLF}{CRLF}'.encode("utf-8"))
        parts.append(f"{value}{CRLF}".encode("utf-8"))

    for f in files or ():
        parts.append(f"--{boundary}{CRLF}".encode("utf-8"))
        parts.append(
            f'Content-Disposition: form-data; name="{f.name}"; filename="{f.filename}"{CRLF}'.encode(
                "utf-8"
            )
        )
        parts.append(f"Content-Type: {f.mime_type}{CRLF}{CRLF}".encode("utf-8"))
        parts.append(f.data)
        parts.append(CRLF.encode("utf-8"))

    parts.append(closing_line(boundary, closing))
    return b"".join(parts)


def content_type_for(boundary: str) -> str:
    return f"multipart/form-data; boundary={boundary}"
