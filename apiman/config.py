from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from apiman.client.multipart import DEFAULT_MAX_UPLOAD_BYTES, ClosingDelimiter

_TRUTHY = {"1", "true", "TRUE", "yes", "YES"}


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Client settings. Holds configuration only, never per-call state.

    Environment:
      - APIMAN_BASE_URL: resolve relative call URLs against this
      - APIMAN_CLOSING_DELIMITER: "legacy" (default) or "standard"
      - APIMAN_CHECK_STATUS: 1/true/yes raises on non-2xx before decoding
      - APIMAN_MAX_UPLOAD_BYTES: cap for files read from disk
      - APIMAN_DEFAULT_HEADERS: "Name: value;Other: value"

    """

    base_url: str = ""
    closing: ClosingDelimiter = ClosingDelimiter.LEGACY
    check_status: bool = False
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    default_headers: Mapping[str, str] = field(default_factory=dict)

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        env = os.environ if environ is None else environ

        base_url = (env.get("APIMAN_BASE_URL") or "").strip()
        if base_url and not base_url.endswith("/"):
            base_url += "/"

        closing_raw = (env.get("APIMAN_CLOSING_DELIMITER") or "legacy").strip().lower()
        try:
            closing = ClosingDelimiter(closing_raw)
        except ValueError:
            closing = ClosingDelimiter.LEGACY

        max_raw = (env.get("APIMAN_MAX_UPLOAD_BYTES") or "").strip()
        try:
            max_upload_bytes = int(max_raw) if max_raw else DEFAULT_MAX_UPLOAD_BYTES
        except ValueError:
            max_upload_bytes = DEFAULT_MAX_UPLOAD_BYTES

        return ClientConfig(
            base_url=base_url,
            closing=closing,
            check_status=env.get("APIMAN_CHECK_STATUS", "").strip() in _TRUTHY,
            max_upload_bytes=max_upload_bytes,
            default_headers=parse_headers(env.get("APIMAN_DEFAULT_HEADERS", "")),
        )


def parse_headers(raw: str) -> Dict[str, str]:
    """Parse "Name: value;Other: value" into a header mapping.

    Entries without a name or a colon are ignored.
    """

    out: Dict[str, str] = {}
    for entry in (raw or "").split(";"):
        entry = entry.strip()
        if not entry or ":" not in entry:
            continue
        name, value = entry.split(":", 1)
        name = name.strip()
        if not name:
            continue
        out[name] = value.strip()
    return out
