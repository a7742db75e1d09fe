from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from apiman.client import (
    ApiClient,
    ApiClientError,
    ClosingDelimiter,
    ConsoleSpinner,
    FileAttachment,
    HttpMethod,
)
from apiman.config import ClientConfig
from apiman.utils.json_safe import to_jsonable

log = logging.getLogger("apiman.cli")


def _print_json(obj: object) -> None:
    """Print JSON to stdout."""
    print(json.dumps(obj, indent=2, sort_keys=True, default=str))


def _parse_header(raw: str) -> Tuple[str, str]:
    if ":" not in raw:
        raise argparse.ArgumentTypeError(f"header must look like 'Name: value': {raw!r}")
    name, value = raw.split(":", 1)
    if not name.strip():
        raise argparse.ArgumentTypeError(f"empty header name: {raw!r}")
    return name.strip(), value.strip()


def _parse_field(raw: str) -> Tuple[str, str]:
    if "=" not in raw:
        raise argparse.ArgumentTypeError(f"field must look like key=value: {raw!r}")
    key, value = raw.split("=", 1)
    return key, value


def _parse_file(raw: str) -> Tuple[str, str, Optional[str]]:
    """Parse ``field=path`` or ``field=path;type=mime``."""

    field_name, path = _parse_field(raw)
    mime: Optional[str] = None
    if ";type=" in path:
        path, mime = path.split(";type=", 1)
    if not field_name or not path:
        raise argparse.ArgumentTypeError(f"file must look like field=path: {raw!r}")
    return field_name, path, mime or None


def cmd_call(args: argparse.Namespace) -> int:
    """Send one multipart request and print the decoded response.

    Security notes:
    - Treat server response as untrusted.
    - File contents are never echoed.

    """

    config = ClientConfig.from_env()
    if args.standard_framing:
        config = replace(config, closing=ClosingDelimiter.STANDARD)
    if args.check_status:
        config = replace(config, check_status=True)

    headers: Dict[str, str] = dict(args.header or [])
    parameters: Dict[str, str] = dict(args.field or [])
    try:
        files: List[FileAttachment] = [
            FileAttachment.from_path(name, path, mime, max_bytes=config.max_upload_bytes)
            for name, path, mime in (args.file or [])
        ]
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    client = ApiClient(config, progress=ConsoleSpinner())
    try:
        result = asyncio.run(
            client.execute(
                args.url,
                HttpMethod(args.method),
                headers=headers,
                parameters=parameters,
                files=files,
                show_progress=not args.no_progress,
            )
        )
    except ApiClientError as e:
        log.debug("call failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 2

    _print_json(
        {
            "status": result.response.status,
            "headers": dict(result.response.headers),
            "data": to_jsonable(result.data),
        }
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser."""
    p = argparse.ArgumentParser(prog="apiman", description="Multipart API client")
    p.add_argument("--log-level", default="warning", help="Python log level")
    sub = p.add_subparsers(dest="cmd", required=True)

    c = sub.add_parser("call", help="Send a multipart request and decode the JSON reply")
    c.add_argument("url", help="Absolute URL, or path relative to APIMAN_BASE_URL")
    c.add_argument(
        "-X",
        "--method",
        default="GET",
        type=str.upper,
        choices=[m.value for m in HttpMethod],
        help="HTTP method (default: GET)",
    )
    c.add_argument(
        "-H", "--header", action="append", type=_parse_header, help="'Name: value' (repeatable)"
    )
    c.add_argument(
        "-F", "--field", action="append", type=_parse_field, help="key=value form field (repeatable)"
    )
    c.add_argument(
        "--file",
        action="append",
        type=_parse_file,
        help="field=path[;type=mime] file part (repeatable)",
    )
    c.add_argument(
        "--standard-framing",
        action="store_true",
        help="Close the body with --boundary-- instead of the legacy --boundary",
    )
    c.add_argument(
        "--check-status", action="store_true", help="Fail on non-2xx before decoding"
    )
    c.add_argument("--no-progress", action="store_true", help="Do not show a spinner")
    c.set_defaults(func=cmd_call)

    return p


def main(argv: List[str] | None = None) -> int:
    """CLI entry."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=str(args.log_level).upper(), stream=sys.stderr)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
