from __future__ import annotations

import asyncio
import json
import socket
import threading
from http.client import HTTPException
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Tuple

import pytest

import apiman.cli.main as cli
from apiman.client import ApiClient, DecodeError, RecordingProgress, TransportError
from apiman.client.transport import HttpRequest, UrllibTransport


class _Handler(BaseHTTPRequestHandler):
    def _reply(self, status: int, body: bytes, content_type: str = "application/json") -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _echo(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        raw = self.rfile.read(length) if length else b""
        if self.path == "/broken":
            self._reply(500, b"Internal Server Error", "text/plain")
            return
        out = {
            "method": self.command,
            "path": self.path,
            "content_type": self.headers.get("Content-Type"),
            "x_trace": self.headers.get("X-Trace"),
            "body": raw.decode("latin-1"),
        }
        self._reply(200, json.dumps(out).encode("utf-8"))

    do_GET = _echo
    do_POST = _echo
    do_PUT = _echo
    do_DELETE = _echo

    def log_message(self, format, *args):  # noqa: A002
        pass


@pytest.fixture()
def echo_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


def _unused_port() -> int:
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


def test_urllib_transport_sends_multipart_body(echo_server) -> None:
    client = ApiClient(boundary_factory=lambda: "B1")
    result = asyncio.run(
        client.execute(
            f"{echo_server}/upload",
            "POST",
            headers={"X-Trace": "t-1"},
            parameters={"title": "hello"},
        )
    )

    assert result.response.status == 200
    assert result.response.header("content-type") == "application/json"
    assert result.data["method"] == "POST"
    assert result.data["path"] == "/upload"
    assert result.data["x_trace"] == "t-1"
    assert result.data["content_type"] == "multipart/form-data; boundary=B1"
    assert result.data["body"] == (
        '--B1\r\nContent-Disposition: form-data; name="title"\r\n\r\nhello\r\n--B1\r\n'
    )


def test_urllib_transport_returns_error_statuses(echo_server) -> None:
    response = asyncio.run(
        UrllibTransport().send(HttpRequest(method="GET", url=f"{echo_server}/broken"))
    )
    assert response.status == 500
    assert response.ok is False
    assert response.body_bytes == b"Internal Server Error"


def test_server_error_surfaces_as_decode_error(echo_server) -> None:
    progress = RecordingProgress()
    client = ApiClient(progress=progress)

    with pytest.raises(DecodeError) as ei:
        asyncio.run(client.execute(f"{echo_server}/broken", "DELETE"))

    assert ei.value.response.status == 500
    assert progress.signals == ["show", "hide"]


def test_connection_refused_is_transport_error() -> None:
    progress = RecordingProgress()
    client = ApiClient(progress=progress)

    with pytest.raises(TransportError) as ei:
        asyncio.run(client.execute(f"http://127.0.0.1:{_unused_port()}/x", "POST"))

    assert ei.value.cause is not None
    assert progress.count("show") == 1
    assert progress.count("hide") == 1


def _serve_truncated_once(status_line: bytes) -> Tuple[int, threading.Thread]:
    """Accept one connection, promise 100 body bytes, send 5 and close."""

    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    port = listener.getsockname()[1]

    def run() -> None:
        conn, _ = listener.accept()
        with conn, listener:
            raw = b""
            while b"\r\n\r\n" not in raw:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                raw += chunk
            head, _, rest = raw.partition(b"\r\n\r\n")
            length = 0
            for line in head.split(b"\r\n")[1:]:
                name, _, value = line.partition(b":")
                if name.strip().lower() == b"content-length":
                    length = int(value.strip())
            while len(rest) < length:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                rest += chunk
            conn.sendall(status_line + b"\r\nContent-Length: 100\r\n\r\n" + b'{"a":')

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return port, thread


@pytest.mark.parametrize("status_line", [b"HTTP/1.1 200 OK", b"HTTP/1.1 500 Internal Server Error"])
def test_truncated_body_is_transport_error(status_line) -> None:
    port, thread = _serve_truncated_once(status_line)
    progress = RecordingProgress()
    client = ApiClient(progress=progress)

    with pytest.raises(TransportError) as ei:
        asyncio.run(client.execute(f"http://127.0.0.1:{port}/upload", "POST"))
    thread.join(timeout=5)

    assert isinstance(ei.value.cause, HTTPException)
    assert progress.signals == ["show", "hide"]


def test_cli_exits_2_on_truncated_body(capsys) -> None:
    port, thread = _serve_truncated_once(b"HTTP/1.1 200 OK")
    rc = cli.main(["call", f"http://127.0.0.1:{port}/upload", "-X", "POST", "--no-progress"])
    thread.join(timeout=5)

    assert rc == 2
    assert "network error" in capsys.readouterr().err
