from __future__ import annotations

from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
import json
import logging
from typing import Any

from uicat.mcp.protocol import ToolProtocol
from uicat.service import CatalogService

logger = logging.getLogger(__name__)


class _Handler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    server_version = "uicat-tools"

    def do_GET(self) -> None:  # noqa: N802
        if self.path == "/health":
            self._write_json(200, {"ok": True})
            return
        self._write_json(404, {"ok": False, "error": "not found"})

    def do_POST(self) -> None:  # noqa: N802
        if self.path != "/mcp":
            self._write_json(404, {"ok": False, "error": "not found"})
            return

        length = int(self.headers.get("Content-Length", "0"))
        try:
            payload = json.loads(self.rfile.read(length).decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            self._write_json(400, {"ok": False, "error": "invalid json"})
            return
        if not isinstance(payload, dict):
            self._write_json(400, {"ok": False, "error": "request must be a json object"})
            return

        protocol: ToolProtocol = self.server.protocol  # type: ignore[attr-defined]
        self._write_json(200, protocol.handle(payload))

    def log_message(self, fmt: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), fmt % args)

    def _write_json(self, status: int, payload: dict[str, Any]) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class ToolHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], protocol: ToolProtocol):
        self.protocol = protocol
        super().__init__(address, _Handler)


def make_server(service: CatalogService, host: str = "127.0.0.1", port: int = 8181) -> ToolHTTPServer:
    return ToolHTTPServer((host, port), ToolProtocol(service))


def run_http_server(service: CatalogService, host: str = "127.0.0.1", port: int = 8181) -> int:
    server = make_server(service, host=host, port=port)
    logger.info("serving tools on http://%s:%d/mcp", host, server.server_address[1])
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
    return 0
