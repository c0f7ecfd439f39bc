from __future__ import annotations

import json
import logging
import sys
from typing import TextIO

from uicat.mcp.protocol import ToolProtocol
from uicat.service import CatalogService

logger = logging.getLogger(__name__)

STOP_WORDS = {"quit", "exit", "shutdown"}


def _reply(out: TextIO, payload: dict) -> None:
    out.write(json.dumps(payload) + "\n")
    out.flush()


def serve_lines(protocol: ToolProtocol, lines: TextIO, out: TextIO) -> int:
    """Answer one JSON request per line until EOF or a stop word."""
    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        if line in STOP_WORDS:
            return 0
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("rejecting non-json line: %r", line[:80])
            _reply(out, {"ok": False, "error": "invalid json"})
            continue
        if not isinstance(payload, dict):
            _reply(out, {"ok": False, "error": "request must be a json object"})
            continue
        _reply(out, protocol.handle(payload))
    return 0


def run_stdio_server(service: CatalogService) -> int:
    return serve_lines(ToolProtocol(service), sys.stdin, sys.stdout)
