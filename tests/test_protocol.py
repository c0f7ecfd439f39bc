import io
import json
from pathlib import Path
import threading
import urllib.request

import pytest

from uicat.config import AppConfig
from uicat.mcp.protocol import ToolProtocol
from uicat.mcp.server_http import make_server
from uicat.mcp.server_stdio import serve_lines
from uicat.service import CatalogService


@pytest.fixture
def service(cfg: AppConfig, catalog_file: Path) -> CatalogService:
    svc = CatalogService(cfg)
    svc.import_catalog(catalog_file)
    return svc


def test_search_tool_returns_envelope(service: CatalogService) -> None:
    protocol = ToolProtocol(service)
    out = protocol.handle(
        {"tool": "uicat_search", "args": {"query": "dialog", "limit": 3, "motion": ["minimal"], "debug": True}}
    )

    assert out["ok"] is True
    result = out["result"]
    assert result["mode"] == "strict"
    assert result["filters"]["motion"] == ["minimal"]
    assert result["results"][0]["id"] == "modal-dialog"
    assert result["debug"]["constants"]["rrf_k"] == 20
    assert {"strict_result_count", "candidate_count", "result_count"} <= result.keys()


def test_search_tool_relax_flag(service: CatalogService) -> None:
    out = ToolProtocol(service).handle({"tool": "uicat_search", "args": {"query": "xylophone", "relax": True}})
    assert out["ok"] is True
    assert out["result"]["relaxed"] is True
    assert out["result"]["strict_result_count"] == 0


def test_validation_errors_become_error_responses(service: CatalogService) -> None:
    protocol = ToolProtocol(service)
    assert protocol.handle({"tool": "uicat_search", "args": {"query": " "}}) == {
        "ok": False,
        "error": "Search query must be non-empty.",
    }
    out = protocol.handle({"tool": "uicat_search", "args": {"query": "x", "limit": 0}})
    assert out["ok"] is False


def test_get_tool_and_suggestions(service: CatalogService) -> None:
    protocol = ToolProtocol(service)

    found = protocol.handle({"tool": "uicat_get", "args": {"id": "Select-Menu"}})
    assert found["ok"] is True
    assert found["result"]["id"] == "select-menu"

    missing = protocol.handle({"tool": "uicat_get", "args": {"id": "menu-x"}})
    assert missing["ok"] is False
    assert "not found" in missing["error"]

    partial = protocol.handle({"tool": "uicat_get", "args": {"id": "dialog"}})
    assert partial["ok"] is False
    assert "modal-dialog" in partial["error"]


def test_status_and_unknown_tool(service: CatalogService) -> None:
    protocol = ToolProtocol(service)
    status = protocol.handle({"method": "uicat_status"})
    assert status["ok"] is True
    assert status["result"]["components"] == 6

    assert protocol.handle({"tool": "nope"}) == {"ok": False, "error": "unknown tool: nope"}


def test_stdio_loop_answers_each_line(service: CatalogService) -> None:
    lines = io.StringIO(
        "\n".join(
            [
                json.dumps({"tool": "uicat_status"}),
                "",
                "{not json",
                "[1, 2]",
                "quit",
                json.dumps({"tool": "uicat_status"}),
            ]
        )
    )
    out = io.StringIO()
    assert serve_lines(ToolProtocol(service), lines, out) == 0

    replies = [json.loads(line) for line in out.getvalue().splitlines()]
    assert len(replies) == 3
    assert replies[0]["ok"] is True
    assert replies[1] == {"ok": False, "error": "invalid json"}
    assert replies[2]["ok"] is False


def test_http_server_routes(service: CatalogService) -> None:
    server = make_server(service, port=0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    base = f"http://127.0.0.1:{server.server_address[1]}"
    try:
        with urllib.request.urlopen(f"{base}/health", timeout=5) as resp:
            assert json.loads(resp.read()) == {"ok": True}

        body = json.dumps({"tool": "uicat_search", "args": {"query": "dialog"}}).encode("utf-8")
        req = urllib.request.Request(
            f"{base}/mcp",
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        with urllib.request.urlopen(req, timeout=5) as resp:
            payload = json.loads(resp.read())
        assert payload["ok"] is True
        assert payload["result"]["results"][0]["id"] == "modal-dialog"
    finally:
        server.shutdown()
        server.server_close()
