import json
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from uicat.cli import app

runner = CliRunner(env={"NO_COLOR": "1"})


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "db_path": str(tmp_path / "catalog.sqlite3"),
                "pid_path": str(tmp_path / "tools.pid"),
            }
        )
    )
    return path


def _invoke(config_path: Path, *args: str):
    return runner.invoke(app, ["--config", str(config_path), *args])


@pytest.fixture
def imported(config_path: Path, catalog_file: Path) -> Path:
    result = _invoke(config_path, "import", str(catalog_file), "--json")
    assert result.exit_code == 0, result.output
    return config_path


def test_import_reports_counts(config_path: Path, catalog_file: Path) -> None:
    result = _invoke(config_path, "import", str(catalog_file), "--json")
    assert result.exit_code == 0, result.output
    stats = json.loads(result.stdout)
    assert stats["inserted"] == 6
    assert stats["embeddings"]["embedded"] == 6


def test_import_of_invalid_catalog_exits_nonzero(config_path: Path, tmp_path: Path) -> None:
    bad = tmp_path / "bad.yaml"
    bad.write_text(yaml.safe_dump([{"id": "x", "name": "X", "motionLevel": "wobbly"}]))
    result = _invoke(config_path, "import", str(bad))
    assert result.exit_code == 1
    assert "invalid component at index 0" in result.output


def test_search_json_envelope(imported: Path) -> None:
    result = _invoke(imported, "search", "dialog", "--json", "--motion", "Minimal")
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["mode"] == "strict"
    assert payload["filters"]["motion"] == ["minimal"]
    assert payload["results"][0]["id"] == "modal-dialog"


def test_search_human_output(imported: Path) -> None:
    result = _invoke(imported, "search", "dialog", "--limit", "1")
    assert result.exit_code == 0, result.output
    assert "Modal Dialog" in result.output
    assert "(modal-dialog)" in result.output
    assert "@radix-ui/react-dialog (runtime)" in result.output


def test_relaxed_search_prints_fallback_notice(imported: Path) -> None:
    result = _invoke(imported, "search", "xylophone", "--relax")
    assert result.exit_code == 0, result.output
    assert "No strict matches; showing relaxed best-effort results." in result.output


def test_empty_query_exits_with_error(imported: Path) -> None:
    result = _invoke(imported, "search", "   ")
    assert result.exit_code == 1
    assert "Search query must be non-empty." in result.output


def test_non_positive_limit_exits_with_error(imported: Path) -> None:
    result = _invoke(imported, "search", "dialog", "--limit", "0")
    assert result.exit_code == 1


def test_unknown_filter_value_is_a_usage_error(imported: Path) -> None:
    result = _invoke(imported, "search", "dialog", "--motion", "wobbly")
    assert result.exit_code == 2


def test_get_and_status(imported: Path) -> None:
    got = _invoke(imported, "get", "MODAL-DIALOG", "--json")
    assert got.exit_code == 0, got.output
    assert json.loads(got.stdout)["id"] == "modal-dialog"

    missing = _invoke(imported, "get", "nope")
    assert missing.exit_code == 1

    status = _invoke(imported, "status", "--json")
    assert status.exit_code == 0, status.output
    assert json.loads(status.stdout)["components"] == 6


def test_init_config_writes_file(config_path: Path, tmp_path: Path) -> None:
    target = tmp_path / "nested" / "config.yaml"
    result = _invoke(config_path, "init-config", "--path", str(target), "--json")
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["config_path"] == str(target)
    assert target.exists()


def test_mcp_stop_without_daemon(config_path: Path) -> None:
    result = _invoke(config_path, "mcp", "stop")
    assert result.exit_code == 0
    assert "not running" in result.output


def _with_search_defaults(config_path: Path, **search: object) -> Path:
    data = yaml.safe_load(config_path.read_text())
    data["search"] = search
    config_path.write_text(yaml.safe_dump(data))
    return config_path


def test_search_uses_configured_filter_defaults(imported: Path) -> None:
    _with_search_defaults(imported, framework="react", motion=["heavy"])

    result = _invoke(imported, "search", "parallax", "--json")
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["filters"]["framework"] == "react"
    assert payload["filters"]["motion"] == ["heavy"]
    assert [r["id"] for r in payload["results"]] == ["hero-parallax"]


def test_search_flags_override_configured_defaults(imported: Path) -> None:
    _with_search_defaults(imported, framework="react", motion=["heavy"], primitive_library=["radix"])

    result = _invoke(imported, "search", "dialog", "--json", "--motion", "minimal")
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["filters"]["framework"] == "react"
    assert payload["filters"]["motion"] == ["minimal"]
    assert payload["filters"]["primitive_library"] == ["radix"]
    assert payload["results"][0]["id"] == "modal-dialog"


def test_invalid_configured_default_is_a_usage_error(imported: Path) -> None:
    _with_search_defaults(imported, motion=["wobbly"])
    result = _invoke(imported, "search", "dialog")
    assert result.exit_code == 2


def test_eval_writes_one_record_per_query(imported: Path, tmp_path: Path) -> None:
    out = tmp_path / "evals" / "run.jsonl"
    result = _invoke(imported, "eval", "dialog", "parallax", "--debug", "--limit", "3", "--out", str(out))
    assert result.exit_code == 0, result.output
    assert "Completed without errors." in result.output

    records = [json.loads(line) for line in out.read_text().splitlines()]
    assert [r["query"] for r in records] == ["dialog", "parallax"]
    first = records[0]
    assert first["success"] is True
    assert first["mode"] == "strict"
    assert first["limit"] == 3
    assert first["strict_result_count"] >= 1
    assert first["top"][0]["rank"] == 1
    assert first["top"][0]["id"] == "modal-dialog"
    assert "rrf_lexical" in first["top"][0]["scores"]
    assert len(first["top"]) <= 3
    assert first["run_timestamp_utc"]


def test_eval_ignores_configured_filters_by_default(imported: Path, tmp_path: Path) -> None:
    _with_search_defaults(imported, motion=["heavy"])
    out = tmp_path / "run.jsonl"

    plain = _invoke(imported, "eval", "dialog", "--out", str(out))
    assert plain.exit_code == 0, plain.output
    assert json.loads(out.read_text())["top"][0]["id"] == "modal-dialog"

    scoped = _invoke(imported, "eval", "dialog", "--use-project-config", "--out", str(out))
    assert scoped.exit_code == 0, scoped.output
    top_ids = [t["id"] for t in json.loads(out.read_text())["top"]]
    assert "modal-dialog" not in top_ids


def test_eval_records_failed_queries(imported: Path, tmp_path: Path) -> None:
    out = tmp_path / "run.jsonl"
    result = _invoke(imported, "eval", "   ", "dialog", "--relax", "--out", str(out))
    assert result.exit_code == 1
    assert "Completed with 1 query error(s)." in result.output

    failed, ok = [json.loads(line) for line in out.read_text().splitlines()]
    assert failed["success"] is False
    assert failed["error"] == "Search query must be non-empty."
    assert ok["success"] is True
    assert ok["mode"] == "relaxed"
