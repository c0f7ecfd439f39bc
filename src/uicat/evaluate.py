from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
from typing import Any, Sequence

from uicat.assemble import STRICT
from uicat.errors import SearchValidationError
from uicat.filters import ComponentFilters
from uicat.output_models import SearchResponse
from uicat.paths import cache_root
from uicat.service import CatalogService
from uicat.util.time import now_iso

logger = logging.getLogger(__name__)

DEFAULT_EVAL_LIMIT = 5
DEFAULT_EVAL_QUERIES = (
    "button",
    "dialog",
    "table",
    "calendar",
    "command menu",
    "tooltip",
    "checkout cart",
    "shopping cart drawer",
    "dropdown for account actions",
    "select with search",
    "multi select tags",
    "date range picker",
    "file upload drag and drop",
    "otp input",
    "pricing cards",
    "testimonials carousel",
    "faq accordion",
    "kanban board",
    "infinite scrolling list",
    "chat composer input",
)


@dataclass(slots=True)
class EvalRun:
    records: list[dict[str, Any]] = field(default_factory=list)
    failed: int = 0


def default_eval_path() -> Path:
    stamp = now_iso().replace("-", "").replace(":", "").replace("+0000", "Z")
    return cache_root() / "evals" / f"search-eval-{stamp}.jsonl"


def eval_record(
    query: str,
    mode: str,
    limit: int,
    debug: bool,
    response: SearchResponse | None = None,
    error: str | None = None,
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "run_timestamp_utc": now_iso(),
        "query": query,
        "mode": response.mode if response is not None else mode,
        "debug": debug,
        "limit": limit,
        "success": response is not None,
    }
    if response is None:
        record["error"] = error or "unknown error"
        return record

    record["result_count"] = response.result_count
    record["strict_result_count"] = response.strict_result_count
    top: list[dict[str, Any]] = []
    for rank, row in enumerate(response.results[:limit], start=1):
        item: dict[str, Any] = {"rank": rank, "id": row.id, "name": row.name, "reason": row.reason}
        if row.scores is not None:
            item["scores"] = row.scores.model_dump()
        top.append(item)
    record["top"] = top
    return record


def run_eval(
    service: CatalogService,
    queries: Sequence[str],
    limit: int = DEFAULT_EVAL_LIMIT,
    mode: str = STRICT,
    debug: bool = False,
    filters: ComponentFilters | None = None,
) -> EvalRun:
    run = EvalRun()
    for query in queries:
        try:
            response = service.search_sync(query, filters=filters, limit=limit, mode=mode, debug=debug)
        except (SearchValidationError, TimeoutError) as exc:
            logger.warning("eval query %r failed: %s", query, exc)
            run.failed += 1
            run.records.append(eval_record(query, mode, limit, debug, error=str(exc) or type(exc).__name__))
            continue
        run.records.append(eval_record(query, mode, limit, debug, response=response))
    return run


def write_records(path: Path, records: Sequence[dict[str, Any]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    body = "\n".join(json.dumps(r) for r in records)
    path.write_text(f"{body}\n" if body else "")
    return path
