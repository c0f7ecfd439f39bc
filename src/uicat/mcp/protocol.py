from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from uicat.assemble import RELAXED, STRICT
from uicat.filters import ComponentFilters, normalize_filters
from uicat.service import CatalogService


@dataclass(slots=True)
class ToolResponse:
    ok: bool
    result: Any | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        out = {"ok": self.ok}
        if self.ok:
            out["result"] = self.result
        else:
            out["error"] = self.error or "unknown error"
        return out


def _filters_from_args(args: dict[str, Any]) -> ComponentFilters:
    return normalize_filters(
        framework=args.get("framework"),
        styling=args.get("styling"),
        motion=args.get("motion"),
        primitive_library=args.get("primitive_library"),
        animation_library=args.get("animation_library"),
    )


class ToolProtocol:
    def __init__(self, service: CatalogService):
        self.service = service

    def handle(self, payload: dict[str, Any]) -> dict[str, Any]:
        tool = payload.get("tool") or payload.get("method")
        args = payload.get("args") or payload.get("params") or {}

        try:
            if tool == "uicat_search":
                limit = args.get("limit")
                response = self.service.search_sync(
                    str(args.get("query", "")),
                    filters=_filters_from_args(args),
                    limit=int(limit) if limit is not None else None,
                    mode=RELAXED if args.get("relax") else str(args.get("mode", STRICT)),
                    debug=bool(args.get("debug", False)),
                )
                return ToolResponse(ok=True, result=response.model_dump()).as_dict()

            if tool == "uicat_get":
                identifier = str(args.get("id", ""))
                result = self.service.get(identifier)
                if result is None:
                    suggestions = self._suggest(identifier)
                    return ToolResponse(ok=False, error=f"not found; suggestions={suggestions}").as_dict()
                return ToolResponse(ok=True, result=result).as_dict()

            if tool == "uicat_status":
                return ToolResponse(ok=True, result=self.service.status()).as_dict()

            return ToolResponse(ok=False, error=f"unknown tool: {tool}").as_dict()
        except Exception as exc:
            return ToolResponse(ok=False, error=str(exc)).as_dict()

    def _suggest(self, text: str, limit: int = 5) -> list[str]:
        needle = text.strip().lower()
        if not needle:
            return []
        like = f"%{needle}%"
        with self.service.db.connect() as conn:
            rows = conn.execute(
                """
                SELECT id
                FROM components
                WHERE LOWER(id) LIKE ? OR LOWER(name) LIKE ?
                ORDER BY id
                LIMIT ?
                """,
                (like, like, limit),
            ).fetchall()
        return [str(r["id"]) for r in rows]
