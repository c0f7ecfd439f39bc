from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from typing import Any, Protocol

from uicat.db import Database
from uicat.models import ComponentCandidate, Dependency, fallback_intent
from uicat.planner import (
    AnimationLibrary,
    AnimationLibraryAndMotion,
    Framework,
    FullScan,
    Motion,
    PrimitiveLibrary,
    PrimitiveLibraryAndMotion,
    SeedQuery,
    Styling,
)

logger = logging.getLogger(__name__)

CANDIDATE_SELECT_SQL = """
SELECT
  c.id, c.name, c.framework, c.styling,
  c.motion_level, c.primitive_library, c.animation_library,
  c.source_url, c.source_library, c.source_author, c.dependencies_json,
  s.intent, s.capabilities_json, s.synonyms_json, s.topics_json
FROM components c
LEFT JOIN component_search s ON s.component_id = c.id
"""


class CandidateStore(Protocol):
    async def query(self, seed: SeedQuery) -> list[ComponentCandidate]: ...


def _json_list(raw: Any) -> tuple[str, ...]:
    if not raw:
        return ()
    loaded = json.loads(raw)
    if not isinstance(loaded, list):
        return ()
    return tuple(str(x) for x in loaded)


def _dependencies(raw: Any) -> tuple[Dependency, ...]:
    if not raw:
        return ()
    loaded = json.loads(raw)
    return tuple(Dependency(name=str(d["name"]), kind=str(d["kind"])) for d in loaded if isinstance(d, dict))


def row_to_candidate(row: sqlite3.Row) -> ComponentCandidate:
    intent = row["intent"]
    return ComponentCandidate(
        id=str(row["id"]),
        name=str(row["name"]),
        framework=str(row["framework"]),
        styling=str(row["styling"]),
        intent=str(intent) if intent is not None else fallback_intent(str(row["name"])),
        capabilities=_json_list(row["capabilities_json"]),
        synonyms=_json_list(row["synonyms_json"]),
        topics=_json_list(row["topics_json"]),
        motion_level=str(row["motion_level"]),
        primitive_library=str(row["primitive_library"]),
        animation_library=str(row["animation_library"]),
        source_url=str(row["source_url"] or ""),
        source_library=row["source_library"],
        source_author=row["source_author"],
        dependencies=_dependencies(row["dependencies_json"]),
    )


def seed_where_clause(seed: SeedQuery) -> tuple[str, list[Any]]:
    if isinstance(seed, PrimitiveLibraryAndMotion):
        return "c.primitive_library = ? AND c.motion_level = ?", [seed.primitive_library, seed.motion_level]
    if isinstance(seed, AnimationLibraryAndMotion):
        return "c.animation_library = ? AND c.motion_level = ?", [seed.animation_library, seed.motion_level]
    if isinstance(seed, Framework):
        return "c.framework = ?", [seed.value]
    if isinstance(seed, Styling):
        return "c.styling = ?", [seed.value]
    if isinstance(seed, Motion):
        return "c.motion_level = ?", [seed.value]
    if isinstance(seed, PrimitiveLibrary):
        return "c.primitive_library = ?", [seed.value]
    if isinstance(seed, AnimationLibrary):
        return "c.animation_library = ?", [seed.value]
    if isinstance(seed, FullScan):
        return "", []
    raise TypeError(f"unsupported seed query: {seed!r}")


def query_candidates(conn: sqlite3.Connection, seed: SeedQuery) -> list[ComponentCandidate]:
    where, args = seed_where_clause(seed)
    sql = CANDIDATE_SELECT_SQL
    if where:
        sql += f"WHERE {where}\n"
    sql += "ORDER BY c.id"
    rows = conn.execute(sql, args).fetchall()
    return [row_to_candidate(r) for r in rows]


class SqliteCandidateStore:
    def __init__(self, db: Database):
        self.db = db

    def query_sync(self, seed: SeedQuery) -> list[ComponentCandidate]:
        with self.db.connect() as conn:
            out = query_candidates(conn, seed)
        logger.debug("seed query %s returned %d rows", seed.kind, len(out))
        return out

    async def query(self, seed: SeedQuery) -> list[ComponentCandidate]:
        return await asyncio.to_thread(self.query_sync, seed)
