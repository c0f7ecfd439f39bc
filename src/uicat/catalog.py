from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
import sqlite3
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from uicat.errors import CatalogError, SearchValidationError
from uicat.models import ComponentCandidate, fallback_intent
from uicat.store import CANDIDATE_SELECT_SQL, row_to_candidate
from uicat.util.time import now_iso

Framework = Literal["react"]
Styling = Literal["tailwind"]
MotionLevel = Literal["none", "minimal", "standard", "heavy"]
PrimitiveLibrary = Literal["none", "radix", "base-ui", "other"]
AnimationLibrary = Literal["none", "motion", "framer-motion", "other"]
DependencyKind = Literal["runtime", "dev", "peer"]


class SourceDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str = "unknown"
    library: str | None = None
    author: str | None = None


class DependencyDocument(BaseModel):
    name: str
    kind: DependencyKind = "runtime"


class ComponentDocument(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    name: str
    framework: Framework = "react"
    styling: Styling = "tailwind"
    motion_level: MotionLevel = Field(default="none", alias="motionLevel")
    primitive_library: PrimitiveLibrary = Field(default="none", alias="primitiveLibrary")
    animation_library: AnimationLibrary = Field(default="none", alias="animationLibrary")
    source: SourceDocument = Field(default_factory=SourceDocument)
    dependencies: list[DependencyDocument] = []
    intent: str | None = None
    capabilities: list[str] = []
    synonyms: list[str] = []
    topics: list[str] = []

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("component id must be non-empty")
        return value


@dataclass(slots=True)
class ImportStats:
    inserted: int = 0
    updated: int = 0
    scanned: int = 0


def parse_documents(data: Any) -> list[ComponentDocument]:
    if isinstance(data, dict):
        data = data.get("components", [])
    if not isinstance(data, list):
        raise CatalogError("catalog must be a list of components or a mapping with a 'components' list")
    docs: list[ComponentDocument] = []
    for idx, item in enumerate(data):
        try:
            docs.append(ComponentDocument.model_validate(item))
        except ValidationError as exc:
            raise CatalogError(f"invalid component at index {idx}: {exc}") from exc
    return docs


def load_catalog_file(path: Path) -> list[ComponentDocument]:
    if not path.exists():
        raise CatalogError(f"catalog file not found: {path}")
    try:
        # YAML is a superset of JSON, so one loader covers both formats.
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise CatalogError(f"could not parse catalog file {path}: {exc}") from exc
    return parse_documents(data)


def upsert_components(conn: sqlite3.Connection, docs: list[ComponentDocument]) -> ImportStats:
    seen: set[str] = set()
    for doc in docs:
        if doc.id in seen:
            raise CatalogError(f"duplicate component id in catalog: '{doc.id}'")
        seen.add(doc.id)

    stats = ImportStats(scanned=len(docs))
    now = now_iso()
    for doc in docs:
        exists = conn.execute("SELECT 1 FROM components WHERE id = ?", (doc.id,)).fetchone()
        deps = json.dumps([d.model_dump() for d in doc.dependencies])
        conn.execute(
            """
            INSERT INTO components(
              id, name, framework, styling, motion_level, primitive_library, animation_library,
              source_url, source_library, source_author, dependencies_json, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              name=excluded.name,
              framework=excluded.framework,
              styling=excluded.styling,
              motion_level=excluded.motion_level,
              primitive_library=excluded.primitive_library,
              animation_library=excluded.animation_library,
              source_url=excluded.source_url,
              source_library=excluded.source_library,
              source_author=excluded.source_author,
              dependencies_json=excluded.dependencies_json,
              updated_at=excluded.updated_at
            """,
            (
                doc.id,
                doc.name,
                doc.framework,
                doc.styling,
                doc.motion_level,
                doc.primitive_library,
                doc.animation_library,
                doc.source.url,
                doc.source.library,
                doc.source.author,
                deps,
                now,
                now,
            ),
        )
        conn.execute(
            """
            INSERT INTO component_search(component_id, intent, capabilities_json, synonyms_json, topics_json, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(component_id) DO UPDATE SET
              intent=excluded.intent,
              capabilities_json=excluded.capabilities_json,
              synonyms_json=excluded.synonyms_json,
              topics_json=excluded.topics_json,
              updated_at=excluded.updated_at
            """,
            (
                doc.id,
                (doc.intent or "").strip() or fallback_intent(doc.name),
                json.dumps(doc.capabilities),
                json.dumps(doc.synonyms),
                json.dumps(doc.topics),
                now,
            ),
        )
        if exists:
            stats.updated += 1
        else:
            stats.inserted += 1
    return stats


def find_component(conn: sqlite3.Connection, component_id: str) -> ComponentCandidate | None:
    cid = component_id.strip()
    if not cid:
        raise SearchValidationError("component id must be non-empty")
    row = conn.execute(CANDIDATE_SELECT_SQL + "WHERE c.id = ?", (cid,)).fetchone()
    if row is None:
        row = conn.execute(
            CANDIDATE_SELECT_SQL + "WHERE LOWER(c.id) = ? ORDER BY c.id LIMIT 1",
            (cid.lower(),),
        ).fetchone()
    if row is None:
        return None
    return row_to_candidate(row)


def all_components(conn: sqlite3.Connection) -> list[ComponentCandidate]:
    rows = conn.execute(CANDIDATE_SELECT_SQL + "ORDER BY c.id").fetchall()
    return [row_to_candidate(r) for r in rows]
