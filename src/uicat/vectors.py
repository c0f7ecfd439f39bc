from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import sqlite3
from typing import Iterable, Protocol

import numpy as np

from uicat.db import Database
from uicat.embedder import TextEmbedder
from uicat.errors import CatalogError
from uicat.filters import ComponentFilters, matches_attributes
from uicat.models import SemanticHit
from uicat.util.time import now_iso

logger = logging.getLogger(__name__)


class SemanticRanker(Protocol):
    async def rank(self, query: str, filters: ComponentFilters, pool_limit: int) -> list[SemanticHit]: ...


@dataclass(slots=True)
class EmbeddingEntry:
    component_id: str
    model: str
    embedding: np.ndarray
    text_hash: str


@dataclass(slots=True)
class EmbeddingUpsertStats:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0


def encode_vector(vec: np.ndarray) -> tuple[bytes, float]:
    arr = np.asarray(vec, dtype=np.float32)
    norm = float(np.linalg.norm(arr))
    return arr.tobytes(), norm


def decode_vector(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype=np.float32)


def _validate_vector(component_id: str, vec: np.ndarray, dim: int) -> None:
    if vec.ndim != 1 or vec.shape[0] != dim:
        raise CatalogError(
            f"embedding dimension mismatch for '{component_id}': expected {dim}, received {vec.shape[-1] if vec.ndim else 0}"
        )
    if not np.all(np.isfinite(vec)):
        bad = int(np.flatnonzero(~np.isfinite(vec))[0])
        raise CatalogError(f"embedding value at index {bad} for '{component_id}' is not finite")


def upsert_embeddings(conn: sqlite3.Connection, entries: Iterable[EmbeddingEntry], dim: int) -> EmbeddingUpsertStats:
    batch = list(entries)
    seen: set[str] = set()
    for entry in batch:
        cid = entry.component_id.strip()
        if not cid:
            raise CatalogError("component id must be non-empty")
        if cid in seen:
            raise CatalogError(f"duplicate component id in embedding batch: '{cid}'")
        seen.add(cid)
        _validate_vector(cid, np.asarray(entry.embedding, dtype=np.float32), dim)

    stats = EmbeddingUpsertStats()
    for entry in batch:
        cid = entry.component_id.strip()
        blob, norm = encode_vector(entry.embedding)
        row = conn.execute(
            "SELECT model, embedding, text_hash FROM component_embeddings WHERE component_id = ?",
            (cid,),
        ).fetchone()
        if row is not None and row["model"] == entry.model and bytes(row["embedding"]) == blob:
            if row["text_hash"] != entry.text_hash:
                conn.execute(
                    "UPDATE component_embeddings SET text_hash = ? WHERE component_id = ?",
                    (entry.text_hash, cid),
                )
            stats.unchanged += 1
            continue
        conn.execute(
            """
            INSERT INTO component_embeddings(component_id, model, dim, embedding, norm, text_hash, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(component_id) DO UPDATE SET
              model=excluded.model,
              dim=excluded.dim,
              embedding=excluded.embedding,
              norm=excluded.norm,
              text_hash=excluded.text_hash,
              updated_at=excluded.updated_at
            """,
            (cid, entry.model, dim, blob, norm, entry.text_hash, now_iso()),
        )
        if row is None:
            stats.inserted += 1
        else:
            stats.updated += 1
    return stats


def delete_embeddings(conn: sqlite3.Connection, component_ids: Iterable[str]) -> int:
    ids = sorted({c.strip() for c in component_ids if c.strip()})
    if not ids:
        return 0
    placeholders = ",".join("?" for _ in ids)
    cur = conn.execute(f"DELETE FROM component_embeddings WHERE component_id IN ({placeholders})", ids)
    return int(cur.rowcount)


def stored_text_hashes(conn: sqlite3.Connection, model: str) -> dict[str, str]:
    rows = conn.execute(
        "SELECT component_id, text_hash FROM component_embeddings WHERE model = ?",
        (model,),
    ).fetchall()
    return {str(r["component_id"]): str(r["text_hash"]) for r in rows}


class VectorSemanticRanker:
    def __init__(self, db: Database, embedder: TextEmbedder, min_similarity: float = 0.0):
        self.db = db
        self.embedder = embedder
        self.min_similarity = min_similarity

    def _load(self, conn: sqlite3.Connection, filters: ComponentFilters) -> tuple[list[str], np.ndarray]:
        rows = conn.execute(
            """
            SELECT e.component_id, e.embedding,
                   c.framework, c.styling, c.motion_level, c.primitive_library, c.animation_library
            FROM component_embeddings e
            JOIN components c ON c.id = e.component_id
            WHERE e.model = ? AND e.dim = ?
            ORDER BY e.component_id
            """,
            (self.embedder.model_id, self.embedder.dim),
        ).fetchall()

        ids: list[str] = []
        vectors: list[np.ndarray] = []
        for row in rows:
            if not matches_attributes(
                filters,
                framework=str(row["framework"]),
                styling=str(row["styling"]),
                motion_level=str(row["motion_level"]),
                primitive_library=str(row["primitive_library"]),
                animation_library=str(row["animation_library"]),
            ):
                continue
            ids.append(str(row["component_id"]))
            vectors.append(decode_vector(row["embedding"]))
        if not vectors:
            return [], np.zeros((0, self.embedder.dim), dtype=np.float32)
        return ids, np.vstack(vectors)

    def rank_sync(self, query: str, filters: ComponentFilters, pool_limit: int) -> list[SemanticHit]:
        if pool_limit <= 0:
            return []
        q = self.embedder.embed_query(query)
        qn = float(np.linalg.norm(q))
        if qn <= 0:
            return []

        with self.db.connect() as conn:
            ids, matrix = self._load(conn, filters)
        if not ids:
            return []

        norms = np.linalg.norm(matrix, axis=1)
        norms[norms <= 0] = 1.0
        sims = (matrix @ q) / (norms * qn)

        scored = [(ids[i], float(sims[i])) for i in range(len(ids)) if float(sims[i]) > self.min_similarity]
        scored.sort(key=lambda x: (-x[1], x[0]))
        hits = [
            SemanticHit(id=cid, semantic_rank=pos, similarity=sim)
            for pos, (cid, sim) in enumerate(scored[:pool_limit], start=1)
        ]
        logger.debug("semantic ranker scored %d embeddings, kept %d", len(ids), len(hits))
        return hits

    async def rank(self, query: str, filters: ComponentFilters, pool_limit: int) -> list[SemanticHit]:
        return await asyncio.to_thread(self.rank_sync, query, filters, pool_limit)
