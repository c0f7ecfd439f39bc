from pathlib import Path

import numpy as np
import pytest

from uicat.config import AppConfig, EmbedConfig
from uicat.db import Database
from uicat.embedder import HashingEmbedder, build_embedding_text
from uicat.errors import CatalogError
from uicat.filters import NO_FILTERS, normalize_filters
from uicat.service import CatalogService
from uicat.vectors import (
    EmbeddingEntry,
    VectorSemanticRanker,
    decode_vector,
    encode_vector,
    stored_text_hashes,
    upsert_embeddings,
)


def test_embedding_text_is_normalized() -> None:
    text = build_embedding_text(
        " Modal   Dialog ",
        "Overlay window",
        ["focus trap", "focus trap", "  escape to close"],
        [],
        ["overlay"],
    )
    assert text.splitlines() == [
        "name: Modal Dialog",
        "intent: Overlay window",
        "capabilities: escape to close | focus trap",
        "synonyms: (none)",
        "topics: overlay",
    ]


def test_hashing_embedder_is_deterministic_and_unit_length() -> None:
    embedder = HashingEmbedder(dim=64)
    a = embedder.embed_text("modal dialog overlay")
    b = embedder.embed_text("modal dialog overlay")

    assert a.shape == (64,)
    assert np.array_equal(a, b)
    assert float(np.linalg.norm(a)) == pytest.approx(1.0, rel=1e-5)
    assert not embedder.embed_text("   ").any()
    assert embedder.model_id == "hashed-bow-64"


def test_vector_blob_roundtrip() -> None:
    vec = np.array([0.5, -1.0, 2.0], dtype=np.float32)
    blob, norm = encode_vector(vec)
    assert np.array_equal(decode_vector(blob), vec)
    assert norm == pytest.approx(float(np.linalg.norm(vec)))


def test_upsert_reports_inserted_updated_unchanged(cfg: AppConfig, catalog_file: Path) -> None:
    svc = CatalogService(cfg)
    svc.import_catalog(catalog_file, embed=False)

    vec = np.ones(4, dtype=np.float32)
    with svc.db.connect() as conn:
        first = upsert_embeddings(conn, [EmbeddingEntry("toast", "m", vec, "h1")], dim=4)
        same = upsert_embeddings(conn, [EmbeddingEntry("toast", "m", vec, "h1")], dim=4)
        changed = upsert_embeddings(conn, [EmbeddingEntry("toast", "m", vec * 2, "h2")], dim=4)

    assert (first.inserted, first.updated, first.unchanged) == (1, 0, 0)
    assert (same.inserted, same.updated, same.unchanged) == (0, 0, 1)
    assert (changed.inserted, changed.updated, changed.unchanged) == (0, 1, 0)


@pytest.mark.parametrize(
    ("entries", "message"),
    [
        ([EmbeddingEntry("toast", "m", np.ones(3, dtype=np.float32), "h")], "dimension mismatch"),
        ([EmbeddingEntry("toast", "m", np.array([1.0, np.nan, 0.0, 0.0]), "h")], "index 1"),
        (
            [
                EmbeddingEntry("toast", "m", np.ones(4, dtype=np.float32), "h"),
                EmbeddingEntry("toast", "m", np.ones(4, dtype=np.float32), "h"),
            ],
            "duplicate component id",
        ),
        ([EmbeddingEntry(" ", "m", np.ones(4, dtype=np.float32), "h")], "non-empty"),
    ],
)
def test_upsert_rejects_bad_batches(tmp_path: Path, entries: list[EmbeddingEntry], message: str) -> None:
    db = Database(tmp_path / "catalog.sqlite3")
    db.initialize()
    with db.connect() as conn:
        with pytest.raises(CatalogError, match=message):
            upsert_embeddings(conn, entries, dim=4)
        count = conn.execute("SELECT COUNT(*) AS n FROM component_embeddings").fetchone()["n"]
    assert count == 0


def test_embed_is_incremental(cfg: AppConfig, catalog_file: Path) -> None:
    svc = CatalogService(cfg)
    stats = svc.import_catalog(catalog_file)
    assert stats["embeddings"]["embedded"] == 6

    again = svc.embed()
    assert again["embedded"] == 0
    assert again["unchanged"] == 6

    forced = svc.embed(force=True)
    assert forced["embedded"] == 0
    assert forced["unchanged"] == 6
    assert svc.status()["embeddings"] == 6


def test_changing_dimensions_replaces_vectors(tmp_path: Path, catalog_file: Path) -> None:
    base = AppConfig(db_path=tmp_path / "catalog.sqlite3", pid_path=tmp_path / "tools.pid")
    CatalogService(base).import_catalog(catalog_file)

    smaller = AppConfig(
        db_path=tmp_path / "catalog.sqlite3",
        pid_path=tmp_path / "tools.pid",
        embed=EmbedConfig(dim=32),
    )
    svc = CatalogService(smaller)
    stats = svc.embed()
    assert stats["updated"] == 6
    assert svc.status()["embedding_model"] == "hashed-bow-32"


def test_semantic_ranker_respects_filters_and_pool(cfg: AppConfig, catalog_file: Path) -> None:
    svc = CatalogService(cfg)
    svc.import_catalog(catalog_file)
    ranker = VectorSemanticRanker(svc.db, svc.embedder)

    hits = ranker.rank_sync("dialog popup overlay", NO_FILTERS, 15)
    assert hits[0].id == "modal-dialog"
    assert [h.semantic_rank for h in hits] == list(range(1, len(hits) + 1))
    assert all(h.similarity is not None and h.similarity > 0 for h in hits)

    filtered = ranker.rank_sync("dialog popup overlay", normalize_filters(motion=["heavy"]), 15)
    assert "modal-dialog" not in {h.id for h in filtered}

    assert len(ranker.rank_sync("dialog popup overlay", NO_FILTERS, 1)) <= 1
    assert ranker.rank_sync("dialog", NO_FILTERS, 0) == []


def test_unchanged_vector_refreshes_text_hash(cfg: AppConfig, catalog_file: Path) -> None:
    svc = CatalogService(cfg)
    svc.import_catalog(catalog_file, embed=False)

    vec = np.ones(4, dtype=np.float32)
    with svc.db.connect() as conn:
        upsert_embeddings(conn, [EmbeddingEntry("toast", "m", vec, "h1")], dim=4)
        same_vector = upsert_embeddings(conn, [EmbeddingEntry("toast", "m", vec, "h2")], dim=4)
        hashes = stored_text_hashes(conn, "m")

    assert same_vector.unchanged == 1
    assert hashes["toast"] == "h2"


class AxisEmbedder:
    model_id = "axis-4"
    dim = 4

    def embed_text(self, text: str) -> np.ndarray:
        return np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float32)

    def embed_query(self, query: str) -> np.ndarray:
        return self.embed_text(query)


def test_service_accepts_another_embedder(cfg: AppConfig, catalog_file: Path) -> None:
    svc = CatalogService(cfg, embedder=AxisEmbedder())
    stats = svc.import_catalog(catalog_file)

    assert stats["embeddings"]["model_id"] == "axis-4"
    assert stats["embeddings"]["dim"] == 4
    assert svc.status()["embedding_model"] == "axis-4"

    response = svc.search_sync("xylophone")
    assert response.result_count == 5
    assert all(r.reason == "semantic" for r in response.results)
