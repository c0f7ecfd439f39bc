from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import sqlite3
from typing import Iterator

from uicat.util.time import now_iso

SCHEMA_VERSION = 1

SETUP_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
  id INTEGER PRIMARY KEY CHECK (id = 1),
  version INTEGER NOT NULL,
  updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS components (
  id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  framework TEXT NOT NULL,
  styling TEXT NOT NULL,
  motion_level TEXT NOT NULL,
  primitive_library TEXT NOT NULL,
  animation_library TEXT NOT NULL,
  source_url TEXT NOT NULL DEFAULT '',
  source_library TEXT,
  source_author TEXT,
  dependencies_json TEXT NOT NULL DEFAULT '[]',
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_components_framework ON components(framework);
CREATE INDEX IF NOT EXISTS idx_components_styling ON components(styling);
CREATE INDEX IF NOT EXISTS idx_components_motion ON components(motion_level);
CREATE INDEX IF NOT EXISTS idx_components_primitive ON components(primitive_library);
CREATE INDEX IF NOT EXISTS idx_components_animation ON components(animation_library);
CREATE INDEX IF NOT EXISTS idx_components_primitive_motion ON components(primitive_library, motion_level);
CREATE INDEX IF NOT EXISTS idx_components_animation_motion ON components(animation_library, motion_level);

CREATE TABLE IF NOT EXISTS component_search (
  component_id TEXT PRIMARY KEY REFERENCES components(id) ON DELETE CASCADE,
  intent TEXT NOT NULL,
  capabilities_json TEXT NOT NULL DEFAULT '[]',
  synonyms_json TEXT NOT NULL DEFAULT '[]',
  topics_json TEXT NOT NULL DEFAULT '[]',
  updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS component_embeddings (
  component_id TEXT PRIMARY KEY REFERENCES components(id) ON DELETE CASCADE,
  model TEXT NOT NULL,
  dim INTEGER NOT NULL,
  embedding BLOB NOT NULL,
  norm REAL NOT NULL,
  text_hash TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
"""


def _table_exists(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type IN ('table','view') AND name = ?",
        (name,),
    ).fetchone()
    return row is not None


def _schema_version(conn: sqlite3.Connection) -> int:
    if not _table_exists(conn, "schema_version"):
        return 0
    row = conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    return int(row["version"]) if row else 0


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(
        """
        INSERT INTO schema_version(id, version, updated_at)
        VALUES(1, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
          version=excluded.version,
          updated_at=excluded.updated_at
        """,
        (version, now_iso()),
    )


class Database:
    def __init__(self, path: Path):
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        with self.connect() as conn:
            conn.executescript(SETUP_SQL)
            if _schema_version(conn) < SCHEMA_VERSION:
                _set_schema_version(conn, SCHEMA_VERSION)

    def schema_version(self) -> int:
        with self.connect() as conn:
            return _schema_version(conn)
