import json
import logging
import os
import re
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import Project, project_from_dict, project_to_dict

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Saving or loading a project failed."""


class ProjectNotFoundError(PersistenceError):
    pass


def _repo_root() -> Path:
    # recedit/edl/store.py -> recedit/edl -> recedit -> repo root
    return Path(__file__).resolve().parents[2]


def safe_project_id(project_id: str) -> str:
    project_id = (project_id or "").strip()
    if not project_id:
        raise ValueError("project_id must be non-empty")
    return re.sub(r"[^a-zA-Z0-9._-]+", "_", project_id)


def default_library_path(projects_dir: Optional[os.PathLike] = None) -> Path:
    base = Path(projects_dir) if projects_dir is not None else _repo_root() / "projects"
    return base / "library.db"


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS meta (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS projects (
  project_id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  created_at TEXT NOT NULL,          -- ISO-8601, as in the record
  duration REAL NOT NULL,
  record_json TEXT NOT NULL,         -- full Project record
  updated_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_projects_created ON projects(created_at);
"""


@dataclass
class ProjectStore:
    """
    Project persistence: one SQLite library holding each project as a flat
    JSON record. Failures surface as ``PersistenceError``; retrying is up to
    the caller.
    """

    db_path: Path
    conn: sqlite3.Connection

    @classmethod
    def open(cls, db_path: Optional[os.PathLike] = None) -> "ProjectStore":
        path = Path(db_path) if db_path is not None else default_library_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(path), isolation_level=None, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Failed to open project library {path}: {e}") from e

        store = cls(db_path=path, conn=conn)
        store._ensure_schema()
        return store

    def close(self) -> None:
        try:
            self.conn.close()
        except sqlite3.Error:
            pass

    def _ensure_schema(self) -> None:
        self.conn.executescript(SCHEMA_SQL)
        self.conn.execute("INSERT OR IGNORE INTO meta(key, value) VALUES(?, ?)", ("schema_version", "1"))

    def _now(self) -> float:
        return time.time()

    def _j(self, obj: Any) -> str:
        return json.dumps(obj, ensure_ascii=True, separators=(",", ":"), sort_keys=True)

    def save(self, project: Project) -> None:
        pid = safe_project_id(project.id)
        try:
            record = self._j(project_to_dict(project))
            self.conn.execute(
                """
                INSERT INTO projects(project_id, name, created_at, duration, record_json, updated_at)
                VALUES(?, ?, ?, ?, ?, ?)
                ON CONFLICT(project_id)
                DO UPDATE SET name=excluded.name, duration=excluded.duration,
                              record_json=excluded.record_json, updated_at=excluded.updated_at
                """,
                (pid, project.name, project.created_at, float(project.duration), record, self._now()),
            )
        except (TypeError, ValueError, sqlite3.Error) as e:
            logger.error(f"Failed to save project {project.id}: {e}")
            raise PersistenceError(f"Failed to save project {project.id}: {e}") from e
        logger.info(f"Saved project {project.id} ({len(project.edits.segments)} segments)")

    def _row(self, project_id: str) -> Optional[sqlite3.Row]:
        try:
            cur = self.conn.execute("SELECT * FROM projects WHERE project_id=?", (safe_project_id(project_id),))
            return cur.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read project {project_id}: {e}") from e

    def load(self, project_id: str) -> Project:
        row = self._row(project_id)
        if row is None:
            raise ProjectNotFoundError(f"Project not found: {project_id}")
        try:
            return project_from_dict(json.loads(row["record_json"]))
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to parse project {project_id}: {e}") from e

    def exists(self, project_id: str) -> bool:
        return self._row(project_id) is not None

    def list_projects(self) -> List[Project]:
        """All readable projects, newest first. Corrupt records are skipped."""
        try:
            cur = self.conn.execute("SELECT project_id, record_json FROM projects ORDER BY created_at DESC")
            rows = cur.fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list projects: {e}") from e
        out: List[Project] = []
        for r in rows:
            try:
                out.append(project_from_dict(json.loads(r["record_json"])))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable project {r['project_id']}: {e}")
        return out

    def list_summaries(self) -> List[Dict[str, Any]]:
        try:
            cur = self.conn.execute(
                "SELECT project_id, name, created_at, duration, updated_at FROM projects ORDER BY created_at DESC"
            )
            return [dict(r) for r in cur.fetchall()]
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list projects: {e}") from e

    def delete(self, project_id: str) -> bool:
        try:
            cur = self.conn.execute("DELETE FROM projects WHERE project_id=?", (safe_project_id(project_id),))
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete project {project_id}: {e}") from e
        return cur.rowcount > 0
