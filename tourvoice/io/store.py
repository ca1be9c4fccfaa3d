"""Relational store for canonical stops, route mappings, narration assets, and jobs.

Responsibilities:
- Persist the four record kinds keyed exactly as the generation core expects.
- Apply `normalize_optional_text` to every optional text column on read and write.
- Map driver failures to `StoreError` so callers can treat them uniformly.

Key types:
- `RelationalStore`: protocol consumed by the resolver, orchestrator, and job service.
- `SqliteStore`: SQLite-backed implementation.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
import sqlite3
import threading
from typing import Any, Protocol

from ..errors import StoreError
from ..models.datatypes import (
    ACTIVE_JOB_STATUSES,
    CanonicalStop,
    GenerationJob,
    NarrationAsset,
    RouteKind,
    RouteStopMapping,
)
from ..parsing import normalize_optional_text

_UNSET: Any = object()

_SCHEMA = """
CREATE TABLE IF NOT EXISTS canonical_stops (
  id TEXT PRIMARY KEY,
  city TEXT NOT NULL,
  title TEXT NOT NULL,
  lat REAL NOT NULL,
  lng REAL NOT NULL,
  image_url TEXT,
  image_source TEXT NOT NULL DEFAULT 'placeholder'
    CHECK (image_source IN ('places', 'curated', 'placeholder', 'link_seed')),
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_canonical_stops_city ON canonical_stops(city);

CREATE TABLE IF NOT EXISTS route_stop_mappings (
  route_kind TEXT NOT NULL CHECK (route_kind IN ('preset', 'custom')),
  route_id TEXT NOT NULL,
  stop_id TEXT NOT NULL,
  canonical_stop_id TEXT NOT NULL REFERENCES canonical_stops(id) ON DELETE CASCADE,
  position INTEGER NOT NULL,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  PRIMARY KEY (route_kind, route_id, stop_id)
);
CREATE INDEX IF NOT EXISTS idx_route_stop_mappings_route
  ON route_stop_mappings(route_kind, route_id, position);

CREATE TABLE IF NOT EXISTS canonical_stop_assets (
  canonical_stop_id TEXT NOT NULL REFERENCES canonical_stops(id) ON DELETE CASCADE,
  persona TEXT NOT NULL CHECK (persona IN ('adult', 'preteen')),
  script TEXT CHECK (script IS NULL OR trim(script) <> ''),
  audio_url TEXT CHECK (audio_url IS NULL OR trim(audio_url) <> ''),
  status TEXT NOT NULL DEFAULT 'pending'
    CHECK (status IN ('pending', 'generating', 'ready', 'failed')),
  error TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  PRIMARY KEY (canonical_stop_id, persona)
);

CREATE TABLE IF NOT EXISTS generation_jobs (
  id TEXT PRIMARY KEY,
  jam_id TEXT NOT NULL,
  route_kind TEXT NOT NULL CHECK (route_kind IN ('preset', 'custom')),
  route_id TEXT NOT NULL,
  status TEXT NOT NULL DEFAULT 'queued'
    CHECK (status IN ('queued', 'generating_script', 'generating_audio',
                      'ready', 'ready_with_warnings', 'failed')),
  progress INTEGER NOT NULL DEFAULT 0 CHECK (progress >= 0 AND progress <= 100),
  message TEXT NOT NULL DEFAULT 'Queued',
  error TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_generation_jobs_jam ON generation_jobs(jam_id, created_at);
CREATE INDEX IF NOT EXISTS idx_generation_jobs_route ON generation_jobs(route_kind, route_id);
"""

_CANONICAL_UPDATABLE_FIELDS = frozenset({"city", "title", "lat", "lng", "image_url", "image_source"})


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""

    return datetime.now(timezone.utc).isoformat()


class RelationalStore(Protocol):
    """Persistence operations used by the generation core."""

    def get_canonical_stop(self, stop_id: str) -> CanonicalStop | None: ...

    def list_canonical_stops(self, city: str) -> list[CanonicalStop]: ...

    def insert_canonical_stop(self, stop: CanonicalStop) -> CanonicalStop: ...

    def update_canonical_stop(self, stop_id: str, **fields: object) -> CanonicalStop: ...

    def upsert_route_stop_mapping(self, mapping: RouteStopMapping) -> None: ...

    def delete_route_stop_mappings(self, route_kind: str, route_id: str) -> int: ...

    def list_route_stop_mappings(self, route_kind: str, route_id: str) -> list[RouteStopMapping]: ...

    def get_narration_asset(self, canonical_stop_id: str, persona: str) -> NarrationAsset | None: ...

    def upsert_narration_asset(self, asset: NarrationAsset) -> NarrationAsset: ...

    def insert_job(self, job: GenerationJob) -> GenerationJob: ...

    def get_job(self, job_id: str) -> GenerationJob | None: ...

    def update_job(
        self,
        job_id: str,
        *,
        status: str,
        message: str,
        progress: int | None = None,
        error: str | None = _UNSET,
    ) -> GenerationJob: ...

    def find_active_job(
        self,
        jam_id: str,
        route_kind: RouteKind | None = None,
        route_id: str | None = None,
    ) -> GenerationJob | None: ...


class SqliteStore:
    """SQLite-backed relational store.

    Connections are opened per operation so the store can be shared between the
    request thread and detached job workers; writes are serialized by a lock.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database file and ensure the schema exists."""

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        with self._session() as con:
            con.executescript(_SCHEMA)

    def _conn(self) -> sqlite3.Connection:
        con = sqlite3.connect(str(self.db_path), timeout=30.0)
        con.row_factory = sqlite3.Row
        con.execute("PRAGMA foreign_keys = ON;")
        return con

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside one transaction, mapping driver errors."""

        with self._lock:
            try:
                con = self._conn()
            except sqlite3.Error as exc:
                raise StoreError(f"Failed to open store `{self.db_path}`: {exc}") from exc
            try:
                yield con
                con.commit()
            except sqlite3.Error as exc:
                con.rollback()
                raise StoreError(f"Store operation failed: {exc}") from exc
            finally:
                con.close()

    # Canonical stops

    def get_canonical_stop(self, stop_id: str) -> CanonicalStop | None:
        """Return a canonical stop by id, or `None` when absent."""

        with self._session() as con:
            row = con.execute("SELECT * FROM canonical_stops WHERE id = ?", (stop_id,)).fetchone()
        return _canonical_from_row(row) if row is not None else None

    def list_canonical_stops(self, city: str) -> list[CanonicalStop]:
        """Return every canonical stop in a city."""

        with self._session() as con:
            rows = con.execute(
                "SELECT * FROM canonical_stops WHERE city = ? ORDER BY id", (city,)
            ).fetchall()
        return [_canonical_from_row(row) for row in rows]

    def insert_canonical_stop(self, stop: CanonicalStop) -> CanonicalStop:
        """Insert a new canonical stop and return the stored row."""

        now = utc_now_iso()
        with self._session() as con:
            con.execute(
                """
                INSERT INTO canonical_stops
                  (id, city, title, lat, lng, image_url, image_source, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    stop.id,
                    stop.city,
                    stop.title,
                    float(stop.lat),
                    float(stop.lng),
                    normalize_optional_text(stop.image_url),
                    stop.image_source,
                    now,
                    now,
                ),
            )
            row = con.execute("SELECT * FROM canonical_stops WHERE id = ?", (stop.id,)).fetchone()
        return _canonical_from_row(row)

    def update_canonical_stop(self, stop_id: str, **fields: object) -> CanonicalStop:
        """Update selected canonical stop columns and return the refreshed row."""

        unknown = sorted(set(fields).difference(_CANONICAL_UPDATABLE_FIELDS))
        if unknown:
            raise ValueError(f"Unsupported canonical stop field(s): {', '.join(unknown)}.")
        values = dict(fields)
        if "image_url" in values:
            values["image_url"] = normalize_optional_text(values["image_url"])
        values["updated_at"] = utc_now_iso()
        assignments = ", ".join(f"{column} = ?" for column in values)
        with self._session() as con:
            cursor = con.execute(
                f"UPDATE canonical_stops SET {assignments} WHERE id = ?",
                (*values.values(), stop_id),
            )
            if cursor.rowcount == 0:
                raise StoreError(f"Canonical stop `{stop_id}` does not exist.")
            row = con.execute("SELECT * FROM canonical_stops WHERE id = ?", (stop_id,)).fetchone()
        return _canonical_from_row(row)

    # Route stop mappings

    def upsert_route_stop_mapping(self, mapping: RouteStopMapping) -> None:
        """Insert or overwrite the mapping for `(route_kind, route_id, stop_id)`."""

        now = utc_now_iso()
        with self._session() as con:
            con.execute(
                """
                INSERT INTO route_stop_mappings
                  (route_kind, route_id, stop_id, canonical_stop_id, position, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(route_kind, route_id, stop_id) DO UPDATE SET
                  canonical_stop_id = excluded.canonical_stop_id,
                  position = excluded.position,
                  updated_at = excluded.updated_at
                """,
                (
                    mapping.route_kind,
                    mapping.route_id,
                    mapping.stop_id,
                    mapping.canonical_stop_id,
                    int(mapping.position),
                    now,
                    now,
                ),
            )

    def delete_route_stop_mappings(self, route_kind: str, route_id: str) -> int:
        """Delete every mapping of one tour and return the removed row count."""

        with self._session() as con:
            cursor = con.execute(
                "DELETE FROM route_stop_mappings WHERE route_kind = ? AND route_id = ?",
                (route_kind, route_id),
            )
            return cursor.rowcount

    def list_route_stop_mappings(self, route_kind: str, route_id: str) -> list[RouteStopMapping]:
        """Return one tour's mappings ordered by position."""

        with self._session() as con:
            rows = con.execute(
                """
                SELECT route_kind, route_id, stop_id, canonical_stop_id, position
                FROM route_stop_mappings
                WHERE route_kind = ? AND route_id = ?
                ORDER BY position, stop_id
                """,
                (route_kind, route_id),
            ).fetchall()
        return [
            RouteStopMapping(
                route_kind=row["route_kind"],
                route_id=row["route_id"],
                stop_id=row["stop_id"],
                canonical_stop_id=row["canonical_stop_id"],
                position=int(row["position"]),
            )
            for row in rows
        ]

    # Narration assets

    def get_narration_asset(self, canonical_stop_id: str, persona: str) -> NarrationAsset | None:
        """Return the narration asset for a canonical stop and persona."""

        with self._session() as con:
            row = con.execute(
                "SELECT * FROM canonical_stop_assets WHERE canonical_stop_id = ? AND persona = ?",
                (canonical_stop_id, persona),
            ).fetchone()
        return _asset_from_row(row) if row is not None else None

    def upsert_narration_asset(self, asset: NarrationAsset) -> NarrationAsset:
        """Insert or overwrite the asset for `(canonical_stop_id, persona)`."""

        now = utc_now_iso()
        with self._session() as con:
            con.execute(
                """
                INSERT INTO canonical_stop_assets
                  (canonical_stop_id, persona, script, audio_url, status, error, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(canonical_stop_id, persona) DO UPDATE SET
                  script = excluded.script,
                  audio_url = excluded.audio_url,
                  status = excluded.status,
                  error = excluded.error,
                  updated_at = excluded.updated_at
                """,
                (
                    asset.canonical_stop_id,
                    asset.persona,
                    normalize_optional_text(asset.script),
                    normalize_optional_text(asset.audio_url),
                    asset.status,
                    normalize_optional_text(asset.error),
                    now,
                    now,
                ),
            )
            row = con.execute(
                "SELECT * FROM canonical_stop_assets WHERE canonical_stop_id = ? AND persona = ?",
                (asset.canonical_stop_id, asset.persona),
            ).fetchone()
        return _asset_from_row(row)

    # Generation jobs

    def insert_job(self, job: GenerationJob) -> GenerationJob:
        """Insert a new job record and return the stored row."""

        now = utc_now_iso()
        with self._session() as con:
            con.execute(
                """
                INSERT INTO generation_jobs
                  (id, jam_id, route_kind, route_id, status, progress, message, error,
                   created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.id,
                    job.jam_id,
                    job.route_kind,
                    job.route_id,
                    job.status,
                    int(job.progress),
                    normalize_optional_text(job.message) or "Queued",
                    normalize_optional_text(job.error),
                    now,
                    now,
                ),
            )
            row = con.execute("SELECT * FROM generation_jobs WHERE id = ?", (job.id,)).fetchone()
        return _job_from_row(row)

    def get_job(self, job_id: str) -> GenerationJob | None:
        """Return a job by id, or `None` when absent."""

        with self._session() as con:
            row = con.execute("SELECT * FROM generation_jobs WHERE id = ?", (job_id,)).fetchone()
        return _job_from_row(row) if row is not None else None

    def update_job(
        self,
        job_id: str,
        *,
        status: str,
        message: str,
        progress: int | None = None,
        error: str | None = _UNSET,
    ) -> GenerationJob:
        """Overwrite job status/message and optionally progress and error."""

        values: dict[str, object] = {
            "status": status,
            "message": normalize_optional_text(message) or "",
        }
        if progress is not None:
            values["progress"] = int(progress)
        if error is not _UNSET:
            values["error"] = normalize_optional_text(error)
        values["updated_at"] = utc_now_iso()
        assignments = ", ".join(f"{column} = ?" for column in values)
        with self._session() as con:
            cursor = con.execute(
                f"UPDATE generation_jobs SET {assignments} WHERE id = ?",
                (*values.values(), job_id),
            )
            if cursor.rowcount == 0:
                raise StoreError(f"Generation job `{job_id}` does not exist.")
            row = con.execute("SELECT * FROM generation_jobs WHERE id = ?", (job_id,)).fetchone()
        return _job_from_row(row)

    def find_active_job(
        self,
        jam_id: str,
        route_kind: RouteKind | None = None,
        route_id: str | None = None,
    ) -> GenerationJob | None:
        """Return the newest non-terminal job for a jam or for a route, if any."""

        placeholders = ", ".join("?" for _ in ACTIVE_JOB_STATUSES)
        with self._session() as con:
            row = con.execute(
                f"""
                SELECT * FROM generation_jobs
                WHERE (jam_id = ? OR (route_kind = ? AND route_id = ?))
                  AND status IN ({placeholders})
                ORDER BY created_at DESC
                LIMIT 1
                """,
                (jam_id, route_kind, route_id, *sorted(ACTIVE_JOB_STATUSES)),
            ).fetchone()
        return _job_from_row(row) if row is not None else None


def _canonical_from_row(row: sqlite3.Row) -> CanonicalStop:
    return CanonicalStop(
        id=row["id"],
        city=row["city"],
        title=row["title"],
        lat=float(row["lat"]),
        lng=float(row["lng"]),
        image_url=normalize_optional_text(row["image_url"]),
        image_source=row["image_source"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _asset_from_row(row: sqlite3.Row) -> NarrationAsset:
    return NarrationAsset(
        canonical_stop_id=row["canonical_stop_id"],
        persona=row["persona"],
        script=normalize_optional_text(row["script"]),
        audio_url=normalize_optional_text(row["audio_url"]),
        status=row["status"],
        error=normalize_optional_text(row["error"]),
        updated_at=row["updated_at"],
    )


def _job_from_row(row: sqlite3.Row) -> GenerationJob:
    return GenerationJob(
        id=row["id"],
        jam_id=row["jam_id"],
        route_kind=row["route_kind"],
        route_id=row["route_id"],
        status=row["status"],
        progress=int(row["progress"]),
        message=row["message"],
        error=normalize_optional_text(row["error"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
