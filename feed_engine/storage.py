"""SQLite persistence for normalized jobs.

`JobStore` owns the schema and covers three pipeline roles:
- deduplication (`exists`) before any enrichment work is spent on an item
- batched, idempotent writes (`insert_batch`): one transaction per batch,
  `INSERT OR IGNORE` on the natural keys, tag links only for new rows
- retention (`trim`): keep the newest N jobs

Thread-safe: the scheduler and a manual trigger may hold the same store.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Any, Dict, Iterable, List, Optional

from .errors import PersistenceError
from .models import NormalizedJob
from .utils import make_slug, stable_id, unique_slug

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    guid TEXT UNIQUE,
    source TEXT,
    title TEXT,
    company TEXT,
    description_html TEXT,
    description_short TEXT,
    url TEXT,
    published_at INTEGER,
    slug TEXT UNIQUE,
    tags_csv TEXT DEFAULT '',
    created_at INTEGER DEFAULT (strftime('%s','now')),

    -- Inferred metadata
    employment_type TEXT,
    is_remote INTEGER,
    salary_currency TEXT,
    salary_min INTEGER,
    salary_max INTEGER,
    salary_unit TEXT,
    experience_requirements TEXT,
    experience_in_place_of_education INTEGER,
    location_country TEXT,
    location_city TEXT
);
CREATE INDEX IF NOT EXISTS idx_jobs_published ON jobs(published_at DESC, id DESC);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE,
    slug TEXT UNIQUE
);

CREATE TABLE IF NOT EXISTS job_tags (
    job_id INTEGER NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    UNIQUE(job_id, tag_id)
);
CREATE INDEX IF NOT EXISTS idx_job_tags_tag_id ON job_tags(tag_id);
"""

INSERT_JOB = """
INSERT OR IGNORE INTO jobs (
    guid, source, title, company, description_html, description_short, url,
    published_at, slug, tags_csv,
    employment_type, is_remote, salary_currency, salary_min, salary_max, salary_unit,
    experience_requirements, experience_in_place_of_education, location_country, location_city
) VALUES (
    :guid, :source, :title, :company, :description_html, :description_short, :url,
    :published_at, :slug, :tags_csv,
    :employment_type, :is_remote, :salary_currency, :salary_min, :salary_max, :salary_unit,
    :experience_requirements, :experience_in_place_of_education, :location_country, :location_city
)
"""

DELETE_BEYOND = """
DELETE FROM jobs WHERE id IN (
    SELECT id FROM jobs ORDER BY published_at DESC, id DESC LIMIT -1 OFFSET ?
)
"""


def _job_params(job: NormalizedJob, slug: str) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "guid": job.guid,
        "source": job.source,
        "title": job.title,
        "company": job.company,
        "description_html": job.description_html,
        "description_short": job.description_short,
        "url": job.url,
        "published_at": job.published_at,
        "slug": slug,
        "tags_csv": job.tags_csv,
        "employment_type": None,
        "is_remote": None,
        "salary_currency": None,
        "salary_min": None,
        "salary_max": None,
        "salary_unit": None,
        "experience_requirements": None,
        "experience_in_place_of_education": None,
        "location_country": None,
        "location_city": None,
    }
    meta = job.meta
    if meta is not None:
        params.update(
            employment_type=meta.employment_type,
            is_remote=int(meta.is_remote),
            experience_requirements=meta.experience_requirements,
            experience_in_place_of_education=int(meta.experience_in_place_of_education),
        )
        if meta.salary is not None:
            params.update(
                salary_currency=meta.salary.currency,
                salary_min=meta.salary.min,
                salary_max=meta.salary.max,
                salary_unit=meta.salary.unit,
            )
        if meta.job_locations:
            params.update(
                location_country=meta.job_locations[0].country,
                location_city=meta.job_locations[0].city,
            )
    return params


class JobStore:
    """SQLite-backed job storage."""

    def __init__(self, db_path: str = "jobs.db") -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA synchronous = NORMAL")
        self.init_schema()

    def init_schema(self) -> None:
        with self._lock:
            self._conn.executescript(SCHEMA)
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def exists(self, guid: str) -> bool:
        with self._lock:
            row = self._conn.execute("SELECT 1 FROM jobs WHERE guid = ? LIMIT 1", (guid,)).fetchone()
        return row is not None

    def count(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM jobs").fetchone()[0]

    def get_job(self, guid: str) -> Optional[Dict[str, Any]]:
        """Stored row for `guid` with its linked tag names (in insertion order)."""
        with self._lock:
            row = self._conn.execute("SELECT * FROM jobs WHERE guid = ?", (guid,)).fetchone()
            if row is None:
                return None
            tags = self._conn.execute(
                "SELECT t.name FROM job_tags jt JOIN tags t ON t.id = jt.tag_id WHERE jt.job_id = ? ORDER BY jt.rowid",
                (row["id"],),
            ).fetchall()
        job = dict(row)
        job["tags"] = [t["name"] for t in tags]
        return job

    def list_guids(self) -> List[str]:
        """All guids, newest first."""
        with self._lock:
            rows = self._conn.execute("SELECT guid FROM jobs ORDER BY published_at DESC, id DESC").fetchall()
        return [r["guid"] for r in rows]

    def insert_batch(self, jobs: Iterable[NormalizedJob]) -> int:
        """Write a batch in one transaction; returns how many jobs were new.

        Duplicate guids are ignored. A slug already taken by another job is
        made unique with a guid-derived suffix.

        Raises:
            PersistenceError: the batch was rolled back. Batches committed
                earlier are unaffected.
        """
        jobs = list(jobs)
        if not jobs:
            return 0
        inserted = 0
        with self._lock:
            try:
                with self._conn:
                    cur = self._conn.cursor()
                    for job in jobs:
                        cur.execute(INSERT_JOB, _job_params(job, self._free_slug(cur, job)))
                        if cur.rowcount != 1:
                            continue
                        inserted += 1
                        self._link_tags(cur, cur.lastrowid, job.tags)
            except sqlite3.Error as exc:
                logger.error(f"[store] Batch of {len(jobs)} rolled back: {exc}")
                raise PersistenceError(f"Batch write failed: {exc}") from exc
        logger.debug(f"[store] Batch committed: {inserted}/{len(jobs)} new")
        return inserted

    @staticmethod
    def _free_slug(cur: sqlite3.Cursor, job: NormalizedJob) -> str:
        taken = cur.execute("SELECT guid FROM jobs WHERE slug = ?", (job.slug,)).fetchone()
        if taken is None or taken[0] == job.guid:
            return job.slug
        return unique_slug(job.slug, job.guid)

    @staticmethod
    def _link_tags(cur: sqlite3.Cursor, job_id: int, tags: Iterable[str]) -> None:
        for name in tags:
            slug = make_slug(name) or stable_id(name)[:8]
            cur.execute("INSERT OR IGNORE INTO tags (name, slug) VALUES (?, ?)", (name, slug))
            # First writer wins: an equivalent tag may already own this name or slug.
            row = cur.execute(
                "SELECT id FROM tags WHERE name = ? OR slug = ? ORDER BY (name = ?) DESC LIMIT 1",
                (name, slug, name),
            ).fetchone()
            if row is not None:
                cur.execute("INSERT OR IGNORE INTO job_tags (job_id, tag_id) VALUES (?, ?)", (job_id, row[0]))

    def trim(self, max_jobs: int) -> int:
        """Delete everything beyond the `max_jobs` most recently published jobs."""
        with self._lock:
            total = self._conn.execute("SELECT COUNT(*) FROM jobs").fetchone()[0]
            if total <= max_jobs:
                return 0
            try:
                with self._conn:
                    deleted = self._conn.execute(DELETE_BEYOND, (max_jobs,)).rowcount
            except sqlite3.Error as exc:
                raise PersistenceError(f"Retention trim failed: {exc}") from exc
        logger.info(f"[store] Trimmed {deleted:,} jobs, keeping the {max_jobs:,} most recent")
        return deleted
