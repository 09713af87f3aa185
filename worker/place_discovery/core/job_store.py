"""PostgreSQL persistence for discovery jobs and their CSV snapshots."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from psycopg2 import extras

from place_discovery.core import db
from place_discovery.core.errors import JobNotFoundError, PersistenceError
from place_discovery.core.models import Job, JobStatus, SearchParams

logger = logging.getLogger(__name__)

# Whole-field updates only; anything else is a programming error.
UPDATABLE_FIELDS = ("name", "status", "progress", "error")

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS jobs (
    id VARCHAR(64) PRIMARY KEY,
    name VARCHAR(255) NULL,
    status VARCHAR(20) NOT NULL,
    progress INTEGER NOT NULL DEFAULT 0,
    error TEXT NULL,
    params JSONB NOT NULL,
    results_csv TEXT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_CREATE_INDEX = "CREATE INDEX IF NOT EXISTS jobs_created_at_idx ON jobs (created_at DESC);"

_INSERT_JOB = """
INSERT INTO jobs (id, name, status, progress, error, params, created_at)
VALUES (%(id)s, %(name)s, %(status)s, %(progress)s, %(error)s, %(params)s, %(created_at)s);
"""

_SELECT_COLUMNS = "id, name, status, progress, error, params, created_at"


def _row_to_job(row: Dict[str, Any]) -> Job:
    return Job(
        id=row["id"],
        name=row.get("name"),
        status=JobStatus(row["status"]),
        progress=int(row.get("progress") or 0),
        error=row.get("error"),
        params=SearchParams.from_dict(row.get("params") or {}),
        created_at=row.get("created_at"),
    )


class PostgresJobStore:
    """Job records keyed by id in the ``jobs`` table."""

    def __init__(self) -> None:
        self._schema_ready = False

    def ensure_schema(self) -> None:
        if self._schema_ready:
            return
        with db.transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(_CREATE_TABLE)
                cur.execute(_CREATE_INDEX)
        self._schema_ready = True
        logger.info("jobs table ready")

    def create(self, job: Job) -> None:
        self.ensure_schema()
        params = {
            "id": job.id,
            "name": job.name,
            "status": job.status.value,
            "progress": job.progress,
            "error": job.error,
            "params": extras.Json(job.params.to_dict()),
            "created_at": job.created_at,
        }
        with db.transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(_INSERT_JOB, params)
        logger.debug("Inserted job %s", job.id)

    def get(self, job_id: str) -> Job:
        self.ensure_schema()
        with db.transaction() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(f"SELECT {_SELECT_COLUMNS} FROM jobs WHERE id = %s", (job_id,))
                row = cur.fetchone()
        if not row:
            raise JobNotFoundError(f"job {job_id} not found")
        return _row_to_job(row)

    def list_recent(self, limit: int) -> List[Job]:
        self.ensure_schema()
        with db.transaction() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(f"SELECT {_SELECT_COLUMNS} FROM jobs ORDER BY created_at DESC LIMIT %s", (limit,))
                rows = cur.fetchall()
        return [_row_to_job(row) for row in rows]

    def get_snapshot(self, job_id: str) -> str:
        """Stored CSV text, or an empty string when the run has not produced one."""
        self.ensure_schema()
        with db.transaction() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT results_csv FROM jobs WHERE id = %s", (job_id,))
                row = cur.fetchone()
        if not row:
            raise JobNotFoundError(f"job {job_id} not found")
        return row[0] or ""

    def update(self, job_id: str, *, expected_status: Optional[Iterable[JobStatus]] = None, **fields: Any) -> bool:
        """Apply whole-field updates; returns False when ``expected_status`` did not match."""
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"cannot update job fields: {', '.join(sorted(unknown))}")
        if not fields:
            return True

        values = {key: (value.value if isinstance(value, JobStatus) else value) for key, value in fields.items()}
        assignments = ", ".join(f"{key} = %({key})s" for key in values)
        sql = f"UPDATE jobs SET {assignments} WHERE id = %(job_id)s"
        values["job_id"] = job_id
        if expected_status is not None:
            sql += " AND status = ANY(%(expected_status)s)"
            values["expected_status"] = [status.value for status in expected_status]

        with db.transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, values)
                return cur.rowcount > 0

    def save_snapshot(self, job_id: str, csv_text: str) -> None:
        """Overwrite the snapshot; only a running job accepts one."""
        with db.transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE jobs SET results_csv = %s WHERE id = %s AND status = %s",
                    (csv_text, job_id, JobStatus.RUNNING.value),
                )
                updated = cur.rowcount
        if not updated:
            raise PersistenceError(f"snapshot for job {job_id} was not stored")
        logger.info("Stored snapshot for job %s (%d bytes)", job_id, len(csv_text))
