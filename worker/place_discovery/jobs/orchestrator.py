"""Job lifecycle: create, run in the background, query, export and import."""

from __future__ import annotations

import json
import logging
import uuid
from collections import Counter
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from place_discovery.core.config import Settings
from place_discovery.core.errors import MissingCredentialError, ValidationError
from place_discovery.core.identity import CredentialResolver
from place_discovery.core.models import (
    DEFAULT_REGISTRY_STATUS,
    TRANSITIONS,
    Job,
    JobStatus,
    PlaceRecord,
    RegistryRecord,
    SearchParams,
)
from place_discovery.etl import codec
from place_discovery.etl.dedupe import dedupe
from place_discovery.jobs.validation import clamp, parse_search_request
from place_discovery.vendors import google_places
from place_discovery.vendors.http import RetryPolicy

logger = logging.getLogger(__name__)

UNKNOWN_LOCALITY = "unknown"
NAME_TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M"
EXPORT_FORMATS = ("csv", "json", "jsonl")

PROGRESS_SEARCHED = 60
PROGRESS_DEDUPED = 80
PROGRESS_DONE = 100

DEFAULT_LIST_LIMIT = 50
DEFAULT_PREVIEW_LIMIT = 20
MAX_PAGE_SIZE = 200

SearchFn = Callable[..., List[PlaceRecord]]


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex}"


def friendly_name(locality: Optional[str], params: SearchParams, when: datetime) -> str:
    return f"{locality or UNKNOWN_LOCALITY} {when.strftime(NAME_TIMESTAMP_FORMAT)} {params.radius_m}m {params.effective_limit}"


def dominant_locality(records: List[PlaceRecord]) -> Optional[str]:
    """Most frequent locality; ties go to the one seen first."""
    counts = Counter(record.locality for record in records if record.locality)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


class JobOrchestrator:
    """Drives discovery jobs through queued -> running -> completed/failed."""

    def __init__(
        self,
        settings: Settings,
        store,
        credential_resolver: CredentialResolver,
        registry,
        executor: Optional[Executor] = None,
        search: SearchFn = google_places.search_places,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.settings = settings
        self.store = store
        self.credential_resolver = credential_resolver
        self.registry = registry
        self.executor = executor or ThreadPoolExecutor(
            max_workers=settings.max_concurrent_jobs, thread_name_prefix="discovery-job"
        )
        self.search = search
        self.clock = clock
        self.retry_policy = RetryPolicy.from_settings(settings)

    # ---------- Create ----------

    def resolve_credential(self, headers: Mapping[str, str]) -> str:
        credential = self.credential_resolver.resolve(headers) or self.settings.google_api_key
        if not credential:
            raise MissingCredentialError("no Google Places key is configured for this caller")
        return credential

    def create_job(self, payload: Optional[Mapping[str, Any]], headers: Mapping[str, str]) -> str:
        """Validate, persist a queued job and schedule its run; returns the job id."""
        params = parse_search_request(payload)
        credential = self.resolve_credential(headers)

        now = self.clock()
        job = Job(
            id=new_job_id(),
            name=params.name or friendly_name(None, params, now),
            status=JobStatus.QUEUED,
            params=params,
            created_at=now,
        )
        self.store.create(job)
        logger.info("Queued job %s for query=%s radius=%dm", job.id, params.query, params.radius_m)

        try:
            self.executor.submit(self._run_job_safe, job.id, params, credential)
        except Exception as exc:
            logger.error("Could not schedule job %s: %s", job.id, exc.__class__.__name__)
            self._transition(job.id, JobStatus.QUEUED, JobStatus.FAILED, error="job could not be scheduled")
            raise
        return job.id

    # ---------- Run ----------

    def _transition(self, job_id: str, current: JobStatus, target: JobStatus, **fields: Any) -> None:
        if target not in TRANSITIONS[current]:
            raise RuntimeError(f"illegal job transition {current.value} -> {target.value}")
        if not self.store.update(job_id, expected_status=[current], status=target, **fields):
            raise RuntimeError(f"job {job_id} is no longer {current.value}")
        logger.info("Job %s: %s -> %s", job_id, current.value, target.value)

    def _mask(self, message: str, credential: Optional[str]) -> str:
        if credential:
            message = message.replace(credential, "***")
        return message[:500]

    def run_job(self, job_id: str, params: SearchParams, credential: str) -> None:
        """Execute the pipeline for one job; failures are recorded on the job."""
        status = JobStatus.QUEUED
        try:
            self._transition(job_id, status, JobStatus.RUNNING, progress=0, error=None)
            status = JobStatus.RUNNING

            records = self.search(
                params.query,
                (params.lat, params.lng),
                params.radius_m,
                params.effective_limit,
                credential,
                policy=self.retry_policy,
                warmup_seconds=self.settings.pagination_warmup_ms / 1000.0,
            )
            self.store.update(job_id, progress=PROGRESS_SEARCHED)

            unique = dedupe(records)
            self.store.update(job_id, progress=PROGRESS_DEDUPED)

            self.store.save_snapshot(job_id, codec.encode(unique))

            completion: Dict[str, Any] = {"progress": PROGRESS_DONE}
            if not params.name:
                completion["name"] = friendly_name(dominant_locality(unique), params, self.clock())
            self._transition(job_id, status, JobStatus.COMPLETED, **completion)
            logger.info("Job %s completed: raw=%d unique=%d", job_id, len(records), len(unique))
        except Exception as exc:  # noqa: BLE001
            message = self._mask(str(exc) or exc.__class__.__name__, credential)
            logger.error("Job %s failed: %s", job_id, message)
            self._transition(job_id, status, JobStatus.FAILED, error=message)

    def _run_job_safe(self, job_id: str, params: SearchParams, credential: str) -> None:
        try:
            self.run_job(job_id, params, credential)
        except Exception:  # noqa: BLE001
            # Recording the failure itself failed; the job stays where it was.
            logger.exception("Could not record outcome of job %s", job_id)

    # ---------- Query ----------

    def get_job(self, job_id: str) -> Dict[str, Any]:
        return self.store.get(job_id).summary()

    def list_jobs(self, limit: Any = None) -> List[Dict[str, Any]]:
        size = clamp(limit, DEFAULT_LIST_LIMIT, 1, MAX_PAGE_SIZE)
        return [job.summary(include_params=True) for job in self.store.list_recent(size)]

    def count_rows(self, job_id: str) -> Dict[str, int]:
        return {"total": codec.count_rows(self.store.get_snapshot(job_id))}

    def preview(self, job_id: str, limit: Any = None, offset: Any = None) -> List[Dict[str, Any]]:
        size = clamp(limit, DEFAULT_PREVIEW_LIMIT, 1, MAX_PAGE_SIZE)
        start = clamp(offset, 0, 0, 2**31 - 1)
        rows = codec.decode(self.store.get_snapshot(job_id))
        return [codec.to_preview(row) for row in rows[start:start + size]]

    def export(self, job_id: str, fmt: str = "json") -> Iterator[str]:
        """Snapshot as raw CSV, a JSON array, or JSON lines, yielded in chunks."""
        fmt = (fmt or "json").lower()
        if fmt not in EXPORT_FORMATS:
            raise ValidationError("unsupported export format", details={"format": f"must be one of {', '.join(EXPORT_FORMATS)}"})
        snapshot = self.store.get_snapshot(job_id)
        if fmt == "csv":
            return iter([snapshot])
        views = [codec.to_preview(row) for row in codec.decode(snapshot)]
        if fmt == "jsonl":
            return (json.dumps(view, ensure_ascii=False) + "\n" for view in views)
        return iter([json.dumps(views, ensure_ascii=False)])

    # ---------- Import ----------

    def import_job(self, job_id: str) -> Dict[str, int]:
        """Insert every named snapshot row into the registry, all or nothing."""
        rows = codec.decode(self.store.get_snapshot(job_id))
        inserted = 0
        with self.registry.transaction() as writer:
            for row in rows:
                name = (row.get("name") or "").strip()
                if not name:
                    continue
                writer.insert(
                    RegistryRecord(
                        name=name,
                        locality=row.get("city") or None,
                        category=row.get("category") or None,
                        website=row.get("site") or None,
                        phone=row.get("phone") or None,
                        status=DEFAULT_REGISTRY_STATUS,
                    )
                )
                inserted += 1
        logger.info("Imported job %s: inserted=%d total=%d", job_id, inserted, len(rows))
        return {"inserted": inserted, "total": len(rows)}
