"""HTTP entrypoint exposing discovery jobs (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request, stream_with_context
from werkzeug.exceptions import HTTPException

from place_discovery.core.config import get_settings
from place_discovery.core.contact_enricher import enrich_contacts
from place_discovery.core.errors import PlaceDiscoveryError
from place_discovery.core.identity import build_resolver
from place_discovery.core.job_store import PostgresJobStore
from place_discovery.core.registry import PostgresRegistry
from place_discovery.jobs.orchestrator import JobOrchestrator

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & orchestrator ----------
app = Flask(__name__)
_orchestrator: Optional[JobOrchestrator] = None

_EXPORT_MIMETYPES = {
    "csv": "text/csv",
    "json": "application/json",
    "jsonl": "application/x-ndjson",
}


def get_orchestrator() -> JobOrchestrator:
    """Build the process-wide orchestrator on first use."""
    global _orchestrator
    if _orchestrator is None:
        settings = get_settings()
        _orchestrator = JobOrchestrator(
            settings=settings,
            store=PostgresJobStore(),
            credential_resolver=build_resolver(settings),
            registry=PostgresRegistry(),
        )
    return _orchestrator


# ---------- Errors ----------


@app.errorhandler(PlaceDiscoveryError)
def handle_discovery_error(exc: PlaceDiscoveryError) -> Any:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.kind, request.method, request.path, exc)
    return jsonify(exc.to_payload()), exc.status_code


@app.errorhandler(Exception)
def handle_unexpected_error(exc: Exception) -> Any:
    if isinstance(exc, HTTPException):
        return jsonify({"error": exc.name.lower().replace(" ", "_")}), exc.code
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"error": "internal_error"}), 500


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, never the database."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": getattr(settings, "worker_port", None),
                "max_concurrent_jobs": settings.max_concurrent_jobs,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/v1/search")
def create_search_job() -> Any:
    """
    Create a discovery job and schedule it in the background.
    Required JSON fields: query, lat, lng, radius_m
    Optional: limit (int), name (str), categories (list[str])
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    job_id = get_orchestrator().create_job(payload, request.headers)
    return jsonify({"jobId": job_id}), 202


@app.get("/v1/jobs")
def list_jobs() -> Any:
    return jsonify(get_orchestrator().list_jobs(request.args.get("limit"))), 200


@app.get("/v1/jobs/<job_id>")
def get_job(job_id: str) -> Any:
    return jsonify(get_orchestrator().get_job(job_id)), 200


@app.get("/v1/jobs/<job_id>/count")
def count_job_rows(job_id: str) -> Any:
    """Number of rows an import would consider (snapshot rows, header excluded)."""
    return jsonify(get_orchestrator().count_rows(job_id)), 200


@app.get("/v1/jobs/<job_id>/places")
def preview_job_places(job_id: str) -> Any:
    items = get_orchestrator().preview(job_id, request.args.get("limit"), request.args.get("offset"))
    return jsonify(items), 200


@app.post("/v1/jobs/<job_id>/import")
def import_job(job_id: str) -> Any:
    return jsonify(get_orchestrator().import_job(job_id)), 200


@app.get("/v1/export/<job_id>")
def export_job(job_id: str) -> Any:
    fmt = (request.args.get("format") or "json").lower()
    chunks = get_orchestrator().export(job_id, fmt)
    response = Response(stream_with_context(chunks), mimetype=_EXPORT_MIMETYPES[fmt])
    if fmt == "csv":
        response.headers["Content-Disposition"] = f'attachment; filename="export_{job_id}.csv"'
    return response


@app.post("/v1/enrich-contacts")
def enrich_contacts_route() -> Any:
    """Collect e-mails for a website/domain. JSON fields: website, domain, emails[] (one required)."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    emails = payload.get("emails")
    if emails is not None and not isinstance(emails, list):
        return jsonify({"error": "invalid_input", "details": {"emails": "must be a list"}}), 400

    found = enrich_contacts(
        get_settings(),
        website=payload.get("website"),
        domain=payload.get("domain"),
        emails=emails,
    )
    return jsonify({"emails": found}), 200


def main() -> None:
    """Bind on PORT (injected by Cloud Run), falling back to WORKER_PORT."""
    env_port = os.getenv("PORT")
    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
