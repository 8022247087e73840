"""
DJT Quest Platform
Scheduler Service — batch job registry and trigger.

Jobs are plain functions registered by name with ``@register_job``. They are
triggered on demand (HTTP) or by an external scheduler calling the same
entry point; nothing is scheduled in-process.

Architecture:
    - Job registry: name → function(app) → dict result
    - ScheduledJob rows keep the enable flag and run history; a job's row is
      created on its first run or toggle if it does not exist yet
    - One non-blocking lock per job name: a trigger that arrives while the
      same job is still running in this process returns status "skipped"
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import nullcontext
from typing import Callable

from flask import Flask, current_app, has_app_context

from app.models import db
from app.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}
_job_locks: dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("evaluator_assignment")
        def run_evaluator_assignment(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


def job_lock(name: str) -> threading.Lock:
    """The in-process lock guarding ``name``."""
    with _locks_guard:
        return _job_locks.setdefault(name, threading.Lock())


class SchedulerService:
    """
    Job registry facade.

    Jobs are executed within the Flask app context; run history is written to
    ScheduledJob after every attempt, including skipped ones.
    """

    _app: Flask | None = None

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """Initialize scheduler with Flask app context."""
        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("SchedulerService initialized with %d registered jobs",
                    len(_job_registry))

    @classmethod
    def _context(cls):
        if has_app_context() and current_app._get_current_object() is cls._app:
            return nullcontext()
        return cls._app.app_context()

    @classmethod
    def ensure_jobs_registered(cls) -> list[ScheduledJob]:
        """Create a ScheduledJob row for every registered job that lacks one."""
        if not cls._app:
            return []

        created = []
        with cls._context():
            for name, fn in _job_registry.items():
                if ScheduledJob.query.filter_by(job_name=name).first() is None:
                    created.append(cls._new_record(name, fn))
            if created:
                db.session.commit()
                logger.info("Created %d scheduled job records", len(created))
        return created

    @staticmethod
    def _new_record(name: str, fn: Callable) -> ScheduledJob:
        job = ScheduledJob(
            job_name=name,
            description=(fn.__doc__ or f"Batch job: {name}").strip()[:500],
            status="active",
            is_enabled=True,
        )
        db.session.add(job)
        return job

    @classmethod
    def _get_or_create_record(cls, job_name: str, fn: Callable) -> ScheduledJob:
        record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if record is None:
            record = cls._new_record(job_name, fn)
            db.session.commit()
            logger.info("Created scheduled job record for %s", job_name, extra={"job_name": job_name})
        return record

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Execute a single job by name.

        Returns:
            Dict with job_name, status (success/failed/skipped), duration_ms,
            result and error.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"job_name": job_name, "status": "error", "error": f"Unknown job: {job_name}"}

        if not cls._app:
            return {"job_name": job_name, "status": "error", "error": "Scheduler not initialized"}

        lock = job_lock(job_name)
        if not lock.acquire(blocking=False):
            logger.warning("Job %s skipped: already running", job_name, extra={"job_name": job_name})
            return cls._finish(job_name, "skipped", 0, None, "already running")

        try:
            with cls._context():
                record = cls._get_or_create_record(job_name, fn)
                if not record.is_enabled:
                    logger.info("Job %s skipped: disabled", job_name, extra={"job_name": job_name})
                    return cls._finish(job_name, "skipped", 0, None, "disabled")

            start = time.monotonic()
            result = None
            error = None
            status = "success"
            try:
                with cls._context():
                    result = fn(cls._app)
            except Exception as exc:
                status = "failed"
                error = str(exc)
                logger.exception("Job %s failed: %s", job_name, exc, extra={"job_name": job_name})
            duration_ms = int((time.monotonic() - start) * 1000)
            return cls._finish(job_name, status, duration_ms, result, error)
        finally:
            lock.release()

    @classmethod
    def _finish(cls, job_name, status, duration_ms, result, error) -> dict:
        try:
            with cls._context():
                job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
                if job_record:
                    job_record.record_run(
                        status=status,
                        duration_ms=duration_ms,
                        result=result if isinstance(result, dict) else {"output": str(result)},
                        error=error,
                    )
                    db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception("Failed to update job record for %s", job_name)

        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    @classmethod
    def list_jobs(cls) -> list[dict]:
        """List all registered jobs with their DB status."""
        cls.ensure_jobs_registered()
        jobs = []
        for name in _job_registry:
            job_record = ScheduledJob.query.filter_by(job_name=name).first()
            jobs.append({
                "job_name": name,
                "registered": True,
                "db_record": job_record.to_dict() if job_record else None,
            })
        return jobs

    @classmethod
    def toggle_job(cls, job_name: str, enabled: bool) -> dict | None:
        """Enable or disable a job. Returns None for an unknown job."""
        fn = _job_registry.get(job_name)
        if fn is None:
            return None
        job_record = cls._get_or_create_record(job_name, fn)
        job_record.is_enabled = enabled
        job_record.status = "active" if enabled else "paused"
        db.session.commit()
        return job_record.to_dict()
