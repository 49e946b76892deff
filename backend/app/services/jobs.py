from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from app.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from app.models.entities import JOB_STATUSES, Job, utc_now
from app.schemas.contracts import LocalizationConfig, Usage

logger = logging.getLogger(__name__)


class JobStore:
    """Job records and their state machine.

    Every transition is one conditional UPDATE keyed on the expected current
    status, so two runners can never both claim the same pending job.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def create(
        self,
        source_url: str,
        config: LocalizationConfig,
        preset_name: Optional[str] = None,
        batch_id: Optional[str] = None,
    ) -> Job:
        if not source_url or not source_url.strip():
            raise ValidationError("source_url is required")
        job = Job(
            source_url=source_url.strip(),
            config=config.model_dump(),
            preset_name=preset_name,
            batch_id=batch_id,
            status="pending",
        )
        with Session(self.engine) as session:
            session.add(job)
            session.commit()
            session.refresh(job)
        logger.info("Created job %s batch=%s source=%s", job.id, batch_id, job.source_url)
        return job

    def get(self, job_id: int) -> Job:
        with Session(self.engine) as session:
            job = session.get(Job, job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    def mark_processing(self, job_id: int) -> Job:
        return self._transition(job_id, "pending", status="processing")

    def mark_completed(
        self,
        job_id: int,
        artifact_id: str,
        output_url: str,
        filename: str,
        usage: Optional[Usage] = None,
    ) -> Job:
        if not artifact_id or not filename:
            raise ValidationError("artifact_id and filename are required to complete a job")
        usage = usage or Usage()
        return self._transition(
            job_id,
            "processing",
            status="completed",
            artifact_id=artifact_id,
            output_url=output_url,
            output_filename=filename,
            prompt_tokens=usage.prompt_tokens,
            candidate_tokens=usage.candidate_tokens,
            total_tokens=usage.total_tokens,
            completed_at=utc_now(),
        )

    def mark_failed(self, job_id: int, message: str) -> Job:
        return self._transition(
            job_id,
            "processing",
            status="failed",
            error=(message or "").strip() or "Unknown error",
            completed_at=utc_now(),
        )

    def _transition(self, job_id: int, expected: str, **values: Any) -> Job:
        stmt = update(Job).where(Job.id == job_id, Job.status == expected).values(**values)
        with Session(self.engine) as session:
            result = session.execute(stmt)
            session.commit()
            job = session.get(Job, job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        if result.rowcount != 1:
            raise InvalidTransitionError(
                f"Job {job_id} is {job.status}, expected {expected} to move to {values['status']}"
            )
        logger.info("Job %s %s -> %s", job_id, expected, job.status)
        return job

    def list_by_status(self, status: str) -> List[Job]:
        if status not in JOB_STATUSES:
            raise ValidationError(f"Unknown job status {status!r}")
        with Session(self.engine) as session:
            return list(session.exec(select(Job).where(Job.status == status).order_by(Job.id)).all())

    def list_by_batch(self, batch_id: str) -> List[Job]:
        """Jobs of a batch in arrival order."""
        with Session(self.engine) as session:
            return list(session.exec(select(Job).where(Job.batch_id == batch_id).order_by(Job.id)).all())

    def list_recent(self, limit: Optional[int] = None) -> List[Job]:
        stmt = select(Job).order_by(Job.created_at.desc(), Job.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with Session(self.engine) as session:
            return list(session.exec(stmt).all())

    def list(
        self,
        status: Optional[str] = None,
        batch_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Job], int]:
        # loads the whole dimension and slices in memory
        if limit < 0 or offset < 0:
            raise ValidationError("limit and offset must be non-negative")
        if batch_id:
            jobs = self.list_by_batch(batch_id)
        elif status:
            jobs = self.list_by_status(status)
        else:
            jobs = self.list_recent()
        return jobs[offset : offset + limit], len(jobs)


def config_of(job: Job) -> LocalizationConfig:
    # the snapshot was validated when the job was created
    return LocalizationConfig.model_construct(**job.config)


def usage_of(job: Job) -> Usage:
    return Usage(
        prompt_tokens=job.prompt_tokens or 0,
        candidate_tokens=job.candidate_tokens or 0,
        total_tokens=job.total_tokens or 0,
    )
