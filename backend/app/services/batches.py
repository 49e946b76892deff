from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List

from app.core.errors import NotFoundError
from app.models.entities import Job
from app.schemas.contracts import BatchSummary
from app.services.jobs import JobStore
from app.services.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)


def summarize_jobs(batch_id: str, jobs: List[Job]) -> BatchSummary:
    summary = BatchSummary(batch_id=batch_id, total=len(jobs))
    for job in jobs:
        setattr(summary, job.status, getattr(summary, job.status) + 1)
        if job.status == "completed":
            summary.total_tokens += job.total_tokens or 0
    return summary


class BatchAggregator:
    """Summaries and processing for jobs sharing a batch id.

    Jobs run one after another in arrival order unless ``concurrency`` is raised.
    """

    def __init__(self, jobs: JobStore, orchestrator: JobOrchestrator, concurrency: int = 1):
        self.jobs = jobs
        self.orchestrator = orchestrator
        self.concurrency = max(1, concurrency)

    def summarize(self, batch_id: str) -> BatchSummary:
        jobs = self.jobs.list_by_batch(batch_id)
        if not jobs:
            raise NotFoundError(f"Batch {batch_id} not found")
        return summarize_jobs(batch_id, jobs)

    def process_batch(self, batch_id: str) -> List[Job]:
        pending = [job.id for job in self.jobs.list_by_batch(batch_id) if job.status == "pending"]
        logger.info("Processing batch %s: %d pending jobs", batch_id, len(pending))
        if self.concurrency == 1:
            for job_id in pending:
                self.orchestrator.process(job_id)
        else:
            with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
                list(pool.map(self.orchestrator.process, pending))
        return self.jobs.list_by_batch(batch_id)
