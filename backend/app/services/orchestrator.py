from __future__ import annotations

import base64
import logging
from typing import Callable, Optional, Protocol, Tuple

from app.core.errors import InvalidTransitionError
from app.models.entities import Job
from app.schemas.contracts import LocalizationConfig
from app.services.artifacts import ArtifactStore
from app.services.instructions import build_instruction
from app.services.jobs import JobStore, config_of
from app.services.transform import TransformClient, TransformRequest
from app.utils.filenames import derive_output_filename, filename_from_url

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    def fetch(self, url: str) -> Tuple[bytes, str]: ...


def decode_logo(config: LocalizationConfig) -> Optional[bytes]:
    # logo_data was normalized to bare base64 when the config was validated
    if not config.has_logo:
        return None
    return base64.b64decode(config.logo_data)


class JobOrchestrator:
    """Drives a single job from pending to a terminal status.

    Processing failures are recorded on the job and never raised; callers read
    the outcome from the returned job.
    """

    def __init__(
        self,
        jobs: JobStore,
        artifacts: ArtifactStore,
        transform: TransformClient,
        fetcher: Fetcher,
        default_model: str,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.jobs = jobs
        self.artifacts = artifacts
        self.transform = transform
        self.fetcher = fetcher
        self.default_model = default_model
        self.clock = clock

    def process(self, job_id: int) -> Job:
        job = self.jobs.get(job_id)
        try:
            job = self.jobs.mark_processing(job_id)
        except InvalidTransitionError:
            logger.warning("Job %s is already %s; skipping", job_id, job.status)
            return self.jobs.get(job_id)

        try:
            self._run(job)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Job %s failed: %s", job_id, exc)
            try:
                self.jobs.mark_failed(job_id, str(exc) or type(exc).__name__)
            except InvalidTransitionError as transition_exc:
                logger.error("Could not record failure of job %s: %s", job_id, transition_exc)
        return self.jobs.get(job_id)

    def _run(self, job: Job) -> None:
        config = config_of(job)
        image, mime_type = self.fetcher.fetch(job.source_url)

        request = TransformRequest(
            instruction=build_instruction(config),
            image=image,
            mime_type=mime_type,
            model=config.model_version or self.default_model,
            logo=decode_logo(config),
            aspect_ratio=config.aspect_ratio,
            image_size=config.image_size,
        )
        result = self.transform.transform(request)

        artifact_id = self.artifacts.store(result.image)
        output_url = self.artifacts.get_url(artifact_id)

        filename = derive_output_filename(
            filename_from_url(job.source_url),
            config.filename_find_pattern,
            config.filename_replace_template,
            now_ms=self.clock() if self.clock else None,
        )
        self.jobs.mark_completed(job.id, artifact_id, output_url, filename, result.usage)
        logger.info(
            "Job %s completed as %s (%d tokens)", job.id, filename, result.usage.total_tokens
        )
