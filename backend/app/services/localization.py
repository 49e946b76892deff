"""Direct-call surface over presets, jobs and batches.

The HTTP routes are a thin JSON layer on top of this class. Configs are
validated here, once, when a preset or job is created; everything downstream
trusts the stored snapshot.
"""
from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple, Union

import pydantic
from sqlalchemy.engine import Engine

from app.core.errors import ValidationError
from app.core.settings import Settings, settings
from app.models.entities import Job, Preset
from app.schemas.contracts import BatchSummary, LocalizationConfig, PresetSummary
from app.services.artifacts import LocalArtifactStore
from app.services.batches import BatchAggregator
from app.services.jobs import JobStore
from app.services.orchestrator import JobOrchestrator
from app.services.presets import PresetStore, snapshot
from app.services.sources import SourceFetcher
from app.services.transform import get_transform_client

logger = logging.getLogger(__name__)

ConfigInput = Union[LocalizationConfig, Mapping[str, Any]]


def new_batch_id() -> str:
    return f"batch_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def coerce_config(config: ConfigInput) -> LocalizationConfig:
    if isinstance(config, LocalizationConfig):
        return config
    if config is None:
        raise ValidationError("Config is required")
    try:
        return LocalizationConfig.model_validate(dict(config))
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid config: {exc.errors()[0]['msg']}") from exc


@dataclass
class BatchRun:
    batch_id: str
    results: List[Job]
    summary: BatchSummary


class LocalizationService:
    def __init__(
        self,
        presets: PresetStore,
        jobs: JobStore,
        orchestrator: JobOrchestrator,
        batches: BatchAggregator,
        default_page_size: int = 50,
    ):
        self.presets = presets
        self.jobs = jobs
        self.orchestrator = orchestrator
        self.batches = batches
        self.default_page_size = default_page_size

    # presets

    def create_preset(self, name: str, config: ConfigInput) -> Preset:
        return self.presets.create(name, coerce_config(config))

    def get_preset(self, name: str) -> Preset:
        return self.presets.get(name)

    def update_preset(self, name: str, config: ConfigInput) -> Preset:
        return self.presets.update(name, coerce_config(config))

    def delete_preset(self, name: str) -> None:
        self.presets.delete(name)

    def list_presets(self) -> List[PresetSummary]:
        return self.presets.list()

    def is_preset_name_available(self, name: str) -> bool:
        return self.presets.is_name_available(name)

    # jobs

    def resolve_config(
        self, preset_name: Optional[str] = None, config: Optional[ConfigInput] = None
    ) -> Tuple[LocalizationConfig, Optional[str]]:
        """Config snapshot for a new job, from an inline config or a named preset."""
        if config is not None:
            return coerce_config(config), preset_name
        if preset_name:
            return snapshot(self.presets.get(preset_name)), preset_name
        raise ValidationError("Either a preset name or a config is required")

    def create_job(
        self,
        source_url: str,
        config: Optional[ConfigInput] = None,
        preset_name: Optional[str] = None,
        batch_id: Optional[str] = None,
    ) -> int:
        resolved, preset_name = self.resolve_config(preset_name, config)
        return self.jobs.create(source_url, resolved, preset_name=preset_name, batch_id=batch_id).id

    def get_job(self, job_id: int) -> Job:
        return self.jobs.get(job_id)

    def list_jobs(
        self,
        status: Optional[str] = None,
        batch_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> dict:
        limit = self.default_page_size if limit is None else limit
        items, total = self.jobs.list(status=status, batch_id=batch_id, limit=limit, offset=offset)
        return {"items": items, "total": total}

    def open_artifact(self, artifact_id: str) -> Tuple[bytes, str]:
        return self.orchestrator.artifacts.open(artifact_id)

    def process_job(self, job_id: int) -> Job:
        return self.orchestrator.process(job_id)

    def process_single(
        self, url: str, preset_name: Optional[str] = None, config: Optional[ConfigInput] = None
    ) -> Job:
        job_id = self.create_job(url, config=config, preset_name=preset_name)
        return self.orchestrator.process(job_id)

    # batches

    def get_batch_summary(self, batch_id: str) -> BatchSummary:
        return self.batches.summarize(batch_id)

    def get_batch_jobs(self, batch_id: str) -> List[Job]:
        return self.jobs.list_by_batch(batch_id)

    def process_batch(
        self, urls: List[str], preset_name: Optional[str] = None, config: Optional[ConfigInput] = None
    ) -> BatchRun:
        if not urls:
            raise ValidationError("URLs array is required")
        if any(not u or not u.strip() for u in urls):
            raise ValidationError("URLs must not be blank")
        resolved, preset_name = self.resolve_config(preset_name, config)

        batch_id = new_batch_id()
        for url in urls:
            self.jobs.create(url, resolved, preset_name=preset_name, batch_id=batch_id)

        results = self.batches.process_batch(batch_id)
        summary = self.batches.summarize(batch_id)
        logger.info(
            "Batch %s finished: %d completed, %d failed", batch_id, summary.completed, summary.failed
        )
        return BatchRun(batch_id=batch_id, results=results, summary=summary)


def build_service(engine: Engine, config: Settings = settings) -> LocalizationService:
    """Wire the stores and collaborators from settings."""
    jobs = JobStore(engine)
    orchestrator = JobOrchestrator(
        jobs=jobs,
        artifacts=LocalArtifactStore(config.artifacts_dir, config.public_base_url),
        transform=get_transform_client(config.transform_provider, config),
        fetcher=SourceFetcher(timeout_s=config.source_timeout_s, user_agent=config.user_agent),
        default_model=config.default_model,
    )
    return LocalizationService(
        presets=PresetStore(engine),
        jobs=jobs,
        orchestrator=orchestrator,
        batches=BatchAggregator(jobs, orchestrator, concurrency=config.batch_concurrency),
        default_page_size=config.default_page_size,
    )
