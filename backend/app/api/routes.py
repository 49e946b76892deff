from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response

from app.core.errors import (
    DuplicateNameError,
    InvalidTransitionError,
    LocalizerError,
    NotFoundError,
    ValidationError,
)
from app.models.entities import Job, Preset
from app.schemas.contracts import (
    BatchItemResult,
    BatchRunResponse,
    BatchSummary,
    JobCreateRequest,
    JobCreateResponse,
    JobPage,
    JobRead,
    JobStatus,
    LocalizationConfig,
    PresetCreate,
    PresetRead,
    PresetSummary,
    ProcessBatchRequest,
    ProcessBatchWithConfigRequest,
    ProcessSingleRequest,
    ProcessSingleResponse,
    ProcessSingleWithConfigRequest,
)
from app.services.jobs import config_of, usage_of
from app.services.localization import BatchRun, LocalizationService

router = APIRouter(prefix="/api", tags=["api"])

ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    DuplicateNameError: 409,
    InvalidTransitionError: 409,
}


def get_service(request: Request) -> LocalizationService:
    return request.app.state.service


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(LocalizerError)
    async def localizer_error(_: Request, exc: LocalizerError):
        status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
        return JSONResponse(status_code=status, content={"detail": str(exc)})


def to_job_read(job: Job, with_config: bool = False) -> JobRead:
    return JobRead(
        id=job.id,
        batch_id=job.batch_id,
        source_url=job.source_url,
        preset_name=job.preset_name,
        config=config_of(job) if with_config else None,
        status=job.status,
        error=job.error,
        artifact_id=job.artifact_id,
        output_url=job.output_url,
        output_filename=job.output_filename,
        prompt_tokens=job.prompt_tokens,
        candidate_tokens=job.candidate_tokens,
        total_tokens=job.total_tokens,
        created_at=job.created_at,
        completed_at=job.completed_at,
    )


def to_preset_read(preset: Preset) -> PresetRead:
    return PresetRead.model_validate(preset, from_attributes=True)


def to_batch_response(run: BatchRun) -> BatchRunResponse:
    return BatchRunResponse(
        batch_id=run.batch_id,
        results=[
            BatchItemResult(
                job_id=job.id,
                source_url=job.source_url,
                status=job.status,
                error=job.error,
                output_url=job.output_url,
                output_filename=job.output_filename,
            )
            for job in run.results
        ],
        summary=run.summary,
    )


def to_single_response(job: Job) -> ProcessSingleResponse:
    if job.status != "completed":
        raise HTTPException(status_code=500, detail=job.error or "Processing failed")
    return ProcessSingleResponse(
        job_id=job.id,
        output_url=job.output_url,
        output_filename=job.output_filename,
        usage=usage_of(job),
    )


# presets


@router.post("/presets", response_model=PresetRead)
def create_preset(req: PresetCreate, service: LocalizationService = Depends(get_service)):
    config = LocalizationConfig.model_validate(req.model_dump(exclude={"name"}))
    return to_preset_read(service.create_preset(req.name, config))


@router.get("/presets", response_model=list[PresetSummary])
def list_presets(service: LocalizationService = Depends(get_service)):
    return service.list_presets()


@router.get("/presets/available")
def preset_name_available(name: str, service: LocalizationService = Depends(get_service)):
    return {"name": name, "available": service.is_preset_name_available(name)}


@router.get("/presets/by-name", response_model=PresetRead)
def get_preset(name: str, service: LocalizationService = Depends(get_service)):
    return to_preset_read(service.get_preset(name))


@router.put("/presets/by-name", response_model=PresetRead)
def update_preset(name: str, config: LocalizationConfig, service: LocalizationService = Depends(get_service)):
    return to_preset_read(service.update_preset(name, config))


@router.delete("/presets/by-name")
def delete_preset(name: str, service: LocalizationService = Depends(get_service)):
    service.delete_preset(name)
    return {"success": True, "deleted": name}


# jobs


@router.post("/jobs", response_model=JobCreateResponse)
def create_job(req: JobCreateRequest, service: LocalizationService = Depends(get_service)):
    job_id = service.create_job(req.source_url, config=req.config, preset_name=req.preset_name, batch_id=req.batch_id)
    return JobCreateResponse(job_id=job_id)


@router.post("/jobs/{job_id}/process", response_model=JobRead)
def process_job(job_id: int, service: LocalizationService = Depends(get_service)):
    return to_job_read(service.process_job(job_id))


@router.get("/jobs", response_model=JobPage)
def list_jobs(
    status: Optional[JobStatus] = None,
    batch_id: Optional[str] = Query(default=None, alias="batchId"),
    limit: Optional[int] = Query(default=None, ge=0),
    offset: int = Query(default=0, ge=0),
    service: LocalizationService = Depends(get_service),
):
    page = service.list_jobs(status=status, batch_id=batch_id, limit=limit, offset=offset)
    return JobPage(
        items=[to_job_read(job) for job in page["items"]],
        total=page["total"],
        limit=service.default_page_size if limit is None else limit,
        offset=offset,
    )


@router.get("/jobs/by-id", response_model=JobRead)
def get_job(job_id: int = Query(alias="jobId"), service: LocalizationService = Depends(get_service)):
    return to_job_read(service.get_job(job_id), with_config=True)


@router.get("/jobs/batch")
def get_batch(batch_id: str = Query(alias="batchId"), service: LocalizationService = Depends(get_service)):
    summary: BatchSummary = service.get_batch_summary(batch_id)
    return {
        "batch_id": batch_id,
        "jobs": [to_job_read(job) for job in service.get_batch_jobs(batch_id)],
        "summary": summary,
    }


# processing


@router.post("/process/single", response_model=ProcessSingleResponse)
def process_single(req: ProcessSingleRequest, service: LocalizationService = Depends(get_service)):
    return to_single_response(service.process_single(req.url, preset_name=req.preset_name))


@router.post("/process/single-with-config", response_model=ProcessSingleResponse)
def process_single_with_config(req: ProcessSingleWithConfigRequest, service: LocalizationService = Depends(get_service)):
    return to_single_response(service.process_single(req.url, config=req.config))


@router.post("/process/batch", response_model=BatchRunResponse)
def process_batch(req: ProcessBatchRequest, service: LocalizationService = Depends(get_service)):
    return to_batch_response(service.process_batch(req.urls, preset_name=req.preset_name))


@router.post("/process/batch-with-config", response_model=BatchRunResponse)
def process_batch_with_config(req: ProcessBatchWithConfigRequest, service: LocalizationService = Depends(get_service)):
    return to_batch_response(service.process_batch(req.urls, config=req.config))


# artifacts


@router.get("/files")
def get_file(id: str, service: LocalizationService = Depends(get_service)):
    data, content_type = service.open_artifact(id)
    return Response(
        content=data,
        media_type=content_type,
        headers={
            "Content-Disposition": f'inline; filename="{id}"',
            "Cache-Control": "public, max-age=31536000",
        },
    )
