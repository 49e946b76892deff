from __future__ import annotations

import base64
import binascii
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

JobStatus = Literal["pending", "processing", "completed", "failed"]


class LocalizationConfig(BaseModel):
    """Everything a localization run needs; copied onto each job at creation."""

    model_config = ConfigDict(frozen=True)

    target_locale: str
    style_hints: str = ""
    remove_branding: bool = False
    add_brand_color: bool = False
    brand_color: str = ""
    attach_logo: bool = False
    logo_data: Optional[str] = None  # base64 PNG
    filename_find_pattern: str = ""
    filename_replace_template: str = ""
    model_version: Optional[str] = None
    aspect_ratio: Optional[str] = None
    image_size: Optional[str] = None

    @field_validator("target_locale")
    @classmethod
    def _target_locale_required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("target_locale must not be blank")
        return value.strip()

    @field_validator("logo_data")
    @classmethod
    def _logo_is_base64(cls, value: Optional[str]) -> Optional[str]:
        # stored bare: no data: prefix, no line wrapping
        if value is None:
            return None
        raw = value.strip()
        if raw.startswith("data:") and "," in raw:
            raw = raw.split(",", 1)[1]
        raw = "".join(raw.split())
        if not raw:
            return None
        try:
            base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("logo_data is not valid base64") from exc
        return raw

    @property
    def has_logo(self) -> bool:
        return self.attach_logo and bool(self.logo_data)


class PresetCreate(LocalizationConfig):
    name: str


class PresetSummary(BaseModel):
    id: int
    name: str
    target_locale: str
    created_at: datetime
    updated_at: datetime


class PresetRead(LocalizationConfig):
    id: int
    name: str
    created_at: datetime
    updated_at: datetime


class Usage(BaseModel):
    prompt_tokens: int = 0
    candidate_tokens: int = 0
    total_tokens: int = 0


class JobRead(BaseModel):
    id: int
    batch_id: Optional[str] = None
    source_url: str
    preset_name: Optional[str] = None
    config: Optional[LocalizationConfig] = None
    status: JobStatus
    error: Optional[str] = None
    artifact_id: Optional[str] = None
    output_url: Optional[str] = None
    output_filename: Optional[str] = None
    prompt_tokens: Optional[int] = None
    candidate_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class JobPage(BaseModel):
    items: List[JobRead] = Field(default_factory=list)
    total: int
    limit: int
    offset: int


class BatchSummary(BaseModel):
    batch_id: str
    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total_tokens: int = 0


class BatchItemResult(BaseModel):
    job_id: int
    source_url: str
    status: JobStatus
    error: Optional[str] = None
    output_url: Optional[str] = None
    output_filename: Optional[str] = None


class BatchRunResponse(BaseModel):
    success: bool = True
    batch_id: str
    results: List[BatchItemResult] = Field(default_factory=list)
    summary: BatchSummary


class JobCreateRequest(BaseModel):
    source_url: str
    preset_name: Optional[str] = None
    config: Optional[LocalizationConfig] = None
    batch_id: Optional[str] = None


class JobCreateResponse(BaseModel):
    job_id: int


class ProcessSingleRequest(BaseModel):
    url: str
    preset_name: str


class ProcessSingleWithConfigRequest(BaseModel):
    url: str
    config: LocalizationConfig


class ProcessBatchRequest(BaseModel):
    urls: List[str] = Field(default_factory=list)
    preset_name: str


class ProcessBatchWithConfigRequest(BaseModel):
    urls: List[str] = Field(default_factory=list)
    config: LocalizationConfig


class ProcessSingleResponse(BaseModel):
    success: bool = True
    job_id: int
    output_url: Optional[str] = None
    output_filename: Optional[str] = None
    usage: Usage
