from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, Text
from sqlmodel import Field, SQLModel

JOB_STATUSES = ("pending", "processing", "completed", "failed")
TERMINAL_STATUSES = ("completed", "failed")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Preset(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    target_locale: str
    style_hints: str = ""
    remove_branding: bool = False
    add_brand_color: bool = False
    brand_color: str = ""
    attach_logo: bool = False
    logo_data: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    filename_find_pattern: str = ""
    filename_replace_template: str = ""
    model_version: Optional[str] = None
    aspect_ratio: Optional[str] = None
    image_size: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Job(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    batch_id: Optional[str] = Field(default=None, index=True)
    source_url: str
    preset_name: Optional[str] = None
    # snapshot of LocalizationConfig taken at creation; never re-read from the preset
    config: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    status: str = Field(default="pending", index=True)
    error: Optional[str] = None
    artifact_id: Optional[str] = None
    output_url: Optional[str] = None
    output_filename: Optional[str] = None
    prompt_tokens: Optional[int] = None
    candidate_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    created_at: datetime = Field(default_factory=utc_now, index=True)
    completed_at: Optional[datetime] = None
