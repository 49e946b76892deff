from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "CultureShift Localizer"
    database_url: str = "sqlite:///./backend/cultureshift.db"
    artifacts_dir: str = "outputs"
    public_base_url: str = "http://127.0.0.1:8000"
    transform_provider: str = "mock"
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    default_model: str = "gemini-2.0-flash-exp"
    transform_timeout_s: Optional[float] = None
    source_timeout_s: int = 30
    user_agent: str = "CultureShiftBot/1.0"
    batch_concurrency: int = 1
    default_page_size: int = 50
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()


def ensure_directories() -> None:
    Path(settings.artifacts_dir).mkdir(parents=True, exist_ok=True)
