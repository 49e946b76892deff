import base64
from io import BytesIO

import pytest
from PIL import Image
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from app.db.session import init_db
from app.schemas.contracts import LocalizationConfig
from app.services.artifacts import LocalArtifactStore
from app.services.batches import BatchAggregator
from app.services.jobs import JobStore
from app.services.localization import LocalizationService
from app.services.orchestrator import JobOrchestrator
from app.services.presets import PresetStore
from app.services.transform import TransformClient, TransformRequest, parse_generate_response

FIXED_NOW_MS = 1700000000000


def png_bytes(color: str = "red") -> bytes:
    buf = BytesIO()
    Image.new("RGB", (8, 8), color).save(buf, format="PNG")
    return buf.getvalue()


def image_response(total_tokens: int = 30, finish_reason: str = "STOP") -> dict:
    return {
        "candidates": [
            {
                "finishReason": finish_reason,
                "content": {
                    "parts": [
                        {"text": "here you go"},
                        {"inlineData": {"mimeType": "image/png", "data": base64.b64encode(png_bytes()).decode()}},
                    ]
                },
            }
        ],
        "usageMetadata": {"promptTokenCount": 10, "candidatesTokenCount": total_tokens - 10, "totalTokenCount": total_tokens},
    }


class ScriptedTransform(TransformClient):
    """Answers each call with the next scripted response body (or raises it)."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.requests: list[TransformRequest] = []

    def transform(self, request: TransformRequest):
        self.requests.append(request)
        body = self.responses.pop(0) if self.responses else image_response()
        if isinstance(body, Exception):
            raise body
        return parse_generate_response(body)


class FakeFetcher:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.fetched: list[str] = []

    def fetch(self, url: str):
        self.fetched.append(url)
        if url in self.fail_for:
            raise RuntimeError("Failed to fetch image: 404 Not Found")
        return png_bytes("blue"), "image/jpeg"


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(eng)
    return eng


@pytest.fixture
def job_store(engine):
    return JobStore(engine)


@pytest.fixture
def preset_store(engine):
    return PresetStore(engine)


@pytest.fixture
def artifacts(tmp_path):
    return LocalArtifactStore(str(tmp_path / "artifacts"), "http://testserver")


@pytest.fixture
def transform():
    return ScriptedTransform()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def orchestrator(job_store, artifacts, transform, fetcher):
    return JobOrchestrator(
        jobs=job_store,
        artifacts=artifacts,
        transform=transform,
        fetcher=fetcher,
        default_model="test-model",
        clock=lambda: FIXED_NOW_MS,
    )


@pytest.fixture
def service(preset_store, job_store, orchestrator):
    return LocalizationService(
        presets=preset_store,
        jobs=job_store,
        orchestrator=orchestrator,
        batches=BatchAggregator(job_store, orchestrator),
    )


@pytest.fixture
def config():
    return LocalizationConfig(
        target_locale="Japan",
        style_hints="Tokyo street at dusk",
        remove_branding=True,
        filename_find_pattern=r"^.*-([^-.]+)\..*$",
        filename_replace_template="neonLED_$1_TIMESTAMP.png",
    )
