import base64
import re

from app.core.errors import StorageError
from app.schemas.contracts import LocalizationConfig
from app.services.artifacts import ArtifactStore
from app.services.orchestrator import JobOrchestrator

from conftest import FIXED_NOW_MS, image_response

SOURCE = "https://cdn.test/img/inhale-exhale-customneon-mintgreen.jpg?sig=abc"


def test_successful_job_is_completed(orchestrator, job_store, config, fetcher, artifacts):
    job = job_store.create(SOURCE, config)
    done = orchestrator.process(job.id)

    assert done.status == "completed"
    assert done.error is None
    assert done.output_filename == f"neonLED_mintgreen_{FIXED_NOW_MS}.png"
    assert done.output_url == f"http://testserver/api/files?id={done.artifact_id}"
    assert done.total_tokens == 30
    assert done.completed_at is not None
    assert fetcher.fetched == [SOURCE]
    data, content_type = artifacts.open(done.artifact_id)
    assert content_type == "image/png" and data.startswith(b"\x89PNG")


def test_request_carries_instruction_model_and_logo(orchestrator, job_store, transform):
    config = LocalizationConfig(
        target_locale="Brazil",
        attach_logo=True,
        logo_data="data:image/png;base64," + base64.b64encode(b"logo-bytes").decode(),
        model_version="gemini-pro-image",
    )
    orchestrator.process(job_store.create(SOURCE, config).id)

    request = transform.requests[0]
    assert "Brazil" in request.instruction and "INSERT LOGO" in request.instruction
    assert request.logo == b"logo-bytes"
    assert request.model == "gemini-pro-image"
    assert request.mime_type == "image/jpeg"


def test_default_model_used_when_config_has_none(orchestrator, job_store, transform, config):
    orchestrator.process(job_store.create(SOURCE, config).id)
    assert transform.requests[0].model == "test-model"


def test_blocked_response_fails_job(orchestrator, job_store, transform, config):
    transform.responses = [image_response(finish_reason="SAFETY")]
    failed = orchestrator.process(job_store.create(SOURCE, config).id)
    assert failed.status == "failed"
    assert "SAFETY" in failed.error
    assert failed.artifact_id is None and failed.output_filename is None
    assert failed.completed_at is not None


def test_fetch_error_fails_job(orchestrator, job_store, fetcher, config):
    fetcher.fail_for.add(SOURCE)
    failed = orchestrator.process(job_store.create(SOURCE, config).id)
    assert failed.status == "failed"
    assert "404" in failed.error


def test_storage_error_fails_job(job_store, transform, fetcher, config):
    class BrokenStore(ArtifactStore):
        def store(self, data):
            raise StorageError("disk full")

        def get_url(self, artifact_id):
            raise AssertionError("unreachable")

        def open(self, artifact_id):
            raise AssertionError("unreachable")

    orchestrator = JobOrchestrator(job_store, BrokenStore(), transform, fetcher, default_model="m")
    failed = orchestrator.process(job_store.create(SOURCE, config).id)
    assert failed.status == "failed"
    assert failed.error == "disk full"


def test_bad_filename_pattern_never_fails_job(orchestrator, job_store):
    config = LocalizationConfig(target_locale="Peru", filename_find_pattern="(", filename_replace_template="x_$1")
    done = orchestrator.process(job_store.create(SOURCE, config).id)
    assert done.status == "completed"
    assert re.match(r"^localized_\d+\.png$", done.output_filename)


def test_already_claimed_job_is_left_alone(orchestrator, job_store, transform, config):
    job = job_store.create(SOURCE, config)
    job_store.mark_processing(job.id)
    result = orchestrator.process(job.id)
    assert result.status == "processing"
    assert transform.requests == []


def test_terminal_job_is_not_reprocessed(orchestrator, job_store, transform, config):
    job = job_store.create(SOURCE, config)
    orchestrator.process(job.id)
    again = orchestrator.process(job.id)
    assert again.status == "completed"
    assert len(transform.requests) == 1


def test_wrapped_logo_reaches_transform(orchestrator, job_store, transform):
    config = LocalizationConfig(target_locale="Peru", attach_logo=True, logo_data="bG9n\nby1i\neXRlcw==")
    done = orchestrator.process(job_store.create(SOURCE, config).id)
    assert done.status == "completed"
    assert transform.requests[0].logo == b"logo-bytes"
