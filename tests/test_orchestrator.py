from datetime import timedelta

import pytest
from sqlalchemy import update

from noveldraft.extensions import db
from noveldraft.models import Novel, utcnow
from noveldraft.services.errors import (
    GeneratorConfigurationError,
    StageFailure,
    TransientServerError,
)
from noveldraft.services.orchestrator import Orchestrator
from noveldraft.services.parameters import NovelParameters
from noveldraft.services.settings import GenerationSettings
from noveldraft.services.stages import ChapterStage, JobStatus
from noveldraft.services.step_executor import StepExecutor

from conftest import ScriptedGenerator, make_outline, sample_payload


def _orchestrator(store, generator, settings=None, sleeps=None):
    settings = settings or GenerationSettings(max_retries=3, retry_delay=0.0)
    sleep = sleeps.append if sleeps is not None else (lambda seconds: None)
    return Orchestrator(store, StepExecutor(store, generator, settings), settings, sleep=sleep)


def test_advance_runs_exactly_one_stage(store, job):
    generator = ScriptedGenerator()
    orchestrator = _orchestrator(store, generator)

    result = orchestrator.advance(job.id)

    assert result.applied
    assert result.stage.key == "outline:initial"
    assert result.progress.status == "outline_in_progress"
    assert generator.kinds == ["outline"]


def test_retries_are_exhausted_on_short_outlines(store, job):
    generator = ScriptedGenerator(outline=lambda prompt: "0123456789")
    sleeps = []
    settings = GenerationSettings(max_retries=3, retry_delay=1.0)
    orchestrator = _orchestrator(store, generator, settings, sleeps)

    with pytest.raises(StageFailure) as excinfo:
        orchestrator.advance(job.id)

    assert excinfo.value.stage_key == "outline:initial"
    assert len(generator.prompts) == 3
    assert sleeps == [1.0, 2.0]
    refreshed = store.get(job.id)
    assert refreshed.status is JobStatus.ERROR
    assert "Outline rejected" in refreshed.last_error
    assert refreshed.stage.key == "start"


def test_transient_failure_is_retried_then_succeeds(store, job):
    attempts = []

    def flaky(prompt):
        attempts.append(prompt)
        if len(attempts) == 1:
            raise TransientServerError("upstream timeout")
        return make_outline()

    orchestrator = _orchestrator(store, ScriptedGenerator(outline=flaky))

    result = orchestrator.advance(job.id)

    assert result.applied
    assert len(attempts) == 2
    assert store.get(job.id).last_error is None


def test_configuration_errors_fail_without_retry(store, job):
    def unauthorized(prompt):
        raise GeneratorConfigurationError("Model provider rejected the request: 401")

    generator = ScriptedGenerator(outline=unauthorized)
    orchestrator = _orchestrator(store, generator)

    with pytest.raises(StageFailure):
        orchestrator.advance(job.id)

    assert len(generator.prompts) == 1
    refreshed = store.get(job.id)
    assert refreshed.status is JobStatus.ERROR
    assert "401" in refreshed.last_error


def test_outline_with_five_chapters_fails_the_job(store, job):
    generator = ScriptedGenerator(chapters=5)
    orchestrator = _orchestrator(store, generator)

    progress = orchestrator.run(job.id)

    assert progress.status == "error"
    assert "5 chapters" in progress.last_error
    refreshed = store.get(job.id)
    assert refreshed.stage.key == "outline:pass2"
    # Earlier artifacts are kept.
    assert len(refreshed.outline.iterations) == 3
    assert generator.kinds == ["outline", "outline_revision", "outline_revision"]


def test_error_jobs_stop_advancing(store, job):
    store.mark_error(job.id, "Stage chapter:3:initial failed")
    generator = ScriptedGenerator()

    result = _orchestrator(store, generator).advance(job.id)

    assert not result.applied
    assert result.progress.status == "error"
    assert result.progress.last_error == "Stage chapter:3:initial failed"
    assert generator.prompts == []


def test_run_completes_every_chapter(store, job):
    generator = ScriptedGenerator()

    progress = _orchestrator(store, generator).run(job.id)

    assert progress.status == "completed"
    assert progress.percent == 100
    assert progress.chapter_count == 10
    assert progress.current_chapter_index == 10
    refreshed = store.get(job.id)
    assert [record.index for record in refreshed.chapters] == list(range(1, 11))
    assert all(record.chapter_stage is ChapterStage.COMPLETED for record in refreshed.chapters)
    assert all(record.revision == 3 for record in refreshed.chapters)
    # Three outline calls, then a draft and two revisions per chapter.
    assert len(generator.prompts) == 3 + 10 * 3


def test_advancing_a_completed_job_does_nothing(store, job):
    generator = ScriptedGenerator()
    orchestrator = _orchestrator(store, generator)
    orchestrator.run(job.id)
    calls = len(generator.prompts)

    result = orchestrator.advance(job.id)

    assert not result.applied
    assert result.progress.status == "completed"
    assert len(generator.prompts) == calls


def test_sweep_marks_idle_active_jobs(store, job, user):
    fresh = store.create(user.id, NovelParameters.from_payload(sample_payload(title="Fresh")))
    db.session.execute(
        update(Novel)
        .where(Novel.id == job.id)
        .values(updated_at=utcnow() - timedelta(hours=3))
    )
    db.session.commit()

    swept = _orchestrator(store, ScriptedGenerator()).sweep_stale(timedelta(minutes=60))

    assert swept == [job.id]
    assert store.get(job.id).status is JobStatus.ERROR
    assert "timed out" in store.get(job.id).last_error
    assert store.get(fresh.id).status is JobStatus.INITIALIZING


def test_failure_after_another_invocation_advanced_the_job_is_a_conflict(store, job):
    calls = []

    def short_outline(prompt):
        calls.append(prompt)
        if len(calls) == 3:
            # A second invocation lands the same stage during the final attempt.
            store.conditional_update(
                job.id,
                "start",
                {"stage": "outline:initial", "status": JobStatus.OUTLINE_IN_PROGRESS.value},
            )
        return "0123456789"

    result = _orchestrator(store, ScriptedGenerator(outline=short_outline)).advance(job.id)

    assert result.conflict
    assert not result.applied
    assert len(calls) == 3
    refreshed = store.get(job.id)
    assert refreshed.stage.key == "outline:initial"
    assert refreshed.status is JobStatus.OUTLINE_IN_PROGRESS
    assert refreshed.last_error is None


def test_sweep_skips_jobs_that_already_failed(store, job):
    store.mark_error(job.id, "Stage outline:initial failed")
    db.session.execute(
        update(Novel)
        .where(Novel.id == job.id)
        .values(updated_at=utcnow() - timedelta(hours=3))
    )
    db.session.commit()

    swept = _orchestrator(store, ScriptedGenerator()).sweep_stale(timedelta(minutes=60))

    assert swept == []
    assert store.get(job.id).last_error == "Stage outline:initial failed"
