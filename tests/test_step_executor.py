import pytest

from noveldraft.extensions import db
from noveldraft.models import Novel
from noveldraft.services.errors import (
    ChapterCountOutOfRange,
    ContentValidationFailure,
    JobTerminated,
    StageOrderError,
)
from noveldraft.services.settings import GenerationSettings
from noveldraft.services.stages import (
    ChapterStage,
    JobStatus,
    OutlineStage,
    Stage,
    StepOutcome,
    chapter_stage,
    outline_stage,
    transition,
)
from noveldraft.services.step_executor import StepExecutor

from conftest import ScriptedGenerator, make_chapter, make_outline


def _run_outline(executor, job_id):
    for step in OutlineStage:
        assert executor.execute(job_id, outline_stage(step)).applied


def test_initial_outline_is_stored_as_first_iteration(store, settings, job):
    generator = ScriptedGenerator()
    executor = StepExecutor(store, generator, settings)

    result = executor.execute(job.id, outline_stage(OutlineStage.INITIAL))

    assert result.applied and not result.conflict
    refreshed = store.get(job.id)
    assert refreshed.stage == outline_stage(OutlineStage.INITIAL)
    assert refreshed.status is JobStatus.OUTLINE_IN_PROGRESS
    assert len(refreshed.outline.iterations) == 1
    assert refreshed.outline.current == make_outline()
    assert generator.kinds == ["outline"]


def test_reinvoking_a_completed_stage_is_a_no_op(store, settings, job):
    generator = ScriptedGenerator()
    executor = StepExecutor(store, generator, settings)
    executor.execute(job.id, outline_stage(OutlineStage.INITIAL))
    before = store.get(job.id)

    result = executor.execute(job.id, outline_stage(OutlineStage.INITIAL))

    after = store.get(job.id)
    assert not result.applied and not result.conflict
    assert len(generator.prompts) == 1
    assert after.updated_at == before.updated_at
    assert after.outline == before.outline


def test_skipping_ahead_is_rejected(store, settings, job):
    executor = StepExecutor(store, ScriptedGenerator(), settings)

    with pytest.raises(StageOrderError):
        executor.execute(job.id, outline_stage(OutlineStage.PASS1))

    assert store.get(job.id).stage.key == "start"


def test_error_jobs_report_their_stored_error(store, settings, job):
    store.mark_error(job.id, "Stage outline:initial failed after 3 attempts")
    executor = StepExecutor(store, ScriptedGenerator(), settings)

    with pytest.raises(JobTerminated) as excinfo:
        executor.execute(job.id, outline_stage(OutlineStage.INITIAL))

    assert excinfo.value.last_error == "Stage outline:initial failed after 3 attempts"


def test_invalid_content_leaves_the_job_untouched(store, settings, job):
    generator = ScriptedGenerator(outline=lambda prompt: "0123456789")
    executor = StepExecutor(store, generator, settings)

    with pytest.raises(ContentValidationFailure):
        executor.execute(job.id, outline_stage(OutlineStage.INITIAL))

    refreshed = store.get(job.id)
    assert refreshed.stage.key == "start"
    assert refreshed.status is JobStatus.INITIALIZING
    assert refreshed.outline.iterations == ()


def test_outline_passes_keep_every_iteration_and_finalize_counts_chapters(store, settings, job):
    revisions = iter(["first revision", "second revision"])

    def revise(prompt):
        return make_outline(12) + "\n" + next(revisions)

    generator = ScriptedGenerator(outline_revision=revise)
    executor = StepExecutor(store, generator, settings)

    _run_outline(executor, job.id)

    refreshed = store.get(job.id)
    iterations = refreshed.outline.iterations
    assert len(iterations) == 3
    assert iterations[0].content == make_outline(10)
    assert iterations[-1].content.endswith("second revision")
    assert refreshed.outline.current == iterations[-1].content
    assert refreshed.chapter_count == 12
    assert refreshed.status is JobStatus.OUTLINE_COMPLETED
    # Finalizing does not call the model.
    assert generator.kinds == ["outline", "outline_revision", "outline_revision"]


def test_outline_with_too_few_chapters_fails_the_finalize_gate(store, settings, job):
    generator = ScriptedGenerator(chapters=5)
    executor = StepExecutor(store, generator, settings)
    for step in (OutlineStage.INITIAL, OutlineStage.PASS1, OutlineStage.PASS2):
        executor.execute(job.id, outline_stage(step))

    with pytest.raises(ChapterCountOutOfRange):
        executor.execute(job.id, outline_stage(OutlineStage.COMPLETED))

    assert store.get(job.id).chapter_count == 0


def test_chapter_lifecycle_updates_one_record_in_place(store, settings, job):
    generator = ScriptedGenerator()
    executor = StepExecutor(store, generator, settings)
    _run_outline(executor, job.id)

    for step in ChapterStage:
        assert executor.execute(job.id, chapter_stage(1, step)).applied
        record = store.get(job.id).chapter(1)
        assert record.chapter_stage is step
        assert record.revision == list(ChapterStage).index(step)

    refreshed = store.get(job.id)
    assert len(refreshed.chapters) == 1
    assert refreshed.current_chapter_index == 1
    assert refreshed.chapters[0].content == make_chapter("chapter_revision")
    assert refreshed.status is JobStatus.IN_PROGRESS


def test_next_chapter_waits_for_the_previous_one(store, settings, job):
    executor = StepExecutor(store, ScriptedGenerator(), settings)
    _run_outline(executor, job.id)
    executor.execute(job.id, chapter_stage(1, ChapterStage.INITIAL))

    with pytest.raises(StageOrderError):
        executor.execute(job.id, chapter_stage(2, ChapterStage.INITIAL))


def test_chapter_draft_sees_outline_segment_and_previous_chapters(store, settings, job):
    generator = ScriptedGenerator()
    executor = StepExecutor(store, generator, settings)
    _run_outline(executor, job.id)
    for step in ChapterStage:
        executor.execute(job.id, chapter_stage(1, step))

    executor.execute(job.id, chapter_stage(2, ChapterStage.INITIAL))

    prompt = generator.prompts[-1]
    assert "This is Chapter 2." in prompt
    assert "Chapter 2: The tide turns" in prompt
    assert "CHAPTER 1:\n[chapter_revision]" in prompt


def test_dual_draft_comparison_can_pick_the_second_draft(store, job):
    settings = GenerationSettings(dual_draft_chapters=True, retry_delay=0.0)
    drafts = iter([make_chapter("draft A"), make_chapter("draft B")])
    generator = ScriptedGenerator(
        chapter=lambda prompt: next(drafts),
        comparison=lambda prompt: "Draft B handles the reveal better.\nCHOSEN: Draft B",
    )
    executor = StepExecutor(store, generator, settings)
    _run_outline(executor, job.id)

    executor.execute(job.id, chapter_stage(1, ChapterStage.INITIAL))

    assert generator.kinds[-3:] == ["chapter", "chapter", "comparison"]
    assert store.get(job.id).chapter(1).content == make_chapter("draft B")


def test_losing_a_concurrent_update_is_a_no_op(store, settings, job):
    def racing_outline(prompt):
        # Another invocation finishes the same stage while this one is generating.
        store.conditional_update(
            job.id,
            "start",
            {"stage": "outline:initial", "status": JobStatus.OUTLINE_IN_PROGRESS.value},
        )
        return make_outline()

    executor = StepExecutor(store, ScriptedGenerator(outline=racing_outline), settings)

    result = executor.execute(job.id, outline_stage(OutlineStage.INITIAL))

    assert not result.applied
    assert result.conflict
    # Only the winner's write exists.
    assert store.get(job.id).outline.iterations == ()


def test_conditional_update_never_touches_error_jobs(store, job):
    store.mark_error(job.id, "boom")

    changed = store.conditional_update(job.id, "start", {"stage": "outline:initial"})

    assert not changed
    novel = db.session.get(Novel, job.id)
    db.session.refresh(novel)
    assert novel.stage == "start"
    assert novel.last_error == "boom"


def test_stage_targets_parse_from_keys(store, settings, job):
    executor = StepExecutor(store, ScriptedGenerator(), settings)

    assert executor.execute(job.id, Stage.parse("outline:initial")).applied


def test_mark_error_only_applies_at_the_expected_stage(store, settings, job):
    StepExecutor(store, ScriptedGenerator(), settings).execute(job.id, outline_stage(OutlineStage.INITIAL))

    assert not store.mark_error(job.id, "late failure", expected_stage="start")
    assert store.get(job.id).status is JobStatus.OUTLINE_IN_PROGRESS

    assert store.mark_error(job.id, "real failure", expected_stage="outline:initial")
    assert not store.mark_error(job.id, "second failure")
    assert store.get(job.id).last_error == "real failure"


def test_each_write_follows_the_transition_function(store, settings, job):
    executor = StepExecutor(store, ScriptedGenerator(), settings)
    current = store.get(job.id)

    # The outline stages and the whole of chapter 1.
    for _ in range(8):
        planned = transition(current.stage, StepOutcome.success(), current.chapter_count)
        assert executor.execute(job.id, planned.stage).applied
        current = store.get(job.id)
        assert current.stage == planned.stage
        assert current.status is planned.status
