"""Execute exactly one stage of a novel job."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict

from . import prompts
from .content_validation import (
    extract_outline_segment,
    require_valid_chapter,
    require_valid_outline,
)
from .errors import JobTerminated, StageOrderError, StepError
from .jobs import ChapterRecord, GenerationJob
from .settings import GenerationSettings
from .stages import (
    ChapterStage,
    JobStatus,
    OutlineStage,
    Stage,
    StepOutcome,
    count_chapter_markers,
    is_after,
    next_stage,
    transition,
    validate_chapter_count,
)
from .store import JobStore
from .text_generation import TextGenerator

LOGGER = logging.getLogger(__name__)

_CHOSEN_B = re.compile(r"CHOSEN:\s*Draft\s+B\b", re.IGNORECASE)

_OUTLINE_PASSES = {OutlineStage.PASS1: 1, OutlineStage.PASS2: 2}
_CHAPTER_REVISIONS = {ChapterStage.REVISION_ONE: 1, ChapterStage.REVISION_TWO: 2}


@dataclass(frozen=True)
class StepResult:
    stage: Stage
    applied: bool
    conflict: bool = False


class StepExecutor:
    """Run the work for one stage and persist it with a stage compare-and-swap.

    Re-invoking a stage the job has already passed is a no-op. Retryable
    failures propagate without touching the stored job; deciding whether to
    retry or give up belongs to the orchestrator.
    """

    def __init__(self, store: JobStore, generator: TextGenerator, settings: GenerationSettings) -> None:
        self.store = store
        self.generator = generator
        self.settings = settings

    def execute(self, job_id: str, target: Stage) -> StepResult:
        job = self.store.get(job_id)
        if job.status is JobStatus.ERROR:
            raise JobTerminated(job_id, job.last_error)

        if not is_after(target, job.stage):
            LOGGER.info(
                "Stage already applied job_id=%s stage=%s current=%s", job_id, target.key, job.stage.key
            )
            return StepResult(stage=target, applied=False)

        if next_stage(job.stage, job.chapter_count) is None:
            raise StageOrderError(f"Novel job '{job_id}' is already complete.")
        planned = transition(job.stage, StepOutcome.success(), job.chapter_count)
        if target != planned.stage:
            raise StageOrderError(
                f"Stage {target.key} cannot run yet; the next stage is {planned.stage.key}."
            )

        changes = self._perform(job, target)
        move = transition(
            job.stage, StepOutcome.success(), changes.get("chapter_count", job.chapter_count)
        )
        changes["stage"] = move.stage.key
        changes["status"] = move.status.value

        if not self.store.conditional_update(job_id, job.stage.key, changes):
            LOGGER.warning(
                "Stage lost a concurrent update job_id=%s stage=%s expected=%s",
                job_id,
                target.key,
                job.stage.key,
            )
            return StepResult(stage=target, applied=False, conflict=True)

        LOGGER.info("Stage applied job_id=%s stage=%s status=%s", job_id, target.key, changes["status"])
        return StepResult(stage=target, applied=True)

    # ---------------- stage work ----------------
    def _perform(self, job: GenerationJob, target: Stage) -> Dict[str, Any]:
        if target.is_outline:
            return self._outline_step(job, target.step)
        return self._chapter_step(job, target.chapter, target.step)

    def _outline_step(self, job: GenerationJob, step: OutlineStage) -> Dict[str, Any]:
        params = job.parameters
        if step is OutlineStage.INITIAL:
            text = self._generate(prompts.outline_prompt(params), self.settings.outline_max_tokens)
            outline = require_valid_outline(text)
            return {"outline_data": job.outline.with_iteration(outline).to_dict()}

        current = job.outline.current
        if not current:
            raise StepError(f"Novel job '{job.id}' has no outline to work from.")

        if step is OutlineStage.COMPLETED:
            count = validate_chapter_count(count_chapter_markers(current))
            return {"chapter_count": count}

        prompt = prompts.outline_revision_prompt(params, _OUTLINE_PASSES[step], current)
        outline = require_valid_outline(self._generate(prompt, self.settings.outline_max_tokens))
        return {"outline_data": job.outline.with_iteration(outline).to_dict()}

    def _chapter_step(self, job: GenerationJob, index: int, step: ChapterStage) -> Dict[str, Any]:
        if step is ChapterStage.INITIAL:
            content = require_valid_chapter(self._draft_chapter(job, index))
            record = ChapterRecord(
                index=index, content=content, revision=0, chapter_stage=ChapterStage.INITIAL
            )
            return {"chapters_data": job.chapters_payload(record), "current_chapter_index": index}

        record = job.chapter(index)
        if record is None:
            raise StepError(f"Novel job '{job.id}' has no draft for chapter {index}.")

        if step is ChapterStage.COMPLETED:
            return {"chapters_data": job.chapters_payload(record.advanced(step))}

        prompt = prompts.chapter_revision_prompt(job.parameters, _CHAPTER_REVISIONS[step], record.content)
        revised = require_valid_chapter(self._generate(prompt, self.settings.chapter_max_tokens))
        return {"chapters_data": job.chapters_payload(record.advanced(step, revised))}

    def _draft_chapter(self, job: GenerationJob, index: int) -> str:
        segment = extract_outline_segment(job.outline.current or "", index)
        prompt = prompts.chapter_draft_prompt(job.parameters, segment, job.chapters_before(index), index)
        draft_a = self._generate(prompt, self.settings.chapter_max_tokens)
        if not self.settings.dual_draft_chapters:
            return draft_a

        draft_b = self._generate(prompt, self.settings.chapter_max_tokens)
        verdict = self.generator.generate(
            prompts.comparison_prompt(draft_a, draft_b),
            max_tokens=self.settings.chapter_max_tokens,
            temperature=self.settings.comparison_temperature,
        )
        chosen = "B" if _CHOSEN_B.search(verdict or "") else "A"
        LOGGER.info("Dual draft comparison job_id=%s chapter=%s chosen=%s", job.id, index, chosen)
        return draft_b if chosen == "B" else draft_a

    def _generate(self, prompt: str, max_tokens: int) -> str:
        return self.generator.generate(prompt, max_tokens=max_tokens, temperature=self.settings.temperature)


__all__ = ["StepExecutor", "StepResult"]
