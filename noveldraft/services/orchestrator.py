"""Drive novel jobs forward one stage at a time."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, List, Optional

from ..models import utcnow
from .errors import (
    JobTerminated,
    RetryableStepError,
    StageFailure,
    StageOrderError,
    StepError,
)
from .jobs import GenerationJob
from .progress import Progress, get_progress, progress_for
from .retry import retry_with_backoff
from .settings import GenerationSettings
from .stages import Stage, StepOutcome, next_stage, transition
from .step_executor import StepExecutor, StepResult
from .store import JobStore

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdvanceResult:
    progress: Progress
    stage: Optional[Stage] = None
    applied: bool = False
    conflict: bool = False


class Orchestrator:
    """Owns the retry policy and the decision to fail a job.

    Retryable step errors are retried with linear backoff. When the budget is
    spent, or a fatal step error occurs, the job is moved to ``error`` with
    the failure message and :class:`StageFailure` is raised, unless another
    invocation has already moved the job past that stage, in which case the
    failure is a conflict and nothing is written. Artifacts from earlier
    stages are left in place.
    """

    def __init__(
        self,
        store: JobStore,
        executor: StepExecutor,
        settings: GenerationSettings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.executor = executor
        self.settings = settings
        self.sleep = sleep

    def advance(self, job_id: str) -> AdvanceResult:
        job = self.store.get(job_id)
        if job.status.is_terminal:
            return AdvanceResult(progress=progress_for(job))

        target = next_stage(job.stage, job.chapter_count)
        if target is None:
            return AdvanceResult(progress=progress_for(job))

        def on_retry(attempt: int, exc: BaseException) -> None:
            LOGGER.warning(
                "Stage attempt failed job_id=%s stage=%s attempt=%d/%d error=%s",
                job_id,
                target.key,
                attempt,
                self.settings.max_retries,
                exc,
            )

        try:
            result: StepResult = retry_with_backoff(
                lambda: self.executor.execute(job_id, target),
                attempts=self.settings.max_retries,
                delay=self.settings.retry_delay,
                retry_on=(RetryableStepError,),
                sleep=self.sleep,
                on_retry=on_retry,
            )
        except (JobTerminated, StageOrderError):
            raise
        except RetryableStepError as exc:
            message = (
                f"Stage {target.key} failed after {self.settings.max_retries} attempts: {exc}"
            )
            return self._fail(job, target, message)
        except StepError as exc:
            return self._fail(job, target, f"Stage {target.key} failed: {exc}")

        return AdvanceResult(
            progress=get_progress(self.store, job_id),
            stage=target,
            applied=result.applied,
            conflict=result.conflict,
        )

    def run(self, job_id: str) -> Progress:
        """Advance ``job_id`` until it completes or fails and return the final progress."""

        progress = get_progress(self.store, job_id)
        while not progress.is_terminal:
            try:
                progress = self.advance(job_id).progress
            except StageFailure:
                return get_progress(self.store, job_id)
        return progress

    def sweep_stale(self, max_idle: Optional[timedelta] = None) -> List[str]:
        """Fail active jobs that have not moved for ``max_idle``."""

        idle = max_idle or timedelta(minutes=self.settings.stale_job_minutes)
        cutoff = utcnow() - idle
        message = f"Generation timed out after {int(idle.total_seconds() // 60)} minutes without progress."
        swept = []
        for job_id in self.store.find_stale(cutoff):
            job = self.store.find(job_id)
            if job is None or job.updated_at is None or job.updated_at >= cutoff:
                continue
            failed = transition(job.stage, StepOutcome.failure(message), job.chapter_count)
            if self.store.mark_error(job_id, failed.error, expected_stage=failed.stage.key):
                swept.append(job_id)
        if swept:
            LOGGER.warning("Marked %d stale novel job(s) as error", len(swept))
        return swept

    def _fail(self, job: GenerationJob, target: Stage, message: str) -> AdvanceResult:
        failed = transition(job.stage, StepOutcome.failure(message), job.chapter_count)
        if not self.store.mark_error(job.id, failed.error, expected_stage=failed.stage.key):
            # Another invocation moved the job past the stage this one gave up on.
            LOGGER.warning(
                "Stage failure ignored, job moved on job_id=%s stage=%s error=%s",
                job.id,
                target.key,
                message,
            )
            return AdvanceResult(
                progress=get_progress(self.store, job.id), stage=target, conflict=True
            )
        LOGGER.error("Stage failed job_id=%s stage=%s error=%s", job.id, target.key, message)
        raise StageFailure(job.id, target.key, message)


__all__ = ["AdvanceResult", "Orchestrator"]
