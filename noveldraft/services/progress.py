"""Read-only progress snapshots for polling clients."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .jobs import GenerationJob
from .stages import JobStatus, OutlineStage, Track, outline_stage, stage_ordinal
from .store import JobStore

PENDING_STATUS = "pending"

# Share of the bar given to the outline before the chapter count is known.
_OUTLINE_SHARE = 20
_OUTLINE_DONE = stage_ordinal(outline_stage(OutlineStage.COMPLETED))


@dataclass(frozen=True)
class Progress:
    current_chapter_index: int = 0
    chapter_count: int = 0
    status: str = PENDING_STATUS
    last_error: Optional[str] = None
    stage: Optional[str] = None
    outline_stage: Optional[str] = None
    chapter_stage: Optional[str] = None
    percent: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED.value, JobStatus.ERROR.value)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _percent(job: GenerationJob) -> int:
    if job.status is JobStatus.COMPLETED:
        return 100
    ordinal = stage_ordinal(job.stage)
    if job.chapter_count < 1:
        return int(_OUTLINE_SHARE * ordinal / _OUTLINE_DONE)
    total = _OUTLINE_DONE + 4 * job.chapter_count
    return min(99, int(100 * ordinal / total))


def progress_for(job: GenerationJob) -> Progress:
    stage = job.stage
    if stage.track is Track.START:
        outline_step = None
    elif stage.track is Track.OUTLINE:
        outline_step = stage.step.value
    else:
        outline_step = OutlineStage.COMPLETED.value

    return Progress(
        current_chapter_index=job.current_chapter_index,
        chapter_count=job.chapter_count,
        status=job.status.value,
        last_error=job.last_error if job.status is JobStatus.ERROR else None,
        stage=stage.key,
        outline_stage=outline_step,
        chapter_stage=stage.step.value if stage.is_chapter else None,
        percent=_percent(job),
    )


def get_progress(store: JobStore, job_id: str) -> Progress:
    """Progress for ``job_id``; unknown ids report the pending default instead of failing."""

    job = store.find(job_id)
    if job is None:
        return Progress()
    return progress_for(job)


__all__ = ["PENDING_STATUS", "Progress", "get_progress", "progress_for"]
