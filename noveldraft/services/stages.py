"""Stage definitions and the transition function for novel generation jobs.

A job moves through two nested tracks. The outline track runs
``initial -> pass1 -> pass2 -> completed``; afterwards every chapter runs
``initial -> revision_one -> revision_two -> completed`` in index order, and
chapter ``N + 1`` only starts once chapter ``N`` is completed. The job stores
the key of the last completed stage, so the next unit of work is always
``next_stage(job.stage, job.chapter_count)``.

This module is the single source of truth for legal transitions; everything
else asks it instead of comparing status strings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .errors import ChapterCountOutOfRange

MIN_CHAPTERS = 10
MAX_CHAPTERS = 150

CHAPTER_MARKER = re.compile(r"Chapter\s+\d+", re.IGNORECASE)


class JobStatus(str, Enum):
    INITIALIZING = "initializing"
    OUTLINE_IN_PROGRESS = "outline_in_progress"
    OUTLINE_COMPLETED = "outline_completed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


class OutlineStage(str, Enum):
    INITIAL = "initial"
    PASS1 = "pass1"
    PASS2 = "pass2"
    COMPLETED = "completed"


class ChapterStage(str, Enum):
    INITIAL = "initial"
    REVISION_ONE = "revision_one"
    REVISION_TWO = "revision_two"
    COMPLETED = "completed"


class Track(str, Enum):
    START = "start"
    OUTLINE = "outline"
    CHAPTER = "chapter"


_OUTLINE_ORDER = list(OutlineStage)
_CHAPTER_ORDER = list(ChapterStage)
_STEPS_PER_TRACK = 4

StepName = Union[OutlineStage, ChapterStage]


@dataclass(frozen=True)
class Stage:
    """A position in the stage sequence."""

    track: Track
    step: Optional[StepName] = None
    chapter: int = 0

    def __post_init__(self) -> None:
        if self.track is Track.START:
            if self.step is not None or self.chapter:
                raise ValueError("The start stage carries no step or chapter.")
        elif self.track is Track.OUTLINE:
            if not isinstance(self.step, OutlineStage) or self.chapter:
                raise ValueError("Outline stages need an OutlineStage step and no chapter.")
        else:
            if not isinstance(self.step, ChapterStage) or self.chapter < 1:
                raise ValueError("Chapter stages need a ChapterStage step and a chapter >= 1.")

    @property
    def key(self) -> str:
        if self.track is Track.START:
            return Track.START.value
        if self.track is Track.OUTLINE:
            return f"outline:{self.step.value}"
        return f"chapter:{self.chapter}:{self.step.value}"

    @property
    def is_outline(self) -> bool:
        return self.track is Track.OUTLINE

    @property
    def is_chapter(self) -> bool:
        return self.track is Track.CHAPTER

    @property
    def calls_generator(self) -> bool:
        """Finalizing stages only validate and bookkeep; every other stage calls the LLM."""
        return self.track is not Track.START and self.step.value != "completed"

    @classmethod
    def parse(cls, key: str) -> "Stage":
        raw = (key or "").strip()
        if raw == Track.START.value:
            return START
        parts = raw.split(":")
        try:
            if len(parts) == 2 and parts[0] == Track.OUTLINE.value:
                return cls(Track.OUTLINE, OutlineStage(parts[1]))
            if len(parts) == 3 and parts[0] == Track.CHAPTER.value:
                return cls(Track.CHAPTER, ChapterStage(parts[2]), int(parts[1]))
        except ValueError as exc:
            raise ValueError(f"Unknown stage key: {key!r}") from exc
        raise ValueError(f"Unknown stage key: {key!r}")

    def __str__(self) -> str:
        return self.key


START = Stage(Track.START)


def outline_stage(step: OutlineStage) -> Stage:
    return Stage(Track.OUTLINE, step)


def chapter_stage(index: int, step: ChapterStage) -> Stage:
    return Stage(Track.CHAPTER, step, index)


def stage_ordinal(stage: Stage) -> int:
    """Position of ``stage`` in the total order of stages (``start`` is 0)."""

    if stage.track is Track.START:
        return 0
    if stage.track is Track.OUTLINE:
        return 1 + _OUTLINE_ORDER.index(stage.step)
    return 1 + _STEPS_PER_TRACK * stage.chapter + _CHAPTER_ORDER.index(stage.step)


def is_after(candidate: Stage, reference: Stage) -> bool:
    return stage_ordinal(candidate) > stage_ordinal(reference)


def next_stage(current: Stage, chapter_count: int) -> Optional[Stage]:
    """Return the single stage that follows ``current``, or ``None`` when the job is done."""

    if current.track is Track.START:
        return outline_stage(OutlineStage.INITIAL)

    if current.track is Track.OUTLINE:
        position = _OUTLINE_ORDER.index(current.step)
        if position < len(_OUTLINE_ORDER) - 1:
            return outline_stage(_OUTLINE_ORDER[position + 1])
        if chapter_count < 1:
            raise ValueError("A finalized outline must declare its chapter count.")
        return chapter_stage(1, ChapterStage.INITIAL)

    position = _CHAPTER_ORDER.index(current.step)
    if position < len(_CHAPTER_ORDER) - 1:
        return chapter_stage(current.chapter, _CHAPTER_ORDER[position + 1])
    if current.chapter < chapter_count:
        return chapter_stage(current.chapter + 1, ChapterStage.INITIAL)
    return None


def status_for(stage: Stage, chapter_count: int) -> JobStatus:
    """Job-level status that mirrors having completed ``stage``."""

    if stage.track is Track.START:
        return JobStatus.INITIALIZING
    if stage.track is Track.OUTLINE:
        if stage.step is OutlineStage.COMPLETED:
            return JobStatus.OUTLINE_COMPLETED
        return JobStatus.OUTLINE_IN_PROGRESS
    if stage.step is ChapterStage.COMPLETED and stage.chapter >= chapter_count:
        return JobStatus.COMPLETED
    return JobStatus.IN_PROGRESS


@dataclass(frozen=True)
class StepOutcome:
    succeeded: bool
    error: Optional[str] = None

    @classmethod
    def success(cls) -> "StepOutcome":
        return cls(True)

    @classmethod
    def failure(cls, message: str) -> "StepOutcome":
        return cls(False, message or "Stage failed without a message.")


@dataclass(frozen=True)
class Transition:
    stage: Stage
    status: JobStatus
    error: Optional[str] = None


def transition(current: Stage, outcome: StepOutcome, chapter_count: int) -> Transition:
    """Compute where a job goes after attempting the stage after ``current``.

    Success moves exactly one stage forward. Failure keeps the stage and flips
    the status to ``error``; nothing leaves ``error`` automatically.
    """

    if not outcome.succeeded:
        return Transition(stage=current, status=JobStatus.ERROR, error=outcome.error)

    following = next_stage(current, chapter_count)
    if following is None:
        raise ValueError(f"No stage follows {current.key}; the job is already complete.")
    return Transition(stage=following, status=status_for(following, chapter_count))


def revision_for(step: ChapterStage) -> int:
    return _CHAPTER_ORDER.index(step)


def step_for(revision: int) -> ChapterStage:
    if not 0 <= revision < len(_CHAPTER_ORDER):
        raise ValueError(f"Chapter revision must be between 0 and {len(_CHAPTER_ORDER) - 1}.")
    return _CHAPTER_ORDER[revision]


def count_chapter_markers(outline: str) -> int:
    return len(CHAPTER_MARKER.findall(outline or ""))


def validate_chapter_count(count: int) -> int:
    if count < MIN_CHAPTERS or count > MAX_CHAPTERS:
        raise ChapterCountOutOfRange(count, MIN_CHAPTERS, MAX_CHAPTERS)
    return count
