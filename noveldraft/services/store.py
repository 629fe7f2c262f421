"""Persistence for novel jobs on top of the Flask-SQLAlchemy session."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select, update

from ..extensions import db
from ..models import Novel, utcnow
from .errors import JobNotFound
from .jobs import GenerationJob, OutlineData
from .parameters import NovelParameters
from .stages import START, JobStatus

LOGGER = logging.getLogger(__name__)

ACTIVE_STATUSES = (
    JobStatus.INITIALIZING.value,
    JobStatus.OUTLINE_IN_PROGRESS.value,
    JobStatus.OUTLINE_COMPLETED.value,
    JobStatus.IN_PROGRESS.value,
)

_WRITABLE_COLUMNS = {
    "stage",
    "status",
    "outline_data",
    "chapters_data",
    "chapter_count",
    "current_chapter_index",
    "last_error",
}


class JobStore:
    """All reads and writes of ``Novel`` rows go through here.

    Every write that moves a job forward is a single conditional ``UPDATE``
    keyed on the stage the writer read, so two overlapping invocations of the
    same stage cannot both apply.
    """

    def __init__(self, session: Any = None) -> None:
        self._session = session

    @property
    def session(self) -> Any:
        return self._session if self._session is not None else db.session

    def create(self, owner_id: int, parameters: NovelParameters) -> GenerationJob:
        now = utcnow()
        novel = Novel(
            owner_id=owner_id,
            title=parameters.title,
            parameters=parameters.to_dict(),
            stage=START.key,
            status=JobStatus.INITIALIZING.value,
            outline_data=OutlineData().to_dict(),
            chapters_data=[],
            chapter_count=0,
            current_chapter_index=0,
            created_at=now,
            updated_at=now,
        )
        self.session.add(novel)
        self.session.commit()
        LOGGER.info("Created novel job job_id=%s owner_id=%s", novel.id, owner_id)
        return GenerationJob.from_model(novel)

    def find_model(self, job_id: str) -> Optional[Novel]:
        statement = (
            select(Novel).where(Novel.id == job_id).execution_options(populate_existing=True)
        )
        return self.session.execute(statement).scalar_one_or_none()

    def find(self, job_id: str) -> Optional[GenerationJob]:
        novel = self.find_model(job_id)
        return GenerationJob.from_model(novel) if novel is not None else None

    def get(self, job_id: str) -> GenerationJob:
        job = self.find(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def conditional_update(self, job_id: str, expected_stage: str, changes: Mapping[str, Any]) -> bool:
        """Apply ``changes`` only if the job still sits at ``expected_stage``.

        Returns ``True`` when the row changed. Jobs in ``error`` status are
        never updated here.
        """

        unknown = set(changes) - _WRITABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update columns: {', '.join(sorted(unknown))}")

        values: Dict[str, Any] = dict(changes)
        values["updated_at"] = utcnow()
        statement = (
            update(Novel)
            .where(
                Novel.id == job_id,
                Novel.stage == expected_stage,
                Novel.status != JobStatus.ERROR.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)
        self.session.commit()
        return result.rowcount == 1

    def mark_error(self, job_id: str, message: str, expected_stage: Optional[str] = None) -> bool:
        """Move the job to ``error`` unless it finished, already failed or moved on.

        With ``expected_stage`` the write only applies while the job still
        sits at that stage, so a failure seen by a stale invocation cannot
        fail a job another invocation has advanced.
        """

        conditions = [
            Novel.id == job_id,
            Novel.status.notin_((JobStatus.COMPLETED.value, JobStatus.ERROR.value)),
        ]
        if expected_stage is not None:
            conditions.append(Novel.stage == expected_stage)
        statement = (
            update(Novel)
            .where(*conditions)
            .values(
                status=JobStatus.ERROR.value,
                last_error=message,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)
        self.session.commit()
        changed = result.rowcount == 1
        if changed:
            LOGGER.error("Novel job marked as error job_id=%s error=%s", job_id, message)
        return changed

    def delete(self, job_id: str) -> bool:
        novel = self.find_model(job_id)
        if novel is None:
            return False
        self.session.delete(novel)
        self.session.commit()
        LOGGER.info("Deleted novel job job_id=%s", job_id)
        return True

    def list_for_owner(self, owner_id: int) -> List[GenerationJob]:
        statement = (
            select(Novel)
            .where(Novel.owner_id == owner_id)
            .order_by(Novel.updated_at.desc())
            .execution_options(populate_existing=True)
        )
        return [GenerationJob.from_model(novel) for novel in self.session.execute(statement).scalars()]

    def find_stale(self, cutoff: datetime) -> List[str]:
        statement = select(Novel.id).where(
            Novel.status.in_(ACTIVE_STATUSES),
            Novel.updated_at < cutoff,
        )
        return list(self.session.execute(statement).scalars())


__all__ = ["ACTIVE_STATUSES", "JobStore"]
