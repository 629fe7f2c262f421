"""Read-only snapshots of a novel job and its artifacts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..models import utcnow
from .parameters import NovelParameters
from .stages import ChapterStage, JobStatus, Stage, revision_for


def _timestamp() -> str:
    return utcnow().isoformat(timespec="seconds")


@dataclass(frozen=True)
class ChapterRecord:
    index: int
    content: str
    revision: int
    chapter_stage: ChapterStage
    updated_at: str = field(default_factory=_timestamp)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChapterRecord":
        return cls(
            index=int(data["index"]),
            content=data.get("content") or "",
            revision=int(data.get("revision", 0)),
            chapter_stage=ChapterStage(data.get("chapter_stage", ChapterStage.INITIAL.value)),
            updated_at=data.get("updated_at") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "content": self.content,
            "revision": self.revision,
            "chapter_stage": self.chapter_stage.value,
            "updated_at": self.updated_at,
        }

    def advanced(self, step: ChapterStage, content: Optional[str] = None) -> "ChapterRecord":
        """Return a copy of this record moved to ``step``."""

        return ChapterRecord(
            index=self.index,
            content=self.content if content is None else content,
            revision=revision_for(step),
            chapter_stage=step,
        )


@dataclass(frozen=True)
class OutlineIteration:
    content: str
    created_at: str = field(default_factory=_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "created_at": self.created_at}


@dataclass(frozen=True)
class OutlineData:
    current: Optional[str] = None
    iterations: Tuple[OutlineIteration, ...] = ()

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "OutlineData":
        data = data or {}
        iterations = tuple(
            OutlineIteration(content=item.get("content") or "", created_at=item.get("created_at") or "")
            for item in data.get("iterations") or ()
        )
        return cls(current=data.get("current"), iterations=iterations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current,
            "iterations": [iteration.to_dict() for iteration in self.iterations],
        }

    def with_iteration(self, content: str) -> "OutlineData":
        """Append ``content`` as the newest iteration and make it current."""

        return OutlineData(current=content, iterations=self.iterations + (OutlineIteration(content),))


@dataclass(frozen=True)
class GenerationJob:
    id: str
    owner_id: int
    title: str
    parameters: NovelParameters
    stage: Stage
    status: JobStatus
    outline: OutlineData
    chapters: Tuple[ChapterRecord, ...]
    chapter_count: int
    current_chapter_index: int
    last_error: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_model(cls, novel: Any) -> "GenerationJob":
        return cls(
            id=novel.id,
            owner_id=novel.owner_id,
            title=novel.title,
            parameters=NovelParameters.from_dict(novel.parameters or {}),
            stage=Stage.parse(novel.stage),
            status=JobStatus(novel.status),
            outline=OutlineData.from_dict(novel.outline_data),
            chapters=tuple(
                sorted(
                    (ChapterRecord.from_dict(item) for item in novel.chapters_data or ()),
                    key=lambda record: record.index,
                )
            ),
            chapter_count=novel.chapter_count or 0,
            current_chapter_index=novel.current_chapter_index or 0,
            last_error=novel.last_error,
            created_at=novel.created_at,
            updated_at=novel.updated_at,
        )

    def chapter(self, index: int) -> Optional[ChapterRecord]:
        return next((record for record in self.chapters if record.index == index), None)

    def chapters_before(self, index: int) -> List[str]:
        return [record.content for record in self.chapters if record.index < index]

    def chapters_payload(self, replacement: ChapterRecord) -> List[Dict[str, Any]]:
        """Serialized chapter list with ``replacement`` inserted or swapped in."""

        records = [record for record in self.chapters if record.index != replacement.index]
        records.append(replacement)
        records.sort(key=lambda record: record.index)
        return [record.to_dict() for record in records]


__all__ = ["ChapterRecord", "GenerationJob", "OutlineData", "OutlineIteration"]
