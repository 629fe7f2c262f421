"""Acceptance checks for generated outline and chapter text."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import ContentValidationFailure

LOGGER = logging.getLogger(__name__)

OUTLINE_MIN_LENGTH = 1000
OUTLINE_MAX_LENGTH = 10000
CHAPTER_MIN_LENGTH = 1000
CHAPTER_MAX_LENGTH = 4000

_ANY_CHAPTER_MARKER = re.compile(r"Chapter\s+\d+", re.IGNORECASE)


@dataclass
class ValidationReport:
    is_valid: bool
    errors: List[str] = field(default_factory=list)

    def describe(self) -> str:
        return "; ".join(self.errors)


def _has_content_line(text: str) -> bool:
    return any(line.strip() for line in text.splitlines())


def _check(text: Optional[str], *, minimum: int, maximum: Optional[int]) -> ValidationReport:
    if text is None:
        return ValidationReport(False, ["Content is empty."])
    if not isinstance(text, str):
        return ValidationReport(False, ["Content is not text."])

    errors: List[str] = []
    length = len(text)
    if length < minimum:
        errors.append(f"Content length ({length}) is below minimum ({minimum}).")
    if maximum is not None and length > maximum:
        errors.append(f"Content length ({length}) exceeds maximum ({maximum}).")
    if not _has_content_line(text):
        errors.append("Content contains no non-empty lines.")
    return ValidationReport(not errors, errors)


def validate_outline(text: Optional[str]) -> ValidationReport:
    """Outlines need at least ``OUTLINE_MIN_LENGTH`` characters.

    The upper bound is reported as a warning only; a long outline is still
    usable for chapter planning.
    """

    report = _check(text, minimum=OUTLINE_MIN_LENGTH, maximum=None)
    if report.is_valid and len(text) > OUTLINE_MAX_LENGTH:
        LOGGER.warning(
            "Outline length %d exceeds the recommended maximum of %d characters.",
            len(text),
            OUTLINE_MAX_LENGTH,
        )
    return report


def validate_chapter(text: Optional[str]) -> ValidationReport:
    return _check(text, minimum=CHAPTER_MIN_LENGTH, maximum=CHAPTER_MAX_LENGTH)


def require_valid_outline(text: Optional[str]) -> str:
    report = validate_outline(text)
    if not report.is_valid:
        raise ContentValidationFailure(f"Outline rejected: {report.describe()}")
    return text


def require_valid_chapter(text: Optional[str]) -> str:
    report = validate_chapter(text)
    if not report.is_valid:
        raise ContentValidationFailure(f"Chapter rejected: {report.describe()}")
    return text


def extract_outline_segment(outline: str, chapter_index: int) -> str:
    """Return the outline lines for ``chapter_index``.

    The segment runs from the ``Chapter <index>`` line up to the next chapter
    marker. When the outline has no such marker the whole outline is returned
    so the chapter prompt still has context.
    """

    lines = (outline or "").splitlines()
    pattern = re.compile(rf"Chapter\s+{chapter_index}\b", re.IGNORECASE)
    start = next((i for i, line in enumerate(lines) if pattern.search(line)), None)
    if start is None:
        return (outline or "").strip()

    end = next(
        (i for i in range(start + 1, len(lines)) if _ANY_CHAPTER_MARKER.search(lines[i])),
        len(lines),
    )
    return "\n".join(lines[start:end]).strip()
