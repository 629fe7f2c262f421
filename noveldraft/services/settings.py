from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .errors import ConfigurationError

SETTINGS_EXTENSION_KEY = "noveldraft.generation_settings"


@dataclass(frozen=True)
class GenerationSettings:
    """Generation knobs validated once when the application starts."""

    api_key: str = ""
    model: str = "gpt-4o-mini"
    request_timeout: float = 120.0
    max_retries: int = 3
    retry_delay: float = 1.0
    temperature: float = 0.7
    comparison_temperature: float = 0.4
    outline_max_tokens: int = 3000
    chapter_max_tokens: int = 1500
    dual_draft_chapters: bool = False
    stale_job_minutes: int = 60

    def __post_init__(self) -> None:
        problems = []
        if self.max_retries < 1:
            problems.append("GENERATION_MAX_RETRIES must be at least 1")
        if self.retry_delay < 0:
            problems.append("GENERATION_RETRY_DELAY cannot be negative")
        if self.request_timeout <= 0:
            problems.append("OPENAI_TIMEOUT must be positive")
        for name, value in (
            ("GENERATION_TEMPERATURE", self.temperature),
            ("COMPARISON_TEMPERATURE", self.comparison_temperature),
        ):
            if not 0.0 <= value <= 2.0:
                problems.append(f"{name} must be between 0 and 2")
        for name, value in (
            ("OUTLINE_MAX_TOKENS", self.outline_max_tokens),
            ("CHAPTER_MAX_TOKENS", self.chapter_max_tokens),
        ):
            if value <= 0:
                problems.append(f"{name} must be positive")
        if self.stale_job_minutes <= 0:
            problems.append("STALE_JOB_MINUTES must be positive")
        if not (self.model or "").strip():
            problems.append("OPENAI_MODEL must be set")
        if problems:
            raise ConfigurationError("Invalid generation settings: " + "; ".join(problems))

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "GenerationSettings":
        """Build settings from a Flask config (or any mapping of the same keys)."""

        try:
            return cls(
                api_key=(config.get("OPENAI_API_KEY") or "").strip(),
                model=(config.get("OPENAI_MODEL") or cls.model).strip(),
                request_timeout=float(config.get("OPENAI_TIMEOUT", cls.request_timeout)),
                max_retries=int(config.get("GENERATION_MAX_RETRIES", cls.max_retries)),
                retry_delay=float(config.get("GENERATION_RETRY_DELAY", cls.retry_delay)),
                temperature=float(config.get("GENERATION_TEMPERATURE", cls.temperature)),
                comparison_temperature=float(
                    config.get("COMPARISON_TEMPERATURE", cls.comparison_temperature)
                ),
                outline_max_tokens=int(config.get("OUTLINE_MAX_TOKENS", cls.outline_max_tokens)),
                chapter_max_tokens=int(config.get("CHAPTER_MAX_TOKENS", cls.chapter_max_tokens)),
                dual_draft_chapters=bool(config.get("DUAL_DRAFT_CHAPTERS", cls.dual_draft_chapters)),
                stale_job_minutes=int(config.get("STALE_JOB_MINUTES", cls.stale_job_minutes)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid generation settings: {exc}") from exc
