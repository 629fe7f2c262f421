"""Service layer for staged novel generation."""

from __future__ import annotations

from .errors import (  # noqa: F401
    JobNotFound,
    JobTerminated,
    ParameterValidationError,
    StageFailure,
    StageOrderError,
)
from .orchestrator import AdvanceResult, Orchestrator  # noqa: F401
from .parameters import NovelParameters  # noqa: F401
from .progress import Progress, get_progress  # noqa: F401
from .runtime import (  # noqa: F401
    GENERATOR_EXTENSION_KEY,
    get_job_store,
    get_orchestrator,
    get_settings,
    get_text_generator,
    init_generation,
)

__all__ = [
    "AdvanceResult",
    "GENERATOR_EXTENSION_KEY",
    "JobNotFound",
    "JobTerminated",
    "NovelParameters",
    "Orchestrator",
    "ParameterValidationError",
    "Progress",
    "StageFailure",
    "StageOrderError",
    "get_job_store",
    "get_orchestrator",
    "get_progress",
    "get_settings",
    "get_text_generator",
    "init_generation",
]
