"""Error taxonomy shared by the generation services."""

from __future__ import annotations

from typing import Iterable, Optional


class ConfigurationError(RuntimeError):
    """Raised at startup when generation settings are invalid."""


class ParameterValidationError(ValueError):
    """Raised when job-creation input fails validation. The job is never created."""

    def __init__(self, problems: Iterable[str]):
        self.problems = [str(problem) for problem in problems]
        super().__init__("; ".join(self.problems) or "Invalid novel parameters.")


class JobNotFound(LookupError):
    """Raised when a job id does not exist in the store."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Novel job '{job_id}' was not found.")


class StepError(RuntimeError):
    """Base class for failures raised while executing a stage."""


class RetryableStepError(StepError):
    """A failure the orchestrator may retry with the same inputs."""


class ContentValidationFailure(RetryableStepError):
    """Generated text did not meet the stage's acceptance criteria."""


class TransportFailure(RetryableStepError):
    """The text-generation call failed for reasons unrelated to content."""


class RateLimited(TransportFailure):
    """The provider rejected the call because of rate limits or quota."""


class TransientServerError(TransportFailure):
    """Timeout, dropped connection or 5xx response from the provider."""


class GeneratorConfigurationError(StepError):
    """Authentication or configuration problem; retrying will not help."""


class ChapterCountOutOfRange(StepError):
    """The finalized outline declares a chapter count outside the allowed range."""

    def __init__(self, count: int, minimum: int, maximum: int):
        self.count = count
        super().__init__(
            f"Outline declares {count} chapters; expected between {minimum} and {maximum}."
        )


class StageOrderError(StepError):
    """The requested stage is not the next stage for the job."""


class JobTerminated(StepError):
    """The job is in ``error`` status and will not advance automatically."""

    def __init__(self, job_id: str, last_error: Optional[str]):
        self.job_id = job_id
        self.last_error = last_error
        super().__init__(last_error or f"Novel job '{job_id}' is in an error state.")


class StageFailure(StepError):
    """Retries for a stage were exhausted, or a fatal failure occurred.

    The job has been moved to ``error`` status by the time this is raised.
    """

    def __init__(self, job_id: str, stage_key: str, message: str):
        self.job_id = job_id
        self.stage_key = stage_key
        super().__init__(message)


__all__ = [
    "ChapterCountOutOfRange",
    "ConfigurationError",
    "ContentValidationFailure",
    "GeneratorConfigurationError",
    "JobNotFound",
    "JobTerminated",
    "ParameterValidationError",
    "RateLimited",
    "RetryableStepError",
    "StageFailure",
    "StageOrderError",
    "StepError",
    "TransientServerError",
    "TransportFailure",
]
