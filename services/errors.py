"""Error taxonomy shared by the pipeline stages and collaborator clients."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base exception for the outreach pipeline."""

    code = "PIPELINE_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code:
            self.code = code


class ConfigurationError(PipelineError, ValueError):
    """Missing credential or endpoint for a collaborator. Fatal for the run."""

    code = "CONFIGURATION_ERROR"


class TransientError(PipelineError):
    """Network blip calling a collaborator. Safe to retry."""

    code = "TRANSIENT_ERROR"


class StageFailure(PipelineError):
    """One item could not complete a stage."""

    code = "STAGE_FAILURE"


class InsightValidationError(StageFailure):
    """Insight generator output could not be parsed or is missing fields."""

    code = "INSIGHT_VALIDATION_ERROR"


class ConflictError(PipelineError):
    """Illegal state transition or duplicate pending enrichment. Not retriable."""

    code = "CONFLICT"


class NotFoundError(PipelineError):
    code = "NOT_FOUND"


class PermissionDeniedError(PipelineError):
    code = "PERMISSION_DENIED"
