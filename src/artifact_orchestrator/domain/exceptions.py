"""Domain exceptions for the artifact orchestrator.

All domain-specific exceptions inherit from ``OrchestratorError`` so callers
can catch the full family with a single ``except`` clause when needed.
"""

from __future__ import annotations

from typing import Any


class OrchestratorError(Exception):
    """Base exception for all orchestrator errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class RequirementValidationError(OrchestratorError, ValueError):
    """Raised when a requirement is rejected before generation starts.

    The only current cause is an empty description.  The check runs before
    any completion call is issued.
    """

    def __init__(
        self,
        message: str = "Requirement rejected",
        requirement_id: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.requirement_id = requirement_id


class GenerationError(OrchestratorError):
    """Raised when composition produced no artifact at all.

    Partial failures (one fragment timing out) never raise; they degrade to
    stub artifacts.  This exception is what the pipeline classifies and
    hands to recovery.
    """

    def __init__(
        self,
        message: str = "Generation produced no artifacts",
        requirement_id: str = "",
        approach: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.requirement_id = requirement_id
        self.approach = approach


class CompletionError(OrchestratorError):
    """Raised by the completion gateway when the model call fails."""


class CompletionTimeoutError(CompletionError, TimeoutError):
    """A completion call exceeded its timeout."""

    def __init__(
        self,
        message: str = "Completion timed out",
        timeout: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.timeout = timeout


class CompletionCancelledError(CompletionError):
    """A completion call was abandoned because the operation was cancelled."""


class ArtifactValidationError(OrchestratorError):
    """Raised when generated artifacts do not satisfy validation.

    Carries the validator's issues so the classifier and the code-correction
    option can fold them into prompts.
    """

    def __init__(
        self,
        message: str = "Artifact validation failed",
        issues: list[str] | None = None,
        artifact_path: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.issues: list[str] = issues or []
        self.artifact_path = artifact_path


class TemplateRenderError(OrchestratorError):
    """Raised by a template renderer for unknown templates or bad context."""

    def __init__(
        self,
        message: str = "Template rendering failed",
        template_id: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.template_id = template_id


class RecoveryOptionError(OrchestratorError):
    """Raised when the executor is asked to run an option it does not know."""

    def __init__(
        self,
        message: str = "Unknown recovery option",
        approach: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.approach = approach
