"""Domain layer for the artifact orchestrator.

Re-exports the public domain types so that consumers can write::

    from artifact_orchestrator.domain import Requirement, GeneratedArtifact
"""

# -- Enumerations -------------------------------------------------------------
from .enums import (
    ComplexityTier,
    CompositionApproach,
    DataIntegrity,
    ErrorCategory,
    GenerationMethod,
    ParseKind,
    PipelineStage,
    Recoverability,
    RecoveryApproach,
    RecoveryPhase,
    RecoveryState,
    Severity,
)

# -- Exceptions ---------------------------------------------------------------
from .exceptions import (
    ArtifactValidationError,
    CompletionCancelledError,
    CompletionError,
    CompletionTimeoutError,
    GenerationError,
    OrchestratorError,
    RecoveryOptionError,
    RequirementValidationError,
    TemplateRenderError,
)

# -- Value Objects ------------------------------------------------------------
from .values import (
    QUALITY_DIMENSIONS,
    BusinessContext,
    CompositionStrategy,
    ErrorClassification,
    ErrorPattern,
    EscalationGuidance,
    GeneratedArtifact,
    ImpactAssessment,
    OperationContext,
    PipelineResult,
    QualityAssessment,
    RecoveryAttempt,
    RecoveryOption,
    RecoveryResult,
    RecoveryStrategy,
    Requirement,
    RootCause,
    ValidationResult,
)

__all__ = [
    # Enums
    "ComplexityTier",
    "CompositionApproach",
    "DataIntegrity",
    "ErrorCategory",
    "GenerationMethod",
    "ParseKind",
    "PipelineStage",
    "Recoverability",
    "RecoveryApproach",
    "RecoveryPhase",
    "RecoveryState",
    "Severity",
    # Exceptions
    "ArtifactValidationError",
    "CompletionCancelledError",
    "CompletionError",
    "CompletionTimeoutError",
    "GenerationError",
    "OrchestratorError",
    "RecoveryOptionError",
    "RequirementValidationError",
    "TemplateRenderError",
    # Values
    "QUALITY_DIMENSIONS",
    "BusinessContext",
    "CompositionStrategy",
    "ErrorClassification",
    "ErrorPattern",
    "EscalationGuidance",
    "GeneratedArtifact",
    "ImpactAssessment",
    "OperationContext",
    "PipelineResult",
    "QualityAssessment",
    "RecoveryAttempt",
    "RecoveryOption",
    "RecoveryResult",
    "RecoveryStrategy",
    "Requirement",
    "RootCause",
    "ValidationResult",
]
