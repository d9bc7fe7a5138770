"""Value objects for the artifact orchestrator.

All types here are frozen dataclasses -- immutable, compared by value.
Artifacts are never edited in place: a refinement or recovery produces a new
``GeneratedArtifact`` with the same path that supersedes the old one.
Recovery attempts form an append-only tuple; nothing reorders or drops them.
"""

from __future__ import annotations

import dataclasses
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .enums import (
    ComplexityTier,
    CompositionApproach,
    DataIntegrity,
    ErrorCategory,
    GenerationMethod,
    ParseKind,
    Recoverability,
    RecoveryApproach,
    RecoveryPhase,
    RecoveryState,
    Severity,
)

# ---------------------------------------------------------------------------
# Requirement
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BusinessContext:
    """Business facts surrounding a requirement.  Any field may be empty."""

    industry: str = ""
    regulations: tuple[str, ...] = ()
    complexity: ComplexityTier = ComplexityTier.MODERATE
    business_model: str = ""


@dataclass(frozen=True)
class Requirement:
    """The unit of work submitted to the orchestrator."""

    description: str
    requirement_id: str = field(default_factory=lambda: f"req-{uuid.uuid4().hex[:8]}")
    business_context: BusinessContext = field(default_factory=BusinessContext)
    constraints: tuple[str, ...] = ()
    preferences: tuple[str, ...] = ()
    technical_requirements: tuple[str, ...] = ()

    @property
    def industry(self) -> str:
        return self.business_context.industry

    @property
    def complexity(self) -> ComplexityTier:
        return self.business_context.complexity

    def with_complexity(self, complexity: ComplexityTier) -> Requirement:
        """Return a copy with a different complexity tier."""
        context = dataclasses.replace(self.business_context, complexity=complexity)
        return dataclasses.replace(self, business_context=context)


# ---------------------------------------------------------------------------
# CompositionStrategy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompositionStrategy:
    """The chosen generation approach plus its concrete sub-selections."""

    approach: CompositionApproach = CompositionApproach.TEMPLATE_COMBINATION
    templates: tuple[str, ...] = ()
    custom_logic: tuple[str, ...] = ()
    novel_patterns: tuple[str, ...] = ()
    integration_patterns: tuple[str, ...] = ()
    components: tuple[str, ...] = ()
    rationale: str = ""
    parse_kind: ParseKind = ParseKind.DEFAULT


# ---------------------------------------------------------------------------
# GeneratedArtifact
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GeneratedArtifact:
    """A file-like output tied to one requirement."""

    path: str
    content: str
    language: str = "typescript"
    purpose: str = ""
    dependencies: tuple[str, ...] = ()
    generation_method: GenerationMethod = GenerationMethod.AI_COMPOSITION
    confidence: float = 50.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 100.0:
            raise ValueError(f"confidence must be in [0, 100], got {self.confidence}")

    @property
    def is_fallback(self) -> bool:
        return self.generation_method is GenerationMethod.FALLBACK

    def superseded_by(
        self,
        content: str,
        confidence: float,
        generation_method: GenerationMethod,
        dependencies: tuple[str, ...] | None = None,
    ) -> GeneratedArtifact:
        """Return a replacement artifact for the same path."""
        return dataclasses.replace(
            self,
            content=content,
            confidence=confidence,
            generation_method=generation_method,
            dependencies=self.dependencies if dependencies is None else dependencies,
        )


# ---------------------------------------------------------------------------
# QualityAssessment
# ---------------------------------------------------------------------------

QUALITY_DIMENSIONS: tuple[str, ...] = (
    "code_quality",
    "business_logic_accuracy",
    "security_compliance",
    "performance",
    "maintainability",
    "testability",
)


@dataclass(frozen=True)
class QualityAssessment:
    """Snapshot of artifact quality at one refinement iteration.

    ``overall`` is derived from the six dimension scores and cannot be set.
    """

    code_quality: float = 0.0
    business_logic_accuracy: float = 0.0
    security_compliance: float = 0.0
    performance: float = 0.0
    maintainability: float = 0.0
    testability: float = 0.0
    issues: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    artifact_scores: Mapping[str, float] = field(default_factory=dict)
    iteration: int = 0
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        for name in QUALITY_DIMENSIONS:
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"{name} must be in [0, 100], got {value}")

    @property
    def dimension_scores(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in QUALITY_DIMENSIONS}

    @property
    def overall(self) -> float:
        """Unweighted mean of the six dimensions, clamped to [0, 100]."""
        scores = [getattr(self, name) for name in QUALITY_DIMENSIONS]
        return float(np.clip(np.mean(scores), 0.0, 100.0))


# ---------------------------------------------------------------------------
# ErrorClassification
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RootCause:
    """Immediate cause, underlying cause and contributing factors."""

    immediate: str = ""
    underlying: str = ""
    contributing: tuple[str, ...] = ()


@dataclass(frozen=True)
class ImpactAssessment:
    """What a failure touches and how badly."""

    components: tuple[str, ...] = ()
    user_impact: str = ""
    business_impact: str = ""
    data_integrity: DataIntegrity = DataIntegrity.SAFE


@dataclass(frozen=True)
class ErrorClassification:
    """Structured diagnosis of one failure event."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    severity: Severity = Severity.MEDIUM
    recoverability: Recoverability = Recoverability.SEMI_AUTO
    root_cause: RootCause = field(default_factory=RootCause)
    impact: ImpactAssessment = field(default_factory=ImpactAssessment)
    confidence: float = 0.3
    recovery_suggestions: tuple[str, ...] = ()
    parse_kind: ParseKind = ParseKind.DEFAULT

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RecoveryOption:
    """One remediation technique with an ordering-only success estimate."""

    approach: RecoveryApproach
    success_probability: float = 0.5
    description: str = ""


@dataclass(frozen=True)
class RecoveryStrategy:
    """Ordered primary and fallback options for one failure event."""

    primary: tuple[RecoveryOption, ...] = ()
    fallback: tuple[RecoveryOption, ...] = ()
    promoted_from_memory: bool = False

    @property
    def approaches(self) -> tuple[RecoveryApproach, ...]:
        return tuple(o.approach for o in self.primary + self.fallback)


@dataclass(frozen=True)
class RecoveryAttempt:
    """Outcome of trying one recovery option."""

    strategy: RecoveryApproach
    success: bool
    result: Any = None
    error: str | None = None
    timestamp: float = field(default_factory=time.time)
    changes: tuple[Mapping[str, Any], ...] = ()
    recommendations: tuple[str, ...] = ()
    phase: RecoveryPhase = RecoveryPhase.PRIMARY


@dataclass(frozen=True)
class EscalationGuidance:
    """Human-actionable guidance produced once automation is exhausted."""

    problem_summary: str
    manual_steps: tuple[str, ...] = ()
    expert_consultation: tuple[str, ...] = ()
    alternative_approaches: tuple[str, ...] = ()
    prevention_strategies: tuple[str, ...] = ()
    generic: bool = False


@dataclass(frozen=True)
class RecoveryResult:
    """Terminal object for one failure event."""

    success: bool
    strategy: RecoveryApproach | None = None
    attempts: tuple[RecoveryAttempt, ...] = ()
    message: str = ""
    partial: bool = False
    recommendations: tuple[str, ...] = ()
    transitions: tuple[RecoveryState, ...] = ()
    result: Any = None
    escalation: EscalationGuidance | None = None
    classification: ErrorClassification | None = None

    @property
    def final_state(self) -> RecoveryState:
        return self.transitions[-1] if self.transitions else RecoveryState.PENDING


@dataclass(frozen=True)
class ErrorPattern:
    """Pattern-memory entry: what eventually fixed an error signature."""

    signature: str
    operation_type: str = ""
    successful_strategy: RecoveryApproach | None = None
    failed_strategies: tuple[RecoveryApproach, ...] = ()
    prevention_suggestions: tuple[str, ...] = ()
    recorded_at: float = field(default_factory=time.time)


# ---------------------------------------------------------------------------
# Operation context / validation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OperationContext:
    """Description of the pipeline step that failed.

    ``retry`` re-runs the step with (possibly adjusted) parameters and
    returns its payload or raises.  ``apply_configuration`` receives a
    named configuration change and returns ``True`` when it was applied.
    """

    operation_type: str
    requirement: Requirement
    parameters: Mapping[str, Any] = field(default_factory=dict)
    failed_template: str | None = None
    artifact: GeneratedArtifact | None = None
    error_signature: str = ""
    retry: Callable[[Mapping[str, Any]], Any] | None = None
    apply_configuration: Callable[[str, Any], bool] | None = None


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a set of artifacts."""

    passed: bool
    issues: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# PipelineResult
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PipelineResult:
    """Caller-facing outcome of one orchestrator run."""

    requirement_id: str
    success: bool
    artifacts: tuple[GeneratedArtifact, ...] = ()
    strategy: CompositionStrategy | None = None
    quality_assessment: QualityAssessment | None = None
    assessments: tuple[QualityAssessment, ...] = ()
    validation: ValidationResult | None = None
    recovery: RecoveryResult | None = None
    escalation: EscalationGuidance | None = None
    cancelled: bool = False
    explanation: str = ""
    limitations: tuple[str, ...] = ()
    error: str | None = None

    @property
    def overall_quality(self) -> float:
        if self.quality_assessment is None:
            return 0.0
        return self.quality_assessment.overall
