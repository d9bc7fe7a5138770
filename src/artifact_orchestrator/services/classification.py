"""Error classifier: structured diagnosis of a pipeline failure.

Classification walks three paths and stops at the first that yields a
result:

1. *Structured* -- the model's five-part JSON diagnosis, validated strictly
   by :class:`ClassificationOutput` (only when a gateway is configured);
2. *Heuristic* -- deterministic rules on exception type and message;
3. *Default* -- ``unknown / medium / semi-auto`` at confidence 0.3.

:meth:`ErrorClassifier.classify` never raises.  Without a gateway it is a
pure function of the exception and the operation context.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from artifact_orchestrator.domain.enums import (
    DataIntegrity,
    ErrorCategory,
    ParseKind,
    Recoverability,
    Severity,
)
from artifact_orchestrator.domain.exceptions import (
    ArtifactValidationError,
    GenerationError,
    RequirementValidationError,
    TemplateRenderError,
)
from artifact_orchestrator.domain.values import (
    ErrorClassification,
    ImpactAssessment,
    OperationContext,
    RootCause,
)
from artifact_orchestrator.infrastructure.gateway import CompletionGateway
from artifact_orchestrator.services.parsing import parse_structured

logger = logging.getLogger(__name__)

# -- Structured output schema -----------------------------------------------

_RECOVERABILITY_ALIASES = {
    "auto-recoverable": "auto",
    "automatic": "auto",
    "semi-recoverable": "semi-auto",
    "semi-automatic": "semi-auto",
    "manual-intervention": "manual",
}


class RootCauseOutput(BaseModel):
    immediate: str = Field(default="", validation_alias=AliasChoices("immediate", "immediateCause"))
    underlying: str = Field(default="", validation_alias=AliasChoices("underlying", "underlyingCause"))
    contributing: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("contributing", "contributingFactors"),
    )


class ImpactOutput(BaseModel):
    components: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("components", "affectedComponents"),
    )
    user_impact: str = Field(default="", validation_alias=AliasChoices("user_impact", "userImpact"))
    business_impact: str = Field(
        default="", validation_alias=AliasChoices("business_impact", "businessImpact")
    )
    data_integrity: DataIntegrity = Field(
        default=DataIntegrity.SAFE,
        validation_alias=AliasChoices("data_integrity", "dataIntegrity"),
    )


class ClassificationOutput(BaseModel):
    """Five-part diagnosis: category, severity, recoverability, root cause, impact."""

    model_config = ConfigDict(extra="ignore")

    category: ErrorCategory
    severity: Severity
    recoverability: Recoverability
    root_cause: RootCauseOutput = Field(
        default_factory=RootCauseOutput,
        validation_alias=AliasChoices("root_cause", "rootCause"),
    )
    impact: ImpactOutput = Field(
        default_factory=ImpactOutput,
        validation_alias=AliasChoices("impact", "impactAssessment"),
    )
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    recovery_suggestions: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("recovery_suggestions", "recoverySuggestions"),
    )

    @field_validator("category", "severity", "recoverability", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower().replace("_", "-").replace(" ", "-")
            return _RECOVERABILITY_ALIASES.get(value, value)
        return value

    def to_classification(self) -> ErrorClassification:
        return ErrorClassification(
            category=self.category,
            severity=self.severity,
            recoverability=self.recoverability,
            root_cause=RootCause(
                immediate=self.root_cause.immediate,
                underlying=self.root_cause.underlying,
                contributing=tuple(self.root_cause.contributing),
            ),
            impact=ImpactAssessment(
                components=tuple(self.impact.components),
                user_impact=self.impact.user_impact,
                business_impact=self.impact.business_impact,
                data_integrity=self.impact.data_integrity,
            ),
            confidence=self.confidence,
            recovery_suggestions=tuple(self.recovery_suggestions),
            parse_kind=ParseKind.STRUCTURED,
        )


_CLASSIFY_PROMPT = """\
# Error Classification

## Error
Type: {error_type}
Message: {message}

## Operation
Type: {operation_type}
Requirement: {requirement}
Parameters: {parameters}

Classify this failure. Reply with a JSON block containing:
category (syntax, network, business-logic, integration, performance, security,
configuration, user-input, generation-failure, strategy-mismatch, unknown),
severity (critical, high, medium, low), recoverability (auto, semi-auto,
manual, non-recoverable), root_cause {{immediate, underlying, contributing}},
impact {{components, user_impact, business_impact, data_integrity}},
confidence (0-1) and recovery_suggestions.
"""

# -- Heuristic rules ---------------------------------------------------------


@dataclass(frozen=True)
class _Rule:
    matches: Callable[[BaseException, str], bool]
    category: ErrorCategory
    severity: Severity
    recoverability: Recoverability
    confidence: float
    underlying: str
    suggestions: tuple[str, ...]


def _message_has(*needles: str) -> Callable[[BaseException, str], bool]:
    pattern = re.compile("|".join(re.escape(n) for n in needles), re.IGNORECASE)
    return lambda exc, message: bool(pattern.search(message))


def _is(*types: type[BaseException]) -> Callable[[BaseException, str], bool]:
    return lambda exc, message: isinstance(exc, types)


def _either(*checks: Callable[[BaseException, str], bool]) -> Callable[[BaseException, str], bool]:
    return lambda exc, message: any(check(exc, message) for check in checks)


_RULES: tuple[_Rule, ...] = (
    _Rule(
        _is(RequirementValidationError),
        ErrorCategory.USER_INPUT, Severity.LOW, Recoverability.MANUAL, 0.9,
        "The requirement was rejected before generation",
        ("Provide a non-empty requirement description",),
    ),
    _Rule(
        _either(
            _is(ConnectionError),
            _message_has("ECONNREFUSED", "ECONNRESET", "ENOTFOUND", "connection refused",
                         "connection reset", "network is unreachable"),
        ),
        ErrorCategory.NETWORK, Severity.HIGH, Recoverability.AUTO, 0.8,
        "A remote endpoint could not be reached",
        ("Retry with exponential backoff", "Check network connectivity and endpoint configuration"),
    ),
    _Rule(
        _either(_is(TimeoutError), _message_has("timed out", "timeout", "deadline exceeded")),
        ErrorCategory.PERFORMANCE, Severity.MEDIUM, Recoverability.AUTO, 0.75,
        "An operation exceeded its time budget",
        ("Retry with backoff", "Reduce the request scope or raise the timeout"),
    ),
    _Rule(
        _either(_is(SyntaxError), _message_has("SyntaxError", "unexpected token", "unterminated")),
        ErrorCategory.SYNTAX, Severity.HIGH, Recoverability.AUTO, 0.8,
        "Generated code is not syntactically valid",
        ("Regenerate the failing file with the error in the prompt",),
    ),
    _Rule(
        _either(
            _is(PermissionError),
            _message_has("unauthorized", "forbidden", "invalid signature", "permission denied",
                         "access denied"),
        ),
        ErrorCategory.SECURITY, Severity.HIGH, Recoverability.MANUAL, 0.7,
        "Credentials or permissions were rejected",
        ("Verify credentials and account permissions",),
    ),
    _Rule(
        _message_has("environment variable", "not configured", "missing config", "must be set",
                     "configuration"),
        ErrorCategory.CONFIGURATION, Severity.MEDIUM, Recoverability.SEMI_AUTO, 0.6,
        "Required configuration is missing or invalid",
        ("Supply the missing configuration value",),
    ),
    _Rule(
        _is(TemplateRenderError),
        ErrorCategory.STRATEGY_MISMATCH, Severity.MEDIUM, Recoverability.AUTO, 0.6,
        "The selected template does not fit the requirement",
        ("Substitute an alternative template",),
    ),
    _Rule(
        _is(GenerationError),
        ErrorCategory.GENERATION_FAILURE, Severity.HIGH, Recoverability.AUTO, 0.7,
        "Composition produced no usable artifact",
        ("Correct the failing artifact", "Fall back to a simpler approach"),
    ),
    _Rule(
        _either(_is(ArtifactValidationError), _message_has("validation")),
        ErrorCategory.BUSINESS_LOGIC, Severity.MEDIUM, Recoverability.SEMI_AUTO, 0.6,
        "Generated artifacts do not satisfy validation",
        ("Adjust generation parameters", "Substitute a proven template"),
    ),
    _Rule(
        _either(_is(ImportError), _message_has("integration", "incompatible", "unsupported")),
        ErrorCategory.INTEGRATION, Severity.MEDIUM, Recoverability.SEMI_AUTO, 0.6,
        "A collaborating component rejected the request",
        ("Retry, then update the integration configuration",),
    ),
)

DEFAULT_CLASSIFICATION = ErrorClassification(
    category=ErrorCategory.UNKNOWN,
    severity=Severity.MEDIUM,
    recoverability=Recoverability.SEMI_AUTO,
    root_cause=RootCause(immediate="Unclassified error", underlying="Unknown"),
    confidence=0.3,
    recovery_suggestions=("Review the error details manually",),
    parse_kind=ParseKind.DEFAULT,
)


class ErrorClassifier:
    """Classifies exceptions raised by pipeline steps.

    Parameters
    ----------
    gateway:
        Optional completion gateway for the structured path.  Without one
        the classifier is deterministic and idempotent.
    """

    def __init__(self, gateway: CompletionGateway | None = None) -> None:
        self.gateway = gateway

    def classify(
        self,
        exc: BaseException,
        operation: OperationContext | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ErrorClassification:
        """Classify *exc*; never raises."""
        try:
            if self.gateway is not None:
                structured = self._classify_structured(exc, operation, cancel_event)
                if structured is not None:
                    return structured
            heuristic = self.classify_heuristic(exc, operation)
            if heuristic is not None:
                return heuristic
        except Exception:
            logger.exception("ErrorClassifier: classification failed, using default")
        return DEFAULT_CLASSIFICATION

    def _classify_structured(
        self,
        exc: BaseException,
        operation: OperationContext | None,
        cancel_event: threading.Event | None,
    ) -> ErrorClassification | None:
        assert self.gateway is not None
        prompt = _CLASSIFY_PROMPT.format(
            error_type=type(exc).__name__,
            message=str(exc)[:500],
            operation_type=operation.operation_type if operation else "unknown",
            requirement=operation.requirement.description if operation else "unknown",
            parameters=dict(operation.parameters) if operation else {},
        )
        try:
            text = self.gateway.complete(prompt, cancel_event=cancel_event)
        except Exception as exc_:
            logger.warning("ErrorClassifier: structured classification unavailable: %s", exc_)
            return None
        output = parse_structured(text, ClassificationOutput)
        if output is None:
            logger.debug("ErrorClassifier: model reply rejected, falling back to heuristics")
            return None
        return output.to_classification()

    @staticmethod
    def classify_heuristic(
        exc: BaseException,
        operation: OperationContext | None = None,
    ) -> ErrorClassification | None:
        """Deterministic rule match; ``None`` when no rule applies."""
        message = str(exc)
        for rule in _RULES:
            if not rule.matches(exc, message):
                continue
            component = operation.operation_type if operation else "pipeline"
            return ErrorClassification(
                category=rule.category,
                severity=rule.severity,
                recoverability=rule.recoverability,
                root_cause=RootCause(
                    immediate=message[:200] or type(exc).__name__,
                    underlying=rule.underlying,
                    contributing=(type(exc).__name__,),
                ),
                impact=ImpactAssessment(
                    components=(component,),
                    user_impact=f"{component} did not complete",
                    business_impact="Delivery of the requirement is delayed",
                    data_integrity=DataIntegrity.SAFE,
                ),
                confidence=rule.confidence,
                recovery_suggestions=rule.suggestions,
                parse_kind=ParseKind.HEURISTIC,
            )
        return None
