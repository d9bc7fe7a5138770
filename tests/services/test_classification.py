"""Tests for the error classifier."""

from __future__ import annotations

import json

import pytest

from artifact_orchestrator.domain.enums import (
    DataIntegrity,
    ErrorCategory,
    ParseKind,
    Recoverability,
    Severity,
)
from artifact_orchestrator.domain.exceptions import (
    ArtifactValidationError,
    CompletionTimeoutError,
    GenerationError,
    RequirementValidationError,
    TemplateRenderError,
)
from artifact_orchestrator.domain.values import OperationContext, Requirement
from artifact_orchestrator.services.classification import (
    DEFAULT_CLASSIFICATION,
    ErrorClassifier,
)
from tests.helpers.scripted import make_gateway


class _UnprintableError(Exception):
    def __str__(self) -> str:
        raise RuntimeError("cannot render message")


def _operation(requirement: Requirement) -> OperationContext:
    return OperationContext(operation_type="compose", requirement=requirement)


class TestHeuristics:

    @pytest.mark.parametrize(
        ("exc", "category"),
        [
            (Exception("connect ECONNREFUSED 127.0.0.1:50211"), ErrorCategory.NETWORK),
            (ConnectionError("reset by peer"), ErrorCategory.NETWORK),
            (CompletionTimeoutError("Completion timed out after 5.0s"), ErrorCategory.PERFORMANCE),
            (SyntaxError("invalid syntax"), ErrorCategory.SYNTAX),
            (RuntimeError("Unexpected token '}'"), ErrorCategory.SYNTAX),
            (PermissionError("nope"), ErrorCategory.SECURITY),
            (RuntimeError("HEDERA_OPERATOR_ID must be set"), ErrorCategory.CONFIGURATION),
            (TemplateRenderError("Unknown template 'x'"), ErrorCategory.STRATEGY_MISMATCH),
            (GenerationError("No artifacts generated"), ErrorCategory.GENERATION_FAILURE),
            (ArtifactValidationError("Artifact validation failed: bad"), ErrorCategory.BUSINESS_LOGIC),
            (RequirementValidationError("empty"), ErrorCategory.USER_INPUT),
            (ImportError("incompatible plugin"), ErrorCategory.INTEGRATION),
        ],
    )
    def test_category(self, exc: BaseException, category: ErrorCategory) -> None:
        classification = ErrorClassifier().classify(exc)
        assert classification.category is category
        assert classification.parse_kind is ParseKind.HEURISTIC

    def test_network_details(self, token_requirement: Requirement) -> None:
        classification = ErrorClassifier().classify(
            Exception("connect ECONNREFUSED 127.0.0.1:50211"), _operation(token_requirement)
        )
        assert classification.severity is Severity.HIGH
        assert classification.recoverability is Recoverability.AUTO
        assert classification.root_cause.immediate == "connect ECONNREFUSED 127.0.0.1:50211"
        assert classification.impact.components == ("compose",)
        assert classification.confidence == pytest.approx(0.8)

    def test_unmatched_gets_default(self) -> None:
        assert ErrorClassifier().classify(RuntimeError("something odd")) == DEFAULT_CLASSIFICATION
        assert DEFAULT_CLASSIFICATION.confidence == pytest.approx(0.3)
        assert DEFAULT_CLASSIFICATION.category is ErrorCategory.UNKNOWN

    def test_never_raises(self) -> None:
        assert ErrorClassifier().classify(_UnprintableError()) == DEFAULT_CLASSIFICATION

    def test_idempotent_without_gateway(self, token_requirement: Requirement) -> None:
        classifier = ErrorClassifier()
        exc = SyntaxError("Unexpected token")
        operation = _operation(token_requirement)
        assert classifier.classify(exc, operation) == classifier.classify(exc, operation)


class TestStructured:

    def test_model_diagnosis(self, token_requirement: Requirement) -> None:
        reply = json.dumps(
            {
                "category": "Integration",
                "severity": "low",
                "recoverability": "auto-recoverable",
                "rootCause": {"immediateCause": "Mirror node rejected query"},
                "impactAssessment": {"dataIntegrity": "at-risk", "affectedComponents": ["mirror"]},
                "confidence": 0.9,
                "recoverySuggestions": ["Switch mirror node"],
            }
        )
        model, gateway = make_gateway(reply)
        classification = ErrorClassifier(gateway).classify(
            RuntimeError("mirror node 503"), _operation(token_requirement)
        )
        assert classification.parse_kind is ParseKind.STRUCTURED
        assert classification.category is ErrorCategory.INTEGRATION
        assert classification.recoverability is Recoverability.AUTO
        assert classification.root_cause.immediate == "Mirror node rejected query"
        assert classification.impact.data_integrity is DataIntegrity.AT_RISK
        assert classification.recovery_suggestions == ("Switch mirror node",)
        assert "mirror node 503" in model.prompts[0]

    def test_invalid_reply_uses_heuristics(self) -> None:
        _, gateway = make_gateway('{"category": "cosmic-rays"}')
        classification = ErrorClassifier(gateway).classify(SyntaxError("bad"))
        assert classification.category is ErrorCategory.SYNTAX
        assert classification.parse_kind is ParseKind.HEURISTIC

    def test_model_failure_uses_heuristics(self) -> None:
        _, gateway = make_gateway(RuntimeError("model down"))
        classification = ErrorClassifier(gateway).classify(TimeoutError("slow"))
        assert classification.category is ErrorCategory.PERFORMANCE
