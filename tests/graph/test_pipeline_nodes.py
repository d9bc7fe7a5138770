"""Tests for individual pipeline node functions."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any

import pytest

from artifact_orchestrator.domain.enums import (
    CompositionApproach,
    ErrorCategory,
    GenerationMethod,
    PipelineStage,
    RecoveryApproach,
    RecoveryState,
)
from artifact_orchestrator.domain.exceptions import (
    ArtifactValidationError,
    GenerationError,
    RequirementValidationError,
    TemplateRenderError,
)
from artifact_orchestrator.domain.values import (
    CompositionStrategy,
    ErrorClassification,
    GeneratedArtifact,
    OperationContext,
    QualityAssessment,
    RecoveryResult,
    Requirement,
)
from artifact_orchestrator.graph.nodes import (
    build_operation,
    finish_node,
    make_assess_node,
    make_compose_node,
    make_recover_node,
    make_refine_node,
    make_validate_node,
    merge_recovered,
    validate_artifacts,
)
from artifact_orchestrator.infrastructure.config import OrchestratorConfig
from artifact_orchestrator.infrastructure.validation import StaticArtifactValidator
from artifact_orchestrator.services.classification import ErrorClassifier
from artifact_orchestrator.services.composition import CompositionEngine
from artifact_orchestrator.services.escalation import EscalationHandler
from artifact_orchestrator.services.quality import QualityAssessor
from artifact_orchestrator.services.recovery import (
    EXHAUSTED_MESSAGE,
    RecoveryExecutor,
    RecoveryStrategySelector,
)
from artifact_orchestrator.services.recovery_options import RecoveryOptions
from artifact_orchestrator.services.refinement import RefinementLoop
from tests.helpers.scripted import BROKEN_TS_MODULE, GOOD_TS_MODULE, make_gateway, strategy_json


class _FailingRenderer:
    def render(self, template_id: str, context: Mapping[str, Any]) -> str:
        raise TemplateRenderError(f"Template {template_id!r} is broken", template_id=template_id)


def _state(requirement: Requirement, **fields: Any) -> dict[str, Any]:
    state: dict[str, Any] = {"requirement": requirement, "artifacts": [], "recoveries": 0}
    state.update(fields)
    return state


def _recover_node(engine: CompositionEngine, config: OrchestratorConfig | None = None) -> Any:
    return make_recover_node(
        engine,
        StaticArtifactValidator(),
        ErrorClassifier(),
        RecoveryStrategySelector(),
        RecoveryExecutor(RecoveryOptions(engine)),
        EscalationHandler(),
        config or OrchestratorConfig(),
    )


class TestComposeNode:

    def test_offline_compose(
        self, offline_engine: CompositionEngine, token_requirement: Requirement
    ) -> None:
        result = make_compose_node(offline_engine)(_state(token_requirement))
        assert result["strategy"].approach is CompositionApproach.TEMPLATE_COMBINATION
        assert [a.path for a in result["artifacts"]] == ["src/token-creation.ts"]
        assert result["cancelled"] is False
        [event] = result["events"]
        assert event["type"] == "composition_completed"
        assert event["requirement_id"] == "req-token"

    def test_failure_becomes_failure_entry(self, token_requirement: Requirement) -> None:
        engine = CompositionEngine(renderer=_FailingRenderer())
        result = make_compose_node(engine)(_state(token_requirement))
        failure = result["failure"]
        assert failure["stage"] is PipelineStage.COMPOSE
        assert isinstance(failure["exception"], GenerationError)
        assert failure["artifact"] is None
        assert result["events"][0]["type"] == "composition_failed"

    def test_cancelled_before_any_artifact(self, token_requirement: Requirement) -> None:
        model, gateway = make_gateway(strategy_json("hybrid"))
        event = threading.Event()
        event.set()
        result = make_compose_node(CompositionEngine(gateway))(
            _state(token_requirement, cancel_event=event)
        )
        assert result["cancelled"] is True
        assert "artifacts" not in result
        assert model.call_count == 0

    def test_empty_requirement_propagates(self, offline_engine: CompositionEngine) -> None:
        with pytest.raises(RequirementValidationError):
            make_compose_node(offline_engine)(_state(Requirement("")))


class TestAssessAndRefineNodes:

    def test_assess_counts_iterations(
        self, token_requirement: Requirement, good_artifact: GeneratedArtifact
    ) -> None:
        node = make_assess_node(QualityAssessor())
        previous = QualityAssessment()
        result = node(_state(token_requirement, artifacts=[good_artifact], assessments=[previous]))
        assert result["assessment"].iteration == 1
        assert result["assessments"] == [result["assessment"]]
        assert result["events"][0]["type"] == "quality_assessed"

    def test_refine_without_gateway_keeps_artifacts(
        self, token_requirement: Requirement, good_artifact: GeneratedArtifact
    ) -> None:
        assessment = QualityAssessment(*(50.0,) * 6)
        node = make_refine_node(RefinementLoop(None, QualityAssessor()))
        result = node(_state(token_requirement, artifacts=[good_artifact], assessment=assessment))
        assert result["artifacts"] == [good_artifact]
        assert result["assessment"] is assessment
        assert result["assessments"] == []
        assert "cancelled" not in result


class TestValidateNode:

    def test_validate_artifacts_reports_first_failure(self) -> None:
        good = GeneratedArtifact("src/good.ts", GOOD_TS_MODULE)
        broken = GeneratedArtifact("src/broken.ts", BROKEN_TS_MODULE)
        validation, failing = validate_artifacts(StaticArtifactValidator(), [good, broken])
        assert not validation.passed
        assert failing is broken
        assert validation.issues == ("src/broken.ts: Unclosed '{' opened on line 2",)

    def test_passing_artifacts(self, token_requirement: Requirement, good_artifact: GeneratedArtifact) -> None:
        result = make_validate_node(StaticArtifactValidator())(
            _state(token_requirement, artifacts=[good_artifact])
        )
        assert result["validation"].passed
        assert "failure" not in result

    def test_failure_carries_error_and_artifact(self, token_requirement: Requirement) -> None:
        broken = GeneratedArtifact("src/broken.ts", BROKEN_TS_MODULE)
        result = make_validate_node(StaticArtifactValidator())(_state(token_requirement, artifacts=[broken]))
        failure = result["failure"]
        exc = failure["exception"]
        assert failure["stage"] is PipelineStage.VALIDATE
        assert failure["artifact"] is broken
        assert isinstance(exc, ArtifactValidationError)
        assert str(exc) == "Artifact validation failed: Unclosed '{' opened on line 2"
        assert exc.issues == ["src/broken.ts: Unclosed '{' opened on line 2"]


class TestBuildOperation:

    def test_parameters_and_failed_template(
        self, offline_engine: CompositionEngine, token_requirement: Requirement
    ) -> None:
        artifact = offline_engine.render_template("token-creation", token_requirement)
        exc = ArtifactValidationError("Artifact validation failed: x", issues=["src/token-creation.ts: x"])
        operation = build_operation(
            PipelineStage.VALIDATE,
            exc,
            token_requirement,
            offline_engine,
            StaticArtifactValidator(),
            artifact=artifact,
        )
        assert operation.operation_type == "validate"
        assert operation.failed_template == "token-creation"
        assert operation.parameters == {
            "approach": "template-combination",
            "complexity": "moderate",
            "framework": "generic",
            "issues": ["src/token-creation.ts: x"],
        }
        assert operation.error_signature

    def test_failed_template_from_strategy(
        self, offline_engine: CompositionEngine, token_requirement: Requirement
    ) -> None:
        operation = build_operation(
            PipelineStage.COMPOSE,
            GenerationError("nothing"),
            token_requirement,
            offline_engine,
            StaticArtifactValidator(),
            strategy=CompositionStrategy(templates=("audit-trail",)),
        )
        assert operation.failed_template == "audit-trail"

    def test_only_known_settings_apply(
        self, offline_engine: CompositionEngine, token_requirement: Requirement
    ) -> None:
        operation = build_operation(
            PipelineStage.COMPOSE,
            GenerationError("nothing"),
            token_requirement,
            offline_engine,
            StaticArtifactValidator(),
        )
        assert operation.apply_configuration is not None
        assert operation.apply_configuration("timeout_multiplier", 2.0)
        assert operation.apply_configuration("use_defaults", True)
        assert not operation.apply_configuration("endpoint", "fallback")

    @pytest.mark.parametrize(
        "category",
        [
            ErrorCategory.NETWORK,
            ErrorCategory.INTEGRATION,
            ErrorCategory.PERFORMANCE,
            ErrorCategory.CONFIGURATION,
            ErrorCategory.SECURITY,
        ],
    )
    def test_configuration_update_is_honoured(
        self,
        category: ErrorCategory,
        offline_engine: CompositionEngine,
        token_requirement: Requirement,
    ) -> None:
        operation = build_operation(
            PipelineStage.COMPOSE,
            GenerationError("nothing"),
            token_requirement,
            offline_engine,
            StaticArtifactValidator(),
        )
        outcome = RecoveryOptions(offline_engine).configuration_update(
            operation, ErrorClassification(category=category)
        )
        assert outcome.success, outcome.error
        assert [a.path for a in outcome.result] == ["src/token-creation.ts"]

    def test_retry_recomposes(
        self, offline_engine: CompositionEngine, token_requirement: Requirement
    ) -> None:
        operation = build_operation(
            PipelineStage.VALIDATE,
            ArtifactValidationError("x"),
            token_requirement,
            offline_engine,
            StaticArtifactValidator(),
            strategy=CompositionStrategy(templates=("token-creation",)),
        )
        assert operation.retry is not None
        artifacts = operation.retry({"approach": "template-combination", "complexity": "simple"})
        assert [a.path for a in artifacts] == ["src/token-creation.ts"]

    def test_retry_revalidates(self, offline_engine: CompositionEngine, token_requirement: Requirement) -> None:
        class _Rejecting(StaticArtifactValidator):
            def validate(self, artifact):  # type: ignore[no-untyped-def]
                result = super().validate(artifact)
                return type(result)(passed=False, issues=("always wrong",), warnings=result.warnings)

        operation = build_operation(
            PipelineStage.VALIDATE,
            ArtifactValidationError("x"),
            token_requirement,
            offline_engine,
            _Rejecting(),
        )
        assert operation.retry is not None
        with pytest.raises(ArtifactValidationError, match="always wrong"):
            operation.retry({})


class TestMergeRecovered:

    def _operation(self, requirement: Requirement, artifact: GeneratedArtifact | None) -> OperationContext:
        return OperationContext("validate", requirement, artifact=artifact)

    def test_scoped_option_replaces_only_failing_artifact(self, token_requirement: Requirement) -> None:
        a = GeneratedArtifact("src/a.ts", "a")
        b = GeneratedArtifact("src/b.ts", "b")
        fixed = GeneratedArtifact("src/b.ts", "fixed", generation_method=GenerationMethod.RECOVERY)
        result = RecoveryResult(success=True, strategy=RecoveryApproach.CODE_CORRECTION, result=(fixed,))
        assert merge_recovered([a, b], self._operation(token_requirement, b), result) == [a, fixed]

    def test_whole_set_option_replaces_everything(self, token_requirement: Requirement) -> None:
        a = GeneratedArtifact("src/a.ts", "a")
        base = GeneratedArtifact("src/generic-basic-hedera.ts", "base")
        result = RecoveryResult(
            success=True, strategy=RecoveryApproach.FALLBACK_TO_BASE_TEMPLATE, result=(base,)
        )
        assert merge_recovered([a], self._operation(token_requirement, a), result) == [base]

    def test_no_payload_keeps_current(self, token_requirement: Requirement) -> None:
        a = GeneratedArtifact("src/a.ts", "a")
        result = RecoveryResult(success=True, strategy=RecoveryApproach.CONFIGURATION_UPDATE)
        assert merge_recovered([a], self._operation(token_requirement, None), result) == [a]


class TestRecoverNode:

    def test_compose_failure_recovered_by_substitution(
        self, offline_engine: CompositionEngine, token_requirement: Requirement
    ) -> None:
        failure = {"stage": PipelineStage.COMPOSE, "exception": GenerationError("nothing"), "artifact": None}
        result = _recover_node(offline_engine)(_state(token_requirement, failure=failure))

        recovery = result["recovery"]
        assert recovery.success
        assert recovery.strategy is RecoveryApproach.TEMPLATE_SUBSTITUTION
        assert [a.strategy for a in recovery.attempts] == [
            RecoveryApproach.CODE_CORRECTION,
            RecoveryApproach.TEMPLATE_SUBSTITUTION,
        ]
        assert [a.path for a in result["artifacts"]] == ["src/token-creation.ts"]
        assert result["failure"] is None
        assert result["recoveries"] == 1
        assert result["events"][0]["type"] == "recovery_completed"

    def test_budget_spent_escalates_directly(
        self, offline_engine: CompositionEngine, token_requirement: Requirement
    ) -> None:
        exc = ArtifactValidationError("Artifact validation failed: still wrong")
        failure = {"stage": PipelineStage.VALIDATE, "exception": exc, "artifact": None}
        result = _recover_node(offline_engine)(_state(token_requirement, failure=failure, recoveries=1))

        recovery = result["recovery"]
        assert not recovery.success
        assert recovery.attempts == ()
        assert recovery.message == EXHAUSTED_MESSAGE
        assert recovery.transitions == (RecoveryState.PENDING, RecoveryState.ESCALATED)
        assert result["escalation"] is recovery.escalation
        assert result["escalation"].manual_steps
        assert result["error"] == "Artifact validation failed: still wrong"
        assert "recoveries" not in result


class TestFinishNode:

    def test_explanation_and_limitations(
        self, token_requirement: Requirement, good_artifact: GeneratedArtifact
    ) -> None:
        recovery = RecoveryResult(success=True, message="Recovered somehow.")
        result = finish_node(
            _state(token_requirement, artifacts=[good_artifact], recovery=recovery, cancelled=True)
        )
        explanation = result["explanation"]
        assert explanation.startswith("Code composition completed using the template-combination strategy.")
        assert "Recovered somehow." in explanation
        assert explanation.endswith("Run cancelled; returning the best partial result.")
        assert "Generated code must be reviewed for business logic accuracy" in result["limitations"]
        assert result["events"][0]["type"] == "pipeline_finished"
