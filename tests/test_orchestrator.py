"""End-to-end tests for GenerationOrchestrator."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any

import pytest

from artifact_orchestrator.domain.enums import (
    CompositionApproach,
    GenerationMethod,
    RecoveryApproach,
    RecoveryState,
)
from artifact_orchestrator.domain.exceptions import RequirementValidationError, TemplateRenderError
from artifact_orchestrator.domain.values import (
    GeneratedArtifact,
    Requirement,
    ValidationResult,
)
from artifact_orchestrator.infrastructure.config import OrchestratorConfig
from artifact_orchestrator.infrastructure.pattern_memory import PatternMemory
from artifact_orchestrator.infrastructure.templates import JinjaTemplateRenderer
from artifact_orchestrator.infrastructure.validation import StaticArtifactValidator
from artifact_orchestrator.orchestrator import GenerationOrchestrator
from artifact_orchestrator.testing import Delayed, ScriptedChatModel
from tests.helpers.scripted import GOOD_TS_MODULE, fenced, make_gateway, strategy_json


class _DisallowedApiValidator(StaticArtifactValidator):
    """Rejects any artifact calling ``createFungibleToken``."""

    def validate(self, artifact: GeneratedArtifact) -> ValidationResult:
        result = super().validate(artifact)
        if "createFungibleToken" in artifact.content:
            return ValidationResult(
                passed=False,
                issues=result.issues + ("uses a disallowed token API",),
                warnings=result.warnings,
            )
        return result


class _RejectEverything(StaticArtifactValidator):

    def validate(self, artifact: GeneratedArtifact) -> ValidationResult:
        return ValidationResult(passed=False, issues=("rejected by policy",))


class _SingleTemplateRenderer(JinjaTemplateRenderer):
    """Renders only ``template_id``; every other template is unavailable."""

    def __init__(self, template_id: str) -> None:
        super().__init__()
        self.template_id = template_id

    def render(self, template_id: str, context: Mapping[str, Any]) -> str:
        if template_id != self.template_id:
            raise TemplateRenderError(f"Template {template_id!r} is unavailable", template_id=template_id)
        return super().render(template_id, context)


class TestRun:

    def test_offline_token_creation(self, token_requirement: Requirement) -> None:
        result = GenerationOrchestrator().run(token_requirement)

        assert result.success
        assert result.requirement_id == "req-token"
        assert result.strategy.approach is CompositionApproach.TEMPLATE_COMBINATION
        assert [a.path for a in result.artifacts] == ["src/token-creation.ts"]
        assert result.artifacts[0].generation_method is GenerationMethod.TEMPLATE
        assert result.overall_quality >= 60
        assert result.validation.passed
        assert result.recovery is None
        assert result.error is None
        assert "template-combination" in result.explanation
        assert result.limitations

    def test_empty_description_rejected_without_model_call(self) -> None:
        model, gateway = make_gateway(strategy_json("hybrid"))
        orchestrator = GenerationOrchestrator(gateway)
        with pytest.raises(RequirementValidationError):
            orchestrator.run(Requirement("  "))
        assert model.call_count == 0

    def test_cancelled_before_start(self, token_requirement: Requirement) -> None:
        model = ScriptedChatModel(responses=[strategy_json("hybrid")])
        event = threading.Event()
        event.set()
        result = GenerationOrchestrator(model).run(token_requirement, cancel_event=event)

        assert result.cancelled
        assert not result.success
        assert result.artifacts == ()
        assert "Run cancelled" in result.explanation
        assert model.call_count == 0

    def test_chat_model_is_wrapped_in_gateway(self) -> None:
        orchestrator = GenerationOrchestrator(ScriptedChatModel(responses=["ok"]))
        assert orchestrator.gateway is not None
        assert orchestrator.gateway.config.timeout == OrchestratorConfig().gateway.timeout

    def test_invalid_config_rejected(self) -> None:
        with pytest.raises(ValueError, match="quality_threshold"):
            GenerationOrchestrator(config=OrchestratorConfig(quality_threshold=-1))


    def test_timed_out_fragment_still_succeeds(self, fast_config: OrchestratorConfig) -> None:
        model, gateway = make_gateway(
            strategy_json("custom-logic-generation", custom_logic=["token minting", "audit logging"]),
            fenced(GOOD_TS_MODULE),
            Delayed("late", 2.0),
            timeout=0.5,
        )
        result = GenerationOrchestrator(gateway, config=fast_config).run(
            Requirement("Mint loyalty tokens with an audit log", requirement_id="req-mint")
        )

        assert result.success
        assert result.recovery is None
        assert [a.path for a in result.artifacts] == [
            "src/token-minting.ts",
            "src/fallback/audit-logging.ts",
        ]
        stub = result.artifacts[1]
        assert stub.generation_method is GenerationMethod.FALLBACK
        assert stub.confidence <= 40
        assert model.call_count == 3


class TestComposeRecovery:

    def test_compose_failure_remembered_across_requirements(
        self, fast_config: OrchestratorConfig
    ) -> None:
        memory = PatternMemory()
        orchestrator = GenerationOrchestrator(
            config=fast_config, renderer=_SingleTemplateRenderer("token-management"), memory=memory
        )

        first = orchestrator.run(Requirement("basic fungible token creation", requirement_id="req-first"))
        assert first.success
        assert [a.path for a in first.artifacts] == ["src/token-management.ts"]
        assert first.recovery.strategy is RecoveryApproach.TEMPLATE_SUBSTITUTION
        assert [a.strategy for a in first.recovery.attempts] == [
            RecoveryApproach.CODE_CORRECTION,
            RecoveryApproach.TEMPLATE_SUBSTITUTION,
        ]
        assert len(memory) == 1

        second = orchestrator.run(Requirement("basic fungible token creation", requirement_id="req-second"))
        assert second.success
        assert [a.strategy for a in second.recovery.attempts] == [
            RecoveryApproach.TEMPLATE_SUBSTITUTION,
        ]
        assert len(memory) == 1


class TestValidationRecovery:

    def test_substitution_recovers_and_is_remembered(self, fast_config: OrchestratorConfig) -> None:
        memory = PatternMemory()
        orchestrator = GenerationOrchestrator(
            config=fast_config, validator=_DisallowedApiValidator(), memory=memory
        )
        requirement = Requirement("basic fungible token creation", requirement_id="req-first")

        first = orchestrator.run(requirement)
        assert first.success
        assert [a.path for a in first.artifacts] == ["src/token-management.ts"]
        assert first.artifacts[0].generation_method is GenerationMethod.RECOVERY
        assert first.recovery is not None
        assert first.recovery.strategy is RecoveryApproach.TEMPLATE_SUBSTITUTION
        assert [a.strategy for a in first.recovery.attempts] == [
            RecoveryApproach.PARAMETER_ADJUSTMENT,
            RecoveryApproach.TEMPLATE_SUBSTITUTION,
        ]
        assert first.recovery.transitions == (
            RecoveryState.PENDING,
            RecoveryState.TRYING_PRIMARY,
            RecoveryState.SUCCEEDED,
        )
        assert len(memory) == 1

        second = orchestrator.run(Requirement("basic fungible token creation", requirement_id="req-second"))
        assert second.success
        assert [a.strategy for a in second.recovery.attempts] == [
            RecoveryApproach.TEMPLATE_SUBSTITUTION,
        ]

    def test_second_failure_escalates_without_options(
        self, fast_config: OrchestratorConfig, token_requirement: Requirement
    ) -> None:
        orchestrator = GenerationOrchestrator(config=fast_config, validator=_RejectEverything())
        result = orchestrator.run(token_requirement)

        assert not result.success
        assert result.recovery is not None
        assert result.recovery.attempts == ()
        assert result.recovery.transitions == (RecoveryState.PENDING, RecoveryState.ESCALATED)
        assert result.escalation is not None
        assert result.escalation.manual_steps
        assert result.error == "Artifact validation failed: rejected by policy"
        assert len(result.assessments) == 2


class TestRunBatch:

    def test_results_keep_input_order(self, fast_config: OrchestratorConfig) -> None:
        requirements = [
            Requirement("basic fungible token creation", requirement_id="req-a"),
            Requirement("", requirement_id="req-empty"),
            Requirement("audit trail for document verification", requirement_id="req-b"),
        ]
        results = GenerationOrchestrator(config=fast_config).run_batch(requirements, max_workers=3)

        assert [r.requirement_id for r in results] == ["req-a", "req-empty", "req-b"]
        assert results[0].success
        assert not results[1].success
        assert results[1].error == "Requirement description must not be empty"
        assert results[2].artifacts

    def test_batch_shares_pattern_memory(self, fast_config: OrchestratorConfig) -> None:
        memory = PatternMemory()
        orchestrator = GenerationOrchestrator(
            config=fast_config, validator=_DisallowedApiValidator(), memory=memory
        )
        requirements = [
            Requirement("basic fungible token creation", requirement_id=f"req-{i}") for i in range(3)
        ]
        results = orchestrator.run_batch(requirements, max_workers=3)
        assert all(r.success for r in results)
        assert len(memory) == 1
