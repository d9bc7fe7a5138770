"""LangGraph node functions for the generation pipeline.

Each ``make_*_node`` factory closes over the service it delegates to and
returns a node function that takes a ``PipelineState`` and returns a partial
update dict.  Nodes never reimplement service logic; they translate between
graph state and service calls, and turn stage failures into a ``failure``
entry that routes the graph to recovery.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from pathlib import PurePosixPath
from typing import Any

from artifact_orchestrator.domain.enums import (
    ComplexityTier,
    CompositionApproach,
    GenerationMethod,
    PipelineStage,
    RecoveryApproach,
    RecoveryState,
)
from artifact_orchestrator.domain.exceptions import (
    ArtifactValidationError,
    CompletionCancelledError,
    RequirementValidationError,
)
from artifact_orchestrator.domain.values import (
    CompositionStrategy,
    GeneratedArtifact,
    OperationContext,
    RecoveryResult,
    Requirement,
    ValidationResult,
)
from artifact_orchestrator.infrastructure.config import OrchestratorConfig
from artifact_orchestrator.infrastructure.gateway import CompletionGateway
from artifact_orchestrator.infrastructure.pattern_memory import error_signature
from artifact_orchestrator.infrastructure.validation import Validator, merge_results
from artifact_orchestrator.services.classification import ErrorClassifier
from artifact_orchestrator.services.composition import (
    DEFAULT_STRATEGY,
    CompositionEngine,
    acknowledge_limitations,
    composition_explanation,
    unique_paths,
)
from artifact_orchestrator.services.escalation import EscalationHandler
from artifact_orchestrator.services.quality import QualityAssessor
from artifact_orchestrator.services.recovery import (
    EXHAUSTED_MESSAGE,
    RecoveryExecutor,
    RecoveryStrategySelector,
)
from artifact_orchestrator.services.refinement import RefinementLoop

logger = logging.getLogger(__name__)

Node = Callable[[dict[str, Any]], dict[str, Any]]

# Options whose payload replaces only the failing artifact.
_ARTIFACT_SCOPED = frozenset({
    RecoveryApproach.CODE_CORRECTION,
    RecoveryApproach.TEMPLATE_SUBSTITUTION,
})

# Configuration changes the pipeline knows how to honour on retry.
_SUPPORTED_SETTINGS = frozenset({"timeout_multiplier", "use_defaults"})


def _event(kind: str, state: dict[str, Any], **fields: Any) -> dict[str, Any]:
    return {
        "type": kind,
        "requirement_id": state["requirement"].requirement_id,
        "timestamp": time.time(),
        **fields,
    }


# ---------------------------------------------------------------------------
# compose / assess / refine / validate
# ---------------------------------------------------------------------------

def make_compose_node(composition: CompositionEngine) -> Node:
    """Create the node that runs the composition engine."""

    def compose_node(state: dict[str, Any]) -> dict[str, Any]:
        requirement = state["requirement"]
        try:
            outcome = composition.compose(requirement, state.get("cancel_event"))
        except RequirementValidationError:
            raise
        except CompletionCancelledError:
            logger.info("compose_node: %s cancelled before any artifact", requirement.requirement_id)
            return {"cancelled": True, "events": [_event("composition_cancelled", state)]}
        except Exception as exc:
            logger.warning("compose_node: %s failed: %s", requirement.requirement_id, exc)
            return {
                "failure": {"stage": PipelineStage.COMPOSE, "exception": exc, "artifact": None},
                "events": [_event("composition_failed", state, error=str(exc))],
            }

        return {
            "strategy": outcome.strategy,
            "artifacts": list(outcome.artifacts),
            "degraded": list(outcome.degraded),
            "cancelled": outcome.cancelled,
            "events": [
                _event(
                    "composition_completed",
                    state,
                    approach=outcome.strategy.approach.value,
                    artifacts=len(outcome.artifacts),
                    degraded=len(outcome.degraded),
                )
            ],
        }

    return compose_node


def make_assess_node(assessor: QualityAssessor) -> Node:
    """Create the node that scores the current artifacts."""

    def assess_node(state: dict[str, Any]) -> dict[str, Any]:
        iteration = len(state.get("assessments", []))
        assessment = assessor.assess(state.get("artifacts", []), state["requirement"], iteration=iteration)
        logger.debug("assess_node: iteration=%d overall=%.1f", iteration, assessment.overall)
        return {
            "assessment": assessment,
            "assessments": [assessment],
            "events": [_event("quality_assessed", state, overall=assessment.overall)],
        }

    return assess_node


def make_refine_node(refinement: RefinementLoop) -> Node:
    """Create the node that runs the refinement loop."""

    def refine_node(state: dict[str, Any]) -> dict[str, Any]:
        outcome = refinement.refine(
            state.get("artifacts", []),
            state["assessment"],
            state["requirement"],
            cancel_event=state.get("cancel_event"),
        )
        # The first entry is the assessment the loop started from.
        history = list(outcome.assessments[1:])
        result: dict[str, Any] = {
            "artifacts": list(outcome.artifacts),
            "assessment": outcome.final_assessment,
            "assessments": history,
            "events": [_event("refinement_completed", state, iterations=outcome.iterations)],
        }
        if outcome.cancelled:
            result["cancelled"] = True
        return result

    return refine_node


def validate_artifacts(
    validator: Validator,
    artifacts: Sequence[GeneratedArtifact],
) -> tuple[ValidationResult, GeneratedArtifact | None]:
    """Validate every artifact; also return the first one that failed."""
    results = [(artifact, validator.validate(artifact)) for artifact in artifacts]
    failing = next((artifact for artifact, result in results if not result.passed), None)
    merged = merge_results((artifact.path, result) for artifact, result in results)
    return merged, failing


def _validation_error(validation: ValidationResult, failing: GeneratedArtifact | None) -> ArtifactValidationError:
    first = validation.issues[0] if validation.issues else "unknown issue"
    if failing is not None and first.startswith(f"{failing.path}: "):
        first = first[len(failing.path) + 2:]
    return ArtifactValidationError(
        f"Artifact validation failed: {first}",
        issues=list(validation.issues),
        artifact_path=failing.path if failing is not None else "",
    )


def make_validate_node(validator: Validator) -> Node:
    """Create the node that validates the final artifacts."""

    def validate_node(state: dict[str, Any]) -> dict[str, Any]:
        validation, failing = validate_artifacts(validator, state.get("artifacts", []))
        result: dict[str, Any] = {
            "validation": validation,
            "events": [_event("validation_completed", state, passed=validation.passed)],
        }
        if not validation.passed:
            exc = _validation_error(validation, failing)
            logger.warning("validate_node: %s", exc)
            result["failure"] = {"stage": PipelineStage.VALIDATE, "exception": exc, "artifact": failing}
        return result

    return validate_node


# ---------------------------------------------------------------------------
# recover
# ---------------------------------------------------------------------------

def _with_timeout_multiplier(composition: CompositionEngine, multiplier: float) -> CompositionEngine:
    gateway = composition.gateway
    if gateway is None:
        return composition
    scaled = CompletionGateway(
        gateway.model,
        dataclasses.replace(gateway.config, timeout=gateway.config.timeout * multiplier),
        gateway.system_prompt,
    )
    return CompositionEngine(
        scaled, composition.renderer, composition.catalog, composition.assessor, composition.config
    )


def build_operation(
    stage: PipelineStage,
    exc: BaseException,
    requirement: Requirement,
    composition: CompositionEngine,
    validator: Validator,
    strategy: CompositionStrategy | None = None,
    artifact: GeneratedArtifact | None = None,
    cancel_event: threading.Event | None = None,
) -> OperationContext:
    """Describe the failed stage, with retry and configuration hooks.

    ``retry`` recomposes the requirement with the given parameters (and, for
    the validate stage, re-validates the result) and returns the new
    artifacts as a tuple.
    """
    settings: dict[str, Any] = {}
    parameters: dict[str, Any] = {
        "approach": (strategy or DEFAULT_STRATEGY).approach.value,
        "complexity": requirement.complexity.value,
        "framework": composition.framework_for(requirement),
    }
    if isinstance(exc, ArtifactValidationError):
        parameters["issues"] = list(exc.issues)

    if artifact is not None and artifact.generation_method is GenerationMethod.TEMPLATE:
        failed_template: str | None = PurePosixPath(artifact.path).stem
    elif strategy is not None and strategy.templates:
        failed_template = strategy.templates[0]
    else:
        failed_template = None

    def apply_configuration(name: str, value: Any) -> bool:
        if name not in _SUPPORTED_SETTINGS:
            return False
        settings[name] = value
        return True

    def retry(params: Mapping[str, Any]) -> tuple[GeneratedArtifact, ...]:
        complexity = ComplexityTier(params.get("complexity", requirement.complexity.value))
        if settings.get("use_defaults"):
            override: CompositionStrategy | None = DEFAULT_STRATEGY
        elif params.get("approach"):
            override = CompositionStrategy(
                approach=CompositionApproach(params["approach"]),
                templates=strategy.templates if strategy else (),
                rationale="recovery retry",
            )
        else:
            override = None
        engine = composition
        if settings.get("timeout_multiplier"):
            engine = _with_timeout_multiplier(composition, float(settings["timeout_multiplier"]))

        outcome = engine.compose(requirement.with_complexity(complexity), cancel_event, strategy=override)
        if stage is PipelineStage.VALIDATE:
            validation, failing = validate_artifacts(validator, outcome.artifacts)
            if not validation.passed:
                raise _validation_error(validation, failing)
        return outcome.artifacts

    return OperationContext(
        operation_type=stage.value,
        requirement=requirement,
        parameters=parameters,
        failed_template=failed_template,
        artifact=artifact,
        error_signature=error_signature(exc),
        retry=retry,
        apply_configuration=apply_configuration,
    )


def merge_recovered(
    current: Sequence[GeneratedArtifact],
    operation: OperationContext,
    result: RecoveryResult,
) -> list[GeneratedArtifact]:
    """Fold a successful recovery payload into the current artifact list."""
    payload = result.result if isinstance(result.result, (tuple, list)) else ()
    recovered = [a for a in payload if isinstance(a, GeneratedArtifact)]
    if not recovered:
        return list(current)
    if operation.artifact is not None and result.strategy in _ARTIFACT_SCOPED:
        merged: list[GeneratedArtifact] = []
        for artifact in current:
            if artifact.path == operation.artifact.path:
                merged.extend(recovered)
            else:
                merged.append(artifact)
        return unique_paths(merged)
    return unique_paths(recovered)


def make_recover_node(
    composition: CompositionEngine,
    validator: Validator,
    classifier: ErrorClassifier,
    selector: RecoveryStrategySelector,
    executor: RecoveryExecutor,
    escalation: EscalationHandler,
    config: OrchestratorConfig,
) -> Node:
    """Create the node that classifies a failure and drives recovery.

    At most ``config.recovery_budget`` recovery events run per requirement;
    a failure beyond the budget escalates directly.
    """

    def recover_node(state: dict[str, Any]) -> dict[str, Any]:
        failure = state["failure"]
        exc: BaseException = failure["exception"]
        requirement = state["requirement"]
        cancel_event = state.get("cancel_event")
        recoveries = state.get("recoveries", 0)

        operation = build_operation(
            failure["stage"],
            exc,
            requirement,
            composition,
            validator,
            strategy=state.get("strategy"),
            artifact=failure.get("artifact"),
            cancel_event=cancel_event,
        )
        classification = classifier.classify(exc, operation, cancel_event)
        logger.info(
            "recover_node: %s %s failure classified as %s/%s",
            requirement.requirement_id,
            operation.operation_type,
            classification.category.value,
            classification.recoverability.value,
        )

        if recoveries >= config.recovery_budget:
            guidance = escalation.escalate(operation, classification, (), cancel_event)
            result = RecoveryResult(
                success=False,
                message=EXHAUSTED_MESSAGE,
                recommendations=guidance.manual_steps,
                transitions=(RecoveryState.PENDING, RecoveryState.ESCALATED),
                escalation=guidance,
                classification=classification,
            )
            logger.warning("recover_node: %s recovery budget spent, escalating", requirement.requirement_id)
            return {
                "recovery": result,
                "escalation": guidance,
                "error": str(exc),
                "events": [_event("recovery_escalated", state, category=classification.category.value)],
            }

        strategy = selector.select(classification, operation, cancel_event)
        result = executor.execute(strategy, operation, classification, cancel_event)
        update: dict[str, Any] = {
            "recovery": result,
            "recoveries": recoveries + 1,
            "events": [
                _event(
                    "recovery_completed",
                    state,
                    success=result.success,
                    strategy=result.strategy.value if result.strategy else None,
                    attempts=len(result.attempts),
                )
            ],
        }
        if result.success:
            recovered = merge_recovered(state.get("artifacts", []), operation, result)
            if recovered:
                update.update({"artifacts": recovered, "failure": None, "error": None})
            else:
                update["error"] = "Recovery succeeded but produced no artifacts"
        else:
            update["error"] = str(exc)
            update["escalation"] = result.escalation
            if result.final_state is RecoveryState.CANCELLED:
                update["cancelled"] = True
        return update

    return recover_node


# ---------------------------------------------------------------------------
# finish
# ---------------------------------------------------------------------------

def finish_node(state: dict[str, Any]) -> dict[str, Any]:
    """Attach the explanation and limitations to the final state."""
    strategy = state.get("strategy") or DEFAULT_STRATEGY
    artifacts = state.get("artifacts", [])
    explanation = composition_explanation(strategy, artifacts, state.get("assessment"))
    recovery = state.get("recovery")
    if recovery is not None:
        explanation = f"{explanation} {recovery.message}".strip()
    if state.get("cancelled"):
        explanation = f"{explanation} Run cancelled; returning the best partial result.".strip()
    return {
        "explanation": explanation,
        "limitations": list(acknowledge_limitations(strategy, artifacts)),
        "events": [_event("pipeline_finished", state, artifacts=len(artifacts))],
    }
