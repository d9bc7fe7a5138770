"""Orchestrator façade: one call per requirement, or a concurrent batch.

:class:`GenerationOrchestrator` assembles the services around one
completion gateway and one shared :class:`PatternMemory`, compiles the
pipeline graph once, and turns its final state into a
:class:`PipelineResult`.

Usage::

    model = create_chat_model(GatewayConfig(provider="anthropic"))
    orchestrator = GenerationOrchestrator(model)
    result = orchestrator.run(Requirement("Basic fungible token creation"))
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from collections.abc import Sequence
from typing import Any

from langchain_core.language_models import BaseChatModel

from artifact_orchestrator.domain.exceptions import RequirementValidationError
from artifact_orchestrator.domain.values import PipelineResult, Requirement
from artifact_orchestrator.graph.graph import build_pipeline_graph
from artifact_orchestrator.infrastructure.config import OrchestratorConfig
from artifact_orchestrator.infrastructure.gateway import CompletionGateway
from artifact_orchestrator.infrastructure.llm import create_chat_model
from artifact_orchestrator.infrastructure.pattern_memory import PatternMemory
from artifact_orchestrator.infrastructure.templates import TemplateRenderer
from artifact_orchestrator.infrastructure.validation import StaticArtifactValidator, Validator
from artifact_orchestrator.services.classification import ErrorClassifier
from artifact_orchestrator.services.composition import CompositionEngine
from artifact_orchestrator.services.escalation import EscalationHandler
from artifact_orchestrator.services.quality import QualityAssessor
from artifact_orchestrator.services.recovery import RecoveryExecutor, RecoveryStrategySelector
from artifact_orchestrator.services.recovery_options import RecoveryOptions
from artifact_orchestrator.services.refinement import RefinementLoop
from artifact_orchestrator.services.strategy_catalog import StrategyCatalog

logger = logging.getLogger(__name__)


class GenerationOrchestrator:
    """Runs the generation-and-recovery pipeline.

    Parameters
    ----------
    model:
        A LangChain chat model or a ready :class:`CompletionGateway`.
        ``None`` runs without a model: templates, stubs and heuristics only.
    config:
        Orchestrator configuration.
    renderer:
        Template renderer; defaults to the built-in Jinja2 library.
    validator:
        Artifact validator; defaults to :class:`StaticArtifactValidator`.
    memory:
        Pattern memory shared by every run of this orchestrator.
    """

    def __init__(
        self,
        model: BaseChatModel | CompletionGateway | None = None,
        config: OrchestratorConfig | None = None,
        renderer: TemplateRenderer | None = None,
        validator: Validator | None = None,
        memory: PatternMemory | None = None,
        catalog: StrategyCatalog | None = None,
    ) -> None:
        self.config = config or OrchestratorConfig()
        self.config.validate()

        if model is None or isinstance(model, CompletionGateway):
            self.gateway = model
        else:
            self.gateway = CompletionGateway(model, self.config.gateway)

        if memory is None:
            memory = PatternMemory(self.config.pattern_memory.max_entries)
        self.memory = memory
        self.validator = validator or StaticArtifactValidator(self.config.sdk_markers)
        self.assessor = QualityAssessor(self.config)
        self.composition = CompositionEngine(
            self.gateway, renderer, catalog or StrategyCatalog(), self.assessor, self.config
        )
        self.escalation = EscalationHandler(self.gateway)
        self.selector = RecoveryStrategySelector(self.memory, self.gateway, self.config.recovery)
        self.executor = RecoveryExecutor(
            RecoveryOptions(self.composition, self.gateway, self.composition.catalog, self.config.recovery),
            self.escalation,
            self.memory,
        )
        self._graph = build_pipeline_graph(
            self.composition,
            self.config,
            assessor=self.assessor,
            refinement=RefinementLoop(self.gateway, self.assessor, self.config),
            validator=self.validator,
            classifier=ErrorClassifier(self.gateway),
            selector=self.selector,
            executor=self.executor,
            escalation=self.escalation,
        )

    @classmethod
    def from_config(
        cls,
        config: OrchestratorConfig,
        model: BaseChatModel | None = None,
        **kwargs: Any,
    ) -> GenerationOrchestrator:
        """Build an orchestrator, creating the chat model from ``config.gateway``."""
        if model is None and config.gateway.provider:
            model = create_chat_model(config.gateway)
        return cls(model, config, **kwargs)

    @property
    def graph(self) -> Any:
        """The compiled pipeline graph."""
        return self._graph

    # -- single requirement ---------------------------------------------------

    def run(
        self,
        requirement: Requirement,
        cancel_event: threading.Event | None = None,
    ) -> PipelineResult:
        """Run the pipeline for *requirement*.

        Raises
        ------
        RequirementValidationError
            The description is empty.  No model call is made.
        """
        if not requirement.description or not requirement.description.strip():
            raise RequirementValidationError(
                "Requirement description must not be empty",
                requirement_id=requirement.requirement_id,
            )

        logger.info("GenerationOrchestrator: starting %s", requirement.requirement_id)
        final = self._graph.invoke(
            {
                "requirement": requirement,
                "cancel_event": cancel_event,
                "artifacts": [],
                "recoveries": 0,
                "cancelled": False,
                "failure": None,
            }
        )
        result = _to_result(final)
        logger.info(
            "GenerationOrchestrator: %s finished success=%s artifacts=%d quality=%.1f",
            requirement.requirement_id,
            result.success,
            len(result.artifacts),
            result.overall_quality,
        )
        return result

    # -- batch ----------------------------------------------------------------

    def run_batch(
        self,
        requirements: Sequence[Requirement],
        max_workers: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[PipelineResult]:
        """Run several requirements concurrently; results keep input order.

        A requirement that fails validation yields an unsuccessful result
        instead of aborting the batch.
        """
        workers = max_workers or self.config.batch_workers
        results: list[PipelineResult | None] = [None] * len(requirements)
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self.run, requirement, cancel_event): idx
                for idx, requirement in enumerate(requirements)
            }
            for future in concurrent.futures.as_completed(futures):
                idx = futures[future]
                try:
                    results[idx] = future.result()
                except RequirementValidationError as exc:
                    logger.warning("GenerationOrchestrator: rejected %s: %s", exc.requirement_id, exc)
                    results[idx] = PipelineResult(
                        requirement_id=requirements[idx].requirement_id,
                        success=False,
                        error=str(exc),
                    )
        return [r for r in results if r is not None]


def _to_result(state: dict[str, Any]) -> PipelineResult:
    requirement: Requirement = state["requirement"]
    artifacts = tuple(state.get("artifacts") or ())
    validation = state.get("validation")
    cancelled = bool(state.get("cancelled"))
    failed = state.get("failure") is not None or bool(state.get("error"))
    success = (
        bool(artifacts)
        and not failed
        and not cancelled
        and (validation is None or validation.passed)
    )
    recovery = state.get("recovery")
    escalation = state.get("escalation")
    if escalation is None and recovery is not None:
        escalation = recovery.escalation
    return PipelineResult(
        requirement_id=requirement.requirement_id,
        success=success,
        artifacts=artifacts,
        strategy=state.get("strategy"),
        quality_assessment=state.get("assessment"),
        assessments=tuple(state.get("assessments") or ()),
        validation=validation,
        recovery=recovery,
        escalation=escalation,
        cancelled=cancelled,
        explanation=state.get("explanation", ""),
        limitations=tuple(state.get("limitations") or ()),
        error=state.get("error"),
    )
