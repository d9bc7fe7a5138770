"""Integration tests for the compiled pipeline graph."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from artifact_orchestrator.domain.enums import RecoveryState
from artifact_orchestrator.domain.exceptions import TemplateRenderError
from artifact_orchestrator.domain.values import Requirement
from artifact_orchestrator.graph.graph import build_pipeline_graph
from artifact_orchestrator.infrastructure.config import OrchestratorConfig
from artifact_orchestrator.services.composition import CompositionEngine


class _FailingRenderer:
    def render(self, template_id: str, context: Mapping[str, Any]) -> str:
        raise TemplateRenderError(f"Template {template_id!r} is broken", template_id=template_id)


def _initial(requirement: Requirement) -> dict[str, Any]:
    return {
        "requirement": requirement,
        "cancel_event": None,
        "artifacts": [],
        "recoveries": 0,
        "cancelled": False,
        "failure": None,
    }


class TestBuildPipelineGraph:

    def test_graph_compiles(self, offline_engine: CompositionEngine) -> None:
        app = build_pipeline_graph(offline_engine)
        assert app is not None

    def test_graph_nodes(self, offline_engine: CompositionEngine) -> None:
        nodes = set(build_pipeline_graph(offline_engine).get_graph().nodes)
        assert {"compose", "assess", "refine", "validate", "recover", "finish"} <= nodes

    def test_graph_with_checkpointer(self, offline_engine: CompositionEngine) -> None:
        from langgraph.checkpoint.memory import MemorySaver
        app = build_pipeline_graph(offline_engine, checkpointer=MemorySaver())
        assert app is not None


class TestPipelineInvoke:

    def test_happy_path(
        self,
        offline_engine: CompositionEngine,
        fast_config: OrchestratorConfig,
        token_requirement: Requirement,
    ) -> None:
        app = build_pipeline_graph(offline_engine, fast_config)
        final = app.invoke(_initial(token_requirement))

        assert [a.path for a in final["artifacts"]] == ["src/token-creation.ts"]
        assert final["validation"].passed
        assert final["failure"] is None
        assert len(final["assessments"]) == 1
        assert [e["type"] for e in final["events"]] == [
            "composition_completed",
            "quality_assessed",
            "refinement_completed",
            "validation_completed",
            "pipeline_finished",
        ]
        assert final["explanation"].startswith(
            "Code composition completed using the template-combination strategy."
        )
        assert final["limitations"]

    def test_unrecoverable_compose_failure_escalates(
        self, fast_config: OrchestratorConfig, token_requirement: Requirement
    ) -> None:
        engine = CompositionEngine(renderer=_FailingRenderer())
        final = build_pipeline_graph(engine, fast_config).invoke(_initial(token_requirement))

        recovery = final["recovery"]
        assert not recovery.success
        assert recovery.final_state is RecoveryState.ESCALATED
        assert final["escalation"] is not None
        assert final["escalation"].manual_steps
        assert final["artifacts"] == []
        assert final["error"].startswith("No artifacts generated")
        assert [e["type"] for e in final["events"]] == [
            "composition_failed",
            "recovery_completed",
            "pipeline_finished",
        ]
