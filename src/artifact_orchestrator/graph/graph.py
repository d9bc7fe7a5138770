"""Build the generation pipeline StateGraph.

``build_pipeline_graph()`` wires the six nodes and conditional edges into a
compiled LangGraph::

    compose -> assess -> refine -> validate -> finish
       |                              |
       +--------> recover <-----------+
                     |
                     +--> assess (recovered) | finish (escalated)
"""

from typing import Any

from langgraph.graph import END, START, StateGraph

from artifact_orchestrator.graph.edges import (
    after_assess,
    after_compose,
    after_recover,
    after_refine,
    after_validate,
)
from artifact_orchestrator.graph.nodes import (
    finish_node,
    make_assess_node,
    make_compose_node,
    make_recover_node,
    make_refine_node,
    make_validate_node,
)
from artifact_orchestrator.graph.state import PipelineState
from artifact_orchestrator.infrastructure.config import OrchestratorConfig
from artifact_orchestrator.infrastructure.validation import StaticArtifactValidator
from artifact_orchestrator.services.classification import ErrorClassifier
from artifact_orchestrator.services.composition import CompositionEngine
from artifact_orchestrator.services.escalation import EscalationHandler
from artifact_orchestrator.services.quality import QualityAssessor
from artifact_orchestrator.services.recovery import RecoveryExecutor, RecoveryStrategySelector
from artifact_orchestrator.services.recovery_options import RecoveryOptions
from artifact_orchestrator.services.refinement import RefinementLoop


def build_pipeline_graph(
    composition: CompositionEngine,
    config: OrchestratorConfig | None = None,
    assessor: QualityAssessor | None = None,
    refinement: RefinementLoop | None = None,
    validator: Any | None = None,
    classifier: ErrorClassifier | None = None,
    selector: RecoveryStrategySelector | None = None,
    executor: RecoveryExecutor | None = None,
    escalation: EscalationHandler | None = None,
    checkpointer: Any | None = None,
) -> Any:
    """Build and compile the pipeline StateGraph.

    Every collaborator is injected through a closure; omitted ones are built
    from *composition* (its gateway, catalog and assessor) and *config*.

    Parameters
    ----------
    composition:
        The composition engine.  Its gateway, if any, is shared by the
        refinement loop, classifier, selector and escalation handler.
    config:
        Orchestrator configuration.
    checkpointer:
        Optional LangGraph checkpointer.  Only in-memory checkpointers work,
        since the state carries the cancellation token and exceptions.

    Returns
    -------
    CompiledStateGraph
        A compiled graph ready for ``.invoke()`` or ``.stream()``.
    """
    config = config or composition.config
    gateway = composition.gateway
    assessor = assessor or composition.assessor
    refinement = refinement or RefinementLoop(gateway, assessor, config)
    validator = validator or StaticArtifactValidator(config.sdk_markers)
    classifier = classifier or ErrorClassifier(gateway)
    escalation = escalation or EscalationHandler(gateway)
    selector = selector or RecoveryStrategySelector(gateway=gateway, config=config.recovery)
    executor = executor or RecoveryExecutor(
        RecoveryOptions(composition, gateway, composition.catalog, config.recovery),
        escalation,
        selector.memory,
    )

    graph = StateGraph(PipelineState)

    graph.add_node("compose", make_compose_node(composition))
    graph.add_node("assess", make_assess_node(assessor))
    graph.add_node("refine", make_refine_node(refinement))
    graph.add_node("validate", make_validate_node(validator))
    graph.add_node(
        "recover",
        make_recover_node(composition, validator, classifier, selector, executor, escalation, config),
    )
    graph.add_node("finish", finish_node)

    graph.add_edge(START, "compose")
    graph.add_conditional_edges(
        "compose",
        after_compose,
        {"assess": "assess", "recover": "recover", "finish": "finish"},
    )
    graph.add_conditional_edges("assess", after_assess, {"refine": "refine", "finish": "finish"})
    graph.add_conditional_edges("refine", after_refine, {"validate": "validate", "finish": "finish"})
    graph.add_conditional_edges(
        "validate",
        after_validate,
        {"recover": "recover", "finish": "finish"},
    )
    graph.add_conditional_edges("recover", after_recover, {"assess": "assess", "finish": "finish"})
    graph.add_edge("finish", END)

    compile_kwargs: dict[str, Any] = {}
    if checkpointer is not None:
        compile_kwargs["checkpointer"] = checkpointer
    return graph.compile(**compile_kwargs)
