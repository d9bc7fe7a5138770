"""LangGraph pipeline for requirement-to-artifact generation.

Public API
----------
build_pipeline_graph
    Build and compile the compose-assess-refine-validate graph with recovery.
PipelineState
    The TypedDict state flowing through the graph.

Node factories (for advanced customisation):
    make_compose_node, make_assess_node, make_refine_node,
    make_validate_node, make_recover_node, finish_node

Edge functions:
    after_compose, after_assess, after_refine, after_validate, after_recover
"""

from artifact_orchestrator.graph.edges import (
    after_assess,
    after_compose,
    after_recover,
    after_refine,
    after_validate,
)
from artifact_orchestrator.graph.graph import build_pipeline_graph
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
from artifact_orchestrator.graph.state import PipelineState

__all__ = [
    "PipelineState",
    "build_pipeline_graph",
    # Nodes
    "make_compose_node",
    "make_assess_node",
    "make_refine_node",
    "make_validate_node",
    "make_recover_node",
    "finish_node",
    # Helpers
    "build_operation",
    "merge_recovered",
    "validate_artifacts",
    # Edges
    "after_compose",
    "after_assess",
    "after_refine",
    "after_validate",
    "after_recover",
]
