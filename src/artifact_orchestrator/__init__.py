"""Artifact Orchestrator.

LangGraph pipeline that composes code artifacts from business requirements,
scores and refines them against six quality dimensions, and recovers from
failures through classified, ordered recovery strategies with a shared
pattern memory.
"""

__version__ = "0.1.0"

from artifact_orchestrator.domain import PipelineResult, Requirement
from artifact_orchestrator.graph import PipelineState, build_pipeline_graph
from artifact_orchestrator.infrastructure import OrchestratorConfig
from artifact_orchestrator.orchestrator import GenerationOrchestrator

__all__ = [
    "GenerationOrchestrator",
    "OrchestratorConfig",
    "PipelineResult",
    "PipelineState",
    "Requirement",
    "build_pipeline_graph",
]
