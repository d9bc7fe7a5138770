"""LangGraph state definition for the generation pipeline.

Defines ``PipelineState``, a ``TypedDict`` that flows through the compiled
``StateGraph``.  ``assessments`` and ``events`` are append-only channels
(``Annotated[list, operator.add]``); every other key is last-write-wins.

Note: We intentionally do NOT use ``from __future__ import annotations`` because
LangGraph needs to resolve type hints at runtime via ``get_type_hints()``.
"""

import operator
import threading
from typing import Annotated, Any, TypedDict

from artifact_orchestrator.domain.values import (
    CompositionStrategy,
    EscalationGuidance,
    GeneratedArtifact,
    QualityAssessment,
    RecoveryResult,
    Requirement,
    ValidationResult,
)


class PipelineState(TypedDict, total=False):
    """State flowing through the pipeline graph for one requirement.

    Fields are grouped into:

    * **Input** -- the requirement and its cancellation token.
    * **Products** -- strategy, artifacts, latest assessment and validation.
    * **Failure handling** -- the pending failure, recovery count and results.
    * **Accumulation channels** -- assessment history and event log.
    """

    # -- Input ---------------------------------------------------------------
    requirement: Requirement
    cancel_event: threading.Event | None

    # -- Products ------------------------------------------------------------
    strategy: CompositionStrategy | None
    artifacts: list[GeneratedArtifact]
    degraded: list[str]
    assessment: QualityAssessment | None
    validation: ValidationResult | None

    # -- Failure handling ----------------------------------------------------
    failure: dict[str, Any] | None              # {"stage", "exception", "artifact"}
    recoveries: int
    recovery: RecoveryResult | None
    escalation: EscalationGuidance | None
    cancelled: bool
    error: str | None

    # -- Result text ---------------------------------------------------------
    explanation: str
    limitations: list[str]

    # -- Accumulation channels ------------------------------------------------
    assessments: Annotated[list, operator.add]
    events: Annotated[list, operator.add]
