"""Service layer for the artifact orchestrator.

Re-exports public service types for convenient top-level access::

    from artifact_orchestrator.services import (
        CompositionEngine, QualityAssessor, RefinementLoop,
        ErrorClassifier, RecoveryStrategySelector, RecoveryExecutor,
        RecoveryOptions, EscalationHandler, StrategyCatalog,
    )
"""

from artifact_orchestrator.services.classification import ErrorClassifier
from artifact_orchestrator.services.composition import (
    CompositionEngine,
    CompositionOutcome,
    acknowledge_limitations,
    composition_explanation,
    parse_strategy,
)
from artifact_orchestrator.services.escalation import EscalationHandler
from artifact_orchestrator.services.parsing import Parsed, parse_code_blocks
from artifact_orchestrator.services.quality import QualityAssessor
from artifact_orchestrator.services.recovery import RecoveryExecutor, RecoveryStrategySelector
from artifact_orchestrator.services.recovery_options import (
    OptionOutcome,
    ParameterRules,
    RecoveryOptions,
)
from artifact_orchestrator.services.refinement import RefinementLoop, RefinementOutcome
from artifact_orchestrator.services.strategy_catalog import StrategyCatalog

__all__ = [
    # Composition
    "CompositionEngine",
    "CompositionOutcome",
    "StrategyCatalog",
    "parse_strategy",
    "composition_explanation",
    "acknowledge_limitations",
    # Parsing
    "Parsed",
    "parse_code_blocks",
    # Quality
    "QualityAssessor",
    "RefinementLoop",
    "RefinementOutcome",
    # Recovery
    "ErrorClassifier",
    "RecoveryStrategySelector",
    "RecoveryExecutor",
    "RecoveryOptions",
    "OptionOutcome",
    "ParameterRules",
    "EscalationHandler",
]
