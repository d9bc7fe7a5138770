"""Domain enumerations for the artifact orchestrator.

These enums capture the fixed vocabularies used across the domain layer:
composition approaches, generation methods, the failure taxonomy, recovery
approaches, executor states, and the tagged variants of model-output parsing.
"""

from enum import Enum


class ComplexityTier(Enum):
    """Declared complexity of a requirement."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    UNPRECEDENTED = "unprecedented"


class CompositionApproach(Enum):
    """High-level generation approaches offered by the strategy catalog."""

    TEMPLATE_COMBINATION = "template-combination"
    CUSTOM_LOGIC_GENERATION = "custom-logic-generation"
    NOVEL_PATTERN_CREATION = "novel-pattern-creation"
    HYBRID = "hybrid"


class GenerationMethod(Enum):
    """How an individual artifact came to exist."""

    TEMPLATE = "template"
    AI_COMPOSITION = "ai-composition"
    NOVEL_PATTERN = "novel-pattern"
    INTEGRATION_BRIDGE = "integration-bridge"
    REFINEMENT = "refinement"
    RECOVERY = "recovery"
    FALLBACK = "fallback"


class ParseKind(Enum):
    """Which extraction path produced a parsed value."""

    STRUCTURED = "structured"
    HEURISTIC = "heuristic"
    DEFAULT = "default"


class ErrorCategory(Enum):
    """Failure taxonomy used by the classifier and the strategy table."""

    SYNTAX = "syntax"
    NETWORK = "network"
    BUSINESS_LOGIC = "business-logic"
    INTEGRATION = "integration"
    PERFORMANCE = "performance"
    SECURITY = "security"
    CONFIGURATION = "configuration"
    USER_INPUT = "user-input"
    GENERATION_FAILURE = "generation-failure"
    STRATEGY_MISMATCH = "strategy-mismatch"
    UNKNOWN = "unknown"


class Severity(Enum):
    """How badly a failure hurts."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Recoverability(Enum):
    """How much human involvement a failure is expected to need."""

    AUTO = "auto"
    SEMI_AUTO = "semi-auto"
    MANUAL = "manual"
    NON_RECOVERABLE = "non-recoverable"


class DataIntegrity(Enum):
    """Data-integrity state reported in an impact assessment."""

    SAFE = "safe"
    AT_RISK = "at-risk"
    COMPROMISED = "compromised"


class RecoveryApproach(Enum):
    """Concrete remediation techniques known to the executor."""

    PARAMETER_ADJUSTMENT = "parameter-adjustment"
    TEMPLATE_SUBSTITUTION = "template-substitution"
    CODE_CORRECTION = "code-correction"
    CONFIGURATION_UPDATE = "configuration-update"
    RETRY_WITH_BACKOFF = "retry-with-backoff"
    FALLBACK_TO_BASE_TEMPLATE = "fallback-to-base-template"
    SIMPLIFIED_APPROACH = "simplified-approach"


class RecoveryState(Enum):
    """Finite-state-machine states of the recovery executor."""

    PENDING = "pending"
    TRYING_PRIMARY = "trying-primary"
    TRYING_FALLBACK = "trying-fallback"
    SUCCEEDED = "succeeded"
    ESCALATED = "escalated"
    CANCELLED = "cancelled"


class RecoveryPhase(Enum):
    """Which option list an attempt came from."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class PipelineStage(Enum):
    """Stages of the generation pipeline that can fail and be recovered."""

    COMPOSE = "compose"
    VALIDATE = "validate"
