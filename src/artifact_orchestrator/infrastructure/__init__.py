"""Infrastructure layer: gateway, renderer, validator, memory and config."""

from artifact_orchestrator.infrastructure.config import (
    GatewayConfig,
    OrchestratorConfig,
    PatternMemoryConfig,
    RecoveryConfig,
    load_config_from_json,
)
from artifact_orchestrator.infrastructure.gateway import CompletionGateway, CompletionOptions
from artifact_orchestrator.infrastructure.llm import ChatModelFactory, create_chat_model
from artifact_orchestrator.infrastructure.logging import configure_logging
from artifact_orchestrator.infrastructure.pattern_memory import PatternMemory, error_signature
from artifact_orchestrator.infrastructure.templates import (
    JinjaTemplateRenderer,
    TemplateRenderer,
    base_template_for,
)
from artifact_orchestrator.infrastructure.validation import (
    StaticArtifactValidator,
    Validator,
)

__all__ = [
    "ChatModelFactory",
    "CompletionGateway",
    "CompletionOptions",
    "GatewayConfig",
    "JinjaTemplateRenderer",
    "OrchestratorConfig",
    "PatternMemory",
    "PatternMemoryConfig",
    "RecoveryConfig",
    "StaticArtifactValidator",
    "TemplateRenderer",
    "Validator",
    "base_template_for",
    "configure_logging",
    "create_chat_model",
    "error_signature",
    "load_config_from_json",
]
