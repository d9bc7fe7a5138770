"""Shared fixtures for the artifact orchestrator test suite."""

from __future__ import annotations

import pytest

from artifact_orchestrator.domain.enums import ComplexityTier
from artifact_orchestrator.domain.values import BusinessContext, GeneratedArtifact, Requirement
from artifact_orchestrator.infrastructure.config import (
    GatewayConfig,
    OrchestratorConfig,
    RecoveryConfig,
)
from artifact_orchestrator.infrastructure.templates import JinjaTemplateRenderer
from artifact_orchestrator.services.composition import CompositionEngine
from tests.helpers.scripted import GOOD_TS_MODULE

# ---------------------------------------------------------------------------
# Value-object fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def token_requirement() -> Requirement:
    """The simple token-creation requirement used across the suite."""
    return Requirement(
        description="basic fungible token creation",
        requirement_id="req-token",
        business_context=BusinessContext(industry="technology"),
    )


@pytest.fixture
def complex_requirement() -> Requirement:
    return Requirement(
        description="Cross-border payment settlement with compliance reporting",
        requirement_id="req-payments",
        business_context=BusinessContext(
            industry="financial-services",
            regulations=("PSD2",),
            complexity=ComplexityTier.COMPLEX,
        ),
        constraints=("Settle within one business day",),
    )


@pytest.fixture
def good_artifact() -> GeneratedArtifact:
    return GeneratedArtifact(
        path="src/token-minting.ts",
        content=GOOD_TS_MODULE,
        purpose="Token minting service",
        confidence=90.0,
    )


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fast_config() -> OrchestratorConfig:
    """No backoff delay and no refinement passes."""
    return OrchestratorConfig(
        max_refinement_iterations=0,
        recovery=RecoveryConfig(max_retries=3, base_delay=0.0, max_delay=0.0),
        gateway=GatewayConfig(timeout=5.0),
    )


@pytest.fixture
def renderer() -> JinjaTemplateRenderer:
    return JinjaTemplateRenderer()


@pytest.fixture
def offline_engine(renderer: JinjaTemplateRenderer) -> CompositionEngine:
    """A composition engine with no gateway: templates and stubs only."""
    return CompositionEngine(gateway=None, renderer=renderer)
