"""Tests for the deterministic quality assessor."""

from __future__ import annotations

import pytest

from artifact_orchestrator.domain.values import (
    BusinessContext,
    GeneratedArtifact,
    Requirement,
)
from artifact_orchestrator.infrastructure.config import OrchestratorConfig
from artifact_orchestrator.services.quality import QualityAssessor
from tests.helpers.scripted import GOOD_TS_MODULE

PLACEHOLDER_MODULE = "export function todo() {\n  // TODO: Implementation needed\n}\n"


class TestScoreArtifact:

    def test_complete_module_scores_full(self) -> None:
        assert QualityAssessor().score_artifact(GOOD_TS_MODULE) == 100.0

    def test_placeholder_module_penalized(self) -> None:
        score = QualityAssessor().score_artifact(PLACEHOLDER_MODULE)
        assert score == pytest.approx(50.0 - 15 - 20)

    def test_clipped_at_zero(self) -> None:
        assert QualityAssessor().score_artifact("// TODO") == 5.0

    def test_python_signals(self) -> None:
        content = (
            "import logging\n\n"
            "def submit(client, payload: str) -> str:\n"
            "    try:\n"
            "        return client.send(payload)\n"
            "    except Exception as exc:\n"
            "        raise RuntimeError('submit failed') from exc\n"
        )
        signals = QualityAssessor().signals(content, "python")
        assert signals.has_exports
        assert signals.has_error_handling
        assert signals.has_types

    def test_min_length_from_config(self) -> None:
        assessor = QualityAssessor(OrchestratorConfig(min_artifact_length=5000))
        assert assessor.signals(GOOD_TS_MODULE).too_short


class TestAssess:

    def test_no_artifacts(self, token_requirement: Requirement) -> None:
        qa = QualityAssessor().assess([], token_requirement, iteration=2)
        assert qa.overall == 0.0
        assert qa.issues == ("No artifacts to assess",)
        assert qa.iteration == 2

    def test_good_module_dimensions(
        self, good_artifact: GeneratedArtifact, token_requirement: Requirement
    ) -> None:
        qa = QualityAssessor().assess([good_artifact], token_requirement)
        assert qa.code_quality == 100.0
        assert qa.security_compliance == 90.0
        assert qa.performance == 90.0
        assert qa.testability == 90.0
        assert qa.artifact_scores == {"src/token-minting.ts": 100.0}
        assert qa.overall == pytest.approx(sum(qa.dimension_scores.values()) / 6)

    def test_missing_keywords_reported(
        self, good_artifact: GeneratedArtifact, token_requirement: Requirement
    ) -> None:
        qa = QualityAssessor().assess([good_artifact], token_requirement)
        assert qa.business_logic_accuracy == pytest.approx(55.0)
        assert "Requirement keywords not reflected: basic, creation, fungible" in qa.issues

    def test_deterministic(
        self, good_artifact: GeneratedArtifact, token_requirement: Requirement
    ) -> None:
        assessor = QualityAssessor()
        first = assessor.assess([good_artifact], token_requirement)
        second = assessor.assess([good_artifact], token_requirement)
        assert first.dimension_scores == second.dimension_scores
        assert first.issues == second.issues
        assert first.recommendations == second.recommendations

    def test_placeholders_itemized(self, token_requirement: Requirement) -> None:
        artifact = GeneratedArtifact("src/todo.ts", PLACEHOLDER_MODULE)
        qa = QualityAssessor().assess([artifact], token_requirement)
        assert "src/todo.ts: contains placeholder markers" in qa.issues
        assert "src/todo.ts: shorter than 100 characters" in qa.issues
        assert qa.maintainability < 70.0

    def test_hardcoded_secret(self, token_requirement: Requirement) -> None:
        content = GOOD_TS_MODULE + '\nconst operatorKey = "302e020100300506032b657004220420";\n'
        qa = QualityAssessor().assess([GeneratedArtifact("src/s.ts", content)], token_requirement)
        assert "Hard-coded secret detected" in qa.issues
        assert qa.security_compliance == 60.0

    def test_regulations_without_audit(self) -> None:
        requirement = Requirement(
            "token minting",
            business_context=BusinessContext(regulations=("MiCA",)),
        )
        qa = QualityAssessor().assess(
            [GeneratedArtifact("src/token-minting.ts", GOOD_TS_MODULE)], requirement
        )
        assert "Record an audit trail for regulated operations" in qa.recommendations
