"""Quality assessor: deterministic scoring of generated artifacts.

The assessor is pure: no model calls, no I/O, same input -> same
assessment.  ``score_artifact()`` produces the per-file confidence used
throughout the pipeline; ``assess()`` derives the six dimension scores of a
:class:`QualityAssessment` from the per-file signals plus requirement
coverage.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from artifact_orchestrator.domain.values import (
    GeneratedArtifact,
    QualityAssessment,
    Requirement,
)
from artifact_orchestrator.infrastructure.config import OrchestratorConfig
from artifact_orchestrator.infrastructure.validation import (
    PYTHON_LANGUAGES,
    has_executable_construct,
)

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\bTODO\b|\bFIXME\b|Implementation needed", re.IGNORECASE)
_TYPE_DECL_RE = re.compile(r"\binterface\s+\w|\btype\s+\w+\s*=|\)\s*->\s*\w|:\s*(?:string|number|boolean)\b")
_SECRET_RE = re.compile(
    r"(?:api[_-]?key|secret|password|private[_-]?key|operator[_-]?key)\s*[:=]\s*[\"'][^\"']{8,}[\"']"
    r"|PrivateKey\.fromString\(\s*[\"'][0-9a-fA-F]{16,}",
    re.IGNORECASE,
)
_LOOP_AWAIT_RE = re.compile(r"\bfor\s*\([^)]*\)\s*\{[^}]*\bawait\b", re.DOTALL)
_INJECTED_CLIENT_RE = re.compile(
    r"\(\s*(?:private\s+readonly\s+|readonly\s+|private\s+)?client\s*:|\bdef\s+\w+\(\s*self\s*,\s*client\b"
)
_INPUT_GUARD_RE = re.compile(r"throw\s+new\s+\w*Error|raise\s+\w*Error")
_DOC_RE = re.compile(r"/\*\*|\"\"\"|^\s*(?://|#)\s*\w", re.MULTILINE)
_WORD_RE = re.compile(r"[a-z][a-z0-9-]{3,}")

_STOPWORDS = frozenset({
    "with", "that", "this", "from", "into", "must", "should", "have", "using",
    "when", "then", "than", "they", "their", "will", "able", "each", "also",
})


@dataclass(frozen=True)
class ArtifactSignals:
    """Boolean facts about one artifact that the scores are built from."""

    has_imports: bool
    has_exports: bool
    has_types: bool
    has_error_handling: bool
    uses_sdk: bool
    async_consistent: bool
    has_placeholders: bool
    too_short: bool
    has_executable: bool


class QualityAssessor:
    """Scores artifacts against six quality dimensions.

    Parameters
    ----------
    config:
        Supplies ``min_artifact_length`` and ``sdk_markers``.
    """

    def __init__(self, config: OrchestratorConfig | None = None) -> None:
        self.config = config or OrchestratorConfig()

    # -- per artifact ---------------------------------------------------------

    def signals(self, content: str, language: str = "typescript") -> ArtifactSignals:
        python = language.lower() in PYTHON_LANGUAGES
        if python:
            has_exports = bool(re.search(r"^(?:async\s+)?def\s+[a-zA-Z]|^class\s+[A-Z]", content, re.MULTILINE))
            has_error_handling = "try:" in content and "except" in content
        else:
            has_exports = "export" in content or "module.exports" in content
            has_error_handling = "try" in content and "catch" in content
        return ArtifactSignals(
            has_imports="import" in content or "require(" in content,
            has_exports=has_exports,
            has_types=bool(_TYPE_DECL_RE.search(content)),
            has_error_handling=has_error_handling,
            uses_sdk=any(marker in content for marker in self.config.sdk_markers),
            async_consistent="async" in content and "await" in content,
            has_placeholders=bool(_PLACEHOLDER_RE.search(content)),
            too_short=len(content) < self.config.min_artifact_length,
            has_executable=has_executable_construct(content, language),
        )

    def score_artifact(self, content: str, language: str = "typescript") -> float:
        """Confidence in ``[0, 100]`` for one artifact's content."""
        s = self.signals(content, language)
        score = 50.0
        if s.has_imports and s.has_exports:
            score += 10
        if s.has_types:
            score += 10
        if s.has_error_handling:
            score += 10
        if s.uses_sdk:
            score += 15
        if s.async_consistent:
            score += 5
        if s.has_placeholders:
            score -= 15
        if s.too_short:
            score -= 20
        if not s.has_executable:
            score -= 10
        return float(np.clip(score, 0.0, 100.0))

    # -- whole set ------------------------------------------------------------

    def assess(
        self,
        artifacts: Sequence[GeneratedArtifact],
        requirement: Requirement,
        iteration: int = 0,
    ) -> QualityAssessment:
        """Assess *artifacts* as a whole against *requirement*."""
        if not artifacts:
            return QualityAssessment(
                issues=("No artifacts to assess",),
                recommendations=("Regenerate the requirement",),
                iteration=iteration,
            )

        issues: list[str] = []
        recommendations: list[str] = []
        scores: dict[str, float] = {}
        all_signals: list[ArtifactSignals] = []

        for artifact in artifacts:
            s = self.signals(artifact.content, artifact.language)
            all_signals.append(s)
            scores[artifact.path] = self.score_artifact(artifact.content, artifact.language)
            self._itemize(artifact.path, s, issues, recommendations)

        combined = "\n".join(a.content for a in artifacts)
        code_quality = float(np.mean(list(scores.values())))
        business = self._business_logic_accuracy(combined, requirement, issues)
        security = self._security_compliance(combined, requirement, issues, recommendations)
        performance = self._performance(combined, all_signals, issues, recommendations)
        maintainability = self._maintainability(combined, all_signals)
        testability = self._testability(combined, all_signals, recommendations)

        assessment = QualityAssessment(
            code_quality=_clamp(code_quality),
            business_logic_accuracy=_clamp(business),
            security_compliance=_clamp(security),
            performance=_clamp(performance),
            maintainability=_clamp(maintainability),
            testability=_clamp(testability),
            issues=tuple(dict.fromkeys(issues)),
            recommendations=tuple(dict.fromkeys(recommendations)),
            artifact_scores=scores,
            iteration=iteration,
        )
        logger.debug(
            "QualityAssessor: iteration=%d overall=%.1f artifacts=%d",
            iteration,
            assessment.overall,
            len(artifacts),
        )
        return assessment

    # -- dimension helpers ----------------------------------------------------

    def _itemize(
        self,
        path: str,
        s: ArtifactSignals,
        issues: list[str],
        recommendations: list[str],
    ) -> None:
        if s.has_placeholders:
            issues.append(f"{path}: contains placeholder markers")
            recommendations.append(f"{path}: replace placeholders with working code")
        if s.too_short:
            issues.append(f"{path}: shorter than {self.config.min_artifact_length} characters")
        if not s.has_executable:
            issues.append(f"{path}: no function, class or arrow function")
        if not s.has_error_handling:
            recommendations.append(f"{path}: add structured error handling")
        if not s.has_types:
            recommendations.append(f"{path}: declare types for public data")
        if s.has_imports and not s.has_exports:
            recommendations.append(f"{path}: export the public surface")

    @staticmethod
    def _requirement_keywords(requirement: Requirement) -> set[str]:
        text = " ".join(
            (
                requirement.description,
                *requirement.constraints,
                *requirement.business_context.regulations,
            )
        ).lower()
        return {w for w in _WORD_RE.findall(text) if w not in _STOPWORDS}

    def _business_logic_accuracy(
        self, combined: str, requirement: Requirement, issues: list[str]
    ) -> float:
        keywords = self._requirement_keywords(requirement)
        if not keywords:
            return 70.0
        lowered = combined.lower()
        missing = sorted(k for k in keywords if k not in lowered)
        coverage = 1.0 - len(missing) / len(keywords)
        if coverage < 0.5:
            issues.append("Requirement keywords not reflected: " + ", ".join(missing[:5]))
        return 40.0 + 60.0 * coverage

    @staticmethod
    def _security_compliance(
        combined: str,
        requirement: Requirement,
        issues: list[str],
        recommendations: list[str],
    ) -> float:
        score = 80.0
        if _SECRET_RE.search(combined):
            score -= 30
            issues.append("Hard-coded secret detected")
            recommendations.append("Load credentials from the environment or a secret store")
        if "process.env" in combined and "dotenv" not in combined:
            score -= 15
            recommendations.append("Load environment variables through a config loader")
        if _INPUT_GUARD_RE.search(combined):
            score += 10
        if requirement.business_context.regulations and "audit" not in combined.lower():
            score -= 10
            recommendations.append("Record an audit trail for regulated operations")
        return score

    @staticmethod
    def _performance(
        combined: str,
        signals: list[ArtifactSignals],
        issues: list[str],
        recommendations: list[str],
    ) -> float:
        score = 80.0
        if _LOOP_AWAIT_RE.search(combined):
            score -= 15
            issues.append("Sequential awaits inside a loop")
            recommendations.append("Batch independent calls with Promise.all")
        if any(s.uses_sdk and not s.async_consistent for s in signals):
            score -= 20
            recommendations.append("Use async/await for network-bound SDK calls")
        if all(s.async_consistent for s in signals):
            score += 10
        return score

    @staticmethod
    def _maintainability(combined: str, signals: list[ArtifactSignals]) -> float:
        score = 50.0
        if _DOC_RE.search(combined):
            score += 20
        if all(s.has_types for s in signals):
            score += 15
        if not any(s.too_short for s in signals):
            score += 15
        if any(s.has_placeholders for s in signals):
            score -= 15
        return score

    @staticmethod
    def _testability(
        combined: str,
        signals: list[ArtifactSignals],
        recommendations: list[str],
    ) -> float:
        score = 50.0
        if all(s.has_exports for s in signals):
            score += 20
        if _INJECTED_CLIENT_RE.search(combined):
            score += 20
        else:
            recommendations.append("Accept clients as parameters so they can be replaced in tests")
        if not all(s.has_executable for s in signals):
            score -= 20
        return score


def _clamp(value: float) -> float:
    return float(np.clip(value, 0.0, 100.0))
