"""Refinement loop: ask the model to improve weak artifacts.

Each pass sends every artifact scoring below the quality threshold back to
the model together with the assessment's itemized issues and
recommendations.  A replacement is accepted only when its confidence did
not drop; on a parse failure, timeout or regression the original stays.
The set is re-assessed after every pass and the loop stops as soon as the
threshold is met or the iteration budget is spent.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass

from artifact_orchestrator.domain.enums import GenerationMethod
from artifact_orchestrator.domain.exceptions import CompletionCancelledError
from artifact_orchestrator.domain.values import (
    GeneratedArtifact,
    QualityAssessment,
    Requirement,
)
from artifact_orchestrator.infrastructure.config import OrchestratorConfig
from artifact_orchestrator.infrastructure.gateway import CompletionGateway
from artifact_orchestrator.services.composition import CODE_SYSTEM_PROMPT
from artifact_orchestrator.services.parsing import parse_code_blocks
from artifact_orchestrator.services.quality import QualityAssessor

logger = logging.getLogger(__name__)

_REFINE_PROMPT = """\
# Code Refinement

## Requirement
{description}

## File
{path} (current score {score:.0f}/100, target {threshold:.0f})

## Issues
{issues}

## Recommendations
{recommendations}

## Current Content
```{language}
{content}
```

Return the improved file as a single fenced code block. Keep the public
interface unchanged.
"""


@dataclass(frozen=True)
class RefinementOutcome:
    """Artifacts after refinement plus the append-only assessment history."""

    artifacts: tuple[GeneratedArtifact, ...]
    assessments: tuple[QualityAssessment, ...]
    iterations: int = 0
    cancelled: bool = False

    @property
    def final_assessment(self) -> QualityAssessment:
        return self.assessments[-1]


def _relevant(items: Sequence[str], path: str) -> str:
    """Items about *path* first, then the general ones, as bullets."""
    specific = [i for i in items if i.startswith(f"{path}:")]
    general = [i for i in items if ":" not in i.split(" ")[0]]
    chosen = specific + general
    return "\n".join(f"- {i}" for i in chosen) if chosen else "- None reported"


class RefinementLoop:
    """Iteratively improves artifacts below the quality threshold."""

    def __init__(
        self,
        gateway: CompletionGateway | None,
        assessor: QualityAssessor | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        self.config = config or OrchestratorConfig()
        self.gateway = gateway
        self.assessor = assessor or QualityAssessor(self.config)

    @property
    def threshold(self) -> float:
        return self.config.quality_threshold

    def refine(
        self,
        artifacts: Sequence[GeneratedArtifact],
        assessment: QualityAssessment,
        requirement: Requirement,
        max_iterations: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RefinementOutcome:
        """Refine *artifacts* until the threshold or the iteration budget is reached."""
        budget = self.config.max_refinement_iterations if max_iterations is None else max_iterations
        current = list(artifacts)
        history = [assessment]
        iterations = 0
        cancelled = False

        if self.gateway is None or assessment.overall >= self.threshold:
            return RefinementOutcome(tuple(current), tuple(history))

        while iterations < budget and history[-1].overall < self.threshold:
            latest = history[-1]
            weak = [
                idx
                for idx, artifact in enumerate(current)
                if latest.artifact_scores.get(artifact.path, artifact.confidence) < self.threshold
            ]
            if not weak:
                logger.debug("RefinementLoop: no artifact below threshold, stopping")
                break

            iterations += 1
            for idx in weak:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break
                try:
                    current[idx] = self._refine_one(current[idx], latest, requirement, cancel_event)
                except CompletionCancelledError:
                    cancelled = True
                    break

            history.append(self.assessor.assess(current, requirement, iteration=iterations))
            logger.info(
                "RefinementLoop: %s iteration %d overall %.1f -> %.1f",
                requirement.requirement_id,
                iterations,
                latest.overall,
                history[-1].overall,
            )
            if cancelled:
                break

        return RefinementOutcome(tuple(current), tuple(history), iterations, cancelled)

    def _refine_one(
        self,
        artifact: GeneratedArtifact,
        assessment: QualityAssessment,
        requirement: Requirement,
        cancel_event: threading.Event | None,
    ) -> GeneratedArtifact:
        assert self.gateway is not None
        prompt = _REFINE_PROMPT.format(
            description=requirement.description,
            path=artifact.path,
            score=assessment.artifact_scores.get(artifact.path, artifact.confidence),
            threshold=self.threshold,
            issues=_relevant(assessment.issues, artifact.path),
            recommendations=_relevant(assessment.recommendations, artifact.path),
            language=artifact.language,
            content=artifact.content,
        )
        try:
            text = self.gateway.complete(prompt, system=CODE_SYSTEM_PROMPT, cancel_event=cancel_event)
        except CompletionCancelledError:
            raise
        except Exception as exc:
            logger.warning("RefinementLoop: keeping %s, refinement call failed: %s", artifact.path, exc)
            return artifact

        parsed = parse_code_blocks(text, default_language=artifact.language)
        if not parsed.value:
            logger.debug("RefinementLoop: keeping %s, reply had no code", artifact.path)
            return artifact

        block = parsed.value[0]
        confidence = self.assessor.score_artifact(block.content, block.language)
        if confidence < artifact.confidence:
            logger.debug(
                "RefinementLoop: keeping %s, replacement regressed %.0f -> %.0f",
                artifact.path,
                artifact.confidence,
                confidence,
            )
            return artifact
        return artifact.superseded_by(
            content=block.content,
            confidence=confidence,
            generation_method=GenerationMethod.REFINEMENT,
            dependencies=block.dependencies,
        )
