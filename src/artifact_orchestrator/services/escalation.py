"""Escalation handler: guidance for a human once automation is exhausted."""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Sequence
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from artifact_orchestrator.domain.values import (
    ErrorClassification,
    EscalationGuidance,
    OperationContext,
    RecoveryAttempt,
)
from artifact_orchestrator.infrastructure.gateway import CompletionGateway
from artifact_orchestrator.services.parsing import parse_structured

logger = logging.getLogger(__name__)

GENERIC_GUIDANCE = EscalationGuidance(
    problem_summary="Error analysis failed",
    manual_steps=("Contact technical support with error details",),
    expert_consultation=("System architect review recommended",),
    alternative_approaches=("Consider alternative implementation approach",),
    prevention_strategies=("Implement comprehensive error monitoring",),
    generic=True,
)

_SECTION_DEFAULTS = {
    "problem_summary": "Complex error requiring human intervention",
    "manual_steps": ("Contact technical support",),
    "expert_consultation": ("System architect consultation recommended",),
    "alternative_approaches": ("Consider simplifying requirements",),
    "prevention_strategies": ("Thorough testing in staging environment",),
}

_SECTION_HEADINGS = {
    "problem_summary": "PROBLEM SUMMARY",
    "manual_steps": "MANUAL RESOLUTION STEPS",
    "expert_consultation": "EXPERT CONSULTATION",
    "alternative_approaches": "ALTERNATIVE APPROACHES",
    "prevention_strategies": "PREVENTION STRATEGIES",
}

_ESCALATION_PROMPT = """\
# Escalation Guidance

Automatic recovery failed for the operation below. Provide guidance for the
engineer who takes over.

## Operation
{operation_type}: {requirement}

## Diagnosis
Category: {category} (severity {severity})
Immediate cause: {immediate}
Underlying cause: {underlying}

## Attempted Recovery
{attempts}

Reply with a JSON object with the keys problem_summary, manual_steps,
expert_consultation, alternative_approaches and prevention_strategies, or
with the sections PROBLEM SUMMARY, MANUAL RESOLUTION STEPS, EXPERT
CONSULTATION, ALTERNATIVE APPROACHES and PREVENTION STRATEGIES.
"""

_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


class GuidanceOutput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    problem_summary: str = Field(validation_alias=AliasChoices("problem_summary", "problemSummary"))
    manual_steps: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("manual_steps", "manualSteps", "manualResolutionSteps"),
    )
    expert_consultation: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("expert_consultation", "expertConsultation"),
    )
    alternative_approaches: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("alternative_approaches", "alternativeApproaches"),
    )
    prevention_strategies: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("prevention_strategies", "preventionStrategies"),
    )

    @field_validator(
        "manual_steps", "expert_consultation", "alternative_approaches", "prevention_strategies",
        mode="before",
    )
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    def to_guidance(self) -> EscalationGuidance:
        return EscalationGuidance(
            problem_summary=self.problem_summary or _SECTION_DEFAULTS["problem_summary"],
            manual_steps=tuple(self.manual_steps) or _SECTION_DEFAULTS["manual_steps"],
            expert_consultation=tuple(self.expert_consultation) or _SECTION_DEFAULTS["expert_consultation"],
            alternative_approaches=tuple(self.alternative_approaches)
            or _SECTION_DEFAULTS["alternative_approaches"],
            prevention_strategies=tuple(self.prevention_strategies)
            or _SECTION_DEFAULTS["prevention_strategies"],
        )


def extract_sections(text: str) -> dict[str, list[str]]:
    """Split a plain-text reply into the five headed sections."""
    lookup = {heading: key for key, heading in _SECTION_HEADINGS.items()}
    pattern = re.compile(
        r"^[#\s*]*(" + "|".join(re.escape(h) for h in lookup) + r")\b[:*\s]*(.*)$",
        re.IGNORECASE | re.MULTILINE,
    )
    sections: dict[str, list[str]] = {}
    matches = list(pattern.finditer(text))
    for idx, match in enumerate(matches):
        key = lookup[match.group(1).upper()]
        end = matches[idx + 1].start() if idx + 1 < len(matches) else len(text)
        body = [match.group(2)] + text[match.end():end].splitlines()
        lines = [_BULLET_RE.sub("", line).strip() for line in body]
        sections[key] = [line for line in lines if line]
    return sections


def _from_sections(sections: dict[str, list[str]]) -> EscalationGuidance:
    def items(key: str) -> tuple[str, ...]:
        return tuple(sections.get(key) or ()) or _SECTION_DEFAULTS[key]

    summary_lines = sections.get("problem_summary") or []
    return EscalationGuidance(
        problem_summary=" ".join(summary_lines) or _SECTION_DEFAULTS["problem_summary"],
        manual_steps=items("manual_steps"),
        expert_consultation=items("expert_consultation"),
        alternative_approaches=items("alternative_approaches"),
        prevention_strategies=items("prevention_strategies"),
    )


class EscalationHandler:
    """Builds :class:`EscalationGuidance`; :meth:`escalate` always returns one."""

    def __init__(self, gateway: CompletionGateway | None = None) -> None:
        self.gateway = gateway

    def escalate(
        self,
        operation: OperationContext,
        classification: ErrorClassification,
        attempts: Sequence[RecoveryAttempt] = (),
        cancel_event: threading.Event | None = None,
    ) -> EscalationGuidance:
        try:
            if self.gateway is not None:
                guidance = self._model_guidance(operation, classification, attempts, cancel_event)
                if guidance is not None:
                    return guidance
            return self._deterministic_guidance(operation, classification, attempts)
        except Exception:
            logger.exception("EscalationHandler: guidance generation failed")
            return GENERIC_GUIDANCE

    def _model_guidance(
        self,
        operation: OperationContext,
        classification: ErrorClassification,
        attempts: Sequence[RecoveryAttempt],
        cancel_event: threading.Event | None,
    ) -> EscalationGuidance | None:
        assert self.gateway is not None
        prompt = _ESCALATION_PROMPT.format(
            operation_type=operation.operation_type,
            requirement=operation.requirement.description,
            category=classification.category.value,
            severity=classification.severity.value,
            immediate=classification.root_cause.immediate or "unknown",
            underlying=classification.root_cause.underlying or "unknown",
            attempts=_describe_attempts(attempts),
        )
        try:
            text = self.gateway.complete(prompt, cancel_event=cancel_event)
        except Exception as exc:
            logger.warning("EscalationHandler: model guidance unavailable: %s", exc)
            return None

        structured = parse_structured(text, GuidanceOutput)
        if structured is not None:
            return structured.to_guidance()
        sections = extract_sections(text)
        if sections:
            return _from_sections(sections)
        logger.debug("EscalationHandler: reply had no recognizable sections")
        return None

    @staticmethod
    def _deterministic_guidance(
        operation: OperationContext,
        classification: ErrorClassification,
        attempts: Sequence[RecoveryAttempt],
    ) -> EscalationGuidance:
        root = classification.root_cause
        summary = (
            f"{operation.operation_type} failed with a {classification.severity.value} "
            f"{classification.category.value} error: {root.immediate or 'no message'}"
        )
        steps = [f"Inspect the failing step: {operation.operation_type}"]
        if root.underlying:
            steps.append(f"Address the underlying cause: {root.underlying}")
        steps.extend(classification.recovery_suggestions)
        for attempt in attempts:
            if attempt.error:
                steps.append(f"Review why {attempt.strategy.value} failed: {attempt.error}")
        return EscalationGuidance(
            problem_summary=summary,
            manual_steps=tuple(dict.fromkeys(steps)),
            expert_consultation=_SECTION_DEFAULTS["expert_consultation"],
            alternative_approaches=_SECTION_DEFAULTS["alternative_approaches"],
            prevention_strategies=_SECTION_DEFAULTS["prevention_strategies"],
        )


def _describe_attempts(attempts: Sequence[RecoveryAttempt]) -> str:
    if not attempts:
        return "- None"
    return "\n".join(
        f"- {a.strategy.value}: {'succeeded' if a.success else a.error or 'failed'}" for a in attempts
    )
