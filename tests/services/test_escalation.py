"""Tests for escalation guidance."""

from __future__ import annotations

import json

from artifact_orchestrator.domain.enums import ErrorCategory, RecoveryApproach, Severity
from artifact_orchestrator.domain.values import (
    ErrorClassification,
    OperationContext,
    RecoveryAttempt,
    Requirement,
    RootCause,
)
from artifact_orchestrator.services.escalation import (
    GENERIC_GUIDANCE,
    EscalationHandler,
    extract_sections,
)
from tests.helpers.scripted import make_gateway

SECTIONED_REPLY = """\
**PROBLEM SUMMARY**: The mirror node rejected every query.

MANUAL RESOLUTION STEPS
1. Check the mirror node URL
2. Rotate the API key

## EXPERT CONSULTATION
- Hedera network engineer

PREVENTION STRATEGIES:
* Monitor mirror node health
"""


def _classification() -> ErrorClassification:
    return ErrorClassification(
        category=ErrorCategory.NETWORK,
        severity=Severity.HIGH,
        root_cause=RootCause(immediate="connect ECONNREFUSED", underlying="Endpoint unreachable"),
        recovery_suggestions=("Retry with exponential backoff",),
    )


def _operation(requirement: Requirement) -> OperationContext:
    return OperationContext(operation_type="compose", requirement=requirement)


class TestExtractSections:

    def test_headed_sections(self) -> None:
        sections = extract_sections(SECTIONED_REPLY)
        assert sections["problem_summary"] == ["The mirror node rejected every query."]
        assert sections["manual_steps"] == ["Check the mirror node URL", "Rotate the API key"]
        assert sections["expert_consultation"] == ["Hedera network engineer"]
        assert sections["prevention_strategies"] == ["Monitor mirror node health"]
        assert "alternative_approaches" not in sections

    def test_no_sections(self) -> None:
        assert extract_sections("nothing useful") == {}


class TestDeterministicGuidance:

    def test_summary_and_steps(self, token_requirement: Requirement) -> None:
        attempts = (
            RecoveryAttempt(RecoveryApproach.RETRY_WITH_BACKOFF, False, error="ConnectionError: refused"),
        )
        guidance = EscalationHandler().escalate(_operation(token_requirement), _classification(), attempts)
        assert guidance.problem_summary == (
            "compose failed with a high network error: connect ECONNREFUSED"
        )
        assert guidance.manual_steps == (
            "Inspect the failing step: compose",
            "Address the underlying cause: Endpoint unreachable",
            "Retry with exponential backoff",
            "Review why retry-with-backoff failed: ConnectionError: refused",
        )
        assert not guidance.generic


class TestModelGuidance:

    def test_json_reply(self, token_requirement: Requirement) -> None:
        reply = json.dumps(
            {
                "problemSummary": "Mirror node outage",
                "manualSteps": "Wait for the outage to end",
                "alternativeApproaches": ["Use a second mirror node"],
            }
        )
        model, gateway = make_gateway(reply)
        attempts = (RecoveryAttempt(RecoveryApproach.RETRY_WITH_BACKOFF, False, error="refused"),)
        guidance = EscalationHandler(gateway).escalate(
            _operation(token_requirement), _classification(), attempts
        )
        assert guidance.problem_summary == "Mirror node outage"
        assert guidance.manual_steps == ("Wait for the outage to end",)
        assert guidance.alternative_approaches == ("Use a second mirror node",)
        assert guidance.expert_consultation == ("System architect consultation recommended",)
        assert "- retry-with-backoff: refused" in model.prompts[0]

    def test_sectioned_reply(self, token_requirement: Requirement) -> None:
        _, gateway = make_gateway(SECTIONED_REPLY)
        guidance = EscalationHandler(gateway).escalate(_operation(token_requirement), _classification())
        assert guidance.manual_steps == ("Check the mirror node URL", "Rotate the API key")
        assert guidance.alternative_approaches == ("Consider simplifying requirements",)

    def test_unusable_reply_falls_back_to_deterministic(self, token_requirement: Requirement) -> None:
        _, gateway = make_gateway("I am not sure.")
        guidance = EscalationHandler(gateway).escalate(_operation(token_requirement), _classification())
        assert guidance.problem_summary.startswith("compose failed with a high network error")

    def test_model_failure_falls_back_to_deterministic(self, token_requirement: Requirement) -> None:
        _, gateway = make_gateway(RuntimeError("model down"))
        guidance = EscalationHandler(gateway).escalate(_operation(token_requirement), _classification())
        assert not guidance.generic


class TestGenericGuidance:

    def test_broken_input_gives_generic(self) -> None:
        guidance = EscalationHandler().escalate(None, _classification())  # type: ignore[arg-type]
        assert guidance is GENERIC_GUIDANCE
        assert guidance.generic
