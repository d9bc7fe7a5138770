"""Recovery strategy selection and execution.

:class:`RecoveryStrategySelector` turns an :class:`ErrorClassification`
into an ordered :class:`RecoveryStrategy`: a static category table, with a
strategy remembered for the same error signature promoted to the front and
approaches that already failed for it moved to the back of their phase.

:class:`RecoveryExecutor` runs that strategy as a small state machine::

    PENDING -> TRYING_PRIMARY -> TRYING_FALLBACK -> SUCCEEDED | ESCALATED

with ``CANCELLED`` as the terminal state when the cancel event fires.  The
first option that succeeds wins; every option tried yields exactly one
:class:`RecoveryAttempt`.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sequence

from pydantic import BaseModel, Field

from artifact_orchestrator.domain.enums import (
    ErrorCategory,
    Recoverability,
    RecoveryApproach,
    RecoveryPhase,
    RecoveryState,
)
from artifact_orchestrator.domain.values import (
    ErrorClassification,
    ErrorPattern,
    OperationContext,
    RecoveryAttempt,
    RecoveryOption,
    RecoveryResult,
    RecoveryStrategy,
)
from artifact_orchestrator.infrastructure.config import RecoveryConfig
from artifact_orchestrator.infrastructure.gateway import CompletionGateway
from artifact_orchestrator.infrastructure.pattern_memory import PatternMemory
from artifact_orchestrator.services.escalation import EscalationHandler
from artifact_orchestrator.services.parsing import parse_structured
from artifact_orchestrator.services.recovery_options import OptionOutcome, RecoveryOptions

logger = logging.getLogger(__name__)

_R = RecoveryApproach
_C = ErrorCategory

_DESCRIPTIONS: dict[RecoveryApproach, str] = {
    _R.PARAMETER_ADJUSTMENT: "Adjust operation parameters and retry",
    _R.TEMPLATE_SUBSTITUTION: "Switch to a compatible template",
    _R.CODE_CORRECTION: "Regenerate the failing artifact with the error in context",
    _R.CONFIGURATION_UPDATE: "Apply a configuration change and retry",
    _R.RETRY_WITH_BACKOFF: "Retry with exponential backoff",
    _R.FALLBACK_TO_BASE_TEMPLATE: "Render the proven base template",
    _R.SIMPLIFIED_APPROACH: "Regenerate with reduced scope",
}

# Category -> primary options, highest estimated success first.
_PRIMARY_TABLE: dict[ErrorCategory, tuple[tuple[RecoveryApproach, float], ...]] = {
    _C.SYNTAX: ((_R.CODE_CORRECTION, 0.8), (_R.TEMPLATE_SUBSTITUTION, 0.7)),
    _C.NETWORK: ((_R.RETRY_WITH_BACKOFF, 0.7), (_R.CONFIGURATION_UPDATE, 0.6)),
    _C.BUSINESS_LOGIC: ((_R.PARAMETER_ADJUSTMENT, 0.8), (_R.TEMPLATE_SUBSTITUTION, 0.7)),
    _C.GENERATION_FAILURE: ((_R.CODE_CORRECTION, 0.6), (_R.TEMPLATE_SUBSTITUTION, 0.6)),
    _C.STRATEGY_MISMATCH: ((_R.TEMPLATE_SUBSTITUTION, 0.7), (_R.PARAMETER_ADJUSTMENT, 0.5)),
    _C.INTEGRATION: ((_R.RETRY_WITH_BACKOFF, 0.6), (_R.CONFIGURATION_UPDATE, 0.5)),
    _C.PERFORMANCE: ((_R.RETRY_WITH_BACKOFF, 0.6), (_R.PARAMETER_ADJUSTMENT, 0.5)),
    _C.SECURITY: ((_R.CONFIGURATION_UPDATE, 0.4),),
    _C.CONFIGURATION: ((_R.CONFIGURATION_UPDATE, 0.7), (_R.PARAMETER_ADJUSTMENT, 0.5)),
    _C.USER_INPUT: ((_R.PARAMETER_ADJUSTMENT, 0.5),),
    _C.UNKNOWN: ((_R.TEMPLATE_SUBSTITUTION, 0.4),),
}

_FALLBACK_TABLE: dict[ErrorCategory, tuple[tuple[RecoveryApproach, float], ...]] = {
    _C.GENERATION_FAILURE: ((_R.FALLBACK_TO_BASE_TEMPLATE, 0.9), (_R.SIMPLIFIED_APPROACH, 0.6)),
    _C.STRATEGY_MISMATCH: ((_R.FALLBACK_TO_BASE_TEMPLATE, 0.9), (_R.SIMPLIFIED_APPROACH, 0.6)),
}
_DEFAULT_FALLBACK: tuple[tuple[RecoveryApproach, float], ...] = ((_R.FALLBACK_TO_BASE_TEMPLATE, 0.9),)

SUCCESS_MESSAGES: dict[RecoveryApproach, str] = {
    _R.PARAMETER_ADJUSTMENT: (
        "Successfully recovered by adjusting parameters. The operation should now work as expected."
    ),
    _R.TEMPLATE_SUBSTITUTION: (
        "Successfully recovered by switching to a compatible template. "
        "Functionality should be equivalent."
    ),
    _R.CODE_CORRECTION: (
        "Successfully recovered by fixing the generated code. The corrected code should work properly."
    ),
    _R.CONFIGURATION_UPDATE: (
        "Successfully recovered by updating the configuration. Settings have been optimized."
    ),
    _R.RETRY_WITH_BACKOFF: (
        "Successfully recovered by retrying the operation. The temporary issue has been resolved."
    ),
    _R.FALLBACK_TO_BASE_TEMPLATE: (
        "Recovered using a proven base template. While this provides basic functionality, "
        "you may need to add custom features manually."
    ),
    _R.SIMPLIFIED_APPROACH: (
        "Recovered using a simplified approach. The implementation covers core requirements "
        "but may need enhancement."
    ),
}
EXHAUSTED_MESSAGE = "All automatic recovery attempts failed. Human intervention required."
CANCELLED_MESSAGE = "Recovery cancelled before an option succeeded."


def _options(rows: Sequence[tuple[RecoveryApproach, float]]) -> tuple[RecoveryOption, ...]:
    ordered = sorted(rows, key=lambda row: row[1], reverse=True)
    return tuple(RecoveryOption(a, p, _DESCRIPTIONS[a]) for a, p in ordered)


def _demote(strategy: RecoveryStrategy, failing: Sequence[RecoveryApproach]) -> RecoveryStrategy:
    """Move options known to have failed for this signature behind the rest of their phase."""
    if not failing:
        return strategy

    def reorder(options: tuple[RecoveryOption, ...]) -> tuple[RecoveryOption, ...]:
        return tuple(o for o in options if o.approach not in failing) + tuple(
            o for o in options if o.approach in failing
        )

    return RecoveryStrategy(
        primary=reorder(strategy.primary),
        fallback=reorder(strategy.fallback),
        promoted_from_memory=strategy.promoted_from_memory,
    )


class OrderingOutput(BaseModel):
    order: list[RecoveryApproach] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Selector
# ---------------------------------------------------------------------------

class RecoveryStrategySelector:
    """Builds the ordered option list for one failure event.

    Parameters
    ----------
    memory:
        Pattern memory consulted by error signature.
    gateway:
        Optional; used only when ``config.elaborate`` is set.
    config:
        Recovery configuration.
    """

    def __init__(
        self,
        memory: PatternMemory | None = None,
        gateway: CompletionGateway | None = None,
        config: RecoveryConfig | None = None,
    ) -> None:
        self.memory = memory
        self.gateway = gateway
        self.config = config or RecoveryConfig()

    def select(
        self,
        classification: ErrorClassification,
        operation: OperationContext,
        cancel_event: threading.Event | None = None,
    ) -> RecoveryStrategy:
        category = classification.category
        if classification.recoverability is Recoverability.NON_RECOVERABLE:
            primary: tuple[RecoveryOption, ...] = ()
        else:
            primary = _options(_PRIMARY_TABLE.get(category, _PRIMARY_TABLE[_C.UNKNOWN]))
        fallback = _options(_FALLBACK_TABLE.get(category, _DEFAULT_FALLBACK))

        if self.config.elaborate and self.gateway is not None and primary:
            primary = self._elaborate(primary, classification, cancel_event)

        strategy = RecoveryStrategy(primary=primary, fallback=fallback)
        if primary:
            strategy = self._promote(strategy, operation.error_signature)
        logger.info(
            "RecoveryStrategySelector: %s -> %s%s",
            category.value,
            [a.value for a in strategy.approaches],
            " (promoted from memory)" if strategy.promoted_from_memory else "",
        )
        return strategy

    def _promote(self, strategy: RecoveryStrategy, signature: str) -> RecoveryStrategy:
        if self.memory is None or not signature:
            return strategy
        pattern = self.memory.lookup(signature)
        if pattern is None:
            return strategy
        strategy = _demote(strategy, pattern.failed_strategies)
        remembered = pattern.successful_strategy
        if remembered is None:
            return strategy

        moved = next((o for o in strategy.primary + strategy.fallback if o.approach is remembered), None)
        if moved is None:
            moved = RecoveryOption(remembered, 1.0, _DESCRIPTIONS[remembered])
        primary = (moved,) + tuple(o for o in strategy.primary if o.approach is not remembered)
        fallback = tuple(o for o in strategy.fallback if o.approach is not remembered)
        return RecoveryStrategy(primary=primary, fallback=fallback, promoted_from_memory=True)

    def _elaborate(
        self,
        primary: tuple[RecoveryOption, ...],
        classification: ErrorClassification,
        cancel_event: threading.Event | None,
    ) -> tuple[RecoveryOption, ...]:
        assert self.gateway is not None
        known = [o.approach.value for o in primary]
        prompt = (
            f"An operation failed with a {classification.category.value} error: "
            f"{classification.root_cause.immediate}\n"
            f"Order these recovery options from most to least likely to succeed: {', '.join(known)}.\n"
            'Reply with JSON: {"order": [...]}'
        )
        try:
            text = self.gateway.complete(prompt, cancel_event=cancel_event)
        except Exception as exc:
            logger.warning("RecoveryStrategySelector: elaboration unavailable: %s", exc)
            return primary

        output = parse_structured(text, OrderingOutput)
        if output is not None:
            order = list(dict.fromkeys(output.order))
        else:
            lowered = text.lower()
            order = sorted(
                (o.approach for o in primary if o.approach.value in lowered),
                key=lambda a: lowered.index(a.value),
            )
        by_approach = {o.approach: o for o in primary}
        reordered = [by_approach[a] for a in order if a in by_approach]
        reordered.extend(o for o in primary if o not in reordered)
        return tuple(reordered)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class RecoveryExecutor:
    """Runs a :class:`RecoveryStrategy`, first success wins.

    Parameters
    ----------
    options:
        The recovery option implementations.
    escalation:
        Produces guidance once every option has failed.
    memory:
        Receives an :class:`ErrorPattern` once an event succeeds or escalates.
    """

    def __init__(
        self,
        options: RecoveryOptions,
        escalation: EscalationHandler | None = None,
        memory: PatternMemory | None = None,
    ) -> None:
        self.options = options
        self.escalation = escalation or EscalationHandler()
        self.memory = memory

    def execute(
        self,
        strategy: RecoveryStrategy,
        operation: OperationContext,
        classification: ErrorClassification,
        cancel_event: threading.Event | None = None,
    ) -> RecoveryResult:
        transitions = [RecoveryState.PENDING]
        attempts: list[RecoveryAttempt] = []

        phases = (
            (RecoveryPhase.PRIMARY, RecoveryState.TRYING_PRIMARY, strategy.primary),
            (RecoveryPhase.FALLBACK, RecoveryState.TRYING_FALLBACK, strategy.fallback),
        )
        for phase, state, options in phases:
            if not options:
                continue
            transitions.append(state)
            for option in options:
                if cancel_event is not None and cancel_event.is_set():
                    return self._cancelled(transitions, attempts, classification)

                attempt = self._attempt(option, phase, operation, classification, cancel_event)
                attempts.append(attempt)
                if attempt.success:
                    transitions.append(RecoveryState.SUCCEEDED)
                    self._remember(operation, option.approach, attempts)
                    logger.info(
                        "RecoveryExecutor: %s recovered via %s after %d attempt(s)",
                        operation.operation_type,
                        option.approach.value,
                        len(attempts),
                    )
                    return RecoveryResult(
                        success=True,
                        strategy=option.approach,
                        attempts=tuple(attempts),
                        message=SUCCESS_MESSAGES[option.approach],
                        partial=phase is RecoveryPhase.FALLBACK,
                        recommendations=attempt.recommendations,
                        transitions=tuple(transitions),
                        result=attempt.result,
                        classification=classification,
                    )
                if cancel_event is not None and cancel_event.is_set():
                    return self._cancelled(transitions, attempts, classification)

        transitions.append(RecoveryState.ESCALATED)
        logger.warning(
            "RecoveryExecutor: %s exhausted %d option(s), escalating",
            operation.operation_type,
            len(attempts),
        )
        self._remember(operation, None, attempts)
        guidance = self.escalation.escalate(operation, classification, attempts, cancel_event)
        return RecoveryResult(
            success=False,
            attempts=tuple(attempts),
            message=EXHAUSTED_MESSAGE,
            recommendations=guidance.manual_steps,
            transitions=tuple(transitions),
            escalation=guidance,
            classification=classification,
        )

    def _attempt(
        self,
        option: RecoveryOption,
        phase: RecoveryPhase,
        operation: OperationContext,
        classification: ErrorClassification,
        cancel_event: threading.Event | None,
    ) -> RecoveryAttempt:
        started = time.time()
        try:
            outcome = self.options.run(option.approach, operation, classification, cancel_event)
        except Exception as exc:
            logger.warning("RecoveryExecutor: %s raised %s: %s", option.approach.value, type(exc).__name__, exc)
            outcome = OptionOutcome(False, error=f"{type(exc).__name__}: {exc}")
        if not outcome.success:
            logger.debug("RecoveryExecutor: %s failed: %s", option.approach.value, outcome.error)
        return RecoveryAttempt(
            strategy=option.approach,
            success=outcome.success,
            result=outcome.result,
            error=outcome.error,
            timestamp=started,
            changes=outcome.changes,
            recommendations=outcome.recommendations,
            phase=phase,
        )

    def _remember(
        self,
        operation: OperationContext,
        approach: RecoveryApproach | None,
        attempts: Sequence[RecoveryAttempt],
    ) -> None:
        if self.memory is None or not operation.error_signature:
            return
        previous = self.memory.lookup(operation.error_signature)
        earlier = previous.failed_strategies if previous is not None else ()
        this_run = tuple(a.strategy for a in attempts if not a.success)
        failed = tuple(s for s in dict.fromkeys(earlier + this_run) if s is not approach)
        self.memory.record(
            operation.error_signature,
            ErrorPattern(
                signature=operation.error_signature,
                operation_type=operation.operation_type,
                successful_strategy=approach,
                failed_strategies=failed,
                prevention_suggestions=tuple(
                    r for a in attempts for r in a.recommendations
                ),
            ),
        )

    @staticmethod
    def _cancelled(
        transitions: list[RecoveryState],
        attempts: list[RecoveryAttempt],
        classification: ErrorClassification,
    ) -> RecoveryResult:
        transitions.append(RecoveryState.CANCELLED)
        logger.info("RecoveryExecutor: cancelled after %d attempt(s)", len(attempts))
        return RecoveryResult(
            success=False,
            attempts=tuple(attempts),
            message=CANCELLED_MESSAGE,
            transitions=tuple(transitions),
            classification=classification,
        )
