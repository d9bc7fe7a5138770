"""Recovery options: the concrete remediation techniques.

Five automatic options and two fallbacks, all behind one entry point,
:meth:`RecoveryOptions.run`.  Each returns an :class:`OptionOutcome`; a
failure is a normal return value, and only programming errors raise.
The executor catches those too and records them as failed attempts.

Successful outcomes carry the recovered artifacts (a tuple of
:class:`GeneratedArtifact`) as ``result`` whenever the option produced any.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from artifact_orchestrator.domain.enums import (
    ComplexityTier,
    CompositionApproach,
    ErrorCategory,
    GenerationMethod,
    RecoveryApproach,
)
from artifact_orchestrator.domain.exceptions import (
    GenerationError,
    RecoveryOptionError,
    TemplateRenderError,
)
from artifact_orchestrator.domain.values import (
    CompositionStrategy,
    ErrorClassification,
    GeneratedArtifact,
    OperationContext,
)
from artifact_orchestrator.infrastructure.config import RecoveryConfig
from artifact_orchestrator.infrastructure.gateway import CompletionGateway
from artifact_orchestrator.infrastructure.templates import (
    base_template_for,
    minimal_parameters,
)
from artifact_orchestrator.infrastructure.validation import (
    check_syntax,
    has_executable_construct,
)
from artifact_orchestrator.services.composition import CompositionEngine
from artifact_orchestrator.services.parsing import load_json_object, parse_key_values
from artifact_orchestrator.services.strategy_catalog import StrategyCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptionOutcome:
    """What one recovery option achieved."""

    success: bool
    result: Any = None
    error: str | None = None
    changes: tuple[Mapping[str, Any], ...] = ()
    recommendations: tuple[str, ...] = ()
    retries: int = 0
    cancelled: bool = False


# ---------------------------------------------------------------------------
# Parameter rules
# ---------------------------------------------------------------------------

class ParameterRules:
    """Admission rules for model-proposed parameter values.

    A proposal is kept only when the key already exists in the operation's
    parameters and the value passes the rule for that key.  Keys without a
    dedicated rule accept non-empty strings, numbers and booleans.
    """

    def __init__(self) -> None:
        self._rules: dict[str, Callable[[Any], Any]] = {
            "approach": self._enum_rule(CompositionApproach),
            "complexity": self._enum_rule(ComplexityTier),
            "temperature": self._range_rule(0.0, 1.0, float),
            "max_tokens": self._range_rule(1, 8000, int),
            "timeout": self._range_rule(1.0, 600.0, float),
        }

    @staticmethod
    def _enum_rule(enum_cls: Any) -> Callable[[Any], Any]:
        def rule(value: Any) -> Any:
            return enum_cls(str(value).strip().lower()).value

        return rule

    @staticmethod
    def _range_rule(low: float, high: float, cast: Callable[[Any], Any]) -> Callable[[Any], Any]:
        def rule(value: Any) -> Any:
            number = cast(value)
            if not low <= number <= high:
                raise ValueError(f"{number} outside [{low}, {high}]")
            return number

        return rule

    def admit(self, key: str, value: Any, allowed: Mapping[str, Any]) -> tuple[bool, Any]:
        """Return ``(True, coerced)`` when *value* is acceptable for *key*."""
        if key not in allowed:
            return False, None
        rule = self._rules.get(key)
        try:
            if rule is not None:
                return True, rule(value)
        except (ValueError, TypeError):
            return False, None
        if isinstance(value, (bool, int, float)) or (isinstance(value, str) and value.strip()):
            return True, value
        return False, None


CONSERVATIVE_PARAMETERS: dict[str, Any] = {
    "approach": CompositionApproach.TEMPLATE_COMBINATION.value,
    "complexity": ComplexityTier.SIMPLE.value,
}

_PARAMETER_PROMPT = """\
# Parameter Adjustment

## Error
{category}: {error}

## Current Parameters
{parameters}

Propose corrected values for the parameters above only. Reply with a JSON
object mapping parameter name to new value.
"""

# Configuration change applied per error category.  Only settings the
# pipeline retry hook accepts: a longer time budget or the default strategy.
_CONFIGURATION_CHANGES: dict[ErrorCategory, tuple[str, Any]] = {
    ErrorCategory.NETWORK: ("timeout_multiplier", 2.0),
    ErrorCategory.INTEGRATION: ("use_defaults", True),
    ErrorCategory.PERFORMANCE: ("timeout_multiplier", 2.0),
    ErrorCategory.CONFIGURATION: ("use_defaults", True),
    ErrorCategory.SECURITY: ("use_defaults", True),
}


class RecoveryOptions:
    """Runs one recovery approach against a failed operation.

    Parameters
    ----------
    composition:
        Composition engine, used for rendering, correction and regeneration.
    gateway:
        Completion gateway for model-assisted options (may be ``None``).
    catalog:
        Strategy catalog used to find alternative templates.
    config:
        Retry and backoff settings.
    """

    def __init__(
        self,
        composition: CompositionEngine,
        gateway: CompletionGateway | None = None,
        catalog: StrategyCatalog | None = None,
        config: RecoveryConfig | None = None,
        rules: ParameterRules | None = None,
    ) -> None:
        self.composition = composition
        self.gateway = gateway
        self.catalog = catalog or composition.catalog
        self.config = config or RecoveryConfig()
        self.rules = rules or ParameterRules()
        self._handlers: dict[RecoveryApproach, Callable[..., OptionOutcome]] = {
            RecoveryApproach.PARAMETER_ADJUSTMENT: self.parameter_adjustment,
            RecoveryApproach.TEMPLATE_SUBSTITUTION: self.template_substitution,
            RecoveryApproach.CODE_CORRECTION: self.code_correction,
            RecoveryApproach.CONFIGURATION_UPDATE: self.configuration_update,
            RecoveryApproach.RETRY_WITH_BACKOFF: self.retry_with_backoff,
            RecoveryApproach.FALLBACK_TO_BASE_TEMPLATE: self.fallback_to_base_template,
            RecoveryApproach.SIMPLIFIED_APPROACH: self.simplified_approach,
        }

    def run(
        self,
        approach: RecoveryApproach,
        operation: OperationContext,
        classification: ErrorClassification,
        cancel_event: threading.Event | None = None,
    ) -> OptionOutcome:
        handler = self._handlers.get(approach)
        if handler is None:
            raise RecoveryOptionError(f"No handler for {approach!r}", approach=str(approach))
        logger.info("RecoveryOptions: running %s for %s", approach.value, operation.operation_type)
        return handler(operation, classification, cancel_event)

    # -- parameter-adjustment -------------------------------------------------

    def propose_parameters(
        self,
        operation: OperationContext,
        classification: ErrorClassification,
        cancel_event: threading.Event | None = None,
    ) -> dict[str, Any]:
        """Model-proposed values filtered through :class:`ParameterRules`."""
        if self.gateway is None or not operation.parameters:
            return {}
        prompt = _PARAMETER_PROMPT.format(
            category=classification.category.value,
            error=classification.root_cause.immediate,
            parameters="\n".join(f"- {k}: {v}" for k, v in operation.parameters.items()),
        )
        try:
            text = self.gateway.complete(prompt, cancel_event=cancel_event)
        except Exception as exc:
            logger.warning("RecoveryOptions: parameter proposal failed: %s", exc)
            return {}
        raw: Mapping[str, Any] = load_json_object(text) or parse_key_values(text)
        admitted: dict[str, Any] = {}
        for key, value in raw.items():
            ok, coerced = self.rules.admit(key, value, operation.parameters)
            if ok:
                admitted[key] = coerced
            else:
                logger.debug("RecoveryOptions: rejected proposed %s=%r", key, value)
        return admitted

    def parameter_adjustment(
        self,
        operation: OperationContext,
        classification: ErrorClassification,
        cancel_event: threading.Event | None = None,
    ) -> OptionOutcome:
        if operation.retry is None:
            return OptionOutcome(False, error="Operation cannot be retried")

        proposed = self.propose_parameters(operation, classification, cancel_event)
        if not proposed:
            proposed = {
                k: v for k, v in CONSERVATIVE_PARAMETERS.items() if k in operation.parameters
            }
        adjusted = {**operation.parameters, **proposed}
        changes = tuple(
            {"type": "parameter", "key": k, "from": operation.parameters.get(k), "to": v}
            for k, v in proposed.items()
            if operation.parameters.get(k) != v
        )
        try:
            result = operation.retry(adjusted)
        except Exception as exc:
            return OptionOutcome(False, error=f"{type(exc).__name__}: {exc}", changes=changes)
        return OptionOutcome(True, result=result, changes=changes)

    # -- template-substitution ------------------------------------------------

    def template_substitution(
        self,
        operation: OperationContext,
        classification: ErrorClassification,
        cancel_event: threading.Event | None = None,
    ) -> OptionOutcome:
        requirement = operation.requirement
        text = f"{requirement.description} {requirement.industry}"
        alternatives = self.catalog.alternatives(text, operation.failed_template)
        if not alternatives:
            return OptionOutcome(
                False,
                error="No alternative template available",
                recommendations=("Describe the requirement with domain keywords",),
            )
        errors: list[str] = []
        for alternative in alternatives:
            try:
                artifact = self.composition.render_template(
                    alternative.template_id,
                    requirement,
                    operation.parameters.get("template_context") or None,
                    method=GenerationMethod.RECOVERY,
                )
            except TemplateRenderError as exc:
                errors.append(str(exc))
                continue
            return OptionOutcome(
                True,
                result=(artifact,),
                changes=(
                    {"type": "template", "from": operation.failed_template, "to": alternative.template_id},
                ),
            )
        return OptionOutcome(False, error="; ".join(errors))

    # -- code-correction ------------------------------------------------------

    def code_correction(
        self,
        operation: OperationContext,
        classification: ErrorClassification,
        cancel_event: threading.Event | None = None,
    ) -> OptionOutcome:
        artifact = operation.artifact
        if artifact is None:
            return OptionOutcome(False, error="No artifact to correct")
        issues = tuple(operation.parameters.get("issues") or ())
        try:
            corrected = self.composition.correct_artifact(
                artifact, classification.root_cause.immediate, issues, cancel_event
            )
        except GenerationError as exc:
            return OptionOutcome(False, error=str(exc))

        problems = check_syntax(corrected.content, corrected.language)
        if not problems and not has_executable_construct(corrected.content, corrected.language):
            problems = ["Corrected file has no executable construct"]
        if problems:
            return OptionOutcome(False, error="; ".join(problems))
        return OptionOutcome(
            True,
            result=(corrected,),
            changes=({"type": "code", "path": artifact.path},),
        )

    # -- configuration-update -------------------------------------------------

    def configuration_update(
        self,
        operation: OperationContext,
        classification: ErrorClassification,
        cancel_event: threading.Event | None = None,
    ) -> OptionOutcome:
        change = _CONFIGURATION_CHANGES.get(classification.category)
        if operation.apply_configuration is None:
            return OptionOutcome(False, error="Operation accepts no configuration changes")
        if change is None:
            return OptionOutcome(
                False, error=f"No configuration change known for {classification.category.value}"
            )
        name, value = change
        if not operation.apply_configuration(name, value):
            return OptionOutcome(False, error=f"Configuration change {name!r} was not applied")

        changes = ({"type": "configuration", "key": name, "to": value, "retry_upstream": True},)
        if operation.retry is None:
            return OptionOutcome(True, changes=changes)
        try:
            result = operation.retry(dict(operation.parameters))
        except Exception as exc:
            return OptionOutcome(False, error=f"{type(exc).__name__}: {exc}", changes=changes)
        return OptionOutcome(True, result=result, changes=changes)

    # -- retry-with-backoff ---------------------------------------------------

    def retry_with_backoff(
        self,
        operation: OperationContext,
        classification: ErrorClassification,
        cancel_event: threading.Event | None = None,
    ) -> OptionOutcome:
        if operation.retry is None:
            return OptionOutcome(False, error="Operation cannot be retried")
        last_error = "no retries configured"
        for attempt in range(1, self.config.max_retries + 1):
            delay = self.config.delay_for(attempt)
            if _wait(delay, cancel_event):
                return OptionOutcome(
                    False, error="Recovery cancelled during backoff", retries=attempt - 1, cancelled=True
                )
            try:
                result = operation.retry(dict(operation.parameters))
            except Exception as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.debug("RecoveryOptions: retry %d/%d failed: %s", attempt, self.config.max_retries, exc)
                continue
            return OptionOutcome(True, result=result, retries=attempt)
        return OptionOutcome(False, error=last_error, retries=self.config.max_retries)

    # -- fallbacks ------------------------------------------------------------

    def fallback_to_base_template(
        self,
        operation: OperationContext,
        classification: ErrorClassification,
        cancel_event: threading.Event | None = None,
    ) -> OptionOutcome:
        requirement = operation.requirement
        framework = operation.parameters.get("framework") or self.composition.framework_for(requirement)
        template_id = base_template_for(str(framework))
        params = minimal_parameters(
            {**self.composition.template_context(requirement), **operation.parameters}
        )
        try:
            artifact = self.composition.render_template(
                template_id, requirement, params, method=GenerationMethod.RECOVERY
            )
        except TemplateRenderError as exc:
            return OptionOutcome(False, error=str(exc))
        return OptionOutcome(
            True,
            result=(artifact,),
            changes=({"type": "template", "from": operation.failed_template, "to": template_id},),
            recommendations=("Add custom features on top of the base template manually",),
        )

    def simplified_approach(
        self,
        operation: OperationContext,
        classification: ErrorClassification,
        cancel_event: threading.Event | None = None,
    ) -> OptionOutcome:
        requirement = operation.requirement.with_complexity(ComplexityTier.SIMPLE)
        strategy = CompositionStrategy(
            approach=CompositionApproach.TEMPLATE_COMBINATION,
            rationale="simplified recovery",
        )
        try:
            outcome = self.composition.compose(requirement, cancel_event, strategy=strategy)
        except GenerationError as exc:
            return OptionOutcome(False, error=str(exc))
        return OptionOutcome(
            True,
            result=outcome.artifacts,
            changes=({"type": "strategy", "to": strategy.approach.value, "complexity": "simple"},),
            recommendations=("The simplified implementation covers core requirements only",),
        )


def _wait(delay: float, cancel_event: threading.Event | None) -> bool:
    """Sleep for *delay* seconds; return ``True`` if cancelled meanwhile."""
    if cancel_event is not None:
        return cancel_event.wait(delay) if delay > 0 else cancel_event.is_set()
    if delay > 0:
        time.sleep(delay)
    return False
