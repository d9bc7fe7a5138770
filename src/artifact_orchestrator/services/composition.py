"""Composition engine: turns a requirement into generated artifacts.

The engine asks the model to pick one of four composition approaches, then
dispatches on it:

* ``template-combination`` renders proven templates;
* ``custom-logic-generation`` makes one model call per logic fragment;
* ``novel-pattern-creation`` designs an architecture, then implements each
  pattern with that design in the prompt;
* ``hybrid`` concatenates template-combination and custom logic.

Strategies that name integration patterns also get one bridge module.

A failing fragment never fails the whole composition: it degrades to a stub
artifact with low confidence.  Only a composition that produced nothing at
all raises :class:`GenerationError`.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from pathlib import PurePosixPath
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

from artifact_orchestrator.domain.enums import (
    CompositionApproach,
    GenerationMethod,
    ParseKind,
)
from artifact_orchestrator.domain.exceptions import (
    CompletionCancelledError,
    GenerationError,
    RequirementValidationError,
    TemplateRenderError,
)
from artifact_orchestrator.domain.values import (
    CompositionStrategy,
    GeneratedArtifact,
    QualityAssessment,
    Requirement,
)
from artifact_orchestrator.infrastructure.config import OrchestratorConfig
from artifact_orchestrator.infrastructure.gateway import CompletionGateway
from artifact_orchestrator.infrastructure.templates import (
    JinjaTemplateRenderer,
    TemplateRenderer,
    base_template_for,
)
from artifact_orchestrator.services.parsing import (
    CodeBlock,
    Parsed,
    extension_for,
    parse_code_blocks,
    parse_structured,
)
from artifact_orchestrator.services.quality import QualityAssessor
from artifact_orchestrator.services.strategy_catalog import (
    StrategyCandidate,
    StrategyCatalog,
)

logger = logging.getLogger(__name__)

TEMPLATE_LANGUAGE = "typescript"
FRAGMENT_STUB_CONFIDENCE = 30.0
BRIDGE_STUB_CONFIDENCE = 40.0

_FRAMEWORKS = ("next.js", "nextjs", "react", "vite", "express", "node")
_LANGUAGES = ("typescript", "javascript", "python")

# -- Structured output schema -----------------------------------------------


class StrategyOutput(BaseModel):
    """Structured strategy reply.  Accepts snake_case and camelCase keys."""

    approach: CompositionApproach
    templates: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("templates", "templateCombinations", "template_combinations"),
    )
    custom_logic: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("custom_logic", "customLogic", "customLogicGenerated"),
    )
    novel_patterns: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("novel_patterns", "novelPatterns"),
    )
    integration_patterns: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("integration_patterns", "integrationPatterns"),
    )
    components: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("components", "componentsUsed"),
    )
    rationale: str = Field(default="", validation_alias=AliasChoices("rationale", "reasoning"))

    @field_validator("approach", mode="before")
    @classmethod
    def _normalize_approach(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower().replace("_", "-").replace(" ", "-")
            if value == "hybrid-composition":
                return "hybrid"
        return value

    @field_validator(
        "templates", "custom_logic", "novel_patterns", "integration_patterns", "components",
        mode="before",
    )
    @classmethod
    def _stringify_items(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [
                str(item.get("name") or item.get("id") or item) if isinstance(item, dict) else str(item)
                for item in value
            ]
        return value

    def to_strategy(self) -> CompositionStrategy:
        return CompositionStrategy(
            approach=self.approach,
            templates=tuple(self.templates),
            custom_logic=tuple(self.custom_logic),
            novel_patterns=tuple(self.novel_patterns),
            integration_patterns=tuple(self.integration_patterns),
            components=tuple(self.components),
            rationale=self.rationale,
            parse_kind=ParseKind.STRUCTURED,
        )


DEFAULT_STRATEGY = CompositionStrategy(
    approach=CompositionApproach.TEMPLATE_COMBINATION,
    components=("hedera-sdk", "business-logic", "validation"),
    rationale="default strategy",
    parse_kind=ParseKind.DEFAULT,
)


def parse_strategy(text: str) -> Parsed[CompositionStrategy]:
    """Structured JSON -> keyword heuristics -> default strategy."""
    structured = parse_structured(text, StrategyOutput)
    if structured is not None:
        return Parsed(ParseKind.STRUCTURED, structured.to_strategy(), "json strategy")

    lowered = text.lower()
    components = ("hedera-sdk", "business-logic", "validation")
    if "novel" in lowered or "unprecedented" in lowered:
        strategy = CompositionStrategy(
            approach=CompositionApproach.NOVEL_PATTERN_CREATION,
            custom_logic=("Custom business logic for novel requirements",),
            novel_patterns=("novel-implementation",),
            components=components,
            rationale="keyword: novel",
            parse_kind=ParseKind.HEURISTIC,
        )
        return Parsed(ParseKind.HEURISTIC, strategy, "novel")
    if "combine" in lowered or "merge" in lowered:
        strategy = CompositionStrategy(
            approach=CompositionApproach.HYBRID,
            custom_logic=("Custom business logic implementation",),
            components=components,
            rationale="keyword: combine",
            parse_kind=ParseKind.HEURISTIC,
        )
        return Parsed(ParseKind.HEURISTIC, strategy, "combine")
    if "custom" in lowered or "generate" in lowered:
        strategy = CompositionStrategy(
            approach=CompositionApproach.CUSTOM_LOGIC_GENERATION,
            custom_logic=("Custom business logic implementation",),
            components=components,
            rationale="keyword: custom",
            parse_kind=ParseKind.HEURISTIC,
        )
        return Parsed(ParseKind.HEURISTIC, strategy, "custom")

    return Parsed(ParseKind.DEFAULT, DEFAULT_STRATEGY, "no strategy indicators")


# -- Prompts -----------------------------------------------------------------

COMPOSITION_SYSTEM_PROMPT = (
    "You are an expert enterprise blockchain architect specializing in Hedera "
    "implementations. Analyze requirements, choose the optimal code composition "
    "strategy and balance innovation with security, compliance and scalability."
)

CODE_SYSTEM_PROMPT = (
    "You are an expert enterprise software developer specializing in Hedera "
    "integration. Reply with fenced code blocks. Start each block with "
    "'// @file <path>' and '// @description <purpose>' comments."
)

_STRATEGY_PROMPT = """\
# Code Composition Analysis

## Requirement
{description}

## Context
Industry: {industry}
Complexity: {complexity}
Regulations: {regulations}

## Constraints
{constraints}

## Preferences
{preferences}

## Candidate Approaches (prior success probability)
{candidates}

{inventory}
{patterns}
## Task
Choose exactly one approach: template-combination, custom-logic-generation,
novel-pattern-creation or hybrid. Reply with a JSON block:

```json
{{"approach": "...", "templates": [], "custom_logic": [], "novel_patterns": [],
  "integration_patterns": [], "components": [], "rationale": "..."}}
```
"""

_FRAGMENT_PROMPT = """\
# Custom Logic Generation

## Logic Fragment
{fragment}

## Requirement
{description}

## Industry
{industry}

## Constraints
{constraints}

Generate a complete {language} module implementing this fragment with typed
interfaces, structured error handling and the Hedera SDK client injected as a
parameter.
"""

_DESIGN_PROMPT = """\
# Novel Architecture Design

## Requirement
{description}

## Industry
{industry}

## Patterns To Create
{patterns}

Describe the architecture: main services, data flow, Hedera services used and
failure handling. Prose only, no code.
"""

_PATTERN_PROMPT = """\
# Novel Pattern Implementation

## Pattern
{pattern}

## Requirement
{description}

## Architecture Design
{design}

Generate a {language} implementation: a main service class, typed interfaces,
structured error handling and an injected Hedera client.
"""

_BRIDGE_PROMPT = """\
# Integration Bridge

## Integration Patterns
{patterns}

## Requirement
{description}

## Generated Modules
{modules}

Generate one {language} module that wires the generated modules together and
exposes a single entry point.
"""

_CORRECTION_PROMPT = """\
# Code Correction

## File
{path}

## Error
{error}

## Issues
{issues}

## Current Content
```{language}
{content}
```

Return the corrected file as a single fenced code block.
"""


def _bullets(items: Sequence[str], empty: str = "None specified") -> str:
    return "\n".join(f"- {item}" for item in items) if items else empty


def _slug(text: str, limit: int = 40) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:limit].rstrip("-") or "module"


def unique_paths(artifacts: Sequence[GeneratedArtifact]) -> list[GeneratedArtifact]:
    """Suffix repeated paths (``-2``, ``-3`` ...) so every artifact has its own path."""
    seen: set[str] = set()
    unique: list[GeneratedArtifact] = []
    for artifact in artifacts:
        if artifact.path in seen:
            original = PurePosixPath(artifact.path)
            n = 2
            candidate = str(original.with_name(f"{original.stem}-{n}{original.suffix}"))
            while candidate in seen:
                n += 1
                candidate = str(original.with_name(f"{original.stem}-{n}{original.suffix}"))
            logger.debug("CompositionEngine: renamed duplicate %s to %s", artifact.path, candidate)
            artifact = replace(artifact, path=candidate)
        seen.add(artifact.path)
        unique.append(artifact)
    return unique


@dataclass(frozen=True)
class CompositionOutcome:
    """Strategy plus artifacts produced for one requirement."""

    strategy: CompositionStrategy
    artifacts: tuple[GeneratedArtifact, ...]
    degraded: tuple[str, ...] = ()
    cancelled: bool = False


class CompositionEngine:
    """Chooses a composition strategy and generates artifacts.

    Parameters
    ----------
    gateway:
        Completion gateway; ``None`` limits the engine to templates and stubs.
    renderer:
        Template renderer; defaults to the built-in Jinja2 library.
    catalog:
        Strategy catalog used for candidates and template selection.
    assessor:
        Scores each generated artifact to set its confidence.
    config:
        Orchestrator configuration (default language and framework).
    """

    def __init__(
        self,
        gateway: CompletionGateway | None = None,
        renderer: TemplateRenderer | None = None,
        catalog: StrategyCatalog | None = None,
        assessor: QualityAssessor | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        self.config = config or OrchestratorConfig()
        self.gateway = gateway
        self.renderer = renderer or JinjaTemplateRenderer()
        self.catalog = catalog or StrategyCatalog()
        self.assessor = assessor or QualityAssessor(self.config)

    # -- requirement facts ----------------------------------------------------

    def language_for(self, requirement: Requirement) -> str:
        hints = " ".join(requirement.technical_requirements + requirement.preferences).lower()
        for language in _LANGUAGES:
            if language in hints:
                return language
        return self.config.default_language

    def framework_for(self, requirement: Requirement) -> str:
        hints = " ".join(requirement.technical_requirements + requirement.preferences).lower()
        for framework in _FRAMEWORKS:
            if framework in hints:
                return framework
        return self.config.default_framework

    def template_context(self, requirement: Requirement) -> dict[str, Any]:
        return {
            "project_name": _slug(requirement.description),
            "language": self.language_for(requirement),
            "framework": self.framework_for(requirement),
            "hedera_network": "testnet",
            "requirement": requirement.description,
        }

    # -- compose --------------------------------------------------------------

    def compose(
        self,
        requirement: Requirement,
        cancel_event: threading.Event | None = None,
        strategy: CompositionStrategy | None = None,
    ) -> CompositionOutcome:
        """Generate artifacts for *requirement*.

        Raises
        ------
        RequirementValidationError
            The description is empty; no model call is made.
        GenerationError
            No artifact could be produced.
        CompletionCancelledError
            Cancelled before any artifact was produced.
        """
        if not requirement.description or not requirement.description.strip():
            raise RequirementValidationError(
                "Requirement description must not be empty",
                requirement_id=requirement.requirement_id,
            )

        if strategy is None:
            strategy = self.select_strategy(requirement, cancel_event)
        logger.info(
            "CompositionEngine: %s using %s (%s)",
            requirement.requirement_id,
            strategy.approach.value,
            strategy.parse_kind.value,
        )

        artifacts: list[GeneratedArtifact] = []
        degraded: list[str] = []
        cancelled = False
        try:
            approach = strategy.approach
            if approach in (CompositionApproach.TEMPLATE_COMBINATION, CompositionApproach.HYBRID):
                artifacts.extend(self._compose_templates(requirement, strategy.templates))
            if approach in (CompositionApproach.CUSTOM_LOGIC_GENERATION, CompositionApproach.HYBRID):
                artifacts.extend(
                    self._compose_custom_logic(requirement, strategy.custom_logic, degraded, cancel_event)
                )
            if approach is CompositionApproach.NOVEL_PATTERN_CREATION:
                artifacts.extend(
                    self._compose_novel(requirement, strategy.novel_patterns, degraded, cancel_event)
                )
            if strategy.integration_patterns and artifacts:
                artifacts.append(
                    self._compose_bridge(requirement, strategy.integration_patterns, artifacts, degraded, cancel_event)
                )
        except CompletionCancelledError:
            if not artifacts:
                raise
            cancelled = True
            logger.info(
                "CompositionEngine: %s cancelled with %d artifact(s)",
                requirement.requirement_id,
                len(artifacts),
            )

        if not artifacts:
            raise GenerationError(
                f"No artifacts generated ({strategy.approach.value})",
                requirement_id=requirement.requirement_id,
                approach=strategy.approach.value,
            )
        return CompositionOutcome(
            strategy=strategy,
            artifacts=tuple(unique_paths(artifacts)),
            degraded=tuple(degraded),
            cancelled=cancelled,
        )

    # -- strategy selection ---------------------------------------------------

    def select_strategy(
        self,
        requirement: Requirement,
        cancel_event: threading.Event | None = None,
    ) -> CompositionStrategy:
        """Ask the model for a strategy; degrade to the catalog on failure."""
        candidates = self.catalog.candidates(requirement.complexity, requirement.industry)
        if self.gateway is None:
            return self._fallback_strategy(candidates, "no gateway configured")

        prompt = _STRATEGY_PROMPT.format(
            description=requirement.description,
            industry=requirement.industry or "unspecified",
            complexity=requirement.complexity.value,
            regulations=", ".join(requirement.business_context.regulations) or "none",
            constraints=_bullets(requirement.constraints),
            preferences=_bullets(requirement.preferences),
            candidates=_bullets(
                [f"{c.approach.value} ({c.success_probability:.2f})" for c in candidates]
            ),
            inventory=self.catalog.template_inventory(),
            patterns=self.catalog.industry_patterns(requirement.industry),
        )
        try:
            text = self.gateway.complete(
                prompt, system=COMPOSITION_SYSTEM_PROMPT, cancel_event=cancel_event
            )
        except CompletionCancelledError:
            raise
        except Exception as exc:
            logger.warning("CompositionEngine: strategy selection failed: %s", exc)
            return self._fallback_strategy(candidates, f"selection failed: {exc}")

        parsed = parse_strategy(text)
        logger.debug("CompositionEngine: strategy parsed via %s (%s)", parsed.kind.value, parsed.detail)
        return parsed.value

    @staticmethod
    def _fallback_strategy(candidates: list[StrategyCandidate], reason: str) -> CompositionStrategy:
        confident = StrategyCatalog.confident(candidates)
        if confident is None:
            return DEFAULT_STRATEGY
        custom = (
            ("Core business logic implementation",)
            if confident.approach is not CompositionApproach.TEMPLATE_COMBINATION
            else ()
        )
        novel = (
            ("novel-implementation",)
            if confident.approach is CompositionApproach.NOVEL_PATTERN_CREATION
            else ()
        )
        return CompositionStrategy(
            approach=confident.approach,
            custom_logic=custom,
            novel_patterns=novel,
            components=DEFAULT_STRATEGY.components,
            rationale=f"catalog prior {confident.success_probability:.2f}; {reason}",
            parse_kind=ParseKind.DEFAULT,
        )

    # -- templates ------------------------------------------------------------

    def render_template(
        self,
        template_id: str,
        requirement: Requirement,
        parameters: Mapping[str, Any] | None = None,
        method: GenerationMethod = GenerationMethod.TEMPLATE,
    ) -> GeneratedArtifact:
        """Render one template into an artifact.  Raises ``TemplateRenderError``."""
        context = {**self.template_context(requirement), **(parameters or {})}
        content = self.renderer.render(template_id, context)
        return GeneratedArtifact(
            path=f"src/{template_id}.{extension_for(TEMPLATE_LANGUAGE)}",
            content=content,
            language=TEMPLATE_LANGUAGE,
            purpose=f"Template {template_id}",
            dependencies=("@hashgraph/sdk", "dotenv"),
            generation_method=method,
            confidence=self.assessor.score_artifact(content, TEMPLATE_LANGUAGE),
        )

    def _compose_templates(
        self,
        requirement: Requirement,
        template_ids: Sequence[str],
    ) -> list[GeneratedArtifact]:
        chosen = list(template_ids) or self.catalog.templates_for(requirement)
        artifacts: list[GeneratedArtifact] = []
        for template_id in chosen:
            try:
                artifacts.append(self.render_template(template_id, requirement))
            except TemplateRenderError as exc:
                logger.warning("CompositionEngine: skipping template %r: %s", template_id, exc)
        if artifacts:
            return artifacts

        base = base_template_for(self.framework_for(requirement))
        logger.info("CompositionEngine: no template rendered, using base template %r", base)
        try:
            return [self.render_template(base, requirement)]
        except TemplateRenderError as exc:
            logger.warning("CompositionEngine: base template %r failed: %s", base, exc)
            return []

    # -- model-generated code -------------------------------------------------

    def _generate_blocks(
        self,
        prompt: str,
        stem: str,
        language: str,
        cancel_event: threading.Event | None,
    ) -> list[CodeBlock]:
        if self.gateway is None:
            raise GenerationError("No completion gateway configured")
        text = self.gateway.complete(prompt, system=CODE_SYSTEM_PROMPT, cancel_event=cancel_event)
        parsed = parse_code_blocks(text, default_language=language, stem=stem)
        if not parsed.value:
            raise GenerationError(f"Model reply contained no code for {stem!r}")
        return parsed.value

    def _to_artifact(
        self,
        block: CodeBlock,
        purpose: str,
        method: GenerationMethod,
    ) -> GeneratedArtifact:
        return GeneratedArtifact(
            path=block.path,
            content=block.content,
            language=block.language,
            purpose=block.purpose or purpose,
            dependencies=block.dependencies,
            generation_method=method,
            confidence=self.assessor.score_artifact(block.content, block.language),
        )

    def _stub(
        self,
        name: str,
        requirement: Requirement,
        language: str,
        confidence: float,
        reason: str,
    ) -> GeneratedArtifact:
        slug = _slug(name)
        if language == "python":
            content = (
                f'"""{name} (fallback stub: {reason})."""\n\n\n'
                f"def {slug.replace('-', '_')}(*args, **kwargs):\n"
                f'    raise NotImplementedError("Implementation needed: {name}")\n'
            )
        else:
            content = (
                f"// Fallback stub for {name}: {reason}\n"
                f"export function {_camel(slug)}(): never {{\n"
                f'  throw new Error("Implementation needed: {name}");\n'
                f"}}\n"
            )
        return GeneratedArtifact(
            path=f"src/fallback/{slug}.{extension_for(language)}",
            content=content,
            language=language,
            purpose=requirement.description,
            generation_method=GenerationMethod.FALLBACK,
            confidence=confidence,
        )

    def _compose_custom_logic(
        self,
        requirement: Requirement,
        fragments: Sequence[str],
        degraded: list[str],
        cancel_event: threading.Event | None,
    ) -> list[GeneratedArtifact]:
        language = self.language_for(requirement)
        artifacts: list[GeneratedArtifact] = []
        for fragment in fragments or ("Core business logic implementation",):
            if cancel_event is not None and cancel_event.is_set():
                raise CompletionCancelledError("Composition cancelled")
            prompt = _FRAGMENT_PROMPT.format(
                fragment=fragment,
                description=requirement.description,
                industry=requirement.industry or "unspecified",
                constraints=_bullets(requirement.constraints),
                language=language,
            )
            try:
                blocks = self._generate_blocks(prompt, _slug(fragment), language, cancel_event)
            except CompletionCancelledError:
                raise
            except Exception as exc:
                logger.warning("CompositionEngine: fragment %r degraded to stub: %s", fragment, exc)
                degraded.append(fragment)
                artifacts.append(
                    self._stub(fragment, requirement, language, FRAGMENT_STUB_CONFIDENCE, type(exc).__name__)
                )
                continue
            artifacts.extend(
                self._to_artifact(block, fragment, GenerationMethod.AI_COMPOSITION) for block in blocks
            )
        return artifacts

    def _compose_novel(
        self,
        requirement: Requirement,
        patterns: Sequence[str],
        degraded: list[str],
        cancel_event: threading.Event | None,
    ) -> list[GeneratedArtifact]:
        language = self.language_for(requirement)
        patterns = list(patterns) or ["novel-implementation"]
        design = ""
        if self.gateway is not None:
            try:
                design = self.gateway.complete(
                    _DESIGN_PROMPT.format(
                        description=requirement.description,
                        industry=requirement.industry or "unspecified",
                        patterns=_bullets(patterns),
                    ),
                    system=COMPOSITION_SYSTEM_PROMPT,
                    cancel_event=cancel_event,
                )
            except CompletionCancelledError:
                raise
            except Exception as exc:
                logger.warning("CompositionEngine: architecture design failed: %s", exc)

        artifacts: list[GeneratedArtifact] = []
        for pattern in patterns:
            if cancel_event is not None and cancel_event.is_set():
                raise CompletionCancelledError("Composition cancelled")
            prompt = _PATTERN_PROMPT.format(
                pattern=pattern,
                description=requirement.description,
                design=design or "No design available; choose a conventional service layout.",
                language=language,
            )
            try:
                blocks = self._generate_blocks(prompt, _slug(pattern), language, cancel_event)
            except CompletionCancelledError:
                raise
            except Exception as exc:
                logger.warning("CompositionEngine: pattern %r degraded to stub: %s", pattern, exc)
                degraded.append(pattern)
                artifacts.append(
                    self._stub(pattern, requirement, language, FRAGMENT_STUB_CONFIDENCE, type(exc).__name__)
                )
                continue
            artifacts.extend(
                self._to_artifact(block, pattern, GenerationMethod.NOVEL_PATTERN) for block in blocks
            )
        return artifacts

    def _compose_bridge(
        self,
        requirement: Requirement,
        patterns: Sequence[str],
        artifacts: Sequence[GeneratedArtifact],
        degraded: list[str],
        cancel_event: threading.Event | None,
    ) -> GeneratedArtifact:
        language = self.language_for(requirement)
        prompt = _BRIDGE_PROMPT.format(
            patterns=_bullets(patterns),
            description=requirement.description,
            modules=_bullets([f"{a.path}: {a.purpose}" for a in artifacts]),
            language=language,
        )
        try:
            blocks = self._generate_blocks(prompt, "integration-bridge", language, cancel_event)
        except CompletionCancelledError:
            raise
        except Exception as exc:
            logger.warning("CompositionEngine: integration bridge degraded to stub: %s", exc)
            degraded.append("integration-bridge")
            return self._stub(
                "integration bridge", requirement, language, BRIDGE_STUB_CONFIDENCE, type(exc).__name__
            )
        return self._to_artifact(blocks[0], "Integration bridge", GenerationMethod.INTEGRATION_BRIDGE)

    # -- single-artifact regeneration -----------------------------------------

    def correct_artifact(
        self,
        artifact: GeneratedArtifact,
        error: str,
        issues: Sequence[str] = (),
        cancel_event: threading.Event | None = None,
    ) -> GeneratedArtifact:
        """Re-synthesize *artifact* with *error* in the prompt.

        Raises ``GenerationError`` when the reply holds no code; gateway
        errors propagate.
        """
        prompt = _CORRECTION_PROMPT.format(
            path=artifact.path,
            error=error,
            issues=_bullets(issues, empty="None reported"),
            language=artifact.language,
            content=artifact.content,
        )
        blocks = self._generate_blocks(prompt, _slug(artifact.path), artifact.language, cancel_event)
        block = blocks[0]
        return artifact.superseded_by(
            content=block.content,
            confidence=self.assessor.score_artifact(block.content, block.language),
            generation_method=GenerationMethod.RECOVERY,
            dependencies=block.dependencies,
        )


def _camel(slug: str) -> str:
    head, *rest = slug.split("-")
    name = head + "".join(part.capitalize() for part in rest)
    return name if name and not name[0].isdigit() else f"fn{name}"


# -- Explanation and limitations ---------------------------------------------


def composition_explanation(
    strategy: CompositionStrategy,
    artifacts: Sequence[GeneratedArtifact],
    assessment: QualityAssessment | None,
) -> str:
    """Human-readable summary of how the artifacts were produced."""
    parts = [f"Code composition completed using the {strategy.approach.value} strategy."]
    by_method: dict[str, int] = {}
    for artifact in artifacts:
        by_method[artifact.generation_method.value] = by_method.get(artifact.generation_method.value, 0) + 1
    if by_method:
        parts.append(
            "Generated "
            + ", ".join(f"{count} {method}" for method, count in sorted(by_method.items()))
            + " file(s)."
        )
    if assessment is not None:
        overall = assessment.overall
        parts.append(f"Overall quality score: {overall:.0f}/100.")
        if overall >= 80:
            parts.append("High-quality code generated with minimal manual review needed.")
        elif overall >= 60:
            parts.append("Good quality code generated, some manual review recommended.")
        else:
            parts.append("Basic code generated, manual review and enhancement required.")
    return " ".join(parts)


def acknowledge_limitations(
    strategy: CompositionStrategy,
    artifacts: Sequence[GeneratedArtifact],
) -> tuple[str, ...]:
    """Known limitations of an automatically composed result."""
    limitations = [
        "Generated code must be reviewed for business logic accuracy",
        "Test thoroughly in a staging environment before production use",
    ]
    if strategy.approach in (
        CompositionApproach.NOVEL_PATTERN_CREATION,
        CompositionApproach.CUSTOM_LOGIC_GENERATION,
        CompositionApproach.HYBRID,
    ):
        limitations.append("Novel business logic may require human review")
    stubs = [a.path for a in artifacts if a.is_fallback]
    if stubs:
        limitations.append("Fallback stubs need manual implementation: " + ", ".join(stubs))
    limitations.append("Complex regulatory requirements need domain expert validation")
    return tuple(limitations)
