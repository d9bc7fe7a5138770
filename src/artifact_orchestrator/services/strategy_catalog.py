"""Strategy catalog: candidate approaches, template selection and inventories.

The catalog is static knowledge.  It ranks the four composition approaches
for a complexity tier and industry, proposes templates for a requirement,
scores alternative templates when one fails, and supplies the inventory and
industry-pattern text folded into composition prompts.
"""

from __future__ import annotations

from dataclasses import dataclass

from artifact_orchestrator.domain.enums import ComplexityTier, CompositionApproach
from artifact_orchestrator.domain.values import Requirement

# ---------------------------------------------------------------------------
# Approach priors
# ---------------------------------------------------------------------------

_A = CompositionApproach

_PRIORS: dict[ComplexityTier, dict[CompositionApproach, float]] = {
    ComplexityTier.SIMPLE: {
        _A.TEMPLATE_COMBINATION: 0.9,
        _A.HYBRID: 0.6,
        _A.CUSTOM_LOGIC_GENERATION: 0.5,
        _A.NOVEL_PATTERN_CREATION: 0.2,
    },
    ComplexityTier.MODERATE: {
        _A.TEMPLATE_COMBINATION: 0.75,
        _A.HYBRID: 0.7,
        _A.CUSTOM_LOGIC_GENERATION: 0.6,
        _A.NOVEL_PATTERN_CREATION: 0.3,
    },
    ComplexityTier.COMPLEX: {
        _A.HYBRID: 0.75,
        _A.CUSTOM_LOGIC_GENERATION: 0.7,
        _A.TEMPLATE_COMBINATION: 0.5,
        _A.NOVEL_PATTERN_CREATION: 0.45,
    },
    ComplexityTier.UNPRECEDENTED: {
        _A.NOVEL_PATTERN_CREATION: 0.7,
        _A.HYBRID: 0.6,
        _A.CUSTOM_LOGIC_GENERATION: 0.55,
        _A.TEMPLATE_COMBINATION: 0.3,
    },
}

# Regulated industries lean on compliance templates plus custom logic.
_REGULATED_INDUSTRIES = frozenset({
    "pharmaceutical",
    "financial-services",
    "financial",
    "insurance",
    "healthcare",
})
_REGULATED_HYBRID_BONUS = 0.05

CONFIDENT_PRIOR = 0.7


@dataclass(frozen=True)
class StrategyCandidate:
    """One ranked approach with its prior success probability."""

    approach: CompositionApproach
    success_probability: float
    rationale: str = ""


@dataclass(frozen=True)
class TemplateAlternative:
    """A scored substitute template."""

    template_id: str
    category: str
    confidence: float
    complexity: float
    reasoning: str = ""

    @property
    def score(self) -> float:
        return self.confidence - self.complexity


# ---------------------------------------------------------------------------
# Template knowledge
# ---------------------------------------------------------------------------

TEMPLATE_CATEGORIES: dict[str, tuple[str, ...]] = {
    "pharmaceutical": ("fda-compliance-audit", "supply-chain-tracking", "regulatory-reporting"),
    "financial": ("payment-automation", "audit-trail", "compliance-reporting"),
    "insurance": ("oracle-claims-automation", "parametric-insurance", "risk-assessment"),
    "supply-chain": ("traceability", "compliance-tracking", "vendor-verification"),
    "audit": ("audit-trail-integration", "compliance-logging", "regulatory-reporting"),
    "token": ("token-creation", "token-management", "token-distribution"),
    "identity": ("credential-verification", "identity-management", "access-control"),
}

_COMPLEXITY_KEYWORDS: tuple[tuple[str, float], ...] = (
    ("basic", 20.0),
    ("simple", 30.0),
    ("standard", 50.0),
    ("advanced", 70.0),
    ("complex", 80.0),
    ("enterprise", 90.0),
)

_TEMPLATE_INVENTORY = """\
# Available Enterprise Templates

## Supply Chain Compliance
- pharmaceutical-fda: FDA 21 CFR Part 11 compliance
- food-safety-haccp: HACCP compliance tracking
- manufacturing-iso: ISO quality management

## Financial Automation
- insurance-automation: Oracle-based claim processing
- royalty-distribution: Multi-party revenue splits
- cross-border-payments: Stablecoin integration

## B2B SaaS Integration
- document-verification: Tamper-proof records
- credential-issuance: Professional certifications
- audit-trail-integration: Compliance logging

## Enterprise Identity
- employee-credentials: HR system integration
- contractor-verification: Supply chain identity
- customer-kyc: Financial services KYC

## Asset Tokenization
- token-creation: Fungible token issuance
- real-estate-fractionalization: Investment products
- ip-licensing: Automated royalties
- carbon-credit-trading: Environmental markets
"""

_INDUSTRY_PATTERNS: dict[str, str] = {
    "pharmaceutical": """\
# Pharmaceutical Industry Patterns
- Regulatory compliance: FDA 21 CFR Part 11, GMP, GDP
- Drug serialization and track-and-trace
- Clinical trial data integrity
- Supply chain verification
- Adverse event reporting
- Batch record management
""",
    "financial-services": """\
# Financial Services Patterns
- Regulatory compliance: SOX, PCI DSS, Basel III
- KYC/AML automation
- Transaction monitoring and reporting
- Cross-border payment processing
- Digital identity verification
- Smart contract-based lending
""",
    "supply-chain": """\
# Supply Chain Patterns
- End-to-end traceability
- Multi-party consensus mechanisms
- IoT sensor data integration
- Sustainability tracking
- Vendor qualification management
- Quality assurance workflows
""",
    "manufacturing": """\
# Manufacturing Patterns
- Production line monitoring
- Quality control automation
- Equipment maintenance tracking
- Compliance documentation
- Supplier relationship management
- Inventory optimization
""",
    "default": """\
# General Enterprise Patterns
- Audit trail management
- Document integrity verification
- Multi-party workflow automation
- Identity and access management
- Regulatory reporting
- Data monetization strategies
""",
}


def _normalize(text: str) -> str:
    return text.lower().replace("_", "-")


def _mentions(text: str, keyword: str) -> bool:
    return keyword in text or keyword.replace("-", " ") in text


def template_confidence(template_id: str, requirement_text: str) -> float:
    """50, +15 per template-name keyword found in the requirement, capped at 100."""
    text = _normalize(requirement_text)
    template = template_id.lower()
    matched = [word for word in template.split("-") if word and word in text]
    confidence = 50.0 + 15.0 * len(matched)
    if "fda" in template and "pharmaceutical" in text:
        confidence += 20.0
    if "payment" in template and "financial" in text:
        confidence += 20.0
    return min(100.0, confidence)


def template_complexity(template_id: str) -> float:
    """Estimated implementation complexity of a template, in [0, 100]."""
    template = template_id.lower()
    for keyword, value in _COMPLEXITY_KEYWORDS:
        if keyword in template:
            return value
    complexity = 40.0
    if "compliance" in template:
        complexity += 20.0
    if "regulatory" in template:
        complexity += 20.0
    if "audit" in template:
        complexity += 15.0
    if "oracle" in template:
        complexity += 25.0
    return min(100.0, complexity)


class StrategyCatalog:
    """Static catalog of approaches and templates."""

    def candidates(
        self,
        complexity: ComplexityTier,
        industry: str = "",
    ) -> list[StrategyCandidate]:
        """Approaches for *complexity*, highest prior first."""
        priors = dict(_PRIORS[complexity])
        if _normalize(industry) in _REGULATED_INDUSTRIES:
            priors[_A.HYBRID] = min(1.0, priors[_A.HYBRID] + _REGULATED_HYBRID_BONUS)
        ranked = sorted(priors.items(), key=lambda item: item[1], reverse=True)
        return [
            StrategyCandidate(
                approach=approach,
                success_probability=probability,
                rationale=f"prior for {complexity.value} requirements",
            )
            for approach, probability in ranked
        ]

    @staticmethod
    def confident(candidates: list[StrategyCandidate]) -> StrategyCandidate | None:
        """The top candidate if its prior is high enough to act on alone."""
        if candidates and candidates[0].success_probability >= CONFIDENT_PRIOR:
            return candidates[0]
        return None

    def alternatives(
        self,
        requirement_text: str,
        failed_template: str | None = None,
        limit: int = 3,
    ) -> list[TemplateAlternative]:
        """Substitute templates ranked by confidence minus complexity.

        Only categories the requirement mentions contribute.  An empty list
        means the catalog has no alternative.
        """
        text = _normalize(requirement_text)
        found: dict[str, TemplateAlternative] = {}
        for category, templates in TEMPLATE_CATEGORIES.items():
            if not _mentions(text, category):
                continue
            for template_id in templates:
                if template_id == failed_template or template_id in found:
                    continue
                found[template_id] = TemplateAlternative(
                    template_id=template_id,
                    category=category,
                    confidence=template_confidence(template_id, requirement_text),
                    complexity=template_complexity(template_id),
                    reasoning=f"Alternative {category} template",
                )
        ranked = sorted(found.values(), key=lambda alt: alt.score, reverse=True)
        return ranked[:limit]

    def templates_for(self, requirement: Requirement, limit: int = 1) -> list[str]:
        """Best-matching templates for a template-combination of *requirement*."""
        text = f"{requirement.description} {requirement.industry}"
        return [alt.template_id for alt in self.alternatives(text, limit=limit)]

    @staticmethod
    def template_inventory() -> str:
        return _TEMPLATE_INVENTORY

    @staticmethod
    def industry_patterns(industry: str) -> str:
        return _INDUSTRY_PATTERNS.get(_normalize(industry), _INDUSTRY_PATTERNS["default"])
