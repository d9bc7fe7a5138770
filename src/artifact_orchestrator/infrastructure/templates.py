"""Template renderer interface and the built-in Jinja2 reference renderer.

The orchestrator only depends on :class:`TemplateRenderer`.  The reference
implementation keeps a small in-memory library of proven templates: one
base integration template per framework plus the catalog templates the
strategy catalog can select.  Rendering is strict: a template that
references a variable the context does not provide fails with
:class:`TemplateRenderError` rather than emitting a blank.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from jinja2 import Environment, StrictUndefined, TemplateError

from artifact_orchestrator.domain.exceptions import TemplateRenderError

logger = logging.getLogger(__name__)


@runtime_checkable
class TemplateRenderer(Protocol):
    """Renders a named template with a context mapping."""

    def render(self, template_id: str, context: Mapping[str, Any]) -> str: ...


# ---------------------------------------------------------------------------
# Base templates and minimal parameters
# ---------------------------------------------------------------------------

_BASE_TEMPLATES: dict[str, str] = {
    "next.js": "nextjs-basic-hedera",
    "nextjs": "nextjs-basic-hedera",
    "react": "react-basic-hedera",
    "vite": "vite-basic-hedera",
    "node": "nodejs-basic-hedera",
    "express": "express-basic-hedera",
}

GENERIC_BASE_TEMPLATE = "generic-basic-hedera"


def base_template_for(framework: str) -> str:
    """Return the proven base template id for *framework*."""
    return _BASE_TEMPLATES.get(framework.lower(), GENERIC_BASE_TEMPLATE)


def minimal_parameters(params: Mapping[str, Any]) -> dict[str, Any]:
    """Reduce *params* to what the base templates need."""
    minimal: dict[str, Any] = {
        "project_name": params.get("project_name") or "hedera-integration",
        "language": params.get("language") or "typescript",
        "framework": params.get("framework") or "generic",
        "hedera_network": params.get("hedera_network") or "testnet",
    }
    for key in ("token_name", "token_symbol"):
        if params.get(key):
            minimal[key] = params[key]
    return minimal


# ---------------------------------------------------------------------------
# Template library
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TemplateSpec:
    """One entry of the built-in template library."""

    template_id: str
    description: str
    source: str
    language: str = "typescript"


_BASE_SOURCE = '''\
/**
 * {{ project_name }}: Hedera client bootstrap ({{ framework }}, {{ hedera_network }}).
 */
import { AccountBalanceQuery, AccountId, Client, PrivateKey } from "@hashgraph/sdk";
import * as dotenv from "dotenv";

dotenv.config();

export interface HederaSettings {
  network: string;
  operatorId: string;
  operatorKey: string;
}

export function loadSettings(): HederaSettings {
  const operatorId = process.env.HEDERA_OPERATOR_ID;
  const operatorKey = process.env.HEDERA_OPERATOR_KEY;
  if (!operatorId || !operatorKey) {
    throw new Error("HEDERA_OPERATOR_ID and HEDERA_OPERATOR_KEY must be set");
  }
  return { network: "{{ hedera_network }}", operatorId, operatorKey };
}

export function createClient(settings: HederaSettings = loadSettings()): Client {
  return Client.forName(settings.network).setOperator(
    AccountId.fromString(settings.operatorId),
    PrivateKey.fromString(settings.operatorKey),
  );
}

export async function getAccountBalance(client: Client, accountId: string): Promise<string> {
  try {
    const balance = await new AccountBalanceQuery()
      .setAccountId(AccountId.fromString(accountId))
      .execute(client);
    return balance.hbars.toString();
  } catch (error) {
    throw new Error(`Balance query failed: ${(error as Error).message}`);
  }
}
'''

_TOKEN_CREATION_SOURCE = '''\
/**
 * {{ project_name }}: fungible token creation on Hedera {{ hedera_network }}.
 */
import {
  Client,
  PrivateKey,
  TokenCreateTransaction,
  TokenSupplyType,
  TokenType,
} from "@hashgraph/sdk";
import * as dotenv from "dotenv";

dotenv.config();

export interface TokenConfig {
  name: string;
  symbol: string;
  decimals: number;
  initialSupply: number;
}

export interface TokenCreationResult {
  tokenId: string;
  status: string;
}

export const DEFAULT_TOKEN: TokenConfig = {
  name: "{{ token_name }}",
  symbol: "{{ token_symbol }}",
  decimals: 2,
  initialSupply: 1000000,
};

export function createClient(): Client {
  const operatorId = process.env.HEDERA_OPERATOR_ID;
  const operatorKey = process.env.HEDERA_OPERATOR_KEY;
  if (!operatorId || !operatorKey) {
    throw new Error("HEDERA_OPERATOR_ID and HEDERA_OPERATOR_KEY must be set");
  }
  return Client.forName("{{ hedera_network }}").setOperator(
    operatorId,
    PrivateKey.fromString(operatorKey),
  );
}

export async function createFungibleToken(
  client: Client,
  supplyKey: PrivateKey,
  config: TokenConfig = DEFAULT_TOKEN,
): Promise<TokenCreationResult> {
  const treasury = client.operatorAccountId;
  if (treasury === null) {
    throw new Error("Client has no operator account");
  }
  try {
    const transaction = await new TokenCreateTransaction()
      .setTokenName(config.name)
      .setTokenSymbol(config.symbol)
      .setDecimals(config.decimals)
      .setInitialSupply(config.initialSupply)
      .setTokenType(TokenType.FungibleCommon)
      .setSupplyType(TokenSupplyType.Infinite)
      .setTreasuryAccountId(treasury)
      .setSupplyKey(supplyKey)
      .execute(client);
    const receipt = await transaction.getReceipt(client);
    return {
      tokenId: receipt.tokenId ? receipt.tokenId.toString() : "",
      status: receipt.status.toString(),
    };
  } catch (error) {
    throw new Error(`Token creation failed: ${(error as Error).message}`);
  }
}
'''

_SERVICE_SOURCE = '''\
/**
 * {{ project_name }}: {{ description }} ({{ template_id }}).
 */
import { Client, PrivateKey, TopicId, TopicMessageSubmitTransaction } from "@hashgraph/sdk";
import * as dotenv from "dotenv";

dotenv.config();

export interface {{ record_type }} {
  reference: string;
  payload: Record<string, unknown>;
  recordedAt: string;
}

export interface SubmissionResult {
  topicId: string;
  sequenceNumber: string;
  status: string;
}

export function createClient(): Client {
  const operatorId = process.env.HEDERA_OPERATOR_ID;
  const operatorKey = process.env.HEDERA_OPERATOR_KEY;
  if (!operatorId || !operatorKey) {
    throw new Error("HEDERA_OPERATOR_ID and HEDERA_OPERATOR_KEY must be set");
  }
  return Client.forName("{{ hedera_network }}").setOperator(
    operatorId,
    PrivateKey.fromString(operatorKey),
  );
}

export class {{ service_class }} {
  constructor(private readonly client: Client, private readonly topicId: TopicId) {}

  async submit(record: {{ record_type }}): Promise<SubmissionResult> {
    try {
      const response = await new TopicMessageSubmitTransaction()
        .setTopicId(this.topicId)
        .setMessage(JSON.stringify(record))
        .execute(this.client);
      const receipt = await response.getReceipt(this.client);
      return {
        topicId: this.topicId.toString(),
        sequenceNumber: receipt.topicSequenceNumber ? receipt.topicSequenceNumber.toString() : "",
        status: receipt.status.toString(),
      };
    } catch (error) {
      throw new Error(`{{ template_id }} submission failed: ${(error as Error).message}`);
    }
  }
}
'''

# id -> description for templates rendered from the shared service source.
_SERVICE_TEMPLATES: dict[str, str] = {
    "pharmaceutical-fda": "FDA 21 CFR Part 11 compliance",
    "food-safety-haccp": "HACCP compliance tracking",
    "manufacturing-iso": "ISO quality management",
    "insurance-automation": "oracle-based claim processing",
    "royalty-distribution": "multi-party revenue splits",
    "cross-border-payments": "stablecoin integration",
    "document-verification": "tamper-proof records",
    "credential-issuance": "professional certifications",
    "audit-trail-integration": "compliance logging",
    "employee-credentials": "HR system integration",
    "contractor-verification": "supply chain identity",
    "customer-kyc": "financial services KYC",
    "real-estate-fractionalization": "investment products",
    "ip-licensing": "automated royalties",
    "carbon-credit-trading": "environmental markets",
    "fda-compliance-audit": "FDA compliance audit",
    "supply-chain-tracking": "supply chain tracking",
    "regulatory-reporting": "regulatory reporting",
    "payment-automation": "payment automation",
    "audit-trail": "audit trail",
    "compliance-reporting": "compliance reporting",
    "oracle-claims-automation": "oracle claims automation",
    "parametric-insurance": "parametric insurance",
    "risk-assessment": "risk assessment",
    "traceability": "end-to-end traceability",
    "compliance-tracking": "compliance tracking",
    "vendor-verification": "vendor verification",
    "compliance-logging": "compliance logging",
    "token-management": "token management",
    "token-distribution": "token distribution",
    "credential-verification": "credential verification",
    "identity-management": "identity management",
    "access-control": "access control",
}


def _pascal(template_id: str) -> str:
    return "".join(part.capitalize() for part in re.split(r"[^A-Za-z0-9]+", template_id) if part)


def _build_library() -> dict[str, TemplateSpec]:
    library: dict[str, TemplateSpec] = {}
    for template_id in sorted(set(_BASE_TEMPLATES.values()) | {GENERIC_BASE_TEMPLATE}):
        library[template_id] = TemplateSpec(
            template_id, "proven base Hedera integration", _BASE_SOURCE
        )
    library["basic-hedera-integration"] = TemplateSpec(
        "basic-hedera-integration", "basic Hedera integration", _BASE_SOURCE
    )
    library["token-creation"] = TemplateSpec(
        "token-creation", "fungible token creation", _TOKEN_CREATION_SOURCE
    )
    for template_id, description in _SERVICE_TEMPLATES.items():
        library[template_id] = TemplateSpec(template_id, description, _SERVICE_SOURCE)
    return library


DEFAULT_CONTEXT: dict[str, Any] = {
    "project_name": "hedera-integration",
    "language": "typescript",
    "framework": "generic",
    "hedera_network": "testnet",
    "token_name": "Example Token",
    "token_symbol": "EXT",
}


class JinjaTemplateRenderer:
    """In-memory template renderer backed by Jinja2.

    Parameters
    ----------
    templates:
        Optional extra templates (id -> source) layered over the built-in
        library.  Useful for tests and for project-specific overrides.
    """

    def __init__(self, templates: Mapping[str, str] | None = None) -> None:
        self._environment = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        self._library = _build_library()
        for template_id, source in (templates or {}).items():
            self._library[template_id] = TemplateSpec(template_id, template_id, source)

    def __contains__(self, template_id: str) -> bool:
        return template_id in self._library

    @property
    def template_ids(self) -> list[str]:
        return sorted(self._library)

    def describe(self, template_id: str) -> str:
        spec = self._library.get(template_id)
        return spec.description if spec is not None else ""

    def render(self, template_id: str, context: Mapping[str, Any]) -> str:
        """Render *template_id* with *context* layered over the defaults.

        Raises
        ------
        TemplateRenderError
            The template is unknown or references a missing variable.
        """
        spec = self._library.get(template_id)
        if spec is None:
            raise TemplateRenderError(
                f"Unknown template {template_id!r}", template_id=template_id
            )
        variables: dict[str, Any] = {
            **DEFAULT_CONTEXT,
            "template_id": template_id,
            "description": spec.description,
            "service_class": f"{_pascal(template_id)}Service",
            "record_type": f"{_pascal(template_id)}Record",
        }
        variables.update({k: v for k, v in context.items() if v is not None})
        try:
            rendered = self._environment.from_string(spec.source).render(**variables)
        except TemplateError as exc:
            raise TemplateRenderError(
                f"Template {template_id!r} failed to render: {exc}",
                template_id=template_id,
            ) from exc
        logger.debug("JinjaTemplateRenderer: rendered %r (%d chars)", template_id, len(rendered))
        return rendered
