"""Configuration dataclasses for the artifact orchestrator.

Each config is a plain ``dataclass`` with a ``validate()`` method that raises
``ValueError`` on invalid combinations.  No third-party dependencies -- just
stdlib ``dataclasses``.

Configs are **frozen** so they can be shared between concurrently running
pipelines without risking silent mutation.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Any

# ===================================================================== #
#  Completion gateway                                                    #
# ===================================================================== #

_VALID_PROVIDERS = frozenset({"anthropic", "openai", "mock", ""})


@dataclass(frozen=True)
class GatewayConfig:
    """Parameters for the completion gateway.

    Attributes
    ----------
    provider:
        LLM backend identifier (``"anthropic"``, ``"openai"``).  Empty means
        the caller injects a chat model directly.
    model:
        Model name / identifier passed to the provider.
    temperature:
        Sampling temperature for every completion call.
    max_tokens:
        Maximum tokens per completion.
    timeout:
        Seconds before a completion call is abandoned with
        ``CompletionTimeoutError``.
    """

    provider: str = ""
    model: str = ""
    temperature: float = 0.2
    max_tokens: int = 4000
    timeout: float = 60.0

    def validate(self) -> None:
        if self.provider not in _VALID_PROVIDERS:
            raise ValueError(
                f"provider must be one of {sorted(_VALID_PROVIDERS)}, "
                f"got '{self.provider}'"
            )
        if not (0.0 <= self.temperature <= 2.0):
            raise ValueError(
                f"temperature must be in [0, 2], got {self.temperature}"
            )
        if self.max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {self.max_tokens}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GatewayConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> GatewayConfig:
        """Build a config from ``ORCHESTRATOR_*`` environment variables."""
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        if "ORCHESTRATOR_PROVIDER" in env:
            data["provider"] = env["ORCHESTRATOR_PROVIDER"]
        if "ORCHESTRATOR_MODEL" in env:
            data["model"] = env["ORCHESTRATOR_MODEL"]
        if "ORCHESTRATOR_TIMEOUT" in env:
            data["timeout"] = float(env["ORCHESTRATOR_TIMEOUT"])
        return cls.from_dict(data)


# ===================================================================== #
#  Recovery                                                              #
# ===================================================================== #

@dataclass(frozen=True)
class RecoveryConfig:
    """Parameters governing the recovery executor.

    Attributes
    ----------
    max_retries:
        Re-invocations performed by the retry-with-backoff option.
    base_delay:
        Delay in seconds before the first retry; doubles on each retry.
    max_delay:
        Upper bound on a single backoff delay.
    elaborate:
        If ``True`` and a gateway is configured, the selector asks the model
        to reorder the statically known options.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    elaborate: bool = False

    def validate(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.max_delay < self.base_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= base_delay "
                f"({self.base_delay})"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecoveryConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before retry number *attempt* (1-based)."""
        return min(self.max_delay, self.base_delay * 2 ** (attempt - 1))


# ===================================================================== #
#  Pattern memory                                                        #
# ===================================================================== #

@dataclass(frozen=True)
class PatternMemoryConfig:
    """Bounds for the error-pattern memory."""

    max_entries: int = 1000

    def validate(self) -> None:
        if self.max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {self.max_entries}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatternMemoryConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Orchestrator                                                          #
# ===================================================================== #

_NESTED_SECTIONS: dict[str, type] = {
    "gateway": GatewayConfig,
    "recovery": RecoveryConfig,
    "pattern_memory": PatternMemoryConfig,
}


@dataclass(frozen=True)
class OrchestratorConfig:
    """Top-level pipeline configuration.

    Attributes
    ----------
    quality_threshold:
        Overall score at or above which refinement is skipped.
    max_refinement_iterations:
        Upper bound on refinement passes per requirement.
    min_artifact_length:
        Artifacts shorter than this are penalized by the quality assessor.
    recovery_budget:
        Recovery events allowed per requirement before a failure escalates
        directly.
    batch_workers:
        Thread-pool size used by ``run_batch``.
    sdk_markers:
        Import strings that identify the domain SDK client abstraction.
    """

    quality_threshold: float = 80.0
    max_refinement_iterations: int = 1
    min_artifact_length: int = 100
    recovery_budget: int = 1
    batch_workers: int = 4
    default_language: str = "typescript"
    default_framework: str = "generic"
    sdk_markers: tuple[str, ...] = ("@hashgraph/sdk",)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    recovery: RecoveryConfig = field(default_factory=RecoveryConfig)
    pattern_memory: PatternMemoryConfig = field(default_factory=PatternMemoryConfig)

    def __post_init__(self) -> None:
        if isinstance(self.sdk_markers, list):
            object.__setattr__(self, "sdk_markers", tuple(self.sdk_markers))

    def validate(self) -> None:
        if not (0.0 <= self.quality_threshold <= 100.0):
            raise ValueError(
                f"quality_threshold must be in [0, 100], got {self.quality_threshold}"
            )
        if self.max_refinement_iterations < 0:
            raise ValueError(
                "max_refinement_iterations must be >= 0, "
                f"got {self.max_refinement_iterations}"
            )
        if self.min_artifact_length < 0:
            raise ValueError(
                f"min_artifact_length must be >= 0, got {self.min_artifact_length}"
            )
        if self.recovery_budget < 0:
            raise ValueError(
                f"recovery_budget must be >= 0, got {self.recovery_budget}"
            )
        if self.batch_workers < 1:
            raise ValueError(f"batch_workers must be >= 1, got {self.batch_workers}")
        self.gateway.validate()
        self.recovery.validate()
        self.pattern_memory.validate()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["sdk_markers"] = list(self.sdk_markers)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OrchestratorConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        for section, section_cls in _NESTED_SECTIONS.items():
            if isinstance(filtered.get(section), dict):
                filtered[section] = section_cls.from_dict(filtered[section])
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Unified config loader                                                 #
# ===================================================================== #

_CONFIG_MAP: dict[str, type] = {
    "orchestrator": OrchestratorConfig,
    **_NESTED_SECTIONS,
}


def load_config_from_json(json_str: str) -> dict[str, Any]:
    """Parse a JSON string into a dict of typed config objects.

    The JSON is expected to be an object whose top-level keys correspond to
    config section names (``orchestrator``, ``gateway``, ``recovery``,
    ``pattern_memory``).  Unknown sections are preserved as raw dicts.

    Returns a dict mapping section name -> config instance (or raw dict).
    """
    raw = json.loads(json_str)
    if not isinstance(raw, dict):
        raise ValueError("Top-level JSON must be an object")
    result: dict[str, Any] = {}
    for section, data in raw.items():
        cls = _CONFIG_MAP.get(section)
        if cls is not None and isinstance(data, dict):
            result[section] = cls.from_dict(data)
        else:
            result[section] = data
    return result
