"""Tests for configuration dataclasses and the JSON loader."""

from __future__ import annotations

import json

import pytest

from artifact_orchestrator.infrastructure.config import (
    GatewayConfig,
    OrchestratorConfig,
    PatternMemoryConfig,
    RecoveryConfig,
    load_config_from_json,
)


class TestGatewayConfig:

    def test_defaults(self) -> None:
        cfg = GatewayConfig()
        assert cfg.temperature == 0.2
        assert cfg.max_tokens == 4000
        assert cfg.timeout == 60.0
        cfg.validate()

    def test_invalid_provider(self) -> None:
        with pytest.raises(ValueError, match="provider"):
            GatewayConfig(provider="cohere").validate()

    def test_invalid_timeout(self) -> None:
        with pytest.raises(ValueError, match="timeout"):
            GatewayConfig(timeout=0).validate()

    def test_from_env(self) -> None:
        cfg = GatewayConfig.from_env(
            {
                "ORCHESTRATOR_PROVIDER": "openai",
                "ORCHESTRATOR_MODEL": "gpt-4o-mini",
                "ORCHESTRATOR_TIMEOUT": "12.5",
            }
        )
        assert cfg.provider == "openai"
        assert cfg.model == "gpt-4o-mini"
        assert cfg.timeout == 12.5

    def test_from_env_empty(self) -> None:
        assert GatewayConfig.from_env({}) == GatewayConfig()


class TestRecoveryConfig:

    def test_delay_doubles(self) -> None:
        cfg = RecoveryConfig(base_delay=1.0, max_delay=30.0)
        assert [cfg.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_delay_capped(self) -> None:
        cfg = RecoveryConfig(base_delay=1.0, max_delay=5.0)
        assert cfg.delay_for(10) == 5.0

    def test_max_delay_below_base(self) -> None:
        with pytest.raises(ValueError, match="max_delay"):
            RecoveryConfig(base_delay=2.0, max_delay=1.0).validate()

    def test_negative_retries(self) -> None:
        with pytest.raises(ValueError, match="max_retries"):
            RecoveryConfig(max_retries=-1).validate()


class TestOrchestratorConfig:

    def test_defaults(self) -> None:
        cfg = OrchestratorConfig()
        assert cfg.quality_threshold == 80.0
        assert cfg.max_refinement_iterations == 1
        assert cfg.recovery_budget == 1
        assert cfg.pattern_memory.max_entries == 1000
        cfg.validate()

    def test_threshold_out_of_range(self) -> None:
        with pytest.raises(ValueError, match="quality_threshold"):
            OrchestratorConfig(quality_threshold=150).validate()

    def test_nested_validation(self) -> None:
        cfg = OrchestratorConfig(recovery=RecoveryConfig(base_delay=5, max_delay=1))
        with pytest.raises(ValueError, match="max_delay"):
            cfg.validate()

    def test_round_trip(self) -> None:
        cfg = OrchestratorConfig(
            quality_threshold=70.0,
            sdk_markers=("@hashgraph/sdk", "hedera"),
            recovery=RecoveryConfig(max_retries=5),
            pattern_memory=PatternMemoryConfig(max_entries=10),
        )
        assert OrchestratorConfig.from_dict(cfg.to_dict()) == cfg

    def test_from_dict_ignores_unknown_keys(self) -> None:
        cfg = OrchestratorConfig.from_dict({"quality_threshold": 60, "colour": "blue"})
        assert cfg.quality_threshold == 60


class TestLoadConfigFromJson:

    def test_sections(self) -> None:
        raw = json.dumps(
            {
                "orchestrator": {"recovery_budget": 2},
                "gateway": {"provider": "anthropic", "timeout": 30},
                "recovery": {"max_retries": 1},
                "custom": {"anything": True},
            }
        )
        loaded = load_config_from_json(raw)
        assert isinstance(loaded["orchestrator"], OrchestratorConfig)
        assert loaded["orchestrator"].recovery_budget == 2
        assert loaded["gateway"].provider == "anthropic"
        assert loaded["recovery"].max_retries == 1
        assert loaded["custom"] == {"anything": True}

    def test_top_level_must_be_object(self) -> None:
        with pytest.raises(ValueError, match="object"):
            load_config_from_json("[1, 2]")
