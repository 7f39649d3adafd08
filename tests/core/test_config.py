"""Tests for sparkledger.core.config - settings, engine config, and topology.

Tests cover:
- Settings loading with defaults
- Environment variable overrides
- Singleton behavior (get_config / clear_config_cache)
- Topology parsing and loading
"""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from sparkledger.core.config import (
    KNOWLEDGE_CATEGORIES,
    CoreSettings,
    EngineConfig,
    LedgerTopology,
    clear_config_cache,
    get_config,
    load_topology,
)
from sparkledger.core.exceptions import ConfigException


class TestCoreSettings:
    """Test CoreSettings defaults and overrides."""

    def test_defaults(self, clean_env):
        settings = CoreSettings()

        assert settings.mirror_url == "https://testnet.mirrornode.hedera.com"
        assert settings.registry_url is None
        assert settings.consensus_threshold == 2
        assert settings.page_limit == 100
        assert settings.log_level == "INFO"

    def test_env_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("SPARK_MIRROR_URL", "https://mainnet.mirror.example")
        monkeypatch.setenv("SPARK_CONSENSUS_THRESHOLD", "3")
        monkeypatch.setenv("SPARK_REGISTRY_URL", "http://registry:9000")

        settings = CoreSettings()

        assert settings.mirror_url == "https://mainnet.mirror.example"
        assert settings.consensus_threshold == 3
        assert settings.registry_url == "http://registry:9000"

    def test_threshold_must_be_positive(self, clean_env, monkeypatch):
        monkeypatch.setenv("SPARK_CONSENSUS_THRESHOLD", "0")
        with pytest.raises(ValidationError):
            CoreSettings()

    def test_engine_config(self, clean_env, monkeypatch):
        """Engine configuration is an explicit snapshot of settings."""
        monkeypatch.setenv("SPARK_VISIBILITY_POLL_ATTEMPTS", "5")
        config = CoreSettings().engine_config()

        assert isinstance(config, EngineConfig)
        assert config.threshold == 2
        assert config.visibility_poll_attempts == 5


class TestGetConfig:
    def test_singleton(self, clean_env):
        assert get_config() is get_config()

    def test_clear_cache(self, clean_env):
        first = get_config()
        clear_config_cache()
        assert get_config() is not first


class TestLedgerTopology:
    """Tests for LedgerTopology parsing."""

    def _data(self) -> dict:
        return {
            "masterTopicId": "0.0.1000",
            "subTopics": {c: f"0.0.{1001 + i}" for i, c in enumerate(KNOWLEDGE_CATEGORIES)},
        }

    def test_from_dict(self):
        topology = LedgerTopology.from_dict(self._data())
        assert topology.master_topic_id == "0.0.1000"
        assert topology.category_for_topic("0.0.1001") == "scam"
        assert topology.category_for_topic("0.0.9") is None
        assert topology.to_dict() == self._data()

    def test_missing_master(self):
        data = self._data()
        del data["masterTopicId"]
        with pytest.raises(ConfigException) as exc_info:
            LedgerTopology.from_dict(data)
        assert exc_info.value.missing_vars == ["masterTopicId"]

    def test_missing_category(self):
        data = self._data()
        del data["subTopics"]["legal"]
        with pytest.raises(ConfigException) as exc_info:
            LedgerTopology.from_dict(data)
        assert exc_info.value.missing_vars == ["legal"]

    def test_load_topology(self, tmp_path):
        path = tmp_path / "spark-config.json"
        path.write_text(json.dumps(self._data()))
        assert load_topology(path).sub_topics["skills"] == "0.0.1005"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigException):
            load_topology(tmp_path / "absent.json")

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "spark-config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigException):
            load_topology(path)
