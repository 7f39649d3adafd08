"""Core configuration - centralized config for the sparkledger package.

All environment-based configuration should flow through this module.
Components never call ``get_config()`` themselves; the server bootstrap
reads settings once and passes explicit objects (``EngineConfig``,
``LedgerTopology``) to every component it constructs.

Usage:
    from sparkledger.core.config import get_config
    config = get_config()

    mirror = config.mirror_url
    threshold = config.consensus_threshold
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigException

KNOWLEDGE_CATEGORIES: tuple[str, ...] = ("scam", "blockchain", "legal", "trend", "skills")

DEFAULT_CONSENSUS_THRESHOLD = 2


class CoreSettings(BaseSettings):
    """Core configuration settings for Spark.

    Settings can be configured via environment variables with the SPARK_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="SPARK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # LEDGER SETTINGS
    # ==========================================================================

    mirror_url: str = Field(
        default="https://testnet.mirrornode.hedera.com",
        description="Mirror node REST base URL used for ordered topic reads",
    )
    gateway_url: str = Field(
        default="http://127.0.0.1:8480",
        description="Primary ledger submit gateway base URL",
    )
    registry_url: str | None = Field(
        default=None,
        description="Secondary reputation registry gateway URL (unset disables secondary sync)",
    )
    topology_file: Path = Field(
        default=Path("data/spark-config.json"),
        description="JSON file holding masterTopicId and subTopics",
    )
    http_timeout: float = Field(
        default=10.0,
        description="Timeout in seconds for ledger and registry HTTP calls",
    )
    page_limit: int = Field(
        default=100,
        description="Maximum number of messages read per topic",
    )

    # ==========================================================================
    # CONSENSUS SETTINGS
    # ==========================================================================

    consensus_threshold: int = Field(
        default=DEFAULT_CONSENSUS_THRESHOLD,
        ge=1,
        description="Same-direction votes required to finalize an item",
    )
    activity_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for appending the voter's activity record",
    )
    visibility_poll_attempts: int = Field(
        default=3,
        ge=0,
        description="Reads to wait for a just-appended reputation delta to become visible",
    )
    visibility_poll_interval: float = Field(
        default=0.5,
        ge=0.0,
        description="Seconds between visibility polls",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
    )

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    def engine_config(self) -> EngineConfig:
        """Build the explicit engine configuration from settings."""
        return EngineConfig(
            threshold=self.consensus_threshold,
            page_limit=self.page_limit,
            activity_retry_attempts=self.activity_retry_attempts,
            visibility_poll_attempts=self.visibility_poll_attempts,
            visibility_poll_interval=self.visibility_poll_interval,
        )


@dataclass(frozen=True)
class EngineConfig:
    """Explicit configuration handed to the engine and its components."""

    threshold: int = DEFAULT_CONSENSUS_THRESHOLD
    page_limit: int = 100
    activity_retry_attempts: int = 3
    visibility_poll_attempts: int = 3
    visibility_poll_interval: float = 0.5


@dataclass(frozen=True)
class LedgerTopology:
    """Which topics exist: the discovery (master) topic and one topic per category."""

    master_topic_id: str
    sub_topics: dict[str, str] = field(default_factory=dict)

    def category_for_topic(self, topic_id: str) -> str | None:
        for category, candidate in self.sub_topics.items():
            if candidate == topic_id:
                return category
        return None

    def to_dict(self) -> dict:
        return {"masterTopicId": self.master_topic_id, "subTopics": dict(self.sub_topics)}

    @classmethod
    def from_dict(cls, data: dict) -> LedgerTopology:
        """Parse the persisted ``{masterTopicId, subTopics}`` shape.

        Raises:
            ConfigException: If the master topic or any category topic is missing.
        """
        master = data.get("masterTopicId")
        sub_topics = data.get("subTopics")
        if not master or not isinstance(sub_topics, dict):
            raise ConfigException(
                "Topology requires masterTopicId and subTopics. Register an agent first.",
                missing_vars=[k for k in ("masterTopicId", "subTopics") if not data.get(k)],
            )
        missing = [c for c in KNOWLEDGE_CATEGORIES if not sub_topics.get(c)]
        if missing:
            raise ConfigException(f"Topology missing category topics: {', '.join(missing)}", missing_vars=missing)
        return cls(
            master_topic_id=str(master),
            sub_topics={c: str(sub_topics[c]) for c in KNOWLEDGE_CATEGORIES},
        )


def load_topology(path: Path) -> LedgerTopology:
    """Load the topology written by the registration collaborator.

    Raises:
        ConfigException: If the file does not exist or is not valid JSON.
    """
    if not path.exists():
        raise ConfigException(f"No topology file found at {path}. Register an agent first.")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigException(f"Invalid topology file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigException(f"Invalid topology file {path}: expected a JSON object")
    return LedgerTopology.from_dict(data)


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: CoreSettings | None = None


def get_config() -> CoreSettings:
    """Get the global configuration instance.

    Returns:
        The singleton CoreSettings instance.
    """
    global _config
    if _config is None:
        _config = CoreSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
