"""Spark core: configuration, logging, and the exception hierarchy."""

from .config import (
    DEFAULT_CONSENSUS_THRESHOLD,
    KNOWLEDGE_CATEGORIES,
    CoreSettings,
    EngineConfig,
    LedgerTopology,
    get_config,
    load_topology,
)
from .exceptions import (
    AdmissionError,
    AgentNotFound,
    AlreadyFinalized,
    ConfigException,
    DuplicateVote,
    IdentityResolutionError,
    ItemNotFound,
    LedgerUnavailable,
    LedgerWriteFailed,
    SecondaryLedgerSyncFailed,
    SelfVoteForbidden,
    SparkException,
    ValidationException,
)

__all__ = [
    "DEFAULT_CONSENSUS_THRESHOLD",
    "KNOWLEDGE_CATEGORIES",
    "CoreSettings",
    "EngineConfig",
    "LedgerTopology",
    "get_config",
    "load_topology",
    "AdmissionError",
    "AgentNotFound",
    "AlreadyFinalized",
    "ConfigException",
    "DuplicateVote",
    "IdentityResolutionError",
    "ItemNotFound",
    "LedgerUnavailable",
    "LedgerWriteFailed",
    "SecondaryLedgerSyncFailed",
    "SelfVoteForbidden",
    "SparkException",
    "ValidationException",
]
