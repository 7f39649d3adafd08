"""Global test fixtures for the Spark test suite.

Every fixture here runs against in-memory topics: a discovery (master) topic
with four registered agents and one topic per knowledge category.
"""

from __future__ import annotations

import os
from collections.abc import Callable

import pytest

from sparkledger.consensus.engine import KnowledgeEngine
from sparkledger.core.config import KNOWLEDGE_CATEGORIES, EngineConfig, LedgerTopology, clear_config_cache
from sparkledger.identity.credentials import StaticIdentityResolver
from sparkledger.identity.directory import AgentTopics
from sparkledger.ledger.events import AgentRegistration, Submission, encode_payload
from sparkledger.ledger.memory import InMemoryLedger, InMemoryRegistry

MASTER_TOPIC = "0.0.1000"

# name -> (account, personal topic, public topic, registry token)
AGENTS = {
    "alice": ("0.0.2001", "0.0.3001", "0.0.4001", 11),
    "bob": ("0.0.2002", "0.0.3002", "0.0.4002", 12),
    "carol": ("0.0.2003", "0.0.3003", "0.0.4003", 13),
    "dave": ("0.0.2004", "0.0.3004", "0.0.4004", 0),
}


@pytest.fixture
def topology() -> LedgerTopology:
    return LedgerTopology(
        master_topic_id=MASTER_TOPIC,
        sub_topics={category: f"0.0.{1001 + i}" for i, category in enumerate(KNOWLEDGE_CATEGORIES)},
    )


@pytest.fixture
def agents() -> dict[str, AgentTopics]:
    """Directory entries by short name."""
    return {
        name: AgentTopics(
            account_id=account,
            personal_topic_id=personal,
            public_topic_id=public,
            token_id=token,
            bot_id=f"{name}-bot",
            registered_at="2026-01-01T00:00:00.000Z",
        )
        for name, (account, personal, public, token) in AGENTS.items()
    }


@pytest.fixture
def credentials(agents) -> dict[str, str]:
    """Credential strings by short name."""
    return {name: f"{name}-private-key" for name in agents}


@pytest.fixture
def ledger(agents) -> InMemoryLedger:
    """Ledger with every agent registered on the master topic."""
    ledger = InMemoryLedger()
    for name, topics in agents.items():
        registration = AgentRegistration(
            account_id=topics.account_id,
            personal_topic_id=topics.personal_topic_id,
            public_topic_id=topics.public_topic_id,
            bot_id=topics.bot_id,
            token_id=topics.token_id,
            timestamp=topics.registered_at,
        )
        ledger.append_raw(MASTER_TOPIC, encode_payload(registration))
    return ledger


@pytest.fixture
def registry() -> InMemoryRegistry:
    return InMemoryRegistry()


@pytest.fixture
def identity(agents, credentials) -> StaticIdentityResolver:
    return StaticIdentityResolver({credentials[name]: topics.account_id for name, topics in agents.items()})


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(visibility_poll_attempts=2, visibility_poll_interval=0.0)


@pytest.fixture
def engine(ledger, topology, identity, registry, engine_config) -> KnowledgeEngine:
    return KnowledgeEngine(
        reader=ledger,
        writer=ledger,
        topology=topology,
        identity=identity,
        registry=registry,
        config=engine_config,
        clock=lambda: "2026-03-01T12:00:00.000Z",
        retry_delay=0.0,
    )


@pytest.fixture
def submit_item(ledger, topology, agents) -> Callable[..., Submission]:
    """Append a submission to a category topic and return it."""

    def _submit(item_id: str, author: str = "alice", category: str = "scam", pointer: str = "") -> Submission:
        submission = Submission(
            item_id=item_id,
            author=agents[author].account_id,
            category=category,
            content=f"Knowledge about {item_id}",
            content_pointer=pointer or f"root-{item_id}",
            timestamp="2026-02-01T00:00:00.000Z",
        )
        ledger.append_raw(topology.sub_topics[category], encode_payload(submission))
        return submission

    return _submit


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all SPARK_ environment variables and cached settings."""
    for key in list(os.environ.keys()):
        if key.startswith("SPARK_"):
            monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()
