"""Tests for the agent directory."""

import pytest

from sparkledger.core.exceptions import AgentNotFound
from sparkledger.identity.directory import AgentDirectory, load_directory
from sparkledger.ledger.events import AgentRegistration, Event, Vote, VoteDirection, encode_payload


def _registration_event(seq: int, account: str, public_topic: str) -> Event:
    registration = AgentRegistration(account, f"personal-{seq}", public_topic, token_id=seq)
    return Event("0.0.1000", seq, "", registration)


class TestAgentDirectory:
    """Tests for AgentDirectory."""

    def test_first_registration_wins(self):
        """A later re-registration does not move an agent's topics."""
        directory = AgentDirectory.from_events(
            [
                _registration_event(1, "0.0.2001", "0.0.4001"),
                _registration_event(2, "0.0.2001", "0.0.9999"),
            ]
        )
        assert directory.resolve("0.0.2001").public_topic_id == "0.0.4001"
        assert len(directory) == 1

    def test_ignores_other_events(self):
        directory = AgentDirectory.from_events(
            [Event("0.0.1000", 1, "", Vote("i", "v", VoteDirection.APPROVE))]
        )
        assert len(directory) == 0

    def test_resolve_unknown_raises(self):
        with pytest.raises(AgentNotFound) as exc_info:
            AgentDirectory().resolve("0.0.404")
        assert exc_info.value.account_id == "0.0.404"

    def test_get_and_contains(self):
        directory = AgentDirectory.from_events([_registration_event(1, "0.0.2001", "0.0.4001")])
        assert "0.0.2001" in directory
        assert directory.get("0.0.2002") is None
        assert [a.account_id for a in directory.agents()] == ["0.0.2001"]

    def test_to_dict(self):
        topics = AgentDirectory.from_events([_registration_event(3, "0.0.2001", "0.0.4001")]).resolve("0.0.2001")
        assert topics.to_dict()["tokenId"] == 3
        assert topics.to_dict()["publicTopicId"] == "0.0.4001"


@pytest.mark.asyncio
class TestLoadDirectory:
    async def test_loads_registered_agents(self, ledger, topology, agents):
        """The fixture ledger registers every agent on the master topic."""
        directory = await load_directory(ledger, topology.master_topic_id)
        assert len(directory) == len(agents)
        assert directory.resolve(agents["bob"].account_id) == agents["bob"]

    async def test_skips_malformed_registrations(self, ledger, topology):
        ledger.append_raw(topology.master_topic_id, '{"action":"agent_registered","hederaAccountId":"0.0.5"}')
        ledger.append_raw(
            topology.master_topic_id,
            encode_payload(AgentRegistration("0.0.6", "0.0.7", "0.0.8")),
        )
        directory = await load_directory(ledger, topology.master_topic_id)
        assert "0.0.5" not in directory
        assert "0.0.6" in directory
