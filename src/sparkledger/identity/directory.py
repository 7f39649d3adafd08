"""Agent directory materialized from the discovery (master) topic.

Replaces scanning the discovery log on every lookup: the log is folded once
per request into a hash map from account id to that agent's topics.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..core.exceptions import AgentNotFound
from ..ledger.base import LedgerReader
from ..ledger.events import AgentRegistration, Event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentTopics:
    """Where an agent's records live.

    Attributes:
        personal_topic_id: The agent's own activity record.
        public_topic_id: The agent's public vote (reputation) record.
        token_id: Secondary-ledger token; 0 when the agent has none.
    """

    account_id: str
    personal_topic_id: str
    public_topic_id: str
    token_id: int = 0
    bot_id: str = ""
    registered_at: str = ""

    @classmethod
    def from_registration(cls, registration: AgentRegistration) -> AgentTopics:
        return cls(
            account_id=registration.account_id,
            personal_topic_id=registration.personal_topic_id,
            public_topic_id=registration.public_topic_id,
            token_id=registration.token_id,
            bot_id=registration.bot_id,
            registered_at=registration.timestamp,
        )

    def to_dict(self) -> dict:
        return {
            "accountId": self.account_id,
            "botId": self.bot_id,
            "personalTopicId": self.personal_topic_id,
            "publicTopicId": self.public_topic_id,
            "tokenId": self.token_id,
            "registeredAt": self.registered_at,
        }


class AgentDirectory:
    """Lookup from account id to AgentTopics."""

    def __init__(self, entries: dict[str, AgentTopics] | None = None):
        self._entries: dict[str, AgentTopics] = dict(entries or {})

    @classmethod
    def from_events(cls, events: Iterable[Event]) -> AgentDirectory:
        """Build from discovery events. The first registration of an account wins."""
        entries: dict[str, AgentTopics] = {}
        for event in events:
            if isinstance(event.payload, AgentRegistration):
                entries.setdefault(event.payload.account_id, AgentTopics.from_registration(event.payload))
        return cls(entries)

    def resolve(self, account_id: str) -> AgentTopics:
        try:
            return self._entries[account_id]
        except KeyError:
            raise AgentNotFound(account_id) from None

    def get(self, account_id: str) -> AgentTopics | None:
        return self._entries.get(account_id)

    def agents(self) -> list[AgentTopics]:
        return list(self._entries.values())

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


async def load_directory(reader: LedgerReader, master_topic_id: str, page_size: int = 100) -> AgentDirectory:
    """Read the whole discovery topic and materialize the directory."""
    events = await reader.fetch_events(master_topic_id, page_size=page_size)
    directory = AgentDirectory.from_events(events)
    logger.debug(f"Directory loaded from {master_topic_id}: {len(directory)} agents")
    return directory
