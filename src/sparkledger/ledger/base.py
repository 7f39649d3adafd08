"""Ledger access interfaces.

Readers return decoded events in ascending sequence order and never surface
partially decoded messages. Writers append one payload and return the
sequence number the ledger assigned to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from .events import Event, Payload


@runtime_checkable
class LedgerReader(Protocol):
    async def fetch_events(self, topic_id: str, limit: int | None = None, page_size: int = 100) -> list[Event]:
        """Fetch events from a topic, oldest first.

        Reads to the end of the topic unless ``limit`` caps the result.
        ``page_size`` bounds each underlying request, never the result.

        Raises:
            LedgerUnavailable: If the underlying read fails.
        """
        ...


@runtime_checkable
class LedgerWriter(Protocol):
    async def append(self, topic_id: str, payload: Payload) -> int:
        """Append a payload and return its sequence number.

        Raises:
            LedgerWriteFailed: If the ledger did not acknowledge the append.
        """
        ...


@dataclass
class AgentProfile:
    """Secondary-ledger record for one agent token."""

    token_id: int
    reputation_score: int = 0
    contribution_count: int = 0
    content_pointers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "tokenId": self.token_id,
            "reputationScore": self.reputation_score,
            "contributionCount": self.contribution_count,
            "contentPointers": list(self.content_pointers),
        }


@runtime_checkable
class ReputationRegistry(Protocol):
    """Secondary system of record mirroring derived reputation and content.

    Every write is idempotent: repeating an update with the same arguments
    leaves the record unchanged.
    """

    async def get_profile(self, token_id: int) -> AgentProfile | None: ...

    async def update_reputation(self, token_id: int, score: int) -> str: ...

    async def record_contribution(self, token_id: int, item_id: str) -> str | None: ...

    async def append_content(self, token_id: int, pointer: str) -> str | None: ...
