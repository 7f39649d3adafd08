"""In-memory ledger and registry for tests and local development.

``InMemoryLedger`` stores raw message text per topic and decodes on read
with the same codec as the mirror reader, so malformed entries injected
with ``append_raw`` are skipped exactly as they would be in production.
"""

from __future__ import annotations

import hashlib
from collections import defaultdict
from dataclasses import dataclass

from ..core.exceptions import LedgerUnavailable, LedgerWriteFailed, SecondaryLedgerSyncFailed
from .base import AgentProfile
from .events import Event, Payload, decode_message, encode_payload, utc_timestamp


@dataclass(frozen=True)
class _StoredMessage:
    sequence_number: int
    consensus_timestamp: str
    text: str


class InMemoryLedger:
    """Append-only topics held in process memory.

    Attributes:
        hidden_tail: Per-topic number of most recent messages withheld from
            reads, simulating mirror-node lag behind consensus.
        fail_reads: Topics whose reads raise LedgerUnavailable.
        fail_writes: Topics whose appends raise LedgerWriteFailed.
        pages_read: Per-topic count of pages served, ``page_size`` messages each.
    """

    def __init__(self) -> None:
        self._topics: dict[str, list[_StoredMessage]] = defaultdict(list)
        self.hidden_tail: dict[str, int] = {}
        self.fail_reads: set[str] = set()
        self.fail_writes: set[str] = set()
        self.pages_read: dict[str, int] = defaultdict(int)

    async def append(self, topic_id: str, payload: Payload) -> int:
        if topic_id in self.fail_writes:
            raise LedgerWriteFailed(f"Submit to {topic_id} was not acknowledged", topic_id=topic_id)
        return self.append_raw(topic_id, encode_payload(payload))

    def append_raw(self, topic_id: str, text: str) -> int:
        messages = self._topics[topic_id]
        sequence_number = len(messages) + 1
        messages.append(_StoredMessage(sequence_number, utc_timestamp(), text))
        return sequence_number

    async def fetch_events(self, topic_id: str, limit: int | None = None, page_size: int = 100) -> list[Event]:
        if topic_id in self.fail_reads:
            raise LedgerUnavailable(f"Mirror read failed for {topic_id}", topic_id=topic_id)
        messages = self._topics.get(topic_id, [])
        hidden = self.hidden_tail.get(topic_id, 0)
        if hidden:
            messages = messages[: max(0, len(messages) - hidden)]
        if limit is not None:
            messages = messages[:limit]
        events = []
        step = max(1, page_size)
        for start in range(0, len(messages), step):
            self.pages_read[topic_id] += 1
            for message in messages[start : start + step]:
                payload = decode_message(message.text)
                if payload is None:
                    continue
                events.append(Event(topic_id, message.sequence_number, message.consensus_timestamp, payload))
        return events

    def messages(self, topic_id: str) -> list[str]:
        """Raw message text as written, including hidden and malformed entries."""
        return [m.text for m in self._topics.get(topic_id, [])]

    def count(self, topic_id: str) -> int:
        return len(self._topics.get(topic_id, []))


class InMemoryRegistry:
    """Secondary ledger keyed by agent token id."""

    def __init__(self) -> None:
        self.profiles: dict[int, AgentProfile] = {}
        self._contributions: dict[int, set[str]] = defaultdict(set)
        self.fail = False

    def _profile(self, token_id: int) -> AgentProfile:
        if token_id not in self.profiles:
            self.profiles[token_id] = AgentProfile(token_id=token_id)
        return self.profiles[token_id]

    def _check(self) -> None:
        if self.fail:
            raise SecondaryLedgerSyncFailed("Registry unreachable")

    @staticmethod
    def _tx(*parts: object) -> str:
        return "0x" + hashlib.sha256(":".join(str(p) for p in parts).encode()).hexdigest()

    async def get_profile(self, token_id: int) -> AgentProfile | None:
        self._check()
        return self.profiles.get(token_id)

    async def update_reputation(self, token_id: int, score: int) -> str:
        self._check()
        self._profile(token_id).reputation_score = score
        return self._tx("reputation", token_id, score)

    async def record_contribution(self, token_id: int, item_id: str) -> str | None:
        self._check()
        if item_id in self._contributions[token_id]:
            return None
        self._contributions[token_id].add(item_id)
        self._profile(token_id).contribution_count += 1
        return self._tx("contribution", token_id, item_id)

    async def append_content(self, token_id: int, pointer: str) -> str | None:
        self._check()
        profile = self._profile(token_id)
        if pointer in profile.content_pointers:
            return None
        profile.content_pointers.append(pointer)
        return self._tx("content", token_id, pointer)
