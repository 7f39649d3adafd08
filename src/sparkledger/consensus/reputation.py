# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Reputation derivation and secondary-ledger sync.

Reputation is always recomputed from the reputation-delta events on an
agent's public record; nothing is incremented in place. Deltas that carry
a reason count once per reason, so a re-emitted delta (after a crash
between finalization and delta, or a reconciliation race) never
double-counts.

Read-after-write: a delta the committer just appended may not be visible
to the mirror yet. ``recompute`` polls for its sequence number a bounded
number of times and, if it is still missing, counts the known delta
directly. Because counting is reason-keyed, the delta is counted once
whether it arrives through the read or through the fallback.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..core.config import EngineConfig
from ..core.logging import ledger_context
from ..identity.directory import AgentTopics
from ..ledger.base import LedgerReader, ReputationRegistry
from ..ledger.events import Event, ReputationDelta, Submission, Tick

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reputation:
    account_id: str
    approvals: int = 0
    rejections: int = 0

    @property
    def net_score(self) -> int:
        return max(0, self.approvals - self.rejections)

    def to_dict(self) -> dict:
        return {
            "accountId": self.account_id,
            "approvals": self.approvals,
            "rejections": self.rejections,
            "netScore": self.net_score,
        }


def reputation_deltas(events: Iterable[Event]) -> list[ReputationDelta]:
    return [e.payload for e in events if isinstance(e.payload, ReputationDelta)]


def derive_reputation(account_id: str, deltas: Iterable[ReputationDelta]) -> Reputation:
    """Count approvals and rejections, once per distinct reason."""
    approvals = 0
    rejections = 0
    seen: set[str] = set()
    for delta in deltas:
        if delta.reason:
            if delta.reason in seen:
                continue
            seen.add(delta.reason)
        if delta.tick is Tick.APPROVAL:
            approvals += delta.amt
        else:
            rejections += delta.amt
    return Reputation(account_id, approvals, rejections)


@dataclass
class SyncResult:
    reputation: Reputation
    synced: bool = False
    skipped_reason: str | None = None
    reputation_tx: str | None = None
    contribution_txs: dict[str, str | None] | None = None
    content_txs: dict[str, str | None] | None = None

    def to_dict(self) -> dict:
        data: dict = {"reputation": self.reputation.to_dict(), "synced": self.synced}
        if self.skipped_reason:
            data["skippedReason"] = self.skipped_reason
        if self.reputation_tx:
            data["reputationTx"] = self.reputation_tx
        if self.contribution_txs:
            data["contributionTxs"] = self.contribution_txs
        if self.content_txs:
            data["contentTxs"] = self.content_txs
        return data


class ReputationSyncer:
    def __init__(
        self,
        reader: LedgerReader,
        registry: ReputationRegistry | None,
        config: EngineConfig,
    ):
        self.reader = reader
        self.registry = registry
        self.config = config

    async def recompute(
        self,
        topics: AgentTopics,
        expected: Sequence[tuple[int, ReputationDelta]] = (),
    ) -> Reputation:
        """Derive reputation from the agent's public record.

        Args:
            topics: The agent whose record is read.
            expected: (sequence number, delta) pairs just appended to the record.

        Raises:
            LedgerUnavailable: If the public record cannot be read.
        """
        attempts = self.config.visibility_poll_attempts
        events: list[Event] = []
        missing = list(expected)
        for attempt in range(attempts + 1):
            events = await self.reader.fetch_events(topics.public_topic_id, page_size=self.config.page_limit)
            seen = {e.sequence_number for e in events}
            missing = [pair for pair in expected if pair[0] not in seen]
            if not missing:
                break
            if attempt < attempts:
                await asyncio.sleep(self.config.visibility_poll_interval)

        deltas = reputation_deltas(events)
        for seq, delta in missing:
            logger.info(
                "Delta not yet visible; counting it from the commit",
                extra=ledger_context(account_id=topics.account_id, topic_id=topics.public_topic_id, sequence_number=seq),
            )
            deltas.append(delta)
        return derive_reputation(topics.account_id, deltas)

    async def sync(
        self,
        topics: AgentTopics,
        approved_items: Sequence[Submission] = (),
        expected: Sequence[tuple[int, ReputationDelta]] = (),
    ) -> SyncResult:
        """Recompute reputation and mirror it to the secondary ledger.

        For each approved item, a contribution and its content pointer are
        recorded as well. Every registry write is idempotent.

        Raises:
            LedgerUnavailable: If the public record cannot be read.
            SecondaryLedgerSyncFailed: If a registry write fails.
        """
        reputation = await self.recompute(topics, expected)

        if self.registry is None:
            return SyncResult(reputation, skipped_reason="secondary registry not configured")
        if not topics.token_id:
            return SyncResult(reputation, skipped_reason="agent has no registry token")

        result = SyncResult(reputation)
        if approved_items:
            result.contribution_txs = {}
            result.content_txs = {}
            for item in approved_items:
                result.contribution_txs[item.item_id] = await self.registry.record_contribution(
                    topics.token_id, item.item_id
                )
                if item.content_pointer:
                    result.content_txs[item.item_id] = await self.registry.append_content(
                        topics.token_id, item.content_pointer
                    )

        result.reputation_tx = await self.registry.update_reputation(topics.token_id, reputation.net_score)
        result.synced = True
        logger.info(
            f"Reputation synced: net={reputation.net_score} "
            f"(approvals={reputation.approvals}, rejections={reputation.rejections})",
            extra=ledger_context(account_id=topics.account_id, topic_id=topics.public_topic_id),
        )
        return result
