# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Knowledge consensus engine.

Every operation re-reads and re-folds the topics it needs; nothing is cached
between calls, so a restart is just another replay. Category topics and the
discovery topic are read concurrently and joined by key.

Usage::

    engine = KnowledgeEngine(reader, writer, topology, identity, registry, EngineConfig())
    result = await engine.cast_vote("item-1", credential, "approve")
    listing = await engine.list_items()
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..core.config import EngineConfig, LedgerTopology
from ..core.exceptions import (
    DuplicateVote,
    ItemNotFound,
    LedgerUnavailable,
    LedgerWriteFailed,
    SecondaryLedgerSyncFailed,
    SelfVoteForbidden,
    ValidationException,
)
from ..core.logging import ledger_context
from ..identity.credentials import IdentityResolver
from ..identity.directory import AgentDirectory, AgentTopics, load_directory
from ..ledger.base import LedgerReader, LedgerWriter, ReputationRegistry
from ..ledger.events import (
    Event,
    Outcome,
    ReputationDelta,
    Submission,
    Tick,
    Vote,
    VoteDirection,
    utc_timestamp,
)
from .admission import check_admission
from .committer import CommitResult, FinalizationCommitter, delta_for, delta_reason
from .evaluation import count_votes
from .folding import CategoryAggregate, fold
from .reputation import Reputation, ReputationSyncer, SyncResult, reputation_deltas

logger = logging.getLogger(__name__)

ENDORSEMENT_REASON_PREFIX = "endorsement:"


def parse_direction(vote: str | VoteDirection) -> VoteDirection:
    try:
        return VoteDirection(vote)
    except ValueError:
        raise ValidationException("vote must be 'approve' or 'reject'", field="vote", value=vote) from None


@dataclass
class VoteResult:
    """Outcome of a cast-vote request."""

    item_id: str
    voter: str
    author: str
    category: str
    topic_id: str
    commit: CommitResult
    sync: SyncResult | None = None
    sync_failed: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def status(self) -> Outcome:
        return self.commit.outcome

    @property
    def reputation_effect(self) -> str | None:
        if self.commit.reputation_delta is None:
            return None
        return f"{self.commit.reputation_delta.tick.value} on author's vote record"

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "itemId": self.item_id,
            "vote": self.commit.vote.vote.value,
            "voter": self.voter,
            "author": self.author,
            "category": self.category,
            "categoryTopicId": self.topic_id,
            "voteSequenceNumber": self.commit.vote_sequence_number,
            "approvals": self.commit.tally.approvals,
            "rejections": self.commit.tally.rejections,
            "status": self.status.value,
            "reputationEffect": self.reputation_effect,
            "activityRecorded": self.commit.activity_recorded,
            "secondarySync": self.sync.to_dict() if self.sync else None,
            "warnings": [*self.commit.warnings, *self.warnings],
        }


@dataclass
class ReconcileReport:
    finalized_items: int = 0
    reemitted: list[str] = field(default_factory=list)
    synced: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "finalizedItems": self.finalized_items,
            "reemitted": self.reemitted,
            "synced": self.synced,
            "warnings": self.warnings,
        }


def item_view(aggregate: CategoryAggregate, submission: Submission) -> dict[str, Any]:
    """Listing shape of one knowledge item."""
    votes = aggregate.votes(submission.item_id)
    approvals, rejections = count_votes(votes)
    return {
        "itemId": submission.item_id,
        "author": submission.author,
        "category": submission.category or aggregate.category,
        "content": submission.content,
        "contentPointer": submission.content_pointer,
        "timestamp": submission.timestamp,
        "approvals": approvals,
        "rejections": rejections,
        "voters": [v.voter for v in votes],
        "status": aggregate.outcome(submission.item_id).value,
    }


class KnowledgeEngine:
    """Vote admission, finalization, and reputation propagation over ledger replays."""

    def __init__(
        self,
        reader: LedgerReader,
        writer: LedgerWriter,
        topology: LedgerTopology,
        identity: IdentityResolver,
        registry: ReputationRegistry | None = None,
        config: EngineConfig | None = None,
        clock: Callable[[], str] = utc_timestamp,
        retry_delay: float = 0.2,
    ):
        self.reader = reader
        self.writer = writer
        self.topology = topology
        self.identity = identity
        self.registry = registry
        self.config = config or EngineConfig()
        self.clock = clock
        self.committer = FinalizationCommitter(writer, self.config, clock=clock, retry_delay=retry_delay)
        self.syncer = ReputationSyncer(reader, registry, self.config)

    # -- Replay -------------------------------------------------------------

    async def fold_categories(self) -> dict[str, CategoryAggregate]:
        """Read every category topic concurrently and fold each one."""
        categories = list(self.topology.sub_topics.items())
        results = await asyncio.gather(
            *(self.reader.fetch_events(topic_id, page_size=self.config.page_limit) for _, topic_id in categories)
        )
        return {
            category: fold(events, category=category, topic_id=topic_id)
            for (category, topic_id), events in zip(categories, results, strict=True)
        }

    async def load_directory(self) -> AgentDirectory:
        return await load_directory(self.reader, self.topology.master_topic_id, self.config.page_limit)

    async def _replay(self) -> tuple[dict[str, CategoryAggregate], AgentDirectory]:
        aggregates, directory = await asyncio.gather(self.fold_categories(), self.load_directory())
        return aggregates, directory

    @staticmethod
    def locate(aggregates: dict[str, CategoryAggregate], item_id: str) -> CategoryAggregate:
        for aggregate in aggregates.values():
            if item_id in aggregate:
                return aggregate
        raise ItemNotFound(item_id)

    # -- Voting -------------------------------------------------------------

    async def cast_vote(self, item_id: str, credential: str, vote: str | VoteDirection) -> VoteResult:
        """Admit, commit, and (on finalization) propagate one vote.

        Raises:
            ValidationException: If ``vote`` is not approve/reject.
            IdentityResolutionError: If the credential maps to no account.
            AdmissionError: If any admission rule rejects the vote.
            LedgerUnavailable: If a required read fails.
            LedgerWriteFailed: If the vote or finalization append fails.
        """
        direction = parse_direction(vote)
        voter = await self.identity.resolve(credential)
        aggregates, directory = await self._replay()

        aggregate = self.locate(aggregates, item_id)
        candidate = Vote(item_id=item_id, voter=voter, vote=direction, timestamp=self.clock())
        submission = check_admission(aggregate, candidate)

        author_topics = directory.get(submission.author)
        commit = await self.committer.commit(
            aggregate, submission, candidate, directory.get(voter), author_topics
        )
        result = VoteResult(
            item_id=item_id,
            voter=voter,
            author=submission.author,
            category=aggregate.category,
            topic_id=aggregate.topic_id,
            commit=commit,
        )

        if commit.outcome.is_terminal and author_topics is not None:
            expected = []
            if commit.reputation_delta is not None and commit.delta_sequence_number is not None:
                expected.append((commit.delta_sequence_number, commit.reputation_delta))
            approved = [submission] if commit.outcome is Outcome.APPROVED else []
            result.sync, result.sync_failed = await self._sync_quietly(
                author_topics, approved, expected, result.warnings
            )

        return result

    async def _sync_quietly(
        self,
        topics: AgentTopics,
        approved: list[Submission],
        expected: list[tuple[int, ReputationDelta]],
        warnings: list[str],
    ) -> tuple[SyncResult | None, bool]:
        """Run a sync whose failure must not fail the already-durable primary outcome.

        Returns the sync result, or None on failure, and whether the
        secondary registry itself rejected a write.
        """
        try:
            return await self.syncer.sync(topics, approved, expected), False
        except SecondaryLedgerSyncFailed as e:
            logger.warning(f"Secondary sync failed: {e.message}", extra=ledger_context(account_id=topics.account_id))
            warnings.append(f"Secondary ledger sync failed: {e.message}")
            return None, True
        except LedgerUnavailable as e:
            logger.warning(
                f"Reputation recompute failed: {e.message}",
                extra=ledger_context(account_id=topics.account_id, topic_id=e.topic_id),
            )
            warnings.append(f"Reputation recompute failed: {e.message}")
            return None, False

    # -- Listing ------------------------------------------------------------

    async def list_items(self) -> dict[str, Any]:
        """All submitted items grouped by status."""
        aggregates = await self.fold_categories()
        grouped: dict[str, list[dict[str, Any]]] = {o.value: [] for o in Outcome}
        for aggregate in aggregates.values():
            for submission in aggregate.submissions.values():
                view = item_view(aggregate, submission)
                grouped[view["status"]].append(view)
        return {
            "success": True,
            **grouped,
            "counts": {status: len(items) for status, items in grouped.items()},
        }

    async def topic_events(self, topic_id: str, limit: int | None = None) -> list[Event]:
        """Raw decoded reads for activity observers."""
        limit = limit or self.config.page_limit
        return await self.reader.fetch_events(topic_id, limit, page_size=self.config.page_limit)

    # -- Reputation ---------------------------------------------------------

    async def reputation(self, account_id: str) -> Reputation:
        directory = await self.load_directory()
        return await self.syncer.recompute(directory.resolve(account_id))

    async def sync_reputation(self, account_id: str) -> SyncResult:
        """Recompute and push one agent's reputation.

        Raises:
            AgentNotFound: If the account is not registered.
            SecondaryLedgerSyncFailed: If the registry write fails.
        """
        directory = await self.load_directory()
        return await self.syncer.sync(directory.resolve(account_id))

    async def list_agents(self) -> list[dict[str, Any]]:
        """Directory entries with derived reputation and registry profile."""
        directory = await self.load_directory()
        agents = directory.agents()
        reputations = await asyncio.gather(*(self.syncer.recompute(agent) for agent in agents))
        listing = []
        for agent, reputation in zip(agents, reputations, strict=True):
            profile = None
            if self.registry is not None and agent.token_id:
                try:
                    found = await self.registry.get_profile(agent.token_id)
                    profile = found.to_dict() if found else None
                except SecondaryLedgerSyncFailed as e:
                    logger.debug(f"Registry profile for {agent.account_id} unavailable: {e.message}")
            listing.append(
                {
                    **agent.to_dict(),
                    "approvals": reputation.approvals,
                    "rejections": reputation.rejections,
                    "netReputation": reputation.net_score,
                    "agentProfile": profile,
                }
            )
        return listing

    async def endorse_agent(self, target: str, credential: str, vote: str | VoteDirection) -> dict[str, Any]:
        """Directly credit or debit another agent's public record.

        Each voter endorses a given agent at most once.

        Raises:
            SelfVoteForbidden: If the voter targets itself.
            AgentNotFound: If the target is not registered.
            DuplicateVote: If the voter already endorsed the target.
            LedgerWriteFailed: If the append fails.
        """
        direction = parse_direction(vote)
        voter = await self.identity.resolve(credential)
        if voter == target:
            raise SelfVoteForbidden(target, voter, message="Cannot vote for yourself")

        directory = await self.load_directory()
        topics = directory.resolve(target)
        reason = f"{ENDORSEMENT_REASON_PREFIX}{voter}"
        existing = await self.reader.fetch_events(topics.public_topic_id, page_size=self.config.page_limit)
        if any(d.reason == reason for d in reputation_deltas(existing)):
            raise DuplicateVote(target, voter, message="You have already voted on this agent")

        tick = Tick.APPROVAL if direction is VoteDirection.APPROVE else Tick.REJECTION
        delta = ReputationDelta(tick=tick, reason=reason, voter=voter, timestamp=self.clock())
        seq = await self.writer.append(topics.public_topic_id, delta)
        logger.info(
            f"Endorsement {tick.value} recorded",
            extra=ledger_context(
                account_id=target, voter=voter, topic_id=topics.public_topic_id, sequence_number=seq
            ),
        )

        warnings: list[str] = []
        sync, _ = await self._sync_quietly(topics, [], [(seq, delta)], warnings)
        return {
            "success": True,
            "target": target,
            "voter": voter,
            "vote": direction.value,
            "publicTopicId": topics.public_topic_id,
            "sequenceNumber": seq,
            "secondarySync": sync.to_dict() if sync else None,
            "warnings": warnings,
        }

    # -- Reconciliation -----------------------------------------------------

    async def reconcile(self) -> ReconcileReport:
        """Re-emit missing reputation deltas and re-sync every finalized author.

        Safe to run repeatedly: deltas are only emitted when their reason is
        absent, and all registry writes are idempotent.
        """
        aggregates, directory = await self._replay()
        report = ReconcileReport()

        finalized_by_author: dict[str, list[tuple[CategoryAggregate, Submission]]] = defaultdict(list)
        for aggregate in aggregates.values():
            for item_id in aggregate.finalized_by_item:
                submission = aggregate.submissions[item_id]
                finalized_by_author[submission.author].append((aggregate, submission))
                report.finalized_items += 1

        for author, items in finalized_by_author.items():
            topics = directory.get(author)
            if topics is None:
                report.warnings.append(f"Author {author} not in directory; {len(items)} items unreconciled")
                continue

            try:
                events = await self.reader.fetch_events(topics.public_topic_id, page_size=self.config.page_limit)
            except LedgerUnavailable as e:
                report.warnings.append(f"Could not read record of {author}: {e.message}")
                continue
            reasons = {d.reason for d in reputation_deltas(events)}

            reemitted: list[tuple[int, ReputationDelta]] = []
            for aggregate, submission in items:
                finalization = aggregate.finalized_by_item[submission.item_id]
                if delta_reason(finalization) in reasons:
                    continue
                try:
                    delta = delta_for(finalization, self.clock())
                    seq = await self.writer.append(topics.public_topic_id, delta)
                    reemitted.append((seq, delta))
                    report.reemitted.append(submission.item_id)
                    logger.info(
                        "Re-emitted missing reputation delta",
                        extra=ledger_context(
                            item_id=submission.item_id,
                            account_id=author,
                            topic_id=topics.public_topic_id,
                            sequence_number=seq,
                        ),
                    )
                except LedgerWriteFailed as e:
                    report.warnings.append(f"Re-emit for {submission.item_id} failed: {e.message}")

            approved = [s for agg, s in items if agg.outcome(s.item_id) is Outcome.APPROVED]
            sync, _ = await self._sync_quietly(topics, approved, reemitted, report.warnings)
            if sync is not None and sync.synced:
                report.synced.append(author)

        return report
