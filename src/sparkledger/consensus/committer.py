# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Commit an admitted vote and, on threshold, its finalization.

Append order:

1. ``item_voted`` on the category topic (failure fails the request)
2. ``i_voted_on_item`` on the voter's personal topic (retried, non-fatal)
3. ``item_approved``/``item_rejected`` on the category topic (failure fails the request)
4. reputation delta on the author's public topic (non-fatal)

Steps 3 and 4 are not atomic. A finalization without a delta whose reason
is ``<action>:<itemId>`` on the author's record is the signal the
reconciliation pass uses to re-emit the delta.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ..core.config import EngineConfig
from ..core.exceptions import LedgerWriteFailed
from ..core.logging import ledger_context
from ..identity.directory import AgentTopics
from ..ledger.base import LedgerWriter
from ..ledger.events import (
    Finalization,
    Outcome,
    ReputationDelta,
    Submission,
    Tick,
    Vote,
    VoteRecorded,
    utc_timestamp,
)
from .evaluation import Tally, evaluate
from .folding import CategoryAggregate

logger = logging.getLogger(__name__)


def delta_reason(finalization: Finalization) -> str:
    """Reason string linking a reputation delta to the finalization that caused it."""
    action = "item_approved" if finalization.outcome is Outcome.APPROVED else "item_rejected"
    return f"{action}:{finalization.item_id}"


def delta_for(finalization: Finalization, timestamp: str) -> ReputationDelta:
    tick = Tick.APPROVAL if finalization.outcome is Outcome.APPROVED else Tick.REJECTION
    return ReputationDelta(tick=tick, reason=delta_reason(finalization), timestamp=timestamp)


@dataclass
class CommitResult:
    vote: Vote
    vote_sequence_number: int
    tally: Tally
    finalization: Finalization | None = None
    finalization_sequence_number: int | None = None
    reputation_delta: ReputationDelta | None = None
    delta_sequence_number: int | None = None
    activity_recorded: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def outcome(self) -> Outcome:
        return self.tally.outcome


class FinalizationCommitter:
    def __init__(
        self,
        writer: LedgerWriter,
        config: EngineConfig,
        clock: Callable[[], str] = utc_timestamp,
        retry_delay: float = 0.2,
    ):
        self.writer = writer
        self.config = config
        self.clock = clock
        self.retry_delay = retry_delay

    async def commit(
        self,
        aggregate: CategoryAggregate,
        submission: Submission,
        vote: Vote,
        voter_topics: AgentTopics | None,
        author_topics: AgentTopics | None,
    ) -> CommitResult:
        """Append an admitted vote and any finalization it triggers.

        Raises:
            LedgerWriteFailed: If the vote or finalization append fails.
        """
        tally = evaluate(vote.item_id, aggregate.votes_by_item, vote, self.config.threshold)

        vote_seq = await self.writer.append(aggregate.topic_id, vote)
        result = CommitResult(vote=vote, vote_sequence_number=vote_seq, tally=tally)
        logger.info(
            f"Vote {vote.vote.value} committed",
            extra=ledger_context(
                item_id=vote.item_id, voter=vote.voter, topic_id=aggregate.topic_id, sequence_number=vote_seq
            ),
        )

        result.activity_recorded = await self._record_activity(aggregate, vote, voter_topics, result.warnings)

        if not tally.outcome.is_terminal:
            return result

        same_direction = [v.voter for v in aggregate.votes(vote.item_id) if v.vote is vote.vote]
        finalization = Finalization(
            item_id=vote.item_id,
            author=submission.author,
            outcome=tally.outcome,
            voters=(*same_direction, vote.voter),
            timestamp=self.clock(),
        )
        result.finalization = finalization
        result.finalization_sequence_number = await self.writer.append(aggregate.topic_id, finalization)
        logger.info(
            f"Item finalized (approvals={tally.approvals}, rejections={tally.rejections})",
            extra=ledger_context(
                item_id=vote.item_id,
                topic_id=aggregate.topic_id,
                sequence_number=result.finalization_sequence_number,
                outcome=tally.outcome.value,
            ),
        )

        if author_topics is None:
            result.warnings.append(
                f"Author {submission.author} has no public record; reputation delta left for reconciliation"
            )
            logger.warning(
                "No directory entry for author; delta not emitted",
                extra=ledger_context(item_id=vote.item_id, account_id=submission.author),
            )
            return result

        delta = delta_for(finalization, self.clock())
        try:
            result.delta_sequence_number = await self.writer.append(author_topics.public_topic_id, delta)
            result.reputation_delta = delta
        except LedgerWriteFailed as e:
            result.warnings.append(f"Reputation delta not recorded; left for reconciliation: {e.message}")
            logger.warning(
                f"Reputation delta failed after finalization: {e.message}",
                extra=ledger_context(item_id=vote.item_id, account_id=submission.author, topic_id=e.topic_id),
            )
        return result

    async def _record_activity(
        self,
        aggregate: CategoryAggregate,
        vote: Vote,
        voter_topics: AgentTopics | None,
        warnings: list[str],
    ) -> bool:
        if voter_topics is None:
            warnings.append(f"Voter {vote.voter} has no personal record; activity not recorded")
            return False

        record = VoteRecorded(
            item_id=vote.item_id,
            vote=vote.vote,
            category=aggregate.category,
            timestamp=vote.timestamp,
        )
        attempts = max(1, self.config.activity_retry_attempts)
        for attempt in range(attempts):
            try:
                await self.writer.append(voter_topics.personal_topic_id, record)
                return True
            except LedgerWriteFailed as e:
                if attempt < attempts - 1:
                    logger.debug(f"Activity append for {vote.voter} failed, retrying: {e.message}")
                    await asyncio.sleep(self.retry_delay * (attempt + 1))
                    continue
                logger.warning(
                    f"Activity append failed after {attempts} attempts: {e.message}",
                    extra=ledger_context(
                        item_id=vote.item_id, voter=vote.voter, topic_id=voter_topics.personal_topic_id
                    ),
                )
                warnings.append(f"Activity record not written: {e.message}")
        return False
