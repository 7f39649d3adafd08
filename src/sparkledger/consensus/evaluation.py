"""Consensus tallies and threshold detection."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..core.config import DEFAULT_CONSENSUS_THRESHOLD
from ..ledger.events import Outcome, Vote, VoteDirection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tally:
    approvals: int
    rejections: int
    outcome: Outcome

    def to_dict(self) -> dict:
        return {
            "approvals": self.approvals,
            "rejections": self.rejections,
            "status": self.outcome.value,
        }


def count_votes(votes: Iterable[Vote]) -> tuple[int, int]:
    """Return (approvals, rejections)."""
    approvals = 0
    rejections = 0
    for vote in votes:
        if vote.vote is VoteDirection.APPROVE:
            approvals += 1
        else:
            rejections += 1
    return approvals, rejections


def outcome_for(approvals: int, rejections: int, threshold: int, item_id: str = "") -> Outcome:
    """Map tallies to an outcome. Thresholds are one-sided counts, not majorities."""
    approved = approvals >= threshold
    rejected = rejections >= threshold
    if approved and rejected:
        # A single vote moves one tally, so this cannot happen from valid input
        logger.error(
            f"Invariant violation: {item_id or 'item'} crossed both thresholds "
            f"(approvals={approvals}, rejections={rejections}, threshold={threshold}); treating as approved"
        )
    if approved:
        return Outcome.APPROVED
    if rejected:
        return Outcome.REJECTED
    return Outcome.PENDING


def evaluate(
    item_id: str,
    votes_by_item: dict[str, list[Vote]],
    new_vote: Vote,
    threshold: int = DEFAULT_CONSENSUS_THRESHOLD,
) -> Tally:
    """Tally existing votes plus the just-admitted one."""
    approvals, rejections = count_votes([*votes_by_item.get(item_id, []), new_vote])
    return Tally(approvals, rejections, outcome_for(approvals, rejections, threshold, item_id))
