# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Replay a category topic into per-item aggregates.

The fold is pure and deterministic: the same event sequence always yields an
equal ``CategoryAggregate``. It applies the same rules admission enforces, so
entries that could never have been admitted do not count even if they are
physically present in the log:

- a vote for an item with no prior submission,
- a vote by the item's author,
- a second vote by the same voter on the same item,
- any vote after the item's finalization event.

A stray duplicate finalization keeps the first one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from ..core.logging import ledger_context
from ..ledger.events import Event, Finalization, Outcome, Submission, Vote

logger = logging.getLogger(__name__)


@dataclass
class CategoryAggregate:
    """Folded state of one category topic."""

    category: str = ""
    topic_id: str = ""
    submissions: dict[str, Submission] = field(default_factory=dict)
    votes_by_item: dict[str, list[Vote]] = field(default_factory=dict)
    finalized_by_item: dict[str, Finalization] = field(default_factory=dict)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self.submissions

    def votes(self, item_id: str) -> list[Vote]:
        return self.votes_by_item.get(item_id, [])

    def voters(self, item_id: str) -> list[str]:
        return [v.voter for v in self.votes(item_id)]

    def outcome(self, item_id: str) -> Outcome:
        """Recorded outcome; only a finalization event makes an item terminal."""
        finalization = self.finalized_by_item.get(item_id)
        return finalization.outcome if finalization else Outcome.PENDING


def fold(events: Iterable[Event], category: str = "", topic_id: str = "") -> CategoryAggregate:
    """Fold ordered events of one category topic.

    Args:
        events: Events in ascending sequence order.
        category: Category the topic holds; fills submissions that omit it.
        topic_id: Topic the events were read from.
    """
    aggregate = CategoryAggregate(category=category, topic_id=topic_id)
    ignored = 0

    for event in events:
        payload = event.payload

        if isinstance(payload, Submission):
            if payload.item_id in aggregate.submissions:
                ignored += 1
                continue
            if not payload.category and category:
                payload = replace(payload, category=category)
            aggregate.submissions[payload.item_id] = payload
            aggregate.votes_by_item[payload.item_id] = []

        elif isinstance(payload, Vote):
            submission = aggregate.submissions.get(payload.item_id)
            if (
                submission is None
                or payload.voter == submission.author
                or payload.item_id in aggregate.finalized_by_item
                or payload.voter in aggregate.voters(payload.item_id)
            ):
                ignored += 1
                continue
            aggregate.votes_by_item[payload.item_id].append(payload)

        elif isinstance(payload, Finalization):
            if payload.item_id not in aggregate.submissions:
                ignored += 1
                continue
            if payload.item_id in aggregate.finalized_by_item:
                logger.warning(
                    "Duplicate finalization ignored",
                    extra=ledger_context(
                        item_id=payload.item_id, topic_id=topic_id, sequence_number=event.sequence_number
                    ),
                )
                continue
            aggregate.finalized_by_item[payload.item_id] = payload

    if ignored:
        logger.debug(f"Fold of {topic_id or category}: {ignored} events did not count")
    return aggregate
