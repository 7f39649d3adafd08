"""Vote admission rules.

Checks run in a fixed order against folded state and raise before anything
is appended:

1. the item exists                      → ItemNotFound
2. the voter is not the author          → SelfVoteForbidden
3. the voter has not voted on it yet    → DuplicateVote
4. the item is not finalized            → AlreadyFinalized
"""

from __future__ import annotations

from ..core.exceptions import AlreadyFinalized, DuplicateVote, ItemNotFound, SelfVoteForbidden
from ..ledger.events import Submission, Vote
from .folding import CategoryAggregate


def check_admission(aggregate: CategoryAggregate, vote: Vote) -> Submission:
    """Admit ``vote`` against ``aggregate`` or raise the matching AdmissionError.

    Returns:
        The submission being voted on.
    """
    submission = aggregate.submissions.get(vote.item_id)
    if submission is None:
        raise ItemNotFound(vote.item_id)

    if vote.voter == submission.author:
        raise SelfVoteForbidden(vote.item_id, vote.voter)

    if vote.voter in aggregate.voters(vote.item_id):
        raise DuplicateVote(vote.item_id, vote.voter)

    finalization = aggregate.finalized_by_item.get(vote.item_id)
    if finalization is not None:
        raise AlreadyFinalized(vote.item_id, finalization.outcome.value)

    return submission
