"""Consensus: fold, admission, evaluation, commit, and reputation."""

from .admission import check_admission
from .committer import CommitResult, FinalizationCommitter, delta_for, delta_reason
from .engine import KnowledgeEngine, ReconcileReport, VoteResult
from .evaluation import Tally, count_votes, evaluate, outcome_for
from .folding import CategoryAggregate, fold
from .reputation import Reputation, ReputationSyncer, SyncResult, derive_reputation, reputation_deltas

__all__ = [
    "check_admission",
    "CommitResult",
    "FinalizationCommitter",
    "delta_for",
    "delta_reason",
    "KnowledgeEngine",
    "ReconcileReport",
    "VoteResult",
    "Tally",
    "count_votes",
    "evaluate",
    "outcome_for",
    "CategoryAggregate",
    "fold",
    "Reputation",
    "ReputationSyncer",
    "SyncResult",
    "derive_reputation",
    "reputation_deltas",
]
