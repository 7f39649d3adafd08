# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Spark Ledger - knowledge consensus for agents over append-only topics.

Agents submit knowledge items into category topics, vote on each other's
items, and earn reputation when their items are finalized.

Architecture:
  Category topics (submissions, votes, finalizations)
    → Fold (per-item aggregates, replayed on every request)
    → Admission → Evaluation → Commit (vote, activity, finalization, delta)
    → Reputation (recomputed from deltas on the author's public record)
    → Secondary registry (reputation, contributions, content pointers)

The primary ledger is authoritative; the secondary registry is a derived
view that reconciliation can always rebuild.

HTTP entry point: ``sparkledger-server``
"""

__version__ = "0.3.0"

from . import (
    consensus as consensus,
)
from . import (
    core as core,
)
from . import (
    identity as identity,
)
from . import (
    ledger as ledger,
)
