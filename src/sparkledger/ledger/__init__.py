"""Ledger access: event codec, readers, writers, and the secondary registry."""

from .base import AgentProfile, LedgerReader, LedgerWriter, ReputationRegistry
from .events import (
    Action,
    AgentRegistration,
    Event,
    Finalization,
    Outcome,
    Payload,
    ReputationDelta,
    Submission,
    Tick,
    Vote,
    VoteDirection,
    VoteRecorded,
    decode_message,
    encode_payload,
    utc_timestamp,
)
from .gateway import GatewayLedgerWriter, HttpRegistry
from .memory import InMemoryLedger, InMemoryRegistry
from .mirror import MirrorNodeReader

__all__ = [
    "AgentProfile",
    "LedgerReader",
    "LedgerWriter",
    "ReputationRegistry",
    "Action",
    "AgentRegistration",
    "Event",
    "Finalization",
    "Outcome",
    "Payload",
    "ReputationDelta",
    "Submission",
    "Tick",
    "Vote",
    "VoteDirection",
    "VoteRecorded",
    "decode_message",
    "encode_payload",
    "utc_timestamp",
    "GatewayLedgerWriter",
    "HttpRegistry",
    "InMemoryLedger",
    "InMemoryRegistry",
    "MirrorNodeReader",
]
