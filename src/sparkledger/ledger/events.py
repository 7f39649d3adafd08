# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Typed ledger events and their wire payloads.

Every message on a topic is a compact JSON object. Field names are stable:
independent observers of the raw log decode the same shapes, so encoding
must stay byte-compatible with::

    {"action":"item_submitted","itemId":..,"author":..,"category":..,"content":..,"contentPointer":..,"timestamp":..}
    {"action":"item_voted","itemId":..,"voter":..,"vote":"approve"|"reject","timestamp":..}
    {"action":"item_approved"|"item_rejected","itemId":..,"author":..,"voters":[..],"timestamp":..}
    {"p":"rep-ledger","op":"mint","tick":"approval"|"rejection","amt":"1","reason":..,"timestamp":..}

Decoding is all-or-nothing: a payload either becomes a fully populated
dataclass or ``decode_message`` returns None.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

REPUTATION_PROTOCOL = "rep-ledger"
REPUTATION_OP = "mint"


class Action(StrEnum):
    ITEM_SUBMITTED = "item_submitted"
    ITEM_VOTED = "item_voted"
    ITEM_APPROVED = "item_approved"
    ITEM_REJECTED = "item_rejected"
    VOTE_RECORDED = "i_voted_on_item"
    AGENT_REGISTERED = "agent_registered"


class VoteDirection(StrEnum):
    APPROVE = "approve"
    REJECT = "reject"


class Outcome(StrEnum):
    """Consensus status of a knowledge item."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not Outcome.PENDING


class Tick(StrEnum):
    """Reputation-delta direction."""

    APPROVAL = "approval"
    REJECTION = "rejection"


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"missing or invalid {key}")
    return value


def _optional_str(data: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str):
            return value
    return ""


# =============================================================================
# PAYLOADS
# =============================================================================


@dataclass(frozen=True)
class Submission:
    """A knowledge item entering a category topic."""

    item_id: str
    author: str
    category: str = ""
    content: str = ""
    content_pointer: str = ""
    timestamp: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "action": Action.ITEM_SUBMITTED.value,
            "itemId": self.item_id,
            "author": self.author,
            "category": self.category,
            "content": self.content,
            "contentPointer": self.content_pointer,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> Submission:
        return cls(
            item_id=_require_str(data, "itemId"),
            author=_require_str(data, "author"),
            category=_optional_str(data, "category"),
            content=_optional_str(data, "content"),
            # zgRootHash is the pointer key used by early registrations
            content_pointer=_optional_str(data, "contentPointer", "zgRootHash"),
            timestamp=_optional_str(data, "timestamp"),
        )


@dataclass(frozen=True)
class Vote:
    item_id: str
    voter: str
    vote: VoteDirection
    timestamp: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "action": Action.ITEM_VOTED.value,
            "itemId": self.item_id,
            "voter": self.voter,
            "vote": self.vote.value,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> Vote:
        return cls(
            item_id=_require_str(data, "itemId"),
            voter=_require_str(data, "voter"),
            vote=VoteDirection(data.get("vote")),
            timestamp=_optional_str(data, "timestamp"),
        )


@dataclass(frozen=True)
class Finalization:
    """The single terminal event that freezes an item's outcome."""

    item_id: str
    author: str
    outcome: Outcome
    voters: tuple[str, ...] = ()
    timestamp: str = ""

    def to_payload(self) -> dict[str, Any]:
        action = Action.ITEM_APPROVED if self.outcome is Outcome.APPROVED else Action.ITEM_REJECTED
        return {
            "action": action.value,
            "itemId": self.item_id,
            "author": self.author,
            "voters": list(self.voters),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> Finalization:
        action = data.get("action")
        outcome = Outcome.APPROVED if action == Action.ITEM_APPROVED else Outcome.REJECTED
        voters = data.get("voters", data.get("approvedBy", data.get("rejectedBy", [])))
        if not isinstance(voters, list) or not all(isinstance(v, str) for v in voters):
            raise ValueError("invalid voters")
        return cls(
            item_id=_require_str(data, "itemId"),
            author=_require_str(data, "author"),
            outcome=outcome,
            voters=tuple(voters),
            timestamp=_optional_str(data, "timestamp"),
        )


@dataclass(frozen=True)
class ReputationDelta:
    """+amt approval or rejection credit on an agent's public vote record."""

    tick: Tick
    reason: str = ""
    amt: int = 1
    voter: str | None = None
    timestamp: str = ""

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "p": REPUTATION_PROTOCOL,
            "op": REPUTATION_OP,
            "tick": self.tick.value,
            "amt": str(self.amt),
        }
        if self.voter is not None:
            payload["voter"] = self.voter
        payload["reason"] = self.reason
        payload["timestamp"] = self.timestamp
        return payload

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> ReputationDelta:
        if data.get("op") != REPUTATION_OP:
            raise ValueError("unsupported op")
        amt = int(str(data.get("amt", "1")))
        if amt < 1:
            raise ValueError("amt must be positive")
        voter = data.get("voter")
        if voter is not None and not isinstance(voter, str):
            raise ValueError("invalid voter")
        return cls(
            tick=Tick(data.get("tick")),
            reason=_optional_str(data, "reason"),
            amt=amt,
            voter=voter,
            timestamp=_optional_str(data, "timestamp"),
        )


@dataclass(frozen=True)
class VoteRecorded:
    """Activity entry on the voter's personal topic."""

    item_id: str
    vote: VoteDirection
    category: str = ""
    timestamp: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "action": Action.VOTE_RECORDED.value,
            "itemId": self.item_id,
            "vote": self.vote.value,
            "category": self.category,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> VoteRecorded:
        return cls(
            item_id=_require_str(data, "itemId"),
            vote=VoteDirection(data.get("vote")),
            category=_optional_str(data, "category"),
            timestamp=_optional_str(data, "timestamp"),
        )


@dataclass(frozen=True)
class AgentRegistration:
    """Discovery-log entry binding an account to its personal and public topics."""

    account_id: str
    personal_topic_id: str
    public_topic_id: str
    bot_id: str = ""
    token_id: int = 0
    timestamp: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "action": Action.AGENT_REGISTERED.value,
            "hederaAccountId": self.account_id,
            "botId": self.bot_id,
            "botTopicId": self.personal_topic_id,
            "voteTopicId": self.public_topic_id,
            "iNftTokenId": self.token_id,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> AgentRegistration:
        token_id = data.get("iNftTokenId") or 0
        if isinstance(token_id, bool) or not isinstance(token_id, (int, str)):
            raise ValueError("invalid iNftTokenId")
        return cls(
            account_id=_require_str(data, "hederaAccountId"),
            personal_topic_id=_require_str(data, "botTopicId"),
            public_topic_id=_require_str(data, "voteTopicId"),
            bot_id=_optional_str(data, "botId"),
            token_id=int(token_id),
            timestamp=_optional_str(data, "timestamp"),
        )


Payload = Submission | Vote | Finalization | ReputationDelta | VoteRecorded | AgentRegistration

_ACTION_DECODERS: dict[str, Any] = {
    Action.ITEM_SUBMITTED: Submission.from_payload,
    Action.ITEM_VOTED: Vote.from_payload,
    Action.ITEM_APPROVED: Finalization.from_payload,
    Action.ITEM_REJECTED: Finalization.from_payload,
    Action.VOTE_RECORDED: VoteRecorded.from_payload,
    Action.AGENT_REGISTERED: AgentRegistration.from_payload,
}


@dataclass(frozen=True)
class Event:
    """An immutable record read back from a topic."""

    topic_id: str
    sequence_number: int
    consensus_timestamp: str
    payload: Payload = field(compare=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "topicId": self.topic_id,
            "sequenceNumber": self.sequence_number,
            "consensusTimestamp": self.consensus_timestamp,
            "payload": self.payload.to_payload(),
        }


# =============================================================================
# CODEC
# =============================================================================


def encode_payload(payload: Payload) -> str:
    """Serialize a payload exactly as it is written to a topic."""
    return json.dumps(payload.to_payload(), separators=(",", ":"), ensure_ascii=False)


def decode_payload(data: Any) -> Payload | None:
    """Decode a parsed JSON message into a payload, or None if it does not conform."""
    if not isinstance(data, dict):
        return None
    try:
        if data.get("p") == REPUTATION_PROTOCOL:
            return ReputationDelta.from_payload(data)
        decoder = _ACTION_DECODERS.get(data.get("action"))
        if decoder is None:
            return None
        return decoder(data)
    except (KeyError, TypeError, ValueError):
        return None


def decode_message(text: str | bytes) -> Payload | None:
    """Decode a raw topic message; malformed or unknown messages yield None."""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return decode_payload(data)
