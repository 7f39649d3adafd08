"""HTTP clients for the two systems of record.

``GatewayLedgerWriter`` submits messages to the primary ledger through a
submit gateway that holds the operator key and returns the assigned
sequence number from the transaction receipt.

``HttpRegistry`` talks to the secondary reputation registry (the on-chain
agent token contract behind a small REST gateway). Contribution and content
writes are keyed so that the gateway answers 409 for repeats, which is
treated as "already recorded".
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from ..core.exceptions import LedgerWriteFailed, SecondaryLedgerSyncFailed
from .base import AgentProfile
from .events import Payload, encode_payload

logger = logging.getLogger(__name__)


class GatewayLedgerWriter:
    """LedgerWriter that POSTs encoded payloads to a submit gateway."""

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def append(self, topic_id: str, payload: Payload) -> int:
        url = f"{self.base_url}/api/v1/topics/{topic_id}/messages"
        body = {"message": encode_payload(payload)}
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url, json=body, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status not in (200, 201):
                        text = await response.text()
                        raise LedgerWriteFailed(
                            f"Submit to {topic_id} failed with {response.status}: {text[:200]}",
                            topic_id=topic_id,
                        )
                    data = await response.json()
        except aiohttp.ClientError as e:
            raise LedgerWriteFailed(f"Network error submitting to {topic_id}: {e}", topic_id=topic_id) from e
        except asyncio.TimeoutError as e:
            raise LedgerWriteFailed(f"Timed out submitting to {topic_id}", topic_id=topic_id) from e
        except ValueError as e:
            raise LedgerWriteFailed(f"Unreadable submit receipt for {topic_id}: {e}", topic_id=topic_id) from e

        try:
            return int(data["sequenceNumber"])
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerWriteFailed(f"Submit receipt for {topic_id} had no sequence number", topic_id=topic_id) from e


class HttpRegistry:
    """ReputationRegistry backed by the registry gateway."""

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> tuple[int, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method, url, json=body, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status in (200, 201):
                        return response.status, await response.json()
                    return response.status, None
        except aiohttp.ClientError as e:
            raise SecondaryLedgerSyncFailed(f"Registry request {method} {path} failed: {e}", step=path) from e
        except asyncio.TimeoutError as e:
            raise SecondaryLedgerSyncFailed(f"Registry request {method} {path} timed out", step=path) from e
        except ValueError as e:
            raise SecondaryLedgerSyncFailed(
                f"Unreadable registry response for {method} {path}: {e}", step=path
            ) from e

    @staticmethod
    def _tx_hash(data: Any) -> str:
        if isinstance(data, dict):
            return str(data.get("txHash", ""))
        return ""

    async def get_profile(self, token_id: int) -> AgentProfile | None:
        status, data = await self._request("GET", f"/api/v1/agents/{token_id}")
        if status == 404:
            return None
        if status != 200 or not isinstance(data, dict):
            raise SecondaryLedgerSyncFailed(f"Registry profile read for token {token_id} failed with {status}")
        try:
            return AgentProfile(
                token_id=token_id,
                reputation_score=int(data.get("reputationScore", 0)),
                contribution_count=int(data.get("contributionCount", 0)),
                content_pointers=[str(p) for p in data.get("contentPointers") or []],
            )
        except (TypeError, ValueError) as e:
            raise SecondaryLedgerSyncFailed(
                f"Malformed registry profile for token {token_id}: {e}", step="profile"
            ) from e

    async def update_reputation(self, token_id: int, score: int) -> str:
        status, data = await self._request("PUT", f"/api/v1/agents/{token_id}/reputation", {"score": score})
        if status not in (200, 201):
            raise SecondaryLedgerSyncFailed(
                f"Reputation update for token {token_id} failed with {status}", step="reputation"
            )
        return self._tx_hash(data)

    async def record_contribution(self, token_id: int, item_id: str) -> str | None:
        status, data = await self._request(
            "POST", f"/api/v1/agents/{token_id}/contributions", {"itemId": item_id}
        )
        if status == 409:
            return None
        if status not in (200, 201):
            raise SecondaryLedgerSyncFailed(
                f"Contribution record for token {token_id} failed with {status}", step="contribution"
            )
        return self._tx_hash(data)

    async def append_content(self, token_id: int, pointer: str) -> str | None:
        status, data = await self._request(
            "POST",
            f"/api/v1/agents/{token_id}/data",
            {"dataDescription": f"0g://knowledge/{pointer}", "pointer": pointer},
        )
        if status == 409:
            return None
        if status not in (200, 201):
            raise SecondaryLedgerSyncFailed(f"Content append for token {token_id} failed with {status}", step="content")
        return self._tx_hash(data)
