# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Mirror-node topic reader.

Reads ``/api/v1/topics/{topicId}/messages`` in ascending order, following
``links.next`` until the topic is exhausted or an optional ``limit`` is reached. Each
message is base64-encoded JSON; anything that fails to decode is skipped so
unknown or corrupt entries never poison a fold.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from typing import Any

import aiohttp

from ..core.exceptions import LedgerUnavailable
from .events import Event, decode_message

logger = logging.getLogger(__name__)

# Mirror nodes cap a single page at 100 messages
MAX_PAGE_SIZE = 100


def decode_mirror_message(topic_id: str, raw: dict[str, Any]) -> Event | None:
    """Decode one mirror-node message record into an Event, or None."""
    try:
        text = base64.b64decode(raw["message"], validate=True)
        sequence_number = int(raw["sequence_number"])
        consensus_timestamp = str(raw.get("consensus_timestamp", ""))
    except (KeyError, TypeError, ValueError, binascii.Error):
        return None

    payload = decode_message(text)
    if payload is None:
        return None
    return Event(topic_id, sequence_number, consensus_timestamp, payload)


class MirrorNodeReader:
    """LedgerReader backed by a mirror node REST API."""

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def fetch_events(
        self, topic_id: str, limit: int | None = None, page_size: int = MAX_PAGE_SIZE
    ) -> list[Event]:
        """Fetch messages from ``topic_id``, oldest first.

        Without ``limit`` every page is read; ``page_size`` only sizes each request.

        Raises:
            LedgerUnavailable: On HTTP errors, timeouts, or unreadable responses.
        """
        url: str | None = f"{self.base_url}/api/v1/topics/{topic_id}/messages"
        params: dict[str, Any] | None = {"limit": max(1, min(page_size, MAX_PAGE_SIZE)), "order": "asc"}
        events: list[Event] = []
        read = 0
        skipped = 0

        try:
            async with aiohttp.ClientSession() as session:
                while url and (limit is None or read < limit):
                    async with session.get(
                        url, params=params, timeout=aiohttp.ClientTimeout(total=self.timeout)
                    ) as response:
                        if response.status != 200:
                            raise LedgerUnavailable(
                                f"Mirror node returned {response.status} for topic {topic_id}",
                                topic_id=topic_id,
                            )
                        data = await response.json()
                        if not isinstance(data, dict):
                            raise ValueError("expected a JSON object")

                    messages = data.get("messages") or []
                    if limit is not None:
                        messages = messages[: limit - read]
                    for raw in messages:
                        read += 1
                        event = decode_mirror_message(topic_id, raw)
                        if event is None:
                            skipped += 1
                            continue
                        events.append(event)

                    next_link = (data.get("links") or {}).get("next")
                    # An empty page ends the read even if a next link is present
                    url = f"{self.base_url}{next_link}" if next_link and messages else None
                    # The next link already carries its query string
                    params = None
        except aiohttp.ClientError as e:
            raise LedgerUnavailable(f"Network error reading topic {topic_id}: {e}", topic_id=topic_id) from e
        except asyncio.TimeoutError as e:
            raise LedgerUnavailable(f"Timed out reading topic {topic_id}", topic_id=topic_id) from e
        except ValueError as e:
            raise LedgerUnavailable(f"Unreadable mirror response for topic {topic_id}: {e}", topic_id=topic_id) from e

        if skipped:
            logger.debug(f"Skipped {skipped} non-conforming messages on {topic_id}")
        events.sort(key=lambda e: e.sequence_number)
        return events
