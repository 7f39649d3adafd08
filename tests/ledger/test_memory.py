"""Tests for the in-memory ledger and registry."""

import pytest

from sparkledger.core.exceptions import LedgerUnavailable, LedgerWriteFailed, SecondaryLedgerSyncFailed
from sparkledger.ledger.events import Vote, VoteDirection
from sparkledger.ledger.memory import InMemoryLedger, InMemoryRegistry


@pytest.mark.asyncio
class TestInMemoryLedger:
    """Tests for InMemoryLedger."""

    async def test_sequence_numbers_start_at_one(self):
        """Each topic numbers its messages from 1."""
        ledger = InMemoryLedger()
        assert await ledger.append("0.0.1", Vote("i", "v", VoteDirection.APPROVE)) == 1
        assert await ledger.append("0.0.1", Vote("i", "w", VoteDirection.APPROVE)) == 2
        assert await ledger.append("0.0.2", Vote("i", "v", VoteDirection.APPROVE)) == 1

    async def test_malformed_messages_are_skipped_on_read(self):
        """Malformed entries keep their sequence number but are not returned."""
        ledger = InMemoryLedger()
        ledger.append_raw("0.0.1", "garbage")
        await ledger.append("0.0.1", Vote("i", "v", VoteDirection.APPROVE))

        events = await ledger.fetch_events("0.0.1")
        assert [e.sequence_number for e in events] == [2]
        assert ledger.count("0.0.1") == 2

    async def test_hidden_tail_simulates_lag(self):
        """Withheld messages are written but not yet readable."""
        ledger = InMemoryLedger()
        await ledger.append("0.0.1", Vote("i", "v", VoteDirection.APPROVE))
        await ledger.append("0.0.1", Vote("i", "w", VoteDirection.APPROVE))
        ledger.hidden_tail["0.0.1"] = 1

        assert len(await ledger.fetch_events("0.0.1")) == 1
        assert len(ledger.messages("0.0.1")) == 2

    async def test_limit(self):
        ledger = InMemoryLedger()
        for voter in ("a", "b", "c"):
            await ledger.append("0.0.1", Vote("i", voter, VoteDirection.APPROVE))
        assert len(await ledger.fetch_events("0.0.1", limit=2)) == 2

    async def test_reads_every_page(self):
        """Without a limit the whole topic is read, page_size messages at a time."""
        ledger = InMemoryLedger()
        for i in range(5):
            await ledger.append("0.0.1", Vote("i", f"v{i}", VoteDirection.APPROVE))

        events = await ledger.fetch_events("0.0.1", page_size=2)

        assert [e.sequence_number for e in events] == [1, 2, 3, 4, 5]
        assert ledger.pages_read["0.0.1"] == 3

    async def test_failures(self):
        """Configured failures raise the ledger exceptions."""
        ledger = InMemoryLedger()
        ledger.fail_reads.add("0.0.1")
        ledger.fail_writes.add("0.0.1")

        with pytest.raises(LedgerUnavailable):
            await ledger.fetch_events("0.0.1")
        with pytest.raises(LedgerWriteFailed):
            await ledger.append("0.0.1", Vote("i", "v", VoteDirection.APPROVE))


@pytest.mark.asyncio
class TestInMemoryRegistry:
    """Tests for InMemoryRegistry."""

    async def test_contribution_is_recorded_once(self):
        """A repeated contribution for the same item is a no-op."""
        registry = InMemoryRegistry()
        first = await registry.record_contribution(11, "item-1")
        second = await registry.record_contribution(11, "item-1")

        assert first is not None and first.startswith("0x")
        assert second is None
        assert registry.profiles[11].contribution_count == 1

    async def test_content_is_appended_once(self):
        registry = InMemoryRegistry()
        await registry.append_content(11, "ptr")
        assert await registry.append_content(11, "ptr") is None
        assert registry.profiles[11].content_pointers == ["ptr"]

    async def test_update_reputation_overwrites(self):
        """Reputation is set, not incremented."""
        registry = InMemoryRegistry()
        await registry.update_reputation(11, 3)
        await registry.update_reputation(11, 1)
        profile = await registry.get_profile(11)
        assert profile.reputation_score == 1

    async def test_unknown_profile(self):
        assert await InMemoryRegistry().get_profile(99) is None

    async def test_fail_flag(self):
        registry = InMemoryRegistry()
        registry.fail = True
        with pytest.raises(SecondaryLedgerSyncFailed):
            await registry.update_reputation(11, 1)
