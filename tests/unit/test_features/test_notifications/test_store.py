"""Unit tests for the in-memory subscriber store."""

from __future__ import annotations

import pytest

from push_notifier.core.exceptions import SubscriberNotFoundError
from push_notifier.features.notifications.store import InMemorySubscriberStore


@pytest.mark.unit
class TestInMemorySubscriberStore:
    """Test suite for InMemorySubscriberStore."""

    @pytest.mark.asyncio
    async def test_set_get_list_delete(self):
        store = InMemorySubscriberStore()

        await store.set("a@b.com", {"sendFailureCount": 0})

        assert await store.get("a@b.com") == {"sendFailureCount": 0}
        assert await store.list() == {"a@b.com": {"sendFailureCount": 0}}
        await store.delete("a@b.com")
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_records_are_copied(self):
        store = InMemorySubscriberStore({"phone": {"sendFailureCount": 1}})

        records = await store.list()
        records["phone"]["sendFailureCount"] = 99

        assert (await store.get("phone"))["sendFailureCount"] == 1

    @pytest.mark.asyncio
    async def test_unknown_subscriber(self):
        store = InMemorySubscriberStore()

        with pytest.raises(SubscriberNotFoundError):
            await store.get("nobody")
        with pytest.raises(SubscriberNotFoundError):
            await store.delete("nobody")
