"""Subscriber store contract and an in-memory implementation.

The store is the single source of truth for subscribers. The engine never
caches what it reads: every notification re-reads the full set.
``ResourceSubscriberStore`` in ``infra.signalk.resources`` persists to the
Signal K resources API; ``InMemorySubscriberStore`` serves development and
tests.
"""

from __future__ import annotations

from collections.abc import Mapping
import copy
from typing import Any, Protocol

from push_notifier.core.exceptions import SubscriberNotFoundError


class SubscriberStore(Protocol):
    """Keyed CRUD over subscriber records."""

    async def list(self) -> dict[str, Any]:
        """Return every subscriber record keyed by subscriber id.

        Raises:
            StoreError: The read failed.
        """
        ...

    async def get(self, subscriber_id: str) -> Any:
        """Return one record.

        Raises:
            SubscriberNotFoundError: No such subscriber.
            StoreError: The read failed.
        """
        ...

    async def set(self, subscriber_id: str, record: Mapping[str, Any]) -> None:
        """Create or replace a record (last write wins).

        Raises:
            StoreError: The write failed.
        """
        ...

    async def delete(self, subscriber_id: str) -> None:
        """Delete a record.

        Raises:
            SubscriberNotFoundError: No such subscriber.
            StoreError: The delete failed.
        """
        ...


class InMemorySubscriberStore:
    """Dict-backed store; records are copied in and out."""

    def __init__(self, records: Mapping[str, Any] | None = None) -> None:
        self._records: dict[str, Any] = copy.deepcopy(dict(records or {}))

    async def list(self) -> dict[str, Any]:
        return copy.deepcopy(self._records)

    async def get(self, subscriber_id: str) -> Any:
        try:
            return copy.deepcopy(self._records[subscriber_id])
        except KeyError:
            raise SubscriberNotFoundError(subscriber_id) from None

    async def set(self, subscriber_id: str, record: Mapping[str, Any]) -> None:
        self._records[subscriber_id] = copy.deepcopy(dict(record))

    async def delete(self, subscriber_id: str) -> None:
        if self._records.pop(subscriber_id, None) is None:
            raise SubscriberNotFoundError(subscriber_id)

    def __contains__(self, subscriber_id: object) -> bool:
        return subscriber_id in self._records

    def __len__(self) -> int:
        return len(self._records)
