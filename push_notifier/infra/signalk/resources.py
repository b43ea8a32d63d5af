"""Subscriber store backed by the Signal K resources API.

Subscribers are resources of a custom type, keyed by subscriber id:

    GET    {resources_path}/{type}?provider={provider}        list
    GET    {resources_path}/{type}/{id}?provider={provider}   get
    PUT    {resources_path}/{type}/{id}?provider={provider}   set
    DELETE {resources_path}/{type}/{id}?provider={provider}   delete
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any
from urllib.parse import quote

import httpx

from push_notifier.core.exceptions import StoreError, SubscriberNotFoundError
from push_notifier.core.settings.notifier import SubscriberDatabaseSettings
from push_notifier.features.notifications.metrics import subscriber_store_errors_total
from push_notifier.infra.signalk.client import SignalKClient

logger = logging.getLogger(__name__)


class ResourceSubscriberStore:
    """``SubscriberStore`` over the host resources API."""

    def __init__(
        self,
        client: SignalKClient,
        resource_type: str = "push-notifier",
        provider_id: str = "resources-provider",
    ) -> None:
        self._client = client
        self.resource_type = resource_type
        self.provider_id = provider_id

    @classmethod
    def from_settings(cls, client: SignalKClient, settings: SubscriberDatabaseSettings) -> ResourceSubscriberStore:
        return cls(client, settings.resource_type, settings.resource_provider_id)

    def _url(self, subscriber_id: str | None = None) -> str:
        base = f"{self._client.settings.resources_path.rstrip('/')}/{quote(self.resource_type, safe='')}"
        if subscriber_id is None:
            return base
        return f"{base}/{quote(subscriber_id, safe='')}"

    async def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.client.request(
                method,
                url,
                params={"provider": self.provider_id},
                headers=self._client.auth_headers,
                **kwargs,
            )
        except httpx.HTTPError as exc:
            subscriber_store_errors_total.labels(operation=operation).inc()
            msg = f"{operation} failed: {exc}"
            raise StoreError(msg) from exc

    def _fail(self, operation: str, response: httpx.Response) -> StoreError:
        subscriber_store_errors_total.labels(operation=operation).inc()
        return StoreError(f"{operation} failed: server answered {response.status_code}")

    async def list(self) -> dict[str, Any]:
        response = await self._request("list", "GET", self._url())
        if response.status_code != 200:
            raise self._fail("list", response)
        try:
            records = response.json()
        except ValueError as exc:
            raise StoreError("list failed: response is not JSON") from exc
        if not isinstance(records, dict):
            raise StoreError("list failed: response is not an object")
        return records

    async def get(self, subscriber_id: str) -> Any:
        response = await self._request("get", "GET", self._url(subscriber_id))
        if response.status_code == 404:
            raise SubscriberNotFoundError(subscriber_id)
        if response.status_code != 200:
            raise self._fail("get", response)
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError("get failed: response is not JSON") from exc

    async def set(self, subscriber_id: str, record: Mapping[str, Any]) -> None:
        response = await self._request("set", "PUT", self._url(subscriber_id), json=dict(record))
        if not response.is_success:
            raise self._fail("set", response)
        logger.debug("Stored subscriber '%s'", subscriber_id)

    async def delete(self, subscriber_id: str) -> None:
        response = await self._request("delete", "DELETE", self._url(subscriber_id))
        if response.status_code == 404:
            raise SubscriberNotFoundError(subscriber_id)
        if not response.is_success:
            raise self._fail("delete", response)
        logger.debug("Deleted subscriber '%s'", subscriber_id)
