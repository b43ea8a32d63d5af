"""Unit tests for watch-list resolution."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from push_notifier.core.exceptions import AuthenticationError, PathFetchError
from push_notifier.features.notifications.paths import PathResolver, stream_path

ALARMS_URL = "https://signalk.test/plugins/alarms/keys"


@pytest.mark.unit
class TestPathResolver:
    """Test suite for PathResolver.resolve."""

    @pytest.mark.asyncio
    async def test_restart_literal_and_bogus_entries(self):
        resolved = await PathResolver().resolve(["restart:notifications.x", "a.b.c", "bogus:value"])

        assert resolved.watch_set == {"a.b.c"}
        assert resolved.restart_directives == {"notifications.x"}
        assert resolved.warnings == ()

    @pytest.mark.asyncio
    async def test_duplicates_collapse_in_first_seen_order(self):
        resolved = await PathResolver().resolve(["b", "a", "b", " a ", ""])

        assert resolved.watch_paths == ("b", "a")

    @pytest.mark.asyncio
    async def test_remote_entry_is_expanded(self):
        fetcher = AsyncMock()
        fetcher.fetch_paths.return_value = ["tanks.fuel.0.currentLevel", "a.b.c", "restart:x"]

        resolved = await PathResolver(fetcher).resolve(["a.b.c", ALARMS_URL])

        fetcher.fetch_paths.assert_awaited_once_with(ALARMS_URL)
        assert resolved.watch_paths == ("a.b.c", "tanks.fuel.0.currentLevel")
        assert not resolved.partial

    @pytest.mark.asyncio
    async def test_failed_remote_entry_becomes_warning(self):
        fetcher = AsyncMock()
        fetcher.fetch_paths.side_effect = PathFetchError("server answered 500")

        resolved = await PathResolver(fetcher).resolve([ALARMS_URL, "a.b.c"])

        assert resolved.watch_paths == ("a.b.c",)
        assert resolved.partial
        assert "server answered 500" in resolved.warnings[0]

    @pytest.mark.asyncio
    async def test_remote_entry_without_fetcher_is_fatal(self):
        with pytest.raises(AuthenticationError):
            await PathResolver().resolve(["a.b.c", ALARMS_URL])

    @pytest.mark.asyncio
    async def test_missing_token_is_fatal(self):
        fetcher = AsyncMock()
        fetcher.fetch_paths.side_effect = AuthenticationError("no token")

        with pytest.raises(AuthenticationError):
            await PathResolver(fetcher).resolve([ALARMS_URL])

    @pytest.mark.asyncio
    async def test_restart_directive_never_watched(self):
        resolved = await PathResolver().resolve(["restart:a.b.c", "a.b.c"])

        assert resolved.watch_set == {"a.b.c"}
        assert resolved.restart_directives == {"a.b.c"}


@pytest.mark.unit
class TestStreamPath:
    def test_relative_path_gets_notifications_prefix(self):
        assert stream_path("engines.overTemp") == "notifications.engines.overTemp"

    def test_full_path_unchanged(self):
        assert stream_path("notifications.x") == "notifications.x"
