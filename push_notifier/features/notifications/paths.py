"""Watch-list resolution.

The configured watch list mixes three kinds of entry:

- ``restart:<path>``: restart directive; never watched for dispatch.
- ``http://...`` / ``https://...``: a Signal K API URL that returns a JSON
  array of paths, fetched once with the host session token.
- anything else: a literal path.

Entries holding any other colon are not valid paths and are dropped.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import logging
from typing import Protocol

from push_notifier.core.exceptions import AuthenticationError, PathFetchError

logger = logging.getLogger(__name__)

RESTART_MARKER = "restart:"
REMOTE_PREFIXES = ("http://", "https://")
NOTIFICATIONS_ROOT = "notifications."


class PathFetcher(Protocol):
    """Expands a remote watch-list reference into paths."""

    async def fetch_paths(self, url: str) -> list[str]:
        """Fetch the path list behind ``url``.

        Raises:
            AuthenticationError: No valid session token (fatal).
            PathFetchError: Non-200 response or malformed body (soft).
        """
        ...


@dataclass(frozen=True)
class ResolvedPaths:
    """Result of resolving a watch list.

    Attributes:
        watch_paths: Paths to dispatch on, unique, in first-seen order.
        restart_paths: Paths whose events restart the engine.
        warnings: One message per entry that could not be expanded.
    """

    watch_paths: tuple[str, ...] = ()
    restart_paths: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def watch_set(self) -> frozenset[str]:
        return frozenset(self.watch_paths)

    @property
    def restart_directives(self) -> frozenset[str]:
        return frozenset(self.restart_paths)

    @property
    def partial(self) -> bool:
        """True when at least one remote entry failed to expand."""
        return bool(self.warnings)


def stream_path(path: str) -> str:
    """Full notification path to subscribe to for a watched path."""
    if path.startswith(NOTIFICATIONS_ROOT):
        return path
    return NOTIFICATIONS_ROOT + path


def is_remote(entry: str) -> bool:
    return entry.startswith(REMOTE_PREFIXES)


class PathResolver:
    """Turns a configured watch list into a watch set and restart directives."""

    def __init__(self, fetcher: PathFetcher | None = None) -> None:
        self._fetcher = fetcher

    async def resolve(self, raw_paths: Sequence[str]) -> ResolvedPaths:
        """Resolve a mixed watch list.

        A bad entry never aborts resolution; it only shrinks the watch set
        and adds a warning.

        Args:
            raw_paths: Configured watch-list entries, in order.

        Returns:
            The resolved watch set and restart directives.

        Raises:
            AuthenticationError: A remote entry needs a host session and
                none is available, or the host rejected it. The whole
                resolution is abandoned.
        """
        watch: dict[str, None] = {}
        restart: dict[str, None] = {}
        warnings: list[str] = []

        for entry in raw_paths:
            entry = entry.strip()
            if not entry:
                continue

            if entry.startswith(RESTART_MARKER):
                target = entry.removeprefix(RESTART_MARKER).strip()
                if target:
                    restart.setdefault(target, None)
                continue

            if is_remote(entry):
                for path in await self._expand(entry, warnings):
                    watch.setdefault(path, None)
                continue

            if ":" in entry:
                logger.debug("Dropping watch-list entry '%s' (not a path)", entry)
                continue

            watch.setdefault(entry, None)

        for message in warnings:
            logger.warning(message)

        return ResolvedPaths(
            watch_paths=tuple(watch),
            restart_paths=tuple(restart),
            warnings=tuple(warnings),
        )

    async def _expand(self, url: str, warnings: list[str]) -> list[str]:
        if self._fetcher is None:
            msg = f"cannot expand '{url}' without an authenticated host session"
            raise AuthenticationError(msg)

        try:
            paths = await self._fetcher.fetch_paths(url)
        except PathFetchError as exc:
            warnings.append(f"watch-list entry '{url}' yielded no paths ({exc})")
            return []

        # Remote results are paths; restart directives and other
        # colon-qualified strings are not accepted from them.
        return [p for p in paths if p and ":" not in p]
