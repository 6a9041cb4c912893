from __future__ import annotations

import logging
import secrets
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request

from field_inventory.config import settings
from field_inventory.services.site_workspace import SiteWorkspace

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _Entry:
    def __init__(self, workspace: SiteWorkspace, last_used: datetime) -> None:
        self.workspace = workspace
        self.lock = threading.Lock()
        self.last_used = last_used


class WorkspaceRegistry:
    """One SiteWorkspace per browser session, created on first use.

    Workspaces idle for longer than ``idle_ttl`` are dropped on the next access.
    """

    def __init__(
        self,
        factory: Callable[[], SiteWorkspace],
        *,
        idle_ttl: timedelta | None = None,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._factory = factory
        self._idle_ttl = idle_ttl if idle_ttl is not None else timedelta(minutes=settings.workspace_ttl_minutes)
        self._clock = clock
        self._workspaces: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._workspaces)

    def _evict_idle(self, now: datetime) -> None:
        cutoff = now - self._idle_ttl
        expired = [
            key
            for key, entry in self._workspaces.items()
            if entry.last_used < cutoff and not entry.lock.locked()
        ]
        for key in expired:
            del self._workspaces[key]
        if expired:
            logger.info('Evicted %s idle workspaces, %s remain', len(expired), len(self._workspaces))

    def _entry(self, key: str) -> _Entry:
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            entry = self._workspaces.get(key)
            if entry is None:
                entry = _Entry(self._factory(), now)
                self._workspaces[key] = entry
            entry.last_used = now
            return entry

    @contextmanager
    def checkout(self, key: str) -> Iterator[SiteWorkspace]:
        # Requests of one session are applied one at a time.
        entry = self._entry(key)
        with entry.lock:
            try:
                yield entry.workspace
            finally:
                entry.last_used = self._clock()


def install_workspace_cookie_middleware(app: FastAPI) -> None:
    @app.middleware('http')
    async def workspace_cookie_middleware(request: Request, call_next):
        workspace_key = request.cookies.get(settings.workspace_cookie_name)
        if not workspace_key:
            workspace_key = secrets.token_urlsafe(24)
        request.state.workspace_key = workspace_key

        response = await call_next(request)
        if request.cookies.get(settings.workspace_cookie_name) != workspace_key:
            response.set_cookie(
                key=settings.workspace_cookie_name,
                value=workspace_key,
                httponly=True,
                secure=settings.workspace_cookie_secure,
                samesite=settings.workspace_cookie_samesite,
            )
        return response
