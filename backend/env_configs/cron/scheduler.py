from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

import httpx
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from env_configs.core.hooks import CRON_REQUEST, HookRegistry
from env_configs.models.cron import ScheduledEvent

_log = logging.getLogger(__name__)

# An identical event already queued this close to the new one is not added twice.
DUPLICATE_WINDOW = 600.0
# Minimum gap between two spawned cron requests.
SPAWN_LOCK_TIMEOUT = 60.0
DEFAULT_SPAWN_TIMEOUT = 0.01


class EventScheduler:
    """Persisted one-shot hook events plus the self-request that runs them.

    Events are stored in ``scheduled_events`` and fired through the hook
    registry by :meth:`run_due`. Nothing runs in the background: the cron
    endpoint is hit either by :meth:`spawn` after a regular request or by an
    external timer.
    """

    def __init__(
        self,
        hooks: HookRegistry,
        session_factory: Callable[[], Session],
        *,
        site_url: str,
        api_prefix: str = '/api/v1',
        default_timeout: float = DEFAULT_SPAWN_TIMEOUT,
        http_client: httpx.Client | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.hooks = hooks
        self._session_factory = session_factory
        self.site_url = site_url.rstrip('/')
        self.api_prefix = api_prefix
        self.default_timeout = default_timeout
        self._http = http_client
        self._clock = clock
        self._spawned_at: float | None = None

    @staticmethod
    def _normalize_args(args: Iterable[Any] | None) -> list:
        return list(args or [])

    def schedule_single_event(self, timestamp: float, hook: str, args: Sequence[Any] = ()) -> bool:
        """Queue ``hook`` to fire once at (or after) ``timestamp``.

        Returns False when the same hook with the same args is already queued
        within ``DUPLICATE_WINDOW`` seconds of ``timestamp``.
        """
        norm = self._normalize_args(args)
        with self._session_factory() as db:
            existing = db.execute(select(ScheduledEvent).where(ScheduledEvent.hook == hook)).scalars().all()
            for row in existing:
                if self._normalize_args(row.args) == norm and abs(row.timestamp - timestamp) <= DUPLICATE_WINDOW:
                    _log.debug("event already scheduled hook=%s at=%s", hook, row.timestamp)
                    return False
            db.add(ScheduledEvent(hook=hook, timestamp=float(timestamp), args=norm))
            db.commit()
        _log.debug("scheduled single event hook=%s at=%s", hook, timestamp)
        return True

    def clear_scheduled_hook(self, hook: str, args: Sequence[Any] | None = None) -> int:
        """Remove every pending occurrence of ``hook`` (optionally only those with ``args``)."""
        removed = 0
        with self._session_factory() as db:
            rows = db.execute(select(ScheduledEvent).where(ScheduledEvent.hook == hook)).scalars().all()
            for row in rows:
                if args is not None and self._normalize_args(row.args) != self._normalize_args(args):
                    continue
                db.delete(row)
                removed += 1
            if removed:
                db.commit()
        if removed:
            _log.debug("cleared %d scheduled event(s) hook=%s", removed, hook)
        return removed

    def pending(self, hook: Optional[str] = None) -> List[ScheduledEvent]:
        with self._session_factory() as db:
            q = select(ScheduledEvent)
            if hook:
                q = q.where(ScheduledEvent.hook == hook)
            rows = db.execute(q.order_by(ScheduledEvent.timestamp, ScheduledEvent.id)).scalars().all()
            db.expunge_all()
            return list(rows)

    def next_scheduled(self, hook: str) -> float | None:
        rows = self.pending(hook)
        return rows[0].timestamp if rows else None

    def due(self, now: float | None = None) -> List[ScheduledEvent]:
        now = self._clock() if now is None else now
        return [row for row in self.pending() if row.timestamp <= now]

    def run_due(self, now: float | None = None) -> int:
        """Fire every due event at most once.

        Each row is deleted and committed before its hook runs; an event whose
        row another runner already removed is skipped.
        """
        now = self._clock() if now is None else now
        with self._session_factory() as db:
            rows = db.execute(
                select(ScheduledEvent.id, ScheduledEvent.hook, ScheduledEvent.args)
                .where(ScheduledEvent.timestamp <= now)
                .order_by(ScheduledEvent.timestamp, ScheduledEvent.id)
            ).all()
        fired = 0
        for event_id, hook, args in rows:
            with self._session_factory() as db:
                result = db.execute(delete(ScheduledEvent).where(ScheduledEvent.id == event_id))
                db.commit()
            if result.rowcount != 1:
                _log.debug("scheduled event %s already claimed hook=%s", event_id, hook)
                continue
            _log.info("running scheduled event hook=%s", hook)
            self.hooks.do_action(hook, *self._normalize_args(args))
            fired += 1
        return fired

    def build_cron_request(self, now: float | None = None) -> dict:
        now = self._clock() if now is None else now
        key = f"{now:.4f}"
        request = {
            'url': f"{self.site_url}{self.api_prefix}/cron/run?doing_cron={key}",
            'key': key,
            'args': {
                'timeout': self.default_timeout,
                'blocking': False,
            },
        }
        filtered = self.hooks.apply_filters(CRON_REQUEST, request)
        if not isinstance(filtered, Mapping) or not filtered.get('url'):
            _log.warning("ignoring malformed cron_request filter result %r", filtered)
            return request
        return filtered

    def spawn(self, now: float | None = None) -> bool:
        """Issue the cron self-request. Returns False if it could not be sent."""
        now = self._clock() if now is None else now
        if self._spawned_at is not None and now - self._spawned_at < SPAWN_LOCK_TIMEOUT:
            _log.debug("cron spawn skipped; last spawn %.2fs ago", now - self._spawned_at)
            return False
        self._spawned_at = now

        request = self.build_cron_request(now)
        args = request.get('args')
        if not isinstance(args, Mapping):
            args = {}
        try:
            timeout = float(args.get('timeout', self.default_timeout))
        except (TypeError, ValueError):
            timeout = self.default_timeout
        try:
            if self._http is not None:
                self._http.post(request['url'], timeout=timeout)
            else:
                httpx.post(request['url'], timeout=timeout)
        except httpx.TimeoutException:
            # non-blocking spawn: the request is out, we just don't wait for it
            if args.get('blocking'):
                _log.warning("cron request timed out after %.2fs url=%s", timeout, request['url'])
                return False
            _log.debug("cron request dispatched timeout=%.2fs", timeout)
        except httpx.HTTPError as exc:
            _log.warning("cron request failed url=%s err=%s", request['url'], exc)
            return False
        return True

    def spawn_if_due(self) -> bool:
        if not self.due():
            return False
        return self.spawn()
