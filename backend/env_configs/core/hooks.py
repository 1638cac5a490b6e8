"""Named actions and filters that the configuration layer and its subscribers share.

Actions are fire-and-forget notifications: a failing callback is logged and
the remaining callbacks still run. Filters thread a value through every
registered callback; a failing callback leaves the value untouched.

Callbacks run ordered by ``(priority, registration order)``. Registering a
callback under a ``name`` already used for the same hook replaces the earlier
registration instead of adding a duplicate.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Tuple

_log = logging.getLogger(__name__)

DEFAULT_PRIORITY = 10

# Configuration events
CONFIG_LOCAL = 'config_local'
CONFIG_STAGING = 'config_staging'
CONFIG_LIVE = 'config_live'
CHECK_PLUGINS = 'config_check_plugins'

# Configuration data filters
DEVELOPER_IP = 'developer_ip'
IP_RANGE = 'ip_range'
PLUGINS_TO_ACTIVATE = 'plugins_to_activate'

# Host lifecycle hooks
INIT = 'init'
PARSE_REQUEST = 'parse_request'
QUERY_VARS = 'query_vars'
CRON_REQUEST = 'cron_request'
ACTIVATED_PLUGIN = 'activated_plugin'
DEACTIVATED_PLUGIN = 'deactivated_plugin'


class HaltRequest(Exception):
    """Raised by a ``parse_request`` subscriber to stop all further request processing."""


_Entry = Tuple[int, int, str, Callable[..., Any]]


class HookRegistry:
    def __init__(self) -> None:
        self._actions: Dict[str, List[_Entry]] = {}
        self._filters: Dict[str, List[_Entry]] = {}
        self._counter = 0
        self._fired: Counter[str] = Counter()

    def _add(self, table: Dict[str, List[_Entry]], hook: str, callback: Callable[..., Any], priority: int, name: Optional[str]) -> str:
        if not hook:
            raise ValueError("hook name is required")
        if not callable(callback):
            raise TypeError("hook callback must be callable")
        self._counter += 1
        key = name or f"{getattr(callback, '__qualname__', repr(callback))}#{self._counter}"
        entries = [e for e in table.get(hook, []) if e[2] != key]
        entries.append((priority, self._counter, key, callback))
        entries.sort(key=lambda e: (e[0], e[1]))
        table[hook] = entries
        return key

    @staticmethod
    def _remove(table: Dict[str, List[_Entry]], hook: str, name: str) -> bool:
        entries = table.get(hook, [])
        kept = [e for e in entries if e[2] != name]
        if len(kept) == len(entries):
            return False
        table[hook] = kept
        return True

    def add_action(self, hook: str, callback: Callable[..., Any], priority: int = DEFAULT_PRIORITY, name: Optional[str] = None) -> str:
        return self._add(self._actions, hook, callback, priority, name)

    def add_filter(self, hook: str, callback: Callable[..., Any], priority: int = DEFAULT_PRIORITY, name: Optional[str] = None) -> str:
        return self._add(self._filters, hook, callback, priority, name)

    def remove_action(self, hook: str, name: str) -> bool:
        return self._remove(self._actions, hook, name)

    def remove_filter(self, hook: str, name: str) -> bool:
        return self._remove(self._filters, hook, name)

    def has_action(self, hook: str, name: Optional[str] = None) -> bool:
        entries = self._actions.get(hook, [])
        if name is None:
            return bool(entries)
        return any(e[2] == name for e in entries)

    def has_filter(self, hook: str, name: Optional[str] = None) -> bool:
        entries = self._filters.get(hook, [])
        if name is None:
            return bool(entries)
        return any(e[2] == name for e in entries)

    def did_action(self, hook: str) -> int:
        """Number of times ``hook`` has been fired on this registry."""
        return self._fired[hook]

    def do_action(self, hook: str, *args: Any) -> None:
        self._fired[hook] += 1
        # snapshot so callbacks may (un)register hooks while we iterate
        for _, _, name, callback in list(self._actions.get(hook, [])):
            try:
                callback(*args)
            except HaltRequest:
                raise
            except Exception:
                _log.exception("action callback %s for hook %s failed", name, hook)

    def apply_filters(self, hook: str, value: Any, *args: Any) -> Any:
        for _, _, name, callback in list(self._filters.get(hook, [])):
            try:
                value = callback(value, *args)
            except Exception:
                _log.exception("filter callback %s for hook %s failed", name, hook)
        return value
