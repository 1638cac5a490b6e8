from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional

from env_configs.core.hooks import CHECK_PLUGINS, PLUGINS_TO_ACTIVATE, HookRegistry
from env_configs.core.request import is_truthy
from env_configs.cron.scheduler import EventScheduler
from env_configs.plugins.manager import PluginManager

_log = logging.getLogger(__name__)

_NETWORK_TOKENS = {'network', 'network_wide', 'true', '1', 'yes'}


@dataclass(frozen=True)
class PluginActivationRequest:
    identifier: str
    network_wide: bool = False


def coerce_request(item: Any) -> Optional[PluginActivationRequest]:
    if isinstance(item, PluginActivationRequest):
        return item
    if isinstance(item, str):
        return PluginActivationRequest(item)
    if isinstance(item, Mapping):
        identifier = item.get('identifier', item.get('name'))
        network = item.get('network_wide', item.get('network', False))
        return PluginActivationRequest(str(identifier or ''), is_truthy(network))
    return None


def parse_activation_specs(specs: Iterable[str]) -> List[PluginActivationRequest]:
    """``["seo", "cache:network"]`` -> activation requests."""
    out: List[PluginActivationRequest] = []
    for spec in specs:
        name, _, flag = spec.partition(':')
        name = name.strip()
        if not name:
            continue
        out.append(PluginActivationRequest(name, flag.strip().lower() in _NETWORK_TOKENS))
    return out


class PluginActivationChecker:
    """Makes sure the plugins an environment relies on are active.

    The check is deferred to the next cron run because at configuration time
    the plugin registry may not be fully loaded yet.
    """

    def __init__(
        self,
        hooks: HookRegistry,
        plugins: PluginManager,
        scheduler: EventScheduler,
        defaults: Iterable[PluginActivationRequest] = (),
        clock: Callable[[], float] = time.time,
    ):
        self.hooks = hooks
        self.plugins = plugins
        self.scheduler = scheduler
        self._defaults = list(defaults)
        self._clock = clock

    def requests(self) -> List[PluginActivationRequest]:
        default = list(self._defaults) or [PluginActivationRequest('', False)]
        value = self.hooks.apply_filters(PLUGINS_TO_ACTIVATE, default)
        if isinstance(value, (str, Mapping, PluginActivationRequest)):
            value = [value]
        out: List[PluginActivationRequest] = []
        for item in value or []:
            req = coerce_request(item)
            if req is None:
                _log.debug("ignoring malformed plugin activation entry %r", item)
                continue
            out.append(req)
        return out

    def check(self) -> None:
        active = self.plugins.active_plugins()
        if not active:
            return
        for req in self.requests():
            result = self.plugins.activate(req.identifier, network_wide=req.network_wide)
            _log.debug("plugin activation check plugin=%s result=%s", req.identifier, getattr(result, 'status', result))

    def schedule(self, *_: Any) -> None:
        self.scheduler.clear_scheduled_hook(CHECK_PLUGINS)
        self.scheduler.schedule_single_event(self._clock(), CHECK_PLUGINS)
