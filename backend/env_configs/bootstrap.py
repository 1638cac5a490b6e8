"""Explicit composition of the configuration components.

The application lifespan calls :func:`build_env_configs` once, then
:meth:`EnvConfigs.register` to attach the callbacks to the hook registry.
Nothing registers itself on import.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

import httpx
from sqlalchemy.orm import Session

from env_configs.core import hooks as h
from env_configs.core.environment import EnvironmentPredicates, normalize_environment, LOCAL, STAGING, LIVE
from env_configs.core.hooks import HookRegistry
from env_configs.core.rewrite import RewriteRules
from env_configs.cron.scheduler import EventScheduler
from env_configs.deploy.dispatcher import ConfigurationDispatcher
from env_configs.deploy.endpoint import DeployEndpoint
from env_configs.deploy.ip_matcher import IPMatcher
from env_configs.deploy.plugin_check import PluginActivationChecker, parse_activation_specs
from env_configs.plugins.manager import PluginManager

_log = logging.getLogger(__name__)

_CONFIG_EVENTS = {
    LOCAL: h.CONFIG_LOCAL,
    STAGING: h.CONFIG_STAGING,
    LIVE: h.CONFIG_LIVE,
}


@dataclass
class EnvConfigs:
    hooks: HookRegistry
    rewrite: RewriteRules
    scheduler: EventScheduler
    plugins: PluginManager
    environment: EnvironmentPredicates
    matcher: IPMatcher
    dispatcher: ConfigurationDispatcher
    checker: PluginActivationChecker
    endpoint: DeployEndpoint
    cron_spawn: bool = True
    plugin_check_on: list[str] = field(default_factory=list)

    def register(self) -> None:
        self.hooks.add_filter(h.QUERY_VARS, self.endpoint.add_query_vars, priority=0, name='env_configs.add_query_vars')
        self.hooks.add_action(h.PARSE_REQUEST, self.endpoint.sniff_requests, priority=0, name='env_configs.sniff_requests')
        self.hooks.add_action(h.INIT, self.endpoint.add_endpoint, priority=0, name='env_configs.add_endpoint')
        self.hooks.add_action(h.CHECK_PLUGINS, self.checker.check, name='env_configs.check_plugin_activation')
        for env_name in self.plugin_check_on:
            tier = normalize_environment(env_name)
            if tier is None:
                _log.warning("unknown environment %r in plugin check configuration", env_name)
                continue
            self.hooks.add_action(_CONFIG_EVENTS[tier], self.checker.schedule, name=f'env_configs.schedule_plugin_check.{tier}')


def build_env_configs(
    settings,
    session_factory: Callable[[], Session],
    *,
    hooks: HookRegistry | None = None,
    environment: EnvironmentPredicates | None = None,
    http_client: httpx.Client | None = None,
    developer_ips: Iterable[str] | None = None,
    ip_ranges: Iterable | None = None,
) -> EnvConfigs:
    hooks = hooks or HookRegistry()
    rewrite = RewriteRules()
    environment = environment or EnvironmentPredicates.from_settings(settings)
    scheduler = EventScheduler(
        hooks,
        session_factory,
        site_url=settings.site_url,
        api_prefix=settings.api_v1_prefix,
        default_timeout=settings.cron_timeout,
        http_client=http_client,
    )
    plugins = PluginManager(
        session_factory,
        hooks,
        plugins_dir=settings.plugins_dir,
        backend_version=settings.version,
    )
    matcher = IPMatcher(
        hooks,
        developer_ips=settings.developer_ips if developer_ips is None else developer_ips,
        ip_ranges=settings.ip_ranges if ip_ranges is None else ip_ranges,
    )
    dispatcher = ConfigurationDispatcher(hooks, matcher, environment)
    checker = PluginActivationChecker(
        hooks,
        plugins,
        scheduler,
        defaults=parse_activation_specs(settings.plugins_to_activate),
    )
    endpoint = DeployEndpoint(dispatcher, rewrite)
    return EnvConfigs(
        hooks=hooks,
        rewrite=rewrite,
        scheduler=scheduler,
        plugins=plugins,
        environment=environment,
        matcher=matcher,
        dispatcher=dispatcher,
        checker=checker,
        endpoint=endpoint,
        cron_spawn=settings.cron_spawn,
        plugin_check_on=list(settings.plugin_check_on),
    )
