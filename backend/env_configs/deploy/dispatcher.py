from __future__ import annotations

import logging
from typing import Optional

from env_configs.core.environment import EnvironmentPredicates, Predicate
from env_configs.core.hooks import (
    CONFIG_LIVE,
    CONFIG_LOCAL,
    CONFIG_STAGING,
    CRON_REQUEST,
    HookRegistry,
)
from env_configs.deploy.ip_matcher import IPMatcher

_log = logging.getLogger(__name__)

LOCAL_CRON_TIMEOUT = 0.5
LOCAL_CRON_TIMEOUT_FILTER = 'env_configs.local_cron_timeout'


def local_cron_timeout(cron_request: dict) -> dict:
    """Give the cron self-request 0.5s instead of the default 0.01s.

    Some local VM/container network stacks drop loopback requests that are
    abandoned that quickly, so scheduled events never run.
    """
    args = dict(cron_request.get('args') or {})
    args['timeout'] = float(LOCAL_CRON_TIMEOUT)
    return {**cron_request, 'args': args}


class ConfigurationDispatcher:
    """Runs the environment-specific configuration pass for authorized callers.

    Every environment predicate that reports true gets its branch run, in the
    order local, staging, live. Each branch only announces itself through its
    ``config_*`` action; subscribers do the real work.
    """

    def __init__(self, hooks: HookRegistry, matcher: IPMatcher, environment: EnvironmentPredicates):
        self.hooks = hooks
        self.matcher = matcher
        self.environment = environment

    def run(self, remote_addr: Optional[str], environment: EnvironmentPredicates | None = None) -> None:
        if not self.matcher.is_authorized(remote_addr):
            _log.debug("configuration skipped for unauthorized address %s", remote_addr)
            return

        env = environment or self.environment
        if self._check(env.is_local, 'local'):
            self.setup_local()
        if self._check(env.is_staging, 'staging'):
            self.setup_staging()
        if self._check(env.is_live, 'live'):
            self.setup_live()

    @staticmethod
    def _check(predicate: Predicate, label: str) -> bool:
        try:
            return bool(predicate())
        except Exception:
            _log.exception("environment predicate is_%s failed; treating as false", label)
            return False

    def setup_local(self) -> None:
        self.hooks.add_filter(CRON_REQUEST, local_cron_timeout, name=LOCAL_CRON_TIMEOUT_FILTER)
        _log.info("running local configuration")
        self.hooks.do_action(CONFIG_LOCAL)

    def setup_staging(self) -> None:
        _log.info("running staging configuration")
        self.hooks.do_action(CONFIG_STAGING)

    def setup_live(self) -> None:
        _log.info("running live configuration")
        self.hooks.do_action(CONFIG_LIVE)
