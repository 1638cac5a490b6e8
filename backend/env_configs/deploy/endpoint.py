from __future__ import annotations

import logging

from env_configs.core.hooks import HaltRequest
from env_configs.core.request import ParsedRequest, is_truthy
from env_configs.core.rewrite import RewriteRules
from env_configs.deploy.dispatcher import ConfigurationDispatcher

_log = logging.getLogger(__name__)

DEPLOY_QUERY_VAR = '__deploy'
DEPLOY_RULE = r'^api/deploy(?:/([a-zA-Z]))?/?$'
DEPLOY_QUERY = f'index?{DEPLOY_QUERY_VAR}=1'


class DeployEndpoint:
    """``/api/deploy`` (optionally followed by one letter) runs the configuration pass.

    The rewrite rule maps the path onto the ``__deploy`` query variable, which
    must also be registered as public or request parsing drops it. Once the
    marker is seen, processing ends with an empty response no matter what the
    dispatcher did.
    """

    def __init__(self, dispatcher: ConfigurationDispatcher, rewrite: RewriteRules):
        self.dispatcher = dispatcher
        self.rewrite = rewrite

    def add_query_vars(self, vars: list) -> list:
        return [*vars, DEPLOY_QUERY_VAR]

    def add_endpoint(self) -> None:
        self.rewrite.add_rule(DEPLOY_RULE, DEPLOY_QUERY, after='top')

    def sniff_requests(self, parsed: ParsedRequest) -> None:
        if not is_truthy(parsed.query_vars.get(DEPLOY_QUERY_VAR)):
            return
        try:
            self.dispatcher.run(parsed.remote_addr)
        except Exception:
            _log.exception("configuration pass failed for %s", parsed.remote_addr)
        raise HaltRequest()
