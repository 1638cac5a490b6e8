"""Request parsing that runs ahead of FastAPI routing.

Every inbound request is resolved against the rewrite rules, reduced to the
public query variables and announced through the ``parse_request`` action. A
subscriber may raise :class:`HaltRequest` to end processing right there; the
client then receives an empty ``200`` response and no route runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from fastapi import Request
from fastapi.responses import Response
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from env_configs.core.hooks import HaltRequest, HookRegistry, PARSE_REQUEST, QUERY_VARS
from env_configs.core.rewrite import RewriteRule, RewriteRules

_log = logging.getLogger(__name__)

DEFAULT_QUERY_VARS: tuple[str, ...] = ('doing_cron',)

_FALSY = {'', '0', 'false', 'no', 'off'}


def is_truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() not in _FALSY
    return bool(value)


@dataclass
class ParsedRequest:
    path: str
    query_vars: Dict[str, str] = field(default_factory=dict)
    remote_addr: Optional[str] = None
    matched_rule: Optional[str] = None
    matched_query: Optional[str] = None


def public_query_vars(hooks: HookRegistry) -> set[str]:
    allowed = hooks.apply_filters(QUERY_VARS, list(DEFAULT_QUERY_VARS))
    return {str(v) for v in (allowed or [])}


def parse_request(
    hooks: HookRegistry,
    rewrite: RewriteRules,
    path: str,
    query_params: Mapping[str, str] | None = None,
    remote_addr: Optional[str] = None,
) -> ParsedRequest:
    rule: Optional[RewriteRule]
    rule, rewritten = rewrite.match(path)
    public = public_query_vars(hooks)
    query_vars = {k: v for k, v in rewritten.items() if k in public}
    # explicit query-string values win over values coming from a rewrite rule
    for key, value in (query_params or {}).items():
        if key in public:
            query_vars[key] = value
    return ParsedRequest(
        path=path,
        query_vars=query_vars,
        remote_addr=remote_addr,
        matched_rule=rule.regex if rule else None,
        matched_query=rule.query if rule else None,
    )


class RequestParserMiddleware:
    """HTTP middleware wiring :func:`parse_request` into the FastAPI app.

    Components are read from ``app.state.env_configs`` which the application
    lifespan populates; until then requests pass straight through.
    """

    async def __call__(self, request: Request, call_next):
        container = getattr(request.app.state, 'env_configs', None)
        if container is None:
            return await call_next(request)

        remote_addr = request.client.host if request.client else None
        parsed = parse_request(
            container.hooks,
            container.rewrite,
            request.url.path,
            dict(request.query_params),
            remote_addr,
        )
        try:
            await run_in_threadpool(container.hooks.do_action, PARSE_REQUEST, parsed)
        except HaltRequest:
            _log.debug("request halted path=%s remote=%s", request.url.path, remote_addr)
            return Response(status_code=200)

        response = await call_next(request)
        if container.cron_spawn and 'doing_cron' not in request.query_params and response.background is None:
            response.background = BackgroundTask(container.scheduler.spawn_if_due)
        return response
