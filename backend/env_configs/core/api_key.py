from __future__ import annotations

import hmac
from fastapi import HTTPException, Request, status
from env_configs.core.config import settings

HEADER_NAME = 'x-env-configs-key'
QUERY_PARAM = 'api_key'


def _get_configured_key(request: Request) -> str | None:
    value = getattr(getattr(request.app.state, 'settings', None) or settings, 'api_key', None)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _extract_candidate(header_value: str | None, query_value: str | None) -> str | None:
    candidate = header_value or query_value
    if candidate is None:
        return None
    candidate = candidate.strip()
    return candidate or None


async def require_shared_api_key(request: Request) -> None:
    """Guard management routes; a server without ENV_CONFIGS_API_KEY leaves them open."""
    secret = _get_configured_key(request)
    if not secret:
        return
    provided = _extract_candidate(request.headers.get(HEADER_NAME), request.query_params.get(QUERY_PARAM))
    if not provided:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Shared API key required')
    if not hmac.compare_digest(secret.encode(), provided.encode()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Invalid shared API key')
