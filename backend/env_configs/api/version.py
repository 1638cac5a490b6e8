from typing import Any, Dict

from fastapi import APIRouter, Request

from env_configs.core.config import settings
from env_configs.core.environment import normalize_environment

router = APIRouter()


def get_version_payload(cfg=None) -> Dict[str, Any]:
    cfg = cfg or settings
    return {
        'version': cfg.version,
        'environment': normalize_environment(cfg.environment),
    }


@router.get('/version')
async def version(request: Request):
    return get_version_payload(getattr(request.app.state, 'settings', None))
