from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import List, Optional
from starlette.concurrency import run_in_threadpool
from env_configs.core.api_key import require_shared_api_key
from env_configs.core.dependencies import EnvConfigsDep
import logging

router = APIRouter(prefix='/plugins', tags=['plugins'], dependencies=[Depends(require_shared_api_key)])
logger = logging.getLogger(__name__)


class PluginMetaModel(BaseModel):
    name: str
    version: str
    required_backend: str
    status: str
    network_wide: bool = False
    last_error: Optional[str] = None
    human_name: Optional[str] = None
    activated_at: Optional[str] = None


class ActivateRequest(BaseModel):
    network_wide: bool = False


class ActivationResponse(BaseModel):
    plugin: str
    status: str
    message: Optional[str] = None


@router.get('', response_model=List[PluginMetaModel])
async def list_plugins(env: EnvConfigsDep):
    rows = await run_in_threadpool(env.plugins.installed)
    return [PluginMetaModel(**row.as_dict()) for row in rows]


@router.get('/active', response_model=List[str])
async def list_active(env: EnvConfigsDep):
    return await run_in_threadpool(env.plugins.active_plugins)


@router.post('/{name}/activate', response_model=ActivationResponse)
async def activate_plugin(name: str, env: EnvConfigsDep, payload: ActivateRequest | None = None):
    network_wide = payload.network_wide if payload else False
    result = await run_in_threadpool(env.plugins.activate, name, network_wide)
    if result.status == 'not_found':
        raise HTTPException(status_code=404, detail={'code': 'PLUGIN_NOT_FOUND', 'plugin': name})
    if result.status == 'incompatible':
        raise HTTPException(status_code=409, detail={'code': 'BACKEND_INCOMPATIBLE', 'plugin': name, 'message': result.message})
    if not result.ok:
        logger.error("activation of %s failed: %s", name, result.message)
        raise HTTPException(status_code=500, detail={'code': 'ACTIVATION_FAILED', 'plugin': name, 'message': result.message})
    return ActivationResponse(plugin=result.plugin, status=result.status, message=result.message)


@router.post('/{name}/deactivate', response_model=ActivationResponse)
async def deactivate_plugin(name: str, env: EnvConfigsDep):
    result = await run_in_threadpool(env.plugins.deactivate, name)
    if result.status == 'not_found':
        raise HTTPException(status_code=404, detail={'code': 'PLUGIN_NOT_FOUND', 'plugin': name})
    return ActivationResponse(plugin=result.plugin, status=result.status, message=result.message)
