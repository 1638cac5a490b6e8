"""
FastAPI dependencies exposing the composed configuration components to routers.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from env_configs.bootstrap import EnvConfigs


def get_env_configs(request: Request) -> EnvConfigs:
    """Components built by the application lifespan."""
    container = getattr(request.app.state, 'env_configs', None)
    if container is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail='Application is still starting')
    return container


EnvConfigsDep = Annotated[EnvConfigs, Depends(get_env_configs)]
