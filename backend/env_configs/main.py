from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from env_configs.core.config import settings
from env_configs.core.environment import EnvironmentPredicates
from env_configs.core.hooks import HookRegistry, INIT
from env_configs.core.logging_config import configure_logging
from env_configs.core.request import RequestParserMiddleware
from env_configs.api import cron as cron_router
from env_configs.api import plugins as plugins_router
from env_configs.api import version as version_router
from env_configs.bootstrap import build_env_configs
from env_configs.db.session import Base, SessionLocal, engine
# table definitions must be imported before create_all
from env_configs.models import cron as _cron_models  # noqa: F401
from env_configs.models import plugin as _plugin_models  # noqa: F401

_log = logging.getLogger(__name__)


def create_app(
    *,
    app_settings=None,
    session_factory: Optional[Callable[[], Session]] = None,
    bind=None,
    hooks: HookRegistry | None = None,
    environment: EnvironmentPredicates | None = None,
    http_client=None,
) -> FastAPI:
    cfg = app_settings or settings
    sessions = session_factory or SessionLocal
    db_bind = bind if bind is not None else engine

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables, compose the configuration components and fire ``init``.

        Components land on ``app.state.env_configs`` where the request parser
        middleware and the routers pick them up.
        """
        configure_logging(cfg.log_level)

        Base.metadata.create_all(bind=db_bind)

        container = build_env_configs(
            cfg,
            sessions,
            hooks=hooks,
            environment=environment,
            http_client=http_client,
        )
        container.register()

        try:
            container.plugins.sync_manifests()
        except Exception:  # manifest problems should not keep the server down
            _log.exception("plugin manifest sync failed")

        container.hooks.do_action(INIT)
        app.state.env_configs = container
        _log.info(
            "env configs ready environment=%s rewrite_rules=%d developer_ips=%d ip_ranges=%d",
            cfg.environment or 'none',
            len(container.rewrite),
            len(cfg.developer_ips),
            len(cfg.ip_ranges),
        )

        yield

        app.state.env_configs = None

    app = FastAPI(title=cfg.app_name, lifespan=lifespan)
    app.state.env_configs = None
    app.state.settings = cfg

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        _log.warning("validation error url=%s errors=%s", request.url, exc.errors())
        return JSONResponse(status_code=422, content={'detail': exc.errors()})

    app.include_router(cron_router.router, prefix=cfg.api_v1_prefix)
    app.include_router(plugins_router.router, prefix=cfg.api_v1_prefix)
    app.include_router(version_router.router, prefix=cfg.api_v1_prefix)

    app.middleware('http')(RequestParserMiddleware())

    @app.get('/')
    async def root():
        return {'status': 'ok', 'app': cfg.app_name}

    return app


app = create_app()
