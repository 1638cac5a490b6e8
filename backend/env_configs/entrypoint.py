from __future__ import annotations
import logging
import os
from env_configs.core.config import settings
from env_configs.core.logging_config import configure_logging

_log = logging.getLogger('env_configs.entrypoint')


def main():
    configure_logging(settings.log_level)
    _log.info("starting version=%s db=%s environment=%s", settings.version, settings.database_url, settings.environment or 'none')
    for line in settings.diagnostics or []:
        _log.info("[config] %s", line)
    import uvicorn
    from uvicorn.config import LOGGING_CONFIG
    host = os.getenv('ENV_CONFIGS_HOST', '0.0.0.0')
    port = int(os.getenv('ENV_CONFIGS_PORT', '4153'))
    reload = os.getenv('ENV_CONFIGS_RELOAD', '').strip().lower() in {'1', 'true', 'yes', 'on'}
    _log.info("launching uvicorn on %s:%s", host, port)
    try:
        uvicorn.run(
            'env_configs.main:app',
            host=host,
            port=port,
            reload=reload,
            log_level=settings.log_level.lower(),
            log_config=LOGGING_CONFIG,
        )
    except BaseException:  # catch SystemExit too
        _log.exception("uvicorn crashed")
        raise
    finally:
        _log.info("uvicorn stopped")

if __name__ == '__main__':  # pragma: no cover
    main()
