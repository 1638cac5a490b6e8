from __future__ import annotations

import logging

# Access-log lines produced by the self-issued cron request fire after almost
# every request once events are due; they drown out the useful output.
_CRON_SNIPPETS: tuple[str, ...] = (
    "/cron/run?doing_cron=",
    "doing_cron=",
)

_NOISY_LOGGERS: tuple[str, ...] = (
    "httpx",
    "httpcore",
    "httpcore.connection",
    "httpcore.http11",
    "urllib3",
    "urllib3.connectionpool",
)


class _SuppressCronSpawnFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - logging hook
        try:
            message = record.getMessage()
        except Exception:
            return True
        for snippet in _CRON_SNIPPETS:
            if snippet in message:
                return False
        return True


_CRON_FILTER = _SuppressCronSpawnFilter()


def _ensure_filter(logger: logging.Logger) -> None:
    for existing in logger.filters:
        if existing is _CRON_FILTER:
            return
    logger.addFilter(_CRON_FILTER)


def _ensure_stream_handler(logger: logging.Logger) -> None:
    handler_exists = any(isinstance(h, logging.StreamHandler) for h in logger.handlers)
    if handler_exists:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
    logger.addHandler(handler)


def configure_logging(level_name: str | None = None) -> None:
    """Configure the root logger and quieten the cron self-request chatter."""

    try:
        lvl = getattr(logging, (level_name or 'INFO').upper(), logging.INFO)
    except Exception:
        lvl = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(lvl)
    _ensure_stream_handler(root_logger)

    for noisy_name in _NOISY_LOGGERS:
        logger = logging.getLogger(noisy_name)
        if logger.level < logging.WARNING:
            logger.setLevel(logging.WARNING)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        _ensure_filter(logger)
