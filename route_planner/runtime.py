from __future__ import annotations

import logging
import os


class _ProviderRetryLogFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not record.name.startswith(("googlemaps", "urllib3")):
            return True
        message = record.getMessage().lower()
        if "retrying" in message:
            return False
        if "starting new https connection" in message:
            return False
        return True


def configure_logging(name: str, level: str | None = None) -> logging.Logger:
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    if os.getenv("SUPPRESS_PROVIDER_RETRY_LOGS", "1").strip().lower() not in {"0", "false", "no", "off"}:
        # Propagated records skip logger filters, so attach to the handlers.
        for handler in root_logger.handlers:
            has_filter = any(isinstance(existing, _ProviderRetryLogFilter) for existing in handler.filters)
            if not has_filter:
                handler.addFilter(_ProviderRetryLogFilter())
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level, logging.INFO))
    return logger
