from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

from badgeauth.core.trace import current_trace_id

LOGGER_NAME = "badgeauth"


class TraceIdFilter(logging.Filter):
    """Stamps each record with the request trace id ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = current_trace_id("-")
        return True


def setup_logging(log_dir: str = "logs", *, level: int = logging.INFO) -> logging.Logger:
    os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False
    if not any(isinstance(f, TraceIdFilter) for f in logger.filters):
        logger.addFilter(TraceIdFilter())

    text_path = os.path.abspath(os.path.join(log_dir, "badgeauth.log"))
    if not any(isinstance(h, RotatingFileHandler) and h.baseFilename == text_path for h in logger.handlers):
        for old in [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]:
            logger.removeHandler(old)
            old.close()
        fh = RotatingFileHandler(text_path, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
        fh.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(trace_id)s | %(message)s"))
        logger.addHandler(fh)

    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(sh)

    return logger
