from __future__ import annotations

import logging
from pathlib import Path

LOGGER_NAME = "autoreplay"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def build_logger(log_dir: Path | None = None, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    logger.propagate = False
    handler: logging.Handler = logging.StreamHandler()
    if log_dir is not None:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_dir / "autoreplay.log", encoding="utf-8")
        except OSError:
            # Fallback to stderr logging if file logger cannot be initialized.
            pass
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
