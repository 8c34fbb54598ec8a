from __future__ import annotations

import logging
import time
from logging.handlers import RotatingFileHandler
from typing import Callable, Optional

from .config import settings


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    logger = logging.getLogger()
    logger.setLevel((level or settings.log_level).upper())

    fmt = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s - %(message)s"
    )

    # Console
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    # Rotating file
    fh = RotatingFileHandler(
        log_file or settings.log_file, maxBytes=2_000_000, backupCount=5
    )
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    # Silence noisy httpx request logging
    logging.getLogger("httpx").setLevel(logging.WARNING)


class ThrottledLogger:
    """Let one record per level through per interval and drop the rest.

    A sustained upstream outage would otherwise log the same failure on every
    client poll. Warnings and errors are gated separately, so retry warnings
    never hide the error that follows them. Only logging is gated; callers
    still raise and retry as usual.
    """

    def __init__(
        self,
        logger: logging.Logger,
        interval_s: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._logger = logger
        self._interval_s = interval_s
        self._clock = clock
        self._last_logged_at: dict[int, float] = {}

    def _emit(self, level: int, msg: str, *args, **kwargs) -> bool:
        now = self._clock()
        last = self._last_logged_at.get(level)
        if last is not None and now - last < self._interval_s:
            return False
        self._last_logged_at[level] = now
        self._logger.log(level, msg, *args, **kwargs)
        return True

    def warning(self, msg: str, *args, **kwargs) -> bool:
        return self._emit(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> bool:
        return self._emit(logging.ERROR, msg, *args, **kwargs)
