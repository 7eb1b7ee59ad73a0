"""Logging for designcrew.

Every module logs under the ``designcrew`` tree. The console shows WARNING
and above (INFO with ``--verbose``); a rotating file under
``~/.designcrew/logs`` always keeps the INFO trail of each run so a failed
build can be inspected afterwards. ``DESIGNCREW_LOG_FILE`` points the file
elsewhere, ``off`` disables it.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union

__all__ = ["setup_logger", "get_logger", "task_logger"]

ROOT_LOGGER = "designcrew"
LOG_FILE_ENV = "DESIGNCREW_LOG_FILE"
DEFAULT_LOG_FILE = Path("~/.designcrew/logs/designcrew.log").expanduser()
CONSOLE_FORMAT = "[%(levelname).1s] %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024  # 5MB
LOG_BACKUP_COUNT = 3


def setup_logger(
    verbose: bool = False,
    log_file: Union[str, Path, bool, None] = None,
    name: str = ROOT_LOGGER,
) -> logging.Logger:
    """(Re)configure the package logger; safe to call once per command.

    ``log_file`` is ``None`` for the env/default location, ``False`` for no
    file, or an explicit path.
    """
    logger = logging.getLogger(name)
    level = logging.INFO if verbose else logging.WARNING

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(level)
    logger.propagate = False

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    log_path = _resolve_log_path(log_file)
    if log_path is not None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=MAX_LOG_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning("File logging disabled, cannot open %s: %s", log_path, e)
        else:
            file_handler.setLevel(logging.INFO)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            logger.addHandler(file_handler)
            logger.setLevel(logging.INFO)

    # Keep third-party libraries quiet unless they emit warnings or errors.
    logging.getLogger("litellm").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class _TaskAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"[{self.extra['task']}] {msg}", kwargs


def task_logger(logger: logging.Logger, task_name: str) -> logging.LoggerAdapter:
    """Logger whose lines are prefixed with the task name.

    Tasks of one tier log concurrently; the prefix keeps their lines apart.
    """
    return _TaskAdapter(logger, {"task": task_name})


def _resolve_log_path(log_file: Union[str, Path, bool, None]) -> Path | None:
    if log_file is False:
        return None
    if log_file is None or log_file is True:
        env = os.environ.get(LOG_FILE_ENV, "").strip()
        if env.lower() in ("off", "none", "0", "false"):
            return None
        return Path(env).expanduser() if env else DEFAULT_LOG_FILE
    return Path(log_file).expanduser()
