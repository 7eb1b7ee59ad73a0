"""Tests for logger setup and task-scoped log lines."""

import logging

import pytest

from designcrew import logger as logmod
from designcrew.logger import get_logger, setup_logger, task_logger


@pytest.fixture(autouse=True)
def clean_logger():
    _reset()
    yield
    _reset()


def _reset():
    root = logging.getLogger("designcrew")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)


def _file_handlers(logger):
    return [h for h in logger.handlers if isinstance(h, logging.FileHandler)]


class TestSetupLogger:
    def test_console_level_follows_verbose(self):
        quiet = setup_logger(verbose=False, log_file=False)
        assert quiet.handlers[0].level == logging.WARNING
        loud = setup_logger(verbose=True, log_file=False)
        assert loud.handlers[0].level == logging.INFO
        assert len(loud.handlers) == 1

    def test_file_keeps_info_trail(self, tmp_path):
        path = tmp_path / "logs" / "run.log"
        logger = setup_logger(verbose=False, log_file=path)
        get_logger("designcrew.crew.engine").info("tier 1 started")
        for handler in logger.handlers:
            handler.flush()
        assert "tier 1 started" in path.read_text()

    def test_env_path_and_off(self, tmp_path, monkeypatch):
        monkeypatch.setenv(logmod.LOG_FILE_ENV, str(tmp_path / "env.log"))
        handlers = _file_handlers(setup_logger())
        assert handlers[0].baseFilename == str(tmp_path / "env.log")
        monkeypatch.setenv(logmod.LOG_FILE_ENV, "off")
        assert _file_handlers(setup_logger()) == []

    def test_unwritable_log_dir_disables_file(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        logger = setup_logger(log_file=blocker / "logs" / "run.log")
        assert _file_handlers(logger) == []
        assert len(logger.handlers) == 1


class TestTaskLogger:
    def test_prefixes_task_name(self, caplog):
        base = get_logger("designcrew.crew.executor")
        with caplog.at_level(logging.ERROR, logger="designcrew.crew.executor"):
            task_logger(base, "button").error("failed: %s", "boom")
        assert "[button] failed: boom" in caplog.text
