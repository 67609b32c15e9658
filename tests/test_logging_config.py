import logging

import pytest

from studysync.utils import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_category_logs_are_split(tmp_path, restore_root_logger):
    log_dir = setup_logging(tmp_path / "logs")
    logging.getLogger("studysync.sync.selector").info("sync line")
    logging.getLogger("studysync.server.hub").info("server line")
    logging.getLogger("studysync.server.app").error("boom")
    for handler in logging.getLogger().handlers:
        handler.flush()

    sync_log = (log_dir / "sync.log").read_text(encoding="utf-8")
    server_log = (log_dir / "server.log").read_text(encoding="utf-8")
    assert "sync line" in sync_log and "server line" not in sync_log
    assert "server line" in server_log and "sync line" not in server_log
    assert "boom" in (log_dir / "error.log").read_text(encoding="utf-8")
    assert "sync line" in (log_dir / "app.log").read_text(encoding="utf-8")


def test_log_dir_from_env(tmp_path, monkeypatch, restore_root_logger):
    monkeypatch.setenv("STUDYSYNC_LOG_DIR", str(tmp_path / "env-logs"))
    monkeypatch.setenv("ENGINEIO_LOG_LEVEL", "error")
    assert setup_logging() == tmp_path / "env-logs"
    assert (tmp_path / "env-logs" / "app.log").exists()
    assert logging.getLogger("socketio").level == logging.ERROR
