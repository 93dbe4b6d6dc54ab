import logging

from scrollstitch.utils import logger as logger_module
from scrollstitch.utils.logger import LOG_FILE_NAME, get_log_file_path, setup_logger


def test_log_file_receives_debug_messages(tmp_path, monkeypatch):
    monkeypatch.setattr(logger_module, "get_app_data_directory", lambda: tmp_path)
    log = setup_logger("scrollstitch.tests.file_logging", logging.WARNING)
    try:
        log.debug("keyframe scan started")
        for handler in log.handlers:
            handler.flush()

        log_path = get_log_file_path()
        assert log_path == tmp_path / "logs" / LOG_FILE_NAME
        assert "keyframe scan started" in log_path.read_text(encoding="utf-8")
    finally:
        for handler in list(log.handlers):
            handler.close()
            log.removeHandler(handler)


def test_console_only_logger_keeps_level():
    log = setup_logger("scrollstitch.tests.console_only", logging.WARNING, log_to_file=False)
    try:
        assert log.level == logging.WARNING
        assert len(log.handlers) == 1
    finally:
        for handler in list(log.handlers):
            log.removeHandler(handler)
