"""Logging utilities"""

import logging
import platform
import sys
from pathlib import Path
from typing import Optional

APP_NAME = "ScrollStitch"
LOG_FILE_NAME = "scrollstitch.log"

_log_file_path: Optional[Path] = None


def _writable(log_dir: Path) -> bool:
    test_file = log_dir / ".test_write"
    try:
        test_file.write_text("test")
        test_file.unlink()
        return True
    except OSError:
        return False


def get_app_data_directory() -> Path:
    """Per-user application data directory"""
    system = platform.system()
    if system == "Windows":
        return Path.home() / "AppData" / "Local" / APP_NAME
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    return Path.home() / ".local" / "share" / APP_NAME


def get_logs_directory() -> Path:
    """Get logs directory with fallbacks"""
    try:
        log_dir = get_app_data_directory() / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        if _writable(log_dir):
            return log_dir
    except OSError:
        pass

    # Fallback 1: local logs directory
    try:
        log_dir = Path("logs")
        log_dir.mkdir(parents=True, exist_ok=True)
        if _writable(log_dir):
            return log_dir
    except OSError:
        pass

    # Fallback 2: current directory
    return Path(".")


def setup_logger(
    name: str,
    level: int = logging.INFO,
    log_to_file: bool = True
) -> logging.Logger:
    """
    Setup logger with console output and an optional log file.

    Args:
        name: Logger name; "scrollstitch" configures the whole package
        level: Console level; the file always receives DEBUG
        log_to_file: Also write to scrollstitch.log in the logs directory

    Returns:
        The configured logger
    """
    global _log_file_path

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if log_to_file else level)

    if not logger.handlers:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if log_to_file:
            try:
                log_file = get_logs_directory() / LOG_FILE_NAME
                file_handler = logging.FileHandler(str(log_file), mode='a', encoding='utf-8')
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(formatter)
                logger.addHandler(file_handler)

                _log_file_path = log_file
                logger.debug(f"Logging to: {log_file.absolute()}")
            except OSError as e:
                print(f"Could not set up file logging: {e}", file=sys.stderr)

    return logger


def get_log_file_path() -> Optional[Path]:
    """Get the path to the log file"""
    return _log_file_path
