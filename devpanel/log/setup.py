import sys
import logging
from pathlib import Path
from typing import Optional
from logging.handlers import RotatingFileHandler

import devpanel.settings as default_settings

LOG_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'


class MainFormatter(logging.Formatter):
    """A custom formatter to handle regular logs and raw subprocess logs."""

    def __init__(self) -> None:
        super().__init__(LOG_FORMAT)

    def format(self, record):
        # Child process output is already formatted by the child.
        # The 'proc.' prefix is used by log_process_output in process_utils.py
        if record.name.startswith('proc.'):
            return f"[{record.name[5:]}] {record.getMessage()}"
        return super().format(record)

def setup_logging(console_level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """
    Configures the root logger for the application.
    This sets up handlers for the console and a size-rotated log file,
    clearing any previously configured handlers to prevent duplication.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    :param log_file: Path of the log file. Defaults to LOG_FILE_PATH from settings.
    """
    log_file = Path(log_file or default_settings.LOG_FILE_PATH)

    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers to prevent re-adding them on re-runs
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    # --- File Handler (always enabled for all levels) ---
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=default_settings.LOG_FILE_MAX_BYTES,
            backupCount=default_settings.LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(MainFormatter())
        root_logger.addHandler(file_handler)
    except OSError as e:
        root_logger.error(f"Failed to initialize file logging handler at '{log_file}': {e}. Logging to file will be disabled.")
