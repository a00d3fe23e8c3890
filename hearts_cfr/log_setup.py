"""
hearts_cfr/log_setup.py

Console and rotating file logging for a training or generation run.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import LoggingConfig

FILE_FORMAT = "%(asctime)s - %(levelname)-8s - [%(threadName)-12s] - %(name)-25s - %(message)s"
CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logging(
    logging_config: LoggingConfig, run_name: Optional[str] = None
) -> str:
    """
    Installs a console handler and a size-rotated file handler on the root logger.

    Returns:
        Path of the log file.
    """
    run_name = run_name or datetime.now().strftime("%Y%m%d-%H%M%S")
    os.makedirs(logging_config.log_dir, exist_ok=True)
    log_path = os.path.join(
        logging_config.log_dir, f"{logging_config.log_file_prefix}_run_{run_name}.log"
    )

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_level = getattr(logging, logging_config.log_level_console.upper(), logging.INFO)
    file_level = getattr(logging, logging_config.log_level_file.upper(), logging.DEBUG)
    root_logger.setLevel(min(console_level, file_level))

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=logging_config.log_max_bytes,
        backupCount=logging_config.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    root_logger.addHandler(file_handler)

    logging.getLogger(__name__).info("Logging initialized (file: %s).", log_path)
    return log_path
