import os
import logging
from datetime import datetime
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: int | str) -> int:
    """Translate a level name such as ``"debug"`` into its numeric value."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def setup_logging(
    logger_name: str,
    logger_level: int | str = logging.DEBUG,
    file_handler_level: int | str = logging.DEBUG,
    console_handler_level: int | str = logging.ERROR,
    log_dir: str = "logs",
    log_file_name: Optional[str] = None,
    add_timestamp_to_log_file: bool = True,
    log_to_file: bool = True,
    encoding: str = "utf-8",
    force_reconfig: bool = False,
) -> logging.Logger:
    """
    Set up a logger with file and console handlers.

    Args:
        logger_name: Name of the logger.
        logger_level: Logging level for the logger.
        file_handler_level: Logging level for the file handler.
        console_handler_level: Logging level for the console handler.
        log_dir: Directory to store log files.
        log_file_name: Name of the log file. If None, defaults to `logger_name`.log.
        add_timestamp_to_log_file: Whether to add a timestamp to the log file name.
        log_to_file: Whether to attach the file handler at all.
        encoding: Encoding for the file handler.
        force_reconfig: If True, remove existing handlers and reconfigure.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(resolve_level(logger_level))

    if force_reconfig and logger.hasHandlers():
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_to_file:
        os.makedirs(log_dir, exist_ok=True)

        if log_file_name is None:
            log_file_name = f"{logger_name}.log"

        if add_timestamp_to_log_file:
            base, ext = os.path.splitext(log_file_name)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file_path = os.path.join(log_dir, f"{base}_{timestamp}{ext}")
        else:
            log_file_path = os.path.join(log_dir, log_file_name)

        file_handler = logging.FileHandler(log_file_path, mode="a", encoding=encoding)
        file_handler.setLevel(resolve_level(file_handler_level))
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(resolve_level(console_handler_level))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger
