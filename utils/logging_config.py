"""
Centralized logging configuration for the bot
Console output plus an optional rotating log file
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
import os


def setup_logging(log_level=None, log_file=None):
    """
    Configure the root logger so every module's getLogger(__name__) shares handlers

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file (enables file logging)

    Returns:
        logging.Logger: The configured root logger
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')
    if log_file is None:
        log_file = os.getenv('LOG_FILE') or None

    numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    detailed_formatter = logging.Formatter(
        fmt='[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    simple_formatter = logging.Formatter(
        fmt='[%(asctime)s] %(levelname)-8s %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(simple_formatter)
    root.addHandler(console_handler)

    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            # 10 MB per file, keep 5 backups
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(detailed_formatter)
            root.addHandler(file_handler)

            root.info(f"File logging enabled: {log_file}")
        except OSError as e:
            root.error(f"Failed to setup file logging: {e}")

    # discord.py is chatty at DEBUG
    logging.getLogger('discord').setLevel(max(numeric_level, logging.INFO))

    return root
