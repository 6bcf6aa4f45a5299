# -------------------------------------------------------------------------------
# PURPOSE: setup logging
#
#  AUTHOR: Jason G Yates
#    DATE: 03-Dec-2016
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for setting up and configuring logging.

This module provides a helper function to create and configure a logger with
rotating file handlers and optional console output.
"""

import logging
import logging.handlers
from typing import Optional

LOG_MAX_BYTES = 50000
LOG_BACKUP_COUNT = 5


def SetupLogger(
    logger_name: str,
    log_file: Optional[str],
    level: int = logging.INFO,
    stream: bool = False
) -> logging.Logger:
    """
    Configures and returns a logger instance.

    The logger gets a rotating file handler when `log_file` names a file and
    a console handler when `stream` is set. Handlers from an earlier call
    with the same name are removed first, so every master or transport that
    reuses a name does not duplicate output.

    Args:
        logger_name (str): The name of the logger to retrieve.
        log_file (Optional[str]): Path to the log file. None or "" skips
            file logging.
        level (int, optional): The logging level. Defaults to logging.INFO.
        stream (bool, optional): If True, also log to the console.
            Defaults to False.

    Returns:
        logging.Logger: The configured logger instance.
    """
    logger = logging.getLogger(logger_name)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(level)

    if log_file:
        formatter = logging.Formatter("%(asctime)s : %(name)s : %(message)s")
        rotate = logging.handlers.RotatingFileHandler(
            log_file, mode="a", maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT
        )
        rotate.setFormatter(formatter)
        logger.addHandler(rotate)

    if stream:
        # console output is the bare message
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(stream_handler)

    return logger
