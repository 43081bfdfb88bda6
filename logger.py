# panicsift/logger.py

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

import colorlog


def setup_panicsift_logger(
    log_level=logging.INFO,
    log_to_file=False,
    log_file="~/.panicsift/panicsift.log",
    max_bytes=5 * 1024 * 1024,
    backup_count=5,
    use_color=True
):
    logger = logging.getLogger("panicsift")
    logger.setLevel(log_level)

    # Clear existing handlers if rerun
    if logger.hasHandlers():
        logger.handlers.clear()

    # Console output goes to stderr so it never mixes with the report
    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(log_level)
    if use_color:
        ch.setFormatter(colorlog.ColoredFormatter(
            fmt="%(log_color)s[%(levelname)s]%(reset)s %(name)s - %(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        ))
    else:
        ch.setFormatter(logging.Formatter("[%(levelname)s] %(name)s - %(message)s"))
    logger.addHandler(ch)

    # file handler (rotating)
    if log_to_file:
        log_file = os.path.expanduser(log_file)
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        fh = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count
        )
        fh.setLevel(log_level)
        file_fmt = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        fh.setFormatter(file_fmt)
        logger.addHandler(fh)

    logger.debug("Panicsift logger configured. log_to_file: %s", log_to_file)
    return logger
