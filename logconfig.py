import logging
import os
import sys
from datetime import date

LOGGER_NAME = "container_exec"

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def init_logging(settings):
    """
    Configure the service logger once, at startup.
    Console mode writes to stdout, file mode to a dated file under LOG_PATH.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(LEVELS.get(settings.log_level.upper(), logging.DEBUG))
    logger.handlers.clear()

    if settings.log_write_mode == "file":
        os.makedirs(settings.log_path, exist_ok=True)
        log_file = os.path.join(settings.log_path, f"container-exec-{date.today().isoformat()}.log")
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stdout)

    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
