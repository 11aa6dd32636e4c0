# another_i/utils/logging.py

import logging
from pathlib import Path

from another_i.config.settings import load_settings

_settings = load_settings()

LOG_DIR = Path(_settings.log_dir)
LOG_DIR.mkdir(parents=True, exist_ok=True)
LOG_FILE = LOG_DIR / "another_i.log"


def get_logger(name: str = "another_i") -> logging.Logger:
    """
    Return a logger that logs both to file and console.
    Avoids adding duplicate handlers on repeated imports.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger  # avoid duplicate handlers

    level = getattr(logging, _settings.log_level, logging.INFO)
    logger.setLevel(level)

    fh = logging.FileHandler(LOG_FILE, encoding="utf-8")
    fh.setLevel(level)

    # Console handler (optional but handy while developing)
    ch = logging.StreamHandler()
    ch.setLevel(level)

    fmt = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    fh.setFormatter(fmt)
    ch.setFormatter(fmt)

    logger.addHandler(fh)
    logger.addHandler(ch)
    return logger
