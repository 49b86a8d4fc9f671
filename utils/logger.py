"""Logging setup for the nodealert.* logger tree."""
import logging
from pathlib import Path

from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(threadName)s): %(message)s"

# Chatty third-party loggers kept at WARNING unless debugging
NOISY_LOGGERS = ("urllib3", "requests", "schedule")


def setup_logging(level="INFO", log_file=None):
    """Attach a rich console handler (and a plain file handler if asked) once."""
    numeric_level = logging.getLevelName(str(level).upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger("nodealert")
    root.setLevel(numeric_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if numeric_level <= logging.DEBUG
                                         else logging.WARNING)

    if root.handlers:
        return root

    root.addHandler(RichHandler(level=numeric_level, rich_tracebacks=True, markup=False,
                                show_path=False))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root.addHandler(file_handler)
    return root
