"""Logging setup for the command-line tool.

Log records go to the console (stderr) and to ``<log_directory>/scan.log``
with the same layout::

    [2024-05-01 12:00:00] WARNING: /srv/eicar.com IS INFECTED! Viruses: Eicar-Test-Signature
"""
from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILENAME = "scan.log"

# Marks handlers installed here so repeated calls replace rather than stack them.
_HANDLER_ATTR = "_clamsweep_handler"


def configure_logging(log_directory: str | Path | None, level: str = "INFO") -> Path | None:
    """Attach console and file handlers to the root logger.

    Args:
        log_directory: Directory for ``scan.log``; created if missing.
            ``None`` disables the file handler.
        level: Root log level name.

    Returns:
        The path of the log file, or ``None`` when file logging is off.

    Raises:
        OSError: If the log directory or file cannot be created.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    setattr(console, _HANDLER_ATTR, True)
    root.addHandler(console)

    log_file: Path | None = None
    if log_directory is not None:
        directory = Path(log_directory)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / LOG_FILENAME
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_ATTR, True)
        root.addHandler(file_handler)

    root.setLevel(level.upper())
    return log_file
