"""Logging setup for rdwatch."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rdwatch.config import log_path

FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(level: str = "INFO", path: Path | None = None, console: bool = False) -> None:
    """
    Configure the root logger once.

    Textual owns the terminal while the UI runs, so the console handler is
    off by default and records go to a rotating file.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if root.handlers:
        return

    fmt = logging.Formatter(FORMAT)

    if console:
        ch = logging.StreamHandler()
        ch.setFormatter(fmt)
        root.addHandler(ch)

    path = path or log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(str(path), maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    except OSError:
        if not console:
            root.addHandler(logging.NullHandler())
        return
    fh.setFormatter(fmt)
    root.addHandler(fh)
