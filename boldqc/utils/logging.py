"""
Logging set-up shared by every ``boldqc-cli`` command.

Three sinks are wired to the root logger:

* a Rich console handler, quiet unless ``-v`` / ``--debug`` is given;
* ``boldqc.log``, a rotating file of JSON events kept next to the dataset
  (``<dataset>/code/logs``), in ``$BOLDQC_LOG_DIR``, or in the package-local
  ``logs/`` folder for dataset-free commands;
* an optional plain-text copy of the console stream (``--save-logfile``).

Library modules only call ``structlog.get_logger()``; nothing is emitted
through handlers until :func:`setup_logging` has run.
"""

from __future__ import annotations

import atexit
import logging
import logging.handlers
import os
from pathlib import Path
from typing import List, Optional, Tuple

import structlog
from rich.logging import RichHandler

__all__ = ["setup_logging", "log_dir_for"]

LOG_FILE_NAME = "boldqc.log"
_MAX_BYTES = 5_000_000
_BACKUPS = 3


def log_dir_for(dataset_root: Path | None) -> Path:
    """Return the directory that receives :data:`LOG_FILE_NAME`."""
    override = os.environ.get("BOLDQC_LOG_DIR")
    if override:
        return Path(override).expanduser()
    if dataset_root is None:
        return Path(__file__).resolve().parents[1] / "logs"
    return dataset_root / "code" / "logs"


def _levels(verbose: bool, debug: bool) -> Tuple[int, int]:
    """Return ``(console_level, file_level)``."""
    if debug:
        return logging.DEBUG, logging.DEBUG
    return (logging.INFO if verbose else logging.WARNING), logging.INFO


def _build_handlers(
    dataset_root: Path | None,
    text_log: Optional[Path],
    console_lvl: int,
    file_lvl: int,
) -> List[logging.Handler]:
    console = RichHandler(
        level=console_lvl,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        markup=False,
    )

    logdir = log_dir_for(dataset_root)
    logdir.mkdir(parents=True, exist_ok=True)
    rotating = logging.handlers.RotatingFileHandler(
        logdir / LOG_FILE_NAME,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUPS,
        encoding="utf-8",
    )
    rotating.setLevel(file_lvl)

    handlers: List[logging.Handler] = [console, rotating]
    if text_log is not None:
        text_log = text_log.expanduser().resolve()
        text_log.parent.mkdir(parents=True, exist_ok=True)
        mirror = logging.FileHandler(text_log, mode="a", encoding="utf-8")
        mirror.setLevel(console_lvl)
        mirror.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        atexit.register(mirror.close)
        handlers.append(mirror)
    return handlers


def setup_logging(
    *,
    dataset_root: Path | None = None,
    verbose: bool = False,
    debug: bool = False,
    extra_text_log: Optional[Path] = None,
) -> None:
    """Attach the console and file sinks and configure structlog.

    Args:
        dataset_root: BIDS root; selects where ``boldqc.log`` is written.
        verbose: Show INFO events (progress, inputs, cache hits) on the console.
        debug: Show DEBUG events everywhere.
        extra_text_log: Also append console output to this file.
    """
    console_lvl, file_lvl = _levels(verbose, debug)

    # No-op when the root logger already has handlers (e.g. under pytest).
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=_build_handlers(dataset_root, extra_text_log, console_lvl, file_lvl),
    )

    renderer = (
        structlog.dev.ConsoleRenderer()
        if verbose or debug
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min(console_lvl, file_lvl)),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
