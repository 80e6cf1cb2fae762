"""User-facing console helpers for QC metrics."""
from __future__ import annotations

import os
import structlog

log = structlog.get_logger()


def log_header(metrics: list[str], n_bolds: int) -> None:
    """Display a top summary banner for the run."""
    title = " | ".join(metrics)
    line = "─" * max(40, len(title))  # unicode box drawing '─'
    log.info(title)
    log.info(line)
    log.info(f"Found {n_bolds} BOLD file(s)")


def log_inputs(bold: str, mask: str, motion: str | None) -> None:
    """List the files used for a single run."""
    log.info("Inputs:")
    log.info(f"  BOLD  : {os.path.basename(bold)}")
    log.info(f"  Mask  : {os.path.basename(mask)}")
    log.info(f"  Motion: {os.path.basename(motion) if motion else '<none>'}")


def log_metric_start(run_id: str, metric: str) -> None:
    """Announce the start of a metric computation for a run."""
    log.info(f"▶ {run_id} {metric}")  # ▶ arrow


def log_progress(desc: str, vol: int, total: int) -> None:
    """Log a progress update for streaming computations."""
    pct = vol / total * 100.0
    log.info(f"  Progress : {vol}/{total} ({pct:.1f}%)", metric=desc)
