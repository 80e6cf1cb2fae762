"""Simple CSV/TSV writers for QC metrics."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List
import os

import numpy as np
import pandas as pd
import structlog

log = structlog.get_logger()

SINGLE_COLUMNS = [
    "id", "n_vols", "n_dropped",
    "mean_FD_mm", "max_FD_mm", "%FD_gt_thresh",
    "mean_DVARS", "max_DVARS", "n_outlier_frames",
    "tSNR_mean", "tSNR_median",
    "bold_path",
]


def write_single_csv(rows: List[Dict[str, object]], csv_path: str | Path) -> None:
    """Write per-run QC metrics to *csv_path*."""
    df = pd.DataFrame(rows, columns=SINGLE_COLUMNS)
    os.makedirs(os.path.dirname(os.path.abspath(csv_path)), exist_ok=True)
    df.to_csv(csv_path, index=False)
    log.info("saved_single_csv", path=str(csv_path))


def write_series_tsv(path: str | Path, **series: np.ndarray) -> None:
    """Write equally long per-frame series as columns of a TSV file."""
    df = pd.DataFrame({name: np.asarray(values) for name, values in series.items()})
    df.index.name = "volume"
    df.to_csv(path, sep="\t", float_format="%.6f")
    log.info("saved_series", path=str(path), columns=list(series))
