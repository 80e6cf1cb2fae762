"""Computation of basic fMRI QC metrics from in-memory arrays."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import math
import numpy as np
import structlog

from boldqc.utils.errors import DimensionMismatch, EmptyInput, InvalidShape

log = structlog.get_logger()

# ---------------------------------------------------------------------------
# DVARS
# ---------------------------------------------------------------------------

def compute_dvars(matrix: np.ndarray, first_frame: str = "zero") -> np.ndarray:
    """Return the DVARS series of a ``(T, V)`` signal matrix.

    ``DVARS[t]`` is the root-mean-square over voxels of the frame-to-frame
    difference between rows ``t`` and ``t - 1``. Frame 0 has no predecessor
    and is set to 0.0.

    Args:
        matrix: Signal matrix with frames as rows. It is used as given; any
            normalisation must happen before the call.
        first_frame: ``"zero"`` (default) or ``"mean"``. The latter fills
            frame 0 with the mean of the remaining values, matching tools
            that report DVARS that way.

    Returns:
        ``float64`` array of length ``T``.

    Raises:
        InvalidShape: *matrix* is not 2-D.
        EmptyInput: *matrix* has no rows or no columns.
        ValueError: *first_frame* is not a known convention.
    """
    if first_frame not in ("zero", "mean"):
        raise ValueError(f"Unknown first_frame convention: {first_frame!r}")
    x = np.asarray(matrix, dtype=np.float64)
    if x.ndim != 2:
        raise InvalidShape(f"Signal matrix must be 2-D, got shape {x.shape}")
    T, V = x.shape
    if T == 0:
        raise EmptyInput("Signal matrix has no time points")
    if V == 0:
        raise EmptyInput("Signal matrix has no voxels")
    dvars = np.zeros(T, dtype=np.float64)
    if T > 1:
        diff = np.diff(x, axis=0)
        dvars[1:] = np.sqrt(np.mean(diff * diff, axis=1))
        if first_frame == "mean":
            dvars[0] = dvars[1:].mean()
    return dvars


# ---------------------------------------------------------------------------
# Framewise displacement
# ---------------------------------------------------------------------------

def compute_fd(motion: np.ndarray, rotation_to_mm: float = 50.0) -> np.ndarray:
    """Return Power framewise displacement from a ``(T, 6)`` motion table.

    Columns are ``rx, ry, rz`` in radians followed by ``tx, ty, tz`` in mm.
    Rotations are converted to arc length on a sphere of radius
    *rotation_to_mm* before differencing. ``FD[0]`` is 0.0.

    Raises:
        InvalidShape: *motion* is not 2-D with exactly 6 columns.
        EmptyInput: *motion* has no rows.
        ValueError: *rotation_to_mm* is not a positive finite number.
    """
    if not (math.isfinite(rotation_to_mm) and rotation_to_mm > 0):
        raise ValueError(f"rotation_to_mm must be positive, got {rotation_to_mm}")
    mp = np.asarray(motion, dtype=np.float64)
    if mp.ndim != 2 or mp.shape[1] != 6:
        raise InvalidShape(f"Motion table must have shape (T, 6), got {mp.shape}")
    if mp.shape[0] == 0:
        raise EmptyInput("Motion table has no time points")
    scaled = mp.copy()
    scaled[:, :3] *= rotation_to_mm
    fd = np.zeros(mp.shape[0], dtype=np.float64)
    fd[1:] = np.abs(np.diff(scaled, axis=0)).sum(axis=1)
    return fd


# ---------------------------------------------------------------------------
# tSNR
# ---------------------------------------------------------------------------

def compute_tsnr(matrix: np.ndarray) -> np.ndarray:
    """Return voxelwise temporal SNR (mean over sample std) of *matrix*."""
    x = np.asarray(matrix, dtype=np.float64)
    if x.ndim != 2:
        raise InvalidShape(f"Signal matrix must be 2-D, got shape {x.shape}")
    if x.shape[0] == 0 or x.shape[1] == 0:
        raise EmptyInput("Signal matrix is empty")
    if x.shape[0] < 2:
        return np.full(x.shape[1], np.nan)
    return x.mean(axis=0) / (x.std(axis=0, ddof=1) + 1e-8)


# ---------------------------------------------------------------------------
# Outliers and summaries
# ---------------------------------------------------------------------------

def flag_outlier_frames(
    fd: Optional[np.ndarray] = None,
    dvars: Optional[np.ndarray] = None,
    fd_threshold: Optional[float] = None,
    dvars_threshold: Optional[float] = None,
) -> np.ndarray:
    """Return a boolean mask of frames exceeding the FD or DVARS threshold.

    A series only takes part when its threshold is given as well.
    """
    pairs = [
        (np.asarray(s, dtype=np.float64), thr)
        for s, thr in ((fd, fd_threshold), (dvars, dvars_threshold))
        if s is not None
    ]
    if not pairs:
        raise EmptyInput("No series supplied for outlier detection")
    lengths = {len(s) for s, _ in pairs}
    if len(lengths) > 1:
        raise DimensionMismatch(f"Series lengths differ: {sorted(lengths)}")
    flags = np.zeros(lengths.pop(), dtype=bool)
    for series, thr in pairs:
        if thr is not None:
            with np.errstate(invalid="ignore"):
                flags |= series > thr
    return flags


@dataclass
class SeriesSummary:
    """Scalar summary of a per-frame series."""

    mean: float
    median: float
    max: float
    pct_over: Optional[float] = None


def summarize_series(series: np.ndarray, threshold: Optional[float] = None) -> SeriesSummary:
    """Summarise *series*, ignoring NaNs."""
    s = np.asarray(series, dtype=np.float64)
    valid = s[np.isfinite(s)]
    if valid.size == 0:
        return SeriesSummary(math.nan, math.nan, math.nan, None if threshold is None else math.nan)
    pct = None
    if threshold is not None:
        pct = float(100.0 * np.mean(valid > threshold))
    return SeriesSummary(
        mean=float(valid.mean()),
        median=float(np.median(valid)),
        max=float(valid.max()),
        pct_over=pct,
    )


@dataclass
class RunMetrics:
    """Container for per-run metrics."""

    id: str
    bold_path: str
    n_vols: int
    n_dropped: int = 0
    fd_mean: Optional[float] = None
    fd_max: Optional[float] = None
    fd_pct_over: Optional[float] = None
    mean_dvars: Optional[float] = None
    max_dvars: Optional[float] = None
    n_outliers: Optional[int] = None
    tsnr_mean: Optional[float] = None
    tsnr_median: Optional[float] = None

    def as_row(self) -> dict:
        """Return the CSV row written by :func:`boldqc.qc.report.write_single_csv`."""
        return {
            "id": self.id,
            "n_vols": self.n_vols,
            "n_dropped": self.n_dropped,
            "mean_FD_mm": self.fd_mean,
            "max_FD_mm": self.fd_max,
            "%FD_gt_thresh": self.fd_pct_over,
            "mean_DVARS": self.mean_dvars,
            "max_DVARS": self.max_dvars,
            "n_outlier_frames": self.n_outliers,
            "tSNR_mean": self.tsnr_mean,
            "tSNR_median": self.tsnr_median,
            "bold_path": self.bold_path,
        }
