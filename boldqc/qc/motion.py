"""Readers for motion-parameter tables and confound files."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
import structlog

from boldqc.utils.errors import EmptyInput, InvalidShape

log = structlog.get_logger()

MOTION_FORMATS = ("fsl", "spm")

# Column permutation that brings each format to ``rx ry rz tx ty tz``.
_TO_CANONICAL = {
    "fsl": [0, 1, 2, 3, 4, 5],
    "spm": [3, 4, 5, 0, 1, 2],
}

FD_COLUMNS = ("framewise_displacement", "FramewiseDisplacement", "FD", "fd")


def load_motion_params(path: str | Path, fmt: str = "fsl") -> np.ndarray:
    """Return a ``(T, 6)`` motion table with rotations first.

    Args:
        path: Plain-text file with one whitespace-separated row of six
            numbers per volume.
        fmt: ``"fsl"`` for MCFLIRT ``.par`` files (rotations first) or
            ``"spm"`` for ``rp_*.txt`` files (translations first).

    Raises:
        ValueError: *fmt* is not a known format.
        InvalidShape: Rows do not hold exactly six numbers, or differ in length.
        EmptyInput: The file contains no rows.
    """
    if fmt not in _TO_CANONICAL:
        raise ValueError(f"Unknown motion format {fmt!r}; expected one of {MOTION_FORMATS}")
    try:
        mp = np.loadtxt(path, dtype=np.float64, ndmin=2)
    except ValueError as exc:
        # ragged rows or non-numeric fields
        raise InvalidShape(f"{path}: {exc}") from exc
    if mp.size == 0:
        raise EmptyInput(f"No motion parameters in {path}")
    if mp.shape[1] != 6:
        raise InvalidShape(f"{path} has {mp.shape[1]} columns, expected 6")
    log.debug("motion_params_loaded", path=str(path), fmt=fmt, n_vols=mp.shape[0])
    return mp[:, _TO_CANONICAL[fmt]]


def fd_from_confounds(conf_path: str | Path) -> Optional[np.ndarray]:
    """Return FD series from a confounds TSV produced by fMRIPrep."""
    try:
        df = pd.read_csv(conf_path, sep="\t")
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError):
        log.warning("Could not read confounds", path=str(conf_path))
        return None
    for col in FD_COLUMNS:
        if col in df.columns:
            data = pd.to_numeric(df[col], errors="coerce").to_numpy(dtype="float64")
            if data.size and not np.isfinite(data[0]):
                data[0] = 0.0
            return data
    log.warning("No FD column found in confounds", path=str(conf_path))
    return None
