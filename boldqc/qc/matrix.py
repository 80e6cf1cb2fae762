"""Voxel-by-time signal matrices extracted from 4-D volumes.

Columns follow NumPy's C-order enumeration of the ``(x, y, z)`` grid, so the
same mask always maps a given voxel to the same column index.
"""

from __future__ import annotations

import numpy as np
import structlog

from boldqc.qc.display import log_progress
from boldqc.utils.errors import DimensionMismatch, EmptyInput, EmptyMask, InvalidShape

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Mask handling
# ---------------------------------------------------------------------------

def _as_mask(mask: np.ndarray) -> np.ndarray:
    """Return *mask* as a boolean 3-D array, rejecting empty masks."""
    m = np.asarray(mask)
    if m.ndim != 3:
        raise InvalidShape(f"Mask must be 3-D, got {m.ndim}-D array of shape {m.shape}")
    m = m != 0
    if not m.any():
        raise EmptyMask("Mask selects no voxels")
    return m


def mask_coordinates(mask: np.ndarray) -> np.ndarray:
    """Return the ``(x, y, z)`` coordinate of every matrix column, in column order."""
    return np.argwhere(_as_mask(mask))


# ---------------------------------------------------------------------------
# Matrix construction
# ---------------------------------------------------------------------------

def build_signal_matrix(volume: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Return the ``(T, V)`` matrix of in-mask intensities.

    Args:
        volume: 4-D array indexed ``(x, y, z, t)``.
        mask: 3-D array; nonzero voxels are kept.

    Returns:
        ``float64`` array with one row per frame (acquisition order) and one
        column per masked voxel.

    Raises:
        InvalidShape: *volume* is not 4-D or *mask* is not 3-D.
        DimensionMismatch: Spatial shapes of *volume* and *mask* differ.
        EmptyMask: *mask* has no nonzero voxel.
    """
    vol = np.asarray(volume)
    if vol.ndim != 4:
        raise InvalidShape(f"Volume must be 4-D, got {vol.ndim}-D array of shape {vol.shape}")
    m = _as_mask(mask)
    if vol.shape[:3] != m.shape:
        raise DimensionMismatch(
            f"Mask shape {m.shape} does not match volume {vol.shape[:3]}"
        )
    # vol[m] is (V, T) in C-order over the masked voxels
    return np.ascontiguousarray(vol[m].T, dtype=np.float64)


def stream_signal_matrix(
    dataobj, mask: np.ndarray, update_every: int = 50, desc: str | None = None
) -> np.ndarray:
    """Build the signal matrix one frame at a time from a lazy array proxy.

    *dataobj* is anything indexable as ``dataobj[..., t]`` with a 4-D
    ``shape`` (typically ``nibabel`` ``img.dataobj``), so only one frame is
    held in memory besides the output.
    """
    shape = tuple(dataobj.shape)
    if len(shape) != 4:
        raise InvalidShape(f"Volume must be 4-D, got shape {shape}")
    m = _as_mask(mask)
    if shape[:3] != m.shape:
        raise DimensionMismatch(f"Mask shape {m.shape} does not match volume {shape[:3]}")
    T = shape[3]
    out = np.empty((T, int(m.sum())), dtype=np.float64)
    for t in range(T):
        out[t] = np.asarray(dataobj[..., t], dtype=np.float64)[m]
        if ((t + 1) % update_every == 0) or (t + 1 == T):
            log_progress(desc or "matrix", t + 1, T)
    return out


def unmask(values: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Scatter per-voxel *values* back onto the mask grid.

    A length-``V`` vector gives a 3-D volume; a ``(T, V)`` matrix gives a 4-D
    volume with time last. Voxels outside the mask are zero.
    """
    m = _as_mask(mask)
    vals = np.asarray(values)
    nvox = int(m.sum())
    if vals.shape[-1] != nvox:
        raise DimensionMismatch(f"{vals.shape[-1]} values for a mask of {nvox} voxels")
    if vals.ndim == 1:
        out = np.zeros(m.shape, dtype=vals.dtype)
        out[m] = vals
        return out
    if vals.ndim == 2:
        out = np.zeros(m.shape + (vals.shape[0],), dtype=vals.dtype)
        out[m] = vals.T
        return out
    raise InvalidShape(f"Expected a vector or (T, V) matrix, got shape {vals.shape}")


def drop_initial_volumes(array: np.ndarray, n: int, axis: int = -1) -> np.ndarray:
    """Return *array* without its first *n* frames along *axis*.

    Volumes use ``axis=-1`` (time last); motion tables and signal matrices
    use ``axis=0``.
    """
    if n < 0:
        raise ValueError(f"Number of volumes to drop must be >= 0, got {n}")
    arr = np.asarray(array)
    if n == 0:
        return arr
    frames = arr.shape[axis]
    if n >= frames:
        raise EmptyInput(f"Cannot drop {n} volume(s) from a series of {frames}")
    log.debug("drop_initial_volumes", n=n, frames=frames)
    return np.take(arr, np.arange(n, frames), axis=axis)


__all__ = [
    "build_signal_matrix",
    "stream_signal_matrix",
    "mask_coordinates",
    "unmask",
    "drop_initial_volumes",
]
