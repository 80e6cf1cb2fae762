"""Thin nibabel helpers for reading BOLD runs and masks."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import nibabel as nib
import numpy as np
import structlog

from boldqc.qc.matrix import unmask
from boldqc.utils.errors import InvalidShape

log = structlog.get_logger()


def load_bold(path: str | Path):
    """Return the nibabel image for a 4-D BOLD run."""
    img = nib.load(str(path))
    if len(img.shape) != 4:
        raise InvalidShape(f"{path} is not a 4-D image (shape {img.shape})")
    return img


def load_mask(
    mask_path: Optional[str | Path], bold_path: str | Path, allow_naive: bool = False
) -> np.ndarray:
    """Return the boolean brain mask for *bold_path*.

    *mask_path* is read when given. When it is missing or nibabel cannot read
    it, ``allow_naive=True`` falls back to voxels whose mean BOLD signal is
    positive; otherwise the lookup fails.

    Raises:
        FileNotFoundError: No usable mask and the fallback is not allowed.
    """
    if mask_path:
        try:
            return np.asanyarray(nib.load(str(mask_path)).dataobj) != 0
        except (OSError, nib.filebasedimages.ImageFileError) as exc:
            log.warning("Failed to load mask", mask=str(mask_path))
            if not allow_naive:
                raise FileNotFoundError(f"Unreadable mask {mask_path}") from exc
    if not allow_naive:
        raise FileNotFoundError(f"Mask not found for {bold_path}")
    log.info("naive_mask", bold=str(bold_path))
    img = load_bold(bold_path)
    return img.get_fdata(dtype="float32").mean(axis=3) > 0


def save_map(values: np.ndarray, mask: np.ndarray, reference, path: str | Path) -> Path:
    """Write per-voxel *values* as a NIfTI volume aligned with *reference*."""
    vol = unmask(np.asarray(values, dtype="float32"), mask)
    out = Path(path)
    nib.save(nib.Nifti1Image(vol, reference.affine, reference.header), str(out))
    log.info("saved_map", path=str(out))
    return out
