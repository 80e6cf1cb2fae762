"""Where QC outputs go inside a BIDS dataset.

Every run gets ``<dataset>/qc/<dir of the run relative to the dataset>/<stem>``;
cached arrays live in ``<dataset>/qc/.cache``.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import structlog

log = structlog.get_logger()

QC_DIRNAME = "qc"


def find_dataset_root_upwards(start: Path) -> Optional[Path]:
    """Return the closest directory at or above *start* holding ``dataset_description.json``."""
    here = start.resolve()
    if here.is_file():
        here = here.parent
    return next(
        (d for d in (here, *here.parents) if (d / "dataset_description.json").is_file()),
        None,
    )


def dataset_root_or_raise(start: Path) -> Path:
    """Like :func:`find_dataset_root_upwards` but a miss is an error.

    Raises:
        FileNotFoundError: *start* is not inside a BIDS dataset.
    """
    root = find_dataset_root_upwards(start)
    if root is None:
        log.error("dataset_root_missing", start=str(start))
        raise FileNotFoundError(f"{start} is not inside a BIDS dataset")
    return root


def qc_run_dir(bold_path: Path, *, stem: Optional[str] = None) -> Path:
    """Return the per-run output directory for *bold_path* (not created)."""
    bold = bold_path.resolve()
    root = dataset_root_or_raise(bold)
    name = stem or bold.name.replace(".nii.gz", "")
    out = root / QC_DIRNAME / bold.parent.relative_to(root) / name
    log.debug("qc_run_dir", bold=str(bold), dir=str(out))
    return out


def default_cache_dir(dataset_root: Path) -> Path:
    """Return the dataset-level artifact cache directory."""
    return dataset_root / QC_DIRNAME / ".cache"


__all__ = [
    "find_dataset_root_upwards",
    "dataset_root_or_raise",
    "qc_run_dir",
    "default_cache_dir",
]
