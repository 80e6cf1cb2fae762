"""
Pydantic models that mirror the YAML configuration consumed by *boldqc*.

The classes in this module define a strongly-typed representation of the
``qc.yaml`` file so that the rest of the codebase works with validated
objects instead of ad-hoc dictionaries.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# --------------------------------------------------------------------------- #
# 1.  Per-metric sections                                                     #
# --------------------------------------------------------------------------- #


class FDSettings(BaseModel):
    """Framewise-displacement options.

    Attributes:
        source: Where FD comes from. ``auto`` prefers a confounds TSV and
            falls back to a motion-parameter table.
        motion_format: Column layout of motion tables (``fsl`` or ``spm``).
        head_radius_mm: Sphere radius converting rotations to millimetres.
        threshold_mm: Frames above this FD are flagged.
    """

    model_config = ConfigDict(extra="forbid")

    source: Literal["auto", "confounds", "motion"] = "auto"
    motion_format: Literal["fsl", "spm"] = "fsl"
    head_radius_mm: float = Field(50.0, gt=0)
    threshold_mm: float = Field(0.5, ge=0)


class DVARSSettings(BaseModel):
    """DVARS options."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    threshold: Optional[float] = Field(None, ge=0)
    first_frame: Literal["zero", "mean"] = "zero"


class TSNRSettings(BaseModel):
    """Temporal SNR options."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    write_nifti: bool = False


class CacheSettings(BaseModel):
    """Artifact cache options; ``directory`` defaults to ``<dataset>/qc/.cache``."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    directory: Optional[Path] = None


# --------------------------------------------------------------------------- #
# 2.  Top-level model – complete validated config                             #
# --------------------------------------------------------------------------- #


class QCConfig(BaseModel):
    """Root configuration object consumed by the rest of *boldqc*.

    Attributes:
        version: Version string of the configuration schema.
        drop_volumes: Initial volumes discarded before any metric.
        update_every: Frames between progress messages.
    """

    model_config = ConfigDict(extra="forbid")

    version: str
    drop_volumes: int = Field(0, ge=0)
    update_every: int = Field(50, gt=0)
    fd: FDSettings = Field(default_factory=FDSettings)
    dvars: DVARSSettings = Field(default_factory=DVARSSettings)
    tsnr: TSNRSettings = Field(default_factory=TSNRSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
