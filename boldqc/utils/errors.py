"""Exceptions raised by the QC metric functions when inputs are unusable."""

from __future__ import annotations


class QCError(RuntimeError):
    """Base class for precondition failures in the QC core."""

    pass


class DimensionMismatch(QCError):
    """Spatial shape of a volume and its mask (or two series) disagree."""

    pass


class EmptyMask(QCError):
    """The mask selects no voxel."""

    pass


class InvalidShape(QCError):
    """An array has the wrong number of dimensions or columns."""

    pass


class EmptyInput(QCError):
    """No time points (or no voxels) were supplied."""

    pass


__all__ = ["QCError", "DimensionMismatch", "EmptyMask", "InvalidShape", "EmptyInput"]
