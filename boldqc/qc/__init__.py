"""Signal-matrix construction and per-frame fMRI quality-control metrics."""

from .matrix import (
    build_signal_matrix,
    stream_signal_matrix,
    mask_coordinates,
    unmask,
    drop_initial_volumes,
)
from .metrics import (
    compute_dvars,
    compute_fd,
    compute_tsnr,
    flag_outlier_frames,
    summarize_series,
    RunMetrics,
    SeriesSummary,
)
from .motion import load_motion_params, fd_from_confounds

__all__ = [
    'build_signal_matrix', 'stream_signal_matrix', 'mask_coordinates', 'unmask',
    'drop_initial_volumes', 'compute_dvars', 'compute_fd', 'compute_tsnr',
    'flag_outlier_frames', 'summarize_series', 'RunMetrics', 'SeriesSummary',
    'load_motion_params', 'fd_from_confounds',
]
