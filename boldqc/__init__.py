"""
boldqc package initialisation.

Exposes the version string resolved from the installed distribution metadata
and re-exports the core QC functions so call-sites can simply do::

    from boldqc import build_signal_matrix, compute_dvars, compute_fd
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("boldqc")
except PackageNotFoundError:
    # Source tree without an installed wheel.
    __version__ = "0.0.0"

from .qc import build_signal_matrix, compute_dvars, compute_fd  # noqa: E402
from .config import load_config  # noqa: E402

__all__: list[str] = [
    "build_signal_matrix",
    "compute_dvars",
    "compute_fd",
    "load_config",
    "__version__",
]
