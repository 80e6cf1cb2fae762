"""
YAML configuration loader.

Search precedence for ``qc.yaml`` (first match wins)
1. An explicit path argument (``--config`` on the CLI).
2. ``<dataset>/code/config/qc.yaml`` – project-local override.
3. The packaged default shipped inside the wheel.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from importlib.resources import as_file, files
from pydantic import ValidationError

from .schema import QCConfig

_DEFAULT_QC = files("boldqc.resources") / "default_qc.yaml"


def _dataset_local(root: Optional[Path], name: str) -> Optional[Path]:
    """Return ``<root>/code/config/<name>`` or *None* if *root* is ``None``."""
    if root is None:
        return None
    return root / "code" / "config" / name


def _load_yaml(path: Path) -> dict:
    """Read a YAML file, returning an empty dict for an empty document."""
    return yaml.safe_load(path.read_text()) or {}


def resolve_config_path(
    explicit: Optional[Path], dataset_root: Optional[Path]
) -> Path:
    """Return the ``qc.yaml`` that should be loaded.

    Raises:
        FileNotFoundError: *explicit* was given but does not exist.
    """
    if explicit is not None:
        if not explicit.exists():
            raise FileNotFoundError(f"Configuration file not found: {explicit}")
        return explicit
    local = _dataset_local(dataset_root, "qc.yaml")
    if local is not None and local.exists():
        return local
    with as_file(_DEFAULT_QC) as p:
        return Path(p)


def load_config(
    *,
    config_path: Optional[str | Path] = None,
    dataset_root: Optional[str | Path] = None,
) -> QCConfig:
    """Return a fully validated :class:`QCConfig`.

    Raises:
        RuntimeError: When the YAML cannot be parsed or fails validation.
    """
    dataset_root = Path(dataset_root).expanduser().resolve() if dataset_root else None
    config_path = Path(config_path).expanduser().resolve() if config_path else None

    path = resolve_config_path(config_path, dataset_root)
    try:
        return QCConfig(**_load_yaml(path))
    except (ValidationError, yaml.YAMLError, TypeError) as exc:
        raise RuntimeError(f"Invalid configuration – {exc}") from exc
