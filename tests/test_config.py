"""Smoke tests for the config loader."""
from pathlib import Path

import pytest
import yaml
from importlib.resources import files

from boldqc import load_config


def test_default_yaml_loads():
    """Loading the built-in default YAML should succeed."""
    cfg = load_config()
    with files("boldqc.resources").joinpath("default_qc.yaml").open() as fh:
        expected_version = yaml.safe_load(fh)["version"]
    assert cfg.version == expected_version
    assert cfg.fd.head_radius_mm == 50.0
    assert cfg.dvars.first_frame == "zero"
    assert cfg.drop_volumes == 0


def test_dataset_local_override(tmp_path: Path):
    """``<dataset>/code/config/qc.yaml`` wins over the packaged default."""
    cfg_dir = tmp_path / "code" / "config"
    cfg_dir.mkdir(parents=True)
    (cfg_dir / "qc.yaml").write_text(
        "version: '1.0'\ndrop_volumes: 4\nfd:\n  head_radius_mm: 80\n"
    )
    cfg = load_config(dataset_root=tmp_path)
    assert cfg.drop_volumes == 4
    assert cfg.fd.head_radius_mm == 80.0
    assert cfg.fd.threshold_mm == 0.5


def test_explicit_path_wins(tmp_path: Path):
    """An explicit path beats the dataset-local file."""
    cfg_dir = tmp_path / "code" / "config"
    cfg_dir.mkdir(parents=True)
    (cfg_dir / "qc.yaml").write_text("version: '1.0'\ndrop_volumes: 4\n")
    explicit = tmp_path / "mine.yaml"
    explicit.write_text("version: '2.0'\ndrop_volumes: 2\n")
    cfg = load_config(config_path=explicit, dataset_root=tmp_path)
    assert cfg.version == "2.0"
    assert cfg.drop_volumes == 2


@pytest.mark.parametrize(
    "text",
    [
        "version: '1.0'\ndrop_volumes: -1\n",
        "version: '1.0'\nfd:\n  head_radius_mm: 0\n",
        "version: '1.0'\ndvars:\n  first_frame: median\n",
        "version: '1.0'\nunknown_key: 1\n",
        "drop_volumes: 1\n",
    ],
)
def test_invalid_config(tmp_path: Path, text: str):
    """Schema violations surface as RuntimeError."""
    bad = tmp_path / "bad.yaml"
    bad.write_text(text)
    with pytest.raises(RuntimeError, match="Invalid configuration"):
        load_config(config_path=bad)


def test_missing_explicit_path(tmp_path: Path):
    """A named but missing file is an error, not a silent fallback."""
    with pytest.raises(FileNotFoundError):
        load_config(config_path=tmp_path / "missing.yaml")
