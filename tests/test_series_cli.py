from pathlib import Path

import numpy as np
import pandas as pd
import nibabel as nib
import pytest
from click.testing import CliRunner

from boldqc.cli import main as cli_main


@pytest.fixture(autouse=True)
def _log_dir(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("BOLDQC_LOG_DIR", str(tmp_path / "logs"))


def _write_run(tmp_path: Path) -> tuple[Path, Path]:
    """Single in-mask voxel whose signal is 1, 3, 2 over three frames."""
    data = np.zeros((2, 1, 1, 3), dtype="float32")
    data[0, 0, 0] = [1.0, 3.0, 2.0]
    data[1, 0, 0] = [9.0, 9.0, 9.0]
    bold = tmp_path / "sub-01_task-rest_bold.nii.gz"
    nib.save(nib.Nifti1Image(data, np.eye(4)), str(bold))
    mask = tmp_path / "sub-01_task-rest_desc-brain_mask.nii.gz"
    m = np.array([1, 0], dtype="uint8").reshape(2, 1, 1)
    nib.save(nib.Nifti1Image(m, np.eye(4)), str(mask))
    return bold, mask


def _lines(output: str) -> list[str]:
    return [ln for ln in output.splitlines() if ln.strip()]


def test_fd_prints_series(tmp_path: Path):
    motion = tmp_path / "run_mcf.par"
    np.savetxt(motion, [[0, 0, 0, 0, 0, 0], [0, 0, 0, 1, 1, 0]])
    result = CliRunner().invoke(cli_main, ["fd", str(motion)])
    assert result.exit_code == 0, result.output
    assert _lines(result.output) == ["0.000000", "2.000000"]


def test_fd_spm_format_and_output(tmp_path: Path):
    """SPM tables list translations first; rotations scale with the radius."""
    motion = tmp_path / "rp_run.txt"
    np.savetxt(motion, [[0, 0, 0, 0, 0, 0], [1, 0, 0, 0.01, 0, 0]])
    out = tmp_path / "out" / "fd.tsv"
    result = CliRunner().invoke(
        cli_main, ["fd", str(motion), "--format", "spm", "--radius", "80", "-o", str(out)]
    )
    assert result.exit_code == 0, result.output
    assert np.loadtxt(out) == pytest.approx([0.0, 1.8])


def test_fd_rejects_wrong_columns(tmp_path: Path):
    motion = tmp_path / "bad.par"
    np.savetxt(motion, np.zeros((4, 3)))
    result = CliRunner().invoke(cli_main, ["fd", str(motion)])
    assert result.exit_code != 0
    assert "expected 6" in result.output


def test_dvars_prints_series(tmp_path: Path):
    bold, mask = _write_run(tmp_path)
    result = CliRunner().invoke(cli_main, ["dvars", str(bold), str(mask)])
    assert result.exit_code == 0, result.output
    assert _lines(result.output) == ["0.000000", "2.000000", "1.000000"]

    result = CliRunner().invoke(
        cli_main, ["dvars", str(bold), str(mask), "--first-frame", "mean"]
    )
    assert result.exit_code == 0, result.output
    assert _lines(result.output)[0] == "1.500000"


def test_dvars_drop_volumes(tmp_path: Path):
    bold, mask = _write_run(tmp_path)
    result = CliRunner().invoke(
        cli_main, ["dvars", str(bold), str(mask), "--drop-volumes", "1"]
    )
    assert result.exit_code == 0, result.output
    assert _lines(result.output) == ["0.000000", "1.000000"]

    result = CliRunner().invoke(
        cli_main, ["dvars", str(bold), str(mask), "--drop-volumes", "3"]
    )
    assert result.exit_code != 0


def test_matrix_writes_npy_and_coords(tmp_path: Path):
    bold, mask = _write_run(tmp_path)
    out = tmp_path / "matrix.npy"
    coords = tmp_path / "coords.tsv"
    result = CliRunner().invoke(
        cli_main, ["matrix", str(bold), str(mask), "-o", str(out), "--coords", str(coords)]
    )
    assert result.exit_code == 0, result.output
    assert "3 x 1" in result.output
    arr = np.load(out)
    assert arr.dtype == np.float64
    assert arr[:, 0].tolist() == [1.0, 3.0, 2.0]
    df = pd.read_csv(coords, sep="\t")
    assert list(df.columns) == ["column", "x", "y", "z"]
    assert df.iloc[0][["x", "y", "z"]].tolist() == [0, 0, 0]


def test_matrix_shape_mismatch(tmp_path: Path):
    bold, _ = _write_run(tmp_path)
    mask = tmp_path / "wrong_mask.nii.gz"
    nib.save(nib.Nifti1Image(np.ones((3, 1, 1), dtype="uint8"), np.eye(4)), str(mask))
    result = CliRunner().invoke(
        cli_main, ["matrix", str(bold), str(mask), "-o", str(tmp_path / "m.npy")]
    )
    assert result.exit_code != 0
    assert not (tmp_path / "m.npy").exists()


def test_json_log_written_to_log_dir(tmp_path: Path):
    motion = tmp_path / "run_mcf.par"
    np.savetxt(motion, np.zeros((3, 6)))
    result = CliRunner().invoke(cli_main, ["fd", str(motion)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "logs" / "boldqc.log").exists()
