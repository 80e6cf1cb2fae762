from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from boldqc.qc.motion import fd_from_confounds, load_motion_params
from boldqc.utils.errors import EmptyInput, InvalidShape

ROWS = np.array([
    [0.001, 0.002, 0.003, 0.1, 0.2, 0.3],
    [0.004, 0.005, 0.006, 0.4, 0.5, 0.6],
])


def test_load_fsl_par(tmp_path: Path):
    """MCFLIRT tables already list rotations first."""
    par = tmp_path / "sub-01_task-rest_bold_mcf.nii.gz.par"
    np.savetxt(par, ROWS)
    np.testing.assert_allclose(load_motion_params(par), ROWS)


def test_load_spm_rp_reorders(tmp_path: Path):
    """SPM tables list translations first and are reordered."""
    rp = tmp_path / "rp_sub-01_task-rest_bold.txt"
    np.savetxt(rp, np.hstack([ROWS[:, 3:], ROWS[:, :3]]))
    np.testing.assert_allclose(load_motion_params(rp, fmt="spm"), ROWS)


def test_load_single_row(tmp_path: Path):
    """A one-volume table keeps its 2-D shape."""
    par = tmp_path / "one.par"
    np.savetxt(par, ROWS[:1])
    assert load_motion_params(par).shape == (1, 6)


def test_load_wrong_columns(tmp_path: Path):
    """Tables must have six columns."""
    par = tmp_path / "bad.par"
    np.savetxt(par, np.zeros((4, 3)))
    with pytest.raises(InvalidShape):
        load_motion_params(par)


def test_load_ragged_rows(tmp_path: Path):
    """Rows of different lengths are a shape error, not a parse crash."""
    par = tmp_path / "ragged.par"
    par.write_text("0 0 0 0 0 0\n0 0 0 0 0\n")
    with pytest.raises(InvalidShape, match="ragged.par"):
        load_motion_params(par)


@pytest.mark.filterwarnings("ignore::UserWarning")
def test_load_empty_file(tmp_path: Path):
    """An empty table is rejected."""
    par = tmp_path / "empty.par"
    par.write_text("")
    with pytest.raises(EmptyInput):
        load_motion_params(par)


def test_load_unknown_format(tmp_path: Path):
    """Only fsl and spm layouts are known."""
    par = tmp_path / "x.par"
    np.savetxt(par, ROWS)
    with pytest.raises(ValueError):
        load_motion_params(par, fmt="afni")


def test_fd_from_confounds(tmp_path: Path):
    """The first FD value (n/a in fMRIPrep output) becomes zero."""
    conf = tmp_path / "conf.tsv"
    pd.DataFrame({"framewise_displacement": [np.nan, 0.1, 0.2]}).to_csv(
        conf, sep="\t", index=False
    )
    np.testing.assert_allclose(fd_from_confounds(conf), [0.0, 0.1, 0.2])


def test_fd_from_confounds_missing(tmp_path: Path):
    """Missing files or columns give ``None``."""
    assert fd_from_confounds(tmp_path / "nope.tsv") is None
    conf = tmp_path / "conf.tsv"
    pd.DataFrame({"csf": [1.0, 2.0]}).to_csv(conf, sep="\t", index=False)
    assert fd_from_confounds(conf) is None
