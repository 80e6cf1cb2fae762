from pathlib import Path

import numpy as np

from boldqc.qc.discover import (
    discover_runs,
    find_bold_files,
    find_mask_for_bold,
    find_motion_for_bold,
    parse_tokens_from_bids,
)


def _touch(path: Path) -> Path:
    """Create an empty file and its parents."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path


def test_parse_tokens():
    """Entities are read from the file name."""
    toks = parse_tokens_from_bids(
        "sub-01_ses-02_task-rest_dir-AP_run-1_space-MNI152NLin6Asym_res-2_desc-preproc_bold.nii.gz"
    )
    assert toks["sub"] == "01"
    assert toks["ses"] == "02"
    assert toks["task"] == "rest"
    assert toks["dir"] == "AP"
    assert toks["run"] == "1"
    assert toks["space"] == "MNI152NLin6Asym"
    assert toks["res"] == "2"
    assert toks["acq"] is None


def test_find_bold_files_skips_boldref(tmp_path: Path):
    """Reference images and masks are not BOLD runs."""
    func = tmp_path / "sub-01" / "func"
    bold = _touch(func / "sub-01_task-rest_bold.nii.gz")
    _touch(func / "sub-01_task-rest_boldref.nii.gz")
    _touch(func / "sub-01_task-rest_desc-brain_mask.nii.gz")
    assert find_bold_files([str(func)], False, None) == [str(bold)]
    assert find_bold_files([str(tmp_path)], True, None) == [str(bold)]
    assert find_bold_files([str(tmp_path)], False, None) == []


def test_discover_runs_filters(tmp_path: Path):
    """Task and space filters narrow the run list."""
    paths = [
        str(tmp_path / "sub-01_task-rest_space-MNI152NLin6Asym_res-02_desc-preproc_bold.nii.gz"),
        str(tmp_path / "sub-01_task-nback_space-T1w_desc-preproc_bold.nii.gz"),
    ]
    assert len(discover_runs(paths, None, None)) == 2
    rest = discover_runs(paths, "MNI152NLin6Asym_res-2", None)
    assert [r.tokens["task"] for r in rest] == ["rest"]
    nback = discover_runs(paths, None, ["N*"])
    assert [r.run_id for r in nback] == ["01_nback"]


def test_find_mask_and_motion(tmp_path: Path):
    """Masks, MCFLIRT tables and SPM tables are located next to the run."""
    bold = _touch(tmp_path / "sub-01_task-rest_bold.nii.gz")
    assert find_mask_for_bold(str(bold)) is None
    assert find_motion_for_bold(str(bold)) is None

    rp = tmp_path / "rp_sub-01_task-rest_bold.txt"
    np.savetxt(rp, np.zeros((2, 6)))
    assert find_motion_for_bold(str(bold)) == (str(rp), "spm")

    par = _touch(tmp_path / "sub-01_task-rest_bold_mcf.nii.gz.par")
    assert find_motion_for_bold(str(bold)) == (str(par), "fsl")

    mask = _touch(tmp_path / "sub-01_task-rest_desc-brain_mask.nii.gz")
    assert find_mask_for_bold(str(bold)) == str(mask)
