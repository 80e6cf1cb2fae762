"""Locate BOLD runs and the files QC needs next to them.

Runs are recognised from BIDS / fMRIPrep file names. Masks, confounds and
motion tables are looked up as siblings sharing the run's stem, i.e. the
file name with its BOLD suffix removed.
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

# Longest first so that ``_desc-preproc_bold`` wins over ``_bold``.
BOLD_SUFFIXES = (
    "_desc-preproc_bold.nii.gz",
    "_desc-nonaggrDenoised_bold.nii.gz",
    "_bold_mcf.nii.gz",
    "_bold.nii.gz",
)
MASK_SUFFIXES = ("_desc-brain_mask.nii.gz", "_brain_mask.nii.gz", "_mask.nii.gz")
CONFOUNDS_SUFFIX = "_desc-confounds_timeseries.tsv"
PAR_SUFFIXES = ("_bold_mcf.nii.gz.par", "_bold_mcf.par", "_bold.par")

TOKEN_KEYS = ("sub", "ses", "task", "acq", "dir", "run", "space", "res", "desc")
ID_KEYS = ("sub", "ses", "task", "acq", "dir", "run")

_ENTITY = re.compile(r"(?:^|_)([a-zA-Z]+)-([^_]+)")


@dataclass
class BoldRun:
    """Discovered BOLD run with the entities used to label it."""

    path: str
    tokens: Dict[str, Optional[str]]
    id_key: Tuple

    @property
    def run_id(self) -> str:
        """Underscore-joined entity values identifying the run."""
        return "_".join(filter(None, self.id_key))


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

def parse_tokens_from_bids(name: str) -> Dict[str, Optional[str]]:
    """Return the known BIDS entities in *name*; absent ones map to ``None``."""
    stem = Path(name).name.split(".", 1)[0]
    found = {key: value for key, value in _ENTITY.findall(stem)}
    return {key: found.get(key) for key in TOKEN_KEYS}


def id_key_from_tokens(tokens: Dict[str, Optional[str]]) -> Tuple:
    """Return the tuple of identifying entities for a run."""
    return tuple(tokens.get(k) for k in ID_KEYS)


# ---------------------------------------------------------------------------
# Discovery and filtering
# ---------------------------------------------------------------------------

def _is_bold(path: Path) -> bool:
    name = path.name
    return (
        path.is_file()
        and name.endswith(".nii.gz")
        and "_bold" in name
        and "boldref" not in name
    )


def _expand(item: str, pattern: str, recursive: bool) -> Iterable[Path]:
    base = Path(item)
    if base.is_file():
        return [base]
    if base.is_dir():
        return base.rglob(pattern) if recursive else base.glob(pattern)
    # A shell-style pattern passed through unexpanded.
    anchor = Path(base.anchor or ".")
    rel = str(base.relative_to(anchor)) if base.is_absolute() else item
    return anchor.glob(rel)


def find_bold_files(
    inputs: List[str], recursive: bool, bold_globs: Optional[List[str]]
) -> List[str]:
    """Return sorted absolute paths of BOLD images found under *inputs*.

    Directories are scanned for ``*.nii.gz`` (recursively with *recursive*).
    *bold_globs* replaces that pattern with user-supplied ones, resolved
    relative to each directory input.
    """
    patterns = bold_globs or ["*.nii.gz"]
    found = set()
    for item in inputs:
        for pattern in patterns:
            for cand in _expand(item, pattern, recursive):
                if _is_bold(cand):
                    found.add(str(cand.absolute()))
    return sorted(found)


def normalize_res(res: Optional[str]) -> Optional[str]:
    """Return ``res`` with leading zeros stripped, if numeric."""
    if res is None:
        return None
    return str(int(res)) if res.isdigit() else res


def space_res_pass(path: str, space_filter: Optional[str]) -> bool:
    """Return ``True`` when *path* satisfies a ``--space`` filter.

    ``MNI152NLin6Asym_res-2`` requires both entities; ``res-2`` and
    ``res-02`` are equivalent.
    """
    if not space_filter:
        return True
    want_space = want_res = None
    for part in space_filter.split("_"):
        if part.startswith("res-"):
            want_res = normalize_res(part[len("res-"):])
        elif part:
            want_space = part[len("space-"):] if part.startswith("space-") else part
    tokens = parse_tokens_from_bids(path)
    if want_space and tokens["space"] != want_space:
        return False
    return not want_res or normalize_res(tokens["res"]) == want_res


def task_pass(tokens: Dict[str, Optional[str]], task_filters: Optional[List[str]]) -> bool:
    """Return ``True`` when the run's task matches any case-insensitive pattern."""
    if not task_filters:
        return True
    task = (tokens.get("task") or "").lower()
    return bool(task) and any(fnmatch.fnmatchcase(task, p.lower()) for p in task_filters)


def discover_runs(
    all_paths: List[str],
    space_filter: Optional[str],
    task_filters: Optional[List[str]],
) -> List[BoldRun]:
    """Wrap *all_paths* in :class:`BoldRun` objects, dropping filtered ones."""
    runs: List[BoldRun] = []
    for p in all_paths:
        toks = parse_tokens_from_bids(p)
        if space_res_pass(p, space_filter) and task_pass(toks, task_filters):
            runs.append(BoldRun(path=p, tokens=toks, id_key=id_key_from_tokens(toks)))
    return runs


# ---------------------------------------------------------------------------
# Sibling files
# ---------------------------------------------------------------------------

def bold_stem(bold_path: str) -> str:
    """Return the file name of *bold_path* with its BOLD suffix removed."""
    name = Path(bold_path).name
    sfx = next((s for s in BOLD_SUFFIXES if name.endswith(s)), ".nii.gz")
    return name[: -len(sfx)] if name.endswith(sfx) else name


def replace_suffix_any(bold_path: str, new_suffixes: Tuple[str, ...]) -> List[str]:
    """Return candidate siblings of *bold_path* for each of *new_suffixes*."""
    parent = Path(bold_path).parent
    stem = bold_stem(bold_path)
    return [str(parent / f"{stem}{sfx}") for sfx in new_suffixes]


def _first_existing(candidates: Iterable[str]) -> Optional[str]:
    return next((c for c in candidates if Path(c).exists()), None)


def find_mask_for_bold(bold_path: str) -> Optional[str]:
    """Locate a mask file corresponding to *bold_path* if present."""
    return _first_existing(replace_suffix_any(bold_path, MASK_SUFFIXES))


def find_confounds_for_bold(bold_path: str) -> Optional[str]:
    """Locate the fMRIPrep confounds TSV for *bold_path* when available."""
    return _first_existing(replace_suffix_any(bold_path, (CONFOUNDS_SUFFIX,)))


def find_motion_for_bold(bold_path: str) -> Optional[Tuple[str, str]]:
    """Locate a motion-parameter table for *bold_path*.

    Returns ``(path, fmt)`` where *fmt* is ``"fsl"`` for MCFLIRT ``.par``
    files and ``"spm"`` for realignment ``rp_*.txt`` files.
    """
    par = _first_existing(replace_suffix_any(bold_path, PAR_SUFFIXES))
    if par:
        return par, "fsl"
    bold = Path(bold_path)
    name = bold.name[: -len(".nii.gz")] if bold.name.endswith(".nii.gz") else bold.stem
    rp = _first_existing(
        str(bold.parent / f"rp_{n}.txt") for n in (name, f"{bold_stem(bold_path)}_bold")
    )
    return (rp, "spm") if rp else None
