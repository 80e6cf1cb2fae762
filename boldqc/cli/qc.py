"""Quality-control metrics for every BOLD run in a dataset."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional, Tuple

import click
import numpy as np
import structlog

from boldqc.config import QCConfig
from boldqc.qc.discover import (
    BoldRun,
    discover_runs,
    find_bold_files,
    find_confounds_for_bold,
    find_mask_for_bold,
    find_motion_for_bold,
)
from boldqc.qc.display import log_header, log_inputs, log_metric_start
from boldqc.qc.matrix import drop_initial_volumes, stream_signal_matrix
from boldqc.qc.metrics import (
    RunMetrics,
    compute_dvars,
    compute_fd,
    compute_tsnr,
    flag_outlier_frames,
    summarize_series,
)
from boldqc.qc.motion import fd_from_confounds, load_motion_params
from boldqc.qc.report import write_series_tsv, write_single_csv
from boldqc.utils.cache import ArtifactCache
from boldqc.utils.errors import QCError
from boldqc.utils.nifti import load_bold, load_mask, save_map
from boldqc.utils.paths import default_cache_dir, qc_run_dir

log = structlog.get_logger()

_CTX = dict(help_option_names=["-h", "--help"], show_default=True)


def _cached(
    cache: Optional[ArtifactCache],
    tool: str,
    inputs: List[str],
    params: dict,
    compute: Callable[[], np.ndarray],
    overwrite: bool,
) -> np.ndarray:
    """Route *compute* through *cache* when caching is enabled."""
    if cache is None:
        return np.asarray(compute())
    return cache.cached(tool, inputs, params, compute, overwrite=overwrite)


def _resolve_fd(
    bold: BoldRun,
    cfg: QCConfig,
    cache: Optional[ArtifactCache],
    overwrite: bool,
    radius_given: bool = False,
) -> Tuple[Optional[np.ndarray], Optional[str]]:
    """Return ``(fd_series, source_path)`` honouring ``cfg.fd.source``.

    Confound-derived FD is used as written by fMRIPrep, so the head radius
    only applies to motion tables.
    """
    drop = cfg.drop_volumes
    if cfg.fd.source in ("auto", "confounds"):
        conf = find_confounds_for_bold(bold.path)
        if conf:
            fd = fd_from_confounds(conf)
            if fd is not None:
                if drop:
                    fd = drop_initial_volumes(fd, drop, axis=0).copy()
                    fd[0] = 0.0
                log.info("fd_source", source="confounds", bold=bold.path)
                if radius_given:
                    log.warning(
                        "fd_radius_ignored",
                        reason="FD read from confounds; use --fd-from motion to apply the radius",
                        radius=cfg.fd.head_radius_mm,
                        bold=bold.path,
                    )
                return fd, conf
    if cfg.fd.source in ("auto", "motion"):
        found = find_motion_for_bold(bold.path)
        if found:
            path, fmt = found
            radius = cfg.fd.head_radius_mm
            fd = _cached(
                cache,
                "fd",
                [path],
                {"format": fmt, "radius": radius, "drop": drop},
                lambda: compute_fd(
                    drop_initial_volumes(load_motion_params(path, fmt), drop, axis=0),
                    rotation_to_mm=radius,
                ),
                overwrite,
            )
            log.info("fd_source", source="motion", format=fmt, bold=bold.path)
            return fd, path
    log.warning("fd_missing", bold=bold.path)
    return None, None


def _compute_metrics(
    bold: BoldRun,
    cfg: QCConfig,
    cache: Optional[ArtifactCache],
    save_series: bool,
    allow_naive_mask: bool,
    overwrite: bool,
    radius_given: bool = False,
) -> RunMetrics:
    """Compute metrics for a single run."""
    run_stem = Path(bold.path).name.replace(".nii.gz", "")
    drop = cfg.drop_volumes

    mask_path = find_mask_for_bold(bold.path)
    try:
        mask = load_mask(mask_path, bold.path, allow_naive=allow_naive_mask)
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from exc
    mask_inputs = [bold.path, mask_path] if mask_path else [bold.path]
    mask_tag = "file" if mask_path else "naive"

    img = load_bold(bold.path)
    if mask.shape != img.shape[:3]:
        raise click.ClickException(
            f"Mask shape {mask.shape} does not match BOLD {img.shape[:3]}"
        )
    n_vols = img.shape[3] - drop
    if n_vols < 1:
        raise click.ClickException(
            f"Cannot drop {drop} volume(s) from {img.shape[3]} in {bold.path}"
        )

    fd_series, motion_src = _resolve_fd(bold, cfg, cache, overwrite, radius_given)
    log_inputs(bold.path, mask_path or "<naive>", motion_src)
    if fd_series is not None and len(fd_series) != n_vols:
        raise click.ClickException(
            f"FD series length {len(fd_series)} does not match BOLD {n_vols} volumes"
        )

    matrix: dict = {}

    def signal_matrix() -> np.ndarray:
        if "m" not in matrix:
            full = stream_signal_matrix(
                img.dataobj, mask, cfg.update_every, desc=f"{bold.run_id} matrix"
            )
            matrix["m"] = drop_initial_volumes(full, drop, axis=0)
        return matrix["m"]

    dvars = None
    if cfg.dvars.enabled:
        log_metric_start(bold.run_id, "DVARS")
        dvars = _cached(
            cache,
            "dvars",
            mask_inputs,
            {"mask": mask_tag, "first_frame": cfg.dvars.first_frame, "drop": drop},
            lambda: compute_dvars(signal_matrix(), first_frame=cfg.dvars.first_frame),
            overwrite,
        )

    tsnr = None
    if cfg.tsnr.enabled:
        log_metric_start(bold.run_id, "tSNR")
        tsnr = _cached(
            cache,
            "tsnr",
            mask_inputs,
            {"mask": mask_tag, "drop": drop},
            lambda: compute_tsnr(signal_matrix()),
            overwrite,
        )

    outliers = None
    if fd_series is not None or dvars is not None:
        outliers = flag_outlier_frames(
            fd=fd_series,
            dvars=dvars,
            fd_threshold=cfg.fd.threshold_mm,
            dvars_threshold=cfg.dvars.threshold,
        )

    qc_dir = None
    if save_series or cfg.tsnr.write_nifti:
        try:
            qc_dir = qc_run_dir(Path(bold.path), stem=run_stem)
        except FileNotFoundError as exc:
            raise click.ClickException(
                f"{exc}; per-run outputs are written under <dataset>/qc/"
            ) from exc
        qc_dir.mkdir(parents=True, exist_ok=True)
    if save_series:
        for name, series in (("fd", fd_series), ("dvars", dvars), ("tsnr", tsnr)):
            if series is None:
                continue
            out = qc_dir / f"{run_stem}_{name}.tsv"
            np.savetxt(out, series, fmt="%.6f")
            log.info(f"saved_{name}", path=str(out))
        frame_cols = {
            name: series
            for name, series in (
                ("framewise_displacement", fd_series),
                ("dvars", dvars),
                ("outlier", None if outliers is None else outliers.astype(int)),
            )
            if series is not None
        }
        if frame_cols:
            write_series_tsv(qc_dir / f"{run_stem}_timeseries.tsv", **frame_cols)
    if tsnr is not None and cfg.tsnr.write_nifti:
        save_map(tsnr, mask, img, qc_dir / f"{run_stem}_desc-tsnr.nii.gz")

    metrics = RunMetrics(id=bold.run_id, bold_path=bold.path, n_vols=n_vols, n_dropped=drop)
    if fd_series is not None:
        s = summarize_series(fd_series, cfg.fd.threshold_mm)
        metrics.fd_mean, metrics.fd_max, metrics.fd_pct_over = s.mean, s.max, s.pct_over
    if dvars is not None:
        s = summarize_series(dvars)
        metrics.mean_dvars, metrics.max_dvars = s.mean, s.max
    if outliers is not None:
        metrics.n_outliers = int(outliers.sum())
    if tsnr is not None:
        s = summarize_series(tsnr)
        metrics.tsnr_mean, metrics.tsnr_median = s.mean, s.median
    return metrics


@click.command(name="qc", context_settings=_CTX)
@click.option("-i", "--inputs", multiple=True, type=click.Path(path_type=Path), required=True,
              help="BOLD file, directory or glob (repeatable).")
@click.option("--recursive", is_flag=True, help="Search input directories recursively.")
@click.option("--bold-glob", multiple=True, help="File pattern(s) matched inside each input directory.")
@click.option("--task", multiple=True, help="Keep runs whose task matches (glob, case-insensitive).")
@click.option("--space", default=None, help="Space filter like MNI152NLin6Asym_res-2.")
@click.option("--calc-dvars", is_flag=True, help="Force DVARS on even if disabled in config.")
@click.option("--no-dvars", is_flag=True, help="Skip DVARS.")
@click.option("--calc-tsnr", is_flag=True, help="Compute voxelwise tSNR.")
@click.option("--fd-from", type=click.Choice(["auto", "confounds", "motion"]), default=None,
              help="FD source; auto prefers confounds over motion tables.")
@click.option("--fd-power-radius", type=float, default=None,
              help="Head radius in mm for FD from motion tables (confounds FD is used as is).")
@click.option("--fd-thresh", type=float, default=None, help="FD (mm) above which a frame is an outlier.")
@click.option("--dvars-thresh", type=float, default=None, help="DVARS above which a frame is an outlier.")
@click.option("--drop-volumes", type=click.IntRange(min=0), default=None,
              help="Initial volumes discarded before any metric.")
@click.option("--save-series", is_flag=True, help="Write per-frame series under <dataset>/qc/.")
@click.option("--allow-naive-mask", is_flag=True, help="Without a brain mask, use voxels with positive mean signal.")
@click.option("--write-tsnr-nifti", is_flag=True, help="Save the tSNR map next to the series.")
@click.option("--update-every", type=click.IntRange(min=1), default=None,
              help="Frames between progress messages.")
@click.option("--overwrite", is_flag=True, help="Recompute even if cached results exist.")
@click.option("--no-cache", is_flag=True, help="Neither read nor write the artifact cache.")
@click.option("--out-csv", type=click.Path(dir_okay=False, path_type=Path),
              default=Path("qc_single.csv"), help="Per-run summary table.")
@click.pass_context
def cli(
    ctx: click.Context,
    inputs: List[Path],
    recursive: bool,
    bold_glob: Tuple[str, ...],
    task: Tuple[str, ...],
    space: str | None,
    calc_dvars: bool,
    no_dvars: bool,
    calc_tsnr: bool,
    fd_from: str | None,
    fd_power_radius: float | None,
    fd_thresh: float | None,
    dvars_thresh: float | None,
    drop_volumes: int | None,
    save_series: bool,
    allow_naive_mask: bool,
    write_tsnr_nifti: bool,
    update_every: int | None,
    overwrite: bool,
    no_cache: bool,
    out_csv: Path,
) -> None:
    """Compute QC metrics for one or more BOLD runs.

    Options left unset fall back to the loaded ``qc.yaml``. FD comes from a
    confounds TSV or a motion-parameter table next to each run; DVARS and
    tSNR are computed from the masked signal matrix.
    """
    base: QCConfig = ctx.obj["cfg"]
    updates: dict = {}
    if drop_volumes is not None:
        updates["drop_volumes"] = drop_volumes
    if update_every is not None:
        updates["update_every"] = update_every
    fd_upd = {
        k: v
        for k, v in (
            ("source", fd_from),
            ("head_radius_mm", fd_power_radius),
            ("threshold_mm", fd_thresh),
        )
        if v is not None
    }
    if calc_dvars and no_dvars:
        raise click.BadOptionUsage("--no-dvars", "cannot be combined with --calc-dvars")
    dvars_upd: dict = {} if dvars_thresh is None else {"threshold": dvars_thresh}
    if calc_dvars or no_dvars:
        dvars_upd["enabled"] = calc_dvars
    tsnr_upd: dict = {}
    if calc_tsnr:
        tsnr_upd["enabled"] = True
    if write_tsnr_nifti:
        tsnr_upd["write_nifti"] = True
    try:
        cfg = QCConfig.model_validate(
            {
                **base.model_dump(),
                **updates,
                "fd": {**base.fd.model_dump(), **fd_upd},
                "dvars": {**base.dvars.model_dump(), **dvars_upd},
                "tsnr": {**base.tsnr.model_dump(), **tsnr_upd},
            }
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    if cfg.tsnr.write_nifti and not cfg.tsnr.enabled:
        raise click.BadOptionUsage("--write-tsnr-nifti", "requires --calc-tsnr")

    cache = None
    if cfg.cache.enabled and not no_cache:
        cache = ArtifactCache(cfg.cache.directory or default_cache_dir(ctx.obj["root"]))

    bolds = find_bold_files([str(p) for p in inputs], recursive, list(bold_glob) or None)
    if not bolds:
        raise click.ClickException(f"No BOLD images under: {', '.join(map(str, inputs))}")
    runs = discover_runs(bolds, space, list(task) or None)
    if not runs:
        raise click.ClickException("No BOLD files left after task/space filtering")

    metrics_list = ["FD"]
    if cfg.dvars.enabled:
        metrics_list.append("DVARS")
    if cfg.tsnr.enabled:
        metrics_list.append("tSNR")
    log_header(metrics_list, len(runs))

    rows = []
    for run in runs:
        try:
            m = _compute_metrics(
                run,
                cfg,
                cache,
                save_series,
                allow_naive_mask,
                overwrite,
                radius_given=fd_power_radius is not None,
            )
        except QCError as exc:
            raise click.ClickException(f"{run.path}: {exc}") from exc
        rows.append(m.as_row())

    write_single_csv(rows, out_csv)
