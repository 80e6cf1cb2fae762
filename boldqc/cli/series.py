"""Single-file commands: FD, DVARS and signal-matrix export."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
import numpy as np
import pandas as pd
import structlog

from boldqc.qc.matrix import drop_initial_volumes, mask_coordinates, stream_signal_matrix
from boldqc.qc.metrics import compute_dvars, compute_fd
from boldqc.qc.motion import MOTION_FORMATS, load_motion_params
from boldqc.utils.errors import QCError
from boldqc.utils.nifti import load_bold, load_mask

log = structlog.get_logger()

_CTX = dict(help_option_names=["-h", "--help"], show_default=True)


def _emit(series: np.ndarray, output: Optional[Path]) -> None:
    """Write *series* one value per line to *output* or stdout."""
    if output is None:
        for value in series:
            click.echo(f"{value:.6f}")
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    np.savetxt(output, series, fmt="%.6f")
    log.info("saved_series", path=str(output), n=len(series))


def _signal_matrix(ctx: click.Context, bold: Path, mask: Path, drop: int) -> np.ndarray:
    """Load *bold* and *mask* and return the trimmed signal matrix."""
    cfg = ctx.obj["cfg"]
    img = load_bold(bold)
    m = load_mask(mask, bold)
    matrix = stream_signal_matrix(img.dataobj, m, cfg.update_every, desc=bold.name)
    return drop_initial_volumes(matrix, drop, axis=0)


@click.command(name="fd", context_settings=_CTX)
@click.argument("motion_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--format", "fmt", type=click.Choice(MOTION_FORMATS), default=None,
              help="Column layout of the table [default: from config].")
@click.option("--radius", type=float, default=None,
              help="Head radius (mm) converting rotations [default: from config].")
@click.option("--drop-volumes", type=click.IntRange(min=0), default=None)
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.pass_context
def fd_cli(
    ctx: click.Context,
    motion_file: Path,
    fmt: Optional[str],
    radius: Optional[float],
    drop_volumes: Optional[int],
    output: Optional[Path],
) -> None:
    """Print or save the framewise displacement of MOTION_FILE."""
    cfg = ctx.obj["cfg"]
    fmt = fmt or cfg.fd.motion_format
    radius = radius if radius is not None else cfg.fd.head_radius_mm
    drop = drop_volumes if drop_volumes is not None else cfg.drop_volumes
    try:
        motion = drop_initial_volumes(load_motion_params(motion_file, fmt), drop, axis=0)
        fd = compute_fd(motion, rotation_to_mm=radius)
    except (QCError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    _emit(fd, output)


@click.command(name="dvars", context_settings=_CTX)
@click.argument("bold", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("mask", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--first-frame", type=click.Choice(["zero", "mean"]), default=None,
              help="Value convention for frame 0 [default: from config].")
@click.option("--drop-volumes", type=click.IntRange(min=0), default=None)
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.pass_context
def dvars_cli(
    ctx: click.Context,
    bold: Path,
    mask: Path,
    first_frame: Optional[str],
    drop_volumes: Optional[int],
    output: Optional[Path],
) -> None:
    """Print or save the DVARS series of BOLD within MASK."""
    cfg = ctx.obj["cfg"]
    drop = drop_volumes if drop_volumes is not None else cfg.drop_volumes
    try:
        matrix = _signal_matrix(ctx, bold, mask, drop)
        dvars = compute_dvars(matrix, first_frame=first_frame or cfg.dvars.first_frame)
    except (QCError, FileNotFoundError) as exc:
        raise click.ClickException(str(exc)) from exc
    _emit(dvars, output)


@click.command(name="matrix", context_settings=_CTX)
@click.argument("bold", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("mask", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), required=True,
              help="Destination .npy file for the (time x voxel) matrix.")
@click.option("--coords", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Optional TSV mapping each column to its x/y/z voxel.")
@click.option("--drop-volumes", type=click.IntRange(min=0), default=None)
@click.pass_context
def matrix_cli(
    ctx: click.Context,
    bold: Path,
    mask: Path,
    output: Path,
    coords: Optional[Path],
    drop_volumes: Optional[int],
) -> None:
    """Save the voxel-by-time signal matrix of BOLD within MASK."""
    cfg = ctx.obj["cfg"]
    drop = drop_volumes if drop_volumes is not None else cfg.drop_volumes
    try:
        matrix = _signal_matrix(ctx, bold, mask, drop)
        xyz = mask_coordinates(load_mask(mask, bold)) if coords else None
    except (QCError, FileNotFoundError) as exc:
        raise click.ClickException(str(exc)) from exc
    output.parent.mkdir(parents=True, exist_ok=True)
    np.save(output, matrix)
    log.info("saved_matrix", path=str(output), shape=list(matrix.shape))
    if xyz is not None:
        df = pd.DataFrame(xyz, columns=["x", "y", "z"])
        df.index.name = "column"
        df.to_csv(coords, sep="\t")
        log.info("saved_coords", path=str(coords))
    click.echo(f"{matrix.shape[0]} x {matrix.shape[1]}")
