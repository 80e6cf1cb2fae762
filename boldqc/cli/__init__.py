"""Click entry-point for the ``boldqc-cli`` script.

:pyfunc:`main` handles the options shared by every sub-command (dataset
root, ``qc.yaml`` override, verbosity) and leaves a ready-to-use context in
``ctx.obj``:

``root``
    Resolved dataset root (``--bids-root``, ``$BIDS_ROOT`` or the CWD).
``cfg``
    Validated :class:`boldqc.config.QCConfig`.
``verbose`` / ``debug``
    Console verbosity flags.

Sub-commands live in sibling modules and are imported only when invoked,
so ``boldqc-cli --help`` stays fast.
"""

from __future__ import annotations

import importlib
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import click

from boldqc import __version__
from boldqc.config import load_config
from boldqc.utils.logging import setup_logging

# name -> "module:attribute"
_SUBCOMMANDS: Dict[str, str] = {
    "qc": "boldqc.cli.qc:cli",
    "fd": "boldqc.cli.series:fd_cli",
    "dvars": "boldqc.cli.series:dvars_cli",
    "matrix": "boldqc.cli.series:matrix_cli",
}

# These read explicit files and run anywhere.
_DATASET_FREE = frozenset({"fd", "dvars", "matrix"})


class LazyGroup(click.Group):
    """Group whose sub-commands are imported from ``module:attr`` on demand."""

    def __init__(self, *args, lazy_subcommands: Optional[Mapping[str, str]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.lazy_subcommands = dict(lazy_subcommands or {})

    def list_commands(self, ctx):
        """Return eager and lazy command names for the help text."""
        return sorted({*super().list_commands(ctx), *self.lazy_subcommands})

    def get_command(self, ctx, cmd_name):
        """Return the eager command or import the lazy one."""
        if cmd_name in self.lazy_subcommands and cmd_name not in self.commands:
            module_name, attr = self.lazy_subcommands[cmd_name].split(":", 1)
            self.add_command(getattr(importlib.import_module(module_name), attr), cmd_name)
        return super().get_command(ctx, cmd_name)


_CTX: Dict[str, Any] = dict(
    help_option_names=["-h", "--help"],
    show_default=True,
    max_content_width=120,
)


@click.group(
    cls=LazyGroup,
    lazy_subcommands=_SUBCOMMANDS,
    context_settings=_CTX,
    help="""\b
boldqc-cli – signal matrices, DVARS and framewise displacement for BOLD runs.

""",
)
@click.version_option(__version__)
@click.option(
    "-r",
    "--bids-root",
    type=click.Path(file_okay=False, path_type=Path),
    help="BIDS dataset root (folder with dataset_description.json).",
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="qc.yaml overriding the dataset-local and packaged defaults.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show progress and INFO events.")
@click.option("--debug", is_flag=True, help="Show DEBUG events.")
@click.option(
    "--save-logfile",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="Append console output to this plain-text file.",
)
@click.pass_context
def main(  # noqa: D401 – Click requires the callback to be named “main”.
    ctx: click.Context,
    bids_root: Path | None,
    config_path: Path | None,
    verbose: bool,
    debug: bool,
    save_logfile: Path | None,
) -> None:
    """Root command executed by *boldqc-cli*.

    Raises:
        click.ClickException: The sub-command needs a dataset and
            ``dataset_description.json`` is missing, or ``qc.yaml`` is
            invalid or not found.
    """
    root = (bids_root or Path(os.environ.get("BIDS_ROOT", "."))).resolve()
    in_dataset = (root / "dataset_description.json").exists()

    if not in_dataset and ctx.invoked_subcommand not in _DATASET_FREE:
        raise click.ClickException(
            f"{root} is not a BIDS dataset (no dataset_description.json)."
        )

    dataset_root = root if in_dataset else None
    setup_logging(
        dataset_root=dataset_root,
        verbose=verbose,
        debug=debug,
        extra_text_log=save_logfile,
    )
    try:
        cfg = load_config(config_path=config_path, dataset_root=dataset_root)
    except (RuntimeError, FileNotFoundError) as exc:
        raise click.ClickException(str(exc)) from exc

    ctx.obj = {"root": root, "cfg": cfg, "verbose": verbose, "debug": debug}


cli = main
__all__: list[str] = ["main"]
