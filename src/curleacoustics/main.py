"""
Offline Replay Driver
=====================
Runs a Curle monitor over a recorded simulation instead of a live solver.

Why is this file needed?
------------------------
The monitor is normally called from a solver's time loop. Recording the
boundary fields once (HDF5) and replaying them lets observers, probe
frequency or the time window be changed without rerunning the flow
simulation.

Usage:
    $ python -m curleacoustics settings.json recording.h5 --mesh surface.msh
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional, Sequence

from curleacoustics.config import load_settings
from curleacoustics.controller.monitor import CurleMonitor
from curleacoustics.exceptions import ConfigurationError
from curleacoustics.logging_config import setup_logging
from curleacoustics.model.io import SurfaceRecording
from curleacoustics.pre.mesh import SurfaceMesh

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="curleacoustics",
        description="Replay recorded surface pressure through a Curle far-field acoustic monitor.",
    )
    parser.add_argument("settings", help="JSON settings file")
    parser.add_argument("recording", help="HDF5 surface recording")
    parser.add_argument("--mesh", required=True, help="Surface mesh file with named patches (any meshio format)")
    parser.add_argument("--output", default=".", help="Directory that receives acousticData/ (default: .)")
    parser.add_argument("--name", default=None, help="Monitor name used in output file names (default: settings file stem)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument("--log-file", default=None, help="Also write the log to this file")
    return parser


def run(
    settings_path: str,
    recording_path: str,
    mesh_path: str,
    output_dir: str = ".",
    name: Optional[str] = None,
) -> CurleMonitor:
    """
    Replay a recording and write the acoustic results.

    Returns:
        The monitor, holding the observer histories.
    """
    name = name or os.path.splitext(os.path.basename(settings_path))[0]

    settings = load_settings(settings_path)
    mesh = SurfaceMesh.from_file(mesh_path)
    recording = SurfaceRecording.load(recording_path)

    with CurleMonitor(name, settings=settings, mesh=mesh, output_dir=output_dir) as monitor:
        for time, dt, fields in recording.steps():
            monitor.on_step(time, dt, fields)

    logger.info(f"{name}: {monitor.accepted_steps} of {recording.n_steps} steps sampled")
    return monitor


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(level=logging.DEBUG if args.debug else logging.INFO, log_file=args.log_file)

    try:
        run(
            settings_path=args.settings,
            recording_path=args.recording,
            mesh_path=args.mesh,
            output_dir=args.output,
            name=args.name,
        )
    except ConfigurationError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
