"""
Input/Output Manager
Writes the acoustic result files and stores recorded surface data (HDF5)
for offline replay.
"""
from __future__ import annotations

import logging
import os
from importlib.metadata import version, PackageNotFoundError
from typing import TYPE_CHECKING, Iterator, Optional, Sequence, TextIO

import h5py
import numpy as np

from curleacoustics.pre.fields import BoundaryField, FieldRegistry

if TYPE_CHECKING:
    import numpy.typing as npt

    from curleacoustics.analysis.observer import Spectrum

logger = logging.getLogger(__name__)

try:
    APP_VERSION = version("curleacoustics")
except PackageNotFoundError:
    APP_VERSION = "0.0.0-dev"

OUTPUT_DIRECTORY = "acousticData"
RECORDING_FORMAT = "curleacoustics-surface-recording"


def _fmt(value: float) -> str:
    return format(float(value), ".10g")


class AcousticWriter:
    """
    Result files of one monitor instance, inside <root>/acousticData:

        <name>-time.dat               time history of every observer
        fft-<name>-<observer>.dat     latest spectrum of each observer
    """
    def __init__(self, root_dir: str, name: str) -> None:
        self.name = name
        self.directory = os.path.join(root_dir, OUTPUT_DIRECTORY)
        self._time_file: Optional[TextIO] = None

    def __enter__(self) -> AcousticWriter:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def time_history_path(self) -> str:
        return os.path.join(self.directory, f"{self.name}-time.dat")

    def spectrum_path(self, observer_name: str) -> str:
        return os.path.join(self.directory, f"fft-{self.name}-{observer_name}.dat")

    @property
    def is_open(self) -> bool:
        return self._time_file is not None

    def open(self, observer_names: Sequence[str]) -> None:
        """Create the output directory and the time history file with its header."""
        if self.is_open:
            return
        os.makedirs(self.directory, exist_ok=True)
        logger.info(f"Writing acoustic time history to: {self.time_history_path}")
        self._time_file = open(self.time_history_path, mode='w', encoding='utf-8')
        columns = ["Time"] + [f"{name}_pFluct" for name in observer_names]
        self._time_file.write(" ".join(columns) + "\n")

    def write_time_step(self, time: float, pressures: Sequence[float]) -> None:
        """Append one line: time followed by one pressure per observer."""
        if self._time_file is None:
            raise RuntimeError("Time history file is not open, call open() first.")
        self._time_file.write(" ".join(_fmt(v) for v in [time, *pressures]) + "\n")

    def write_spectrum(self, observer_name: str, spectrum: Spectrum) -> bool:
        """
        Overwrite the spectrum file of an observer.

        Returns:
            False (and writes nothing) when the spectrum has no bins.
        """
        if spectrum.is_empty:
            return False

        os.makedirs(self.directory, exist_ok=True)
        with open(self.spectrum_path(observer_name), mode='w', encoding='utf-8') as f:
            f.write("Freq p' spl\n")
            for freq, amp, spl in zip(spectrum.frequencies, spectrum.amplitudes, spectrum.spl):
                f.write(f"{_fmt(freq)} {_fmt(amp)} {_fmt(spl)}\n")
        return True

    def flush(self) -> None:
        if self._time_file is not None:
            self._time_file.flush()

    def close(self) -> None:
        if self._time_file is not None:
            self._time_file.close()
            self._time_file = None


def read_time_history(filepath: str) -> tuple[list[str], npt.NDArray[np.float64]]:
    """
    Read a time history file back.

    Returns:
        (column names, data array of shape (n_lines, n_columns)).
    """
    with open(filepath, mode='r', encoding='utf-8') as f:
        header = f.readline().split()
    data = np.loadtxt(filepath, skiprows=1, ndmin=2)
    return header, data


class SurfaceRecording:
    """
    Boundary field samples of a finished (or running) simulation.

    Layout of the HDF5 file:

        attrs: format, version
        time                         (n_steps,)
        fields/<field>               attrs: is_pressure
        fields/<field>/<patch>       (n_steps, n_faces)
    """
    def __init__(self) -> None:
        self.times: list[float] = []
        self._is_pressure: dict[str, bool] = {}
        self._values: dict[str, dict[str, list[npt.NDArray[np.float64]]]] = {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(n_steps={self.n_steps}, fields={self.field_names})"

    @property
    def n_steps(self) -> int:
        return len(self.times)

    @property
    def field_names(self) -> list[str]:
        return list(self._values.keys())

    def record(self, time: float, fields: FieldRegistry) -> None:
        """Append the fields of one time step."""
        if self.times and time <= self.times[-1]:
            raise ValueError(f"Recorded times must increase, got {time} after {self.times[-1]}.")
        if self.times and set(fields.names) != set(self.field_names):
            raise ValueError(
                f"Every step must hold the same fields: expected {self.field_names}, got {fields.names}."
            )

        for boundary_field in fields:
            self._is_pressure[boundary_field.name] = boundary_field.is_pressure
            per_patch = self._values.setdefault(boundary_field.name, {})
            for patch, values in boundary_field.patch_values.items():
                per_patch.setdefault(patch, []).append(np.array(values, dtype=np.float64))
        self.times.append(float(time))

    def fields_at(self, step: int) -> FieldRegistry:
        """Boundary fields of one recorded step."""
        return FieldRegistry(
            BoundaryField(
                name=name,
                patch_values={patch: values[step] for patch, values in per_patch.items()},
                is_pressure=self._is_pressure[name],
            )
            for name, per_patch in self._values.items()
        )

    def steps(self) -> Iterator[tuple[float, float, FieldRegistry]]:
        """
        Iterate over (time, dt, fields).

        dt is the spacing to the previous step; the first step reuses the
        spacing to the second one.
        """
        if self.n_steps == 0:
            return
        if self.n_steps == 1:
            raise ValueError("A recording needs at least two steps to define the time step.")

        times = np.asarray(self.times)
        deltas = np.diff(times)
        for i, time in enumerate(times):
            dt = deltas[0] if i == 0 else deltas[i - 1]
            yield float(time), float(dt), self.fields_at(i)

    def save(self, filepath: str) -> None:
        logger.info(f"Saving surface recording to: {filepath}")
        try:
            with h5py.File(filepath, "w") as f:
                f.attrs["format"] = RECORDING_FORMAT
                f.attrs["version"] = APP_VERSION
                f.create_dataset("time", data=np.asarray(self.times, dtype=np.float64))

                grp_fields = f.create_group("fields")
                for name, per_patch in self._values.items():
                    grp = grp_fields.create_group(name)
                    grp.attrs["is_pressure"] = self._is_pressure[name]
                    for patch, values in per_patch.items():
                        grp.create_dataset(patch, data=np.vstack(values), compression="gzip")
        except Exception as e:
            logger.exception(f"Failed to save surface recording: {e}")
            raise

    @classmethod
    def load(cls, filepath: str) -> SurfaceRecording:
        logger.info(f"Loading surface recording from: {filepath}")
        if not h5py.is_hdf5(filepath):
            msg = f"File '{filepath}' is not a valid HDF5 file."
            logger.error(msg)
            raise ValueError(msg)

        recording = cls()
        with h5py.File(filepath, "r") as f:
            if f.attrs.get("format") != RECORDING_FORMAT:
                raise ValueError(f"File '{filepath}' is not a surface recording.")

            recording.times = [float(t) for t in f["time"][()]]
            n_steps = len(recording.times)
            for name, grp in f["fields"].items():
                recording._is_pressure[name] = bool(grp.attrs.get("is_pressure", True))
                per_patch = recording._values.setdefault(name, {})
                for patch, dataset in grp.items():
                    data = np.asarray(dataset[()], dtype=np.float64)
                    if data.shape[0] != n_steps:
                        raise ValueError(
                            f"Field '{name}' on patch '{patch}' has {data.shape[0]} steps, expected {n_steps}."
                        )
                    per_patch[patch] = list(data)

        logger.debug(f"Loaded {recording.n_steps} steps of fields {recording.field_names}")
        return recording
