"""
Curle Acoustic Monitor
======================
Drives the acoustic analysis from the host simulation's time loop.

Why is this file needed?
------------------------
1. Gating: It decides which time steps are sampled (probe frequency and the
   active time window).
2. Orchestration: For every sampled step it runs force integration,
   derivative estimation, propagation and spectral analysis, in that order.
3. Output: It hands the results to the writer on the coordinating partition.

Lifecycle:
    configure(settings, mesh) -> on_step(time, dt, fields) ... -> flush() / close()
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional

import numpy as np

from curleacoustics.analysis.derivative import ForceDerivativeEstimator
from curleacoustics.analysis.force import compute_force, source_reference
from curleacoustics.analysis.observer import SoundObserver, Spectrum
from curleacoustics.analysis.propagator import AcousticPropagator
from curleacoustics.config import CurleSettings
from curleacoustics.controller.parallel import Communicator, SerialCommunicator
from curleacoustics.exceptions import ObserverPlacementError
from curleacoustics.model.io import AcousticWriter
from curleacoustics.pre.mesh import SurfaceMesh

if TYPE_CHECKING:
    import numpy.typing as npt

    from curleacoustics.pre.fields import FieldRegistry

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """Everything computed for one sampled time step."""
    time: float
    force: npt.NDArray[np.float64]
    dfdt: npt.NDArray[np.float64]
    pressures: dict[str, float] = field(default_factory=dict)
    spectra: dict[str, Spectrum] = field(default_factory=dict)


class CurleMonitor:
    """
    Far-field noise of the pressure forces on a set of patches, evaluated
    at fixed observers with Curle's compact dipole analogy.
    """
    def __init__(
        self,
        name: str,
        settings: Optional[CurleSettings | Mapping[str, Any]] = None,
        mesh: Optional[SurfaceMesh] = None,
        output_dir: Optional[str] = None,
        communicator: Optional[Communicator] = None,
    ) -> None:
        """
        Initialize the monitor.

        Args:
            name: Monitor name, used in output file names.
            settings: Settings object or raw settings mapping. When given,
                      the monitor is configured immediately.
            mesh: Surface mesh of this partition.
            output_dir: Directory that receives acousticData/. None disables file output.
            communicator: Reduction across partitions; serial by default.
        """
        self.name = name
        self.communicator = communicator or SerialCommunicator()
        self.active = True

        self.settings: Optional[CurleSettings] = None
        self.mesh: Optional[SurfaceMesh] = None
        self.observers: list[SoundObserver] = []
        self.estimator = ForceDerivativeEstimator()
        self.propagator: Optional[AcousticPropagator] = None
        self.source_ref: Optional[npt.NDArray[np.float64]] = None

        self._probe_counter: int = 0
        self._accepted_steps: int = 0
        # same value on every partition, unlike _accepted_steps
        self._sampling_started: bool = False

        self.writer: Optional[AcousticWriter] = None
        if output_dir is not None and self.communicator.is_coordinator:
            self.writer = AcousticWriter(output_dir, name)

        if settings is not None:
            self.configure(settings, mesh)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name='{self.name}', active={self.active}, "
            f"observers={[obs.name for obs in self.observers]})"
        )

    def __enter__(self) -> CurleMonitor:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_configured(self) -> bool:
        return self.settings is not None

    @property
    def accepted_steps(self) -> int:
        """Number of steps that produced observer samples."""
        return self._accepted_steps

    def observer(self, name: str) -> SoundObserver:
        for obs in self.observers:
            if obs.name == name:
                return obs
        raise KeyError(f"No observer named '{name}'. Observers are: {[o.name for o in self.observers]}")

    def configure(
        self,
        settings: CurleSettings | Mapping[str, Any],
        mesh: Optional[SurfaceMesh],
    ) -> None:
        """
        Read the settings and set up the fixed geometry.

        A missing mesh deactivates the monitor for the rest of the run.

        Raises:
            ConfigurationError: Invalid settings.
            PatchNotFoundError: A patch name does not exist on the mesh.
            ObserverPlacementError: An observer sits on the source reference.
        """
        if not isinstance(mesh, SurfaceMesh):
            if self.active:
                logger.warning(f"{self.name}: No surface mesh available, deactivating.")
            self.active = False
            return

        if not self.active:
            return

        if self._sampling_started:
            raise RuntimeError(f"{self.name}: cannot reconfigure after sampling has started.")

        if not isinstance(settings, CurleSettings):
            settings = CurleSettings.from_dict(settings)

        if not settings.log:
            logger.info(
                f"{self.name}: Direct logging of observer pressures disabled, "
                "set \"log\": true in the settings to enable it."
            )

        # fatal on unknown patch names
        for patch_name in settings.patch_names:
            mesh.find_patch(patch_name)

        source_ref = source_reference(mesh, settings.patch_names, self.communicator)

        observers = [SoundObserver.from_settings(obs) for obs in settings.observers]
        for obs in observers:
            if not (np.linalg.norm(obs.position - source_ref) > 0.0):
                raise ObserverPlacementError(
                    f"Observer '{obs.name}' at {obs.position.tolist()} coincides with the acoustic "
                    f"source reference {source_ref.tolist()}."
                )

        self.settings = settings
        self.mesh = mesh
        self.source_ref = source_ref
        self.observers = observers
        self.estimator.reset()
        self.propagator = AcousticPropagator(
            source_ref=source_ref,
            observer_positions=[obs.position for obs in observers],
            c0=settings.c0,
            d_ref=settings.d_ref if settings.distance_normalised else None,
        )
        self._probe_counter = 0

        logger.info(
            f"{self.name}: monitoring patches {list(settings.patch_names)} with "
            f"{len(observers)} observers, source reference at {source_ref.tolist()}"
        )

    def _sample_this_step(self) -> bool:
        self._probe_counter += 1
        if self._probe_counter % self.settings.probe_frequency != 0:
            return False
        if self.settings.log:
            logger.info(f"{self.name}: Starting acoustics probe")
        self._probe_counter = 0
        return True

    def on_step(self, time: float, dt: float, fields: FieldRegistry) -> Optional[StepResult]:
        """
        Process one simulation time step.

        Every partition must call this so the force sum can complete.

        Args:
            time: Current simulation time, s.
            dt: Simulation time step, s.
            fields: Boundary fields of the current step.

        Returns:
            The step result on the coordinating partition when the step was
            sampled, otherwise None.
        """
        if not self.active:
            return None
        if self.settings is None:
            raise RuntimeError(f"{self.name}: monitor is not configured.")

        settings = self.settings

        if self.writer is not None and not self.writer.is_open:
            self.writer.open([obs.name for obs in self.observers])

        if not self._sample_this_step():
            return None

        if time < settings.time_start or time > settings.time_end:
            return None

        pressure_field = fields.lookup(settings.p_name)
        density_field = None
        if settings.uses_density_field and not pressure_field.is_pressure:
            density_field = fields.lookup(settings.rho_name)

        force = compute_force(
            mesh=self.mesh,
            patch_names=settings.patch_names,
            pressure_field=pressure_field,
            density_field=density_field,
            rho_ref=settings.rho_ref,
            communicator=self.communicator,
        )

        self._sampling_started = True

        if not self.communicator.is_coordinator:
            return None

        dfdt = self.estimator.update(force, dt)
        pressures = self.propagator.propagate(force, dfdt)

        result = StepResult(time=time, force=force, dfdt=dfdt)
        for obs, pressure in zip(self.observers, pressures):
            obs.append(time, pressure)
            result.pressures[obs.name] = float(pressure)
        self._accepted_steps += 1

        if self.writer is not None:
            self.writer.write_time_step(time - settings.time_start, pressures)

        # samples are probe_frequency steps apart
        sample_interval = settings.probe_frequency * dt
        for obs in self.observers:
            spectrum = obs.analyze(obs.fft_freq, sample_interval)
            if spectrum.is_empty:
                continue
            result.spectra[obs.name] = spectrum
            if self.writer is not None:
                self.writer.write_spectrum(obs.name, spectrum)

        if settings.log:
            for obs in self.observers:
                logger.info(f"Observer: {obs.name} p' = {obs.pressure}")

        return result

    def flush(self) -> None:
        """Push buffered output to disk."""
        if self.writer is not None:
            self.writer.flush()

    def close(self) -> None:
        """Flush and close the output files."""
        if self.writer is not None:
            self.writer.flush()
            self.writer.close()
