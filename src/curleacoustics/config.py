"""
Monitor Settings
================
This module defines the immutable configuration of an acoustic monitor.

Why is this file needed?
------------------------
1. Validation: Every key is checked once, when the settings are read, so a
   bad value stops the run before the first time step instead of halfway.
2. Persistence: Settings are stored as JSON using the same key names the
   monitor dictionaries have always used (probeFrequency, patchNames, ...).

Exports:
    ObserverSettings: Position, reference pressure and FFT window of one observer.
    CurleSettings: The complete monitor configuration.
    load_settings: Read a CurleSettings object from a JSON file.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple

from curleacoustics.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Defaults
DEFAULT_PROBE_FREQUENCY: int = 1
DEFAULT_C0: float = 300.0  # m/s
DEFAULT_D_REF: float = -1.0  # non-positive disables distance normalisation
DEFAULT_RHO_REF: float = 1.0  # kg/m^3
DEFAULT_P_NAME: str = "p"
DEFAULT_RHO_NAME: str = "rho"
DEFAULT_P_REF: float = 1.0e-5  # Pa
DEFAULT_FFT_FREQ: int = 1024
MIN_FFT_FREQ: int = 2  # a single sample only has the 0 Hz bin


def _as_vector(value: Any, key: str) -> Tuple[float, float, float]:
    try:
        components = tuple(float(v) for v in value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"'{key}' must be a sequence of three numbers, got {value!r}.") from e
    if len(components) != 3:
        raise ConfigurationError(f"'{key}' must have exactly three components, got {len(components)}.")
    return components  # type: ignore[return-value]


@dataclass(frozen=True)
class ObserverSettings:
    name: str
    position: Tuple[float, float, float]
    p_ref: float = DEFAULT_P_REF
    fft_freq: int = DEFAULT_FFT_FREQ

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("Observer name must be a non-empty string.")
        if not (self.p_ref > 0.0):
            raise ConfigurationError(f"Observer '{self.name}': 'pRef' must be positive, got {self.p_ref}.")
        if self.fft_freq < MIN_FFT_FREQ:
            raise ConfigurationError(
                f"Observer '{self.name}': 'fftFreq' must be an integer >= {MIN_FFT_FREQ}, got {self.fft_freq}."
            )

    def to_dict(self) -> Dict[str, Any]:
        return {"position": list(self.position), "pRef": self.p_ref, "fftFreq": self.fft_freq}

    @staticmethod
    def from_dict(name: str, data: Mapping[str, Any]) -> ObserverSettings:
        if "position" not in data:
            raise ConfigurationError(f"Observer '{name}' is missing the required key 'position'.")
        fft_freq = data.get("fftFreq", DEFAULT_FFT_FREQ)
        if isinstance(fft_freq, float) and not fft_freq.is_integer():
            raise ConfigurationError(f"Observer '{name}': 'fftFreq' must be an integer, got {fft_freq}.")
        return ObserverSettings(
            name=name,
            position=_as_vector(data["position"], f"observers.{name}.position"),
            p_ref=float(data.get("pRef", DEFAULT_P_REF)),
            fft_freq=int(fft_freq),
        )


@dataclass(frozen=True)
class CurleSettings:
    """
    Complete configuration of one Curle acoustic monitor.

    Attributes:
        patch_names: Surface patches whose pressure forces radiate sound.
        time_start: Start of the active window (inclusive), seconds.
        time_end: End of the active window (inclusive), seconds.
        probe_frequency: Execute every Nth time step.
        p_name: Name of the pressure-like boundary field.
        rho_name: Name of the density field, used when rho_ref is negative.
        rho_ref: Constant density for kinematic pressure; negative selects the field.
        c0: Ambient speed of sound, m/s.
        d_ref: Reference distance; positive values normalise the pressure.
        log: Echo observer pressures to the log on every accepted step.
        observers: Observer definitions in configuration order.
    """
    patch_names: Tuple[str, ...]
    time_start: float
    time_end: float
    probe_frequency: int = DEFAULT_PROBE_FREQUENCY
    p_name: str = DEFAULT_P_NAME
    rho_name: str = DEFAULT_RHO_NAME
    rho_ref: float = DEFAULT_RHO_REF
    c0: float = DEFAULT_C0
    d_ref: float = DEFAULT_D_REF
    log: bool = False
    observers: Tuple[ObserverSettings, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.patch_names:
            raise ConfigurationError("'patchNames' must contain at least one patch.")
        if self.probe_frequency < 1:
            raise ConfigurationError(f"'probeFrequency' must be a positive integer, got {self.probe_frequency}.")
        if not (self.c0 > 0.0) or not math.isfinite(self.c0):
            raise ConfigurationError(f"'c0' must be a positive finite number, got {self.c0}.")
        if self.time_end < self.time_start:
            raise ConfigurationError(
                f"'timeEnd' ({self.time_end}) must not be smaller than 'timeStart' ({self.time_start})."
            )
        if self.rho_ref == 0.0:
            raise ConfigurationError("'rhoRef' must be positive, or negative to read the density field.")
        names = [obs.name for obs in self.observers]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Observer names must be unique, duplicated: {duplicates}")

    @property
    def uses_density_field(self) -> bool:
        """True when density is read from the rho field instead of the constant."""
        return self.rho_ref < 0.0

    @property
    def distance_normalised(self) -> bool:
        return self.d_ref > 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "probeFrequency": self.probe_frequency,
            "patchNames": list(self.patch_names),
            "timeStart": self.time_start,
            "timeEnd": self.time_end,
            "pName": self.p_name,
            "rhoName": self.rho_name,
            "rhoRef": self.rho_ref,
            "c0": self.c0,
            "dRef": self.d_ref,
            "log": self.log,
            "observers": {obs.name: obs.to_dict() for obs in self.observers},
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> CurleSettings:
        for key in ("patchNames", "timeStart", "timeEnd"):
            if key not in data:
                raise ConfigurationError(f"Missing required key '{key}'.")

        patch_names = data["patchNames"]
        if isinstance(patch_names, str):
            patch_names = [patch_names]

        probe_frequency = data.get("probeFrequency", DEFAULT_PROBE_FREQUENCY)
        if isinstance(probe_frequency, float) and not probe_frequency.is_integer():
            raise ConfigurationError(f"'probeFrequency' must be an integer, got {probe_frequency}.")

        observers_data = data.get("observers", {})
        if not isinstance(observers_data, Mapping):
            raise ConfigurationError("'observers' must be a mapping of name -> observer definition.")

        return CurleSettings(
            patch_names=tuple(str(name) for name in patch_names),
            time_start=float(data["timeStart"]),
            time_end=float(data["timeEnd"]),
            probe_frequency=int(probe_frequency),
            p_name=str(data.get("pName", DEFAULT_P_NAME)),
            rho_name=str(data.get("rhoName", DEFAULT_RHO_NAME)),
            rho_ref=float(data.get("rhoRef", DEFAULT_RHO_REF)),
            c0=float(data.get("c0", DEFAULT_C0)),
            d_ref=float(data.get("dRef", DEFAULT_D_REF)),
            log=bool(data.get("log", False)),
            observers=tuple(
                ObserverSettings.from_dict(name, obs) for name, obs in observers_data.items()
            ),
        )


def load_settings(filepath: str) -> CurleSettings:
    """
    Read monitor settings from a JSON file.

    Args:
        filepath: Path to the JSON settings file.

    Returns:
        Validated settings.
    """
    logger.info(f"Loading settings from: {filepath}")
    try:
        with open(filepath, mode='r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Settings file '{filepath}' is not valid JSON: {e}") from e

    settings = CurleSettings.from_dict(data)
    logger.debug(f"Loaded {len(settings.observers)} observers for patches {list(settings.patch_names)}")
    return settings
