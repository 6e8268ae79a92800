from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

import numpy as np
import scipy as sp

from curleacoustics.config import DEFAULT_FFT_FREQ, DEFAULT_P_REF, MIN_FFT_FREQ

if TYPE_CHECKING:
    import numpy.typing as npt

    from curleacoustics.config import ObserverSettings

logger = logging.getLogger(__name__)


def _empty() -> npt.NDArray[np.float64]:
    return np.empty(0, dtype=np.float64)


@dataclass
class Spectrum:
    """
    Single-sided amplitude spectrum of an observer's pressure signal.

    Attributes:
        frequencies: Bin frequencies, Hz.
        amplitudes: Fluctuating pressure amplitude p' per bin, Pa.
        spl: Sound pressure level 20 log10(p' / p_ref) per bin, dB.
    """
    frequencies: npt.NDArray[np.float64] = field(default_factory=_empty)
    amplitudes: npt.NDArray[np.float64] = field(default_factory=_empty)
    spl: npt.NDArray[np.float64] = field(default_factory=_empty)

    def __len__(self) -> int:
        return len(self.frequencies)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def peak(self) -> tuple[float, float, float]:
        """(frequency, amplitude, spl) of the strongest bin."""
        if self.is_empty:
            raise ValueError("Spectrum is empty.")
        k = int(np.argmax(self.amplitudes))
        return float(self.frequencies[k]), float(self.amplitudes[k]), float(self.spl[k])

    def plot(self, title: str = "") -> None:
        """Plot the sound pressure level spectrum."""
        import matplotlib.pyplot as plt

        if self.is_empty:
            logger.info("Spectrum is empty, nothing to plot.")
            return

        plt.rcParams["figure.constrained_layout.use"] = True
        plt.figure(figsize=(7, 5))
        plt.semilogx(self.frequencies, self.spl, 'b', lw=1.5)

        plt.grid(visible=True, which='major', axis='both', linestyle='-', color='gray', lw=0.5)
        plt.minorticks_on()
        plt.grid(visible=True, which='minor', axis='both', linestyle=':', color='gray', lw=0.5)

        plt.title(title or "Sound Pressure Level")
        plt.xlabel("Frequency (Hz)")
        plt.ylabel("SPL (dB)")
        plt.show()


def amplitude_spectrum(
    signal: npt.ArrayLike,
    window_length: int,
    sample_interval: float,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    Window-averaged single-sided amplitude spectrum.

    The signal is cut into consecutive, non-overlapping windows of
    window_length samples; a trailing partial window is dropped. Each window
    is transformed without tapering and the amplitudes are averaged over the
    windows. The mean (0 Hz) bin is not returned.

    Args:
        signal: Uniformly sampled signal.
        window_length: Samples per window.
        sample_interval: Time between samples, s.

    Returns:
        (frequencies, amplitudes); both empty when no full window exists.
    """
    if window_length < 1:
        raise ValueError(f"Window length must be a positive integer, got {window_length}.")
    if not (sample_interval > 0.0):
        raise ValueError(f"Sample interval must be positive, got {sample_interval}.")

    signal = np.asarray(signal, dtype=np.float64)
    n_windows = len(signal) // window_length
    if n_windows == 0:
        return _empty(), _empty()

    windows = signal[:n_windows * window_length].reshape(n_windows, window_length)
    magnitudes = np.abs(sp.fft.rfft(windows, axis=1)) / window_length

    # single-sided: fold negative frequencies, except 0 Hz and Nyquist
    magnitudes[:, 1:] *= 2.0
    if window_length % 2 == 0:
        magnitudes[:, -1] /= 2.0

    amplitudes = magnitudes.mean(axis=0)[1:]
    frequencies = sp.fft.rfftfreq(window_length, d=sample_interval)[1:]
    return frequencies, amplitudes


def sound_pressure_level(
    amplitudes: npt.ArrayLike,
    p_ref: float,
) -> npt.NDArray[np.float64]:
    """SPL = 20 log10(p' / p_ref); silent bins give -inf."""
    with np.errstate(divide="ignore"):
        return 20.0 * np.log10(np.asarray(amplitudes, dtype=np.float64) / p_ref)


class SoundObserver:
    """
    A fixed point where acoustic pressure is recorded.
    """
    def __init__(
        self,
        name: str,
        position: list[float] | npt.NDArray[np.float64],
        p_ref: float = DEFAULT_P_REF,
        fft_freq: int = DEFAULT_FFT_FREQ,
    ) -> None:
        """
        Initialize the observer.

        Args:
            name: Unique observer name.
            position: Observer position [X, Y, Z].
            p_ref: Reference pressure for the sound pressure level, Pa.
            fft_freq: Number of samples per FFT window.
        """
        if not (p_ref > 0.0):
            raise ValueError(f"Observer '{name}': reference pressure must be positive, got {p_ref}.")
        if fft_freq < MIN_FFT_FREQ:
            raise ValueError(f"Observer '{name}': FFT window must hold at least {MIN_FFT_FREQ} samples, got {fft_freq}.")

        self.name = name
        self.position = np.array(position, dtype=np.float64).reshape(3)
        self.p_ref = float(p_ref)
        self.fft_freq = int(fft_freq)
        self._times: list[float] = []
        self._pressures: list[float] = []

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name='{self.name}', position={self.position}, "
            f"n_samples={self.n_samples})"
        )

    @classmethod
    def from_settings(cls, settings: ObserverSettings) -> SoundObserver:
        return cls(
            name=settings.name,
            position=settings.position,
            p_ref=settings.p_ref,
            fft_freq=settings.fft_freq,
        )

    @property
    def n_samples(self) -> int:
        return len(self._pressures)

    @property
    def pressure(self) -> float:
        """Most recent acoustic pressure, 0.0 before the first sample."""
        return self._pressures[-1] if self._pressures else 0.0

    @property
    def times(self) -> npt.NDArray[np.float64]:
        return np.array(self._times, dtype=np.float64)

    @property
    def pressures(self) -> npt.NDArray[np.float64]:
        return np.array(self._pressures, dtype=np.float64)

    def append(self, time: float, pressure: float) -> None:
        """Record the acoustic pressure at a simulation time."""
        self._times.append(float(time))
        self._pressures.append(float(pressure))

    def analyze(self, window_length: Optional[int], sample_interval: float) -> Spectrum:
        """
        Spectrum of the complete recorded history.

        Recomputed from all samples on every call; nothing is cached.

        Args:
            window_length: Samples per FFT window, None for fft_freq.
            sample_interval: Time between samples, s.

        Returns:
            The spectrum, empty while fewer than window_length samples exist.
        """
        window_length = self.fft_freq if window_length is None else int(window_length)
        frequencies, amplitudes = amplitude_spectrum(self._pressures, window_length, sample_interval)
        return Spectrum(
            frequencies=frequencies,
            amplitudes=amplitudes,
            spl=sound_pressure_level(amplitudes, self.p_ref),
        )

    def plot_pressure_history(self) -> None:
        """Plot the recorded acoustic pressure against time."""
        import matplotlib.pyplot as plt

        if not self._pressures:
            logger.info(f"No pressure history available to plot for observer '{self.name}'.")
            return

        plt.figure(figsize=(10, 5))
        plt.plot(self.times, self.pressures, lw=1.0)
        plt.title(f"Acoustic Pressure at Observer {self.name}")
        plt.xlabel("Time (s)")
        plt.ylabel("p' (Pa)")
        plt.grid(True)
        plt.show()
