from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import numpy as np

from curleacoustics.exceptions import ObserverPlacementError

if TYPE_CHECKING:
    import numpy.typing as npt


def observer_distances(
    source_ref: npt.ArrayLike,
    observer_positions: npt.ArrayLike,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    Vectors and distances from the source reference to each observer.

    Raises:
        ObserverPlacementError: If an observer coincides with the source reference.

    Returns:
        (l, r) with shapes (n_observers, 3) and (n_observers,).
    """
    positions = np.asarray(observer_positions, dtype=np.float64).reshape(-1, 3)
    l = positions - np.asarray(source_ref, dtype=np.float64)
    r = np.linalg.norm(l, axis=1)

    coincident = np.flatnonzero(~(r > 0.0))
    if coincident.size:
        raise ObserverPlacementError(
            f"Observer(s) at index {coincident.tolist()} coincide with the acoustic source "
            f"reference {np.asarray(source_ref).tolist()}; the distance must be positive."
        )
    return l, r


def curle_pressure(
    force: npt.ArrayLike,
    dfdt: npt.ArrayLike,
    source_ref: npt.ArrayLike,
    observer_positions: npt.ArrayLike,
    c0: float,
    d_ref: Optional[float] = None,
) -> npt.NDArray[np.float64]:
    """
    Far-field acoustic pressure of a compact dipole (Curle's analogy).

        p' = l . (dF/dt + c0 F / r) / (4 pi c0 r^2)

    where l is the vector from the source reference to the observer and r its
    length. With a positive d_ref the result is divided by d_ref.

    Args:
        force: Net surface force, N.
        dfdt: Force time derivative, N/s.
        source_ref: Effective source location.
        observer_positions: Observer positions, shape (n, 3).
        c0: Speed of sound, m/s.
        d_ref: Optional reference distance for normalisation.

    Returns:
        Acoustic pressure per observer, Pa (or Pa/m when normalised).
    """
    if not (c0 > 0.0):
        raise ValueError(f"Speed of sound must be positive, got {c0}.")

    l, r = observer_distances(source_ref, observer_positions)
    return _dipole_pressure(force, dfdt, l, r, c0, d_ref)


def _dipole_pressure(
    force: npt.ArrayLike,
    dfdt: npt.ArrayLike,
    l: npt.NDArray[np.float64],
    r: npt.NDArray[np.float64],
    c0: float,
    d_ref: Optional[float],
) -> npt.NDArray[np.float64]:
    force = np.asarray(force, dtype=np.float64)
    dfdt = np.asarray(dfdt, dtype=np.float64)

    # (n, 3) . (n, 3) row-wise
    dipole = dfdt[np.newaxis, :] + c0 * force[np.newaxis, :] / r[:, np.newaxis]
    pressure = np.einsum("ij,ij->i", l, dipole) / (4.0 * np.pi * c0 * r**2)

    if d_ref is not None and d_ref > 0.0:
        pressure /= d_ref
    return pressure


class AcousticPropagator:
    """
    Maps force and force rate to observer pressures for a fixed geometry.

    The source reference and observer positions are fixed for the run, so
    distances are computed (and validated) once.
    """
    def __init__(
        self,
        source_ref: npt.ArrayLike,
        observer_positions: npt.ArrayLike,
        c0: float,
        d_ref: Optional[float] = None,
    ) -> None:
        if not (c0 > 0.0):
            raise ValueError(f"Speed of sound must be positive, got {c0}.")
        self.source_ref = np.asarray(source_ref, dtype=np.float64)
        self.observer_positions = np.asarray(observer_positions, dtype=np.float64).reshape(-1, 3)
        self.c0 = float(c0)
        self.d_ref = d_ref

        # raises on coincident observers
        self.l, self.r = observer_distances(self.source_ref, self.observer_positions)

    @property
    def n_observers(self) -> int:
        return len(self.observer_positions)

    def propagate(self, force: npt.ArrayLike, dfdt: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """Acoustic pressure at every observer, in observer order."""
        return _dipole_pressure(force, dfdt, self.l, self.r, self.c0, self.d_ref)
