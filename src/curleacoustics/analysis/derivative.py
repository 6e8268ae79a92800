from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Union

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


class EstimatorState(Enum):
    EMPTY = "empty"
    ONE_SAMPLE = "one_sample"
    STEADY = "steady"


@dataclass(frozen=True)
class Empty:
    """No force has been seen yet."""
    state: ClassVar[EstimatorState] = EstimatorState.EMPTY


@dataclass(frozen=True)
class OneSample:
    """One previous force is stored."""
    previous: npt.NDArray[np.float64]
    state: ClassVar[EstimatorState] = EstimatorState.ONE_SAMPLE


@dataclass(frozen=True)
class Steady:
    """Two previous forces are stored."""
    previous: npt.NDArray[np.float64]
    previous_of_previous: npt.NDArray[np.float64]
    state: ClassVar[EstimatorState] = EstimatorState.STEADY


ForceHistory = Union[Empty, OneSample, Steady]


def first_order_derivative(
    force: npt.NDArray[np.float64],
    previous: npt.NDArray[np.float64],
    dt: float,
) -> npt.NDArray[np.float64]:
    """Backward difference (F - F1) / dt."""
    return (force - previous) / dt


def second_order_derivative(
    force: npt.NDArray[np.float64],
    previous: npt.NDArray[np.float64],
    previous_of_previous: npt.NDArray[np.float64],
    dt: float,
) -> npt.NDArray[np.float64]:
    """Second order backward differentiation formula (3F - 4F1 + F2) / (2 dt)."""
    return (3.0 * force - 4.0 * previous + previous_of_previous) / (2.0 * dt)


class ForceDerivativeEstimator:
    """
    Estimates dF/dt from successive force samples.

    The order of the scheme grows with the available history:

        EMPTY      -> returns zero, stores F
        ONE_SAMPLE -> first order backward difference
        STEADY     -> second order BDF

    Transitions happen once per update and never go back.
    """

    def __init__(self) -> None:
        self._history: ForceHistory = Empty()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(state={self.state.name})"

    @property
    def state(self) -> EstimatorState:
        return self._history.state

    @property
    def history(self) -> ForceHistory:
        return self._history

    def reset(self) -> None:
        """Forget all stored forces."""
        self._history = Empty()

    def update(self, force: npt.ArrayLike, dt: float) -> npt.NDArray[np.float64]:
        """
        Store a new force sample and return the derivative estimate.

        Args:
            force: Current force vector.
            dt: Time between this sample and the previous one, s.

        Returns:
            Estimated dF/dt, zero on the very first call.
        """
        if not (dt > 0.0):
            raise ValueError(f"Time step must be positive, got {dt}.")

        force = np.array(force, dtype=np.float64)
        history = self._history

        if isinstance(history, Empty):
            # Startup transient, the first derivative is zero by definition
            logger.debug("Force history empty, derivative set to zero")
            dfdt = np.zeros_like(force)
            self._history = OneSample(previous=force)

        elif isinstance(history, OneSample):
            dfdt = first_order_derivative(force, history.previous, dt)
            self._history = Steady(previous=force, previous_of_previous=history.previous)

        else:
            dfdt = second_order_derivative(force, history.previous, history.previous_of_previous, dt)
            self._history = Steady(previous=force, previous_of_previous=history.previous)

        return dfdt
