from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Iterator, Mapping

import numpy as np

from curleacoustics.exceptions import FieldNotFoundError

if TYPE_CHECKING:
    import numpy.typing as npt


class BoundaryField:
    """
    Boundary values of one scalar field, sampled on the faces of each patch.

    Kinematic pressure (p/rho, as written by incompressible solvers) is
    stored with `is_pressure=False` and is converted to pressure by the
    force integrator.
    """
    def __init__(
        self,
        name: str,
        patch_values: Mapping[str, list[float] | npt.NDArray[np.float64]],
        is_pressure: bool = True,
    ) -> None:
        """
        Initialize the field.

        Args:
            name: Field name, e.g. "p" or "rho".
            patch_values: Patch name -> face values (one per face).
            is_pressure: Whether the values are already in pressure units.
        """
        self.name = name
        self.is_pressure = is_pressure
        self.patch_values: dict[str, npt.NDArray[np.float64]] = {
            patch: np.asarray(values, dtype=np.float64).ravel()
            for patch, values in patch_values.items()
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name='{self.name}', patches={list(self.patch_values)}, "
            f"is_pressure={self.is_pressure})"
        )

    def on_patch(self, patch_name: str) -> npt.NDArray[np.float64]:
        """Face values on a patch."""
        try:
            return self.patch_values[patch_name]
        except KeyError:
            raise FieldNotFoundError(f"{self.name}@{patch_name}", [f"{self.name}@{p}" for p in self.patch_values]) from None


class FieldRegistry:
    """
    The boundary fields available at one time step, looked up by name.
    """
    def __init__(self, fields: Iterable[BoundaryField] = ()) -> None:
        self._fields: dict[str, BoundaryField] = {}
        for f in fields:
            self.add(f)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[BoundaryField]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    @property
    def names(self) -> list[str]:
        return list(self._fields.keys())

    def add(self, field: BoundaryField) -> None:
        self._fields[field.name] = field

    def lookup(self, name: str) -> BoundaryField:
        """
        Get a field by name.

        Raises:
            FieldNotFoundError: If the field is not registered.
        """
        try:
            return self._fields[name]
        except KeyError:
            raise FieldNotFoundError(name, self.names) from None
