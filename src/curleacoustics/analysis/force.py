from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np

from curleacoustics.controller.parallel import Communicator, SerialCommunicator
from curleacoustics.exceptions import ConfigurationError
from curleacoustics.config import DEFAULT_RHO_REF

if TYPE_CHECKING:
    import numpy.typing as npt

    from curleacoustics.pre.fields import BoundaryField
    from curleacoustics.pre.mesh import SurfaceMesh

logger = logging.getLogger(__name__)


def patch_pressure(
    patch_name: str,
    pressure_field: BoundaryField,
    density_field: Optional[BoundaryField] = None,
    rho_ref: float = DEFAULT_RHO_REF,
) -> npt.NDArray[np.float64]:
    """
    Face pressures on one patch, in pressure units.

    Kinematic pressure is multiplied by the density field sampled on the same
    patch when rho_ref is negative, otherwise by the constant rho_ref.

    Args:
        patch_name: Patch to sample.
        pressure_field: Pressure-like boundary field.
        density_field: Density boundary field, required when rho_ref < 0.
        rho_ref: Constant reference density, or a negative value to use the field.

    Returns:
        Face pressures, Pa.
    """
    p = pressure_field.on_patch(patch_name)
    if pressure_field.is_pressure:
        return p

    if rho_ref < 0.0:
        if density_field is None:
            raise ConfigurationError(
                f"Field '{pressure_field.name}' is kinematic and 'rhoRef' is negative, "
                "but no density field was supplied."
            )
        return p * density_field.on_patch(patch_name)

    return p * rho_ref


def compute_force(
    mesh: SurfaceMesh,
    patch_names: Sequence[str],
    pressure_field: BoundaryField,
    density_field: Optional[BoundaryField] = None,
    rho_ref: float = DEFAULT_RHO_REF,
    communicator: Optional[Communicator] = None,
) -> npt.NDArray[np.float64]:
    """
    Net force the fluid exerts on the monitored patches.

    Sums p * Sf over all faces of all patches and all partitions. The sign is
    flipped because Sf points out of the fluid domain, into the body.

    Returns:
        Force vector of shape (3,), N.
    """
    communicator = communicator or SerialCommunicator()

    partial = np.zeros(3, dtype=np.float64)
    for patch_name in patch_names:
        patch = mesh.find_patch(patch_name)
        pressure = patch_pressure(patch_name, pressure_field, density_field, rho_ref)
        if pressure.size != patch.n_faces:
            raise ValueError(
                f"Field '{pressure_field.name}' has {pressure.size} values on patch "
                f"'{patch_name}', which has {patch.n_faces} faces."
            )
        partial += pressure @ patch.face_area_vectors

    return -np.asarray(communicator.sum(partial), dtype=np.float64)


def source_reference(
    mesh: SurfaceMesh,
    patch_names: Sequence[str],
    communicator: Optional[Communicator] = None,
) -> npt.NDArray[np.float64]:
    """
    Effective acoustic source location of the monitored surface.

    Unweighted arithmetic mean of all face centres of all monitored patches
    over all partitions. Face areas are not used.

    Returns:
        Source reference point of shape (3,).
    """
    communicator = communicator or SerialCommunicator()

    centre_sum = np.zeros(3, dtype=np.float64)
    n_faces = 0.0
    for patch_name in patch_names:
        patch = mesh.find_patch(patch_name)
        centre_sum += patch.face_centres.sum(axis=0)
        n_faces += patch.n_faces

    centre_sum = np.asarray(communicator.sum(centre_sum), dtype=np.float64)
    n_faces = float(communicator.sum(n_faces))

    if n_faces == 0:
        raise ConfigurationError(f"Patches {list(patch_names)} have no faces.")

    reference = centre_sum / n_faces
    logger.debug(f"Acoustic source reference at {reference} from {int(n_faces)} faces")
    return reference
