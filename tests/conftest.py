"""
Shared fixtures: a small two-patch surface mesh, boundary fields and
monitor settings.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict

import numpy as np
import pytest

from curleacoustics.logging_config import PACKAGE_LOGGER
from curleacoustics.pre.fields import BoundaryField, FieldRegistry
from curleacoustics.pre.mesh import Patch, SurfaceMesh


def plate(name: str, x: float, normal_sign: float, n_faces: int = 4) -> Patch:
    """
    A plate of n_faces unit squares at constant x, faces along y.

    The area vectors point along normal_sign * x.
    """
    centres = np.array([[x, 0.5 + i, 0.0] for i in range(n_faces)])
    area_vectors = np.tile([normal_sign, 0.0, 0.0], (n_faces, 1))
    return Patch(name, centres, area_vectors)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers added by setup_logging so they do not outlive the captured stdout."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(level)


@pytest.fixture
def two_plate_mesh() -> SurfaceMesh:
    """Front plate at x=0 (normal -x), back plate at x=1 (normal +x), plus an unmonitored floor."""
    floor = Patch("floor", [[0.5, 0.5, -1.0]], [[0.0, 0.0, -1.0]])
    return SurfaceMesh([plate("front", 0.0, -1.0), plate("back", 1.0, 1.0), floor])


@pytest.fixture
def make_fields() -> Callable[..., FieldRegistry]:
    """Factory for uniform pressure fields on the two plates."""
    def _make(p_front: float, p_back: float, is_pressure: bool = True,
              rho: float | None = None) -> FieldRegistry:
        fields = [
            BoundaryField("p", {"front": np.full(4, p_front), "back": np.full(4, p_back), "floor": [0.0]},
                          is_pressure=is_pressure)
        ]
        if rho is not None:
            fields.append(BoundaryField("rho", {"front": np.full(4, rho), "back": np.full(4, rho), "floor": [rho]}))
        return FieldRegistry(fields)
    return _make


@pytest.fixture
def settings_dict() -> Dict:
    """Settings in the on-disk key format."""
    return {
        "probeFrequency": 1,
        "patchNames": ["front", "back"],
        "timeStart": 0.0,
        "timeEnd": 10.0,
        "pName": "p",
        "rhoName": "rho",
        "rhoRef": 1.0,
        "c0": 340.0,
        "dRef": -1.0,
        "log": False,
        "observers": {
            "mic1": {"position": [10.5, 2.0, 0.0], "pRef": 2.0e-5, "fftFreq": 8},
            "mic2": {"position": [0.5, 2.0, 20.0], "pRef": 2.0e-5, "fftFreq": 16},
        },
    }
