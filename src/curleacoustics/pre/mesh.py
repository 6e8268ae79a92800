from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Iterable

import numpy as np
import meshio

from curleacoustics.exceptions import ConfigurationError, PatchNotFoundError

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

# meshio cell types that describe boundary faces, with vertices per face
FACE_TYPE_MAP = {
    "triangle": 3,
    "quad": 4,
}

SURFACE_DIMENSION = 2
GMSH_PHYSICAL_KEY = "gmsh:physical"


def face_area_vectors(vertices: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Area vectors of planar polygons.

    Args:
        vertices: Array of shape (n_faces, n_vertices, 3), vertices in
                  winding order. The normal follows the right-hand rule.

    Returns:
        Array of shape (n_faces, 3) whose norms are the face areas.
    """
    following = np.roll(vertices, -1, axis=1)
    return 0.5 * np.cross(vertices, following).sum(axis=1)


class Patch:
    """
    A named group of boundary faces.

    Holds the face centres and the outward face-area vectors (Sf) of the
    faces owned by this partition.
    """
    def __init__(
        self,
        name: str,
        face_centres: list | npt.NDArray[np.float64],
        face_area_vectors: list | npt.NDArray[np.float64],
    ) -> None:
        """
        Initialize the patch.

        Args:
            name: Patch name, unique within a mesh.
            face_centres: Face centre positions, shape (n_faces, 3).
            face_area_vectors: Outward area vectors, shape (n_faces, 3).
        """
        self.name = name
        self.face_centres = np.asarray(face_centres, dtype=np.float64).reshape(-1, 3)
        self.face_area_vectors = np.asarray(face_area_vectors, dtype=np.float64).reshape(-1, 3)

        if self.face_centres.shape != self.face_area_vectors.shape:
            raise ValueError(
                f"Patch '{name}' has {len(self.face_centres)} face centres "
                f"but {len(self.face_area_vectors)} face area vectors."
            )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', n_faces={self.n_faces})"

    @property
    def n_faces(self) -> int:
        """Number of faces on this partition."""
        return len(self.face_centres)

    @property
    def face_areas(self) -> npt.NDArray[np.float64]:
        """Face areas (magnitudes of the area vectors)."""
        return np.linalg.norm(self.face_area_vectors, axis=1)

    @classmethod
    def from_polygons(cls, name: str, vertices: npt.NDArray[np.float64]) -> Patch:
        """Build a patch from polygon vertices of shape (n_faces, n_vertices, 3)."""
        vertices = np.asarray(vertices, dtype=np.float64)
        return cls(
            name=name,
            face_centres=vertices.mean(axis=1),
            face_area_vectors=face_area_vectors(vertices),
        )


class SurfaceMesh:
    """
    The boundary patches of a (partition of a) computational mesh.
    """
    def __init__(
        self,
        patches: Iterable[Patch] = (),
        filename: str | None = None,
    ) -> None:
        self.patches: dict[str, Patch] = {}
        self.filename = filename
        for patch in patches:
            self.add_patch(patch)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(patches={self.patch_names})"

    @property
    def patch_names(self) -> list[str]:
        return list(self.patches.keys())

    def add_patch(self, patch: Patch) -> None:
        """Add a patch to the mesh."""
        if patch.name in self.patches:
            raise ValueError(f"Patch '{patch.name}' is already defined.")
        self.patches[patch.name] = patch

    def find_patch(self, name: str) -> Patch:
        """
        Resolve a patch by name.

        Raises:
            PatchNotFoundError: If the name is unknown; the message lists valid names.
        """
        try:
            return self.patches[name]
        except KeyError:
            raise PatchNotFoundError(name, self.patch_names) from None

    @classmethod
    def from_file(cls, filename: str) -> SurfaceMesh:
        """
        Read named boundary patches from a mesh file.

        Triangle and quad cells are grouped into patches by their named
        physical group (gmsh) or by the file's cell sets. Other cell types
        are ignored.
        """
        logger.info(f"Reading surface mesh from: {filename}")
        mesh = meshio.read(filename)

        groups = _face_groups_from_physical_names(mesh)
        if not groups:
            groups = _face_groups_from_cell_sets(mesh)
        if not groups:
            raise ConfigurationError(
                f"Mesh file '{filename}' has no named triangle or quad groups to use as patches."
            )

        patches = []
        for name, blocks in groups.items():
            centres = []
            area_vectors = []
            for connectivity in blocks:
                vertices = mesh.points[connectivity]
                if vertices.shape[-1] == 2:
                    vertices = np.concatenate([vertices, np.zeros(vertices.shape[:-1] + (1,))], axis=-1)
                centres.append(vertices.mean(axis=1))
                area_vectors.append(face_area_vectors(vertices))
            patch = Patch(name, np.vstack(centres), np.vstack(area_vectors))
            logger.debug(f"Patch '{name}': {patch.n_faces} faces")
            patches.append(patch)

        return cls(patches=patches, filename=filename)


def _face_groups_from_physical_names(mesh: meshio.Mesh) -> dict[str, list[npt.NDArray[np.int64]]]:
    """Group face connectivity by gmsh physical surface name."""
    physical = mesh.cell_data.get(GMSH_PHYSICAL_KEY)
    if not physical or not mesh.field_data:
        return {}

    tag_to_name = {
        int(tag_dim[0]): name
        for name, tag_dim in mesh.field_data.items()
        if len(tag_dim) > 1 and int(tag_dim[1]) == SURFACE_DIMENSION
    }

    groups: dict[str, list[npt.NDArray[np.int64]]] = defaultdict(list)
    for block, tags in zip(mesh.cells, physical):
        if block.type not in FACE_TYPE_MAP:
            continue
        tags = np.asarray(tags)
        for tag in np.unique(tags):
            name = tag_to_name.get(int(tag))
            if name is None:
                continue
            groups[name].append(block.data[tags == tag])
    return dict(groups)


def _face_groups_from_cell_sets(mesh: meshio.Mesh) -> dict[str, list[npt.NDArray[np.int64]]]:
    """Group face connectivity by named cell sets."""
    groups: dict[str, list[npt.NDArray[np.int64]]] = defaultdict(list)
    for name, per_block in mesh.cell_sets.items():
        if name.startswith("gmsh:"):
            continue
        for block, indices in zip(mesh.cells, per_block):
            if block.type not in FACE_TYPE_MAP or indices is None or len(indices) == 0:
                continue
            groups[name].append(block.data[np.asarray(indices, dtype=np.int64)])
    return dict(groups)
