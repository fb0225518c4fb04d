"""
Triangle mesh produced by the mesher.

``TriangleMesh`` is an immutable value: arrays are made read-only at
construction and topology annotations are stored in read-only mappings.
Faces are wound counter-clockwise seen from outside, so face normals point
away from the solid.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

import numpy as np
from numpy.typing import NDArray

from sdfmill.geometry.topology import EdgeDescriptor, Feature


def _readonly(array: NDArray, dtype, width: int, name: str) -> NDArray:
    array = np.array(array, dtype=dtype)
    if array.size == 0:
        array = np.zeros((0, width), dtype=dtype)
    if array.ndim != 2 or array.shape[1] != width:
        raise ValueError(f"{name} must be an (N, {width}) array, got shape {array.shape}")
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class TriangleMesh:
    """Indexed triangle mesh with optional feature annotations.

    Attributes:
        vertices: (N, 3) vertex positions
        normals: (N, 3) unit vertex normals (field gradient)
        faces: (M, 3) int64 vertex indices, outward winding
        face_features: Per-triangle feature id, or None for untagged
            triangles
        features: Feature id -> Feature for every tagged subtree of the
            source graph
        feature_edges: Sorted vertex-index pair -> edge descriptor for mesh
            edges between triangles with different feature ids
    """

    vertices: NDArray[np.floating]
    normals: NDArray[np.floating]
    faces: NDArray[np.int64]
    face_features: tuple[str | None, ...] = ()
    features: Mapping[str, Feature] = field(default_factory=dict)
    feature_edges: Mapping[tuple[int, int], EdgeDescriptor] = field(default_factory=dict)

    def __post_init__(self) -> None:
        vertices = _readonly(self.vertices, np.float64, 3, "vertices")
        normals = _readonly(self.normals, np.float64, 3, "normals")
        faces = _readonly(self.faces, np.int64, 3, "faces")

        if len(normals) != len(vertices):
            raise ValueError(
                f"normals must match vertices, got {len(normals)} normals "
                f"for {len(vertices)} vertices"
            )
        if len(faces) and (faces.min() < 0 or faces.max() >= len(vertices)):
            raise ValueError("faces reference vertices out of range")

        face_features = tuple(self.face_features) or (None,) * len(faces)
        if len(face_features) != len(faces):
            raise ValueError(
                f"face_features must have one entry per face, got {len(face_features)} "
                f"for {len(faces)} faces"
            )

        object.__setattr__(self, "vertices", vertices)
        object.__setattr__(self, "normals", normals)
        object.__setattr__(self, "faces", faces)
        object.__setattr__(self, "face_features", face_features)
        object.__setattr__(self, "features", MappingProxyType(dict(self.features)))
        object.__setattr__(self, "feature_edges", MappingProxyType(dict(self.feature_edges)))

    @classmethod
    def empty(cls) -> TriangleMesh:
        """A mesh with no vertices and no faces."""
        return cls(np.zeros((0, 3)), np.zeros((0, 3)), np.zeros((0, 3), dtype=np.int64))

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.faces)

    @property
    def is_empty(self) -> bool:
        return len(self.faces) == 0

    @property
    def bounds(self) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        """(min_corner, max_corner) of the vertices; inverted for an empty mesh."""
        if len(self.vertices) == 0:
            return np.full(3, np.inf), np.full(3, -np.inf)
        return self.vertices.min(axis=0), self.vertices.max(axis=0)

    def face_normals(self) -> NDArray[np.floating]:
        """Unit geometric normal per triangle (zero for degenerate triangles)."""
        v0, v1, v2 = (self.vertices[self.faces[:, i]] for i in range(3))
        n = np.cross(v1 - v0, v2 - v0)
        length = np.linalg.norm(n, axis=1, keepdims=True)
        return np.divide(n, length, out=np.zeros_like(n), where=length > 0)

    def area(self) -> float:
        v0, v1, v2 = (self.vertices[self.faces[:, i]] for i in range(3))
        return float(np.linalg.norm(np.cross(v1 - v0, v2 - v0), axis=1).sum() / 2)

    def volume(self) -> float:
        """Enclosed volume by the divergence theorem.

        Only meaningful for closed meshes; positive for outward winding.
        """
        v0, v1, v2 = (self.vertices[self.faces[:, i]] for i in range(3))
        return float(np.einsum("ij,ij->i", v0, np.cross(v1, v2)).sum() / 6)

    def edge_valence(self) -> tuple[NDArray[np.int64], NDArray[np.int64]]:
        """Unique undirected edges and how many triangles use each.

        Returns:
            (E, 2) sorted vertex-index pairs and (E,) triangle counts
        """
        if self.is_empty:
            return np.zeros((0, 2), dtype=np.int64), np.zeros(0, dtype=np.int64)
        edges = np.sort(self.faces[:, [[0, 1], [1, 2], [2, 0]]].reshape(-1, 2), axis=1)
        unique, counts = np.unique(edges, axis=0, return_counts=True)
        return unique, counts

    def is_manifold(self) -> bool:
        """True if every edge is shared by exactly two triangles."""
        _, counts = self.edge_valence()
        return bool(np.all(counts == 2))

    def faces_for_feature(self, feature_id: str | None) -> NDArray[np.int64]:
        """Indices of the triangles annotated with ``feature_id``."""
        return np.array(
            [i for i, f in enumerate(self.face_features) if f == feature_id], dtype=np.int64
        )
