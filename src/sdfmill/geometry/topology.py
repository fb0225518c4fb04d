"""
Named topology for SDF geometry.

SDFs are implicit surfaces with no explicit faces or edges. This module adds
two kinds of semantic identity on top of the distance function:

- Analytic face/edge names: every primitive knows its faces from its math
  (a box has "top", "right", ..., a cylinder has "barrel"), and those names
  propagate through transforms and booleans.
- Features: an opaque ``Feature`` descriptor attached to a whole subtree
  with ``node.tag(feature)``. The mesher consumes features to annotate the
  triangles (and feature-boundary edges) each subtree produced.

Topology is side metadata only. Nothing here participates in distance
evaluation.

Example:
    >>> from sdfmill import box, cylinder
    >>> from sdfmill.geometry.topology import Feature, FaceKind
    >>> part = box((40, 30, 10))
    >>> part.face("top").normal
    (0.0, 0.0, 1.0)
    >>> bore = cylinder(4, 20).tag(Feature("bore", FaceKind.CYLINDRICAL))
    >>> drilled = part.subtract(bore)
    >>> [f.feature.feature_id for f in drilled.tag_fields()]
    ['bore']
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

import numpy as np
from numpy.typing import NDArray

Vec3 = tuple[float, float, float]


class FaceKind(Enum):
    """Surface geometry type of a named face."""

    PLANAR = "planar"
    CYLINDRICAL = "cylindrical"
    CONICAL = "conical"
    SPHERICAL = "spherical"
    TOROIDAL = "toroidal"
    FREEFORM = "freeform"


class EdgeKind(Enum):
    """Character of the boundary between two faces."""

    SHARP = "sharp"
    FILLET = "fillet"
    SMOOTH = "smooth"


def _vec(values: Iterable[float] | None) -> Vec3 | None:
    if values is None:
        return None
    x, y, z = (float(v) for v in values)
    return (x, y, z)


@dataclass(frozen=True)
class FaceDescriptor:
    """A named face of a shape.

    Attributes:
        name: Semantic name ("top", "barrel", "hole_1.barrel")
        kind: Surface geometry type
        normal: Representative outward normal
        origin: A point on the face (planar faces)
        radius: Radius for cylindrical/conical/spherical/toroidal faces
        axis: Axis direction for cylindrical/conical faces
    """

    name: str
    kind: FaceKind
    normal: Vec3
    origin: Vec3 | None = None
    radius: float | None = None
    axis: Vec3 | None = None

    def renamed(self, name: str, flip: bool = False) -> FaceDescriptor:
        normal = tuple(-c for c in self.normal) if flip else self.normal
        return replace(self, name=name, normal=normal)

    def mapped(
        self,
        point_map: Callable[[NDArray[np.floating]], NDArray[np.floating]],
        direction_map: Callable[[NDArray[np.floating]], NDArray[np.floating]],
        radius_scale: float = 1.0,
    ) -> FaceDescriptor:
        """Return a copy with origin, normal and axis moved into a parent frame."""
        normal = direction_map(np.asarray(self.normal, dtype=np.float64))
        length = np.linalg.norm(normal)
        if length > 0:
            normal = normal / length
        origin = None
        if self.origin is not None:
            origin = _vec(point_map(np.asarray(self.origin, dtype=np.float64)))
        axis = None
        if self.axis is not None:
            axis = direction_map(np.asarray(self.axis, dtype=np.float64))
            axis = _vec(axis / max(np.linalg.norm(axis), 1e-300))
        radius = self.radius * radius_scale if self.radius is not None else None
        return replace(self, normal=_vec(normal), origin=origin, axis=axis, radius=radius)


@dataclass(frozen=True)
class EdgeDescriptor:
    """A named edge where two faces meet.

    Attributes:
        name: Semantic name, "<face_a>.<face_b>"
        faces: The two face (or feature) names forming this edge
        kind: Sharp, fillet or smooth
        midpoint: Approximate midpoint of the edge
    """

    name: str
    faces: tuple[str, str]
    kind: EdgeKind = EdgeKind.SHARP
    midpoint: Vec3 | None = None

    def prefixed(self, prefix: str) -> EdgeDescriptor:
        return replace(
            self,
            name=f"{prefix}{self.name}",
            faces=(f"{prefix}{self.faces[0]}", f"{prefix}{self.faces[1]}"),
        )

    def mapped(
        self, point_map: Callable[[NDArray[np.floating]], NDArray[np.floating]]
    ) -> EdgeDescriptor:
        if self.midpoint is None:
            return self
        return replace(
            self, midpoint=_vec(point_map(np.asarray(self.midpoint, dtype=np.float64)))
        )


@dataclass(frozen=True)
class Feature:
    """Semantic descriptor attached to a subtree.

    Features such as drilled holes are ordinary subtrees carrying one of
    these. The mesher annotates every triangle the subtree produced with
    ``feature_id``.

    Attributes:
        feature_id: Stable identifier, unique within one graph
        face_kind: Surface type the feature produces
        edge_kind: Character of the feature's boundary edges
        attributes: Free-form metadata (diameter, depth, ...)
    """

    feature_id: str
    face_kind: FaceKind = FaceKind.FREEFORM
    edge_kind: EdgeKind = EdgeKind.SHARP
    attributes: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class TagField:
    """A tagged subtree evaluated in world coordinates.

    Attributes:
        feature: The attached feature
        distance: Callable mapping (N, 3) world points to the subtree's
            signed distance
        center: World-space center of the subtree's bounding box
    """

    feature: Feature
    distance: Callable[[NDArray[np.floating]], NDArray[np.floating]]
    center: NDArray[np.floating]


# === Propagation helpers ===


def has_name_collision(a: list[FaceDescriptor], b: list[FaceDescriptor]) -> bool:
    names = {f.name for f in a}
    return any(f.name in names for f in b)


def merge_faces(groups: list[list[FaceDescriptor]]) -> list[FaceDescriptor]:
    """Concatenate face lists, prefixing "a.", "b.", ... if names collide."""
    if not _groups_collide(groups):
        return [f for faces in groups for f in faces]
    merged = []
    for i, faces in enumerate(groups):
        prefix = f"{_child_prefix(i)}."
        merged.extend(f.renamed(prefix + f.name) for f in faces)
    return merged


def merge_edges(
    face_groups: list[list[FaceDescriptor]], edge_groups: list[list[EdgeDescriptor]]
) -> list[EdgeDescriptor]:
    """Concatenate edge lists using the same collision rule as merge_faces."""
    if not _groups_collide(face_groups):
        return [e for edges in edge_groups for e in edges]
    merged = []
    for i, edges in enumerate(edge_groups):
        prefix = f"{_child_prefix(i)}."
        merged.extend(e.prefixed(prefix) for e in edges)
    return merged


def _groups_collide(groups: list[list[FaceDescriptor]]) -> bool:
    seen: set[str] = set()
    for faces in groups:
        names = {f.name for f in faces}
        if seen & names:
            return True
        seen |= names
    return False


def _child_prefix(index: int) -> str:
    # a, b, ..., z, c26, c27, ...
    return chr(ord("a") + index) if index < 26 else f"c{index}"


def next_feature_ids(faces: Iterable[FaceDescriptor], prefix: str, count: int) -> list[str]:
    """Derive the next ``count`` free "<prefix>_N" ids from existing face names."""
    used = set()
    for f in faces:
        head = f.name.split(".", 1)[0]
        stem, _, number = head.rpartition("_")
        if stem == prefix and number.isdigit():
            used.add(int(number))
    ids = []
    n = 1
    while len(ids) < count:
        if n not in used:
            ids.append(f"{prefix}_{n}")
        n += 1
    return ids


def next_feature_id(faces: Iterable[FaceDescriptor], prefix: str) -> str:
    """Derive the next free "<prefix>_N" id from existing face names."""
    return next_feature_ids(faces, prefix, 1)[0]
