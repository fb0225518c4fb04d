"""
Semantic feature constructors.

These functions turn machining intent ("a 6 mm through hole on the top
face") into ordinary SDF subtrees. The face is resolved by name from the
shape's analytic topology, the cutter is placed along the face's inward
normal, tagged with a ``Feature`` and subtracted. The resulting faces are
named "<feature_id>.<face>", e.g. "hole_1.barrel".

Functions:
    hole: Drilled hole (through or blind) on a planar face
    pocket: Rectangular pocket on an axis-aligned planar face
    bolt_circle: Pattern of holes on a circle
    chamfer: Bevel a named edge between two planar faces
    fillet: Round a named edge between two planar faces

Example:
    >>> from sdfmill import box
    >>> from sdfmill.geometry.features import hole
    >>> plate = box((100, 60, 30))
    >>> drilled = hole(plate, "top", diameter=10)
    >>> drilled.face("hole_1.barrel").radius
    5.0
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from sdfmill.errors import ValidationError
from sdfmill.geometry.sdf import (
    Box,
    Cylinder,
    Difference,
    EdgeBreak,
    SDFPrimitive,
    Tagged,
    is_empty_box,
)
from sdfmill.geometry.topology import (
    EdgeKind,
    FaceDescriptor,
    FaceKind,
    Feature,
    next_feature_id,
    next_feature_ids,
)

# Cutters start this far outside the face (and through holes end this far
# past the far side) so the cut never shares a surface with the stock.
CLEARANCE = 1.0


def _planar_face(shape: SDFPrimitive, face_name: str, caller: str) -> FaceDescriptor:
    face = shape.face(face_name)
    if face.kind is not FaceKind.PLANAR or face.origin is None:
        planar = ", ".join(f.name for f in shape.faces() if f.kind is FaceKind.PLANAR)
        raise ValidationError(
            f"{caller}() requires a planar face, but '{face_name}' is {face.kind.value}. "
            f"Available planar faces: {planar or 'none'}"
        )
    return face


def _aligned_axis(normal: NDArray[np.floating], caller: str) -> int:
    axis = np.flatnonzero(np.isclose(np.abs(normal), 1.0, atol=1e-9))
    if len(axis) != 1:
        raise ValidationError(
            f"{caller}() only supports axis-aligned faces, got normal {tuple(normal)}"
        )
    return int(axis[0])


def _in_plane_frame(normal: NDArray[np.floating]) -> tuple[NDArray, NDArray]:
    """Two in-plane unit vectors (u, v) for a face.

    Axis-aligned faces use the remaining world axes in x, y, z order, so a
    top face has u = +x and v = +y.
    """
    aligned = np.flatnonzero(np.isclose(np.abs(normal), 1.0, atol=1e-9))
    if len(aligned) == 1:
        u_axis, v_axis = (i for i in range(3) if i != aligned[0])
        return np.eye(3)[u_axis], np.eye(3)[v_axis]
    helper = np.array([0.0, 0.0, 1.0]) if abs(normal[2]) < 0.9 else np.array([1.0, 0.0, 0.0])
    u = np.cross(helper, normal)
    u /= np.linalg.norm(u)
    return u, np.cross(normal, u)


def _project_offset(at, normal: NDArray[np.floating]) -> NDArray[np.floating]:
    """Drop the normal component of an ``at`` offset."""
    if at is None:
        return np.zeros(3)
    at = np.asarray(at, dtype=np.float64)
    if at.shape != (3,):
        raise ValidationError(f"at must be a 3-element vector, got shape {at.shape}")
    return at - np.dot(at, normal) * normal


def _resolve_depth(shape: SDFPrimitive, normal: NDArray[np.floating], depth, caller: str) -> float:
    if isinstance(depth, str):
        if depth != "through":
            raise ValidationError(f"{caller}() depth must be a number or 'through', got {depth!r}")
        bb_min, bb_max = shape.bounding_box
        if is_empty_box((bb_min, bb_max)) or not np.all(np.isfinite(bb_max - bb_min)):
            raise ValidationError(f"{caller}() 'through' needs a bounded shape")
        return float(abs(np.dot(bb_max - bb_min, normal))) + CLEARANCE
    depth = float(depth)
    if not depth > 0:
        raise ValidationError(f"{caller}() depth must be positive, got {depth}")
    return depth


def _hole_cutter(
    origin: NDArray[np.floating], inward: NDArray[np.floating], radius: float, depth: float
) -> Cylinder:
    return Cylinder(p1=origin - inward * CLEARANCE, p2=origin + inward * depth, radius=radius)


def hole(
    shape: SDFPrimitive,
    face_name: str,
    diameter: float,
    depth: float | str = "through",
    at=None,
    feature_id: str | None = None,
) -> Difference:
    """Drill a hole into a named planar face.

    Args:
        shape: Part to drill
        face_name: Planar face to drill from ("top", "hole_1.bottom_cap", ...)
        diameter: Hole diameter
        depth: Depth below the face, or "through" for full penetration
        at: 3D offset from the face origin; the component along the face
            normal is dropped
        feature_id: Feature name; defaults to the next free "hole_N"

    Returns:
        ``shape`` with a tagged cylindrical cutter subtracted

    Raises:
        ValidationError: Unknown or non-planar face, non-positive diameter
            or depth
    """
    diameter = float(diameter)
    if not diameter > 0:
        raise ValidationError(f"hole() diameter must be positive, got {diameter}")

    face = _planar_face(shape, face_name, "hole")
    normal = np.asarray(face.normal, dtype=np.float64)
    hole_depth = _resolve_depth(shape, normal, depth, "hole")

    inward = -normal
    center = np.asarray(face.origin, dtype=np.float64) + _project_offset(at, normal)

    if feature_id is None:
        feature_id = next_feature_id(shape.faces(), "hole")
    feature = Feature(
        feature_id,
        face_kind=FaceKind.CYLINDRICAL,
        edge_kind=EdgeKind.SHARP,
        attributes={"diameter": diameter, "depth": depth, "face": face_name},
    )
    cutter = Tagged(_hole_cutter(center, inward, diameter / 2, hole_depth), feature)
    return Difference(shape, cutter, feature_name=feature_id)


def pocket(
    shape: SDFPrimitive,
    face_name: str,
    width: float,
    length: float,
    depth: float,
    at=None,
    feature_id: str | None = None,
) -> Difference:
    """Mill a rectangular pocket into an axis-aligned planar face.

    ``width`` runs along the face's first in-plane axis and ``length`` along
    the second (x and y for a top face).

    Raises:
        ValidationError: Unknown, non-planar or tilted face, non-positive
            sizes, or a non-numeric depth
    """
    width, length = float(width), float(length)
    if not width > 0:
        raise ValidationError(f"pocket() width must be positive, got {width}")
    if not length > 0:
        raise ValidationError(f"pocket() length must be positive, got {length}")
    if isinstance(depth, str):
        raise ValidationError(f"pocket() depth must be a number, got {depth!r}")
    depth = float(depth)
    if not depth > 0:
        raise ValidationError(f"pocket() depth must be positive, got {depth}")

    face = _planar_face(shape, face_name, "pocket")
    normal = np.asarray(face.normal, dtype=np.float64)
    axis = _aligned_axis(normal, "pocket")
    u, v = _in_plane_frame(normal)

    inward = -normal
    origin = np.asarray(face.origin, dtype=np.float64) + _project_offset(at, normal)
    center = origin + inward * (depth - CLEARANCE) / 2

    size = width * np.abs(u) + length * np.abs(v)
    size[axis] = depth + CLEARANCE

    if feature_id is None:
        feature_id = next_feature_id(shape.faces(), "pocket")
    feature = Feature(
        feature_id,
        face_kind=FaceKind.PLANAR,
        attributes={"width": width, "length": length, "depth": depth, "face": face_name},
    )
    cutter = Tagged(Box(center=center, size=size), feature)
    return Difference(shape, cutter, feature_name=feature_id)


def bolt_circle(
    shape: SDFPrimitive,
    face_name: str,
    count: int,
    circle_diameter: float,
    hole_diameter: float,
    depth: float | str = "through",
    start_angle: float = 0.0,
    at=None,
    feature_prefix: str = "hole",
) -> Difference:
    """Drill ``count`` equally spaced holes on a circle.

    Holes are numbered in angular order starting at ``start_angle``
    (degrees, measured from the face's first in-plane axis) and named with
    the next free "<feature_prefix>_N" ids.

    Example:
        >>> from sdfmill import box
        >>> flange = bolt_circle(box((100, 100, 10)), "top", count=6,
        ...                      circle_diameter=70, hole_diameter=6.6)
    """
    if int(count) != count or count < 1:
        raise ValidationError(f"bolt_circle() count must be a positive integer, got {count}")
    circle_diameter = float(circle_diameter)
    if not circle_diameter > 0:
        raise ValidationError(
            f"bolt_circle() circle_diameter must be positive, got {circle_diameter}"
        )
    hole_diameter = float(hole_diameter)
    if not hole_diameter > 0:
        raise ValidationError(f"bolt_circle() hole_diameter must be positive, got {hole_diameter}")

    face = _planar_face(shape, face_name, "bolt_circle")
    normal = np.asarray(face.normal, dtype=np.float64)
    hole_depth = _resolve_depth(shape, normal, depth, "bolt_circle")
    u, v = _in_plane_frame(normal)

    inward = -normal
    center = np.asarray(face.origin, dtype=np.float64) + _project_offset(at, normal)
    radius = circle_diameter / 2

    cutters = []
    ids = next_feature_ids(shape.faces(), feature_prefix, int(count))
    for i, feature_id in enumerate(ids):
        angle = np.radians(start_angle + 360.0 * i / count)
        position = center + radius * (np.cos(angle) * u + np.sin(angle) * v)
        feature = Feature(
            feature_id,
            face_kind=FaceKind.CYLINDRICAL,
            attributes={"diameter": hole_diameter, "depth": depth, "face": face_name},
        )
        cutters.append(
            Tagged(_hole_cutter(position, inward, hole_diameter / 2, hole_depth), feature)
        )
    return Difference(shape, *cutters)


def _edge_break(
    shape: SDFPrimitive, edge_name: str, size: float, mode: str, feature_id: str | None
) -> EdgeBreak:
    size = float(size)
    if not size > 0:
        raise ValidationError(f"{mode}() size must be positive, got {size}")

    edges = shape.edges()
    edge = next((e for e in edges if e.name == edge_name), None)
    if edge is None:
        available = ", ".join(e.name for e in edges) or "none"
        raise ValidationError(
            f"{mode}() edge '{edge_name}' not found on {shape.name}. Available: {available}"
        )

    planes = []
    for face_name in edge.faces:
        face = shape.face(face_name)
        if face.kind is not FaceKind.PLANAR or face.origin is None:
            raise ValidationError(
                f"{mode}() requires an edge between planar faces, but '{face_name}' "
                f"is {face.kind.value}"
            )
        planes.append((face.normal, face.origin))

    if feature_id is None:
        feature_id = next_feature_id(shape.faces(), mode)
    feature = Feature(
        feature_id,
        face_kind=FaceKind.PLANAR if mode == "chamfer" else FaceKind.CYLINDRICAL,
        edge_kind=EdgeKind.SHARP if mode == "chamfer" else EdgeKind.SMOOTH,
        attributes={"size": size, "edge": edge_name},
    )
    return EdgeBreak(shape, planes[0], planes[1], size, mode, feature, edge_name)


def chamfer(
    shape: SDFPrimitive, edge_name: str, size: float, feature_id: str | None = None
) -> EdgeBreak:
    """Bevel a named edge between two planar faces.

    The chamfer plane meets each face ``size`` back from the edge; for
    perpendicular faces that is a 45 degree bevel.

    Example:
        >>> from sdfmill import box
        >>> plate = chamfer(box((100, 60, 30)), "right.top", 5)
        >>> "right.top" in [e.name for e in plate.edges()]
        False
        >>> plate.face("chamfer_1.face").kind.value
        'planar'

    Raises:
        ValidationError: Unknown edge, non-planar faces or non-positive size
    """
    return _edge_break(shape, edge_name, size, "chamfer", feature_id)


def fillet(
    shape: SDFPrimitive, edge_name: str, radius: float, feature_id: str | None = None
) -> EdgeBreak:
    """Round a named convex edge between two planar faces with ``radius``."""
    return _edge_break(shape, edge_name, radius, "fillet", feature_id)
