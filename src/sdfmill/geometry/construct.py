"""
Lower-case construction API.

Thin factory functions over the node classes in ``sdfmill.geometry.sdf`` and
``sdfmill.geometry.profiles``, with part-modelling defaults: primitives are
centred on the origin, cylinders stand on the Z axis, and cones point down
from a tip at the origin.

Example:
    >>> from sdfmill import box, cylinder, subtract, translate
    >>> plate = box((40, 30, 10))
    >>> bore = translate(cylinder(4, 12), (10, 0, 0))
    >>> part = subtract(plate, bore, feature_name="bore")
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from sdfmill.errors import ValidationError
from sdfmill.geometry.profiles import Circle2D, Polygon2D, Profile2D, Rect2D
from sdfmill.geometry.sdf import (
    Box,
    Cone,
    Cylinder,
    Difference,
    Elongate,
    Extrude,
    Intersection,
    Mirror,
    Plane,
    Revolve,
    Rotate,
    Round,
    Scale,
    SDFPrimitive,
    Shell,
    SmoothDifference,
    SmoothIntersection,
    SmoothUnion,
    Sphere,
    Tagged,
    Torus,
    Translate,
    Union,
)
from sdfmill.geometry.topology import Feature

Vec3Like = tuple[float, float, float] | NDArray[np.floating]

# === Primitives ===


def sphere(radius: float, center: Vec3Like = (0.0, 0.0, 0.0)) -> Sphere:
    """Create a sphere.

    Example:
        >>> ball = sphere(10)
    """
    return Sphere(center=center, radius=radius)


def box(size: float | Vec3Like, center: Vec3Like = (0.0, 0.0, 0.0)) -> Box:
    """Create an axis-aligned box.

    Args:
        size: Edge length (cube) or (x, y, z) dimensions
        center: (x, y, z) center position

    Example:
        >>> plate = box((40, 30, 10))
        >>> cube = box(20)
    """
    size = np.broadcast_to(np.asarray(size, dtype=np.float64), (3,))
    return Box(center=center, size=size)


def cylinder(radius: float, height: float, center: Vec3Like = (0.0, 0.0, 0.0)) -> Cylinder:
    """Create a cylinder along Z, centred on ``center``.

    Args:
        radius: Cylinder radius
        height: Full height along Z
        center: (x, y, z) center position

    Example:
        >>> pin = cylinder(3, 20)
    """
    height = float(height)
    if not height > 0:
        raise ValidationError(f"Cylinder height must be positive, got {height}")
    c = np.asarray(center, dtype=np.float64)
    half = np.array([0.0, 0.0, height / 2])
    return Cylinder(p1=c - half, p2=c + half, radius=radius)


def cone(radius: float, height: float) -> Cone:
    """Create a cone with its tip at the origin, opening downward.

    The base disc of ``radius`` lies at z = -height.

    Example:
        >>> countersink = cone(6, 6)
    """
    height = float(height)
    if not height > 0:
        raise ValidationError(f"Cone height must be positive, got {height}")
    return Cone(p1=(0.0, 0.0, -height), p2=(0.0, 0.0, 0.0), r1=radius, r2=0.0)


def torus(
    major_radius: float, minor_radius: float, center: Vec3Like = (0.0, 0.0, 0.0)
) -> Torus:
    """Create a torus in the XY plane."""
    return Torus(major_radius, minor_radius, center=center)


def plane(normal: Vec3Like = (0.0, 0.0, 1.0), offset: float = 0.0) -> Plane:
    """Create the half-space ``dot(p, normal) <= offset``."""
    return Plane(normal=normal, offset=offset)


# === 2D profiles ===


def polygon(vertices) -> Polygon2D:
    """Create a polygon profile from an ordered vertex loop."""
    return Polygon2D(vertices)


def circle(radius: float, center: tuple[float, float] = (0.0, 0.0)) -> Circle2D:
    return Circle2D(radius, center=center)


def rect(width: float, height: float, center: tuple[float, float] = (0.0, 0.0)) -> Rect2D:
    return Rect2D(width, height, center=center)


# === CSG ===


def union(*nodes: SDFPrimitive) -> SDFPrimitive:
    """Union of one or more nodes (a single node is returned unchanged)."""
    if len(nodes) == 1:
        return nodes[0]
    return Union(*nodes)


def subtract(
    base: SDFPrimitive, *cutters: SDFPrimitive, feature_name: str | None = None
) -> Difference:
    """Remove ``cutters`` from ``base``.

    Args:
        base: Shape to cut
        *cutters: Shapes to remove
        feature_name: Prefix for the faces the cut creates
    """
    return Difference(base, *cutters, feature_name=feature_name)


def intersect(*nodes: SDFPrimitive) -> SDFPrimitive:
    if len(nodes) == 1:
        return nodes[0]
    return Intersection(*nodes)


def smooth_union(a: SDFPrimitive, b: SDFPrimitive, radius: float) -> SmoothUnion:
    return SmoothUnion(a, b, radius)


def smooth_subtract(
    base: SDFPrimitive, cutter: SDFPrimitive, radius: float, feature_name: str | None = None
) -> SmoothDifference:
    return SmoothDifference(base, cutter, radius, feature_name=feature_name)


def smooth_intersect(a: SDFPrimitive, b: SDFPrimitive, radius: float) -> SmoothIntersection:
    return SmoothIntersection(a, b, radius)


# === Transforms and modifiers ===


def translate(node: SDFPrimitive, offset: Vec3Like) -> Translate:
    return Translate(node, offset)


def rotate(node: SDFPrimitive, axis: Vec3Like, angle: float) -> Rotate:
    """Rotate ``node`` by ``angle`` radians around ``axis`` through the origin."""
    return Rotate(node, axis=axis, angle=angle)


def scale(node: SDFPrimitive, factor: float | Vec3Like) -> Scale:
    return Scale(node, factor)


def mirror(node: SDFPrimitive, axis: int | str, symmetric: bool = False) -> Mirror:
    return Mirror(node, axis, symmetric=symmetric)


def shell(node: SDFPrimitive, thickness: float) -> Shell:
    return Shell(node, thickness)


def round_(node: SDFPrimitive, radius: float) -> Round:
    """Inflate ``node`` by ``radius`` (named to avoid the builtin ``round``)."""
    return Round(node, radius)


def elongate(node: SDFPrimitive, amount: float | Vec3Like) -> Elongate:
    return Elongate(node, amount)


# === Lifters and annotation ===


def extrude(profile: Profile2D, height: float) -> Extrude:
    """Extrude ``profile`` along Z, centred on z = 0.

    Example:
        >>> bracket = extrude(polygon([(0, 0), (40, 0), (40, 5), (5, 5), (5, 30), (0, 30)]), 10)
    """
    return Extrude(profile, height)


def revolve(profile: Profile2D, offset: float = 0.0) -> Revolve:
    """Revolve ``profile`` around Z, shifted radially by ``offset``.

    Example:
        >>> ring = revolve(circle(2), offset=10)  # same as torus(10, 2)
    """
    return Revolve(profile, offset)


def tag(node: SDFPrimitive, feature: Feature | str) -> Tagged:
    """Attach a semantic feature to ``node``."""
    if isinstance(feature, str):
        feature = Feature(feature)
    return Tagged(node, feature)
