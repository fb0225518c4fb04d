"""
Signed Distance Function (SDF) nodes for solid modelling.

A part is an immutable tree of SDF nodes. Every node maps an (N, 3) array of
points to (N,) signed distances, so the same tree feeds the mesher, the
toolpath generator and any ad-hoc query:

- Primitives with closed-form distances (box, sphere, cylinder, cone, torus,
  plane)
- CSG operations (union = min, intersection = max, difference) and their
  polynomial smooth blends
- Transforms applied as inverse point maps (translate, rotate, scale, mirror)
- Modifiers acting on the child's distance (shell, round, elongate)
- Lifters turning 2D profiles into solids (extrude, revolve)
- ``Tagged``, which attaches a semantic ``Feature`` to a subtree

Classes:
    SDFPrimitive: Abstract base class for all SDF nodes
    Box, Sphere, Cylinder, Cone, Torus, Plane: Primitives
    Union, Intersection, Difference: Hard CSG
    SmoothUnion, SmoothIntersection, SmoothDifference: Blended CSG
    Translate, Rotate, Scale, Mirror: Transforms
    Shell, Round, Elongate: Modifiers
    Extrude, Revolve: 2D profile lifters
    Tagged: Feature annotation
    EdgeBreak: Chamfer or fillet on a named edge

Example:
    >>> import numpy as np
    >>> from sdfmill.geometry.sdf import Box, Cylinder
    >>>
    >>> plate = Box(center=(0, 0, 0), size=(40, 30, 10))
    >>> bore = Cylinder(p1=(0, 0, -6), p2=(0, 0, 6), radius=4)
    >>> part = plate.subtract(bore)
    >>>
    >>> points = np.array([[0.0, 0.0, 0.0], [10.0, 0.0, 0.0]])
    >>> inside = part.contains(points)  # [False, True]

References:
    Inigo Quilez SDF Functions: https://iquilezles.org/articles/distfunctions/
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import replace
from functools import cached_property
from typing import Any, ClassVar

import numpy as np
from numpy.typing import NDArray

from sdfmill.errors import ValidationError
from sdfmill.geometry.profiles import Circle2D, Profile2D, Rect2D
from sdfmill.geometry.topology import (
    EdgeDescriptor,
    EdgeKind,
    FaceDescriptor,
    FaceKind,
    Feature,
    TagField,
    merge_edges,
    merge_faces,
)

BoundingBox = tuple[NDArray[np.floating], NDArray[np.floating]]

AXIS_NAMES = {"x": 0, "y": 1, "z": 2}


def _as_points(points: NDArray[np.floating]) -> NDArray[np.floating]:
    points = np.asarray(points, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"points must be Nx3 array, got shape {points.shape}")
    return points


def _empty_box() -> BoundingBox:
    return np.full(3, np.inf), np.full(3, -np.inf)


def _infinite_box() -> BoundingBox:
    return np.full(3, -np.inf), np.full(3, np.inf)


def is_empty_box(box: BoundingBox) -> bool:
    """True if the box has min > max on any axis."""
    return bool(np.any(box[0] > box[1]))


def _fmt(values) -> str:
    return "(" + ", ".join(f"{float(v):g}" for v in values) + ")"


def _axis_index(axis: int | str) -> int:
    if isinstance(axis, str):
        if axis.lower() not in AXIS_NAMES:
            raise ValidationError(f"axis must be one of 'x', 'y', 'z', got {axis!r}")
        return AXIS_NAMES[axis.lower()]
    if axis not in (0, 1, 2):
        raise ValidationError(f"axis index must be 0, 1 or 2, got {axis}")
    return int(axis)


def _perpendicular(direction: NDArray[np.floating]) -> NDArray[np.floating]:
    """Any unit vector perpendicular to ``direction``."""
    helper = np.array([1.0, 0.0, 0.0]) if abs(direction[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
    perp = np.cross(direction, helper)
    return perp / np.linalg.norm(perp)


def _disc_extent(axis_normalized: NDArray[np.floating], radius: float) -> NDArray[np.floating]:
    """Half-extent of the AABB of a disc of ``radius`` perpendicular to an axis."""
    return radius * np.sqrt(np.clip(1.0 - axis_normalized**2, 0.0, None))


class SDFPrimitive(ABC):
    """Base class for Signed Distance Function nodes.

    All SDF nodes must implement:
    - sdf(): Evaluate signed distance at points
    - bounding_box: Return axis-aligned bounding box
    - name: Human-readable expression

    The signed distance convention is:
    - Negative values = inside the shape
    - Positive values = outside the shape
    - Zero = on the surface

    Nodes are immutable once built. Sharing a subtree between several
    parents is fine: evaluation has no side effects.
    """

    kind: ClassVar[str] = "node"

    @abstractmethod
    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        """Evaluate SDF at Nx3 array of points.

        Args:
            points: (N, 3) array of (x, y, z) coordinates

        Returns:
            (N,) array of signed distances (negative = inside)
        """

    @property
    @abstractmethod
    def bounding_box(self) -> BoundingBox:
        """Return (min_corner, max_corner) axis-aligned bounding box.

        Returns:
            Tuple of two (3,) arrays representing the minimum and maximum
            corners of the bounding box. Components may be infinite for
            unbounded nodes; min > max marks an empty box.
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable expression string."""

    @property
    def children(self) -> tuple[SDFPrimitive, ...]:
        """Direct child nodes."""
        return ()

    def __repr__(self) -> str:
        return self.name

    def contains(self, points: NDArray[np.floating]) -> NDArray[np.bool_]:
        """Check if points are inside the shape.

        Args:
            points: (N, 3) array of (x, y, z) coordinates

        Returns:
            (N,) boolean array where True = inside
        """
        return self.sdf(points) <= 0

    def gradient(self, points: NDArray[np.floating], eps: float = 1e-5) -> NDArray[np.floating]:
        """Central-difference gradient of the field.

        All six offset copies of ``points`` go through a single ``sdf`` call.

        Args:
            points: (N, 3) array of (x, y, z) coordinates
            eps: Finite-difference step

        Returns:
            (N, 3) gradient vectors
        """
        points = _as_points(points)
        n = len(points)
        offsets = np.concatenate([np.eye(3) * eps, -np.eye(3) * eps])
        shifted = (points[np.newaxis, :, :] + offsets[:, np.newaxis, :]).reshape(-1, 3)
        values = self.sdf(shifted).reshape(6, n)
        return ((values[:3] - values[3:]) / (2 * eps)).T

    def normal(self, points: NDArray[np.floating], eps: float = 1e-5) -> NDArray[np.floating]:
        """Unit outward normals (zero vectors where the gradient vanishes)."""
        grad = self.gradient(points, eps)
        length = np.linalg.norm(grad, axis=1, keepdims=True)
        return np.divide(grad, length, out=np.zeros_like(grad), where=length > 0)

    def readback(self) -> dict[str, Any]:
        """Structured summary of the node for inspection.

        Returns:
            Dict with name, kind, bounds, size, center and face names.
            ``size`` is zero and ``center`` is None for an empty box;
            ``center`` is None for unbounded nodes.
        """
        bb_min, bb_max = self.bounding_box
        if is_empty_box((bb_min, bb_max)):
            size, center = (0.0, 0.0, 0.0), None
        else:
            size = tuple(float(v) for v in bb_max - bb_min)
            finite = np.all(np.isfinite(bb_min)) and np.all(np.isfinite(bb_max))
            center = tuple(float(v) for v in (bb_min + bb_max) / 2) if finite else None
        return {
            "name": self.name,
            "kind": self.kind,
            "bounds": (tuple(float(v) for v in bb_min), tuple(float(v) for v in bb_max)),
            "size": size,
            "center": center,
            "faces": [f.name for f in self.faces()],
        }

    # === Named topology ===

    def faces(self) -> list[FaceDescriptor]:
        """Named faces of this node, in world coordinates."""
        return []

    def edges(self) -> list[EdgeDescriptor]:
        """Named edges of this node, in world coordinates."""
        return []

    def face(self, name: str) -> FaceDescriptor:
        """Look up a face by name.

        Raises:
            ValidationError: If no face has that name (the message lists
                the available faces)
        """
        faces = self.faces()
        for f in faces:
            if f.name == name:
                return f
        available = ", ".join(f.name for f in faces) or "none"
        raise ValidationError(f"Face '{name}' not found on {self.name}. Available: {available}")

    def edge(self, face_a: str, face_b: str) -> EdgeDescriptor:
        """Look up the edge between two named faces (either order)."""
        wanted = {face_a, face_b}
        edges = self.edges()
        for e in edges:
            if set(e.faces) == wanted:
                return e
        available = ", ".join(e.name for e in edges) or "none"
        raise ValidationError(
            f"Edge '{face_a}.{face_b}' not found on {self.name}. Available: {available}"
        )

    def tag_fields(self) -> list[TagField]:
        """World-space distance fields of every tagged subtree, in tree order."""
        return [f for child in self.children for f in child.tag_fields()]

    # === Fluent API for CSG ===

    def union(self, *others: SDFPrimitive) -> SDFPrimitive:
        """Union of this node with ``others``."""
        return Union(self, *others)

    def subtract(self, *others: SDFPrimitive, feature_name: str | None = None) -> SDFPrimitive:
        """Remove ``others`` from this node.

        Example:
            >>> plate = Box(center=(0, 0, 0), size=(40, 30, 10))
            >>> slot = Box(center=(0, 0, 5), size=(20, 6, 4))
            >>> part = plate.subtract(slot, feature_name="slot")
            >>> part.face("slot.bottom").normal
            (0.0, 0.0, 1.0)
        """
        return Difference(self, *others, feature_name=feature_name)

    def intersect(self, *others: SDFPrimitive) -> SDFPrimitive:
        """Intersection of this node with ``others``."""
        return Intersection(self, *others)

    def smooth_union(self, other: SDFPrimitive, radius: float) -> SDFPrimitive:
        return SmoothUnion(self, other, radius)

    def smooth_subtract(
        self, other: SDFPrimitive, radius: float, feature_name: str | None = None
    ) -> SDFPrimitive:
        return SmoothDifference(self, other, radius, feature_name=feature_name)

    def smooth_intersect(self, other: SDFPrimitive, radius: float) -> SDFPrimitive:
        return SmoothIntersection(self, other, radius)

    # === Fluent API for transformations ===

    def translate(self, offset: tuple[float, float, float] | NDArray[np.floating]) -> SDFPrimitive:
        """Translate this node by an offset vector.

        Args:
            offset: (x, y, z) translation vector

        Returns:
            Translated node

        Example:
            >>> box = Box(center=(0, 0, 0), size=(20, 20, 20))
            >>> translated = box.translate((50, 50, 50))
        """
        return Translate(self, offset)

    def scale(
        self, factor: float | tuple[float, float, float] | NDArray[np.floating]
    ) -> SDFPrimitive:
        """Scale this node uniformly or non-uniformly.

        Args:
            factor: Uniform scale (float) or per-axis scale (3-element)

        Returns:
            Scaled node

        Example:
            >>> box = Box(center=(0, 0, 0), size=(20, 20, 20))
            >>> scaled = box.scale(2.0)  # 2x larger
            >>> scaled = box.scale((2, 1, 0.5))  # Non-uniform
        """
        return Scale(self, factor)

    def rotate(
        self,
        axis: tuple[float, float, float] | NDArray[np.floating],
        angle: float,
    ) -> SDFPrimitive:
        """Rotate this node around an axis through the origin.

        Args:
            axis: (x, y, z) rotation axis (will be normalized)
            angle: Rotation angle in radians

        Returns:
            Rotated node

        Example:
            >>> box = Box(center=(0, 0, 0), size=(20, 20, 40))
            >>> rotated = box.rotate((0, 0, 1), np.pi/4)  # 45° around z
        """
        return Rotate(self, axis=axis, angle=angle)

    def rotate_x(self, angle: float) -> SDFPrimitive:
        """Rotate this node around the x-axis (radians)."""
        return self.rotate((1, 0, 0), angle)

    def rotate_y(self, angle: float) -> SDFPrimitive:
        """Rotate this node around the y-axis (radians)."""
        return self.rotate((0, 1, 0), angle)

    def rotate_z(self, angle: float) -> SDFPrimitive:
        """Rotate this node around the z-axis (radians)."""
        return self.rotate((0, 0, 1), angle)

    def mirror(self, axis: int | str, symmetric: bool = False) -> SDFPrimitive:
        """Mirror this node across the coordinate plane normal to ``axis``."""
        return Mirror(self, axis, symmetric=symmetric)

    # === Fluent API for modifiers ===

    def shell(self, thickness: float) -> SDFPrimitive:
        """Hollow shell of ``thickness`` centred on the surface."""
        return Shell(self, thickness)

    def round(self, radius: float) -> SDFPrimitive:
        """Inflate the surface by ``radius``, rounding convex edges."""
        return Round(self, radius)

    def elongate(self, amount: float | tuple[float, float, float]) -> SDFPrimitive:
        """Stretch the node by ``amount`` per axis, splitting it at the origin."""
        return Elongate(self, amount)

    def tag(self, feature: Feature | str) -> SDFPrimitive:
        """Attach a semantic feature to this subtree.

        Args:
            feature: A ``Feature``, or a bare id for a freeform feature

        Example:
            >>> pocket = Box(center=(0, 0, 4), size=(10, 10, 4)).tag("pocket")
        """
        if isinstance(feature, str):
            feature = Feature(feature)
        return Tagged(self, feature)


def evaluate(node: SDFPrimitive, points: NDArray[np.floating]) -> NDArray[np.floating] | float:
    """Evaluate ``node`` at one point or an (N, 3) batch.

    Args:
        node: Root of the SDF graph
        points: A single (3,) point or an (N, 3) array

    Returns:
        A float for a single point, otherwise an (N,) array

    Example:
        >>> evaluate(Sphere(center=(0, 0, 0), radius=1), (2, 0, 0))
        1.0
    """
    points = np.asarray(points, dtype=np.float64)
    if points.shape == (3,):
        return float(node.sdf(points[np.newaxis, :])[0])
    return node.sdf(_as_points(points))


# === Primitives ===


class Box(SDFPrimitive):
    """Axis-aligned box SDF primitive.

    Can be constructed using either:
    - center and size, or
    - min_corner and max_corner

    Faces are named right (+x), left (-x), back (+y), front (-y), top (+z)
    and bottom (-z); the twelve edges are "<face>.<face>", e.g. "right.top".

    Args:
        center: (x, y, z) center position
        size: (width, depth, height) dimensions
        min_corner: (x_min, y_min, z_min) corner
        max_corner: (x_max, y_max, z_max) corner

    Example:
        >>> # Using center and size
        >>> box1 = Box(center=(0, 0, 0), size=(40, 30, 10))
        >>>
        >>> # Using corners
        >>> box2 = Box(min_corner=(0, 0, 0), max_corner=(40, 30, 10))
    """

    kind = "box"

    FACE_NORMALS: ClassVar[dict[str, tuple[float, float, float]]] = {
        "right": (1.0, 0.0, 0.0),
        "left": (-1.0, 0.0, 0.0),
        "back": (0.0, 1.0, 0.0),
        "front": (0.0, -1.0, 0.0),
        "top": (0.0, 0.0, 1.0),
        "bottom": (0.0, 0.0, -1.0),
    }

    def __init__(
        self,
        center: tuple[float, float, float] | None = None,
        size: tuple[float, float, float] | None = None,
        min_corner: tuple[float, float, float] | None = None,
        max_corner: tuple[float, float, float] | None = None,
    ):
        if size is not None:
            self.center = np.zeros(3) if center is None else np.array(center, dtype=np.float64)
            self.size = np.array(size, dtype=np.float64)
        elif min_corner is not None and max_corner is not None:
            min_c = np.array(min_corner, dtype=np.float64)
            max_c = np.array(max_corner, dtype=np.float64)
            self.center = (min_c + max_c) / 2
            self.size = max_c - min_c
        else:
            raise ValidationError("Must provide either (center, size) or (min_corner, max_corner)")

        if self.size.shape != (3,) or self.center.shape != (3,):
            raise ValidationError("Box center and size must be 3-element vectors")
        if not np.all(self.size > 0):
            raise ValidationError(f"Box size must be positive, got {self.size}")

    @property
    def name(self) -> str:
        sx, sy, sz = self.size
        return f"box({sx:g} x {sy:g} x {sz:g})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        """Evaluate box SDF (exact, including edges and corners)."""
        points = _as_points(points)

        # Distance from center
        q = np.abs(points - self.center) - self.size / 2

        # Outside distance: length of the positive components
        outside = np.linalg.norm(np.maximum(q, 0), axis=1)

        # Inside distance: maximum component (most negative = deepest inside)
        inside = np.minimum(np.max(q, axis=1), 0)

        return outside + inside

    @property
    def bounding_box(self) -> BoundingBox:
        half_size = self.size / 2
        return self.center - half_size, self.center + half_size

    def faces(self) -> list[FaceDescriptor]:
        half = self.size / 2
        return [
            FaceDescriptor(
                name=name,
                kind=FaceKind.PLANAR,
                normal=normal,
                origin=tuple(float(v) for v in self.center + half * np.array(normal)),
            )
            for name, normal in self.FACE_NORMALS.items()
        ]

    def edges(self) -> list[EdgeDescriptor]:
        half = self.size / 2
        names = list(self.FACE_NORMALS)
        edges = []
        for i, a in enumerate(names):
            for b in names[i + 1 :]:
                na, nb = np.array(self.FACE_NORMALS[a]), np.array(self.FACE_NORMALS[b])
                if np.dot(na, nb) != 0:
                    continue
                midpoint = self.center + half * (na + nb)
                edges.append(
                    EdgeDescriptor(
                        name=f"{a}.{b}",
                        faces=(a, b),
                        midpoint=tuple(float(v) for v in midpoint),
                    )
                )
        return edges


class Sphere(SDFPrimitive):
    """Sphere SDF primitive.

    Args:
        center: (x, y, z) center position
        radius: Sphere radius

    Example:
        >>> sphere = Sphere(center=(0, 0, 0), radius=10)
    """

    kind = "sphere"

    def __init__(self, center: tuple[float, float, float], radius: float):
        self.center = np.array(center, dtype=np.float64)
        self.radius = float(radius)

        if not self.radius > 0:
            raise ValidationError(f"Sphere radius must be positive, got {radius}")

    @property
    def name(self) -> str:
        return f"sphere(r={self.radius:g})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        """Evaluate sphere SDF.

        Simple distance to center minus radius.
        """
        points = _as_points(points)
        return np.linalg.norm(points - self.center, axis=1) - self.radius

    @property
    def bounding_box(self) -> BoundingBox:
        return self.center - self.radius, self.center + self.radius

    def faces(self) -> list[FaceDescriptor]:
        return [
            FaceDescriptor(
                name="surface",
                kind=FaceKind.SPHERICAL,
                normal=(0.0, 0.0, 1.0),
                origin=tuple(float(v) for v in self.center),
                radius=self.radius,
            )
        ]


class Cylinder(SDFPrimitive):
    """Capped cylinder with arbitrary orientation.

    The cylinder is defined by two axis endpoints and a radius. The distance
    is exact everywhere, including the cap rims.

    Faces: "top_cap" (at p2), "bottom_cap" (at p1) and "barrel".

    Args:
        p1: (x, y, z) first endpoint
        p2: (x, y, z) second endpoint
        radius: Cylinder radius

    Example:
        >>> # Vertical cylinder along z-axis
        >>> cyl = Cylinder(p1=(0, 0, -10), p2=(0, 0, 10), radius=5)
        >>>
        >>> # Horizontal cylinder along x-axis
        >>> cyl2 = Cylinder(p1=(-20, 0, 0), p2=(20, 0, 0), radius=2.5)
    """

    kind = "cylinder"

    def __init__(
        self,
        p1: tuple[float, float, float],
        p2: tuple[float, float, float],
        radius: float,
    ):
        self.p1 = np.array(p1, dtype=np.float64)
        self.p2 = np.array(p2, dtype=np.float64)
        self.radius = float(radius)

        if not self.radius > 0:
            raise ValidationError(f"Cylinder radius must be positive, got {radius}")

        # Precompute axis vector and length
        self.axis = self.p2 - self.p1
        self.length = float(np.linalg.norm(self.axis))

        if self.length == 0:
            raise ValidationError("Cylinder endpoints must be distinct")

        self.axis_normalized = self.axis / self.length

    @property
    def name(self) -> str:
        return f"cylinder(r={self.radius:g}, h={self.length:g})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        """Evaluate cylinder SDF.

        Works in the scaled (radial, axial) frame of the segment p1-p2 so a
        single square root covers body, caps and rims.
        """
        points = _as_points(points)

        ba = self.axis
        baba = self.length**2
        pa = points - self.p1
        paba = pa @ ba

        x = np.linalg.norm(pa * baba - np.outer(paba, ba), axis=1) - self.radius * baba
        y = np.abs(paba - baba * 0.5) - baba * 0.5
        x2 = x * x
        y2 = y * y * baba

        d = np.where(
            np.maximum(x, y) < 0.0,
            -np.minimum(x2, y2),
            np.where(x > 0.0, x2, 0.0) + np.where(y > 0.0, y2, 0.0),
        )
        return np.sign(d) * np.sqrt(np.abs(d)) / baba

    @property
    def bounding_box(self) -> BoundingBox:
        extent = _disc_extent(self.axis_normalized, self.radius)
        min_corner = np.minimum(self.p1, self.p2) - extent
        max_corner = np.maximum(self.p1, self.p2) + extent
        return min_corner, max_corner

    def faces(self) -> list[FaceDescriptor]:
        axis = tuple(float(v) for v in self.axis_normalized)
        return [
            FaceDescriptor(
                name="top_cap",
                kind=FaceKind.PLANAR,
                normal=axis,
                origin=tuple(float(v) for v in self.p2),
            ),
            FaceDescriptor(
                name="bottom_cap",
                kind=FaceKind.PLANAR,
                normal=tuple(-v for v in axis),
                origin=tuple(float(v) for v in self.p1),
            ),
            FaceDescriptor(
                name="barrel",
                kind=FaceKind.CYLINDRICAL,
                normal=tuple(float(v) for v in _perpendicular(self.axis_normalized)),
                origin=tuple(float(v) for v in (self.p1 + self.p2) / 2),
                radius=self.radius,
                axis=axis,
            ),
        ]

    def edges(self) -> list[EdgeDescriptor]:
        rim = _perpendicular(self.axis_normalized) * self.radius
        return [
            EdgeDescriptor(
                name="top_cap.barrel",
                faces=("top_cap", "barrel"),
                midpoint=tuple(float(v) for v in self.p2 + rim),
            ),
            EdgeDescriptor(
                name="bottom_cap.barrel",
                faces=("bottom_cap", "barrel"),
                midpoint=tuple(float(v) for v in self.p1 + rim),
            ),
        ]


class Cone(SDFPrimitive):
    """Capped cone (frustum) SDF primitive.

    A cone with two different radii at the endpoints. This generalizes:
    - Cylinder: r1 == r2
    - Full cone: r2 == 0 (or r1 == 0)
    - Frustum: r1 != r2

    The distance is exact (closest point on the slanted side or the caps).

    Args:
        p1: (x, y, z) first endpoint
        p2: (x, y, z) second endpoint
        r1: Radius at p1
        r2: Radius at p2

    Example:
        >>> # Countersink: wide at the top, narrowing downward
        >>> cone = Cone(p1=(0, 0, 0), p2=(0, 0, -5), r1=5, r2=0)
    """

    kind = "cone"

    def __init__(
        self,
        p1: tuple[float, float, float],
        p2: tuple[float, float, float],
        r1: float,
        r2: float,
    ):
        self.p1 = np.array(p1, dtype=np.float64)
        self.p2 = np.array(p2, dtype=np.float64)
        self.r1 = float(r1)
        self.r2 = float(r2)

        if self.r1 < 0 or self.r2 < 0:
            raise ValidationError(f"Cone radii must be non-negative, got r1={r1}, r2={r2}")

        if self.r1 == 0 and self.r2 == 0:
            raise ValidationError("Cone cannot have both radii zero")

        self.axis = self.p2 - self.p1
        self.length = float(np.linalg.norm(self.axis))

        if self.length == 0:
            raise ValidationError("Cone endpoints must be distinct")

        self.axis_normalized = self.axis / self.length

    @property
    def name(self) -> str:
        return f"cone(r1={self.r1:g}, r2={self.r2:g}, h={self.length:g})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        """Evaluate cone SDF.

        Distances to the cap discs (ca) and to the slanted side (cb) are
        measured in the (radial, axial) half-plane; the point is inside when
        it is within both.
        """
        points = _as_points(points)

        ra, rb = self.r1, self.r2
        rba = rb - ra
        baba = self.length**2
        pa = points - self.p1
        papa = np.einsum("ij,ij->i", pa, pa)
        paba = (pa @ self.axis) / baba

        x = np.sqrt(np.maximum(papa - paba * paba * baba, 0.0))
        cax = np.maximum(0.0, x - np.where(paba < 0.5, ra, rb))
        cay = np.abs(paba - 0.5) - 0.5

        k = rba * rba + baba
        f = np.clip((rba * (x - ra) + paba * baba) / k, 0.0, 1.0)
        cbx = x - ra - f * rba
        cby = paba - f

        s = np.where((cbx < 0.0) & (cay < 0.0), -1.0, 1.0)
        return s * np.sqrt(
            np.minimum(cax * cax + cay * cay * baba, cbx * cbx + cby * cby * baba)
        )

    @property
    def bounding_box(self) -> BoundingBox:
        e1 = _disc_extent(self.axis_normalized, self.r1)
        e2 = _disc_extent(self.axis_normalized, self.r2)
        min_corner = np.minimum(self.p1 - e1, self.p2 - e2)
        max_corner = np.maximum(self.p1 + e1, self.p2 + e2)
        return min_corner, max_corner

    def faces(self) -> list[FaceDescriptor]:
        axis = tuple(float(v) for v in self.axis_normalized)
        faces = []
        if self.r1 > 0:
            faces.append(
                FaceDescriptor(
                    name="base_cap",
                    kind=FaceKind.PLANAR,
                    normal=tuple(-v for v in axis),
                    origin=tuple(float(v) for v in self.p1),
                )
            )
        if self.r2 > 0:
            faces.append(
                FaceDescriptor(
                    name="top_cap",
                    kind=FaceKind.PLANAR,
                    normal=axis,
                    origin=tuple(float(v) for v in self.p2),
                )
            )
        faces.append(
            FaceDescriptor(
                name="surface",
                kind=FaceKind.CONICAL,
                normal=tuple(float(v) for v in _perpendicular(self.axis_normalized)),
                origin=tuple(float(v) for v in (self.p1 + self.p2) / 2),
                radius=max(self.r1, self.r2),
                axis=axis,
            )
        )
        return faces

    def edges(self) -> list[EdgeDescriptor]:
        perp = _perpendicular(self.axis_normalized)
        edges = []
        for cap, point, radius in (("base_cap", self.p1, self.r1), ("top_cap", self.p2, self.r2)):
            if radius > 0:
                edges.append(
                    EdgeDescriptor(
                        name=f"{cap}.surface",
                        faces=(cap, "surface"),
                        midpoint=tuple(float(v) for v in point + perp * radius),
                    )
                )
        return edges


class Torus(SDFPrimitive):
    """Torus lying in the XY plane, symmetric about the Z axis.

    Args:
        major_radius: Distance from the center to the tube center
        minor_radius: Tube radius
        center: (x, y, z) center position
    """

    kind = "torus"

    def __init__(
        self,
        major_radius: float,
        minor_radius: float,
        center: tuple[float, float, float] = (0.0, 0.0, 0.0),
    ):
        self.major_radius = float(major_radius)
        self.minor_radius = float(minor_radius)
        self.center = np.array(center, dtype=np.float64)

        if not (self.major_radius > 0 and self.minor_radius > 0):
            raise ValidationError(
                f"Torus radii must be positive, got major={major_radius}, minor={minor_radius}"
            )

    @property
    def name(self) -> str:
        return f"torus(R={self.major_radius:g}, r={self.minor_radius:g})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        points = _as_points(points) - self.center
        ring = np.hypot(points[:, 0], points[:, 1]) - self.major_radius
        return np.hypot(ring, points[:, 2]) - self.minor_radius

    @property
    def bounding_box(self) -> BoundingBox:
        outer = self.major_radius + self.minor_radius
        half = np.array([outer, outer, self.minor_radius])
        return self.center - half, self.center + half

    def faces(self) -> list[FaceDescriptor]:
        return [
            FaceDescriptor(
                name="surface",
                kind=FaceKind.TOROIDAL,
                normal=(0.0, 0.0, 1.0),
                origin=tuple(float(v) for v in self.center),
                radius=self.major_radius,
                axis=(0.0, 0.0, 1.0),
            )
        ]


class Plane(SDFPrimitive):
    """Half-space below a plane: ``dot(p, normal) - offset``.

    The solid side is opposite the normal. The bounding box is infinite
    except for an axis-aligned normal, where the bounded side is reported.

    Args:
        normal: (x, y, z) outward normal (will be normalized)
        offset: Signed distance of the plane from the origin along normal
    """

    kind = "plane"

    def __init__(self, normal: tuple[float, float, float] = (0.0, 0.0, 1.0), offset: float = 0.0):
        normal = np.array(normal, dtype=np.float64)
        length = np.linalg.norm(normal)
        if normal.shape != (3,) or not length > 0:
            raise ValidationError(f"Plane normal must be a non-zero 3-vector, got {normal}")
        self.plane_normal = normal / length
        self.offset = float(offset)

    @property
    def name(self) -> str:
        return f"plane(n={_fmt(self.plane_normal)}, d={self.offset:g})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        points = _as_points(points)
        return points @ self.plane_normal - self.offset

    @property
    def bounding_box(self) -> BoundingBox:
        bb_min, bb_max = _infinite_box()
        axis = np.flatnonzero(np.isclose(np.abs(self.plane_normal), 1.0))
        if len(axis) == 1:
            i = axis[0]
            if self.plane_normal[i] > 0:
                bb_max[i] = self.offset
            else:
                bb_min[i] = -self.offset
        return bb_min, bb_max

    def faces(self) -> list[FaceDescriptor]:
        return [
            FaceDescriptor(
                name="surface",
                kind=FaceKind.PLANAR,
                normal=tuple(float(v) for v in self.plane_normal),
                origin=tuple(float(v) for v in self.plane_normal * self.offset),
            )
        ]


# === CSG Operations ===


class CSGNode(SDFPrimitive):
    """Base class for CSG operations on SDF nodes."""

    _operands: tuple[SDFPrimitive, ...] = ()

    @property
    def children(self) -> tuple[SDFPrimitive, ...]:
        return self._operands

    def faces(self) -> list[FaceDescriptor]:
        return merge_faces([c.faces() for c in self._operands])

    def edges(self) -> list[EdgeDescriptor]:
        return merge_edges(
            [c.faces() for c in self._operands], [c.edges() for c in self._operands]
        )


class Union(CSGNode):
    """
    Union of multiple shapes (logical OR).

    The union is the set of points inside any of the child shapes.
    SDF implementation: min(d1, d2, ..., dn)
    """

    kind = "union"

    def __init__(self, *children: SDFPrimitive):
        """
        Create union of multiple nodes.

        Args:
            *children: One or more SDFPrimitive objects to union
        """
        if not children:
            raise ValidationError("Union requires at least one child")
        self._operands = tuple(children)

    @property
    def name(self) -> str:
        return "union(" + ", ".join(c.name for c in self._operands) + ")"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        """
        Compute union SDF as minimum of all child SDFs.

        Args:
            points: Array of shape (N, 3) with (x, y, z) coordinates

        Returns:
            Array of shape (N,) with signed distances
        """
        distances = [child.sdf(points) for child in self._operands]
        return np.minimum.reduce(distances)

    @cached_property
    def bounding_box(self) -> BoundingBox:
        """
        Bounding box is the union of all child bounding boxes.

        Empty children contribute nothing (their +inf/-inf corners never win).
        """
        mins = [child.bounding_box[0] for child in self._operands]
        maxs = [child.bounding_box[1] for child in self._operands]
        return np.minimum.reduce(mins), np.maximum.reduce(maxs)


class Intersection(CSGNode):
    """
    Intersection of multiple shapes (logical AND).

    The intersection is the set of points inside all child shapes.
    SDF implementation: max(d1, d2, ..., dn)
    """

    kind = "intersection"

    def __init__(self, *children: SDFPrimitive):
        """
        Create intersection of multiple nodes.

        Args:
            *children: One or more SDFPrimitive objects to intersect
        """
        if not children:
            raise ValidationError("Intersection requires at least one child")
        self._operands = tuple(children)

    @property
    def name(self) -> str:
        return "intersection(" + ", ".join(c.name for c in self._operands) + ")"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        distances = [child.sdf(points) for child in self._operands]
        return np.maximum.reduce(distances)

    @cached_property
    def bounding_box(self) -> BoundingBox:
        """
        Bounding box is the intersection of all child bounding boxes.

        Note: This is conservative - the actual intersection may be smaller.
        Disjoint children give an empty box.
        """
        mins = [child.bounding_box[0] for child in self._operands]
        maxs = [child.bounding_box[1] for child in self._operands]

        bb_min = np.maximum.reduce(mins)
        bb_max = np.minimum.reduce(maxs)

        if np.any(bb_min > bb_max):
            return _empty_box()

        return bb_min, bb_max


class _CuttingNode(CSGNode):
    """Shared face naming for differences.

    Faces of a removed shape become faces of the result with inward
    (flipped) normals, prefixed by the feature name: the id of a tagged
    cutter, ``feature_name``, or "cut_N" by position.
    """

    base: SDFPrimitive
    subtracted: tuple[SDFPrimitive, ...]
    feature_name: str | None

    def _cut_prefixes(self) -> list[str]:
        prefixes = []
        for i, shape in enumerate(self.subtracted):
            if isinstance(shape, Tagged):
                prefixes.append(shape.feature.feature_id)
            elif self.feature_name is not None:
                single = len(self.subtracted) == 1
                prefixes.append(self.feature_name if single else f"{self.feature_name}_{i + 1}")
            else:
                prefixes.append(f"cut_{i + 1}")
        return prefixes

    def faces(self) -> list[FaceDescriptor]:
        faces = list(self.base.faces())
        for prefix, shape in zip(self._cut_prefixes(), self.subtracted):
            faces.extend(f.renamed(f"{prefix}.{f.name}", flip=True) for f in shape.faces())
        return faces

    def edges(self) -> list[EdgeDescriptor]:
        edges = list(self.base.edges())
        for prefix, shape in zip(self._cut_prefixes(), self.subtracted):
            edges.extend(e.prefixed(f"{prefix}.") for e in shape.edges())
        return edges


class Difference(_CuttingNode):
    """
    Subtract shapes from a base shape.

    The difference is the set of points inside the base but outside all
    subtracted shapes.
    SDF implementation: max(base_sdf, -subtracted1_sdf, -subtracted2_sdf, ...)

    Args:
        base: Base shape to subtract from
        *subtracted: Shapes to remove from base
        feature_name: Prefix for the faces the cut creates
    """

    kind = "difference"

    def __init__(
        self, base: SDFPrimitive, *subtracted: SDFPrimitive, feature_name: str | None = None
    ):
        self.base = base
        self.subtracted = tuple(subtracted)
        self.feature_name = feature_name
        self._operands = (base, *self.subtracted)

    @property
    def name(self) -> str:
        cut = ", ".join(c.name for c in self.subtracted)
        return f"difference({self.base.name}, {cut})" if cut else self.base.name

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        result = self.base.sdf(points)

        # Subtract each shape by taking max with negative of its SDF
        for shape in self.subtracted:
            result = np.maximum(result, -shape.sdf(points))

        return result

    @cached_property
    def bounding_box(self) -> BoundingBox:
        """Bounding box is the same as the base shape.

        Subtracting only removes material, never adds beyond base bounds.
        """
        return self.base.bounding_box


def _smooth_blend(d1, d2, radius: float) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    h = np.clip(0.5 + 0.5 * (d2 - d1) / radius, 0, 1)
    return d2 * (1 - h) + d1 * h, radius * h * (1 - h)


def _check_blend_radius(radius: float) -> float:
    radius = float(radius)
    if not radius > 0:
        raise ValidationError(f"blend radius must be positive, got {radius}")
    return radius


class SmoothUnion(CSGNode):
    """
    Smooth union with blend radius.

    Creates a smooth transition between shapes rather than a sharp edge.
    Uses the polynomial smooth minimum:
    h = clamp(0.5 + 0.5 * (d2 - d1) / k, 0, 1)
    result = lerp(d2, d1, h) - k * h * (1 - h)

    Outside the blend band (|d1 - d2| >= k) the result is exactly min(d1, d2);
    inside it the surface moves out by at most k / 4.

    Args:
        a: First node
        b: Second node
        radius: Blend radius (larger = smoother transition)
    """

    kind = "smooth_union"

    def __init__(self, a: SDFPrimitive, b: SDFPrimitive, radius: float):
        self.radius = _check_blend_radius(radius)
        self.a = a
        self.b = b
        self._operands = (a, b)

    @property
    def name(self) -> str:
        return f"smooth_union({self.a.name}, {self.b.name}, k={self.radius:g})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        mix, bulge = _smooth_blend(self.a.sdf(points), self.b.sdf(points), self.radius)
        return mix - bulge

    @cached_property
    def bounding_box(self) -> BoundingBox:
        """Union of both boxes, expanded by the maximum blend bulge (radius / 4)."""
        min_a, max_a = self.a.bounding_box
        min_b, max_b = self.b.bounding_box
        pad = self.radius / 4
        return np.minimum(min_a, min_b) - pad, np.maximum(max_a, max_b) + pad


class SmoothIntersection(CSGNode):
    """
    Smooth intersection with blend radius.

    Uses the polynomial smooth maximum, the smooth minimum of the negated
    fields negated. Blending only removes material,
    so the hard intersection box stays valid.
    """

    kind = "smooth_intersection"

    def __init__(self, a: SDFPrimitive, b: SDFPrimitive, radius: float):
        self.radius = _check_blend_radius(radius)
        self.a = a
        self.b = b
        self._operands = (a, b)

    @property
    def name(self) -> str:
        return f"smooth_intersection({self.a.name}, {self.b.name}, k={self.radius:g})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        # smooth max(a, b) = -smooth min(-a, -b)
        mix, bulge = _smooth_blend(-self.a.sdf(points), -self.b.sdf(points), self.radius)
        return bulge - mix

    @cached_property
    def bounding_box(self) -> BoundingBox:
        min_a, max_a = self.a.bounding_box
        min_b, max_b = self.b.bounding_box
        bb_min = np.maximum(min_a, min_b)
        bb_max = np.minimum(max_a, max_b)
        if np.any(bb_min > bb_max):
            return _empty_box()
        return bb_min, bb_max


class SmoothDifference(_CuttingNode):
    """
    Smooth difference with blend radius.

    Creates a smooth transition when subtracting rather than a sharp edge.
    """

    kind = "smooth_difference"

    def __init__(
        self,
        base: SDFPrimitive,
        subtracted: SDFPrimitive,
        radius: float,
        feature_name: str | None = None,
    ):
        self.radius = _check_blend_radius(radius)
        self.base = base
        self.subtracted = (subtracted,)
        self.feature_name = feature_name
        self._operands = (base, subtracted)

    @property
    def name(self) -> str:
        return (
            f"smooth_difference({self.base.name}, {self.subtracted[0].name}, "
            f"k={self.radius:g})"
        )

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        # smooth max(base, -cutter) = -smooth min(-base, cutter)
        mix, bulge = _smooth_blend(
            -self.base.sdf(points), self.subtracted[0].sdf(points), self.radius
        )
        return bulge - mix

    @cached_property
    def bounding_box(self) -> BoundingBox:
        return self.base.bounding_box


# === Transforms ===


def rotation_matrix(axis: NDArray[np.floating], angle: float) -> NDArray[np.floating]:
    """Create 3x3 rotation matrix for rotation around axis by angle (radians).

    Uses Rodrigues' rotation formula to construct the rotation matrix.

    Args:
        axis: (3,) array defining rotation axis (will be normalized)
        angle: Rotation angle in radians

    Returns:
        (3, 3) rotation matrix

    Example:
        >>> # Rotate 90 degrees around z-axis
        >>> R = rotation_matrix(np.array([0, 0, 1]), np.pi/2)
        >>> # Rotate around arbitrary axis
        >>> R = rotation_matrix(np.array([1, 1, 1]), np.pi/4)
    """
    axis = np.asarray(axis, dtype=np.float64)
    length = np.linalg.norm(axis)
    if axis.shape != (3,) or not length > 0:
        raise ValidationError(f"rotation axis must be a non-zero 3-vector, got {axis}")
    axis = axis / length

    # Rodrigues' formula: R = I + sin(θ)K + (1 - cos(θ))K²
    # where K is the cross-product matrix of axis
    K = np.array(
        [
            [0, -axis[2], axis[1]],
            [axis[2], 0, -axis[0]],
            [-axis[1], axis[0], 0],
        ]
    )

    identity = np.eye(3)
    return identity + np.sin(angle) * K + (1 - np.cos(angle)) * (K @ K)


def _box_corners(bb_min: NDArray[np.floating], bb_max: NDArray[np.floating]) -> NDArray[np.floating]:
    return np.array(
        [
            [x, y, z]
            for x in (bb_min[0], bb_max[0])
            for y in (bb_min[1], bb_max[1])
            for z in (bb_min[2], bb_max[2])
        ]
    )


class Transform(SDFPrimitive):
    """Base class for transformed SDF nodes.

    Transformations wrap an existing node and modify the coordinate space
    of SDF evaluation: query points go through the inverse map
    (``_to_child``) and the child's distance is multiplied by
    ``_distance_scale``. Faces and tagged-subtree fields are carried into
    the parent frame with the forward map (``_to_parent``).
    """

    _distance_scale: float = 1.0

    def __init__(self, child: SDFPrimitive):
        self.child = child

    @property
    def children(self) -> tuple[SDFPrimitive, ...]:
        return (self.child,)

    @abstractmethod
    def _to_child(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        """Map (N, 3) world points into the child's frame."""

    @abstractmethod
    def _to_parent(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        """Map (N, 3) child-frame points into the world frame."""

    def _direction_to_parent(self, direction: NDArray[np.floating]) -> NDArray[np.floating]:
        origin = self._to_parent(np.zeros((1, 3)))
        return self._to_parent(direction[np.newaxis, :])[0] - origin[0]

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        points = _as_points(points)
        return self.child.sdf(self._to_child(points)) * self._distance_scale

    def _map_point(self, point: NDArray[np.floating]) -> NDArray[np.floating]:
        return self._to_parent(point[np.newaxis, :])[0]

    def faces(self) -> list[FaceDescriptor]:
        return [
            f.mapped(self._map_point, self._direction_to_parent, self._distance_scale)
            for f in self.child.faces()
        ]

    def edges(self) -> list[EdgeDescriptor]:
        return [e.mapped(self._map_point) for e in self.child.edges()]

    def tag_fields(self) -> list[TagField]:
        return [self._wrap_field(f) for f in self.child.tag_fields()]

    def _wrap_field(self, field: TagField) -> TagField:
        child_distance = field.distance
        to_child = self._to_child
        scale = self._distance_scale

        def distance(points: NDArray[np.floating]) -> NDArray[np.floating]:
            return child_distance(to_child(points)) * scale

        return TagField(field.feature, distance, self._map_point(field.center))


class Translate(Transform):
    """Translate a node by offset vector.

    Translation works by subtracting the offset from query points
    (inverse transform) before evaluating the child SDF.

    Args:
        child: The node to translate
        offset: (x, y, z) translation vector

    Example:
        >>> box = Box(center=(0, 0, 0), size=(20, 20, 20))
        >>> translated = Translate(box, offset=(50, 50, 50))
        >>>
        >>> # Fluent API
        >>> translated = box.translate((50, 50, 50))
    """

    kind = "translate"

    def __init__(
        self, child: SDFPrimitive, offset: tuple[float, float, float] | NDArray[np.floating]
    ):
        super().__init__(child)
        self.offset = np.asarray(offset, dtype=np.float64)

        if self.offset.shape != (3,):
            raise ValidationError(
                f"offset must be a 3-element vector, got shape {self.offset.shape}"
            )

    @property
    def name(self) -> str:
        return f"translate({self.child.name}, {_fmt(self.offset)})"

    def _to_child(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        return points - self.offset

    def _to_parent(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        return points + self.offset

    @property
    def bounding_box(self) -> BoundingBox:
        bb_min, bb_max = self.child.bounding_box
        if is_empty_box((bb_min, bb_max)):
            return _empty_box()
        return bb_min + self.offset, bb_max + self.offset


class Scale(Transform):
    """Scale a node uniformly or non-uniformly.

    Scaling works by dividing query points by the scale factor
    (inverse transform). For uniform scaling, the SDF property
    is preserved by multiplying the result by the scale factor.

    For non-uniform scaling, the result is approximate (not a true SDF):
    the distance is multiplied by the smallest factor.

    Args:
        child: The node to scale
        scale: Uniform scale factor (float) or per-axis scale (3-element array)

    Example:
        >>> box = Box(center=(0, 0, 0), size=(10, 10, 10))
        >>> scaled = Scale(box, scale=2.0)  # Uniform 2x scaling
        >>>
        >>> # Non-uniform scaling
        >>> scaled = Scale(box, scale=(2.0, 1.0, 0.5))
    """

    kind = "scale"

    def __init__(
        self, child: SDFPrimitive, scale: float | tuple[float, float, float] | NDArray[np.floating]
    ):
        super().__init__(child)
        if np.isscalar(scale):
            self.factors = np.array([scale, scale, scale], dtype=np.float64)
            self.uniform = True
        else:
            self.factors = np.asarray(scale, dtype=np.float64)
            if self.factors.shape != (3,):
                raise ValidationError(
                    f"scale must be scalar or 3-element vector, got shape {self.factors.shape}"
                )
            self.uniform = bool(np.allclose(self.factors, self.factors[0]))

        if not np.all(self.factors > 0):
            raise ValidationError(f"scale factors must be positive, got {self.factors}")

        self._distance_scale = float(self.factors[0] if self.uniform else np.min(self.factors))

    @property
    def name(self) -> str:
        factor = f"{self.factors[0]:g}" if self.uniform else _fmt(self.factors)
        return f"scale({self.child.name}, {factor})"

    def _to_child(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        return points / self.factors

    def _to_parent(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        return points * self.factors

    def _direction_to_parent(self, direction: NDArray[np.floating]) -> NDArray[np.floating]:
        # Normals transform with the inverse scale
        return direction / self.factors

    @property
    def bounding_box(self) -> BoundingBox:
        bb_min, bb_max = self.child.bounding_box
        if is_empty_box((bb_min, bb_max)):
            return _empty_box()
        return bb_min * self.factors, bb_max * self.factors


class Rotate(Transform):
    """Rotate a node around an axis or by rotation matrix.

    Rotation works by applying the inverse rotation matrix to query
    points before evaluating the child SDF.

    Args:
        child: The node to rotate
        axis: (3,) array defining rotation axis (used with angle)
        angle: Rotation angle in radians (used with axis)
        matrix: Explicit 3x3 rotation matrix (alternative to axis/angle)

    Example:
        >>> box = Box(center=(0, 0, 0), size=(20, 20, 40))
        >>>
        >>> # Rotate around z-axis
        >>> rotated = Rotate(box, axis=(0, 0, 1), angle=np.pi/4)
        >>>
        >>> # Rotate using explicit matrix
        >>> R = rotation_matrix([1, 0, 0], np.pi/2)
        >>> rotated = Rotate(box, matrix=R)
    """

    kind = "rotate"

    def __init__(
        self,
        child: SDFPrimitive,
        axis: tuple[float, float, float] | NDArray[np.floating] | None = None,
        angle: float | None = None,
        matrix: NDArray[np.floating] | None = None,
    ):
        super().__init__(child)

        if matrix is not None:
            self.matrix = np.asarray(matrix, dtype=np.float64)
            if self.matrix.shape != (3, 3):
                raise ValidationError(f"matrix must be 3x3, got shape {self.matrix.shape}")
            # The inverse below is the transpose, so only proper rotations qualify
            if not (
                np.allclose(self.matrix @ self.matrix.T, np.eye(3), atol=1e-9)
                and np.linalg.det(self.matrix) > 0
            ):
                raise ValidationError(
                    f"matrix must be a rotation (orthonormal, det = +1), got {self.matrix.tolist()}"
                )
        elif axis is not None and angle is not None:
            self.matrix = rotation_matrix(np.asarray(axis), angle)
        else:
            raise ValidationError("Must provide either (axis, angle) or matrix")

        self.axis = axis
        self.angle = angle

        # Inverse rotation matrix = transpose (for rotation matrices)
        self.inv_matrix = self.matrix.T

    @property
    def name(self) -> str:
        if self.angle is not None:
            return f"rotate({self.child.name}, {_fmt(self.axis)}, {self.angle:g})"
        return f"rotate({self.child.name}, matrix)"

    def _to_child(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        return points @ self.inv_matrix.T

    def _to_parent(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        return points @ self.matrix.T

    @property
    def bounding_box(self) -> BoundingBox:
        """Return axis-aligned bounding box of rotated node.

        Computes a conservative AABB by rotating all 8 corners of the
        child's bounding box and finding min/max extents. An unbounded
        child stays unbounded.
        """
        bb_min, bb_max = self.child.bounding_box
        if is_empty_box((bb_min, bb_max)):
            return _empty_box()
        if not (np.all(np.isfinite(bb_min)) and np.all(np.isfinite(bb_max))):
            return _infinite_box()

        rotated_corners = _box_corners(bb_min, bb_max) @ self.matrix.T
        return rotated_corners.min(axis=0), rotated_corners.max(axis=0)


class Mirror(Transform):
    """Mirror a node across the coordinate plane normal to ``axis``.

    By default the child is reflected (its copy appears on the other side of
    the plane). With ``symmetric=True`` space is folded instead: the child
    is evaluated at ``|p_axis|``, so whatever lies on the positive side is
    duplicated onto the negative side.

    Args:
        child: The node to mirror
        axis: "x", "y", "z" or 0, 1, 2
        symmetric: Fold instead of reflect
    """

    kind = "mirror"

    def __init__(self, child: SDFPrimitive, axis: int | str, symmetric: bool = False):
        super().__init__(child)
        self.axis = _axis_index(axis)
        self.symmetric = symmetric
        self._flip = np.ones(3)
        self._flip[self.axis] = -1.0

    @property
    def name(self) -> str:
        mode = ", symmetric" if self.symmetric else ""
        return f"mirror({self.child.name}, {'xyz'[self.axis]}{mode})"

    def _to_child(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        if self.symmetric:
            folded = points.copy()
            folded[:, self.axis] = np.abs(folded[:, self.axis])
            return folded
        return points * self._flip

    def _to_parent(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        if self.symmetric:
            return points
        return points * self._flip

    @property
    def bounding_box(self) -> BoundingBox:
        bb_min, bb_max = self.child.bounding_box
        if is_empty_box((bb_min, bb_max)):
            return _empty_box()
        new_min, new_max = bb_min.copy(), bb_max.copy()
        i = self.axis
        if self.symmetric:
            # Only the non-negative side of the child survives the fold
            if bb_max[i] < 0:
                return _empty_box()
            new_min[i], new_max[i] = -bb_max[i], bb_max[i]
        else:
            new_min[i], new_max[i] = -bb_max[i], -bb_min[i]
        return new_min, new_max


# === Modifiers ===


class Modifier(SDFPrimitive):
    """Base class for nodes that reshape a single child's field.

    Subclasses implement ``_apply(distance, points)``, which evaluates a
    child distance callable and post-processes it; the same rule is applied
    to tagged-subtree fields so feature regions follow the modified surface.
    """

    def __init__(self, child: SDFPrimitive):
        self.child = child

    @property
    def children(self) -> tuple[SDFPrimitive, ...]:
        return (self.child,)

    @abstractmethod
    def _apply(
        self,
        distance: Callable[[NDArray[np.floating]], NDArray[np.floating]],
        points: NDArray[np.floating],
    ) -> NDArray[np.floating]:
        """Evaluate ``distance`` at ``points`` and apply the modifier."""

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        return self._apply(self.child.sdf, _as_points(points))

    def faces(self) -> list[FaceDescriptor]:
        return self.child.faces()

    def edges(self) -> list[EdgeDescriptor]:
        return self.child.edges()

    def tag_fields(self) -> list[TagField]:
        wrapped = []
        for field in self.child.tag_fields():
            child_distance = field.distance

            def distance(points, child_distance=child_distance):
                return self._apply(child_distance, points)

            wrapped.append(TagField(field.feature, distance, field.center))
        return wrapped


class Shell(Modifier):
    """Hollow shell of ``thickness`` centred on the child's surface.

    SDF implementation: |d| - thickness / 2. Every face appears twice, as
    "outer_<name>" and "inner_<name>" (inner normals flipped).
    """

    kind = "shell"

    def __init__(self, child: SDFPrimitive, thickness: float):
        super().__init__(child)
        self.thickness = float(thickness)
        if not self.thickness > 0:
            raise ValidationError(f"Shell thickness must be positive, got {thickness}")

    @property
    def name(self) -> str:
        return f"shell({self.child.name}, {self.thickness:g})"

    def _apply(self, distance, points):
        return np.abs(distance(points)) - self.thickness / 2

    @property
    def bounding_box(self) -> BoundingBox:
        bb_min, bb_max = self.child.bounding_box
        if is_empty_box((bb_min, bb_max)):
            return _empty_box()
        pad = self.thickness / 2
        return bb_min - pad, bb_max + pad

    def faces(self) -> list[FaceDescriptor]:
        faces = []
        for f in self.child.faces():
            faces.append(f.renamed(f"outer_{f.name}"))
            faces.append(f.renamed(f"inner_{f.name}", flip=True))
        return faces

    def edges(self) -> list[EdgeDescriptor]:
        return [e.prefixed(p) for p in ("outer_", "inner_") for e in self.child.edges()]


class Round(Modifier):
    """Inflate the child's surface by ``radius``.

    SDF implementation: d - radius. Convex edges become fillets of that
    radius, which is also how the toolpath generator derives the tool-center
    offset surface.
    """

    kind = "round"

    def __init__(self, child: SDFPrimitive, radius: float):
        super().__init__(child)
        self.radius = float(radius)
        if not self.radius > 0:
            raise ValidationError(f"Round radius must be positive, got {radius}")

    @property
    def name(self) -> str:
        return f"round({self.child.name}, {self.radius:g})"

    def _apply(self, distance, points):
        return distance(points) - self.radius

    @property
    def bounding_box(self) -> BoundingBox:
        bb_min, bb_max = self.child.bounding_box
        if is_empty_box((bb_min, bb_max)):
            return _empty_box()
        return bb_min - self.radius, bb_max + self.radius

    def edges(self) -> list[EdgeDescriptor]:
        return [replace(e, kind=EdgeKind.FILLET) for e in self.child.edges()]


class Elongate(Modifier):
    """Stretch the child by ``amount`` along each axis.

    The query point is clamped by half the amount per axis,
    ``q = p - clamp(p, -h, h)``, so the child is split at the origin and its
    halves pulled apart with straight sections in between.

    Args:
        child: The node to elongate
        amount: Uniform (float) or per-axis (3-element) stretch, >= 0
    """

    kind = "elongate"

    def __init__(self, child: SDFPrimitive, amount: float | tuple[float, float, float]):
        super().__init__(child)
        amount = np.broadcast_to(np.asarray(amount, dtype=np.float64), (3,)).copy()
        if not np.all(amount >= 0):
            raise ValidationError(f"Elongate amounts must be non-negative, got {amount}")
        self.amount = amount
        self.half = amount / 2

    @property
    def name(self) -> str:
        return f"elongate({self.child.name}, {_fmt(self.amount)})"

    def _apply(self, distance, points):
        return distance(points - np.clip(points, -self.half, self.half))

    @property
    def bounding_box(self) -> BoundingBox:
        bb_min, bb_max = self.child.bounding_box
        if is_empty_box((bb_min, bb_max)):
            return _empty_box()
        return bb_min - self.half, bb_max + self.half


# === 2D profile lifters ===


class Extrude(SDFPrimitive):
    """Extrude a 2D profile along Z, centred on z = 0.

    Uses the exact extrusion distance combining the profile distance ``d``
    and the cap distance ``w = |z| - height / 2``:
    min(max(d, w), 0) + |(max(d, 0), max(w, 0))|

    Faces: "top", "bottom" and walls ("wall" for circles and polygons,
    "wall_right"/"wall_left"/"wall_back"/"wall_front" for rectangles).

    Args:
        profile: The 2D cross-section
        height: Extrusion height (> 0)

    Example:
        >>> from sdfmill.geometry.profiles import Polygon2D
        >>> prism = Extrude(Polygon2D([(0, 0), (30, 0), (0, 20)]), height=5)
    """

    kind = "extrude"

    def __init__(self, profile: Profile2D, height: float):
        if not isinstance(profile, Profile2D):
            raise ValidationError(f"Extrude needs a 2D profile, got {type(profile).__name__}")
        self.profile = profile
        self.height = float(height)
        if not self.height > 0:
            raise ValidationError(f"Extrude height must be positive, got {height}")

    @property
    def name(self) -> str:
        return f"extrude({self.profile.name}, {self.height:g})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        points = _as_points(points)
        d = self.profile.sdf(points[:, :2])
        w = np.abs(points[:, 2]) - self.height / 2
        inside = np.minimum(np.maximum(d, w), 0.0)
        outside = np.hypot(np.maximum(d, 0.0), np.maximum(w, 0.0))
        return inside + outside

    @property
    def bounding_box(self) -> BoundingBox:
        p_min, p_max = self.profile.bounding_box
        half = self.height / 2
        return np.array([p_min[0], p_min[1], -half]), np.array([p_max[0], p_max[1], half])

    def _walls(self) -> list[FaceDescriptor]:
        profile = self.profile
        if isinstance(profile, Circle2D):
            cx, cy = profile.center
            return [
                FaceDescriptor(
                    name="wall",
                    kind=FaceKind.CYLINDRICAL,
                    normal=(1.0, 0.0, 0.0),
                    origin=(float(cx), float(cy), 0.0),
                    radius=profile.radius,
                    axis=(0.0, 0.0, 1.0),
                )
            ]
        if isinstance(profile, Rect2D):
            cx, cy = profile.center
            hx, hy = profile.half
            sides = {
                "wall_right": ((1.0, 0.0, 0.0), (cx + hx, cy, 0.0)),
                "wall_left": ((-1.0, 0.0, 0.0), (cx - hx, cy, 0.0)),
                "wall_back": ((0.0, 1.0, 0.0), (cx, cy + hy, 0.0)),
                "wall_front": ((0.0, -1.0, 0.0), (cx, cy - hy, 0.0)),
            }
            return [
                FaceDescriptor(
                    name=name,
                    kind=FaceKind.PLANAR,
                    normal=normal,
                    origin=tuple(float(v) for v in origin),
                )
                for name, (normal, origin) in sides.items()
            ]
        return [FaceDescriptor(name="wall", kind=FaceKind.FREEFORM, normal=(1.0, 0.0, 0.0))]

    def faces(self) -> list[FaceDescriptor]:
        p_min, p_max = self.profile.bounding_box
        cx, cy = (p_min + p_max) / 2
        half = self.height / 2
        caps = [
            FaceDescriptor(
                name="top",
                kind=FaceKind.PLANAR,
                normal=(0.0, 0.0, 1.0),
                origin=(float(cx), float(cy), half),
            ),
            FaceDescriptor(
                name="bottom",
                kind=FaceKind.PLANAR,
                normal=(0.0, 0.0, -1.0),
                origin=(float(cx), float(cy), -half),
            ),
        ]
        return caps + self._walls()

    def edges(self) -> list[EdgeDescriptor]:
        edges = []
        for cap in ("top", "bottom"):
            for wall in self._walls():
                edges.append(EdgeDescriptor(name=f"{cap}.{wall.name}", faces=(cap, wall.name)))
        return edges


class Revolve(SDFPrimitive):
    """Revolve a 2D profile around the Z axis.

    The profile's x is the radial coordinate and its y is z; the profile is
    shifted outward by ``offset`` before revolving:
    d(p) = profile(|p.xy| - offset, p.z)

    Args:
        profile: The 2D cross-section
        offset: Radial shift of the profile from the axis
    """

    kind = "revolve"

    def __init__(self, profile: Profile2D, offset: float = 0.0):
        if not isinstance(profile, Profile2D):
            raise ValidationError(f"Revolve needs a 2D profile, got {type(profile).__name__}")
        self.profile = profile
        self.offset = float(offset)
        if not np.isfinite(self.offset):
            raise ValidationError(f"Revolve offset must be finite, got {offset}")

    @property
    def name(self) -> str:
        return f"revolve({self.profile.name}, {self.offset:g})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        points = _as_points(points)
        r = np.hypot(points[:, 0], points[:, 1]) - self.offset
        return self.profile.sdf(np.stack([r, points[:, 2]], axis=1))

    @property
    def bounding_box(self) -> BoundingBox:
        p_min, p_max = self.profile.bounding_box
        radius = max(abs(self.offset + p_min[0]), abs(self.offset + p_max[0]))
        return (
            np.array([-radius, -radius, p_min[1]]),
            np.array([radius, radius, p_max[1]]),
        )

    def faces(self) -> list[FaceDescriptor]:
        profile = self.profile
        if isinstance(profile, Circle2D):
            return [
                FaceDescriptor(
                    name="surface",
                    kind=FaceKind.TOROIDAL,
                    normal=(0.0, 0.0, 1.0),
                    origin=(0.0, 0.0, float(profile.center[1])),
                    radius=self.offset + float(profile.center[0]),
                    axis=(0.0, 0.0, 1.0),
                )
            ]
        if isinstance(profile, Rect2D):
            cx, cy = profile.center
            hx, hy = profile.half
            outer = self.offset + cx + hx
            inner = self.offset + cx - hx
            faces = [
                FaceDescriptor(
                    name="top",
                    kind=FaceKind.PLANAR,
                    normal=(0.0, 0.0, 1.0),
                    origin=(0.0, 0.0, float(cy + hy)),
                ),
                FaceDescriptor(
                    name="bottom",
                    kind=FaceKind.PLANAR,
                    normal=(0.0, 0.0, -1.0),
                    origin=(0.0, 0.0, float(cy - hy)),
                ),
                FaceDescriptor(
                    name="outer_wall",
                    kind=FaceKind.CYLINDRICAL,
                    normal=(1.0, 0.0, 0.0),
                    origin=(0.0, 0.0, float(cy)),
                    radius=float(outer),
                    axis=(0.0, 0.0, 1.0),
                ),
            ]
            if inner > 0:
                faces.append(
                    FaceDescriptor(
                        name="inner_wall",
                        kind=FaceKind.CYLINDRICAL,
                        normal=(-1.0, 0.0, 0.0),
                        origin=(0.0, 0.0, float(cy)),
                        radius=float(inner),
                        axis=(0.0, 0.0, 1.0),
                    )
                )
            return faces
        return [FaceDescriptor(name="surface", kind=FaceKind.FREEFORM, normal=(0.0, 0.0, 1.0))]


# === Feature annotation ===


class Tagged(SDFPrimitive):
    """Attach a semantic ``Feature`` to a subtree.

    Geometry-neutral: distance, bounds and faces are the child's. The
    mesher uses ``tag_fields()`` to annotate the triangles this subtree
    produced with the feature id.

    Args:
        child: The subtree to tag
        feature: The feature descriptor
    """

    kind = "tagged"

    def __init__(self, child: SDFPrimitive, feature: Feature):
        if not isinstance(feature, Feature):
            raise ValidationError(f"tag needs a Feature, got {type(feature).__name__}")
        self.child = child
        self.feature = feature

    @property
    def children(self) -> tuple[SDFPrimitive, ...]:
        return (self.child,)

    @property
    def name(self) -> str:
        return f"tag({self.child.name}, {self.feature.feature_id})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        return self.child.sdf(points)

    @property
    def bounding_box(self) -> BoundingBox:
        return self.child.bounding_box

    def faces(self) -> list[FaceDescriptor]:
        return self.child.faces()

    def edges(self) -> list[EdgeDescriptor]:
        return self.child.edges()

    def tag_fields(self) -> list[TagField]:
        bb_min, bb_max = self.child.bounding_box
        if is_empty_box((bb_min, bb_max)) or not (
            np.all(np.isfinite(bb_min)) and np.all(np.isfinite(bb_max))
        ):
            center = np.zeros(3)
        else:
            center = (bb_min + bb_max) / 2
        own = TagField(self.feature, self.child.sdf, center)
        return [own, *self.child.tag_fields()]


class EdgeBreak(SDFPrimitive):
    """Break the edge where two planar faces meet with a chamfer or fillet.

    The faces are given as (normal, origin) planes with outward normals.
    With dA and dB the signed distances to the two planes, the removed
    region is the strip of the corner within ``size`` of both faces that
    lies beyond the break surface:

    - chamfer: the plane through the two tangent lines ``size`` back from
      the edge, ``(dA + dB + size) / |nA + nB|``
    - fillet: the round of radius ``size`` tangent to both faces,
      ``|(dA + size, dB + size)| - size`` (exact for perpendicular faces)

    SDF implementation: max(child, -cutter), like a difference, so the
    break only ever removes material. The break adds a "<feature>.face"
    face and drops the broken edge from ``edges()``.

    Args:
        child: Shape whose edge is broken
        face_a: (normal, origin) of the first face
        face_b: (normal, origin) of the second face
        size: Chamfer leg length or fillet radius
        mode: "chamfer" or "fillet"
        feature: Feature tagging the break surface
        removed_edge: Name of the edge being broken
    """

    kind = "edge_break"

    MODES = ("chamfer", "fillet")

    def __init__(
        self,
        child: SDFPrimitive,
        face_a: tuple[Any, Any],
        face_b: tuple[Any, Any],
        size: float,
        mode: str,
        feature: Feature,
        removed_edge: str,
    ):
        if mode not in self.MODES:
            raise ValidationError(f"edge break mode must be one of {self.MODES}, got {mode!r}")
        self.size = float(size)
        if not self.size > 0:
            raise ValidationError(f"{mode}() size must be positive, got {size}")
        self.child = child
        self.mode = mode
        self.feature = feature
        self.removed_edge = removed_edge

        normals, origins = [], []
        for normal, origin in (face_a, face_b):
            normal = np.asarray(normal, dtype=np.float64)
            length = np.linalg.norm(normal)
            if normal.shape != (3,) or length == 0:
                raise ValidationError(f"face normal must be a non-zero 3-vector, got {normal}")
            normals.append(normal / length)
            origins.append(np.asarray(origin, dtype=np.float64))
        self.normal_a, self.normal_b = normals
        self.origin_a, self.origin_b = origins

        if np.linalg.norm(np.cross(self.normal_a, self.normal_b)) < 1e-9:
            raise ValidationError(f"{mode}() faces of edge '{removed_edge}' are parallel")
        self._bisector_length = float(np.linalg.norm(self.normal_a + self.normal_b))

    @property
    def children(self) -> tuple[SDFPrimitive, ...]:
        return (self.child,)

    @property
    def name(self) -> str:
        return f"{self.mode}({self.child.name}, {self.removed_edge}, {self.size:g})"

    def cutter(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        """Signed distance of the removed strip (negative inside it)."""
        points = _as_points(points)
        da = (points - self.origin_a) @ self.normal_a
        db = (points - self.origin_b) @ self.normal_b
        qa, qb = da + self.size, db + self.size
        if self.mode == "chamfer":
            beyond = (da + db + self.size) / self._bisector_length
        else:
            beyond = np.hypot(qa, qb) - self.size
        return np.maximum(np.maximum(-qa, -qb), -beyond)

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        points = _as_points(points)
        return np.maximum(self.child.sdf(points), -self.cutter(points))

    @property
    def bounding_box(self) -> BoundingBox:
        return self.child.bounding_box

    def _edge_point(self) -> NDArray[np.floating]:
        """The point on the edge line closest to the first face's origin."""
        planes = np.stack([self.normal_a, self.normal_b])
        offsets = np.array(
            [self.origin_a @ self.normal_a, self.origin_b @ self.normal_b]
        ) - planes @ self.origin_a
        return self.origin_a + planes.T @ np.linalg.solve(planes @ planes.T, offsets)

    def faces(self) -> list[FaceDescriptor]:
        edge = self._edge_point()
        normal = tuple(float(v) for v in (self.normal_a + self.normal_b) / self._bisector_length)
        face_name = f"{self.feature.feature_id}.face"
        if self.mode == "chamfer":
            face = FaceDescriptor(
                name=face_name,
                kind=FaceKind.PLANAR,
                normal=normal,
                origin=tuple(float(v) for v in edge - self.size * self.normal_a),
            )
        else:
            axis = np.cross(self.normal_a, self.normal_b)
            face = FaceDescriptor(
                name=face_name,
                kind=FaceKind.CYLINDRICAL,
                normal=normal,
                origin=tuple(
                    float(v) for v in edge - self.size * (self.normal_a + self.normal_b)
                ),
                radius=self.size,
                axis=tuple(float(v) for v in axis / np.linalg.norm(axis)),
            )
        return [*self.child.faces(), face]

    def edges(self) -> list[EdgeDescriptor]:
        return [e for e in self.child.edges() if e.name != self.removed_edge]

    def tag_fields(self) -> list[TagField]:
        own = TagField(self.feature, self.cutter, self._edge_point())
        return [*self.child.tag_fields(), own]


NODE_KINDS = frozenset(
    cls.kind
    for cls in (
        Box,
        Sphere,
        Cylinder,
        Cone,
        Torus,
        Plane,
        Union,
        Intersection,
        Difference,
        SmoothUnion,
        SmoothIntersection,
        SmoothDifference,
        Translate,
        Rotate,
        Scale,
        Mirror,
        Shell,
        Round,
        Elongate,
        Extrude,
        Revolve,
        Tagged,
        EdgeBreak,
    )
)
