"""
2D signed distance profiles.

Profiles are the bridge from drawings to solids: ``Extrude`` sweeps a
profile along Z and ``Revolve`` spins it around Z (see
``sdfmill.geometry.sdf``).

Classes:
    Profile2D: Abstract base class for 2D shapes
    Polygon2D: Exact polygon SDF from an ordered vertex loop
    Circle2D: Circle
    Rect2D: Axis-aligned rectangle

Example:
    >>> import numpy as np
    >>> from sdfmill.geometry.profiles import Polygon2D
    >>> tri = Polygon2D([(0, 0), (10, 0), (0, 10)])
    >>> tri.sdf(np.array([[1.0, 1.0]]))  # inside
    array([-1.])

References:
    Inigo Quilez 2D SDF Functions: https://iquilezles.org/articles/distfunctions2d/
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
from numpy.typing import NDArray

from sdfmill.errors import ValidationError

MAX_POLYGON_VERTICES = 10_000


def _as_points2d(points: NDArray[np.floating]) -> NDArray[np.floating]:
    points = np.asarray(points, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] != 2:
        raise ValueError(f"points must be Nx2 array, got shape {points.shape}")
    return points


class Profile2D(ABC):
    """Base class for 2D signed distance profiles.

    Same sign convention as the 3D nodes: negative inside, positive outside.
    """

    kind: str = "profile"

    @abstractmethod
    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        """Evaluate SDF at Nx2 array of points.

        Args:
            points: (N, 2) array of (x, y) coordinates

        Returns:
            (N,) array of signed distances (negative = inside)
        """

    @property
    @abstractmethod
    def bounding_box(self) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        """Return (min_corner, max_corner) as two (2,) arrays."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable description."""

    def contains(self, points: NDArray[np.floating]) -> NDArray[np.bool_]:
        return self.sdf(points) <= 0

    def __repr__(self) -> str:
        return self.name


class Polygon2D(Profile2D):
    """Polygon from an ordered loop of vertices (CW or CCW).

    Distance is the exact distance to the nearest edge segment; the sign comes
    from a crossing-number test, so concave loops work. Self-intersecting
    loops are accepted but give meaningless signs.

    Args:
        vertices: (N, 2) sequence of vertices, N >= 3. The loop is closed
            implicitly.
    """

    kind = "polygon2d"

    def __init__(self, vertices):
        verts = np.asarray(vertices, dtype=np.float64)
        if verts.ndim != 2 or verts.shape[1] != 2:
            raise ValidationError(f"vertices must be an Nx2 array, got shape {verts.shape}")
        if len(verts) < 3:
            raise ValidationError(f"Polygon2D requires at least 3 vertices, got {len(verts)}")
        if len(verts) > MAX_POLYGON_VERTICES:
            raise ValidationError(
                f"Polygon2D supports at most {MAX_POLYGON_VERTICES} vertices, got {len(verts)}"
            )
        if not np.all(np.isfinite(verts)):
            raise ValidationError("Polygon2D vertices must be finite")

        self.vertices = verts
        self._min = verts.min(axis=0)
        self._max = verts.max(axis=0)

    @property
    def name(self) -> str:
        return f"polygon({len(self.vertices)} vertices)"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        points = _as_points2d(points)
        px, py = points[:, 0], points[:, 1]
        v = self.vertices

        d2 = (px - v[0, 0]) ** 2 + (py - v[0, 1]) ** 2
        sign = np.ones(len(points))

        for i in range(len(v)):
            j = i - 1  # previous vertex, wraps to the last one for i = 0
            ex, ey = v[j, 0] - v[i, 0], v[j, 1] - v[i, 1]
            wx, wy = px - v[i, 0], py - v[i, 1]

            ee = ex * ex + ey * ey
            if ee > 1e-24:
                t = np.clip((wx * ex + wy * ey) / ee, 0.0, 1.0)
            else:
                t = np.zeros_like(wx)
            bx, by = wx - ex * t, wy - ey * t
            d2 = np.minimum(d2, bx * bx + by * by)

            c1 = py >= v[i, 1]
            c2 = py < v[j, 1]
            c3 = ex * wy > ey * wx
            flip = (c1 & c2 & c3) | (~c1 & ~c2 & ~c3)
            sign = np.where(flip, -sign, sign)

        return sign * np.sqrt(d2)

    @property
    def bounding_box(self) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        return self._min.copy(), self._max.copy()


class Circle2D(Profile2D):
    """Circle, centered at the origin unless ``center`` is given."""

    kind = "circle2d"

    def __init__(self, radius: float, center: tuple[float, float] = (0.0, 0.0)):
        self.radius = float(radius)
        self.center = np.array(center, dtype=np.float64)
        if not self.radius > 0:
            raise ValidationError(f"Circle2D radius must be positive, got {radius}")

    @property
    def name(self) -> str:
        return f"circle(r={self.radius:g})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        points = _as_points2d(points)
        return np.linalg.norm(points - self.center, axis=1) - self.radius

    @property
    def bounding_box(self) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        return self.center - self.radius, self.center + self.radius


class Rect2D(Profile2D):
    """Axis-aligned rectangle of ``width`` (x) by ``height`` (y)."""

    kind = "rect2d"

    def __init__(self, width: float, height: float, center: tuple[float, float] = (0.0, 0.0)):
        self.width = float(width)
        self.height = float(height)
        self.center = np.array(center, dtype=np.float64)
        if not (self.width > 0 and self.height > 0):
            raise ValidationError(
                f"Rect2D dimensions must be positive, got width={width}, height={height}"
            )
        self.half = np.array([self.width / 2, self.height / 2])

    @property
    def name(self) -> str:
        return f"rect({self.width:g}, {self.height:g})"

    def sdf(self, points: NDArray[np.floating]) -> NDArray[np.floating]:
        points = _as_points2d(points)
        q = np.abs(points - self.center) - self.half
        outside = np.linalg.norm(np.maximum(q, 0), axis=1)
        inside = np.minimum(np.max(q, axis=1), 0)
        return outside + inside

    @property
    def bounding_box(self) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        return self.center - self.half, self.center + self.half
