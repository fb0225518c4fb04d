"""
Unit tests for 2D profiles and the Extrude/Revolve lifters.

Tests verify:
- Exact polygon distances for convex and concave loops
- Orientation independence of the polygon sign
- Circle and rectangle profiles
- Extrude and Revolve distances, bounds and faces
- Parameter validation
"""

import numpy as np
import pytest

from sdfmill import (
    Circle2D,
    Extrude,
    FaceKind,
    Polygon2D,
    Rect2D,
    Revolve,
    Torus,
    ValidationError,
    circle,
    extrude,
    polygon,
    rect,
    revolve,
    sphere,
)

L_SHAPE = [(0, 0), (10, 0), (10, 4), (4, 4), (4, 10), (0, 10)]

# =============================================================================
# Polygon2D Tests
# =============================================================================


class TestPolygon2D:
    def test_square_distances(self):
        """Inside, on-edge and outside points of a unit square."""
        square = Polygon2D([(0, 0), (10, 0), (10, 10), (0, 10)])
        points = np.array([[5.0, 5.0], [10.0, 5.0], [13.0, 5.0], [13.0, 14.0]])

        np.testing.assert_allclose(square.sdf(points), [-5.0, 0.0, 3.0, 5.0], atol=1e-12)

    def test_orientation_does_not_matter(self):
        """Clockwise and counter-clockwise loops give the same field."""
        ccw = Polygon2D(L_SHAPE)
        cw = Polygon2D(L_SHAPE[::-1])
        rng = np.random.default_rng(7)
        points = rng.uniform(-3, 13, size=(500, 2))

        np.testing.assert_allclose(ccw.sdf(points), cw.sdf(points), atol=1e-12)

    def test_concave_notch_is_outside(self):
        """The notch of an L-shape lies outside the profile."""
        shape = Polygon2D(L_SHAPE)
        points = np.array([[7.0, 7.0], [2.0, 2.0], [2.0, 8.0]])

        np.testing.assert_allclose(shape.sdf(points), [3.0, -2.0, -2.0], atol=1e-12)

    def test_triangle_docstring_value(self):
        tri = polygon([(0, 0), (10, 0), (0, 10)])

        assert tri.sdf(np.array([[1.0, 1.0]]))[0] == pytest.approx(-1.0)

    def test_bounding_box(self):
        bb_min, bb_max = Polygon2D(L_SHAPE).bounding_box

        np.testing.assert_allclose(bb_min, [0, 0])
        np.testing.assert_allclose(bb_max, [10, 10])

    def test_contains(self):
        inside = Polygon2D(L_SHAPE).contains(np.array([[1.0, 1.0], [8.0, 8.0]]))

        assert inside.tolist() == [True, False]

    def test_validation(self):
        with pytest.raises(ValidationError, match="at least 3 vertices"):
            Polygon2D([(0, 0), (1, 0)])
        with pytest.raises(ValidationError, match="Nx2"):
            Polygon2D([(0, 0, 0), (1, 0, 0), (0, 1, 0)])
        with pytest.raises(ValidationError, match="finite"):
            Polygon2D([(0, 0), (np.nan, 0), (0, 1)])

    def test_rejects_bad_query_shape(self):
        with pytest.raises(ValueError, match="Nx2"):
            Polygon2D(L_SHAPE).sdf(np.zeros((4, 3)))


# =============================================================================
# Circle2D / Rect2D Tests
# =============================================================================


class TestCircleAndRect:
    def test_circle_distance(self):
        c = circle(2, center=(1, 0))
        points = np.array([[1.0, 0.0], [4.0, 0.0]])

        np.testing.assert_allclose(c.sdf(points), [-2.0, 1.0])

    def test_rect_distance(self):
        r = rect(10, 6)
        points = np.array([[0.0, 0.0], [7.0, 0.0], [8.0, 7.0]])

        np.testing.assert_allclose(r.sdf(points), [-3.0, 2.0, 5.0])

    def test_rect_bounding_box(self):
        bb_min, bb_max = Rect2D(10, 6, center=(5, 0)).bounding_box

        np.testing.assert_allclose(bb_min, [0, -3])
        np.testing.assert_allclose(bb_max, [10, 3])

    def test_validation(self):
        with pytest.raises(ValidationError, match="radius must be positive"):
            Circle2D(0)
        with pytest.raises(ValidationError, match="dimensions must be positive"):
            Rect2D(10, -1)


# =============================================================================
# Extrude Tests
# =============================================================================


class TestExtrude:
    def test_extrude_distance(self):
        """Exact extrusion distance inside, above a cap and at a corner."""
        prism = extrude(rect(10, 6), 4)
        points = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, 5.0], [7.0, 5.0, 4.0]])

        np.testing.assert_allclose(prism.sdf(points), [-2.0, 3.0, np.sqrt(12.0)])

    def test_extrude_bounding_box(self):
        bb_min, bb_max = Extrude(Polygon2D(L_SHAPE), 6).bounding_box

        np.testing.assert_allclose(bb_min, [0, 0, -3])
        np.testing.assert_allclose(bb_max, [10, 10, 3])

    def test_extruded_rect_faces(self):
        names = [f.name for f in extrude(rect(10, 6), 4).faces()]

        assert names == [
            "top",
            "bottom",
            "wall_right",
            "wall_left",
            "wall_back",
            "wall_front",
        ]

    def test_extruded_circle_wall_is_cylindrical(self):
        wall = extrude(circle(3), 10).face("wall")

        assert wall.kind is FaceKind.CYLINDRICAL
        assert wall.radius == 3.0

    def test_extruded_polygon_faces(self):
        prism = extrude(polygon(L_SHAPE), 6)

        assert prism.face("top").origin == pytest.approx((5.0, 5.0, 3.0))
        assert prism.face("wall").kind is FaceKind.FREEFORM
        assert [e.name for e in prism.edges()] == ["top.wall", "bottom.wall"]

    def test_validation(self):
        with pytest.raises(ValidationError, match="needs a 2D profile"):
            Extrude(sphere(1), 5)
        with pytest.raises(ValidationError, match="height must be positive"):
            Extrude(rect(1, 1), 0)


# =============================================================================
# Revolve Tests
# =============================================================================


class TestRevolve:
    def test_revolved_circle_is_torus(self):
        """Revolving an offset circle reproduces the torus field."""
        ring = revolve(circle(2), offset=10)
        reference = Torus(10, 2)
        rng = np.random.default_rng(3)
        points = rng.uniform(-15, 15, size=(500, 3))

        np.testing.assert_allclose(ring.sdf(points), reference.sdf(points), atol=1e-12)

    def test_revolve_bounding_box(self):
        bb_min, bb_max = Revolve(Circle2D(2, center=(10, 0))).bounding_box

        np.testing.assert_allclose(bb_min, [-12, -12, -2])
        np.testing.assert_allclose(bb_max, [12, 12, 2])

    def test_revolved_circle_face(self):
        surface = revolve(circle(2), offset=10).face("surface")

        assert surface.kind is FaceKind.TOROIDAL
        assert surface.radius == 10.0

    def test_revolved_rect_is_washer(self):
        """A rectangle away from the axis revolves into a washer."""
        washer = Revolve(Rect2D(4, 10, center=(10, 0)))

        assert washer.face("top").origin == pytest.approx((0.0, 0.0, 5.0))
        assert washer.face("outer_wall").radius == pytest.approx(12.0)
        assert washer.face("inner_wall").radius == pytest.approx(8.0)
        assert washer.sdf(np.array([[0.0, 0.0, 0.0]]))[0] == pytest.approx(8.0)

    def test_rect_on_axis_has_no_inner_wall(self):
        names = [f.name for f in Revolve(Rect2D(10, 4, center=(5, 0))).faces()]

        assert "inner_wall" not in names

    def test_validation(self):
        with pytest.raises(ValidationError, match="needs a 2D profile"):
            Revolve(sphere(1))
        with pytest.raises(ValidationError, match="offset must be finite"):
            Revolve(circle(1), offset=np.inf)
