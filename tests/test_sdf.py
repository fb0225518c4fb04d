"""
Unit tests for SDF primitives.

Tests verify:
- SDF correctness for known points inside/outside shapes
- Bounding box computation
- Gradients, normals and single-point evaluation
- Edge cases and parameter validation
"""

import numpy as np
import pytest

from sdfmill import (
    Box,
    Cone,
    Cylinder,
    Plane,
    Sphere,
    Torus,
    ValidationError,
    box,
    cone,
    cylinder,
    evaluate,
    plane,
    sphere,
    torus,
)
from sdfmill.geometry import NODE_KINDS
from sdfmill.geometry.sdf import is_empty_box

# =============================================================================
# Box Tests
# =============================================================================


class TestBox:
    def test_construction_center_size(self):
        """Test box construction with center and size."""
        b = Box(center=(5, 5, 5), size=(2, 2, 2))

        np.testing.assert_allclose(b.center, [5, 5, 5])
        np.testing.assert_allclose(b.size, [2, 2, 2])

    def test_construction_corners(self):
        """Test box construction with min/max corners."""
        b = Box(min_corner=(4, 4, 4), max_corner=(6, 6, 6))

        np.testing.assert_allclose(b.center, [5, 5, 5])
        np.testing.assert_allclose(b.size, [2, 2, 2])

    def test_construction_requires_parameters(self):
        """Test that construction fails without proper parameters."""
        with pytest.raises(ValidationError, match="Must provide either"):
            Box(center=(0, 0, 0))

        with pytest.raises(ValidationError, match="Must provide either"):
            Box(min_corner=(0, 0, 0))

    def test_construction_rejects_non_positive_size(self):
        """Zero and negative sizes are rejected at construction."""
        with pytest.raises(ValidationError, match="must be positive"):
            Box(center=(0, 0, 0), size=(-1, 1, 1))

        with pytest.raises(ValidationError, match="must be positive"):
            box((10, 0, 10))

    def test_validation_error_is_value_error(self):
        """ValidationError can be caught as a builtin ValueError."""
        with pytest.raises(ValueError):
            box(0)

    def test_sdf_center_point(self):
        """Center is inside at minus the smallest half-size."""
        b = box((40, 30, 10))

        assert b.sdf(np.array([[0.0, 0.0, 0.0]]))[0] == pytest.approx(-5.0)

    def test_sdf_surface_and_outside(self):
        """Surface points are ~0, outside points give the face distance."""
        b = box(20)
        points = np.array(
            [
                [10.0, 0.0, 0.0],  # On +x face
                [13.0, 0.0, 0.0],  # 3 outside +x face
                [13.0, 14.0, 0.0],  # Outside an edge
                [10.0, 10.0, 10.0],  # Corner
            ]
        )

        distances = b.sdf(points)

        np.testing.assert_allclose(distances, [0.0, 3.0, 5.0, 0.0], atol=1e-12)

    def test_contains(self):
        """Test contains() method (surface counts as inside)."""
        b = box(20)
        points = np.array([[0.0, 0.0, 0.0], [10.0, 0.0, 0.0], [11.0, 0.0, 0.0]])

        inside = b.contains(points)

        assert inside[0]
        assert inside[1]
        assert not inside[2]

    def test_bounding_box(self):
        """Test bounding box computation."""
        b = box((40, 30, 10), center=(1, 2, 3))

        min_corner, max_corner = b.bounding_box

        np.testing.assert_allclose(min_corner, [-19, -13, -2])
        np.testing.assert_allclose(max_corner, [21, 17, 8])

    def test_scalar_size_is_cube(self):
        """box(s) builds a cube."""
        np.testing.assert_allclose(box(12).size, [12, 12, 12])

    def test_rejects_bad_points_shape(self):
        """Points must be Nx3."""
        with pytest.raises(ValueError, match="Nx3"):
            box(1).sdf(np.zeros((4, 2)))


# =============================================================================
# Sphere Tests
# =============================================================================


class TestSphere:
    def test_sdf_values(self):
        """Exact Euclidean distance minus radius."""
        s = sphere(10, center=(1, 0, 0))
        points = np.array([[1.0, 0.0, 0.0], [11.0, 0.0, 0.0], [1.0, 0.0, 15.0]])

        np.testing.assert_allclose(s.sdf(points), [-10.0, 0.0, 5.0])

    def test_surface_points_are_zero(self):
        """Random points on the surface evaluate to ~0."""
        rng = np.random.default_rng(0)
        directions = rng.normal(size=(200, 3))
        directions /= np.linalg.norm(directions, axis=1, keepdims=True)

        s = sphere(7.5)
        np.testing.assert_allclose(s.sdf(directions * 7.5), 0.0, atol=1e-12)

    def test_bounding_box(self):
        """Bounding box is the center plus/minus the radius."""
        bb_min, bb_max = Sphere(center=(1, 2, 3), radius=2).bounding_box

        np.testing.assert_allclose(bb_min, [-1, 0, 1])
        np.testing.assert_allclose(bb_max, [3, 4, 5])

    def test_rejects_non_positive_radius(self):
        with pytest.raises(ValidationError, match="radius must be positive"):
            sphere(0)
        with pytest.raises(ValidationError, match="radius must be positive"):
            sphere(-2)


# =============================================================================
# Cylinder Tests
# =============================================================================


class TestCylinder:
    def test_exact_distances(self):
        """Distance is exact on the barrel, caps, rims and inside."""
        cyl = Cylinder(p1=(0, 0, -10), p2=(0, 0, 10), radius=5)
        points = np.array(
            [
                [8.0, 0.0, 0.0],  # 3 outside the barrel
                [0.0, 0.0, 13.0],  # 3 above the top cap
                [8.0, 0.0, 14.0],  # Outside the rim: hypot(3, 4)
                [0.0, 0.0, 0.0],  # Center: nearest surface is the barrel
                [0.0, 0.0, 9.0],  # Near the top cap
            ]
        )

        np.testing.assert_allclose(cyl.sdf(points), [3.0, 3.0, 5.0, -5.0, -1.0], atol=1e-9)

    def test_arbitrary_axis(self):
        """Tilted cylinders measure distance perpendicular to their axis."""
        cyl = Cylinder(p1=(0, 0, 0), p2=(10, 10, 0), radius=1)
        midpoint_offset = np.array([[5.0, 5.0, 3.0]])

        assert cyl.sdf(midpoint_offset)[0] == pytest.approx(2.0)

    def test_helper_is_z_centered(self):
        """cylinder(radius, height) runs along Z centred on its center."""
        cyl = cylinder(3, 20, center=(0, 0, 5))
        bb_min, bb_max = cyl.bounding_box

        np.testing.assert_allclose(bb_min, [-3, -3, -5])
        np.testing.assert_allclose(bb_max, [3, 3, 15])

    def test_rejects_invalid_parameters(self):
        with pytest.raises(ValidationError, match="radius must be positive"):
            Cylinder(p1=(0, 0, 0), p2=(0, 0, 1), radius=0)
        with pytest.raises(ValidationError, match="distinct"):
            Cylinder(p1=(0, 0, 0), p2=(0, 0, 0), radius=1)
        with pytest.raises(ValidationError, match="height must be positive"):
            cylinder(1, 0)

    def test_faces(self):
        """Caps and barrel carry their geometry."""
        cyl = cylinder(4, 10)

        assert [f.name for f in cyl.faces()] == ["top_cap", "bottom_cap", "barrel"]
        assert cyl.face("top_cap").normal == (0.0, 0.0, 1.0)
        assert cyl.face("bottom_cap").normal == (0.0, 0.0, -1.0)
        assert cyl.face("barrel").radius == 4.0


# =============================================================================
# Cone Tests
# =============================================================================


class TestCone:
    def test_helper_tip_at_origin(self):
        """cone(radius, height) has its tip at the origin, base below."""
        c = cone(5, 10)
        points = np.array(
            [
                [0.0, 0.0, 0.0],  # Tip
                [0.0, 0.0, -10.0],  # Base center
                [0.0, 0.0, 1.0],  # Above the tip
                [0.0, 0.0, -5.0],  # On the axis, inside
            ]
        )

        distances = c.sdf(points)

        np.testing.assert_allclose(distances[:3], [0.0, 0.0, 1.0], atol=1e-9)
        assert distances[3] < 0

    def test_base_rim_is_on_surface(self):
        c = cone(5, 10)

        assert c.sdf(np.array([[5.0, 0.0, -10.0]]))[0] == pytest.approx(0.0, abs=1e-9)

    def test_frustum_reduces_to_cylinder(self):
        """Equal radii give the same field as a cylinder."""
        cone_ = Cone(p1=(0, 0, -5), p2=(0, 0, 5), r1=3, r2=3)
        cyl = Cylinder(p1=(0, 0, -5), p2=(0, 0, 5), radius=3)
        rng = np.random.default_rng(1)
        points = rng.uniform(-8, 8, size=(500, 3))

        np.testing.assert_allclose(cone_.sdf(points), cyl.sdf(points), atol=1e-9)

    def test_bounding_box(self):
        bb_min, bb_max = cone(5, 10).bounding_box

        np.testing.assert_allclose(bb_min, [-5, -5, -10])
        np.testing.assert_allclose(bb_max, [5, 5, 0])

    def test_rejects_invalid_radii(self):
        with pytest.raises(ValidationError, match="non-negative"):
            Cone(p1=(0, 0, 0), p2=(0, 0, 1), r1=-1, r2=1)
        with pytest.raises(ValidationError, match="both radii zero"):
            Cone(p1=(0, 0, 0), p2=(0, 0, 1), r1=0, r2=0)

    def test_faces_skip_zero_radius_cap(self):
        names = [f.name for f in cone(5, 10).faces()]

        assert names == ["base_cap", "surface"]


# =============================================================================
# Torus and Plane Tests
# =============================================================================


class TestTorus:
    def test_sdf_values(self):
        t = torus(10, 3)
        points = np.array([[13.0, 0.0, 0.0], [10.0, 0.0, 0.0], [0.0, 0.0, 0.0], [0.0, 10.0, 5.0]])

        np.testing.assert_allclose(t.sdf(points), [0.0, -3.0, 7.0, 2.0], atol=1e-12)

    def test_bounding_box(self):
        bb_min, bb_max = Torus(10, 3, center=(0, 0, 1)).bounding_box

        np.testing.assert_allclose(bb_min, [-13, -13, -2])
        np.testing.assert_allclose(bb_max, [13, 13, 4])

    def test_rejects_non_positive_radii(self):
        with pytest.raises(ValidationError, match="Torus radii"):
            torus(10, 0)


class TestPlane:
    def test_half_space(self):
        """Solid side is opposite the normal."""
        p = plane((0, 0, 1), offset=2)
        points = np.array([[0.0, 0.0, 5.0], [3.0, -4.0, 2.0], [0.0, 0.0, -1.0]])

        np.testing.assert_allclose(p.sdf(points), [3.0, 0.0, -3.0])

    def test_normal_is_normalized(self):
        p = Plane(normal=(0, 0, 4), offset=0)

        np.testing.assert_allclose(p.plane_normal, [0, 0, 1])

    def test_surface_normal_method(self):
        """The plane keeps the inherited gradient-based normal()."""
        p = plane((0, 0, 1), offset=2)

        normals = p.normal(np.array([[0.0, 0.0, 2.0], [5.0, -3.0, 7.0]]))

        np.testing.assert_allclose(normals, [[0, 0, 1], [0, 0, 1]], atol=1e-6)

    def test_axis_aligned_bounding_box(self):
        """Only the bounded side of an axis-aligned plane is finite."""
        bb_min, bb_max = plane((0, 0, 1), offset=3).bounding_box

        assert bb_max[2] == 3.0
        assert np.isinf(bb_min).all()
        assert np.isinf(bb_max[:2]).all()

    def test_tilted_plane_is_unbounded(self):
        bb_min, bb_max = plane((1, 1, 0)).bounding_box

        assert np.all(np.isinf(bb_min)) and np.all(np.isinf(bb_max))

    def test_rejects_zero_normal(self):
        with pytest.raises(ValidationError, match="non-zero"):
            plane((0, 0, 0))


# =============================================================================
# Node API Tests
# =============================================================================


class TestNodeAPI:
    def test_evaluate_single_point_returns_float(self):
        """A (3,) query returns a plain float."""
        value = evaluate(sphere(1), (2, 0, 0))

        assert isinstance(value, float)
        assert value == pytest.approx(1.0)

    def test_evaluate_batch(self):
        values = evaluate(sphere(1), np.array([[2.0, 0, 0], [0, 0, 0]]))

        np.testing.assert_allclose(values, [1.0, -1.0])

    def test_gradient_is_unit_for_exact_fields(self):
        """Exact SDFs have unit gradient away from the medial axis."""
        points = np.array([[10.0, 0.0, 0.0], [0.0, 12.0, 3.0]])

        grad = sphere(10).gradient(points)

        np.testing.assert_allclose(np.linalg.norm(grad, axis=1), 1.0, atol=1e-6)
        np.testing.assert_allclose(grad[0], [1.0, 0.0, 0.0], atol=1e-6)

    def test_normal_on_box_face(self):
        normal = box(20).normal(np.array([[0.0, 0.0, 10.0]]))

        np.testing.assert_allclose(normal[0], [0.0, 0.0, 1.0], atol=1e-6)

    def test_readback(self):
        """readback() summarizes bounds, size, center and faces."""
        info = box((40, 30, 10), center=(0, 0, 5)).readback()

        assert info["kind"] == "box"
        assert info["name"] == "box(40 x 30 x 10)"
        assert info["size"] == (40.0, 30.0, 10.0)
        assert info["center"] == (0.0, 0.0, 5.0)
        assert "top" in info["faces"]

    def test_readback_unbounded_has_no_center(self):
        info = plane().readback()

        assert info["center"] is None

    def test_node_kinds_cover_all_variants(self):
        expected = {
            "box", "sphere", "cylinder", "cone", "torus", "plane",
            "union", "intersection", "difference",
            "smooth_union", "smooth_intersection", "smooth_difference",
            "translate", "rotate", "scale", "mirror",
            "shell", "round", "elongate", "extrude", "revolve", "tagged", "edge_break",
        }  # fmt: skip

        assert NODE_KINDS == expected

    def test_is_empty_box(self):
        assert is_empty_box((np.full(3, np.inf), np.full(3, -np.inf)))
        assert not is_empty_box(box(1).bounding_box)
