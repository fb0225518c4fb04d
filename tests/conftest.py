"""Shared fixtures for the sdfmill test suite."""

import numpy as np
import pytest

from sdfmill import TriangleMesh


@pytest.fixture
def sample_points():
    """Reproducible cloud of query points around the origin."""
    rng = np.random.default_rng(42)
    return rng.uniform(-15, 15, size=(2000, 3))


@pytest.fixture
def tetra():
    """Unit right tetrahedron with outward winding.

    Volume 1/6, area 1.5 + sqrt(3)/2, six edges each shared by two faces.
    """
    vertices = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
    faces = np.array([[0, 2, 1], [0, 3, 2], [0, 1, 3], [1, 2, 3]])
    normals = vertices - vertices.mean(axis=0)
    normals /= np.linalg.norm(normals, axis=1, keepdims=True)
    return TriangleMesh(vertices, normals, faces)
