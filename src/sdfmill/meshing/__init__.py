"""Surface extraction from SDF graphs."""

from sdfmill.meshing.marching_cubes import (
    MAX_GRID_POINTS,
    MIN_RESOLUTION,
    SHARP_EDGE_ANGLE,
    mesh,
)
from sdfmill.meshing.mesh import TriangleMesh

__all__ = [
    "mesh",
    "TriangleMesh",
    "MIN_RESOLUTION",
    "MAX_GRID_POINTS",
    "SHARP_EDGE_ANGLE",
]
