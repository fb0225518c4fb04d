"""
Export functionality for sdfmill meshes and toolpaths.

Provides STL (3D printing, CAM import) and JSON (Three.js visualization)
export formats. The JSON mesh carries the per-triangle feature tags so the
viewer can highlight holes and other features.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from sdfmill.manufacturing.toolpath import ToolpathResult
    from sdfmill.meshing.mesh import TriangleMesh


def _jsonable(value: Any) -> Any:
    """Fallback for numpy scalars/arrays and enums in feature attributes."""
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if hasattr(value, "value"):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def export_stl(mesh: TriangleMesh, path: Path) -> None:
    """
    Export a mesh as binary STL.

    An empty mesh writes a valid file with zero triangles.

    Args:
        mesh: The mesh to export
        path: Path to output STL file
    """
    try:
        from stl import mesh as stl_mesh
    except ImportError as err:
        raise ImportError(
            "numpy-stl is required for STL export. "
            "Install with: pip install numpy-stl"
        ) from err

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if mesh.is_empty:
        empty_mesh = stl_mesh.Mesh(np.zeros(0, dtype=stl_mesh.Mesh.dtype))
        empty_mesh.save(str(path))
        return

    mesh_data = stl_mesh.Mesh(np.zeros(mesh.triangle_count, dtype=stl_mesh.Mesh.dtype))
    mesh_data.vectors[:] = mesh.vertices[mesh.faces]
    mesh_data.normals[:] = mesh.face_normals()

    mesh_data.save(str(path))


def export_json(mesh: TriangleMesh, path: Path) -> None:
    """
    Export a mesh as JSON for Three.js visualization.

    Creates a JSON file with:
    - Flat ``positions``/``normals``/``indices`` arrays (BufferGeometry layout)
    - Per-triangle feature ids (``null`` for untagged triangles)
    - Feature descriptors and tagged feature edges
    - Bounding box metadata

    Args:
        mesh: The mesh to export
        path: Path to output JSON file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if mesh.is_empty:
        bbox = None
    else:
        lo, hi = mesh.bounds
        bbox = [lo.tolist(), hi.tolist()]

    data = {
        "positions": mesh.vertices.reshape(-1).tolist(),
        "normals": mesh.normals.reshape(-1).tolist(),
        "indices": mesh.faces.reshape(-1).tolist(),
        "face_features": list(mesh.face_features),
        "features": {
            fid: {
                "face_kind": feature.face_kind.value,
                "edge_kind": feature.edge_kind.value,
                "attributes": dict(feature.attributes),
            }
            for fid, feature in sorted(mesh.features.items())
        },
        "feature_edges": [
            {"vertices": [int(a), int(b)], "name": edge.name, "kind": edge.kind.value}
            for (a, b), edge in sorted(mesh.feature_edges.items())
        ],
        "metadata": {
            "vertex_count": mesh.vertex_count,
            "triangle_count": mesh.triangle_count,
            "bounding_box": bbox,
        },
    }

    with open(path, "w") as f:
        json.dump(data, f, indent=2, default=_jsonable)


def export_toolpath_json(result: ToolpathResult, path: Path) -> None:
    """
    Export a toolpath as JSON for the viewer's toolpath overlay.

    Points are stored as a flat ``positions`` array with a parallel
    ``moves`` list so the viewer can color rapids and cuts differently.

    Args:
        result: The toolpath to export
        path: Path to output JSON file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    stats = result.stats
    data = {
        "shape": result.shape_name,
        "tool": {
            "name": result.tool.name,
            "diameter": result.tool.diameter,
            "shape": result.tool.shape.value,
        },
        "positions": [c for p in result.points for c in p.as_tuple()],
        "moves": [p.move.value for p in result.points],
        "stats": {
            "point_count": stats.point_count,
            "pass_count": stats.pass_count,
            "path_length": stats.path_length,
            "cut_length": stats.cut_length,
            "rapid_length": stats.rapid_length,
            "estimated_time": stats.estimated_time,
            "retract_count": stats.retract_count,
            "z_min": stats.z_min,
            "z_max": stats.z_max,
        },
    }

    with open(path, "w") as f:
        json.dump(data, f, indent=2)
