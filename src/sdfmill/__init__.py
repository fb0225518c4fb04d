"""
sdfmill - SDF solid modelling to CNC toolpaths.

Main exports:
- SDFPrimitive and the node classes: signed distance field expression graph
- sphere, box, cylinder, ...: construction API returning graph nodes
- hole, pocket, bolt_circle, chamfer, fillet: semantic features carrying
  named topology
- mesh: marching-cubes surface extraction with feature tagging
- generate_raster_surfacing: ball/flat end mill raster toolpaths
- emit_fanuc_gcode: Fanuc-style NC program output
- find_drill_holes, emit_drill_cycle_gcode: G81/G83 drilling of hole features
"""

# Re-export the construction API and common node classes
from sdfmill.errors import ConfigurationError, ValidationError
from sdfmill.geometry import (
    Box,
    Circle2D,
    Cone,
    Cylinder,
    Difference,
    EdgeBreak,
    EdgeKind,
    Extrude,
    FaceKind,
    Feature,
    Intersection,
    Plane,
    Polygon2D,
    Rect2D,
    Revolve,
    Rotate,
    Round,
    Scale,
    SDFPrimitive,
    Sphere,
    Tagged,
    Torus,
    Translate,
    Union,
    bolt_circle,
    box,
    chamfer,
    circle,
    cone,
    cylinder,
    elongate,
    evaluate,
    extrude,
    fillet,
    hole,
    intersect,
    mirror,
    plane,
    pocket,
    polygon,
    rect,
    revolve,
    rotate,
    round_,
    scale,
    shell,
    smooth_intersect,
    smooth_subtract,
    smooth_union,
    sphere,
    subtract,
    tag,
    torus,
    translate,
    union,
)
from sdfmill.manufacturing import (
    DrillCycleParams,
    DrillHole,
    GCodeConfig,
    MoveType,
    ToolDefinition,
    ToolpathParams,
    ToolpathResult,
    ToolShape,
    emit_drill_cycle_gcode,
    emit_fanuc_gcode,
    export_json,
    export_stl,
    find_drill_holes,
    generate_raster_surfacing,
    write_gcode,
)
from sdfmill.meshing import TriangleMesh, mesh

# Submodules for more specific imports
from . import geometry, manufacturing, meshing

__version__ = "0.1.0"

__all__ = [
    # Errors
    "ValidationError",
    "ConfigurationError",
    # Node classes
    "SDFPrimitive",
    "Box",
    "Sphere",
    "Cylinder",
    "Cone",
    "Torus",
    "Plane",
    "Union",
    "Intersection",
    "Difference",
    "Translate",
    "Rotate",
    "Scale",
    "Round",
    "Extrude",
    "Revolve",
    "Tagged",
    "EdgeBreak",
    "Polygon2D",
    "Circle2D",
    "Rect2D",
    "Feature",
    "FaceKind",
    "EdgeKind",
    "evaluate",
    # Construction API
    "sphere",
    "box",
    "cylinder",
    "cone",
    "torus",
    "plane",
    "polygon",
    "circle",
    "rect",
    "union",
    "subtract",
    "intersect",
    "smooth_union",
    "smooth_subtract",
    "smooth_intersect",
    "translate",
    "rotate",
    "scale",
    "mirror",
    "shell",
    "round_",
    "elongate",
    "extrude",
    "revolve",
    "tag",
    "hole",
    "pocket",
    "bolt_circle",
    "chamfer",
    "fillet",
    # Meshing
    "mesh",
    "TriangleMesh",
    # Manufacturing
    "ToolShape",
    "MoveType",
    "ToolDefinition",
    "ToolpathParams",
    "ToolpathResult",
    "generate_raster_surfacing",
    "GCodeConfig",
    "emit_fanuc_gcode",
    "write_gcode",
    "DrillHole",
    "DrillCycleParams",
    "find_drill_holes",
    "emit_drill_cycle_gcode",
    "export_stl",
    "export_json",
    # Submodules
    "geometry",
    "manufacturing",
    "meshing",
]
