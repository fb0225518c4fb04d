"""Solid modelling with signed distance fields."""

# SDF nodes and evaluation
from sdfmill.geometry.construct import (
    box,
    circle,
    cone,
    cylinder,
    elongate,
    extrude,
    intersect,
    mirror,
    plane,
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

# Semantic features
from sdfmill.geometry.features import bolt_circle, chamfer, fillet, hole, pocket

# 2D profiles
from sdfmill.geometry.profiles import Circle2D, Polygon2D, Profile2D, Rect2D
from sdfmill.geometry.sdf import (
    NODE_KINDS,
    # Primitives
    Box,
    Cone,
    Cylinder,
    # CSG operations
    Difference,
    EdgeBreak,
    # Modifiers
    Elongate,
    # Lifters
    Extrude,
    Intersection,
    Mirror,
    Plane,
    Revolve,
    Rotate,
    Round,
    Scale,
    # Base SDF class
    SDFPrimitive,
    Shell,
    SmoothDifference,
    SmoothIntersection,
    SmoothUnion,
    Sphere,
    Tagged,
    Torus,
    # Transformations
    Translate,
    Union,
    evaluate,
    rotation_matrix,
)

# Named topology
from sdfmill.geometry.topology import (
    EdgeDescriptor,
    EdgeKind,
    FaceDescriptor,
    FaceKind,
    Feature,
    TagField,
)

__all__ = [
    # SDF
    "SDFPrimitive",
    "NODE_KINDS",
    "evaluate",
    "rotation_matrix",
    "Box",
    "Sphere",
    "Cylinder",
    "Cone",
    "Torus",
    "Plane",
    "Union",
    "Intersection",
    "Difference",
    "SmoothUnion",
    "SmoothIntersection",
    "SmoothDifference",
    "Translate",
    "Rotate",
    "Scale",
    "Mirror",
    "Shell",
    "Round",
    "Elongate",
    "Extrude",
    "Revolve",
    "Tagged",
    "EdgeBreak",
    # Profiles
    "Profile2D",
    "Polygon2D",
    "Circle2D",
    "Rect2D",
    # Topology
    "FaceKind",
    "EdgeKind",
    "FaceDescriptor",
    "EdgeDescriptor",
    "Feature",
    "TagField",
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
    # Features
    "hole",
    "pocket",
    "bolt_circle",
    "chamfer",
    "fillet",
]
