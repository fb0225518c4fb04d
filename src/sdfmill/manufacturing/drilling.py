"""
Drilled-hole extraction and canned-cycle parameters.

Holes made with ``hole()`` or ``bolt_circle()`` keep their geometry in the
part's named faces: the "<id>.barrel" axis points into the material, the
"<id>.bottom_cap" sits a clearance above the entry face and the
"<id>.top_cap" at the bottom of the hole. ``find_drill_holes`` reads those
back into ``DrillHole`` records that the G81/G83 emitter consumes.

Example:
    >>> from sdfmill import box, hole
    >>> from sdfmill.manufacturing.drilling import find_drill_holes
    >>> part = hole(box((40, 40, 10)), "top", diameter=6, depth=4, at=(10, 0, 0))
    >>> [(h.feature_id, h.position, h.depth) for h in find_drill_holes(part)]
    [('hole_1', (10.0, 0.0, 5.0), 4.0)]
"""

from __future__ import annotations

import warnings
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from sdfmill.errors import ConfigurationError, ValidationError
from sdfmill.geometry.features import CLEARANCE
from sdfmill.geometry.sdf import SDFPrimitive
from sdfmill.geometry.topology import FaceKind

DRILL_CYCLES = ("drill", "peck")

_DOWN = np.array([0.0, 0.0, -1.0])


@dataclass(frozen=True)
class DrillHole:
    """
    One hole to drill straight down along -Z.

    Attributes:
        position: (x, y, z) of the hole center on the entry face
        depth: Distance from the entry face to the hole bottom
        diameter: Hole diameter, for reporting only
        feature_id: Feature the hole came from, if any
    """

    position: Sequence[float]
    depth: float
    diameter: float | None = None
    feature_id: str | None = None

    def __post_init__(self) -> None:
        position = tuple(float(v) for v in self.position)
        if len(position) != 3 or not np.all(np.isfinite(position)):
            raise ValidationError(f"position must be three finite numbers, got {self.position}")
        object.__setattr__(self, "position", position)
        if not self.depth > 0:
            raise ValidationError(f"Hole depth must be positive, got {self.depth}")

    @property
    def bottom(self) -> float:
        return self.position[2] - self.depth


@dataclass(frozen=True)
class DrillCycleParams:
    """
    Canned-cycle options.

    Attributes:
        cycle: "drill" (G81, single feed to depth) or "peck" (G83, chip
            breaking with full retracts)
        peck_depth: Q increment for peck drilling (default: 1.5 x the tool
            diameter)
        r_clearance: R plane height above each hole's entry face
        safe_height: Initial Z the cycle returns to between holes (G98)
            (default: highest hole entry + 5 mm)
        feed_rate: Drilling feed in mm/min (default: the tool's plunge rate)
    """

    cycle: str = "drill"
    peck_depth: float | None = None
    r_clearance: float = 2.0
    safe_height: float | None = None
    feed_rate: float | None = None

    def __post_init__(self) -> None:
        if self.cycle not in DRILL_CYCLES:
            raise ConfigurationError(f"cycle must be 'drill' or 'peck', got {self.cycle!r}")
        if self.peck_depth is not None and not self.peck_depth > 0:
            raise ConfigurationError(f"peck_depth must be positive, got {self.peck_depth}")
        if not self.r_clearance > 0:
            raise ConfigurationError(f"r_clearance must be positive, got {self.r_clearance}")
        if self.feed_rate is not None and not self.feed_rate > 0:
            raise ConfigurationError(f"feed_rate must be positive, got {self.feed_rate}")


def find_drill_holes(shape: SDFPrimitive) -> list[DrillHole]:
    """Collect the drillable holes of a part, in tree order.

    A hole is any tagged cylindrical feature carrying a ``diameter``
    attribute whose "<id>.barrel", "<id>.bottom_cap" and "<id>.top_cap"
    faces are present. Holes that do not run straight down -Z cannot be
    drilled with a 3-axis canned cycle; they are skipped with a warning.
    """
    faces = {f.name: f for f in shape.faces()}
    holes = []
    seen = set()
    for field in shape.tag_fields():
        feature = field.feature
        if (
            feature.feature_id in seen
            or feature.face_kind is not FaceKind.CYLINDRICAL
            or "diameter" not in feature.attributes
        ):
            continue
        seen.add(feature.feature_id)

        barrel = faces.get(f"{feature.feature_id}.barrel")
        entry = faces.get(f"{feature.feature_id}.bottom_cap")
        bottom = faces.get(f"{feature.feature_id}.top_cap")
        if barrel is None or entry is None or bottom is None or barrel.axis is None:
            continue

        axis = np.asarray(barrel.axis, dtype=np.float64)
        if not np.allclose(axis, _DOWN, atol=1e-9):
            warnings.warn(
                f"{feature.feature_id} does not run along -Z (axis {barrel.axis}); skipped",
                UserWarning,
                stacklevel=2,
            )
            continue

        top = np.asarray(entry.origin, dtype=np.float64) + axis * CLEARANCE
        depth = float(np.dot(np.asarray(bottom.origin, dtype=np.float64) - top, axis))
        holes.append(
            DrillHole(
                position=top,
                depth=depth,
                diameter=float(feature.attributes["diameter"]),
                feature_id=feature.feature_id,
            )
        )
    return holes
