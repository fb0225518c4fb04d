"""
Raster surfacing toolpaths computed directly from an SDF graph.

No mesh is involved: the part's distance field is inflated by the tool
radius (``Round(root, R)``, the same evaluator the mesher samples) and the
tool center is dropped onto that offset surface along -Z at every sample of
a family of parallel raster lines. The tool tip sits one radius below the
center.

Coordinate convention: Z-up throughout, the same frame as the geometry and
the G-code.

Motion rules:
- Lines are spaced by the stepover, oriented by ``raster_angle``, clipped
  to the stock rectangle and traversed back and forth when ``zigzag``.
- The program starts with a rapid at safe height and a plunge.
- Samples with no material under the tool, and height jumps larger than
  ``wall_threshold``, insert retract -> rapid -> plunge.
- Consecutive lines are linked by a feed move when both ends are cut and
  close in height; otherwise the tool retracts between them.
- The program ends with a retract.

Example:
    >>> from sdfmill import box
    >>> from sdfmill.manufacturing.toolpath import (
    ...     ToolDefinition, ToolpathParams, generate_raster_surfacing)
    >>> tool = ToolDefinition(diameter=6.0, feed_rate=1200.0)
    >>> result = generate_raster_surfacing(box((40, 30, 10)), tool, ToolpathParams())
    >>> round(result.stats.z_max, 3)
    5.0
"""

from __future__ import annotations

import warnings
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
from numpy.typing import NDArray

from sdfmill.errors import ConfigurationError
from sdfmill.geometry.sdf import Round, SDFPrimitive, is_empty_box

# Sphere-tracing iteration cap before falling back to bisection
MAX_TRACE_STEPS = 256

# Lines whose ends are further apart than this many stepovers are not linked
LINK_DISTANCE_STEPOVERS = 2.0

DEFAULT_SAFE_CLEARANCE = 5.0  # mm above the stock top


class ToolShape(Enum):
    """Cutter end geometry."""

    FLAT = "flat"
    BALL = "ball"
    CONICAL = "conical"


class MoveType(Enum):
    """Type of CNC motion."""

    RAPID = "rapid"  # G00, positioning at safe height
    RETRACT = "retract"  # G00, straight up out of the material
    PLUNGE = "plunge"  # G01 at plunge rate, straight down
    FEED = "feed"  # G01 at cutting feed

    @property
    def is_cutting(self) -> bool:
        return self in (MoveType.PLUNGE, MoveType.FEED)


@dataclass(frozen=True)
class ToolDefinition:
    """
    Cutting tool.

    Attributes:
        diameter: Cutter diameter in mm
        shape: End geometry; every shape is approximated by its radius
            envelope
        feed_rate: Cutting feed in mm/min
        plunge_rate: Z feed in mm/min (default: feed_rate / 3)
        spindle_rpm: Spindle speed
        tool_number: T word for the tool change
        name: Label used in program comments
    """

    diameter: float
    shape: ToolShape = ToolShape.BALL
    feed_rate: float = 1000.0
    plunge_rate: float | None = None
    spindle_rpm: float = 10000.0
    tool_number: int = 1
    name: str = "T1"

    def __post_init__(self) -> None:
        if not self.diameter > 0:
            raise ConfigurationError(f"Tool diameter must be positive, got {self.diameter}")
        if not self.feed_rate > 0:
            raise ConfigurationError(f"Feed rate must be positive, got {self.feed_rate}")
        if self.plunge_rate is not None and not self.plunge_rate > 0:
            raise ConfigurationError(f"Plunge rate must be positive, got {self.plunge_rate}")
        if self.spindle_rpm < 0:
            raise ConfigurationError(f"Spindle speed must be >= 0, got {self.spindle_rpm}")
        if self.tool_number < 0:
            raise ConfigurationError(f"Tool number must be >= 0, got {self.tool_number}")

    @property
    def radius(self) -> float:
        return self.diameter / 2

    @property
    def effective_plunge_rate(self) -> float:
        return self.plunge_rate if self.plunge_rate is not None else self.feed_rate / 3


@dataclass(frozen=True)
class ToolpathParams:
    """
    Raster surfacing parameters.

    Every option has a documented fallback, resolved against the tool and
    the part when the toolpath is generated.

    Attributes:
        stepover: Distance between raster lines (default: 50% of the tool
            diameter)
        sampling_resolution: Distance between samples along a line
            (default: the stepover)
        safe_height: Z for rapid moves (default: stock top + 5 mm)
        stock: ((x0, y0, z0), (x1, y1, z1)) material block (default: the
            part's bounding box inflated by the tool radius in X and Y)
        raster_angle: Direction of the raster lines in degrees from +X
        tolerance: Height accuracy of the surface search
        wall_threshold: Height jump between neighbouring samples that forces
            a retract (default: the tool radius)
        rapid_rate: Rapid traverse rate in mm/min, used for time estimates
        zigzag: Alternate line direction (boustrophedon) instead of always
            cutting in the same direction
    """

    stepover: float | None = None
    sampling_resolution: float | None = None
    safe_height: float | None = None
    stock: tuple[Sequence[float], Sequence[float]] | None = None
    raster_angle: float = 0.0
    tolerance: float = 1e-4
    wall_threshold: float | None = None
    rapid_rate: float = 5000.0
    zigzag: bool = True

    def __post_init__(self) -> None:
        if self.stepover is not None and not self.stepover > 0:
            raise ConfigurationError(f"stepover must be positive, got {self.stepover}")
        if self.sampling_resolution is not None and not self.sampling_resolution > 0:
            raise ConfigurationError(
                f"sampling_resolution must be positive, got {self.sampling_resolution}"
            )
        if not self.tolerance > 0:
            raise ConfigurationError(f"tolerance must be positive, got {self.tolerance}")
        if self.wall_threshold is not None and not self.wall_threshold > 0:
            raise ConfigurationError(
                f"wall_threshold must be positive, got {self.wall_threshold}"
            )
        if not self.rapid_rate > 0:
            raise ConfigurationError(f"rapid_rate must be positive, got {self.rapid_rate}")


@dataclass(frozen=True)
class ToolpathPoint:
    """A point the tool tip moves to, with the motion used to get there."""

    x: float
    y: float
    z: float
    move: MoveType
    feed_rate: float

    @property
    def is_cutting(self) -> bool:
        return self.move.is_cutting

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class ToolpathStats:
    """
    Summary of a toolpath.

    Lengths are in mm and time in minutes. A pass is one continuous cutting
    run from a plunge to the next retract. ``z_min``/``z_max`` span the
    cutting moves only (zero when there are none).
    """

    point_count: int = 0
    pass_count: int = 0
    path_length: float = 0.0
    cut_length: float = 0.0
    rapid_length: float = 0.0
    estimated_time: float = 0.0
    retract_count: int = 0
    z_min: float = 0.0
    z_max: float = 0.0


@dataclass(frozen=True)
class ToolpathResult:
    """Ordered tool motion plus its statistics."""

    points: tuple[ToolpathPoint, ...]
    stats: ToolpathStats
    tool: ToolDefinition
    params: ToolpathParams
    shape_name: str = ""

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0

    def __len__(self) -> int:
        return len(self.points)


class _StatsAccumulator:
    """Running totals updated one point at a time."""

    def __init__(self) -> None:
        self.count = 0
        self.passes = 0
        self.retracts = 0
        self.path_length = 0.0
        self.cut_length = 0.0
        self.rapid_length = 0.0
        self.time = 0.0
        self.z_min = np.inf
        self.z_max = -np.inf
        self._last: ToolpathPoint | None = None

    def add(self, point: ToolpathPoint) -> None:
        if self._last is not None:
            length = float(
                np.sqrt(
                    (point.x - self._last.x) ** 2
                    + (point.y - self._last.y) ** 2
                    + (point.z - self._last.z) ** 2
                )
            )
            self.path_length += length
            if point.is_cutting:
                self.cut_length += length
            else:
                self.rapid_length += length
            self.time += length / point.feed_rate

        if point.move is MoveType.PLUNGE:
            self.passes += 1
        elif point.move is MoveType.RETRACT:
            self.retracts += 1
        if point.is_cutting:
            self.z_min = min(self.z_min, point.z)
            self.z_max = max(self.z_max, point.z)

        self.count += 1
        self._last = point

    def stats(self) -> ToolpathStats:
        has_cuts = self.z_min <= self.z_max
        return ToolpathStats(
            point_count=self.count,
            pass_count=self.passes,
            path_length=self.path_length,
            cut_length=self.cut_length,
            rapid_length=self.rapid_length,
            estimated_time=self.time,
            retract_count=self.retracts,
            z_min=float(self.z_min) if has_cuts else 0.0,
            z_max=float(self.z_max) if has_cuts else 0.0,
        )


def compute_stats(points: Iterable[ToolpathPoint]) -> ToolpathStats:
    """Statistics for an arbitrary point sequence.

    Each segment's time is its length divided by the feed rate of the point
    it ends at. The first point has no incoming segment.

    Example:
        >>> pts = [ToolpathPoint(0, 0, 0, MoveType.FEED, 100.0),
        ...        ToolpathPoint(10, 0, 0, MoveType.FEED, 100.0)]
        >>> compute_stats(pts).estimated_time
        0.1
    """
    acc = _StatsAccumulator()
    for point in points:
        acc.add(point)
    return acc.stats()


# === Surface search ===


def drop_tool(
    offset_field: SDFPrimitive,
    xy: NDArray[np.floating],
    z_top: float,
    z_bottom: float,
    tolerance: float,
) -> NDArray[np.floating]:
    """Highest z in [z_bottom, z_top] where ``offset_field`` reaches zero.

    Vectorized sphere tracing downward from ``z_top``: each sample steps
    down by its own distance value, which can never jump past the surface.
    Samples that do not converge within MAX_TRACE_STEPS are finished by
    bisection.

    Args:
        offset_field: Field whose zero level is the tool-center surface
        xy: (N, 2) sample positions
        z_top: Start height (above all material)
        z_bottom: Lowest allowed height
        tolerance: Height accuracy

    Returns:
        (N,) contact heights; NaN where nothing is hit above ``z_bottom``.
        Samples already inside material at ``z_top`` report ``z_top``.
    """
    n = len(xy)
    z = np.full(n, z_top, dtype=np.float64)

    def field_at(idx: NDArray[np.int64], heights: NDArray[np.floating]) -> NDArray[np.floating]:
        return offset_field.sdf(np.column_stack([xy[idx], heights]))

    active = np.arange(n)
    d = field_at(active, z)
    for _ in range(MAX_TRACE_STEPS):
        moving = (d > tolerance) & (z[active] > z_bottom)
        active, d = active[moving], d[moving]
        if len(active) == 0:
            break
        z[active] = np.maximum(z[active] - d, z_bottom)
        d = field_at(active, z[active])

    values = field_at(np.arange(n), z)
    hit = values <= tolerance

    # Bisection for samples that ran out of trace steps with a bracket left
    stuck = np.flatnonzero(~hit & (z > z_bottom))
    if len(stuck):
        lo = np.full(len(stuck), z_bottom)
        hi = z[stuck].copy()
        bracketed = field_at(stuck, lo) <= 0
        stuck, lo, hi = stuck[bracketed], lo[bracketed], hi[bracketed]
        if len(stuck):
            iterations = int(np.ceil(np.log2(max(np.max(hi - lo), tolerance) / tolerance))) + 1
            for _ in range(iterations):
                mid = (lo + hi) / 2
                inside = field_at(stuck, mid) <= 0
                lo = np.where(inside, mid, lo)
                hi = np.where(inside, hi, mid)
            z[stuck] = lo
            hit[stuck] = True

    return np.where(hit, z, np.nan)


# === Raster layout ===


@dataclass
class _RasterLine:
    index: int
    xy: NDArray[np.floating]  # (K, 2) samples in traversal order
    z: NDArray[np.floating] = field(default_factory=lambda: np.zeros(0))  # tip heights


def _resolve_stock(
    root: SDFPrimitive, tool: ToolDefinition, params: ToolpathParams
) -> tuple[NDArray[np.floating], NDArray[np.floating]] | None:
    """Stock box, or None when the part is empty."""
    part_min, part_max = root.bounding_box
    part_finite = bool(np.all(np.isfinite(part_min)) and np.all(np.isfinite(part_max)))

    if params.stock is None:
        if is_empty_box((part_min, part_max)):
            return None
        if not part_finite:
            raise ConfigurationError(
                f"{root.name} is unbounded; pass ToolpathParams(stock=...) to bound it"
            )
        pad = np.array([tool.radius, tool.radius, 0.0])
        return part_min - pad, part_max + pad

    stock_min = np.asarray(params.stock[0], dtype=np.float64)
    stock_max = np.asarray(params.stock[1], dtype=np.float64)
    if stock_min.shape != (3,) or stock_max.shape != (3,):
        raise ConfigurationError("stock must be ((x0, y0, z0), (x1, y1, z1))")
    if not (np.all(np.isfinite(stock_min)) and np.all(np.isfinite(stock_max))):
        raise ConfigurationError(f"stock must be finite, got {stock_min} to {stock_max}")
    if np.any(stock_max[:2] <= stock_min[:2]) or stock_max[2] < stock_min[2]:
        raise ConfigurationError(f"stock is empty: {stock_min} to {stock_max}")

    if (
        part_finite
        and not is_empty_box((part_min, part_max))
        and (np.any(part_min[:2] < stock_min[:2]) or np.any(part_max[:2] > stock_max[:2]))
    ):
        warnings.warn(
            "stock does not cover the part in X/Y; surfaces outside it are not machined",
            UserWarning,
            stacklevel=3,
        )
    return stock_min, stock_max


def _layout_lines(
    stock_min: NDArray[np.floating],
    stock_max: NDArray[np.floating],
    angle_deg: float,
    stepover: float,
    sampling: float,
) -> list[_RasterLine]:
    """Parallel lines across the stock rectangle, sampled at ``sampling``."""
    theta = np.radians(angle_deg)
    direction = np.array([np.cos(theta), np.sin(theta)])
    across = np.array([-np.sin(theta), np.cos(theta)])

    lo, hi = stock_min[:2], stock_max[:2]
    center = (lo + hi) / 2
    corners = np.array([[lo[0], lo[1]], [hi[0], lo[1]], [lo[0], hi[1]], [hi[0], hi[1]]])
    offsets = (corners - center) @ across
    a_min, a_max = offsets.min(), offsets.max()

    count = int(np.floor((a_max - a_min) / stepover + 1e-9)) + 1
    lines = []
    for i in range(count):
        base = center + (a_min + i * stepover) * across
        t0, t1 = _clip_to_rect(base, direction, lo, hi)
        if t0 is None:
            samples = np.zeros((0, 2))
        else:
            n = max(int(np.ceil((t1 - t0) / sampling - 1e-9)), 0) + 1
            ts = np.linspace(t0, t1, n)
            samples = base + ts[:, np.newaxis] * direction
        lines.append(_RasterLine(index=i, xy=samples))
    return lines


def _clip_to_rect(
    base: NDArray[np.floating],
    direction: NDArray[np.floating],
    lo: NDArray[np.floating],
    hi: NDArray[np.floating],
) -> tuple[float | None, float | None]:
    """Parameter range of ``base + t * direction`` inside the rectangle."""
    t0, t1 = -np.inf, np.inf
    eps = 1e-9
    for k in range(2):
        if abs(direction[k]) < 1e-12:
            if base[k] < lo[k] - eps or base[k] > hi[k] + eps:
                return None, None
            continue
        ta = (lo[k] - base[k]) / direction[k]
        tb = (hi[k] - base[k]) / direction[k]
        t0 = max(t0, min(ta, tb))
        t1 = min(t1, max(ta, tb))
    if t0 > t1 + eps:
        return None, None
    return float(t0), float(max(t0, t1))


# === Motion assembly ===


class _MotionBuilder:
    """Appends points and keeps statistics current."""

    def __init__(self, tool: ToolDefinition, params: ToolpathParams, safe_height: float):
        self.tool = tool
        self.safe_height = safe_height
        self.rapid_rate = params.rapid_rate
        self.points: list[ToolpathPoint] = []
        self.acc = _StatsAccumulator()
        self.cutting = False

    def _emit(self, x: float, y: float, z: float, move: MoveType, feed: float) -> None:
        point = ToolpathPoint(float(x), float(y), float(z), move, float(feed))
        self.points.append(point)
        self.acc.add(point)

    @property
    def last(self) -> ToolpathPoint:
        return self.points[-1]

    def retract(self) -> None:
        if self.cutting:
            self._emit(self.last.x, self.last.y, self.safe_height, MoveType.RETRACT, self.rapid_rate)
            self.cutting = False

    def enter(self, x: float, y: float, z: float) -> None:
        self._emit(x, y, self.safe_height, MoveType.RAPID, self.rapid_rate)
        self._emit(x, y, z, MoveType.PLUNGE, self.tool.effective_plunge_rate)
        self.cutting = True

    def feed(self, x: float, y: float, z: float) -> None:
        self._emit(x, y, z, MoveType.FEED, self.tool.feed_rate)


def generate_raster_surfacing(
    root: SDFPrimitive,
    tool: ToolDefinition,
    params: ToolpathParams | None = None,
    *,
    workers: int = 1,
) -> ToolpathResult:
    """Generate a raster surfacing toolpath over the part's top surfaces.

    Args:
        root: Root node of the part
        tool: Cutting tool
        params: Raster parameters (defaults: ``ToolpathParams()``)
        workers: Threads used to sample raster lines

    Returns:
        ToolpathResult with tool-tip positions; empty (zero stats) when
        there is no material under the tool anywhere in the stock

    Raises:
        ConfigurationError: Unbounded part without stock, stepover wider
            than the stock (zero raster lines), safe height below the stock
            top, or workers < 1
    """
    params = params or ToolpathParams()
    if workers < 1:
        raise ConfigurationError(f"workers must be >= 1, got {workers}")

    radius = tool.radius
    stepover = params.stepover if params.stepover is not None else 0.5 * tool.diameter
    sampling = params.sampling_resolution if params.sampling_resolution is not None else stepover
    wall_threshold = params.wall_threshold if params.wall_threshold is not None else radius

    stock = _resolve_stock(root, tool, params)
    if stock is None:
        return ToolpathResult((), ToolpathStats(), tool, params, root.name)
    stock_min, stock_max = stock

    theta = np.radians(params.raster_angle)
    across = np.array([-np.sin(theta), np.cos(theta)])
    corners = np.array(
        [[x, y] for x in (stock_min[0], stock_max[0]) for y in (stock_min[1], stock_max[1])]
    )
    across_extent = float(np.ptp(corners @ across))
    if stepover > across_extent:
        raise ConfigurationError(
            f"stepover {stepover:g} exceeds the stock extent across the raster "
            f"({across_extent:g}); no raster lines fit"
        )

    safe_height = (
        params.safe_height
        if params.safe_height is not None
        else float(stock_max[2]) + DEFAULT_SAFE_CLEARANCE
    )
    if safe_height < stock_max[2]:
        raise ConfigurationError(
            f"safe_height {safe_height:g} is below the stock top {stock_max[2]:g}"
        )

    lines = _layout_lines(stock_min, stock_max, params.raster_angle, stepover, sampling)

    offset_field = Round(root, radius)
    z_top = float(stock_max[2]) + radius + 1.0
    z_bottom = float(stock_min[2]) + radius

    def sample(line: _RasterLine) -> NDArray[np.floating]:
        if len(line.xy) == 0:
            return np.zeros(0)
        centers = drop_tool(offset_field, line.xy, z_top, z_bottom, params.tolerance)
        return centers - radius

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            heights = list(executor.map(sample, lines))
    else:
        heights = [sample(line) for line in lines]

    for line, z in zip(lines, heights):
        line.z = z
        if params.zigzag and line.index % 2 == 1:
            line.xy = line.xy[::-1]
            line.z = line.z[::-1]

    builder = _MotionBuilder(tool, params, safe_height)
    link_distance = LINK_DISTANCE_STEPOVERS * stepover

    for line in lines:
        for k, ((x, y), z) in enumerate(zip(line.xy, line.z)):
            if np.isnan(z):
                builder.retract()
                continue
            if not builder.cutting:
                builder.enter(x, y, z)
                continue

            last = builder.last
            jump = abs(z - last.z) > wall_threshold
            if k == 0:
                # Linking to the previous line along the stock edge
                jump = jump or np.hypot(x - last.x, y - last.y) > link_distance
            if jump:
                builder.retract()
                builder.enter(x, y, z)
            else:
                builder.feed(x, y, z)

    builder.retract()

    if not any(p.is_cutting for p in builder.points):
        return ToolpathResult((), ToolpathStats(), tool, params, root.name)

    return ToolpathResult(
        points=tuple(builder.points),
        stats=builder.acc.stats(),
        tool=tool,
        params=params,
        shape_name=root.name,
    )
