"""
Fanuc-style G-code emitter.

Turns a ToolpathResult into a complete NC program:

    %
    O1001 (RASTER SURFACING)
    (TOOL: T1 D6. BALL)
    (SHAPE: difference)
    (STEPOVER: 3. FEED: 1200 RPM: 10000)
    G90 G21 G17 (ABSOLUTE, METRIC, XY PLANE)
    G54
    T01 M06
    M03 S10000
    M08
    G00 X-23. Y-18. Z10.
    G01 Z5. F400.
    Y-16.5 F1200.
    ...
    M05
    M09
    G00 G53 Z0.
    M30
    %

Motion codes and feed words are modal: a G word is written only when the
motion type changes, an axis word only when its rendered value changes, and
an F word only when the feed changes. The emitter does no geometry; an
empty toolpath produces the header and footer only.

``emit_drill_cycle_gcode`` shares the header and footer and drills a list of
holes with a G81 or G83 canned cycle, cancelled by G80.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from sdfmill.errors import ConfigurationError, ValidationError
from sdfmill.manufacturing.drilling import DrillCycleParams, DrillHole
from sdfmill.manufacturing.toolpath import ToolDefinition, ToolpathPoint, ToolpathResult

MM_PER_INCH = 25.4

_WORK_OFFSET = re.compile(r"^G5[4-9]$")

_UNITS = {"mm": ("G21", "METRIC"), "inch": ("G20", "INCH")}
_COOLANT = {"flood": "M08", "mist": "M07", "off": None}
_COMMENT_STYLES = ("paren", "semicolon")


@dataclass(frozen=True)
class GCodeConfig:
    """
    Program formatting options.

    Attributes:
        units: "mm" (G21) or "inch" (G20); toolpath coordinates and feeds
            are in mm and converted for inch output
        program_number: O number (1-9999)
        work_offset: G54..G59
        coolant: "flood" (M08), "mist" (M07) or "off"
        comment_style: "paren" for ``(TEXT)`` or "semicolon" for ``; TEXT``
        decimal_places: Coordinate precision
        line_numbers: Prefix lines with N words
        line_number_step: Increment between N words
        header: Extra text written as comments after the header comments
        footer: Extra text written as comments before the program end
        rapid_code: Motion code for non-cutting moves
        feed_code: Motion code for cutting moves
        spindle: Emit spindle start/stop (M03/M05)
    """

    units: str = "mm"
    program_number: int = 1001
    work_offset: str = "G54"
    coolant: str = "flood"
    comment_style: str = "paren"
    decimal_places: int = 3
    line_numbers: bool = False
    line_number_step: int = 10
    header: str | None = None
    footer: str | None = None
    rapid_code: str = "G00"
    feed_code: str = "G01"
    spindle: bool = True

    def __post_init__(self) -> None:
        if self.units not in _UNITS:
            raise ConfigurationError(f"units must be 'mm' or 'inch', got {self.units!r}")
        if not 1 <= self.program_number <= 9999:
            raise ConfigurationError(
                f"program_number must be in 1..9999, got {self.program_number}"
            )
        if not _WORK_OFFSET.match(self.work_offset):
            raise ConfigurationError(
                f"work_offset must be one of G54..G59, got {self.work_offset!r}"
            )
        if self.coolant not in _COOLANT:
            raise ConfigurationError(
                f"coolant must be 'flood', 'mist' or 'off', got {self.coolant!r}"
            )
        if self.comment_style not in _COMMENT_STYLES:
            raise ConfigurationError(
                f"comment_style must be 'paren' or 'semicolon', got {self.comment_style!r}"
            )
        if self.decimal_places < 0:
            raise ConfigurationError(
                f"decimal_places must be >= 0, got {self.decimal_places}"
            )
        if self.line_number_step < 1:
            raise ConfigurationError(
                f"line_number_step must be >= 1, got {self.line_number_step}"
            )
        if not self.rapid_code.strip() or not self.feed_code.strip():
            raise ConfigurationError("rapid_code and feed_code must not be empty")


class _Program:
    """Line buffer with numbering, comments and number formatting."""

    def __init__(self, config: GCodeConfig):
        self.config = config
        self.lines: list[str] = []
        self._next_n = config.line_number_step
        self._scale = 1.0 / MM_PER_INCH if config.units == "inch" else 1.0

    def add(self, line: str) -> None:
        if self.config.line_numbers:
            line = f"N{self._next_n} {line}"
            self._next_n += self.config.line_number_step
        self.lines.append(line)

    def add_raw(self, line: str) -> None:
        """Line without an N word (tape markers)."""
        self.lines.append(line)

    def comment(self, text: str) -> str:
        text = text.encode("ascii", "replace").decode("ascii")
        if self.config.comment_style == "paren":
            return "(" + text.replace("(", "<").replace(")", ">") + ")"
        return "; " + text

    def number(self, value: float) -> str:
        """Fixed precision with trailing zeros stripped: 10.0 -> '10.'."""
        s = f"{value * self._scale:.{self.config.decimal_places}f}"
        if "." in s:
            s = s.rstrip("0")
        else:
            s += "."
        if s.startswith("-") and float(s) == 0:
            s = s[1:]
        return s

    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


def _header(
    program: _Program, title: str, tool: ToolDefinition, shape_name: str, summary: str
) -> None:
    config = program.config
    units_code, units_name = _UNITS[config.units]

    program.add_raw("%")
    program.add(f"O{config.program_number:04d} {program.comment(title)}")
    program.add(
        program.comment(f"TOOL: {tool.name} D{program.number(tool.diameter)} {tool.shape.name}")
    )
    if shape_name:
        program.add(program.comment(f"SHAPE: {shape_name}"))
    program.add(program.comment(summary))
    if config.header:
        for line in config.header.splitlines():
            program.add(program.comment(line))

    program.add(f"G90 {units_code} G17 {program.comment(f'ABSOLUTE, {units_name}, XY PLANE')}")
    program.add(config.work_offset)
    program.add(f"T{tool.tool_number:02d} M06")
    if config.spindle:
        program.add(f"M03 S{round(tool.spindle_rpm)}")
    coolant = _COOLANT[config.coolant]
    if coolant:
        program.add(coolant)


def _footer(program: _Program) -> None:
    config = program.config
    if config.footer:
        for line in config.footer.splitlines():
            program.add(program.comment(line))
    if config.spindle:
        program.add("M05")
    if _COOLANT[config.coolant]:
        program.add("M09")
    program.add(f"{config.rapid_code} G53 Z0.")
    program.add("M30")
    program.add_raw("%")


def _body(program: _Program, points: tuple[ToolpathPoint, ...]) -> None:
    config = program.config
    last_code = None
    last_axes = {"X": None, "Y": None, "Z": None}
    last_feed = None

    for point in points:
        axes = []
        for letter, value in zip("XYZ", point.as_tuple()):
            word = program.number(value)
            if word != last_axes[letter]:
                axes.append(letter + word)
                last_axes[letter] = word
        if not axes:
            continue

        words = []
        code = config.feed_code if point.is_cutting else config.rapid_code
        if code != last_code:
            words.append(code)
            last_code = code
        words.extend(axes)
        if point.is_cutting:
            feed = program.number(point.feed_rate)
            if feed != last_feed:
                words.append("F" + feed)
                last_feed = feed
        program.add(" ".join(words))


def emit_fanuc_gcode(result: ToolpathResult, config: GCodeConfig | None = None) -> str:
    """Render a toolpath as a Fanuc-compatible program.

    Args:
        result: Toolpath to serialize
        config: Formatting options (defaults: ``GCodeConfig()``)

    Returns:
        Program text, one newline-terminated ASCII line per block

    Example:
        >>> program = emit_fanuc_gcode(result, GCodeConfig(program_number=5555))
        >>> program.splitlines()[1].startswith("O5555")
        True
    """
    program = _Program(config or GCodeConfig())
    tool = result.tool
    stepover = result.params.stepover
    if stepover is None:
        stepover = 0.5 * tool.diameter
    summary = (
        f"STEPOVER: {program.number(stepover)} "
        f"FEED: {round(tool.feed_rate)} RPM: {round(tool.spindle_rpm)}"
    )
    _header(program, "RASTER SURFACING", tool, result.shape_name, summary)
    _body(program, result.points)
    _footer(program)
    return program.text()


def _drill_body(
    program: _Program,
    holes: Sequence[DrillHole],
    tool: ToolDefinition,
    params: DrillCycleParams,
    feed: float,
) -> None:
    config = program.config
    r_planes = [h.position[2] + params.r_clearance for h in holes]
    safe_height = params.safe_height
    if safe_height is None:
        safe_height = max(h.position[2] for h in holes) + 5.0
    if safe_height < max(r_planes):
        raise ConfigurationError(
            f"safe_height {safe_height:g} is below the highest R plane {max(r_planes):g}"
        )

    last = {}
    for i, (hole, r_plane) in enumerate(zip(holes, r_planes)):
        words = {
            "X": program.number(hole.position[0]),
            "Y": program.number(hole.position[1]),
            "Z": program.number(hole.bottom),
            "R": program.number(r_plane),
        }
        if i == 0:
            program.add(
                f"{config.rapid_code} X{words['X']} Y{words['Y']} Z{program.number(safe_height)}"
            )
            cycle = ["G98", "G83" if params.cycle == "peck" else "G81"]
            cycle += [f"Z{words['Z']}", f"R{words['R']}"]
            if params.cycle == "peck":
                peck_depth = params.peck_depth or 1.5 * tool.diameter
                cycle.append(f"Q{program.number(peck_depth)}")
            cycle.append(f"F{program.number(feed)}")
            program.add(" ".join(cycle))
        else:
            changed = [k + v for k, v in words.items() if v != last[k]]
            # A repeated position would only re-drill the same hole
            if changed:
                program.add(" ".join(changed))
        last = words

    program.add(f"G80 {program.comment('CANCEL CANNED CYCLE')}")


def emit_drill_cycle_gcode(
    holes: Sequence[DrillHole],
    tool: ToolDefinition,
    params: DrillCycleParams | None = None,
    config: GCodeConfig | None = None,
    shape_name: str = "",
) -> str:
    """Render holes as a G81 (drill) or G83 (peck) canned-cycle program.

    The first hole is approached with a rapid at the safe height, which the
    cycle returns to between holes (G98). Later holes only carry the X, Y,
    Z and R words that changed. The cycle is cancelled with G80 before the
    standard footer.

    Args:
        holes: Holes to drill, in machining order
        tool: Drill; its spindle speed and plunge rate are used
        params: Cycle options (defaults: ``DrillCycleParams()``)
        config: Formatting options (defaults: ``GCodeConfig()``)
        shape_name: Written as a SHAPE comment when not empty

    Raises:
        ValidationError: If ``holes`` is empty
        ConfigurationError: If the safe height is below an R plane

    Example:
        >>> holes = find_drill_holes(part)
        >>> program = emit_drill_cycle_gcode(holes, ToolDefinition(diameter=6.0))
        >>> "G80 (CANCEL CANNED CYCLE)" in program
        True
    """
    holes = list(holes)
    if not holes:
        raise ValidationError("No holes to emit a drill cycle for")
    params = params or DrillCycleParams()
    program = _Program(config or GCodeConfig())

    feed = params.feed_rate if params.feed_rate is not None else tool.effective_plunge_rate
    title = "PECK DRILL CYCLE" if params.cycle == "peck" else "DRILL CYCLE"
    summary = f"FEED: {round(feed)} RPM: {round(tool.spindle_rpm)}"
    _header(program, title, tool, shape_name, summary)
    _drill_body(program, holes, tool, params, feed)
    _footer(program)
    return program.text()


def write_gcode(
    path: str | Path,
    result: ToolpathResult,
    config: GCodeConfig | None = None,
) -> Path:
    """Write the program for ``result`` to ``path``.

    Returns:
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="ascii", newline="\n") as f:
        f.write(emit_fanuc_gcode(result, config))
    return path
