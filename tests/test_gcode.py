"""
Tests for the Fanuc G-code emitters.

Tests verify:
- Exact header and footer blocks
- Modal G, axis and F words
- Number formatting (trailing point, negative zero, inch conversion)
- Line numbers, comment styles, coolant and spindle options
- Configuration validation and file output
- G81/G83 drill cycles
"""

import pytest

from sdfmill import (
    ConfigurationError,
    DrillCycleParams,
    DrillHole,
    GCodeConfig,
    MoveType,
    ToolDefinition,
    ToolpathParams,
    ToolpathResult,
    ToolShape,
    ValidationError,
    bolt_circle,
    box,
    emit_drill_cycle_gcode,
    emit_fanuc_gcode,
    find_drill_holes,
    generate_raster_surfacing,
    write_gcode,
)
from sdfmill.manufacturing import ToolpathPoint, compute_stats

HEADER = [
    "%",
    "O1001 (RASTER SURFACING)",
    "(TOOL: T1 D6. BALL)",
    "(SHAPE: box)",
    "(STEPOVER: 3. FEED: 1200 RPM: 10000)",
    "G90 G21 G17 (ABSOLUTE, METRIC, XY PLANE)",
    "G54",
    "T01 M06",
    "M03 S10000",
    "M08",
]

FOOTER = ["M05", "M09", "G00 G53 Z0.", "M30", "%"]


def _result(points=(), shape_name="box", **tool_kwargs):
    tool_kwargs.setdefault("diameter", 6.0)
    tool_kwargs.setdefault("feed_rate", 1200.0)
    tool = ToolDefinition(**tool_kwargs)
    points = tuple(points)
    return ToolpathResult(points, compute_stats(points), tool, ToolpathParams(), shape_name)


def _body(program):
    lines = program.splitlines()
    return lines[len(HEADER) : -len(FOOTER)]


@pytest.fixture
def pass_points():
    """One pass: rapid in, plunge, one cut, retract."""
    return [
        ToolpathPoint(0.0, 0.0, 5.0, MoveType.RAPID, 5000.0),
        ToolpathPoint(0.0, 0.0, 0.0, MoveType.PLUNGE, 400.0),
        ToolpathPoint(10.0, 0.0, 0.0, MoveType.FEED, 1200.0),
        ToolpathPoint(10.0, 0.0, 5.0, MoveType.RETRACT, 5000.0),
    ]


# =============================================================================
# Program Structure Tests
# =============================================================================


class TestProgramStructure:
    def test_empty_toolpath(self):
        """Header and footer only."""
        program = emit_fanuc_gcode(_result())

        assert program.splitlines() == HEADER + FOOTER
        assert program.endswith("%\n")

    def test_single_pass(self, pass_points):
        program = emit_fanuc_gcode(_result(pass_points))

        assert _body(program) == [
            "G00 X0. Y0. Z5.",
            "G01 Z0. F400.",
            "X10. F1200.",
            "G00 Z5.",
        ]

    def test_program_is_ascii(self):
        program = emit_fanuc_gcode(_result(shape_name="ring Ø 20"))

        program.encode("ascii")
        assert "(SHAPE: ring ? 20)" in program.splitlines()

    def test_parentheses_in_comments_are_replaced(self):
        program = emit_fanuc_gcode(_result(shape_name="box(40 x 30 x 10)"))

        assert "(SHAPE: box<40 x 30 x 10>)" in program.splitlines()

    def test_shape_comment_omitted_without_name(self):
        program = emit_fanuc_gcode(_result(shape_name=""))

        assert not any(line.startswith("(SHAPE") for line in program.splitlines())

    def test_tool_comment(self):
        result = _result(diameter=10.0, shape=ToolShape.FLAT, name="EM10", tool_number=7)

        lines = emit_fanuc_gcode(result).splitlines()

        assert "(TOOL: EM10 D10. FLAT)" in lines
        assert "T07 M06" in lines

    def test_large_spindle_speed_is_not_exponential(self):
        """S and header words stay plain integers for six-figure values."""
        lines = emit_fanuc_gcode(
            _result(spindle_rpm=1_000_000.0, feed_rate=2_500_000.0)
        ).splitlines()

        assert "M03 S1000000" in lines
        assert "(STEPOVER: 3. FEED: 2500000 RPM: 1000000)" in lines
        assert not any("e+" in line for line in lines)

    def test_fractional_spindle_speed_is_rounded(self):
        lines = emit_fanuc_gcode(_result(spindle_rpm=12000.6)).splitlines()

        assert "M03 S12001" in lines

    def test_generated_toolpath(self):
        tool = ToolDefinition(diameter=6.0, feed_rate=1200.0)
        result = generate_raster_surfacing(box((40, 30, 10)), tool)

        lines = emit_fanuc_gcode(result).splitlines()
        body = lines[len(HEADER) : -len(FOOTER)]

        assert lines[3] == "(SHAPE: box<40 x 30 x 10>)"
        assert body[0].startswith("G00 X")
        assert body[0].endswith(" Y-18. Z10.")
        assert body[1].startswith("G01 Z")
        assert body[1].endswith(" F400.")
        # G00 appears on the first rapid and on every retract after a cut
        assert sum(line.startswith("G00") for line in body) == 1 + result.stats.retract_count
        for line in body:
            assert not (line.startswith("G00") and "F" in line)


# =============================================================================
# Modal Word Tests
# =============================================================================


class TestModalWords:
    def test_unchanged_axes_and_feed_are_omitted(self):
        points = [
            ToolpathPoint(0.0, 0.0, 0.0, MoveType.FEED, 1000.0),
            ToolpathPoint(10.0, 0.0, 0.0, MoveType.FEED, 1000.0),
            ToolpathPoint(20.0, 0.0, 0.0, MoveType.FEED, 1000.0),
        ]

        body = _body(emit_fanuc_gcode(_result(points)))

        assert body == ["G01 X0. Y0. Z0. F1000.", "X10.", "X20."]

    def test_feed_change_is_emitted(self):
        points = [
            ToolpathPoint(0.0, 0.0, 0.0, MoveType.FEED, 1000.0),
            ToolpathPoint(5.0, 0.0, 0.0, MoveType.FEED, 800.0),
        ]

        body = _body(emit_fanuc_gcode(_result(points)))

        assert body[1] == "X5. F800."

    def test_repeated_point_is_skipped(self, pass_points):
        points = pass_points[:3] + [pass_points[2]] + pass_points[3:]

        body = _body(emit_fanuc_gcode(_result(points)))

        assert len(body) == 4

    def test_values_compared_after_rounding(self):
        """Moves below the output precision produce no block."""
        points = [
            ToolpathPoint(1.0, 0.0, 0.0, MoveType.FEED, 1000.0),
            ToolpathPoint(1.0001, 0.0, 0.0, MoveType.FEED, 1000.0),
        ]

        assert len(_body(emit_fanuc_gcode(_result(points)))) == 1

    def test_custom_motion_codes(self, pass_points):
        config = GCodeConfig(rapid_code="G0", feed_code="G1")

        program = emit_fanuc_gcode(_result(pass_points), config)

        assert "G1 Z0. F400." in program.splitlines()
        assert program.splitlines()[-3] == "G0 G53 Z0."


# =============================================================================
# Number Formatting Tests
# =============================================================================


class TestNumberFormatting:
    def test_negative_zero(self):
        points = [ToolpathPoint(-0.0001, 0.0, -0.0, MoveType.FEED, 1000.0)]

        assert _body(emit_fanuc_gcode(_result(points))) == ["G01 X0. Y0. Z0. F1000."]

    def test_fractional_values(self):
        points = [ToolpathPoint(-1.25, 3.3333, 0.5, MoveType.FEED, 1000.0)]

        body = _body(emit_fanuc_gcode(_result(points)))

        assert body == ["G01 X-1.25 Y3.333 Z0.5 F1000."]

    def test_decimal_places(self):
        points = [ToolpathPoint(1.23456, 0.0, 0.0, MoveType.FEED, 1000.0)]
        config = GCodeConfig(decimal_places=4)

        body = _body(emit_fanuc_gcode(_result(points), config))

        assert body == ["G01 X1.2346 Y0. Z0. F1000."]

    def test_inch_output(self):
        points = [ToolpathPoint(25.4, 50.8, -2.54, MoveType.FEED, 254.0)]
        config = GCodeConfig(units="inch")

        lines = emit_fanuc_gcode(_result(points), config).splitlines()

        assert "G90 G20 G17 (ABSOLUTE, INCH, XY PLANE)" in lines
        assert "(TOOL: T1 D0.236 BALL)" in lines
        assert "G01 X1. Y2. Z-0.1 F10." in lines


# =============================================================================
# Option Tests
# =============================================================================


class TestOptions:
    def test_line_numbers(self):
        config = GCodeConfig(line_numbers=True)

        lines = emit_fanuc_gcode(_result(), config).splitlines()

        assert lines[0] == "%"
        assert lines[1] == "N10 O1001 (RASTER SURFACING)"
        assert lines[2] == "N20 (TOOL: T1 D6. BALL)"
        assert lines[-2] == "N130 M30"
        assert lines[-1] == "%"

    def test_line_number_step(self):
        config = GCodeConfig(line_numbers=True, line_number_step=5)

        lines = emit_fanuc_gcode(_result(), config).splitlines()

        assert lines[1].startswith("N5 ")
        assert lines[2].startswith("N10 ")

    def test_semicolon_comments(self):
        config = GCodeConfig(comment_style="semicolon")

        lines = emit_fanuc_gcode(_result(shape_name="box(10)"), config).splitlines()

        assert lines[1] == "O1001 ; RASTER SURFACING"
        assert lines[2] == "; TOOL: T1 D6. BALL"
        assert lines[3] == "; SHAPE: box(10)"
        assert "G90 G21 G17 ; ABSOLUTE, METRIC, XY PLANE" in lines

    def test_mist_coolant(self):
        lines = emit_fanuc_gcode(_result(), GCodeConfig(coolant="mist")).splitlines()

        assert "M07" in lines
        assert "M09" in lines
        assert "M08" not in lines

    def test_coolant_off(self):
        lines = emit_fanuc_gcode(_result(), GCodeConfig(coolant="off")).splitlines()

        assert not {"M07", "M08", "M09"} & set(lines)

    def test_spindle_off(self):
        lines = emit_fanuc_gcode(_result(), GCodeConfig(spindle=False)).splitlines()

        assert "M05" not in lines
        assert not any(line.startswith("M03") for line in lines)

    def test_program_number_and_work_offset(self):
        config = GCodeConfig(program_number=42, work_offset="G55")

        lines = emit_fanuc_gcode(_result(), config).splitlines()

        assert lines[1] == "O0042 (RASTER SURFACING)"
        assert "G55" in lines
        assert "G54" not in lines

    def test_header_and_footer_text(self):
        config = GCodeConfig(header="OP 10\nFIXTURE A", footer="CHECK PART")

        lines = emit_fanuc_gcode(_result(), config).splitlines()

        assert lines[5:7] == ["(OP 10)", "(FIXTURE A)"]
        assert lines[lines.index("M05") - 1] == "(CHECK PART)"

    def test_explicit_stepover_in_header(self):
        tool = ToolDefinition(diameter=6.0, feed_rate=1200.0)
        result = ToolpathResult((), compute_stats(()), tool, ToolpathParams(stepover=1.5), "box")

        assert "(STEPOVER: 1.5 FEED: 1200 RPM: 10000)" in emit_fanuc_gcode(result).splitlines()


# =============================================================================
# Configuration Tests
# =============================================================================


class TestGCodeConfig:
    @pytest.mark.parametrize("kwargs, message", [
        ({"units": "cm"}, "units must be 'mm' or 'inch'"),
        ({"program_number": 0}, "program_number must be in 1..9999"),
        ({"program_number": 10000}, "program_number must be in 1..9999"),
        ({"work_offset": "G53"}, "work_offset must be one of G54..G59"),
        ({"coolant": "air"}, "coolant must be"),
        ({"comment_style": "hash"}, "comment_style must be"),
        ({"decimal_places": -1}, "decimal_places must be >= 0"),
        ({"line_number_step": 0}, "line_number_step must be >= 1"),
        ({"rapid_code": " "}, "must not be empty"),
    ])  # fmt: skip
    def test_invalid(self, kwargs, message):
        with pytest.raises(ConfigurationError, match=message):
            GCodeConfig(**kwargs)

    def test_defaults(self):
        config = GCodeConfig()

        assert config.units == "mm"
        assert config.program_number == 1001
        assert config.work_offset == "G54"
        assert not config.line_numbers


# =============================================================================
# File Output Tests
# =============================================================================


class TestWriteGCode:
    def test_write(self, tmp_path, pass_points):
        result = _result(pass_points)

        path = write_gcode(tmp_path / "nc" / "part.nc", result)

        assert path.exists()
        assert path.read_text(encoding="ascii") == emit_fanuc_gcode(result)

    def test_write_accepts_string_path(self, tmp_path):
        path = write_gcode(str(tmp_path / "empty.nc"), _result(), GCodeConfig(units="inch"))

        assert "G20" in path.read_text()


# =============================================================================
# Drill Cycle Tests
# =============================================================================


DRILL = ToolDefinition(diameter=6.0, feed_rate=1200.0, shape=ToolShape.FLAT, name="DR6")


@pytest.fixture
def two_holes():
    return [DrillHole((10.0, 0.0, 5.0), depth=4.0), DrillHole((-10.0, 0.0, 5.0), depth=4.0)]


class TestDrillCycle:
    def test_full_program(self, two_holes):
        program = emit_drill_cycle_gcode(two_holes, DRILL)

        assert program.splitlines() == [
            "%",
            "O1001 (DRILL CYCLE)",
            "(TOOL: DR6 D6. FLAT)",
            "(FEED: 400 RPM: 10000)",
            "G90 G21 G17 (ABSOLUTE, METRIC, XY PLANE)",
            "G54",
            "T01 M06",
            "M03 S10000",
            "M08",
            "G00 X10. Y0. Z10.",
            "G98 G81 Z1. R7. F400.",
            "X-10.",
            "G80 (CANCEL CANNED CYCLE)",
            *FOOTER,
        ]

    def test_peck_cycle(self, two_holes):
        lines = emit_drill_cycle_gcode(
            two_holes, DRILL, DrillCycleParams(cycle="peck")
        ).splitlines()

        assert lines[1] == "O1001 (PECK DRILL CYCLE)"
        # Default peck is 1.5 x the drill diameter
        assert "G98 G83 Z1. R7. Q9. F400." in lines

    def test_explicit_peck_depth_and_feed(self, two_holes):
        params = DrillCycleParams(cycle="peck", peck_depth=2.5, feed_rate=150.0)

        lines = emit_drill_cycle_gcode(two_holes, DRILL, params).splitlines()

        assert "(FEED: 150 RPM: 10000)" in lines
        assert "G98 G83 Z1. R7. Q2.5 F150." in lines

    def test_changed_depth_and_entry_are_emitted(self):
        holes = [
            DrillHole((0.0, 0.0, 5.0), depth=4.0),
            DrillHole((0.0, 20.0, 5.0), depth=8.0),
            DrillHole((15.0, 20.0, 8.0), depth=2.0),
        ]

        body = emit_drill_cycle_gcode(holes, DRILL).splitlines()[9:-len(FOOTER)]

        assert body == [
            "G00 X0. Y0. Z13.",
            "G98 G81 Z1. R7. F400.",
            "Y20. Z-3.",
            "X15. Z6. R10.",
            "G80 (CANCEL CANNED CYCLE)",
        ]

    def test_repeated_hole_is_skipped(self):
        holes = [DrillHole((0.0, 0.0, 5.0), depth=4.0)] * 2

        body = emit_drill_cycle_gcode(holes, DRILL).splitlines()[9:-len(FOOTER)]

        assert body == ["G00 X0. Y0. Z10.", "G98 G81 Z1. R7. F400.", "G80 (CANCEL CANNED CYCLE)"]

    def test_shape_comment(self, two_holes):
        lines = emit_drill_cycle_gcode(two_holes, DRILL, shape_name="flange").splitlines()

        assert lines[3] == "(SHAPE: flange)"

    def test_inch_output(self, two_holes):
        lines = emit_drill_cycle_gcode(two_holes, DRILL, config=GCodeConfig(units="inch"))

        assert "G00 X0.394 Y0. Z0.394" in lines.splitlines()

    def test_safe_height_below_r_plane(self, two_holes):
        with pytest.raises(ConfigurationError, match="below the highest R plane"):
            emit_drill_cycle_gcode(two_holes, DRILL, DrillCycleParams(safe_height=6.0))

    def test_no_holes(self):
        with pytest.raises(ValidationError, match="No holes"):
            emit_drill_cycle_gcode([], DRILL)

    def test_drilled_part(self):
        """Holes found on a bolt-circle flange drill through the plate."""
        part = bolt_circle(box((100, 100, 10)), "top", count=4, circle_diameter=50, hole_diameter=6)

        lines = emit_drill_cycle_gcode(find_drill_holes(part), DRILL).splitlines()

        assert "G00 X25. Y0. Z10." in lines
        assert "G98 G81 Z-6. R7. F400." in lines
        assert lines.count("G80 (CANCEL CANNED CYCLE)") == 1
