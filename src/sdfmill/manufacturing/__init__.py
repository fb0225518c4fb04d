"""Manufacturing tools: raster surfacing and drilling, G-code, and export."""

# Toolpath generation
from sdfmill.manufacturing.toolpath import (
    MoveType,
    ToolDefinition,
    ToolpathParams,
    ToolpathPoint,
    ToolpathResult,
    ToolpathStats,
    ToolShape,
    compute_stats,
    drop_tool,
    generate_raster_surfacing,
)

# Drilled holes and canned cycles
from sdfmill.manufacturing.drilling import (
    DrillCycleParams,
    DrillHole,
    find_drill_holes,
)

# G-code emission
from sdfmill.manufacturing.gcode import (
    GCodeConfig,
    emit_drill_cycle_gcode,
    emit_fanuc_gcode,
    write_gcode,
)

# Mesh and toolpath export (STL, JSON)
from sdfmill.manufacturing.export import (
    export_json,
    export_stl,
    export_toolpath_json,
)

__all__ = [
    # Toolpath
    "ToolShape",
    "MoveType",
    "ToolDefinition",
    "ToolpathParams",
    "ToolpathPoint",
    "ToolpathStats",
    "ToolpathResult",
    "compute_stats",
    "drop_tool",
    "generate_raster_surfacing",
    # Drilling
    "DrillHole",
    "DrillCycleParams",
    "find_drill_holes",
    # G-code
    "GCodeConfig",
    "emit_fanuc_gcode",
    "emit_drill_cycle_gcode",
    "write_gcode",
    # Export
    "export_stl",
    "export_json",
    "export_toolpath_json",
]
