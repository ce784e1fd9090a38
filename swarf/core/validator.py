"""
Safety rule engine.

Each rule inspects one tool activation and adds diagnostics; rules are
independent and never suppress each other. The validator never changes
the program it inspects.
"""
from typing import Callable, List, Optional
from swarf.blackbook import BlackBook, BlackBookEntry
from swarf.blackbook import calculations as calc
from swarf.config.machine_config import MachineConfig
from swarf.core.canonical import CanonicalProgram, MoveKind, ToolActivation
from swarf.core.program import OperationKind
from swarf.tooling.library import CoolantType
from swarf.utils.errors import Diagnostic, ErrorCollector, ErrorSeverity
from swarf.utils.geometry import arc_extent
from swarf.utils.logging import get_logger

logger = get_logger(__name__)

# Minimum feed per inch of tool diameter before work hardening sets in
WORK_HARDENING_IPM_PER_INCH = 20.0
HIGH_CHIP_LOAD_RATIO = 0.05
RUBBING_CHIP_LOAD = 0.0005
EPSILON = 1e-9

Rule = Callable[[CanonicalProgram, ToolActivation, ErrorCollector], None]


def _pitch_locked(activation: ToolActivation) -> bool:
    # Tapping feed is fixed by the thread, not by chip load or surface speed
    return activation.operation == OperationKind.TAP


class Validator:
    """Checks a canonical program against machine, tool and material limits."""

    def __init__(self, machine: Optional[MachineConfig] = None,
                 black_book: Optional[BlackBook] = None):
        self.machine = machine or MachineConfig(name="3-Axis Mill")
        self.black_book = black_book or BlackBook()
        self.rules: List[Rule] = [
            self.check_geometry,
            self.check_work_hardening,
            self.check_deflection,
            self.check_tool_length,
            self.check_spindle_limits,
            self.check_feed_limit,
            self.check_travel_limits,
            self.check_rpm_guideline,
            self.check_chip_load,
            self.check_surface_speed,
            self.check_coolant,
        ]

    def validate(self, program: CanonicalProgram) -> List[Diagnostic]:
        """Run every rule over every activation and return all diagnostics."""
        collector = ErrorCollector()
        for activation in program.activations:
            for rule in self.rules:
                rule(program, activation, collector)
        diagnostics = collector.get_all()
        logger.debug("Validation: %d errors, %d warnings",
                     len(collector.errors()), len(collector.warnings()))
        return diagnostics

    def _entry(self, program: CanonicalProgram) -> Optional[BlackBookEntry]:
        return self.black_book.find(program.material) if program.material else None

    # Rules

    def check_geometry(self, program, activation, collector):
        tool = activation.tool
        params = activation.params
        index = activation.operation_index
        if tool.diameter <= 0:
            collector.add("GEOMETRY", f"T{tool.tool_id} diameter must be positive",
                          operation_index=index)
        if tool.flutes < 1:
            collector.add("GEOMETRY", f"T{tool.tool_id} needs at least one flute",
                          operation_index=index)
        if activation.cut_depth <= 0:
            collector.add("GEOMETRY", "Cut depth must be positive", operation_index=index)
        if params.rpm <= 0:
            collector.add("GEOMETRY", "Spindle speed must be positive", operation_index=index)
        if params.feed <= 0:
            collector.add("GEOMETRY", "Feed rate must be positive", operation_index=index)

    def check_work_hardening(self, program, activation, collector):
        entry = self._entry(program)
        if entry is None or _pitch_locked(activation):
            return
        if not calc.hazard_flags(entry, activation.tool.tool_material).work_hardening:
            return
        units = program.units
        diameter_in = units.to_inches(activation.tool.diameter)
        feed_ipm = units.to_inches(activation.params.feed)
        minimum = diameter_in * WORK_HARDENING_IPM_PER_INCH
        if feed_ipm < minimum:
            collector.add(
                "WORK_HARDENING",
                f"Feed {feed_ipm:.1f} IPM is below {minimum:.1f} IPM for {entry.name}",
                ErrorSeverity.WARNING, operation_index=activation.operation_index,
                suggestion="keep the tool engaged with a heavier chip")

    def check_deflection(self, program, activation, collector):
        tool = activation.tool
        if tool.stickout is None or tool.diameter <= 0:
            return
        ratio = tool.stickout / tool.diameter
        if ratio > self.machine.deflection_error_ratio:
            collector.add(
                "TOOL_DEFLECTION",
                f"T{tool.tool_id} stickout is {ratio:.1f}x diameter "
                f"(limit {self.machine.deflection_error_ratio:g}x)",
                ErrorSeverity.ERROR, operation_index=activation.operation_index,
                suggestion="shorten stickout or use a larger tool")
        elif ratio > self.machine.deflection_warning_ratio:
            collector.add(
                "TOOL_DEFLECTION",
                f"T{tool.tool_id} stickout is {ratio:.1f}x diameter, expect deflection",
                ErrorSeverity.WARNING, operation_index=activation.operation_index)

    def check_tool_length(self, program, activation, collector):
        tool = activation.tool
        if tool.length is None:
            return
        margin = program.units.from_inches(self.machine.length_safety_margin)
        if activation.cut_depth + margin > tool.length + EPSILON:
            collector.add(
                "TOOL_LENGTH",
                f"T{tool.tool_id} length {tool.length:g} is too short for depth "
                f"{activation.cut_depth:g} plus margin {margin:g}",
                ErrorSeverity.ERROR, operation_index=activation.operation_index,
                suggestion="holder collision risk")

    def check_spindle_limits(self, program, activation, collector):
        rpm = activation.params.rpm
        tool = activation.tool
        if tool.max_rpm is not None and rpm > tool.max_rpm:
            collector.add("RPM_TOOL_LIMIT",
                          f"{rpm} RPM exceeds T{tool.tool_id} maximum of {tool.max_rpm:g}",
                          ErrorSeverity.ERROR, operation_index=activation.operation_index)
        if rpm > self.machine.max_spindle:
            collector.add("RPM_MACHINE_LIMIT",
                          f"{rpm} RPM exceeds machine maximum of {self.machine.max_spindle:g}",
                          ErrorSeverity.ERROR, operation_index=activation.operation_index)

    def check_feed_limit(self, program, activation, collector):
        units = program.units
        for feed in (activation.params.feed, activation.params.plunge_feed):
            feed_ipm = units.to_inches(feed)
            if feed_ipm > self.machine.max_feed:
                collector.add("FEED_MACHINE_LIMIT",
                              f"Feed {feed:.1f} {units.feed_label} exceeds machine maximum",
                              ErrorSeverity.ERROR, operation_index=activation.operation_index)
                return

    def check_travel_limits(self, program, activation, collector):
        previous = None
        for move in activation.moves:
            y_low = y_high = move.y
            if move.is_arc and previous is not None:
                _, y_low, _, y_high = arc_extent((previous.x, previous.y), (move.x, move.y),
                                                 move.center, move.kind == MoveKind.ARC_CW)
            previous = move
            if program.z_min is not None and move.z < program.z_min - EPSILON:
                collector.add("TRAVEL_LIMIT", f"Move to Z{move.z:.4f} is below z-min {program.z_min:g}",
                              ErrorSeverity.ERROR, operation_index=activation.operation_index)
                return
            limit = program.y_limit
            if limit is not None and move.is_feed:
                if (limit >= 0 and y_high > limit + EPSILON) or (limit < 0 and y_low < limit - EPSILON):
                    collector.add("TRAVEL_LIMIT", f"Cutting move crosses y-limit {limit:g}",
                                  ErrorSeverity.ERROR, operation_index=activation.operation_index)
                    return

    def check_rpm_guideline(self, program, activation, collector):
        diameter_in = program.units.to_inches(activation.tool.diameter)
        if diameter_in <= 0:
            return
        guideline = calc.recommended_max_rpm(diameter_in)
        if activation.params.rpm > guideline:
            collector.add("RPM_GUIDELINE",
                          f"{activation.params.rpm} RPM is above the {guideline} RPM guideline "
                          f"for a {diameter_in:.4g} in tool",
                          ErrorSeverity.WARNING, operation_index=activation.operation_index)

    def check_chip_load(self, program, activation, collector):
        params = activation.params
        diameter_in = program.units.to_inches(activation.tool.diameter)
        if params.feed <= 0 or diameter_in <= 0 or _pitch_locked(activation):
            return
        if params.chip_load_ipt > diameter_in * HIGH_CHIP_LOAD_RATIO:
            collector.add("CHIP_LOAD_HIGH",
                          f"Chip load {params.chip_load_ipt:.5f} IPT is high for a "
                          f"{diameter_in:.4g} in tool",
                          ErrorSeverity.WARNING, operation_index=activation.operation_index,
                          suggestion="risk of tool breakage")
        elif params.chip_load_ipt < RUBBING_CHIP_LOAD:
            collector.add("POSSIBLE_RUBBING",
                          f"Chip load {params.chip_load_ipt:.5f} IPT may rub instead of cut",
                          ErrorSeverity.WARNING, operation_index=activation.operation_index)

    def check_surface_speed(self, program, activation, collector):
        entry = self._entry(program)
        if entry is None or _pitch_locked(activation):
            return
        tool = activation.tool
        sfm_range = calc.lookup_sfm(entry, tool.tool_material, bool(tool.coating))
        sfm = activation.params.sfm
        if not sfm_range.contains(sfm):
            collector.add("SFM_RANGE",
                          f"Surface speed {sfm:.0f} SFM is outside {sfm_range.min:g}-{sfm_range.max:g} "
                          f"for {tool.tool_material.value} in {entry.name}",
                          ErrorSeverity.WARNING, operation_index=activation.operation_index)

    def check_coolant(self, program, activation, collector):
        entry = self._entry(program)
        if entry is None or not entry.coolant_required:
            return
        if activation.tool.coolant in (None, CoolantType.NONE, CoolantType.AIR):
            collector.add("COOLANT_RECOMMENDED", f"{entry.name} should be cut with coolant",
                          ErrorSeverity.INFO, operation_index=activation.operation_index)
