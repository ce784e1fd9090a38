"""
Defines the abstract base class for a G-code dialect.

A dialect renders a CanonicalProgram as controller text. Dialects only
choose representation: they never change feeds, speeds or geometry.
Drilling and tapping arrive fully expanded; dialects whose profile
retains canned cycles collapse recognised patterns back into
G81/G82/G83/G84.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional
from swarf.config.machine_config import CannedCycleMode, CommentStyle, ControllerProfile
from swarf.core.canonical import CanonicalProgram, Move, MoveKind, ToolActivation
from swarf.core.program import OperationKind
from swarf.tooling.library import CoolantType

TOLERANCE = 1e-6

MOTION_CODES = {
    MoveKind.RAPID: "G00",
    MoveKind.LINEAR: "G01",
    MoveKind.ARC_CW: "G02",
    MoveKind.ARC_CCW: "G03",
}

COOLANT_CODES = {
    CoolantType.FLOOD: "M08",
    CoolantType.MIST: "M07",
    CoolantType.AIR: "M07",
}

SPINDLE_CODES = {
    MoveKind.SPINDLE_REVERSE: "M04",
    MoveKind.SPINDLE_FORWARD: "M03",
}


@dataclass
class DrillCycle:
    """A drilling or tapping pattern recognised in an expanded move sequence."""
    start: int
    x: float
    y: float
    r_plane: float
    bottom: float
    feed: float
    initial_z: float
    peck: Optional[float] = None
    dwell: Optional[float] = None
    tapping: bool = False

    @property
    def code(self) -> str:
        if self.tapping:
            return "G84"
        if self.peck is not None:
            return "G83"
        return "G82" if self.dwell else "G81"


class ModalState:
    """Last emitted position and feed, so unchanged words are omitted."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.x: Optional[float] = None
        self.y: Optional[float] = None
        self.z: Optional[float] = None
        self.feed: Optional[float] = None


def _same(a: Optional[float], b: Optional[float]) -> bool:
    return a is not None and b is not None and abs(a - b) < TOLERANCE


def recognize_drill_cycle(moves: List[Move], stock_top: float) -> Optional[DrillCycle]:
    """
    Recognise the expanded drilling pattern produced by codegen.

    The pattern is a rapid over the hole, a rapid down to the R plane,
    one or more strictly deeper feed plunges separated by rapids on the
    hole axis, an optional dwell and a final rapid back to the starting
    height. Anything else returns None and is rendered expanded.
    """
    entry = _hole_entry(moves)
    if entry is None:
        return None
    first_feed, above, to_r = entry
    x, y = to_r.x, to_r.y

    feed = moves[first_feed].feed
    bottoms: List[float] = []
    dwell = None
    for move in moves[first_feed:]:
        if not (_same(move.x, x) and _same(move.y, y)):
            return None
        if move.kind == MoveKind.LINEAR:
            if dwell is not None or not _same(move.feed, feed):
                return None
            if bottoms and move.z > bottoms[-1] - TOLERANCE:
                return None
            bottoms.append(move.z)
        elif move.kind == MoveKind.DWELL:
            if dwell is not None:
                return None
            dwell = move.dwell
        elif move.kind != MoveKind.RAPID:
            return None
    if moves[-1].kind != MoveKind.RAPID or not _same(moves[-1].z, above.z):
        return None

    peck = None
    if len(bottoms) > 1:
        if dwell:
            return None
        peck = stock_top - bottoms[0]
        steps = [a - b for a, b in zip(bottoms, bottoms[1:])]
        if any(abs(step - peck) > TOLERANCE for step in steps[:-1]) or steps[-1] > peck + TOLERANCE:
            return None

    return DrillCycle(start=first_feed - 1, x=x, y=y, r_plane=to_r.z, bottom=bottoms[-1],
                      feed=feed, initial_z=above.z, peck=peck, dwell=dwell)


def recognize_tap_cycle(moves: List[Move]) -> Optional[DrillCycle]:
    """
    Recognise the expanded tapping pattern produced by codegen.

    After the same entry as drilling: one feed to depth, an optional
    dwell, spindle reverse, a feed back to the R plane at the same rate,
    spindle forward and a rapid back to the starting height.
    """
    entry = _hole_entry(moves)
    if entry is None:
        return None
    first_feed, above, to_r = entry
    x, y = to_r.x, to_r.y
    rest = list(moves[first_feed:])
    if not all(_same(m.x, x) and _same(m.y, y) for m in rest):
        return None
    dwell = None
    if len(rest) > 1 and rest[1].kind == MoveKind.DWELL:
        dwell = rest.pop(1).dwell
    expected = [MoveKind.LINEAR, MoveKind.SPINDLE_REVERSE, MoveKind.LINEAR,
                MoveKind.SPINDLE_FORWARD, MoveKind.RAPID]
    if [m.kind for m in rest] != expected:
        return None
    down, _, up, _, back = rest
    if not (down.z < to_r.z - TOLERANCE and _same(up.z, to_r.z)
            and _same(up.feed, down.feed) and _same(back.z, above.z)):
        return None
    return DrillCycle(start=first_feed - 1, x=x, y=y, r_plane=to_r.z, bottom=down.z,
                      feed=down.feed, initial_z=above.z, dwell=dwell, tapping=True)


def _hole_entry(moves: List[Move]):
    """(first feed index, rapid over the hole, rapid to R) or None."""
    first_feed = next((i for i, m in enumerate(moves) if m.kind == MoveKind.LINEAR), None)
    if first_feed is None or first_feed < 2:
        return None
    above, to_r = moves[first_feed - 2], moves[first_feed - 1]
    if above.kind != MoveKind.RAPID or to_r.kind != MoveKind.RAPID:
        return None
    if not (_same(above.x, to_r.x) and _same(above.y, to_r.y) and above.z > to_r.z + TOLERANCE):
        return None
    return first_feed, above, to_r


class BaseDialect(ABC):
    """Shared rendering; subclasses supply the header and controller quirks."""

    name = "base"
    # Modal codes that start every program after the units word
    safety_codes = "G17 G40 G49 G80 G90 G94"
    cycle_return = "G98"

    def __init__(self, profile: ControllerProfile):
        self.profile = profile
        self.precision = 4

    @abstractmethod
    def header(self, program: CanonicalProgram) -> List[str]:
        """Program framing and identification lines."""

    def render(self, program: CanonicalProgram) -> str:
        """Render a canonical program. The same input always gives the same text."""
        self.precision = program.units.precision
        state = ModalState()
        lines: List[str] = []
        lines.extend(self.header(program))
        lines.extend(self.summary(program))
        lines.append("")
        lines.extend(self.preamble(program))
        for number, activation in enumerate(program.activations):
            lines.append("")
            lines.extend(self.tool_change(program, activation, number, state))
            lines.extend(self.motion(program, activation, state))
        lines.append("")
        lines.extend(self.footer(program))
        if self.profile.line_numbering:
            lines = self.number_lines(lines)
        return "\n".join(lines) + "\n"

    # Formatting

    def comment(self, text: str) -> str:
        if self.profile.comment_style == CommentStyle.SEMICOLON:
            return f"; {text}"
        return "(" + text.replace("(", "[").replace(")", "]") + ")"

    def fmt(self, value: float) -> str:
        text = f"{value:.{self.precision}f}"
        if text.startswith("-") and float(text) == 0:
            text = text[1:]
        return text

    @staticmethod
    def fmt_feed(value: float) -> str:
        return f"{value:.1f}"

    def is_comment(self, line: str) -> bool:
        return not line or line.startswith(("(", ";", "%"))

    def number_lines(self, lines: List[str]) -> List[str]:
        step = self.profile.line_number_step
        number = step
        numbered = []
        for line in lines:
            if self.is_comment(line):
                numbered.append(line)
            else:
                numbered.append(f"N{number:04d} {line}")
                number += step
        return numbered

    # Sections

    def summary(self, program: CanonicalProgram) -> List[str]:
        """Cutting parameters per activation, then the warnings."""
        lines = []
        if program.material:
            lines.append(self.comment(f"MATERIAL: {program.material}"))
        lines.append(self.comment(f"UNITS: {program.units.value.upper()}  WCS: {program.wcs}"))
        if program.z_min is not None:
            lines.append(self.comment(f"Z MIN: {self.fmt(program.z_min)}"))
        if program.y_limit is not None:
            lines.append(self.comment(f"Y LIMIT: {self.fmt(program.y_limit)}"))
        for activation in program.activations:
            params = activation.params
            lines.append(self.comment(
                f"OP {activation.operation_index + 1}: {activation.label} - {activation.tool.label}"))
            lines.append(self.comment(
                f"  RPM {params.rpm} FEED {self.fmt_feed(params.feed)} "
                f"PLUNGE {self.fmt_feed(params.plunge_feed)} DOC {self.fmt(params.doc)} "
                f"WOC {self.fmt(params.woc)} CHIP {params.chip_load_ipt:.4f} "
                f"PASSES {params.pass_count}"))
            if params.tool_life_min is not None:
                lines.append(self.comment(f"  TOOL LIFE {params.tool_life_min:.0f} MIN"))
        for diagnostic in program.warnings():
            lines.append(self.comment(str(diagnostic)))
        return lines

    def preamble(self, program: CanonicalProgram) -> List[str]:
        return [program.units.gcode, self.safety_codes, program.wcs]

    def tool_change(self, program: CanonicalProgram, activation: ToolActivation,
                    number: int, state: ModalState) -> List[str]:
        tool = activation.tool
        lines = [self.comment(f"OP {activation.operation_index + 1}: {activation.label}")]
        if number:
            lines.extend(["M05", "M09"])
        lines.append(f"T{tool.tool_id} M06")
        lines.append(f"S{activation.params.rpm} M03")
        state.reset()
        if self.profile.use_tool_length_offset:
            lines.append(f"G43 H{tool.tool_id} Z{self.fmt(program.clearance)}")
            state.z = program.clearance
        coolant = COOLANT_CODES.get(tool.coolant)
        if coolant:
            lines.append(coolant)
        if state.z is None:
            # Z to clearance on its own before any XY rapid
            lines.append(f"G00 Z{self.fmt(program.clearance)}")
            state.z = program.clearance
        return lines

    def motion(self, program: CanonicalProgram, activation: ToolActivation,
               state: ModalState) -> List[str]:
        moves = list(activation.moves)
        if self.profile.canned_cycles == CannedCycleMode.RETAIN:
            cycle = None
            if activation.operation == OperationKind.DRILL:
                cycle = recognize_drill_cycle(moves, program.stock_top)
            elif activation.operation == OperationKind.TAP:
                cycle = recognize_tap_cycle(moves)
            if cycle is not None:
                lines = [self.move_line(move, state) for move in moves[:cycle.start]]
                lines.extend(self.cycle_lines(cycle, state))
                return [line for line in lines if line]
        return [line for line in (self.move_line(move, state) for move in moves) if line]

    def move_line(self, move: Move, state: ModalState) -> str:
        if move.kind == MoveKind.DWELL:
            return f"G04 P{move.dwell:.2f}"
        if move.kind in SPINDLE_CODES:
            return SPINDLE_CODES[move.kind]
        words = [MOTION_CODES[move.kind]]
        if move.is_arc:
            words.append(f"X{self.fmt(move.x)}")
            words.append(f"Y{self.fmt(move.y)}")
            if not _same(move.z, state.z):
                words.append(f"Z{self.fmt(move.z)}")
            words.append(f"I{self.fmt(move.center[0] - state.x)}")
            words.append(f"J{self.fmt(move.center[1] - state.y)}")
        else:
            for axis in ("x", "y", "z"):
                value = getattr(move, axis)
                if not _same(value, getattr(state, axis)):
                    words.append(f"{axis.upper()}{self.fmt(value)}")
            if len(words) == 1:
                return ""
        if move.is_feed and not _same(move.feed, state.feed):
            words.append(f"F{self.fmt_feed(move.feed)}")
            state.feed = move.feed
        state.x, state.y, state.z = move.x, move.y, move.z
        return " ".join(words)

    def cycle_lines(self, cycle: DrillCycle, state: ModalState) -> List[str]:
        words = [self.cycle_return, cycle.code, f"X{self.fmt(cycle.x)}", f"Y{self.fmt(cycle.y)}",
                 f"Z{self.fmt(cycle.bottom)}", f"R{self.fmt(cycle.r_plane)}"]
        if cycle.peck is not None:
            words.append(f"Q{self.fmt(cycle.peck)}")
        if cycle.dwell:
            words.append(f"P{cycle.dwell:.2f}")
        words.append(f"F{self.fmt_feed(cycle.feed)}")
        state.x, state.y, state.z = cycle.x, cycle.y, cycle.initial_z
        state.feed = cycle.feed
        return [" ".join(words), "G80"]

    def footer(self, program: CanonicalProgram) -> List[str]:
        lines = [self.comment("PROGRAM END")]
        if program.activations:
            lines.append(f"G00 Z{self.fmt(program.clearance)}")
        lines.extend(["M05", "M09", f"G00 X{self.fmt(0.0)} Y{self.fmt(0.0)}", "M30"])
        return lines
