"""
Toolpath generation.

One generator per operation kind turns a ResolvedOperation into a
ToolActivation of canonical moves. Drilling and tapping are always
emitted in fully expanded form; dialects that support canned cycles
collapse them again when rendering.
"""
import math
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple
from swarf.blackbook import BlackBook, CuttingParameters
from swarf.blackbook.calculations import surface_speed
from swarf.config.machine_config import MachineConfig
from swarf.core.canonical import CanonicalProgram, Move, MoveKind, MovePhase, ToolActivation
from swarf.core.program import Cut, Drill, OperationKind, Profile, ProfileSide, ShapeKind, Tap, ZConstraint
from swarf.core.resolver import EPSILON, Frame, ResolvedOperation, ResolvedProgram
from swarf.utils.errors import CodegenInvariantError, ResolutionError
from swarf.utils.geometry import (
    Contour, arc_extent, circle_contour, rect_contour, rounded_rect_contour, spaced_positions,
    stepped_levels,
)
from swarf.utils.logging import get_logger

logger = get_logger(__name__)

# Edge-finishing feed in inches/min when none is given
EDGE_FEED_IPM = 10.0
# Peck automatically once a hole is deeper than this many diameters
AUTO_PECK_RATIO = 3.0
# Tapping spindle speed when none is given
TAP_RPM = 500


class MoveBuilder:
    """Accumulates moves and tracks the current position."""

    def __init__(self):
        self.moves: List[Move] = []
        self.x: Optional[float] = None
        self.y: Optional[float] = None
        self.z: Optional[float] = None

    def _target(self, x, y, z) -> Tuple[float, float, float]:
        return (self.x if x is None else x,
                self.y if y is None else y,
                self.z if z is None else z)

    def _at(self, x, y, z) -> bool:
        return (self.x is not None and abs(self.x - x) < EPSILON
                and abs(self.y - y) < EPSILON and abs(self.z - z) < EPSILON)

    def _emit(self, move: Move):
        self.moves.append(move)
        self.x, self.y, self.z = move.x, move.y, move.z

    def rapid(self, x=None, y=None, z=None, phase: MovePhase = MovePhase.APPROACH):
        x, y, z = self._target(x, y, z)
        if not self._at(x, y, z):
            self._emit(Move(MoveKind.RAPID, x, y, z, phase=phase))

    def linear(self, x=None, y=None, z=None, feed: float = 0.0,
               phase: MovePhase = MovePhase.CUT):
        x, y, z = self._target(x, y, z)
        if not self._at(x, y, z):
            self._emit(Move(MoveKind.LINEAR, x, y, z, feed=feed, phase=phase))

    def arc(self, x: float, y: float, center: Tuple[float, float], clockwise: bool,
            feed: float, z=None):
        x, y, z = self._target(x, y, z)
        kind = MoveKind.ARC_CW if clockwise else MoveKind.ARC_CCW
        self._emit(Move(kind, x, y, z, feed=feed, center=center))

    def dwell(self, seconds: float):
        self._emit(Move(MoveKind.DWELL, self.x, self.y, self.z, dwell=seconds))

    def spindle(self, reverse: bool):
        kind = MoveKind.SPINDLE_REVERSE if reverse else MoveKind.SPINDLE_FORWARD
        self._emit(Move(kind, self.x, self.y, self.z))

    def follow(self, contour: Contour, feed: float):
        """Cut along a contour at the current Z, starting from its start point."""
        self.linear(contour.start[0], contour.start[1], feed=feed)
        for segment in contour.segments:
            if segment.is_arc:
                self.arc(segment.end[0], segment.end[1], segment.center, segment.clockwise, feed)
            else:
                self.linear(segment.end[0], segment.end[1], feed=feed)

    def approach(self, x: float, y: float, frame: Frame):
        """Rapid over a point at safe Z, then down to the retract plane."""
        if self.z is not None and self.z < frame.safe_z - EPSILON:
            self.rapid(z=frame.safe_z)
        self.rapid(x, y, frame.safe_z)
        self.rapid(z=frame.retract_plane)

    def retract(self, frame: Frame):
        self.rapid(z=frame.safe_z, phase=MovePhase.RETRACT)


class Codegen:
    """Generates the canonical program from a resolved program."""

    def __init__(self, black_book: BlackBook, machine: Optional[MachineConfig] = None):
        self.black_book = black_book
        self.machine = machine or MachineConfig(name="3-Axis Mill")

        # Operation kind to generator mapping
        self.generators: Dict[OperationKind, Callable[[ResolvedOperation, ResolvedProgram], ToolActivation]] = {
            OperationKind.FACE: self.generate_face,
            OperationKind.DRILL: self.generate_drill,
            OperationKind.POCKET: self.generate_pocket,
            OperationKind.PROFILE: self.generate_profile,
            OperationKind.CUT: self.generate_cut,
            OperationKind.CHAMFER: self.generate_chamfer,
            OperationKind.DEBURR: self.generate_deburr,
            OperationKind.TAP: self.generate_tap,
        }
        missing = set(OperationKind) - set(self.generators)
        if missing:
            raise CodegenInvariantError("No generator for operation kinds",
                                        {"kinds": ", ".join(sorted(k.value for k in missing))})

    def generate(self, resolved: ResolvedProgram) -> CanonicalProgram:
        activations = []
        for item in resolved.operations:
            activation = self.generators[item.kind](item, resolved)
            self._check_bounds(activation, resolved.frame)
            logger.debug("%s: %d moves, rpm=%d feed=%.2f", activation.label,
                         len(activation.moves), activation.params.rpm, activation.params.feed)
            activations.append(activation)

        frame = resolved.frame
        return CanonicalProgram(
            activations=tuple(activations),
            units=frame.units,
            wcs=resolved.wcs,
            material=resolved.material.name if resolved.material else resolved.material_name,
            clearance=frame.safe_z,
            stock_top=frame.stock_top,
            z_min=frame.z_min,
            y_limit=frame.y_limit,
        )

    # Parameters

    def parameters(self, item: ResolvedOperation, resolved: ResolvedProgram,
                   total_depth: float, full_engagement: bool = False) -> CuttingParameters:
        """Black Book parameters, or explicit ones when there is no material."""
        tool = item.tool
        mods = item.modifiers
        units = resolved.frame.units
        if resolved.material is None:
            return BlackBook.explicit(
                tool.diameter, tool.flutes, mods.rpm, mods.feed, units,
                stepover=mods.stepover, stepdown=mods.stepdown,
                total_depth=total_depth, plunge=mods.plunge)
        return self.black_book.derive(
            resolved.material.name, tool.tool_material, tool.diameter, tool.flutes,
            units=units, coated=bool(tool.coating), max_rpm=tool.max_rpm,
            stepover=mods.stepover, stepdown=mods.stepdown, total_depth=total_depth,
            rpm=mods.rpm, feed=mods.feed, plunge=mods.plunge, full_engagement=full_engagement)

    def edge_parameters(self, item: ResolvedOperation, resolved: ResolvedProgram) -> CuttingParameters:
        """Chamfer and deburr: Black Book rpm with the fixed edge feed."""
        tool = item.tool
        mods = item.modifiers
        units = resolved.frame.units
        feed = mods.feed if mods.feed is not None else units.from_inches(EDGE_FEED_IPM)
        if resolved.material is None:
            return _single_pass(BlackBook.explicit(tool.diameter, tool.flutes, mods.rpm, feed, units,
                                                   total_depth=item.depth))
        return self.black_book.edge(
            resolved.material.name, tool.tool_material, tool.diameter, tool.flutes, feed,
            item.depth, units=units, coated=bool(tool.coating), max_rpm=tool.max_rpm, rpm=mods.rpm)

    @staticmethod
    def tap_parameters(item: ResolvedOperation, resolved: ResolvedProgram) -> CuttingParameters:
        """Tapping feed is locked to the pitch: one pitch per spindle revolution."""
        op: Tap = item.operation
        tool = item.tool
        units = resolved.frame.units
        if op.modifiers.rpm is not None:
            rpm = int(op.modifiers.rpm)
        else:
            rpm = int(min(TAP_RPM, tool.max_rpm or TAP_RPM))
        feed = rpm * op.pitch
        diameter_in = units.to_inches(tool.diameter)
        return CuttingParameters(
            rpm=rpm,
            feed=feed,
            plunge_feed=feed,
            doc=item.depth,
            woc=tool.diameter,
            chip_load_ipt=units.to_inches(op.pitch) / tool.flutes,
            sfm=surface_speed(rpm, diameter_in),
            derived=op.modifiers.rpm is None,
        )

    def _activation(self, item: ResolvedOperation, params: CuttingParameters,
                    builder: MoveBuilder, label: str) -> ToolActivation:
        return ToolActivation(
            tool=item.tool,
            params=params,
            moves=tuple(builder.moves),
            operation=item.kind,
            operation_index=item.index,
            label=label,
            cut_depth=item.depth,
            line=item.operation.line,
        )

    # Generators

    def generate_face(self, item: ResolvedOperation, resolved: ResolvedProgram) -> ToolActivation:
        frame = resolved.frame
        params = self.parameters(item, resolved, item.depth)
        x0, y0, x1, y1 = item.bounds
        r = item.tool.radius
        rows = spaced_positions(y0, y1, params.woc)
        left, right = x0 - r, x1 + r

        builder = MoveBuilder()
        for level in stepped_levels(item.depth, params.doc):
            z = frame.stock_top - level
            builder.approach(left, rows[0], frame)
            builder.linear(z=z, feed=params.plunge_feed)
            forward = True
            for i, y in enumerate(rows):
                if i:
                    builder.linear(y=y, feed=params.feed)
                builder.linear(x=right if forward else left, feed=params.feed)
                forward = not forward
            builder.retract(frame)

        label = f"FACE {x1 - x0:g}x{y1 - y0:g} DEPTH {item.depth:g}"
        return self._activation(item, params, builder, label)

    def generate_drill(self, item: ResolvedOperation, resolved: ResolvedProgram) -> ToolActivation:
        frame = resolved.frame
        op: Drill = item.operation
        params = self.parameters(item, resolved, item.depth, full_engagement=True)
        params = _single_pass(params)
        cx, cy = item.center
        top = frame.stock_top
        depth = item.depth
        peck = op.modifiers.peck
        if peck is None and depth / op.diameter > AUTO_PECK_RATIO:
            peck = op.diameter

        builder = MoveBuilder()
        builder.approach(cx, cy, frame)
        if peck is None:
            builder.linear(z=top - depth, feed=params.feed)
        else:
            pecks = math.ceil(depth / peck - EPSILON)
            previous = None
            for i in range(1, pecks + 1):
                z = top - min(i * peck, depth)
                if previous is not None:
                    builder.rapid(z=frame.retract_plane, phase=MovePhase.RETRACT)
                    builder.rapid(z=previous + frame.peck_clearance)
                builder.linear(z=z, feed=params.feed)
                previous = z
        if op.modifiers.dwell:
            builder.dwell(op.modifiers.dwell)
        builder.rapid(z=frame.retract_plane, phase=MovePhase.RETRACT)
        builder.retract(frame)

        depth_text = "THRU" if op.depth.thru else f"DEPTH {depth:g}"
        label = f"DRILL {op.diameter:g} {depth_text}"
        if peck is not None:
            label += f" PECK {peck:g}"
        return self._activation(item, params, builder, label)

    def generate_tap(self, item: ResolvedOperation, resolved: ResolvedProgram) -> ToolActivation:
        """Feed in, reverse the spindle, feed back out to the R plane."""
        frame = resolved.frame
        op: Tap = item.operation
        params = self.tap_parameters(item, resolved)
        cx, cy = item.center

        builder = MoveBuilder()
        builder.approach(cx, cy, frame)
        builder.linear(z=frame.stock_top - item.depth, feed=params.feed)
        if op.modifiers.dwell:
            builder.dwell(op.modifiers.dwell)
        builder.spindle(reverse=True)
        builder.linear(z=frame.retract_plane, feed=params.feed, phase=MovePhase.RETRACT)
        builder.spindle(reverse=False)
        builder.retract(frame)

        depth_text = "THRU" if op.depth.thru else f"DEPTH {item.depth:g}"
        label = f"TAP {op.diameter:g} PITCH {op.pitch:g} {depth_text}"
        return self._activation(item, params, builder, label)

    def generate_pocket(self, item: ResolvedOperation, resolved: ResolvedProgram) -> ToolActivation:
        frame = resolved.frame
        op = item.operation
        params = self.parameters(item, resolved, item.depth)
        finish = op.modifiers.finish or 0.0
        r = item.tool.radius
        cx, cy = item.center

        if op.shape.kind == ShapeKind.CIRCLE:
            rings = self._circle_rings(cx, cy, item.radius - r - finish, params.woc)
            finish_ring = circle_contour(cx, cy, item.radius - r, False) if finish else None
            label = f"POCKET CIRCLE {op.shape.diameter:g} DEPTH {item.depth:g}"
        else:
            x0, y0, x1, y1 = item.bounds
            rings = self._rect_rings(x0 + r + finish, y0 + r + finish,
                                     x1 - r - finish, y1 - r - finish, params.woc)
            finish_ring = rect_contour(x0 + r, y0 + r, x1 - r, y1 - r, False) if finish else None
            label = f"POCKET RECT {op.shape.width:g}x{op.shape.height:g} DEPTH {item.depth:g}"

        builder = MoveBuilder()
        for level in stepped_levels(item.depth, params.doc):
            z = frame.stock_top - level
            builder.approach(rings[0].start[0], rings[0].start[1], frame)
            builder.linear(z=z, feed=params.plunge_feed)
            for ring in rings:
                builder.follow(ring, params.feed)
            builder.rapid(z=frame.retract_plane, phase=MovePhase.RETRACT)

        if finish_ring is not None:
            builder.approach(rings[-1].start[0], rings[-1].start[1], frame)
            builder.linear(z=frame.stock_top - item.depth, feed=params.plunge_feed)
            builder.follow(finish_ring, params.feed)
            builder.rapid(z=frame.retract_plane, phase=MovePhase.RETRACT)
        builder.retract(frame)
        return self._activation(item, params, builder, label)

    @staticmethod
    def _rect_rings(x0: float, y0: float, x1: float, y1: float, step: float) -> List[Contour]:
        """Concentric rectangles from the center out to the given bounds."""
        cx, cy = (x0 + x1) / 2.0, (y0 + y1) / 2.0
        hx, hy = max(0.0, (x1 - x0) / 2.0), max(0.0, (y1 - y0) / 2.0)
        insets = spaced_positions(0.0, min(hx, hy), step)
        rings = []
        for inset in reversed(insets):
            ax, ay = hx - inset, hy - inset
            if ax < EPSILON and ay < EPSILON:
                rings.append(Contour((cx, cy)))
            elif ay < EPSILON:
                rings.append(Contour((cx - ax, cy)).line_to(cx + ax, cy).line_to(cx - ax, cy))
            elif ax < EPSILON:
                rings.append(Contour((cx, cy - ay)).line_to(cx, cy + ay).line_to(cx, cy - ay))
            else:
                rings.append(rect_contour(cx - ax, cy - ay, cx + ax, cy + ay, False))
        return rings

    @staticmethod
    def _circle_rings(cx: float, cy: float, radius: float, step: float) -> List[Contour]:
        """Plunge point at the center, then circles out to radius."""
        rings = [Contour((cx, cy))]
        if radius > EPSILON:
            for rho in spaced_positions(0.0, radius, step)[1:]:
                rings.append(circle_contour(cx, cy, rho, False))
        return rings

    def generate_profile(self, item: ResolvedOperation, resolved: ResolvedProgram) -> ToolActivation:
        frame = resolved.frame
        op: Profile = item.operation
        params = self.parameters(item, resolved, item.depth)
        finish = op.modifiers.finish or 0.0
        rough = self.profile_contour(item, item.tool.radius + finish + op.offset)

        builder = MoveBuilder()
        builder.approach(rough.start[0], rough.start[1], frame)
        for level in stepped_levels(item.depth, params.doc):
            builder.linear(z=frame.stock_top - level, feed=params.plunge_feed)
            builder.follow(rough, params.feed)
        if finish:
            final = self.profile_contour(item, item.tool.radius + op.offset)
            builder.follow(final, params.feed)
        builder.rapid(z=frame.retract_plane, phase=MovePhase.RETRACT)
        builder.retract(frame)

        shape = "STOCK" if op.shape is None else op.shape.kind.value.upper()
        label = f"PROFILE {op.side.value.upper()} {shape} DEPTH {item.depth:g}"
        return self._activation(item, params, builder, label)

    @staticmethod
    def profile_contour(item: ResolvedOperation, distance: float) -> Contour:
        """
        Tool-center path around a profile feature.

        Outside paths run clockwise and inside paths counter-clockwise
        (climb milling); "on" paths follow the edge grown by the offset.
        """
        op: Profile = item.operation
        if op.side == ProfileSide.ON:
            distance = op.offset
        inside = op.side == ProfileSide.INSIDE
        if item.radius is not None:
            cx, cy = item.center
            radius = item.radius - distance if inside else item.radius + distance
            return circle_contour(cx, cy, radius, clockwise=not inside)
        x0, y0, x1, y1 = item.bounds
        if inside:
            return rect_contour(x0 + distance, y0 + distance, x1 - distance, y1 - distance, False)
        return rounded_rect_contour(x0, y0, x1, y1, distance, True)

    def generate_cut(self, item: ResolvedOperation, resolved: ResolvedProgram) -> ToolActivation:
        frame = resolved.frame
        op: Cut = item.operation
        params = self.parameters(item, resolved, op.height)
        top = frame.stock_top
        x0, y0, x1, y1 = item.bounds
        ax, ay = item.center

        if op.direction.axis == "X":
            lanes = spaced_positions(y0, y1, params.woc)
            start, end = ax, ax + op.direction.sign * op.depth

            def lane_points(lane):
                return (start, lane), (end, lane)
        else:
            lanes = spaced_positions(x0, x1, params.woc)
            start, end = ay, ay + op.direction.sign * op.depth

            def lane_points(lane):
                return (lane, start), (lane, end)

        if op.z_constraint == ZConstraint.UP:
            # Never steps down: one pass, so the height must fit in one stepdown
            if op.height > params.doc + EPSILON:
                raise ResolutionError(
                    "Z+ cut is taller than one stepdown",
                    {"height": op.height, "stepdown": round(params.doc, 6)}, item.index)
            params = _single_pass(params)
            levels = [top - op.height]
        else:
            levels = [top - d for d in stepped_levels(op.height, params.doc)]
        entry = levels[0]

        builder = MoveBuilder()
        for z in levels:
            for lane in lanes:
                (sx, sy), (ex, ey) = lane_points(lane)
                builder.approach(sx, sy, frame)
                builder.linear(z=z, feed=params.plunge_feed)
                builder.linear(ex, ey, feed=params.feed)
                builder.rapid(z=frame.retract_plane, phase=MovePhase.RETRACT)
        builder.retract(frame)

        self._check_direction(op, builder.moves, entry, item.index)
        constraint = f" {op.z_constraint.value}" if op.z_constraint else ""
        label = f"CUT {op.direction} SWEEP {op.sweep:g} DEPTH {op.depth:g} HEIGHT {op.height:g}{constraint}"
        return self._activation(item, params, builder, label)

    @staticmethod
    def _check_direction(op: Cut, moves: List[Move], entry: float, index: int):
        for move in moves:
            if move.phase != MovePhase.CUT:
                continue
            if op.z_constraint == ZConstraint.UP and move.z < entry - EPSILON:
                raise CodegenInvariantError("Z+ cut moved below its entry height",
                                            {"operation": index + 1, "z": move.z, "entry": entry})
            if op.z_constraint == ZConstraint.DOWN and move.z > entry + EPSILON:
                raise CodegenInvariantError("Z- cut moved above its entry height",
                                            {"operation": index + 1, "z": move.z, "entry": entry})

    def generate_chamfer(self, item: ResolvedOperation, resolved: ResolvedProgram) -> ToolActivation:
        op = item.operation
        if op.shape.kind == ShapeKind.HOLE:
            path = circle_contour(item.center[0], item.center[1], item.radius, clockwise=False)
        else:
            path = self._edge_contour(item, clockwise=True)
        shape = op.shape.kind.value.upper()
        return self._edge_pass(item, resolved, path, f"CHAMFER {op.width:g} {shape}")

    def generate_deburr(self, item: ResolvedOperation, resolved: ResolvedProgram) -> ToolActivation:
        op = item.operation
        if item.follows is not None:
            inside = item.follows.operation.side == ProfileSide.INSIDE
            path = self._edge_contour(item, clockwise=not inside)
            shape = "PROFILE"
        else:
            path = self._edge_contour(item, clockwise=True)
            shape = op.shape.kind.value.upper()
        return self._edge_pass(item, resolved, path, f"DEBURR {op.pass_depth:g} {shape}")

    @staticmethod
    def _edge_contour(item: ResolvedOperation, clockwise: bool) -> Contour:
        if item.radius is not None:
            return circle_contour(item.center[0], item.center[1], item.radius, clockwise)
        x0, y0, x1, y1 = item.bounds
        return rect_contour(x0, y0, x1, y1, clockwise)

    def _edge_pass(self, item: ResolvedOperation, resolved: ResolvedProgram,
                   path: Contour, label: str) -> ToolActivation:
        """Single light pass along an edge at a fixed conservative feed."""
        frame = resolved.frame
        params = self.edge_parameters(item, resolved)
        builder = MoveBuilder()
        builder.approach(path.start[0], path.start[1], frame)
        builder.linear(z=frame.stock_top - item.depth, feed=params.plunge_feed)
        builder.follow(path, params.feed)
        builder.rapid(z=frame.retract_plane, phase=MovePhase.RETRACT)
        builder.retract(frame)
        return self._activation(item, params, builder, label)

    # Invariants

    @staticmethod
    def _check_bounds(activation: ToolActivation, frame: Frame):
        """Every move must respect z-min; cutting moves must respect y-limit."""
        for move in activation.moves:
            if frame.z_min is not None and move.z < frame.z_min - EPSILON:
                raise CodegenInvariantError(
                    "Generated move below z-min",
                    {"operation": activation.operation_index + 1, "z": move.z, "z_min": frame.z_min})
        if frame.y_limit is None:
            return
        limit = frame.y_limit
        previous = None
        for move in activation.moves:
            low = high = move.y
            if move.is_arc and previous is not None:
                _, low, _, high = arc_extent((previous.x, previous.y), (move.x, move.y), move.center,
                                             move.kind == MoveKind.ARC_CW)
            previous = move
            if move.phase != MovePhase.CUT:
                continue
            if (limit >= 0 and high > limit + EPSILON) or (limit < 0 and low < limit - EPSILON):
                raise CodegenInvariantError(
                    "Generated move crosses y-limit",
                    {"operation": activation.operation_index + 1,
                     "y": high if limit >= 0 else low, "y_limit": limit})


def _single_pass(params: CuttingParameters) -> CuttingParameters:
    return replace(params, pass_count=1)
