"""
Position and constraint resolution.

Turns symbolic positions (zero, stock, explicit coordinates) into
absolute program coordinates, resolves tools and the material, and
checks every operation's extents against the z-min / y-limit bounds
before any toolpath is generated.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
from swarf.blackbook import BlackBook, BlackBookEntry, ToolMaterial
from swarf.config.machine_config import MachineConfig
from swarf.core.program import (
    Chamfer, Cut, Deburr, Drill, Face, Operation, OperationKind, Pocket,
    PositionExpr, PositionKind, Profile, ProfileSide, Program, SetupBlock,
    Shape, ShapeKind, Tap, ToolStatement,
)
from swarf.tooling.library import CoolantType, ToolLibrary, ToolSpec
from swarf.utils.errors import ResolutionError, UnknownMaterial
from swarf.utils.logging import get_logger
from swarf.utils.units import Units

logger = get_logger(__name__)

EPSILON = 1e-9

Bounds = Tuple[float, float, float, float]


class StockAnchor(Enum):
    BOUNDARY = "boundary"
    CENTER = "center"


# Where "at stock" places each kind of feature
STOCK_ANCHOR: Dict[OperationKind, StockAnchor] = {
    OperationKind.FACE: StockAnchor.BOUNDARY,
    OperationKind.PROFILE: StockAnchor.BOUNDARY,
    OperationKind.CUT: StockAnchor.BOUNDARY,
    OperationKind.POCKET: StockAnchor.CENTER,
    OperationKind.CHAMFER: StockAnchor.CENTER,
    OperationKind.DEBURR: StockAnchor.CENTER,
    OperationKind.DRILL: StockAnchor.CENTER,
    OperationKind.TAP: StockAnchor.CENTER,
}

# Whether an explicit/zero position names a rectangle's lower-left corner
# (True) or its center (False). Circles and holes always use the center.
RECT_CORNER_REFERENCE: Dict[OperationKind, bool] = {
    OperationKind.FACE: True,
    OperationKind.PROFILE: True,
    OperationKind.CUT: True,
    OperationKind.POCKET: False,
    OperationKind.CHAMFER: False,
    OperationKind.DEBURR: False,
    OperationKind.DRILL: False,
    OperationKind.TAP: False,
}


@dataclass(frozen=True)
class Frame:
    """The program coordinate frame relative to the stock."""
    units: Units
    origin: Tuple[float, float, float]
    stock_size: Optional[Tuple[float, float, float]]
    stock_top: float
    z_min: Optional[float]
    y_limit: Optional[float]
    clearance: float
    retract_gap: float
    breakthrough: float
    peck_clearance: float

    @property
    def has_stock(self) -> bool:
        return self.stock_size is not None

    @property
    def stock_bounds(self) -> Bounds:
        width, height, _ = self.stock_size
        x0, y0 = -self.origin[0], -self.origin[1]
        return x0, y0, x0 + width, y0 + height

    @property
    def stock_center(self) -> Tuple[float, float]:
        x0, y0, x1, y1 = self.stock_bounds
        return (x0 + x1) / 2.0, (y0 + y1) / 2.0

    @property
    def thickness(self) -> float:
        return self.stock_size[2]

    @property
    def retract_plane(self) -> float:
        """R plane for drilling and plunges, just above the stock top."""
        return self.stock_top + self.retract_gap

    @property
    def safe_z(self) -> float:
        return self.stock_top + max(self.clearance, self.retract_gap)


@dataclass(frozen=True)
class ResolvedOperation:
    """An operation with its tool, absolute geometry and depth."""
    index: int
    operation: Operation
    tool: ToolSpec
    depth: float
    bounds: Optional[Bounds] = None
    center: Optional[Tuple[float, float]] = None
    radius: Optional[float] = None
    follows: Optional["ResolvedOperation"] = None

    @property
    def kind(self) -> OperationKind:
        return self.operation.kind

    @property
    def modifiers(self):
        return self.operation.modifiers


@dataclass(frozen=True)
class ResolvedProgram:
    frame: Frame
    operations: Tuple[ResolvedOperation, ...]
    material: Optional[BlackBookEntry]
    material_name: Optional[str]
    wcs: str


class Resolver:
    """Resolves a parsed Program against stock, tools and the Black Book."""

    def __init__(self, black_book: BlackBook, tool_library: Optional[ToolLibrary] = None,
                 machine: Optional[MachineConfig] = None):
        self.black_book = black_book
        self.tool_library = tool_library or ToolLibrary()
        self.machine = machine or MachineConfig(name="3-Axis Mill")

    def resolve(self, program: Program) -> ResolvedProgram:
        setup = program.setup
        frame = self.build_frame(setup)
        material = self._resolve_material(setup, program)
        reserved = {_number_of(op.tool.reference) for op in program.operations
                    if op.tool is not None and not op.tool.is_library_reference}
        tools = _ToolRegistry(self.tool_library, setup.units, reserved - {None})

        resolved: List[ResolvedOperation] = []
        last_profile: Optional[ResolvedOperation] = None
        for index, operation in enumerate(program.operations):
            item = self._resolve_operation(index, operation, frame, tools, last_profile)
            self._check_bounds(item, frame)
            resolved.append(item)
            if operation.kind == OperationKind.PROFILE:
                last_profile = item

        logger.debug("Resolved %d operations (material=%s)", len(resolved),
                     material.name if material else None)
        return ResolvedProgram(frame=frame, operations=tuple(resolved), material=material,
                               material_name=setup.material, wcs=setup.wcs)

    # Frame

    def build_frame(self, setup: SetupBlock) -> Frame:
        units = setup.units
        x_ref, y_ref, z_ref = setup.zero
        stock = setup.stock
        size = (stock.width, stock.height, stock.thickness) if stock else None

        ox = self._origin_offset(x_ref, "left", "right", size[0] if size else None, "x")
        oy = self._origin_offset(y_ref, "front", "back", size[1] if size else None, "y")
        if size is None:
            if z_ref != "top":
                raise ResolutionError("Zero reference needs a stock declaration",
                                      {"axis": "z", "ref": z_ref})
            oz, stock_top = 0.0, 0.0
        else:
            oz = self._origin_offset(z_ref, "bottom", "top", size[2], "z")
            stock_top = size[2] - oz

        return Frame(
            units=units,
            origin=(ox, oy, oz),
            stock_size=size,
            stock_top=stock_top,
            z_min=setup.z_min,
            y_limit=setup.y_limit,
            clearance=setup.clearance if setup.clearance is not None
            else units.from_inches(self.machine.clearance_height),
            retract_gap=units.from_inches(self.machine.retract_gap),
            breakthrough=units.from_inches(self.machine.breakthrough_margin),
            peck_clearance=units.from_inches(self.machine.peck_clearance),
        )

    @staticmethod
    def _origin_offset(ref, low: str, high: str, extent: Optional[float], axis: str) -> float:
        """Origin position along one stock axis."""
        if isinstance(ref, float):
            if extent is None and ref != 0.0:
                raise ResolutionError("Numeric zero reference needs a stock declaration",
                                      {"axis": axis, "ref": ref})
            return ref
        if ref == low:
            return 0.0
        if extent is None:
            raise ResolutionError("Zero reference needs a stock declaration",
                                  {"axis": axis, "ref": ref})
        if ref == high:
            return extent
        return extent / 2.0

    # Material

    def _resolve_material(self, setup: SetupBlock, program: Program) -> Optional[BlackBookEntry]:
        entry = self.black_book.find(setup.material) if setup.material else None
        if entry is not None:
            return entry
        for index, operation in enumerate(program.operations):
            if not _has_explicit_speeds(operation):
                if setup.material:
                    raise UnknownMaterial(setup.material, operation_index=index)
                raise ResolutionError(
                    "No material declared; operation needs explicit feed and rpm",
                    {"kind": operation.kind.value, "line": operation.line}, index)
        return None

    # Operations

    def _resolve_operation(self, index: int, operation: Operation, frame: Frame,
                           tools: "_ToolRegistry",
                           last_profile: Optional[ResolvedOperation]) -> ResolvedOperation:
        if isinstance(operation, Drill):
            tool = tools.drill_for(operation.diameter, operation.tool)
        elif isinstance(operation, Tap):
            tool = tools.tap_for(operation.diameter, operation.pitch, operation.tool)
        else:
            if operation.tool is None:
                raise ResolutionError("Operation has no active tool",
                                      {"kind": operation.kind.value, "line": operation.line}, index)
            tool = tools.resolve(operation.tool)

        if isinstance(operation, Face):
            return self._resolve_face(index, operation, frame, tool)
        if isinstance(operation, (Drill, Tap)):
            return self._resolve_hole(index, operation, frame, tool)
        if isinstance(operation, Pocket):
            return self._resolve_pocket(index, operation, frame, tool)
        if isinstance(operation, Profile):
            return self._resolve_profile(index, operation, frame, tool)
        if isinstance(operation, Cut):
            return self._resolve_cut(index, operation, frame, tool)
        if isinstance(operation, Chamfer):
            return self._resolve_shape_op(index, operation, operation.shape, operation.width, frame, tool)
        if isinstance(operation, Deburr):
            if operation.shape is None:
                if last_profile is None:
                    raise ResolutionError("Deburr along profile needs a preceding profile",
                                          {"line": operation.line}, index)
                return ResolvedOperation(index, operation, tool, operation.pass_depth,
                                         bounds=last_profile.bounds, center=last_profile.center,
                                         radius=last_profile.radius, follows=last_profile)
            return self._resolve_shape_op(index, operation, operation.shape, operation.pass_depth, frame, tool)
        raise ResolutionError(f"Unsupported operation {operation.kind.value}", operation_index=index)

    def _resolve_face(self, index, op: Face, frame: Frame, tool: ToolSpec) -> ResolvedOperation:
        if op.width is None:
            self._require_stock(frame, "face without a size", index)
            width, height = frame.stock_size[0], frame.stock_size[1]
        else:
            width, height = op.width, op.height
        bounds = self._place_rect(op.position, op.kind, width, height, frame, index)
        return ResolvedOperation(index, op, tool, op.depth, bounds=bounds)

    def _resolve_hole(self, index, op, frame: Frame, tool: ToolSpec) -> ResolvedOperation:
        """Drilled or tapped hole; thru holes break through the stock bottom."""
        if op.depth.thru:
            self._require_stock(frame, "thru", index)
            depth = frame.thickness + frame.breakthrough
        else:
            depth = op.depth.value
        center = self._place_point(op.position, op.kind, frame, index)
        return ResolvedOperation(index, op, tool, depth, center=center, radius=op.diameter / 2.0)

    def _resolve_pocket(self, index, op: Pocket, frame: Frame, tool: ToolSpec) -> ResolvedOperation:
        item = self._resolve_shape_op(index, op, op.shape, op.depth, frame, tool)
        finish = op.modifiers.finish or 0.0
        if op.shape.kind == ShapeKind.RECT:
            smallest = min(op.shape.width, op.shape.height)
        else:
            smallest = op.shape.diameter
        if tool.diameter + 2 * finish > smallest + EPSILON:
            raise ResolutionError("Tool does not fit in pocket",
                                  {"tool_diameter": tool.diameter, "pocket": smallest}, index)
        return item

    def _resolve_profile(self, index, op: Profile, frame: Frame, tool: ToolSpec) -> ResolvedOperation:
        if op.modifiers.depth is not None:
            depth = op.modifiers.depth
        else:
            self._require_stock(frame, "profile depth", index)
            depth = frame.thickness

        if op.shape is None:
            self._require_stock(frame, "profile without a shape", index)
            item = ResolvedOperation(index, op, tool, depth, bounds=frame.stock_bounds)
        else:
            item = self._resolve_shape_op(index, op, op.shape, depth, frame, tool)

        if op.side == ProfileSide.INSIDE:
            allowance = tool.radius + (op.modifiers.finish or 0.0) + op.offset
            if item.radius is not None:
                smallest = item.radius
            else:
                x0, y0, x1, y1 = item.bounds
                smallest = min(x1 - x0, y1 - y0) / 2.0
            if allowance >= smallest - EPSILON:
                raise ResolutionError("Tool does not fit inside profile",
                                      {"tool_diameter": tool.diameter}, index)
        return item

    def _resolve_cut(self, index, op: Cut, frame: Frame, tool: ToolSpec) -> ResolvedOperation:
        ax, ay = self._place_point(op.position, op.kind, frame, index)
        sign = op.direction.sign
        if op.direction.axis == "X":
            x_end = ax + sign * op.depth
            bounds = (min(ax, x_end), ay, max(ax, x_end), ay + op.sweep)
        else:
            y_end = ay + sign * op.depth
            bounds = (ax, min(ay, y_end), ax + op.sweep, max(ay, y_end))
        return ResolvedOperation(index, op, tool, op.height, bounds=bounds, center=(ax, ay))

    def _resolve_shape_op(self, index, op: Operation, shape: Shape, depth: float,
                          frame: Frame, tool: ToolSpec) -> ResolvedOperation:
        if shape.kind == ShapeKind.RECT:
            bounds = self._place_rect(op.position, op.kind, shape.width, shape.height, frame, index)
            center = ((bounds[0] + bounds[2]) / 2.0, (bounds[1] + bounds[3]) / 2.0)
            return ResolvedOperation(index, op, tool, depth, bounds=bounds, center=center)
        radius = shape.diameter / 2.0
        if op.position.kind == PositionKind.STOCK and STOCK_ANCHOR[op.kind] == StockAnchor.BOUNDARY:
            self._require_stock(frame, "at stock", index)
            x0, y0, _, _ = frame.stock_bounds
            center = (x0 + radius, y0 + radius)
        else:
            center = self._place_point(op.position, op.kind, frame, index)
        bounds = (center[0] - radius, center[1] - radius, center[0] + radius, center[1] + radius)
        return ResolvedOperation(index, op, tool, depth, bounds=bounds, center=center, radius=radius)

    # Placement

    def _place_point(self, position: PositionExpr, kind: OperationKind,
                     frame: Frame, index: int) -> Tuple[float, float]:
        if position.kind == PositionKind.ZERO:
            return 0.0, 0.0
        if position.kind == PositionKind.EXPLICIT:
            return position.x, position.y
        self._require_stock(frame, "at stock", index)
        if STOCK_ANCHOR[kind] == StockAnchor.CENTER:
            return frame.stock_center
        x0, y0, _, _ = frame.stock_bounds
        return x0, y0

    def _place_rect(self, position: PositionExpr, kind: OperationKind, width: float,
                    height: float, frame: Frame, index: int) -> Tuple[float, float, float, float]:
        """Bounds of a width x height rectangle placed by position."""
        if position.kind == PositionKind.STOCK:
            self._require_stock(frame, "at stock", index)
            if STOCK_ANCHOR[kind] == StockAnchor.BOUNDARY:
                x0, y0, _, _ = frame.stock_bounds
                return x0, y0, x0 + width, y0 + height
            cx, cy = frame.stock_center
            return cx - width / 2.0, cy - height / 2.0, cx + width / 2.0, cy + height / 2.0
        x, y = self._place_point(position, kind, frame, index)
        if RECT_CORNER_REFERENCE[kind]:
            return x, y, x + width, y + height
        return x - width / 2.0, y - height / 2.0, x + width / 2.0, y + height / 2.0

    @staticmethod
    def _require_stock(frame: Frame, what: str, index: int):
        if not frame.has_stock:
            raise ResolutionError(f"'{what}' needs a stock declaration", operation_index=index)

    # Bounds

    def _check_bounds(self, item: ResolvedOperation, frame: Frame):
        lowest = frame.stock_top - item.depth
        if frame.z_min is not None and lowest < frame.z_min - EPSILON:
            raise ResolutionError(
                "Operation cuts below z-min",
                {"kind": item.kind.value, "z": round(lowest, 6), "z_min": frame.z_min},
                item.index)

        if frame.y_limit is not None:
            y_low, y_high = self.tool_y_extent(item)
            limit = frame.y_limit
            if limit >= 0 and y_high > limit + EPSILON:
                raise ResolutionError(
                    "Operation crosses y-limit",
                    {"kind": item.kind.value, "y": round(y_high, 6), "y_limit": limit},
                    item.index)
            if limit < 0 and y_low < limit - EPSILON:
                raise ResolutionError(
                    "Operation crosses y-limit",
                    {"kind": item.kind.value, "y": round(y_low, 6), "y_limit": limit},
                    item.index)

    @staticmethod
    def tool_y_extent(item: ResolvedOperation) -> Tuple[float, float]:
        """Y range the tool center can reach while cutting this feature."""
        op = item.operation
        r = item.tool.radius
        if isinstance(op, (Drill, Tap)):
            cy = item.center[1]
            return cy, cy
        _, y0, _, y1 = item.bounds
        if isinstance(op, Pocket):
            return y0 + r, y1 - r
        if isinstance(op, Profile):
            grow = r + (op.modifiers.finish or 0.0) + op.offset
            if op.side == ProfileSide.INSIDE:
                return y0 + grow, y1 - grow
            if op.side == ProfileSide.ON:
                return y0 - op.offset, y1 + op.offset
            return y0 - grow, y1 + grow
        # Face rows and cut lanes keep the tool center inside the bounds
        return y0, y1


def _has_explicit_speeds(operation: Operation) -> bool:
    """Whether an operation can be cut without Black Book data."""
    modifiers = operation.modifiers
    if operation.kind == OperationKind.TAP:
        return True
    if operation.kind in (OperationKind.CHAMFER, OperationKind.DEBURR):
        return modifiers.rpm is not None
    return modifiers.has_explicit_speeds


class _ToolRegistry:
    """Turns tool statements into ToolSpecs with stable tool numbers."""

    DEFAULT_FLUTES = 2
    TAP_FLUTES = 3

    def __init__(self, library: ToolLibrary, units: Units, reserved: Iterable[int] = ()):
        self.library = library
        self.units = units
        self.by_statement: Dict[ToolStatement, ToolSpec] = {}
        self.by_number: Dict[int, ToolSpec] = {}
        self.derived: Dict[Tuple[str, float, float], ToolSpec] = {}
        # Library numbers and inline tool numbers are never given to derived tools
        self.used_ids = {tool.tool_id for tool in library.list()} | set(reserved)

    def resolve(self, statement: ToolStatement) -> ToolSpec:
        if statement in self.by_statement:
            return self.by_statement[statement]
        if statement.is_library_reference:
            tool = self.library.lookup(statement.reference).in_units(self.units)
        else:
            tool = ToolSpec(
                tool_id=self._tool_number(statement.reference),
                diameter=statement.diameter,
                flutes=statement.flutes or self.DEFAULT_FLUTES,
                tool_material=ToolMaterial.parse(statement.tool_material or "carbide"),
                name="" if _number_of(statement.reference) is not None else statement.reference,
                max_rpm=statement.max_rpm,
                stickout=statement.stickout,
                length=statement.length,
                coating=statement.coating,
                coolant=CoolantType(statement.coolant) if statement.coolant else None,
            )
        self._register(tool, statement.line)
        self.by_statement[statement] = tool
        return tool

    def drill_for(self, diameter: float, active: Optional[ToolStatement]) -> ToolSpec:
        """The active tool when it matches the hole, otherwise a derived drill."""
        if active is not None:
            tool = self.resolve(active)
            if abs(tool.diameter - diameter) < EPSILON:
                return tool
        return self._derive("drill", diameter, 0.0, lambda tool_id: ToolSpec(
            tool_id=tool_id,
            diameter=diameter,
            flutes=2,
            tool_material=ToolMaterial.HSS,
            name=f"{diameter:g} drill",
            tool_type="drill",
        ))

    def tap_for(self, diameter: float, pitch: float, active: Optional[ToolStatement]) -> ToolSpec:
        """The active tool when it is a tap of this size, otherwise a derived tap."""
        if active is not None:
            tool = self.resolve(active)
            if tool.tool_type == "tap" and abs(tool.diameter - diameter) < EPSILON:
                return tool
        return self._derive("tap", diameter, pitch, lambda tool_id: ToolSpec(
            tool_id=tool_id,
            diameter=diameter,
            flutes=self.TAP_FLUTES,
            tool_material=ToolMaterial.HSS,
            name=f"{diameter:g}x{pitch:g} tap",
            tool_type="tap",
        ))

    def _derive(self, tool_type: str, diameter: float, pitch: float, build) -> ToolSpec:
        key = (tool_type, diameter, pitch)
        if key not in self.derived:
            tool_id = self._next_free_id()
            self.used_ids.add(tool_id)
            self.derived[key] = self._register(build(tool_id))
        return self.derived[key]

    def _register(self, tool: ToolSpec, line: int = 0) -> ToolSpec:
        """Record a tool under its number; one number never names two tools."""
        existing = self.by_number.get(tool.tool_id)
        if existing is not None and existing != tool:
            details = {"tool": f"T{tool.tool_id}", "first": existing.label, "second": tool.label}
            if line:
                details["line"] = line
            raise ResolutionError("Tool number is already used by a different tool", details)
        self.by_number[tool.tool_id] = tool
        self.used_ids.add(tool.tool_id)
        return tool

    def _tool_number(self, reference: str) -> int:
        number = _number_of(reference)
        if number is not None:
            return number
        tool_id = self._next_free_id()
        self.used_ids.add(tool_id)
        return tool_id

    def _next_free_id(self) -> int:
        tool_id = 1
        while tool_id in self.used_ids:
            tool_id += 1
        return tool_id


def _number_of(reference: str) -> Optional[int]:
    text = reference[1:] if reference[:1] in ("T", "t") else reference
    return int(text) if text.isdigit() else None
