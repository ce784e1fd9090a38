"""
Abstract syntax tree for the machining DSL.

A Program is a setup block plus an ordered sequence of operations. All
nodes are frozen: once parsed, a Program is read-only.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Tuple, Union
from swarf.utils.units import Units


AxisRef = Union[str, float]


class OperationKind(Enum):
    FACE = "face"
    DRILL = "drill"
    POCKET = "pocket"
    PROFILE = "profile"
    CUT = "cut"
    CHAMFER = "chamfer"
    DEBURR = "deburr"
    TAP = "tap"


class PositionKind(Enum):
    ZERO = "zero"
    STOCK = "stock"
    EXPLICIT = "explicit"


class ShapeKind(Enum):
    RECT = "rect"
    CIRCLE = "circle"
    HOLE = "hole"


class ProfileSide(Enum):
    INSIDE = "inside"
    OUTSIDE = "outside"
    ON = "on"


class ZConstraint(Enum):
    UP = "Z+"
    DOWN = "Z-"


@dataclass(frozen=True)
class Direction:
    """A cut direction such as X+ or Y-."""
    axis: str
    sign: int

    @classmethod
    def from_symbol(cls, symbol: str) -> "Direction":
        return cls(symbol[0].upper(), 1 if symbol[1] == '+' else -1)

    def __str__(self):
        return f"{self.axis}{'+' if self.sign > 0 else '-'}"


@dataclass(frozen=True)
class PositionExpr:
    kind: PositionKind
    x: float = 0.0
    y: float = 0.0

    @classmethod
    def zero(cls) -> "PositionExpr":
        return cls(PositionKind.ZERO)

    @classmethod
    def stock(cls) -> "PositionExpr":
        return cls(PositionKind.STOCK)

    @classmethod
    def explicit(cls, x: float, y: float) -> "PositionExpr":
        return cls(PositionKind.EXPLICIT, x, y)


@dataclass(frozen=True)
class DepthSpec:
    """Either a numeric depth or the 'thru' sentinel."""
    value: Optional[float] = None
    thru: bool = False


@dataclass(frozen=True)
class Shape:
    kind: ShapeKind
    width: float = 0.0
    height: float = 0.0
    diameter: float = 0.0


@dataclass(frozen=True)
class Stock:
    width: float
    height: float
    thickness: float


@dataclass(frozen=True)
class Modifiers:
    """Explicit per-operation overrides. None means derive it."""
    feed: Optional[float] = None
    rpm: Optional[float] = None
    stepdown: Optional[float] = None
    stepover: Optional[float] = None
    plunge: Optional[float] = None
    finish: Optional[float] = None
    peck: Optional[float] = None
    dwell: Optional[float] = None
    depth: Optional[float] = None

    @property
    def has_explicit_speeds(self) -> bool:
        return self.feed is not None and self.rpm is not None


@dataclass(frozen=True)
class ToolStatement:
    """An inline tool definition or a reference into the tool library."""
    reference: str
    diameter: Optional[float] = None
    flutes: Optional[int] = None
    tool_material: Optional[str] = None
    length: Optional[float] = None
    stickout: Optional[float] = None
    max_rpm: Optional[float] = None
    coating: Optional[str] = None
    coolant: Optional[str] = None
    line: int = 0

    @property
    def is_library_reference(self) -> bool:
        return self.diameter is None


@dataclass(frozen=True)
class SetupBlock:
    zero: Tuple[AxisRef, AxisRef, AxisRef] = ("left", "front", "top")
    material: Optional[str] = None
    z_min: Optional[float] = None
    y_limit: Optional[float] = None
    units: Units = Units.INCH
    stock: Optional[Stock] = None
    wcs: str = "G54"
    clearance: Optional[float] = None


class Operation:
    """Base of the closed set of operation variants."""
    kind: ClassVar[OperationKind]


@dataclass(frozen=True)
class Face(Operation):
    kind: ClassVar[OperationKind] = OperationKind.FACE
    depth: float
    width: Optional[float] = None
    height: Optional[float] = None
    position: PositionExpr = PositionExpr.stock()
    modifiers: Modifiers = field(default_factory=Modifiers)
    tool: Optional[ToolStatement] = None
    line: int = 0


@dataclass(frozen=True)
class Drill(Operation):
    kind: ClassVar[OperationKind] = OperationKind.DRILL
    diameter: float
    depth: DepthSpec
    position: PositionExpr = PositionExpr.zero()
    modifiers: Modifiers = field(default_factory=Modifiers)
    tool: Optional[ToolStatement] = None
    line: int = 0


@dataclass(frozen=True)
class Tap(Operation):
    """Rigid tapping; the feed follows the thread pitch."""
    kind: ClassVar[OperationKind] = OperationKind.TAP
    diameter: float
    pitch: float
    depth: DepthSpec
    position: PositionExpr = PositionExpr.zero()
    modifiers: Modifiers = field(default_factory=Modifiers)
    tool: Optional[ToolStatement] = None
    line: int = 0


@dataclass(frozen=True)
class Pocket(Operation):
    kind: ClassVar[OperationKind] = OperationKind.POCKET
    shape: Shape
    depth: float
    position: PositionExpr = PositionExpr.zero()
    modifiers: Modifiers = field(default_factory=Modifiers)
    tool: Optional[ToolStatement] = None
    line: int = 0


@dataclass(frozen=True)
class Profile(Operation):
    kind: ClassVar[OperationKind] = OperationKind.PROFILE
    side: ProfileSide
    shape: Optional[Shape] = None
    offset: float = 0.0
    position: PositionExpr = PositionExpr.zero()
    modifiers: Modifiers = field(default_factory=Modifiers)
    tool: Optional[ToolStatement] = None
    line: int = 0


@dataclass(frozen=True)
class Cut(Operation):
    kind: ClassVar[OperationKind] = OperationKind.CUT
    direction: Direction
    sweep: float
    depth: float
    height: float
    z_constraint: Optional[ZConstraint] = None
    position: PositionExpr = PositionExpr.zero()
    modifiers: Modifiers = field(default_factory=Modifiers)
    tool: Optional[ToolStatement] = None
    line: int = 0


@dataclass(frozen=True)
class Chamfer(Operation):
    kind: ClassVar[OperationKind] = OperationKind.CHAMFER
    width: float
    shape: Shape
    position: PositionExpr = PositionExpr.zero()
    modifiers: Modifiers = field(default_factory=Modifiers)
    tool: Optional[ToolStatement] = None
    line: int = 0


@dataclass(frozen=True)
class Deburr(Operation):
    """Light edge pass. A shape of None follows the previous profile."""
    kind: ClassVar[OperationKind] = OperationKind.DEBURR
    pass_depth: float
    shape: Optional[Shape] = None
    position: PositionExpr = PositionExpr.zero()
    modifiers: Modifiers = field(default_factory=Modifiers)
    tool: Optional[ToolStatement] = None
    line: int = 0


@dataclass(frozen=True)
class Program:
    setup: SetupBlock
    operations: Tuple[Operation, ...] = ()
