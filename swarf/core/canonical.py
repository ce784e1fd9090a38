"""
Defines the canonical machining program.

Codegen turns every operation into a ToolActivation: a resolved tool,
its cutting parameters and an ordered tuple of Moves. The resulting
CanonicalProgram is the single artifact the validator inspects and every
dialect renders. Nothing downstream of codegen changes move geometry.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterator, List, Optional, Tuple
from swarf.blackbook.calculations import CuttingParameters
from swarf.core.program import OperationKind
from swarf.tooling.library import ToolSpec
from swarf.utils.errors import Diagnostic
from swarf.utils.units import Units


class MoveKind(Enum):
    RAPID = "rapid"
    LINEAR = "linear"
    ARC_CW = "arc_cw"
    ARC_CCW = "arc_ccw"
    DWELL = "dwell"
    SPINDLE_REVERSE = "spindle_reverse"
    SPINDLE_FORWARD = "spindle_forward"


class MovePhase(Enum):
    APPROACH = "approach"
    CUT = "cut"
    RETRACT = "retract"


@dataclass(frozen=True)
class Move:
    """
    One canonical motion. Coordinates are absolute program coordinates.

    Arcs carry an absolute XY center; dwells keep the current position
    and carry their duration in seconds. Spindle moves keep the current
    position and only change the spindle direction.
    """
    kind: MoveKind
    x: float
    y: float
    z: float
    feed: Optional[float] = None
    center: Optional[Tuple[float, float]] = None
    dwell: Optional[float] = None
    phase: MovePhase = MovePhase.CUT

    @property
    def target(self) -> Tuple[float, float, float]:
        return self.x, self.y, self.z

    @property
    def is_arc(self) -> bool:
        return self.kind in (MoveKind.ARC_CW, MoveKind.ARC_CCW)

    @property
    def is_feed(self) -> bool:
        return self.kind in (MoveKind.LINEAR, MoveKind.ARC_CW, MoveKind.ARC_CCW)

    @property
    def is_stationary(self) -> bool:
        return self.kind in (MoveKind.DWELL, MoveKind.SPINDLE_REVERSE, MoveKind.SPINDLE_FORWARD)


@dataclass(frozen=True)
class ToolActivation:
    """One tool doing one operation."""
    tool: ToolSpec
    params: CuttingParameters
    moves: Tuple[Move, ...]
    operation: OperationKind
    operation_index: int
    label: str = ""
    cut_depth: float = 0.0
    line: int = 0

    def cutting_moves(self) -> Iterator[Move]:
        return (m for m in self.moves if m.phase == MovePhase.CUT)

    @property
    def lowest_z(self) -> float:
        return min((m.z for m in self.moves if not m.is_stationary), default=0.0)


@dataclass(frozen=True)
class CanonicalProgram:
    activations: Tuple[ToolActivation, ...]
    units: Units = Units.INCH
    wcs: str = "G54"
    material: Optional[str] = None
    clearance: float = 0.25
    stock_top: float = 0.0
    z_min: Optional[float] = None
    y_limit: Optional[float] = None
    diagnostics: Tuple[Diagnostic, ...] = field(default_factory=tuple)

    def all_moves(self) -> Iterator[Move]:
        for activation in self.activations:
            yield from activation.moves

    def tools(self) -> List[ToolSpec]:
        """Distinct tools in first-use order."""
        seen = {}
        for activation in self.activations:
            seen.setdefault(activation.tool.tool_id, activation.tool)
        return list(seen.values())

    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if not d.is_error]

    def with_diagnostics(self, diagnostics: List[Diagnostic]) -> "CanonicalProgram":
        """Copy with diagnostics attached; geometry is shared, not copied."""
        return replace(self, diagnostics=tuple(diagnostics))
