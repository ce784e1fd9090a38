"""
Planar geometry helpers for toolpath generation.
Contours are chains of line and arc segments in the XY plane.
"""
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

TINY = 1e-9

Point2D = Tuple[float, float]


@dataclass(frozen=True)
class PathSegment:
    """A line or arc ending at end; arcs carry an absolute center."""
    end: Point2D
    center: Optional[Point2D] = None
    clockwise: bool = False

    @property
    def is_arc(self) -> bool:
        return self.center is not None


@dataclass
class Contour:
    start: Point2D
    segments: List[PathSegment] = field(default_factory=list)

    def line_to(self, x: float, y: float) -> "Contour":
        self.segments.append(PathSegment((x, y)))
        return self

    def arc_to(self, x: float, y: float, cx: float, cy: float, clockwise: bool) -> "Contour":
        self.segments.append(PathSegment((x, y), (cx, cy), clockwise))
        return self

    def extent(self) -> Tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y) including arc bulges."""
        min_x = max_x = self.start[0]
        min_y = max_y = self.start[1]
        current = self.start
        for segment in self.segments:
            if segment.is_arc:
                x0, y0, x1, y1 = arc_extent(current, segment.end, segment.center, segment.clockwise)
            else:
                x0, x1 = sorted((current[0], segment.end[0]))
                y0, y1 = sorted((current[1], segment.end[1]))
            min_x, min_y = min(min_x, x0), min(min_y, y0)
            max_x, max_y = max(max_x, x1), max(max_y, y1)
            current = segment.end
        return min_x, min_y, max_x, max_y


def arc_sweep(start: Point2D, end: Point2D, center: Point2D, clockwise: bool) -> float:
    """Swept angle in radians, in (0, 2*pi]. Coincident ends mean a full circle."""
    a0 = math.atan2(start[1] - center[1], start[0] - center[0])
    a1 = math.atan2(end[1] - center[1], end[0] - center[0])
    sweep = (a0 - a1) if clockwise else (a1 - a0)
    sweep %= 2 * math.pi
    if sweep < TINY:
        sweep = 2 * math.pi
    return sweep


def arc_extent(start: Point2D, end: Point2D, center: Point2D,
               clockwise: bool) -> Tuple[float, float, float, float]:
    """Exact XY bounds of an arc."""
    radius = math.hypot(start[0] - center[0], start[1] - center[1])
    xs = [start[0], end[0]]
    ys = [start[1], end[1]]
    a0 = math.atan2(start[1] - center[1], start[0] - center[0])
    sweep = arc_sweep(start, end, center, clockwise)
    direction = -1.0 if clockwise else 1.0
    for quadrant in range(4):
        angle = quadrant * math.pi / 2
        # Angle travelled from start to reach this cardinal direction
        travelled = ((angle - a0) * direction) % (2 * math.pi)
        if travelled <= sweep + TINY:
            xs.append(center[0] + radius * math.cos(angle))
            ys.append(center[1] + radius * math.sin(angle))
    return min(xs), min(ys), max(xs), max(ys)


def rect_contour(x0: float, y0: float, x1: float, y1: float, clockwise: bool) -> Contour:
    """Closed rectangle starting and ending at the lower-left corner."""
    contour = Contour((x0, y0))
    if clockwise:
        contour.line_to(x0, y1).line_to(x1, y1).line_to(x1, y0).line_to(x0, y0)
    else:
        contour.line_to(x1, y0).line_to(x1, y1).line_to(x0, y1).line_to(x0, y0)
    return contour


def rounded_rect_contour(x0: float, y0: float, x1: float, y1: float,
                         radius: float, clockwise: bool) -> Contour:
    """
    Rectangle grown outward by radius with arcs around each corner.

    This is the path of a tool center following the outside of the
    rectangle at a constant distance. Starts on the left edge at y0.
    """
    if radius <= TINY:
        return rect_contour(x0, y0, x1, y1, clockwise)
    r = radius
    contour = Contour((x0 - r, y0))
    if clockwise:
        contour.line_to(x0 - r, y1)
        contour.arc_to(x0, y1 + r, x0, y1, True)
        contour.line_to(x1, y1 + r)
        contour.arc_to(x1 + r, y1, x1, y1, True)
        contour.line_to(x1 + r, y0)
        contour.arc_to(x1, y0 - r, x1, y0, True)
        contour.line_to(x0, y0 - r)
        contour.arc_to(x0 - r, y0, x0, y0, True)
    else:
        contour.arc_to(x0, y0 - r, x0, y0, False)
        contour.line_to(x1, y0 - r)
        contour.arc_to(x1 + r, y0, x1, y0, False)
        contour.line_to(x1 + r, y1)
        contour.arc_to(x1, y1 + r, x1, y1, False)
        contour.line_to(x0, y1 + r)
        contour.arc_to(x0 - r, y1, x0, y1, False)
        contour.line_to(x0 - r, y0)
    return contour


def circle_contour(cx: float, cy: float, radius: float, clockwise: bool) -> Contour:
    """Full circle as one arc, starting at the +X side."""
    start = (cx + radius, cy)
    return Contour(start, [PathSegment(start, (cx, cy), clockwise)])


def stepped_levels(total: float, step: float) -> List[float]:
    """
    Cumulative depths to reach total in steps no larger than step.

    stepped_levels(0.25, 0.1) -> [0.1, 0.2, 0.25]
    """
    if total <= 0:
        return []
    count = max(1, math.ceil(total / step - TINY))
    levels = [min(step * (i + 1), total) for i in range(count)]
    levels[-1] = total
    return levels


def spaced_positions(low: float, high: float, step: float) -> List[float]:
    """Positions from low to high inclusive, at most step apart."""
    if high - low <= TINY:
        return [low]
    count = max(1, math.ceil((high - low) / step - TINY))
    return [low + (high - low) * i / count for i in range(count + 1)]
