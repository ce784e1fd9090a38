"""
Toolpath geometry measurements.
Walks canonical moves to compute path lengths, bounding box and cycle time.
"""
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Any
from swarf.core.canonical import Move, MoveKind
from swarf.utils.geometry import arc_extent, arc_sweep


@dataclass
class Point3D:
    """Represents a 3D point."""
    x: float
    y: float
    z: float

    def to_list(self) -> List[float]:
        """Convert to list format."""
        return [self.x, self.y, self.z]

    def distance_to(self, other: 'Point3D') -> float:
        """Calculate distance to another point."""
        dx = self.x - other.x
        dy = self.y - other.y
        dz = self.z - other.z
        return math.sqrt(dx*dx + dy*dy + dz*dz)


def move_length(start: Point3D, move: Move) -> float:
    """Length of a move starting from start."""
    end = Point3D(move.x, move.y, move.z)
    if move.is_stationary:
        return 0.0
    if move.is_arc and move.center is not None:
        cx, cy = move.center
        radius = math.hypot(start.x - cx, start.y - cy)
        sweep = arc_sweep((start.x, start.y), (move.x, move.y), move.center,
                          clockwise=move.kind == MoveKind.ARC_CW)
        planar = radius * sweep
        return math.hypot(planar, end.z - start.z)
    return start.distance_to(end)


@dataclass
class ToolpathStats:
    """Accumulated toolpath statistics."""
    rapid_length: float = 0.0
    feed_length: float = 0.0
    cycle_time: float = 0.0
    segment_counts: Dict[str, int] = field(default_factory=dict)
    min_point: Optional[Point3D] = None
    max_point: Optional[Point3D] = None

    @property
    def total_length(self) -> float:
        return self.rapid_length + self.feed_length

    @property
    def bounding_box(self) -> Tuple[List[float], List[float]]:
        if self.min_point is None:
            return [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]
        return self.min_point.to_list(), self.max_point.to_list()

    def to_dict(self) -> Dict[str, Any]:
        min_point, max_point = self.bounding_box
        return {
            'total_length': self.total_length,
            'rapid_length': self.rapid_length,
            'feed_length': self.feed_length,
            'cycle_time_min': self.cycle_time,
            'segments': dict(self.segment_counts),
            'bounding_box': {
                'min': min_point,
                'max': max_point,
                'size': [max_point[i] - min_point[i] for i in range(3)],
            },
        }


def measure(moves: Iterable[Move], start: Optional[Point3D] = None,
            rapid_rate: Optional[float] = None) -> ToolpathStats:
    """
    Measure a move sequence.

    Args:
        moves: Canonical moves in program order
        start: Position before the first move; defaults to the first target
        rapid_rate: Rapid traverse rate for the cycle time estimate

    Returns:
        ToolpathStats for the sequence
    """
    stats = ToolpathStats()
    position = start
    for move in moves:
        stats.segment_counts[move.kind.value] = stats.segment_counts.get(move.kind.value, 0) + 1
        if move.kind == MoveKind.DWELL:
            stats.cycle_time += (move.dwell or 0.0) / 60.0
            continue
        if move.is_stationary:
            continue
        target = Point3D(move.x, move.y, move.z)
        if position is None:
            position = target
        length = move_length(position, move)
        if move.kind == MoveKind.RAPID:
            stats.rapid_length += length
            if rapid_rate:
                stats.cycle_time += length / rapid_rate
        else:
            stats.feed_length += length
            if move.feed:
                stats.cycle_time += length / move.feed
        _extend_bounds(stats, target)
        if move.is_arc and move.center is not None:
            x0, y0, x1, y1 = arc_extent((position.x, position.y), (move.x, move.y), move.center,
                                        clockwise=move.kind == MoveKind.ARC_CW)
            _extend_bounds(stats, Point3D(x0, y0, move.z))
            _extend_bounds(stats, Point3D(x1, y1, move.z))
        position = target
    return stats


def _extend_bounds(stats: ToolpathStats, point: Point3D):
    if stats.min_point is None:
        stats.min_point = Point3D(point.x, point.y, point.z)
        stats.max_point = Point3D(point.x, point.y, point.z)
        return
    stats.min_point = Point3D(min(stats.min_point.x, point.x),
                              min(stats.min_point.y, point.y),
                              min(stats.min_point.z, point.z))
    stats.max_point = Point3D(max(stats.max_point.x, point.x),
                              max(stats.max_point.y, point.y),
                              max(stats.max_point.z, point.z))
