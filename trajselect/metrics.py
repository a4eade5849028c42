"""The metrics that score candidate trajectories point by point."""

from __future__ import annotations

import math
from itertools import pairwise
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from trajselect.data import Metric, TrajectoryData
from trajselect.metric_utils import steer_command, time_to_collision
from trajselect.trajectory_utils import calc_signed_arc_length
from trajselect.types import Point

_MIN_TIME_RESOLUTION = 1.0e-3


def _time_resolution(resolution: float) -> float:
    return resolution if resolution > _MIN_TIME_RESOLUTION else _MIN_TIME_RESOLUTION


def _divide(value: float, divisor: float) -> float:
    try:
        return value / divisor
    except ZeroDivisionError:
        if value == 0.0 or math.isnan(value):
            return math.nan
        return math.copysign(math.inf, value) * math.copysign(1.0, divisor)


def _capped_ratio(value: float, max_value: float) -> float:
    """``value / max_value`` capped at 1; a NaN ratio also gives 1."""
    return min(1.0, _divide(value, max_value))


class LateralAcceleration(Metric):
    """Lateral acceleration between consecutive samples, relative to ``max_value``."""

    is_deviation = True

    def evaluate(self, result: TrajectoryData, max_value: float) -> None:
        points = result.points
        if len(points) < 2:
            raise ValueError("lateral acceleration needs at least two points")
        dt = _time_resolution(self.resolution)
        metric = [
            _capped_ratio(abs((b.lateral_velocity_mps - a.lateral_velocity_mps) / dt), max_value)
            for a, b in pairwise(points)
        ]
        metric.append(metric[-1])
        result.set_metric(self.index, metric)


class LongitudinalJerk(Metric):
    """Longitudinal jerk between consecutive samples, relative to ``max_value``.

    Trajectories of fewer than two points are left untouched.
    """

    is_deviation = True

    def evaluate(self, result: TrajectoryData, max_value: float) -> None:
        points = result.points
        if len(points) < 2:
            return
        dt = _time_resolution(self.resolution)
        acceleration = [
            (b.longitudinal_velocity_mps - a.longitudinal_velocity_mps) / dt
            for a, b in pairwise(points)
        ]
        acceleration.append(acceleration[-1])
        metric = [_capped_ratio(abs((b - a) / dt), max_value) for a, b in pairwise(acceleration)]
        metric.append(metric[-1])
        result.set_metric(self.index, metric)


class TimeToCollision(Metric):
    """Time to collision with the predicted objects, relative to ``max_value``."""

    is_deviation = False

    def evaluate(self, result: TrajectoryData, max_value: float) -> None:
        points = result.points
        objects = result.objects
        metric = [
            _capped_ratio(time_to_collision(points, objects, i), max_value)
            for i in range(len(points))
        ]
        result.set_metric(self.index, metric)


class TravelDistance(Metric):
    """Distance travelled from the first sample, relative to ``max_value``."""

    is_deviation = False

    def evaluate(self, result: TrajectoryData, max_value: float) -> None:
        points = result.points
        metric = [
            _capped_ratio(calc_signed_arc_length(points, 0, i), max_value)
            for i in range(len(points))
        ]
        result.set_metric(self.index, metric)


def _polyline_length(line: Sequence[Point]) -> float:
    return sum(math.hypot(b.x - a.x, b.y - a.y) for a, b in pairwise(line))


def _project(line: Sequence[Point], p: Point) -> Tuple[float, float]:
    """Arc length and signed lateral distance (left positive) of ``p`` on ``line``."""
    if len(line) == 1:
        return 0.0, math.hypot(p.x - line[0].x, p.y - line[0].y)
    best: Optional[Tuple[float, float, float]] = None
    travelled = 0.0
    for a, b in pairwise(line):
        sx, sy = b.x - a.x, b.y - a.y
        seg_sq = sx * sx + sy * sy
        seg_len = math.sqrt(seg_sq)
        t = 0.0 if seg_sq == 0.0 else ((p.x - a.x) * sx + (p.y - a.y) * sy) / seg_sq
        t = min(max(t, 0.0), 1.0)
        dist = math.hypot(p.x - (a.x + t * sx), p.y - (a.y + t * sy))
        if best is None or dist < best[0]:
            cross = sx * (p.y - a.y) - sy * (p.x - a.x)
            best = (dist, travelled + t * seg_len, dist if cross >= 0.0 else -dist)
        travelled += seg_len
    return best[1], best[2]


def _arc_coordinates(
    lanes: Optional[Sequence[Sequence[Point]]], point: Point
) -> Tuple[float, float]:
    """Arc length along the lane sequence and lateral distance to the closest lane.

    The closest lane is the one whose centre line lies nearest to ``point``.
    Without lanes both coordinates are 0.
    """
    candidates: List[Tuple[float, Sequence[Point]]] = []
    offset = 0.0
    for lane in lanes or ():
        if not lane:
            continue
        candidates.append((offset, lane))
        offset += _polyline_length(lane)
    if not candidates:
        return 0.0, 0.0
    projections = [(start, _project(lane, point)) for start, lane in candidates]
    start, (length, distance) = min(projections, key=lambda item: abs(item[1][1]))
    return start + length, distance


class LateralDeviation(Metric):
    """Lateral distance from the preferred lanes, relative to ``max_value``."""

    is_deviation = True

    def evaluate(self, result: TrajectoryData, max_value: float) -> None:
        lanes = result.preferred_lanes
        metric = [
            _capped_ratio(abs(_arc_coordinates(lanes, p.pose.position)[1]), max_value)
            for p in result.points
        ]
        result.set_metric(self.index, metric)


class TrajectoryDeviation(Metric):
    """Squared planar distance to the previously chosen trajectory, capped at ``max_value``.

    Nothing is computed when there is no previous trajectory.
    """

    is_deviation = True

    def evaluate(self, result: TrajectoryData, max_value: float) -> None:
        previous = result.previous
        if previous is None:
            return
        metric = []
        for i, point in enumerate(result.points):
            p1 = point.pose.position
            p2 = previous[i].pose.position
            metric.append(min(max_value, (p1.x - p2.x) ** 2 + (p1.y - p2.y) ** 2))
        result.set_metric(self.index, metric)


class SteeringConsistency(Metric):
    """Change in pure-pursuit steering against the previous trajectory.

    Nothing is computed when there is no previous trajectory.
    """

    is_deviation = True

    def evaluate(self, result: TrajectoryData, max_value: float) -> None:
        previous = result.previous
        if previous is None:
            return
        if self.vehicle_info is None:
            raise ValueError("steering consistency needs vehicle information")
        wheel_base = self.vehicle_info.wheel_base_m
        points = result.points
        metric = [
            _capped_ratio(
                abs(
                    steer_command(points, p.pose, wheel_base)
                    - steer_command(previous, p.pose, wheel_base)
                ),
                max_value,
            )
            for p in points
        ]
        result.set_metric(self.index, metric)


def default_registry() -> Dict[str, Callable[[], Metric]]:
    """Every built-in metric, keyed by its name."""
    classes = (
        LateralAcceleration,
        LongitudinalJerk,
        TimeToCollision,
        TravelDistance,
        LateralDeviation,
        TrajectoryDeviation,
        SteeringConsistency,
    )
    return {cls.__name__: cls for cls in classes}