"""Helpers behind the trajectory metrics: curvature, steering and collision times."""

from __future__ import annotations

import math
from typing import List, Sequence

from shapely.geometry import Polygon

from trajselect import trajectory_utils
from trajselect.trajectory_utils import calc_longitudinal_offset_point, transform_point
from trajselect.types import (
    Point,
    Pose,
    PredictedObjects,
    TrajectoryPoint,
    Vector3,
    VehicleInfo,
)

RADIUS_MAX = 1e9
KAPPA_MAX = 1e9
LOOKAHEAD_DISTANCE = 10.0
MAX_TTC = trajectory_utils.MAX_TTC
FOOTPRINT_HORIZON = 20
NO_COLLISION_TIME = 10000.0
COLLISION_TIME_STEP = 0.5


def to_relative_coordinate_2d(point: Point, origin: Pose) -> Point:
    """Express ``point`` in the planar frame of ``origin``; z is the origin's z."""
    dx = point.x - origin.position.x
    dy = point.y - origin.position.y
    yaw = origin.orientation.yaw()
    c, s = math.cos(yaw), math.sin(yaw)
    return Point(c * dx + s * dy, -s * dx + c * dy, origin.position.z)


def calc_radius(target: Point, current_pose: Pose) -> float:
    """Radius of the circle tangent to ``current_pose`` that passes through ``target``.

    Returns RADIUS_MAX when the target lies straight ahead or behind.
    """
    denominator = 2.0 * to_relative_coordinate_2d(target, current_pose).y
    position = current_pose.position
    numerator = (target.x - position.x) ** 2 + (target.y - position.y) ** 2
    if abs(denominator) > 0.0:
        return numerator / denominator
    return RADIUS_MAX


def curvature(target: Point, current_pose: Pose) -> float:
    """Signed curvature of the arc from ``current_pose`` to ``target``."""
    radius = calc_radius(target, current_pose)
    if abs(radius) > 0.0:
        return 1.0 / radius
    return KAPPA_MAX


def pure_pursuit(points: Sequence[TrajectoryPoint], ego_pose: Pose) -> float:
    """Pure-pursuit curvature towards the point LOOKAHEAD_DISTANCE ahead on ``points``.

    The last point is the target when the trajectory is shorter than that.
    """
    target = calc_longitudinal_offset_point(points, ego_pose.position, LOOKAHEAD_DISTANCE)
    if target is None:
        target = points[-1].pose.position
    return curvature(target, ego_pose)


def time_to_collision(
    points: Sequence[TrajectoryPoint], objects: PredictedObjects | None, idx: int
) -> float:
    """Smallest time to collision of point ``idx`` over all objects, at most MAX_TTC."""
    if objects is None or not objects.objects:
        return MAX_TTC
    point = points[idx]
    return min(
        trajectory_utils.time_to_collision(point, point.time_from_start, obj)
        for obj in objects.objects
    )


def _polygon(pose: Pose, corners: Sequence[Point]) -> Polygon:
    return Polygon([(p.x, p.y) for p in (transform_point(c, pose) for c in corners)])


def _ego_footprint(pose: Pose, base_to_front: float, base_to_rear: float, width: float) -> Polygon:
    half = width / 2.0
    return _polygon(
        pose,
        [
            Point(base_to_front, half),
            Point(base_to_front, -half),
            Point(-base_to_rear, -half),
            Point(-base_to_rear, half),
        ],
    )


def _object_polygon(pose: Pose, dimensions: Vector3) -> Polygon:
    half_length, half_width = dimensions.x / 2.0, dimensions.y / 2.0
    return _polygon(
        pose,
        [
            Point(half_length, half_width),
            Point(half_length, -half_width),
            Point(-half_length, -half_width),
            Point(-half_length, half_width),
        ],
    )


def footprint_collision_times(
    points: Sequence[TrajectoryPoint],
    objects: PredictedObjects,
    vehicle_info: VehicleInfo,
) -> List[float]:
    """Collision times from footprint overlap over the first FOOTPRINT_HORIZON points.

    Each object follows its most confident path, one pose per point. At the
    first overlap, at point ``i``, point ``k`` gets ``(i - 1 - k) * 0.5`` for
    ``k < i`` and 0 from ``i`` on. Without overlap, or without objects, the
    result is FOOTPRINT_HORIZON copies of NO_COLLISION_TIME.
    """
    if not objects.objects:
        return [NO_COLLISION_TIME] * FOOTPRINT_HORIZON

    front = vehicle_info.max_longitudinal_offset_m
    rear = vehicle_info.rear_overhang_m
    width = vehicle_info.vehicle_width_m

    for i in range(FOOTPRINT_HORIZON):
        ego_polygon = _ego_footprint(points[i].pose, front, rear, width)
        for obj in objects.objects:
            if not obj.predicted_paths:
                continue
            best_path = max(obj.predicted_paths, key=lambda p: p.confidence)
            if len(best_path.path) < i + 1:
                continue
            object_polygon = _object_polygon(best_path.path[i], obj.dimensions)
            if ego_polygon.intersects(object_polygon):
                return [
                    (i - 1 - k) * COLLISION_TIME_STEP if k < i else 0.0
                    for k in range(len(points))
                ]

    return [NO_COLLISION_TIME] * FOOTPRINT_HORIZON


def steer_command(
    points: Sequence[TrajectoryPoint], ego_pose: Pose, wheel_base: float
) -> float:
    """Steering angle that pure pursuit on ``points`` commands from ``ego_pose``."""
    return math.atan(wheel_base * pure_pursuit(points, ego_pose))