"""Geometry, interpolation and time sampling of trajectories."""

from __future__ import annotations

import math
from dataclasses import replace
from itertools import pairwise
from typing import List, Optional, Sequence

from trajselect.types import (
    Point,
    Pose,
    PredictedObject,
    PredictedPath,
    Quaternion,
    TrajectoryPoint,
    Vector3,
)

MAX_TTC = 10.0


def _to_ns(seconds: float) -> int:
    return round(seconds * 1e9)


def _normalize_radian(angle: float) -> float:
    return (angle + math.pi) % (2.0 * math.pi) - math.pi


def _distance2d(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def _quaternion_from_rpy(roll: float, pitch: float, yaw: float) -> Quaternion:
    cy, sy = math.cos(yaw / 2), math.sin(yaw / 2)
    cp, sp = math.cos(pitch / 2), math.sin(pitch / 2)
    cr, sr = math.cos(roll / 2), math.sin(roll / 2)
    return Quaternion(
        x=sr * cp * cy - cr * sp * sy,
        y=cr * sp * cy + sr * cp * sy,
        z=cr * cp * sy - sr * sp * cy,
        w=cr * cp * cy + sr * sp * sy,
    )


def lerp(a: float, b: float, ratio: float) -> float:
    """Linear interpolation from ``a`` to ``b``."""
    return a + ratio * (b - a)


def _lerp_point(a: Point, b: Point, ratio: float) -> Point:
    return Point(lerp(a.x, b.x, ratio), lerp(a.y, b.y, ratio), lerp(a.z, b.z, ratio))


def _is_driving_forward(src: Pose, dst: Pose) -> bool:
    direction = math.atan2(dst.position.y - src.position.y, dst.position.x - src.position.x)
    return abs(_normalize_radian(src.orientation.yaw() - direction)) < math.pi / 2.0


def _interpolate_pose(src: Pose, dst: Pose, ratio: float) -> Pose:
    position = _lerp_point(src.position, dst.position, ratio)
    forward = _is_driving_forward(src, dst)
    if (
        (forward and ratio > 1.0 - 1e-6)
        or (not forward and ratio < 1e-6)
        or _distance2d(src.position, dst.position) < 1e-3
    ):
        orientation = dst.orientation
    else:
        d2 = _distance2d(position, dst.position)
        pitch = math.atan2(dst.position.z - position.z, d2)
        yaw = math.atan2(dst.position.y - position.y, dst.position.x - position.x)
        orientation = _quaternion_from_rpy(0.0, pitch, yaw)
    return Pose(position, orientation)


def calc_interpolated_point(
    curr_pt: TrajectoryPoint,
    next_pt: TrajectoryPoint,
    ratio: float,
    use_zero_order_hold_for_twist: bool = False,
) -> TrajectoryPoint:
    """Point at ``ratio`` between two trajectory points."""
    if use_zero_order_hold_for_twist:
        lon = curr_pt.longitudinal_velocity_mps
        lat = curr_pt.lateral_velocity_mps
        acc = curr_pt.acceleration_mps2
    else:
        lon = lerp(curr_pt.longitudinal_velocity_mps, next_pt.longitudinal_velocity_mps, ratio)
        lat = lerp(curr_pt.lateral_velocity_mps, next_pt.lateral_velocity_mps, ratio)
        acc = lerp(curr_pt.acceleration_mps2, next_pt.acceleration_mps2, ratio)
    return TrajectoryPoint(
        time_from_start=lerp(curr_pt.time_from_start, next_pt.time_from_start, ratio),
        pose=_interpolate_pose(curr_pt.pose, next_pt.pose, ratio),
        longitudinal_velocity_mps=lon,
        lateral_velocity_mps=lat,
        acceleration_mps2=acc,
        heading_rate_rps=lerp(curr_pt.heading_rate_rps, next_pt.heading_rate_rps, ratio),
        front_wheel_angle_rad=lerp(
            curr_pt.front_wheel_angle_rad, next_pt.front_wheel_angle_rad, ratio
        ),
        rear_wheel_angle_rad=lerp(
            curr_pt.rear_wheel_angle_rad, next_pt.rear_wheel_angle_rad, ratio
        ),
    )


def create_trajectory_points(path: PredictedPath, velocity: Vector3) -> List[TrajectoryPoint]:
    """Trajectory points along a predicted path at constant velocity."""
    return [
        TrajectoryPoint(
            time_from_start=path.time_step * i,
            pose=pose,
            longitudinal_velocity_mps=velocity.x,
            lateral_velocity_mps=velocity.y,
        )
        for i, pose in enumerate(path.path)
    ]


def _rotate(q: Quaternion, x: float, y: float, z: float) -> tuple:
    tx = 2.0 * (q.y * z - q.z * y)
    ty = 2.0 * (q.z * x - q.x * z)
    tz = 2.0 * (q.x * y - q.y * x)
    return (
        x + q.w * tx + (q.y * tz - q.z * ty),
        y + q.w * ty + (q.z * tx - q.x * tz),
        z + q.w * tz + (q.x * ty - q.y * tx),
    )


def transform_point(point: Point, pose: Pose) -> Point:
    """Map ``point`` from the frame of ``pose`` into the world frame."""
    x, y, z = _rotate(pose.orientation, point.x, point.y, point.z)
    return Point(x + pose.position.x, y + pose.position.y, z + pose.position.z)


def get_velocity_in_world_coordinate(pose: Pose, v_local: Vector3) -> Vector3:
    """Rotate a velocity given in the frame of ``pose`` into the world frame."""
    world = transform_point(Point(v_local.x, v_local.y, v_local.z), pose)
    return Vector3(
        world.x - pose.position.x, world.y - pose.position.y, world.z - pose.position.z
    )


def point_velocity_in_world(point: TrajectoryPoint) -> Vector3:
    """World-frame velocity of a trajectory point."""
    return get_velocity_in_world_coordinate(
        point.pose, Vector3(point.longitudinal_velocity_mps, point.lateral_velocity_mps, 0.0)
    )


def object_velocity_in_world(obj: PredictedObject) -> Vector3:
    """World-frame initial velocity of a predicted object."""
    return get_velocity_in_world_coordinate(obj.initial_pose, obj.initial_twist)


def calc_extended_point(end_point: TrajectoryPoint, extension_time: float) -> TrajectoryPoint:
    """Extrapolate ``end_point`` forward by ``extension_time`` seconds."""
    new_yaw = end_point.pose.orientation.yaw() + end_point.heading_rate_rps * extension_time
    velocity = point_velocity_in_world(end_point)
    position = end_point.pose.position
    new_position = Point(
        position.x + velocity.x * extension_time,
        position.y + velocity.y * extension_time,
        position.z,
    )
    return replace(
        end_point,
        time_from_start=end_point.time_from_start + extension_time,
        pose=Pose(new_position, Quaternion.from_yaw(new_yaw)),
        longitudinal_velocity_mps=end_point.longitudinal_velocity_mps
        + end_point.acceleration_mps2 * extension_time,
    )


def time_to_collision(ego_point: TrajectoryPoint, time: float, obj: PredictedObject) -> float:
    """Time until ``ego_point`` meets ``obj`` at ``time`` seconds, capped at MAX_TTC."""
    if not obj.predicted_paths:
        return MAX_TTC
    best_path = max(obj.predicted_paths, key=lambda p: p.confidence)
    object_trajectory = create_trajectory_points(best_path, obj.initial_twist)
    idx = find_nearest_timestamp(object_trajectory, time)
    if idx is None:
        return MAX_TTC

    if not 0 <= idx < len(object_trajectory) - 1:
        object_point = object_trajectory[-1]
    else:
        t1 = _to_ns(object_trajectory[idx].time_from_start)
        t2 = _to_ns(object_trajectory[idx + 1].time_from_start)
        if t1 == t2:
            object_point = object_trajectory[idx]
        else:
            ratio = min(max((_to_ns(time) - t1) / (t2 - t1), 0.0), 1.0)
            object_point = calc_interpolated_point(
                object_trajectory[idx], object_trajectory[idx + 1], ratio, False
            )

    ego_pos = ego_point.pose.position
    obj_pos = object_point.pose.position
    dx, dy, dz = obj_pos.x - ego_pos.x, obj_pos.y - ego_pos.y, obj_pos.z - ego_pos.z
    length = math.sqrt(dx * dx + dy * dy + dz * dz)
    if length == 0.0:
        return MAX_TTC
    nx, ny, nz = dx / length, dy / length, dz / length

    ego_v = point_velocity_in_world(ego_point)
    obj_v = point_velocity_in_world(object_point)
    relative_velocity = (nx * ego_v.x + ny * ego_v.y + nz * ego_v.z) - (
        nx * obj_v.x + ny * obj_v.y + nz * obj_v.z
    )
    if relative_velocity < 1e-3:
        return MAX_TTC
    return min(MAX_TTC, length / relative_velocity)


def find_nearest_index(
    points: Sequence[TrajectoryPoint],
    pose: Pose,
    max_dist: float = math.inf,
    max_yaw: float = math.inf,
) -> Optional[int]:
    """Index of the closest point within the distance and yaw limits, or None."""
    max_sq = max_dist * max_dist
    target_yaw = pose.orientation.yaw()
    best: Optional[int] = None
    best_sq = math.inf
    for i, point in enumerate(points):
        p = point.pose.position
        sq = (p.x - pose.position.x) ** 2 + (p.y - pose.position.y) ** 2
        if sq > max_sq or sq >= best_sq:
            continue
        if abs(_normalize_radian(point.pose.orientation.yaw() - target_yaw)) > max_yaw:
            continue
        best, best_sq = i, sq
    return best


def calc_signed_arc_length(
    points: Sequence[TrajectoryPoint], src_idx: int, dst_idx: int
) -> float:
    """Planar arc length from ``src_idx`` to ``dst_idx``; negative when going back."""
    if not points:
        return 0.0
    for idx in (src_idx, dst_idx):
        if not 0 <= idx < len(points):
            raise IndexError(f"index {idx} out of range for {len(points)} points")
    if src_idx > dst_idx:
        return -calc_signed_arc_length(points, dst_idx, src_idx)
    return sum(
        _distance2d(a.pose.position, b.pose.position)
        for a, b in pairwise(points[src_idx : dst_idx + 1])
    )


def _offset_to_segment(positions: Sequence[Point], seg_idx: int, target: Point) -> float:
    front, back = positions[seg_idx], positions[seg_idx + 1]
    sx, sy = back.x - front.x, back.y - front.y
    seg_len = math.hypot(sx, sy)
    if seg_len == 0.0:
        return math.nan
    return (sx * (target.x - front.x) + sy * (target.y - front.y)) / seg_len


def _nearest_segment_index(positions: Sequence[Point], target: Point) -> int:
    nearest = min(
        range(len(positions)),
        key=lambda i: (positions[i].x - target.x) ** 2 + (positions[i].y - target.y) ** 2,
    )
    if nearest == 0:
        return 0
    if nearest == len(positions) - 1:
        return len(positions) - 2
    if _offset_to_segment(positions, nearest, target) <= 0.0:
        return nearest - 1
    return nearest


def _offset_point_from_index(
    positions: Sequence[Point], src_idx: int, offset: float
) -> Optional[Point]:
    if not positions or src_idx >= len(positions):
        return None
    if src_idx + 1 == len(positions) and offset == 0.0:
        return positions[src_idx]
    if offset < 0.0:
        reversed_positions = list(reversed(positions))
        return _offset_point_from_index(
            reversed_positions, len(positions) - src_idx - 1, -offset
        )
    dist_sum = 0.0
    for front, back in pairwise(positions[src_idx:]):
        segment = _distance2d(front, back)
        dist_sum += segment
        remaining = offset - dist_sum
        if remaining <= 0.0:
            return _lerp_point(back, front, abs(remaining / segment))
    return None


def calc_longitudinal_offset_point(
    points: Sequence[TrajectoryPoint], src_point: Point, offset: float
) -> Optional[Point]:
    """Point ``offset`` metres along the trajectory from the projection of ``src_point``.

    Returns None when the trajectory is too short or the offset runs past it.
    """
    if len(points) < 2:
        return None
    positions = [p.pose.position for p in points]
    seg_idx = _nearest_segment_index(positions, src_point)
    src_offset = _offset_to_segment(positions, seg_idx, src_point)
    if math.isnan(src_offset):
        return None
    return _offset_point_from_index(positions, seg_idx, offset + src_offset)


def sampling(
    points: Sequence[TrajectoryPoint], ego_pose: Pose, sample_num: int, resolution: float
) -> List[TrajectoryPoint]:
    """Resample the trajectory in time, starting at the point nearest to ego."""
    start = find_nearest_index(points, ego_pose, 10.0, math.pi / 2.0)
    return sampling_with_time(points, sample_num, resolution, start)


def sampling_with_time(
    points: Sequence[TrajectoryPoint],
    sample_num: int,
    resolution: float,
    start_idx: Optional[int],
) -> List[TrajectoryPoint]:
    """``sample_num`` points spaced ``resolution`` seconds apart from ``start_idx``.

    Returns an empty list when there is nothing to sample from.
    """
    if not points or start_idx is None or not 0 <= start_idx < len(points):
        return []

    start_time = points[start_idx].time_from_start
    output: List[TrajectoryPoint] = []
    for i in range(sample_num):
        elapsed = i * resolution + start_time
        index = find_nearest_timestamp(points, elapsed, start_idx)
        if index is None or not 0 <= index < len(points) - 1:
            output.append(points[-1])
            continue
        t1 = _to_ns(points[index].time_from_start)
        t2 = _to_ns(points[index + 1].time_from_start)
        if t1 == t2:
            output.append(points[index])
            continue
        ratio = min(max((_to_ns(elapsed) - t1) / (t2 - t1), 0.0), 1.0)
        output.append(calc_interpolated_point(points[index], points[index + 1], ratio, False))
    return output


def find_nearest_timestamp(
    points: Sequence[TrajectoryPoint], target_time: float, start_index: int = 1
) -> Optional[int]:
    """Index just before the first point later than ``target_time``.

    Searching starts at ``start_index``; -1 means the point at index 0 is
    already later. Returns None when no point is later. Times are compared
    at nanosecond resolution.
    """
    target = _to_ns(target_time)
    for i in range(start_index, len(points)):
        if _to_ns(points[i].time_from_start) > target:
            return i - 1
    return None