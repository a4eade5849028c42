"""Plain data types shared by the trajectory selection pipeline.

Times are seconds as floats, distances metres, angles radians.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class Point:
    """A position in space."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass(frozen=True)
class Vector3:
    """A free vector, e.g. a velocity."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass(frozen=True)
class Quaternion:
    """A rotation; the default is the identity."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0

    @staticmethod
    def from_yaw(yaw: float) -> "Quaternion":
        """Rotation about the z axis by ``yaw``."""
        half = yaw / 2.0
        return Quaternion(0.0, 0.0, math.sin(half), math.cos(half))

    def yaw(self) -> float:
        """Rotation about the z axis, in (-pi, pi]."""
        sqx, sqy, sqz, sqw = self.x**2, self.y**2, self.z**2, self.w**2
        norm = sqx + sqy + sqz + sqw
        sarg = -2.0 * (self.x * self.z - self.w * self.y) / norm if norm else 0.0
        if sarg <= -0.99999:
            return -2.0 * math.atan2(self.y, self.x)
        if sarg >= 0.99999:
            return 2.0 * math.atan2(self.y, self.x)
        return math.atan2(2.0 * (self.x * self.y + self.w * self.z), sqw + sqx - sqy - sqz)


@dataclass(frozen=True)
class Pose:
    """Position and orientation."""

    position: Point = field(default_factory=Point)
    orientation: Quaternion = field(default_factory=Quaternion)


@dataclass(frozen=True)
class TrajectoryPoint:
    """One point of a planned trajectory."""

    time_from_start: float = 0.0
    pose: Pose = field(default_factory=Pose)
    longitudinal_velocity_mps: float = 0.0
    lateral_velocity_mps: float = 0.0
    acceleration_mps2: float = 0.0
    heading_rate_rps: float = 0.0
    front_wheel_angle_rad: float = 0.0
    rear_wheel_angle_rad: float = 0.0


@dataclass
class PredictedPath:
    """A predicted sequence of poses spaced by ``time_step`` seconds."""

    path: List[Pose] = field(default_factory=list)
    time_step: float = 0.0
    confidence: float = 0.0


@dataclass
class PredictedObject:
    """A perceived object with its predicted paths.

    ``dimensions`` is the size of its bounding box (length, width, height).
    """

    initial_pose: Pose = field(default_factory=Pose)
    initial_twist: Vector3 = field(default_factory=Vector3)
    predicted_paths: List[PredictedPath] = field(default_factory=list)
    dimensions: Vector3 = field(default_factory=Vector3)


@dataclass
class PredictedObjects:
    """All objects perceived at one instant."""

    objects: List[PredictedObject] = field(default_factory=list)


@dataclass(frozen=True)
class VehicleInfo:
    """Vehicle dimensions used by the metrics."""

    wheel_base_m: float = 0.0
    max_longitudinal_offset_m: float = 0.0
    rear_overhang_m: float = 0.0
    vehicle_width_m: float = 0.0


@dataclass(frozen=True)
class GeneratorInfo:
    """Identity of a trajectory generator."""

    generator_id: str = ""
    generator_name: str = ""


@dataclass
class Trajectory:
    """A candidate trajectory with the score given to it."""

    generator_id: str = ""
    points: List[TrajectoryPoint] = field(default_factory=list)
    score: float = 0.0
    frame_id: str = ""
    stamp: float = 0.0


@dataclass
class Trajectories:
    """A set of candidate trajectories and the generators behind them."""

    trajectories: List[Trajectory] = field(default_factory=list)
    generator_info: List[GeneratorInfo] = field(default_factory=list)


@dataclass
class EvaluatorParameters:
    """Weights and limits used to score candidates."""

    sample_num: int
    resolution: float = 0.0
    time_decay_weight: List[List[float]] = field(default_factory=list)
    score_weight: List[float] = field(default_factory=list)
    metrics_max_value: List[float] = field(default_factory=list)

    @staticmethod
    def create(metrics_num: int, sample_num: int) -> "EvaluatorParameters":
        """Zero-filled parameters sized for ``metrics_num`` metrics."""
        return EvaluatorParameters(
            sample_num=sample_num,
            time_decay_weight=[[0.0] * sample_num for _ in range(metrics_num)],
            score_weight=[0.0] * metrics_num,
            metrics_max_value=[0.0] * metrics_num,
        )


@dataclass
class CoreData:
    """Inputs needed to evaluate one candidate trajectory.

    ``original`` defaults to ``points`` when not given. ``preferred_lanes``
    holds the centre line of each preferred lane.
    """

    points: List[TrajectoryPoint]
    original: Optional[List[TrajectoryPoint]] = None
    previous_points: Optional[List[TrajectoryPoint]] = None
    objects: Optional[PredictedObjects] = None
    preferred_lanes: Optional[Sequence[Sequence[Point]]] = None
    tag: str = "__anon"
    frame_id: str = ""
    stamp: float = 0.0
    generator_id: str = ""
    steering: Optional[float] = None

    def __post_init__(self) -> None:
        if self.original is None:
            self.original = self.points