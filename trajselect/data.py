"""Per-candidate evaluation state and the metric base class."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from typing import ClassVar, List, Optional, Sequence

from trajselect.types import CoreData, Point, PredictedObjects, TrajectoryPoint, VehicleInfo

_EPSILON = sys.float_info.epsilon


class TrajectoryData:
    """One candidate trajectory together with its metrics and scores.

    ``metrics_num`` metric rows are kept, each as long as the sampled
    trajectory; every metric is compressed into one score, and the scores are
    weighted into ``total``.
    """

    def __init__(self, core_data: CoreData, metrics_num: int) -> None:
        self._core = core_data
        size = len(core_data.points)
        self._metrics: List[List[float]] = [[0.0] * size for _ in range(metrics_num)]
        self._scores: List[float] = [0.0] * metrics_num
        self.total: float = 0.0

    def compress(self, weight: Sequence[Sequence[float]]) -> None:
        """Reduce each metric row to a score by a weighted sum over time."""
        self._scores = [
            sum(w * m for w, m in zip(weight[i], metric))
            for i, metric in enumerate(self._metrics)
        ]

    def normalize(
        self, min_value: float, max_value: float, index: int, flip: bool = False
    ) -> None:
        """Map score ``index`` from [min_value, max_value] onto [0, 1].

        With ``flip`` a low score maps to 1. A degenerate range gives 1.
        """
        span = max_value - min_value
        if abs(span) < _EPSILON:
            self._scores[index] = 1.0
        elif flip:
            self._scores[index] = (max_value - self._scores[index]) / span
        else:
            self._scores[index] = (self._scores[index] - min_value) / span

    def weighting(self, weight: Sequence[float]) -> None:
        """Set ``total`` to the weighted sum of the scores."""
        self.total = sum(w * s for w, s in zip(weight, self._scores))

    def feasible(self) -> bool:
        """True when the trajectory is non-empty and never drives backwards."""
        points = self._core.points
        if not points:
            return False
        return all(p.longitudinal_velocity_mps >= -1e-6 for p in points)

    def set_metric(self, index: int, metric: Sequence[float]) -> None:
        """Replace metric row ``index``."""
        self._metrics[index] = list(metric)

    def metric(self, index: int) -> List[float]:
        """Metric row ``index``."""
        return list(self._metrics[index])

    def score(self, index: int) -> float:
        """Score of metric ``index``."""
        return self._scores[index]

    @property
    def points(self) -> List[TrajectoryPoint]:
        return self._core.points

    @property
    def previous(self) -> Optional[List[TrajectoryPoint]]:
        return self._core.previous_points

    @property
    def original(self) -> List[TrajectoryPoint]:
        return self._core.original

    @property
    def objects(self) -> Optional[PredictedObjects]:
        return self._core.objects

    @property
    def steering(self) -> Optional[float]:
        return self._core.steering

    @property
    def preferred_lanes(self) -> Optional[Sequence[Sequence[Point]]]:
        return self._core.preferred_lanes

    @property
    def frame_id(self) -> str:
        return self._core.frame_id

    @property
    def stamp(self) -> float:
        return self._core.stamp

    @property
    def uuid(self) -> str:
        return self._core.generator_id

    @property
    def tag(self) -> str:
        return self._core.tag


class Metric(ABC):
    """A measure evaluated over every point of a candidate trajectory.

    Subclasses set ``is_deviation`` to True when a smaller value is better.
    """

    is_deviation: ClassVar[bool] = False

    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name if name is not None else type(self).__name__
        self.index = 0
        self.vehicle_info: Optional[VehicleInfo] = None
        self.resolution = 0.0

    def configure(self, vehicle_info: Optional[VehicleInfo], resolution: float) -> None:
        """Set the vehicle dimensions and the time resolution of samples."""
        self.vehicle_info = vehicle_info
        self.resolution = resolution

    @abstractmethod
    def evaluate(self, result: TrajectoryData, max_value: float) -> None:
        """Compute this metric for ``result`` and store it there."""