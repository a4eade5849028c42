"""Ranking of candidate trajectories by their weighted metric scores."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Optional, Sequence

from trajselect.data import Metric, TrajectoryData
from trajselect.evaluation import EvaluationInfo, Evaluator
from trajselect.metrics import default_registry
from trajselect.trajectory_utils import sampling
from trajselect.types import (
    CoreData,
    EvaluatorParameters,
    GeneratorInfo,
    Point,
    Pose,
    PredictedObjects,
    Trajectories,
    Trajectory,
    TrajectoryPoint,
    VehicleInfo,
)

logger = logging.getLogger(__name__)

NOT_FOUND = "NOT FOUND"


def generator_name(uuid: str, generator_info: Sequence[GeneratorInfo]) -> str:
    """Name of the generator with id ``uuid``, or ``"NOT FOUND"``."""
    return next(
        (info.generator_name for info in generator_info if info.generator_id == uuid),
        NOT_FOUND,
    )


@dataclass
class RankerParameters:
    """Configuration of the ranker.

    ``metric_names`` lists the metrics to load; the metric at position ``i``
    uses ``metrics_maximum[i]``, ``score_weight[i]`` and
    ``time_decay_weight[i]``.
    """

    metric_names: List[str]
    metrics_maximum: List[float]
    score_weight: List[float]
    time_decay_weight: List[List[float]]
    resolution: float
    sample_num: int

    def evaluator_parameters(self) -> EvaluatorParameters:
        """Parameters for the evaluator, sized for the configured metrics.

        Raises IndexError when more time decay rows are given than metrics.
        """
        params = EvaluatorParameters.create(len(self.metric_names), self.sample_num)
        params.resolution = self.resolution
        params.score_weight = list(self.score_weight)
        for i, row in enumerate(self.time_decay_weight):
            params.time_decay_weight[i] = list(row)
        params.metrics_max_value = list(self.metrics_maximum)
        return params


@dataclass
class RankingResult:
    """Everything one ranking step produces."""

    trajectories: Trajectories
    resampled: Trajectories
    debug: List[EvaluationInfo] = field(default_factory=list)
    summary: Optional[str] = None


def _build(
    results: Sequence[TrajectoryData],
    generator_info: Sequence[GeneratorInfo],
    resampled: bool,
) -> Trajectories:
    return Trajectories(
        trajectories=[
            Trajectory(
                generator_id=result.uuid,
                points=list(result.points if resampled else result.original),
                score=result.total,
                frame_id=result.frame_id,
                stamp=result.stamp,
            )
            for result in results
        ],
        generator_info=list(generator_info),
    )


class TrajectoryRanker:
    """Scores candidate trajectories and orders them best first.

    The ranker only scores once preferred lanes have been given; until then,
    or without an ego pose or objects, the candidates pass through unchanged.
    """

    def __init__(
        self,
        parameters: RankerParameters,
        vehicle_info: Optional[VehicleInfo] = None,
        registry: Optional[Mapping[str, Callable[[], Metric]]] = None,
    ) -> None:
        self.parameters = parameters
        self.evaluator = Evaluator(
            registry if registry is not None else default_registry(), vehicle_info
        )
        for index, name in enumerate(parameters.metric_names):
            self.evaluator.load_metric(name, index, parameters.resolution)
        self._preferred_lanes: Optional[List[List[Point]]] = None
        self.previous_points: Optional[List[TrajectoryPoint]] = None
        self._debug: List[EvaluationInfo] = []
        self._summary: Optional[str] = None

    @property
    def ready(self) -> bool:
        """True once preferred lanes are known."""
        return self._preferred_lanes is not None

    def set_preferred_lanes(self, lanes: Sequence[Sequence[Point]]) -> None:
        """Set the centre lines of the preferred lanes along the route."""
        self._preferred_lanes = [list(lane) for lane in lanes]

    def score(
        self,
        trajectories: Trajectories,
        ego_pose: Optional[Pose],
        objects: Optional[PredictedObjects],
    ) -> Trajectories:
        """Candidates with their scores, best first, infeasible ones dropped."""
        self._debug = []
        self._summary = None
        if self._preferred_lanes is None or ego_pose is None or objects is None:
            return trajectories

        self.evaluator.clear()
        params = self.parameters.evaluator_parameters()

        for candidate in trajectories.trajectories:
            points = sampling(candidate.points, ego_pose, params.sample_num, params.resolution)
            self.evaluator.add(
                CoreData(
                    points=points,
                    original=list(candidate.points),
                    previous_points=self.previous_points,
                    objects=objects,
                    preferred_lanes=self._preferred_lanes,
                    frame_id=candidate.frame_id,
                    stamp=candidate.stamp,
                    generator_id=candidate.generator_id,
                )
            )

        best_data = self.evaluator.best(params)
        self.previous_points = None if best_data is None else best_data.points

        self._summary = self.evaluator.summary()
        self._debug = self.evaluator.score_debug(params)

        return _build(self.evaluator.results, trajectories.generator_info, resampled=False)

    def process(
        self,
        trajectories: Trajectories,
        ego_pose: Optional[Pose],
        objects: Optional[PredictedObjects],
    ) -> RankingResult:
        """Score the candidates and also return their resampled forms."""
        scored = self.score(trajectories, ego_pose, objects)
        resampled = _build(self.evaluator.results, trajectories.generator_info, resampled=True)
        return RankingResult(
            trajectories=scored,
            resampled=resampled,
            debug=list(self._debug),
            summary=self._summary,
        )