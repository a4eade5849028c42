import pytest

from trajselect.ranker import (
    RankerParameters,
    RankingResult,
    TrajectoryRanker,
    generator_name,
)
from trajselect.types import (
    GeneratorInfo,
    Point,
    Pose,
    PredictedObjects,
    Trajectories,
    Trajectory,
    TrajectoryPoint,
)

SAMPLE_NUM = 5
RESOLUTION = 0.5


def _straight(velocity, n=21):
    return [
        TrajectoryPoint(
            time_from_start=0.5 * i,
            pose=Pose(position=Point(velocity * 0.5 * i, 0.0, 0.0)),
            longitudinal_velocity_mps=velocity,
        )
        for i in range(n)
    ]


def _params(names=("TravelDistance",)):
    count = len(names)
    return RankerParameters(
        metric_names=list(names),
        metrics_maximum=[100.0] * count,
        score_weight=[1.0] * count,
        time_decay_weight=[[1.0] * SAMPLE_NUM for _ in range(count)],
        resolution=RESOLUTION,
        sample_num=SAMPLE_NUM,
    )


def _candidates():
    return Trajectories(
        trajectories=[
            Trajectory(generator_id="slow", points=_straight(1.0), frame_id="map"),
            Trajectory(generator_id="fast", points=_straight(2.0), frame_id="map"),
        ],
        generator_info=[
            GeneratorInfo("slow", "slow planner"),
            GeneratorInfo("fast", "fast planner"),
        ],
    )


def _ready_ranker(names=("TravelDistance",)):
    ranker = TrajectoryRanker(_params(names))
    ranker.set_preferred_lanes([[Point(0.0, 0.0), Point(100.0, 0.0)]])
    return ranker


def test_generator_name_found():
    info = [GeneratorInfo("a", "alpha"), GeneratorInfo("b", "beta")]
    assert generator_name("b", info) == "beta"


def test_generator_name_not_found():
    info = [GeneratorInfo("a", "alpha")]
    assert generator_name("z", info) == "NOT FOUND"
    assert generator_name("a", []) == "NOT FOUND"


def test_evaluator_parameters_copies_fields():
    params = _params(("TravelDistance", "LongitudinalJerk"))
    params.score_weight = [0.3, 0.7]
    result = params.evaluator_parameters()
    assert result.sample_num == SAMPLE_NUM
    assert result.resolution == RESOLUTION
    assert result.score_weight == [0.3, 0.7]
    assert result.metrics_max_value == [100.0, 100.0]
    assert result.time_decay_weight == [[1.0] * SAMPLE_NUM, [1.0] * SAMPLE_NUM]


def test_evaluator_parameters_too_many_decay_rows():
    params = _params(("TravelDistance",))
    params.time_decay_weight = [[1.0] * SAMPLE_NUM, [1.0] * SAMPLE_NUM]
    with pytest.raises(IndexError):
        params.evaluator_parameters()


def test_score_passes_through_without_lanes():
    ranker = TrajectoryRanker(_params())
    candidates = _candidates()
    assert ranker.score(candidates, Pose(), PredictedObjects()) is candidates
    assert ranker.ready is False


def test_score_passes_through_without_pose_or_objects():
    ranker = _ready_ranker()
    candidates = _candidates()
    assert ranker.score(candidates, None, PredictedObjects()) is candidates
    assert ranker.score(candidates, Pose(), None) is candidates


def test_score_orders_best_first():
    ranker = _ready_ranker()
    result = ranker.score(_candidates(), Pose(), PredictedObjects())
    ids = [t.generator_id for t in result.trajectories]
    assert ids == ["fast", "slow"]
    scores = [t.score for t in result.trajectories]
    assert scores == sorted(scores, reverse=True)
    assert scores[0] > scores[1]


def test_score_keeps_original_points_and_generator_info():
    ranker = _ready_ranker()
    candidates = _candidates()
    result = ranker.score(candidates, Pose(), PredictedObjects())
    assert result.generator_info == candidates.generator_info
    fast = next(t for t in result.trajectories if t.generator_id == "fast")
    assert fast.points == _straight(2.0)
    assert fast.frame_id == "map"


def test_score_remembers_best_points():
    ranker = _ready_ranker()
    ranker.score(_candidates(), Pose(), PredictedObjects())
    assert ranker.previous_points is not None
    assert len(ranker.previous_points) == SAMPLE_NUM
    assert ranker.previous_points[0].longitudinal_velocity_mps == 2.0


def test_infeasible_candidate_is_dropped():
    ranker = _ready_ranker()
    candidates = _candidates()
    candidates.trajectories.append(
        Trajectory(generator_id="reverse", points=_straight(-1.0))
    )
    result = ranker.score(candidates, Pose(), PredictedObjects())
    assert "reverse" not in [t.generator_id for t in result.trajectories]
    assert len(result.trajectories) == 2


def test_process_returns_resampled_and_debug():
    ranker = _ready_ranker(("TravelDistance", "LongitudinalJerk"))
    result = ranker.process(_candidates(), Pose(), PredictedObjects())
    assert isinstance(result, RankingResult)
    assert [t.generator_id for t in result.resampled.trajectories] == [
        t.generator_id for t in result.trajectories.trajectories
    ]
    assert all(len(t.points) == SAMPLE_NUM for t in result.resampled.trajectories)
    assert [t.score for t in result.resampled.trajectories] == [
        t.score for t in result.trajectories.trajectories
    ]
    assert len(result.debug) == 2
    assert result.debug[0].metrics == ["TravelDistance", "LongitudinalJerk"]
    assert result.debug[0].weights == [1.0, 1.0]
    assert result.summary is not None
    assert "size:2" in result.summary


def test_process_without_lanes_has_no_debug():
    ranker = TrajectoryRanker(_params())
    candidates = _candidates()
    result = ranker.process(candidates, Pose(), PredictedObjects())
    assert result.trajectories is candidates
    assert result.debug == []
    assert result.summary is None
    assert result.resampled.trajectories == []