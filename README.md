# trajselect

`trajselect` scores and ranks candidate trajectories for a vehicle. You give it
several trajectories, and it does the following for each one:

1. It resamples the trajectory in time, starting from the point nearest to the ego pose.
2. It runs a set of metrics over every sample.
3. It combines the metric values into one total score.

It returns the trajectories sorted from best to worst. Trajectories that would
drive backwards are dropped.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install ".[test]"
```

## Modules

- `trajselect.types` holds the data model. Its types are `Point`, `Vector3`,
  `Quaternion` (with `from_yaw` and `yaw`), `Pose`, `TrajectoryPoint`,
  `PredictedPath`, `PredictedObject`, `PredictedObjects`, `VehicleInfo`,
  `GeneratorInfo`, `Trajectory`, `Trajectories`, `EvaluatorParameters` (with
  `create`) and `CoreData`. Units are seconds, metres and radians.
- `trajselect.trajectory_utils` covers the trajectory helpers:
  - interpolation: `lerp`, `calc_interpolated_point`;
  - time resampling: `sampling`, `sampling_with_time`, `find_nearest_timestamp`;
  - frame transforms: `transform_point`, `get_velocity_in_world_coordinate`,
    `point_velocity_in_world`, `object_velocity_in_world`;
  - geometry: `find_nearest_index`, `calc_signed_arc_length`,
    `calc_longitudinal_offset_point`;
  - extrapolation and collision: `calc_extended_point`, and a per-point
    `time_to_collision` against one predicted object, capped at 10 s.
- `trajselect.data` defines two classes:
  - `TrajectoryData` holds the per-metric rows, scores and `total` of one
    candidate. It has `compress`, `normalize`, `weighting`, `feasible`,
    `set_metric`, `metric` and `score`.
  - `Metric` is the abstract base class for metrics.
- `trajselect.metric_utils` has the helpers behind the metrics:
  - pure-pursuit curvature and steering: `to_relative_coordinate_2d`,
    `calc_radius`, `curvature`, `pure_pursuit`, `steer_command`;
  - `time_to_collision`, the smallest value over all objects;
  - `footprint_collision_times`, which checks footprint overlap with shapely.
- `trajselect.metrics` holds the built-in metrics: `LateralAcceleration`,
  `LongitudinalJerk`, `TimeToCollision`, `TravelDistance`, `LateralDeviation`,
  `TrajectoryDeviation` and `SteeringConsistency`. `default_registry()` maps
  each class name to its class.
- `trajselect.evaluation` provides `Evaluator` and `EvaluationInfo`.
  - `Evaluator` loads and unloads metrics by name from a registry.
    `Evaluator.best` prunes infeasible candidates, then evaluates, compresses
    with time-decay weights, normalises and weights the rest, and finally sorts
    them best first.
  - `statistics` and `summary` report the mean and spread of each metric.
  - `score_debug` lists the per-metric values and weights of each candidate.
- `trajselect.ranker` provides the full pipeline: `TrajectoryRanker`,
  `RankerParameters`, `RankingResult` and `generator_name`.

## Example

```python
from trajselect.ranker import RankerParameters, TrajectoryRanker
from trajselect.types import (
    Point, Pose, PredictedObjects, Trajectories, Trajectory, TrajectoryPoint, VehicleInfo,
)


def straight(speed, n=40, dt=0.25):
    return [
        TrajectoryPoint(
            time_from_start=i * dt,
            pose=Pose(Point(speed * i * dt, 0.0)),
            longitudinal_velocity_mps=speed,
        )
        for i in range(n)
    ]


params = RankerParameters(
    metric_names=["TravelDistance", "LongitudinalJerk"],
    metrics_maximum=[20.0, 5.0],
    score_weight=[1.0, 1.0],
    time_decay_weight=[[1.0] * 20, [1.0] * 20],
    resolution=0.5,
    sample_num=20,
)
ranker = TrajectoryRanker(params, VehicleInfo(wheel_base_m=2.8))
ranker.set_preferred_lanes([[Point(0.0, 0.0), Point(200.0, 0.0)]])

candidates = Trajectories(
    trajectories=[
        Trajectory(generator_id="slow", points=straight(2.0)),
        Trajectory(generator_id="fast", points=straight(5.0)),
    ]
)
result = ranker.process(candidates, Pose(), PredictedObjects())
for trajectory in result.trajectories.trajectories:
    print(trajectory.generator_id, trajectory.score)
print(result.summary)
```

### What `process` returns

`process` returns a `RankingResult` with four fields:

- `trajectories`: the scored candidates, using their original points.
- `resampled`: the same candidates, using their resampled points.
- `debug`: a list of `EvaluationInfo`.
- `summary`: the text report.

`score` returns the scored `Trajectories` only.

### When candidates pass through unchanged

The ranker scores nothing in these cases, and returns the candidates as given:

- no preferred lanes have been set;
- the ego pose is `None`;
- the objects are `None`.

### How the ranker uses the best candidate

After each ranking, the ranker keeps the resampled points of the best candidate
as `previous_points`. `TrajectoryDeviation` and `SteeringConsistency` compare
against them on the next call. Until a previous trajectory exists, both metrics
compute nothing. `SteeringConsistency` also needs a `VehicleInfo`.

### Adding your own metrics

Subclass `Metric` and implement `evaluate`. Set `is_deviation = True` when a
smaller value is better. Pass a registry that maps your metric names to
factories, either to `TrajectoryRanker` or to `Evaluator`.

## What the package does not do

`trajselect` is a library. It has:

- no command-line tool;
- no message transport or subscriptions;
- no map or route handling;
- no visualisation output.

Preferred lanes are given directly as centre-line polylines of `Point`s.
Objects and the ego pose are passed in on each call.

## Running the tests

```
pytest
```