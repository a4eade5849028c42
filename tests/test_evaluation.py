import pytest

from trajselect.data import Metric
from trajselect.evaluation import Evaluator
from trajselect.types import CoreData, EvaluatorParameters, TrajectoryPoint


class Speed(Metric):
    def evaluate(self, result, max_value):
        result.set_metric(
            self.index,
            [min(1.0, p.longitudinal_velocity_mps / max_value) for p in result.points],
        )


class SpeedDeviation(Speed):
    is_deviation = True


REGISTRY = {"speed": Speed, "speed_dev": SpeedDeviation}


def _core(tag, velocity, n=3):
    return CoreData(
        points=[TrajectoryPoint(longitudinal_velocity_mps=velocity) for _ in range(n)],
        tag=tag,
        generator_id=f"id-{tag}",
    )


def _params(metrics_num=1):
    params = EvaluatorParameters.create(metrics_num, 3)
    params.time_decay_weight = [[1.0, 1.0, 1.0] for _ in range(metrics_num)]
    params.score_weight = [1.0] * metrics_num
    params.metrics_max_value = [4.0] * metrics_num
    return params


def _evaluator(name="speed"):
    evaluator = Evaluator(REGISTRY)
    assert evaluator.load_metric(name, 0, 0.5)
    return evaluator


def test_load_unknown_metric_is_rejected():
    evaluator = Evaluator(REGISTRY)
    assert evaluator.load_metric("missing", 0, 0.5) is False
    assert evaluator.plugins == []


def test_load_duplicate_metric_is_rejected():
    evaluator = _evaluator()
    assert evaluator.load_metric("speed", 1, 0.5) is False
    assert len(evaluator.plugins) == 1
    assert evaluator.plugins[0].resolution == 0.5


def test_unload_metric():
    evaluator = _evaluator()
    assert evaluator.unload_metric("nothing") is False
    assert evaluator.unload_metric("Speed") is True
    assert evaluator.plugins == []


def test_best_prefers_higher_score():
    evaluator = _evaluator()
    evaluator.add(_core("slow", 1.0))
    evaluator.add(_core("fast", 2.0))
    best = evaluator.best(_params())
    assert best.tag == "fast"
    totals = [r.total for r in evaluator.results]
    assert totals == sorted(totals, reverse=True)
    assert 0.0 <= totals[-1] <= totals[0] <= 1.0


def test_deviation_metric_prefers_lower_value():
    evaluator = _evaluator("speed_dev")
    evaluator.add(_core("slow", 1.0))
    evaluator.add(_core("fast", 2.0))
    assert evaluator.best(_params()).tag == "slow"


def test_best_prunes_infeasible_and_honours_exclude():
    evaluator = _evaluator()
    evaluator.add(_core("reverse", -1.0))
    evaluator.add(_core("slow", 1.0))
    evaluator.add(_core("fast", 2.0))
    best = evaluator.best(_params(), "fast")
    assert best.tag == "slow"
    assert evaluator.get("reverse") is None
    assert len(evaluator.results) == 2


def test_single_candidate_scores_one():
    evaluator = _evaluator()
    evaluator.add(_core("only", 1.0))
    best = evaluator.best(_params())
    assert best.score(0) == 1.0
    assert best.total == 1.0


def test_best_of_nothing_is_none():
    evaluator = _evaluator()
    assert evaluator.best(_params()) is None
    assert evaluator.summary() is None


def test_get_and_clear():
    evaluator = _evaluator()
    evaluator.add(_core("a", 1.0))
    assert evaluator.get("a").uuid == "id-a"
    evaluator.clear()
    assert evaluator.get("a") is None


def test_statistics_of_equal_scores():
    evaluator = _evaluator()
    evaluator.add(_core("a", 1.0))
    evaluator.add(_core("b", 1.0))
    evaluator.best(_params())
    mean, dev = evaluator.statistics(0)
    assert mean == pytest.approx(evaluator.results[0].score(0))
    assert dev == pytest.approx(0.0)


def test_summary_reports_best():
    evaluator = _evaluator()
    evaluator.add(_core("slow", 1.0))
    evaluator.add(_core("fast", 2.0))
    evaluator.best(_params())
    text = evaluator.summary()
    assert "size:2" in text
    assert "tag:fast" in text
    assert text.splitlines()[-1].startswith("total:")


def test_score_debug_lists_every_candidate():
    evaluator = _evaluator()
    evaluator.add(_core("slow", 1.0))
    evaluator.add(_core("fast", 2.0))
    params = _params()
    params.score_weight = [0.5]
    evaluator.best(params)
    infos = evaluator.score_debug(params)
    assert [i.generator_name for i in infos] == ["fast", "slow"]
    assert infos[0].generator_id == "id-fast"
    assert infos[0].metrics == ["Speed"]
    assert infos[0].weights == [0.5]
    assert infos[0].score == evaluator.results[0].total


def test_missing_max_value_raises():
    evaluator = _evaluator()
    evaluator.add(_core("a", 1.0))
    params = _params()
    params.metrics_max_value = []
    with pytest.raises(IndexError):
        evaluator.best(params)