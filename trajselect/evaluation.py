"""Scoring and ranking of candidate trajectories."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from trajselect.data import Metric, TrajectoryData
from trajselect.types import CoreData, EvaluatorParameters, VehicleInfo

logger = logging.getLogger(__name__)


@dataclass
class EvaluationInfo:
    """Scores of one candidate, for debugging."""

    generator_name: str = ""
    generator_id: str = ""
    score: float = 0.0
    metrics: List[str] = field(default_factory=list)
    metrics_value: List[float] = field(default_factory=list)
    weights: List[float] = field(default_factory=list)


class Evaluator:
    """Applies loaded metrics to candidates and ranks them.

    ``registry`` maps a metric name to a factory making a new metric.
    """

    def __init__(
        self,
        registry: Mapping[str, Callable[[], Metric]],
        vehicle_info: Optional[VehicleInfo] = None,
    ) -> None:
        self._registry = registry
        self.vehicle_info = vehicle_info
        self._plugins: List[Metric] = []
        self._results: List[TrajectoryData] = []

    @property
    def plugins(self) -> List[Metric]:
        return list(self._plugins)

    @property
    def results(self) -> List[TrajectoryData]:
        return list(self._results)

    def load_metric(self, name: str, index: int, time_resolution: float) -> bool:
        """Create the metric ``name`` at ``index``; False if unknown or already loaded."""
        factory = self._registry.get(name)
        if factory is None:
            logger.error("The scene plugin '%s' is not available.", name)
            return False
        plugin = factory()
        plugin.configure(self.vehicle_info, time_resolution)
        plugin.index = index
        if any(plugin.name == running.name for running in self._plugins):
            logger.warning("The plugin '%s' is already loaded.", name)
            return False
        self._plugins.append(plugin)
        logger.info("The scene plugin '%s' is loaded.", name)
        return True

    def unload_metric(self, name: str) -> bool:
        """Remove every metric called ``name``; False if none was loaded."""
        kept = [p for p in self._plugins if p.name != name]
        if len(kept) == len(self._plugins):
            logger.warning(
                "The scene plugin '%s' is not found in the registered modules.", name
            )
            return False
        self._plugins = kept
        logger.info("The scene plugin '%s' is unloaded.", name)
        return True

    def add(self, core_data: CoreData) -> None:
        """Add a candidate to be evaluated."""
        self._results.append(TrajectoryData(core_data, len(self._plugins)))

    def clear(self) -> None:
        """Drop all candidates."""
        self._results.clear()

    def best(
        self, parameters: EvaluatorParameters, exclude: str = ""
    ) -> Optional[TrajectoryData]:
        """Score all candidates, sort them best first and return the best one."""
        self._pruning()
        self._evaluate(parameters.metrics_max_value)
        self._compress(parameters.time_decay_weight)
        self._normalize(parameters.time_decay_weight)
        self._weighting(parameters.score_weight)
        return self.best_result(exclude)

    def best_result(self, exclude: str = "") -> Optional[TrajectoryData]:
        """First feasible candidate in the current order whose tag is not ``exclude``."""
        return next(
            (r for r in self._results if r.tag != exclude and r.feasible()), None
        )

    def get(self, tag: str) -> Optional[TrajectoryData]:
        """First candidate with ``tag``, or None."""
        return next((r for r in self._results if r.tag == tag), None)

    def statistics(self, metric_index: int) -> Tuple[float, float]:
        """Running mean and spread of score ``metric_index`` over the candidates."""
        ave = 0.0
        dev = 0.0
        for i, result in enumerate(self._results):
            value = result.score(metric_index)
            new_ave = (i * ave + value) / (i + 1)
            dev = (i * (ave * ave + dev * dev) + value * value) / (i + 1) - new_ave * new_ave
            ave = new_ave
        return ave, dev

    def summary(self) -> Optional[str]:
        """Text report of the best candidate and metric statistics, or None."""
        best_data = self.best_result()
        if best_data is None:
            return None
        lines = ["", f"size:{len(self._results)}", f"tag:{best_data.tag}"]
        for plugin in self._plugins:
            mean, dev = self.statistics(plugin.index)
            std = math.sqrt(dev) if dev >= 0.0 else math.nan
            lines.append(f"{plugin.name}: mean:{mean:.2f} std:{std:.2f}")
        lines.append(f"total:{best_data.total:.2f}")
        text = "\n".join(lines)
        logger.debug(text)
        return text

    def score_debug(self, parameters: EvaluatorParameters) -> List[EvaluationInfo]:
        """Per-candidate scores with the metric names and weights behind them."""
        return [
            EvaluationInfo(
                generator_name=result.tag,
                generator_id=result.uuid,
                score=result.total,
                metrics=[p.name for p in self._plugins],
                metrics_value=[result.score(p.index) for p in self._plugins],
                weights=[parameters.score_weight[p.index] for p in self._plugins],
            )
            for result in self._results
        ]

    def _pruning(self) -> None:
        self._results = [r for r in self._results if r.feasible()]

    def _evaluate(self, max_value: Sequence[float]) -> None:
        for result in self._results:
            for plugin in self._plugins:
                plugin.evaluate(result, max_value[plugin.index])

    def _compress(self, weight: Sequence[Sequence[float]]) -> None:
        for result in self._results:
            result.compress(weight)

    def _normalize(self, weight: Sequence[Sequence[float]]) -> None:
        if not self._results:
            return
        if len(self._results) < 2:
            data = self._results[0]
            for plugin in self._plugins:
                data.normalize(0.0, data.score(plugin.index), plugin.index)
            return
        for plugin in self._plugins:
            upper = sum(weight[plugin.index])
            for data in self._results:
                data.normalize(0.0, upper, plugin.index, plugin.is_deviation)

    def _weighting(self, weight: Sequence[float]) -> None:
        for result in self._results:
            result.weighting(weight)
        self._results.sort(key=lambda r: r.total, reverse=True)