"""Scoring, ranking and selection of candidate vehicle trajectories.

Submodules: types, trajectory_utils, data, metric_utils, metrics,
evaluation and ranker.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]