"""Label scorer for the activity of a trained network.

The network is unsupervised; this only measures how consistently each label
maps onto the same nodes. During training every timestep's output is counted
per label, ``classify`` keeps the strongest nodes of each label and ``score``
compares a fresh output against them.
"""

import logging
from typing import (
    Any,
    Dict,
    Hashable,
    Iterable,
    List,
    Tuple,
)

import pandas as pd

from visualize import to_fixed

logger = logging.getLogger(__name__)

Scores = Dict[Any, float]


def _key(node: Any) -> Hashable:
    return getattr(node, "key", node)


class LabelClassifier:
    """Per-label histogram of activated nodes."""

    def __init__(self) -> None:
        self.nodes: Dict[Any, Dict[Hashable, int]] = {}
        self.timesteps: Dict[Any, int] = {}
        self.classifier: Dict[Any, Dict[Hashable, float]] = {}

    def record(self, output: Iterable[Any], label: Any) -> None:
        """Count one timestep of ``output`` towards ``label``."""
        nodes = self.nodes.setdefault(label, {})
        for node in output:
            key = _key(node)
            nodes[key] = nodes.get(key, 0) + 1
        self.timesteps[label] = self.timesteps.get(label, 0) + 1

    def classify(self, kwinner: int) -> Dict[Any, Dict[Hashable, float]]:
        """Keep the ``kwinner`` strongest nodes of every label."""
        self.classifier = {}
        for label, counts in self.nodes.items():
            timesteps = self.timesteps[label]
            # Labels may be active for a different number of timesteps
            total = sum(count / timesteps for count in counts.values())
            if not total:
                self.classifier[label] = {}
                continue
            # Label representations may need a different number of nodes
            weights = {key: count / total for key, count in counts.items()}
            ranked = sorted(weights.items(), key=lambda item: item[1], reverse=True)
            self.classifier[label] = dict(ranked[:kwinner])
        return self.classifier

    def score(self, output: Iterable[Any]) -> Scores:
        """Score every label: weights of its active nodes minus weights of its inactive nodes."""
        if not self.classifier:
            raise ValueError("LabelClassifier.score() requires a prior classify() call.")
        active = {_key(node) for node in output}
        return {
            label: sum(weight if key in active else -weight for key, weight in weights.items())
            for label, weights in self.classifier.items()
        }


def overall(scores: Iterable[Tuple[Any, Scores]]) -> Tuple[Dict[Any, float], float]:
    """Percentage of samples whose best scoring label was the correct one.

    Args:
        scores: (correct label, scores) pairs, one per tested sample.

    Returns:
        (per label percentage, mean percentage across labels)
    """
    rows: List[Dict[str, Any]] = []
    for correct_label, score in scores:
        if not score:
            continue
        best = max(score.items(), key=lambda item: item[1])[0]
        rows.append({"label": correct_label, "correct": best == correct_label})

    if not rows:
        return {}, 0.0

    frame = pd.DataFrame(rows)
    per_label = (frame.groupby("label", sort=False)["correct"].mean() * 100).round(2)
    result = {label: float(value) for label, value in per_label.items()}
    total = to_fixed(sum(result.values()) / len(result))

    logger.info("/////////////////////////////////////// DATASET SCORE")
    for label, value in result.items():
        logger.info("%s %s", label, value)
    logger.info("SCORE: %s", total)
    return result, total
