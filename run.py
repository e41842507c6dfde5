#!/usr/bin/env python3
"""Train and test a pool network on an EMNIST style dataset.

Training reads ``<prefix>-train-SORTED.csv``, testing ``<prefix>-test-SORTED.csv``
and both use ``<prefix>-mapping.txt``. Datasets should be sorted by label: the
network strengthens patterns that repeat many times in quick succession, so
shuffled data takes much longer to stabilize.

The score does not describe the performance of this type of network. Learning
is completely unsupervised; the score only helps to understand its inner
workings.
"""
from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
from tqdm import tqdm

from classifier import LabelClassifier, Scores, overall
from config import NetworkParameters
from dataset import count_rows, read_dataset
from network import Network
from visualize import render_activity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExperimentConfig:
    """Single region, single layer experiment."""

    dataset: str = "../datasets/mnist"
    size: int = 784
    row: int = 28
    square: int = 2
    layer_id: str = "A2"
    epochs: int = 1
    seed: Optional[int] = None
    visualize: bool = False


def build_regions(config: ExperimentConfig) -> List[Dict[str, Any]]:
    return [{
        "size": config.size,
        "layers": [{
            "id": config.layer_id,
            "inhibition": {"row": config.row, "square": config.square},
        }],
    }]


def run_split(
    network: Network,
    path: Path,
    mapping: Path,
    config: ExperimentConfig,
    description: str,
) -> List[Tuple[List[Any], str]]:
    """Feed every sample of ``path`` through the network; return (output, label) pairs."""
    results: List[Tuple[List[Any], str]] = []
    for input, label in tqdm(read_dataset(path, mapping), total=count_rows(path), desc=description):
        output = network.timestep([input], label)
        if config.visualize:
            for line in render_activity(config.size, config.row, [node.id for node in output]):
                logger.debug(line)
        results.append((output, label))
    return results


def train(network: Network, config: ExperimentConfig) -> Tuple[LabelClassifier, List[float]]:
    classifier = LabelClassifier()
    sparsity: List[float] = []
    prefix = config.dataset
    for epoch in range(config.epochs):
        results = run_split(
            network,
            Path(f"{prefix}-train-SORTED.csv"),
            Path(f"{prefix}-mapping.txt"),
            config,
            f"train {epoch + 1}/{config.epochs}",
        )
        for output, label in results:
            classifier.record(output, label)
            sparsity.append(len(output) / network.size)
    classifier.classify(network.kwinner)
    return classifier, sparsity


def evaluate(network: Network, classifier: LabelClassifier, config: ExperimentConfig) -> List[Tuple[str, Scores]]:
    prefix = config.dataset
    results = run_split(
        network,
        Path(f"{prefix}-test-SORTED.csv"),
        Path(f"{prefix}-mapping.txt"),
        config,
        "test",
    )
    return [(label, classifier.score(output)) for output, label in results]


def plot_sparsity(sparsity: Sequence[float], path: Path) -> None:
    plt.figure(figsize=(14, 6))
    plt.plot([value * 100 for value in sparsity], alpha=0.8)
    plt.xlabel('Time Step')
    plt.ylabel('Active nodes (%)')
    plt.title('Output sparsity during training')
    plt.tight_layout()
    plt.savefig(path, dpi=150)
    plt.close()


def parse_args(argv: Optional[Sequence[str]] = None) -> Tuple[ExperimentConfig, NetworkParameters, argparse.Namespace]:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--dataset", default=ExperimentConfig.dataset, help="Dataset path prefix.")
    parser.add_argument("--size", type=int, default=ExperimentConfig.size)
    parser.add_argument("--row", type=int, default=ExperimentConfig.row)
    parser.add_argument("--square", type=int, default=ExperimentConfig.square)
    parser.add_argument("--epochs", type=int, default=ExperimentConfig.epochs)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--visualize", action="store_true", help="Log the output grid of every timestep.")
    parser.add_argument("--plot", type=Path, default=None, help="Save a training sparsity plot here.")
    parser.add_argument("--verbose", "-v", action="store_true")
    for parameter in fields(NetworkParameters):
        kind = float if parameter.name == "exponential_growth" else int
        parser.add_argument(f"--{parameter.name.replace('_', '-')}", type=kind, default=None)
    args = parser.parse_args(argv)

    config = ExperimentConfig(
        dataset=args.dataset,
        size=args.size,
        row=args.row,
        square=args.square,
        layer_id=f"A{args.square}",
        epochs=args.epochs,
        seed=args.seed,
        visualize=args.visualize,
    )
    parameters = NetworkParameters(**{
        parameter.name: getattr(args, parameter.name) for parameter in fields(NetworkParameters)
    })
    return config, parameters, args


def main(argv: Optional[Sequence[str]] = None) -> float:
    config, parameters, args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    network = Network(build_regions(config), parameters, seed=config.seed)
    network.stats()
    classifier, sparsity = train(network, config)
    scores = evaluate(network, classifier, config)
    network.stats()
    _, total = overall(scores)

    if args.plot is not None:
        plot_sparsity(sparsity, args.plot)
    return total


if __name__ == "__main__":
    main()
