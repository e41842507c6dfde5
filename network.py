"""Timestep driver of the pool network.

Regions and layers organize the network based on different inputs and input
sizes. Every region receives its own feedforward input; its top layers share
one temporally averaged copy of it, and every nested layer receives the
temporally averaged output of its parent. From the standpoint of learning
regions and layers do not exist: in each timestep nodes are picked across the
entire network and linked into pools.

Example:
    network = Network([{
        "size": 784,
        "layers": [{"id": "A2", "inhibition": {"row": 28, "square": 2}}],
    }], seed=1)
    network.stats()
    for input, label in samples:
        output = network.timestep([input], label)
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

import numpy as np

from building_blocks import Layer, Node, NetworkState, Pool
from config import LayerConfig, NetworkParameters, RegionInput, parse_regions
from temporal import TemporalState, generate_temporal_input
from visualize import abbr, to_fixed

logger = logging.getLogger(__name__)

LOG_EVERY = 10_000  # Report every timestep below this, then every LOG_EVERY timesteps


def should_log(timestep: int) -> bool:
    return timestep < LOG_EVERY or not timestep % LOG_EVERY


def _pct(part: float, whole: float) -> float:
    return to_fixed(part / whole * 100) if whole else 0.0


class LayerGroup:
    """Layers on one horizontal level, sharing one temporally averaged input."""

    def __init__(self) -> None:
        self.temporal = TemporalState()
        self.branches: List[Tuple[Layer, Optional['LayerGroup']]] = []


class Network:
    """Population of layers that learn to predict their own activity.

    Args:
        regions: ``RegionConfig`` objects or their nested dict form.
        parameters: Tuning parameters; missing members are derived from the
            total number of nodes.
        rng: Random source used to sample new pool inputs.
        seed: Seed for a new random source when ``rng`` is not given.

    Raises:
        ConfigurationError: If regions, layers or parameters are malformed.
    """

    def __init__(
        self,
        regions: Sequence[RegionInput],
        parameters: Optional[NetworkParameters] = None,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.regions = parse_regions(regions)
        self.size: int = sum(
            region.size * _count_layers(region.layers) for region in self.regions
        )
        self.params: NetworkParameters = (parameters or NetworkParameters()).resolve(self.size)
        self.state = NetworkState(self.params)
        self.rng: np.random.Generator = rng if rng is not None else np.random.default_rng(seed)

        self.layers: Dict[str, Layer] = {}
        self.groups: List[LayerGroup] = [
            self._build_group(region.layers, region.size) for region in self.regions
        ]
        self.kwinner: int = sum(len(layer.areas) for layer in self.layers.values())
        self.total_possible_links: int = self.size * self.size - self.size
        self.total_possible_pools: int = self.total_possible_links // self.params.minimum_links_in_pool

    def _build_group(self, configs: List[LayerConfig], size: int) -> LayerGroup:
        group = LayerGroup()
        for config in configs:
            layer = Layer(config.id, size, config.row, config.square, self.state)
            self.layers[layer.id] = layer
            children = self._build_group(config.layers, size) if config.layers else None
            group.branches.append((layer, children))
        return group

    @property
    def timestep_count(self) -> int:
        return self.state.timestep

    def timestep(self, inputs: Sequence[Mapping[int, float]], label: Any = None) -> List[Node]:
        """Run one timestep.

        Args:
            inputs: One sparse input (node id -> non-negative energy) per region.
            label: Only used in reports.

        Returns:
            Nodes that activated in this timestep, in activation order.
        """
        self._check_inputs(inputs)
        state = self.state
        counters = state.counters
        state.timestep += 1

        # Run the layers as a recursive feedforward input
        for group, input in zip(self.groups, inputs):
            self._run_group(group, input)

        # Pools that collected links but never activated keep nothing
        for pool in state.touched_pools:
            pool.clear()
        state.touched_pools.clear()

        # Link previous timestep output onto the unpredicted nodes
        if counters.unpredicted_nodes_per_timestep:
            self._create_pools()

        state.output = []
        for layer in self.layers.values():
            layer.activate()

        output = state.output
        counters.commit(len(output), self.size)
        if logger.isEnabledFor(logging.DEBUG) and (
            should_log(state.timestep) or counters.thinking_nodes_per_timestep
        ):
            logger.debug(self.report(label))
        counters.reset_timestep()
        return list(output)

    def _check_inputs(self, inputs: Sequence[Mapping[int, float]]) -> None:
        if len(inputs) != len(self.regions):
            raise ValueError(f"Expected {len(self.regions)} region inputs, got {len(inputs)}.")
        for index, (group, input) in enumerate(zip(self.groups, inputs)):
            nodes = group.branches[0][0].nodes
            for node_id, energy in input.items():
                if node_id not in nodes:
                    raise ValueError(f"Node id {node_id!r} is out of range for region {index}.")
                if energy < 0:
                    raise ValueError(f"Node {node_id} of region {index} has negative energy {energy}.")

    def _run_group(self, group: LayerGroup, input: Mapping[int, float]) -> None:
        current = generate_temporal_input(
            group.temporal, input, self.params.temporal_length, self.params.input_multiplier
        )
        for layer, children in group.branches:
            layer.run(current)
            if children is not None:
                self._run_group(children, layer.output)

    def _create_pools(self) -> None:
        """Create one pool per unpredicted node from a random sample of the previous output."""
        previous = self.state.output
        if not previous:
            return

        params = self.params
        picks = self.rng.integers(0, len(previous), size=params.maximum_links_in_pool)
        # Same node can be picked more than once
        sample: List[Node] = list(dict.fromkeys(previous[int(pick)] for pick in picks))
        if len(sample) < params.minimum_links_in_pool:
            return

        counters = self.state.counters
        for layer in self.layers.values():
            for output in layer.unpredicted_nodes.values():
                # Node cannot link to itself and only one link is allowed between two nodes
                linking = [node for node in sample if node is not output and output not in node.output]
                if len(linking) < params.minimum_links_in_pool:
                    continue

                pool = Pool(output, self.state)
                for node in linking:
                    pool.add_link(node)
                counters.created_pools_per_timestep += 1
                counters.created_links_per_timestep += len(linking)

    def stats(self) -> Dict[str, Any]:
        """Return configuration and running counters, and log them."""
        counters = self.state.counters
        timesteps = self.state.timestep
        stats: Dict[str, Any] = {
            "layers": [
                {"id": layer.id, "nodes": len(layer.nodes), "areas": len(layer.areas)}
                for layer in self.layers.values()
            ],
            "size": self.size,
            "kwinner": self.kwinner,
            "timestep": timesteps,
            "linear_decay": -1,
            **asdict(self.params),
            "live_links": counters.live_links,
            "created_links": counters.created_links,
            "deleted_links": counters.deleted_links,
            "live_pools": counters.live_pools,
            "created_pools": counters.created_pools,
            "deleted_pools": counters.deleted_pools,
            "permanent_pools": counters.permanent_pools,
            "highest_link_permanence": counters.highest_link_permanence,
            "output_sparsity": counters.output_sparsity / timesteps if timesteps else 0.0,
            "unpredicted_sparsity": counters.unpredicted_sparsity / timesteps if timesteps else 0.0,
            "thinking_sparsity": counters.thinking_sparsity / timesteps if timesteps else 0.0,
            "link_sparsity": counters.live_links / self.total_possible_links if self.total_possible_links else 0.0,
            "pool_sparsity": counters.live_pools / self.total_possible_pools if self.total_possible_pools else 0.0,
        }

        logger.info("/////////////////////////////////////// NETWORK STATS")
        for layer in stats["layers"]:
            logger.info("%26s -> ID:%s  NODES:%s  AREAS:%s", "LAYER", layer["id"], layer["nodes"], layer["areas"])
        for key, value in stats.items():
            if key == "layers":
                continue
            logger.info("%26s -> %s", key.replace("_", " ").upper(), value)
        return stats

    def report(self, label: Any = None) -> str:
        """Human readable summary of the last timestep."""
        counters = self.state.counters
        timestep = self.state.timestep
        live_links = counters.live_links
        live_pools = counters.live_pools
        maximum = self.params.maximum_link_permanence
        highest = "Maximum" if counters.highest_link_permanence >= maximum else int(counters.highest_link_permanence)

        lines = [
            f"/////////////////////////////////////// TIMESTEP {timestep}",
            f"/////////////////////////////////////// LABEL {label}",
            "================ NETWORK ==============",
            f"   Output/Average -> {_pct(counters.output_sparsity, timestep)}%",
            f"   Unpred/Average -> {_pct(counters.unpredicted_sparsity, timestep)}%",
            f" Thinking/Average -> {_pct(counters.thinking_sparsity, timestep)}%",
            f" Ncreated/Average -> {_pct(counters.not_created_pools, timestep)}%",
            f"  Ncreated/Unpred -> {abbr(counters.unpredicted_non_created_pools)}"
            f" - {_pct(counters.unpredicted_non_created_pools, timestep)}%",
        ]
        lines.extend(layer.report() for layer in self.layers.values())
        lines.extend([
            "================ LINKS ================",
            f"             Live -> {abbr(live_links)}",
            f"          Deleted -> {abbr(counters.deleted_links)} - {_pct(counters.deleted_links, counters.created_links)}%",
            f" Created/Timestep -> {counters.created_links_per_timestep}",
            f" Deleted/Timestep -> {counters.deleted_links_per_timestep}",
            f"  Active/Timestep -> {abbr(counters.activated_links_per_timestep)}",
            f"       Links/Pool -> {to_fixed(live_links / live_pools) if live_pools else 0.0}",
            f"       Links/Node -> {to_fixed(live_links / self.size)}",
            f"         Sparsity -> {_pct(live_links, self.total_possible_links)}%",
            f"HighestPermanence -> {highest}",
            "================ POOLS ================",
            f"             Live -> {abbr(live_pools)}",
            f"          Deleted -> {abbr(counters.deleted_pools)} - {_pct(counters.deleted_pools, counters.created_pools)}%",
            f" Created/Timestep -> {counters.created_pools_per_timestep}",
            f" Deleted/Timestep -> {counters.deleted_pools_per_timestep}",
            f"  Active/Timestep -> {abbr(counters.activated_pools_per_timestep)}",
            f"     LTP/Timestep -> {abbr(counters.rewarded_pools_per_timestep)}",
            f"     LTD/Timestep -> {abbr(counters.punished_pools_per_timestep)}",
            f"       Pools/Node -> {to_fixed(live_pools / self.size)}",
            f"         Sparsity -> {_pct(live_pools, self.total_possible_pools)}%",
            f"   PermanentPools -> {abbr(counters.permanent_pools)} - {_pct(counters.permanent_pools, live_pools)}%",
        ])
        return "\n".join(lines)


def _count_layers(layers: List[LayerConfig]) -> int:
    return sum(1 + _count_layers(layer.layers) for layer in layers)
