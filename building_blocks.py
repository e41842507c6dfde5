from __future__ import annotations

import math
from dataclasses import dataclass
from typing import (
    Dict,
    List,
    Mapping,
    Set,
    Tuple,
    Union,
)

from config import NetworkParameters
from inhibition import Area, build_areas

PREDICTED = 0  # Area slot reserved for the predicted winner

AnyPool = Union['Pool', 'PermanentPool']


# ===== Shared Network State =====

@dataclass
class Counters:
    """Running instrumentation counters.

    ``*_per_timestep`` members are folded into the totals by ``commit``
    and cleared by ``reset_timestep`` at the end of every timestep.
    """

    permanent_pools: int = 0
    created_links: int = 0
    deleted_links: int = 0
    created_pools: int = 0
    deleted_pools: int = 0
    not_created_pools: int = 0  # Timesteps where no new pool was created
    unpredicted_non_created_pools: int = 0  # Timesteps with unpredicted nodes that did not all get a pool
    output_sparsity: float = 0.0
    unpredicted_sparsity: float = 0.0
    thinking_sparsity: float = 0.0
    highest_link_permanence: float = 0.0

    created_links_per_timestep: int = 0
    deleted_links_per_timestep: int = 0
    activated_links_per_timestep: int = 0
    created_pools_per_timestep: int = 0
    deleted_pools_per_timestep: int = 0
    activated_pools_per_timestep: int = 0
    rewarded_pools_per_timestep: int = 0
    punished_pools_per_timestep: int = 0
    unpredicted_nodes_per_timestep: int = 0
    thinking_nodes_per_timestep: int = 0

    @property
    def live_links(self) -> int:
        return self.created_links - self.deleted_links

    @property
    def live_pools(self) -> int:
        return self.created_pools - self.deleted_pools

    def commit(self, output_size: int, total_size: int) -> None:
        """Fold this timestep into the totals."""
        self.created_pools += self.created_pools_per_timestep
        self.deleted_pools += self.deleted_pools_per_timestep
        if not self.created_pools_per_timestep:
            self.not_created_pools += 1
        if self.created_pools_per_timestep < self.unpredicted_nodes_per_timestep:
            self.unpredicted_non_created_pools += 1
        self.created_links += self.created_links_per_timestep
        self.deleted_links += self.deleted_links_per_timestep

        # Nothing activated means nothing to measure
        if output_size:
            self.output_sparsity += output_size / total_size
            self.thinking_sparsity += self.thinking_nodes_per_timestep / output_size
            self.unpredicted_sparsity += self.unpredicted_nodes_per_timestep / output_size

    def reset_timestep(self) -> None:
        self.created_links_per_timestep = 0
        self.deleted_links_per_timestep = 0
        self.activated_links_per_timestep = 0
        self.created_pools_per_timestep = 0
        self.deleted_pools_per_timestep = 0
        self.activated_pools_per_timestep = 0
        self.rewarded_pools_per_timestep = 0
        self.punished_pools_per_timestep = 0
        self.unpredicted_nodes_per_timestep = 0
        self.thinking_nodes_per_timestep = 0


class NetworkState:
    """State shared by every layer, node and pool of one network.

    Owned by the network orchestrator and handed to the building blocks at
    construction instead of living in module globals.
    """

    def __init__(self, params: NetworkParameters) -> None:
        self.params: NetworkParameters = params
        self.timestep: int = 0
        # Pools that have at least one active link but did not activate yet
        self.touched_pools: Set[AnyPool] = set()
        # Nodes activated in the last completed timestep, list for random access
        self.output: List['Node'] = []
        self.counters: Counters = Counters()


# ===== Basic Building Blocks =====

class Link:
    """Connection from one source node into a pool.

    Permanence decays linearly with the timesteps elapsed since the link was
    last touched and grows exponentially every time the link predicts
    correctly.
    """

    def __init__(self, permanence: float, timestep: int) -> None:
        self.permanence: float = permanence
        self.decayed: int = timestep  # Last timestep it was decayed

    def __repr__(self) -> str:
        return f"Link(permanence={self.permanence}, decayed={self.decayed})"

    @property
    def permanent(self) -> bool:
        return math.isinf(self.permanence)

    def reward(self, pool: 'Pool') -> None:
        params = pool.state.params
        if self.permanence > params.maximum_link_permanence:
            self._make_permanent(pool)
            return

        self.permanence *= params.exponential_growth
        counters = pool.state.counters
        if self.permanence > counters.highest_link_permanence:
            counters.highest_link_permanence = self.permanence
        if self.permanence >= params.maximum_link_permanence:
            self._make_permanent(pool)

    def _make_permanent(self, pool: 'Pool') -> None:
        self.permanence = math.inf
        pool.permanent.add(self)

    def decay(self, timestep: int) -> bool:
        """Apply the decay accumulated since the last touch.

        Returns:
            True if the link is still alive, False if it has to be removed.
        """
        self.permanence -= timestep - self.decayed
        if self.permanence > 0:
            self.decayed = timestep
            return True
        return False


class Pool:
    """Set of links from different source nodes into a single output node.

    There is no way of knowing in advance which links work well together.
    Over time a pool settles on the links that activate together; those links
    eventually saturate at the maximum permanence, at which point the pool is
    replaced by a ``PermanentPool``.
    """

    def __init__(self, output: 'Node', state: NetworkState) -> None:
        self.input: Dict['Node', Link] = {}
        self.output: 'Node' = output
        self.state: NetworkState = state
        self.weight: int = state.params.initial_pool_weight
        self.predicting: Set[Link] = set()  # Links predicting in this timestep
        self.permanent: Set[Link] = set()  # Links that reached maximum permanence
        self.activated: bool = False

    def __repr__(self) -> str:
        return f"Pool(output={self.output!r}, links={len(self.input)}, weight={self.weight})"

    def add_link(self, node: 'Node') -> Link:
        """Link ``node`` into this pool and register the pool in its output."""
        link = Link(self.state.params.initial_link_permanence, self.state.timestep)
        self.input[node] = link
        node.output[self.output] = self
        return link

    def activate(self, node: 'Node') -> None:
        link = self.input[node]
        if not link.decay(self.state.timestep):
            self.decay(node)
            return

        self.state.counters.activated_links_per_timestep += 1
        # Keep collecting links for the reward even after the pool activated
        self.predicting.add(link)
        if self.activated:
            return

        self.state.touched_pools.add(self)
        if len(self.predicting) < self.state.params.minimum_links_in_pool:
            return

        self.activated = True
        self.state.touched_pools.discard(self)
        self.state.counters.activated_pools_per_timestep += 1
        self.output.touch(self)

    def reward(self) -> None:
        params = self.state.params
        self.weight = min(self.weight + params.pool_weight_change_rate, params.maximum_pool_weight)
        for link in self.predicting:
            link.reward(self)
        self.predicting.clear()
        self.activated = False
        self.state.counters.rewarded_pools_per_timestep += 1

        if self.input and len(self.permanent) == len(self.input):
            self.replace()

    def punish(self) -> None:
        params = self.state.params
        self.weight = max(self.weight - params.pool_weight_change_rate, params.minimum_pool_weight)
        self.predicting.clear()
        self.activated = False
        self.state.counters.punished_pools_per_timestep += 1

    def clear(self) -> None:
        self.predicting.clear()

    def decay(self, node: 'Node') -> None:
        """Remove the dead link from ``node``; tear the pool down if too few links remain."""
        del self.input[node]
        del node.output[self.output]
        counters = self.state.counters
        counters.deleted_links_per_timestep += 1

        if len(self.input) >= self.state.params.minimum_links_in_pool:
            return

        counters.deleted_pools_per_timestep += 1
        counters.deleted_links_per_timestep += len(self.input)
        for source in self.input:
            del source.output[self.output]
        self.output.input.discard(self)
        self.state.touched_pools.discard(self)
        self.predicting.clear()
        self.permanent.clear()
        self.input.clear()

    def replace(self) -> 'PermanentPool':
        """Swap this pool for a ``PermanentPool`` in every source node."""
        pool = PermanentPool(self.output, self.weight, self.state)
        for node in self.input:
            node.output[self.output] = pool
        self.output.input.discard(self)
        self.state.counters.permanent_pools += 1
        self.permanent.clear()
        self.input.clear()
        return pool


class PermanentPool:
    """Pool whose links all reached maximum permanence.

    With linear decay of one per timestep, a link at the maximum permanence of
    a large network would take centuries to die, so such a pool is kept
    forever. It behaves exactly like ``Pool`` but only counts predicting
    sources instead of tracking individual links.
    """

    def __init__(self, output: 'Node', weight: int, state: NetworkState) -> None:
        self.output: 'Node' = output
        self.weight: int = weight
        self.state: NetworkState = state
        self.predicting: int = 0  # Number of source nodes predicting
        self.activated: bool = False

    def __repr__(self) -> str:
        return f"PermanentPool(output={self.output!r}, weight={self.weight})"

    def activate(self, node: 'Node') -> None:
        self.state.counters.activated_links_per_timestep += 1
        if self.activated:
            return

        self.predicting += 1
        self.state.touched_pools.add(self)
        if self.predicting < self.state.params.minimum_links_in_pool:
            return

        self.activated = True
        self.state.touched_pools.discard(self)
        self.state.counters.activated_pools_per_timestep += 1
        self.output.touch(self)

    def reward(self) -> None:
        params = self.state.params
        self.weight = min(self.weight + params.pool_weight_change_rate, params.maximum_pool_weight)
        self.predicting = 0
        self.activated = False
        self.state.counters.rewarded_pools_per_timestep += 1

    def punish(self) -> None:
        params = self.state.params
        self.weight = max(self.weight - params.pool_weight_change_rate, params.minimum_pool_weight)
        self.predicting = 0
        self.activated = False
        self.state.counters.punished_pools_per_timestep += 1

    def clear(self) -> None:
        self.predicting = 0


class Node:
    """Addressable unit of a layer.

    ``input`` holds the pools that predicted this node in the previous
    timestep. ``output`` maps every target node to the single pool this node
    feeds, which keeps at most one link between any ordered pair of nodes.
    """

    def __init__(self, id: int, layer: 'Layer') -> None:
        self.id: int = id
        self.layer: 'Layer' = layer
        self.input: Set[AnyPool] = set()
        self.output: Dict['Node', AnyPool] = {}
        self.energy: float = 0.0

    def __repr__(self) -> str:
        return f"Node(layer={self.layer.id!r}, id={self.id})"

    @property
    def key(self) -> Tuple[str, int]:
        """Identity of the node across all layers of the network."""
        return self.layer.id, self.id

    def activate(self) -> None:
        # Pools may drop out of the mapping while being probed
        for pool in list(self.output.values()):
            pool.activate(self)

    def touch(self, pool: AnyPool) -> None:
        self.input.add(pool)
        self.energy += pool.weight
        self.layer.threshold += pool.weight
        self.layer.touched_nodes[self] = None

    def reward(self) -> None:
        pools, self.input = self.input, set()
        for pool in pools:
            pool.reward()
        self.energy = 0.0

    def punish(self) -> None:
        pools, self.input = self.input, set()
        for pool in pools:
            pool.punish()
        self.energy = 0.0


# ===== Layer =====

class Layer:
    """Nodes of one layer grouped into competitive inhibition areas.

    Every timestep ``run`` selects the winners of each area and rewards or
    punishes the pools that predicted them, ``activate`` then propagates the
    winners into the pools they feed.
    """

    def __init__(self, id: str, size: int, row: int, square: int, state: NetworkState) -> None:
        self.id: str = id
        self.size: int = size
        self.state: NetworkState = state
        self.areas: List[Area]
        self.areas_by_node_id: Dict[int, Area]
        self.areas, self.areas_by_node_id = build_areas(size, row, square)
        self.nodes: Dict[int, Node] = {node_id: Node(node_id, self) for node_id in range(1, size + 1)}
        self.unpredicted_nodes: Dict[int, Node] = {}  # Active without any predicting pool
        self.thinking_nodes: Set[int] = set()  # Active from pool energy only, without direct input
        self.touched_nodes: Dict[Node, None] = {}  # Nodes with energy in this timestep, insertion ordered
        self.output: Dict[int, int] = {}
        self.threshold: float = 0.0

    def __repr__(self) -> str:
        return f"Layer(id={self.id!r}, nodes={len(self.nodes)}, areas={len(self.areas)})"

    def run(self, input: Mapping[int, float]) -> None:
        """Select area winners for ``input`` and reward or punish their pools."""
        # Add input energy onto the nodes
        for node_id, energy in input.items():
            node = self.nodes[node_id]
            node.energy += energy
            self.threshold += energy
            self.touched_nodes[node] = None

        if self.touched_nodes:
            # Dynamic threshold: nodes below the average energy are ignored
            threshold = self.threshold / len(self.touched_nodes)
            for node in self.touched_nodes:
                if node.energy < threshold:
                    continue
                self._compete(node)

        self.threshold = 0.0
        self.unpredicted_nodes.clear()
        self.thinking_nodes.clear()

        # Reward the pools of the winners
        for area in self.areas:
            for node in area.values():
                if node.input:
                    if node.id not in input:
                        self.thinking_nodes.add(node.id)
                else:
                    self.unpredicted_nodes[node.id] = node
                node.reward()
                del self.touched_nodes[node]

        counters = self.state.counters
        counters.unpredicted_nodes_per_timestep += len(self.unpredicted_nodes)
        counters.thinking_nodes_per_timestep += len(self.thinking_nodes)

        # Punish every pool that predicted a node which did not win
        for node in self.touched_nodes:
            node.punish()
        self.touched_nodes.clear()

    def _compete(self, node: Node) -> None:
        area = self.areas_by_node_id[node.id]
        highest = area.get(PREDICTED)

        if node.input:
            # A predicted node takes the area over from the driver nodes
            if highest is None:
                area.clear()
                area[PREDICTED] = node
            elif node.energy > highest.energy:
                area[PREDICTED] = node
        elif highest is None:
            area[node.id] = node

    def activate(self) -> None:
        """Publish the winners and let them probe the pools they feed."""
        self.output.clear()
        winners = self.winners()
        for area in self.areas:
            area.clear()
        for node in winners:
            self.state.output.append(node)
            self.output[node.id] = 1
            node.activate()

    def winners(self) -> List[Node]:
        """Return the current winners of every area."""
        return [node for area in self.areas for node in area.values()]

    def report(self) -> str:
        output = sorted(self.output)
        unpredicted = sorted(self.unpredicted_nodes)
        thinking = sorted(self.thinking_nodes)
        return "\n".join([
            f"================ NODES ================ LAYER {self.id}",
            f"           Output -> {len(output)} - {output}",
            f"      Unpredicted -> {len(unpredicted)} - {unpredicted}",
            f"         Thinking -> {len(thinking)} - {thinking}",
            f"  Output/Timestep -> {round(len(output) / len(self.nodes) * 100, 2)}%",
        ])
