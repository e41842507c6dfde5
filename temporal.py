from collections import deque
from typing import Deque, Dict, Mapping

# Running sums at or below this value are dropped to bound memory
EPSILON = 0.01

SparseVector = Mapping[int, float]


class TemporalState:
    """Rolling window of past inputs used to calculate a temporal moving average.

    One state is shared by all layers on the same horizontal level, i.e. all
    top layers of a region or all children of a layer.
    """

    def __init__(self) -> None:
        self.stack: Deque[Dict[int, float]] = deque()  # Last "length" inputs, newest first
        self.sums: Dict[int, float] = {}  # Running sum over the window

    def __len__(self) -> int:
        return len(self.stack)


def generate_temporal_input(
    state: TemporalState,
    input: SparseVector,
    length: int,
    multiplier: float,
) -> Dict[int, float]:
    """Return the moving average of the last ``length`` inputs scaled by ``multiplier``.

    Only the incoming vector and the vector that falls out of the window touch
    the running sums, so the update cost does not depend on ``length``.
    """
    sums = state.sums
    state.stack.appendleft(dict(input))

    for node_id, value in input.items():
        sums[node_id] = sums.get(node_id, 0) + value

    if len(state.stack) > length:
        for node_id, value in state.stack.pop().items():
            remaining = sums.get(node_id)
            if remaining is None:
                # Already pruned by an earlier eviction
                continue
            remaining -= value
            if remaining > EPSILON:
                sums[node_id] = remaining
            else:
                del sums[node_id]

    steps = len(state.stack)
    return {node_id: (value / steps) * multiplier for node_id, value in sums.items() if value > 0}
