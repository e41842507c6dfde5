"""Topological inhibition areas.

A layer is a grid of nodes ``row`` wide. The grid is cut into square blocks of
``square`` x ``square`` nodes laid out in row-major order; each block is an
inhibition area whose nodes compete with each other every timestep.
"""

import math
from typing import Dict, List, Tuple

from config import ConfigurationError

# Area is an insertion ordered mapping of winner slots. Key 0 is reserved for
# the predicted winner, node ids (>= 1) hold driver winners.
Area = Dict[int, object]


def _check_dimension(name: str, value: object) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ConfigurationError(f'"{name}" must be a positive integer, got {value!r}.')
    return value


def build_areas(size: int, row: int, square: int) -> Tuple[List[Area], Dict[int, Area]]:
    """Partition node ids ``1..size`` into square inhibition areas.

    Blocks that cross the right edge of a row stop at the edge, and ids above
    ``size`` are dropped, so every node id lands in exactly one area.

    Returns:
        (areas, areas_by_node_id)
    """
    _check_dimension("size", size)
    _check_dimension("row", row)
    _check_dimension("square", square)

    areas: List[Area] = []
    areas_by_node_id: Dict[int, Area] = {}
    ycount = math.ceil(size / row / square)
    xcount = math.ceil(row / square)

    for y in range(ycount):
        for x in range(xcount):
            area: Area = {}
            members = 0
            for j in range(square):
                for i in range(square):
                    node_id = (y * square + j) * row + (x * square + i) + 1
                    if node_id > size:
                        continue
                    areas_by_node_id[node_id] = area
                    members += 1
                    if node_id % row == 0:
                        break
            if members:
                areas.append(area)

    return areas, areas_by_node_id
