"""Terminal rendering of node activity and number formatting for reports."""

import math
import re
from typing import Iterable, List, Mapping, Union

SYMBOLS = ['', 'k', 'M', 'G', 'T', 'P', 'E']
_TRAILING_ZEROS = re.compile(r"\.0+$|(\.[0-9]*[1-9])0+$")

# Background shades for intensities rounded to one decimal
COLORS = {
    '0.0': '\x1b[40m',
    '0.1': '\x1b[100m',
    '0.2': '\x1b[100m',
    '0.3': '\x1b[100m',
    '0.4': '\x1b[100m',
    '0.5': '\x1b[100m',
    '0.6': '\x1b[47m',
    '0.7': '\x1b[47m',
    '0.8': '\x1b[47m',
    '0.9': '\x1b[47m',
    '1.0': '\x1b[107m',
}
BLACK = COLORS['0.0']


def to_fixed(value: float) -> float:
    """Round onto 2 decimal numbers."""
    return round(float(value), 2)


def abbr(value: float) -> str:
    """Short representation of large numbers, e.g. 12500 -> '12.5k'."""
    tier = 0
    if value:
        tier = max(0, min(int(math.log10(abs(value)) / 3), len(SYMBOLS) - 1))
    if tier:
        value = value / 10 ** (tier * 3)
    text = _TRAILING_ZEROS.sub(lambda match: match.group(1) or '', f"{value:.2f}")
    return text + SYMBOLS[tier]


def render_activity(
    size: int,
    row: int,
    activations: Union[Mapping[int, float], Iterable[int]],
    colored: bool = False,
) -> List[str]:
    """Render node ids ``1..size`` as a grid ``row`` nodes wide.

    In colored mode ``activations`` maps node ids to intensities in [0, 1],
    otherwise every active node id is drawn as ``0``.
    """
    lines: List[str] = []
    cells: List[str] = []

    if colored and isinstance(activations, Mapping):
        for node_id in range(1, size + 1):
            value = activations.get(node_id)
            cells.append(COLORS[f"{min(max(value, 0.0), 1.0):.1f}"] if value else BLACK)
            if node_id % row:
                continue
            lines.append('  '.join(cells) + ' ' + BLACK)
            cells = []
    else:
        active = set(activations)
        for node_id in range(1, size + 1):
            cells.append('0' if node_id in active else ' ')
            if node_id % row:
                continue
            lines.append(' '.join(cells))
            cells = []

    if cells:
        lines.append(' '.join(cells))
    return lines
