"""Reader for EMNIST style CSV datasets.

Each row holds a label index followed by pixel intensities 0..255. The mapping
file translates label indexes into characters, one ``"<index> <code>"`` pair
per line.
"""

from pathlib import Path
from typing import (
    Dict,
    Iterator,
    Tuple,
    Union,
)

import numpy as np
import pandas as pd

PathLike = Union[str, Path]
Sample = Tuple[Dict[int, float], str]


def read_mapping(path: PathLike) -> Dict[int, str]:
    """Map label indexes to labels; non-zero integer codes are converted to characters."""
    mapping: Dict[int, str] = {}
    for line in Path(path).read_text(encoding="utf8").splitlines():
        parts = line.split(" ", 1)
        if len(parts) != 2 or not parts[0].strip():
            continue
        index, code = int(parts[0]), parts[1].strip()
        if not code:
            continue
        # Code 0 has no character and is kept as the label "0"
        if code.isdigit() and int(code):
            mapping[index] = chr(int(code))
        else:
            mapping[index] = code
    return mapping


def to_input(pixels: np.ndarray) -> Dict[int, float]:
    """Sparse [0-1] input at 1-based node ids; zero pixels are left out."""
    indices = np.flatnonzero(pixels)
    return {int(index) + 1: float(pixels[index]) / 255 for index in indices}


def read_dataset(
    dataset: PathLike,
    mapping: PathLike,
    chunksize: int = 10_000,
) -> Iterator[Sample]:
    """Yield (input, label) pairs; rows without a mapped label are skipped."""
    labels = read_mapping(mapping)
    for chunk in pd.read_csv(dataset, header=0, chunksize=chunksize):
        values = chunk.to_numpy()
        for row in values:
            label = labels.get(int(row[0]))
            if label is None:
                continue
            yield to_input(row[1:]), label


def count_rows(dataset: PathLike) -> int:
    """Number of samples in ``dataset`` (header excluded)."""
    with open(dataset, encoding="utf8") as handle:
        return max(0, sum(1 for line in handle if line.strip()) - 1)
