import pytest
import sys
from pathlib import Path

import numpy as np

sys.path.append(str(Path(__file__).parent.parent))

from dataset import count_rows, read_dataset, read_mapping, to_input


@pytest.fixture
def files(tmp_path):
    mapping = tmp_path / "digits-mapping.txt"
    mapping.write_text("0 48\n1 49\n2 0\n3 abc\n\n", encoding="utf8")
    dataset = tmp_path / "digits-train-SORTED.csv"
    dataset.write_text(
        "label,p1,p2,p3\n"
        "0,0,255,0\n"
        "2,255,0,0\n"
        "1,0,0,51\n"
        "3,255,255,255\n"
        "7,0,255,255\n",
        encoding="utf8",
    )
    return dataset, mapping


def test_read_mapping(files):
    _, mapping = files
    assert read_mapping(mapping) == {0: "0", 1: "1", 2: "0", 3: "abc"}


def test_to_input_is_sparse_and_one_based():
    result = to_input(np.array([0, 255, 0, 51]))
    assert result == {2: pytest.approx(1.0), 4: pytest.approx(0.2)}


def test_read_dataset_skips_unmapped_labels(files):
    dataset, mapping = files
    samples = list(read_dataset(dataset, mapping, chunksize=1))
    assert [label for _, label in samples] == ["0", "0", "1", "abc"]
    assert samples[0][0] == {2: pytest.approx(1.0)}
    assert samples[1][0] == {1: pytest.approx(1.0)}
    assert samples[2][0] == {3: pytest.approx(0.2)}
    assert set(samples[3][0]) == {1, 2, 3}


def test_count_rows(files):
    dataset, _ = files
    assert count_rows(dataset) == 5
