import sys
from pathlib import Path

import matplotlib
matplotlib.use('Agg')

sys.path.append(str(Path(__file__).parent.parent))

from run import ExperimentConfig, build_regions, main, parse_args


def write_split(path, rows):
    lines = ["label,p1,p2,p3,p4"] + [",".join(str(value) for value in row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf8")


def test_parse_args_overrides_network_parameters():
    config, parameters, args = parse_args([
        "--size", "16",
        "--row", "4",
        "--square", "2",
        "--minimum-links-in-pool", "3",
        "--exponential-growth", "1.5",
    ])
    assert config == ExperimentConfig(size=16, row=4, square=2, layer_id="A2")
    assert parameters.minimum_links_in_pool == 3
    assert parameters.exponential_growth == 1.5
    assert parameters.temporal_length is None
    assert args.plot is None


def test_build_regions():
    regions = build_regions(ExperimentConfig(size=16, row=4, square=2, layer_id="A2"))
    assert regions == [{"size": 16, "layers": [{"id": "A2", "inhibition": {"row": 4, "square": 2}}]}]


def test_main_trains_and_tests(tmp_path):
    prefix = tmp_path / "tiny"
    Path(f"{prefix}-mapping.txt").write_text("0 97\n1 98\n", encoding="utf8")
    first, second = [0, 255, 255, 0, 0], [1, 0, 0, 255, 255]
    write_split(Path(f"{prefix}-train-SORTED.csv"), [first] * 5 + [second] * 5)
    write_split(Path(f"{prefix}-test-SORTED.csv"), [first, second])
    plot = tmp_path / "sparsity.png"

    total = main([
        "--dataset", str(prefix),
        "--size", "4",
        "--row", "2",
        "--square", "1",
        "--seed", "1",
        "--temporal-length", "1",
        "--plot", str(plot),
    ])

    assert 0.0 <= total <= 100.0
    assert plot.exists()
