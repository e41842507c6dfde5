import pytest
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

from temporal import TemporalState, generate_temporal_input


class CountingDict(dict):
    """Dict that counts writes and deletes."""

    def __init__(self):
        super().__init__()
        self.mutations = 0

    def __setitem__(self, key, value):
        self.mutations += 1
        super().__setitem__(key, value)

    def __delitem__(self, key):
        self.mutations += 1
        super().__delitem__(key)


def test_first_input_is_scaled_by_multiplier():
    state = TemporalState()
    result = generate_temporal_input(state, {1: 0.5, 2: 1.0}, 3, 10)
    assert result == {1: pytest.approx(5.0), 2: pytest.approx(10.0)}
    assert len(state) == 1


def test_average_over_window():
    state = TemporalState()
    generate_temporal_input(state, {1: 1.0}, 3, 1)

    result = generate_temporal_input(state, {2: 1.0}, 3, 1)
    assert result == {1: pytest.approx(0.5), 2: pytest.approx(0.5)}

    result = generate_temporal_input(state, {}, 3, 1)
    assert result == {1: pytest.approx(1 / 3), 2: pytest.approx(1 / 3)}


def test_oldest_input_leaves_the_window():
    state = TemporalState()
    for input in ({1: 1.0}, {2: 1.0}, {}):
        generate_temporal_input(state, input, 3, 1)

    result = generate_temporal_input(state, {}, 3, 1)
    assert result == {2: pytest.approx(1 / 3)}
    assert 1 not in state.sums
    assert len(state) == 3


def test_window_of_one_returns_current_input():
    state = TemporalState()
    generate_temporal_input(state, {1: 1.0, 2: 1.0}, 1, 1000)
    result = generate_temporal_input(state, {3: 0.25}, 1, 1000)
    assert result == {3: pytest.approx(250.0)}
    assert set(state.sums) == {3}


def test_small_sums_are_dropped():
    state = TemporalState()
    generate_temporal_input(state, {1: 1.0}, 2, 1)
    generate_temporal_input(state, {1: 0.005}, 2, 1)
    # Sum of 0.005 left after eviction
    generate_temporal_input(state, {}, 2, 1)
    assert 1 not in state.sums


def test_zero_values_are_not_returned():
    state = TemporalState()
    result = generate_temporal_input(state, {1: 0.0, 2: 1.0}, 2, 1)
    assert result == {2: pytest.approx(1.0)}


def test_input_is_copied_into_window():
    state = TemporalState()
    input = {1: 1.0}
    generate_temporal_input(state, input, 2, 1)
    input[1] = 100.0
    assert state.stack[0] == {1: 1.0}
    assert state.sums == {1: 1.0}


def test_evicting_an_already_pruned_key():
    state = TemporalState()
    generate_temporal_input(state, {1: 0.004}, 1, 1)
    # Sum of 0.004 left after eviction is pruned
    generate_temporal_input(state, {1: 0.004}, 1, 1)
    assert 1 not in state.sums

    result = generate_temporal_input(state, {}, 1, 1)
    assert result == {}
    assert state.sums == {}
    assert len(state) == 1


@pytest.mark.parametrize("length", [5, 500])
def test_update_cost_does_not_depend_on_window_length(length):
    state = TemporalState()
    state.sums = CountingDict()
    inputs = [{step % 50 + 1: 1.0, (step + 7) % 50 + 1: 0.5} for step in range(1000)]

    for step, input in enumerate(inputs):
        evicted = state.stack[-1] if len(state.stack) == length else {}
        before = state.sums.mutations
        generate_temporal_input(state, input, length, 1)
        assert state.sums.mutations - before <= len(input) + len(evicted)
