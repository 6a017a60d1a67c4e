import pytest

from dnet_tui.constants import DEFAULT_NUM_LAYERS, layers_for_model
from dnet_tui.utils.layers import (
    determine_next_instances,
    find_collisions,
    find_missing_layers,
    format_layer_ranges,
    format_layers,
    format_rounds,
    is_contiguous,
    parse_layer_input,
    ring_order,
)

pytestmark = pytest.mark.core


def test_format_layers_collapses_runs():
    assert format_layers([0, 1, 2, 5]) == "0-2,5"
    assert format_layers([7]) == "7"
    assert format_layers([3, 1, 2, 2]) == "1-3"
    assert format_layers([]) == "[]"


def test_format_layer_ranges_uses_spaced_separator_and_none():
    assert format_layer_ranges([0, 1, 2, 10, 20, 21, 22]) == "0-2, 10, 20-22"
    assert format_layer_ranges([]) == "none"


def test_format_rounds():
    assert format_rounds([list(range(0, 12)), list(range(12, 24))]) == "[0..11, 12..23]"
    assert format_rounds([[4]]) == "[4]"
    assert format_rounds([[]]) == "[[]]"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("0-3, 7", [0, 1, 2, 3, 7]),
        ("5", [5]),
        ("2,1,2", [1, 2]),
        (" 0 - 2 ", [0, 1, 2]),
        ("a,3", [3]),
        ("3-1", None),
        ("36", None),
        ("", None),
    ],
)
def test_parse_layer_input(text, expected):
    assert parse_layer_input(text, 36) == expected


def test_format_output_parses_back():
    layers = [0, 1, 2, 9, 10, 30]
    assert parse_layer_input(format_layers(layers), 36) == layers


def test_is_contiguous():
    assert is_contiguous([4, 5, 6])
    assert not is_contiguous([4, 6])
    assert not is_contiguous([])


def test_find_missing_layers():
    assert find_missing_layers({0, 1, 3}, 5) == [2, 4]
    assert find_missing_layers(set(range(4)), 4) == []


def test_find_collisions_ignores_own_layers():
    assignments = {"A": [6, 7], "B": [0, 1, 2]}
    assert find_collisions(assignments, "B", [5, 6]) == {6: "A"}
    assert find_collisions(assignments, "A", [6, 7, 8]) == {}


def test_next_instances_form_single_cycle():
    assignments = {
        "C": list(range(24, 36)),
        "A": list(range(0, 12)),
        "B": list(range(12, 24)),
    }
    nxt = determine_next_instances(assignments)
    assert nxt == {"A": "B", "B": "C", "C": "A"}

    # walking the ring from any shard visits every shard exactly once
    seen, cur = [], "B"
    for _ in assignments:
        seen.append(cur)
        cur = nxt[cur]
    assert cur == "B"
    assert sorted(seen) == ["A", "B", "C"]


def test_single_shard_points_to_itself():
    assert determine_next_instances({"solo": list(range(8))}) == {"solo": "solo"}


def test_ring_order_follows_first_layer():
    assignments = {"B": [10, 11], "A": [0, 1, 2], "C": [], "D": [3, 4, 5, 6, 7, 8, 9]}
    assert ring_order(assignments) == ["A", "D", "B"]


def test_layers_for_model():
    assert layers_for_model("Qwen/Qwen3-4B-MLX-4bit") == 36
    assert layers_for_model("Qwen/Qwen3-30B-A3B-MLX-8bit") == 30
    assert layers_for_model("openai/gpt-oss-120b") == 120
    assert layers_for_model("someone/unknown-model") == DEFAULT_NUM_LAYERS
