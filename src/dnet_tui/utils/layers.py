"""Layer-range helpers for topology display and the manual assignment editor."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Set


def _collapse(layers: Iterable[int]) -> List[tuple[int, int]]:
    """Group sorted unique layers into inclusive ``(start, end)`` runs."""
    ordered = sorted(set(layers))
    if not ordered:
        return []
    runs: List[tuple[int, int]] = []
    start = end = ordered[0]
    for layer in ordered[1:]:
        if layer == end + 1:
            end = layer
            continue
        runs.append((start, end))
        start = end = layer
    runs.append((start, end))
    return runs


def format_layers(layers: Iterable[int], sep: str = ",", empty: str = "[]") -> str:
    """Compact range notation, e.g. ``[0, 1, 2, 5]`` -> ``"0-2,5"``.

    The output is accepted back by :func:`parse_layer_input`.
    """
    runs = _collapse(layers)
    if not runs:
        return empty
    return sep.join(str(a) if a == b else f"{a}-{b}" for a, b in runs)


def format_layer_ranges(layers: Iterable[int]) -> str:
    """Shard-health notation: ``"0-2, 10, 20-22"``, or ``"none"``."""
    return format_layers(layers, sep=", ", empty="none")


def format_rounds(rounds: List[List[int]]) -> str:
    """Topology notation for per-round layer lists: ``"[0..11, 12..23]"``."""
    parts = []
    for layers in rounds:
        if not layers:
            parts.append("[]")
        elif len(layers) == 1:
            parts.append(str(layers[0]))
        else:
            parts.append(f"{layers[0]}..{layers[-1]}")
    return f"[{', '.join(parts)}]"


def parse_layer_input(text: str, num_layers: int) -> Optional[List[int]]:
    """Parse ``"0-3, 7, 9-10"`` into a sorted, de-duplicated layer list.

    Each comma-separated token is an integer or an inclusive ``a-b`` range.
    Values must lie in ``[0, num_layers)`` and ranges need ``a <= b``. Invalid
    tokens are dropped; ``None`` is returned when nothing valid remains.
    """
    layers: Set[int] = set()
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start_s, _, end_s = part.partition("-")
            try:
                start, end = int(start_s.strip()), int(end_s.strip())
            except ValueError:
                continue
            if 0 <= start <= end < num_layers:
                layers.update(range(start, end + 1))
        else:
            try:
                layer = int(part)
            except ValueError:
                continue
            if 0 <= layer < num_layers:
                layers.add(layer)
    return sorted(layers) or None


def is_contiguous(layers: List[int]) -> bool:
    return len(_collapse(layers)) == 1


def find_missing_layers(assigned: Set[int], total: int) -> List[int]:
    return [i for i in range(total) if i not in assigned]


def find_collisions(
    assignments: Mapping[str, List[int]], instance: str, layers: Iterable[int]
) -> Dict[int, str]:
    """Layers in ``layers`` already owned by a shard other than ``instance``."""
    owners = {
        layer: owner
        for owner, owned in assignments.items()
        if owner != instance
        for layer in owned
    }
    return {layer: owners[layer] for layer in layers if layer in owners}


def determine_next_instances(assignments: Mapping[str, List[int]]) -> Dict[str, str]:
    """Derive ring successors from the layer partition.

    Each shard's successor owns ``max(own) + 1``; the shard holding the
    highest layer wraps around to the owner of layer 0.
    """
    first_layer_owner: Dict[int, str] = {
        min(layers): shard for shard, layers in assignments.items() if layers
    }
    next_instances: Dict[str, str] = {}
    for shard, layers in assignments.items():
        if not layers:
            continue
        successor = first_layer_owner.get(max(layers) + 1, first_layer_owner.get(0))
        if successor is not None:
            next_instances[shard] = successor
    return next_instances


def ring_order(assignments: Mapping[str, List[int]]) -> List[str]:
    """Shards ordered by their first layer, i.e. the walk starting at layer 0."""
    return [
        shard
        for shard, layers in sorted(
            ((s, ls) for s, ls in assignments.items() if ls), key=lambda kv: min(kv[1])
        )
    ]
