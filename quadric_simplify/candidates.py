"""
Edge Collapse Candidates
========================

Cost model and priority queue for edge contractions.

The cost of contracting an edge (v1, v2) is the combined quadric error at
the midpoint m = (p1 + p2) / 2:

    cost = m^T * (Q1 + Q2) * m

The midpoint is used instead of the error-minimising point of the
combined quadric. It is cheaper and always lies on the edge, at the price
of slightly higher error than the optimal placement.
"""

import heapq
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from .qem import compute_error


@dataclass(order=True)
class EdgeCandidate:
    """Priority queue entry; ordered by cost, ties broken by edge key."""
    cost: float
    edge_key: int
    v1: int = field(compare=False)
    v2: int = field(compare=False)
    position: np.ndarray = field(compare=False, repr=False)

    @property
    def endpoints(self) -> Tuple[int, int]:
        return self.v1, self.v2


def collapse_cost(p1: np.ndarray, p2: np.ndarray,
                  Q1: np.ndarray, Q2: np.ndarray) -> Tuple[float, np.ndarray]:
    """
    Compute the midpoint collapse error for an edge.

    Args:
        p1, p2: Positions of the edge endpoints
        Q1, Q2: Quadrics of the edge endpoints

    Returns:
        Tuple of (cost, merge_position)
    """
    midpoint = (np.asarray(p1, dtype=np.float64) + np.asarray(p2, dtype=np.float64)) / 2
    return compute_error(Q1 + Q2, midpoint), midpoint


class CandidateSet:
    """
    Contractable edges keyed by edge id, with extract-min by cost.

    Backed by a binary heap with lazy deletion: removing or updating a
    candidate only drops it from the key map, and outdated heap entries
    are discarded when they surface. The heap is rebuilt whenever dead
    entries outnumber live ones.
    """

    def __init__(self):
        self._entries: Dict[int, EdgeCandidate] = {}
        self._heap: List[EdgeCandidate] = []

    def _make(self, edge_key: int, v1: int, v2: int,
              p1: np.ndarray, p2: np.ndarray,
              Q1: np.ndarray, Q2: np.ndarray) -> EdgeCandidate:
        cost, position = collapse_cost(p1, p2, Q1, Q2)
        if not np.isfinite(cost):
            raise ValueError(f"Non-finite collapse cost for edge {edge_key}")
        return EdgeCandidate(cost=cost, edge_key=edge_key, v1=v1, v2=v2, position=position)

    def _push(self, candidate: EdgeCandidate):
        self._entries[candidate.edge_key] = candidate
        heapq.heappush(self._heap, candidate)
        if len(self._heap) > 2 * len(self._entries) + 16:
            self._compact()

    def _compact(self):
        self._heap = list(self._entries.values())
        heapq.heapify(self._heap)

    def insert(self, edge_key: int, v1: int, v2: int,
               p1: np.ndarray, p2: np.ndarray,
               Q1: np.ndarray, Q2: np.ndarray) -> EdgeCandidate:
        """Add a new candidate; the edge must not be present yet."""
        if edge_key in self._entries:
            raise ValueError(f"Edge {edge_key} is already a candidate")
        candidate = self._make(edge_key, v1, v2, p1, p2, Q1, Q2)
        self._push(candidate)
        return candidate

    def update(self, edge_key: int, v1: int, v2: int,
               p1: np.ndarray, p2: np.ndarray,
               Q1: np.ndarray, Q2: np.ndarray) -> EdgeCandidate:
        """Recompute cost and merge position of an existing candidate."""
        if edge_key not in self._entries:
            raise KeyError(edge_key)
        candidate = self._make(edge_key, v1, v2, p1, p2, Q1, Q2)
        self._push(candidate)
        return candidate

    def remove(self, edge_key: int) -> Optional[EdgeCandidate]:
        """Drop a candidate; unknown keys are ignored."""
        return self._entries.pop(edge_key, None)

    def _discard_stale(self):
        heap = self._heap
        while heap and self._entries.get(heap[0].edge_key) is not heap[0]:
            heapq.heappop(heap)

    def peek(self) -> Optional[EdgeCandidate]:
        self._discard_stale()
        return self._heap[0] if self._heap else None

    def extract_min(self) -> Optional[EdgeCandidate]:
        """
        Remove and return the cheapest candidate.

        Returns:
            The candidate with the smallest (cost, edge_key), or None if
            the set is empty
        """
        self._discard_stale()
        if not self._heap:
            return None
        candidate = heapq.heappop(self._heap)
        del self._entries[candidate.edge_key]
        return candidate

    def get(self, edge_key: int) -> Optional[EdgeCandidate]:
        return self._entries.get(edge_key)

    def costs(self) -> Dict[int, float]:
        return {key: c.cost for key, c in self._entries.items()}

    def __contains__(self, edge_key: int) -> bool:
        return edge_key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[EdgeCandidate]:
        return iter(list(self._entries.values()))
