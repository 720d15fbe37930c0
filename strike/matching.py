from __future__ import annotations

import logging
from typing import Iterator

import numpy as np

from .cohort import Cohort, Unit
from ._exceptions import EmptyCandidatePoolError

logger = logging.getLogger(__name__)

_BLOCK_SIZE = 2048


class MatchResult:
    """
    Nearest-neighbour matches for a query cohort.

    Position ``i`` pairs ``queries[i]`` with ``candidates[matched_index[i]]``.
    Because matching is with replacement, the same candidate may appear at
    several positions.
    """

    def __init__(self, queries: Cohort, candidates: Cohort, matched_index: np.ndarray) -> None:
        matched_index = np.asarray(matched_index, dtype=np.intp).copy()
        if len(matched_index) != len(queries):
            raise ValueError(
                f"Expected one match per query ({len(queries)}), got {len(matched_index)}."
            )
        matched_index.flags.writeable = False
        self._queries = queries
        self._candidates = candidates
        self._matched_index = matched_index

    @property
    def queries(self) -> Cohort:
        return self._queries

    @property
    def candidates(self) -> Cohort:
        return self._candidates

    @property
    def matched_index(self) -> np.ndarray:
        """Position of each query's match within ``candidates``."""
        return self._matched_index

    @property
    def matched_ids(self) -> np.ndarray:
        return self._candidates.ids[self._matched_index]

    @property
    def matched_outcome(self) -> np.ndarray:
        return self._candidates.outcome[self._matched_index]

    @property
    def matched_propensity(self) -> np.ndarray:
        return self._candidates.propensity[self._matched_index]

    @property
    def distances(self) -> np.ndarray:
        """Absolute propensity score gap of every matched pair."""
        return np.abs(self.matched_propensity - self._queries.propensity)

    def match_counts(self) -> dict[int, int]:
        """How many times each matched unit was used, keyed by id in order of first use."""
        counts: dict[int, int] = {}
        for unit_id in self.matched_ids.tolist():
            counts[unit_id] = counts.get(unit_id, 0) + 1
        return counts

    def distinct_matched_ids(self) -> list[int]:
        return list(self.match_counts())

    def __len__(self) -> int:
        return len(self._matched_index)

    def __iter__(self) -> Iterator[tuple[Unit, Unit]]:
        for i, j in enumerate(self._matched_index):
            yield self._queries[i], self._candidates[int(j)]

    def __repr__(self) -> str:
        return (
            f"MatchResult(n_pairs={len(self)}, "
            f"distinct_matched={len(self.match_counts())})"
        )


def match(queries: Cohort, candidates: Cohort, block_size: int = _BLOCK_SIZE) -> MatchResult:
    """
    1-to-1 nearest-neighbour matching on propensity score, with replacement.

    For each query unit, candidates sharing its id are excluded first, so a
    cohort can be matched against itself. Among the rest the one with the
    smallest absolute propensity difference wins; exact ties go to the
    candidate that comes first in ``candidates``.

    Parameters
    ----------
    queries : Cohort
        Units that need a match, e.g. the treated cohort.
    candidates : Cohort
        Pool to match from. It is never modified, so every candidate stays
        available to every query.
    block_size : int
        Number of queries whose distances are computed at once. Only affects
        memory use.

    Raises
    ------
    ``EmptyCandidatePoolError``
        If ``candidates`` is empty, or some query has no candidate other
        than itself.
    """
    if len(candidates) == 0:
        raise EmptyCandidatePoolError(unit_id=None, pool_size=0)
    if block_size < 1:
        raise ValueError(f"block_size must be a positive integer, got {block_size}.")

    q_ps, q_ids = queries.propensity, queries.ids
    c_ps, c_ids = candidates.propensity, candidates.ids
    matched = np.empty(len(queries), dtype=np.intp)

    for start in range(0, len(queries), block_size):
        stop = min(start + block_size, len(queries))
        dists = np.abs(c_ps[None, :] - q_ps[start:stop, None])
        # Identity, not propensity, decides what counts as the unit itself.
        dists[q_ids[start:stop, None] == c_ids[None, :]] = np.inf

        # argmin returns the first minimum, which is the tie-break rule.
        best = np.argmin(dists, axis=1)
        no_candidate = np.isinf(dists[np.arange(stop - start), best])
        if no_candidate.any():
            i = start + int(np.flatnonzero(no_candidate)[0])
            raise EmptyCandidatePoolError(unit_id=int(q_ids[i]), pool_size=len(candidates))
        matched[start:stop] = best

    logger.debug(
        "Matched %d queries against %d candidates (%d distinct used)",
        len(queries), len(candidates), len(np.unique(matched)),
    )
    return MatchResult(queries, candidates, matched)
