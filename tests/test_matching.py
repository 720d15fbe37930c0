import numpy as np
import pytest

from strike import Cohort, EmptyCandidatePoolError, MatchResult, match


def cohort(*rows, treatment=0):
    """rows are (id, propensity, outcome) triples."""
    ids, ps, y = zip(*rows) if rows else ((), (), ())
    return Cohort(ids=list(ids), treatment=[treatment] * len(ids), outcome=list(y), propensity=list(ps))


class TestNearestNeighbour:
    def test_picks_closest_candidate(self):
        treated = cohort((1, 0.5, 10.0), treatment=1)
        control = cohort((2, 0.4, 4.0), (3, 0.52, 6.0))
        result = match(treated, control)
        assert isinstance(result, MatchResult)
        assert result.matched_ids.tolist() == [3]
        assert result.matched_outcome.tolist() == [6.0]

    def test_one_pair_per_query_in_query_order(self):
        rng = np.random.default_rng(0)
        treated = cohort(*[(i, p, 0.0) for i, p in enumerate(rng.uniform(size=40), start=1)], treatment=1)
        control = cohort(*[(i, p, 0.0) for i, p in enumerate(rng.uniform(size=25), start=100)])
        result = match(treated, control)
        assert len(result) == len(treated)
        assert result.queries.ids.tolist() == treated.ids.tolist()
        assert set(result.matched_ids.tolist()) <= set(control.ids.tolist())

    def test_matches_are_true_nearest_neighbours(self):
        rng = np.random.default_rng(1)
        treated = cohort(*[(i, p, 0.0) for i, p in enumerate(rng.uniform(size=30), start=1)], treatment=1)
        control = cohort(*[(i, p, 0.0) for i, p in enumerate(rng.uniform(size=30), start=100)])
        result = match(treated, control)
        best = np.abs(control.propensity[None, :] - treated.propensity[:, None]).min(axis=1)
        np.testing.assert_array_equal(result.distances, best)

    def test_block_size_does_not_change_result(self):
        rng = np.random.default_rng(2)
        treated = cohort(*[(i, p, 0.0) for i, p in enumerate(rng.uniform(size=50), start=1)], treatment=1)
        control = cohort(*[(i, p, 0.0) for i, p in enumerate(rng.uniform(size=20), start=100)])
        whole = match(treated, control)
        blocked = match(treated, control, block_size=7)
        np.testing.assert_array_equal(whole.matched_index, blocked.matched_index)

    def test_empty_queries_give_empty_result(self):
        result = match(cohort(treatment=1), cohort((2, 0.4, 4.0)))
        assert len(result) == 0

    def test_non_positive_block_size_raises(self):
        with pytest.raises(ValueError, match="block_size"):
            match(cohort((1, 0.5, 1.0), treatment=1), cohort((2, 0.4, 4.0)), block_size=0)


class TestTieBreak:
    def test_tie_goes_to_first_candidate(self):
        treated = cohort((1, 0.5, 0.0), treatment=1)
        control = cohort((2, 0.75, 0.0), (3, 0.25, 0.0))
        assert match(treated, control).matched_ids.tolist() == [2]

    def test_tie_follows_candidate_order(self):
        treated = cohort((1, 0.5, 0.0), treatment=1)
        control = cohort((3, 0.25, 0.0), (2, 0.75, 0.0))
        assert match(treated, control).matched_ids.tolist() == [3]

    def test_tie_break_is_reproducible(self):
        treated = cohort((1, 0.5, 0.0), (4, 0.5, 0.0), treatment=1)
        control = cohort((2, 0.75, 0.0), (3, 0.25, 0.0), (5, 0.75, 0.0))
        runs = {tuple(match(treated, control).matched_ids.tolist()) for _ in range(10)}
        assert runs == {(2, 2)}


class TestSelfExclusion:
    def test_never_matches_itself(self):
        units = cohort((1, 0.5, 1.0), (2, 0.5, 2.0), (3, 0.75, 3.0))
        result = match(units, units.snapshot())
        assert all(q.id != m.id for q, m in result)

    def test_exclusion_is_by_identity_not_score(self):
        # Units 1 and 2 share a propensity score, so each is the other's match.
        units = cohort((1, 0.5, 1.0), (2, 0.5, 2.0), (3, 0.75, 3.0))
        result = match(units, units.snapshot())
        assert result.matched_ids.tolist() == [2, 1, 1]

    def test_single_unit_against_itself_raises(self):
        units = cohort((1, 0.5, 1.0))
        with pytest.raises(EmptyCandidatePoolError) as exc:
            match(units, units.snapshot())
        assert exc.value.unit_id == 1
        assert exc.value.pool_size == 1

    def test_empty_candidate_pool_raises(self):
        with pytest.raises(EmptyCandidatePoolError):
            match(cohort((1, 0.5, 1.0), treatment=1), cohort())


class TestReplacement:
    def test_control_reused_across_queries(self):
        treated = cohort((1, 0.5, 10.0), (2, 0.55, 12.0), treatment=1)
        control = cohort((3, 0.52, 6.0))
        result = match(treated, control)
        assert result.matched_ids.tolist() == [3, 3]
        assert result.match_counts() == {3: 2}
        assert result.distinct_matched_ids() == [3]

    def test_candidate_pool_not_mutated(self):
        treated = cohort((1, 0.5, 10.0), (2, 0.55, 12.0), treatment=1)
        control = cohort((3, 0.52, 6.0), (4, 0.9, 1.0))
        before = control.to_frame().copy()
        match(treated, control)
        assert control.to_frame().equals(before)

    def test_match_counts_in_order_of_first_use(self):
        treated = cohort((1, 0.9, 0.0), (2, 0.1, 0.0), (3, 0.88, 0.0), treatment=1)
        control = cohort((10, 0.12, 0.0), (11, 0.91, 0.0))
        assert list(match(treated, control).match_counts().items()) == [(11, 2), (10, 1)]

    def test_iteration_yields_unit_pairs(self):
        treated = cohort((1, 0.5, 10.0), treatment=1)
        control = cohort((2, 0.4, 4.0), (3, 0.52, 6.0))
        (query, matched), = list(match(treated, control))
        assert query.id == 1 and query.treatment == 1
        assert matched.id == 3 and matched.outcome == 6.0
