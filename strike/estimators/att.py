from __future__ import annotations

from typing import Callable

import numpy as np

from ..cohort import Cohort, Unit
from ..matching import MatchResult
from .._exceptions import UndefinedMeanError


def _check_correspondence(treated: Cohort, matched_controls: MatchResult) -> None:
    """The match result must pair up with ``treated`` position by position."""
    if len(matched_controls) != len(treated) or not np.array_equal(
        matched_controls.queries.ids, treated.ids
    ):
        raise ValueError(
            f"Matches do not line up with the treated cohort "
            f"({len(matched_controls)} pairs for {len(treated)} treated units)."
        )


def estimate_att(
    treated: Cohort,
    matched_controls: MatchResult,
    outcome_of: Callable[[Unit], float] | None = None,
) -> float:
    """
    ATT as the mean outcome difference across matched pairs.

    This is the plain matching estimator, with no bias correction for
    covariate imbalance left over after matching.

    Parameters
    ----------
    treated : Cohort
        The treated cohort, in the order it was matched.
    matched_controls : MatchResult
        Result of matching ``treated`` against the control cohort.
    outcome_of : callable, optional
        Maps a ``Unit`` to the outcome to compare. Defaults to ``Unit.outcome``.

    Raises
    ------
    ``UndefinedMeanError``
        If ``treated`` is empty.
    """
    if len(treated) == 0:
        raise UndefinedMeanError("Cannot compute the ATT over an empty treated cohort (size 0).")
    _check_correspondence(treated, matched_controls)

    if outcome_of is None:
        y_treated = treated.outcome
        y_matched = matched_controls.matched_outcome
    else:
        pairs = list(matched_controls)
        y_treated = np.array([outcome_of(t) for t, _ in pairs], dtype=float)
        y_matched = np.array([outcome_of(c) for _, c in pairs], dtype=float)

    return float(np.mean(y_treated - y_matched))


def unadjusted_difference(treated: Cohort, control: Cohort) -> float:
    """Naive mean outcome difference between treated and control, no matching."""
    if len(treated) == 0 or len(control) == 0:
        raise UndefinedMeanError(
            f"Naive difference needs both groups; got {len(treated)} treated "
            f"and {len(control)} control units."
        )
    return float(treated.outcome.mean() - control.outcome.mean())
