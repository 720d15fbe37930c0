"""
Abadie and Imbens (2006) variance for the 1-to-1 matching estimator of the ATT.

The estimator allows for heteroskedasticity. Each unit in the matched sample
contributes its conditional outcome variance, weighted by how often it
enters the ATT: once for a treated unit, ``K`` times for a control that was
reused as a match ``K`` times. The conditional variance itself is estimated
by matching every unit to its nearest neighbour within its own group.
"""
from __future__ import annotations

import logging
from itertools import chain
from typing import Callable

import numpy as np

from ..cohort import Cohort, Unit
from ..matching import MatchResult, match
from .._exceptions import DegenerateSelfMatchError, UndefinedMeanError
from .att import _check_correspondence

logger = logging.getLogger(__name__)


def distinct_with_counts(matched_controls: MatchResult) -> tuple[Cohort, np.ndarray]:
    """
    Deduplicate the matched units and count how often each one was used.

    Returns the distinct matched units, in order of first use, alongside
    their reuse counts.
    """
    positions, first_use, counts = np.unique(
        matched_controls.matched_index, return_index=True, return_counts=True
    )
    order = np.argsort(first_use, kind="stable")
    return matched_controls.candidates.take(positions[order]), counts[order]


def conditional_variance(cohort: Cohort, label: str = "cohort") -> np.ndarray:
    """
    Two-point conditional outcome variance for every unit in ``cohort``.

    Each unit is matched to its nearest neighbour within a snapshot of the
    cohort (never to itself). With ``y`` the unit's outcome, ``y_m`` its
    neighbour's and ``ybar`` their mean, the estimate is
    ``(y - ybar)**2 + (y_m - ybar)**2``.

    Raises
    ------
    ``DegenerateSelfMatchError``
        If the cohort has fewer than 2 units.
    """
    if len(cohort) < 2:
        raise DegenerateSelfMatchError(len(cohort), label)

    self_matches = match(cohort, cohort.snapshot())
    y = cohort.outcome
    y_m = self_matches.matched_outcome
    y_bar = (y + y_m) / 2.0
    return (y - y_bar) ** 2 + (y_m - y_bar) ** 2


def estimate_variance(
    treated: Cohort,
    matched_controls: MatchResult,
    treatment_indicator: Callable[[Unit], int] | None = None,
) -> float:
    """
    Heteroskedasticity-robust variance of the matching ATT.

    Computes ``sum(w**2 * sigma2) / n_treated**2`` over the treated units and
    the distinct matched controls, where ``w = T + (1 - T) * K`` and ``K`` is
    the number of times a control served as a match.

    Parameters
    ----------
    treated : Cohort
        The treated cohort, in the order it was matched.
    matched_controls : MatchResult
        Result of matching ``treated`` against the control cohort.
    treatment_indicator : callable, optional
        Maps a ``Unit`` to 0 or 1. Defaults to ``Unit.treatment``.

    Raises
    ------
    ``UndefinedMeanError``
        If ``treated`` is empty.
    ``DegenerateSelfMatchError``
        If the treated cohort or the set of distinct matched controls has
        fewer than 2 units.
    """
    n_treated = len(treated)
    if n_treated == 0:
        raise UndefinedMeanError("Cannot compute the ATT variance over an empty treated cohort (size 0).")
    _check_correspondence(treated, matched_controls)

    controls, reuse = distinct_with_counts(matched_controls)

    sigma2 = np.concatenate([
        conditional_variance(treated, "treated cohort"),
        conditional_variance(controls, "set of matched controls"),
    ])
    counts = np.concatenate([np.ones(n_treated, dtype=float), reuse.astype(float)])

    if treatment_indicator is None:
        t = np.concatenate([treated.treatment, controls.treatment]).astype(float)
    else:
        t = np.array([treatment_indicator(u) for u in chain(treated, controls)], dtype=float)
        if not np.isin(t, (0.0, 1.0)).all():
            raise ValueError("treatment_indicator must return 0 or 1 for every unit.")

    weights = t + (1.0 - t) * counts
    variance = float(np.sum(weights ** 2 * sigma2) / n_treated ** 2)

    logger.debug(
        "ATT variance from %d treated and %d distinct controls (max reuse %d): %.6g",
        n_treated, len(controls), int(reuse.max()), variance,
    )
    return variance
