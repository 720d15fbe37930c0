from __future__ import annotations

import numpy as np
import pandas as pd

from ._check import RefutationCheck, RefutationReport
from .._exceptions import StrikeError

_RCC_SEED     = 54321
_PLACEBO_SEED = 99999
_RCC_COL      = "_rcc"


def _check_placebo_treatment(
    data: pd.DataFrame,
    settings,
    original_se: float,
) -> RefutationCheck:
    """
    Permute treatment labels at random and rerun the whole estimation.

    With labels assigned at random there is no effect to find, so the
    placebo ATT should stay within one standard error of zero.
    """
    rng = np.random.default_rng(_PLACEBO_SEED)
    T = settings.treatment
    augmented = data.assign(**{T: rng.permutation(data[T].to_numpy())})

    try:
        placebo_att = settings.estimator().fit(augmented).att
    except StrikeError as e:
        return RefutationCheck(
            name="Placebo treatment",
            passed=False,
            detail=f"Matching failed on permuted treatment ({type(e).__name__}: {e}).",
        )

    passed = abs(placebo_att) <= original_se
    if passed:
        detail = (
            f"placebo ATT = {placebo_att:.4f}  (≤ 1 SE = {original_se:.4f})  "
            f"Permuting treatment labels yields a near-zero effect, as expected."
        )
    else:
        detail = (
            f"placebo ATT = {placebo_att:.4f}  (> 1 SE = {original_se:.4f})  "
            f"A randomly permuted treatment produced a large effect; the original "
            f"result may be driven by residual confounding or an overfit propensity model."
        )
    return RefutationCheck(name="Placebo treatment", passed=passed, detail=detail, value=placebo_att)


def _check_random_common_cause(
    data: pd.DataFrame,
    settings,
    original_att: float,
    original_se: float,
) -> RefutationCheck:
    """
    Add a pure-noise covariate to the propensity model and rerun.

    The noise column is unrelated to everything, so the ATT should not move
    by more than one standard error.
    """
    rng = np.random.default_rng(_RCC_SEED)

    col = _RCC_COL
    while col in data.columns:
        col = "_" + col
    augmented = data.assign(**{col: rng.normal(size=len(data))})

    try:
        new_att = settings.estimator([*settings.covariates, col]).fit(augmented).att
    except StrikeError as e:
        return RefutationCheck(
            name="Random common cause",
            passed=False,
            detail=f"Matching failed after adding a random covariate ({type(e).__name__}: {e}).",
        )

    shift = abs(new_att - original_att)
    passed = shift <= original_se
    if passed:
        detail = f"estimate shifted by {shift:.4f}  (≤ 1 SE = {original_se:.4f})"
    else:
        detail = (
            f"estimate shifted by {shift:.4f}  (> 1 SE = {original_se:.4f})  "
            f"Adding a random common cause destabilised the ATT estimate."
        )
    return RefutationCheck(name="Random common cause", passed=passed, detail=detail, value=shift)


class MatchingRefutationReport(RefutationReport):
    """
    Results of refutation checks run against a propensity score matching
    estimation.

    Obtain via ``EstimationResult.refute(data)``. Each check is a
    ``RefutationCheck`` in ``.checks``; the overall verdict is ``.passed``.

    Example::

        result = PropensityScoreMatching(
            treatment="education", outcome="income", covariates=["ability"]
        ).fit(df)
        report = result.refute(df)
        print(report.summary())
    """

    def _header_lines(self) -> list[str]:
        return [f"PSM Refutation Report: {self._treatment} → {self._outcome}"]
