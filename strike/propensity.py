from __future__ import annotations

import logging
import warnings
from abc import ABC, abstractmethod

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.tools.sm_exceptions import (
    ConvergenceWarning,
    PerfectSeparationError,
    PerfectSeparationWarning,
)

from ._exceptions import ScoreProviderError

logger = logging.getLogger(__name__)

_EXTREME_LOW  = 0.1
_EXTREME_HIGH = 0.9


class ScoreProvider(ABC):
    """
    Turns covariates into propensity scores.

    Any classifier can stand behind this interface as long as it returns one
    probability in [0, 1] per row, in input order. The engine checks the
    output with ``validate_scores`` whatever the implementation.
    """

    @abstractmethod
    def fit_predict(self, covariates: pd.DataFrame, treatment: np.ndarray) -> np.ndarray:
        """Fit on ``covariates`` and the binary ``treatment`` labels; return P(treated) per row."""


class LogisticScoreProvider(ScoreProvider):
    """
    Logistic regression of treatment on covariates, with an intercept.

    With no covariate columns the model is intercept-only and every unit
    gets the treatment base rate as its score.

    Parameters
    ----------
    standardize : bool
        Z-score each covariate before fitting. The maximum likelihood fit is
        invariant to this in exact arithmetic, but scaling can help the
        optimiser when covariates differ by orders of magnitude.
    max_iter : int
        Maximum Newton iterations. Hitting the limit raises
        ``ScoreProviderError``.
    """

    def __init__(self, standardize: bool = True, max_iter: int = 100) -> None:
        self.standardize = standardize
        self.max_iter = max_iter

    def fit_predict(self, covariates: pd.DataFrame, treatment: np.ndarray) -> np.ndarray:
        d = np.asarray(treatment, dtype=float)
        classes = set(np.unique(d).tolist())
        if classes != {0.0, 1.0}:
            raise ScoreProviderError(
                f"Logistic propensity model needs both treated and control units; "
                f"found treatment values {sorted(classes)}."
            )

        X = covariates.astype(float)
        constant = [c for c in X.columns if X[c].nunique() <= 1]
        if constant:
            raise ScoreProviderError(
                f"Covariates {constant} are constant and collinear with the intercept; "
                f"drop them before fitting the propensity model."
            )
        if self.standardize:
            X = _standardize(X)
        design = np.column_stack([np.ones(len(X)), X.to_numpy()])

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            warnings.simplefilter("error", PerfectSeparationWarning)
            try:
                res = sm.Logit(d, design).fit(disp=0, maxiter=self.max_iter)
            except (PerfectSeparationError, PerfectSeparationWarning) as e:
                raise ScoreProviderError(
                    f"Covariates {list(covariates.columns)} perfectly separate treated "
                    f"from control units; propensity scores are degenerate."
                ) from e
            except np.linalg.LinAlgError as e:
                raise ScoreProviderError(
                    f"Propensity model design matrix is singular; check covariates "
                    f"{list(covariates.columns)} for collinearity."
                ) from e

        if not res.mle_retvals.get("converged", False):
            raise ScoreProviderError(
                f"Logistic propensity model did not converge within {self.max_iter} iterations."
            )
        return np.asarray(res.predict(design), dtype=float)

    def __repr__(self) -> str:
        return f"LogisticScoreProvider(standardize={self.standardize}, max_iter={self.max_iter})"


def _standardize(X: pd.DataFrame) -> pd.DataFrame:
    # Population std, matching a fitted StandardScaler. Columns are non-constant here.
    return (X - X.mean()) / X.std(ddof=0)


def validate_scores(scores, n: int) -> np.ndarray:
    """
    Check a provider's output and return it as a float array.

    Raises
    ------
    ``ScoreProviderError``
        If the scores are not a length-``n`` vector of finite values in [0, 1].
    """
    try:
        arr = np.asarray(scores, dtype=float)
    except (TypeError, ValueError) as e:
        raise ScoreProviderError(f"Propensity scores are not numeric: {e}") from e

    if arr.ndim != 1 or len(arr) != n:
        raise ScoreProviderError(
            f"Expected {n} propensity scores, got an array of shape {arr.shape}."
        )
    if not np.isfinite(arr).all():
        raise ScoreProviderError(
            f"{int((~np.isfinite(arr)).sum())} propensity scores are NaN or infinite."
        )
    if ((arr < 0.0) | (arr > 1.0)).any():
        raise ScoreProviderError(
            f"Propensity scores must lie in [0, 1]; got range "
            f"[{arr.min():.4f}, {arr.max():.4f}]."
        )

    n_extreme = int(((arr < _EXTREME_LOW) | (arr > _EXTREME_HIGH)).sum())
    if n_extreme:
        logger.warning(
            "%d of %d propensity scores fall outside [%.1f, %.1f]; overlap may be limited",
            n_extreme, n, _EXTREME_LOW, _EXTREME_HIGH,
        )
    return arr
