from __future__ import annotations

import copy
import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
import scipy.stats as st

from ._config import MatchingConfig
from ._exceptions import MissingColumnError
from .cohort import Cohort, split_by_treatment
from .estimators import estimate_att, estimate_variance, unadjusted_difference
from .matching import MatchResult, match
from .propensity import LogisticScoreProvider, ScoreProvider, validate_scores
from .refutations._check import Assumption

logger = logging.getLogger(__name__)

MATCHING_ASSUMPTIONS: list[Assumption] = [
    Assumption("Conditional independence: no unobserved confounders given the covariates", testable=False),
    Assumption("Common support: treated propensity scores are covered by control scores", testable=True),
    Assumption("Correct specification of the propensity score model", testable=False),
    Assumption("Stable Unit Treatment Value Assumption (SUTVA)", testable=False),
]


# ── Result ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FitSettings:
    """
    Everything needed to repeat an estimation, captured when it ran.

    ``score_provider`` is a private copy, so later changes to the estimator
    or to the provider it was given do not reach results already produced.
    """

    treatment: str
    outcome: str
    covariates: tuple[str, ...]
    id_column: str | None
    score_provider: ScoreProvider
    config: MatchingConfig

    def estimator(self, covariates: list[str] | None = None) -> PropensityScoreMatching:
        """A fresh estimator with these settings, optionally on other covariates."""
        return PropensityScoreMatching(
            self.treatment,
            self.outcome,
            list(self.covariates if covariates is None else covariates),
            id_column=self.id_column,
            score_provider=copy.deepcopy(self.score_provider),
            config=self.config,
        )


class EstimationResult:
    """
    The result of a propensity score matching estimation.

    Holds the ATT, its Abadie-Imbens variance and the sample sizes behind
    them. Confidence intervals are derived on request at any level, using
    the normal approximation; nothing here is tied to a fixed z-score.
    The result does not change once built: the settings it reports and
    reruns refutations with are a ``FitSettings`` snapshot.
    """

    def __init__(
        self,
        att: float,
        att_variance: float,
        n_treated: int,
        n_control_distinct: int,
        unadjusted_effect: float,
        match_result: MatchResult,
        settings: FitSettings,
    ) -> None:
        self._att = att
        self._att_variance = att_variance
        self._n_treated = n_treated
        self._n_control_distinct = n_control_distinct
        self._unadjusted_effect = unadjusted_effect
        self._match_result = match_result
        self._settings = settings

    @property
    def att(self) -> float:
        """ATT: average treatment effect on the treated."""
        return self._att

    @property
    def effect(self) -> float:
        """Alias of ``att``."""
        return self._att

    @property
    def att_variance(self) -> float:
        """Abadie-Imbens heteroskedasticity-robust variance of the ATT."""
        return self._att_variance

    @property
    def n_treated(self) -> int:
        return self._n_treated

    @property
    def n_control_distinct(self) -> int:
        """Number of distinct control units used as matches."""
        return self._n_control_distinct

    @property
    def unadjusted_effect(self) -> float:
        """Naive mean difference Y|T=1 minus Y|T=0, no matching."""
        return self._unadjusted_effect

    @property
    def std_err(self) -> float:
        return float(np.sqrt(self._att_variance))

    def conf_int(self, level: float = 0.95) -> tuple[float, float]:
        """Normal-approximation confidence interval for the ATT at ``level``."""
        if not 0.0 < level < 1.0:
            raise ValueError(f"level must lie strictly between 0 and 1, got {level}.")
        z = float(st.norm.ppf(0.5 + level / 2.0))
        half = z * self.std_err
        return (self._att - half, self._att + half)

    @property
    def pvalue(self) -> float:
        """Two-sided p-value for the ATT (``H0: ATT = 0``), via z-test."""
        se = self.std_err
        if se == 0.0:
            return 1.0 if self._att == 0.0 else 0.0
        return float(2.0 * st.norm.sf(abs(self._att) / se))

    @property
    def match_result(self) -> MatchResult:
        """Treated units paired with their matched controls, for diagnostics."""
        return self._match_result

    @property
    def covariates(self) -> list[str]:
        """Covariates used in the propensity score model."""
        return list(self._settings.covariates)

    @property
    def settings(self) -> FitSettings:
        """Treatment, outcome, covariates and model settings this result was fitted with."""
        return self._settings

    @property
    def assumptions(self) -> list[Assumption]:
        """Modelling assumptions required for a causal interpretation."""
        return list(MATCHING_ASSUMPTIONS)

    def summary(self) -> str:
        s = self._settings
        level = s.config.confidence_level
        lo, hi = self.conf_int(level)
        cov = self.covariates
        bias = self.unadjusted_effect - self.att

        lines = [
            "",
            f"PSM Causal Effect: {s.treatment} → {s.outcome}",
            f"  Estimand: ATT (average treatment effect on the treated)",
            "─" * 54,
            f"  # Treated            : {self.n_treated:>10d}",
            f"  # Control (distinct) : {self.n_control_distinct:>10d}",
            "",
        ]

        if cov:
            lines += [
                f"  ATT estimate         : {self.att:>10.4f}  (covariates: {', '.join(cov)})",
                f"  Unadjusted estimate  : {self.unadjusted_effect:>10.4f}  (naive mean difference)",
                f"  Confounding bias     : {bias:>+10.4f}",
            ]
        else:
            lines += [
                f"  ATT estimate         : {self.att:>10.4f}  (no covariates)",
            ]

        lines += [
            "",
            f"  Variance             : {self.att_variance:>10.4f}  (Abadie-Imbens, heteroskedasticity-robust)",
            f"  Std. error           : {self.std_err:>10.4f}",
            f"  {level:.0%} CI               : [{lo:.4f}, {hi:.4f}]  (normal approximation)",
            f"  p-value              : {self.pvalue:>10.4f}",
            "",
            "  Matching: 1-to-1 nearest-neighbour on propensity score (with replacement)",
            "",
            "  Assumptions",
            "  " + "┄" * 48,
        ]
        for a in MATCHING_ASSUMPTIONS:
            lines.append(f"  {a.fmt_tag()}  {a.name}")
        lines.append("")
        return "\n".join(lines)

    def refute(self, data: pd.DataFrame):
        """
        Run refutation checks against this matching estimation.

        Currently runs:

        - **Placebo treatment**: randomly permutes treatment labels and
          re-runs matching. The placebo ATT should be near zero.
        - **Random common cause**: adds a random noise covariate to the
          propensity score model and checks that the ATT is stable.

        Parameters
        ----------
        data : pd.DataFrame
            The same dataframe passed to ``fit()``.
        """
        from .refutations.matching import (
            MatchingRefutationReport,
            _check_placebo_treatment,
            _check_random_common_cause,
        )
        checks = [
            _check_placebo_treatment(data, self._settings, self.std_err),
            _check_random_common_cause(data, self._settings, self.att, self.std_err),
        ]
        return MatchingRefutationReport(
            checks=checks,
            treatment=self._settings.treatment,
            outcome=self._settings.outcome,
        )

    def __repr__(self) -> str:
        return self.summary()


# ── Estimator ──────────────────────────────────────────────────────────────────

class PropensityScoreMatching:
    """
    ATT estimator using propensity score matching (1-to-1 nearest
    neighbour, with replacement) and the Abadie-Imbens variance.

    1. Assigns every row a stable id (dense ``1..N`` in input order, or the
       values of ``id_column``).
    2. Estimates propensity scores with the score provider, by default a
       logistic regression of treatment on the covariates.
    3. Matches each treated unit to its nearest control by propensity score,
       breaking exact ties in favour of the earlier control.
    4. Estimates the ATT as the mean outcome difference across matched pairs
       and its variance with the Abadie-Imbens (2006) estimator.

    Requires **binary treatment** (0/1) with both groups present and no
    missing values in the columns used.

    Example::

        result = PropensityScoreMatching(
            treatment="education", outcome="income", covariates=["ability"]
        ).fit(df)
        print(result.summary())

    Parameters
    ----------
    treatment : str
        Binary treatment column.
    outcome : str
        Outcome column.
    covariates : list of str, optional
        Columns for the propensity model. Defaults to every column other
        than treatment, outcome and ``id_column``.
    id_column : str, optional
        Column holding unique integer unit ids.
    score_provider : ScoreProvider, optional
        Propensity model. Defaults to ``LogisticScoreProvider`` configured
        from ``config``.
    config : MatchingConfig, optional
        Matching and fitting settings. ``standardize`` and ``max_iter`` only
        configure the default provider. When a ``score_provider`` is passed
        they are ignored and the provider's own settings apply; only
        ``block_size`` and ``confidence_level`` are read from ``config``.
    """

    def __init__(
        self,
        treatment: str,
        outcome: str,
        covariates: list[str] | None = None,
        *,
        id_column: str | None = None,
        score_provider: ScoreProvider | None = None,
        config: MatchingConfig | None = None,
    ) -> None:
        self.treatment = treatment
        self.outcome = outcome
        self.covariates = None if covariates is None else list(covariates)
        self.id_column = id_column
        self.config = config if config is not None else MatchingConfig()
        self.score_provider = (
            score_provider if score_provider is not None
            else LogisticScoreProvider(
                standardize=self.config.standardize, max_iter=self.config.max_iter
            )
        )
        self._validate_inputs()

    def _validate_inputs(self) -> None:
        if self.treatment == self.outcome:
            raise ValueError("Treatment and outcome must be different variables.")
        reserved = {self.treatment, self.outcome, self.id_column} - {None}
        clash = sorted(reserved & set(self.covariates or []))
        if clash:
            raise ValueError(f"Covariates must not include treatment, outcome or id columns: {clash}")
    def _resolve_covariates(self, data: pd.DataFrame) -> list[str]:
        if self.covariates is not None:
            return list(self.covariates)
        reserved = {self.treatment, self.outcome, self.id_column}
        return [c for c in data.columns if c not in reserved]

    def _validate_data(self, data: pd.DataFrame, covariates: list[str]) -> None:
        columns = list(data.columns)
        required = [("Treatment", self.treatment), ("Outcome", self.outcome)]
        required += [("Covariate", c) for c in covariates]
        if self.id_column is not None:
            required.append(("Id", self.id_column))
        for label, var in required:
            if var not in columns:
                raise MissingColumnError(var, label, columns)

        used = [self.treatment, self.outcome, *covariates]
        if self.id_column is not None:
            used.append(self.id_column)
        n_missing = data[used].isnull().sum()
        if n_missing.any():
            raise ValueError(
                f"Missing values found in {n_missing[n_missing > 0].to_dict()}. "
                f"Drop or impute them before matching."
            )

        non_numeric = [c for c in [self.outcome, *covariates] if not pd.api.types.is_numeric_dtype(data[c])]
        if non_numeric:
            raise ValueError(f"Outcome and covariates must be numeric; non-numeric columns: {non_numeric}")

        t_vals = set(data[self.treatment].unique())
        if not t_vals <= {0, 1, 0.0, 1.0, True, False}:
            raise ValueError(
                f"Treatment '{self.treatment}' must be binary (0/1). "
                f"Found values: {sorted(t_vals)}"
            )
        if not ({0, 1} <= {int(v) for v in t_vals}):
            raise ValueError(
                f"Treatment '{self.treatment}' must contain both 0 and 1. "
                f"Found only: {t_vals}"
            )

    def _unit_ids(self, data: pd.DataFrame) -> np.ndarray:
        if self.id_column is None:
            return np.arange(1, len(data) + 1, dtype=np.int64)
        ids = data[self.id_column].to_numpy()
        if not pd.api.types.is_integer_dtype(data[self.id_column]):
            raise ValueError(f"Id column '{self.id_column}' must hold integers.")
        if len(np.unique(ids)) != len(ids):
            raise ValueError(f"Id column '{self.id_column}' contains duplicate ids.")
        return ids.astype(np.int64)

    def fit(self, data: pd.DataFrame) -> EstimationResult:
        """
        Estimate propensity scores, match, and compute the ATT and its variance.

        Parameters
        ----------
        data : pd.DataFrame
            One row per unit, in the order that defines unit ids.

        Raises
        ------
        ``MissingColumnError``
            If the treatment, outcome, covariate or id column is absent.
        ``ValueError``
            If treatment is not binary with both classes present, or the
            used columns contain missing or non-numeric values.
        ``ScoreProviderError``
            If the propensity model fails or returns invalid scores.
        ``EmptyCandidatePoolError``, ``UndefinedMeanError``, ``DegenerateSelfMatchError``
            If matching or variance estimation cannot proceed.
        """
        covariates = self._resolve_covariates(data)
        self._validate_data(data, covariates)

        ids = self._unit_ids(data)
        d = data[self.treatment].to_numpy(dtype=float)
        scores = validate_scores(
            self.score_provider.fit_predict(data[covariates], d), len(data)
        )

        cohort = Cohort(
            ids=ids,
            treatment=d,
            outcome=data[self.outcome].to_numpy(dtype=float),
            propensity=scores,
        )
        treated, control = split_by_treatment(cohort)

        matches = match(treated, control, block_size=self.config.block_size)
        att = estimate_att(treated, matches)
        att_variance = estimate_variance(treated, matches)
        n_control_distinct = len(matches.distinct_matched_ids())

        logger.info(
            "Propensity score matching complete: ATT=%.4f, variance=%.4f, "
            "n_treated=%d, n_control_distinct=%d",
            att, att_variance, len(treated), n_control_distinct,
        )

        return EstimationResult(
            att=att,
            att_variance=att_variance,
            n_treated=len(treated),
            n_control_distinct=n_control_distinct,
            unadjusted_effect=unadjusted_difference(treated, control),
            match_result=matches,
            settings=FitSettings(
                treatment=self.treatment,
                outcome=self.outcome,
                covariates=tuple(covariates),
                id_column=self.id_column,
                score_provider=copy.deepcopy(self.score_provider),
                config=self.config,
            ),
        )


def run(
    data: pd.DataFrame,
    treatment: str,
    outcome: str,
    covariates: list[str] | None = None,
    **kwargs,
) -> EstimationResult:
    """Shorthand for ``PropensityScoreMatching(treatment, outcome, covariates, **kwargs).fit(data)``."""
    return PropensityScoreMatching(treatment, outcome, covariates, **kwargs).fit(data)
