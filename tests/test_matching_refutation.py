import numpy as np
import pandas as pd

from strike import LogisticScoreProvider, PropensityScoreMatching, ScoreProvider
from strike.refutations._check import RefutationCheck
from strike.refutations.matching import MatchingRefutationReport


N = 1_000


def make_psm(**kwargs):
    return PropensityScoreMatching(treatment="education", outcome="income", covariates=["ability"], **kwargs)


def make_data():
    """Fixed seed so every call returns the same dataframe."""
    rng = np.random.default_rng(42)
    ability   = rng.normal(size=N)
    ps_latent = 0.5 * ability + rng.normal(scale=0.5, size=N)
    education = (ps_latent > np.median(ps_latent)).astype(float)
    income    = 2.0 * education + 0.8 * ability + rng.normal(size=N)
    return pd.DataFrame({"ability": ability, "education": education, "income": income})


class LogisticThenConstant(ScoreProvider):
    """
    Logistic scores on the first fit, a constant score on every later one.

    The constant score makes the control self-match degenerate, so every
    refutation rerun fails while the original fit succeeds.
    """

    def __init__(self):
        self.calls = 0

    def fit_predict(self, covariates, treatment):
        self.calls += 1
        if self.calls == 1:
            return LogisticScoreProvider().fit_predict(covariates, treatment)
        return np.full(len(covariates), 0.5)


class TestMatchingRefutationReport:
    """Fit and refute once per class; tests inspect the pre-computed report."""

    @classmethod
    def setup_class(cls):
        cls.df     = make_data()
        cls.result = make_psm().fit(cls.df)
        cls.report = cls.result.refute(cls.df)

    def test_refute_returns_report(self):
        assert isinstance(self.report, MatchingRefutationReport)

    def test_report_has_two_checks(self):
        assert len(self.report.checks) == 2

    def test_check_names(self):
        names = {c.name for c in self.report.checks}
        assert "Placebo treatment" in names
        assert "Random common cause" in names

    def test_placebo_att_much_smaller_than_original(self):
        placebo = next(c for c in self.report.checks if c.name == "Placebo treatment")
        assert abs(self.result.att) > 1.0
        assert "placebo ATT" in placebo.detail
        assert abs(placebo.value) < abs(self.result.att) / 2

    def test_rcc_detail_reports_shift(self):
        rcc = next(c for c in self.report.checks if c.name == "Random common cause")
        assert "estimate shifted by" in rcc.detail
        assert rcc.value >= 0

    def test_passed_consistent_with_checks(self):
        assert self.report.passed == all(c.passed for c in self.report.checks)

    def test_checks_returns_copy(self):
        copy = self.report.checks
        copy.clear()
        assert len(self.report.checks) == 2

    def test_original_data_untouched(self):
        assert list(self.df.columns) == ["ability", "education", "income"]
        assert self.df.equals(make_data())

    def test_summary_contains_treatment_and_outcome(self):
        summary = self.report.summary()
        assert "education" in summary
        assert "income" in summary
        assert "PSM Refutation Report" in summary

    def test_checks_are_refutation_check_instances(self):
        for check in self.report.checks:
            assert isinstance(check, RefutationCheck)
            assert isinstance(check.name, str)
            assert isinstance(check.passed, bool)
            assert isinstance(check.detail, str)


class TestFailedRerun:
    def test_failed_rerun_reported_as_failed_check(self):
        df = make_data()
        result = make_psm(score_provider=LogisticThenConstant()).fit(df)
        report = result.refute(df)
        assert not report.passed
        assert not any(c.passed for c in report.checks)
        assert all(c.value is None for c in report.checks)
        assert all("DegenerateSelfMatchError" in c.detail for c in report.checks)
        assert "2 of 2 check(s) failed." in report.summary()


class TestRefuteUsesFittedSettings:
    def test_refute_ignores_later_estimator_changes(self):
        df = make_data()
        psm = make_psm()
        result = psm.fit(df)
        expected = result.refute(df)
        psm.treatment = "ability"
        psm.score_provider = LogisticThenConstant()
        report = result.refute(df)
        assert "education → income" in report.summary()
        assert [c.value for c in report.checks] == [c.value for c in expected.checks]
        assert report.passed == expected.passed
