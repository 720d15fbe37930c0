import numpy as np
import pandas as pd
import pytest

from strike import LogisticScoreProvider, ScoreProviderError, validate_scores


N = 500


def make_data():
    """Fixed seed so every call returns the same dataframe."""
    rng = np.random.default_rng(11)
    income = rng.normal(50_000, 15_000, size=N)
    age    = rng.normal(40, 10, size=N)
    latent = 0.00004 * (income - 50_000) + 0.05 * (age - 40) + rng.normal(size=N)
    treated = (latent > 0).astype(float)
    return pd.DataFrame({"income": income, "age": age}), treated


class TestLogisticScoreProvider:
    def test_scores_are_probabilities(self):
        X, d = make_data()
        scores = LogisticScoreProvider().fit_predict(X, d)
        assert scores.shape == (N,)
        assert np.all((scores >= 0) & (scores <= 1))

    def test_standardization_does_not_change_fit(self):
        X, d = make_data()
        scaled   = LogisticScoreProvider(standardize=True).fit_predict(X, d)
        unscaled = LogisticScoreProvider(standardize=False).fit_predict(X, d)
        np.testing.assert_allclose(scaled, unscaled, atol=1e-5)

    def test_scores_track_treatment(self):
        X, d = make_data()
        scores = LogisticScoreProvider().fit_predict(X, d)
        assert scores[d == 1].mean() > scores[d == 0].mean()

    def test_no_covariates_gives_base_rate(self):
        _, d = make_data()
        scores = LogisticScoreProvider().fit_predict(pd.DataFrame(index=range(N)), d)
        np.testing.assert_allclose(scores, d.mean(), atol=1e-6)

    def test_single_class_raises(self):
        X, _ = make_data()
        with pytest.raises(ScoreProviderError, match="both treated and control"):
            LogisticScoreProvider().fit_predict(X, np.ones(N))

    def test_perfect_separation_raises(self):
        x = np.linspace(-1, 1, 40)
        d = (x > 0).astype(float)
        with pytest.raises(ScoreProviderError):
            LogisticScoreProvider().fit_predict(pd.DataFrame({"x": x}), d)

    def test_repr_shows_settings(self):
        assert "standardize=False" in repr(LogisticScoreProvider(standardize=False))

    def test_non_convergence_raises(self):
        X, d = make_data()
        with pytest.raises(ScoreProviderError, match="did not converge within 1 iterations"):
            LogisticScoreProvider(max_iter=1).fit_predict(X, d)

    def test_duplicated_covariate_is_singular(self):
        X, d = make_data()
        X = X.assign(income_copy=X["income"])
        with pytest.raises(ScoreProviderError, match="singular"):
            LogisticScoreProvider().fit_predict(X, d)

    def test_constant_covariate_raises(self):
        X, d = make_data()
        with pytest.raises(ScoreProviderError, match="are constant"):
            LogisticScoreProvider().fit_predict(X.assign(region=3.0), d)

    def test_constant_covariate_raises_without_standardizing(self):
        X, d = make_data()
        with pytest.raises(ScoreProviderError, match="are constant"):
            LogisticScoreProvider(standardize=False).fit_predict(X.assign(region=3.0), d)


class TestValidateScores:
    def test_accepts_valid_scores(self):
        out = validate_scores([0.2, 0.5, 0.8], 3)
        assert out.dtype == float
        assert out.tolist() == [0.2, 0.5, 0.8]

    def test_wrong_length_raises(self):
        with pytest.raises(ScoreProviderError, match="Expected 3"):
            validate_scores([0.2, 0.5], 3)

    def test_out_of_range_raises(self):
        with pytest.raises(ScoreProviderError, match=r"\[0, 1\]"):
            validate_scores([0.2, 1.5, 0.8], 3)

    def test_non_finite_raises(self):
        with pytest.raises(ScoreProviderError, match="NaN"):
            validate_scores([0.2, np.nan, 0.8], 3)

    def test_extreme_scores_logged(self, caplog):
        with caplog.at_level("WARNING", logger="strike.propensity"):
            validate_scores([0.01, 0.5, 0.99], 3)
        assert "overlap may be limited" in caplog.text
