"""
Propensity Score Matching — refutation checks
==============================================
Runs the placebo-treatment and random-common-cause checks against a
fitted matching estimate.
"""

import numpy as np
import pandas as pd
from strike import PropensityScoreMatching

RNG = np.random.default_rng(2)
N = 2_000

ability   = RNG.normal(size=N)
ps_latent = 0.5 * ability + RNG.normal(scale=0.5, size=N)
education = (ps_latent > np.median(ps_latent)).astype(float)
income    = 2.0 * education + 0.8 * ability + RNG.normal(size=N)

df = pd.DataFrame({"ability": ability, "education": education, "income": income})

result = PropensityScoreMatching(
    treatment="education", outcome="income", covariates=["ability"]
).fit(df)
print(result.summary())

report = result.refute(df)
print(report.summary())
