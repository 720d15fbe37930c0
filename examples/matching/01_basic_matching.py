"""
Propensity Score Matching — basic example
==========================================
Estimate the ATT of a binary treatment (further education) on income
whilst adjusting for a confounding variable (ability), with an
Abadie-Imbens confidence interval.
"""

import numpy as np
import pandas as pd
from strike import PropensityScoreMatching

RNG = np.random.default_rng(0)
N = 3_000

# ── 1. Simulate data ──────────────────────────────────────────────────────────
ability   = RNG.normal(size=N)
ps_latent = 0.5 * ability + RNG.normal(scale=0.5, size=N)
education = (ps_latent > np.median(ps_latent)).astype(float)   # binary 0/1
income    = 2.0 * education + 0.8 * ability + RNG.normal(size=N)

df = pd.DataFrame({"ability": ability, "education": education, "income": income})

# ── 2. Estimate via PSM ───────────────────────────────────────────────────────
result = PropensityScoreMatching(
    treatment="education", outcome="income", covariates=["ability"]
).fit(df)

print(result.summary())

# ── 3. Intervals at other levels ──────────────────────────────────────────────
for level in (0.90, 0.99):
    lo, hi = result.conf_int(level)
    print(f"{level:.0%} CI: [{lo:.4f}, {hi:.4f}]")
