"""
Propensity Score Matching — from a CSV file
============================================
Reads a CSV with a binary treatment column and an outcome column and
matches on every remaining column, as a command-line run would.

    python 04_csv_input.py data.csv treated outcome
"""

import logging
import sys

import pandas as pd
from strike import MatchingConfig, PropensityScoreMatching

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

if len(sys.argv) != 4:
    sys.exit(f"Expected 3 arguments (path, treatment, outcome) but got {len(sys.argv) - 1}")

path, treatment, outcome = sys.argv[1:]
df = pd.read_csv(path)

result = PropensityScoreMatching(
    treatment=treatment,
    outcome=outcome,
    config=MatchingConfig(standardize=True),
).fit(df)
print(result.summary())
