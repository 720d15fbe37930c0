from ._config import MatchingConfig
from ._exceptions import (
    StrikeError,
    MissingColumnError,
    EmptyCandidatePoolError,
    UndefinedMeanError,
    DegenerateSelfMatchError,
    ScoreProviderError,
)
from .cohort import Unit, Cohort, assign_ids, split_by_treatment
from .matching import MatchResult, match
from .estimators import estimate_att, estimate_variance, conditional_variance
from .propensity import ScoreProvider, LogisticScoreProvider, validate_scores
from .engine import PropensityScoreMatching, EstimationResult, FitSettings, run
from .refutations import MatchingRefutationReport, RefutationCheck, Assumption

__version__ = "0.1.0"

__all__ = [
    "MatchingConfig",
    "StrikeError", "MissingColumnError", "EmptyCandidatePoolError",
    "UndefinedMeanError", "DegenerateSelfMatchError", "ScoreProviderError",
    "Unit", "Cohort", "assign_ids", "split_by_treatment",
    "MatchResult", "match",
    "estimate_att", "estimate_variance", "conditional_variance",
    "ScoreProvider", "LogisticScoreProvider", "validate_scores",
    "PropensityScoreMatching", "EstimationResult", "FitSettings", "run",
    "MatchingRefutationReport", "RefutationCheck", "Assumption",
]
