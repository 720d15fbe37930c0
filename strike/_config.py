from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MatchingConfig:
    """
    Tunable settings for a propensity score matching run.

    Pass an instance to ``PropensityScoreMatching(config=...)``. Every field
    has a default, so ``MatchingConfig()`` reproduces the standard setup.
    """

    standardize: bool = True
    """Z-score covariates before the logistic fit. Predictions are unchanged in exact arithmetic; this only affects numerical conditioning. Ignored when a custom score provider is given."""

    max_iter: int = 100
    """Maximum Newton iterations for the default propensity model."""

    block_size: int = 2048
    """Query rows processed per distance-matrix block during matching."""

    confidence_level: float = 0.95
    """Level of the interval reported by ``EstimationResult.summary()``."""

    def __post_init__(self) -> None:
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be a positive integer, got {self.max_iter}.")
        if self.block_size < 1:
            raise ValueError(f"block_size must be a positive integer, got {self.block_size}.")
        if not 0.0 < self.confidence_level < 1.0:
            raise ValueError(
                f"confidence_level must lie strictly between 0 and 1, got {self.confidence_level}."
            )
