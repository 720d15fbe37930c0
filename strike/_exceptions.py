from __future__ import annotations


class StrikeError(Exception):
    """Base class for every error raised by the matching-and-inference engine."""
    pass


class MissingColumnError(StrikeError, ValueError):
    """Raised when a required column is absent from the input dataframe."""

    def __init__(self, column: str, label: str, available: list[str]) -> None:
        self.column = column
        super().__init__(
            f"{label} column '{column}' not found in dataframe. "
            f"Available columns: {available}"
        )


class EmptyCandidatePoolError(StrikeError):
    """
    Raised when a query unit has nothing left to match against.

    This covers both an empty candidate cohort and a pool that becomes empty
    once the query unit itself is excluded. A missing match would silently
    change the sample, so the whole estimation stops.
    """

    def __init__(self, unit_id: int | None, pool_size: int) -> None:
        self.unit_id = unit_id
        self.pool_size = pool_size
        if unit_id is None:
            msg = "Candidate pool is empty; no unit can be matched."
        else:
            msg = (
                f"No match candidate left for unit id={unit_id} "
                f"(pool size {pool_size} before excluding the unit itself)."
            )
        super().__init__(msg)


class UndefinedMeanError(StrikeError):
    """Raised when the ATT or its variance is requested over an empty cohort."""
    pass


class DegenerateSelfMatchError(StrikeError):
    """Raised when a cohort is too small to be matched against itself."""

    def __init__(self, cohort_size: int, label: str = "cohort") -> None:
        self.cohort_size = cohort_size
        super().__init__(
            f"Self-matching needs at least 2 units but the {label} has "
            f"{cohort_size}. The conditional variance cannot be estimated."
        )


class ScoreProviderError(StrikeError):
    """
    Raised when the propensity model fails to fit or returns unusable
    probabilities (non-finite, outside [0, 1], or the wrong length).
    """
    pass
