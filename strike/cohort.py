from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterator, Sequence

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class Unit:
    """
    One observational row.

    ``id`` identifies the unit for its whole lifetime; it is assigned once by
    ``assign_ids`` (or taken from an id column) and never recomputed.
    ``propensity`` is attached by a ``ScoreProvider`` before matching and
    ``covariates`` are only read by that provider.
    """

    treatment: int
    outcome: float
    id: int | None = None
    propensity: float | None = None
    covariates: tuple[float, ...] = ()


def assign_ids(units: Sequence[Unit]) -> list[Unit]:
    """
    Give every unit a dense ``1..N`` id following input order.

    Units that already carry ids are returned unchanged (after checking the
    ids are unique). Mixing units with and without ids is rejected, since
    fresh ids could collide with existing ones.
    """
    units = list(units)
    have_id = [u.id is not None for u in units]
    if all(have_id):
        ids = [u.id for u in units]
        if len(set(ids)) != len(ids):
            raise ValueError("Unit ids must be unique.")
        return units
    if any(have_id):
        raise ValueError(
            "Either every unit or no unit may carry an id; "
            f"{sum(have_id)} of {len(units)} units already have one."
        )
    return [replace(u, id=i) for i, u in enumerate(units, start=1)]


def _frozen(values, dtype) -> np.ndarray:
    arr = np.array(values, dtype=dtype, copy=True).reshape(-1)
    arr.flags.writeable = False
    return arr


class Cohort:
    """
    An immutable, ordered collection of units with attached propensity scores.

    Backed by read-only numpy arrays. Order is significant: the matcher
    breaks distance ties in favour of the unit appearing first.

    Parameters
    ----------
    ids : array-like of int
        Unique unit identities.
    treatment : array-like of {0, 1}
        Treatment indicator per unit.
    outcome : array-like of float
        Observed outcome per unit.
    propensity : array-like of float
        Propensity score per unit; must be finite.
    """

    def __init__(self, ids, treatment, outcome, propensity) -> None:
        ids = np.asarray(ids)
        if ids.size and not np.issubdtype(ids.dtype, np.integer):
            if not np.all(np.mod(ids, 1) == 0):
                raise ValueError("Unit ids must be integers.")
        treatment = np.asarray(treatment, dtype=float)
        if not np.isin(treatment, (0.0, 1.0)).all():
            raise ValueError("Treatment must be binary (0/1).")
        self._ids = _frozen(ids, np.int64)
        self._treatment = _frozen(treatment, np.int64)
        self._outcome = _frozen(outcome, np.float64)
        self._propensity = _frozen(propensity, np.float64)

        n = len(self._ids)
        for name, arr in [
            ("treatment", self._treatment),
            ("outcome", self._outcome),
            ("propensity", self._propensity),
        ]:
            if len(arr) != n:
                raise ValueError(f"Cohort {name} has {len(arr)} entries but there are {n} ids.")

        if len(np.unique(self._ids)) != n:
            raise ValueError("Unit ids within a cohort must be unique.")
        if not np.isfinite(self._outcome).all():
            raise ValueError("Outcomes must be finite; missing values are not imputed.")
        if not np.isfinite(self._propensity).all():
            bad = self._ids[~np.isfinite(self._propensity)]
            raise ValueError(f"Every unit needs a finite propensity score; missing for ids {bad[:5].tolist()}.")

    @classmethod
    def from_units(cls, units: Sequence[Unit]) -> Cohort:
        """Build a cohort from ``Unit`` records that already carry ids and propensities."""
        units = list(units)
        missing = [i for i, u in enumerate(units) if u.id is None or u.propensity is None]
        if missing:
            raise ValueError(
                f"Units at positions {missing[:5]} lack an id or a propensity score. "
                f"Call assign_ids() and attach scores first."
            )
        return cls(
            ids=[u.id for u in units],
            treatment=[u.treatment for u in units],
            outcome=[u.outcome for u in units],
            propensity=[u.propensity for u in units],
        )

    # ── Array views ───────────────────────────────────────────────────────────

    @property
    def ids(self) -> np.ndarray:
        return self._ids

    @property
    def treatment(self) -> np.ndarray:
        return self._treatment

    @property
    def outcome(self) -> np.ndarray:
        return self._outcome

    @property
    def propensity(self) -> np.ndarray:
        return self._propensity

    # ── Derived cohorts ───────────────────────────────────────────────────────

    def take(self, indices) -> Cohort:
        """Sub-cohort at the given positions (or boolean mask), in that order."""
        return Cohort(
            ids=self._ids[indices],
            treatment=self._treatment[indices],
            outcome=self._outcome[indices],
            propensity=self._propensity[indices],
        )

    def snapshot(self) -> Cohort:
        """An independent copy, safe to hand to a pass that matches the cohort against itself."""
        return Cohort(self._ids, self._treatment, self._outcome, self._propensity)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "id": self._ids,
            "treatment": self._treatment,
            "outcome": self._outcome,
            "propensity": self._propensity,
        })

    # ── Sequence protocol ─────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._ids)

    def __getitem__(self, i: int) -> Unit:
        return Unit(
            treatment=int(self._treatment[i]),
            outcome=float(self._outcome[i]),
            id=int(self._ids[i]),
            propensity=float(self._propensity[i]),
        )

    def __iter__(self) -> Iterator[Unit]:
        for i in range(len(self)):
            yield self[i]

    def __repr__(self) -> str:
        return f"Cohort(n={len(self)}, treated={int(self._treatment.sum())})"


def split_by_treatment(cohort: Cohort) -> tuple[Cohort, Cohort]:
    """Partition into ``(treated, control)``, each keeping the original order."""
    is_treated = cohort.treatment == 1
    return cohort.take(is_treated), cohort.take(~is_treated)
