from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Assumption:
    """
    A single modelling assumption required for causal identification.

    ``EstimationResult.assumptions`` lists them. Each has a human-readable
    name and a ``testable`` flag telling whether the data can speak to it or
    it must be argued on substantive grounds.
    """

    name: str
    """Human-readable description of the assumption."""

    testable: bool
    """``True`` if the assumption can be empirically checked; ``False`` if it rests on domain knowledge."""

    def fmt_tag(self) -> str:
        """Return a fixed-width bracketed testability label for use in summary output."""
        return "[  testable  ]" if self.testable else "[ untestable ]"


@dataclass(frozen=True)
class RefutationCheck:
    """
    Result of a single refutation check.

    ``value`` is the quantity the check compared against its threshold (the
    placebo ATT, or the shift in the ATT), or ``None`` when the rerun failed.
    """

    name: str
    passed: bool
    detail: str
    value: float | None = None

    def __repr__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        return f"RefutationCheck({status!r}, {self.name!r})"


class RefutationReport:
    """
    Base class for refutation reports.

    Subclasses implement ``_header_lines()`` to supply the title shown at
    the top of ``summary()``. The checks are fixed when the report is built.
    """

    def __init__(
        self,
        checks: list[RefutationCheck],
        treatment: str,
        outcome: str,
    ) -> None:
        self._checks = tuple(checks)
        self._treatment = treatment
        self._outcome = outcome

    def _header_lines(self) -> list[str]:
        raise NotImplementedError

    @property
    def checks(self) -> list[RefutationCheck]:
        """All checks, in the order they were run."""
        return list(self._checks)

    @property
    def passed(self) -> bool:
        """``True`` if every check passed."""
        return all(c.passed for c in self._checks)

    def summary(self) -> str:
        """Formatted report showing each check result and the overall verdict."""
        lines = ["", *self._header_lines(), "─" * 50]
        n_failed = 0
        for check in self._checks:
            n_failed += not check.passed
            status = "PASS" if check.passed else "FAIL"
            lines.append(f"  [{status}]  {check.name}: {check.detail}")
        lines.append("")
        if n_failed:
            lines.append(f"  {n_failed} of {len(self._checks)} check(s) failed.")
        else:
            lines.append("  All checks passed.")
        lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return self.summary()
