# factlint:domain=engine
"""Aggregator: severity-weighted scores per unit and per run, counts per category."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from factlint.rules.registry import CATEGORIES

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from factlint.engine.matcher import Finding

# 1 error == 3 warns == 9 infos.
SEVERITY_WEIGHTS: dict[str, int] = {"info": 1, "warn": 3, "error": 9}


@dataclass(frozen=True)
class UnitScore:
    """Score and severity breakdown for one source unit."""

    unit: str
    score: int
    errors: int = 0
    warnings: int = 0
    infos: int = 0


@dataclass(frozen=True)
class RunScore:
    """Run-wide aggregation; a pure function of the resolved finding list."""

    units: tuple[UnitScore, ...]
    per_category: dict[str, int]
    per_severity: dict[str, int]
    total_score: int

    def unit_score(self, unit: str) -> UnitScore | None:
        for entry in self.units:
            if entry.unit == unit:
                return entry
        return None


def severity_weight(severity: str) -> int:
    return SEVERITY_WEIGHTS[severity]


def score_unit(unit: str, findings: Iterable[Finding]) -> UnitScore:
    counts = {"error": 0, "warn": 0, "info": 0}
    score = 0
    for f in findings:
        counts[f.severity] += 1
        score += severity_weight(f.severity)
    return UnitScore(
        unit=unit,
        score=score,
        errors=counts["error"],
        warnings=counts["warn"],
        infos=counts["info"],
    )


def aggregate(findings: Sequence[Finding], unit_order: Sequence[str]) -> RunScore:
    """Score every unit in *unit_order* (zero when clean) and total the run.

    *findings* must already exclude suppressed findings.
    """
    by_unit: dict[str, list[Finding]] = {path: [] for path in unit_order}
    for f in findings:
        by_unit.setdefault(f.unit, []).append(f)

    units = tuple(score_unit(path, unit_findings) for path, unit_findings in by_unit.items())

    per_category = {category: 0 for category in CATEGORIES}
    per_severity = {"error": 0, "warn": 0, "info": 0}
    for f in findings:
        per_category[f.category] += 1
        per_severity[f.severity] += 1

    return RunScore(
        units=units,
        per_category=per_category,
        per_severity=per_severity,
        total_score=sum(u.score for u in units),
    )
