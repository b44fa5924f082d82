# factlint:domain=report
"""Report synthesizer: project resolved, scored findings into the exchange format.

The report is a pure projection of resolver and aggregator output.  It holds
no timestamps or timings, so two runs over the same facts and rules produce
byte-identical JSON.  Field names are additive-only: new optional fields may
appear, existing ones are never renamed or removed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING

from factlint.rules.registry import CATEGORIES

if TYPE_CHECKING:
    from collections.abc import Sequence

    from factlint.engine.matcher import EvaluationWarning, Finding, UnresolvedReference
    from factlint.engine.resolver import ResolveResult, SuppressedFinding, Suppression
    from factlint.engine.scoring import RunScore
    from factlint.facts.model import SourceUnit

REPORT_FORMAT_VERSION = 1

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UnitReport:
    """Per-unit slice of the report.  ``analyzed=False`` means the unit was never reviewed."""

    path: str
    domain: str | None
    analyzed: bool
    failure: str | None
    score: int
    findings: tuple[Finding, ...]


@dataclass(frozen=True)
class Report:
    """Immutable outcome of one review run."""

    units: tuple[UnitReport, ...]
    findings: tuple[Finding, ...]
    per_category_counts: dict[str, int]
    per_severity_counts: dict[str, int]
    total_score: int
    suppressed: tuple[SuppressedFinding, ...] = ()
    superseded_count: int = 0
    duplicate_count: int = 0
    warnings: tuple[EvaluationWarning, ...] = ()
    unresolved: tuple[UnresolvedReference, ...] = ()
    unused_suppressions: tuple[Suppression, ...] = ()
    rules_evaluated: int = 0

    @property
    def suppressed_count(self) -> int:
        return len(self.suppressed)

    @property
    def error_count(self) -> int:
        return self.per_severity_counts.get("error", 0)

    @property
    def unanalyzed_units(self) -> tuple[UnitReport, ...]:
        return tuple(u for u in self.units if not u.analyzed)

    @property
    def degraded(self) -> bool:
        """True when something kept the review from being complete."""
        return bool(self.warnings or self.unresolved or self.unanalyzed_units)


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------


def synthesize(
    units: Sequence[SourceUnit],
    resolved: ResolveResult,
    score: RunScore,
    *,
    warnings: Sequence[EvaluationWarning] = (),
    unresolved: Sequence[UnresolvedReference] = (),
    rules_evaluated: int = 0,
) -> Report:
    """Assemble the report.  Unit order is the front-end input order."""
    position = {u.path: idx for idx, u in enumerate(units)}

    by_unit: dict[str, list[Finding]] = {}
    for f in resolved.findings:
        by_unit.setdefault(f.unit, []).append(f)

    unit_reports: list[UnitReport] = []
    for unit in units:
        # An unanalyzed unit never carries findings, even when it shares a path
        # with an analyzed one.
        entry = score.unit_score(unit.path) if unit.analyzed else None
        unit_reports.append(
            UnitReport(
                path=unit.path,
                domain=unit.domain,
                analyzed=unit.analyzed,
                failure=unit.failure,
                score=entry.score if entry is not None else 0,
                findings=tuple(by_unit.get(unit.path, ())) if unit.analyzed else (),
            )
        )

    def _unit_pos(path: str) -> int:
        return position.get(path, len(position))

    sorted_warnings = tuple(
        sorted(warnings, key=lambda w: (_unit_pos(w.unit), w.unit, w.symbol or "", w.rule_id))
    )
    sorted_unresolved = tuple(
        sorted(unresolved, key=lambda r: (_unit_pos(r.unit), r.unit, r.symbol or "", r.target))
    )
    sorted_suppressed = tuple(
        sorted(
            resolved.suppressed,
            key=lambda s: (_unit_pos(s.finding.unit), s.finding.line or 0, s.finding.rule_id),
        )
    )

    return Report(
        units=tuple(unit_reports),
        findings=resolved.findings,
        per_category_counts=dict(score.per_category),
        per_severity_counts=dict(score.per_severity),
        total_score=score.total_score,
        suppressed=sorted_suppressed,
        superseded_count=len(resolved.superseded),
        duplicate_count=resolved.duplicates,
        warnings=sorted_warnings,
        unresolved=sorted_unresolved,
        unused_suppressions=resolved.unused_suppressions,
        rules_evaluated=rules_evaluated,
    )


def gate_passes(report: Report, threshold: int | None = None) -> bool:
    """CI gate: score below *threshold*, or zero error findings when no threshold is given."""
    if threshold is None:
        return report.error_count == 0
    return report.total_score < threshold


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def finding_to_dict(finding: Finding) -> dict[str, object]:
    return {
        "source_unit": finding.unit,
        "symbol": finding.symbol,
        "span": finding.span.to_dict() if finding.span is not None else None,
        "rule_id": finding.rule_id,
        "category": finding.category,
        "severity": finding.severity,
        "message": finding.message,
    }


def report_to_dict(report: Report) -> dict[str, object]:
    """Stable dictionary form of a report (the JSON exchange format)."""
    return {
        "version": REPORT_FORMAT_VERSION,
        "findings": [finding_to_dict(f) for f in report.findings],
        "units": [
            {
                "path": u.path,
                "domain": u.domain,
                "status": "analyzed" if u.analyzed else "unanalyzed",
                "failure": u.failure,
                "score": u.score,
                "finding_count": len(u.findings),
            }
            for u in report.units
        ],
        "suppressed": [
            {**finding_to_dict(s.finding), "reason": s.reason} for s in report.suppressed
        ],
        "evaluation_warnings": [
            {"rule_id": w.rule_id, "source_unit": w.unit, "symbol": w.symbol, "reason": w.reason}
            for w in report.warnings
        ],
        "unresolved_references": [
            {"source_unit": r.unit, "symbol": r.symbol, "target": r.target}
            for r in report.unresolved
        ],
        "unused_suppressions": [
            {
                "rule": s.rule,
                "unit": s.unit,
                "symbol": s.symbol,
                "line": s.line,
                "span": s.span.to_dict() if s.span is not None else None,
            }
            for s in report.unused_suppressions
        ],
        "summary": {
            "rules_evaluated": report.rules_evaluated,
            "findings_count": len(report.findings),
            "suppressed_count": report.suppressed_count,
            "superseded_count": report.superseded_count,
            "duplicate_count": report.duplicate_count,
            "evaluation_warning_count": len(report.warnings),
            "unresolved_reference_count": len(report.unresolved),
            "unanalyzed_unit_count": len(report.unanalyzed_units),
            "per_category_counts": {c: report.per_category_counts.get(c, 0) for c in CATEGORIES},
            "per_severity_counts": {
                s: report.per_severity_counts.get(s, 0) for s in ("error", "warn", "info")
            },
            "total_score": report.total_score,
        },
    }


def format_json(report: Report) -> str:
    return json.dumps(report_to_dict(report), indent=2)


def format_porcelain(report: Report) -> str:
    """One line per finding: ``unit:line:severity:category:rule_id:symbol``.

    Unanalyzed units appear as ``unit:::unanalyzed:::``.  Empty when clean.
    """
    lines: list[str] = []
    for unit in report.units:
        if not unit.analyzed:
            lines.append(f"{unit.path}:::unanalyzed:::")
            continue
        for f in unit.findings:
            line = str(f.line) if f.line is not None else ""
            lines.append(
                f"{f.unit}:{line}:{f.severity}:{f.category}:{f.rule_id}:{f.symbol or ''}"
            )
    return "\n".join(lines)


_SEVERITY_STYLES: dict[str, tuple[str, str]] = {
    "error": ("✗", "bold red"),
    "warn": ("!", "yellow"),
    "info": ("·", "cyan"),
}


def format_rich(report: Report, *, color: bool = True, width: int = 100) -> str:
    """Render a report for the terminal with Rich.

    Units with findings are listed with their findings, unanalyzed units are
    called out explicitly, and a summary closes the output.
    """
    from io import StringIO

    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    buf = StringIO()
    console = Console(file=buf, force_terminal=color, no_color=not color, width=width)

    for unit in report.units:
        if not unit.analyzed:
            console.print(
                f"[bold]{escape(unit.path)}[/bold]  [magenta]unanalyzed[/magenta]: "
                f"{escape(unit.failure or '')}"
            )
            console.print()
            continue
        if not unit.findings:
            continue
        pts_label = "pt" if unit.score == 1 else "pts"
        console.print(f"[bold]{escape(unit.path)}[/bold]  ({unit.score} {pts_label})")
        for f in unit.findings:
            icon, style = _SEVERITY_STYLES.get(f.severity, ("?", "white"))
            loc = f":{f.line}" if f.line is not None else ""
            console.print(
                f"  [{style}]{icon} {f.severity}[/{style}] {escape(f.rule_id)}{loc}  "
                f"{escape(f.message)}"
            )
        console.print()

    console.rule("Summary", style="dim")
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Category")
    table.add_column("Count", justify="right")
    for category in CATEGORIES:
        count = report.per_category_counts.get(category, 0)
        if count:
            table.add_row(category, str(count))
    if table.row_count:
        console.print(table)

    console.print(
        f"{len(report.findings)} finding(s), total score {report.total_score} "
        f"({report.rules_evaluated} rules evaluated)"
    )
    console.print(
        f"{report.suppressed_count} suppressed, {report.superseded_count} superseded, "
        f"{len(report.warnings)} evaluation warning(s), "
        f"{len(report.unresolved)} unresolved reference(s), "
        f"{len(report.unanalyzed_units)} unanalyzed unit(s)"
    )
    for s in report.suppressed:
        reason = f": {s.reason}" if s.reason else ""
        console.print(
            f"  [dim]suppressed[/dim] {escape(s.finding.rule_id)} in "
            f"{escape(s.finding.unit)}{escape(reason)}"
        )
    for w in report.warnings:
        console.print(
            f"  [yellow]warning[/yellow] rule {escape(w.rule_id)} failed on "
            f"{escape(w.unit)}: {escape(w.reason)}"
        )
    return buf.getvalue()
