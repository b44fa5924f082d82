# factlint:domain=engine
"""Resolver: deduplicate, rank, and suppress candidate findings.

Resolution happens in four steps:

1. identical ``(rule id, location)`` pairs collapse to one finding;
2. findings sharing the exact same location keep only the highest-ranked
   one (category precedence, then severity, then rule id); the rest are
   *superseded*;
3. surviving findings matching a recorded suppression are moved to the
   suppressed list together with the suppression reason;
4. what remains is ordered deterministically: units in input order, then
   overlap groups by position, then rank inside each group.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from factlint.rules.registry import CATEGORIES, SEVERITY_RANK

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from factlint.engine.matcher import Finding
    from factlint.facts.model import Span
    from factlint.rules.registry import RuleRegistry

logger = logging.getLogger(__name__)

CATEGORY_PRECEDENCE: dict[str, int] = {name: idx for idx, name in enumerate(CATEGORIES)}

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Suppression:
    """An explicit decision to accept one finding.

    ``rule`` is a rule id or a rule's ``suppression_key``.  ``symbol``,
    ``line`` and ``span`` narrow the location; when omitted they match anything
    in the unit.  A ``span`` must equal the finding's span exactly, so two
    findings starting on the same line can be told apart.
    """

    rule: str
    unit: str
    symbol: str | None = None
    line: int | None = None
    reason: str = ""
    span: Span | None = None

    def matches(self, finding: Finding, suppression_key: str | None) -> bool:
        if self.rule != finding.rule_id and (
            suppression_key is None or self.rule != suppression_key
        ):
            return False
        if self.unit != finding.unit:
            return False
        if self.symbol is not None:
            if finding.symbol is None:
                return False
            bare_name = finding.symbol.rsplit("/", 1)[0]
            if self.symbol not in (finding.symbol, bare_name):
                return False
        if self.span is not None and self.span != finding.span:
            return False
        return self.line is None or self.line == finding.line


@dataclass(frozen=True)
class SuppressedFinding:
    finding: Finding
    reason: str


@dataclass(frozen=True)
class ResolveResult:
    """Resolver output: the ordered finding list plus everything set aside."""

    findings: tuple[Finding, ...]
    suppressed: tuple[SuppressedFinding, ...] = ()
    superseded: tuple[Finding, ...] = ()
    duplicates: int = 0
    unused_suppressions: tuple[Suppression, ...] = ()


# ---------------------------------------------------------------------------
# Ordering helpers
# ---------------------------------------------------------------------------


def rank_key(finding: Finding) -> tuple[int, int, str]:
    """Precedence inside a group: category, then severity descending, then rule id."""
    return (
        CATEGORY_PRECEDENCE.get(finding.category, len(CATEGORIES)),
        -SEVERITY_RANK.get(finding.severity, -1),
        finding.rule_id,
    )


def _span_key(span: Span | None) -> tuple[int, int, int, int]:
    return span.sort_key() if span is not None else (-1, -1, -1, -1)


def _location(finding: Finding) -> tuple[str, object]:
    """Two findings are at the same location when unit and span agree.

    Span-less findings only share a location with span-less findings of the
    same symbol (or of the unit itself).
    """
    if finding.span is not None:
        return (finding.unit, finding.span)
    return (finding.unit, ("symbol", finding.symbol))


def _full_key(finding: Finding) -> tuple[object, ...]:
    return (
        finding.unit,
        _span_key(finding.span),
        rank_key(finding),
        finding.symbol or "",
        finding.message,
    )


def _overlap_groups(findings: list[Finding]) -> list[list[Finding]]:
    """Partition one unit's findings into groups of mutually overlapping spans."""
    spanless: dict[str, list[Finding]] = {}
    spanned: list[tuple[Span, Finding]] = []
    for f in findings:
        if f.span is None:
            spanless.setdefault(f.symbol or "", []).append(f)
        else:
            spanned.append((f.span, f))

    groups: list[list[Finding]] = [spanless[key] for key in sorted(spanless)]

    spanned.sort(key=lambda item: item[0].sort_key())
    current: list[Finding] = []
    current_spans: list[Span] = []
    for span, f in spanned:
        if current and any(s.overlaps(span) for s in current_spans):
            current.append(f)
            current_spans.append(span)
            continue
        if current:
            groups.append(current)
        current = [f]
        current_spans = [span]
    if current:
        groups.append(current)

    for group in groups:
        group.sort(key=lambda f: (rank_key(f), _span_key(f.span), f.symbol or "", f.message))
    return groups


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def resolve(
    candidates: Iterable[Finding],
    registry: RuleRegistry,
    *,
    unit_order: Sequence[str] = (),
    suppressions: Sequence[Suppression] = (),
) -> ResolveResult:
    """Resolve candidate findings into the final ordered list.

    *unit_order* fixes the order units appear in (front-end input order);
    units missing from it follow in path order.

    Raises ``ValueError`` if a finding names a rule missing from *registry*.
    """
    ordered = sorted(candidates, key=_full_key)
    for f in ordered:
        if f.rule_id not in registry:
            msg = f"finding references unknown rule '{f.rule_id}'"
            raise ValueError(msg)

    # 1. Dedup identical (rule id, location).
    seen: set[tuple[str, tuple[str, object]]] = set()
    unique: list[Finding] = []
    for f in ordered:
        key = (f.rule_id, _location(f))
        if key in seen:
            continue
        seen.add(key)
        unique.append(f)
    duplicates = len(ordered) - len(unique)

    # 2. Precedence at identical locations.
    by_location: dict[tuple[str, object], list[Finding]] = {}
    for f in unique:
        by_location.setdefault(_location(f), []).append(f)
    winners: list[Finding] = []
    superseded: list[Finding] = []
    for group in by_location.values():
        group.sort(key=rank_key)
        winners.append(group[0])
        superseded.extend(group[1:])

    # 3. Suppression.
    used: set[int] = set()
    kept: list[Finding] = []
    suppressed: list[SuppressedFinding] = []
    for f in sorted(winners, key=_full_key):
        suppression_key = registry.rule(f.rule_id).suppression_key
        hit = next(
            (
                (idx, s)
                for idx, s in enumerate(suppressions)
                if s.matches(f, suppression_key)
            ),
            None,
        )
        if hit is None:
            kept.append(f)
            continue
        idx, sup = hit
        used.add(idx)
        suppressed.append(
            SuppressedFinding(finding=replace(f, resolved=True), reason=sup.reason)
        )

    # 4. Deterministic order.
    position = {path: idx for idx, path in enumerate(unit_order)}
    by_unit: dict[str, list[Finding]] = {}
    for f in kept:
        by_unit.setdefault(f.unit, []).append(f)
    units_sorted = sorted(by_unit, key=lambda p: (position.get(p, len(position)), p))

    result: list[Finding] = []
    for path in units_sorted:
        for group in _overlap_groups(by_unit[path]):
            result.extend(replace(f, resolved=True) for f in group)

    unused = tuple(s for idx, s in enumerate(suppressions) if idx not in used)
    logger.debug(
        "Resolved %d candidate(s): %d kept, %d suppressed, %d superseded, %d duplicate(s)",
        len(ordered),
        len(result),
        len(suppressed),
        len(superseded),
        duplicates,
    )
    return ResolveResult(
        findings=tuple(result),
        suppressed=tuple(suppressed),
        superseded=tuple(sorted(superseded, key=_full_key)),
        duplicates=duplicates,
        unused_suppressions=unused,
    )
