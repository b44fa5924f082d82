# factlint:domain=engine
"""Matching engine: evaluate every active rule at every location of every unit.

Each (rule, location) evaluation is independent, so units can be spread over
a thread pool.  Only the immutable fact batch and rule registry are shared.
Output order here is irrelevant; the resolver imposes the final order.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from factlint.facts.model import CrossBoundaryReference, fact_values, variant_name
from factlint.rules.predicates import EvalContext, evaluate

if TYPE_CHECKING:
    from collections.abc import Sequence

    from factlint.facts.model import Fact, SourceUnit, Span, Symbol
    from factlint.rules.registry import Rule, RuleRegistry

logger = logging.getLogger(__name__)

BOUNDARY_CATEGORY = "BoundaryDiscipline"

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RunCancelled(Exception):
    """Raised when a run is cancelled; partial results are discarded."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Finding:
    """One rule firing at one location."""

    rule_id: str
    category: str
    severity: str
    unit: str
    symbol: str | None
    span: Span | None
    message: str
    resolved: bool = False

    @property
    def line(self) -> int | None:
        return self.span.line_start if self.span is not None else None


@dataclass(frozen=True)
class EvaluationWarning:
    """A rule whose predicate failed at one location; that pair was skipped."""

    rule_id: str
    unit: str
    symbol: str | None
    reason: str


@dataclass(frozen=True)
class UnresolvedReference:
    """A cross-boundary reference whose target is not in the batch."""

    unit: str
    symbol: str | None
    target: str


@dataclass(frozen=True)
class MatchOutcome:
    """Candidate findings plus the non-fatal conditions met while matching."""

    findings: tuple[Finding, ...] = ()
    warnings: tuple[EvaluationWarning, ...] = ()
    unresolved: tuple[UnresolvedReference, ...] = ()


class CancelToken:
    """Cooperative cancellation flag, checked between source units."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_target_index(units: Sequence[SourceUnit]) -> frozenset[str]:
    """Collect every name a cross-boundary ``target`` may legally resolve to."""
    names: set[str] = set()
    for unit in units:
        if not unit.analyzed:
            continue
        names.add(unit.path)
        for sym in unit.symbols:
            names.add(f"{unit.path}::{sym.name}")
            names.add(f"{unit.path}::{sym.qualified_name}")
    return frozenset(names)


def _is_unresolved(fact: Fact, targets: frozenset[str]) -> bool:
    return (
        isinstance(fact, CrossBoundaryReference)
        and fact.target is not None
        and fact.target not in targets
    )


def _unresolved_in(unit: SourceUnit, targets: frozenset[str]) -> list[UnresolvedReference]:
    found: list[UnresolvedReference] = []
    owners: list[tuple[str | None, tuple[Fact, ...]]] = [(None, unit.facts)]
    owners.extend((sym.qualified_name, sym.all_facts()) for sym in unit.symbols)
    for owner, facts in owners:
        for fact in facts:
            if isinstance(fact, CrossBoundaryReference) and _is_unresolved(fact, targets):
                found.append(
                    UnresolvedReference(unit=unit.path, symbol=owner, target=str(fact.target))
                )
    return found


def _render(template: str, values: dict[str, object]) -> str:
    rendered = {k: "-" if v is None else v for k, v in values.items()}
    return template.format_map(rendered)


def _fire(
    rule: Rule,
    unit: SourceUnit,
    symbol: Symbol | None,
    evidence: tuple[Fact, ...],
) -> list[Finding]:
    """Turn a match into findings: one per distinct evidence span."""
    symbol_name = symbol.qualified_name if symbol is not None else None
    location_span = symbol.span if symbol is not None else None
    base: dict[str, object] = {
        "rule": rule.id,
        "unit": unit.path,
        "symbol": symbol_name if symbol_name is not None else unit.path,
        "domain": unit.domain,
        "variant": "",
    }

    if not evidence:
        return [_finding(rule, unit, symbol_name, location_span, _render(rule.message, base))]

    findings: list[Finding] = []
    seen_spans: set[Span | None] = set()
    for fact in evidence:
        span = fact.span if fact.span is not None else location_span
        if span in seen_spans:
            continue
        seen_spans.add(span)
        values = dict(base)
        values["variant"] = variant_name(fact)
        values.update(fact_values(fact))
        findings.append(_finding(rule, unit, symbol_name, span, _render(rule.message, values)))
    return findings


def _finding(
    rule: Rule, unit: SourceUnit, symbol: str | None, span: Span | None, message: str
) -> Finding:
    return Finding(
        rule_id=rule.id,
        category=rule.category,
        severity=rule.severity,
        unit=unit.path,
        symbol=symbol,
        span=span,
        message=message,
    )


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _evaluate_at(
    rule: Rule,
    unit: SourceUnit,
    symbol: Symbol | None,
    facts: tuple[Fact, ...],
    targets: frozenset[str],
) -> tuple[list[Finding], EvaluationWarning | None]:
    if rule.category == BOUNDARY_CATEGORY:
        facts = tuple(f for f in facts if not _is_unresolved(f, targets))
    ctx = EvalContext(unit=unit, symbol=symbol, facts=facts)
    try:
        result = evaluate(rule.predicate, ctx)
        if not result.matched:
            return [], None
        return _fire(rule, unit, symbol, result.evidence), None
    except Exception as exc:  # any predicate failure is isolated to this pair
        symbol_name = symbol.qualified_name if symbol is not None else None
        logger.warning(
            "Rule %s failed on %s%s: %s",
            rule.id,
            unit.path,
            f" ({symbol_name})" if symbol_name else "",
            exc,
        )
        reason = f"{type(exc).__name__}: {exc}"
        return [], EvaluationWarning(
            rule_id=rule.id, unit=unit.path, symbol=symbol_name, reason=reason
        )


def match_unit(
    unit: SourceUnit,
    rules: Sequence[Rule],
    targets: frozenset[str] | None = None,
) -> MatchOutcome:
    """Evaluate *rules* against one unit.  Unanalyzed units yield nothing.

    *targets* is the batch-wide name index from :func:`build_target_index`;
    when omitted, references resolve against this unit alone.
    """
    if not unit.analyzed:
        return MatchOutcome()
    if targets is None:
        targets = build_target_index([unit])

    findings: list[Finding] = []
    warnings: list[EvaluationWarning] = []

    unresolved = _unresolved_in(unit, targets)

    unit_facts = unit.all_facts()
    for rule in rules:
        if rule.scope == "unit":
            locations: list[tuple[Symbol | None, tuple[Fact, ...]]] = [(None, unit_facts)]
        else:
            locations = [(sym, sym.all_facts()) for sym in unit.symbols]
        for symbol, facts in locations:
            fired, warning = _evaluate_at(rule, unit, symbol, facts, targets)
            findings.extend(fired)
            if warning is not None:
                warnings.append(warning)

    return MatchOutcome(
        findings=tuple(findings), warnings=tuple(warnings), unresolved=tuple(unresolved)
    )


def match_batch(
    units: Sequence[SourceUnit],
    registry: RuleRegistry,
    *,
    workers: int = 1,
    cancel: CancelToken | None = None,
) -> MatchOutcome:
    """Evaluate the whole registry against every unit of a batch.

    With ``workers > 1`` units are evaluated on a thread pool.  Cancellation
    is checked between units; a cancelled run raises :class:`RunCancelled`
    and returns nothing.
    """
    rules = registry.all_rules()
    targets = build_target_index(units)

    def _run(unit: SourceUnit) -> MatchOutcome:
        if cancel is not None and cancel.cancelled:
            msg = "run cancelled"
            raise RunCancelled(msg)
        return match_unit(unit, rules, targets)

    if workers <= 1:
        outcomes = [_run(unit) for unit in units]
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="factlint") as pool:
            futures = [pool.submit(_run, unit) for unit in units]
            try:
                outcomes = [future.result() for future in futures]
            except RunCancelled:
                for future in futures:
                    future.cancel()
                raise

    if cancel is not None and cancel.cancelled:
        msg = "run cancelled"
        raise RunCancelled(msg)

    findings: list[Finding] = []
    warnings: list[EvaluationWarning] = []
    unresolved: list[UnresolvedReference] = []
    for outcome in outcomes:
        findings.extend(outcome.findings)
        warnings.extend(outcome.warnings)
        unresolved.extend(outcome.unresolved)

    logger.debug(
        "Matched %d rule(s) over %d unit(s): %d candidate finding(s), %d warning(s)",
        len(rules),
        len(units),
        len(findings),
        len(warnings),
    )
    return MatchOutcome(
        findings=tuple(findings), warnings=tuple(warnings), unresolved=tuple(unresolved)
    )
