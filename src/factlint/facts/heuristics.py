# factlint:domain=facts
"""Heuristic resolution: convention-based facts derived before matching.

Everything here guesses from naming conventions (path globs, target names),
so it runs as a separate, swappable step ahead of the matching engine.  The
engine itself only ever sees the resulting facts.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Protocol

from factlint.facts.model import Clause, CrossBoundaryReference, Fact, SourceUnit, Symbol

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

logger = logging.getLogger(__name__)


class DomainHeuristic(Protocol):
    """Infers a domain tag for a unit the front-end left untagged."""

    def domain_for(self, unit: SourceUnit) -> str | None: ...


class PathGlobDomainHeuristic:
    """Assign domains by matching unit paths against per-domain glob lists.

    Domains are tried in mapping order; the first matching glob wins.
    """

    def __init__(self, globs: Mapping[str, Sequence[str]]) -> None:
        self._globs: tuple[tuple[str, tuple[str, ...]], ...] = tuple(
            (domain, tuple(patterns)) for domain, patterns in globs.items()
        )

    def domain_for(self, unit: SourceUnit) -> str | None:
        for domain, patterns in self._globs:
            for pattern in patterns:
                if fnmatch.fnmatch(unit.path, pattern):
                    return domain
        return None


def _map_facts(unit: SourceUnit, fn: Callable[[Fact], Fact]) -> SourceUnit:
    """Return a copy of *unit* with *fn* applied to every fact it carries."""

    def _map_all(facts: tuple[Fact, ...]) -> tuple[Fact, ...]:
        return tuple(fn(f) for f in facts)

    symbols: list[Symbol] = []
    for sym in unit.symbols:
        clauses = tuple(
            Clause(pattern=c.pattern, facts=_map_all(c.facts), span=c.span) for c in sym.clauses
        )
        symbols.append(replace(sym, clauses=clauses, facts=_map_all(sym.facts)))
    return replace(unit, symbols=tuple(symbols), facts=_map_all(unit.facts))


def _target_unit_path(target: str) -> str:
    return target.split("::", 1)[0]


def complete_reference_domains(units: Sequence[SourceUnit]) -> list[SourceUnit]:
    """Fill ``to_domain`` on cross-boundary references whose target unit is tagged."""
    domains = {u.path: u.domain for u in units if u.domain is not None}

    def _complete(fact: Fact) -> Fact:
        if (
            isinstance(fact, CrossBoundaryReference)
            and fact.to_domain is None
            and fact.target is not None
        ):
            inferred = domains.get(_target_unit_path(fact.target))
            if inferred is not None:
                return replace(fact, to_domain=inferred)
        return fact

    return [_map_facts(u, _complete) if u.analyzed else u for u in units]


def apply_heuristics(
    units: Sequence[SourceUnit],
    heuristic: DomainHeuristic | None = None,
) -> list[SourceUnit]:
    """Run the heuristic step over a batch.

    Explicit domain tags from the front-end always win over inferred ones.
    """
    tagged: list[SourceUnit] = []
    inferred_count = 0
    for unit in units:
        if unit.domain is None and heuristic is not None:
            domain = heuristic.domain_for(unit)
            if domain is not None:
                unit = replace(unit, domain=domain)
                inferred_count += 1
        tagged.append(unit)

    if inferred_count:
        logger.debug("Inferred domain for %d unit(s) from path globs", inferred_count)
    return complete_reference_domains(tagged)
