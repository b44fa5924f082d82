# factlint:domain=rules
"""Structural predicate language over fact variants.

A predicate is a small tree parsed from YAML.  Every node is a single-key
mapping::

    fact: ConcurrencyPrimitiveDeclaration     # with optional 'where'
    where: { kind: singleWriterNoReaders, has_concurrent_access_evidence: false }

    all: [<expr>, ...]
    any: [<expr>, ...]
    not: <expr>
    symbol: { exported: true, arity: { gte: 4 } }
    unit: { path: { matches: "test/*" } }
    count: { fact: PatternClauseSet, where: {...}, gte: 2 }

Parsing validates variants, fields, operators and operand types up front so
a rule set that loads is guaranteed to only talk about facts that exist.
"""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass
from typing import TYPE_CHECKING

from factlint.facts.model import FACT_VARIANTS, fact_fields, variant_name

if TYPE_CHECKING:
    from factlint.facts.model import Fact, SourceUnit, Symbol

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

COMPARISON_OPERATORS: frozenset[str] = frozenset({"eq", "ne", "gt", "gte", "lt", "lte"})
MEMBERSHIP_OPERATORS: frozenset[str] = frozenset({"in", "not_in"})
GLOB_OPERATORS: frozenset[str] = frozenset({"matches"})
VALID_OPERATORS: frozenset[str] = COMPARISON_OPERATORS | MEMBERSHIP_OPERATORS | GLOB_OPERATORS
_ORDERING_OPERATORS: frozenset[str] = frozenset({"gt", "gte", "lt", "lte"})

SYMBOL_FIELDS: dict[str, tuple[type, bool]] = {
    "name": (str, False),
    "arity": (int, False),
    "exported": (bool, False),
    "clause_count": (int, False),
}
UNIT_FIELDS: dict[str, tuple[type, bool]] = {
    "path": (str, False),
    "domain": (str, True),
}

_EXPRESSION_KEYS: frozenset[str] = frozenset(
    {"fact", "all", "any", "not", "symbol", "unit", "count"}
)

# ---------------------------------------------------------------------------
# Expression tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Condition:
    """``field <op> operand`` test against one record."""

    field: str
    op: str
    operand: object

    def test(self, value: object) -> bool:
        if self.op == "eq":
            return value == self.operand
        if self.op == "ne":
            return value != self.operand
        if self.op == "in":
            return value in self.operand  # type: ignore[operator]
        if self.op == "not_in":
            return value not in self.operand  # type: ignore[operator]
        if value is None:
            return False
        if self.op == "matches":
            return isinstance(value, str) and fnmatch.fnmatchcase(value, str(self.operand))
        if self.op == "gt":
            return value > self.operand  # type: ignore[operator]
        if self.op == "gte":
            return value >= self.operand  # type: ignore[operator]
        if self.op == "lt":
            return value < self.operand  # type: ignore[operator]
        if self.op == "lte":
            return value <= self.operand  # type: ignore[operator]
        msg = f"unknown operator '{self.op}'"
        raise ValueError(msg)


@dataclass(frozen=True)
class FactMatch:
    variant: str
    conditions: tuple[Condition, ...] = ()


@dataclass(frozen=True)
class CountMatch:
    variant: str
    conditions: tuple[Condition, ...]
    comparison: Condition


@dataclass(frozen=True)
class SymbolMatch:
    conditions: tuple[Condition, ...]


@dataclass(frozen=True)
class UnitMatch:
    conditions: tuple[Condition, ...]


@dataclass(frozen=True)
class AllOf:
    children: tuple[Predicate, ...]


@dataclass(frozen=True)
class AnyOf:
    children: tuple[Predicate, ...]


@dataclass(frozen=True)
class NotOf:
    child: Predicate


Predicate = FactMatch | CountMatch | SymbolMatch | UnitMatch | AllOf | AnyOf | NotOf


@dataclass(frozen=True)
class MatchResult:
    """Outcome of evaluating a predicate: match flag plus supporting facts."""

    matched: bool
    evidence: tuple[Fact, ...] = ()


@dataclass(frozen=True)
class EvalContext:
    """The location a predicate is evaluated at."""

    unit: SourceUnit
    symbol: Symbol | None
    facts: tuple[Fact, ...]


_NO_MATCH = MatchResult(matched=False)

# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _type_ok(value: object, base: type, optional: bool) -> bool:
    if value is None:
        return optional
    if base is bool:
        return isinstance(value, bool)
    if base is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, base)


def _parse_condition(
    field_name: str,
    raw: object,
    field_types: dict[str, tuple[type, bool]],
    context: str,
) -> Condition:
    if field_name not in field_types:
        msg = f"{context}: unknown field '{field_name}', must be one of {sorted(field_types)}"
        raise ValueError(msg)
    base, optional = field_types[field_name]

    if isinstance(raw, dict):
        if len(raw) != 1:
            msg = f"{context}: condition on '{field_name}' must have exactly one operator"
            raise ValueError(msg)
        op, operand = next(iter(raw.items()))
        op = str(op)
    else:
        op, operand = "eq", raw

    if op not in VALID_OPERATORS:
        msg = f"{context}: unknown operator '{op}', must be one of {sorted(VALID_OPERATORS)}"
        raise ValueError(msg)

    if op in MEMBERSHIP_OPERATORS:
        if not isinstance(operand, list) or not operand:
            msg = f"{context}: operator '{op}' on '{field_name}' needs a non-empty list"
            raise ValueError(msg)
        for item in operand:
            if not _type_ok(item, base, optional):
                msg = f"{context}: '{field_name}' expects {base.__name__} values, got {item!r}"
                raise ValueError(msg)
        return Condition(field=field_name, op=op, operand=tuple(operand))

    if op in GLOB_OPERATORS and base is not str:
        msg = f"{context}: operator '{op}' only applies to string fields, not '{field_name}'"
        raise ValueError(msg)
    if op in _ORDERING_OPERATORS and base is not int:
        msg = f"{context}: operator '{op}' only applies to integer fields, not '{field_name}'"
        raise ValueError(msg)
    if not _type_ok(operand, base, optional):
        msg = f"{context}: '{field_name}' expects {base.__name__}, got {operand!r}"
        raise ValueError(msg)
    return Condition(field=field_name, op=op, operand=operand)


def _parse_conditions(
    data: object, field_types: dict[str, tuple[type, bool]], context: str
) -> tuple[Condition, ...]:
    if data is None:
        return ()
    if not isinstance(data, dict):
        msg = f"{context}: conditions must be a mapping"
        raise ValueError(msg)
    return tuple(
        _parse_condition(str(name), raw, field_types, context) for name, raw in data.items()
    )


def _parse_variant(data: dict[str, object], context: str) -> tuple[str, tuple[Condition, ...]]:
    variant = data.get("fact")
    if not isinstance(variant, str) or variant not in FACT_VARIANTS:
        msg = f"{context}: unknown fact variant {variant!r}, must be one of {sorted(FACT_VARIANTS)}"
        raise ValueError(msg)
    conditions = _parse_conditions(data.get("where"), fact_fields(variant), f"{context} {variant}")
    return variant, conditions


def parse_predicate(data: object, context: str, *, scope: str = "symbol") -> Predicate:
    """Parse a predicate mapping into an expression tree.

    Raises ``ValueError`` describing the first problem found.
    """
    if not isinstance(data, dict) or not data:
        msg = f"{context}: predicate must be a non-empty mapping"
        raise ValueError(msg)

    keys = set(data) & _EXPRESSION_KEYS
    if len(keys) != 1:
        msg = (
            f"{context}: predicate must have exactly one of "
            f"{sorted(_EXPRESSION_KEYS)}, got {sorted(str(k) for k in data)}"
        )
        raise ValueError(msg)
    key = keys.pop()

    if key == "fact":
        extra = set(data) - {"fact", "where"}
        if extra:
            msg = f"{context}: unexpected key(s) {sorted(extra)} in fact expression"
            raise ValueError(msg)
        variant, conditions = _parse_variant(data, context)
        return FactMatch(variant=variant, conditions=conditions)

    if key in ("all", "any"):
        children_raw = data[key]
        if not isinstance(children_raw, list) or not children_raw:
            msg = f"{context}: '{key}' must be a non-empty list"
            raise ValueError(msg)
        children = tuple(
            parse_predicate(child, f"{context}.{key}[{idx}]", scope=scope)
            for idx, child in enumerate(children_raw)
        )
        return AllOf(children=children) if key == "all" else AnyOf(children=children)

    if key == "not":
        return NotOf(child=parse_predicate(data["not"], f"{context}.not", scope=scope))

    if key == "symbol":
        if scope != "symbol":
            msg = f"{context}: 'symbol' conditions are only allowed in symbol-scoped rules"
            raise ValueError(msg)
        return SymbolMatch(conditions=_parse_conditions(data["symbol"], SYMBOL_FIELDS, context))

    if key == "unit":
        return UnitMatch(conditions=_parse_conditions(data["unit"], UNIT_FIELDS, context))

    # count
    count_data = data["count"]
    if not isinstance(count_data, dict):
        msg = f"{context}: 'count' must be a mapping"
        raise ValueError(msg)
    variant, conditions = _parse_variant(count_data, f"{context}.count")
    ops = set(count_data) - {"fact", "where"}
    if len(ops) != 1:
        msg = f"{context}: 'count' needs exactly one comparison operator"
        raise ValueError(msg)
    op = str(ops.pop())
    comparison = _parse_condition(
        "count", {op: count_data[op]}, {"count": (int, False)}, f"{context}.count"
    )
    return CountMatch(variant=variant, conditions=conditions, comparison=comparison)


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


def referenced_variants(predicate: Predicate) -> frozenset[str]:
    """Return every fact variant a predicate mentions."""
    if isinstance(predicate, (FactMatch, CountMatch)):
        return frozenset({predicate.variant})
    if isinstance(predicate, (AllOf, AnyOf)):
        result: frozenset[str] = frozenset()
        for child in predicate.children:
            result |= referenced_variants(child)
        return result
    if isinstance(predicate, NotOf):
        return referenced_variants(predicate.child)
    return frozenset()


def evidence_variants(predicate: Predicate) -> frozenset[str]:
    """Return the variants that can appear as evidence (negated branches never do)."""
    if isinstance(predicate, FactMatch):
        return frozenset({predicate.variant})
    if isinstance(predicate, (AllOf, AnyOf)):
        result: frozenset[str] = frozenset()
        for child in predicate.children:
            result |= evidence_variants(child)
        return result
    return frozenset()


def may_match_without_evidence(predicate: Predicate) -> bool:
    """Return True if *predicate* can match while producing no evidence fact."""
    if isinstance(predicate, FactMatch):
        return False
    if isinstance(predicate, AllOf):
        return all(may_match_without_evidence(child) for child in predicate.children)
    if isinstance(predicate, AnyOf):
        return any(may_match_without_evidence(child) for child in predicate.children)
    return True


def placeholder_fields(predicate: Predicate) -> frozenset[str]:
    """Return the fact fields every finding of *predicate* can render.

    A finding is rendered from one evidence fact, and ``all``/``any`` may hand
    over evidence from any of their evidence-producing branches, so only the
    fields shared by every evidence variant qualify.  A predicate that can
    match without evidence supplies none.
    """
    if may_match_without_evidence(predicate):
        return frozenset()
    variants = evidence_variants(predicate)
    shared: frozenset[str] | None = None
    for variant in sorted(variants):
        names = frozenset(fact_fields(variant))
        shared = names if shared is None else shared & names
    return shared or frozenset()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _fact_satisfies(fact: Fact, variant: str, conditions: tuple[Condition, ...]) -> bool:
    if variant_name(fact) != variant:
        return False
    return all(c.test(getattr(fact, c.field)) for c in conditions)


def _symbol_value(symbol: Symbol, field_name: str) -> object:
    if field_name == "clause_count":
        return len(symbol.clauses)
    return getattr(symbol, field_name)


def evaluate(predicate: Predicate, ctx: EvalContext) -> MatchResult:
    """Evaluate *predicate* at one location.  Pure: never mutates *ctx*."""
    if isinstance(predicate, FactMatch):
        matching = tuple(
            f for f in ctx.facts if _fact_satisfies(f, predicate.variant, predicate.conditions)
        )
        return MatchResult(matched=True, evidence=matching) if matching else _NO_MATCH

    if isinstance(predicate, CountMatch):
        count = sum(
            1 for f in ctx.facts if _fact_satisfies(f, predicate.variant, predicate.conditions)
        )
        return MatchResult(matched=predicate.comparison.test(count))

    if isinstance(predicate, SymbolMatch):
        if ctx.symbol is None:
            return _NO_MATCH
        symbol = ctx.symbol
        return MatchResult(
            matched=all(c.test(_symbol_value(symbol, c.field)) for c in predicate.conditions)
        )

    if isinstance(predicate, UnitMatch):
        unit = ctx.unit
        return MatchResult(
            matched=all(c.test(getattr(unit, c.field)) for c in predicate.conditions)
        )

    if isinstance(predicate, AllOf):
        evidence: tuple[Fact, ...] = ()
        for child in predicate.children:
            result = evaluate(child, ctx)
            if not result.matched:
                return _NO_MATCH
            if not evidence:
                evidence = result.evidence
        return MatchResult(matched=True, evidence=evidence)

    if isinstance(predicate, AnyOf):
        matched = False
        collected: list[Fact] = []
        for child in predicate.children:
            result = evaluate(child, ctx)
            if result.matched:
                matched = True
                collected.extend(f for f in result.evidence if f not in collected)
        return MatchResult(matched=matched, evidence=tuple(collected))

    if isinstance(predicate, NotOf):
        return MatchResult(matched=not evaluate(predicate.child, ctx).matched)

    msg = f"unsupported predicate node {type(predicate).__name__}"
    raise TypeError(msg)
