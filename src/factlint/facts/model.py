# factlint:domain=facts
"""Fact model: source units, symbols, and the closed set of structural fact variants.

Facts are the only input language the matching engine understands.  They are
produced by an external front-end (see :mod:`factlint.facts.loader`) and are
never mutated once a batch has been loaded.
"""

from __future__ import annotations

import types
import typing
from dataclasses import dataclass, field, fields

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ERROR_HANDLING_KINDS: frozenset[str] = frozenset({"recoverExpected", "recoverUnexpected"})

# ---------------------------------------------------------------------------
# Spans
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Span:
    """An inclusive line range, optionally narrowed to a byte range."""

    line_start: int
    line_end: int
    byte_start: int | None = None
    byte_end: int | None = None

    def overlaps(self, other: Span) -> bool:
        """Return True if the two spans share at least one line (and byte, when both have bytes)."""
        if self.line_end < other.line_start or other.line_end < self.line_start:
            return False
        if (
            self.byte_start is not None
            and self.byte_end is not None
            and other.byte_start is not None
            and other.byte_end is not None
        ):
            return not (self.byte_end < other.byte_start or other.byte_end < self.byte_start)
        return True

    def sort_key(self) -> tuple[int, int, int, int]:
        return (
            self.line_start,
            self.byte_start if self.byte_start is not None else -1,
            self.line_end,
            self.byte_end if self.byte_end is not None else -1,
        )

    def to_dict(self) -> dict[str, int]:
        data = {"line_start": self.line_start, "line_end": self.line_end}
        if self.byte_start is not None:
            data["byte_start"] = self.byte_start
        if self.byte_end is not None:
            data["byte_end"] = self.byte_end
        return data

    def __str__(self) -> str:
        if self.line_start == self.line_end:
            return str(self.line_start)
        return f"{self.line_start}-{self.line_end}"


# ---------------------------------------------------------------------------
# Fact variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConcurrencyPrimitiveDeclaration:
    """A declared stateful concurrent resource (process, agent, actor, lock...)."""

    kind: str
    has_concurrent_access_evidence: bool
    span: Span | None = None


@dataclass(frozen=True)
class CrossBoundaryReference:
    """A reference from one domain into another.

    ``target`` names the referenced unit (``"path"``) or symbol
    (``"path::name"``) and is what completeness checks resolve.
    """

    from_domain: str
    to_domain: str | None
    target_kind: str
    target: str | None = None
    span: Span | None = None


@dataclass(frozen=True)
class PatternClauseSet:
    """Shape of a multi-clause pattern-matched definition."""

    clause_count: int
    has_catch_all_guardless: bool
    span: Span | None = None


@dataclass(frozen=True)
class TransformationChain:
    """A composed chain of transformation steps (pipeline)."""

    step_count: int
    has_anonymous_step: bool
    span: Span | None = None


@dataclass(frozen=True)
class ValidationPipelineDefinition:
    """A data-validation pipeline (changeset, schema, validator) and its purpose."""

    purpose_tag: str
    span: Span | None = None


@dataclass(frozen=True)
class ErrorHandlingBlock:
    """A recovery block.

    ``recoverExpected`` encodes an anticipated failure as a caller-facing
    result; ``recoverUnexpected`` is a broad catch-all around faults nobody
    anticipated.  ``scope`` describes what the block wraps.
    """

    kind: str
    scope: str
    span: Span | None = None


@dataclass(frozen=True)
class DocumentationPresence:
    """Whether a symbol carries a signature declaration and a description."""

    has_signature_decl: bool
    has_description: bool
    span: Span | None = None


Fact = (
    ConcurrencyPrimitiveDeclaration
    | CrossBoundaryReference
    | PatternClauseSet
    | TransformationChain
    | ValidationPipelineDefinition
    | ErrorHandlingBlock
    | DocumentationPresence
)

FACT_VARIANTS: dict[str, type] = {
    cls.__name__: cls
    for cls in (
        ConcurrencyPrimitiveDeclaration,
        CrossBoundaryReference,
        PatternClauseSet,
        TransformationChain,
        ValidationPipelineDefinition,
        ErrorHandlingBlock,
        DocumentationPresence,
    )
}


def _base_type(hint: object) -> tuple[type, bool]:
    """Reduce a resolved annotation to ``(base_type, optional)``."""
    args = typing.get_args(hint)
    if isinstance(hint, types.UnionType) or typing.get_origin(hint) is typing.Union:
        non_none = [a for a in args if a is not type(None)]
        return non_none[0], True
    return hint, False  # type: ignore[return-value]


def _collect_field_types() -> dict[str, dict[str, tuple[type, bool]]]:
    result: dict[str, dict[str, tuple[type, bool]]] = {}
    for name, cls in FACT_VARIANTS.items():
        hints = typing.get_type_hints(cls)
        result[name] = {
            f.name: _base_type(hints[f.name]) for f in fields(cls) if f.name != "span"
        }
    return result


_FIELD_TYPES: dict[str, dict[str, tuple[type, bool]]] = _collect_field_types()


def fact_fields(variant: str) -> dict[str, tuple[type, bool]]:
    """Return ``{field: (base_type, optional)}`` for a fact variant (``span`` excluded).

    Raises ``KeyError`` for unknown variants.
    """
    return _FIELD_TYPES[variant]


def variant_name(fact: Fact) -> str:
    return type(fact).__name__


def fact_values(fact: Fact) -> dict[str, object]:
    """Return the non-span field values of *fact* keyed by field name."""
    return {name: getattr(fact, name) for name in _FIELD_TYPES[variant_name(fact)]}


# ---------------------------------------------------------------------------
# Source structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Clause:
    """One clause of a symbol: its pattern shape and the facts observed in its body."""

    pattern: str
    facts: tuple[Fact, ...] = ()
    span: Span | None = None


@dataclass(frozen=True)
class Symbol:
    """A named function-like entity inside a source unit."""

    name: str
    arity: int
    clauses: tuple[Clause, ...] = ()
    exported: bool = False
    facts: tuple[Fact, ...] = ()
    span: Span | None = None

    @property
    def qualified_name(self) -> str:
        return f"{self.name}/{self.arity}"

    def all_facts(self) -> tuple[Fact, ...]:
        """Symbol-level facts followed by every clause body fact, in declaration order."""
        collected: list[Fact] = list(self.facts)
        for clause in self.clauses:
            collected.extend(clause.facts)
        return tuple(collected)


@dataclass(frozen=True)
class SourceUnit:
    """One analyzable compilation unit.

    A unit with ``failure`` set could not be processed by the front-end and
    is reported as unanalyzed rather than clean.
    """

    path: str
    symbols: tuple[Symbol, ...] = ()
    domain: str | None = None
    facts: tuple[Fact, ...] = ()
    failure: str | None = None
    _symbol_index: dict[str, Symbol] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        index: dict[str, Symbol] = {}
        for sym in self.symbols:
            index.setdefault(sym.name, sym)
            index.setdefault(sym.qualified_name, sym)
        object.__setattr__(self, "_symbol_index", index)

    @property
    def analyzed(self) -> bool:
        return self.failure is None

    def symbol(self, name: str) -> Symbol | None:
        """Look up a symbol by ``name`` or ``name/arity``."""
        return self._symbol_index.get(name)

    def all_facts(self) -> tuple[Fact, ...]:
        """Unit-level facts followed by every symbol's facts."""
        collected: list[Fact] = list(self.facts)
        for sym in self.symbols:
            collected.extend(sym.all_facts())
        return tuple(collected)
