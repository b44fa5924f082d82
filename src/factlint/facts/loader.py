# factlint:domain=facts
"""Batch loader: read front-end output (YAML or JSON) into SourceUnit records.

Batch layout::

    units:
      - path: lib/billing/invoice.ex
        domain: Billing
        facts:
          - fact: CrossBoundaryReference
            from_domain: Billing
            to_domain: Shipping
            target_kind: internalDataRecord
            span: { line_start: 12, line_end: 12 }
        symbols:
          - name: handle_call
            arity: 3
            exported: true
            clauses:
              - pattern: "{:get, key}"
                facts: []
      - path: lib/broken.ex
        error: "unexpected token at line 4"

A malformed unit record only fails that unit (it is kept with ``failure``
set); an unreadable batch raises :class:`FrontEndError`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import yaml

from factlint.facts.model import (
    ERROR_HANDLING_KINDS,
    FACT_VARIANTS,
    Clause,
    Fact,
    SourceUnit,
    Span,
    Symbol,
    fact_fields,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class FrontEndError(Exception):
    """Raised when a fact batch cannot be read at all."""


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------


def parse_span(data: object, context: str) -> Span | None:
    """Parse a span mapping; ``line_end`` defaults to ``line_start``."""
    if data is None:
        return None
    if not isinstance(data, dict):
        msg = f"{context}: span must be a mapping"
        raise ValueError(msg)

    values: dict[str, int | None] = {}
    for key in ("line_start", "line_end", "byte_start", "byte_end"):
        raw = data.get(key)
        if raw is None:
            values[key] = None
            continue
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
            msg = f"{context}: span.{key} must be a non-negative integer"
            raise ValueError(msg)
        values[key] = raw

    line_start = values["line_start"]
    if line_start is None:
        msg = f"{context}: span.line_start is required"
        raise ValueError(msg)
    line_end = values["line_end"] if values["line_end"] is not None else line_start
    if line_end < line_start:
        msg = f"{context}: span.line_end precedes span.line_start"
        raise ValueError(msg)

    return Span(
        line_start=line_start,
        line_end=line_end,
        byte_start=values["byte_start"],
        byte_end=values["byte_end"],
    )


def _check_value(value: object, base: type, optional: bool, context: str) -> object:
    if value is None:
        if optional:
            return None
        msg = f"{context} is required"
        raise ValueError(msg)
    if base is bool:
        ok = isinstance(value, bool)
    elif base is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    else:
        ok = isinstance(value, base)
    if not ok:
        msg = f"{context} must be of type {base.__name__}, got {type(value).__name__}"
        raise ValueError(msg)
    return value


def parse_fact(data: object, context: str) -> Fact:
    """Parse one ``{fact: Variant, ...fields}`` record into a fact instance."""
    if not isinstance(data, dict):
        msg = f"{context}: fact must be a mapping"
        raise ValueError(msg)

    variant = data.get("fact")
    if variant not in FACT_VARIANTS:
        msg = f"{context}: unknown fact variant {variant!r}, must be one of {sorted(FACT_VARIANTS)}"
        raise ValueError(msg)

    field_types = fact_fields(str(variant))
    unknown = sorted(set(data) - set(field_types) - {"fact", "span"})
    if unknown:
        msg = f"{context}: unknown field(s) {unknown} for {variant}"
        raise ValueError(msg)

    kwargs: dict[str, object] = {}
    for name, (base, optional) in field_types.items():
        kwargs[name] = _check_value(data.get(name), base, optional, f"{context}: {variant}.{name}")

    if variant == "ErrorHandlingBlock" and kwargs["kind"] not in ERROR_HANDLING_KINDS:
        msg = (
            f"{context}: ErrorHandlingBlock.kind must be one of "
            f"{sorted(ERROR_HANDLING_KINDS)}, got {kwargs['kind']!r}"
        )
        raise ValueError(msg)

    kwargs["span"] = parse_span(data.get("span"), context)
    return FACT_VARIANTS[str(variant)](**kwargs)  # type: ignore[no-any-return]


def _parse_facts(data: object, context: str) -> tuple[Fact, ...]:
    if data is None:
        return ()
    if not isinstance(data, list):
        msg = f"{context}: facts must be a list"
        raise ValueError(msg)
    return tuple(parse_fact(item, f"{context} fact[{idx}]") for idx, item in enumerate(data))


def _parse_symbol(data: object, context: str) -> Symbol:
    if not isinstance(data, dict):
        msg = f"{context}: symbol must be a mapping"
        raise ValueError(msg)

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        msg = f"{context}: symbol missing required 'name' field"
        raise ValueError(msg)
    context = f"{context} ({name})"

    arity = data.get("arity", 0)
    if isinstance(arity, bool) or not isinstance(arity, int) or arity < 0:
        msg = f"{context}: arity must be a non-negative integer"
        raise ValueError(msg)

    clauses_raw = data.get("clauses", [])
    if not isinstance(clauses_raw, list):
        msg = f"{context}: clauses must be a list"
        raise ValueError(msg)
    clauses: list[Clause] = []
    for idx, clause_data in enumerate(clauses_raw):
        clause_ctx = f"{context} clause[{idx}]"
        if not isinstance(clause_data, dict):
            msg = f"{clause_ctx}: clause must be a mapping"
            raise ValueError(msg)
        clauses.append(
            Clause(
                pattern=str(clause_data.get("pattern", "")),
                facts=_parse_facts(clause_data.get("facts"), clause_ctx),
                span=parse_span(clause_data.get("span"), clause_ctx),
            )
        )

    return Symbol(
        name=name,
        arity=arity,
        clauses=tuple(clauses),
        exported=bool(data.get("exported", False)),
        facts=_parse_facts(data.get("facts"), context),
        span=parse_span(data.get("span"), context),
    )


def parse_unit(data: object, index: int) -> SourceUnit:
    """Parse one unit record.

    Never raises for malformed content: the returned unit carries a
    ``failure`` reason instead, so one bad unit does not sink the batch.
    """
    path = f"<unit {index}>"
    if isinstance(data, dict) and isinstance(data.get("path"), str) and data["path"].strip():
        path = data["path"]

    if not isinstance(data, dict):
        return SourceUnit(path=path, failure="unit record must be a mapping")

    error = data.get("error")
    if error is not None:
        return SourceUnit(path=path, domain=_opt_str(data.get("domain")), failure=str(error))

    if path.startswith("<unit "):
        return SourceUnit(path=path, failure="unit record missing required 'path' field")

    try:
        symbols_raw = data.get("symbols", [])
        if not isinstance(symbols_raw, list):
            msg = f"{path}: symbols must be a list"
            raise ValueError(msg)
        symbols = tuple(
            _parse_symbol(sym, f"{path} symbol[{idx}]") for idx, sym in enumerate(symbols_raw)
        )
        facts = _parse_facts(data.get("facts"), path)
    except ValueError as exc:
        logger.warning("Front-end record for %s is malformed: %s", path, exc)
        return SourceUnit(path=path, domain=_opt_str(data.get("domain")), failure=str(exc))

    return SourceUnit(
        path=path,
        symbols=symbols,
        domain=_opt_str(data.get("domain")),
        facts=facts,
    )


def _opt_str(value: object) -> str | None:
    return str(value) if value is not None else None


# ---------------------------------------------------------------------------
# Batch loading
# ---------------------------------------------------------------------------


def parse_batch(data: object, source: str = "<batch>") -> list[SourceUnit]:
    """Convert a decoded batch document into source units, preserving input order."""
    if isinstance(data, list):
        units_raw: object = data
    elif isinstance(data, dict):
        units_raw = data.get("units", [])
    else:
        msg = f"{source}: batch must be a mapping with a 'units' list"
        raise FrontEndError(msg)

    if not isinstance(units_raw, list):
        msg = f"{source}: 'units' must be a list"
        raise FrontEndError(msg)

    units: list[SourceUnit] = []
    seen_paths: set[str] = set()
    for idx, unit_data in enumerate(units_raw):
        unit = parse_unit(unit_data, idx)
        if unit.path in seen_paths:
            unit = SourceUnit(path=unit.path, domain=unit.domain, failure="duplicate unit path")
        seen_paths.add(unit.path)
        units.append(unit)

    failed = sum(1 for u in units if not u.analyzed)
    logger.debug("Loaded %d unit(s) from %s (%d unanalyzed)", len(units), source, failed)
    return units


def load_batch(path: Path) -> list[SourceUnit]:
    """Read a YAML or JSON batch file.

    Raises :class:`FrontEndError` when the file cannot be read or decoded.
    """
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        msg = f"Cannot read fact batch {path}: {exc}"
        raise FrontEndError(msg) from exc

    return parse_batch(data, source=str(path))


def load_batches(paths: list[Path]) -> list[SourceUnit]:
    """Load several batch files as one batch; unit order follows file order."""
    units: list[SourceUnit] = []
    seen_paths: set[str] = set()
    for path in paths:
        for unit in load_batch(path):
            if unit.path in seen_paths:
                unit = SourceUnit(path=unit.path, domain=unit.domain, failure="duplicate unit path")
            seen_paths.add(unit.path)
            units.append(unit)
    return units
