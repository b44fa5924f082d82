# factlint:domain=config
"""Project configuration: ``.factlint/config.yml`` and the suppression file.

Example ``config.yml``::

    rules: .factlint/rules.yml
    suppressions: .factlint/suppressions.yml
    categories: [ConcurrencyDesign, BoundaryDiscipline]
    threshold: 10
    workers: 4
    domains:
      Billing: ["lib/billing/*"]
      Shipping: ["lib/shipping/*"]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import yaml

from factlint.engine.resolver import Suppression
from factlint.facts.loader import parse_span
from factlint.rules.registry import VALID_CATEGORIES

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_DIR = ".factlint"
CONFIG_FILE = "config.yml"
DEFAULT_RULES_FILE = "rules.yml"
DEFAULT_SUPPRESSIONS_FILE = "suppressions.yml"


class ConfigError(Exception):
    """Raised when config.yml or the suppression file contains invalid values."""


@dataclass(frozen=True)
class ReviewConfig:
    """Resolved project configuration.  Paths are absolute."""

    rules_path: Path | None = None
    suppressions_path: Path | None = None
    categories: tuple[str, ...] | None = None
    threshold: int | None = None
    workers: int = 1
    domains: dict[str, tuple[str, ...]] = field(default_factory=dict)


def _opt_int(value: object, key: str, *, minimum: int) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        msg = f"config.yml: '{key}' must be an integer >= {minimum}"
        raise ConfigError(msg)
    return value


def _parse_categories(value: object) -> tuple[str, ...] | None:
    if value is None:
        return None
    if not isinstance(value, list) or not value:
        msg = "config.yml: 'categories' must be a non-empty list"
        raise ConfigError(msg)
    categories = tuple(str(c) for c in value)
    unknown = sorted(set(categories) - VALID_CATEGORIES)
    if unknown:
        msg = f"config.yml: unknown categories {unknown}"
        raise ConfigError(msg)
    return categories


def _parse_domains(value: object) -> dict[str, tuple[str, ...]]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        msg = "config.yml: 'domains' must be a mapping of domain -> list of globs"
        raise ConfigError(msg)
    domains: dict[str, tuple[str, ...]] = {}
    for domain, globs in value.items():
        if isinstance(globs, str):
            globs = [globs]
        if not isinstance(globs, list):
            msg = f"config.yml: domain '{domain}' must map to a list of globs"
            raise ConfigError(msg)
        domains[str(domain)] = tuple(str(g) for g in globs)
    return domains


def load_config(project_root: Path) -> ReviewConfig:
    """Load ``<project_root>/.factlint/config.yml``.

    A missing or unreadable file falls back to defaults; present but invalid
    values raise :class:`ConfigError`.
    """
    config_dir = project_root / CONFIG_DIR
    default_rules = config_dir / DEFAULT_RULES_FILE
    default_suppressions = config_dir / DEFAULT_SUPPRESSIONS_FILE
    defaults = ReviewConfig(
        rules_path=default_rules if default_rules.is_file() else None,
        suppressions_path=default_suppressions if default_suppressions.is_file() else None,
    )

    config_path = config_dir / CONFIG_FILE
    if not config_path.is_file():
        return defaults

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        logger.warning("Failed to read %s, using default configuration", config_path)
        return defaults

    if data is None:
        return defaults
    if not isinstance(data, dict):
        msg = "config.yml must be a YAML mapping"
        raise ConfigError(msg)

    rules_path = defaults.rules_path
    if data.get("rules") is not None:
        rules_path = project_root / str(data["rules"])

    suppressions_path = defaults.suppressions_path
    if data.get("suppressions") is not None:
        suppressions_path = project_root / str(data["suppressions"])

    workers = _opt_int(data.get("workers"), "workers", minimum=1)

    return ReviewConfig(
        rules_path=rules_path,
        suppressions_path=suppressions_path,
        categories=_parse_categories(data.get("categories")),
        threshold=_opt_int(data.get("threshold"), "threshold", minimum=0),
        workers=workers if workers is not None else 1,
        domains=_parse_domains(data.get("domains")),
    )


def load_suppressions(path: Path | None) -> tuple[Suppression, ...]:
    """Read a suppression file::

        suppressions:
          - rule: boundary.internal-record-access
            unit: lib/billing/invoice.ex
            line: 12
            reason: "legacy import, tracked in #214"
          - rule: pattern.guardless-catch-all
            unit: lib/router.ex
            span: { line_start: 5, byte_start: 10, byte_end: 13 }

    A missing file means no suppressions.
    """
    if path is None or not path.is_file():
        return ()

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        msg = f"Cannot read suppressions file {path}: {exc}"
        raise ConfigError(msg) from exc

    if data is None:
        return ()
    entries = data.get("suppressions", []) if isinstance(data, dict) else None
    if not isinstance(entries, list):
        msg = f"{path}: 'suppressions' must be a list"
        raise ConfigError(msg)

    suppressions: list[Suppression] = []
    for idx, entry in enumerate(entries):
        if not isinstance(entry, dict):
            msg = f"{path}: suppression at index {idx} must be a mapping"
            raise ConfigError(msg)
        rule = entry.get("rule")
        unit = entry.get("unit")
        if not isinstance(rule, str) or not rule.strip():
            msg = f"{path}: suppression at index {idx} missing required 'rule' field"
            raise ConfigError(msg)
        if not isinstance(unit, str) or not unit.strip():
            msg = f"{path}: suppression at index {idx} missing required 'unit' field"
            raise ConfigError(msg)
        line = entry.get("line")
        if line is not None and (isinstance(line, bool) or not isinstance(line, int)):
            msg = f"{path}: suppression at index {idx} has a non-integer 'line'"
            raise ConfigError(msg)
        try:
            span = parse_span(entry.get("span"), f"{path}: suppression at index {idx}")
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        symbol = entry.get("symbol")
        suppressions.append(
            Suppression(
                rule=rule,
                unit=unit,
                symbol=str(symbol) if symbol is not None else None,
                line=line,
                reason=str(entry.get("reason", "")),
                span=span,
            )
        )
    return tuple(suppressions)
