# factlint:domain=rules
"""Rule registry: parse rule files, validate, and index rules by id and category.

Loading is all-or-nothing.  The first invalid definition raises
:class:`RuleLoadError` and no registry is produced, so a broken rule can
never silently drop out of a review.
"""

from __future__ import annotations

import logging
import string
from dataclasses import dataclass
from importlib import resources
from typing import TYPE_CHECKING

import yaml

from factlint.rules.predicates import (
    Predicate,
    parse_predicate,
    placeholder_fields,
    referenced_variants,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Highest-risk first; this order is also the resolver's category precedence.
CATEGORIES: tuple[str, ...] = (
    "ConcurrencyDesign",
    "BoundaryDiscipline",
    "ErrorHandlingStyle",
    "PatternMatchStyle",
    "TransformationStyle",
    "TestDesign",
    "DocumentationCompleteness",
)
VALID_CATEGORIES: frozenset[str] = frozenset(CATEGORIES)
VALID_SEVERITIES: frozenset[str] = frozenset({"info", "warn", "error"})
SEVERITY_RANK: dict[str, int] = {"info": 0, "warn": 1, "error": 2}
VALID_SCOPES: frozenset[str] = frozenset({"unit", "symbol"})
SUPPORTED_SCHEMA_VERSIONS: frozenset[int] = frozenset({1})

BASE_PLACEHOLDERS: frozenset[str] = frozenset({"rule", "unit", "symbol", "domain", "variant"})

BUILTIN_RULES_RESOURCE = "builtin.yml"

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RuleLoadError(Exception):
    """Raised when any rule definition is invalid; aborts the whole run."""

    def __init__(self, rule_id: str | None, reason: str) -> None:
        self.rule_id = rule_id
        self.reason = reason
        where = f"rule '{rule_id}'" if rule_id else "rule set"
        super().__init__(f"{where}: {reason}")


class RuleNotFoundError(KeyError):
    """Raised by :meth:`RuleRegistry.rule` for an unknown id."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rule:
    """A loaded, validated rule.

    ``example_good`` / ``example_bad`` and ``description`` are documentation
    only and never consulted during matching.
    """

    id: str
    category: str
    severity: str
    scope: str
    predicate: Predicate
    message: str
    description: str = ""
    suppression_key: str | None = None
    example_good: str | None = None
    example_bad: str | None = None

    @property
    def variants(self) -> frozenset[str]:
        return referenced_variants(self.predicate)


class RuleRegistry:
    """Read-only index of rules by id and by category, in load order."""

    def __init__(self, rules: Iterable[Rule]) -> None:
        self._rules: tuple[Rule, ...] = tuple(rules)
        self._by_id: dict[str, Rule] = {}
        self._by_category: dict[str, list[Rule]] = {c: [] for c in CATEGORIES}
        for rule in self._rules:
            if rule.id in self._by_id:
                raise RuleLoadError(rule.id, "duplicate rule id")
            self._by_id[rule.id] = rule
            self._by_category[rule.category].append(rule)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    def all_rules(self) -> tuple[Rule, ...]:
        return self._rules

    def rules_in_category(self, category: str) -> tuple[Rule, ...]:
        if category not in VALID_CATEGORIES:
            msg = f"unknown category '{category}', must be one of {list(CATEGORIES)}"
            raise ValueError(msg)
        return tuple(self._by_category[category])

    def rule(self, rule_id: str) -> Rule:
        try:
            return self._by_id[rule_id]
        except KeyError:
            raise RuleNotFoundError(rule_id) from None

    def select(self, categories: Iterable[str] | None) -> RuleRegistry:
        """Return a registry restricted to *categories* (all rules when None)."""
        if categories is None:
            return self
        wanted = set(categories)
        unknown = sorted(wanted - VALID_CATEGORIES)
        if unknown:
            msg = f"unknown categories {unknown}, must be among {list(CATEGORIES)}"
            raise ValueError(msg)
        return RuleRegistry(r for r in self._rules if r.category in wanted)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _placeholders(template: str) -> set[str]:
    names: set[str] = set()
    for _literal, field_name, _spec, _conv in string.Formatter().parse(template):
        if field_name is None:
            continue
        if not field_name or not field_name.isidentifier():
            msg = f"message placeholder '{{{field_name}}}' must be a plain name"
            raise ValueError(msg)
        names.add(field_name)
    return names


def _opt_text(value: object) -> str | None:
    return str(value) if value is not None else None


def parse_rule(data: object, index: int) -> Rule:
    """Parse one rule record, raising :class:`RuleLoadError` on any problem."""
    if not isinstance(data, dict):
        raise RuleLoadError(None, f"rule at index {index} must be a mapping")

    rule_id = data.get("id")
    if not isinstance(rule_id, str) or not rule_id.strip():
        raise RuleLoadError(None, f"rule at index {index} missing required 'id' field")

    category = data.get("category")
    if not isinstance(category, str) or category not in VALID_CATEGORIES:
        raise RuleLoadError(
            rule_id, f"invalid category {category!r}, must be one of {list(CATEGORIES)}"
        )

    severity = str(data.get("severity", "")).lower()
    if severity not in VALID_SEVERITIES:
        raise RuleLoadError(
            rule_id,
            f"invalid severity {data.get('severity')!r}, must be one of {sorted(VALID_SEVERITIES)}",
        )

    scope = str(data.get("scope", "symbol"))
    if scope not in VALID_SCOPES:
        raise RuleLoadError(
            rule_id, f"invalid scope '{scope}', must be one of {sorted(VALID_SCOPES)}"
        )

    if "predicate" not in data:
        raise RuleLoadError(rule_id, "missing required 'predicate' field")
    try:
        predicate = parse_predicate(data["predicate"], "predicate", scope=scope)
    except ValueError as exc:
        raise RuleLoadError(rule_id, str(exc)) from exc

    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        raise RuleLoadError(rule_id, "missing required 'message' field")

    allowed = BASE_PLACEHOLDERS | placeholder_fields(predicate)
    try:
        unknown = sorted(_placeholders(message) - allowed)
    except ValueError as exc:
        raise RuleLoadError(rule_id, str(exc)) from exc
    if unknown:
        raise RuleLoadError(
            rule_id, f"message uses placeholders {unknown} that not every match can supply"
        )

    return Rule(
        id=rule_id,
        category=str(category),
        severity=severity,
        scope=scope,
        predicate=predicate,
        message=message,
        description=str(data.get("description", "")),
        suppression_key=_opt_text(data.get("suppression_key")),
        example_good=_opt_text(data.get("example_good")),
        example_bad=_opt_text(data.get("example_bad")),
    )


def parse_rules(data: object, source: str = "<rules>") -> RuleRegistry:
    """Build a registry from a decoded rules document."""
    if not isinstance(data, dict):
        raise RuleLoadError(None, f"{source} must be a YAML mapping")

    version = data.get("version")
    if version is None:
        raise RuleLoadError(None, f"{source}: missing required 'version' field")
    if version not in SUPPORTED_SCHEMA_VERSIONS:
        expected = sorted(SUPPORTED_SCHEMA_VERSIONS)
        raise RuleLoadError(
            None, f"{source}: unsupported version {version}, expected one of {expected}"
        )

    rules_data = data.get("rules", [])
    if not isinstance(rules_data, list):
        raise RuleLoadError(None, f"{source}: 'rules' must be a list")

    rules: list[Rule] = []
    seen_ids: set[str] = set()
    for idx, rule_data in enumerate(rules_data):
        rule = parse_rule(rule_data, idx)
        if rule.id in seen_ids:
            raise RuleLoadError(rule.id, "duplicate rule id")
        seen_ids.add(rule.id)
        rules.append(rule)

    logger.debug("Loaded %d rule(s) from %s", len(rules), source)
    return RuleRegistry(rules)


def load_rules(rules_path: Path) -> RuleRegistry:
    """Parse a rules file.  Raises :class:`RuleLoadError` for unreadable or invalid files."""
    try:
        with rules_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        raise RuleLoadError(None, f"cannot read {rules_path}: {exc}") from exc
    return parse_rules(data, source=str(rules_path))


def load_builtin_rules() -> RuleRegistry:
    """Load the default rule set shipped with the package."""
    text = resources.files("factlint.rules").joinpath(BUILTIN_RULES_RESOURCE).read_text("utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RuleLoadError(None, f"bundled rule set is not valid YAML: {exc}") from exc
    return parse_rules(data, source=f"factlint:{BUILTIN_RULES_RESOURCE}")
