"""Rules domain — predicate language and rule registry."""

# factlint:domain=rules

from factlint.rules.predicates import (
    EvalContext,
    MatchResult,
    Predicate,
    evaluate,
    parse_predicate,
    referenced_variants,
)
from factlint.rules.registry import (
    CATEGORIES,
    SEVERITY_RANK,
    VALID_SEVERITIES,
    Rule,
    RuleLoadError,
    RuleNotFoundError,
    RuleRegistry,
    load_builtin_rules,
    load_rules,
    parse_rules,
)

__all__ = [
    "CATEGORIES",
    "SEVERITY_RANK",
    "VALID_SEVERITIES",
    "EvalContext",
    "MatchResult",
    "Predicate",
    "Rule",
    "RuleLoadError",
    "RuleNotFoundError",
    "RuleRegistry",
    "evaluate",
    "load_builtin_rules",
    "load_rules",
    "parse_predicate",
    "parse_rules",
    "referenced_variants",
]
