# factlint:domain=rules
"""Tests for factlint.rules.registry — rule loading and indexing."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from factlint.rules.registry import (
    CATEGORIES,
    RuleLoadError,
    RuleNotFoundError,
    load_builtin_rules,
    load_rules,
    parse_rule,
    parse_rules,
)

if TYPE_CHECKING:
    from pathlib import Path


def _rule(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "id": "concurrency.stateful",
        "category": "ConcurrencyDesign",
        "severity": "warn",
        "scope": "symbol",
        "predicate": {
            "fact": "ConcurrencyPrimitiveDeclaration",
            "where": {"has_concurrent_access_evidence": False},
        },
        "message": "{symbol}: {kind} has no concurrent callers",
    }
    data.update(overrides)
    return data


class TestParseRule:
    def test_valid_rule(self) -> None:
        rule = parse_rule(_rule(suppression_key="allow-stateful"), 0)
        assert rule.id == "concurrency.stateful"
        assert rule.category == "ConcurrencyDesign"
        assert rule.severity == "warn"
        assert rule.scope == "symbol"
        assert rule.suppression_key == "allow-stateful"
        assert rule.variants == {"ConcurrencyPrimitiveDeclaration"}

    def test_severity_is_case_insensitive(self) -> None:
        assert parse_rule(_rule(severity="Error"), 0).severity == "error"

    def test_scope_defaults_to_symbol(self) -> None:
        data = _rule()
        del data["scope"]
        assert parse_rule(data, 0).scope == "symbol"

    @pytest.mark.parametrize(
        ("overrides", "fragment"),
        [
            ({"category": "Style"}, "invalid category"),
            ({"category": ["ConcurrencyDesign"]}, "invalid category"),
            ({"severity": "fatal"}, "invalid severity"),
            ({"scope": "module"}, "invalid scope"),
            ({"predicate": {"fact": "LoopNest"}}, "unknown fact variant"),
            ({"message": ""}, "'message'"),
            ({"message": "{symbol} uses {colour}"}, "colour"),
            ({"message": "{0} positional"}, "plain name"),
        ],
    )
    def test_invalid(self, overrides: dict[str, object], fragment: str) -> None:
        with pytest.raises(RuleLoadError, match=fragment) as exc_info:
            parse_rule(_rule(**overrides), 0)
        assert exc_info.value.rule_id == "concurrency.stateful"

    def test_missing_id(self) -> None:
        data = _rule()
        del data["id"]
        with pytest.raises(RuleLoadError, match="missing required 'id'") as exc_info:
            parse_rule(data, 3)
        assert exc_info.value.rule_id is None

    def test_missing_predicate(self) -> None:
        data = _rule()
        del data["predicate"]
        with pytest.raises(RuleLoadError, match="predicate"):
            parse_rule(data, 0)

    def test_negated_variant_fields_cannot_be_placeholders(self) -> None:
        data = _rule(
            predicate={"not": {"fact": "ConcurrencyPrimitiveDeclaration"}},
            message="{symbol} {kind}",
        )
        with pytest.raises(RuleLoadError, match="kind"):
            parse_rule(data, 0)

    def test_placeholder_from_one_conjunct_rejected(self) -> None:
        data = _rule(
            predicate={
                "all": [{"fact": "PatternClauseSet"}, {"fact": "TransformationChain"}]
            },
            message="{symbol}: {step_count} steps",
        )
        with pytest.raises(RuleLoadError, match="step_count"):
            parse_rule(data, 0)

    def test_placeholder_from_one_alternative_rejected(self) -> None:
        data = _rule(
            predicate={
                "any": [{"fact": "PatternClauseSet"}, {"fact": "TransformationChain"}]
            },
            message="{symbol}: {clause_count} clauses",
        )
        with pytest.raises(RuleLoadError, match="clause_count"):
            parse_rule(data, 0)

    def test_placeholder_with_evidence_free_alternative_rejected(self) -> None:
        data = _rule(
            predicate={
                "any": [
                    {"unit": {"path": {"matches": "test/*"}}},
                    {"fact": "TransformationChain"},
                ]
            },
            message="{symbol}: {step_count} steps",
        )
        with pytest.raises(RuleLoadError, match="step_count"):
            parse_rule(data, 0)

    def test_placeholder_shared_by_every_variant_allowed(self) -> None:
        data = _rule(
            predicate={
                "any": [
                    {"fact": "ConcurrencyPrimitiveDeclaration"},
                    {"fact": "ErrorHandlingBlock"},
                ]
            },
            message="{symbol}: {kind}",
        )
        rule = parse_rule(data, 0)
        assert rule.variants == {"ConcurrencyPrimitiveDeclaration", "ErrorHandlingBlock"}


class TestParseRules:
    def test_registry_indexes(self) -> None:
        registry = parse_rules(
            {
                "version": 1,
                "rules": [
                    _rule(),
                    _rule(
                        id="docs.undocumented",
                        category="DocumentationCompleteness",
                        severity="info",
                        predicate={"not": {"fact": "DocumentationPresence"}},
                        message="{symbol} undocumented",
                    ),
                ],
            }
        )
        assert len(registry) == 2
        assert "docs.undocumented" in registry
        assert [r.id for r in registry] == ["concurrency.stateful", "docs.undocumented"]
        assert [r.id for r in registry.rules_in_category("ConcurrencyDesign")] == [
            "concurrency.stateful"
        ]
        assert registry.rules_in_category("TestDesign") == ()
        assert registry.rule("docs.undocumented").severity == "info"

    def test_unknown_rule_lookup(self) -> None:
        registry = parse_rules({"version": 1, "rules": [_rule()]})
        with pytest.raises(RuleNotFoundError):
            registry.rule("nope")

    def test_unknown_category_lookup(self) -> None:
        registry = parse_rules({"version": 1, "rules": []})
        with pytest.raises(ValueError, match="unknown category"):
            registry.rules_in_category("Style")

    def test_one_bad_rule_fails_the_whole_set(self) -> None:
        with pytest.raises(RuleLoadError) as exc_info:
            parse_rules(
                {"version": 1, "rules": [_rule(), _rule(id="bad", severity="loud")]}
            )
        assert exc_info.value.rule_id == "bad"

    def test_duplicate_ids(self) -> None:
        with pytest.raises(RuleLoadError, match="duplicate rule id"):
            parse_rules({"version": 1, "rules": [_rule(), _rule()]})

    def test_missing_version(self) -> None:
        with pytest.raises(RuleLoadError, match="version"):
            parse_rules({"rules": []})

    def test_unsupported_version(self) -> None:
        with pytest.raises(RuleLoadError, match="unsupported version"):
            parse_rules({"version": 2, "rules": []})

    def test_select_categories(self) -> None:
        registry = load_builtin_rules()
        selected = registry.select(["BoundaryDiscipline"])
        assert len(selected) > 0
        assert {r.category for r in selected} == {"BoundaryDiscipline"}
        assert registry.select(None) is registry
        with pytest.raises(ValueError, match="unknown categories"):
            registry.select(["Style"])


class TestLoadRules:
    def test_load_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yml"
        path.write_text(
            "version: 1\n"
            "rules:\n"
            "  - id: transform.single\n"
            "    category: TransformationStyle\n"
            "    severity: info\n"
            "    predicate:\n"
            "      fact: TransformationChain\n"
            "      where: { step_count: 1 }\n"
            "    message: '{symbol}: {step_count}-step chain'\n"
        )
        registry = load_rules(path)
        assert registry.rule("transform.single").category == "TransformationStyle"

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yml"
        path.write_text("version: 1\nrules: [\n")
        with pytest.raises(RuleLoadError, match="cannot read"):
            load_rules(path)

    def test_non_utf8_file(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yml"
        path.write_bytes(b"version: 1\nrules: []\n# \xff\xfe\n")
        with pytest.raises(RuleLoadError, match="cannot read"):
            load_rules(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yml"
        path.write_text("- just a list\n")
        with pytest.raises(RuleLoadError, match="mapping"):
            load_rules(path)


class TestBuiltinRules:
    def test_builtin_set_loads(self) -> None:
        registry = load_builtin_rules()
        assert len(registry) >= 10
        assert "concurrency.unneeded-stateful-primitive" in registry
        assert "boundary.internal-record-access" in registry

    def test_builtin_covers_every_category(self) -> None:
        registry = load_builtin_rules()
        for category in CATEGORIES:
            assert registry.rules_in_category(category), category

    def test_builtin_rules_carry_documentation(self) -> None:
        rule = load_builtin_rules().rule("boundary.internal-record-access")
        assert rule.severity == "error"
        assert rule.example_bad
        assert rule.example_good
