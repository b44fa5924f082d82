# factlint:service=cli
"""Tests for the factlint CLI."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from click.testing import CliRunner

from factlint import __version__
from factlint.cli import main

if TYPE_CHECKING:
    from pathlib import Path


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_ERROR_FACTS = """\
units:
  - path: lib/billing/invoice.ex
    domain: Billing
    facts:
      - fact: CrossBoundaryReference
        from_domain: Billing
        to_domain: Shipping
        target_kind: internalDataRecord
        span: { line_start: 12 }
"""

_WARN_FACTS = """\
units:
  - path: lib/cache.ex
    symbols:
      - name: start_link
        arity: 1
        facts:
          - fact: ConcurrencyPrimitiveDeclaration
            kind: singleWriterNoReaders
            has_concurrent_access_evidence: false
            span: { line_start: 4 }
"""


def _facts(project: Path, text: str) -> str:
    path = project / "facts.yml"
    path.write_text(text)
    return str(path)


def _check(project: Path, *args: str) -> tuple[int, str]:
    runner = CliRunner()
    result = runner.invoke(main, ["check", "--project", str(project), *args])
    return result.exit_code, result.output


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestCheckCommand:
    """Tests for `factlint check`."""

    def test_error_finding_fails_gate(self, tmp_project: Path) -> None:
        code, output = _check(tmp_project, _facts(tmp_project, _ERROR_FACTS))
        assert code == 1, output
        assert "lib/billing/invoice.ex:12:error:BoundaryDiscipline" in output

    def test_warnings_pass_without_threshold(self, tmp_project: Path) -> None:
        code, output = _check(tmp_project, _facts(tmp_project, _WARN_FACTS))
        assert code == 0, output
        assert "concurrency.unneeded-stateful-primitive" in output

    def test_threshold_option(self, tmp_project: Path) -> None:
        facts = _facts(tmp_project, _WARN_FACTS)
        assert _check(tmp_project, facts, "--threshold", "3")[0] == 1
        assert _check(tmp_project, facts, "--threshold", "4")[0] == 0

    def test_threshold_from_config(self, tmp_project: Path) -> None:
        (tmp_project / ".factlint" / "config.yml").write_text("threshold: 2\n")
        code, _ = _check(tmp_project, _facts(tmp_project, _WARN_FACTS))
        assert code == 1

    def test_category_filter(self, tmp_project: Path) -> None:
        facts = _facts(tmp_project, _ERROR_FACTS)
        code, output = _check(tmp_project, facts, "--category", "ConcurrencyDesign")
        assert code == 0, output
        assert output.strip() == ""

    def test_json_output(self, tmp_project: Path) -> None:
        code, output = _check(tmp_project, _facts(tmp_project, _ERROR_FACTS), "--format", "json")
        assert code == 1
        data = json.loads(output)
        assert data["summary"]["total_score"] == 9
        assert data["findings"][0]["rule_id"] == "boundary.internal-record-access"

    def test_output_file(self, tmp_project: Path) -> None:
        out = tmp_project / "report.json"
        facts = _facts(tmp_project, _WARN_FACTS)
        code, output = _check(tmp_project, facts, "--format", "json", "-o", str(out))
        assert code == 0
        assert output == ""
        assert json.loads(out.read_text())["summary"]["findings_count"] == 1

    def test_rich_output(self, tmp_project: Path) -> None:
        code, output = _check(tmp_project, _facts(tmp_project, _WARN_FACTS), "--format", "rich")
        assert code == 0
        assert "Summary" in output

    def test_invalid_rules_exit_2(self, tmp_project: Path) -> None:
        rules = tmp_project / "rules.yml"
        rules.write_text("version: 1\nrules:\n  - id: bad\n    category: Nope\n")
        code, output = _check(tmp_project, _facts(tmp_project, _WARN_FACTS), "--rules", str(rules))
        assert code == 2
        assert "rule 'bad'" in output

    def test_invalid_config_exit_2(self, tmp_project: Path) -> None:
        (tmp_project / ".factlint" / "config.yml").write_text("workers: -3\n")
        code, _ = _check(tmp_project, _facts(tmp_project, _WARN_FACTS))
        assert code == 2

    def test_unreadable_facts_exit_3(self, tmp_project: Path) -> None:
        code, output = _check(tmp_project, str(tmp_project / "missing.yml"))
        assert code == 3
        assert "Cannot read fact batch" in output

    def test_non_utf8_facts_exit_3(self, tmp_project: Path) -> None:
        facts = tmp_project / "facts.yml"
        facts.write_bytes(b"units:\n  - path: lib/\xff\xfe.ex\n")
        code, output = _check(tmp_project, str(facts))
        assert code == 3
        assert "Cannot read fact batch" in output

    def test_non_utf8_rules_exit_2(self, tmp_project: Path) -> None:
        rules = tmp_project / "rules.yml"
        rules.write_bytes(b"version: 1\nrules: []\n# \xff\n")
        code, output = _check(tmp_project, _facts(tmp_project, _WARN_FACTS), "--rules", str(rules))
        assert code == 2
        assert "cannot read" in output

    def test_non_utf8_suppressions_exit_2(self, tmp_project: Path) -> None:
        sup = tmp_project / "accepted.yml"
        sup.write_bytes(b"suppressions:\n  - rule: r\n    unit: \xff.ex\n")
        facts = _facts(tmp_project, _WARN_FACTS)
        code, output = _check(tmp_project, facts, "--suppressions", str(sup))
        assert code == 2
        assert "Cannot read suppressions file" in output

    def test_failed_unit_is_reported(self, tmp_project: Path) -> None:
        facts = _facts(tmp_project, "units:\n  - path: lib/x.ex\n    error: bad token\n")
        code, output = _check(tmp_project, facts)
        assert code == 0
        assert "lib/x.ex:::unanalyzed:::" in output

    def test_suppressions_option(self, tmp_project: Path) -> None:
        sup = tmp_project / "accepted.yml"
        sup.write_text(
            "suppressions:\n"
            "  - rule: boundary.internal-record-access\n"
            "    unit: lib/billing/invoice.ex\n"
            "    line: 12\n"
            "    reason: legacy\n"
        )
        facts = _facts(tmp_project, _ERROR_FACTS)
        code, output = _check(tmp_project, facts, "--suppressions", str(sup), "--format", "json")
        assert code == 0, output
        assert json.loads(output)["summary"]["suppressed_count"] == 1


class TestRulesCommand:
    def test_json_listing(self, tmp_project: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["rules", "--project", str(tmp_project), "--format", "json"])
        assert result.exit_code == 0, result.output
        rules = json.loads(result.output)
        ids = [r["id"] for r in rules]
        assert "boundary.internal-record-access" in ids
        first = rules[0]
        assert set(first) == {"id", "category", "severity", "scope", "description", "variants"}

    def test_category_filter(self, tmp_project: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main,
            [
                "rules",
                "--project",
                str(tmp_project),
                "--category",
                "TestDesign",
                "--format",
                "json",
            ],
        )
        assert result.exit_code == 0, result.output
        assert {r["category"] for r in json.loads(result.output)} == {"TestDesign"}

    def test_rich_listing(self, tmp_project: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["rules", "--project", str(tmp_project)])
        assert result.exit_code == 0, result.output
        assert "rule(s)" in result.output

    def test_project_rules_file(self, tmp_project: Path) -> None:
        (tmp_project / ".factlint" / "rules.yml").write_text(
            "version: 1\n"
            "rules:\n"
            "  - id: local.only\n"
            "    category: TestDesign\n"
            "    severity: info\n"
            "    predicate: { fact: ErrorHandlingBlock }\n"
            "    message: '{symbol}'\n"
        )
        runner = CliRunner()
        result = runner.invoke(main, ["rules", "--project", str(tmp_project), "--format", "json"])
        assert [r["id"] for r in json.loads(result.output)] == ["local.only"]


class TestExplainCommand:
    def test_explain_rule(self, tmp_project: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main, ["explain", "boundary.internal-record-access", "--project", str(tmp_project)]
        )
        assert result.exit_code == 0, result.output
        assert "BoundaryDiscipline / error / unit" in result.output
        assert "Instead of:" in result.output
        assert "Prefer:" in result.output

    def test_suppression_key_shown(self, tmp_project: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["explain", "concurrency.unneeded-stateful-primitive", "--project", str(tmp_project)],
        )
        assert "Suppression key: allow-stateful-primitive" in result.output

    def test_unknown_rule(self, tmp_project: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["explain", "no.such.rule", "--project", str(tmp_project)])
        assert result.exit_code == 2
        assert "unknown rule" in result.output


class TestVersion:
    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output
