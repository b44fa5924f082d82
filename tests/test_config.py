# factlint:domain=config
"""Tests for factlint.config — project config and suppression files."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from factlint.config import ConfigError, ReviewConfig, load_config, load_suppressions
from factlint.engine.resolver import Suppression
from factlint.facts.model import Span

if TYPE_CHECKING:
    from pathlib import Path


class TestLoadConfig:
    def test_defaults_without_config_dir(self, tmp_path: Path) -> None:
        assert load_config(tmp_path) == ReviewConfig()

    def test_default_files_are_picked_up(self, tmp_project: Path) -> None:
        (tmp_project / ".factlint" / "rules.yml").write_text("version: 1\nrules: []\n")
        (tmp_project / ".factlint" / "suppressions.yml").write_text("suppressions: []\n")
        config = load_config(tmp_project)
        assert config.rules_path == tmp_project / ".factlint" / "rules.yml"
        assert config.suppressions_path == tmp_project / ".factlint" / "suppressions.yml"

    def test_full_config(self, tmp_project: Path) -> None:
        (tmp_project / ".factlint" / "config.yml").write_text(
            "rules: custom/rules.yml\n"
            "suppressions: custom/accepted.yml\n"
            "categories: [ConcurrencyDesign, BoundaryDiscipline]\n"
            "threshold: 10\n"
            "workers: 4\n"
            "domains:\n"
            "  Billing: ['lib/billing/*']\n"
            "  Shipping: 'lib/shipping/*'\n"
        )
        config = load_config(tmp_project)
        assert config.rules_path == tmp_project / "custom" / "rules.yml"
        assert config.suppressions_path == tmp_project / "custom" / "accepted.yml"
        assert config.categories == ("ConcurrencyDesign", "BoundaryDiscipline")
        assert config.threshold == 10
        assert config.workers == 4
        assert config.domains == {
            "Billing": ("lib/billing/*",),
            "Shipping": ("lib/shipping/*",),
        }

    def test_empty_config_file(self, tmp_project: Path) -> None:
        (tmp_project / ".factlint" / "config.yml").write_text("")
        assert load_config(tmp_project) == ReviewConfig()

    def test_unparseable_config_falls_back(
        self, tmp_project: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        (tmp_project / ".factlint" / "config.yml").write_text("threshold: [\n")
        with caplog.at_level("WARNING", logger="factlint.config"):
            config = load_config(tmp_project)
        assert config == ReviewConfig()
        assert "using default configuration" in caplog.text

    @pytest.mark.parametrize(
        ("content", "fragment"),
        [
            ("- a list\n", "mapping"),
            ("threshold: -1\n", "threshold"),
            ("workers: 0\n", "workers"),
            ("workers: true\n", "workers"),
            ("categories: [Style]\n", "unknown categories"),
            ("categories: []\n", "non-empty list"),
            ("domains: [a, b]\n", "domains"),
            ("domains:\n  Billing: 3\n", "Billing"),
        ],
    )
    def test_invalid_values(self, tmp_project: Path, content: str, fragment: str) -> None:
        (tmp_project / ".factlint" / "config.yml").write_text(content)
        with pytest.raises(ConfigError, match=fragment):
            load_config(tmp_project)


class TestLoadSuppressions:
    def test_missing_file(self, tmp_path: Path) -> None:
        assert load_suppressions(None) == ()
        assert load_suppressions(tmp_path / "nope.yml") == ()

    def test_entries(self, tmp_path: Path) -> None:
        path = tmp_path / "suppressions.yml"
        path.write_text(
            "suppressions:\n"
            "  - rule: boundary.internal-record-access\n"
            "    unit: lib/billing/invoice.ex\n"
            "    line: 12\n"
            "    reason: legacy import\n"
            "  - rule: allow-stateful-primitive\n"
            "    unit: lib/cache.ex\n"
            "    symbol: start_link\n"
        )
        assert load_suppressions(path) == (
            Suppression(
                rule="boundary.internal-record-access",
                unit="lib/billing/invoice.ex",
                line=12,
                reason="legacy import",
            ),
            Suppression(rule="allow-stateful-primitive", unit="lib/cache.ex", symbol="start_link"),
        )

    def test_span_entry(self, tmp_path: Path) -> None:
        path = tmp_path / "suppressions.yml"
        path.write_text(
            "suppressions:\n"
            "  - rule: pattern.guardless-catch-all\n"
            "    unit: lib/router.ex\n"
            "    span: { line_start: 5, byte_start: 10, byte_end: 13 }\n"
        )
        (sup,) = load_suppressions(path)
        assert sup.span == Span(5, 5, 10, 13)
        assert sup.line is None

    def test_non_utf8_file(self, tmp_path: Path) -> None:
        path = tmp_path / "suppressions.yml"
        path.write_bytes(b"suppressions:\n  - rule: r\n    unit: \xff\xfe.ex\n")
        with pytest.raises(ConfigError, match="Cannot read"):
            load_suppressions(path)

    @pytest.mark.parametrize(
        ("content", "fragment"),
        [
            ("suppressions:\n  - {rule: r, unit: a.ex, span: 5}\n", "span must be a mapping"),
            ("suppressions:\n  - {rule: r, unit: a.ex, span: {byte_start: 1}}\n", "line_start"),
            ("suppressions: nope\n", "must be a list"),
            ("- rule: x\n", "must be a list"),
            ("suppressions:\n  - just-a-string\n", "must be a mapping"),
            ("suppressions:\n  - unit: a.ex\n", "'rule'"),
            ("suppressions:\n  - rule: r\n", "'unit'"),
            ("suppressions:\n  - {rule: r, unit: a.ex, line: twelve}\n", "non-integer"),
            ("suppressions: [\n", "Cannot read"),
        ],
    )
    def test_invalid(self, tmp_path: Path, content: str, fragment: str) -> None:
        path = tmp_path / "suppressions.yml"
        path.write_text(content)
        with pytest.raises(ConfigError, match=fragment):
            load_suppressions(path)
