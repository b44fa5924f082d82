"""factlint CLI entry point."""

# factlint:service=cli

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from factlint import __version__
from factlint.rules.registry import CATEGORIES

if TYPE_CHECKING:
    from factlint.rules.registry import RuleRegistry

EXIT_OK = 0
EXIT_GATE_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_FRONT_END_ERROR = 3


# factlint:service=cli
@click.group()
@click.version_option(version=__version__, prog_name="factlint")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """factlint - rule-based review of structural source facts."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


_category_option = click.option(
    "--category",
    "categories",
    multiple=True,
    type=click.Choice(list(CATEGORIES)),
    help="Only run rules of this category (repeatable; default: all).",
)
_rules_option = click.option(
    "--rules",
    "rules_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Rule file (default: .factlint/rules.yml, else the bundled rule set).",
)
_project_option = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)


# factlint:domain=engine
@main.command()
@click.argument(
    "facts",
    nargs=-1,
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
)
@_project_option
@_rules_option
@_category_option
@click.option(
    "--suppressions",
    "suppressions_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Suppression file (default: .factlint/suppressions.yml).",
)
@click.option(
    "--threshold",
    type=click.IntRange(min=0),
    default=None,
    help="Fail when the total score reaches this value (default: fail on any error).",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=None,
    help="Evaluate units on this many threads (default: from config, else 1).",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich if TTY, porcelain if piped).",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the report to a file instead of stdout.",
)
def check(
    *,
    facts: tuple[Path, ...],
    project: Path | None,
    rules_path: Path | None,
    categories: tuple[str, ...],
    suppressions_path: Path | None,
    threshold: int | None,
    workers: int | None,
    fmt: str | None,
    output: Path | None,
) -> None:
    """Review fact batches (YAML or JSON front-end output) against the rule set.

    Exit codes: 0 = gate passed, 1 = gate failed, 2 = invalid rules or
    configuration, 3 = fact batch could not be read.
    """
    from factlint.config import ConfigError
    from factlint.engine.pipeline import review_project
    from factlint.facts.loader import FrontEndError
    from factlint.report.synthesizer import (
        format_json,
        format_porcelain,
        format_rich,
        gate_passes,
    )
    from factlint.rules.registry import RuleLoadError

    project_root = project or Path.cwd()

    # Resolve output format: explicit flag > TTY detection.
    if fmt is None:
        fmt = "rich" if output is None and sys.stdout.isatty() else "porcelain"

    try:
        review = review_project(
            project_root,
            list(facts),
            rules_path=rules_path,
            categories=list(categories) or None,
            suppressions_path=suppressions_path,
            workers=workers,
        )
    except (RuleLoadError, ConfigError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    except FrontEndError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_FRONT_END_ERROR)

    report = review.report
    if fmt == "rich":
        rendered = format_rich(report, color=output is None and sys.stdout.isatty())
    elif fmt == "json":
        rendered = format_json(report)
    else:
        rendered = format_porcelain(report)

    if output is not None:
        output.write_text(rendered + "\n" if rendered else "", encoding="utf-8")
    elif rendered:
        click.echo(rendered)

    effective_threshold = threshold if threshold is not None else review.config.threshold
    if not gate_passes(report, effective_threshold):
        sys.exit(EXIT_GATE_FAILED)


# factlint:domain=rules
@main.command("rules")
@_project_option
@_rules_option
@_category_option
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json"]),
    default="rich",
    help="Output format.",
)
def list_rules(
    *,
    project: Path | None,
    rules_path: Path | None,
    categories: tuple[str, ...],
    fmt: str,
) -> None:
    """List the active rule set."""
    registry = _load_registry_or_exit(project, rules_path, categories)

    if fmt == "json":
        payload = [
            {
                "id": r.id,
                "category": r.category,
                "severity": r.severity,
                "scope": r.scope,
                "description": r.description,
                "variants": sorted(r.variants),
            }
            for r in registry.all_rules()
        ]
        click.echo(json.dumps(payload, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(title=f"{len(registry)} rule(s)")
    table.add_column("Rule", style="cyan")
    table.add_column("Category")
    table.add_column("Severity")
    table.add_column("Scope")
    for category in CATEGORIES:
        for rule in registry.rules_in_category(category):
            table.add_row(rule.id, rule.category, rule.severity, rule.scope)
    Console().print(table)


# factlint:domain=rules
@main.command()
@click.argument("rule_id")
@_project_option
@_rules_option
def explain(*, rule_id: str, project: Path | None, rules_path: Path | None) -> None:
    """Show a rule's description, message template and example pair."""
    from factlint.rules.registry import RuleNotFoundError

    registry = _load_registry_or_exit(project, rules_path, ())
    try:
        rule = registry.rule(rule_id)
    except RuleNotFoundError:
        click.echo(f"Error: unknown rule '{rule_id}'", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    lines = [
        f"{rule.id}  [{rule.category} / {rule.severity} / {rule.scope}]",
    ]
    if rule.description:
        lines.append("")
        lines.append(rule.description.strip())
    lines.append("")
    lines.append(f"Message: {rule.message}")
    if rule.suppression_key:
        lines.append(f"Suppression key: {rule.suppression_key}")
    if rule.example_bad:
        lines.append("")
        lines.append("Instead of:")
        lines.extend(f"    {line}" for line in rule.example_bad.rstrip().splitlines())
    if rule.example_good:
        lines.append("")
        lines.append("Prefer:")
        lines.extend(f"    {line}" for line in rule.example_good.rstrip().splitlines())
    click.echo("\n".join(lines))


def _load_registry_or_exit(
    project: Path | None,
    rules_path: Path | None,
    categories: tuple[str, ...],
) -> RuleRegistry:
    from factlint.config import ConfigError, load_config
    from factlint.engine.pipeline import load_registry
    from factlint.rules.registry import RuleLoadError

    project_root = project or Path.cwd()
    try:
        config = load_config(project_root)
        return load_registry(config, rules_path=rules_path, categories=list(categories) or None)
    except (RuleLoadError, ConfigError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
