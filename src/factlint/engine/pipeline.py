# factlint:domain=engine
"""Review orchestrator: config -> rules -> facts -> match -> resolve -> score -> report.

Fatal conditions (:class:`~factlint.rules.registry.RuleLoadError`,
:class:`~factlint.facts.loader.FrontEndError`,
:class:`~factlint.config.ConfigError`,
:class:`~factlint.engine.matcher.RunCancelled`) propagate to the caller and
no partial report is produced.  Everything else is carried on the report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from factlint.config import ReviewConfig, load_config, load_suppressions
from factlint.engine.matcher import match_batch
from factlint.engine.resolver import resolve
from factlint.engine.scoring import aggregate
from factlint.facts.heuristics import PathGlobDomainHeuristic, apply_heuristics
from factlint.facts.loader import load_batches
from factlint.report.synthesizer import synthesize
from factlint.rules.registry import load_builtin_rules, load_rules

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from factlint.engine.matcher import CancelToken
    from factlint.engine.resolver import Suppression
    from factlint.facts.heuristics import DomainHeuristic
    from factlint.facts.model import SourceUnit
    from factlint.report.synthesizer import Report
    from factlint.rules.registry import RuleRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectReview:
    """A report together with the configuration that produced it."""

    report: Report
    config: ReviewConfig


def run_review(
    units: Sequence[SourceUnit],
    registry: RuleRegistry,
    *,
    suppressions: Sequence[Suppression] = (),
    heuristic: DomainHeuristic | None = None,
    workers: int = 1,
    cancel: CancelToken | None = None,
) -> Report:
    """Run the full pipeline over an in-memory batch."""
    prepared = apply_heuristics(units, heuristic)
    unit_order = [u.path for u in prepared]

    outcome = match_batch(prepared, registry, workers=workers, cancel=cancel)
    resolved = resolve(
        outcome.findings, registry, unit_order=unit_order, suppressions=suppressions
    )
    score = aggregate(resolved.findings, unit_order)

    report = synthesize(
        prepared,
        resolved,
        score,
        warnings=outcome.warnings,
        unresolved=outcome.unresolved,
        rules_evaluated=len(registry),
    )
    if report.degraded:
        logger.info(
            "Review degraded: %d evaluation warning(s), %d unresolved reference(s), "
            "%d unanalyzed unit(s)",
            len(report.warnings),
            len(report.unresolved),
            len(report.unanalyzed_units),
        )
    return report


def load_registry(
    config: ReviewConfig,
    *,
    rules_path: Path | None = None,
    categories: Sequence[str] | None = None,
) -> RuleRegistry:
    """Load the active rule set: explicit path > config > bundled defaults."""
    path = rules_path or config.rules_path
    registry = load_rules(path) if path is not None else load_builtin_rules()
    selected = categories or config.categories
    return registry.select(selected) if selected else registry


def review_project(
    project_root: Path,
    fact_paths: Sequence[Path],
    *,
    rules_path: Path | None = None,
    categories: Sequence[str] | None = None,
    suppressions_path: Path | None = None,
    workers: int | None = None,
    cancel: CancelToken | None = None,
) -> ProjectReview:
    """Review fact batches for a project, honouring ``.factlint/config.yml``.

    Rules are loaded (and validated) before any fact is read, so a bad rule
    set fails the run before analysis begins.
    """
    config = load_config(project_root)
    registry = load_registry(config, rules_path=rules_path, categories=categories)
    suppressions = load_suppressions(suppressions_path or config.suppressions_path)

    units = load_batches(list(fact_paths))
    heuristic = PathGlobDomainHeuristic(config.domains) if config.domains else None

    report = run_review(
        units,
        registry,
        suppressions=suppressions,
        heuristic=heuristic,
        workers=workers if workers is not None else config.workers,
        cancel=cancel,
    )
    return ProjectReview(report=report, config=config)
