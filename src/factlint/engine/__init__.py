"""Engine domain — matching engine, resolver, and aggregator.

Note: ``factlint.engine.pipeline`` is intentionally NOT re-exported here
because it depends on ``factlint.config``, which itself imports the resolver;
eagerly importing it would create a circular import.  Import it directly::

    from factlint.engine.pipeline import run_review, review_project
"""

# factlint:domain=engine

from factlint.engine.matcher import (
    CancelToken,
    EvaluationWarning,
    Finding,
    MatchOutcome,
    RunCancelled,
    UnresolvedReference,
    build_target_index,
    match_batch,
    match_unit,
)
from factlint.engine.resolver import (
    CATEGORY_PRECEDENCE,
    ResolveResult,
    SuppressedFinding,
    Suppression,
    rank_key,
    resolve,
)
from factlint.engine.scoring import (
    SEVERITY_WEIGHTS,
    RunScore,
    UnitScore,
    aggregate,
    score_unit,
)

__all__ = [
    "CATEGORY_PRECEDENCE",
    "SEVERITY_WEIGHTS",
    "CancelToken",
    "EvaluationWarning",
    "Finding",
    "MatchOutcome",
    "ResolveResult",
    "RunCancelled",
    "RunScore",
    "SuppressedFinding",
    "Suppression",
    "UnitScore",
    "UnresolvedReference",
    "aggregate",
    "build_target_index",
    "match_batch",
    "match_unit",
    "rank_key",
    "resolve",
    "score_unit",
]
