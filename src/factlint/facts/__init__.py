"""Facts domain — structural fact model, batch loader, heuristic resolution."""

# factlint:domain=facts

from factlint.facts.heuristics import (
    DomainHeuristic,
    PathGlobDomainHeuristic,
    apply_heuristics,
    complete_reference_domains,
)
from factlint.facts.loader import FrontEndError, load_batch, load_batches, parse_batch
from factlint.facts.model import (
    FACT_VARIANTS,
    Clause,
    ConcurrencyPrimitiveDeclaration,
    CrossBoundaryReference,
    DocumentationPresence,
    ErrorHandlingBlock,
    Fact,
    PatternClauseSet,
    SourceUnit,
    Span,
    Symbol,
    TransformationChain,
    ValidationPipelineDefinition,
    fact_fields,
    variant_name,
)

__all__ = [
    "FACT_VARIANTS",
    "Clause",
    "ConcurrencyPrimitiveDeclaration",
    "CrossBoundaryReference",
    "DocumentationPresence",
    "DomainHeuristic",
    "ErrorHandlingBlock",
    "Fact",
    "FrontEndError",
    "PathGlobDomainHeuristic",
    "PatternClauseSet",
    "SourceUnit",
    "Span",
    "Symbol",
    "TransformationChain",
    "ValidationPipelineDefinition",
    "apply_heuristics",
    "complete_reference_domains",
    "fact_fields",
    "load_batch",
    "load_batches",
    "parse_batch",
    "variant_name",
]
