"""Report domain — report model, CI gate, and output formats."""

# factlint:domain=report

from factlint.report.synthesizer import (
    Report,
    UnitReport,
    format_json,
    format_porcelain,
    format_rich,
    gate_passes,
    report_to_dict,
    synthesize,
)

__all__ = [
    "Report",
    "UnitReport",
    "format_json",
    "format_porcelain",
    "format_rich",
    "gate_passes",
    "report_to_dict",
    "synthesize",
]
