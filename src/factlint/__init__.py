"""factlint - deterministic rule-based review of structural source facts."""

__version__ = "0.3.0"
