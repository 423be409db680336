"""Explainable screening of option-selling trades: CSP, PCS, CCS and CC."""

__version__ = "0.1.0"
