"""Turtle-trading portfolio reconciliation and risk-accounting service."""

__version__ = "0.1.0"
