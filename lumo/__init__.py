"""Lumo: rule-based portfolio chat engine."""

__version__ = "2.1.0"
