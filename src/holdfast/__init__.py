"""Holdfast: attack probe runner and defense scoring engine."""

__version__ = "0.1.0"
