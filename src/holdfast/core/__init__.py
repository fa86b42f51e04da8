"""Probe execution, detection correlation, scoring and score history."""
