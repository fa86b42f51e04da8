"""Loading probe suites supplied by the embedding application.

Probes themselves live outside Holdfast. A suite is referenced as
``package.module:attribute`` where the attribute is either a list of
probes or a factory that takes a DetectionCorrelator and returns one.
The factory form lets a suite wrap its own probes with detection
monitoring.

Usage:
    >>> probes = load_probes("mysuite.probes:ALL_PROBES", correlator)
"""

from __future__ import annotations

import importlib

from holdfast.core.correlator import DetectionCorrelator
from holdfast.core.probe import Probe, check_unique_ids


class ProbeLoadError(ValueError):
    """Raised when a probe suite reference cannot be resolved."""


def load_probes(ref: str, correlator: DetectionCorrelator | None = None) -> list[Probe]:
    """Resolve a ``module:attribute`` reference to a list of probes.

    Args:
        ref: Import reference, e.g. ``"mysuite.probes:ALL_PROBES"``.
        correlator: Passed to the attribute when it is callable.

    Returns:
        The probes, in suite order.

    Raises:
        ProbeLoadError: If the reference is malformed, cannot be imported,
            does not yield probes, its factory raises, or it contains
            duplicate ids.
    """
    module_name, sep, attr_name = ref.partition(":")
    if not sep or not module_name or not attr_name:
        raise ProbeLoadError(f"Expected 'module:attribute', got: {ref}")

    try:
        module = importlib.import_module(module_name)
    except (ImportError, ValueError) as e:
        # ValueError covers probes defined with an unknown category or severity
        raise ProbeLoadError(f"Cannot import {module_name}: {e}") from e

    try:
        target = getattr(module, attr_name)
    except AttributeError:
        raise ProbeLoadError(f"{module_name} has no attribute {attr_name}") from None

    if callable(target):
        try:
            target = target(correlator)
        except Exception as e:
            raise ProbeLoadError(f"{ref} factory failed: {e}") from e

    try:
        probes = list(target)
    except TypeError:
        raise ProbeLoadError(f"{ref} is not a list of probes") from None

    bad = [p for p in probes if not isinstance(p, Probe)]
    if bad:
        raise ProbeLoadError(f"{ref} contains {len(bad)} item(s) that are not Probe instances")

    try:
        check_unique_ids(probes)
    except ValueError as e:
        raise ProbeLoadError(str(e)) from None

    return probes
