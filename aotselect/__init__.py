"""Select the managed assemblies of a build closure for native ahead-of-time compilation."""

from .engine import ClassificationEngine, classify, is_ready_to_run
from .hosts import HostNames, host_names_for
from .inspector import inspect_module
from .models import ClassificationResult, Decision, ModuleMetadata, Outcome

__all__ = [
    "ClassificationEngine",
    "ClassificationResult",
    "Decision",
    "HostNames",
    "ModuleMetadata",
    "Outcome",
    "classify",
    "host_names_for",
    "inspect_module",
    "is_ready_to_run",
]
