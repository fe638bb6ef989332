"""Path-based exclusion rules evaluated before any binary inspection.

Rules run in table order and the first match wins. Every rule in the table
removes the candidate from the publish output without compiling it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, Optional, Tuple

from .hosts import HostNames
from .models import Outcome

NETCORE_APP_PACKAGE_MARKER = "microsoft.netcore.app"
_NATIVE_SEGMENTS = ("\\native\\", "/native/")


def file_name(path: str) -> str:
    """Return the last path component, accepting either separator style."""
    return path.replace("\\", "/").rsplit("/", 1)[-1]


def build_replacement_lookup(*sources: Iterable["str | os.PathLike[str]"]) -> FrozenSet[str]:
    """Union the bare file names of every replacement path list."""
    return frozenset(file_name(os.fspath(path)) for source in sources for path in source)


@dataclass(frozen=True)
class RuleContext:
    hosts: HostNames
    replacement_names: FrozenSet[str]


Predicate = Callable[[str, RuleContext], bool]


@dataclass(frozen=True)
class ExclusionRule:
    """A named predicate paired with the outcome it assigns on a match."""

    name: str
    matches: Predicate
    outcome: Outcome = Outcome.EXCLUDE


def is_host_binary(path: str, context: RuleContext) -> bool:
    """Match the native apphost (case-insensitive suffix) and its supporting libraries."""
    hosts = context.hosts
    return (
        path.lower().endswith(hosts.app_host.lower())
        or hosts.host_fxr in path
        or hosts.host_policy in path
    )


def is_native_runtime_asset(path: str, context: RuleContext) -> bool:
    """Match native pieces of the shared runtime package by path substring."""
    return NETCORE_APP_PACKAGE_MARKER in path and any(
        segment in path for segment in _NATIVE_SEGMENTS
    )


def is_replaced(path: str, context: RuleContext) -> bool:
    """Match candidates whose file name is supplied by the native toolchain instead."""
    return file_name(path) in context.replacement_names


DEFAULT_RULES: Tuple[ExclusionRule, ...] = (
    ExclusionRule("host-binary", is_host_binary),
    ExclusionRule("native-runtime-tree", is_native_runtime_asset),
    ExclusionRule("replacement-shadowed", is_replaced),
)


def first_match(
    path: str, context: RuleContext, rules: Iterable[ExclusionRule] = DEFAULT_RULES
) -> Optional[ExclusionRule]:
    for rule in rules:
        if rule.matches(path, context):
            return rule
    return None


__all__ = [
    "DEFAULT_RULES",
    "ExclusionRule",
    "NETCORE_APP_PACKAGE_MARKER",
    "RuleContext",
    "build_replacement_lookup",
    "file_name",
    "first_match",
    "is_host_binary",
    "is_native_runtime_asset",
    "is_replaced",
]
