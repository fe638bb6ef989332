"""Classification engine deciding which modules are compiled natively or skipped at publish."""

from __future__ import annotations

import os
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union

from .hosts import HostNames
from .inspector import inspect_module
from .logging import TRACE_LOGGER, get_logger
from .models import ClassificationResult, Decision, ModuleMetadata, Outcome
from .rules import DEFAULT_RULES, ExclusionRule, RuleContext, build_replacement_lookup, first_match

READY_TO_RUN = "readytorun"

PathLike = Union[str, "os.PathLike[str]"]

Inspector = Callable[[str], Optional[ModuleMetadata]]

_LOGGER = get_logger("engine")
_TRACE = get_logger(TRACE_LOGGER)


def is_ready_to_run(compilation_mode: Optional[str]) -> bool:
    """True when ``compilation_mode`` selects ready-to-run compilation."""
    if compilation_mode is None:
        return False
    return compilation_mode.lower() == READY_TO_RUN


class ClassificationEngine:
    """Applies the exclusion rule table and content checks to a candidate closure."""

    def __init__(
        self,
        hosts: HostNames,
        *,
        ready_to_run: bool = False,
        inspector: Inspector = inspect_module,
        rules: Sequence[ExclusionRule] = DEFAULT_RULES,
    ) -> None:
        self.hosts = hosts
        self.ready_to_run = ready_to_run
        self._inspector = inspector
        self._rules: Tuple[ExclusionRule, ...] = tuple(rules)

    def classify(
        self,
        candidates: Iterable[PathLike],
        sdk_replacements: Iterable[PathLike] = (),
        framework_replacements: Iterable[PathLike] = (),
    ) -> ClassificationResult:
        context = RuleContext(
            hosts=self.hosts,
            replacement_names=build_replacement_lookup(sdk_replacements, framework_replacements),
        )
        result = ClassificationResult()
        for candidate in map(os.fspath, candidates):
            decision = self._decide(candidate, context)
            _TRACE.debug("%s -> %s (%s)", candidate, decision.outcome.value, decision.reason)
            result.decisions.append(decision)

        _LOGGER.info(
            "Classified %d modules: %d to compile natively, %d to skip at publish",
            len(result.decisions),
            len(result.managed_assemblies),
            len(result.assemblies_to_skip_publish),
        )
        return result

    def _decide(self, candidate: str, context: RuleContext) -> Decision:
        if not self.ready_to_run:
            rule = first_match(candidate, context, self._rules)
            if rule is not None:
                return Decision(candidate, rule.outcome, rule.name)

        metadata = self._inspector(candidate)
        outcome, reason = self._classify_content(metadata)
        return Decision(candidate, outcome, reason, metadata)

    def _classify_content(self, metadata: Optional[ModuleMetadata]) -> Tuple[Outcome, str]:
        if metadata is None:
            return Outcome.UNCLASSIFIED, "not-inspectable"
        if not metadata.has_metadata:
            return Outcome.UNCLASSIFIED, "no-metadata"
        if not metadata.is_assembly:
            return Outcome.UNCLASSIFIED, "secondary-module"
        if self.ready_to_run:
            # The IL image is republished once the ready-to-run compiler has rewritten it.
            return Outcome.COMPILE_NATIVE, "ready-to-run-assembly"
        if metadata.is_culture_neutral:
            return Outcome.COMPILE_NATIVE, "culture-neutral-assembly"
        # Resource assemblies are not consumed by the native compiler yet; leave them published.
        return Outcome.UNCLASSIFIED, "satellite-assembly"


def classify(
    candidates: Iterable[PathLike],
    sdk_replacements: Iterable[PathLike],
    framework_replacements: Iterable[PathLike],
    app_host_name: str,
    host_fxr_name: str,
    host_policy_name: str,
    ready_to_run: bool = False,
    *,
    inspector: Inspector = inspect_module,
) -> ClassificationResult:
    """Classify ``candidates`` into modules to compile natively and modules to skip at publish."""
    engine = ClassificationEngine(
        HostNames(app_host_name, host_fxr_name, host_policy_name),
        ready_to_run=ready_to_run,
        inspector=inspector,
    )
    return engine.classify(candidates, sdk_replacements, framework_replacements)


__all__ = ["ClassificationEngine", "READY_TO_RUN", "classify", "is_ready_to_run"]
