"""Core data models shared across aotselect components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ModuleMetadata:
    """What the inspector learned from a candidate's CLI metadata."""

    has_metadata: bool
    is_assembly: bool = False
    culture: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_culture_neutral(self) -> bool:
        """True when the assembly identity declares no specific culture."""
        if not self.is_assembly:
            return False
        culture = self.culture or ""
        return culture == "" or culture.lower() == "neutral"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_metadata": self.has_metadata,
            "is_assembly": self.is_assembly,
            "culture": self.culture,
            "name": self.name,
        }


class Outcome(str, Enum):
    """Tagged classification outcome for a single candidate."""

    EXCLUDE = "exclude"
    COMPILE_NATIVE = "compile-native"
    UNCLASSIFIED = "unclassified"

    @property
    def skips_publish(self) -> bool:
        return self in (Outcome.EXCLUDE, Outcome.COMPILE_NATIVE)

    @property
    def compiles_native(self) -> bool:
        return self is Outcome.COMPILE_NATIVE


@dataclass(frozen=True)
class Decision:
    """Outcome for one candidate plus the rule or check that produced it."""

    candidate: str
    outcome: Outcome
    reason: str
    metadata: Optional[ModuleMetadata] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate": self.candidate,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }


@dataclass
class ClassificationResult:
    """Per-candidate decisions in input order and the output sets projected from them."""

    decisions: List[Decision] = field(default_factory=list)

    @property
    def managed_assemblies(self) -> List[str]:
        return [d.candidate for d in self.decisions if d.outcome.compiles_native]

    @property
    def assemblies_to_skip_publish(self) -> List[str]:
        return [d.candidate for d in self.decisions if d.outcome.skips_publish]

    def decision_for(self, candidate: str) -> Optional[Decision]:
        for decision in self.decisions:
            if decision.candidate == candidate:
                return decision
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "managed_assemblies": self.managed_assemblies,
            "assemblies_to_skip_publish": self.assemblies_to_skip_publish,
            "decisions": [decision.to_dict() for decision in self.decisions],
        }
