from __future__ import annotations

from dataclasses import dataclass, field

FRAMEWORKS = ("react",)
STYLINGS = ("tailwind",)
MOTION_LEVELS = ("none", "minimal", "standard", "heavy")
PRIMITIVE_LIBRARIES = ("none", "radix", "base-ui", "other")
ANIMATION_LIBRARIES = ("none", "motion", "framer-motion", "other")
DEPENDENCY_KINDS = ("runtime", "dev", "peer")

UNNAMED_INTENT = "Unnamed component"


@dataclass(slots=True, frozen=True)
class Dependency:
    name: str
    kind: str


@dataclass(slots=True, frozen=True)
class ComponentCandidate:
    id: str
    name: str
    framework: str
    styling: str
    intent: str
    capabilities: tuple[str, ...]
    synonyms: tuple[str, ...]
    topics: tuple[str, ...]
    motion_level: str
    primitive_library: str
    animation_library: str
    source_url: str = ""
    source_library: str | None = None
    source_author: str | None = None
    dependencies: tuple[Dependency, ...] = field(default_factory=tuple)


def fallback_intent(name: str) -> str:
    trimmed = name.strip()
    return trimmed if trimmed else UNNAMED_INTENT


@dataclass(slots=True, frozen=True)
class SemanticHit:
    id: str
    semantic_rank: int
    similarity: float | None = None
