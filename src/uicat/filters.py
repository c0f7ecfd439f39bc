from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from uicat.models import ComponentCandidate


@dataclass(slots=True, frozen=True)
class ComponentFilters:
    """Canonical filter set.

    ``None`` on a single-valued field and an empty tuple on a list field both
    mean "unconstrained". List fields are deduplicated and sorted.
    """

    framework: str | None = None
    styling: str | None = None
    motion: tuple[str, ...] = ()
    primitive_library: tuple[str, ...] = ()
    animation_library: str | None = None

    @property
    def is_unconstrained(self) -> bool:
        return (
            self.framework is None
            and self.styling is None
            and not self.motion
            and not self.primitive_library
            and self.animation_library is None
        )

    def as_dict(self) -> dict[str, object]:
        return {
            "framework": self.framework,
            "styling": self.styling,
            "motion": list(self.motion),
            "primitive_library": list(self.primitive_library),
            "animation_library": self.animation_library,
        }


NO_FILTERS = ComponentFilters()


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip().lower()
    return text or None


def _clean_many(values: Iterable[str] | None) -> tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        values = [values]
    out = {v for v in (_clean(x) for x in values) if v is not None}
    return tuple(sorted(out))


def normalize_filters(
    framework: str | None = None,
    styling: str | None = None,
    motion: Iterable[str] | None = None,
    primitive_library: Iterable[str] | None = None,
    animation_library: str | None = None,
) -> ComponentFilters:
    filters = ComponentFilters(
        framework=_clean(framework),
        styling=_clean(styling),
        motion=_clean_many(motion),
        primitive_library=_clean_many(primitive_library),
        animation_library=_clean(animation_library),
    )
    if filters.is_unconstrained:
        return NO_FILTERS
    return filters


def _matches_list(value: str, allowed: tuple[str, ...]) -> bool:
    if not allowed:
        return True
    return value in allowed


def matches_attributes(
    filters: ComponentFilters,
    framework: str,
    styling: str,
    motion_level: str,
    primitive_library: str,
    animation_library: str,
) -> bool:
    if filters.framework is not None and framework != filters.framework:
        return False
    if filters.styling is not None and styling != filters.styling:
        return False
    if not _matches_list(motion_level, filters.motion):
        return False
    if not _matches_list(primitive_library, filters.primitive_library):
        return False
    if filters.animation_library is not None and animation_library != filters.animation_library:
        return False
    return True


def matches_all_filters(candidate: ComponentCandidate, filters: ComponentFilters) -> bool:
    return matches_attributes(
        filters,
        framework=candidate.framework,
        styling=candidate.styling,
        motion_level=candidate.motion_level,
        primitive_library=candidate.primitive_library,
        animation_library=candidate.animation_library,
    )


def apply_residual_filter(
    candidates: Sequence[ComponentCandidate],
    filters: ComponentFilters,
) -> list[ComponentCandidate]:
    if filters.is_unconstrained:
        return list(candidates)
    return [c for c in candidates if matches_all_filters(c, filters)]
