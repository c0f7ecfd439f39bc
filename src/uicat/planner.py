"""Seed query selection.

The seed query is the indexed lookup used to narrow the catalog before the
residual filter runs. It only has to return a superset of the matching
components, so picking a less selective shape costs time, never correctness.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union, get_args

from uicat.filters import ComponentFilters


@dataclass(slots=True, frozen=True)
class PrimitiveLibraryAndMotion:
    kind: ClassVar[str] = "primitive_library_and_motion"
    primitive_library: str
    motion_level: str


@dataclass(slots=True, frozen=True)
class AnimationLibraryAndMotion:
    kind: ClassVar[str] = "animation_library_and_motion"
    animation_library: str
    motion_level: str


@dataclass(slots=True, frozen=True)
class Framework:
    kind: ClassVar[str] = "framework"
    value: str


@dataclass(slots=True, frozen=True)
class Styling:
    kind: ClassVar[str] = "styling"
    value: str


@dataclass(slots=True, frozen=True)
class Motion:
    kind: ClassVar[str] = "motion"
    value: str


@dataclass(slots=True, frozen=True)
class PrimitiveLibrary:
    kind: ClassVar[str] = "primitive_library"
    value: str


@dataclass(slots=True, frozen=True)
class AnimationLibrary:
    kind: ClassVar[str] = "animation_library"
    value: str


@dataclass(slots=True, frozen=True)
class FullScan:
    kind: ClassVar[str] = "full_scan"


SeedQuery = Union[
    PrimitiveLibraryAndMotion,
    AnimationLibraryAndMotion,
    Framework,
    Styling,
    Motion,
    PrimitiveLibrary,
    AnimationLibrary,
    FullScan,
]

SEED_QUERY_TYPES: tuple[type, ...] = get_args(SeedQuery)


def _single(values: tuple[str, ...]) -> str | None:
    # A list filter can only use an equality index when exactly one value is requested.
    if len(values) != 1:
        return None
    return values[0]


def select_seed_query(filters: ComponentFilters) -> SeedQuery:
    if filters.is_unconstrained:
        return FullScan()

    motion = _single(filters.motion)
    primitive = _single(filters.primitive_library)

    if primitive is not None and motion is not None:
        return PrimitiveLibraryAndMotion(primitive_library=primitive, motion_level=motion)
    if filters.animation_library is not None and motion is not None:
        return AnimationLibraryAndMotion(animation_library=filters.animation_library, motion_level=motion)
    if primitive is not None:
        return PrimitiveLibrary(value=primitive)
    if filters.animation_library is not None:
        return AnimationLibrary(value=filters.animation_library)
    if motion is not None:
        return Motion(value=motion)
    if filters.framework is not None:
        return Framework(value=filters.framework)
    if filters.styling is not None:
        return Styling(value=filters.styling)
    return FullScan()
