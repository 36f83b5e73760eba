"""Pydantic schema for the nested story configuration payload."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from segment_studio.errors import StoryConfigError

_OPEN_RANGE = re.compile(r"^\s*(\d+)\s*\+\s*$")
_CLOSED_RANGE = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")


@dataclass(frozen=True, slots=True)
class MilestoneRange:
    """Segment-index range a milestone applies to; ``end`` is inclusive or open."""

    start: int
    end: Optional[int] = None

    def contains(self, segment_index: int) -> bool:
        if segment_index < self.start:
            return False
        return self.end is None or segment_index <= self.end


def parse_milestone_range(key: str) -> Optional[MilestoneRange]:
    """Parse ``"N+"`` or ``"N-M"`` keys; return ``None`` for anything else."""

    if not isinstance(key, str):
        return None
    match = _OPEN_RANGE.match(key)
    if match:
        return MilestoneRange(start=int(match.group(1)))
    match = _CLOSED_RANGE.match(key)
    if match:
        start, end = int(match.group(1)), int(match.group(2))
        if start > end:
            return None
        return MilestoneRange(start=start, end=end)
    return None


class AgeMilestone(BaseModel):
    """Age override applied to a range of segments."""

    model_config = ConfigDict(extra="ignore")

    age: int = Field(ge=0)
    description: Optional[str] = None


class AgeProgression(BaseModel):
    """Optional age progression keyed by segment-index ranges."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = False
    milestones: Dict[str, AgeMilestone] = Field(default_factory=dict)

    @field_validator("milestones")
    @classmethod
    def _check_range_keys(cls, value: Dict[str, AgeMilestone]) -> Dict[str, AgeMilestone]:
        for key in value:
            if parse_milestone_range(key) is None:
                raise ValueError(
                    f"milestone key {key!r} must look like 'N+' or 'N-M' with N <= M"
                )
        return value


class IdentityCore(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    base_age: Optional[int] = Field(default=None, ge=0)
    age_progression: Optional[AgeProgression] = None
    origin: Optional[str] = None
    domains: Optional[str] = None
    values: Optional[str] = None
    hair_general: Optional[str] = None
    demeanor: Optional[str] = None


class StyleThroughline(BaseModel):
    model_config = ConfigDict(extra="ignore")

    art_style: Optional[str] = None
    mood: Optional[str] = None
    color_palette_base: Optional[str] = None


class CameraBaseline(BaseModel):
    model_config = ConfigDict(extra="ignore")

    perspective: Optional[str] = None
    lens_mm: Optional[float] = Field(default=None, gt=0)
    composition: Optional[str] = None
    depth_of_field: Optional[str] = None


class StoryConfig(BaseModel):
    """Recurring character and visual style applied to every segment prompt."""

    model_config = ConfigDict(extra="ignore")

    identity_core: IdentityCore = Field(default_factory=IdentityCore)
    style_throughline: StyleThroughline = Field(default_factory=StyleThroughline)
    camera_baseline: CameraBaseline = Field(default_factory=CameraBaseline)
    global_constraints: Optional[str] = None


def _summarize_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location or 'config'}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


def parse_story_config(payload: Any) -> Optional[StoryConfig]:
    """Validate ``payload`` (mapping, JSON text or model) into a :class:`StoryConfig`.

    ``None`` and empty payloads mean "no configuration". Anything else that
    does not validate raises :class:`StoryConfigError` so generation never
    starts with a malformed configuration.
    """

    if payload is None:
        return None
    if isinstance(payload, StoryConfig):
        return payload
    try:
        if isinstance(payload, (str, bytes, bytearray)):
            if not payload.strip():
                return None
            return StoryConfig.model_validate_json(payload)
        if isinstance(payload, Mapping):
            if not payload:
                return None
            return StoryConfig.model_validate(dict(payload))
    except ValidationError as exc:
        raise StoryConfigError(
            f"Invalid story configuration: {_summarize_errors(exc)}",
            errors=[
                {
                    "loc": [str(item) for item in error.get("loc", ())],
                    "msg": error.get("msg", "invalid value"),
                    "type": error.get("type", "value_error"),
                }
                for error in exc.errors()
            ],
        ) from exc
    raise StoryConfigError(
        f"Invalid story configuration: expected an object, got {type(payload).__name__}"
    )


__all__ = [
    "AgeMilestone",
    "AgeProgression",
    "CameraBaseline",
    "IdentityCore",
    "MilestoneRange",
    "StoryConfig",
    "StyleThroughline",
    "parse_milestone_range",
    "parse_story_config",
]
