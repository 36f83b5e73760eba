"""Deterministic prompt construction for segment images."""

from __future__ import annotations

import hashlib
import re
from typing import Any, Mapping, Optional

from segment_studio.personas import AgeMilestone, StoryConfig, parse_milestone_range

SCENE_PLACEHOLDER = "no scene description"

PROMPT_DEFAULTS: Mapping[str, str] = {
    "art_style": "cinematic realism",
    "perspective": "medium shot",
    "name": "unknown character",
    "origin": "unknown origin",
    "hair": "natural hair",
    "demeanor": "composed",
    "domains": "everyday life",
    "mood": "neutral",
    "color_palette": "warm, earthy color palette",
    "lens": "standard lens",
    "composition": "balanced composition",
    "depth_of_field": "natural depth of field",
    "values": "quiet resolve",
}

PROMPT_TEMPLATE = (
    "{art_style} image, {perspective}, of {name} from {origin}, with {hair} "
    "and a {demeanor} demeanor, associated with {domains}. "
    "Mood is {mood}, color palette is {color_palette}. "
    "Shot with a {lens}, {composition}, {depth_of_field}. "
    "Character values: {values}. "
    "Scene segment: {scene}"
)


def _text_or_default(value: Any, key: str) -> str:
    if value is None:
        return PROMPT_DEFAULTS[key]
    candidate = re.sub(r"\s+", " ", str(value)).strip()
    return candidate or PROMPT_DEFAULTS[key]


def scene_text(segment_text: Optional[str]) -> str:
    """Return the trimmed scene text or the fixed placeholder."""

    return (segment_text or "").strip() or SCENE_PLACEHOLDER


def format_lens(lens_mm: Optional[float]) -> str:
    if lens_mm is None:
        return PROMPT_DEFAULTS["lens"]
    return f"{lens_mm:g}mm lens"


def prompt_fields(config: StoryConfig) -> dict[str, str]:
    """Return every template field for ``config`` with defaults applied."""

    identity = config.identity_core
    style = config.style_throughline
    camera = config.camera_baseline
    return {
        "art_style": _text_or_default(style.art_style, "art_style"),
        "perspective": _text_or_default(camera.perspective, "perspective"),
        "name": _text_or_default(identity.name, "name"),
        "origin": _text_or_default(identity.origin, "origin"),
        "hair": _text_or_default(identity.hair_general, "hair"),
        "demeanor": _text_or_default(identity.demeanor, "demeanor"),
        "domains": _text_or_default(identity.domains, "domains"),
        "mood": _text_or_default(style.mood, "mood"),
        "color_palette": _text_or_default(style.color_palette_base, "color_palette"),
        "lens": format_lens(camera.lens_mm),
        "composition": _text_or_default(camera.composition, "composition"),
        "depth_of_field": _text_or_default(camera.depth_of_field, "depth_of_field"),
        "values": _text_or_default(identity.values, "values"),
    }


def build_prompt(
    config: Optional[StoryConfig],
    segment_text: str,
    segment_index: int = 0,
) -> str:
    """Render the image prompt for one segment.

    Without a configuration the trimmed segment text is the prompt. With one,
    the fixed template is filled from the configuration; absent fields fall
    back to :data:`PROMPT_DEFAULTS`. ``segment_index`` is accepted so callers
    can pair the prompt with :func:`resolve_age`; age is not rendered.
    """

    if config is None:
        return scene_text(segment_text)

    prompt = PROMPT_TEMPLATE.format(scene=scene_text(segment_text), **prompt_fields(config))
    constraints = (config.global_constraints or "").strip()
    if constraints:
        prompt = f"{prompt} Constraints: {constraints}"
    return prompt


def resolve_milestone(
    config: Optional[StoryConfig], segment_index: int
) -> Optional[AgeMilestone]:
    """Return the first declared milestone whose range contains ``segment_index``."""

    if config is None:
        return None
    progression = config.identity_core.age_progression
    if progression is None or not progression.enabled:
        return None
    for key, milestone in progression.milestones.items():
        milestone_range = parse_milestone_range(key)
        if milestone_range is not None and milestone_range.contains(segment_index):
            return milestone
    return None


def resolve_age(config: Optional[StoryConfig], segment_index: int) -> Optional[int]:
    """Return the effective character age for ``segment_index``.

    Falls back to ``base_age`` (possibly ``None``) when progression is
    disabled or no milestone matches.
    """

    if config is None:
        return None
    milestone = resolve_milestone(config, segment_index)
    if milestone is not None:
        return milestone.age
    return config.identity_core.base_age


def build_enrichment_context(
    config: Optional[StoryConfig],
    segment_text: str,
    segment_index: int = 0,
) -> str:
    """Return the context block sent to the text-generation model.

    One ``Label: value`` line per field that is actually present, in a fixed
    order, followed by the raw scene text.
    """

    lines: list[str] = []
    if config is not None:
        identity = config.identity_core
        style = config.style_throughline
        camera = config.camera_baseline
        age = resolve_age(config, segment_index)
        milestone = resolve_milestone(config, segment_index)
        entries = (
            ("Character name", identity.name),
            ("Age", age),
            ("Life stage", milestone.description if milestone else None),
            ("Origin", identity.origin),
            ("Domains", identity.domains),
            ("Values", identity.values),
            ("Hair", identity.hair_general),
            ("Demeanor", identity.demeanor),
            ("Art style", style.art_style),
            ("Mood", style.mood),
            ("Color palette", style.color_palette_base),
            ("Camera perspective", camera.perspective),
            ("Lens", format_lens(camera.lens_mm) if camera.lens_mm is not None else None),
            ("Composition", camera.composition),
            ("Depth of field", camera.depth_of_field),
            ("Global constraints", config.global_constraints),
        )
        for label, value in entries:
            if value is None:
                continue
            rendered = str(value).strip()
            if rendered:
                lines.append(f"{label}: {rendered}")

    context = "\n".join(lines)
    scene = f"Scene: {scene_text(segment_text)}"
    return f"{context}\n\n{scene}" if context else scene


def stable_seed(text: str) -> int:
    """Return a stable 31-bit seed derived from ``text``."""

    cleaned = (text or "").strip()
    digest = hashlib.md5(cleaned.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "little", signed=False) & 0x7FFFFFFF


__all__ = [
    "PROMPT_DEFAULTS",
    "PROMPT_TEMPLATE",
    "SCENE_PLACEHOLDER",
    "build_enrichment_context",
    "build_prompt",
    "format_lens",
    "prompt_fields",
    "resolve_age",
    "resolve_milestone",
    "scene_text",
    "stable_seed",
]
