"""Story configuration schema used to enrich segment prompts."""

from .schema import (
    AgeMilestone,
    AgeProgression,
    CameraBaseline,
    IdentityCore,
    MilestoneRange,
    StoryConfig,
    StyleThroughline,
    parse_milestone_range,
    parse_story_config,
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
