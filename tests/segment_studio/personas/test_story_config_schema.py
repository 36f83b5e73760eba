from __future__ import annotations

import json

import pytest

from segment_studio.errors import StoryConfigError
from segment_studio.personas import (
    MilestoneRange,
    StoryConfig,
    parse_milestone_range,
    parse_story_config,
)


@pytest.mark.parametrize(
    ("key", "expected"),
    [
        ("5+", MilestoneRange(start=5)),
        ("0-4", MilestoneRange(start=0, end=4)),
        (" 3 - 3 ", MilestoneRange(start=3, end=3)),
        ("4-2", None),
        ("abc", None),
        ("-2", None),
        ("", None),
    ],
)
def test_parse_milestone_range(key, expected):
    assert parse_milestone_range(key) == expected


def test_milestone_range_contains():
    assert MilestoneRange(start=2, end=4).contains(2)
    assert MilestoneRange(start=2, end=4).contains(4)
    assert not MilestoneRange(start=2, end=4).contains(5)
    assert MilestoneRange(start=2).contains(1000)
    assert not MilestoneRange(start=2).contains(1)


def test_empty_payloads_mean_no_configuration():
    assert parse_story_config(None) is None
    assert parse_story_config({}) is None
    assert parse_story_config("  ") is None


def test_parse_mapping_and_json_agree(story_config_payload):
    from_mapping = parse_story_config(story_config_payload)
    from_json = parse_story_config(json.dumps(story_config_payload))

    assert isinstance(from_mapping, StoryConfig)
    assert from_mapping == from_json
    assert from_mapping.identity_core.name == "Mira"
    assert from_mapping.camera_baseline.lens_mm == 35
    assert list(from_mapping.identity_core.age_progression.milestones) == ["0-2", "3+"]


def test_unknown_fields_are_ignored():
    config = parse_story_config({"identity_core": {"name": "Ivo", "shoe_size": 44}, "legacy": True})

    assert config.identity_core.name == "Ivo"
    assert config.style_throughline.art_style is None


def test_existing_model_is_returned_unchanged():
    config = StoryConfig()

    assert parse_story_config(config) is config


@pytest.mark.parametrize(
    "payload",
    [
        {"identity_core": {"base_age": -1}},
        {"camera_baseline": {"lens_mm": 0}},
        {"identity_core": {"age_progression": {"enabled": True, "milestones": {"later": {"age": 3}}}}},
        {"identity_core": {"age_progression": {"milestones": {"1+": {"description": "no age"}}}}},
        "{not json",
        ["a", "list"],
    ],
)
def test_malformed_payloads_raise(payload):
    with pytest.raises(StoryConfigError) as excinfo:
        parse_story_config(payload)

    assert str(excinfo.value).startswith("Invalid story configuration")


def test_validation_errors_are_json_friendly():
    with pytest.raises(StoryConfigError) as excinfo:
        parse_story_config({"identity_core": {"age_progression": {"milestones": {"x": {"age": 1}}}}})

    errors = excinfo.value.errors
    assert errors
    json.dumps(errors)
    assert errors[0]["loc"][:2] == ["identity_core", "age_progression"]
