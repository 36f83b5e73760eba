from __future__ import annotations

import asyncio
import time

import pytest

from segment_studio import config_manager as cfg
from segment_studio.errors import InvalidRequestError, StoryConfigError
from segment_studio.images.prompting import build_prompt
from segment_studio.personas import parse_story_config
from segment_studio.services.orchestrator import (
    GENERIC_SEGMENT_ERROR,
    SegmentOrchestrator,
    SegmentStatus,
    run_segmented_generation,
)

pytestmark = pytest.mark.pipeline


class _CountingEnricher:
    enabled = True

    def __init__(self) -> None:
        self.calls: list[tuple[str, int]] = []

    async def enrich(self, config, segment_text, segment_index=0):
        self.calls.append((segment_text, segment_index))
        return f"enriched: {segment_text}"


def _run(coro):
    return asyncio.run(coro)


def test_results_follow_input_order_when_completion_is_reversed(provider_factory, registry_factory, settings):
    provider = provider_factory(delays={"first": 0.3, "second": 0.15, "third": 0.0})
    registry = registry_factory(provider)

    summary = _run(
        run_segmented_generation(
            ["first", "second", "third"],
            provider="fake",
            model_id="fake-model",
            registry=registry,
            settings=settings,
        )
    )

    assert [result.segment_index for result in summary.results] == [0, 1, 2]
    assert [result.prompt for result in summary.results] == ["first", "second", "third"]
    assert all(result.status is SegmentStatus.SUCCEEDED for result in summary.results)
    assert summary.success_count == 3
    assert summary.total_segments == 3


def test_failed_segment_gets_generic_error_and_others_succeed(fake_registry, settings):
    summary = _run(
        run_segmented_generation(
            ["calm sea", "this will fail", "harbour at dusk"],
            provider="fake",
            model_id="fake-model",
            registry=fake_registry,
            settings=settings,
        )
    )

    failed = summary.results[1]
    assert failed.image is None
    assert failed.error == GENERIC_SEGMENT_ERROR
    assert failed.status is SegmentStatus.FAILED
    assert "upstream exploded" not in failed.error
    assert [result.image is not None for result in summary.results] == [True, False, True]
    assert summary.success_count == 2


def test_timed_out_segment_fails_alone(provider_factory, registry_factory, settings):
    provider = provider_factory(delays={"slow": 0.5})

    summary = _run(
        run_segmented_generation(
            ["quick", "slow"],
            provider="fake",
            model_id="fake-model",
            registry=registry_factory(provider),
            timeout_seconds=0.1,
            settings=settings,
        )
    )

    assert summary.results[0].succeeded
    assert summary.results[1].error == GENERIC_SEGMENT_ERROR
    assert summary.success_count == 1


def test_story_config_is_rendered_into_every_prompt(fake_registry, recording_provider, settings, story_config_payload):
    summary = _run(
        run_segmented_generation(
            ["She raises the sail."],
            provider="fake",
            model_id="fake-model",
            registry=fake_registry,
            story_config=story_config_payload,
            settings=settings,
        )
    )

    expected = build_prompt(parse_story_config(story_config_payload), "She raises the sail.", 0)
    assert summary.results[0].prompt == expected
    assert recording_provider.requests[0].prompt == expected
    assert recording_provider.requests[0].size == "576x1024"
    assert recording_provider.requests[0].aspect_ratio is None
    assert recording_provider.requests[0].model == "fake-model"
    assert 0 <= recording_provider.requests[0].seed < 1_000_000


def test_raw_prompts_skip_the_builder(fake_registry, recording_provider, settings, story_config_payload):
    _run(
        run_segmented_generation(
            ["literal prompt text"],
            provider="fake",
            model_id="fake-model",
            registry=fake_registry,
            story_config=story_config_payload,
            use_raw_prompts=True,
            settings=settings,
        )
    )

    assert recording_provider.prompts == ["literal prompt text"]


def test_enricher_supplies_prompts_when_present(fake_registry, recording_provider, settings):
    enricher = _CountingEnricher()

    _run(
        run_segmented_generation(
            ["one", "two"],
            provider="fake",
            model_id="fake-model",
            registry=fake_registry,
            enricher=enricher,
            settings=settings,
        )
    )

    assert sorted(enricher.calls) == [("one", 0), ("two", 1)]
    assert sorted(recording_provider.prompts) == ["enriched: one", "enriched: two"]


def test_edit_segment_uses_literal_prompt_and_is_repeatable(fake_registry, recording_provider):
    enricher = _CountingEnricher()
    orchestrator = SegmentOrchestrator(fake_registry, "fake", "fake-model", enricher=enricher)

    async def scenario():
        await orchestrator.run(["alpha", "beta"])
        first = await orchestrator.edit_segment(1, "a red kite over the dunes")
        first_snapshot = (first.prompt, first.image, first.status)
        second = await orchestrator.edit_segment(1, "a red kite over the dunes")
        return first_snapshot, second

    first_snapshot, second = _run(scenario())

    assert first_snapshot == (second.prompt, second.image, second.status)
    assert second.prompt == "a red kite over the dunes"
    assert second.segment_index == 1
    assert orchestrator.segments == ("alpha", "a red kite over the dunes")
    assert recording_provider.prompts[-2:] == ["a red kite over the dunes"] * 2
    assert len(enricher.calls) == 2
    assert orchestrator.is_complete
    assert orchestrator.results[0].prompt == "enriched: alpha"


def test_edit_segment_rejects_unknown_index(fake_registry):
    orchestrator = SegmentOrchestrator(fake_registry, "fake", "fake-model")

    async def scenario():
        await orchestrator.run(["alpha"])
        await orchestrator.edit_segment(3, "anything")

    with pytest.raises(InvalidRequestError):
        _run(scenario())


def test_orchestrator_rejects_unknown_provider_and_blank_model(fake_registry):
    with pytest.raises(InvalidRequestError):
        SegmentOrchestrator(fake_registry, "missing", "fake-model")
    with pytest.raises(InvalidRequestError):
        SegmentOrchestrator(fake_registry, "fake", "  ")


@pytest.mark.parametrize(
    "overrides",
    [
        {"segments": []},
        {"segments": "not a list"},
        {"segments": ["ok", 3]},
        {"provider": "missing"},
        {"model_id": ""},
        {"aspect_ratio": "4:3"},
        {"original_segment_index": -1},
        {"segments": ["a", "b"], "original_segment_index": 0},
    ],
)
def test_invalid_requests_fail_before_any_provider_call(overrides, fake_registry, recording_provider, settings):
    options = {"segments": ["a"], "provider": "fake", "model_id": "fake-model"}
    options.update(overrides)
    segments = options.pop("segments")

    with pytest.raises(InvalidRequestError):
        _run(run_segmented_generation(segments, registry=fake_registry, settings=settings, **options))

    assert recording_provider.requests == []


def test_malformed_story_config_is_rejected(fake_registry, recording_provider, settings):
    with pytest.raises(StoryConfigError):
        _run(
            run_segmented_generation(
                ["a"],
                provider="fake",
                model_id="fake-model",
                registry=fake_registry,
                story_config={"camera_baseline": {"lens_mm": "wide"}},
                settings=settings,
            )
        )
    assert recording_provider.requests == []


def test_edit_request_keeps_original_index_and_literal_prompt(fake_registry, recording_provider, settings, story_config_payload):
    summary = _run(
        run_segmented_generation(
            ["a lantern-lit harbour"],
            provider="fake",
            model_id="fake-model",
            registry=fake_registry,
            story_config=story_config_payload,
            original_segment_index=4,
            settings=settings,
        )
    )

    assert summary.total_segments == 1
    assert summary.results[0].segment_index == 4
    assert summary.results[0].prompt == "a lantern-lit harbour"
    assert recording_provider.prompts == ["a lantern-lit harbour"]
    assert summary.to_payload()["results"][0]["segmentIndex"] == 4


def test_seed_factory_is_used_per_prompt(fake_registry, recording_provider, settings):
    _run(
        run_segmented_generation(
            ["a", "bb"],
            provider="fake",
            model_id="fake-model",
            registry=fake_registry,
            seed_factory=len,
            settings=settings,
        )
    )

    assert sorted(request.seed for request in recording_provider.requests) == [1, 2]


class _SlowEnricher:
    enabled = True

    async def enrich(self, config, segment_text, segment_index=0):
        await asyncio.sleep(1.5)
        return f"late: {segment_text}"


def test_queued_segments_do_not_time_out_behind_the_worker_limit(provider_factory, registry_factory, settings):
    provider = provider_factory(default_delay=0.2)
    texts = [f"scene {number}" for number in range(12)]

    summary = _run(
        asyncio.wait_for(
            run_segmented_generation(
                texts,
                provider="fake",
                model_id="fake-model",
                registry=registry_factory(provider),
                timeout_seconds=0.5,
                max_concurrency=3,
                settings=settings,
            ),
            timeout=10,
        )
    )

    assert summary.success_count == 12
    assert provider.max_active <= 3
    assert len(provider.requests) == 12


def test_max_concurrency_defaults_to_settings(provider_factory, registry_factory):
    provider = provider_factory(default_delay=0.05)
    settings = cfg.SegmentStudioSettings(image_max_concurrency=2)

    summary = _run(
        run_segmented_generation(
            ["a", "b", "c", "d", "e"],
            provider="fake",
            model_id="fake-model",
            registry=registry_factory(provider),
            settings=settings,
        )
    )

    assert summary.success_count == 5
    assert provider.max_active <= 2


def test_request_building_errors_fail_the_segment_instead_of_hanging(fake_registry, recording_provider, settings):
    def broken_seed(prompt):
        raise RuntimeError("seed source unavailable")

    summary = _run(
        asyncio.wait_for(
            run_segmented_generation(
                ["a", "b"],
                provider="fake",
                model_id="fake-model",
                registry=fake_registry,
                seed_factory=broken_seed,
                settings=settings,
            ),
            timeout=5,
        )
    )

    assert [result.status for result in summary.results] == [SegmentStatus.FAILED] * 2
    assert all(result.error == GENERIC_SEGMENT_ERROR for result in summary.results)
    assert [result.prompt for result in summary.results] == ["a", "b"]
    assert recording_provider.requests == []


def test_enricher_errors_fail_only_their_segment(fake_registry, recording_provider, settings):
    class _PickyEnricher:
        enabled = True

        async def enrich(self, config, segment_text, segment_index=0):
            if segment_index == 1:
                raise ValueError("model returned nothing usable")
            return segment_text

    summary = _run(
        run_segmented_generation(
            ["a", "b", "c"],
            provider="fake",
            model_id="fake-model",
            registry=fake_registry,
            enricher=_PickyEnricher(),
            settings=settings,
        )
    )

    assert [result.succeeded for result in summary.results] == [True, False, True]
    assert summary.results[1].error == GENERIC_SEGMENT_ERROR


def test_slow_enrichment_falls_back_to_template_within_the_deadline(fake_registry, recording_provider, settings):
    started = time.perf_counter()

    summary = _run(
        run_segmented_generation(
            ["a quiet dock"],
            provider="fake",
            model_id="fake-model",
            registry=fake_registry,
            enricher=_SlowEnricher(),
            timeout_seconds=0.5,
            settings=settings,
        )
    )

    elapsed = time.perf_counter() - started
    assert summary.results[0].status is SegmentStatus.SUCCEEDED
    assert summary.results[0].prompt == build_prompt(None, "a quiet dock", 0)
    assert recording_provider.prompts == [build_prompt(None, "a quiet dock", 0)]
    assert elapsed < 1.2


def test_aspect_ratio_providers_receive_the_ratio(provider_factory, registry_factory, settings):
    provider = provider_factory()

    _run(
        run_segmented_generation(
            ["a"],
            provider="fake",
            model_id="fake-model",
            registry=registry_factory(provider, dimension_format="aspect_ratio"),
            aspect_ratio="16:9",
            settings=settings,
        )
    )

    assert provider.requests[0].aspect_ratio == "16:9"
    assert provider.requests[0].size is None


def test_size_providers_receive_fitted_pixel_dimensions(provider_factory, registry_factory, settings):
    provider = provider_factory()

    _run(
        run_segmented_generation(
            ["a"],
            provider="fake",
            model_id="fake-model",
            registry=registry_factory(provider),
            aspect_ratio="16:9",
            settings=settings,
        )
    )

    assert provider.requests[0].size == "1024x576"
    assert provider.requests[0].aspect_ratio is None


def test_orchestrator_rejects_non_positive_concurrency(fake_registry):
    with pytest.raises(InvalidRequestError):
        SegmentOrchestrator(fake_registry, "fake", "fake-model", max_concurrency=0)
