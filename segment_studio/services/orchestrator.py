"""Per-segment image generation with positional result aggregation."""

from __future__ import annotations

import asyncio
import enum
import functools
import random
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from .. import observability
from ..errors import InvalidRequestError
from ..images.enrichment import PromptEnricher
from ..images.prompting import build_prompt
from ..images.providers import (
    DIMENSION_FORMAT_SIZE,
    ImageProviderRegistry,
    ImageRequest,
    resolve_dimensions,
)
from ..personas import StoryConfig, parse_story_config
from ..text import Segment

logger = log_mgr.get_logger().getChild("services.orchestrator")

GENERIC_SEGMENT_ERROR = "Failed to generate image for this segment"
INVALID_REQUEST_MESSAGE = "Invalid request parameters"

# Fraction of the per-segment deadline prompt enrichment may use.
ENRICHMENT_SHARE = 0.5

SeedFactory = Callable[[str], int]
SegmentInput = Union[Segment, str]


def random_seed(_prompt: str = "") -> int:
    return random.randrange(1_000_000)


class SegmentStatus(str, enum.Enum):
    PENDING = "pending"
    GENERATING = "generating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SegmentStatus.SUCCEEDED, SegmentStatus.FAILED)


@dataclass(slots=True)
class GenerationResult:
    """Result slot for one segment; ``image`` and ``error`` are exclusive once terminal."""

    segment_index: int
    prompt: str = ""
    image: Optional[str] = None
    error: Optional[str] = None
    status: SegmentStatus = SegmentStatus.PENDING
    warnings: Tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status is SegmentStatus.SUCCEEDED

    def to_payload(self) -> Dict[str, Any]:
        return {
            "segmentIndex": self.segment_index,
            "image": self.image,
            "error": self.error,
            "prompt": self.prompt,
            "status": self.status.value,
        }


@dataclass(frozen=True, slots=True)
class SegmentOutcome:
    """Completion event emitted by a segment task."""

    index: int
    prompt: str
    image: Optional[str] = None
    error: Optional[str] = None
    warnings: Tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.image is not None and self.error is None


class SegmentOrchestrator:
    """Dispatch one image request per segment and collect results by index.

    Segment tasks never touch the result list. Each one puts a
    :class:`SegmentOutcome` on a queue and :meth:`_aggregate` applies it to
    the slot at the outcome's own index, so completion order is irrelevant.

    Provider calls run on a private thread pool of ``max_concurrency``
    workers. A segment holds one of the same number of slots from before
    its prompt is resolved until its provider call returns, and its deadline
    starts only once it holds a slot.
    """

    def __init__(
        self,
        registry: ImageProviderRegistry,
        provider: str,
        model_id: str,
        *,
        enricher: Optional[PromptEnricher] = None,
        timeout_seconds: float = cfg.DEFAULT_IMAGE_TIMEOUT_SECONDS,
        aspect_ratio: str = cfg.DEFAULT_ASPECT_RATIO,
        image_size: str = cfg.DEFAULT_IMAGE_SIZE,
        seed_factory: Optional[SeedFactory] = None,
        max_concurrency: int = cfg.DEFAULT_IMAGE_MAX_CONCURRENCY,
    ) -> None:
        if provider not in registry:
            raise InvalidRequestError(f"Unknown image provider: {provider!r}")
        if not isinstance(model_id, str) or not model_id.strip():
            raise InvalidRequestError("A model identifier is required")
        if timeout_seconds <= 0:
            raise InvalidRequestError("timeout_seconds must be positive")
        if isinstance(max_concurrency, bool) or not isinstance(max_concurrency, int) or max_concurrency < 1:
            raise InvalidRequestError("max_concurrency must be a positive integer")
        provider_config = registry.config(provider)
        self._registry = registry
        self._provider_key = provider_config.key
        self._dimension_format = provider_config.dimension_format
        self._model_id = model_id.strip()
        self._enricher = enricher
        self._timeout = float(timeout_seconds)
        self._aspect_ratio = aspect_ratio
        self._image_size = image_size
        self._seed_factory = seed_factory or random_seed
        self._max_concurrency = max_concurrency
        self._executor: Optional[ThreadPoolExecutor] = None
        self._segments: List[str] = []
        self._results: List[GenerationResult] = []
        self._config: Optional[StoryConfig] = None

    @property
    def provider(self) -> str:
        return self._provider_key

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def segments(self) -> Tuple[str, ...]:
        return tuple(self._segments)

    @property
    def results(self) -> List[GenerationResult]:
        return list(self._results)

    @property
    def is_complete(self) -> bool:
        return all(result.status.is_terminal for result in self._results)

    @property
    def success_count(self) -> int:
        return sum(1 for result in self._results if result.succeeded)

    def close(self) -> None:
        """Stop the worker pool without waiting for abandoned provider calls."""

        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    async def run(
        self,
        segments: Sequence[SegmentInput],
        config: Optional[StoryConfig] = None,
        *,
        use_raw_prompts: bool = False,
    ) -> List[GenerationResult]:
        """Generate an image for every segment and return the result slots in order."""

        self._segments = [
            segment.text if isinstance(segment, Segment) else str(segment)
            for segment in segments
        ]
        self._config = config
        self._results = [GenerationResult(segment_index=index) for index in range(len(self._segments))]
        if not self._segments:
            return []

        await self._dispatch(list(enumerate(self._segments)), use_raw_prompts=use_raw_prompts)

        logger.info(
            "Completed image generation [success=%s/%s]",
            self.success_count,
            len(self._results),
            extra={"event": "images.generation.complete"},
        )
        return self.results

    async def edit_segment(self, index: int, prompt: str) -> GenerationResult:
        """Regenerate segment ``index`` with the literal ``prompt``.

        The prompt builder and enricher are bypassed. The segment must already
        be in a terminal state.
        """

        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._results):
            raise InvalidRequestError(f"No segment at index {index!r}")
        slot = self._results[index]
        if not slot.status.is_terminal:
            raise InvalidRequestError(f"Segment {index} is still {slot.status.value}")

        self._segments[index] = prompt
        slot.image = None
        slot.error = None
        slot.prompt = prompt

        await self._dispatch([(index, prompt)], use_raw_prompts=True)
        return self._results[index]

    async def _dispatch(self, jobs: Sequence[Tuple[int, str]], *, use_raw_prompts: bool) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_concurrency, thread_name_prefix="segment-image"
            )
        slots = asyncio.Semaphore(self._max_concurrency)
        queue: asyncio.Queue[SegmentOutcome] = asyncio.Queue()
        tasks = []
        for index, text in jobs:
            self._results[index].status = SegmentStatus.GENERATING
            tasks.append(
                asyncio.create_task(
                    self._generate_segment(
                        index, text, use_raw_prompts=use_raw_prompts, queue=queue, slots=slots
                    )
                )
            )
        await self._aggregate(queue, len(tasks))
        await asyncio.gather(*tasks)

    async def _aggregate(self, queue: "asyncio.Queue[SegmentOutcome]", expected: int) -> None:
        for _ in range(expected):
            outcome = await queue.get()
            self._apply(outcome)
            queue.task_done()

    def _apply(self, outcome: SegmentOutcome) -> None:
        slot = self._results[outcome.index]
        slot.prompt = outcome.prompt
        slot.warnings = outcome.warnings
        if outcome.succeeded:
            slot.image = outcome.image
            slot.error = None
            slot.status = SegmentStatus.SUCCEEDED
        else:
            slot.image = None
            slot.error = outcome.error or GENERIC_SEGMENT_ERROR
            slot.status = SegmentStatus.FAILED

    async def _resolve_prompt(
        self, index: int, text: str, *, use_raw_prompts: bool, deadline: float
    ) -> str:
        if use_raw_prompts:
            return text
        if self._enricher is None or not self._enricher.enabled:
            return build_prompt(self._config, text, index)

        loop = asyncio.get_running_loop()
        budget = min(self._timeout * ENRICHMENT_SHARE, max(deadline - loop.time(), 0.0))
        try:
            return await asyncio.wait_for(self._enricher.enrich(self._config, text, index), timeout=budget)
        except asyncio.TimeoutError:
            logger.warning(
                "Prompt enrichment for segment %s exceeded %.1fs; using the template prompt",
                index,
                budget,
                extra={"event": "images.enrichment.timeout"},
            )
            return build_prompt(self._config, text, index)

    def _build_request(self, prompt: str) -> ImageRequest:
        if self._dimension_format == DIMENSION_FORMAT_SIZE:
            width, height = resolve_dimensions(self._image_size, self._aspect_ratio)
            dimensions: Dict[str, Any] = {"size": f"{width}x{height}"}
        else:
            dimensions = {"aspect_ratio": self._aspect_ratio}
        return ImageRequest(
            prompt=prompt,
            model=self._model_id,
            seed=self._seed_factory(prompt),
            **dimensions,
        )

    @staticmethod
    def _release_slot(slots: asyncio.Semaphore, future: "asyncio.Future[Any]") -> None:
        slots.release()
        if not future.cancelled():
            # Marks the result of an abandoned call as retrieved.
            future.exception()

    async def _generate_segment(
        self,
        index: int,
        text: str,
        *,
        use_raw_prompts: bool,
        queue: "asyncio.Queue[SegmentOutcome]",
        slots: asyncio.Semaphore,
    ) -> None:
        prompt = text
        submitted = False
        await slots.acquire()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        start = time.perf_counter()
        with log_mgr.log_context(segment_index=index, provider=self._provider_key, model=self._model_id):
            try:
                prompt = await self._resolve_prompt(
                    index, text, use_raw_prompts=use_raw_prompts, deadline=deadline
                )
                request = self._build_request(prompt)
                provider = self._registry.get(self._provider_key)
                future = loop.run_in_executor(self._executor, provider.generate, request)
                submitted = True
                future.add_done_callback(functools.partial(self._release_slot, slots))
                response = await asyncio.wait_for(
                    asyncio.shield(future), timeout=max(deadline - loop.time(), 0.0)
                )
            except asyncio.TimeoutError:
                logger.error(
                    "Image %s timed out after %.0fs [provider=%s, model=%s]",
                    index,
                    self._timeout,
                    self._provider_key,
                    self._model_id,
                    extra={"event": "images.segment.timeout"},
                )
                outcome = SegmentOutcome(index=index, prompt=prompt, error=GENERIC_SEGMENT_ERROR)
            except Exception:
                logger.error(
                    "Error generating image %s [provider=%s, model=%s]",
                    index,
                    self._provider_key,
                    self._model_id,
                    exc_info=True,
                    extra={"event": "images.segment.failed"},
                )
                outcome = SegmentOutcome(index=index, prompt=prompt, error=GENERIC_SEGMENT_ERROR)
            else:
                if response.warnings:
                    logger.warning(
                        "Warnings for image %s: %s",
                        index,
                        list(response.warnings),
                        extra={"event": "images.segment.warnings"},
                    )
                elapsed = time.perf_counter() - start
                logger.info(
                    "Completed image %s/%s [elapsed=%.1fs]",
                    index + 1,
                    len(self._results),
                    elapsed,
                    extra={"event": "images.segment.complete", "duration_ms": round(elapsed * 1000.0, 2)},
                )
                outcome = SegmentOutcome(
                    index=index,
                    prompt=prompt,
                    image=response.image_base64,
                    warnings=tuple(response.warnings),
                )
            finally:
                if not submitted:
                    slots.release()
        await queue.put(outcome)


@dataclass(slots=True)
class GenerationSummary:
    """Batch summary returned to HTTP and CLI callers."""

    results: List[GenerationResult]
    provider: str
    total_segments: int = 0
    success_count: int = field(init=False)

    def __post_init__(self) -> None:
        self.success_count = sum(1 for result in self.results if result.succeeded)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "results": [result.to_payload() for result in self.results],
            "totalSegments": self.total_segments,
            "successCount": self.success_count,
            "provider": self.provider,
        }


def _validate_segments(segments: Any) -> List[str]:
    if isinstance(segments, (str, bytes)) or not isinstance(segments, Sequence) or not segments:
        raise InvalidRequestError("segments must be a non-empty list of strings")
    if not all(isinstance(entry, str) for entry in segments):
        raise InvalidRequestError("segments must be a non-empty list of strings")
    return list(segments)


async def run_segmented_generation(
    segments: Sequence[str],
    *,
    provider: str,
    model_id: str,
    registry: ImageProviderRegistry,
    story_config: Any = None,
    use_raw_prompts: bool = False,
    original_segment_index: Optional[int] = None,
    aspect_ratio: Optional[str] = None,
    enricher: Optional[PromptEnricher] = None,
    timeout_seconds: Optional[float] = None,
    seed_factory: Optional[SeedFactory] = None,
    max_concurrency: Optional[int] = None,
    settings: Optional[cfg.SegmentStudioSettings] = None,
) -> GenerationSummary:
    """Validate a generation request, run it and summarise the outcome.

    ``original_segment_index`` marks an edit of one segment: the single
    supplied text is used as the literal prompt and the result carries the
    original index. Validation failures raise before any provider is called.
    """

    texts = _validate_segments(segments)
    if not isinstance(provider, str) or not provider.strip() or provider not in registry:
        raise InvalidRequestError(f"Unknown image provider: {provider!r}")
    if not isinstance(model_id, str) or not model_id.strip():
        raise InvalidRequestError("A model identifier is required")
    if original_segment_index is not None:
        if (
            isinstance(original_segment_index, bool)
            or not isinstance(original_segment_index, int)
            or original_segment_index < 0
        ):
            raise InvalidRequestError("originalSegmentIndex must be a non-negative integer")
        if len(texts) != 1:
            raise InvalidRequestError("An edit request must carry exactly one segment")
        use_raw_prompts = True

    config = parse_story_config(story_config)
    resolved_settings = settings or cfg.get_settings()
    resolved_ratio = aspect_ratio or resolved_settings.aspect_ratio
    if resolved_ratio not in cfg.VALID_ASPECT_RATIOS:
        raise InvalidRequestError(f"Unsupported aspect ratio: {resolved_ratio!r}")

    orchestrator = SegmentOrchestrator(
        registry,
        provider,
        model_id,
        enricher=enricher,
        timeout_seconds=timeout_seconds or resolved_settings.image_timeout_seconds,
        aspect_ratio=resolved_ratio,
        image_size=resolved_settings.image_size,
        seed_factory=seed_factory,
        max_concurrency=max_concurrency or resolved_settings.image_max_concurrency,
    )

    attributes = {
        "provider": orchestrator.provider,
        "model": orchestrator.model_id,
        "segments": len(texts),
        "raw_prompts": use_raw_prompts,
        "max_concurrency": orchestrator.max_concurrency,
    }
    try:
        with observability.pipeline_operation("generate_images", attributes=attributes) as operation:
            results = await orchestrator.run(texts, config, use_raw_prompts=use_raw_prompts)
            operation.annotate(success_count=orchestrator.success_count)
    finally:
        orchestrator.close()

    if original_segment_index is not None:
        for result in results:
            result.segment_index = original_segment_index

    return GenerationSummary(
        results=results,
        provider=orchestrator.provider,
        total_segments=len(texts),
    )


__all__ = [
    "GENERIC_SEGMENT_ERROR",
    "GenerationResult",
    "GenerationSummary",
    "INVALID_REQUEST_MESSAGE",
    "SegmentOrchestrator",
    "SegmentOutcome",
    "SegmentStatus",
    "random_seed",
    "run_segmented_generation",
]
