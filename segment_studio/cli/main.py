"""Command implementations for the segment-studio CLI."""

from __future__ import annotations

import argparse
import asyncio
import base64
import binascii
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, TextIO

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from ..errors import ChunkingError, InvalidRequestError, StoryConfigError
from ..images.enrichment import PromptEnricher
from ..images.prompting import stable_seed
from ..images.providers import build_default_registry
from ..personas import StoryConfig, parse_story_config
from ..services.orchestrator import GenerationSummary, run_segmented_generation
from ..services.segmentation import segment_document
from .args import parse_cli_args

logger = log_mgr.get_logger().getChild("cli")

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_INVALID_INPUT = 2


def _read_text(path: str) -> str:
    return Path(path).expanduser().read_text(encoding="utf-8")


def _load_story_config(value: Optional[str]) -> Optional[StoryConfig]:
    if not value:
        return None
    candidate = value.strip()
    if not candidate.startswith("{"):
        candidate = _read_text(candidate)
    return parse_story_config(candidate)


def _load_settings(args: argparse.Namespace) -> cfg.SegmentStudioSettings:
    settings = cfg.load_settings(args.config)
    log_mgr.set_level(debug=bool(args.debug or settings.debug))
    return settings


def _write_outputs(summary: GenerationSummary, output_dir: Path) -> Dict[str, Any]:
    """Write one PNG per successful segment plus ``results.json``.

    A segment whose image data does not decode is reported as failed and is
    not counted in ``successCount``.
    """

    output_dir.mkdir(parents=True, exist_ok=True)
    payload = summary.to_payload()
    for entry, result in zip(payload["results"], summary.results):
        image_data = entry.pop("image", None)
        entry["file"] = None
        if not image_data:
            continue
        try:
            image_bytes = base64.b64decode(image_data, validate=True)
        except (binascii.Error, ValueError):
            image_bytes = b""
        if not image_bytes:
            logger.error(
                "Image %s could not be decoded",
                result.segment_index,
                extra={"event": "cli.output.decode_failed", "segment_index": result.segment_index},
            )
            entry["status"] = "failed"
            entry["error"] = "Image data could not be decoded"
            continue
        target = output_dir / f"segment-{result.segment_index}.png"
        target.write_bytes(image_bytes)
        entry["file"] = target.name

    payload["successCount"] = sum(1 for entry in payload["results"] if entry["file"])
    with open(output_dir / "results.json", "w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False, indent=2)
    return payload


def run_segment_command(args: argparse.Namespace, *, stdout: TextIO) -> int:
    settings = _load_settings(args)
    try:
        result = segment_document(
            _read_text(args.input_file),
            words_per_segment=args.words_per_segment,
            strategy=args.strategy,
            settings=settings,
        )
    except ChunkingError as exc:
        log_mgr.console_error("Invalid segmentation options: %s", exc, logger_obj=logger)
        return EXIT_INVALID_INPUT
    json.dump(result.to_payload(), stdout, ensure_ascii=False, indent=2)
    stdout.write("\n")
    return EXIT_OK


def run_generate_command(args: argparse.Namespace, *, stdout: TextIO) -> int:
    settings = _load_settings(args)
    try:
        story_config = _load_story_config(args.story_config)
    except StoryConfigError as exc:
        log_mgr.console_error("%s", exc, logger_obj=logger)
        return EXIT_INVALID_INPUT

    try:
        segmentation = segment_document(
            _read_text(args.input_file),
            words_per_segment=args.words_per_segment,
            strategy=args.strategy,
            settings=settings,
        )
    except ChunkingError as exc:
        log_mgr.console_error("Invalid segmentation options: %s", exc, logger_obj=logger)
        return EXIT_INVALID_INPUT
    if not segmentation.segments:
        log_mgr.console_error("No segments found in %s", args.input_file, logger_obj=logger)
        return EXIT_INVALID_INPUT

    registry = build_default_registry(settings)
    provider = args.provider or settings.image_provider
    if provider not in registry:
        log_mgr.console_error("Unknown image provider: %s", provider, logger_obj=logger)
        return EXIT_INVALID_INPUT
    model_id = args.model or settings.image_model or registry.config(provider).default_model(args.mode)

    enricher = PromptEnricher(enabled=True) if (args.enrich or settings.enrich_prompts) else None
    try:
        summary = asyncio.run(
            run_segmented_generation(
                [segment.text for segment in segmentation.segments],
                provider=provider,
                model_id=model_id,
                registry=registry,
                story_config=story_config,
                use_raw_prompts=args.raw_prompts,
                aspect_ratio=args.aspect_ratio,
                enricher=enricher,
                seed_factory=stable_seed if args.stable_seeds else None,
                settings=settings,
            )
        )
    except InvalidRequestError as exc:
        log_mgr.console_error("%s", exc, logger_obj=logger)
        return EXIT_INVALID_INPUT

    output_dir = Path(args.output_dir).expanduser()
    written = _write_outputs(summary, output_dir)
    success_count = written["successCount"]
    stdout.write(f"Generated {success_count}/{summary.total_segments} images in {output_dir}\n")
    return EXIT_OK if success_count == summary.total_segments else EXIT_FAILURES


def run_cli(argv: Optional[Sequence[str]] = None, *, stdout: Optional[TextIO] = None) -> int:
    """Primary console script entry point."""

    args = parse_cli_args(argv)
    out = stdout or sys.stdout
    try:
        if args.command == "segment":
            return run_segment_command(args, stdout=out)
        return run_generate_command(args, stdout=out)
    except OSError as exc:
        log_mgr.console_error("File access failed: %s", exc, logger_obj=logger)
        return EXIT_INVALID_INPUT


__all__ = ["run_cli", "run_generate_command", "run_segment_command"]
