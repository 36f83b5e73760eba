"""Argument parsing helpers for the segment-studio CLI."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from ..images.providers import MODEL_MODES
from ..text import ChunkingStrategy


def _add_shared_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument(
        "--config",
        default=None,
        help=(
            "Path to a configuration override JSON file (defaults to conf/config.local.json "
            "if present)."
        ),
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging output.")
    return parser


def _add_segmentation_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument("input_file", help="Path to the UTF-8 text file to segment.")
    parser.add_argument(
        "--words",
        dest="words_per_segment",
        type=int,
        help="Target words per segment (defaults to the configured value).",
    )
    parser.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in ChunkingStrategy],
        help="Chunking strategy (defaults to the configured value).",
    )
    return parser


def build_cli_parser() -> argparse.ArgumentParser:
    """Build the CLI parser with explicit sub-commands."""

    parser = argparse.ArgumentParser(
        description="segment-studio command line interface", allow_abbrev=False
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    segment_parser = subparsers.add_parser(
        "segment", help="Split a text file into segments and print them as JSON", allow_abbrev=False
    )
    _add_shared_arguments(segment_parser)
    _add_segmentation_arguments(segment_parser)

    generate_parser = subparsers.add_parser(
        "generate", help="Generate one image per segment of a text file", allow_abbrev=False
    )
    _add_shared_arguments(generate_parser)
    _add_segmentation_arguments(generate_parser)
    generate_parser.add_argument(
        "--story-config",
        help="Story configuration as a JSON file path or an inline JSON object.",
    )
    generate_parser.add_argument(
        "--output-dir",
        default="output",
        help="Directory that receives the images and results.json (default: %(default)s).",
    )
    generate_parser.add_argument(
        "--raw-prompts",
        action="store_true",
        help="Send each segment text to the provider verbatim.",
    )
    generate_parser.add_argument("--provider", help="Image provider key (e.g. vertex, drawthings).")
    generate_parser.add_argument("--model", help="Provider model identifier.")
    generate_parser.add_argument(
        "--mode",
        choices=list(MODEL_MODES),
        default="quality",
        help="Model mode used when --model is omitted (default: %(default)s).",
    )
    generate_parser.add_argument(
        "--aspect-ratio",
        choices=["1:1", "9:16", "16:9"],
        help="Aspect ratio for generated images (defaults to the configured value).",
    )
    generate_parser.add_argument(
        "--enrich",
        action="store_true",
        help="Rewrite prompts through the configured text-generation model.",
    )
    generate_parser.add_argument(
        "--stable-seeds",
        action="store_true",
        help="Derive each seed from its prompt instead of drawing a random one.",
    )
    return parser


def parse_cli_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse ``argv`` using the CLI parser."""

    return build_cli_parser().parse_args(argv)


__all__ = ["build_cli_parser", "parse_cli_args"]
