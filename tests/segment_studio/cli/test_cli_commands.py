from __future__ import annotations

import base64
import io
import json

import pytest

from segment_studio.cli import main as cli_main
from segment_studio.cli import run_cli
from segment_studio.images.prompting import stable_seed

pytestmark = pytest.mark.pipeline

TEXT = "Calm sea at dawn. The engine will fail today."


@pytest.fixture
def story_file(tmp_path):
    path = tmp_path / "story.txt"
    path.write_text(TEXT, encoding="utf-8")
    return path


@pytest.fixture
def patched_registry(monkeypatch, fake_registry):
    monkeypatch.setattr(cli_main, "build_default_registry", lambda settings=None: fake_registry)
    return fake_registry


def test_segment_command_prints_json(story_file):
    buffer = io.StringIO()

    exit_code = run_cli(["segment", str(story_file), "--words", "3"], stdout=buffer)

    assert exit_code == 0
    payload = json.loads(buffer.getvalue())
    assert payload["totalSegments"] == 2
    assert [segment["text"] for segment in payload["segments"]] == [
        "Calm sea at dawn.",
        "The engine will fail today.",
    ]


def test_generate_command_writes_images_and_summary(tmp_path, patched_registry, recording_provider):
    story = tmp_path / "calm.txt"
    story.write_text("Calm sea at dawn. Gulls circle the mast.", encoding="utf-8")
    output_dir = tmp_path / "out"
    buffer = io.StringIO()

    exit_code = run_cli(
        [
            "generate",
            str(story),
            "--words",
            "100",
            "--provider",
            "fake",
            "--model",
            "fake-model",
            "--output-dir",
            str(output_dir),
            "--stable-seeds",
        ],
        stdout=buffer,
    )

    assert exit_code == 0
    assert "Generated 1/1 images" in buffer.getvalue()
    assert (output_dir / "segment-0.png").read_bytes() == base64.b64decode("aW1hZ2U=")
    summary = json.loads((output_dir / "results.json").read_text(encoding="utf-8"))
    assert summary["successCount"] == 1
    assert summary["results"][0]["file"] == "segment-0.png"
    assert "image" not in summary["results"][0]
    request = recording_provider.requests[0]
    assert request.seed == stable_seed(request.prompt)


def test_generate_command_reports_partial_failure(tmp_path, story_file, patched_registry):
    output_dir = tmp_path / "out"

    exit_code = run_cli(
        [
            "generate",
            str(story_file),
            "--words",
            "3",
            "--provider",
            "fake",
            "--model",
            "fake-model",
            "--raw-prompts",
            "--output-dir",
            str(output_dir),
        ],
        stdout=io.StringIO(),
    )

    assert exit_code == 1
    summary = json.loads((output_dir / "results.json").read_text(encoding="utf-8"))
    assert [entry["file"] for entry in summary["results"]] == ["segment-0.png", None]
    assert not (output_dir / "segment-1.png").exists()


def test_generate_command_rejects_malformed_story_config(tmp_path, story_file, patched_registry, recording_provider):
    exit_code = run_cli(
        [
            "generate",
            str(story_file),
            "--provider",
            "fake",
            "--model",
            "fake-model",
            "--story-config",
            '{"camera_baseline": {"lens_mm": "wide"}}',
            "--output-dir",
            str(tmp_path / "out"),
        ],
        stdout=io.StringIO(),
    )

    assert exit_code == 2
    assert recording_provider.requests == []
    assert not (tmp_path / "out").exists()


def test_generate_command_rejects_unknown_provider(story_file, patched_registry):
    exit_code = run_cli(["generate", str(story_file), "--provider", "nope"], stdout=io.StringIO())

    assert exit_code == 2


def test_missing_input_file_is_reported(tmp_path):
    exit_code = run_cli(["segment", str(tmp_path / "missing.txt")], stdout=io.StringIO())

    assert exit_code == 2


def test_undecodable_image_counts_as_failed_segment(tmp_path, monkeypatch, provider_factory, registry_factory):
    registry = registry_factory(provider_factory(image="%%% not base64 %%%"))
    monkeypatch.setattr(cli_main, "build_default_registry", lambda settings=None: registry)
    story = tmp_path / "calm.txt"
    story.write_text("Calm sea at dawn.", encoding="utf-8")
    output_dir = tmp_path / "out"
    buffer = io.StringIO()

    exit_code = run_cli(
        [
            "generate",
            str(story),
            "--provider",
            "fake",
            "--model",
            "fake-model",
            "--output-dir",
            str(output_dir),
        ],
        stdout=buffer,
    )

    assert exit_code == 1
    assert "Generated 0/1 images" in buffer.getvalue()
    summary = json.loads((output_dir / "results.json").read_text(encoding="utf-8"))
    assert summary["successCount"] == 0
    assert summary["results"][0]["status"] == "failed"
    assert summary["results"][0]["error"] == "Image data could not be decoded"
    assert summary["results"][0]["file"] is None
    assert not (output_dir / "segment-0.png").exists()
