from __future__ import annotations

import asyncio

import pytest

from segment_studio.images import PromptEnricher, build_prompt
from segment_studio.images.enrichment import SYSTEM_INSTRUCTION
from segment_studio.llm_client import LLMResponse
from segment_studio.personas import parse_story_config

pytestmark = pytest.mark.pipeline


class _DummyClient:
    def __init__(self, *, text: str = "", error: str | None = None, exc: Exception | None = None) -> None:
        self.payloads: list[dict] = []
        self._text = text
        self._error = error
        self._exc = exc
        self.closed = False

    def send_chat_request(self, payload: dict, **_: object) -> LLMResponse:
        self.payloads.append(payload)
        if self._exc is not None:
            raise self._exc
        return LLMResponse(text=self._text, status_code=200, token_usage={}, error=self._error)

    def close(self) -> None:
        self.closed = True


def test_enriched_prompt_is_trimmed_model_output(story_config_payload):
    client = _DummyClient(text="  Mira steers through a watercolor storm.  ")
    enricher = PromptEnricher(client)
    config = parse_story_config(story_config_payload)

    result = asyncio.run(enricher.enrich(config, "The storm arrives.", 4))

    assert result == "Mira steers through a watercolor storm."
    messages = client.payloads[0]["messages"]
    assert messages[0] == {"role": "system", "content": SYSTEM_INSTRUCTION}
    assert "Character name: Mira" in messages[1]["content"]
    assert messages[1]["content"].endswith("Scene: The storm arrives.")
    assert client.closed is False


@pytest.mark.parametrize(
    "client",
    [
        _DummyClient(error="HTTP 503"),
        _DummyClient(text="   "),
        _DummyClient(exc=RuntimeError("connection refused")),
    ],
)
def test_failures_fall_back_to_template_prompt(client, story_config_payload):
    config = parse_story_config(story_config_payload)

    result = asyncio.run(PromptEnricher(client).enrich(config, "The storm arrives.", 2))

    assert result == build_prompt(config, "The storm arrives.", 2)


def test_disabled_enricher_never_calls_the_model():
    client = _DummyClient(text="should not be used")
    enricher = PromptEnricher(client, enabled=False)

    result = asyncio.run(enricher.enrich(None, "  Rain on the roof. ", 0))

    assert result == "Rain on the roof."
    assert client.payloads == []
