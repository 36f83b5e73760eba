"""Prompt enrichment through the configured text-generation model."""

from __future__ import annotations

import asyncio
from typing import Optional

from segment_studio import logging_manager as log_mgr
from segment_studio.errors import EnrichmentError
from segment_studio.llm_client import LLMClient
from segment_studio.llm_client_manager import client_scope
from segment_studio.personas import StoryConfig

from .prompting import build_enrichment_context, build_prompt

logger = log_mgr.get_logger().getChild("images.enrichment")

SYSTEM_INSTRUCTION = (
    "You write prompts for a text-to-image model that illustrates one segment of a story.\n"
    "Combine the character and style details with the scene into a single prompt.\n"
    "Constraints:\n"
    "- Use English.\n"
    "- Return the prompt text only, without quotes, labels or commentary.\n"
    "- Keep the character's appearance consistent with the details provided.\n"
    "- Describe one framed moment: who is present, the action, the setting and the lighting.\n"
    "- Do NOT request readable text (letters/words) in the image.\n"
)


class PromptEnricher:
    """Turn a story configuration and scene text into a richer image prompt.

    The enricher never fails: when the model is unavailable, returns an error
    or an empty answer, the deterministic :func:`build_prompt` output is used.
    """

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        *,
        enabled: bool = True,
        request_timeout: Optional[int] = None,
        max_attempts: int = 1,
    ) -> None:
        self._client = client
        self._enabled = enabled
        self._request_timeout = request_timeout
        self._max_attempts = max(1, int(max_attempts))

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _request_prompt(self, context: str) -> str:
        with client_scope(self._client) as client:
            response = client.send_chat_request(
                {
                    "messages": [
                        {"role": "system", "content": SYSTEM_INSTRUCTION},
                        {"role": "user", "content": context},
                    ],
                    "stream": False,
                    "options": {"temperature": 0.4, "top_p": 0.9},
                },
                max_attempts=self._max_attempts,
                timeout=self._request_timeout,
            )
        if response.error:
            raise EnrichmentError(response.error)
        text = (response.text or "").strip()
        if not text:
            raise EnrichmentError("Empty response")
        return text

    async def enrich(
        self,
        config: Optional[StoryConfig],
        segment_text: str,
        segment_index: int = 0,
    ) -> str:
        """Return an enriched prompt for ``segment_text``."""

        fallback = build_prompt(config, segment_text, segment_index)
        if not self._enabled:
            return fallback

        context = build_enrichment_context(config, segment_text, segment_index)
        try:
            return await asyncio.to_thread(self._request_prompt, context)
        except Exception as exc:
            logger.warning(
                "Prompt enrichment failed; using the template prompt.",
                extra={
                    "event": "prompt.enrichment.fallback",
                    "segment_index": segment_index,
                    "error": str(exc),
                },
            )
            return fallback


__all__ = ["PromptEnricher", "SYSTEM_INSTRUCTION"]
