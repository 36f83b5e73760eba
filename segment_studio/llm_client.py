"""Client for the hosted text-generation model used to enrich prompts."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

from segment_studio import config_manager as cfg
from segment_studio import logging_manager as log_mgr

logger = log_mgr.get_logger().getChild("llm")

TokenUsage = Dict[str, int]
Validator = Callable[[str], bool]

DEFAULT_TIMEOUT_SECONDS = 90


@dataclass(frozen=True)
class ClientSettings:
    """Immutable collection of configuration parameters for an :class:`LLMClient`."""

    model: str = cfg.DEFAULT_MODEL
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    debug: bool = False

    def resolve_api_url(self) -> str:
        """Return the concrete API URL, falling back to the loaded settings."""

        return self.api_url or cfg.get_settings().llm_url

    @classmethod
    def from_settings(cls, settings: cfg.SegmentStudioSettings) -> "ClientSettings":
        api_key = settings.llm_api_key.get_secret_value() if settings.llm_api_key else None
        return cls(
            model=settings.llm_model,
            api_url=settings.llm_url,
            api_key=api_key,
            debug=settings.debug,
        )


@dataclass
class LLMResponse:
    """Container for responses returned by :meth:`LLMClient.send_chat_request`."""

    text: str
    status_code: int
    token_usage: TokenUsage
    raw: Optional[Any] = None
    error: Optional[str] = None


def _extract_message_text(data: Dict[str, Any]) -> str:
    # Ollama chat responses
    message = data.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    # OpenAI-compatible chat completions
    choices = data.get("choices")
    if isinstance(choices, list) and choices:
        first = choices[0] if isinstance(choices[0], dict) else {}
        content = (first.get("message") or {}).get("content")
        if isinstance(content, str):
            return content
    if isinstance(data.get("response"), str):
        return data["response"]
    return ""


def _extract_token_usage(data: Dict[str, Any]) -> TokenUsage:
    usage: TokenUsage = {}
    for key in ("prompt_eval_count", "eval_count"):
        value = data.get(key)
        if isinstance(value, int):
            usage[key] = value
    openai_usage = data.get("usage")
    if isinstance(openai_usage, dict):
        for key in ("prompt_tokens", "completion_tokens"):
            value = openai_usage.get(key)
            if isinstance(value, int):
                usage[key] = value
    return usage


class LLMClient:
    """Stateless helper for issuing chat requests against an Ollama-style API."""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._session = session or requests.Session()

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def model(self) -> str:
        return self._settings.model

    @property
    def api_url(self) -> str:
        return self._settings.resolve_api_url()

    def _log_debug(self, message: str, *args: Any) -> None:
        if self._settings.debug:
            logger.debug(message, *args)

    def _parse_json_response(self, response: requests.Response) -> LLMResponse:
        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            return LLMResponse(
                text="",
                status_code=response.status_code,
                token_usage={},
                raw=response.text,
                error=f"Invalid JSON response: {exc}",
            )
        if not isinstance(data, dict):
            return LLMResponse(
                text="",
                status_code=response.status_code,
                token_usage={},
                raw=data,
                error="Response JSON was not an object",
            )
        usage = _extract_token_usage(data)
        if usage:
            self._log_debug("Token usage: %s", usage)
        return LLMResponse(
            text=_extract_message_text(data),
            status_code=response.status_code,
            token_usage=usage,
            raw=data,
        )

    def _execute_request(
        self, payload: Dict[str, Any], *, timeout: Optional[int] = None
    ) -> LLMResponse:
        api_url = self.api_url
        self._log_debug("Dispatching LLM request to %s", api_url)
        self._log_debug("Payload: %s", json.dumps(payload, indent=2, ensure_ascii=False))

        headers: Dict[str, str] = {}
        if self._settings.api_key:
            headers["Authorization"] = f"Bearer {self._settings.api_key}"

        response = self._session.post(
            api_url,
            json=payload,
            headers=headers or None,
            timeout=timeout or DEFAULT_TIMEOUT_SECONDS,
        )

        if response.status_code != 200:
            body_preview = response.text[:300]
            self._log_debug(
                "Received non-200 response: %s - %s", response.status_code, body_preview
            )
            error_message = f"HTTP {response.status_code}"
            if body_preview:
                error_message = f"{error_message}: {body_preview}"
            return LLMResponse(
                text="",
                status_code=response.status_code,
                token_usage={},
                raw=response.text,
                error=error_message,
            )
        return self._parse_json_response(response)

    def send_chat_request(
        self,
        payload: Dict[str, Any],
        *,
        max_attempts: int = 3,
        timeout: Optional[int] = None,
        validator: Optional[Validator] = None,
        backoff_seconds: float = 1.0,
    ) -> LLMResponse:
        """Send a chat request with retries and optional response validation."""

        working_payload = dict(payload)
        working_payload.setdefault("model", self.model)
        working_payload.setdefault("stream", False)
        last_error: Optional[str] = None

        for attempt in range(1, max_attempts + 1):
            try:
                result = self._execute_request(working_payload, timeout=timeout)
            except requests.exceptions.RequestException as exc:
                last_error = str(exc)
                self._log_debug("Request error on attempt %s/%s: %s", attempt, max_attempts, exc)
            else:
                text = result.text.strip()
                if result.error:
                    last_error = result.error
                elif not text:
                    last_error = "Empty response"
                elif validator and not validator(text):
                    last_error = "Validation failed"
                else:
                    return result
                self._log_debug(
                    "Attempt %s/%s rejected: %s", attempt, max_attempts, last_error
                )

            if attempt < max_attempts:
                time.sleep(backoff_seconds * attempt)

        return LLMResponse(text="", status_code=0, token_usage={}, raw=None, error=last_error)

    def close(self) -> None:
        """Release any network resources associated with this client."""

        self._session.close()

    def __enter__(self) -> "LLMClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()


def create_client(
    *,
    model: Optional[str] = None,
    api_url: Optional[str] = None,
    api_key: Optional[str] = None,
    debug: bool = False,
    session: Optional[requests.Session] = None,
) -> LLMClient:
    """Return a new :class:`LLMClient` with the provided configuration."""

    settings = ClientSettings(
        model=model or cfg.DEFAULT_MODEL,
        api_url=api_url,
        api_key=api_key,
        debug=debug,
    )
    return LLMClient(settings=settings, session=session)


__all__ = ["ClientSettings", "LLMClient", "LLMResponse", "create_client"]
