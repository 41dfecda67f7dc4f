from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from .config import Settings
from .errors import CompletionError

logger = logging.getLogger("support_bot.gemini")

ROLE_MAP = {"user": "user", "assistant": "model"}


class GeminiClient:
    """Thin wrapper around the Gemini SDK with model caching and a bounded request timeout."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the Gemini SDK and initialize model cache.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Configures SDK global API key.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: Raises ValueError if API key or model name is missing.
        If Removed: Chat turns cannot reach the completion service.
        Testing Notes: Validate missing key raises ValueError.
        """
        # Configure API key and remember the default model.
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        self._default_model = _normalize_model_name(settings.gemini_model)
        if not self._default_model:
            raise ValueError("Gemini model name is required")
        self._timeout = settings.completion_timeout_sec
        genai.configure(api_key=settings.gemini_api_key)
        self._models: Dict[Tuple[str, str], genai.GenerativeModel] = {}

    def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        temperature: float = 0.7,
        max_output_tokens: int = 1024,
        model: Optional[str] = None,
    ) -> str:
        """Purpose: Run one chat completion over a role/content message list.
        Inputs/Outputs: Input is [{"role", "content"}, ...] with an optional leading system
            message; returns the model text unmodified.
        Side Effects / State: One remote call; may add a model to the internal cache.
        Dependencies: Uses genai.GenerativeModel.generate_content and _to_contents.
        Failure Modes: Transport errors, deadline expiry, blocked or empty responses all
            raise CompletionError with a readable reason.
        If Removed: The orchestrator has no completion service to call.
        Testing Notes: Stub generate_content to return text, raise, or return empty.
        """
        # Split the system instruction out, then map roles to Gemini contents.
        system_instruction, contents = _to_contents(messages)
        model_name = _normalize_model_name(model) if model else self._default_model
        generative_model = self._get_model(model_name, system_instruction)

        try:
            response = generative_model.generate_content(
                contents,
                generation_config={
                    "temperature": temperature,
                    "max_output_tokens": max_output_tokens,
                },
                request_options={"timeout": self._timeout},
            )
        except google_exceptions.GoogleAPIError as exc:
            logger.error("completion model=%s failed: %s", model_name, exc)
            raise CompletionError(f"Completion service error: {exc}") from exc

        try:
            text: Optional[str] = response.text
        except ValueError as exc:
            # Raised by the SDK when the candidate has no text parts (blocked/empty).
            logger.error("completion model=%s returned no text: %s", model_name, exc)
            raise CompletionError("No response from completion service") from exc
        if not text:
            raise CompletionError("No response from completion service")
        return text

    def _get_model(self, model_name: str, system_instruction: str) -> genai.GenerativeModel:
        key = (model_name, system_instruction)
        if key not in self._models:
            self._models[key] = genai.GenerativeModel(
                model_name,
                system_instruction=system_instruction or None,
            )
        return self._models[key]


def _normalize_model_name(name: Optional[str]) -> str:
    """Strip a "models/" prefix and whitespace; empty input yields an empty string."""
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned


def _to_contents(messages: Sequence[Mapping[str, str]]) -> Tuple[str, List[dict]]:
    """Purpose: Convert role/content messages into Gemini system instruction + contents.
    Inputs/Outputs: Input is a message list; output is (system_instruction, contents).
    Side Effects / State: None.
    Dependencies: Uses ROLE_MAP; used by GeminiClient.complete.
    Failure Modes: Unknown roles raise CompletionError; extra system messages are
        appended to the instruction.
    If Removed: Conversation history cannot be sent in Gemini's format.
    Testing Notes: Verify assistant turns become "model" and system text is lifted out.
    """
    system_parts: List[str] = []
    contents: List[dict] = []
    for message in messages:
        role = message.get("role", "")
        text = message.get("content", "")
        if role == "system":
            system_parts.append(text)
            continue
        if role not in ROLE_MAP:
            raise CompletionError(f"Unsupported message role: {role}")
        contents.append({"role": ROLE_MAP[role], "parts": [{"text": text}]})
    return "\n\n".join(system_parts), contents
