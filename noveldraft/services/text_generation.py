"""Text-generation backends used by the step executor."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol

import openai

from .errors import (
    ContentValidationFailure,
    GeneratorConfigurationError,
    RateLimited,
    TransientServerError,
)
from .settings import GenerationSettings

LOGGER = logging.getLogger(__name__)


class TextGenerator(Protocol):
    def generate(self, prompt: str, *, max_tokens: int, temperature: float) -> str:
        ...


class OpenAIChatGenerator:
    """
    Wrapper that selects between the Responses and Chat Completions APIs
    depending on the model name.

    - GPT-5 / o3 / o4 / 4.1(x) → Responses API
    - GPT-4 / 4o / 3.5 → Chat Completions API

    SDK exceptions are translated into the retryable or fatal step errors the
    orchestrator understands.
    """

    RESPONSES_PREFIXES = ("gpt-5", "o3", "o4", "gpt-4.1", "gpt-4o-reasoning")

    def __init__(self, settings: GenerationSettings, client: Any = None) -> None:
        self.model_name = settings.model
        self.settings = settings
        if client is None:
            if not settings.api_key:
                raise GeneratorConfigurationError("OPENAI_API_KEY is not configured.")
            client = openai.OpenAI(
                api_key=settings.api_key,
                timeout=settings.request_timeout,
                # Retries are owned by the orchestrator.
                max_retries=0,
            )
        self._client = client

    # ---------------- heuristics ----------------
    def uses_responses_api(self) -> bool:
        return self.model_name.lower().startswith(self.RESPONSES_PREFIXES)

    def signature(self) -> str:
        # Never expose the key itself
        key = self.settings.api_key
        redacted = (key[:4] + "…" + key[-4:]) if key else ""
        return f"{self.model_name} ({redacted or 'injected client'})"

    # ---------------- public API ----------------
    def generate(self, prompt: str, *, max_tokens: int, temperature: float) -> str:
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValueError("prompt must be a non-empty string.")
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive.")

        try:
            if self.uses_responses_api():
                text = self._call_responses(prompt, max_tokens, temperature)
            else:
                text = self._call_chat(prompt, max_tokens, temperature)
        except openai.RateLimitError as exc:
            raise RateLimited(f"Rate limited by the model provider: {exc}") from exc
        except (
            openai.AuthenticationError,
            openai.PermissionDeniedError,
            openai.NotFoundError,
            openai.BadRequestError,
        ) as exc:
            raise GeneratorConfigurationError(f"Model provider rejected the request: {exc}") from exc
        except openai.APIStatusError as exc:
            if exc.status_code >= 500:
                raise TransientServerError(f"Model provider error ({exc.status_code}): {exc}") from exc
            raise GeneratorConfigurationError(
                f"Model provider rejected the request ({exc.status_code}): {exc}"
            ) from exc
        except openai.APIConnectionError as exc:
            # Covers APITimeoutError as well.
            raise TransientServerError(f"Could not reach the model provider: {exc}") from exc

        text = (text or "").strip()
        if not text:
            raise ContentValidationFailure("The model returned no text.")
        return text

    # ---------------- internal callers ----------------
    def _call_responses(self, prompt: str, max_tokens: int, temperature: float) -> str:
        """
        Use the Responses API for GPT-5 / o3 / o4 / 4.1 families.
        Reasoning models reject sampling parameters, so temperature is not sent.
        """
        resp = self._client.responses.create(
            model=self.model_name,
            input=prompt,
            max_output_tokens=max_tokens,
            tool_choice="none",
            reasoning={"effort": "low"},
        )
        text = getattr(resp, "output_text", None) or self._collect_output_text(resp)
        if not text:
            status = getattr(resp, "status", None)
            reason = getattr(getattr(resp, "incomplete_details", None), "reason", None)
            if status == "incomplete":
                LOGGER.warning("Responses call for %s stopped early (%s).", self.model_name, reason)
        return text or ""

    def _call_chat(self, prompt: str, max_tokens: int, temperature: float) -> str:
        resp = self._client.chat.completions.create(
            model=self.model_name,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=float(temperature),
            n=1,
        )
        return self._extract_text_from_chat(resp)

    # ---------------- extractors ----------------
    @staticmethod
    def _extract_text_from_chat(resp: Any) -> str:
        choices = getattr(resp, "choices", []) or []
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        if isinstance(message, dict):
            content = message.get("content")
        else:
            content = getattr(message, "content", None)
        if isinstance(content, list):
            parts = [
                str(part.get("text") or "")
                for part in content
                if isinstance(part, dict) and part.get("type") == "text"
            ]
            return "\n".join(part for part in parts if part)
        return str(content or "")

    @staticmethod
    def _collect_output_text(resp: Any) -> str:
        bucket: List[str] = []
        for item in getattr(resp, "output", None) or []:
            for block in getattr(item, "content", None) or []:
                text = getattr(block, "text", None)
                if isinstance(text, str) and text.strip():
                    bucket.append(text.strip())
        return "\n".join(bucket)


class UnavailableGenerator:
    """Stands in when no backend could be configured; every call fails fatally."""

    def __init__(self, reason: str) -> None:
        self.reason = reason

    def generate(self, prompt: str, *, max_tokens: int, temperature: float) -> str:
        raise GeneratorConfigurationError(self.reason)


def build_text_generator(settings: GenerationSettings, client: Optional[Any] = None) -> TextGenerator:
    """Return the configured generator or raise ``GeneratorConfigurationError``."""

    generator = OpenAIChatGenerator(settings, client=client)
    LOGGER.info("Using text generator %s", generator.signature())
    return generator


__all__ = ["OpenAIChatGenerator", "TextGenerator", "UnavailableGenerator", "build_text_generator"]
