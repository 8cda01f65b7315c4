from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from src.repurposing.config import settings


@dataclass
class GeneratedText:
    body: str
    is_ai_generated: bool
    ai_model: Optional[str] = None


class GenerationBackend(Protocol):
    """Protocol for derivative text generation backends."""

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        source_text: str,
    ) -> GeneratedText:  # pragma: no cover - interface
        raise NotImplementedError


class DemoGenerationBackend:
    """Deterministic generation backend used for tests and local development.

    Returns an excerpt of the source text so derivatives have realistic
    bodies without calling an external model.
    """

    def __init__(self, excerpt_chars: int = 1000) -> None:
        self._excerpt_chars = excerpt_chars

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        source_text: str,
    ) -> GeneratedText:
        return GeneratedText(body=source_text[: self._excerpt_chars].strip(), is_ai_generated=False)


class LLMGenerationBackend:
    """Generation backend that uses an LLM via the OpenAI Python client.

    Expects OPENAI_API_KEY to be set and uses the model name from LLM_MODEL.
    """

    def __init__(self, model: str | None = None) -> None:
        self._model = model or settings.llm_model

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        source_text: str,
    ) -> GeneratedText:  # pragma: no cover - external service
        api_key = settings.openai_api_key
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY must be set to use LLMGenerationBackend")

        try:
            from openai import OpenAI
        except ImportError as exc:
            raise RuntimeError(
                "LLMGenerationBackend requires the 'openai' package. Install it with 'pip install openai'"
            ) from exc

        client = OpenAI(api_key=api_key)
        response = client.responses.create(
            model=self._model,
            instructions=system_prompt,
            input=[{"role": "user", "content": user_prompt}],
            max_output_tokens=max_tokens,
        )
        for output in response.output:
            for item in getattr(output, "content", None) or []:
                if item.type == "output_text" and item.text and item.text.strip():
                    return GeneratedText(body=item.text.strip(), is_ai_generated=True, ai_model=self._model)
        raise RuntimeError("LLM returned no text output")


demo_generation_backend = DemoGenerationBackend()


def get_generation_backend_from_env() -> GenerationBackend:
    """Select a generation backend based on GENERATION_BACKEND.

    - GENERATION_BACKEND=llm → LLMGenerationBackend
    - Anything else (or unset) → DemoGenerationBackend
    """

    backend_name = settings.generation_backend.lower()
    if backend_name == "llm":
        return LLMGenerationBackend()
    return demo_generation_backend
