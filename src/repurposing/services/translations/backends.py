from __future__ import annotations

from typing import Optional, Protocol

from src.repurposing.config import settings
from src.repurposing.services.languages.service import language_service


def language_name(code: str) -> str:
    """Registered display name of a language code, else the code upper-cased."""

    return language_service.display_name(code)


class TranslationBackend(Protocol):
    """Anything that can turn derivative text into another language.

    ``model_name`` is ``None`` for backends that do not call a model; the
    review engine uses it to flag machine-generated drafts.
    """

    model_name: Optional[str]

    def translate(self, text: str, target_language: str, source_language: Optional[str] = None) -> str:
        ...


class DemoTranslationBackend:
    """Marks text as translated without changing it.

    The body comes back prefixed with ``[src→dst]`` so drafts stay readable
    in local runs and tests.
    """

    model_name: Optional[str] = None

    def translate(self, text: str, target_language: str, source_language: Optional[str] = None) -> str:
        return f"[{source_language or '??'}→{target_language}] {text}"


def _translation_instructions(source_language: Optional[str], target_language: str) -> str:
    from_name = language_name(source_language) if source_language else "the source language"
    to_name = language_name(target_language)
    return (
        f"You are a translator for a Christian ministry. Translate the following content from {from_name} "
        f"to {to_name}. Maintain the original tone, meaning, and all spiritual and biblical references. "
        "Preserve formatting (headers, line breaks, bullet points, numbered lists). Use theological "
        f"terminology familiar to {to_name}-speaking believers. Return ONLY the translated text."
    )


class LLMTranslationBackend:
    """Machine translation through the OpenAI Responses API (model from LLM_MODEL)."""

    def __init__(self, model: Optional[str] = None) -> None:
        self.model_name = model or settings.llm_model

    def translate(
        self, text: str, target_language: str, source_language: Optional[str] = None
    ) -> str:  # pragma: no cover - calls the OpenAI API
        if not settings.openai_api_key:
            raise RuntimeError("TRANSLATION_BACKEND=llm needs OPENAI_API_KEY")
        try:
            from openai import OpenAI
        except ImportError as exc:
            raise RuntimeError("TRANSLATION_BACKEND=llm needs the 'openai' package (pip install '.[llm]')") from exc

        response = OpenAI(api_key=settings.openai_api_key).responses.create(
            model=self.model_name,
            instructions=_translation_instructions(source_language, target_language),
            input=[{"role": "user", "content": text}],
        )
        translated = (response.output_text or "").strip()
        if not translated:
            raise RuntimeError(f"{self.model_name} returned an empty translation")
        return translated


_demo_backend = DemoTranslationBackend()


def get_translation_backend_from_env() -> TranslationBackend:
    """``llm`` selects :class:`LLMTranslationBackend`; any other value gets the demo backend."""

    if settings.translation_backend.lower() == "llm":
        return LLMTranslationBackend()
    return _demo_backend
