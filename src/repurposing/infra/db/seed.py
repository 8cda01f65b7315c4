from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List
from uuid import uuid4

from src.repurposing.domain.models.language import LanguageConfig
from src.repurposing.domain.models.template import DerivativeTemplate
from src.repurposing.infra.db.repositories import DerivativeTemplateRepository, LanguageConfigRepository

logger = logging.getLogger("pipeline.seed")

BUILTIN_LANGUAGES: List[Dict[str, Any]] = [
    {"code": "hi", "name": "Hindi", "native_name": "हिन्दी", "priority": 1, "has_local_reviewer": True},
    {"code": "bn", "name": "Bengali", "native_name": "বাংলা", "priority": 2},
    {"code": "mai", "name": "Maithili", "native_name": "मैथिली", "priority": 3},
]

BUILTIN_TEMPLATES: List[Dict[str, Any]] = [
    dict(
        derivative_type="blog_post",
        name="Blog Post Generator",
        description="Long-form blog article from a sermon or teaching transcription",
        system_prompt=(
            "You are a skilled Christian writer creating blog posts from sermon transcriptions. "
            "Write in an engaging, accessible style that preserves the theological depth and pastoral "
            "heart of the original message. Include Scripture references. Use headers and paragraphs "
            "for readability."
        ),
        user_prompt_template=(
            "Transform this sermon/teaching transcription into a compelling blog post (800-1200 words):\n\n"
            "Title: {title}\nContent Type: {contentType}\n\nTranscription:\n{transcription}"
        ),
        max_tokens=2048,
        output_format="markdown",
    ),
    dict(
        derivative_type="social_quote",
        name="Social Media Quote Extractor",
        description="Five to eight shareable quotes",
        system_prompt=(
            "You are extracting powerful, shareable quotes from Christian content. Each quote should be "
            "1-3 sentences, stand alone without context, and be spiritually impactful. Include the "
            "Scripture reference if applicable. Format as a numbered list."
        ),
        user_prompt_template="Extract 5-8 powerful, shareable quotes from this content:\n\nTitle: {title}\n\n{transcription}",
        max_tokens=1024,
    ),
    dict(
        derivative_type="thread_summary",
        name="Thread Summary Creator",
        description="Multi-part thread summary",
        system_prompt=(
            "You are creating a thread-style summary of Christian teaching content. Write 8-12 numbered "
            "posts (each under 280 characters). Start with a hook. End with a call to action or "
            "reflection. Include key Scripture references."
        ),
        user_prompt_template=(
            "Create a thread summary (8-12 parts, each under 280 characters) from:\n\nTitle: {title}\n\n{transcription}"
        ),
        max_tokens=1024,
    ),
    dict(
        derivative_type="study_guide",
        name="Study Guide Builder",
        description="Study questions and reflection points",
        system_prompt=(
            "You are creating a Bible study guide from a sermon/teaching. Include key Scripture "
            "passages, 5-7 discussion questions, personal reflection prompts, prayer points and "
            "application challenges. Format clearly with headers."
        ),
        user_prompt_template="Create a study guide from this teaching:\n\nTitle: {title}\nContent Type: {contentType}\n\n{transcription}",
        max_tokens=1536,
        output_format="markdown",
    ),
    dict(
        derivative_type="newsletter_excerpt",
        name="Newsletter Excerpt Writer",
        description="Condensed newsletter-friendly summary",
        system_prompt=(
            "You are writing a concise newsletter excerpt from Christian content. Keep it to 150-250 "
            "words. Include the main takeaway, one key Scripture, and a compelling reason to engage "
            "with the full content. Warm, conversational tone."
        ),
        user_prompt_template="Write a newsletter excerpt (150-250 words) from:\n\nTitle: {title}\n\n{transcription}",
        max_tokens=512,
    ),
    dict(
        derivative_type="audio_transcription",
        name="Audio Transcription Cleaner",
        description="Raw transcription cleaned up for reading",
        system_prompt=(
            "You are cleaning a raw speech-to-text transcription for readability. Fix punctuation, add "
            "paragraph breaks at natural topic transitions, remove filler words, but preserve the "
            "speaker's voice and style. Do not add or change content."
        ),
        user_prompt_template="Clean and format this raw transcription for readability:\n\nTitle: {title}\n\n{transcription}",
        max_tokens=4096,
    ),
    dict(
        derivative_type="video_clip_meta",
        name="Video Clip Marker",
        description="Key moments for short video clips",
        system_prompt=(
            "You are analyzing a sermon/teaching transcription to identify 3-5 key moments that would "
            "make excellent short video clips (30-90 seconds each). For each clip, provide: title, start "
            "timestamp estimate, end timestamp estimate, why this segment is impactful, and a suggested caption."
        ),
        user_prompt_template=(
            "Identify 3-5 key video clip moments from this content (total duration: {duration} seconds):\n\n"
            "Title: {title}\n\n{transcription}"
        ),
        max_tokens=1024,
    ),
    dict(
        derivative_type="quote_graphic",
        name="Quote Graphic Text",
        description="Single strongest quote for an image overlay",
        system_prompt=(
            "You are selecting the single most visually powerful quote from Christian content for a quote "
            "graphic image. Choose a quote that is under 25 words, spiritually impactful and visually "
            "balanced for an image overlay. Return ONLY the quote text and the Scripture reference if applicable."
        ),
        user_prompt_template=(
            "Select the single most powerful quote (under 25 words) for a quote graphic from:\n\nTitle: {title}\n\n{transcription}"
        ),
        max_tokens=256,
    ),
]


def seed_reference_data(templates: DerivativeTemplateRepository, languages: LanguageConfigRepository) -> None:
    """Insert the built-in templates and languages that are not there yet.

    Safe to run on every start: a derivative type that already has any
    template, or a language code that already exists, is left alone.
    """

    now = datetime.now(timezone.utc)
    known_types = {template.derivative_type for template in templates.list()}
    added_templates = 0
    for entry in BUILTIN_TEMPLATES:
        if entry["derivative_type"] in known_types:
            continue
        templates.add(DerivativeTemplate(id=uuid4(), created_at=now, updated_at=now, **entry))
        added_templates += 1

    added_languages = 0
    for entry in BUILTIN_LANGUAGES:
        if languages.get_by_code(entry["code"]) is not None:
            continue
        languages.add(LanguageConfig(id=uuid4(), created_at=now, updated_at=now, **entry))
        added_languages += 1

    if added_templates or added_languages:
        logger.info("Seeded %d templates and %d languages", added_templates, added_languages)
