from uuid import uuid4

import pytest

from src.repurposing.domain.models.derivative import DerivativeStatus
from src.repurposing.domain.models.source_content import MediaType
from src.repurposing.errors import Conflict, NotFound, ValidationError
from src.repurposing.services.derivatives.generator import DerivativeGenerator, derivative_generator
from src.repurposing.services.derivatives.templates import template_service
from src.repurposing.services.metrics.service import metrics_service
from src.repurposing.services.sources.service import source_service
from tests.repurposing.helpers import SERMON_TEXT, FlakyBackend, make_text_source


def test_all_eight_builtin_templates_are_seeded_active():
    assert set(template_service.active_types()) == {
        "blog_post",
        "social_quote",
        "thread_summary",
        "study_guide",
        "newsletter_excerpt",
        "audio_transcription",
        "video_clip_meta",
        "quote_graphic",
    }
    assert all(t.usage_count == 0 for t in template_service.list())


def test_generate_batch_creates_one_derivative_per_type():
    source = make_text_source()

    result = derivative_generator.generate_batch(source.id, ["blog_post", "social_quote"])

    assert result.success is True
    assert [r.derivative_type for r in result.results] == ["blog_post", "social_quote"]
    derivative = derivative_generator.get(result.results[0].derivative_id)
    assert derivative.body == SERMON_TEXT
    assert derivative.word_count == len(SERMON_TEXT.split())
    assert derivative.format == "markdown"
    assert derivative.status == DerivativeStatus.DRAFT
    assert derivative.title == "Romans 8: Life in the Spirit: Blog Post"
    assert metrics_service.for_day().derivatives_generated == 2


def test_partial_failure_reports_each_type():
    source = make_text_source()

    result = derivative_generator.generate_batch(source.id, ["blog_post", "interpretive_dance"])

    assert result.success is False
    ok, failed = result.results
    assert ok.success is True and ok.derivative_id is not None
    assert failed.success is False
    assert failed.error == "No active template for derivative type: interpretive_dance"


def test_backend_error_fails_only_that_type():
    source = make_text_source()
    generator = DerivativeGenerator(backend=FlakyBackend("Extract 5-8"))

    result = generator.generate_batch(source.id, ["blog_post", "social_quote", "study_guide"])

    assert [r.success for r in result.results] == [True, False, True]
    assert "model overloaded" in result.results[1].error
    assert generator.get(result.results[0].derivative_id).ai_model == "test-model"


def test_source_without_text_fails_every_type():
    source = source_service.register(
        content_id="src-audio",
        title="Audio only",
        content_type="teaching",
        media_type=MediaType.AUDIO,
    )

    result = derivative_generator.generate_batch(source.id, ["blog_post"])

    assert result.success is False
    assert "No text available" in result.results[0].error


def test_generate_batch_for_unknown_source_raises():
    with pytest.raises(NotFound):
        derivative_generator.generate_batch(uuid4(), ["blog_post"])


def test_update_body_recomputes_word_count():
    source = make_text_source()
    derivative_id = derivative_generator.generate_batch(source.id, ["blog_post"]).results[0].derivative_id

    updated = derivative_generator.update_derivative(derivative_id, body="just three words")

    assert updated.word_count == 3
    assert derivative_generator.get(derivative_id).word_count == 3

    with pytest.raises(ValidationError):
        derivative_generator.update_derivative(derivative_id, body="   ")


def test_send_to_distribution_only_once():
    source = make_text_source()
    derivative_id = derivative_generator.generate_batch(source.id, ["quote_graphic"]).results[0].derivative_id

    sent = derivative_generator.send_to_distribution(derivative_id)
    assert sent.sent_to_distribution is True
    assert sent.distributed_at is not None
    assert sent.status == DerivativeStatus.SENT_TO_DISTRIBUTION

    with pytest.raises(Conflict):
        derivative_generator.send_to_distribution(derivative_id)
    assert metrics_service.for_day().sent_to_distribution == 1


def test_generation_counts_template_usage():
    source = make_text_source()

    derivative_generator.generate_batch(source.id, ["blog_post"])
    derivative_generator.generate_batch(source.id, ["blog_post", "social_quote"])

    assert template_service.active_for("blog_post").usage_count == 2
    assert template_service.active_for("social_quote").usage_count == 1
    assert template_service.active_for("study_guide").usage_count == 0


def test_deactivated_template_type_is_no_longer_generated():
    source = make_text_source()
    template = template_service.active_for("quote_graphic")
    template_service.update(template.id, is_active=False)

    result = derivative_generator.generate_batch(source.id, ["quote_graphic"])

    assert result.success is False
    assert result.results[0].error == "No active template for derivative type: quote_graphic"
    assert "quote_graphic" not in template_service.active_types()
    # Defaults follow the registry.
    default_run = derivative_generator.generate_batch(source.id)
    assert len(default_run.results) == 7


def test_newest_active_template_drives_generation():
    source = make_text_source()
    template_service.create(
        name="Short blog",
        derivative_type="blog_post",
        system_prompt="Write briefly.",
        user_prompt_template="SHORT-BLOG {title}",
        output_format="html",
    )

    result = derivative_generator.generate_batch(source.id, ["blog_post"])

    derivative = derivative_generator.get(result.results[0].derivative_id)
    assert derivative.format == "html"
    assert template_service.active_for("blog_post").name == "Short blog"


def test_custom_type_with_template_can_be_generated():
    source = make_text_source()
    template_service.create(
        name="Devotional",
        derivative_type="devotional",
        system_prompt="Write a devotional.",
        user_prompt_template="Devotional from {title}:\n{transcription}",
    )
    generator = DerivativeGenerator(backend=FlakyBackend("never-matches"))

    result = generator.generate_batch(source.id, ["devotional"])

    assert result.success is True
    assert generator.get(result.results[0].derivative_id).title == "Romans 8: Life in the Spirit: Devotional"
