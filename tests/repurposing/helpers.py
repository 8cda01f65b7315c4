from src.repurposing.domain.models.processing_job import JobStatus, ProcessingJob
from src.repurposing.domain.models.source_content import MediaType, SourceContent
from src.repurposing.services.derivatives.backends import GeneratedText
from src.repurposing.services.sources.service import source_service

WEBHOOK_KEY = "test-webhook-key"

SERMON_TEXT = (
    "Good morning, church family. Today we are going to explore Romans chapter 8, one of the most "
    "powerful passages in all of Scripture. Paul writes that there is now no condemnation for those "
    "who are in Christ Jesus. This is the foundation of our freedom."
)


def make_text_source(content_id: str = "src-romans8", text: str = SERMON_TEXT) -> SourceContent:
    return source_service.register(
        content_id=content_id,
        title="Romans 8: Life in the Spirit",
        content_type="sermon",
        media_type=MediaType.TEXT,
        transcription=text,
    )


def assert_completion_invariant(job: ProcessingJob) -> None:
    if job.status in (JobStatus.COMPLETED, JobStatus.FAILED):
        assert job.completed_at is not None
    else:
        assert job.completed_at is None


class FlakyBackend:
    """Generation backend that fails for prompts containing a fragment."""

    def __init__(self, failing_prompt_fragment: str) -> None:
        self._fragment = failing_prompt_fragment

    def generate(self, *, system_prompt, user_prompt, max_tokens, source_text):
        if self._fragment in user_prompt:
            raise RuntimeError("model overloaded")
        return GeneratedText(body="one two three four", is_ai_generated=True, ai_model="test-model")
