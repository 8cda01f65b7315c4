from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.repurposing.domain.models.derivative import Derivative, DerivativeStatus
from src.repurposing.domain.models.source_content import SourceContent
from src.repurposing.errors import Conflict, InvalidTransition, NotFound, ValidationError
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.services.audit.service import audit_service
from src.repurposing.services.derivatives.backends import GenerationBackend, get_generation_backend_from_env
from src.repurposing.services.derivatives.templates import template_service
from src.repurposing.services.metrics.service import metrics_service

logger = logging.getLogger("pipeline.derivatives")


class DerivativeResult(BaseModel):
    derivative_type: str
    success: bool
    derivative_id: Optional[UUID] = None
    content_id: Optional[str] = None
    error: Optional[str] = None


class BatchGenerationResult(BaseModel):
    success: bool
    results: List[DerivativeResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> List[DerivativeResult]:
        return [result for result in self.results if result.success]


def format_derivative_type(derivative_type: str) -> str:
    return " ".join(word.capitalize() for word in derivative_type.split("_"))


class DerivativeGenerator:
    """Turns a source content unit into derivative artifacts.

    Every requested type is attempted on its own; failures are reported per
    type in the result instead of being raised.
    """

    def __init__(self, *, backend: Optional[GenerationBackend] = None) -> None:
        self._backend = backend

    @property
    def backend(self) -> GenerationBackend:
        # Resolved lazily so GENERATION_BACKEND changes made in tests apply.
        return self._backend or get_generation_backend_from_env()

    def generate_batch(
        self,
        source_content_id: UUID,
        derivative_types: Optional[Iterable[str]] = None,
    ) -> BatchGenerationResult:
        source = repos.source_content_repository.get(source_content_id)
        if source is None:
            raise NotFound(f"Source content {source_content_id} not found")

        types = list(derivative_types) if derivative_types else template_service.active_types()
        results = [self._generate_one(source, derivative_type) for derivative_type in types]
        outcome = BatchGenerationResult(success=all(r.success for r in results), results=results)

        logger.info(
            "Generated %d/%d derivatives for source %s",
            len(outcome.succeeded),
            len(results),
            source.id,
        )
        return outcome

    def _generate_one(self, source: SourceContent, derivative_type: str) -> DerivativeResult:
        template = template_service.active_for(derivative_type)
        if template is None:
            return DerivativeResult(
                derivative_type=derivative_type,
                success=False,
                error=f"No active template for derivative type: {derivative_type}",
            )

        source_text = source.transcription if source.transcription and source.transcription.strip() else None
        if source_text is None:
            return DerivativeResult(
                derivative_type=derivative_type,
                success=False,
                error="No text available for generation (no transcription or body)",
            )

        try:
            generated = self.backend.generate(
                system_prompt=template.system_prompt,
                user_prompt=template.render(source, source_text),
                max_tokens=template.max_tokens,
                source_text=source_text,
            )
        except Exception as exc:
            logger.exception("Generation of %s for source %s failed", derivative_type, source.id)
            return DerivativeResult(derivative_type=derivative_type, success=False, error=f"Generation failed: {exc}")

        if not generated.body.strip():
            return DerivativeResult(derivative_type=derivative_type, success=False, error="Generation returned no text")

        now = datetime.now(timezone.utc)
        derivative = Derivative(
            id=uuid4(),
            content_id=f"deriv-{derivative_type}-{uuid4().hex[:12]}",
            source_content_id=source.id,
            derivative_type=derivative_type,
            title=f"{source.title}: {format_derivative_type(derivative_type)}",
            body=generated.body,
            language=source.language,
            format=template.output_format,
            is_ai_generated=generated.is_ai_generated,
            ai_model=generated.ai_model,
            status=DerivativeStatus.DRAFT,
            created_at=now,
            updated_at=now,
        )
        repos.derivative_repository.add(derivative)
        template_service.record_usage(template)
        metrics_service.record("derivatives_generated")
        audit_service.log_event(
            action="generate",
            resource_type="derivative",
            resource_id=str(derivative.id),
            extra={"derivative_type": derivative_type, "word_count": derivative.word_count},
        )
        return DerivativeResult(
            derivative_type=derivative_type,
            success=True,
            derivative_id=derivative.id,
            content_id=derivative.content_id,
        )

    def get(self, derivative_id: UUID) -> Derivative:
        derivative = repos.derivative_repository.get(derivative_id)
        if derivative is None:
            raise NotFound(f"Derivative {derivative_id} not found")
        return derivative

    def update_derivative(
        self,
        derivative_id: UUID,
        *,
        title: Optional[str] = None,
        body: Optional[str] = None,
        status: Optional[DerivativeStatus] = None,
    ) -> Derivative:
        derivative = self.get(derivative_id)

        if body is not None and not body.strip():
            raise ValidationError("body must not be empty")
        if title is not None and not title.strip():
            raise ValidationError("title must not be empty")
        if status == DerivativeStatus.SENT_TO_DISTRIBUTION:
            raise ValidationError("Use send-to-distribution to distribute a derivative")
        if status is not None and derivative.sent_to_distribution:
            raise InvalidTransition("Derivative has already been sent to distribution")

        if title is not None:
            derivative.title = title
        if body is not None:
            # word_count is computed from body.
            derivative.body = body
        if status is not None:
            derivative.status = status
        derivative.updated_at = datetime.now(timezone.utc)
        repos.derivative_repository.save(derivative)

        audit_service.log_event(
            action="update",
            resource_type="derivative",
            resource_id=str(derivative.id),
            extra={"status": derivative.status.value, "word_count": derivative.word_count},
        )
        return derivative

    def send_to_distribution(self, derivative_id: UUID) -> Derivative:
        derivative = self.get(derivative_id)
        if derivative.sent_to_distribution:
            raise Conflict("Derivative has already been sent to distribution")

        now = datetime.now(timezone.utc)
        derivative.sent_to_distribution = True
        derivative.distributed_at = now
        derivative.status = DerivativeStatus.SENT_TO_DISTRIBUTION
        derivative.updated_at = now
        repos.derivative_repository.save(derivative)

        metrics_service.record("sent_to_distribution")
        audit_service.log_event(action="distribute", resource_type="derivative", resource_id=str(derivative.id))
        return derivative


derivative_generator = DerivativeGenerator()
