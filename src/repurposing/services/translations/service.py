from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.repurposing.domain.models.translation import (
    FINAL_REVIEW_PASS,
    ReviewAction,
    Translation,
    TranslationStatus,
)
from src.repurposing.domain.models.translator_user import TranslatorUser
from src.repurposing.errors import AlreadyApproved, InvalidTransition, NotFound, PortalClosed, ValidationError
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.services.audit.service import audit_service
from src.repurposing.services.languages.service import language_service
from src.repurposing.services.metrics.service import metrics_service
from src.repurposing.services.translations.backends import (
    TranslationBackend,
    get_translation_backend_from_env,
    language_name,
)

logger = logging.getLogger("pipeline.translations")

ANONYMOUS_EDITOR = "anonymous"


class TranslationResult(BaseModel):
    target_language: str
    success: bool
    created: bool = False
    translation_id: Optional[UUID] = None
    content_id: Optional[str] = None
    error: Optional[str] = None


class MultiTranslationResult(BaseModel):
    success: bool
    results: List[TranslationResult] = Field(default_factory=list)


def _prepend_note(existing: Optional[str], note: str) -> str:
    if not existing:
        return note
    return f"{note}\n\n{existing}"


def _note(label: str, actor: Optional[str], text: Optional[str]) -> str:
    header = f"[{label} by {actor}]" if actor else f"[{label}]"
    text = (text or "").strip()
    return f"{header} {text}" if text else header


class TranslationReviewEngine:
    """Machine translation plus the three-pass human review workflow.

    ``review_pass`` goes 0 (machine draft) → 1 → 2 → 3 (approved) and only
    the approve action moves it. Approved translations are immutable: every
    further action is rejected with :class:`AlreadyApproved`.
    """

    def __init__(self, *, backend: Optional[TranslationBackend] = None) -> None:
        self._backend = backend

    @property
    def backend(self) -> TranslationBackend:
        return self._backend or get_translation_backend_from_env()

    def get(self, translation_id: UUID) -> Translation:
        translation = repos.translation_repository.get(translation_id)
        if translation is None:
            raise NotFound(f"Translation {translation_id} not found")
        return translation

    def list_for_derivative(self, derivative_id: UUID) -> List[Translation]:
        return list(repos.translation_repository.list_by_derivatives([derivative_id]))

    # -- machine translation -------------------------------------------------

    def translate_derivative(self, derivative_id: UUID, target_language: str) -> TranslationResult:
        derivative = repos.derivative_repository.get(derivative_id)
        if derivative is None:
            raise NotFound(f"Derivative {derivative_id} not found")

        target_language = target_language.strip()
        if not target_language:
            raise ValidationError("targetLanguage is required")
        if derivative.language == target_language:
            return TranslationResult(
                target_language=target_language,
                success=False,
                error="Source and target language are the same",
            )

        existing = repos.translation_repository.find_for_derivative(derivative.id, target_language)
        if existing is not None:
            return TranslationResult(
                target_language=target_language,
                success=True,
                translation_id=existing.id,
                content_id=existing.content_id,
            )

        backend = self.backend
        try:
            body = backend.translate(derivative.body, target_language, source_language=derivative.language)
        except Exception as exc:
            logger.exception("Translation of derivative %s to %s failed", derivative.id, target_language)
            return TranslationResult(target_language=target_language, success=False, error=f"Translation failed: {exc}")

        now = datetime.now(timezone.utc)
        translation = Translation(
            id=uuid4(),
            content_id=f"trans-{uuid4().hex[:12]}",
            derivative_id=derivative.id,
            source_language=derivative.language,
            target_language=target_language,
            title=f"{derivative.title} ({language_name(target_language)})",
            body=body,
            status=TranslationStatus.DRAFT,
            review_pass=0,
            is_ai_generated=backend.model_name is not None,
            created_at=now,
            updated_at=now,
        )
        repos.translation_repository.add(translation)
        language_service.record_translation(target_language)
        audit_service.log_event(
            action="translate",
            resource_type="translation",
            resource_id=str(translation.id),
            extra={"derivative_id": str(derivative.id), "target_language": target_language},
        )
        return TranslationResult(
            target_language=target_language,
            success=True,
            created=True,
            translation_id=translation.id,
            content_id=translation.content_id,
        )

    def translate_to_languages(self, derivative_id: UUID, languages: Iterable[str]) -> MultiTranslationResult:
        results = [self.translate_derivative(derivative_id, language) for language in languages]
        return MultiTranslationResult(success=all(r.success for r in results), results=results)

    def translate_to_active_languages(self, derivative_id: UUID) -> MultiTranslationResult:
        """Translate into every active registry language except the derivative's own."""

        derivative = repos.derivative_repository.get(derivative_id)
        if derivative is None:
            raise NotFound(f"Derivative {derivative_id} not found")
        languages = [code for code in language_service.active_codes() if code != derivative.language]
        return self.translate_to_languages(derivative_id, languages)

    # -- review workflow -----------------------------------------------------

    def submit_review(
        self,
        translation_id: UUID,
        action: Union[str, ReviewAction],
        *,
        reviewer_notes: Optional[str] = None,
        edited_body: Optional[str] = None,
        reviewer: Optional[str] = None,
    ) -> Translation:
        try:
            action = ReviewAction(action)
        except ValueError:
            raise ValidationError(f"Invalid action '{action}'. Must be one of: approve, reject, edit") from None

        translation = self.get(translation_id)
        self._ensure_not_approved(translation)

        if action == ReviewAction.APPROVE:
            return self._approve(translation, reviewer_notes=reviewer_notes, reviewer=reviewer)
        if action == ReviewAction.REJECT:
            return self._reject(translation, reviewer_notes=reviewer_notes, reviewer=reviewer)
        return self._apply_edit(
            translation,
            edited_body=edited_body,
            notes=reviewer_notes,
            editor=reviewer,
            label="Edited",
        )

    def submit_portal_edit(
        self,
        translation_id: UUID,
        *,
        edited_body: Optional[str],
        editor_notes: Optional[str] = None,
        editor: Optional[TranslatorUser] = None,
        portal_open: bool,
    ) -> Translation:
        """Apply an edit submitted through the translator portal.

        Anonymous submissions are accepted only while the portal is open.
        The edit never changes ``review_pass``.
        """

        if editor is None and not portal_open:
            raise PortalClosed("The translation portal is closed. Please log in to submit edits.")

        translation = self.get(translation_id)
        self._ensure_not_approved(translation)
        return self._apply_edit(
            translation,
            edited_body=edited_body,
            notes=editor_notes,
            editor=editor.username if editor is not None else ANONYMOUS_EDITOR,
            label="Portal edit",
        )

    def final_approve(self, translation_id: UUID, *, approved_by: Optional[str] = None) -> Translation:
        """Administrative override: jump straight to pass 3 and approved."""

        translation = self.get(translation_id)
        self._ensure_not_approved(translation)

        changes = {
            "review_pass": FINAL_REVIEW_PASS,
            "status": TranslationStatus.APPROVED,
            "reviewer_notes": _prepend_note(translation.reviewer_notes, _note("Final approval", approved_by, None)),
        }
        approved = self._commit(translation, changes, action="final_approve")
        metrics_service.record("translations_completed")
        return approved

    # -- helpers -------------------------------------------------------------

    def _ensure_not_approved(self, translation: Translation) -> None:
        if translation.status == TranslationStatus.APPROVED:
            raise AlreadyApproved(f"Translation {translation.id} is already approved")

    def _approve(self, translation: Translation, *, reviewer_notes: Optional[str], reviewer: Optional[str]) -> Translation:
        if translation.review_pass >= FINAL_REVIEW_PASS:
            raise InvalidTransition(
                f"Translation {translation.id} is at review pass {translation.review_pass} and cannot advance"
            )

        review_pass = translation.review_pass + 1
        reached_final = review_pass >= FINAL_REVIEW_PASS
        changes: Dict[str, Any] = {
            "review_pass": review_pass,
            "status": TranslationStatus.APPROVED if reached_final else TranslationStatus.REVIEWED,
        }
        if reviewer_notes and reviewer_notes.strip():
            changes["reviewer_notes"] = _prepend_note(
                translation.reviewer_notes,
                _note(f"Pass {review_pass} approved", reviewer, reviewer_notes),
            )
        approved = self._commit(translation, changes, action="approve")

        if reached_final:
            metrics_service.record("translations_completed")
        return approved

    def _reject(self, translation: Translation, *, reviewer_notes: Optional[str], reviewer: Optional[str]) -> Translation:
        # The pass is held so earlier reviewer work is kept; the translation
        # goes back to draft for rework.
        changes = {
            "status": TranslationStatus.DRAFT,
            "reviewer_notes": _prepend_note(translation.reviewer_notes, _note("Rejected", reviewer, reviewer_notes)),
        }
        return self._commit(translation, changes, action="reject")

    def _apply_edit(
        self,
        translation: Translation,
        *,
        edited_body: Optional[str],
        notes: Optional[str],
        editor: Optional[str],
        label: str,
    ) -> Translation:
        if edited_body is None or not edited_body.strip():
            raise ValidationError("editedBody is required for edits")

        last_edited_by = editor or ANONYMOUS_EDITOR
        changes = {
            "body": edited_body.strip(),
            "last_edited_by": last_edited_by,
            "reviewer_notes": _prepend_note(translation.reviewer_notes, _note(label, last_edited_by, notes)),
        }
        return self._commit(translation, changes, action="edit")

    def _commit(self, translation: Translation, changes: Dict[str, Any], *, action: str) -> Translation:
        """Write ``changes`` only if nobody touched the translation since it was read.

        A lost race is reported as :class:`AlreadyApproved` when the winner
        approved it, otherwise as :class:`InvalidTransition`; either way the
        caller's change is not applied.
        """

        # Strictly later than the snapshot so the next writer's check sees a change.
        changes["updated_at"] = max(
            datetime.now(timezone.utc), translation.updated_at + timedelta(microseconds=1)
        )
        updated = repos.translation_repository.compare_and_set(translation.id, expected=translation, changes=changes)
        if updated is None:
            current = repos.translation_repository.get(translation.id)
            if current is None:
                raise NotFound(f"Translation {translation.id} not found")
            self._ensure_not_approved(current)
            raise InvalidTransition(
                f"Translation {translation.id} was changed by someone else; reload it and try again"
            )

        logger.info(
            "Translation %s %s: pass=%d status=%s",
            updated.id,
            action,
            updated.review_pass,
            updated.status.value,
        )
        audit_service.log_event(
            action=action,
            resource_type="translation",
            resource_id=str(updated.id),
            extra={"review_pass": updated.review_pass, "status": updated.status.value},
        )
        return updated


review_engine = TranslationReviewEngine()
