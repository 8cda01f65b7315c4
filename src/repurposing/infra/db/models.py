from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.repurposing.domain.models.alert import Alert, AlertSeverity
from src.repurposing.domain.models.derivative import Derivative, DerivativeStatus, count_words
from src.repurposing.domain.models.derivative_queue import DerivativeQueue, QueueStatus
from src.repurposing.domain.models.language import LanguageConfig
from src.repurposing.domain.models.metrics import DailyMetrics
from src.repurposing.domain.models.processing_job import JobStatus, JobType, ProcessingJob
from src.repurposing.domain.models.source_content import MediaType, SourceContent, SourceStatus
from src.repurposing.domain.models.template import DerivativeTemplate
from src.repurposing.domain.models.translation import Translation, TranslationStatus
from src.repurposing.domain.models.translator_user import TranslatorRole, TranslatorUser


class Base(DeclarativeBase):
    pass


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on DateTime(timezone=True) columns; values are
    # always written in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ProcessingJobORM(Base):
    __tablename__ = "processing_jobs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    job_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    source_content_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    input_data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    output_data: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @classmethod
    def from_domain(cls, job: ProcessingJob) -> "ProcessingJobORM":
        return cls(
            id=job.id,
            job_type=job.job_type.value,
            source_content_id=job.source_content_id,
            input_data=job.input_data,
            priority=job.priority,
            status=job.status.value,
            progress=job.progress,
            output_data=job.output_data,
            error_message=job.error_message,
            retry_count=job.retry_count,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )

    def to_domain(self) -> ProcessingJob:
        return ProcessingJob(
            id=self.id,
            job_type=JobType(self.job_type),
            source_content_id=self.source_content_id,
            input_data=self.input_data or {},
            priority=self.priority,
            status=JobStatus(self.status),
            progress=self.progress,
            output_data=self.output_data,
            error_message=self.error_message,
            retry_count=self.retry_count,
            created_at=_as_utc(self.created_at),
            started_at=_as_utc(self.started_at),
            completed_at=_as_utc(self.completed_at),
        )


class DerivativeQueueORM(Base):
    __tablename__ = "derivative_queues"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    source_content_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    derivative_types: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    languages: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    total_expected: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, queue: DerivativeQueue) -> "DerivativeQueueORM":
        return cls(
            id=queue.id,
            source_content_id=queue.source_content_id,
            derivative_types=list(queue.derivative_types),
            languages=list(queue.languages),
            total_expected=queue.total_expected,
            status=queue.status.value,
            created_at=queue.created_at,
            updated_at=queue.updated_at,
        )

    def to_domain(self) -> DerivativeQueue:
        return DerivativeQueue(
            id=self.id,
            source_content_id=self.source_content_id,
            derivative_types=list(self.derivative_types or []),
            languages=list(self.languages or []),
            total_expected=self.total_expected,
            status=QueueStatus(self.status),
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
        )


class DerivativeORM(Base):
    __tablename__ = "derivatives"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    content_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    source_content_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    derivative_type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    # Denormalized for reporting queries; always rewritten from body on save.
    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    language: Mapped[str] = mapped_column(String(8), nullable=False)
    format: Mapped[str] = mapped_column(String(16), nullable=False)
    is_ai_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ai_model: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    sent_to_distribution: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    distributed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, derivative: Derivative) -> "DerivativeORM":
        orm = cls(id=derivative.id)
        orm.apply(derivative)
        return orm

    def apply(self, derivative: Derivative) -> None:
        self.content_id = derivative.content_id
        self.source_content_id = derivative.source_content_id
        self.derivative_type = derivative.derivative_type
        self.title = derivative.title
        self.body = derivative.body
        self.word_count = count_words(derivative.body)
        self.language = derivative.language
        self.format = derivative.format
        self.is_ai_generated = derivative.is_ai_generated
        self.ai_model = derivative.ai_model
        self.status = derivative.status.value
        self.sent_to_distribution = derivative.sent_to_distribution
        self.distributed_at = derivative.distributed_at
        self.created_at = derivative.created_at
        self.updated_at = derivative.updated_at

    def to_domain(self) -> Derivative:
        return Derivative(
            id=self.id,
            content_id=self.content_id,
            source_content_id=self.source_content_id,
            derivative_type=self.derivative_type,
            title=self.title,
            body=self.body,
            language=self.language,
            format=self.format,
            is_ai_generated=self.is_ai_generated,
            ai_model=self.ai_model,
            status=DerivativeStatus(self.status),
            sent_to_distribution=self.sent_to_distribution,
            distributed_at=_as_utc(self.distributed_at),
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
        )


class TranslationORM(Base):
    __tablename__ = "translations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    content_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    derivative_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    source_language: Mapped[str] = mapped_column(String(8), nullable=False)
    target_language: Mapped[str] = mapped_column(String(8), nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    review_pass: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_ai_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_edited_by: Mapped[str | None] = mapped_column(String, nullable=True)
    reviewer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, translation: Translation) -> "TranslationORM":
        orm = cls(id=translation.id)
        orm.apply(translation)
        return orm

    def apply(self, translation: Translation) -> None:
        self.content_id = translation.content_id
        self.derivative_id = translation.derivative_id
        self.source_language = translation.source_language
        self.target_language = translation.target_language
        self.title = translation.title
        self.body = translation.body
        self.status = translation.status.value
        self.review_pass = translation.review_pass
        self.is_ai_generated = translation.is_ai_generated
        self.last_edited_by = translation.last_edited_by
        self.reviewer_notes = translation.reviewer_notes
        self.created_at = translation.created_at
        self.updated_at = translation.updated_at

    def to_domain(self) -> Translation:
        return Translation(
            id=self.id,
            content_id=self.content_id,
            derivative_id=self.derivative_id,
            source_language=self.source_language,
            target_language=self.target_language,
            title=self.title,
            body=self.body,
            status=TranslationStatus(self.status),
            review_pass=self.review_pass,
            is_ai_generated=self.is_ai_generated,
            last_edited_by=self.last_edited_by,
            reviewer_notes=self.reviewer_notes,
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
        )


class SourceContentORM(Base):
    __tablename__ = "source_contents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    content_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    content_type: Mapped[str] = mapped_column(String(32), nullable=False)
    media_type: Mapped[str] = mapped_column(String(16), nullable=False)
    language: Mapped[str] = mapped_column(String(8), nullable=False)
    transcription: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, source: SourceContent) -> "SourceContentORM":
        orm = cls(id=source.id)
        orm.apply(source)
        return orm

    def apply(self, source: SourceContent) -> None:
        self.content_id = source.content_id
        self.title = source.title
        self.content_type = source.content_type
        self.media_type = source.media_type.value
        self.language = source.language
        self.transcription = source.transcription
        self.duration_seconds = source.duration_seconds
        self.status = source.status.value
        self.created_at = source.created_at
        self.updated_at = source.updated_at

    def to_domain(self) -> SourceContent:
        return SourceContent(
            id=self.id,
            content_id=self.content_id,
            title=self.title,
            content_type=self.content_type,
            media_type=MediaType(self.media_type),
            language=self.language,
            transcription=self.transcription,
            duration_seconds=self.duration_seconds,
            status=SourceStatus(self.status),
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
        )


class SystemSettingORM(Base):
    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)


class TranslatorUserORM(Base):
    __tablename__ = "translator_users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    languages: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, user: TranslatorUser) -> "TranslatorUserORM":
        orm = cls(id=user.id)
        orm.apply(user)
        return orm

    def apply(self, user: TranslatorUser) -> None:
        self.username = user.username
        self.display_name = user.display_name
        self.role = user.role.value
        self.languages = list(user.languages)
        self.password_hash = user.password_hash
        self.is_active = user.is_active
        self.last_login_at = user.last_login_at
        self.created_at = user.created_at

    def to_domain(self) -> TranslatorUser:
        return TranslatorUser(
            id=self.id,
            username=self.username,
            display_name=self.display_name,
            role=TranslatorRole(self.role),
            languages=list(self.languages or []),
            password_hash=self.password_hash,
            is_active=self.is_active,
            last_login_at=_as_utc(self.last_login_at),
            created_at=_as_utc(self.created_at),
        )


class DerivativeTemplateORM(Base):
    __tablename__ = "derivative_templates"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    derivative_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    system_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    user_prompt_template: Mapped[str] = mapped_column(Text, nullable=False)
    max_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=1024)
    output_format: Mapped[str] = mapped_column(String(16), nullable=False, default="text")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, template: DerivativeTemplate) -> "DerivativeTemplateORM":
        orm = cls(id=template.id, usage_count=template.usage_count)
        orm.apply(template)
        return orm

    def apply(self, template: DerivativeTemplate) -> None:
        # usage_count is only ever moved by increment_usage.
        self.name = template.name
        self.derivative_type = template.derivative_type
        self.description = template.description
        self.system_prompt = template.system_prompt
        self.user_prompt_template = template.user_prompt_template
        self.max_tokens = template.max_tokens
        self.output_format = template.output_format
        self.is_active = template.is_active
        self.created_at = template.created_at
        self.updated_at = template.updated_at

    def to_domain(self) -> DerivativeTemplate:
        return DerivativeTemplate(
            id=self.id,
            name=self.name,
            derivative_type=self.derivative_type,
            description=self.description,
            system_prompt=self.system_prompt,
            user_prompt_template=self.user_prompt_template,
            max_tokens=self.max_tokens,
            output_format=self.output_format,
            is_active=self.is_active,
            usage_count=self.usage_count,
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
        )


class LanguageConfigORM(Base):
    __tablename__ = "language_configs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    code: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    native_name: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    has_local_reviewer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reviewer_contact: Mapped[str | None] = mapped_column(String, nullable=True)
    total_translations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, language: LanguageConfig) -> "LanguageConfigORM":
        orm = cls(id=language.id, total_translations=language.total_translations)
        orm.apply(language)
        return orm

    def apply(self, language: LanguageConfig) -> None:
        # total_translations is only ever moved by increment_translations.
        self.code = language.code
        self.name = language.name
        self.native_name = language.native_name
        self.is_active = language.is_active
        self.priority = language.priority
        self.has_local_reviewer = language.has_local_reviewer
        self.reviewer_contact = language.reviewer_contact
        self.created_at = language.created_at
        self.updated_at = language.updated_at

    def to_domain(self) -> LanguageConfig:
        return LanguageConfig(
            id=self.id,
            code=self.code,
            name=self.name,
            native_name=self.native_name,
            is_active=self.is_active,
            priority=self.priority,
            has_local_reviewer=self.has_local_reviewer,
            reviewer_contact=self.reviewer_contact,
            total_translations=self.total_translations,
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
        )


class AlertORM(Base):
    __tablename__ = "system_alerts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    related_content_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    @classmethod
    def from_domain(cls, alert: Alert) -> "AlertORM":
        orm = cls(id=alert.id)
        orm.apply(alert)
        return orm

    def apply(self, alert: Alert) -> None:
        self.severity = alert.severity.value
        self.category = alert.category
        self.message = alert.message
        self.details = alert.details
        self.related_content_id = alert.related_content_id
        self.is_read = alert.is_read
        self.is_resolved = alert.is_resolved
        self.resolved_at = alert.resolved_at
        self.created_at = alert.created_at

    def to_domain(self) -> Alert:
        return Alert(
            id=self.id,
            severity=AlertSeverity(self.severity),
            category=self.category,
            message=self.message,
            details=self.details,
            related_content_id=self.related_content_id,
            is_read=self.is_read,
            is_resolved=self.is_resolved,
            resolved_at=_as_utc(self.resolved_at),
            created_at=_as_utc(self.created_at),
        )


class DailyMetricsORM(Base):
    __tablename__ = "repurposing_metrics"

    day: Mapped[date] = mapped_column(Date, primary_key=True)
    jobs_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    jobs_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    derivatives_generated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    translations_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sent_to_distribution: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_domain(self) -> DailyMetrics:
        return DailyMetrics(
            day=self.day,
            jobs_processed=self.jobs_processed,
            jobs_failed=self.jobs_failed,
            derivatives_generated=self.derivatives_generated,
            translations_completed=self.translations_completed,
            sent_to_distribution=self.sent_to_distribution,
        )
