from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Collection, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from src.repurposing.domain.models.alert import Alert
from src.repurposing.domain.models.derivative import Derivative
from src.repurposing.domain.models.derivative_queue import DerivativeQueue
from src.repurposing.domain.models.language import LanguageConfig
from src.repurposing.domain.models.metrics import DailyMetrics
from src.repurposing.domain.models.processing_job import JobStatus, JobType, ProcessingJob
from src.repurposing.domain.models.source_content import SourceContent
from src.repurposing.domain.models.template import DerivativeTemplate
from src.repurposing.domain.models.translation import Translation
from src.repurposing.domain.models.translator_user import TranslatorUser


def check_field_changes(model: type, changes: Dict[str, Any]) -> None:
    """Reject conditional updates that name unknown fields or the primary key."""

    unknown = sorted(key for key in changes if key == "id" or key not in model.model_fields)
    if unknown:
        raise ValueError(f"Cannot update {model.__name__} field(s): {', '.join(unknown)}")


class ProcessingJobRepository(ABC):
    @abstractmethod
    def add(self, job: ProcessingJob) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, job_id: UUID) -> Optional[ProcessingJob]:
        raise NotImplementedError

    @abstractmethod
    def list_by_filters(
        self,
        *,
        status: Optional[JobStatus] = None,
        job_type: Optional[JobType] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[ProcessingJob], int]:
        raise NotImplementedError

    @abstractmethod
    def claim_next(self, *, started_at: datetime, progress: int) -> Optional[ProcessingJob]:
        """Atomically move the most urgent queued job to processing.

        Most urgent means lowest priority value, then oldest. Returns ``None``
        when nothing is queued. Two concurrent callers never receive the same
        job.
        """

        raise NotImplementedError

    @abstractmethod
    def compare_and_set(
        self,
        job_id: UUID,
        *,
        expected: Collection[JobStatus],
        changes: Dict[str, Any],
    ) -> Optional[ProcessingJob]:
        """Apply ``changes`` only if the job's current status is in ``expected``.

        Returns the updated job, or ``None`` when the job is missing or its
        status no longer matches. Keys that are not job fields raise
        ``ValueError``.
        """

        raise NotImplementedError

    @abstractmethod
    def list_processing(self, *, job_type: Optional[JobType] = None) -> List[ProcessingJob]:
        raise NotImplementedError


class DerivativeQueueRepository(ABC):
    @abstractmethod
    def add(self, queue: DerivativeQueue) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, queue_id: UUID) -> Optional[DerivativeQueue]:
        raise NotImplementedError

    @abstractmethod
    def save(self, queue: DerivativeQueue) -> None:
        raise NotImplementedError


class DerivativeRepository(ABC):
    @abstractmethod
    def add(self, derivative: Derivative) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, derivative_id: UUID) -> Optional[Derivative]:
        raise NotImplementedError

    @abstractmethod
    def save(self, derivative: Derivative) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_by_source(self, source_content_id: UUID) -> Iterable[Derivative]:
        raise NotImplementedError


class TranslationRepository(ABC):
    @abstractmethod
    def add(self, translation: Translation) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, translation_id: UUID) -> Optional[Translation]:
        raise NotImplementedError

    @abstractmethod
    def compare_and_set(
        self,
        translation_id: UUID,
        *,
        expected: Translation,
        changes: Dict[str, Any],
    ) -> Optional[Translation]:
        """Apply ``changes`` only if the stored row still matches ``expected``.

        The row matches when its status, review pass and ``updated_at`` are
        the ones in the ``expected`` snapshot, i.e. nobody wrote it since it
        was read. Returns the updated translation or ``None``.
        """

        raise NotImplementedError

    @abstractmethod
    def find_for_derivative(self, derivative_id: UUID, target_language: str) -> Optional[Translation]:
        raise NotImplementedError

    @abstractmethod
    def list_by_derivatives(self, derivative_ids: Collection[UUID]) -> Iterable[Translation]:
        raise NotImplementedError


class SourceContentRepository(ABC):
    @abstractmethod
    def add(self, source: SourceContent) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, source_id: UUID) -> Optional[SourceContent]:
        raise NotImplementedError

    @abstractmethod
    def get_by_content_id(self, content_id: str) -> Optional[SourceContent]:
        raise NotImplementedError

    @abstractmethod
    def save(self, source: SourceContent) -> None:
        raise NotImplementedError


class SettingsRepository(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def all(self) -> Dict[str, str]:
        raise NotImplementedError


class TranslatorUserRepository(ABC):
    @abstractmethod
    def add(self, user: TranslatorUser) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, user_id: UUID) -> Optional[TranslatorUser]:
        raise NotImplementedError

    @abstractmethod
    def get_by_username(self, username: str) -> Optional[TranslatorUser]:
        raise NotImplementedError

    @abstractmethod
    def save(self, user: TranslatorUser) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> List[TranslatorUser]:
        """Every account, newest first."""

        raise NotImplementedError


class DerivativeTemplateRepository(ABC):
    @abstractmethod
    def add(self, template: DerivativeTemplate) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, template_id: UUID) -> Optional[DerivativeTemplate]:
        raise NotImplementedError

    @abstractmethod
    def list(self, *, derivative_type: Optional[str] = None, active_only: bool = False) -> List[DerivativeTemplate]:
        """Ordered by derivative type, then newest first."""

        raise NotImplementedError

    @abstractmethod
    def save(self, template: DerivativeTemplate) -> None:
        raise NotImplementedError

    @abstractmethod
    def increment_usage(self, template_id: UUID) -> None:
        raise NotImplementedError


class LanguageConfigRepository(ABC):
    @abstractmethod
    def add(self, language: LanguageConfig) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, language_id: UUID) -> Optional[LanguageConfig]:
        raise NotImplementedError

    @abstractmethod
    def get_by_code(self, code: str) -> Optional[LanguageConfig]:
        raise NotImplementedError

    @abstractmethod
    def list(self, *, active_only: bool = False) -> List[LanguageConfig]:
        """Ordered by priority, then name."""

        raise NotImplementedError

    @abstractmethod
    def save(self, language: LanguageConfig) -> None:
        raise NotImplementedError

    @abstractmethod
    def increment_translations(self, code: str) -> None:
        raise NotImplementedError


class AlertRepository(ABC):
    @abstractmethod
    def add(self, alert: Alert) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, alert_id: UUID) -> Optional[Alert]:
        raise NotImplementedError

    @abstractmethod
    def list(self, *, unread_only: bool = False, limit: int = 50, offset: int = 0) -> Tuple[List[Alert], int]:
        """Newest first, with the total number of matching alerts."""

        raise NotImplementedError

    @abstractmethod
    def save(self, alert: Alert) -> None:
        raise NotImplementedError


class MetricsRepository(ABC):
    @abstractmethod
    def increment(self, day: date, counters: Dict[str, int]) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, day: date) -> DailyMetrics:
        raise NotImplementedError
