from __future__ import annotations

import itertools
import threading
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
from src.repurposing.infra.db.repositories import (
    AlertRepository,
    DerivativeQueueRepository,
    DerivativeRepository,
    DerivativeTemplateRepository,
    LanguageConfigRepository,
    MetricsRepository,
    ProcessingJobRepository,
    SettingsRepository,
    SourceContentRepository,
    TranslationRepository,
    TranslatorUserRepository,
    check_field_changes,
)
from src.repurposing.infra.db.seed import seed_reference_data

# In-memory repositories hand out copies so callers can never mutate stored
# state without going through save()/compare_and_set(), mirroring the SQL
# implementations.


class InMemoryProcessingJobRepository(ProcessingJobRepository):
    def __init__(self) -> None:
        self._jobs: Dict[UUID, ProcessingJob] = {}
        # Insertion order breaks ties between jobs created in the same instant.
        self._sequence: Dict[UUID, int] = {}
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def add(self, job: ProcessingJob) -> None:
        with self._lock:
            self._jobs[job.id] = job.model_copy(deep=True)
            self._sequence[job.id] = next(self._counter)

    def get(self, job_id: UUID) -> Optional[ProcessingJob]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job is not None else None

    def _queue_order(self, job: ProcessingJob) -> Tuple[int, datetime, int]:
        return (job.priority, job.created_at, self._sequence[job.id])

    def list_by_filters(
        self,
        *,
        status: Optional[JobStatus] = None,
        job_type: Optional[JobType] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[ProcessingJob], int]:
        with self._lock:
            matches = [
                job
                for job in self._jobs.values()
                if (status is None or job.status == status) and (job_type is None or job.job_type == job_type)
            ]
            matches.sort(key=self._queue_order)
            page = matches[offset : offset + limit]
            return [job.model_copy(deep=True) for job in page], len(matches)

    def claim_next(self, *, started_at: datetime, progress: int) -> Optional[ProcessingJob]:
        with self._lock:
            queued = [job for job in self._jobs.values() if job.status == JobStatus.QUEUED]
            if not queued:
                return None
            job = min(queued, key=self._queue_order)
            claimed = job.model_copy(
                update={"status": JobStatus.PROCESSING, "started_at": started_at, "progress": progress},
                deep=True,
            )
            self._jobs[job.id] = claimed
            return claimed.model_copy(deep=True)

    def compare_and_set(
        self,
        job_id: UUID,
        *,
        expected: Collection[JobStatus],
        changes: Dict[str, Any],
    ) -> Optional[ProcessingJob]:
        check_field_changes(ProcessingJob, changes)
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status not in expected:
                return None
            updated = job.model_copy(update=changes, deep=True)
            self._jobs[job_id] = updated
            return updated.model_copy(deep=True)

    def list_processing(self, *, job_type: Optional[JobType] = None) -> List[ProcessingJob]:
        with self._lock:
            return [
                job.model_copy(deep=True)
                for job in self._jobs.values()
                if job.status == JobStatus.PROCESSING and (job_type is None or job.job_type == job_type)
            ]


class InMemoryDerivativeQueueRepository(DerivativeQueueRepository):
    def __init__(self) -> None:
        self._queues: Dict[UUID, DerivativeQueue] = {}

    def add(self, queue: DerivativeQueue) -> None:
        self._queues[queue.id] = queue.model_copy(deep=True)

    def get(self, queue_id: UUID) -> Optional[DerivativeQueue]:
        queue = self._queues.get(queue_id)
        return queue.model_copy(deep=True) if queue is not None else None

    def save(self, queue: DerivativeQueue) -> None:
        self._queues[queue.id] = queue.model_copy(deep=True)


class InMemoryDerivativeRepository(DerivativeRepository):
    def __init__(self) -> None:
        self._derivatives: Dict[UUID, Derivative] = {}

    def add(self, derivative: Derivative) -> None:
        self._derivatives[derivative.id] = derivative.model_copy(deep=True)

    def get(self, derivative_id: UUID) -> Optional[Derivative]:
        derivative = self._derivatives.get(derivative_id)
        return derivative.model_copy(deep=True) if derivative is not None else None

    def save(self, derivative: Derivative) -> None:
        self._derivatives[derivative.id] = derivative.model_copy(deep=True)

    def list_by_source(self, source_content_id: UUID) -> Iterable[Derivative]:
        for derivative in list(self._derivatives.values()):
            if derivative.source_content_id == source_content_id:
                yield derivative.model_copy(deep=True)


class InMemoryTranslationRepository(TranslationRepository):
    def __init__(self) -> None:
        self._translations: Dict[UUID, Translation] = {}
        self._lock = threading.Lock()

    def add(self, translation: Translation) -> None:
        with self._lock:
            self._translations[translation.id] = translation.model_copy(deep=True)

    def get(self, translation_id: UUID) -> Optional[Translation]:
        translation = self._translations.get(translation_id)
        return translation.model_copy(deep=True) if translation is not None else None

    def compare_and_set(
        self,
        translation_id: UUID,
        *,
        expected: Translation,
        changes: Dict[str, Any],
    ) -> Optional[Translation]:
        check_field_changes(Translation, changes)
        with self._lock:
            current = self._translations.get(translation_id)
            if current is None or (current.status, current.review_pass, current.updated_at) != (
                expected.status,
                expected.review_pass,
                expected.updated_at,
            ):
                return None
            updated = current.model_copy(update=changes, deep=True)
            self._translations[translation_id] = updated
            return updated.model_copy(deep=True)

    def find_for_derivative(self, derivative_id: UUID, target_language: str) -> Optional[Translation]:
        for translation in self._translations.values():
            if translation.derivative_id == derivative_id and translation.target_language == target_language:
                return translation.model_copy(deep=True)
        return None

    def list_by_derivatives(self, derivative_ids: Collection[UUID]) -> Iterable[Translation]:
        wanted = set(derivative_ids)
        for translation in list(self._translations.values()):
            if translation.derivative_id in wanted:
                yield translation.model_copy(deep=True)


class InMemorySourceContentRepository(SourceContentRepository):
    def __init__(self) -> None:
        self._sources: Dict[UUID, SourceContent] = {}

    def add(self, source: SourceContent) -> None:
        self._sources[source.id] = source.model_copy(deep=True)

    def get(self, source_id: UUID) -> Optional[SourceContent]:
        source = self._sources.get(source_id)
        return source.model_copy(deep=True) if source is not None else None

    def get_by_content_id(self, content_id: str) -> Optional[SourceContent]:
        for source in self._sources.values():
            if source.content_id == content_id:
                return source.model_copy(deep=True)
        return None

    def save(self, source: SourceContent) -> None:
        self._sources[source.id] = source.model_copy(deep=True)


class InMemorySettingsRepository(SettingsRepository):
    def __init__(self) -> None:
        self._values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def all(self) -> Dict[str, str]:
        return dict(sorted(self._values.items()))


class InMemoryTranslatorUserRepository(TranslatorUserRepository):
    def __init__(self) -> None:
        self._users: Dict[UUID, TranslatorUser] = {}

    def add(self, user: TranslatorUser) -> None:
        self._users[user.id] = user.model_copy(deep=True)

    def get(self, user_id: UUID) -> Optional[TranslatorUser]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user is not None else None

    def get_by_username(self, username: str) -> Optional[TranslatorUser]:
        for user in self._users.values():
            if user.username == username:
                return user.model_copy(deep=True)
        return None

    def save(self, user: TranslatorUser) -> None:
        self._users[user.id] = user.model_copy(deep=True)

    def list_all(self) -> List[TranslatorUser]:
        users = sorted(self._users.values(), key=lambda user: user.created_at, reverse=True)
        return [user.model_copy(deep=True) for user in users]


class InMemoryDerivativeTemplateRepository(DerivativeTemplateRepository):
    def __init__(self) -> None:
        self._templates: Dict[UUID, DerivativeTemplate] = {}
        self._lock = threading.Lock()

    def add(self, template: DerivativeTemplate) -> None:
        self._templates[template.id] = template.model_copy(deep=True)

    def get(self, template_id: UUID) -> Optional[DerivativeTemplate]:
        template = self._templates.get(template_id)
        return template.model_copy(deep=True) if template is not None else None

    def list(self, *, derivative_type: Optional[str] = None, active_only: bool = False) -> List[DerivativeTemplate]:
        matches = [
            template
            for template in self._templates.values()
            if (derivative_type is None or template.derivative_type == derivative_type)
            and (template.is_active or not active_only)
        ]
        # Two stable sorts: newest first within each type, types ascending.
        matches.sort(key=lambda template: template.created_at, reverse=True)
        matches.sort(key=lambda template: template.derivative_type)
        return [template.model_copy(deep=True) for template in matches]

    def save(self, template: DerivativeTemplate) -> None:
        # usage_count is only ever moved by increment_usage.
        with self._lock:
            existing = self._templates.get(template.id)
            usage = existing.usage_count if existing is not None else template.usage_count
            self._templates[template.id] = template.model_copy(update={"usage_count": usage}, deep=True)

    def increment_usage(self, template_id: UUID) -> None:
        with self._lock:
            template = self._templates.get(template_id)
            if template is not None:
                self._templates[template_id] = template.model_copy(update={"usage_count": template.usage_count + 1})


class InMemoryLanguageConfigRepository(LanguageConfigRepository):
    def __init__(self) -> None:
        self._languages: Dict[UUID, LanguageConfig] = {}
        self._lock = threading.Lock()

    def add(self, language: LanguageConfig) -> None:
        self._languages[language.id] = language.model_copy(deep=True)

    def get(self, language_id: UUID) -> Optional[LanguageConfig]:
        language = self._languages.get(language_id)
        return language.model_copy(deep=True) if language is not None else None

    def get_by_code(self, code: str) -> Optional[LanguageConfig]:
        for language in self._languages.values():
            if language.code == code:
                return language.model_copy(deep=True)
        return None

    def list(self, *, active_only: bool = False) -> List[LanguageConfig]:
        matches = [language for language in self._languages.values() if language.is_active or not active_only]
        matches.sort(key=lambda language: (language.priority, language.name))
        return [language.model_copy(deep=True) for language in matches]

    def save(self, language: LanguageConfig) -> None:
        with self._lock:
            existing = self._languages.get(language.id)
            total = existing.total_translations if existing is not None else language.total_translations
            self._languages[language.id] = language.model_copy(update={"total_translations": total}, deep=True)

    def increment_translations(self, code: str) -> None:
        with self._lock:
            for language_id, language in self._languages.items():
                if language.code == code:
                    self._languages[language_id] = language.model_copy(
                        update={"total_translations": language.total_translations + 1}
                    )
                    return


class InMemoryAlertRepository(AlertRepository):
    def __init__(self) -> None:
        self._alerts: Dict[UUID, Alert] = {}

    def add(self, alert: Alert) -> None:
        self._alerts[alert.id] = alert.model_copy(deep=True)

    def get(self, alert_id: UUID) -> Optional[Alert]:
        alert = self._alerts.get(alert_id)
        return alert.model_copy(deep=True) if alert is not None else None

    def list(self, *, unread_only: bool = False, limit: int = 50, offset: int = 0) -> Tuple[List[Alert], int]:
        # Reversed insertion order keeps same-instant alerts newest first.
        matches = [alert for alert in reversed(list(self._alerts.values())) if not (unread_only and alert.is_read)]
        matches.sort(key=lambda alert: alert.created_at, reverse=True)
        return [alert.model_copy(deep=True) for alert in matches[offset : offset + limit]], len(matches)

    def save(self, alert: Alert) -> None:
        self._alerts[alert.id] = alert.model_copy(deep=True)


class InMemoryMetricsRepository(MetricsRepository):
    def __init__(self) -> None:
        self._days: Dict[date, DailyMetrics] = {}
        self._lock = threading.Lock()

    def increment(self, day: date, counters: Dict[str, int]) -> None:
        with self._lock:
            current = self._days.get(day) or DailyMetrics(day=day)
            updates = {name: getattr(current, name) + amount for name, amount in counters.items()}
            self._days[day] = current.model_copy(update=updates)

    def get(self, day: date) -> DailyMetrics:
        return self._days.get(day) or DailyMetrics(day=day)


job_repository: ProcessingJobRepository = InMemoryProcessingJobRepository()
derivative_queue_repository: DerivativeQueueRepository = InMemoryDerivativeQueueRepository()
derivative_repository: DerivativeRepository = InMemoryDerivativeRepository()
translation_repository: TranslationRepository = InMemoryTranslationRepository()
source_content_repository: SourceContentRepository = InMemorySourceContentRepository()
settings_repository: SettingsRepository = InMemorySettingsRepository()
translator_user_repository: TranslatorUserRepository = InMemoryTranslatorUserRepository()
derivative_template_repository: DerivativeTemplateRepository = InMemoryDerivativeTemplateRepository()
language_config_repository: LanguageConfigRepository = InMemoryLanguageConfigRepository()
alert_repository: AlertRepository = InMemoryAlertRepository()
metrics_repository: MetricsRepository = InMemoryMetricsRepository()

seed_reference_data(derivative_template_repository, language_config_repository)


def reset_repositories() -> None:
    """Replace every repository singleton with a fresh in-memory one.

    The template and language registries come back seeded with the
    built-in reference data; everything else starts empty.
    """

    global job_repository, derivative_queue_repository, derivative_repository, translation_repository
    global source_content_repository, settings_repository, translator_user_repository, metrics_repository
    global derivative_template_repository, language_config_repository, alert_repository

    job_repository = InMemoryProcessingJobRepository()
    derivative_queue_repository = InMemoryDerivativeQueueRepository()
    derivative_repository = InMemoryDerivativeRepository()
    translation_repository = InMemoryTranslationRepository()
    source_content_repository = InMemorySourceContentRepository()
    settings_repository = InMemorySettingsRepository()
    translator_user_repository = InMemoryTranslatorUserRepository()
    derivative_template_repository = InMemoryDerivativeTemplateRepository()
    language_config_repository = InMemoryLanguageConfigRepository()
    alert_repository = InMemoryAlertRepository()
    metrics_repository = InMemoryMetricsRepository()
    seed_reference_data(derivative_template_repository, language_config_repository)
