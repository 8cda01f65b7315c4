from __future__ import annotations

from datetime import date
from typing import Any, Collection, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update

from src.repurposing.domain.models.alert import Alert
from src.repurposing.domain.models.derivative import Derivative
from src.repurposing.domain.models.derivative_queue import DerivativeQueue
from src.repurposing.domain.models.language import LanguageConfig
from src.repurposing.domain.models.metrics import DailyMetrics
from src.repurposing.domain.models.source_content import SourceContent
from src.repurposing.domain.models.template import DerivativeTemplate
from src.repurposing.domain.models.translation import Translation
from src.repurposing.domain.models.translator_user import TranslatorUser
from src.repurposing.infra.db.models import (
    AlertORM,
    DailyMetricsORM,
    DerivativeORM,
    DerivativeQueueORM,
    DerivativeTemplateORM,
    LanguageConfigORM,
    SourceContentORM,
    SystemSettingORM,
    TranslationORM,
    TranslatorUserORM,
)
from src.repurposing.infra.db.repositories import (
    AlertRepository,
    DerivativeQueueRepository,
    DerivativeRepository,
    DerivativeTemplateRepository,
    LanguageConfigRepository,
    MetricsRepository,
    SettingsRepository,
    SourceContentRepository,
    TranslationRepository,
    TranslatorUserRepository,
    check_field_changes,
)
from src.repurposing.infra.db.session import SessionFactory
from src.repurposing.infra.db.sql_jobs import column_values


class SqlDerivativeQueueRepository(DerivativeQueueRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def add(self, queue: DerivativeQueue) -> None:
        session = self._session_factory()
        try:
            session.add(DerivativeQueueORM.from_domain(queue))
            session.commit()
        finally:
            session.close()

    def get(self, queue_id: UUID) -> Optional[DerivativeQueue]:
        session = self._session_factory()
        try:
            orm = session.get(DerivativeQueueORM, queue_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def save(self, queue: DerivativeQueue) -> None:
        # Only status/updated_at ever change; types, languages and
        # total_expected are fixed when the batch is opened.
        session = self._session_factory()
        try:
            existing = session.get(DerivativeQueueORM, queue.id)
            if existing is None:
                session.add(DerivativeQueueORM.from_domain(queue))
            else:
                existing.status = queue.status.value
                existing.updated_at = queue.updated_at
            session.commit()
        finally:
            session.close()


class SqlDerivativeRepository(DerivativeRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def add(self, derivative: Derivative) -> None:
        session = self._session_factory()
        try:
            session.add(DerivativeORM.from_domain(derivative))
            session.commit()
        finally:
            session.close()

    def get(self, derivative_id: UUID) -> Optional[Derivative]:
        session = self._session_factory()
        try:
            orm = session.get(DerivativeORM, derivative_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def save(self, derivative: Derivative) -> None:
        session = self._session_factory()
        try:
            existing = session.get(DerivativeORM, derivative.id)
            if existing is None:
                session.add(DerivativeORM.from_domain(derivative))
            else:
                existing.apply(derivative)
            session.commit()
        finally:
            session.close()

    def list_by_source(self, source_content_id: UUID) -> Iterable[Derivative]:
        session = self._session_factory()
        try:
            rows = session.execute(
                select(DerivativeORM)
                .where(DerivativeORM.source_content_id == source_content_id)
                .order_by(DerivativeORM.created_at.asc())
            ).scalars().all()
            return [orm.to_domain() for orm in rows]
        finally:
            session.close()


class SqlTranslationRepository(TranslationRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def add(self, translation: Translation) -> None:
        session = self._session_factory()
        try:
            session.add(TranslationORM.from_domain(translation))
            session.commit()
        finally:
            session.close()

    def get(self, translation_id: UUID) -> Optional[Translation]:
        session = self._session_factory()
        try:
            orm = session.get(TranslationORM, translation_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def compare_and_set(
        self,
        translation_id: UUID,
        *,
        expected: Translation,
        changes: Dict[str, Any],
    ) -> Optional[Translation]:
        check_field_changes(Translation, changes)
        session = self._session_factory()
        try:
            result = session.execute(
                update(TranslationORM)
                .where(
                    TranslationORM.id == translation_id,
                    TranslationORM.status == expected.status.value,
                    TranslationORM.review_pass == expected.review_pass,
                    TranslationORM.updated_at == expected.updated_at,
                )
                .values(**column_values(changes))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                return None
            session.commit()
            orm = session.get(TranslationORM, translation_id, populate_existing=True)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def find_for_derivative(self, derivative_id: UUID, target_language: str) -> Optional[Translation]:
        session = self._session_factory()
        try:
            orm = session.execute(
                select(TranslationORM).where(
                    TranslationORM.derivative_id == derivative_id,
                    TranslationORM.target_language == target_language,
                )
            ).scalars().first()
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def list_by_derivatives(self, derivative_ids: Collection[UUID]) -> Iterable[Translation]:
        if not derivative_ids:
            return []
        session = self._session_factory()
        try:
            rows = session.execute(
                select(TranslationORM).where(TranslationORM.derivative_id.in_(list(derivative_ids)))
            ).scalars().all()
            return [orm.to_domain() for orm in rows]
        finally:
            session.close()


class SqlSourceContentRepository(SourceContentRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def add(self, source: SourceContent) -> None:
        session = self._session_factory()
        try:
            session.add(SourceContentORM.from_domain(source))
            session.commit()
        finally:
            session.close()

    def get(self, source_id: UUID) -> Optional[SourceContent]:
        session = self._session_factory()
        try:
            orm = session.get(SourceContentORM, source_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def get_by_content_id(self, content_id: str) -> Optional[SourceContent]:
        session = self._session_factory()
        try:
            orm = session.execute(
                select(SourceContentORM).where(SourceContentORM.content_id == content_id)
            ).scalars().first()
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def save(self, source: SourceContent) -> None:
        session = self._session_factory()
        try:
            existing = session.get(SourceContentORM, source.id)
            if existing is None:
                session.add(SourceContentORM.from_domain(source))
            else:
                existing.apply(source)
            session.commit()
        finally:
            session.close()


class SqlSettingsRepository(SettingsRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        session = self._session_factory()
        try:
            orm = session.get(SystemSettingORM, key)
            return orm.value if orm is not None else None
        finally:
            session.close()

    def set(self, key: str, value: str) -> None:
        session = self._session_factory()
        try:
            existing = session.get(SystemSettingORM, key)
            if existing is None:
                session.add(SystemSettingORM(key=key, value=value))
            else:
                existing.value = value
            session.commit()
        finally:
            session.close()

    def all(self) -> Dict[str, str]:
        session = self._session_factory()
        try:
            rows = session.execute(select(SystemSettingORM).order_by(SystemSettingORM.key)).scalars().all()
            return {orm.key: orm.value for orm in rows}
        finally:
            session.close()


class SqlTranslatorUserRepository(TranslatorUserRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def add(self, user: TranslatorUser) -> None:
        session = self._session_factory()
        try:
            session.add(TranslatorUserORM.from_domain(user))
            session.commit()
        finally:
            session.close()

    def get(self, user_id: UUID) -> Optional[TranslatorUser]:
        session = self._session_factory()
        try:
            orm = session.get(TranslatorUserORM, user_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def get_by_username(self, username: str) -> Optional[TranslatorUser]:
        session = self._session_factory()
        try:
            orm = session.execute(
                select(TranslatorUserORM).where(TranslatorUserORM.username == username)
            ).scalars().first()
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def save(self, user: TranslatorUser) -> None:
        session = self._session_factory()
        try:
            existing = session.get(TranslatorUserORM, user.id)
            if existing is None:
                session.add(TranslatorUserORM.from_domain(user))
            else:
                existing.apply(user)
            session.commit()
        finally:
            session.close()

    def list_all(self) -> List[TranslatorUser]:
        session = self._session_factory()
        try:
            rows = session.execute(
                select(TranslatorUserORM).order_by(TranslatorUserORM.created_at.desc())
            ).scalars().all()
            return [orm.to_domain() for orm in rows]
        finally:
            session.close()


class SqlMetricsRepository(MetricsRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def increment(self, day: date, counters: Dict[str, int]) -> None:
        session = self._session_factory()
        try:
            if session.get(DailyMetricsORM, day) is None:
                session.add(
                    DailyMetricsORM(
                        day=day,
                        jobs_processed=0,
                        jobs_failed=0,
                        derivatives_generated=0,
                        translations_completed=0,
                        sent_to_distribution=0,
                    )
                )
                session.flush()
            values = {name: getattr(DailyMetricsORM, name) + amount for name, amount in counters.items()}
            session.execute(
                update(DailyMetricsORM)
                .where(DailyMetricsORM.day == day)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            session.commit()
        finally:
            session.close()

    def get(self, day: date) -> DailyMetrics:
        session = self._session_factory()
        try:
            orm = session.get(DailyMetricsORM, day)
            return orm.to_domain() if orm is not None else DailyMetrics(day=day)
        finally:
            session.close()


class SqlDerivativeTemplateRepository(DerivativeTemplateRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def add(self, template: DerivativeTemplate) -> None:
        session = self._session_factory()
        try:
            session.add(DerivativeTemplateORM.from_domain(template))
            session.commit()
        finally:
            session.close()

    def get(self, template_id: UUID) -> Optional[DerivativeTemplate]:
        session = self._session_factory()
        try:
            orm = session.get(DerivativeTemplateORM, template_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def list(self, *, derivative_type: Optional[str] = None, active_only: bool = False) -> List[DerivativeTemplate]:
        session = self._session_factory()
        try:
            query = select(DerivativeTemplateORM)
            if derivative_type is not None:
                query = query.where(DerivativeTemplateORM.derivative_type == derivative_type)
            if active_only:
                query = query.where(DerivativeTemplateORM.is_active.is_(True))
            query = query.order_by(
                DerivativeTemplateORM.derivative_type.asc(), DerivativeTemplateORM.created_at.desc()
            )
            return [orm.to_domain() for orm in session.execute(query).scalars().all()]
        finally:
            session.close()

    def save(self, template: DerivativeTemplate) -> None:
        session = self._session_factory()
        try:
            existing = session.get(DerivativeTemplateORM, template.id)
            if existing is None:
                session.add(DerivativeTemplateORM.from_domain(template))
            else:
                existing.apply(template)
            session.commit()
        finally:
            session.close()

    def increment_usage(self, template_id: UUID) -> None:
        session = self._session_factory()
        try:
            session.execute(
                update(DerivativeTemplateORM)
                .where(DerivativeTemplateORM.id == template_id)
                .values(usage_count=DerivativeTemplateORM.usage_count + 1)
                .execution_options(synchronize_session=False)
            )
            session.commit()
        finally:
            session.close()


class SqlLanguageConfigRepository(LanguageConfigRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def add(self, language: LanguageConfig) -> None:
        session = self._session_factory()
        try:
            session.add(LanguageConfigORM.from_domain(language))
            session.commit()
        finally:
            session.close()

    def get(self, language_id: UUID) -> Optional[LanguageConfig]:
        session = self._session_factory()
        try:
            orm = session.get(LanguageConfigORM, language_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def get_by_code(self, code: str) -> Optional[LanguageConfig]:
        session = self._session_factory()
        try:
            orm = session.execute(select(LanguageConfigORM).where(LanguageConfigORM.code == code)).scalars().first()
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def list(self, *, active_only: bool = False) -> List[LanguageConfig]:
        session = self._session_factory()
        try:
            query = select(LanguageConfigORM)
            if active_only:
                query = query.where(LanguageConfigORM.is_active.is_(True))
            query = query.order_by(LanguageConfigORM.priority.asc(), LanguageConfigORM.name.asc())
            return [orm.to_domain() for orm in session.execute(query).scalars().all()]
        finally:
            session.close()

    def save(self, language: LanguageConfig) -> None:
        session = self._session_factory()
        try:
            existing = session.get(LanguageConfigORM, language.id)
            if existing is None:
                session.add(LanguageConfigORM.from_domain(language))
            else:
                existing.apply(language)
            session.commit()
        finally:
            session.close()

    def increment_translations(self, code: str) -> None:
        session = self._session_factory()
        try:
            session.execute(
                update(LanguageConfigORM)
                .where(LanguageConfigORM.code == code)
                .values(total_translations=LanguageConfigORM.total_translations + 1)
                .execution_options(synchronize_session=False)
            )
            session.commit()
        finally:
            session.close()


class SqlAlertRepository(AlertRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def add(self, alert: Alert) -> None:
        session = self._session_factory()
        try:
            session.add(AlertORM.from_domain(alert))
            session.commit()
        finally:
            session.close()

    def get(self, alert_id: UUID) -> Optional[Alert]:
        session = self._session_factory()
        try:
            orm = session.get(AlertORM, alert_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def list(self, *, unread_only: bool = False, limit: int = 50, offset: int = 0) -> Tuple[List[Alert], int]:
        session = self._session_factory()
        try:
            query = select(AlertORM)
            count_query = select(func.count()).select_from(AlertORM)
            if unread_only:
                query = query.where(AlertORM.is_read.is_(False))
                count_query = count_query.where(AlertORM.is_read.is_(False))
            query = query.order_by(AlertORM.created_at.desc())
            rows = session.execute(query.limit(limit).offset(offset)).scalars().all()
            total = session.execute(count_query).scalar_one()
            return [orm.to_domain() for orm in rows], total
        finally:
            session.close()

    def save(self, alert: Alert) -> None:
        session = self._session_factory()
        try:
            existing = session.get(AlertORM, alert.id)
            if existing is None:
                session.add(AlertORM.from_domain(alert))
            else:
                existing.apply(alert)
            session.commit()
        finally:
            session.close()
