from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from src.repurposing.config import settings
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.infra.db.models import Base
from src.repurposing.infra.db.session import create_sqlalchemy_engine, create_sqlalchemy_session_factory
from src.repurposing.infra.db.seed import seed_reference_data
from src.repurposing.infra.db.sql_content import (
    SqlAlertRepository,
    SqlDerivativeQueueRepository,
    SqlDerivativeRepository,
    SqlDerivativeTemplateRepository,
    SqlLanguageConfigRepository,
    SqlMetricsRepository,
    SqlSettingsRepository,
    SqlSourceContentRepository,
    SqlTranslationRepository,
    SqlTranslatorUserRepository,
)
from src.repurposing.infra.db.sql_jobs import SqlProcessingJobRepository

logger = logging.getLogger("pipeline")


def install_sql_repositories(engine: Engine) -> None:
    """Point every repository singleton at SQL-backed implementations.

    Services look repositories up through the ``inmemory`` module at call
    time, so swapping the module attributes rewires the whole application.
    """

    # Tables are created here for convenience; real deployments should manage
    # the schema with migrations.
    Base.metadata.create_all(engine)

    session_factory = create_sqlalchemy_session_factory(engine=engine)

    repos.job_repository = SqlProcessingJobRepository(session_factory)
    repos.derivative_queue_repository = SqlDerivativeQueueRepository(session_factory)
    repos.derivative_repository = SqlDerivativeRepository(session_factory)
    repos.translation_repository = SqlTranslationRepository(session_factory)
    repos.source_content_repository = SqlSourceContentRepository(session_factory)
    repos.settings_repository = SqlSettingsRepository(session_factory)
    repos.translator_user_repository = SqlTranslatorUserRepository(session_factory)
    repos.derivative_template_repository = SqlDerivativeTemplateRepository(session_factory)
    repos.language_config_repository = SqlLanguageConfigRepository(session_factory)
    repos.alert_repository = SqlAlertRepository(session_factory)
    repos.metrics_repository = SqlMetricsRepository(session_factory)

    seed_reference_data(repos.derivative_template_repository, repos.language_config_repository)


def init_sql_repositories(database_url: Optional[str] = None) -> None:  # pragma: no cover - side-effectful wiring
    """Optionally switch in-memory repositories to SQL-backed implementations.

    If USE_SQL_REPOS is not enabled or DATABASE_URL is not configured, this is
    a no-op and the in-memory repositories remain active.
    """

    if not settings.use_sql_repos:
        return

    db_url = database_url or settings.database_url
    if not db_url:
        logger.warning("USE_SQL_REPOS is enabled but DATABASE_URL is not set; keeping in-memory repositories")
        return

    install_sql_repositories(create_sqlalchemy_engine(db_url))
    logger.info("SQL repositories installed")
