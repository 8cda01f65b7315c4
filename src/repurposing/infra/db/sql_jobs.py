from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Collection, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update

from src.repurposing.domain.models.processing_job import JobStatus, JobType, ProcessingJob
from src.repurposing.infra.db.models import ProcessingJobORM
from src.repurposing.infra.db.repositories import ProcessingJobRepository, check_field_changes
from src.repurposing.infra.db.session import SessionFactory

logger = logging.getLogger("pipeline.sql")


def column_values(changes: Dict[str, Any]) -> Dict[str, Any]:
    return {key: (value.value if isinstance(value, Enum) else value) for key, value in changes.items()}


class SqlProcessingJobRepository(ProcessingJobRepository):
    """SQL-backed job store.

    Status changes are conditional UPDATEs (``... WHERE status IN (...)``) so
    concurrent schedulers and webhook handlers can race safely: whoever's
    UPDATE matches the row wins, the others see zero affected rows.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def add(self, job: ProcessingJob) -> None:
        session = self._session_factory()
        try:
            session.add(ProcessingJobORM.from_domain(job))
            session.commit()
        finally:
            session.close()

    def get(self, job_id: UUID) -> Optional[ProcessingJob]:
        session = self._session_factory()
        try:
            orm = session.get(ProcessingJobORM, job_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def list_by_filters(
        self,
        *,
        status: Optional[JobStatus] = None,
        job_type: Optional[JobType] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[ProcessingJob], int]:
        session = self._session_factory()
        try:
            query = select(ProcessingJobORM)
            count_query = select(func.count()).select_from(ProcessingJobORM)
            if status is not None:
                query = query.where(ProcessingJobORM.status == status.value)
                count_query = count_query.where(ProcessingJobORM.status == status.value)
            if job_type is not None:
                query = query.where(ProcessingJobORM.job_type == job_type.value)
                count_query = count_query.where(ProcessingJobORM.job_type == job_type.value)

            query = query.order_by(ProcessingJobORM.priority.asc(), ProcessingJobORM.created_at.asc())
            rows = session.execute(query.limit(limit).offset(offset)).scalars().all()
            total = session.execute(count_query).scalar_one()
            return [orm.to_domain() for orm in rows], total
        finally:
            session.close()

    def claim_next(self, *, started_at: datetime, progress: int) -> Optional[ProcessingJob]:
        session = self._session_factory()
        try:
            while True:
                # SKIP LOCKED keeps concurrent claimers on PostgreSQL off each
                # other's candidate row; dialects without row locks ignore it
                # and rely on the conditional UPDATE below.
                candidate_id = session.execute(
                    select(ProcessingJobORM.id)
                    .where(ProcessingJobORM.status == JobStatus.QUEUED.value)
                    .order_by(ProcessingJobORM.priority.asc(), ProcessingJobORM.created_at.asc())
                    .limit(1)
                    .with_for_update(skip_locked=True)
                ).scalar_one_or_none()
                if candidate_id is None:
                    session.rollback()
                    return None

                result = session.execute(
                    update(ProcessingJobORM)
                    .where(
                        ProcessingJobORM.id == candidate_id,
                        ProcessingJobORM.status == JobStatus.QUEUED.value,
                    )
                    .values(status=JobStatus.PROCESSING.value, started_at=started_at, progress=progress)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    session.commit()
                    orm = session.get(ProcessingJobORM, candidate_id, populate_existing=True)
                    return orm.to_domain() if orm is not None else None

                session.rollback()
                logger.debug("Lost claim race for job %s, selecting again", candidate_id)
        finally:
            session.close()

    def compare_and_set(
        self,
        job_id: UUID,
        *,
        expected: Collection[JobStatus],
        changes: Dict[str, Any],
    ) -> Optional[ProcessingJob]:
        check_field_changes(ProcessingJob, changes)
        session = self._session_factory()
        try:
            result = session.execute(
                update(ProcessingJobORM)
                .where(
                    ProcessingJobORM.id == job_id,
                    ProcessingJobORM.status.in_([status.value for status in expected]),
                )
                .values(**column_values(changes))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                return None
            session.commit()
            orm = session.get(ProcessingJobORM, job_id, populate_existing=True)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def list_processing(self, *, job_type: Optional[JobType] = None) -> List[ProcessingJob]:
        session = self._session_factory()
        try:
            query = select(ProcessingJobORM).where(ProcessingJobORM.status == JobStatus.PROCESSING.value)
            if job_type is not None:
                query = query.where(ProcessingJobORM.job_type == job_type.value)
            return [orm.to_domain() for orm in session.execute(query).scalars().all()]
        finally:
            session.close()
