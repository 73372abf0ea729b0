"""Persistent job ledger."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.models import FAILED, JOB_STATUSES, QUEUED, RUNNING, TERMINAL_STATUSES
from .database import Base, make_session_factory
from .models import Job, User

logger = logging.getLogger(__name__)


class JobLedger:
    """Job records keyed by job id, plus the directory of known tenants.

    Every call uses its own session, so one ledger can be shared by all
    running jobs. Returned ``Job`` objects are detached snapshots.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str) -> "JobLedger":
        session_factory = make_session_factory(database_url)
        Base.metadata.create_all(bind=session_factory.kw["bind"])
        return cls(session_factory)

    def create(self, tenant_id: str, repo_url: str, revision: Optional[str] = None) -> Job:
        job = Job(
            job_id=uuid.uuid4().hex,
            tenant_id=tenant_id,
            repo_url=repo_url,
            revision=revision,
            status=QUEUED,
            progress=0,
        )
        with self.session_factory() as db:
            db.add(job)
            db.commit()
            db.refresh(job)
        logger.info(f"Created job {job.job_id} for {repo_url}")
        return job

    def update_status(
        self,
        job_id: str,
        status: str,
        progress: int = 0,
        error: Optional[str] = None,
    ) -> Optional[Job]:
        """Move a job to *status*.

        Terminal jobs are never modified, a running job's progress never goes
        down, and ``error`` is kept only for failed jobs.

        Returns:
            The updated job, or None if no job has this id
        """
        if status not in JOB_STATUSES:
            raise ValueError(f"Unknown job status: {status!r}")
        if not 0 <= progress <= 100:
            raise ValueError(f"Progress must be between 0 and 100, got {progress}")

        with self.session_factory() as db:
            job = db.query(Job).filter(Job.job_id == job_id).first()
            if not job:
                logger.warning(f"Job {job_id} not found when updating status")
                return None

            if job.status in TERMINAL_STATUSES:
                logger.warning(
                    f"Ignoring update of job {job_id} to {status}: already {job.status}"
                )
                return job

            if status == RUNNING and job.status == RUNNING and progress < job.progress:
                progress = job.progress

            job.status = status
            job.progress = progress
            if status == FAILED:
                job.error = error or "Unknown error during embedding process"
            else:
                job.error = None

            db.commit()
            db.refresh(job)

        logger.info(f"Updated job {job_id}: status={status} progress={progress}")
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self.session_factory() as db:
            return db.query(Job).filter(Job.job_id == job_id).first()

    def add_user(self, user_id: str) -> None:
        """Register a tenant. Registering an existing tenant is a no-op."""
        with self.session_factory() as db:
            db.add(User(user_id=user_id))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()

    def user_exists(self, user_id: str) -> bool:
        try:
            with self.session_factory() as db:
                return db.query(User.id).filter(User.user_id == user_id).first() is not None
        except SQLAlchemyError as e:
            logger.error(f"Error checking if user {user_id} exists: {e}")
            return False

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.session_factory() as db:
                db.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False
