"""SQLAlchemy models."""

from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func

from .database import Base


class Job(Base):
    """One embedding run for a repository and tenant."""

    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(64), unique=True, nullable=False, index=True)
    tenant_id = Column(String(255), nullable=False, index=True)
    repo_url = Column(String(2048), nullable=False)
    revision = Column(String(255))
    status = Column(String(50), nullable=False, index=True)  # queued, running, succeeded, failed
    progress = Column(Integer, nullable=False, default=0)
    error = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class User(Base):
    """A known tenant."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
