"""
Job record model and the derived-state predicates.

There is no status column. A job's state is inferred from its nullable
timestamps and counters; the predicates below are the only definitions of
those states and are shared by the partial indexes, the claim statement and
the operational queries.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    ColumnElement,
    Index,
    Integer,
    String,
    and_,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from jobqueue.infra.database import Base, UTCDateTime, utcnow

DEFAULT_RETRIES = 25


class JobState(str, Enum):
    """Derived job state."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    DEAD = "dead"


class Job(Base):
    """
    One unit of schedulable work.

    Lifecycle:
    - enqueue inserts a Pending row
    - claim sets started_at and increments attempts (Running)
    - success sets completed_at (Completed)
    - failure records error and either clears started_at with a later
      start_after (Pending again) or leaves attempts >= retries (Dead)
    """

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    args: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        default=dict,
        server_default=text("'{}'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )
    start_after: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    retries: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=DEFAULT_RETRIES,
        server_default=text(str(DEFAULT_RETRIES)),
    )
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    error: Mapped[str | None] = mapped_column(String, nullable=True)

    # SQL predicates for the derived states

    @classmethod
    def pending_clause(cls, now: datetime | None = None) -> ColumnElement[bool]:
        """Unfinished, unclaimed, attempts left; due at `now` when given."""
        clause = and_(
            cls.completed_at.is_(None),
            cls.started_at.is_(None),
            cls.attempts < cls.retries,
        )
        if now is not None:
            clause = and_(clause, cls.start_after <= now)
        return clause

    @classmethod
    def running_clause(cls) -> ColumnElement[bool]:
        return and_(
            cls.completed_at.is_(None),
            cls.started_at.is_not(None),
            cls.attempts < cls.retries,
        )

    @classmethod
    def completed_clause(cls) -> ColumnElement[bool]:
        return cls.completed_at.is_not(None)

    @classmethod
    def dead_clause(cls) -> ColumnElement[bool]:
        return and_(cls.completed_at.is_(None), cls.attempts >= cls.retries)

    @classmethod
    def state_clause(
        cls, state: JobState, now: datetime | None = None
    ) -> ColumnElement[bool]:
        if state == JobState.PENDING:
            return cls.pending_clause(now)
        if state == JobState.RUNNING:
            return cls.running_clause()
        if state == JobState.COMPLETED:
            return cls.completed_clause()
        return cls.dead_clause()

    # In-memory state, mirrors the SQL predicates

    @property
    def state(self) -> JobState:
        if self.completed_at is not None:
            return JobState.COMPLETED
        if self.attempts >= self.retries:
            return JobState.DEAD
        if self.started_at is not None:
            return JobState.RUNNING
        return JobState.PENDING

    def is_due(self, now: datetime) -> bool:
        """Whether a pending job may be claimed at `now`."""
        return self.state == JobState.PENDING and self.start_after <= now

    def __repr__(self) -> str:
        return (
            f"<Job id={self.id} name={self.name!r} state={self.state.value} "
            f"attempts={self.attempts}/{self.retries}>"
        )


_pending = Job.pending_clause()
_running = Job.running_clause()

Index(
    "ix_jobs_pending",
    Job.start_after,
    Job.created_at,
    postgresql_where=_pending,
    sqlite_where=_pending,
)
Index(
    "ix_jobs_running",
    Job.start_after,
    Job.created_at,
    postgresql_where=_running,
    sqlite_where=_running,
)
Index("ix_jobs_name_completed_at", Job.name, Job.completed_at)
