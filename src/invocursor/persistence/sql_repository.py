"""SQLAlchemy implementation of the Repository."""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

from invocursor.models.account import ApiKeyRecord, RequestLogEntry
from invocursor.observability.logging import get_logger
from invocursor.persistence.db import make_engine, make_session_factory
from invocursor.persistence.models import ApiKey, Base, RequestLog, WeeklyUsage
from invocursor.persistence.repository import Repository


logger = get_logger(__name__)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _to_aware_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLRepository(Repository):
    """Production SQL persistence layer."""

    def __init__(self, database_url: str):
        """Initialize the repository with a database URL.

        Args:
            database_url: SQLAlchemy connection string.
        """
        self.engine = make_engine(database_url)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = make_session_factory(self.engine)

    @staticmethod
    def _record_from_row(row: ApiKey) -> ApiKeyRecord:
        return ApiKeyRecord(
            key=row.key,
            name=row.name,
            tier=row.tier,
            configs=list(row.configs or []),
            created=_to_aware_utc(row.created_at),
            analytics_password_hash=row.analytics_password_hash,
        )

    def get_api_key(self, key: str) -> Optional[ApiKeyRecord]:
        with self.SessionLocal() as session:
            row = session.get(ApiKey, key)
            return self._record_from_row(row) if row else None

    def save_api_key(self, record: ApiKeyRecord):
        with self.SessionLocal() as session:
            row = session.get(ApiKey, record.key)
            if row is None:
                row = ApiKey(key=record.key)
                session.add(row)
            row.name = record.name
            row.tier = record.tier
            row.configs = list(record.configs)
            row.created_at = _to_naive_utc(record.created)
            row.analytics_password_hash = record.analytics_password_hash
            session.commit()

    def list_api_keys(self) -> list[ApiKeyRecord]:
        with self.SessionLocal() as session:
            rows = session.execute(
                select(ApiKey).order_by(ApiKey.created_at)
            ).scalars()
            return [self._record_from_row(r) for r in rows]

    def get_weekly_usage(self, key: str) -> Optional[tuple[date, int]]:
        with self.SessionLocal() as session:
            row = session.get(WeeklyUsage, key)
            return (row.week_start, row.count) if row else None

    def save_weekly_usage(self, key: str, week_start: date, count: int):
        with self.SessionLocal() as session:
            row = session.get(WeeklyUsage, key)
            if row is None:
                row = WeeklyUsage(key=key)
                session.add(row)
            row.week_start = week_start
            row.count = count
            session.commit()

    def append_request_log(self, entry: RequestLogEntry):
        with self.SessionLocal() as session:
            session.add(
                RequestLog(
                    api_key=entry.api_key,
                    timestamp=_to_naive_utc(entry.timestamp),
                    config=entry.config,
                    goal=entry.goal,
                    success=entry.success,
                    response_time_ms=entry.response_time_ms,
                )
            )
            session.commit()

    def list_request_logs(
        self, key: Optional[str] = None, since: Optional[datetime] = None
    ) -> list[RequestLogEntry]:
        stmt = select(RequestLog)
        if key is not None:
            stmt = stmt.where(RequestLog.api_key == key)
        if since is not None:
            stmt = stmt.where(RequestLog.timestamp >= _to_naive_utc(since))
        stmt = stmt.order_by(RequestLog.timestamp, RequestLog.id)

        with self.SessionLocal() as session:
            return [
                RequestLogEntry(
                    timestamp=_to_aware_utc(row.timestamp),
                    api_key=row.api_key,
                    config=row.config,
                    goal=row.goal,
                    success=row.success,
                    response_time_ms=row.response_time_ms,
                )
                for row in session.execute(stmt).scalars()
            ]

    def check_health(self) -> bool:
        try:
            with self.SessionLocal() as session:
                session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("Database health check failed")
            return False
