from datetime import datetime, date, timezone
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from casamia.config import config

engine = create_async_engine(config.DATABASE_URL, echo=False)

AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):

    def to_dict(self, exclude: tuple = ()) -> dict:
        """Column values as a JSON-friendly dict (relationships are not included)."""
        data = {}
        for attr in inspect(self).mapper.column_attrs:
            if attr.key in exclude:
                continue
            value = getattr(self, attr.key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            data[attr.key] = value
        return data
