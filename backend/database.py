"""Database models and setup for TeslaDash."""

import datetime
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Text,
    JSON,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    pass


# --- Automation Models ---


class RuleExecutionLog(Base):
    """Log of automation rule executions."""

    __tablename__ = "rule_execution_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime, default=_utcnow, index=True)
    rule_id = Column(String(100), nullable=False, index=True)
    rule_name = Column(String(200), nullable=False)
    trigger_type = Column(String(50), nullable=False)
    actions_executed = Column(JSON, nullable=False)
    success = Column(Boolean, default=True)
    error_message = Column(Text, nullable=True)


# --- Database Engine ---


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(database_url, echo=echo)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine):
    """Create all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
