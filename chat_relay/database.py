"""
SQL-backed message and session stores
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Column, DateTime
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import Field, SQLModel, col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from .errors import PersistenceFailure
from .logger import get_logger
from .models import ChatMessage, Session, utcnow

logger = get_logger()


class MessageRecord(SQLModel, table=True):
    __tablename__ = "messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    room: str = Field(index=True)
    username: str
    text: str
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )


class SessionRecord(SQLModel, table=True):
    __tablename__ = "sessions"

    connection_id: str = Field(primary_key=True)
    username: str
    room: str = Field(index=True)
    joined_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    url = make_url(database_url)
    # only SQLite needs that arg
    opts = {"check_same_thread": False} if url.drivername.startswith("sqlite") else {}
    return create_async_engine(database_url, echo=echo, connect_args=opts)


def create_session_factory(engine: AsyncEngine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine):
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


class SQLMessageStore:
    """Message store over the ``messages`` table"""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def append(self, room: str, username: str, text: str) -> ChatMessage:
        record = MessageRecord(room=room, username=username, text=text)
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
                await session.refresh(record)
        except SQLAlchemyError as e:
            logger.error(f"Message append failed for room {room}: {e}")
            raise PersistenceFailure("message append failed") from e

        return ChatMessage(
            username=record.username,
            room=record.room,
            text=record.text,
            created_at=_aware(record.created_at),
            message_id=str(record.id),
        )

    async def recent(self, room: str, limit: int) -> List[ChatMessage]:
        if limit <= 0:
            return []

        statement = (
            select(MessageRecord)
            .where(MessageRecord.room == room)
            .order_by(col(MessageRecord.created_at).desc(), col(MessageRecord.id).desc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                records = (await session.exec(statement)).all()
        except SQLAlchemyError as e:
            logger.error(f"History query failed for room {room}: {e}")
            raise PersistenceFailure("history query failed") from e

        return [
            ChatMessage(
                username=record.username,
                room=record.room,
                text=record.text,
                created_at=_aware(record.created_at),
                message_id=str(record.id),
            )
            for record in records
        ]


class SQLSessionStore:
    """Session store over the ``sessions`` table"""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def create(self, session: Session) -> None:
        record = SessionRecord(
            connection_id=session.connection_id,
            username=session.username,
            room=session.room,
            joined_at=session.joined_at,
        )
        try:
            async with self._session_factory() as db:
                await db.merge(record)
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Session create failed for {session.connection_id}: {e}")
            raise PersistenceFailure("session create failed") from e

    async def find(self, connection_id: str) -> Optional[Session]:
        try:
            async with self._session_factory() as db:
                record = await db.get(SessionRecord, connection_id)
        except SQLAlchemyError as e:
            raise PersistenceFailure("session lookup failed") from e

        if record is None:
            return None
        return Session(
            connection_id=record.connection_id,
            username=record.username,
            room=record.room,
            joined_at=_aware(record.joined_at),
        )

    async def delete(self, connection_id: str) -> Optional[Session]:
        try:
            async with self._session_factory() as db:
                record = await db.get(SessionRecord, connection_id)
                if record is None:
                    return None
                await db.delete(record)
                await db.commit()
        except SQLAlchemyError as e:
            raise PersistenceFailure("session delete failed") from e

        return Session(
            connection_id=record.connection_id,
            username=record.username,
            room=record.room,
            joined_at=_aware(record.joined_at),
        )
