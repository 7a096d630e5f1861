from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_chat.application.exceptions import PersistenceError
from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.infrastructure.db.mappers import conversation as mapper
from marketplace_chat.infrastructure.db.models.conversation import ConversationModel

_GET_OR_CREATE_ATTEMPTS = 3


def _select_pair(user1_id: str, user2_id: str) -> Select[tuple[ConversationModel]]:
    return select(ConversationModel).where(
        ConversationModel.user1_id == user1_id,
        ConversationModel.user2_id == user2_id,
    )


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id)
        return mapper.model_to_entity(result) if result else None

    async def list_for_user(self, user_id: str) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(
                or_(
                    ConversationModel.user1_id == user_id,
                    ConversationModel.user2_id == user_id,
                )
            )
            .order_by(ConversationModel.last_activity_at.desc(), ConversationModel.id)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_or_create(
        self,
        user1_id: str,
        user2_id: str,
        now: datetime,
    ) -> tuple[Conversation, bool]:
        """Insert-or-fetch on the pair's unique constraint. Returns (conversation, created)."""
        for _ in range(_GET_OR_CREATE_ATTEMPTS):
            stmt = (
                pg_insert(ConversationModel)
                .values(
                    user1_id=user1_id,
                    user2_id=user2_id,
                    created_at=now,
                    last_activity_at=now,
                )
                .on_conflict_do_nothing(constraint="uq_conversation_pair")
                .returning(ConversationModel)
            )
            result = await self._session.execute(stmt)
            row = result.scalar_one_or_none()
            if row is not None:
                return mapper.model_to_entity(row), True

            # Conflict: another transaction owns the pair
            existing = await self._session.execute(_select_pair(user1_id, user2_id))
            model = existing.scalar_one_or_none()
            if model is not None:
                return mapper.model_to_entity(model), False

        raise PersistenceError(
            f"Could not get or create conversation for {user1_id}/{user2_id}"
        )

    async def touch_last_activity(
        self,
        conversation_id: UUID,
        ts: datetime,
    ) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(last_activity_at=func.greatest(ConversationModel.last_activity_at, ts))
        )
        await self._session.execute(stmt)
