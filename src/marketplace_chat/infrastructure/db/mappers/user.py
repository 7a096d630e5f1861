from __future__ import annotations

from marketplace_chat.domain.entities.user import UserSummary
from marketplace_chat.infrastructure.db.models.user import UserModel


def model_to_entity(model: UserModel) -> UserSummary:
    return UserSummary(
        id=model.id,
        name=model.name,
        profile_pic=model.profile_pic,
    )
