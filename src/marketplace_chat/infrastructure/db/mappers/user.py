from __future__ import annotations

from marketplace_chat.domain.entities.user import User
from marketplace_chat.infrastructure.db.models.user import UserModel


def model_to_entity(model: UserModel) -> User:
    profile = model.profile
    return User(
        id=model.id,
        email=model.email,
        confirmed_at=model.confirmed_at,
        first_name=profile.first_name if profile else None,
        last_name=profile.last_name if profile else None,
    )
