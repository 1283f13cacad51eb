from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID


class TopicBroadcaster(Protocol):
    """Publishes a channel event to every subscriber of a conversation topic."""

    async def broadcast(
        self,
        conversation_id: UUID,
        event: dict[str, Any],
        *,
        exclude_user_id: int | None = None,
    ) -> int:
        """Returns the number of sessions the event was handed to (best effort)."""
        ...
