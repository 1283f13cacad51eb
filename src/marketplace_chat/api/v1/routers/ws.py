from __future__ import annotations

import asyncio
import logging
import uuid
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from marketplace_chat.api.deps import ChannelDep, get_verifier
from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.config import settings
from marketplace_chat.infrastructure.ws.manager import Subscriber
from marketplace_chat.infrastructure.ws.protocol import WsInbound, WsOutbound
from marketplace_chat.services.channel_service import MessagesChannel

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


async def _authenticate(token: str) -> Principal | None:
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/messages")
async def ws_messages(
    websocket: WebSocket,
    channel: ChannelDep,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    await websocket.accept()
    session_id = uuid.uuid4().hex
    logger.info("WS connected session=%s user=%s", session_id, principal.user_id)

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{session_id}",
    )
    try:
        await _read_loop(websocket, channel, session_id, principal)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for session %s", session_id)
    finally:
        heartbeat_task.cancel()
        removed = channel.disconnect(session_id)
        logger.info("WS disconnected session=%s (%d subscriptions dropped)", session_id, removed)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await ws.send_text(WsOutbound(type="pong").model_dump_json())
    except asyncio.CancelledError:
        pass
    except Exception:
        pass


async def _send(ws: WebSocket, message: WsOutbound) -> None:
    await ws.send_text(message.model_dump_json())


async def _read_loop(
    ws: WebSocket,
    channel: MessagesChannel,
    session_id: str,
    principal: Principal,
) -> None:
    subscriptions: dict[UUID, Subscriber] = {}
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            await _send(ws, WsOutbound(type="error", data={"code": "invalid_payload"}))
            continue

        if msg.type == "ping":
            await _send(ws, WsOutbound(type="pong"))
            continue

        if msg.type not in ("subscribe", "unsubscribe", "perform"):
            await _send(ws, WsOutbound(type="error", data={"code": "unknown_type", "type": msg.type}))
            continue

        conversation_id = msg.conversation_id
        if conversation_id is None:
            await _send(ws, WsOutbound(type="error", data={"code": "invalid_payload"}))
            continue

        if msg.type == "subscribe":
            subscriber = await channel.subscribe(
                session_id, principal.user_id, conversation_id, ws,
            )
            if subscriber is None:
                await _send(ws, WsOutbound(type="reject_subscription", conversation_id=conversation_id))
            else:
                subscriptions[conversation_id] = subscriber
                await _send(ws, WsOutbound(type="confirm_subscription", conversation_id=conversation_id))

        elif msg.type == "unsubscribe":
            subscriber = subscriptions.pop(conversation_id, None)
            if subscriber is not None:
                channel.unsubscribe(subscriber)

        else:
            subscriber = subscriptions.get(conversation_id)
            if subscriber is None:
                continue
            try:
                await channel.perform(subscriber, msg.action or "", msg.data)
            except WebSocketDisconnect:
                raise
            except Exception:
                logger.exception(
                    "Action %s failed for session=%s conversation=%s",
                    msg.action, session_id, conversation_id,
                )
                await _send(
                    ws,
                    WsOutbound(
                        type="error",
                        conversation_id=conversation_id,
                        data={"code": "internal_error"},
                    ),
                )
