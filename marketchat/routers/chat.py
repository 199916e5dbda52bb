import json
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from marketchat.schemas.chat import InboxRow
from marketchat.services.chat_service import ChatService
from marketchat.services.inbox_service import InboxService
from marketchat.utils.dependencies import get_chat_service, get_inbox_service
from marketchat.utils.errors import ChatError, NotFoundError
from marketchat.utils.rendering import message_payload


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["chat"])


async def _drain(websocket: WebSocket) -> None:
    # inbox sockets are push-only; read until the client goes away
    while True:
        await websocket.receive_text()


@router.websocket("/ws/inbox/{user_id}")
async def inbox_socket(websocket: WebSocket, user_id: str, inbox: InboxService = Depends(get_inbox_service)):
    await websocket.accept()

    async def _push(rows: List[InboxRow]) -> None:
        await websocket.send_json({"type": "inbox", "items": [r.model_dump(mode="json") for r in rows]})

    async def _failed(exc: Exception) -> None:
        await websocket.send_json({"type": "error", "detail": "Inbox stream failed, reconnect to resume"})

    subscription = inbox.subscribe_inbox(user_id, _push, _failed)
    try:
        await _drain(websocket)
    except WebSocketDisconnect:
        pass
    finally:
        subscription.cancel()


async def _handle_frame(service: ChatService, websocket: WebSocket, conversation_id: str, user_id: str, msg: Dict[str, Any]) -> None:
    # {"type": "message", "content", "client_message_id"?} or {"type": "listing", "listing_id", "client_message_id"?}
    kind = msg.get("type", "message")
    try:
        if kind == "listing":
            saved = await service.share_listing(conversation_id, user_id, str(msg.get("listing_id") or ""))
        elif kind == "message":
            saved = await service.send_message(conversation_id, user_id, msg.get("content") or "")
        else:
            await websocket.send_json({"type": "error", "detail": f"Unknown frame type {kind!r}"})
            return
    except ChatError as exc:
        # hand the draft back so the client can restore its input
        await websocket.send_json({
            "type": "error",
            "detail": str(exc),
            "draft": msg.get("content"),
            "client_message_id": msg.get("client_message_id"),
        })
        return
    await websocket.send_json({
        "type": "ack",
        "ack": {"message_id": saved.id, "conversation_id": conversation_id, "client_message_id": msg.get("client_message_id")},
    })


@router.websocket("/{conversation_id}/ws/{user_id}")
async def conversation_socket(websocket: WebSocket, conversation_id: str, user_id: str, service: ChatService = Depends(get_chat_service)):
    try:
        convo = await service.get_conversation(conversation_id)
    except NotFoundError:
        await websocket.close(code=4404)
        return
    if user_id not in convo.participants:
        await websocket.close(code=4403)
        return

    await websocket.accept()

    async def _push(messages) -> None:
        await websocket.send_json({"type": "messages", "items": [message_payload(m) for m in messages]})

    async def _failed(exc: Exception) -> None:
        await websocket.send_json({"type": "error", "detail": "Message stream failed, reconnect to resume"})

    subscription = service.stream_messages(convo.id).subscribe(_push, _failed)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except ValueError:
                await websocket.send_json({"type": "error", "detail": "Invalid message payload"})
                continue
            if not isinstance(msg, dict):
                await websocket.send_json({"type": "error", "detail": "Invalid message payload"})
                continue
            await _handle_frame(service, websocket, convo.id, user_id, msg)
    except WebSocketDisconnect:
        logger.debug("User %s left conversation %s", user_id, convo.id)
    finally:
        subscription.cancel()
