"""
backend/api/realtime.py
WebSocket endpoint for live quest-state evaluation.

Clients push their quest state as it changes; evaluation is debounced and
newly earned badges are pushed back as "badge.earned" messages.
"""

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from collections.abc import Mapping
from datetime import datetime, timezone
from uuid import uuid4
import logging
import json

from backend.realtime.hub import hub, ConnectionNotifier
from backend.core.auth import resolve_user_id
from backend.core.logging import log_event
from backend.core.config import settings
from backend.features.badges.debounce import QuestStateDebouncer
from backend.features.badges.evaluator import QuestEvaluator
from backend.features.badges.service import badge_registry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/v1/ws/badges")
async def badges_websocket(websocket: WebSocket):
    """
    Auth Methods:
    1. Authorization: Bearer <ID token>
    2. X-User-Id: <user_id>
    3. Neither: anonymous, in-memory progress for this connection only

    Client messages:
    - {"type": "ping"}
    - {"type": "quest_state", "questState": {...}}

    Server messages:
    - connected, pong, quest_state.ack, badge.earned, error
    """
    await websocket.accept()
    request_id = websocket.headers.get("X-Request-Id") or str(uuid4())
    connection_id = str(uuid4())

    origin = websocket.headers.get("origin")
    allowed = [o.strip() for o in settings.WS_ALLOWED_ORIGINS.split(",") if o.strip()]
    if allowed and allowed != ["*"] and origin and origin not in allowed:
        log_event("info", "ws.origin_blocked", request_id=request_id, event_type="ws.origin_blocked", extra={"origin": origin, "connection_id": connection_id})
        await _reject_and_close(websocket, request_id, "forbidden", "Origin not allowed")
        return

    try:
        user_id = resolve_user_id(websocket.headers.get("Authorization"), websocket.headers.get("X-User-Id"))
    except HTTPException as e:
        log_event("info", "ws.unauthorized", request_id=request_id, event_type="ws.unauthorized", extra={"connection_id": connection_id})
        await _reject_and_close(websocket, request_id, "unauthorized", str(e.detail))
        return

    if user_id:
        service = await badge_registry.get(user_id)
        await hub.register(user_id, websocket)
    else:
        service = await badge_registry.anonymous(ConnectionNotifier(websocket))

    evaluator = QuestEvaluator(service)
    debouncer = QuestStateDebouncer(evaluator.evaluate, delay_seconds=settings.BADGE_DEBOUNCE_MS / 1000)

    log_event(
        "info",
        "ws.connected",
        request_id=request_id,
        user_id=user_id,
        event_type="ws.connected",
        extra={"connection_id": connection_id, "anonymous": user_id is None},
    )

    await websocket.send_json({
        "type": "connected",
        "user_id": user_id,
        "persistent": service.persistent,
        "badges": [b.model_dump(mode="json") for b in service.badges()],
        "ts": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "connection_id": connection_id,
    })

    try:
        while True:
            raw_message = await websocket.receive_text()
            try:
                data = json.loads(raw_message)
            except ValueError as e:
                log_event(
                    "debug",
                    "ws.invalid_json",
                    request_id=request_id,
                    user_id=user_id,
                    event_type="ws.invalid_json",
                    extra={"error": str(e), "connection_id": connection_id},
                )
                continue

            if not isinstance(data, dict):
                continue

            message_type = data.get("type")
            if message_type == "ping":
                await websocket.send_json({
                    "type": "pong",
                    "ts": datetime.now(timezone.utc).isoformat(),
                    "request_id": request_id,
                })
            elif message_type == "quest_state":
                quest_state = data.get("questState")
                if not isinstance(quest_state, Mapping):
                    await websocket.send_json({
                        "type": "error",
                        "code": "validation_error",
                        "message": "questState must be an object",
                        "request_id": request_id,
                    })
                    continue
                scheduled = debouncer.push(quest_state)
                await websocket.send_json({"type": "quest_state.ack", "scheduled": scheduled})

    except WebSocketDisconnect:
        log_event(
            "info",
            "ws.disconnected",
            request_id=request_id,
            user_id=user_id,
            event_type="ws.disconnected",
            extra={"connection_id": connection_id},
        )
    except Exception as e:
        log_event(
            "error",
            "ws.loop_error",
            request_id=request_id,
            user_id=user_id,
            event_type="ws.loop_error",
            extra={"error": str(e), "connection_id": connection_id},
        )
    finally:
        debouncer.cancel()
        if user_id:
            await hub.unregister(user_id, websocket)


async def _reject_and_close(websocket: WebSocket, request_id: str, code: str, message: str):
    try:
        await websocket.send_json({
            "type": "error",
            "code": code,
            "message": message,
            "request_id": request_id,
        })
        await websocket.close(code=1008, reason=message)
    except RuntimeError as e:
        logger.debug(f"[WS] Close after reject failed: {e}")
