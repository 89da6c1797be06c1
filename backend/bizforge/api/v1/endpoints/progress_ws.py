"""
WebSocket push channel for generation progress

    ws://<host>/ws/generation-progress/{job_id}

Server -> client:
    {"type": "connected", "job_id": ..., "timestamp": ...}      once, on open
    {"type": "generation_progress", "job_id": ..., "data": {...}}
    {"type": "pong", "timestamp": ...}                           reply to ping
    {"type": "error", "message": ...}

Client -> server:
    {"type": "ping"}                                             heartbeat
"""

import json
from datetime import datetime

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from bizforge.core.logging_config import logger
from bizforge.modules.orchestrator.progress_broadcaster import ProgressBroadcaster

router = APIRouter()


def get_broadcaster(websocket: WebSocket) -> ProgressBroadcaster:
    return websocket.app.state.broadcaster


@router.websocket("/ws/generation-progress/{job_id}")
async def generation_progress(websocket: WebSocket, job_id: str):
    broadcaster = get_broadcaster(websocket)
    await websocket.accept()
    await websocket.send_json({
        "type": "connected",
        "job_id": job_id,
        "timestamp": datetime.utcnow().isoformat(),
    })
    broadcaster.subscribe(job_id, websocket)
    logger.info(f"[ProgressWS] Client connected to {job_id} ({broadcaster.subscriber_count(job_id)} total)")

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))

            data = frame.get("text")
            if data is None:
                await websocket.send_json({"type": "error", "message": "Invalid message format"})
                continue

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid message format"})
                continue

            message_type = message.get("type") if isinstance(message, dict) else None
            if message_type == "ping":
                await websocket.send_json({"type": "pong", "timestamp": datetime.utcnow().isoformat()})
            elif not isinstance(message, dict):
                await websocket.send_json({"type": "error", "message": "Invalid message format"})
            else:
                await websocket.send_json({"type": "error", "message": f"Unknown message type: {message_type}"})

    except WebSocketDisconnect as e:
        logger.info(f"[ProgressWS] Client disconnected from {job_id} (code {e.code})")
    finally:
        broadcaster.unsubscribe(job_id, websocket)
