from typing import Any, Dict
import re
import time
from uuid import uuid4

import structlog
from fastapi import APIRouter, HTTPException, Request

from mentor.domain.errors import BaselineStoreError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/session", tags=["session"])

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{1,128}$")


def is_valid_session_id(session_id: str) -> bool:
    """Session ids are opaque but must be safe to use as storage keys and URL segments"""
    return bool(SESSION_ID_PATTERN.match(session_id or ""))


# REST endpoint that hands out a fresh session for the websocket
@router.post("/create")
async def create_session(request: Request) -> Dict[str, Any]:
    session_id = str(uuid4())
    settings = request.app.state.settings

    return {
        "session_id": session_id,
        "websocket_url": f"/ws/session/{session_id}",
        "change_threshold": settings.change_threshold,
        "created_at": time.time()
    }


@router.get("/{session_id}")
async def get_session_state(session_id: str, request: Request) -> Dict[str, Any]:
    """Analyzed baseline and last advisory of a session"""
    if not is_valid_session_id(session_id):
        raise HTTPException(status_code=400, detail="Invalid session ID format")

    registry = request.app.state.registry
    actor = registry.get(session_id)

    if actor is not None:
        state = await actor.on_attach()
    else:
        try:
            state = await registry.store.get(session_id)
        except BaselineStoreError as e:
            logger.error("Failed to load session state", session_id=session_id, error=str(e))
            raise HTTPException(status_code=503, detail="Session store unavailable")

    return {
        "session_id": session_id,
        "baseline_text": state.baseline_text,
        "last_result": state.last_result,
        "updated_at": state.updated_at.isoformat(),
        "active": actor is not None,
        "connections": request.app.state.connection_manager.connection_count(session_id)
    }
