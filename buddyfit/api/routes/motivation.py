"""
buddyfit.api.routes.motivation — Motivational message endpoint
===============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import Engine

from buddyfit.api.deps import get_config, get_current_user, get_engine
from buddyfit.config import BuddyFitConfig
from buddyfit.services import motivation_service
from buddyfit.services.motivation_service import MessageType

router = APIRouter(prefix="/motivation", tags=["motivation"])


class MessageRequest(BaseModel):
    message_type: str | None = None


@router.post("/message")
def motivation_message(
    body: MessageRequest,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    cfg: BuddyFitConfig = Depends(get_config),
):
    """A short message for the caller; always succeeds with a fallback."""
    if body.message_type and body.message_type not in {m.value for m in MessageType}:
        raise HTTPException(422, f"Unknown message type: {body.message_type}")

    context = motivation_service.build_context(engine, user_id)
    context = motivation_service.with_classification(context)
    message = motivation_service.generate_message(
        context,
        body.message_type,
        model=cfg.motivation_model,
        timeout=cfg.motivation_timeout_seconds,
    )
    return {
        "message": message,
        "event": context.event,
        "severity": context.severity,
    }
