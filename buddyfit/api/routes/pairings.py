"""
buddyfit.api.routes.pairings — Gym buddy requests and pairings
===============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from buddyfit.api.deps import get_current_user, get_engine
from buddyfit.errors import ConflictError, NotFoundError
from buddyfit.services import pairing_service

router = APIRouter(prefix="/pairings", tags=["pairings"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class PairingRequestIn(BaseModel):
    to_user_id: int = Field(gt=0)


def _run(fn, *args):
    try:
        return fn(*args)
    except NotFoundError as exc:
        raise HTTPException(404, str(exc))
    except ConflictError as exc:
        raise HTTPException(409, str(exc))
    except ValueError as exc:
        raise HTTPException(422, str(exc))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.get("/current")
def current_pairing(
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    """The caller's active buddy, or ``{"pairing": null}``."""
    return {"pairing": pairing_service.get_current_pairing(engine, user_id)}


@router.get("/requests")
def pending_requests(
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return pairing_service.list_requests(engine, user_id)


@router.post("/requests", status_code=201)
def send_request(
    body: PairingRequestIn,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return _run(pairing_service.send_request, engine, user_id, body.to_user_id)


@router.post("/{pairing_id}/accept")
def accept_request(
    pairing_id: int,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return _run(pairing_service.accept_request, engine, user_id, pairing_id)


@router.post("/{pairing_id}/reject")
def reject_request(
    pairing_id: int,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    _run(pairing_service.reject_request, engine, user_id, pairing_id)
    return {"rejected": pairing_id}


@router.post("/{pairing_id}/cancel")
def cancel_request(
    pairing_id: int,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    _run(pairing_service.cancel_request, engine, user_id, pairing_id)
    return {"cancelled": pairing_id}


@router.post("/{pairing_id}/end")
def end_pairing(
    pairing_id: int,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return _run(pairing_service.end_pairing, engine, user_id, pairing_id)
