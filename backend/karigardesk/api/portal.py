"""Session state for the external tag-printing portal.

The portal itself is an opaque embedded browser session; the desk only keeps
track of whether the operator has logged into it. That flag lives on
``app.state`` and is handed around explicitly instead of sitting in a global.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from karigardesk import config
from karigardesk.models.order import utcnow

logger = logging.getLogger(__name__)
router = APIRouter()


class PortalSession(BaseModel):
    portal_url: str = ""
    logged_in: bool = False
    username: Optional[str] = None
    logged_in_at: Optional[datetime] = None


class PortalLogin(BaseModel):
    username: Optional[str] = None


def new_portal_session() -> PortalSession:
    return PortalSession(portal_url=config.TAG_PORTAL_URL)


def _session(request: Request) -> PortalSession:
    state = request.app.state
    if getattr(state, "portal_session", None) is None:
        state.portal_session = new_portal_session()
    return state.portal_session


@router.get("/session", response_model=PortalSession)
def get_session(request: Request):
    return _session(request)


@router.put("/session", response_model=PortalSession)
def login(payload: PortalLogin, request: Request):
    current = _session(request)
    request.app.state.portal_session = current.model_copy(
        update={"logged_in": True, "username": payload.username, "logged_in_at": utcnow()}
    )
    logger.info("Tag portal marked logged in user=%s", payload.username)
    return request.app.state.portal_session


@router.delete("/session", response_model=PortalSession)
def logout(request: Request):
    request.app.state.portal_session = new_portal_session()
    logger.info("Tag portal session cleared")
    return request.app.state.portal_session
