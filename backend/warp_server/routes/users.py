from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from warp_server.context import ClientContext
from warp_server.database import get_session
from warp_server.routes.dependencies import (
    envelope,
    get_client,
    get_master_key,
    get_server,
    get_session_token,
    password_text,
    require_master_key,
)
from warp_server.services.dispatcher import FindOptions, ResourceDispatcher, parse_include

router = APIRouter()


class ChangePasswordRequest(BaseModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None

    @field_validator("old_password", "new_password", mode="before")
    @classmethod
    def password_as_text(cls, value):
        return password_text(value)


@router.get("/users")
def find_users(
    include: Optional[str] = None,
    where: Optional[str] = None,
    order: Optional[str] = None,
    limit: Optional[str] = None,
    skip: Optional[str] = None,
    server=Depends(get_server),
    session: Session = Depends(get_session),
):
    """List users"""
    options = FindOptions.from_query(include, where, order, limit, skip)
    return envelope(ResourceDispatcher(server.models.user_model(), session).find(options))


@router.get("/users/me")
def who_am_i(
    include: Optional[str] = None,
    server=Depends(get_server),
    session: Session = Depends(get_session),
    session_token: Optional[str] = Depends(get_session_token),
):
    """The user owning the current session"""
    return envelope(server.sessions.who_am_i(session, session_token, parse_include(include)))


@router.get("/users/keys", dependencies=[Depends(require_master_key)])
def user_keys(server=Depends(get_server), session: Session = Depends(get_session)):
    """Viewable/actionable keys of the user model (master key only)"""
    return envelope(ResourceDispatcher(server.models.user_model(), session).keys())


@router.get("/users/{user_id}")
def get_user(
    user_id: int,
    include: Optional[str] = None,
    server=Depends(get_server),
    session: Session = Depends(get_session),
):
    """Get a user by ID; result is null when it does not exist"""
    return envelope(ResourceDispatcher(server.models.user_model(), session).first(user_id, parse_include(include)))


@router.post("/users")
def create_user(
    fields: Dict[str, Any] = Body(...),
    server=Depends(get_server),
    session: Session = Depends(get_session),
    client: ClientContext = Depends(get_client),
):
    """Sign up a new user"""
    return envelope(ResourceDispatcher(server.models.user_model(), session).create_user(fields, client))


@router.post("/users/change-password")
def change_password(
    body: ChangePasswordRequest,
    server=Depends(get_server),
    session: Session = Depends(get_session),
    session_token: Optional[str] = Depends(get_session_token),
    client: ClientContext = Depends(get_client),
):
    server.sessions.change_password(session, session_token, body.old_password, body.new_password, client)
    return {"status": 200, "message": "Success"}


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    fields: Dict[str, Any] = Body(...),
    server=Depends(get_server),
    session: Session = Depends(get_session),
    session_token: Optional[str] = Depends(get_session_token),
    master_key: Optional[str] = Depends(get_master_key),
    client: ClientContext = Depends(get_client),
):
    """Update a user; only the user themselves unless the master key is used"""
    context = server.gate.authorize(session, session_token, master_key)
    server.gate.require_owner(context, user_id, "edit")
    return envelope(ResourceDispatcher(server.models.user_model(), session).update(user_id, fields, client))


@router.delete("/users/{user_id}")
def destroy_user(
    user_id: int,
    server=Depends(get_server),
    session: Session = Depends(get_session),
    session_token: Optional[str] = Depends(get_session_token),
    master_key: Optional[str] = Depends(get_master_key),
    client: ClientContext = Depends(get_client),
):
    """Delete a user; only the user themselves unless the master key is used"""
    context = server.gate.authorize(session, session_token, master_key)
    server.gate.require_owner(context, user_id, "destroy")
    return envelope(ResourceDispatcher(server.models.user_model(), session).destroy(user_id, client))
