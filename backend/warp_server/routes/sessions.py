from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from warp_server.database import get_session
from warp_server.routes.dependencies import (
    envelope,
    get_origin,
    get_server,
    get_session_token,
    password_text,
    require_master_key,
)
from warp_server.services.dispatcher import FindOptions, parse_include

router = APIRouter()


class LoginRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

    @field_validator("password", mode="before")
    @classmethod
    def password_as_text(cls, value):
        return password_text(value)


@router.post("/login")
def login(
    body: LoginRequest,
    server=Depends(get_server),
    session: Session = Depends(get_session),
    origin: Optional[str] = Depends(get_origin),
):
    """Log in with username (or email) and password; returns the new session"""
    result = server.sessions.login(
        session,
        password=body.password,
        username=body.username,
        email=body.email,
        origin=origin,
    )
    return envelope(result)


@router.get("/logout")
def logout(
    server=Depends(get_server),
    session: Session = Depends(get_session),
    session_token: Optional[str] = Depends(get_session_token),
):
    """Expire the current session"""
    return envelope(server.sessions.logout(session, session_token))


@router.get("/sessions", dependencies=[Depends(require_master_key)])
def find_sessions(
    include: Optional[str] = None,
    where: Optional[str] = None,
    order: Optional[str] = None,
    limit: Optional[str] = None,
    skip: Optional[str] = None,
    server=Depends(get_server),
    session: Session = Depends(get_session),
):
    options = FindOptions.from_query(include, where, order, limit, skip)
    result = server.sessions.list_sessions(
        session,
        include=options.include,
        where=options.where,
        sort=options.sort,
        limit=options.limit,
        skip=options.skip,
    )
    return envelope(result)


@router.get("/sessions/{session_id}", dependencies=[Depends(require_master_key)])
def get_session_record(
    session_id: int,
    include: Optional[str] = None,
    server=Depends(get_server),
    session: Session = Depends(get_session),
):
    return envelope(server.sessions.get_session(session, session_id, parse_include(include)))
