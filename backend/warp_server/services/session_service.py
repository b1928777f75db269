"""
Session lifecycle: login, logout, password change and "who am I".

Sessions are never deleted. Logout writes expires_at = now, so the next
lookup for the same token fails the `expires_at > now` test; a second logout
with that token is rejected like any other invalid token.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from warp_server.context import ClientContext
from warp_server.errors import WarpError
from warp_server.models.base import utcnow
from warp_server.registry import ModelRegistry
from warp_server.security import verify_password
from warp_server.services.authorization import AuthorizationGate

logger = logging.getLogger(__name__)


class SessionService:
    def __init__(self, registry: ModelRegistry, gate: AuthorizationGate):
        self.registry = registry
        self.gate = gate

    def login(
        self,
        db: Session,
        password: Optional[str],
        username: Optional[str] = None,
        email: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Verify credentials and open a session. Username wins over email."""
        if username:
            where = {"username": {"eq": username}}
        elif email:
            where = {"email": {"eq": email}}
        else:
            raise WarpError(WarpError.Code.InvalidCredentials, "Invalid username/password")

        user_model = self.registry.user_model()
        session_model = self.registry.session_model()

        users = user_model.query(db).rows(where=where, columns=["id", "password"], limit=1)
        user = users[0] if users else None
        if user is None or not verify_password(password, user["password"]):
            raise WarpError(WarpError.Code.InvalidCredentials, "Invalid username/password")

        sessions = session_model.query(db)
        created = sessions.create(
            {
                "user": {"type": "Pointer", "className": user_model.class_name, "id": user["id"]},
                "origin": origin,
            }
        )
        logger.info("User %s logged in (origin=%s)", user["id"], origin)
        # Return what was persisted, not what was sent
        return sessions.first(created["id"])

    def logout(self, db: Session, session_token: Optional[str]) -> Dict[str, Any]:
        session = self.gate.lookup_session(db, session_token)
        result = (
            self.registry.session_model()
            .query(db)
            .update(session["id"], {"expires_at": utcnow()})
        )
        logger.info("User %s logged out", session["user_id"])
        return result

    def change_password(
        self,
        db: Session,
        session_token: Optional[str],
        old_password: Optional[str],
        new_password: Optional[str],
        client: Optional[ClientContext] = None,
    ) -> None:
        context = self.gate.authorize_session(db, session_token)
        users = self.registry.user_model().query(db)

        rows = users.rows(where={"id": {"eq": context.acting_user_id}}, columns=["id", "password"], limit=1)
        if not rows:
            raise WarpError(WarpError.Code.InvalidSessionToken, "User does not exist")
        if not new_password or not verify_password(old_password, rows[0]["password"]):
            raise WarpError(WarpError.Code.InvalidCredentials, "Invalid credentials")

        users.update(rows[0]["id"], {"password": new_password}, client)
        logger.info("User %s changed password", rows[0]["id"])

    def who_am_i(self, db: Session, session_token: Optional[str], include: Optional[List[str]] = None):
        context = self.gate.authorize_session(db, session_token)
        return self.registry.user_model().query(db).first(context.acting_user_id, include)

    def list_sessions(self, db: Session, **options) -> List[Dict[str, Any]]:
        return self.registry.session_model().query(db).find(**options)

    def get_session(self, db: Session, session_id: int, include: Optional[List[str]] = None):
        return self.registry.session_model().query(db).first(session_id, include)
