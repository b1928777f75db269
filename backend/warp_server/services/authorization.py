"""
Request authorization.

Two paths:
  * master path - the X-Warp-Master-Key header equals the configured master
    key. Authorized unconditionally, no session lookup, no ownership checks.
  * session path - the X-Warp-Session-Token header must name a session whose
    expires_at is strictly later than now. The session's user becomes the
    acting user.
"""

import logging
from typing import Any, Dict, Optional

from sqlmodel import Session

from warp_server.context import AuthorizationContext
from warp_server.errors import WarpError
from warp_server.models.base import utcnow
from warp_server.registry import ModelRegistry
from warp_server.security import keys_match

logger = logging.getLogger(__name__)


class AuthorizationGate:
    def __init__(self, master_key: str, registry: ModelRegistry):
        self.master_key = master_key
        self.registry = registry

    def is_master(self, master_key: Optional[str]) -> bool:
        return keys_match(master_key, self.master_key)

    def lookup_session(self, db: Session, session_token: Optional[str]) -> Dict[str, Any]:
        """Active session row for a token, or InvalidSessionToken"""
        if not session_token:
            raise WarpError(WarpError.Code.InvalidSessionToken, "Session does not exist")

        query = self.registry.session_model().query(db)
        rows = query.rows(
            where={
                "session_token": {"eq": session_token},
                "expires_at": {"gt": utcnow()},
            },
            columns=["id", "user_id", "session_token", "expires_at"],
            limit=1,
        )
        if not rows:
            raise WarpError(WarpError.Code.InvalidSessionToken, "Session does not exist")
        return rows[0]

    def authorize_session(self, db: Session, session_token: Optional[str]) -> AuthorizationContext:
        session = self.lookup_session(db, session_token)
        return AuthorizationContext(
            master_key_present=False,
            session_token=session_token,
            acting_user_id=session["user_id"],
        )

    def authorize(
        self, db: Session, session_token: Optional[str], master_key: Optional[str]
    ) -> AuthorizationContext:
        if self.is_master(master_key):
            return AuthorizationContext(master_key_present=True, session_token=session_token)
        return self.authorize_session(db, session_token)

    def require_master(self, master_key: Optional[str]) -> AuthorizationContext:
        if not self.is_master(master_key):
            raise WarpError(WarpError.Code.ForbiddenOperation, "Forbidden Master Operation")
        return AuthorizationContext(master_key_present=True)

    @staticmethod
    def require_owner(context: AuthorizationContext, target_id: Any, action: str = "edit") -> None:
        """Users may only act on their own record unless the master key was used"""
        if context.master_key_present:
            return
        if context.acting_user_id is None or str(target_id) != str(context.acting_user_id):
            logger.info("User %s denied %s on user %s", context.acting_user_id, action, target_id)
            raise WarpError(WarpError.Code.ForbiddenOperation, f"Users can only {action} their own data")
