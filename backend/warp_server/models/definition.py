"""
Model definitions.

A ModelDefinition is the registered metadata for one class: which table backs
it, which keys clients may read (viewable) and write (actionable), which keys
point at other classes and which keys hold storage file keys.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Type

from sqlmodel import SQLModel

from warp_server.models.base import utcnow
from warp_server.models.session import SessionRecord
from warp_server.models.user import User
from warp_server.security import generate_session_token, hash_password

# Sessions are created with a fixed lifetime; logout moves expires_at to now
SESSION_LIFETIME = timedelta(days=365)

BeforeSave = Callable[[Dict[str, Any], bool], Dict[str, Any]]


@dataclass
class ModelDefinition:
    class_name: str
    table: Type[SQLModel]
    viewable: List[str] = field(default_factory=list)
    actionable: List[str] = field(default_factory=list)
    pointers: Dict[str, str] = field(default_factory=dict)  # key -> target class name
    files: List[str] = field(default_factory=list)
    before_save: Optional[BeforeSave] = None

    def column_for(self, key: str) -> str:
        """Pointer keys are stored in a `<key>_id` column"""
        return f"{key}_id" if key in self.pointers else key

    def keys(self) -> Dict[str, Any]:
        keys: Dict[str, Any] = {"viewable": list(self.viewable), "actionable": list(self.actionable)}
        if self.pointers:
            keys["pointers"] = list(self.pointers)
        return keys


def _hash_user_password(fields: Dict[str, Any], creating: bool) -> Dict[str, Any]:
    if fields.get("password") is not None:
        fields["password"] = hash_password(str(fields["password"]))
    return fields


def _issue_session_token(fields: Dict[str, Any], creating: bool) -> Dict[str, Any]:
    if creating:
        fields["session_token"] = generate_session_token()
        fields["expires_at"] = utcnow() + SESSION_LIFETIME
    return fields


USER_DEFINITION = ModelDefinition(
    class_name="User",
    table=User,
    viewable=["username", "email"],
    actionable=["username", "email", "password"],
    before_save=_hash_user_password,
)

SESSION_DEFINITION = ModelDefinition(
    class_name="Session",
    table=SessionRecord,
    viewable=["user", "origin", "session_token", "expires_at"],
    actionable=["user", "origin"],
    pointers={"user": "User"},
    before_save=_issue_session_token,
)
