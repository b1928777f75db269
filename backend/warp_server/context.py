from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ClientContext:
    """Client identification headers threaded through to mutations."""

    client: Optional[str] = None
    sdk_version: Optional[str] = None
    app_version: Optional[str] = None


@dataclass
class AuthorizationContext:
    """Request-scoped credentials; never persisted."""

    master_key_present: bool = False
    session_token: Optional[str] = None
    acting_user_id: Optional[int] = None

    @property
    def is_privileged(self) -> bool:
        return self.master_key_present


@dataclass
class FunctionCall:
    """What a registered function handler receives."""

    keys: Dict[str, Any] = field(default_factory=dict)
    auth: AuthorizationContext = field(default_factory=AuthorizationContext)
    client: ClientContext = field(default_factory=ClientContext)
