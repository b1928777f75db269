from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field

from warp_server.models.base import WarpTable


class SessionRecord(WarpTable, table=True):
    """Login session. Expiring a session is the only way it is ever ended."""

    __tablename__ = "session"

    user_id: int = Field(foreign_key="user.id", index=True)
    session_token: str = Field(index=True, unique=True)
    origin: Optional[str] = None
    expires_at: datetime = Field(index=True, sa_type=DateTime(timezone=True))
