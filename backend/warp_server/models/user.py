from sqlmodel import Field

from warp_server.models.base import WarpTable


class User(WarpTable, table=True):
    username: str = Field(index=True, unique=True)
    email: str = Field(index=True, unique=True)
    password: str  # bcrypt hash, never part of a representation
