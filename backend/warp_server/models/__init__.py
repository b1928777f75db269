from warp_server.models.base import WarpTable
from warp_server.models.definition import SESSION_DEFINITION, SESSION_LIFETIME, USER_DEFINITION, ModelDefinition
from warp_server.models.session import SessionRecord
from warp_server.models.user import User

__all__ = [
    "WarpTable",
    "User",
    "SessionRecord",
    "ModelDefinition",
    "USER_DEFINITION",
    "SESSION_DEFINITION",
    "SESSION_LIFETIME",
]
