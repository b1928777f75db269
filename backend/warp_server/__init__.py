from warp_server.config import ServerConfig
from warp_server.context import AuthorizationContext, ClientContext, FunctionCall
from warp_server.errors import WarpError
from warp_server.models.definition import SESSION_DEFINITION, USER_DEFINITION, ModelDefinition
from warp_server.registry import FunctionDefinition, QueueDefinition
from warp_server.server import WarpServer, __version__
from warp_server.storage import LocalStorage, StorageBackend

__all__ = [
    "AuthorizationContext",
    "ClientContext",
    "FunctionCall",
    "FunctionDefinition",
    "LocalStorage",
    "ModelDefinition",
    "QueueDefinition",
    "ServerConfig",
    "SESSION_DEFINITION",
    "StorageBackend",
    "USER_DEFINITION",
    "WarpError",
    "WarpServer",
    "__version__",
]
