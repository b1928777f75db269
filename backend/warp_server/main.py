"""
Application entry point: `uvicorn warp_server.main:app`.

Models, functions and queues are registered explicitly. Every module listed
in WARP_PLUGINS (comma-separated dotted paths) must expose
`register(server: WarpServer)`; they are imported and called in order.
"""

import importlib
import logging
import os

from warp_server.config import ServerConfig
from warp_server.models.definition import SESSION_DEFINITION, USER_DEFINITION
from warp_server.server import WarpServer

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="[Warp Server %(asctime)s] %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def load_plugins(server: WarpServer, modules: str) -> None:
    for name in (m.strip() for m in modules.split(",")):
        if not name:
            continue
        module = importlib.import_module(name)
        module.register(server)
        logger.info("Registered plugin %s", name)


def build_server() -> WarpServer:
    server = WarpServer(ServerConfig.from_env())
    server.register_auth_models(USER_DEFINITION, SESSION_DEFINITION)
    load_plugins(server, os.getenv("WARP_PLUGINS", ""))
    return server


app = build_server().create_app(prefix=os.getenv("WARP_API_PREFIX", ""))
