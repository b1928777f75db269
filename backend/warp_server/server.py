"""
Warp Server.

WarpServer owns the registries and the request pipeline. Applications build
one from a ServerConfig, register their models, functions and queues, then
call create_app() (or mount router() themselves, see create_app for the
app state it relies on).
"""

import logging
from contextlib import asynccontextmanager
from typing import Iterable, Optional

from fastapi import APIRouter, Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from warp_server.config import ServerConfig
from warp_server.database import build_engine, init_db, ping
from warp_server.errors import register_exception_handlers
from warp_server.models.definition import ModelDefinition
from warp_server.registry import (
    FunctionDefinition,
    FunctionRegistry,
    ModelRegistry,
    QueueDefinition,
    QueueRegistry,
)
from warp_server.routes import classes, files, functions, queues, sessions, users
from warp_server.routes.dependencies import extract_client, extract_session_token, require_api_key, throttle
from warp_server.services.authorization import AuthorizationGate
from warp_server.services.rate_gate import RateGate
from warp_server.services.session_service import SessionService
from warp_server.storage import LocalStorage, StorageBackend

logger = logging.getLogger(__name__)

__version__ = "0.1.0"


class WarpServer:
    def __init__(
        self,
        config: ServerConfig,
        engine: Optional[Engine] = None,
        storage: Optional[StorageBackend] = None,
    ):
        self.config = config.validate()
        self.engine = engine or build_engine(config.database_url, echo=config.sql_echo)
        self.storage = storage or LocalStorage(config.storage_path, config.storage_url)

        self.models = ModelRegistry(self.storage)
        self.functions = FunctionRegistry()
        self.queues = QueueRegistry()

        self.gate = AuthorizationGate(config.master_key, self.models)
        self.sessions = SessionService(self.models, self.gate)
        self.rate_gate = RateGate(config.throttle_limit, config.throttle_interval)

        self._router: Optional[APIRouter] = None

    # ------------------------------------------------------------------
    # Registration (before serving only)
    # ------------------------------------------------------------------

    def register_model(self, definition: ModelDefinition) -> "WarpServer":
        self.models.register(definition)
        return self

    def register_models(self, definitions: Iterable[ModelDefinition]) -> "WarpServer":
        self.models.register_many(definitions)
        return self

    def register_auth_models(
        self, user: Optional[ModelDefinition], session: Optional[ModelDefinition]
    ) -> "WarpServer":
        self.models.register_auth_models(user, session)
        return self

    def register_push_models(
        self, installation: Optional[ModelDefinition], push: Optional[ModelDefinition]
    ) -> "WarpServer":
        self.models.register_push_models(installation, push)
        return self

    def register_function(self, definition: FunctionDefinition) -> "WarpServer":
        self.functions.register(definition)
        return self

    def register_functions(self, definitions: Iterable[FunctionDefinition]) -> "WarpServer":
        self.functions.register_many(definitions)
        return self

    def register_queue(self, definition: QueueDefinition) -> "WarpServer":
        self.queues.register(definition)
        return self

    def register_queues(self, definitions: Iterable[QueueDefinition]) -> "WarpServer":
        self.queues.register_many(definitions)
        return self

    # ------------------------------------------------------------------
    # Router assembly
    # ------------------------------------------------------------------

    def router(self) -> APIRouter:
        """The API router; pipeline stages run in the order listed below."""
        if self._router is not None:
            return self._router

        self.models.warn_if_incomplete()

        router = APIRouter(
            dependencies=[
                Depends(extract_session_token),
                Depends(extract_client),
                Depends(throttle),
                Depends(require_api_key),
            ]
        )
        router.include_router(classes.router, tags=["classes"])
        router.include_router(users.router, tags=["users"])
        router.include_router(sessions.router, tags=["sessions"])
        router.include_router(files.router, tags=["files"])
        router.include_router(functions.router, tags=["functions"])
        router.include_router(queues.router, tags=["queues"])

        self._router = router
        return router

    def create_app(self, prefix: str = "") -> FastAPI:
        server = self

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            init_db(server.engine)
            # Fail fast when the database is unreachable
            ping(server.engine)
            logger.info("Warp Server %s started, connected to the database", __version__)
            yield

        app = FastAPI(title="Warp Server", version=__version__, lifespan=lifespan)
        app.state.warp = self
        app.state.engine = self.engine

        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.config.cors_origins,
            allow_credentials="*" not in self.config.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        register_exception_handlers(app)
        app.include_router(self.router(), prefix=prefix)
        return app
