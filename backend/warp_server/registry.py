"""
Model, function and queue registries.

Registries are filled from the application entry point before the server
starts serving and are only read while handling requests. Registration is
not synchronised: registering while requests are in flight is unsupported.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, Iterable, Optional, TypeVar

from sqlmodel import Session

from warp_server.errors import WarpError
from warp_server.models.definition import ModelDefinition
from warp_server.query import ModelQuery
from warp_server.storage import StorageBackend

logger = logging.getLogger(__name__)


class ModelKind(str, Enum):
    GENERIC = "generic"
    USER = "user"
    SESSION = "session"
    INSTALLATION = "installation"
    PUSH = "push"


@dataclass
class BoundModel:
    """A definition plus the collaborators injected at registration time."""

    kind: ModelKind
    definition: ModelDefinition
    storage: StorageBackend
    resolve_pointer: Callable[[str], "BoundModel"]

    @property
    def class_name(self) -> str:
        return self.definition.class_name

    def query(self, db: Session) -> ModelQuery:
        return ModelQuery(self, db)


class ModelRegistry:
    def __init__(self, storage: StorageBackend):
        self.storage = storage
        self._models: Dict[str, BoundModel] = {}
        self._slots: Dict[ModelKind, BoundModel] = {}

    def _bind(self, kind: ModelKind, definition: ModelDefinition) -> BoundModel:
        return BoundModel(kind=kind, definition=definition, storage=self.storage, resolve_pointer=self.model_for)

    def register(self, definition: ModelDefinition) -> "ModelRegistry":
        """Insert by class name; a second registration replaces the first."""
        if definition.class_name in self._models:
            logger.debug("Replacing model definition for %s", definition.class_name)
        self._models[definition.class_name] = self._bind(ModelKind.GENERIC, definition)
        return self

    def register_many(self, definitions: Iterable[ModelDefinition]) -> "ModelRegistry":
        for definition in definitions:
            self.register(definition)
        return self

    def register_auth_models(
        self, user: Optional[ModelDefinition], session: Optional[ModelDefinition]
    ) -> "ModelRegistry":
        if user is None or session is None:
            return self
        self._slots[ModelKind.USER] = self._bind(ModelKind.USER, user)
        self._slots[ModelKind.SESSION] = self._bind(ModelKind.SESSION, session)
        return self

    def register_push_models(
        self, installation: Optional[ModelDefinition], push: Optional[ModelDefinition]
    ) -> "ModelRegistry":
        if installation is None or push is None:
            return self
        self._slots[ModelKind.INSTALLATION] = self._bind(ModelKind.INSTALLATION, installation)
        self._slots[ModelKind.PUSH] = self._bind(ModelKind.PUSH, push)
        return self

    def resolve(self, class_name: str) -> BoundModel:
        """Generic model lookup; the auth classes must go through their own endpoints."""
        user = self._slots.get(ModelKind.USER)
        session = self._slots.get(ModelKind.SESSION)
        if user is not None and class_name == user.class_name:
            raise WarpError(WarpError.Code.ForbiddenOperation, "User operations must use the appropriate API")
        if session is not None and class_name == session.class_name:
            raise WarpError(WarpError.Code.ForbiddenOperation, "Session operations must use the appropriate API")

        model = self._models.get(class_name)
        if model is None:
            raise WarpError(WarpError.Code.ModelNotFound, "Model not found")
        return model

    def _slot(self, kind: ModelKind, message: str) -> BoundModel:
        model = self._slots.get(kind)
        if model is None:
            raise WarpError(WarpError.Code.ForbiddenOperation, message)
        return model

    def user_model(self) -> BoundModel:
        return self._slot(ModelKind.USER, "Authentication models have not been defined")

    def session_model(self) -> BoundModel:
        return self._slot(ModelKind.SESSION, "Authentication models have not been defined")

    def installation_model(self) -> BoundModel:
        return self._slot(ModelKind.INSTALLATION, "Push models have not been defined")

    def push_model(self) -> BoundModel:
        return self._slot(ModelKind.PUSH, "Push models have not been defined")

    def model_for(self, class_name: str) -> BoundModel:
        """Any registered model by class name, reserved slots included (pointer targets)."""
        for model in self._slots.values():
            if model.class_name == class_name:
                return model
        model = self._models.get(class_name)
        if model is None:
            raise WarpError(WarpError.Code.ModelNotFound, f"Model `{class_name}` not found")
        return model

    def __len__(self) -> int:
        return len(self._models)

    def warn_if_incomplete(self) -> None:
        if not self._models:
            logger.warning("Models have not yet been defined")
        if ModelKind.USER not in self._slots or ModelKind.SESSION not in self._slots:
            logger.warning("User and/or session models have not been defined")


# ----------------------------------------------------------------------------
# Functions and queues
# ----------------------------------------------------------------------------


@dataclass
class FunctionDefinition:
    """Server-side function. `handler(call: FunctionCall)` may be sync or async."""

    name: str
    handler: Callable[..., Any]
    master_required: bool = False


@dataclass
class QueueDefinition:
    """Background job run on demand. `handler()` may be sync or async."""

    name: str
    handler: Callable[..., Any]


D = TypeVar("D", FunctionDefinition, QueueDefinition)


class NamedRegistry(Generic[D]):
    not_found_code = WarpError.Code.InternalServerError
    not_found_message = "Not found"

    def __init__(self):
        self._items: Dict[str, D] = {}

    def register(self, definition: D) -> "NamedRegistry[D]":
        self._items[definition.name] = definition
        return self

    def register_many(self, definitions: Iterable[D]) -> "NamedRegistry[D]":
        for definition in definitions:
            self.register(definition)
        return self

    def resolve(self, name: str) -> D:
        item = self._items.get(name)
        if item is None:
            raise WarpError(self.not_found_code, self.not_found_message)
        return item

    def __len__(self) -> int:
        return len(self._items)


class FunctionRegistry(NamedRegistry[FunctionDefinition]):
    not_found_code = WarpError.Code.FunctionNotFound
    not_found_message = "Function not found"


class QueueRegistry(NamedRegistry[QueueDefinition]):
    not_found_code = WarpError.Code.QueueNotFound
    not_found_message = "Queue not found"
