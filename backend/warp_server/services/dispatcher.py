import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from warp_server.context import ClientContext
from warp_server.errors import WarpError
from warp_server.registry import BoundModel

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100


def _parse_json(name: str, raw: Optional[str], default: Any) -> Any:
    if raw is None or raw == "":
        return default
    try:
        return json.loads(raw)
    except ValueError:
        raise WarpError(WarpError.Code.InvalidQuery, f"`{name}` must be valid JSON")


def _parse_int(name: str, raw: Optional[Any], default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise WarpError(WarpError.Code.InvalidQuery, f"`{name}` must be an integer")
    if value < 0:
        raise WarpError(WarpError.Code.InvalidQuery, f"`{name}` must not be negative")
    return value


def parse_include(raw: Optional[str]) -> List[str]:
    include = _parse_json("include", raw, [])
    if not isinstance(include, list):
        raise WarpError(WarpError.Code.InvalidQuery, "`include` must be a list")
    return include


@dataclass
class FindOptions:
    include: List[str] = field(default_factory=list)
    where: Dict[str, Any] = field(default_factory=dict)
    sort: List[Any] = field(default_factory=list)
    # No upper bound: callers may ask for arbitrarily large pages
    limit: int = DEFAULT_LIMIT
    skip: int = 0

    @classmethod
    def from_query(
        cls,
        include: Optional[str] = None,
        where: Optional[str] = None,
        order: Optional[str] = None,
        limit: Optional[str] = None,
        skip: Optional[str] = None,
    ) -> "FindOptions":
        """Parse the JSON-encoded query-string options of a list request"""
        options = cls(
            include=parse_include(include),
            where=_parse_json("where", where, {}),
            sort=_parse_json("order", order, []),
            limit=_parse_int("limit", limit, DEFAULT_LIMIT),
            skip=_parse_int("skip", skip, 0),
        )
        if not isinstance(options.where, dict):
            raise WarpError(WarpError.Code.InvalidQuery, "`where` must be an object")
        if not isinstance(options.sort, list):
            raise WarpError(WarpError.Code.InvalidQuery, "`order` must be a list")
        return options


class ResourceDispatcher:
    """Generic find/first/create/update/destroy for one registered model."""

    def __init__(self, model: BoundModel, db: Session):
        self.model = model
        self.query = model.query(db)

    def _actionable(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        actionable = self.model.definition.actionable
        rejected = [key for key in fields if key not in actionable]
        if rejected:
            logger.debug("Ignoring non-actionable keys on %s: %s", self.model.class_name, rejected)
        return {key: value for key, value in fields.items() if key in actionable}

    def find(self, options: FindOptions) -> List[Dict[str, Any]]:
        return self.query.find(
            include=options.include,
            where=options.where,
            sort=options.sort,
            limit=options.limit,
            skip=options.skip,
        )

    def first(self, object_id: Any, include: Optional[List[str]] = None) -> Optional[Dict[str, Any]]:
        """None when the id does not exist; that is not an error"""
        return self.query.first(object_id, include)

    def create(self, fields: Dict[str, Any], client: Optional[ClientContext] = None) -> Dict[str, Any]:
        return self.query.create(self._actionable(fields), client)

    def update(self, object_id: Any, fields: Dict[str, Any], client: Optional[ClientContext] = None) -> Dict[str, Any]:
        return self.query.update(object_id, self._actionable(fields), client)

    def destroy(self, object_id: Any, client: Optional[ClientContext] = None) -> Dict[str, Any]:
        return self.query.destroy(object_id, client)

    def keys(self) -> Dict[str, Any]:
        return self.model.definition.keys()

    def _taken(self, key: str, value: Any) -> bool:
        """Destroyed users keep their username and email"""
        return bool(self.query.rows(where={key: {"eq": value}}, columns=["id"], limit=1, with_deleted=True))

    def create_user(self, fields: Dict[str, Any], client: Optional[ClientContext] = None) -> Dict[str, Any]:
        """Create a user after the username, then the email, is shown to be free"""
        if not fields.get("username") or not fields.get("password") or not fields.get("email"):
            raise WarpError(WarpError.Code.InvalidCredentials, "Missing credentials")

        if self._taken("username", fields["username"]):
            raise WarpError(WarpError.Code.UsernameTaken, "Username already taken")
        if self._taken("email", fields["email"]):
            raise WarpError(WarpError.Code.EmailTaken, "Email already taken")

        return self.create(fields, client)
