"""
Query facade over SQLModel.

ModelQuery turns Warp-style find options (a `where` tree keyed by
field -> operator -> value, a sort list, include/limit/skip) into SQLAlchemy
statements against the table bound to a registered model, and renders rows
into client representations (pointers and files expanded).

Deleted rows are soft-deleted: `deleted_at` is set and every read skips them.
"""

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import DateTime, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from warp_server.context import ClientContext
from warp_server.errors import WarpError
from warp_server.models.base import as_utc, utcnow

if TYPE_CHECKING:
    from warp_server.registry import BoundModel

logger = logging.getLogger(__name__)

BASE_KEYS = ["id", "created_at", "updated_at"]
MANAGED_COLUMNS = {"id", "created_at", "updated_at", "deleted_at"}


def _as_list(value: Any) -> list:
    if not isinstance(value, (list, tuple)):
        raise WarpError(WarpError.Code.InvalidQuery, "Operator expects a list of values")
    return list(value)


OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "eq": lambda c, v: c.is_(None) if v is None else c == v,
    "neq": lambda c, v: c.is_not(None) if v is None else c != v,
    "gt": lambda c, v: c > v,
    "gte": lambda c, v: c >= v,
    "lt": lambda c, v: c < v,
    "lte": lambda c, v: c <= v,
    "in": lambda c, v: c.in_(_as_list(v)),
    "nin": lambda c, v: c.not_in(_as_list(v)),
    "ex": lambda c, v: c.is_not(None) if v else c.is_(None),
    "str": lambda c, v: c.startswith(str(v)),
    "end": lambda c, v: c.endswith(str(v)),
    "has": lambda c, v: c.contains(str(v)),
}


def pointer_id(value: Any) -> Any:
    """Accept either a raw id or a {"type": "Pointer", "id": ...} object"""
    if isinstance(value, dict):
        return value.get("id")
    return value


def file_key(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("key")
    return value


def _isoformat(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


class ModelQuery:
    """Find/first/create/update/destroy for one bound model in one db session."""

    def __init__(self, model: "BoundModel", db: Session):
        self.model = model
        self.definition = model.definition
        self.table = model.definition.table
        self.columns = model.definition.table.__table__.c
        self.db = db

    # ------------------------------------------------------------------
    # Keys and values
    # ------------------------------------------------------------------

    def _column(self, key: str):
        if key not in BASE_KEYS and key not in self.definition.viewable:
            raise WarpError(WarpError.Code.InvalidQuery, f"Invalid key `{key}`")
        name = self.definition.column_for(key)
        if name not in self.columns:
            raise WarpError(WarpError.Code.InvalidQuery, f"Key `{key}` has no column")
        return self.columns[name]

    def _coerce(self, key: str, column, value: Any) -> Any:
        if key in self.definition.pointers:
            if isinstance(value, (list, tuple)):
                return [pointer_id(v) for v in value]
            return pointer_id(value)
        if isinstance(column.type, DateTime) and isinstance(value, str):
            try:
                return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
            except ValueError:
                raise WarpError(WarpError.Code.InvalidQuery, f"Invalid date for `{key}`")
        return value

    def _where(self, where: Optional[Dict[str, Any]]) -> List[Any]:
        clauses = []
        for key, constraints in (where or {}).items():
            column = self._column(key)
            if not isinstance(constraints, dict):
                raise WarpError(WarpError.Code.InvalidQuery, f"Constraints for `{key}` must be an object")
            for op, value in constraints.items():
                build = OPERATORS.get(op)
                if build is None:
                    raise WarpError(WarpError.Code.InvalidQuery, f"Invalid operator `{op}`")
                clauses.append(build(column, self._coerce(key, column, value)))
        return clauses

    def _order(self, sort: Optional[Iterable[Any]]) -> List[Any]:
        clauses = []
        for item in sort or []:
            if isinstance(item, str):
                key, descending = (item[1:], True) if item.startswith("-") else (item, False)
                pairs = [(key, descending)]
            elif isinstance(item, dict):
                if any(v not in (1, -1) or isinstance(v, bool) for v in item.values()):
                    raise WarpError(WarpError.Code.InvalidQuery, "Invalid sort option")
                pairs = [(k, v < 0) for k, v in item.items()]
            else:
                raise WarpError(WarpError.Code.InvalidQuery, "Invalid sort option")
            for key, descending in pairs:
                column = self._column(key)
                clauses.append(column.desc() if descending else column.asc())
        return clauses

    def _representation_columns(self) -> List[str]:
        names = list(BASE_KEYS)
        for key in self.definition.viewable:
            name = self.definition.column_for(key)
            if name in self.columns and name not in names:
                names.append(name)
        return names

    def _prepare(self, fields: Dict[str, Any], creating: bool) -> Dict[str, Any]:
        fields = dict(fields)
        if self.definition.before_save:
            fields = self.definition.before_save(fields, creating)

        values = {}
        for key, value in fields.items():
            name = self.definition.column_for(key)
            if name in MANAGED_COLUMNS or name not in self.columns:
                raise WarpError(WarpError.Code.InvalidQuery, f"Invalid key `{key}`")
            if key in self.definition.pointers:
                value = pointer_id(value)
            elif key in self.definition.files:
                value = file_key(value)
            elif isinstance(self.columns[name].type, DateTime) and isinstance(value, str):
                value = self._coerce(key, self.columns[name], value)
            values[name] = value
        return values

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Rejected write on %s: %s", self.definition.class_name, e.orig)
            raise WarpError(WarpError.Code.InvalidQuery, "Object violates a constraint")

    # ------------------------------------------------------------------
    # Representations
    # ------------------------------------------------------------------

    def serialize(self, row: Dict[str, Any], include: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        include = list(include or [])
        result: Dict[str, Any] = {"id": row.get("id")}

        for key in self.definition.viewable:
            value = row.get(self.definition.column_for(key))
            if key in self.definition.pointers:
                value = self._pointer(key, value, key in include)
            elif key in self.definition.files and value is not None:
                value = {"type": "File", "key": value, "url": self.model.storage.url(value)}
            else:
                value = _isoformat(value)
            result[key] = value

        for key in ("created_at", "updated_at"):
            result[key] = _isoformat(row.get(key))
        return result

    def _pointer(self, key: str, value: Any, expand: bool) -> Optional[Dict[str, Any]]:
        if value is None:
            return None
        class_name = self.definition.pointers[key]
        pointer: Dict[str, Any] = {"type": "Pointer", "className": class_name, "id": value}
        if expand:
            target = self.model.resolve_pointer(class_name).query(self.db).first(value)
            if target is not None:
                target.pop("id", None)
                pointer["attributes"] = target
        return pointer

    def _check_include(self, include: Optional[Iterable[str]]) -> List[str]:
        include = list(include or [])
        for key in include:
            if key not in self.definition.pointers or key not in self.definition.viewable:
                raise WarpError(WarpError.Code.InvalidQuery, f"Cannot include `{key}`")
        return include

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def rows(
        self,
        where: Optional[Dict[str, Any]] = None,
        columns: Optional[List[str]] = None,
        sort: Optional[List[Any]] = None,
        limit: Optional[int] = None,
        skip: int = 0,
        with_deleted: bool = False,
    ) -> List[Dict[str, Any]]:
        """Raw column dicts; `columns` projects onto arbitrary table columns.

        `with_deleted` also returns soft-deleted rows, which still hold their
        unique values.
        """
        names = columns or self._representation_columns()
        for name in names:
            if name not in self.columns:
                raise WarpError(WarpError.Code.InvalidQuery, f"Unknown column `{name}`")

        stmt = select(*[self.columns[name] for name in names])
        if not with_deleted:
            stmt = stmt.where(self.columns["deleted_at"].is_(None))
        for clause in self._where(where):
            stmt = stmt.where(clause)
        order = self._order(sort) or [self.columns["id"].asc()]
        stmt = stmt.order_by(*order)
        if skip:
            stmt = stmt.offset(int(skip))
        if limit is not None:
            stmt = stmt.limit(int(limit))

        return [dict(m) for m in self.db.execute(stmt).mappings().all()]

    def find(
        self,
        include: Optional[List[str]] = None,
        where: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Any]] = None,
        limit: Optional[int] = 100,
        skip: int = 0,
    ) -> List[Dict[str, Any]]:
        include = self._check_include(include)
        return [self.serialize(row, include) for row in self.rows(where=where, sort=sort, limit=limit, skip=skip)]

    def first(self, object_id: Any, include: Optional[List[str]] = None) -> Optional[Dict[str, Any]]:
        include = self._check_include(include)
        rows = self.rows(where={"id": {"eq": object_id}}, limit=1)
        return self.serialize(rows[0], include) if rows else None

    def create(self, fields: Dict[str, Any], client: Optional[ClientContext] = None) -> Dict[str, Any]:
        record = self.table(**self._prepare(fields, creating=True))
        self.db.add(record)
        self._commit()
        self.db.refresh(record)
        logger.debug("Created %s %s (client=%s)", self.definition.class_name, record.id, client)
        return self.first(record.id)

    def _live_record(self, object_id: Any):
        record = self.db.get(self.table, object_id)
        if record is None or record.deleted_at is not None:
            raise WarpError(WarpError.Code.ObjectNotFound, "Object not found")
        return record

    def update(self, object_id: Any, fields: Dict[str, Any], client: Optional[ClientContext] = None) -> Dict[str, Any]:
        record = self._live_record(object_id)
        for name, value in self._prepare(fields, creating=False).items():
            setattr(record, name, value)
        record.updated_at = utcnow()
        self.db.add(record)
        self._commit()
        logger.debug("Updated %s %s (client=%s)", self.definition.class_name, object_id, client)
        return self.first(object_id)

    def destroy(self, object_id: Any, client: Optional[ClientContext] = None) -> Dict[str, Any]:
        record = self._live_record(object_id)
        now = utcnow()
        record.updated_at = now
        record.deleted_at = now
        self.db.add(record)
        self._commit()
        logger.debug("Destroyed %s %s (client=%s)", self.definition.class_name, object_id, client)
        return {"id": record.id, "updated_at": now.isoformat(), "deleted_at": now.isoformat()}
