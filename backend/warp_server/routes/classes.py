from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from warp_server.context import ClientContext
from warp_server.database import get_session
from warp_server.routes.dependencies import envelope, get_client, get_server, require_master_key
from warp_server.services.dispatcher import FindOptions, ResourceDispatcher, parse_include

router = APIRouter()


def _dispatcher(server, class_name: str, session: Session) -> ResourceDispatcher:
    return ResourceDispatcher(server.models.resolve(class_name), session)


@router.get("/classes/{class_name}")
def find_objects(
    class_name: str,
    include: Optional[str] = None,
    where: Optional[str] = None,
    order: Optional[str] = None,
    limit: Optional[str] = None,
    skip: Optional[str] = None,
    server=Depends(get_server),
    session: Session = Depends(get_session),
):
    options = FindOptions.from_query(include, where, order, limit, skip)
    return envelope(_dispatcher(server, class_name, session).find(options))


@router.get("/classes/{class_name}/keys", dependencies=[Depends(require_master_key)])
def class_keys(class_name: str, server=Depends(get_server), session: Session = Depends(get_session)):
    return envelope(_dispatcher(server, class_name, session).keys())


@router.get("/classes/{class_name}/{object_id}")
def get_object(
    class_name: str,
    object_id: int,
    include: Optional[str] = None,
    server=Depends(get_server),
    session: Session = Depends(get_session),
):
    return envelope(_dispatcher(server, class_name, session).first(object_id, parse_include(include)))


@router.post("/classes/{class_name}")
def create_object(
    class_name: str,
    fields: Dict[str, Any] = Body(...),
    server=Depends(get_server),
    session: Session = Depends(get_session),
    client: ClientContext = Depends(get_client),
):
    return envelope(_dispatcher(server, class_name, session).create(fields, client))


@router.put("/classes/{class_name}/{object_id}")
def update_object(
    class_name: str,
    object_id: int,
    fields: Dict[str, Any] = Body(...),
    server=Depends(get_server),
    session: Session = Depends(get_session),
    client: ClientContext = Depends(get_client),
):
    return envelope(_dispatcher(server, class_name, session).update(object_id, fields, client))


@router.delete("/classes/{class_name}/{object_id}")
def destroy_object(
    class_name: str,
    object_id: int,
    server=Depends(get_server),
    session: Session = Depends(get_session),
    client: ClientContext = Depends(get_client),
):
    return envelope(_dispatcher(server, class_name, session).destroy(object_id, client))
