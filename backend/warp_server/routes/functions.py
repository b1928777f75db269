import inspect
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from warp_server.context import AuthorizationContext, ClientContext, FunctionCall
from warp_server.database import get_session
from warp_server.routes.dependencies import envelope, get_client, get_master_key, get_server, get_session_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/functions/{name}")
async def run_function(
    name: str,
    keys: Optional[Dict[str, Any]] = Body(None),
    server=Depends(get_server),
    session: Session = Depends(get_session),
    session_token: Optional[str] = Depends(get_session_token),
    master_key: Optional[str] = Depends(get_master_key),
    client: ClientContext = Depends(get_client),
):
    """Run a registered function. A session token, when sent, must be valid."""
    function = server.functions.resolve(name)

    if function.master_required:
        auth = server.gate.require_master(master_key)
    elif server.gate.is_master(master_key):
        auth = AuthorizationContext(master_key_present=True, session_token=session_token)
    elif session_token:
        auth = await run_in_threadpool(server.gate.authorize_session, session, session_token)
    else:
        auth = AuthorizationContext()

    logger.debug("Running function %s (user=%s)", name, auth.acting_user_id)
    call = FunctionCall(keys=keys or {}, auth=auth, client=client)
    if inspect.iscoroutinefunction(function.handler):
        result = await function.handler(call)
    else:
        result = await run_in_threadpool(function.handler, call)
    return envelope(result)
