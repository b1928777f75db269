"""
Request pipeline stages and per-route accessors.

`WarpServer.router()` installs the stages as router-level dependencies in a
fixed order: session token -> client headers -> rate gate -> API key. Each
stage short-circuits the request by raising a WarpError.
"""

from typing import TYPE_CHECKING, Any, Optional

from fastapi import Header, Request

from warp_server.context import ClientContext
from warp_server.errors import WarpError
from warp_server.security import keys_match

if TYPE_CHECKING:
    from warp_server.server import WarpServer


def envelope(result: Any = None) -> dict:
    return {"status": 200, "message": "Success", "result": result}


def get_server(request: Request) -> "WarpServer":
    return request.app.state.warp


# ----------------------------------------------------------------------------
# Pipeline stages
# ----------------------------------------------------------------------------


def extract_session_token(request: Request, x_warp_session_token: Optional[str] = Header(None)) -> None:
    request.state.session_token = x_warp_session_token


def extract_client(
    request: Request,
    x_warp_client: Optional[str] = Header(None),
    x_warp_sdk_version: Optional[str] = Header(None),
    x_warp_app_version: Optional[str] = Header(None),
) -> None:
    request.state.client = ClientContext(
        client=x_warp_client,
        sdk_version=x_warp_sdk_version,
        app_version=x_warp_app_version,
    )


async def throttle(request: Request) -> None:
    # async so the shared bucket is only ever touched from the event loop
    get_server(request).rate_gate.hit()


def require_api_key(request: Request, x_warp_api_key: Optional[str] = Header(None)) -> None:
    if not keys_match(x_warp_api_key, get_server(request).config.api_key):
        raise WarpError(WarpError.Code.InvalidAPIKey, "Invalid API Key")


# ----------------------------------------------------------------------------
# Accessors used by route handlers
# ----------------------------------------------------------------------------


def get_session_token(request: Request) -> Optional[str]:
    return getattr(request.state, "session_token", None)


def get_client(request: Request) -> ClientContext:
    return getattr(request.state, "client", None) or ClientContext()


def get_master_key(x_warp_master_key: Optional[str] = Header(None)) -> Optional[str]:
    return x_warp_master_key


def get_origin(x_warp_origin: Optional[str] = Header(None)) -> Optional[str]:
    return x_warp_origin


def require_master_key(request: Request, x_warp_master_key: Optional[str] = Header(None)) -> None:
    get_server(request).gate.require_master(x_warp_master_key)


def password_text(value: Any) -> Any:
    """Numeric passwords sent as JSON numbers are used as their text form"""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value
