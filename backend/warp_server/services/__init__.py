from warp_server.services.authorization import AuthorizationGate
from warp_server.services.dispatcher import FindOptions, ResourceDispatcher
from warp_server.services.rate_gate import RateGate
from warp_server.services.session_service import SessionService

__all__ = ["AuthorizationGate", "FindOptions", "RateGate", "ResourceDispatcher", "SessionService"]
