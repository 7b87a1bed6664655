"""HTTP guards for a storage-service gateway.

Authentication (basic credentials or secp256k1 signatures with nonce replay
protection), role authorization, rate limiting, proof-of-work validation and
uniform error responses, packaged as FastAPI dependencies.
"""

from bridge_guard.api.dependencies import Guards, IdentityDep, build_guards, get_identity
from bridge_guard.api.errors import ErrorResponder, install_error_handlers, resolve_status_code
from bridge_guard.services.authenticate import Authenticator, AuthStrategy, Identity, detect_strategy
from bridge_guard.services.authorize import Authorizer, Role
from bridge_guard.services.pow import PowService
from bridge_guard.services.rate_limiter import RateLimiter, RateLimitWindow

__all__ = [
    "AuthStrategy",
    "Authenticator",
    "Authorizer",
    "ErrorResponder",
    "Guards",
    "Identity",
    "IdentityDep",
    "PowService",
    "RateLimitWindow",
    "RateLimiter",
    "Role",
    "build_guards",
    "detect_strategy",
    "get_identity",
    "install_error_handlers",
    "resolve_status_code",
]
