"""
api/limiter.py -- Shared slowapi rate limiter instance.

Used for the per-IP brute-force throttle on POST /auth/sign-in. This is
separate from the role-based admission quota in admission/: admission counts
every request by (role, client), this one counts sign-in attempts by IP only.

Using a single shared instance ensures all routes share the same counter
store. api/main.py attaches it to app.state.limiter, where slowapi looks for
it.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def signin_limit() -> str:
    """Resolved per request so tests and deployments can change SIGNIN_RATE_LIMIT."""
    return get_settings().signin_rate_limit
