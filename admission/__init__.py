"""admission/ -- Per-request admission control for AuthGate.

Every request is classified (bot, attack signature, role-based rate limit)
before it reaches a route. The role comes from the session token; the quota
comes from a fixed policy table.

Layer rule: admission/ may import from auth/ and core/. It does NOT import
from api/. api/main.py registers the middleware.
"""
