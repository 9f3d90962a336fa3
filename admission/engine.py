"""
admission/engine.py -- Decision engine: classifiers plus the sliding-window counter.

The counter uses the `limits` library (the engine underneath slowapi) with
its moving-window strategy: every hit is timestamped and the window slides
with the clock, so there is no burst at a fixed bucket boundary. The storage
is chosen by URI. "async+memory://" keeps counters in-process; an
"async+redis://" URI shares them across workers.

Counter keys are (role, client identity). A user who signs in mid-window gets
a fresh counter under the new role rather than inheriting the guest count.

The engine short-circuits: a bot is never checked for attack signatures and
never consumes quota; a request with an attack signature never consumes quota.
"""

from __future__ import annotations

from typing import Protocol

from limits import RateLimitItemPerSecond
from limits.aio.strategies import MovingWindowRateLimiter
from limits.storage import storage_from_string

from admission.policy import EngineVerdict, RequestContext, RolePolicy
from admission.signatures import find_attack_signature, is_automated_client

_NAMESPACE = "admission"


class DecisionEngine(Protocol):
    """Collaborator contract: classify one request under one role policy."""

    async def evaluate(self, ctx: RequestContext, role: str, policy: RolePolicy) -> EngineVerdict: ...


class LocalDecisionEngine:
    """In-process classifiers backed by a `limits` moving-window counter."""

    def __init__(self, storage_uri: str = "async+memory://") -> None:
        self.storage = storage_from_string(storage_uri)
        self._limiter = MovingWindowRateLimiter(self.storage)

    async def evaluate(self, ctx: RequestContext, role: str, policy: RolePolicy) -> EngineVerdict:
        if is_automated_client(ctx.user_agent):
            return EngineVerdict(bot=True)
        if find_attack_signature(ctx) is not None:
            return EngineVerdict(shield=True)
        item = RateLimitItemPerSecond(policy.limit, policy.window_seconds, namespace=_NAMESPACE)
        admitted = await self._limiter.hit(item, role, ctx.client_id)
        return EngineVerdict(rate_limited=not admitted)

    async def reset(self) -> None:
        """Drop all counters. Only meaningful for storages that support it."""
        await self.storage.reset()
