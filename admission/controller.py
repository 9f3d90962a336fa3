"""
admission/controller.py -- AdmissionController and the HTTP middleware that runs it.

Per request:
  1. Role from the verified session token, else "guest".
  2. Role -> (limit, window) from ROLE_POLICIES.
  3-4. The engine classifies the request; the first denial in precedence
       order (bot, shield, rate_limit) becomes the one reason.
  5. Engine or counter failure fails closed: the request gets a 500-class
     "security check failed" response and never reaches a route.

Every denial writes one audit line at WARNING. Allowed requests log nothing
here (the request logger in api/main.py still records them).

Modes:
  LIVE    -- denials are enforced.
  DRY_RUN -- denials are audited but the request is let through.
"""

from __future__ import annotations

import logging

from fastapi.responses import JSONResponse
from slowapi.util import get_remote_address
from starlette.requests import Request

from admission.engine import DecisionEngine
from admission.policy import AdmissionDenied, DenialReason, RateDecision, RequestContext, resolve_policy
from auth.dependencies import try_get_claims

logger = logging.getLogger("authgate.admission")

# Probes from load balancers and monitors must never be throttled.
EXEMPT_PATHS = frozenset({"/api/v1/health"})

DENIAL_MESSAGES = {
    DenialReason.bot: "Automated requests are not allowed.",
    DenialReason.shield: "Request blocked by security policy.",
    DenialReason.rate_limit: "Too many requests. Please try again later.",
}


class AdmissionController:
    def __init__(self, engine: DecisionEngine, mode: str = "LIVE") -> None:
        self.engine = engine
        self.mode = mode

    async def decide(self, ctx: RequestContext, role: str | None) -> RateDecision:
        """Classify one request. Engine exceptions propagate to the caller."""
        role, policy = resolve_policy(role)
        verdict = await self.engine.evaluate(ctx, role, policy)
        reason = verdict.reason()
        decision = RateDecision(
            allowed=reason is DenialReason.none,
            reason=reason,
            role=role,
            limit=policy.limit,
            window=policy.window,
        )
        if not decision.allowed:
            logger.warning(
                "Admission denied reason=%s role=%s ip=%s user_agent=%r method=%s path=%s mode=%s",
                reason.value,
                role,
                ctx.client_id,
                ctx.user_agent,
                ctx.method,
                ctx.path,
                self.mode,
            )
            if self.mode == "DRY_RUN":
                return RateDecision(True, reason, role, policy.limit, policy.window)
        return decision

    async def check(self, ctx: RequestContext, role: str | None) -> RateDecision:
        """Like decide(), but raise AdmissionDenied instead of returning a denial."""
        decision = await self.decide(ctx, role)
        if not decision.allowed:
            raise AdmissionDenied(decision)
        return decision


def denial_response(denied: AdmissionDenied) -> JSONResponse:
    """Build the 403 body for a denial. Counter state is never exposed."""
    return JSONResponse(
        status_code=403,
        content={
            "error": "Forbidden",
            "message": DENIAL_MESSAGES[denied.reason],
            "details": {"reason": denied.reason.value},
        },
    )


def request_context(request: Request) -> RequestContext:
    return RequestContext(
        client_id=get_remote_address(request),
        user_agent=request.headers.get("User-Agent", ""),
        method=request.method,
        path=request.url.path,
        query=request.url.query,
    )


async def admission_gate(request: Request, call_next):
    """HTTP middleware: admit or refuse the request before routing.

    Register with app.middleware("http")(admission_gate). Reads the
    controller from app.state.admission; a None controller disables the gate.
    """
    controller: AdmissionController | None = getattr(request.app.state, "admission", None)
    if controller is None or request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    try:
        claims = try_get_claims(request)
        await controller.check(request_context(request), claims.role if claims else None)
    except AdmissionDenied as denied:
        return denial_response(denied)
    except Exception:
        logger.exception("Admission check failed on %s %s; failing closed", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Forbidden", "message": "Security check failed."},
        )
    return await call_next(request)
