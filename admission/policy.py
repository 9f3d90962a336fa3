"""
admission/policy.py -- Role-to-quota table and the decision types.

The table is fixed policy, not configuration. An unknown or missing role is
treated as a guest.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

GUEST_ROLE = "guest"


class DenialReason(str, Enum):
    """Why a request was refused. Exactly one per decision."""

    none = "none"
    bot = "bot"
    shield = "shield"
    rate_limit = "rate_limit"


# Evaluation order and tie-break when an engine reports several at once.
REASON_PRECEDENCE = (DenialReason.bot, DenialReason.shield, DenialReason.rate_limit)


@dataclass(frozen=True)
class RolePolicy:
    limit: int
    window: str  # label reported in decisions, e.g. "1m"
    window_seconds: int


ROLE_POLICIES: dict[str, RolePolicy] = {
    "admin": RolePolicy(limit=100, window="1m", window_seconds=60),
    "user": RolePolicy(limit=50, window="1m", window_seconds=60),
    GUEST_ROLE: RolePolicy(limit=10, window="1m", window_seconds=60),
}


def resolve_policy(role: str | None) -> tuple[str, RolePolicy]:
    """Return (effective role, policy). Anything outside the table is a guest."""
    if role in ROLE_POLICIES:
        return role, ROLE_POLICIES[role]
    return GUEST_ROLE, ROLE_POLICIES[GUEST_ROLE]


@dataclass(frozen=True)
class RequestContext:
    """The parts of a request the classifiers look at."""

    client_id: str
    user_agent: str
    method: str
    path: str
    query: str = ""


@dataclass(frozen=True)
class EngineVerdict:
    """Raw classifier flags from a decision engine.

    An engine may short-circuit and set a single flag, or report several;
    reason() applies the fixed precedence either way.
    """

    bot: bool = False
    shield: bool = False
    rate_limited: bool = False

    def reason(self) -> DenialReason:
        flags = {
            DenialReason.bot: self.bot,
            DenialReason.shield: self.shield,
            DenialReason.rate_limit: self.rate_limited,
        }
        for candidate in REASON_PRECEDENCE:
            if flags[candidate]:
                return candidate
        return DenialReason.none


@dataclass(frozen=True)
class RateDecision:
    """Per-request verdict. Never persisted, never sent to the client whole."""

    allowed: bool
    reason: DenialReason
    role: str
    limit: int
    window: str


class AdmissionDenied(Exception):
    """Raised by AdmissionController.check() when a request must be refused."""

    def __init__(self, decision: RateDecision) -> None:
        super().__init__(decision.reason.value)
        self.decision = decision

    @property
    def reason(self) -> DenialReason:
        return self.decision.reason
