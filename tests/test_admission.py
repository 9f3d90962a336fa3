"""Unit tests for admission/ -- role policy, classifiers, engine and controller.

Async pieces are driven with asyncio.run(); each scenario runs its requests
inside one coroutine so the in-memory counter lives on a single event loop.

Covers:
- fixed role table and guest fallback
- reason precedence when an engine reports several flags
- bot and attack-signature classifiers
- sliding-window quota: guest denied on request 11, admin not
- fail-closed: engine exceptions propagate out of decide()/check()
- DRY_RUN mode audits but admits
"""

import asyncio
import logging

import pytest

from admission.controller import AdmissionController
from admission.engine import LocalDecisionEngine
from admission.policy import (
    GUEST_ROLE,
    ROLE_POLICIES,
    AdmissionDenied,
    DenialReason,
    EngineVerdict,
    RequestContext,
    resolve_policy,
)
from admission.signatures import find_attack_signature, is_automated_client

BROWSER_UA = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0 Safari/537.36"
CUBOT_UA = (
    "Mozilla/5.0 (Linux; Android 10; Cubot Note 20) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Mobile Safari/537.36"
)


def _ctx(user_agent: str = BROWSER_UA, path: str = "/", query: str = "", client_id: str = "203.0.113.7"):
    return RequestContext(client_id=client_id, user_agent=user_agent, method="GET", path=path, query=query)


class _FixedEngine:
    def __init__(self, verdict: EngineVerdict) -> None:
        self.verdict = verdict

    async def evaluate(self, ctx, role, policy) -> EngineVerdict:
        return self.verdict


class _ExplodingEngine:
    async def evaluate(self, ctx, role, policy) -> EngineVerdict:
        raise ConnectionError("counter store unreachable")


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


class TestRolePolicy:
    def test_fixed_table(self) -> None:
        assert ROLE_POLICIES["admin"].limit == 100
        assert ROLE_POLICIES["user"].limit == 50
        assert ROLE_POLICIES[GUEST_ROLE].limit == 10
        assert all(p.window == "1m" and p.window_seconds == 60 for p in ROLE_POLICIES.values())

    @pytest.mark.parametrize("role", [None, "", "superuser", "Admin"])
    def test_unknown_roles_are_guests(self, role) -> None:
        effective, policy = resolve_policy(role)
        assert effective == GUEST_ROLE
        assert policy.limit == 10


class TestReasonPrecedence:
    @pytest.mark.parametrize(
        "verdict, expected",
        [
            (EngineVerdict(), DenialReason.none),
            (EngineVerdict(bot=True, shield=True, rate_limited=True), DenialReason.bot),
            (EngineVerdict(shield=True, rate_limited=True), DenialReason.shield),
            (EngineVerdict(rate_limited=True), DenialReason.rate_limit),
        ],
    )
    def test_first_match_wins(self, verdict: EngineVerdict, expected: DenialReason) -> None:
        assert verdict.reason() is expected

    def test_controller_reports_exactly_one_reason(self) -> None:
        controller = AdmissionController(_FixedEngine(EngineVerdict(shield=True, rate_limited=True)))
        decision = asyncio.run(controller.decide(_ctx(), "user"))
        assert decision.allowed is False
        assert decision.reason is DenialReason.shield
        assert (decision.role, decision.limit, decision.window) == ("user", 50, "1m")


# ---------------------------------------------------------------------------
# Classifiers
# ---------------------------------------------------------------------------


class TestBotClassifier:
    @pytest.mark.parametrize(
        "ua",
        [
            "",
            "   ",
            "curl/8.5.0",
            "python-requests/2.32.3",
            "Googlebot/2.1",
            "Mozilla/5.0 (compatible; bingbot/2.0; +http://www.bing.com/bingbot.htm)",
            "Mozilla/5.0 (compatible; YandexBot/3.0)",
            "Mozilla/5.0 HeadlessChrome/120",
            "sqlmap/1.8",
        ],
    )
    def test_automated(self, ua: str) -> None:
        assert is_automated_client(ua) is True

    @pytest.mark.parametrize(
        "ua",
        [
            BROWSER_UA,
            "testclient",
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0) Safari/604.1",
            CUBOT_UA,
        ],
    )
    def test_human(self, ua: str) -> None:
        assert is_automated_client(ua) is False


class TestShieldClassifier:
    @pytest.mark.parametrize(
        "path, query, family",
        [
            ("/search", "q=1%20UNION%20SELECT%20password%20FROM%20users", "sql_injection"),
            ("/login", "user=admin'%20OR%20'1'='1", "sql_injection"),
            ("/item", "id=1'%20AND%20SLEEP(5)--", "sql_injection"),
            ("/", "next=%3Cscript%3Ealert(1)%3C/script%3E", "xss"),
            ("/files", "name=../../etc/passwd", "path_traversal"),
            ("/ping", "host=127.0.0.1;cat%20/etc/hosts", "command_injection"),
        ],
    )
    def test_known_attacks(self, path: str, query: str, family: str) -> None:
        assert find_attack_signature(_ctx(path=path, query=query)) == family

    @pytest.mark.parametrize(
        "path, query",
        [
            ("/", ""),
            ("/api/v1/auth/me", ""),
            ("/search", "q=select+a+good+book"),
            ("/docs", "page=2&sort=asc"),
            ("/search", "q=how+much+sleep+(hours)+do+I+need"),
        ],
    )
    def test_clean_requests(self, path: str, query: str) -> None:
        assert find_attack_signature(_ctx(path=path, query=query)) is None


# ---------------------------------------------------------------------------
# Sliding-window quota
# ---------------------------------------------------------------------------


def _run_requests(role, count: int, mode: str = "LIVE"):
    async def scenario():
        controller = AdmissionController(LocalDecisionEngine("async+memory://"), mode=mode)
        return [await controller.decide(_ctx(), role) for _ in range(count)]

    return asyncio.run(scenario())


class TestSlidingWindowQuota:
    def test_guest_eleventh_request_denied(self) -> None:
        decisions = _run_requests(None, 11)
        assert all(d.allowed for d in decisions[:10])
        assert decisions[10].allowed is False
        assert decisions[10].reason is DenialReason.rate_limit
        assert decisions[10].role == GUEST_ROLE
        assert decisions[10].limit == 10

    def test_admin_eleven_requests_allowed(self) -> None:
        decisions = _run_requests("admin", 11)
        assert all(d.allowed for d in decisions)
        assert {d.limit for d in decisions} == {100}

    def test_user_limit_is_fifty(self) -> None:
        decisions = _run_requests("user", 51)
        assert all(d.allowed for d in decisions[:50])
        assert decisions[50].reason is DenialReason.rate_limit

    def test_counters_are_per_client(self) -> None:
        async def scenario():
            controller = AdmissionController(LocalDecisionEngine())
            for _ in range(10):
                await controller.decide(_ctx(client_id="198.51.100.1"), None)
            exhausted = await controller.decide(_ctx(client_id="198.51.100.1"), None)
            fresh = await controller.decide(_ctx(client_id="198.51.100.2"), None)
            return exhausted, fresh

        exhausted, fresh = asyncio.run(scenario())
        assert exhausted.allowed is False
        assert fresh.allowed is True

    def test_bots_do_not_consume_quota(self) -> None:
        async def scenario():
            controller = AdmissionController(LocalDecisionEngine())
            for _ in range(20):
                await controller.decide(_ctx(user_agent="curl/8.5.0"), None)
            return await controller.decide(_ctx(), None)

        assert asyncio.run(scenario()).allowed is True


# ---------------------------------------------------------------------------
# Controller behavior
# ---------------------------------------------------------------------------


class TestController:
    def test_check_raises_admission_denied(self) -> None:
        controller = AdmissionController(LocalDecisionEngine())
        with pytest.raises(AdmissionDenied) as excinfo:
            asyncio.run(controller.check(_ctx(user_agent=""), None))
        assert excinfo.value.reason is DenialReason.bot

    def test_engine_failure_propagates(self) -> None:
        """decide() must never turn an engine error into an allow."""
        controller = AdmissionController(_ExplodingEngine())
        with pytest.raises(ConnectionError):
            asyncio.run(controller.check(_ctx(), "admin"))

    def test_denial_is_audited(self, caplog) -> None:
        controller = AdmissionController(LocalDecisionEngine())
        with caplog.at_level(logging.WARNING, logger="authgate.admission"):
            asyncio.run(controller.decide(_ctx(user_agent="curl/8.5.0", path="/api/v1/auth/sign-in"), None))
        record = next(r for r in caplog.records if r.name == "authgate.admission")
        message = record.getMessage()
        assert "reason=bot" in message
        assert "ip=203.0.113.7" in message
        assert "curl/8.5.0" in message
        assert "path=/api/v1/auth/sign-in" in message
        assert "method=GET" in message

    def test_allow_is_not_audited(self, caplog) -> None:
        controller = AdmissionController(LocalDecisionEngine())
        with caplog.at_level(logging.WARNING, logger="authgate.admission"):
            asyncio.run(controller.decide(_ctx(), "user"))
        assert not [r for r in caplog.records if r.name == "authgate.admission"]

    def test_dry_run_admits_but_keeps_reason(self) -> None:
        decisions = _run_requests(None, 11, mode="DRY_RUN")
        assert all(d.allowed for d in decisions)
        assert decisions[10].reason is DenialReason.rate_limit
