"""
admission/signatures.py -- Bot and attack-signature classifiers.

Both are pure functions over a RequestContext: no I/O, no state.

Bot detection looks at the User-Agent only. A missing User-Agent counts as
automated, as do well-known HTTP libraries, headless browsers and crawlers.

Shield matching runs over the URL-decoded path and query string and catches
the usual injection attempts: SQL injection, script injection, path traversal
and shell metacharacter chains. It is a coarse first line, not a WAF.
"""

from __future__ import annotations

import re
from urllib.parse import unquote_plus

from admission.policy import RequestContext

_BOT_PATTERNS = [
    r"[a-z]bot/\d",
    r"compatible;\s*[\w.-]*bot\b",
    r"crawl",
    r"spider",
    r"scrap(?:er|y)",
    r"^curl/",
    r"^wget/",
    r"python-requests",
    r"python-urllib",
    r"aiohttp",
    r"go-http-client",
    r"^java/",
    r"okhttp",
    r"libwww-perl",
    r"headlesschrome",
    r"phantomjs",
    r"selenium",
    r"puppeteer",
    r"nikto",
    r"sqlmap",
    r"masscan",
    r"zgrab",
]

_ATTACK_PATTERNS = {
    "sql_injection": [
        r"\bunion\b[\s(]+(?:all\s+)?select\b",
        r"'\s*or\s+'?\d+'?\s*=\s*'?\d+",
        r";\s*(?:drop|truncate|delete|alter)\s+table\b",
        r"(?:'|\band\b|\bor\b|;)\s*(?:sleep|benchmark|pg_sleep)\s*\(",
        r"\binformation_schema\b",
    ],
    "xss": [
        r"<\s*script\b",
        r"javascript\s*:",
        r"\bon(?:error|load|mouseover)\s*=",
        r"<\s*(?:iframe|svg|img)\b[^>]*\bon\w+\s*=",
    ],
    "path_traversal": [
        r"\.\./",
        r"\.\.\\",
        r"/etc/(?:passwd|shadow)",
        r"\bwin\.ini\b",
    ],
    "command_injection": [
        r"[;|`]\s*(?:cat|ls|id|whoami|uname|wget|curl|nc|bash|sh)\b",
        r"\$\([^)]*\)",
    ],
}

_BOT_RE = re.compile("|".join(_BOT_PATTERNS), re.IGNORECASE)
_ATTACK_RES = {name: re.compile("|".join(patterns), re.IGNORECASE) for name, patterns in _ATTACK_PATTERNS.items()}


def is_automated_client(user_agent: str | None) -> bool:
    """Return True if the User-Agent is missing or matches a known bot."""
    if not user_agent or not user_agent.strip():
        return True
    return _BOT_RE.search(user_agent) is not None


def find_attack_signature(ctx: RequestContext) -> str | None:
    """Return the name of the first attack family found in path or query, else None."""
    target = unquote_plus(ctx.path)
    if ctx.query:
        target = f"{target}?{unquote_plus(ctx.query)}"
    for name, pattern in _ATTACK_RES.items():
        if pattern.search(target):
            return name
    return None
