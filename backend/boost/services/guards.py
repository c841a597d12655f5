from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Callable

import httpx
from fastapi import HTTPException, Request

from ..core.config import get_settings
from .slugs import generate_slug

settings = get_settings()
logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 60 * 60


class IPRateLimiter:
    """
    Fixed-window counter per client IP, held in process memory.

    Not durable: counts reset on restart and are not shared between
    processes or instances.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        cleanup_interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._clock = clock
        self._entries: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def _cleanup_expired(self, now: float) -> None:
        if now - self._last_cleanup < self.cleanup_interval_seconds:
            return
        self._last_cleanup = now
        expired = [ip for ip, (_, reset_at) in self._entries.items() if now > reset_at]
        for ip in expired:
            del self._entries[ip]

    def check(self, ip: str) -> bool:
        """Count one request for `ip`; False once the window's limit is used up."""
        with self._lock:
            now = self._clock()
            self._cleanup_expired(now)

            entry = self._entries.get(ip)
            if entry is None or now > entry[1]:
                self._entries[ip] = (1, now + self.window_seconds)
                return True

            count, reset_at = entry
            if count >= self.limit:
                return False
            self._entries[ip] = (count + 1, reset_at)
            return True

    def __len__(self) -> int:
        return len(self._entries)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()


# One budget shared by every free tool
free_tool_limiter = IPRateLimiter(
    limit=settings.FREE_TOOL_IP_LIMIT,
    window_seconds=settings.FREE_TOOL_IP_WINDOW_SECONDS,
)


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.headers.get("x-real-ip") or "unknown"


async def verify_turnstile(token: str) -> bool:
    """
    Check a Cloudflare Turnstile token.

    Without a configured secret verification is skipped. Any transport or
    decoding error fails closed.
    """
    secret = settings.TURNSTILE_SECRET
    if not secret:
        return True

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.post(
                settings.TURNSTILE_VERIFY_URL,
                data={"secret": secret, "response": token},
            )
        data = resp.json()
    except (httpx.HTTPError, ValueError):
        logger.warning("Turnstile verification request failed", extra={"step": "turnstile"})
        return False

    return data.get("success") is True


async def guard_free_tool(
    request: Request,
    honeypot: str | None,
    turnstile_token: str | None,
    limiter: IPRateLimiter | None = None,
) -> dict | None:
    """
    Bot and abuse checks shared by every free-tool endpoint.

    Returns a fake success body when the honeypot field is filled so bots
    see nothing unusual; otherwise None. Raises 429 past the IP budget and
    400 for a Turnstile token that fails verification. A missing token is
    allowed (ad blockers strip the widget).
    """
    if honeypot:
        await asyncio.sleep(0.5)
        return {"slug": "fake" + generate_slug()}

    limiter = limiter or free_tool_limiter
    ip = get_client_ip(request)
    if not limiter.check(ip):
        logger.info("Free tool rate limit hit", extra={"step": "rate_limit"})
        raise HTTPException(status_code=429, detail="Too many requests. Please try again tomorrow.")

    if turnstile_token and not await verify_turnstile(turnstile_token):
        raise HTTPException(status_code=400, detail="Bot verification failed.")
    return None
