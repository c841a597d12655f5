from __future__ import annotations

import re
from urllib.parse import urlparse

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

GMAIL_DOMAINS = {"gmail.com", "googlemail.com"}

# Throwaway inbox providers; one free result per inbox is meaningless for these
DISPOSABLE_EMAIL_DOMAINS = frozenset(
    {
        "10minutemail.com",
        "discard.email",
        "dispostable.com",
        "fakeinbox.com",
        "getnada.com",
        "guerrillamail.com",
        "guerrillamail.net",
        "maildrop.cc",
        "mailinator.com",
        "mailnesia.com",
        "mintemail.com",
        "mohmal.com",
        "sharklasers.com",
        "spamgourmet.com",
        "temp-mail.org",
        "tempmail.com",
        "tempmailo.com",
        "throwawaymail.com",
        "trashmail.com",
        "yopmail.com",
    }
)


def is_valid_email(email: str | None) -> bool:
    if not email or not isinstance(email, str):
        return False
    trimmed = email.strip().lower()

    if not _EMAIL_RE.match(trimmed):
        return False

    local_part, domain = trimmed.split("@", 1)
    if not local_part or not domain:
        return False
    if ".." in local_part or ".." in domain:
        return False
    if domain.startswith(".") or domain.endswith("."):
        return False
    if local_part.startswith(".") or local_part.endswith("."):
        return False
    return True


def is_disposable_email(email: str) -> bool:
    domain = email.strip().lower().rsplit("@", 1)[-1]
    return domain in DISPOSABLE_EMAIL_DOMAINS


def normalize_email(email: str) -> str:
    """
    Canonical form used for one-per-email checks.

    `Foo.Bar+promo@GoogleMail.com` -> `foobar@gmail.com`
    """
    local, _, domain = email.strip().lower().partition("@")
    local = local.split("+", 1)[0]
    if domain in GMAIL_DOMAINS:
        return local.replace(".", "") + "@gmail.com"
    return f"{local}@{domain}"


def normalize_url(url: str) -> str:
    url = url.strip()
    if not re.match(r"^https?://", url, re.IGNORECASE):
        url = "https://" + url
    if not urlparse(url).hostname:
        raise ValueError(f"Invalid URL: {url!r}")
    return url


def extract_domain(url: str) -> str | None:
    """Hostname without a leading `www.`; None when the URL has no host."""
    try:
        host = urlparse(url if "://" in url else "https://" + url).hostname
    except ValueError:
        return None
    if not host:
        return None
    return host[4:] if host.startswith("www.") else host


_PRIVATE_HOST_RE = re.compile(
    r"^(localhost|127\.|10\.|172\.(1[6-9]|2\d|3[01])\.|192\.168\.|169\.254\.|0\.|\[?::1\]?$|\[?fe80:)",
    re.IGNORECASE,
)


def is_public_host(url: str) -> bool:
    """False for loopback, link-local, RFC 1918 and dotless hosts."""
    try:
        host = urlparse(url).hostname
    except ValueError:
        return False
    if not host or "." not in host:
        return False
    return not _PRIVATE_HOST_RE.match(host)


def mask_email(email: str) -> str:
    """`jane@example.com` -> `ja***@example.com`"""
    match = re.match(r"^(.{2})(.*)(@.*)$", email)
    if not match:
        return email
    return f"{match.group(1)}***{match.group(3)}"
