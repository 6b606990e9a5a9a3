# SPDX-License-Identifier: Apache-2.0

"""
Invite token helpers.

Token generation, hashing, slugs and onboarding links. The token is the
only trusted part of an onboarding link; the plaintext names exist for
display and are never used to infer scope.
"""

import hashlib
import re
import secrets
from datetime import datetime
from typing import Mapping, Optional
from urllib.parse import urlencode

from models.base import ensure_utc, utc_now
from .reconciliation import normalize

TOKEN_BYTES = 24


def generate_token() -> str:
    """Opaque, URL-safe, unguessable token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """SHA-256 hex digest used as the stored key for a token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def slugify(text: str) -> str:
    """
    Lowercase slug: whitespace and dots become hyphens, other symbols are dropped.

    >>> slugify("City of Malolos")
    'city-of-malolos'
    """
    slug = re.sub(r"[\s.]+", "-", (text or "").lower())
    return re.sub(r"[^\w-]+", "", slug)


def tenant_slug(city: str, barangay: str) -> str:
    """Suggested tenant id for a city/barangay pair."""
    return f"{slugify(city)}-{slugify(barangay)}"


def build_onboarding_url(
    origin: str,
    province: str,
    city: str,
    barangay: str,
    region: Optional[str],
    token: str
) -> str:
    """Onboarding link carrying display names plus the token."""
    query = urlencode({
        "province": province,
        "city": city,
        "barangay": barangay,
        "region": region or "",
        "token": token,
    })
    return f"{origin.rstrip('/')}/onboarding?{query}"


def scope_matches(scope: Mapping[str, Optional[str]], province: str, city: str, barangay: str) -> bool:
    """Case and whitespace insensitive comparison of an invite scope with a claimed tuple."""
    return (
        normalize(scope.get("province")) == normalize(province)
        and normalize(scope.get("city")) == normalize(city)
        and normalize(scope.get("barangay")) == normalize(barangay)
    )


def is_expired(expires_at: datetime, now: Optional[datetime] = None) -> bool:
    now = now or utc_now()
    return ensure_utc(expires_at) <= now
