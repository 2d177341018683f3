"""
Session verification for tokens issued by the hosted auth provider.

We never issue sessions. A request carries the provider's session JWT as a
bearer token; we verify its signature and standard claims with PyJWT and
read the organization context out of it.

Claim layout (provider v2 session token):
- sub: user id
- o.id / o.rol: active organization id and the caller's role in it
- org_id / org_role: older flat layout, still accepted
- metadata: either the string "org:admin" or an object with a "role" key
- first_name, last_name, email, username: display name parts
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import jwt
from flask import current_app

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
MEMBER_ROLE = "member"


class AuthError(Exception):
    """401: missing, malformed, expired or otherwise invalid session token."""


@dataclass(frozen=True)
class SessionClaims:
    user_id: str
    org_id: str | None = None
    org_role: str | None = None
    metadata: Any = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    username: str | None = None
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: dict) -> "SessionClaims":
        org = payload.get("o") if isinstance(payload.get("o"), dict) else {}
        return cls(
            user_id=payload["sub"],
            org_id=org.get("id") or payload.get("org_id"),
            org_role=org.get("rol") or payload.get("org_role"),
            metadata=payload.get("metadata"),
            first_name=payload.get("first_name"),
            last_name=payload.get("last_name"),
            email=payload.get("email"),
            username=payload.get("username"),
            raw=payload,
        )


def verify_session_token(token: str) -> SessionClaims:
    cfg = current_app.config
    options = {"require": ["sub", "exp"]}
    audience = cfg.get("AUTH_JWT_AUDIENCE")
    if not audience:
        options["verify_aud"] = False

    try:
        payload = jwt.decode(
            token,
            cfg["AUTH_JWT_KEY"],
            algorithms=cfg["AUTH_JWT_ALGORITHMS"],
            issuer=cfg.get("AUTH_JWT_ISSUER"),
            audience=audience,
            leeway=cfg.get("AUTH_JWT_LEEWAY", 0),
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Session expired")
    except jwt.InvalidTokenError as e:
        logger.info("Rejected session token: %s", e)
        raise AuthError("Invalid session token")

    if not isinstance(payload.get("sub"), str) or not payload["sub"]:
        raise AuthError("Invalid session token")

    return SessionClaims.from_payload(payload)


def _normalize_role(role: Any) -> str | None:
    if not isinstance(role, str) or not role:
        return None
    if role.startswith("org:"):
        role = role[len("org:"):]
    return role


def get_current_user_role(claims: SessionClaims) -> str | None:
    """
    Resolve the caller's role.

    The organization role wins when it is one we know; otherwise fall back to
    the metadata claim ("org:admin" string or {"role": ...}).
    """
    org_role = _normalize_role(claims.org_role)
    if org_role in (ADMIN_ROLE, MEMBER_ROLE):
        return org_role
    return _metadata_role(claims)


def _metadata_role(claims: SessionClaims) -> str | None:
    metadata = claims.metadata
    if isinstance(metadata, str):
        return ADMIN_ROLE if metadata == "org:admin" else _normalize_role(metadata)
    if isinstance(metadata, dict):
        return _normalize_role(metadata.get("role"))
    return None


def is_admin(claims: SessionClaims) -> bool:
    """Admin by either the organization role or the metadata claim."""
    return ADMIN_ROLE in (_normalize_role(claims.org_role), _metadata_role(claims))


def get_current_user_name(claims: SessionClaims) -> str:
    full = " ".join(p for p in (claims.first_name, claims.last_name) if p).strip()
    if full:
        return full
    return claims.email or claims.username or "Unknown User"
