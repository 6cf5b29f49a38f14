"""OIDC JWT authentication.

Provides:
- verify_token(): validates an RS256 JWT against the issuer's JWKS and
  returns its subject
- get_current_actor(): FastAPI dependency resolving the caller's Actor
  (id and role come from the users table)
- require_admin(): dependency for admin-only routes
"""

from __future__ import annotations

import os
import threading
import time
from typing import Any

import jwt
import requests
from fastapi import Depends, HTTPException, Request

from staybook.domain.identity import Actor, ActorRole

_jwks_cache: dict[str, Any] | None = None
_jwks_cache_time: float = 0
_jwks_cache_lock = threading.Lock()
_JWKS_CACHE_TTL = 600


def _oidc_settings() -> dict[str, Any]:
    parties_raw = os.environ.get("OIDC_AUTHORIZED_PARTIES", "")
    parties = [p.strip() for p in parties_raw.split(",") if p.strip()] or None
    return {
        "issuer": os.environ.get("OIDC_ISSUER"),
        "audience": os.environ.get("OIDC_AUDIENCE"),
        "jwks_url": os.environ.get("OIDC_JWKS_URL"),
        "authorized_parties": parties,
    }


def _fetch_jwks(jwks_url: str) -> dict[str, Any]:
    resp = requests.get(jwks_url, timeout=10)
    resp.raise_for_status()
    return resp.json()


def _get_jwks(jwks_url: str, force_refresh: bool = False) -> dict[str, Any]:
    """JWKS cached for ``_JWKS_CACHE_TTL`` seconds."""
    global _jwks_cache, _jwks_cache_time

    with _jwks_cache_lock:
        now = time.time()
        if not force_refresh and _jwks_cache is not None and (now - _jwks_cache_time) < _JWKS_CACHE_TTL:
            return _jwks_cache
        try:
            _jwks_cache = _fetch_jwks(jwks_url)
        except requests.RequestException:
            raise HTTPException(status_code=503, detail="Auth temporarily unavailable")
        _jwks_cache_time = now
        return _jwks_cache


def _find_key(jwks: dict[str, Any], kid: str) -> dict[str, Any] | None:
    return next((k for k in jwks.get("keys", []) if k.get("kid") == kid), None)


def _decode(token: str, jwk_data: dict[str, Any], issuer: str, audience: str) -> dict[str, Any]:
    try:
        public_key = jwt.algorithms.RSAAlgorithm.from_jwk(jwk_data)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid token")
    return jwt.decode(
        token,
        public_key,
        algorithms=["RS256"],
        issuer=issuer,
        audience=audience,
        options={"require": ["exp", "iss", "aud", "sub"]},
    )


def verify_token(token: str) -> str:
    """Verify a JWT and return its ``sub`` claim.

    An unknown ``kid`` or a bad signature triggers one JWKS refresh, in
    case the issuer rotated its keys.

    Raises:
        HTTPException: 401 if the token is invalid or OIDC is not
            configured, 503 if the JWKS cannot be fetched.
    """
    settings = _oidc_settings()
    issuer, audience, jwks_url = settings["issuer"], settings["audience"], settings["jwks_url"]
    if not issuer or not audience or not jwks_url:
        raise HTTPException(status_code=401, detail="OIDC not configured")

    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except jwt.exceptions.DecodeError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if not kid:
        raise HTTPException(status_code=401, detail="Invalid token")

    key_data = _find_key(_get_jwks(jwks_url), kid)
    if key_data is None:
        key_data = _find_key(_get_jwks(jwks_url, force_refresh=True), kid)
    if key_data is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        payload = _decode(token, key_data, issuer, audience)
    except jwt.InvalidSignatureError:
        key_data = _find_key(_get_jwks(jwks_url, force_refresh=True), kid)
        if key_data is None:
            raise HTTPException(status_code=401, detail="Invalid token")
        try:
            payload = _decode(token, key_data, issuer, audience)
        except jwt.InvalidTokenError:
            raise HTTPException(status_code=401, detail="Invalid token")
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    parties = settings["authorized_parties"]
    if parties and "azp" in payload and payload["azp"] not in parties:
        raise HTTPException(status_code=401, detail="Invalid token")

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Invalid token")
    return sub


def _extract_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")
    return parts[1]


def _get_actor_from_db(external_subject: str) -> Actor | None:
    from staybook.infra.db import txn

    with txn() as cur:
        cur.execute(
            "SELECT id, role FROM users WHERE external_subject = %s",
            (external_subject,),
        )
        row = cur.fetchone()
    if row is None:
        return None
    return Actor(id=str(row[0]), role=ActorRole(row[1]))


def get_current_actor(request: Request) -> Actor:
    """FastAPI dependency: authenticated caller.

    Raises:
        HTTPException: 401 for a missing/invalid token, 403 for an unknown
            user.
    """
    sub = verify_token(_extract_bearer_token(request))
    actor = _get_actor_from_db(sub)
    if actor is None:
        raise HTTPException(status_code=403, detail="User not found")
    return actor


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return actor


CurrentActorDep = Depends(get_current_actor)
AdminDep = Depends(require_admin)
