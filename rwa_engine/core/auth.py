"""
Keycloak bearer-token dependencies for the /v1 routes.

  verify_token   any valid token (scoring, assessment, reporting)
  require_admin  token carrying the rwa-engine-admin realm or client role
                 (rule catalog changes, job triggers)

Signing keys come from the realm JWKS endpoint and are cached per process;
an unknown kid forces one re-fetch so rotated keys are picked up.
AUTH_ENABLED=false replaces every caller with a local admin identity.
"""
from __future__ import annotations

from typing import Optional

import httpx
import structlog
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from rwa_engine.core.config import Settings, get_settings

logger = structlog.get_logger()
security = HTTPBearer(auto_error=False)

ADMIN_ROLE = "rwa-engine-admin"
DEV_CLAIMS = {"sub": "dev-user", "realm_access": {"roles": [ADMIN_ROLE]}}

_jwks_cache: dict[str, dict] = {}


async def _signing_keys(settings: Settings, refresh: bool = False) -> dict[str, dict]:
    """kid → JWK for the configured realm."""
    if _jwks_cache and not refresh:
        return _jwks_cache
    url = f"{settings.keycloak_url}/protocol/openid-connect/certs"
    try:
        async with httpx.AsyncClient(timeout=settings.external_timeout_seconds) as client:
            resp = await client.get(url)
            resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("jwks_fetch_failed", url=url, error=str(e))
        raise HTTPException(status_code=503, detail="Token signing keys unavailable")
    _jwks_cache.clear()
    _jwks_cache.update({k["kid"]: k for k in resp.json().get("keys", []) if "kid" in k})
    logger.info("jwks_loaded", keys=len(_jwks_cache))
    return _jwks_cache


def roles_from_claims(claims: dict, client_id: str) -> set[str]:
    realm = claims.get("realm_access", {}).get("roles", [])
    client = claims.get("resource_access", {}).get(client_id, {}).get("roles", [])
    return {*realm, *client}


async def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Decoded claims of a valid bearer token."""
    if not settings.auth_enabled:
        return DEV_CLAIMS

    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    token = credentials.credentials
    try:
        kid = jwt.get_unverified_header(token).get("kid")
        keys = await _signing_keys(settings)
        if kid not in keys:
            keys = await _signing_keys(settings, refresh=True)
        if kid not in keys:
            raise HTTPException(status_code=401, detail="Invalid token signing key")

        return jwt.decode(
            token,
            keys[kid],
            algorithms=["RS256"],
            audience=settings.keycloak_audience,
            issuer=settings.keycloak_url,
        )
    except JWTError as e:
        logger.warning("jwt_validation_failed", error=str(e))
        raise HTTPException(status_code=401, detail=f"Token validation failed: {e}")


async def require_admin(
    claims: dict = Depends(verify_token),
    settings: Settings = Depends(get_settings),
) -> dict:
    if ADMIN_ROLE not in roles_from_claims(claims, settings.keycloak_client_id):
        logger.warning("admin_role_missing", sub=claims.get("sub"))
        raise HTTPException(status_code=403, detail=f"{ADMIN_ROLE} role required")
    return claims
