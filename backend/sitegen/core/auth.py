"""Clerk session-token authentication.

Clerk signs session JWTs with RS256. The signing keys are published at
``https://<frontend-api>/.well-known/jwks.json``, where the frontend API
domain is encoded in the publishable key. A token is accepted when its
signature and time claims verify, its issuer is that same domain, and its
authorized party (``azp``, if present) is one of our frontends.
"""

import base64
from dataclasses import dataclass
from functools import lru_cache

import jwt as pyjwt
import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sitegen.core.config import Settings, get_settings
from sitegen.core.logging import bind_generation_context

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

REQUIRED_CLAIMS = ["sub", "exp", "nbf", "iat"]


@dataclass(frozen=True)
class ClerkUser:
    user_id: str
    claims: dict


def _extract_frontend_api_domain(pk: str) -> str:
    """``pk_(test|live)_<base64 of "<domain>$">`` -> ``<domain>``.

    Raises:
        ValueError: If the key is not in that format
    """
    parts = pk.split("_", 2)
    if len(parts) != 3 or parts[0] != "pk":
        raise ValueError("Invalid Clerk publishable key format")

    try:
        domain = base64.b64decode(parts[2] + "==").decode("utf-8").rstrip("$")
    except Exception as exc:
        raise ValueError("Invalid Clerk publishable key: cannot decode") from exc

    if not domain:
        raise ValueError("Invalid Clerk publishable key: empty domain")
    return domain


@lru_cache
def get_jwks_client() -> pyjwt.PyJWKClient:
    settings = get_settings()
    domain = _extract_frontend_api_domain(settings.clerk_publishable_key)
    return pyjwt.PyJWKClient(
        f"https://{domain}/.well-known/jwks.json",
        cache_keys=True,
        lifespan=settings.clerk_jwks_cache_seconds,
    )


def decode_clerk_jwt(token: str) -> ClerkUser:
    """Verify signature and time claims, and require ``sub``.

    Raises:
        HTTPException(401): On any verification failure
    """
    try:
        signing_key = get_jwks_client().get_signing_key_from_jwt(token)
        payload = pyjwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            options={"verify_exp": True, "verify_nbf": True, "verify_iat": True, "require": REQUIRED_CLAIMS},
        )
    except pyjwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except pyjwt.ImmatureSignatureError:
        raise HTTPException(status_code=401, detail="Token not yet valid (immature)")
    except pyjwt.MissingRequiredClaimError as exc:
        raise HTTPException(status_code=401, detail=f"Missing required claim: {exc}")
    except pyjwt.InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail=f"Invalid token: {exc}")

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Token missing sub claim")
    return ClerkUser(user_id=payload["sub"], claims=payload)


def _check_issuer(user: ClerkUser, settings: Settings) -> None:
    try:
        expected = f"https://{_extract_frontend_api_domain(settings.clerk_publishable_key)}"
    except ValueError as exc:
        logger.error("clerk_publishable_key_invalid", error=str(exc))
        raise HTTPException(status_code=500, detail="Authentication is misconfigured") from exc
    if user.claims.get("iss") != expected:
        raise HTTPException(status_code=401, detail="Invalid issuer (iss mismatch)")


def _check_authorized_party(user: ClerkUser, settings: Settings) -> None:
    azp = user.claims.get("azp")
    if azp and azp not in settings.clerk_allowed_origins:
        raise HTTPException(status_code=401, detail="Unauthorized origin (azp mismatch)")


async def require_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> ClerkUser:
    """Dependency: the verified Clerk user for this request.

    Also records the user id on ``request.state`` (read by the error
    handlers) and in the log context.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = decode_clerk_jwt(credentials.credentials)
    settings = get_settings()
    _check_issuer(user, settings)
    _check_authorized_party(user, settings)

    request.state.user_id = user.user_id
    bind_generation_context(clerk_user_id=user.user_id)
    return user
