"""Bearer-token owner authentication and cron-secret checks.

Owner tokens come from the ``OWNER_TOKENS`` setting in the form
``token1:owner1,token2:owner2``. All comparisons use
``secrets.compare_digest``.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from errors import Unauthorized
from settings import get_settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def parse_owner_tokens(raw: str) -> dict[str, str]:
    """Parse ``token:owner`` pairs; malformed entries are skipped with a warning."""
    if not raw or not raw.strip():
        return {}

    token_map: dict[str, str] = {}
    for idx, entry in enumerate(raw.split(",")):
        entry = entry.strip()
        if ":" not in entry:
            logger.warning(
                "Skipping malformed OWNER_TOKENS entry at position %d (no colon separator)",
                idx,
            )
            continue
        token, owner_id = entry.split(":", maxsplit=1)
        token = token.strip()
        owner_id = owner_id.strip()
        if token and owner_id:
            token_map[token] = owner_id
    return token_map


def authenticate(token: Optional[str], token_map: dict[str, str]) -> str:
    """Return the owner id for ``token``.

    Raises:
        Unauthorized: If the token is missing or unknown.
    """
    if not token:
        raise Unauthorized("Missing authorization credentials.")

    for registered_token, owner_id in token_map.items():
        if secrets.compare_digest(token.encode("utf-8"), registered_token.encode("utf-8")):
            return owner_id

    raise Unauthorized("Invalid or expired token.")


def verify_cron_secret(provided: Optional[str], expected: Optional[str]) -> bool:
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_owner(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """FastAPI dependency resolving the bearer token to an owner id."""
    token_map = parse_owner_tokens(get_settings().owner_tokens)
    try:
        return authenticate(credentials.credentials if credentials else None, token_map)
    except Unauthorized as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


async def require_cron_secret(
    x_cron_secret: Optional[str] = Header(default=None),
) -> None:
    """FastAPI dependency guarding the scheduler-facing endpoints."""
    if not verify_cron_secret(x_cron_secret, get_settings().cron_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret.",
        )
