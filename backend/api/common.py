from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException
from fastapi.responses import JSONResponse

from services.errors import HackHubError, Unauthenticated
from services.identity import Identity, parse_bearer, resolve_identity


logger = logging.getLogger(__name__)

ROLE_DENIED_MESSAGES = {
    ("admin",): "Admin access required",
    ("organizer", "admin"): "Organizer or admin access required",
}


def error_response(exc: HackHubError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def message(text: str, **extra: Any) -> Dict[str, Any]:
    return {"message": text, **extra}


def optional_identity(authorization: Optional[str] = Header(None)) -> Optional[Identity]:
    """Resolve the caller if a valid token is present; anonymous otherwise."""
    token = parse_bearer(authorization)
    if not token:
        return None
    try:
        return resolve_identity(token)
    except Unauthenticated as exc:
        logger.debug(f"Optional auth ignored bad credentials: {exc.message}")
        return None


def current_identity(authorization: Optional[str] = Header(None)) -> Identity:
    try:
        return resolve_identity(parse_bearer(authorization))
    except Unauthenticated as exc:
        raise HTTPException(status_code=401, detail=exc.message)


def require_roles(*roles: str):
    """Dependency factory: only callers whose role is in ``roles`` get through."""
    denied = ROLE_DENIED_MESSAGES.get(tuple(roles), "Access denied")

    def _dependency(identity: Identity = Depends(current_identity)) -> Identity:
        if not identity.has_role(*roles):
            raise HTTPException(status_code=403, detail=denied)
        return identity

    return _dependency
