from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.responses import Response

from storefront.config import COOKIE_SECURE, SESSION_COOKIE_NAME, SESSION_MAX_AGE
from storefront.errors import AuthenticationError

COOKIE_NAME = SESSION_COOKIE_NAME


def extract_token(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(COOKIE_NAME)
    return token or None


def set_session_cookie(response: Response, access_token: str):
    response.set_cookie(
        key=COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="Lax",
        max_age=SESSION_MAX_AGE,
        path="/",
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(COOKIE_NAME, path="/")


def get_optional_credential(request: Request) -> Optional[str]:
    """Jeton éventuel de la requête, sans validation (checkout invité possible)."""
    return extract_token(request)


def get_current_user(request: Request) -> Dict[str, Any]:
    token = extract_token(request)
    if not token:
        raise AuthenticationError("Non authentifié")

    from storefront.auth.service import get_user_from_token as _svc_get_user_from_token
    try:
        user = _svc_get_user_from_token(token)
    except Exception as e:
        raise AuthenticationError("Session expirée, veuillez vous connecter") from e
    if not user.get("id"):
        raise AuthenticationError("Session expirée, veuillez vous connecter")
    return user


def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Accès interdit")
    return user
