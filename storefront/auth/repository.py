from typing import Any, Dict, Optional

import httpx
import jwt

import storefront.config as config
import storefront.infra.supabase_client as supabase_client

JWT_AUDIENCE = "authenticated"
GOTRUE_TIMEOUT = 10

# --- Auth (supabase.auth.*) ---

def auth_sign_in_password(email: str, password: str):
    """Wrapper Supabase Auth: connexion par email/mot de passe (GoTrue)."""
    client = supabase_client.get_supabase()
    return client.auth.sign_in_with_password({"email": email, "password": password})


def auth_sign_up_account(
    email: str,
    password: str,
    options_data: Optional[Dict[str, Any]] = None,
    email_redirect_to: Optional[str] = None,
):
    """Wrapper Supabase Auth: inscription d'un compte.
    - options.data: user_metadata (ex. full_name)
    - options.email_redirect_to: lien de confirmation (SIGNUP_REDIRECT_URL)
    """
    credentials: Dict[str, Any] = {"email": email, "password": password}
    options: Dict[str, Any] = {}
    if options_data:
        options["data"] = options_data
    if email_redirect_to:
        options["email_redirect_to"] = email_redirect_to
    if options:
        credentials["options"] = options
    return supabase_client.get_supabase().auth.sign_up(credentials)


def auth_update_user(user_token: str, attributes: Dict[str, Any]) -> httpx.Response:
    """Appel direct GoTrue PUT /auth/v1/user au nom de l'utilisateur:
    - attributes: {"password": ...} ou {"data": {...}} (fusionné dans user_metadata)
    - Authorization: Bearer <user_token>, apikey anon requis
    """
    url = f"{config.SUPABASE_URL.rstrip('/')}/auth/v1/user"
    headers = {
        "Authorization": f"Bearer {user_token}",
        "apikey": config.SUPABASE_ANON_KEY,
        "Content-Type": "application/json",
    }
    return httpx.put(url, json=attributes, headers=headers, timeout=GOTRUE_TIMEOUT)


def get_user_from_access_token(access_token: str) -> Dict[str, Any]:
    """Récupère et normalise l'utilisateur depuis supabase.auth.get_user(access_token)."""
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None) or {}
    if not isinstance(user, dict):
        user = {
            "id": getattr(user, "id", None),
            "email": getattr(user, "email", None),
            "user_metadata": getattr(user, "user_metadata", None),
            "app_metadata": getattr(user, "app_metadata", None),
        }
    return user or {}


def decode_access_token(access_token: str) -> Dict[str, Any]:
    """
    Vérifie localement un JWT Supabase (HS256, audience 'authenticated').
    Retourne un dict au même format que get_user_from_access_token.
    Lève jwt.PyJWTError si la signature ou l'expiration est invalide.
    """
    claims = jwt.decode(
        access_token,
        config.SUPABASE_JWT_SECRET,
        algorithms=["HS256"],
        audience=JWT_AUDIENCE,
    )
    return {
        "id": claims.get("sub"),
        "email": claims.get("email"),
        "user_metadata": claims.get("user_metadata") or {},
        "app_metadata": claims.get("app_metadata") or {},
    }
