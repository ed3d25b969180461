import logging
from typing import Any, Dict, Optional

import storefront.config as config
from storefront.auth.models import AuthResponse, build_session_dict
from storefront.errors import AuthenticationError, GatewayError, ValidationError
from .repository import (
    auth_sign_in_password as sign_in_password,
    auth_sign_up_account as sign_up_account,
    auth_update_user as _repo_update_user,
    decode_access_token as _repo_decode_access_token,
    get_user_from_access_token as _repo_get_user_from_token,
)

logger = logging.getLogger(__name__)

# Marqueurs d'erreur GoTrue / Postgres pour un email déjà inscrit
_ALREADY_EXISTS_MARKERS = ("already", "registered", "exists", "23505")


def determine_role(email: Optional[str], app_metadata: Optional[Dict[str, Any]]) -> str:
    """
    Admin si app_metadata.role == 'admin' ou si l'email figure dans ADMIN_EMAILS.
    user_metadata n'est jamais consulté: l'utilisateur peut le modifier lui-même.
    """
    if str((app_metadata or {}).get("role", "")).lower() == "admin":
        return "admin"
    if email and email.strip().lower() in config.ADMIN_EMAILS:
        return "admin"
    return "user"


def build_user_dict(user) -> Dict[str, Any]:
    if isinstance(user, dict):
        uid, email = user.get("id"), user.get("email")
        metadata, app_metadata = user.get("user_metadata"), user.get("app_metadata")
    else:
        uid = getattr(user, "id", None)
        email = getattr(user, "email", None)
        metadata = getattr(user, "user_metadata", None)
        app_metadata = getattr(user, "app_metadata", None)
    metadata = metadata or {}
    return {
        "id": str(uid) if uid else None,
        "email": email,
        "name": metadata.get("full_name"),
        "metadata": metadata,
        "role": determine_role(email, app_metadata),
    }


def _check_password(password: str) -> None:
    if len(password or "") < config.PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Le mot de passe doit contenir au moins {config.PASSWORD_MIN_LENGTH} caractères"
        )


def _required_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Nom requis")
    return name


def _gotrue_error(resp) -> str:
    try:
        body = resp.json()
        msg = body.get("msg") or body.get("message") or body.get("error_description") or body.get("error")
    except ValueError:
        msg = resp.text
    return msg or f"status {resp.status_code}"

# --- Cas d'usage Auth exposés ---

def login(email: str, password: str) -> AuthResponse:
    """Connexion:
    - Délègue à supabase.auth.sign_in_with_password via repository
    - Normalise la réponse en AuthResponse
    """
    email = (email or "").strip()
    try:
        res = sign_in_password(email, password)
    except Exception as e:
        logger.warning("Connexion refusée email=%s: %s", email, e)
        return AuthResponse(False, error="Identifiants invalides ou email non confirmé")
    sess = getattr(res, "session", None)
    if not sess or not getattr(sess, "access_token", None):
        return AuthResponse(False, error="Identifiants invalides ou email non confirmé")
    return AuthResponse(True, user=build_user_dict(getattr(res, "user", None)), session=build_session_dict(sess))


def signup(email: str, password: str, name: str) -> AuthResponse:
    """Inscription client:
    - nom requis, mot de passe d'au moins PASSWORD_MIN_LENGTH caractères
    - full_name placé dans user_metadata; jamais de rôle (les admins sont
      désignés par app_metadata ou ADMIN_EMAILS)
    - session immédiate si la confirmation d'email est désactivée,
      sinon succès sans session avec invitation à confirmer l'email
    Lève ValidationError (entrée invalide, email déjà inscrit) ou GatewayError.
    """
    email = (email or "").strip().lower()
    name = _required_name(name)
    _check_password(password)
    try:
        res = sign_up_account(
            email=email,
            password=password,
            options_data={"full_name": name},
            email_redirect_to=config.SIGNUP_REDIRECT_URL or None,
        )
    except Exception as e:
        if any(k in str(e).lower() for k in _ALREADY_EXISTS_MARKERS):
            raise ValidationError("Un compte existe déjà avec cet email") from e
        logger.exception("auth.service.signup failed email=%s", email)
        raise GatewayError("Service d'authentification indisponible") from e

    user = getattr(res, "user", None)
    # Confirmation d'email active: GoTrue renvoie un utilisateur sans identité pour un email déjà pris
    if user is not None and getattr(user, "identities", None) == []:
        raise ValidationError("Un compte existe déjà avec cet email")

    sess = getattr(res, "session", None)
    if sess and getattr(sess, "access_token", None):
        return AuthResponse(True, user=build_user_dict(user), session=build_session_dict(sess), message="Compte créé")
    logger.info("Inscription en attente de confirmation email=%s", email)
    return AuthResponse(True, user=build_user_dict(user), message="Compte créé, vérifiez votre email")


def update_profile(user: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Met à jour le nom affiché (user_metadata.full_name); retourne l'utilisateur normalisé."""
    name = _required_name(name)
    try:
        resp = _repo_update_user(user["token"], {"data": {"full_name": name}})
    except Exception as e:
        logger.exception("auth.service.update_profile failed user=%s", user.get("id"))
        raise GatewayError("Service d'authentification indisponible") from e
    if not 200 <= resp.status_code < 300:
        raise ValidationError(f"Mise à jour du profil refusée: {_gotrue_error(resp)}")
    return build_user_dict(resp.json())


def change_password(user: Dict[str, Any], current_password: str, new_password: str) -> None:
    """
    Change le mot de passe après vérification de l'actuel (nouvelle connexion).
    - 400 si le nouveau mot de passe est trop court
    - 401 si le mot de passe actuel est faux
    """
    _check_password(new_password)
    if not current_password:
        raise ValidationError("Mot de passe actuel requis")
    if not login(user.get("email") or "", current_password).success:
        raise AuthenticationError("Mot de passe actuel incorrect")
    try:
        resp = _repo_update_user(user["token"], {"password": new_password})
    except Exception as e:
        logger.exception("auth.service.change_password failed user=%s", user.get("id"))
        raise GatewayError("Service d'authentification indisponible") from e
    if not 200 <= resp.status_code < 300:
        raise ValidationError(f"Changement de mot de passe refusé: {_gotrue_error(resp)}")
    logger.info("Mot de passe modifié user=%s", user.get("id"))

# --- Intégration sécurité ---

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise l'utilisateur d'un jeton d'accès:
    - vérification locale (PyJWT) si SUPABASE_JWT_SECRET est défini
    - sinon supabase.auth.get_user(access_token)
    Retourne {id, email, name, metadata, role, token}; lève en cas de jeton invalide.
    """
    if config.SUPABASE_JWT_SECRET:
        raw = _repo_decode_access_token(access_token)
    else:
        raw = _repo_get_user_from_token(access_token)
    user = build_user_dict(raw)
    user["token"] = access_token
    return user


def resolve_identity(credential: Optional[str]) -> Optional[str]:
    """
    Identité optionnelle pour le checkout: id utilisateur ou None.
    Ne lève jamais: un jeton absent, expiré ou invalide donne un checkout invité.
    """
    if not credential:
        return None
    try:
        return get_user_from_token(credential).get("id")
    except Exception as e:
        logger.info("Jeton ignoré, checkout invité: %s", e)
        return None
