from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Response

from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import clear_session_cookie, require_admin, require_user, set_session_cookie
from .models import LoginRequest, PasswordChange, ProfileUpdate, SignupRequest
from .service import (
    change_password as svc_change_password,
    login as svc_login,
    signup as svc_signup,
    update_profile as svc_update_profile,
)

# --- API Router (/api/auth) ---

api_router = APIRouter(prefix="/api/auth", tags=["Auth API"])


@api_router.post("/signup", status_code=201, dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_signup(req: SignupRequest, response: Response):
    """Inscription client (API JSON).
    - 400 si entrée invalide ou email déjà inscrit
    - Pose le cookie de session si Supabase renvoie une session immédiate
    """
    result = svc_signup(req.email, req.password, req.name)
    if result.access_token:
        set_session_cookie(response, result.access_token)
    return {"message": result.message, "access_token": result.access_token, "user": result.user}


@api_router.post("/login", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_login(req: LoginRequest, response: Response):
    """Connexion (API JSON).
    - Délègue la vérification des identifiants à Supabase Auth.
    - Pose le cookie de session HttpOnly si un access_token est fourni.
    - Retourne {access_token, token_type, user}.
    """
    result = svc_login(req.email, req.password)
    if not result.success:
        raise HTTPException(status_code=401, detail=result.error or "Identifiants invalides")
    if result.access_token:
        set_session_cookie(response, result.access_token)
    return {"access_token": result.access_token, "token_type": "bearer", "user": result.user}


@api_router.post("/logout")
def api_logout(response: Response):
    """Supprime le cookie de session."""
    clear_session_cookie(response)
    return {"message": "Déconnexion réussie"}


@api_router.get("/me")
def api_me(user: Dict[str, Any] = Depends(require_user)):
    return {
        "id": user["id"],
        "email": user["email"],
        "name": user.get("name"),
        "role": user["role"],
        "metadata": user.get("metadata") or {},
    }


@api_router.get("/admin/check")
def api_admin_check(admin: Dict[str, Any] = Depends(require_admin)):
    return {"message": "Accès admin accordé"}


@api_router.put("/profile")
def api_update_profile(req: ProfileUpdate, user: Dict[str, Any] = Depends(require_user)):
    updated = svc_update_profile(user, req.name)
    return {"message": "Profil mis à jour", "user": updated}


@api_router.put("/password", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_change_password(req: PasswordChange, user: Dict[str, Any] = Depends(require_user)):
    """Changement de mot de passe; 401 si le mot de passe actuel est faux."""
    svc_change_password(user, req.current_password, req.new_password)
    return {"message": "Mot de passe modifié"}
