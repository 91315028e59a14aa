from fastapi import Request, HTTPException, Depends
from typing import Dict, Any

COOKIE_NAME = "sb_access"

def _token_from_request(request: Request) -> str | None:
    # Hybride: priorité au Bearer, fallback cookie
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME)

def get_current_user(request: Request) -> Dict[str, Any]:
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")

    try:
        # Délégué au fournisseur d'auth (Supabase)
        from storefront.auth.repository import get_user_from_access_token
        user = get_user_from_access_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    if not user.get("id"):
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    return user

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user
