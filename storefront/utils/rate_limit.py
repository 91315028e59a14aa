from typing import Dict, Any, List
from fastapi import Request, Response, HTTPException
import os
import time
import hashlib
from urllib.parse import urlparse

from storefront.utils.security import COOKIE_NAME

def _client_key(request: Request) -> str:
    """
    Identifiant de limitation: jeton de session (hashé, Bearer ou cookie) sinon IP, suffixé du chemin.
    Le jeton brut n'est jamais utilisé comme clé Redis.
    """
    path = request.url.path
    auth_header = request.headers.get("Authorization", "")
    token = auth_header[7:].strip() if auth_header.startswith("Bearer ") else request.cookies.get(COOKIE_NAME)
    if token:
        h = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{h}:{path}"
    ip = request.client.host if request.client else "local"
    return f"ip:{ip}:{path}"

def _local_hit(request: Request, key: str, times: int, seconds: int) -> None:
    # Fenêtre glissante en mémoire (un seul process), activée par LOCAL_RATE_LIMIT_FALLBACK=1
    now = time.time()
    store: Dict[str, List[float]] = getattr(request.app.state, "_rl_store", {})
    hits = [t for t in store.get(key, []) if now - t < seconds]
    if len(hits) >= times:
        raise HTTPException(status_code=429, detail="Too Many Requests")
    hits.append(now)
    store[key] = hits
    request.app.state._rl_store = store

def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request, response: Response):
        key = _client_key(request)

        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            _local_hit(request, key, times, seconds)
            return

        # Respecter le flag global posé par le lifespan
        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return _client_key(req)

        try:
            limiter = RateLimiter(times=times, seconds=seconds, identifier=_identifier)
            return await limiter(request, response)
        except HTTPException:
            raise
        except Exception:
            # Redis indisponible en cours de route: pas de 429 arbitraire
            return
    return _dep

def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)

    from fastapi_limiter import FastAPILimiter
    limiter_ready = getattr(FastAPILimiter, "redis", None) is not None

    info: Dict[str, Any] = {
        "enabled": (bool(enabled) if enabled is not None else None),
        "local_fallback": os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1",
        "ready": limiter_ready,
        "backend": "redis" if limiter_ready else None,
    }
    redis_url = os.getenv("RATE_LIMIT_REDIS_URL")
    if limiter_ready and redis_url:
        p = urlparse(redis_url)
        info["redis"] = {"scheme": p.scheme, "host": p.hostname, "port": p.port}
    return info
